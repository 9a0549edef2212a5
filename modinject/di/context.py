"""
Execution context for singleton objects.

A singleton is created once but may need to read per-operation values (the
caller, the request id). Its class marks the attributes that carry that
value; when the object is seen through a shadow injector it is wrapped in an
``ExecutionContextProxy`` that answers those attributes from the current
operation while every other read, write and method call reaches the real
object.
"""

import inspect
import types
import weakref
from collections.abc import Callable, Iterable
from typing import Any, Final

from ..constants import DEFAULT_EXECUTION_CONTEXT_PROPERTY
from ..exceptions import ExecutionContextError

ContextGetter = Callable[[], Any]


class ExecutionContextAware:
    """
    Explicit interface for classes that read the current execution context.

    Subclasses get ``context`` marked as execution-context-bound when they are
    registered with ``injectable``; ``current_context()`` returns the
    operation's context when called through a shadow injector.

    Usage:
        @injectable
        class Auth(ExecutionContextAware):
            def user(self):
                return self.current_context()["user"]
    """

    __execution_context__: tuple[str, ...] = (DEFAULT_EXECUTION_CONTEXT_PROPERTY,)

    @property
    def context(self) -> Any:
        raise ExecutionContextError(
            f"{type(self).__name__} read its execution context outside of an operation"
        )

    def current_context(self) -> Any:
        return self.context


class ExecutionContextProxy:
    """
    Transparent view of ``target`` with some attributes bound to a context getter.

    Methods and properties defined on the target's class are re-bound to the
    proxy, so ``self.<bound name>`` inside them also sees the current
    context. ``__class__`` reports the target's class, so ``isinstance``
    checks keep working.

    Special methods the target's class defines (``__call__``, ``__len__``,
    ``__iter__``, ``__enter__``, ...) are forwarded the same way: each
    proxy is an instance of a subclass generated once per target class.

    A proxy compares equal to its target and hashes like it, but it is a
    different object: ``proxy is target`` is False, and two shadows of the
    same singleton hold two different proxies. Compare with ``==`` or
    ``unwrap()`` the proxy first.
    """

    __slots__ = ("_target", "_bound_names", "_context_getter")

    def __new__(cls, target: Any, bound_names: Iterable[str], context_getter: ContextGetter):
        if cls is ExecutionContextProxy:
            cls = _proxy_class_for(type(target))
        return object.__new__(cls)

    def __init__(self, target: Any, bound_names: Iterable[str], context_getter: ContextGetter):
        object.__setattr__(self, "_target", target)
        object.__setattr__(self, "_bound_names", frozenset(bound_names))
        object.__setattr__(self, "_context_getter", context_getter)

    @property
    def __class__(self) -> type:  # type: ignore[override]
        return type(object.__getattribute__(self, "_target"))

    def __getattr__(self, name: str) -> Any:
        target = object.__getattribute__(self, "_target")
        if name in object.__getattribute__(self, "_bound_names"):
            return object.__getattribute__(self, "_context_getter")()

        try:
            attr = inspect.getattr_static(type(target), name)
        except AttributeError:
            return getattr(target, name)

        if name in getattr(target, "__dict__", {}):
            return getattr(target, name)
        if isinstance(attr, property) and attr.fget is not None:
            return attr.fget(self)
        if isinstance(attr, types.FunctionType):
            return types.MethodType(attr, self)
        return getattr(target, name)

    def __setattr__(self, name: str, value: Any) -> None:
        if name in object.__getattribute__(self, "_bound_names"):
            raise AttributeError(f"'{name}' is bound to the execution context and is read-only")
        setattr(object.__getattribute__(self, "_target"), name, value)

    def __delattr__(self, name: str) -> None:
        delattr(object.__getattribute__(self, "_target"), name)

    def __str__(self) -> str:
        return _call_special(self, "__str__")

    def __format__(self, format_spec: str) -> str:
        target = object.__getattribute__(self, "_target")
        if _lookup_special(type(target), "__format__") is None:
            return object.__format__(self, format_spec)
        return _call_special(self, "__format__", format_spec)

    def __repr__(self) -> str:
        return f"ExecutionContextProxy({object.__getattribute__(self, '_target')!r})"

    def __eq__(self, other: Any) -> bool:
        target = object.__getattribute__(self, "_target")
        other = unwrap(other)
        return target == other

    def __hash__(self) -> int:
        return hash(object.__getattribute__(self, "_target"))


def unwrap(obj: Any) -> Any:
    """Return the real object behind an ExecutionContextProxy (or ``obj`` itself)."""
    if issubclass(type(obj), ExecutionContextProxy):
        return object.__getattribute__(obj, "_target")
    return obj


_FORWARDED_SPECIAL_METHODS: Final[tuple[str, ...]] = (
    "__call__",
    "__len__",
    "__length_hint__",
    "__bool__",
    "__iter__",
    "__next__",
    "__reversed__",
    "__contains__",
    "__getitem__",
    "__setitem__",
    "__delitem__",
    "__lt__",
    "__le__",
    "__gt__",
    "__ge__",
    "__int__",
    "__float__",
    "__index__",
    "__bytes__",
    "__enter__",
    "__exit__",
    "__aenter__",
    "__aexit__",
    "__aiter__",
    "__anext__",
    "__await__",
)

_proxy_classes: "weakref.WeakKeyDictionary[type, type]" = weakref.WeakKeyDictionary()


def _lookup_special(cls: type, name: str) -> Any:
    """Find ``name`` in the class dicts of ``cls``'s MRO, ignoring ``object``."""
    for base in cls.__mro__:
        if base is object:
            break
        if name in vars(base):
            return vars(base)[name]
    return None


def _call_special(proxy: ExecutionContextProxy, name: str, *args: Any, **kwargs: Any) -> Any:
    target = object.__getattribute__(proxy, "_target")
    attr = _lookup_special(type(target), name)
    if isinstance(attr, types.FunctionType):
        return attr(proxy, *args, **kwargs)
    return getattr(target, name)(*args, **kwargs)


def _forwarding(name: str) -> Callable[..., Any]:
    def method(self: ExecutionContextProxy, *args: Any, **kwargs: Any) -> Any:
        return _call_special(self, name, *args, **kwargs)

    method.__name__ = name
    return method


def _proxy_class_for(target_cls: type) -> type:
    """Proxy subclass forwarding the special methods ``target_cls`` defines."""
    proxy_cls = _proxy_classes.get(target_cls)
    if proxy_cls is None:
        namespace: dict[str, Any] = {"__slots__": ()}
        for name in _FORWARDED_SPECIAL_METHODS:
            if _lookup_special(target_cls, name) is not None:
                namespace[name] = _forwarding(name)
        proxy_cls = type(
            f"ExecutionContextProxy[{target_cls.__qualname__}]",
            (ExecutionContextProxy,),
            namespace,
        )
        _proxy_classes[target_cls] = proxy_cls
    return proxy_cls
