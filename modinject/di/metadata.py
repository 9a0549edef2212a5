"""
Injectable metadata table.

Classes and factory functions are described by an ``InjectableMetadata``
record kept in a module-level table, built by ``register_injectable`` (or the
``injectable`` decorator) right next to the declaration. The record lists the
injectable parameters with their explicit token overrides and optional marks,
the provider scope, the execution-context-bound attribute names and whether
the produced object has a destroy hook.

Declared parameter types are not read here: they are evaluated from the
annotations when dependencies are extracted, so string annotations and
forward references can point at classes defined later.
"""

import inspect
import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Optional, TypeVar, Union

from .scopes import ProviderScope

logger = logging.getLogger(__name__)

T = TypeVar("T")

ParamRef = Union[int, str]

_POSITIONAL_KINDS = (
    inspect.Parameter.POSITIONAL_ONLY,
    inspect.Parameter.POSITIONAL_OR_KEYWORD,
)


@dataclass
class InjectableParamMetadata:
    """One injectable parameter: its name, position and explicit overrides."""

    name: str
    position: int
    token: Any = None
    optional: bool = False


@dataclass
class InjectableMetadata:
    """Metadata record for a class or factory function."""

    target: Any
    params: list[InjectableParamMetadata] = field(default_factory=list)
    scope: Optional[ProviderScope] = None
    execution_context_in: tuple[str, ...] = ()
    destroy_hook: Optional[bool] = None

    @property
    def annotated_callable(self) -> Callable[..., Any]:
        """The callable whose annotations describe the parameters."""
        if inspect.isclass(self.target):
            return self.target.__init__
        return self.target


_injectable_metadata: dict[Any, InjectableMetadata] = {}


def read_injectable_metadata(target: Any) -> Optional[InjectableMetadata]:
    """Return the metadata registered for ``target`` itself, if any."""
    try:
        return _injectable_metadata.get(target)
    except TypeError:
        # unhashable declarations are never registered
        return None


def signature_metadata(target: Any) -> InjectableMetadata:
    """Metadata read straight from the signature of an unregistered callable (not stored)."""
    return InjectableMetadata(target=target, params=_signature_params(target))


def register_injectable(
    target: T,
    *,
    inject: Optional[Mapping[ParamRef, Any]] = None,
    optional: Iterable[ParamRef] = (),
    scope: Optional[ProviderScope] = None,
    execution_context: Iterable[str] = (),
    destroy_hook: Optional[bool] = None,
) -> InjectableMetadata:
    """
    Build (or extend) the metadata record of a class or function.

    Only positional parameters are injected; ``*args``, ``**kwargs`` and
    keyword-only parameters are left to the callable's defaults.

    Args:
        target: Class or factory function
        inject: Explicit tokens by parameter name or position
        optional: Parameters (by name or position) that resolve to None
                  when no provider exists
        scope: Provider scope used when the class is given as a bare provider
        execution_context: Attribute names bound to the current execution
                           context when seen through a shadow injector
        destroy_hook: Force destroy-hook tracking on or off; None detects it
                      from the target

    Returns:
        The stored metadata record

    Raises:
        ValueError: If an override names a parameter that does not exist
    """
    params = _signature_params(target)
    existing = _injectable_metadata.get(target)
    if existing is not None:
        # keep overrides recorded by an earlier registration
        for param in params:
            previous = existing.params[param.position] if param.position < len(existing.params) else None
            if previous is not None and previous.name == param.name:
                param.token = previous.token
                param.optional = previous.optional

    for ref, token in (inject or {}).items():
        _find_param(target, params, ref).token = token
    for ref in optional:
        _find_param(target, params, ref).optional = True

    bound_names = list(getattr(target, "__execution_context__", ()))
    if existing is not None:
        bound_names.extend(existing.execution_context_in)
    bound_names.extend(execution_context)

    meta = InjectableMetadata(
        target=target,
        params=params,
        scope=scope if scope is not None else (existing.scope if existing else None),
        execution_context_in=tuple(dict.fromkeys(bound_names)),
        destroy_hook=(
            destroy_hook
            if destroy_hook is not None
            else (existing.destroy_hook if existing else None)
        ),
    )
    _injectable_metadata[target] = meta
    logger.debug(f"Registered injectable metadata for {getattr(target, '__name__', target)!r}")
    return meta


def injectable(
    target: Optional[T] = None,
    *,
    inject: Optional[Mapping[ParamRef, Any]] = None,
    optional: Iterable[ParamRef] = (),
    scope: Optional[ProviderScope] = None,
    execution_context: Iterable[str] = (),
    destroy_hook: Optional[bool] = None,
) -> Any:
    """
    Decorator form of ``register_injectable``.

    Usage:
        @injectable
        class Posts:
            def __init__(self, db: Database): ...

        @injectable(scope=ProviderScope.OPERATION, optional=["cache"])
        class RequestLogger:
            def __init__(self, request: Request, cache: Cache): ...
    """

    def decorator(inner: T) -> T:
        register_injectable(
            inner,
            inject=inject,
            optional=optional,
            scope=scope,
            execution_context=execution_context,
            destroy_hook=destroy_hook,
        )
        return inner

    if target is not None:
        return decorator(target)
    return decorator


def execution_context(*names: str) -> Callable[[T], T]:
    """
    Class decorator marking attributes as execution-context-bound.

    Usage:
        @execution_context("context")
        @injectable
        class Auth:
            def user(self):
                return self.context["user"]
    """

    def decorator(cls: T) -> T:
        register_injectable(cls, execution_context=names)
        return cls

    return decorator


def _signature_params(target: Any) -> list[InjectableParamMetadata]:
    if inspect.isclass(target):
        init = target.__init__
        if init is object.__init__:
            return []
        parameters = list(inspect.signature(init).parameters.values())[1:]
    else:
        parameters = list(inspect.signature(target).parameters.values())

    positional = [p for p in parameters if p.kind in _POSITIONAL_KINDS]
    return [InjectableParamMetadata(name=p.name, position=i) for i, p in enumerate(positional)]


def _find_param(
    target: Any, params: list[InjectableParamMetadata], ref: ParamRef
) -> InjectableParamMetadata:
    for param in params:
        if param.name == ref or param.position == ref:
            return param
    raise ValueError(f"{getattr(target, '__name__', target)!r} has no injectable parameter {ref!r}")
