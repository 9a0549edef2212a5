"""
Provider resolution.

Turns provider declarations into ``ResolvedProvider`` records: a key plus a
factory callable and the ordered dependencies the factory is called with.
"""

import inspect
import logging
import types
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Optional, Union, get_args, get_origin, get_type_hints

from ..exceptions import InvalidProviderError, NoAnnotationError
from ..utils import stringify
from .metadata import InjectableMetadata, read_injectable_metadata, signature_metadata
from .providers import (
    ClassProvider,
    FactoryProvider,
    Provider,
    ValueProvider,
    is_type,
)
from .registry import Key, resolve_forward_ref
from .scopes import ProviderScope

logger = logging.getLogger(__name__)

_MAPPING_FIELDS = {
    "use_value": "use_value",
    "useValue": "use_value",
    "use_class": "use_class",
    "useClass": "use_class",
    "use_factory": "use_factory",
    "useFactory": "use_factory",
}


@dataclass(frozen=True)
class Dependency:
    """A key to resolve, and whether a missing provider yields None instead of an error."""

    key: Key
    optional: bool = False

    @staticmethod
    def from_key(key: Key) -> "Dependency":
        return Dependency(key, False)


@dataclass(frozen=True)
class ResolvedFactory:
    """
    Factory callable plus the dependencies it is called with, in order.

    Attributes:
        factory: Callable producing the provided value
        dependencies: Positional arguments of ``factory``
        target: The class, function or value the factory was built from
        execution_context_in: Attribute names bound to the execution context
        destroy_hook: Explicit destroy-hook flag, None to detect from target
    """

    factory: Callable[..., Any]
    dependencies: tuple[Dependency, ...] = ()
    target: Any = None
    execution_context_in: tuple[str, ...] = ()
    destroy_hook: Optional[bool] = None


@dataclass(frozen=True)
class ResolvedProvider:
    key: Key
    factory: ResolvedFactory


def normalize_providers(providers: Iterable[Any], res: Optional[list[Provider]] = None) -> list[Provider]:
    """
    Flatten declarations into ValueProvider/ClassProvider/FactoryProvider records.

    Raises:
        InvalidProviderError: For anything that is not a class, a provider
                              declaration or a list of those
    """
    res = [] if res is None else res
    for provider in providers:
        if is_type(provider):
            res.append(ClassProvider(provide=provider, use_class=provider))
        elif isinstance(provider, (ValueProvider, ClassProvider, FactoryProvider)):
            res.append(provider)
        elif isinstance(provider, Mapping) and provider.get("provide") is not None:
            res.append(_from_mapping(provider))
        elif isinstance(provider, (list, tuple)):
            normalize_providers(provider, res)
        else:
            raise InvalidProviderError(provider)
    return res


def _from_mapping(provider: Mapping[str, Any]) -> Provider:
    fields = {_MAPPING_FIELDS[k]: v for k, v in provider.items() if k in _MAPPING_FIELDS}
    if len(fields) != 1:
        raise InvalidProviderError(provider)

    kwargs = {
        "provide": provider["provide"],
        "scope": provider.get("scope") or ProviderScope.SINGLETON,
        **fields,
    }
    if "use_value" in fields:
        return ValueProvider(**kwargs)
    if "use_class" in fields:
        return ClassProvider(**kwargs)
    return FactoryProvider(**kwargs)


def resolve_factory(provider: Provider) -> ResolvedFactory:
    if isinstance(provider, ClassProvider):
        use_class = resolve_forward_ref(provider.use_class)
        meta = read_injectable_metadata(use_class)
        return ResolvedFactory(
            factory=use_class,
            dependencies=tuple(dependencies_for(use_class)),
            target=use_class,
            execution_context_in=meta.execution_context_in if meta else (),
            destroy_hook=meta.destroy_hook if meta else None,
        )

    if isinstance(provider, FactoryProvider):
        factory = provider.use_factory
        meta = read_injectable_metadata(factory)
        return ResolvedFactory(
            factory=factory,
            dependencies=tuple(dependencies_for(factory)),
            target=factory,
            execution_context_in=meta.execution_context_in if meta else (),
            destroy_hook=meta.destroy_hook if meta else None,
        )

    value = provider.use_value
    # values are not created by the injector, so it never destroys them
    return ResolvedFactory(factory=lambda: value, target=value, destroy_hook=False)


def resolve_provider(provider: Provider) -> ResolvedProvider:
    return ResolvedProvider(Key.get(provider.provide), resolve_factory(provider))


def resolve_providers(providers: Iterable[Any]) -> list[ResolvedProvider]:
    """
    Normalize, resolve and merge provider declarations.

    A later declaration for a token replaces an earlier one but keeps the
    earlier one's position.
    """
    normalized = normalize_providers(providers)
    resolved = [resolve_provider(provider) for provider in normalized]
    return list(merge_resolved_providers(resolved, {}).values())


def merge_resolved_providers(
    providers: Iterable[ResolvedProvider],
    normalized_providers_map: dict[int, ResolvedProvider],
) -> dict[int, ResolvedProvider]:
    for provider in providers:
        normalized_providers_map[provider.key.id] = provider
    return normalized_providers_map


def dependencies_for(target: Any) -> list[Dependency]:
    """
    Ordered dependencies of a class or factory function.

    Explicit ``inject`` overrides win over annotations; ``Optional[X]``
    annotations make the dependency optional. Annotations and forward
    references are evaluated here, not when the class is declared.

    Raises:
        NoAnnotationError: If the class has no injectable metadata or a
                           parameter's token cannot be determined
    """
    meta = read_injectable_metadata(target)
    if meta is None:
        if is_type(target):
            raise NoAnnotationError(target)
        meta = signature_metadata(target)

    if not meta.params:
        return []

    hints = _type_hints(meta)
    resolved: list[Optional[tuple[Any, bool]]] = []
    for param in meta.params:
        if param.token is not None:
            token, optional = resolve_forward_ref(param.token), param.optional
        else:
            token, optional = _unwrap_optional(hints.get(param.name))
            optional = optional or param.optional
        resolved.append((token, optional) if _is_token(token) else None)

    if any(entry is None for entry in resolved):
        signature = ["?" if entry is None else stringify(entry[0]) for entry in resolved]
        position = next(i for i, entry in enumerate(resolved) if entry is None)
        raise NoAnnotationError(target, signature, position)

    return [Dependency(Key.get(token), optional) for token, optional in resolved]


def _type_hints(meta: InjectableMetadata) -> dict[str, Any]:
    try:
        return get_type_hints(meta.annotated_callable)
    except NameError as exc:
        logger.warning(
            "'%s' name error retrieving %s type hints", exc.name, stringify(meta.target)
        )
        return {}
    except TypeError:
        return {}


def _unwrap_optional(annotation: Any) -> tuple[Any, bool]:
    origin = get_origin(annotation)
    if origin is Union or origin is types.UnionType:
        args = get_args(annotation)
        non_none = [arg for arg in args if arg is not type(None)]
        if len(non_none) == 1 and len(args) == 2:
            return non_none[0], True
        return None, False
    return annotation, False


def _is_token(token: Any) -> bool:
    return token is not None and token is not inspect.Parameter.empty and token is not Any
