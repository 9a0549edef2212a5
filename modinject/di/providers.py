"""
Provider Declarations for Dependency Injection

Providers declare how to produce the value of a token:
- a bare class (token and implementation are the class itself)
- ValueProvider: a fixed value
- ClassProvider: an implementation class constructed with its dependencies
- FactoryProvider: a factory function called with its dependencies

Each declaration carries a scope used to split an application's providers
into singleton and operation subsets.
"""

import inspect
import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from ..utils import flatten
from .metadata import read_injectable_metadata
from .scopes import ProviderScope

logger = logging.getLogger(__name__)

T = TypeVar("T")


class InjectionToken(Generic[T]):
    """
    Opaque token for values that have no class of their own.

    Tokens are compared by identity: two tokens with the same description
    are different tokens.

    Usage:
        DATABASE_URL = InjectionToken[str]("database-url")
        providers = [ValueProvider(provide=DATABASE_URL, use_value="mongodb://...")]
    """

    def __init__(self, desc: str):
        self._desc = desc

    @property
    def description(self) -> str:
        return self._desc

    def __str__(self) -> str:
        return f"InjectionToken {self._desc}"

    def __repr__(self) -> str:
        return f"InjectionToken({self._desc!r})"


@dataclass(frozen=True, eq=False, kw_only=True)
class Provider:
    """Base provider declaration."""

    provide: Any
    scope: ProviderScope = ProviderScope.SINGLETON


@dataclass(frozen=True, eq=False, kw_only=True)
class ValueProvider(Provider):
    """Provide a fixed value."""

    use_value: Any


@dataclass(frozen=True, eq=False, kw_only=True)
class ClassProvider(Provider):
    """Provide an instance of ``use_class``, built with its injected dependencies."""

    use_class: type


@dataclass(frozen=True, eq=False, kw_only=True)
class FactoryProvider(Provider):
    """Provide the result of ``use_factory``, called with its injected dependencies."""

    use_factory: Callable[..., Any]


def is_type(value: Any) -> bool:
    return inspect.isclass(value)


def provider_scope(provider: Any) -> ProviderScope:
    """
    Scope of a single declaration.

    Bare classes use the scope recorded in their metadata; declarations use
    their ``scope`` field. Both default to SINGLETON.
    """
    if is_type(provider):
        meta = read_injectable_metadata(provider)
        return meta.scope if meta and meta.scope is not None else ProviderScope.SINGLETON
    if isinstance(provider, Provider):
        return provider.scope
    if isinstance(provider, Mapping):
        return provider.get("scope") or ProviderScope.SINGLETON
    return ProviderScope.SINGLETON


def only_singleton_providers(providers: Iterable[Any] | None = None) -> list[Any]:
    """Declarations that belong to singleton injectors."""
    return [p for p in flatten(providers or []) if provider_scope(p) is ProviderScope.SINGLETON]


def only_operation_providers(providers: Iterable[Any] | None = None) -> list[Any]:
    """Declarations that belong to per-operation injectors."""
    return [p for p in flatten(providers or []) if provider_scope(p) is ProviderScope.OPERATION]


class ScopedProviders:
    """
    Declarations split by scope once, at construction.

    The split only depends on static configuration, so applications and
    modules build one of these and reuse it for every operation.
    """

    def __init__(self, providers: Iterable[Any] | None = None):
        self.all: list[Any] = flatten(providers or [])
        self.singleton: list[Any] = only_singleton_providers(self.all)
        self.operation: list[Any] = only_operation_providers(self.all)
        logger.debug(
            f"Partitioned {len(self.all)} providers: "
            f"{len(self.singleton)} singleton, {len(self.operation)} operation"
        )

    def __len__(self) -> int:
        return len(self.all)


__all__ = [
    "InjectionToken",
    "Provider",
    "ValueProvider",
    "ClassProvider",
    "FactoryProvider",
    "ScopedProviders",
    "is_type",
    "provider_scope",
    "only_singleton_providers",
    "only_operation_providers",
]
