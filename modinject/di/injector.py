"""
Hierarchical Reflective Injector

Owns a set of resolved providers and creates their values lazily, at most
once per injector. Lookups that miss walk up the parent chain, then the
fallback chain:

    operation injector -> module injector -> app injector
            |
            +-- fallback --> app operation injector -> app injector

An injector is not thread-safe: its instance cache is filled lazily, so one
injector tree must not be mutated concurrently from several threads without
an external lock.
"""

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, Any, Optional

from ..constants import MAX_DISPLAY_PROVIDERS, METRIC_INSTANTIATE
from ..exceptions import (
    CyclicDependencyError,
    ExecutionContextError,
    InjectionError,
    InstantiationError,
    NoProviderError,
)
from .context import ExecutionContextProxy
from .registry import Key
from .resolution import Dependency, ResolvedFactory, ResolvedProvider, resolve_providers

if TYPE_CHECKING:
    from ..observability.metrics import MetricsCollector

logger = logging.getLogger(__name__)


class _Sentinel:
    def __init__(self, name: str):
        self._name = name

    def __repr__(self) -> str:
        return self._name


THROW_IF_NOT_FOUND: Any = _Sentinel("THROW_IF_NOT_FOUND")
"""Default ``not_found_value``: raise NoProviderError when nothing provides the token."""

UNDEFINED: Any = _Sentinel("UNDEFINED")
"""Marks an instance slot that has not been filled yet."""

_NOT_FOUND: Any = _Sentinel("NOT_FOUND")


class Injector(ABC):
    """
    Anything that can resolve a token.

    External injectors may terminate a parent chain; they must return
    ``not_found_value`` when they do not provide the token.
    """

    THROW_IF_NOT_FOUND = THROW_IF_NOT_FOUND

    @abstractmethod
    def get(self, token: Any, not_found_value: Any = THROW_IF_NOT_FOUND) -> Any:
        pass


class ReflectiveInjector(Injector):
    """
    Injector built from provider declarations.

    Usage:
        app_injector = ReflectiveInjector.create("app", [Config, Database])
        app_injector.instantiate_all()

        operation_injector = ReflectiveInjector(
            [{"provide": REQUEST, "use_value": request}],
            parent=app_injector,
        )
        operation_injector.get(Database)   # created on app_injector
    """

    def __init__(
        self,
        providers: Optional[Iterable[Any]] = None,
        parent: Optional[Injector] = None,
        fallback: Optional[Injector] = None,
        *,
        name: Optional[str] = None,
        metrics: Optional["MetricsCollector"] = None,
    ):
        """
        Args:
            providers: Provider declarations, resolved eagerly
            parent: Primary lookup chain
            fallback: Chain consulted when the parent chain has no provider
            name: Display name used in error messages
            metrics: Collector receiving instantiation timings

        Raises:
            InvalidProviderError: If a declaration is malformed
            NoAnnotationError: If a dependency cannot be determined
        """
        self._setup(resolve_providers(providers or []), parent, fallback, name, metrics)

    def _setup(
        self,
        providers: list[ResolvedProvider],
        parent: Optional[Injector],
        fallback: Optional[Injector],
        name: Optional[str],
        metrics: Optional["MetricsCollector"],
    ) -> None:
        self._providers = providers
        self._parent = parent
        self._fallback = fallback
        self._name = name
        self._metrics = metrics
        self._construction_counter = 0
        self._shadowed: Optional["ReflectiveInjector"] = None

        self.key_ids: list[int] = [provider.key.id for provider in providers]
        self.objs: list[Any] = [UNDEFINED] * len(providers)
        self._key_index: dict[int, int] = {key_id: i for i, key_id in enumerate(self.key_ids)}

    @classmethod
    def create(
        cls,
        name: str,
        providers: Optional[Iterable[Any]] = None,
        parent: Optional[Injector] = None,
        fallback: Optional[Injector] = None,
        **kwargs: Any,
    ) -> "ReflectiveInjector":
        """Named constructor: same as ``ReflectiveInjector(...)`` with a display name."""
        return cls(providers, parent, fallback, name=name, **kwargs)

    @classmethod
    def _from_resolved(
        cls,
        providers: list[ResolvedProvider],
        parent: Optional[Injector],
        fallback: Optional[Injector],
        name: Optional[str],
        metrics: Optional["MetricsCollector"] = None,
    ) -> "ReflectiveInjector":
        injector = cls.__new__(cls)
        injector._setup(providers, parent, fallback, name, metrics)
        return injector

    @classmethod
    def create_with_execution_context(
        cls,
        injector: "ReflectiveInjector",
        context_getter: Callable[[], Any],
        parent: Optional[Injector] = None,
    ) -> "ReflectiveInjector":
        """
        Build a shadow of ``injector`` whose execution-context-bound objects
        read their context from ``context_getter``.

        The shadow has the same keys and fallback, and the same parent unless
        ``parent`` is given (e.g. the shadow of the parent). Objects with bound
        attributes are wrapped in an ExecutionContextProxy; every other slot
        reuses (or lazily asks ``injector`` for) the original object, so no
        second instance is ever created.

        Raises:
            ExecutionContextError: If an object with bound attributes has not
                                   been instantiated on ``injector`` yet
        """
        providers: list[ResolvedProvider] = []
        objs: list[Any] = []
        for provider, obj in zip(injector._providers, injector.objs):
            names = provider.factory.execution_context_in
            if names:
                if obj is UNDEFINED:
                    raise ExecutionContextError(
                        f"{provider.key.display_name} must be instantiated before an execution "
                        f"context is attached - call instantiate_all() on {injector.display_name}"
                    )
                proxy = ExecutionContextProxy(obj, names, context_getter)
                factory = ResolvedFactory(
                    factory=lambda proxy=proxy: proxy,
                    target=obj,
                    execution_context_in=names,
                    destroy_hook=False,
                )
                objs.append(proxy)
            else:
                factory = ResolvedFactory(
                    factory=lambda key=provider.key: injector.get(key),
                    target=provider.factory.target,
                    destroy_hook=False,
                )
                objs.append(obj)
            providers.append(ResolvedProvider(provider.key, factory))

        shadow = cls._from_resolved(
            providers,
            parent if parent is not None else injector._parent,
            injector._fallback,
            f"{injector.display_name} [execution context]",
            injector._metrics,
        )
        shadow.objs = objs
        shadow._shadowed = injector
        return shadow

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def parent(self) -> Optional[Injector]:
        return self._parent

    @property
    def fallback(self) -> Optional[Injector]:
        return self._fallback

    @property
    def providers(self) -> list[ResolvedProvider]:
        return list(self._providers)

    @property
    def display_name(self) -> str:
        if self._name:
            return self._name
        names = [provider.key.display_name for provider in self._providers[:MAX_DISPLAY_PROVIDERS]]
        if len(self._providers) > MAX_DISPLAY_PROVIDERS:
            names.append("...")
        return f"ReflectiveInjector(providers: [{', '.join(names)}])"

    def has_provider(self, token: Any) -> bool:
        """Whether this injector itself (not its parents) provides ``token``."""
        return Key.get(token).id in self._key_index

    def is_instantiated(self, token: Any) -> bool:
        """Whether this injector already created the value of ``token``; never instantiates."""
        index = self._key_index.get(Key.get(token).id)
        return index is not None and self.objs[index] is not UNDEFINED

    def __repr__(self) -> str:
        return f"<{self.display_name}>"

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, token: Any, not_found_value: Any = THROW_IF_NOT_FOUND) -> Any:
        """
        Resolve ``token``.

        Args:
            token: Class, InjectionToken, forward reference or Key
            not_found_value: Returned when nothing provides the token
                             (``None`` included); raise when omitted

        Raises:
            NoProviderError: If nothing provides the token and no
                             ``not_found_value`` was given
            CyclicDependencyError: If instantiation re-enters itself
            InstantiationError: If a factory raised
        """
        return self._get_by_key(Key.get(token), not_found_value)

    def instantiate_all(self) -> None:
        """Create every owned provider's value, in registration order."""
        for provider in self._providers:
            self.get(provider.key)

    def _get_by_key(self, key: Key, not_found_value: Any) -> Any:
        if key.token is Injector:
            return self
        return self._get_by_key_default(key, not_found_value)

    def _get_by_key_default(self, key: Key, not_found_value: Any) -> Any:
        obj, terminal = self._walk_parents(key)
        if obj is not _NOT_FOUND:
            return obj

        # parent chain ended in an external injector: probe it without throwing
        if terminal is not None:
            obj = terminal.get(key.token, _NOT_FOUND)
            if obj is not _NOT_FOUND:
                return obj

        if self._fallback is not None:
            if isinstance(self._fallback, ReflectiveInjector):
                obj = self._fallback._get_by_key(key, _NOT_FOUND)
            else:
                obj = self._fallback.get(key.token, _NOT_FOUND)
            if obj is not _NOT_FOUND:
                return obj

        return self._throw_or_null(key, not_found_value)

    def _walk_parents(self, key: Key) -> tuple[Any, Optional[Injector]]:
        inj: Optional[Injector] = self
        while isinstance(inj, ReflectiveInjector):
            obj = inj._get_obj_by_key_id(key.id)
            if obj is not UNDEFINED:
                return obj, None
            inj = inj._parent
        return _NOT_FOUND, inj

    def _get_obj_by_key_id(self, key_id: int) -> Any:
        index = self._key_index.get(key_id)
        if index is None:
            return UNDEFINED
        if self.objs[index] is UNDEFINED:
            provider = self._providers[index]
            if self._shadowed is not None:
                # a shadow never instantiates: the shadowed injector fills the slot
                self.objs[index] = self._shadowed._get_by_key(provider.key, THROW_IF_NOT_FOUND)
            else:
                self.objs[index] = self._new(provider)
        return self.objs[index]

    def _throw_or_null(self, key: Key, not_found_value: Any) -> Any:
        if not_found_value is not THROW_IF_NOT_FOUND:
            return not_found_value
        raise NoProviderError(self, key)

    # ------------------------------------------------------------------
    # Instantiation
    # ------------------------------------------------------------------

    def _new(self, provider: ResolvedProvider) -> Any:
        # more nested constructions than providers means one provider re-entered
        if self._construction_counter >= len(self.objs):
            raise CyclicDependencyError(self, provider.key)
        self._construction_counter += 1
        try:
            return self._instantiate(provider, provider.factory)
        finally:
            self._construction_counter -= 1

    def _instantiate(self, provider: ResolvedProvider, resolved_factory: ResolvedFactory) -> Any:
        try:
            deps = [self._get_by_dependency(dep) for dep in resolved_factory.dependencies]
        except InjectionError as e:
            e.add_key(self, provider.key)
            raise

        start = time.perf_counter()
        success = False
        try:
            obj = resolved_factory.factory(*deps)
            success = True
        except Exception as e:
            logger.debug(
                f"Factory of {provider.key.display_name} raised in {self.display_name}: {e}"
            )
            raise InstantiationError(self, e, provider.key) from e
        finally:
            if self._metrics is not None:
                self._metrics.record_operation(
                    METRIC_INSTANTIATE,
                    (time.perf_counter() - start) * 1000,
                    success=success,
                    token=provider.key.display_name,
                )

        logger.debug(f"Instantiated {provider.key.display_name} in {self.display_name}")
        return obj

    def _get_by_dependency(self, dep: Dependency) -> Any:
        return self._get_by_key(dep.key, None if dep.optional else THROW_IF_NOT_FOUND)
