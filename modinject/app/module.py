"""
Modules group providers under an id.

A module's singleton providers live in a module injector that is a child of
the application injector; its operation providers are instantiated per
operation in a module-operation injector.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional

from ..config import InjectorConfig
from ..di.injector import ReflectiveInjector
from ..di.providers import ScopedProviders, ValueProvider
from .tokens import MODULE_ID

if TYPE_CHECKING:
    from ..observability.metrics import MetricsCollector

logger = logging.getLogger(__name__)


class Module:
    """
    Module declaration.

    The providers are split by scope once, here; bootstrapping and every
    operation reuse the split.

    Usage:
        posts = create_module("posts", providers=[Posts, PostsLoader])
        app = create_app([posts])
    """

    def __init__(
        self,
        id: str,
        providers: Optional[Iterable[Any]] = None,
        dirname: Optional[str] = None,
    ):
        if not id:
            raise ValueError("Module id must be a non-empty string")
        self.id = id
        self.dirname = dirname
        self.providers = ScopedProviders(providers)

    def bootstrap(
        self,
        parent: ReflectiveInjector,
        config: Optional[InjectorConfig] = None,
        metrics: Optional["MetricsCollector"] = None,
    ) -> "ResolvedModule":
        """
        Build the module injector as a child of ``parent``.

        With eager instantiation disabled, only providers with
        execution-context-bound attributes are created up front, since
        operations need them to exist before they can be shadowed.
        """
        config = config or InjectorConfig()
        injector = ReflectiveInjector.create(
            f"module:{self.id}",
            [*self.providers.singleton, ValueProvider(provide=MODULE_ID, use_value=self.id)],
            parent=parent,
            metrics=metrics,
        )
        if config.eager_instantiation:
            injector.instantiate_all()
        else:
            for provider in injector.providers:
                if provider.factory.execution_context_in:
                    injector.get(provider.key)

        logger.debug(
            f"Module '{self.id}' bootstrapped with {len(self.providers.singleton)} singleton "
            f"and {len(self.providers.operation)} operation providers"
        )
        return ResolvedModule(module=self, injector=injector)

    def __repr__(self) -> str:
        return f"Module({self.id!r})"


@dataclass(frozen=True)
class ResolvedModule:
    """A module bound to its singleton injector inside one application."""

    module: Module
    injector: ReflectiveInjector

    @property
    def id(self) -> str:
        return self.module.id

    @property
    def dirname(self) -> Optional[str]:
        return self.module.dirname

    @property
    def operation_providers(self) -> list[Any]:
        return self.module.providers.operation


def create_module(
    id: str,
    providers: Optional[Iterable[Any]] = None,
    dirname: Optional[str] = None,
) -> Module:
    """Declare a module."""
    return Module(id, providers=providers, dirname=dirname)
