"""
MODINJECT Dependency Injection Module

Hierarchical reflective injector with two provider lifetimes:
- SINGLETON: One instance per application (or module) injector
- OPERATION: One instance per operation (request) injector

Usage:
    from modinject.di import ProviderScope, ReflectiveInjector, injectable

    @injectable
    class Database: ...

    @injectable(scope=ProviderScope.OPERATION)
    class UnitOfWork:
        def __init__(self, db: Database): ...

    app_injector = ReflectiveInjector.create("app", [Database])
    app_injector.instantiate_all()

    operation_injector = ReflectiveInjector([UnitOfWork], parent=app_injector)
    operation_injector.get(UnitOfWork)
"""

from .context import ExecutionContextAware, ExecutionContextProxy, unwrap
from .injector import THROW_IF_NOT_FOUND, Injector, ReflectiveInjector
from .metadata import (
    InjectableMetadata,
    execution_context,
    injectable,
    read_injectable_metadata,
    register_injectable,
)
from .providers import (
    ClassProvider,
    FactoryProvider,
    InjectionToken,
    Provider,
    ScopedProviders,
    ValueProvider,
    only_operation_providers,
    only_singleton_providers,
)
from .registry import Key, KeyRegistry, forward_ref, key_registry, resolve_forward_ref
from .resolution import Dependency, ResolvedFactory, ResolvedProvider, resolve_providers
from .scopes import OperationScope, ProviderScope, ScopeManager

__all__ = [
    "Injector",
    "ReflectiveInjector",
    "THROW_IF_NOT_FOUND",
    "Key",
    "KeyRegistry",
    "key_registry",
    "forward_ref",
    "resolve_forward_ref",
    "InjectionToken",
    "Provider",
    "ValueProvider",
    "ClassProvider",
    "FactoryProvider",
    "ScopedProviders",
    "only_singleton_providers",
    "only_operation_providers",
    "Dependency",
    "ResolvedFactory",
    "ResolvedProvider",
    "resolve_providers",
    "InjectableMetadata",
    "injectable",
    "register_injectable",
    "read_injectable_metadata",
    "execution_context",
    "ExecutionContextAware",
    "ExecutionContextProxy",
    "unwrap",
    "ProviderScope",
    "OperationScope",
    "ScopeManager",
]
