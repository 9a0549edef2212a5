"""
MODINJECT - Modular Injection

Hierarchical reflective dependency injection for modular applications,
with singleton and per-operation (request) provider lifetimes.
"""

# Application layer
from .app import (CONTEXT, MODULE_ID, REQUEST, RESPONSE, Application,
                  OperationContext, create_app, create_module)
# Configuration
from .config import InjectorConfig
# Dependency injection core
from .di import (ExecutionContextAware, InjectionToken, ProviderScope,
                 ReflectiveInjector, execution_context, forward_ref,
                 injectable)
# Errors
from .exceptions import (CyclicDependencyError, InjectionError,
                         ModInjectError, NoProviderError)

__version__ = "0.1.0"

__all__ = [
    # Core
    "ReflectiveInjector",
    "InjectionToken",
    "ProviderScope",
    "injectable",
    "execution_context",
    "forward_ref",
    "ExecutionContextAware",
    # Application
    "Application",
    "OperationContext",
    "create_app",
    "create_module",
    "CONTEXT",
    "MODULE_ID",
    "REQUEST",
    "RESPONSE",
    # Config
    "InjectorConfig",
    # Errors
    "ModInjectError",
    "InjectionError",
    "NoProviderError",
    "CyclicDependencyError",
]
