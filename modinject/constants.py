"""
Constants for MODINJECT.

This module contains the shared constants used across the injector runtime
to avoid magic values and keep defaults in one place.
"""

from typing import Final

# ============================================================================
# INJECTOR CONSTANTS
# ============================================================================

DEFAULT_DESTROY_HOOK: Final[str] = "on_destroy"
"""Name of the method invoked on operation-scoped objects when a request ends."""

DEFAULT_EXECUTION_CONTEXT_PROPERTY: Final[str] = "context"
"""Attribute name bound to the current execution context on ExecutionContextAware classes."""

MAX_DISPLAY_PROVIDERS: Final[int] = 10
"""Maximum number of provider tokens rendered in an injector's default display name."""

# ============================================================================
# CONFIGURATION ENVIRONMENT VARIABLES
# ============================================================================

ENV_EAGER_INSTANTIATION: Final[str] = "MODINJECT_EAGER_INSTANTIATION"
"""Environment variable toggling eager instantiation of singleton injectors."""

ENV_DESTROY_HOOK: Final[str] = "MODINJECT_DESTROY_HOOK"
"""Environment variable overriding the destroy hook method name."""

ENV_COLLECT_METRICS: Final[str] = "MODINJECT_COLLECT_METRICS"
"""Environment variable enabling instantiation metrics."""

ENV_LOG_LEVEL: Final[str] = "MODINJECT_LOG_LEVEL"
"""Environment variable setting the log level of the ``modinject`` logger."""

DEFAULT_LOG_LEVEL: Final[str] = "WARNING"
"""Default log level for the ``modinject`` logger."""

VALID_LOG_LEVELS: Final[frozenset[str]] = frozenset(
    {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "NOTSET"}
)
"""Log level names accepted by InjectorConfig."""

# ============================================================================
# METRICS CONSTANTS
# ============================================================================

DEFAULT_MAX_METRICS: Final[int] = 10000
"""Maximum number of distinct metric keys kept before LRU eviction."""

METRIC_INSTANTIATE: Final[str] = "injector.instantiate"
"""Metric name recorded for each provider instantiation."""

METRIC_OPERATION: Final[str] = "app.operation"
"""Metric name recorded for each completed operation (request)."""

METRIC_APP_CREATE: Final[str] = "app.create"
"""Metric name recorded for each application bootstrap."""
