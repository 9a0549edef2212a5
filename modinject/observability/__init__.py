"""
Observability components.

Provides structured logging tagged with the current operation and metrics
for provider instantiation and operation lifetimes.
"""

from .logging import (
    ContextualLoggerAdapter,
    clear_module_context,
    clear_operation_id,
    configure_logging,
    get_logger,
    get_logging_context,
    get_operation_id,
    log_operation,
    set_module_context,
    set_operation_id,
)
from .metrics import (
    MetricsCollector,
    OperationMetrics,
    get_metrics_collector,
    record_operation,
    timed_operation,
)

__all__ = [
    # Metrics
    "MetricsCollector",
    "OperationMetrics",
    "get_metrics_collector",
    "record_operation",
    "timed_operation",
    # Logging
    "get_operation_id",
    "set_operation_id",
    "clear_operation_id",
    "set_module_context",
    "clear_module_context",
    "get_logging_context",
    "configure_logging",
    "ContextualLoggerAdapter",
    "get_logger",
    "log_operation",
]
