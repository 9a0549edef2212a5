"""
Logging utilities for MODINJECT.

Provides structured logging tagged with the id of the operation (request)
in flight and the module handling it.
"""

import contextvars
import logging
import uuid
from datetime import datetime
from typing import Any

# Context variable for the current operation id
_operation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "operation_id", default=None
)

# Context variable for module context
_module_context: contextvars.ContextVar[dict[str, Any] | None] = contextvars.ContextVar(
    "module_context", default=None
)

PACKAGE_LOGGER = "modinject"


def get_operation_id() -> str | None:
    """Get the current operation id from context."""
    return _operation_id.get()


def set_operation_id(operation_id: str | None = None) -> str:
    """
    Set the operation id of the current context.

    Args:
        operation_id: Optional id (generates a new one if None)

    Returns:
        The operation id that was set
    """
    if operation_id is None:
        operation_id = str(uuid.uuid4())
    _operation_id.set(operation_id)
    return operation_id


def clear_operation_id() -> None:
    _operation_id.set(None)


def set_module_context(
    module_id: str | None = None, **kwargs: Any
) -> contextvars.Token[dict[str, Any] | None]:
    """
    Set module context for logging.

    Args:
        module_id: Id of the module handling the operation
        **kwargs: Additional context (token, injector, ...)

    Returns:
        Token restoring the previous module context
    """
    return _module_context.set({"module_id": module_id, **kwargs})


def clear_module_context(token: contextvars.Token[dict[str, Any] | None] | None = None) -> None:
    """Restore the module context saved in ``token``, or clear it."""
    if token is not None:
        _module_context.reset(token)
    else:
        _module_context.set(None)


def get_logging_context() -> dict[str, Any]:
    """
    Get the current logging context (operation id and module context).
    """
    context: dict[str, Any] = {"timestamp": datetime.now().isoformat()}

    operation_id = get_operation_id()
    if operation_id:
        context["operation_id"] = operation_id

    module_context = _module_context.get()
    if module_context:
        context.update(module_context)

    return context


class ContextualLoggerAdapter(logging.LoggerAdapter):
    """
    Logger adapter that adds the logging context to every record.
    """

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        context = get_logging_context()

        extra = kwargs.get("extra", {})
        if extra:
            context.update(extra)

        kwargs["extra"] = context
        return msg, kwargs


def get_logger(name: str) -> ContextualLoggerAdapter:
    """
    Get a contextual logger.

    Args:
        name: Logger name (typically __name__)
    """
    return ContextualLoggerAdapter(logging.getLogger(name), {})


def configure_logging(level: str | int) -> None:
    """Set the level of the package logger."""
    logging.getLogger(PACKAGE_LOGGER).setLevel(level)


def log_operation(
    logger: logging.Logger | logging.LoggerAdapter,
    operation: str,
    level: int = logging.INFO,
    success: bool = True,
    duration_ms: float | None = None,
    **context: Any,
) -> None:
    """
    Log an operation with structured context.

    Args:
        logger: Logger instance
        operation: Operation name
        level: Log level
        success: Whether operation succeeded
        duration_ms: Operation duration in milliseconds
        **context: Additional context
    """
    log_context = get_logging_context()
    log_context.update({"operation": operation, "success": success})

    if duration_ms is not None:
        log_context["duration_ms"] = round(duration_ms, 2)

    if context:
        log_context.update(context)

    message = f"Operation: {operation}" if success else f"Operation failed: {operation}"
    if duration_ms is not None:
        message += f" (duration: {duration_ms:.2f}ms)"

    logger.log(level, message, extra=log_context)
