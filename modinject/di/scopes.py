"""
Provider Scopes and Operation Lifecycles

Defines provider lifetime scopes:
- SINGLETON: Created once, shared across all operations
- OPERATION: Created at most once per operation (request), destroyed after

and tracks the destroy hooks of operation-scoped objects so each hook runs
exactly once, and only for objects that were actually created.
"""

import logging
from contextlib import contextmanager
from contextvars import ContextVar, Token
from enum import Enum
from typing import Any, Optional

from ..constants import DEFAULT_DESTROY_HOOK
from ..exceptions import DestroyHookError

logger = logging.getLogger(__name__)

# Context variable for the operation currently in flight
_operation_scope: ContextVar[Optional["OperationScope"]] = ContextVar(
    "operation_scope", default=None
)


class ProviderScope(Enum):
    """
    Provider lifetime scopes.

    SINGLETON: One instance per application (or module) injector.
               Use for: configuration, clients, caches.

    OPERATION: One instance per operation injector, discarded when the
               operation ends.
               Use for: request context, per-request loggers, units of work.
    """

    SINGLETON = "singleton"
    OPERATION = "operation"


class OperationScope:
    """
    Destroy-hook tracking for one operation.

    Injectors are registered when they are built, not when their objects are
    created, because most operation-scoped providers are never requested.
    ``destroy()`` then only calls hooks of objects the injector actually
    created.

    Usage:
        scope = OperationScope()
        injector = ReflectiveInjector(operation_providers, parent=app_injector)
        scope.track(injector)
        ...
        scope.destroy()
    """

    def __init__(self, hook_name: str = DEFAULT_DESTROY_HOOK):
        self.hook_name = hook_name
        self._tracked: list[tuple[Any, Any]] = []
        self._destroyed = False

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    @property
    def tracked(self) -> list[tuple[Any, Any]]:
        """Registered ``(injector, key)`` pairs, in registration order."""
        return list(self._tracked)

    def track(self, injector: Any) -> int:
        """
        Register every provider of ``injector`` that declares a destroy hook.

        Args:
            injector: A ReflectiveInjector built for this operation

        Returns:
            Number of pairs registered
        """
        if self._destroyed:
            raise RuntimeError("Cannot track injectors on a destroyed operation scope")

        count = 0
        for provider in injector.providers:
            if self._declares_hook(provider.factory):
                self._tracked.append((injector, provider.key))
                count += 1
        return count

    def destroy(self) -> None:
        """
        Invoke the destroy hook of every tracked object that was instantiated.

        Safe to call more than once; only the first call does anything.

        Raises:
            DestroyHookError: If at least one hook raised. All hooks still run.
        """
        if self._destroyed:
            return
        self._destroyed = True

        first_error: Optional[BaseException] = None
        failures = 0
        for injector, key in self._tracked:
            if not injector.is_instantiated(key):
                continue
            instance = injector.get(key)
            hook = getattr(instance, self.hook_name, None)
            if not callable(hook):
                continue
            try:
                hook()
            except Exception as e:
                failures += 1
                first_error = first_error or e
                logger.warning(f"Error destroying {key.display_name}: {e}", exc_info=True)
        self._tracked.clear()

        if first_error is not None:
            raise DestroyHookError(
                f"{failures} destroy hook(s) failed", original_error=first_error, failures=failures
            ) from first_error

    def _declares_hook(self, factory: Any) -> bool:
        if factory.destroy_hook is not None:
            return factory.destroy_hook
        return callable(getattr(factory.target, self.hook_name, None))


class ScopeManager:
    """
    Manages the operation scope of the current execution context.

    Usage with FastAPI middleware:
        @app.middleware("http")
        async def scope_middleware(request: Request, call_next):
            with ScopeManager.operation_scope():
                response = await call_next(request)
            return response
    """

    @classmethod
    def begin_operation(cls, scope: Optional[OperationScope] = None) -> Token:
        """
        Make ``scope`` (or a new OperationScope) the current one.

        Returns the context variable token needed by ``end_operation``.
        """
        token = _operation_scope.set(scope or OperationScope())
        logger.debug("Operation scope started")
        return token

    @classmethod
    def end_operation(cls, token: Optional[Token] = None) -> None:
        """
        Destroy the current operation scope and clear it.

        Args:
            token: Token returned by ``begin_operation``; restores the previous
                   scope when given
        """
        scope = _operation_scope.get()
        try:
            if scope is not None:
                scope.destroy()
        finally:
            if token is not None:
                _operation_scope.reset(token)
            else:
                _operation_scope.set(None)
            logger.debug("Operation scope ended")

    @classmethod
    def current(cls) -> Optional[OperationScope]:
        """Get the operation scope of the current context, if any."""
        return _operation_scope.get()

    @classmethod
    def require_current(cls) -> OperationScope:
        """
        Get the current operation scope.

        Raises:
            RuntimeError: If called outside an operation
        """
        scope = _operation_scope.get()
        if scope is None:
            raise RuntimeError(
                "No active operation scope. Ensure ScopeManager.begin_operation() "
                "was called (usually via middleware)."
            )
        return scope

    @classmethod
    @contextmanager
    def operation_scope(cls, scope: Optional[OperationScope] = None):
        """
        Context manager for an operation scope.

        Usage:
            with ScopeManager.operation_scope() as scope:
                scope.track(operation_injector)
        """
        token = cls.begin_operation(scope)
        try:
            yield _operation_scope.get()
        finally:
            cls.end_operation(token)
