"""
Custom exceptions for MODINJECT.

These exceptions provide specific error types for provider declaration,
dependency resolution and operation teardown failures while maintaining
compatibility with RuntimeError.
"""

from typing import Any, Dict, List, Optional

from .utils import compose_message, stringify


class ModInjectError(RuntimeError):
    """
    Base exception for MODINJECT errors.

    Attributes:
        message: Error message
        context: Optional dictionary with additional context (module_id,
                 injector name, etc.)
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        """
        Initialize the exception.

        Args:
            message: Error message
            context: Optional dictionary with additional context information
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        """Return formatted error message with context if available."""
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} (context: {context_str})"
        return self.message


class ConfigurationError(ModInjectError):
    """
    Raised when configuration is invalid or missing.

    Attributes:
        message: Error message
        config_key: Configuration key that caused the error (if available)
        config_value: Configuration value that caused the error (if available)
        context: Additional context information
    """

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if config_key:
            context["config_key"] = config_key
        if config_value is not None:
            context["config_value"] = config_value
        super().__init__(message, context=context)
        self.config_key = config_key
        self.config_value = config_value


# ============================================================================
# CONSTRUCTION-TIME ERRORS
# ============================================================================


class InvalidProviderError(ModInjectError):
    """
    Raised when a provider declaration is neither a class nor a declaration
    with a ``provide`` token.

    Attributes:
        provider: The offending declaration
    """

    def __init__(self, provider: Any, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(
            "Invalid provider - only instances of Provider and Type are allowed, "
            f"got: {provider!r}",
            context=context,
        )
        self.provider = provider


class NoAnnotationError(ModInjectError):
    """
    Raised when the dependencies of a class or factory cannot be determined.

    Attributes:
        target: Class or function whose parameters could not be resolved
        signature: Rendered parameter tokens, ``"?"`` where unresolved
        position: Index of the first unresolved parameter (if any)
    """

    def __init__(
        self,
        target: Any,
        signature: Optional[List[str]] = None,
        position: Optional[int] = None,
    ) -> None:
        name = stringify(target)
        self.target = target
        self.signature = signature or []
        self.position = position
        message = (
            f"Cannot resolve all parameters for '{name}'({', '.join(self.signature)}). "
            "Make sure that all the parameters are annotated or injected explicitly "
            f"and that '{name}' is registered with @injectable."
        )
        context = {"position": position} if position is not None else None
        super().__init__(message, context=context)


# ============================================================================
# LOOKUP-TIME ERRORS
# ============================================================================


class InjectionError(ModInjectError):
    """
    Base class for errors raised while resolving a token.

    The error accumulates the resolution path: the injector that failed
    records the first key and every enclosing instantiation frame appends its
    own key through ``add_key``. The rendered path reads outermost first,
    e.g. ``(Service -> Repository -> Database)``.

    Attributes:
        keys: Keys from the failing token up to the outermost request
        injectors: Injector of each frame, aligned with ``keys``
    """

    def __init__(self, injector: Any, key: Any) -> None:
        self.keys: list[Any] = [key]
        self.injectors: list[Any] = [injector]
        super().__init__(self._render())

    def add_key(self, injector: Any, key: Any) -> None:
        """Record an enclosing frame and rebuild the message."""
        self.injectors.append(injector)
        self.keys.append(key)
        self.message = self._render()
        self.args = (self.message,)

    @property
    def token(self) -> Any:
        """Token that failed to resolve."""
        return self.keys[0].token

    def _render(self) -> str:
        origin = getattr(self.injectors[0], "display_name", stringify(self.injectors[0]))
        return f"{self.construct_resolving_message()} - in {origin}"

    def construct_resolving_message(self) -> str:
        raise NotImplementedError

    def resolving_path(self) -> str:
        """Render the accumulated path, trimmed at the first closed cycle."""
        if len(self.keys) <= 1:
            return ""
        tokens = [stringify(key.token) for key in _first_closed_cycle(self.keys[::-1])]
        return " (" + " -> ".join(tokens) + ")"


class NoProviderError(InjectionError):
    """Raised when no injector in the chain provides the requested token."""

    def construct_resolving_message(self) -> str:
        return f"No provider for {stringify(self.token)}!{self.resolving_path()}"


class CyclicDependencyError(InjectionError):
    """Raised when instantiation re-enters an injector more often than it has providers."""

    def construct_resolving_message(self) -> str:
        return f"Cannot instantiate cyclic dependency!{self.resolving_path()}"


class InstantiationError(InjectionError):
    """
    Raised when a provider's factory raises.

    Attributes:
        original_error: The exception raised by the factory
    """

    def __init__(self, injector: Any, original_error: BaseException, key: Any) -> None:
        self.original_error = original_error
        super().__init__(injector, key)

    def construct_resolving_message(self) -> str:
        return (
            f"{self.original_error}: Error during instantiation of "
            f"{stringify(self.token)}!{self.resolving_path()}."
        )


class ExecutionContextError(ModInjectError):
    """
    Raised when an execution-context shadow cannot be built or when the
    execution context is read outside of one.
    """


# ============================================================================
# OPERATION / APPLICATION ERRORS
# ============================================================================


class DestroyHookError(ModInjectError):
    """
    Raised after an operation's teardown when at least one destroy hook failed.

    Attributes:
        original_error: The first exception raised by a destroy hook
        failures: Number of hooks that raised
    """

    def __init__(
        self,
        message: str,
        original_error: Optional[BaseException] = None,
        failures: int = 0,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if failures:
            context["failures"] = failures
        super().__init__(message, context=context)
        self.original_error = original_error
        self.failures = failures


class ModuleDuplicatedError(ModInjectError):
    """
    Raised when two modules with the same id are registered in one application.

    Attributes:
        module_id: The duplicated module id
    """

    def __init__(self, module_id: str, *details: str) -> None:
        super().__init__(compose_message(f'Module "{module_id}" already exists', *details))
        self.module_id = module_id


def _first_closed_cycle(keys: list[Any]) -> list[Any]:
    seen: list[Any] = []
    for key in keys:
        if any(key is other for other in seen):
            seen.append(key)
            return seen
        seen.append(key)
    return seen
