"""
Applications and per-operation injector trees.

Injector layout of one application:

    app injector (singleton)
     |-- module injector "posts" (singleton, + MODULE_ID)
     |-- module injector "users"
     ...

and, per operation (request):

    app shadow <---- app-context injector (operation providers, REQUEST, RESPONSE, CONTEXT)
     ^                       ^
     |                       | fallback
    module shadow <---- module-context injector (module operation providers)

Shadows are execution-context views of the singleton injectors, rebuilt for
every operation; singleton objects themselves are never re-created.
"""

import logging
import time
from collections.abc import Iterable, Mapping
from typing import Any, Optional

from ..config import InjectorConfig
from ..constants import METRIC_APP_CREATE, METRIC_OPERATION
from ..di.injector import THROW_IF_NOT_FOUND, ReflectiveInjector
from ..di.providers import ScopedProviders, ValueProvider
from ..di.scopes import OperationScope, ScopeManager
from ..exceptions import ModInjectError, ModuleDuplicatedError
from ..observability import (
    clear_module_context,
    clear_operation_id,
    configure_logging,
    get_logger,
    get_metrics_collector,
    log_operation,
    set_module_context,
    set_operation_id,
    timed_operation,
)
from ..utils import stringify
from .module import Module, ResolvedModule
from .tokens import CONTEXT, REQUEST, RESPONSE

logger = logging.getLogger(__name__)
operation_logger = get_logger(__name__)


class Application:
    """
    A set of modules sharing one singleton app injector.

    Usage:
        app = create_app([posts, users], providers=[Database])

        with app.context(request, context={"user": user}) as operation:
            posts_service = operation.get("posts", Posts)
    """

    def __init__(
        self,
        modules: Iterable[Module],
        providers: Optional[Iterable[Any]] = None,
        config: Optional[InjectorConfig] = None,
    ):
        self.config = config or InjectorConfig()
        configure_logging(self.config.log_level)
        self.metrics = get_metrics_collector() if self.config.collect_metrics else None

        self.providers = ScopedProviders(providers)
        self.injector = ReflectiveInjector.create(
            "app", self.providers.singleton, metrics=self.metrics
        )
        if self.config.eager_instantiation:
            self.injector.instantiate_all()
        else:
            for provider in self.injector.providers:
                if provider.factory.execution_context_in:
                    self.injector.get(provider.key)

        self._modules = _create_module_map(
            module.bootstrap(self.injector, self.config, self.metrics) for module in modules
        )
        logger.info(
            f"Application created with {len(self._modules)} module(s): "
            f"{', '.join(self._modules) or '-'}"
        )

    @property
    def modules(self) -> dict[str, ResolvedModule]:
        return dict(self._modules)

    def get_module(self, module_id: str) -> ResolvedModule:
        """
        Raises:
            ModInjectError: If no module has this id
        """
        try:
            return self._modules[module_id]
        except KeyError:
            raise ModInjectError(
                f"Module '{module_id}' is not part of this application",
                context={"modules": sorted(self._modules)},
            ) from None

    def get(self, token: Any, not_found_value: Any = THROW_IF_NOT_FOUND) -> Any:
        """Resolve ``token`` from the singleton app injector."""
        return self.injector.get(token, not_found_value)

    def context(
        self,
        request: Any = None,
        response: Any = None,
        context: Optional[Mapping[str, Any]] = None,
    ) -> "OperationContext":
        """
        Start an operation.

        The returned OperationContext must be destroyed when the operation
        ends; use it as a context manager or call ``destroy()``.
        """
        return OperationContext(self, request=request, response=response, context=context)


class OperationContext:
    """
    Injectors of one operation.

    The app-context injector is built immediately; module-context injectors
    are built the first time a module is asked for and cached until the
    operation is destroyed.
    """

    def __init__(
        self,
        app: Application,
        request: Any = None,
        response: Any = None,
        context: Optional[Mapping[str, Any]] = None,
    ):
        self.app = app
        self.request = request
        self.response = response
        self.context: Mapping[str, Any] = context if context is not None else {}
        self.id = set_operation_id()
        self.scope = OperationScope(app.config.destroy_hook_name)

        self._started = time.perf_counter()
        self._scope_token = None
        self._module_injectors: dict[str, ReflectiveInjector] = {}

        self._app_shadow = ReflectiveInjector.create_with_execution_context(
            app.injector, self._get_context
        )
        self.app_injector = ReflectiveInjector.create(
            "app [operation]",
            [
                *app.providers.operation,
                ValueProvider(provide=REQUEST, use_value=request),
                ValueProvider(provide=RESPONSE, use_value=response),
                ValueProvider(provide=CONTEXT, use_value=self.context),
            ],
            parent=self._app_shadow,
            metrics=app.metrics,
        )
        self.scope.track(self.app_injector)
        logger.debug(f"Operation {self.id} started")

    def _get_context(self) -> Mapping[str, Any]:
        return self.context

    @property
    def destroyed(self) -> bool:
        return self.scope.destroyed

    def injector(self, module_id: str) -> ReflectiveInjector:
        """
        Get the module-context injector of ``module_id`` for this operation.

        Raises:
            ModInjectError: If the module does not exist or the operation has
                            been destroyed
        """
        injector = self._module_injectors.get(module_id)
        if injector is not None:
            return injector
        if self.destroyed:
            raise ModInjectError(
                "Operation has already been destroyed", context={"operation_id": self.id}
            )

        module = self.app.get_module(module_id)
        shadow = ReflectiveInjector.create_with_execution_context(
            module.injector, self._get_context, parent=self._app_shadow
        )
        injector = ReflectiveInjector.create(
            f"module:{module_id} [operation]",
            module.operation_providers,
            parent=shadow,
            fallback=self.app_injector,
            metrics=self.app.metrics,
        )
        self.scope.track(injector)
        self._module_injectors[module_id] = injector
        return injector

    def get(
        self,
        module_id: Optional[str],
        token: Any,
        not_found_value: Any = THROW_IF_NOT_FOUND,
    ) -> Any:
        """
        Resolve ``token`` for ``module_id``, or from the app-context injector
        when ``module_id`` is None.
        """
        if module_id is None:
            return self.app_injector.get(token, not_found_value)

        injector = self.injector(module_id)
        context_token = set_module_context(module_id, token=stringify(token))
        try:
            operation_logger.debug(f"Resolving {stringify(token)} for module '{module_id}'")
            return injector.get(token, not_found_value)
        finally:
            clear_module_context(context_token)

    def activate(self) -> "OperationContext":
        """Make this operation's scope the current one in ScopeManager."""
        if self._scope_token is None:
            self._scope_token = ScopeManager.begin_operation(self.scope)
        return self

    def destroy(self) -> None:
        """
        Run the destroy hooks of the objects created during this operation.

        Only the first call has an effect.

        Raises:
            DestroyHookError: If at least one hook raised
        """
        if self.destroyed:
            return

        success = False
        try:
            self.scope.destroy()
            success = True
        finally:
            duration_ms = (time.perf_counter() - self._started) * 1000
            self._module_injectors.clear()
            if self._scope_token is not None:
                token, self._scope_token = self._scope_token, None
                ScopeManager.end_operation(token)
            if self.app.metrics is not None:
                self.app.metrics.record_operation(METRIC_OPERATION, duration_ms, success=success)
            log_operation(
                operation_logger,
                METRIC_OPERATION,
                level=logging.DEBUG,
                success=success,
                duration_ms=duration_ms,
            )
            clear_operation_id()

    def __enter__(self) -> "OperationContext":
        return self.activate()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.destroy()

    def __repr__(self) -> str:
        return f"<OperationContext {self.id}>"


def _create_module_map(modules: Iterable[ResolvedModule]) -> dict[str, ResolvedModule]:
    module_map: dict[str, ResolvedModule] = {}
    for module in modules:
        existing = module_map.get(module.id)
        if existing is not None:
            raise ModuleDuplicatedError(
                module.id,
                f"Already registered module located at: {existing.dirname}",
                f"Duplicated module located at: {module.dirname}",
            )
        module_map[module.id] = module
    return module_map


@timed_operation(METRIC_APP_CREATE)
def create_app(
    modules: Iterable[Module],
    providers: Optional[Iterable[Any]] = None,
    config: Optional[InjectorConfig] = None,
) -> Application:
    """
    Create an application from modules and app-level providers.

    Raises:
        ModuleDuplicatedError: If two modules share an id
        InjectionError: If eager instantiation of a singleton fails
    """
    return Application(modules, providers=providers, config=config)
