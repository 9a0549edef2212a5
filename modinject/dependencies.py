"""
FastAPI integration for MODINJECT.

Provides:
1. OperationMiddleware - one OperationContext per HTTP request
2. get_operation - dependency returning the request's OperationContext
3. inject - dependency resolving a token from the request's injectors

Usage:
    from fastapi import Depends, FastAPI
    from modinject.dependencies import OperationMiddleware, inject

    api = FastAPI()
    api.add_middleware(OperationMiddleware, application=create_app([posts]))

    @api.get("/posts")
    async def list_posts(posts: Posts = Depends(inject(Posts, module_id="posts"))):
        return posts.all()
"""

import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Optional, TypeVar

from fastapi import HTTPException, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from .app import Application, OperationContext
from .exceptions import DestroyHookError

logger = logging.getLogger(__name__)

T = TypeVar("T")

ContextFactory = Callable[[Request], Mapping[str, Any]]


class OperationMiddleware(BaseHTTPMiddleware):
    """
    Opens an operation for every request and destroys it once the response
    has been produced.

    The operation is stored on ``request.state.operation`` and its scope is
    the current one in ScopeManager while the endpoint runs.
    """

    def __init__(
        self,
        app,
        application: Application,
        context_factory: Optional[ContextFactory] = None,
    ):
        """
        Initialize operation middleware.

        Args:
            app: ASGI application
            application: The modinject Application serving the requests
            context_factory: Builds the execution context of a request
                             (default: ``{"request": request}``)
        """
        super().__init__(app)
        self.application = application
        self.context_factory = context_factory or _default_context

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        operation = self.application.context(
            request=request, context=self.context_factory(request)
        )
        request.state.operation = operation
        operation.activate()
        try:
            return await call_next(request)
        finally:
            try:
                operation.destroy()
            except DestroyHookError as e:
                logger.error(f"Operation {operation.id} teardown failed: {e}", exc_info=True)


def _default_context(request: Request) -> Mapping[str, Any]:
    return {"request": request}


async def get_operation(request: Request) -> OperationContext:
    """Get the OperationContext of the current request."""
    operation = getattr(request.state, "operation", None)
    if operation is None:
        raise HTTPException(503, "No operation in progress - is OperationMiddleware installed?")
    return operation


def inject(token: Any, module_id: Optional[str] = None) -> Callable[..., T]:
    """
    Create a dependency that resolves ``token`` for the current request.

    Args:
        token: Class, InjectionToken or forward reference
        module_id: Resolve from this module's operation injector; the
                   app-context injector is used when omitted
    """

    async def _resolve(request: Request) -> T:
        operation = await get_operation(request)
        return operation.get(module_id, token)

    return _resolve


# Alias for cleaner syntax
Inject = inject
