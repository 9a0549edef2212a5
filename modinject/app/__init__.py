"""
Applications and modules built on the reflective injector.

Usage:
    from modinject.app import CONTEXT, create_app, create_module

    posts = create_module("posts", providers=[Posts])
    app = create_app([posts], providers=[Database])

    with app.context(request, context={"user": user}) as operation:
        operation.get("posts", Posts)
"""

from .application import Application, OperationContext, create_app
from .module import Module, ResolvedModule, create_module
from .tokens import CONTEXT, MODULE_ID, REQUEST, RESPONSE

__all__ = [
    "Application",
    "OperationContext",
    "create_app",
    "Module",
    "ResolvedModule",
    "create_module",
    "CONTEXT",
    "MODULE_ID",
    "REQUEST",
    "RESPONSE",
]
