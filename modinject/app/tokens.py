"""
Well-known tokens provided by applications and modules.
"""

from typing import Any

from ..di.providers import InjectionToken

CONTEXT: InjectionToken[Any] = InjectionToken("context")
"""The execution context of the current operation."""

REQUEST: InjectionToken[Any] = InjectionToken("request")
"""The request that started the current operation."""

RESPONSE: InjectionToken[Any] = InjectionToken("response")
"""The response of the current operation, when there is one."""

MODULE_ID: InjectionToken[str] = InjectionToken("module-id")
"""Id of the module owning the injector."""
