"""
Formatting helpers for MODINJECT.

This module renders tokens for diagnostics and flattens grouped
provider declarations.
"""

from collections.abc import Iterable
from typing import Any


def stringify(token: Any) -> str:
    """
    Render a token for error messages and display names.

    Classes and functions render as their name, forward references render
    the token they point at, strings are returned unchanged and anything
    else falls back to ``str()``.

    Example:
        ```python
        stringify(UserService)                  # "UserService"
        stringify(InjectionToken("db-url"))     # "InjectionToken db-url"
        ```
    """
    if isinstance(token, str):
        return token
    if callable(token) and getattr(token, "__forward_ref__", False):
        return stringify(token())
    name = getattr(token, "__name__", None)
    if isinstance(name, str) and name != "<lambda>":
        return name
    return str(token)


def flatten(items: Iterable[Any]) -> list[Any]:
    """
    Flatten arbitrarily nested lists and tuples into a single list.

    Args:
        items: A possibly nested list/tuple

    Returns:
        A new flat list preserving the original order
    """
    result: list[Any] = []
    for item in items:
        if isinstance(item, (list, tuple)):
            result.extend(flatten(item))
        else:
            result.append(item)
    return result


def compose_message(*lines: str) -> str:
    """Join message lines with newlines, skipping empty ones."""
    return "\n".join(line for line in lines if line)
