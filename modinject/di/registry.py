"""
Token registry for the reflective injector.

Every token (a class or an ``InjectionToken``) gets a process-wide integer id
the first time it is seen. Injectors compare keys by id instead of comparing
tokens, and tokens are matched by identity, never by equality.
"""

import logging
from collections.abc import Callable
from typing import Any, TypeVar

from ..utils import stringify

logger = logging.getLogger(__name__)

T = TypeVar("T")


def forward_ref(fn: Callable[[], T]) -> Callable[[], T]:
    """
    Mark a zero-argument callable as a forward reference to a token.

    Lets two declarations refer to each other regardless of definition order;
    the callable is only invoked when the reference is resolved.

    Usage:
        @injectable(inject={"parent": forward_ref(lambda: Parent)})
        class Child:
            def __init__(self, parent): ...
    """
    fn.__forward_ref__ = True
    return fn


def is_forward_ref(value: Any) -> bool:
    return callable(value) and getattr(value, "__forward_ref__", False) is True


def resolve_forward_ref(value: Any) -> Any:
    """Return the referenced token for forward references, ``value`` otherwise."""
    if is_forward_ref(value):
        return value()
    return value


class Key:
    """
    Registry-assigned identity for a token.

    Keys are created only by ``KeyRegistry``; two keys for the same token are
    the same object.
    """

    __slots__ = ("token", "id")

    def __init__(self, token: Any, id: int) -> None:
        if token is None:
            raise ValueError("Token must be defined!")
        self.token = token
        self.id = id

    @property
    def display_name(self) -> str:
        return stringify(self.token)

    @staticmethod
    def get(token: Any) -> "Key":
        """Return the key of ``token`` from the process-wide registry."""
        return key_registry.get(token)

    def __repr__(self) -> str:
        return f"Key({self.display_name}, id={self.id})"


class KeyRegistry:
    """
    Append-only token -> Key mapping.

    Tokens are looked up by ``id()``; the Key keeps a strong reference to its
    token so an id can never be recycled while the entry exists.
    """

    def __init__(self) -> None:
        self._all_keys: dict[int, Key] = {}

    def get(self, token: Any) -> Key:
        if isinstance(token, Key):
            return token

        token = resolve_forward_ref(token)
        if token is None:
            raise ValueError("Token must be defined!")

        key = self._all_keys.get(id(token))
        if key is None:
            key = Key(token, self.number_of_keys)
            self._all_keys[id(token)] = key
            logger.debug(f"Registered key {key.id} for {key.display_name}")
        return key

    @property
    def number_of_keys(self) -> int:
        return len(self._all_keys)

    def __contains__(self, token: Any) -> bool:
        return id(resolve_forward_ref(token)) in self._all_keys

    def reset(self) -> None:
        """
        Drop every key.

        Only meant for test isolation; injectors built before a reset hold
        stale keys and must not be used afterwards.
        """
        self._all_keys.clear()


key_registry = KeyRegistry()
"""Process-wide registry backing ``Key.get``."""
