"""
Authentication Guard Decorator.

Gates coroutine methods behind an authenticated user.  The decorated
method's owner must expose the engine's ``AuthStateStore`` as
``self.store``.

Usage::

    class AccountActions:
        def __init__(self, store: AuthStateStore) -> None:
            self.store = store

        @requires_user
        async def delete(self) -> None:
            ...
"""

from __future__ import annotations

from functools import wraps
from typing import Awaitable, Callable, Concatenate, ParamSpec, Protocol, TypeVar

from authsync.auth import AuthStateStore

P = ParamSpec("P")
R = TypeVar("R")


class AuthenticationError(RuntimeError):
    """Raised when a guarded operation is called without a signed-in user."""


class HasStore(Protocol):
    store: AuthStateStore


S = TypeVar("S", bound=HasStore)


def requires_user(
    method: Callable[Concatenate[S, P], Awaitable[R]],
) -> Callable[Concatenate[S, P], Awaitable[R]]:
    """Raise :class:`AuthenticationError` before *method* runs when no
    user is signed in.  No provider call is made in that case.
    """

    @wraps(method)
    async def wrapper(self: S, *args: P.args, **kwargs: P.kwargs) -> R:
        if not self.store.is_authenticated:
            raise AuthenticationError("No user logged in")
        return await method(self, *args, **kwargs)

    return wrapper
