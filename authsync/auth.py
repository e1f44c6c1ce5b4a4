"""
Authentication State Store.

Provides an injectable ``AuthStateStore`` that holds the engine's
``EngineState`` snapshot.  Only the synchronizer and its delegates write
to it; every other component reads snapshots or registers a listener.

Usage::

    from authsync.auth import AuthStateStore

    store = AuthStateStore(logger=get_logger("authsync.state"))
    remove = store.add_listener(lambda state: print(state.status))
    store.replace(initialized=True, loading=True)
    remove()
"""

from __future__ import annotations

import threading
from typing import Any, Callable

from authsync.logger import StructuredLogger
from authsync.models.auth_models import EngineState, Session, User
from authsync.models.profile import Profile

StateListener = Callable[[EngineState], None]


class AuthStateStore:
    """Injectable holder for the current ``EngineState``.

    Each write builds a new frozen snapshot, so readers never observe a
    half-applied change.  Listeners are called synchronously after each
    write that actually changes the state.
    """

    def __init__(self, logger: StructuredLogger) -> None:
        self._lock: threading.RLock = threading.RLock()
        self._state: EngineState = EngineState()
        self._listeners: list[StateListener] = []
        self._logger: StructuredLogger = logger

    @property
    def snapshot(self) -> EngineState:
        """Return the current immutable state."""
        with self._lock:
            return self._state

    @property
    def user(self) -> User | None:
        return self.snapshot.user

    @property
    def session(self) -> Session | None:
        return self.snapshot.session

    @property
    def profile(self) -> Profile | None:
        return self.snapshot.profile

    @property
    def is_authenticated(self) -> bool:
        """``True`` when a user is currently signed in."""
        return self.snapshot.is_authenticated

    def replace(self, **changes: Any) -> EngineState:
        """Swap in a copy of the state with *changes* applied.

        Returns the new snapshot.  Unchanged writes do not notify.
        """
        with self._lock:
            previous = self._state
            updated = previous.model_copy(update=changes)
            if updated == previous:
                return previous
            self._state = updated
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(updated)
            except Exception as exc:
                self._logger.warning("State listener failed: %s", exc, exc_info=True)
        return updated

    def clear_identity(self) -> EngineState:
        """Drop user, session and profile; the user is signed out locally."""
        return self.replace(user=None, session=None, profile=None, loading=False)

    def add_listener(self, listener: StateListener) -> Callable[[], None]:
        """Register *listener* and return a function that removes it."""
        with self._lock:
            self._listeners.append(listener)

        def _remove() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _remove
