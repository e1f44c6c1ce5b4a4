"""Mount-scoped cancellation token."""

from __future__ import annotations

import itertools

_scope_ids = itertools.count(1)


class MountScope:
    """Marks the lifetime of one ``mount()`` of the synchronizer.

    Async continuations check ``active`` before mutating shared state.
    Closing is synchronous and final; a remount gets a new scope, so a
    late result from the previous mount can never write into the new one.
    """

    __slots__ = ("id", "_active")

    def __init__(self) -> None:
        self.id: int = next(_scope_ids)
        self._active: bool = True

    @property
    def active(self) -> bool:
        return self._active

    def close(self) -> None:
        self._active = False

    @classmethod
    def closed(cls) -> "MountScope":
        """A scope that was never active, for use before the first mount."""
        scope = cls()
        scope.close()
        return scope

    def __repr__(self) -> str:
        return f"MountScope(id={self.id}, active={self._active})"
