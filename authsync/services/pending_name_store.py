"""
Pending External Name Store.

Single slot holding a name captured during a provider sign-in (Apple
supplies it on the first authorization only, and outside the identity
token).  The sign-in path sets it before the token exchange; the
profile materializer reads and clears it exactly once afterwards.

The slot is not a queue: a second ``set`` overwrites the first.  One
instance is created by ``create_services`` and shared by the
synchronizer and materializer, so it outlives remounts.
"""

from __future__ import annotations

import threading
from typing import Optional

from authsync.models.auth_models import PendingExternalName


class PendingNameStore:
    def __init__(self) -> None:
        self._lock: threading.Lock = threading.Lock()
        self._pending: Optional[PendingExternalName] = None

    def set(self, name: PendingExternalName) -> None:
        with self._lock:
            self._pending = name

    def get(self) -> Optional[PendingExternalName]:
        with self._lock:
            return self._pending

    def clear(self) -> None:
        with self._lock:
            self._pending = None

    def take(self) -> Optional[PendingExternalName]:
        """Return the pending name and empty the slot in one step."""
        with self._lock:
            pending, self._pending = self._pending, None
            return pending
