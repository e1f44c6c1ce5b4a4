"""
Processed-URL Ledger.

Remembers the fingerprints of token pairs already submitted for
exchange so that the same callback URL is exchanged at most once, no
matter how many times (or through which path) it is delivered.

The ledger is process-wide (see :func:`get_url_ledger`) and survives
remounts of the synchronizer.  It is bounded: once ``max_entries`` is
reached the oldest fingerprint is evicted.  It is cleared on sign-out.
"""

from __future__ import annotations

import threading
from collections import OrderedDict
from typing import Optional


class ProcessedUrlLedger:
    """Insertion-ordered, bounded set of token-pair fingerprints.

    Parameters
    ----------
    max_entries:
        Capacity.  Must be positive.
    """

    def __init__(self, max_entries: int = 256) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self._max_entries: int = max_entries
        self._entries: OrderedDict[str, None] = OrderedDict()
        self._lock: threading.Lock = threading.Lock()

    def claim(self, fingerprint: str) -> bool:
        """Record *fingerprint*.

        Returns ``True`` if it was new (the caller owns the exchange) and
        ``False`` if it had already been claimed.
        """
        with self._lock:
            if fingerprint in self._entries:
                return False
            self._entries[fingerprint] = None
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)
            return True

    def discard(self, fingerprint: str) -> None:
        with self._lock:
            self._entries.pop(fingerprint, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, fingerprint: object) -> bool:
        with self._lock:
            return fingerprint in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


# ---------------------------------------------------------------------------
# Module-level singleton factory
# ---------------------------------------------------------------------------

_ledger_instance: Optional[ProcessedUrlLedger] = None
_ledger_lock: threading.Lock = threading.Lock()


def get_url_ledger(max_entries: Optional[int] = None) -> ProcessedUrlLedger:
    """Return the process-wide ledger, creating it on first call.

    *max_entries* only applies to that first call; it defaults to
    ``PROCESSED_URL_LEDGER_MAX`` from the configuration.
    """
    global _ledger_instance
    if _ledger_instance is None:
        with _ledger_lock:
            if _ledger_instance is None:
                if max_entries is None:
                    from authsync.config import get_config
                    max_entries = get_config().PROCESSED_URL_LEDGER_MAX
                _ledger_instance = ProcessedUrlLedger(max_entries=max_entries)
    return _ledger_instance
