"""
Base Repository.

Provides shared infrastructure for all repositories:
- SupabaseManager reference
- Logger reference
- A single wrapper that turns any query failure into a typed error
"""

from __future__ import annotations

from typing import Awaitable, Callable, TypeVar

from supabase import AsyncClient

from authsync.database import SupabaseManager
from authsync.logger import LogCategory, StructuredLogger

T = TypeVar("T")


class RepositoryError(Exception):
    """Raised when a repository query fails for any reason."""

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        self.message: str = message
        self.original_error: Exception | None = original_error
        super().__init__(self.message)


class BaseRepository:
    """Base class for all repositories. Receives dependencies via __init__."""

    TABLE: str = ""
    ERROR_TYPE: type[RepositoryError] = RepositoryError

    def __init__(self, db: SupabaseManager, logger: StructuredLogger) -> None:
        self._db = db
        self._logger = logger

    @property
    def supabase(self) -> AsyncClient:
        """Returns the Supabase client (raises ``RuntimeError`` when offline)."""
        return self._db.supabase

    async def _execute(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        operation_name: str,
    ) -> T:
        """Await *operation*, logging and re-raising failures as ``ERROR_TYPE``.

        Parameters
        ----------
        operation:
            Zero-argument coroutine factory that performs the query.
        operation_name:
            Human-readable label for log messages, e.g.
            ``"get_by_id (profiles)"``.
        """
        try:
            return await operation()
        except Exception as exc:
            self._logger.warning(
                "Query failed for %s: %s", operation_name, exc,
                extra={"category": LogCategory.DATABASE, "table": self.TABLE},
            )
            raise self.ERROR_TYPE(
                f"{operation_name} failed: {exc}", original_error=exc,
            ) from exc
