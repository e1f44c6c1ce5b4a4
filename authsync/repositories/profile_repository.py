"""
Profile Repository.

Handles profile row access via Supabase.  The engine reads a profile by
id and writes only two things: the onboarding upsert and the one-time
display-name backfill after a first OAuth sign-in.
"""

from __future__ import annotations

from typing import Any, Optional

from authsync.database import SupabaseManager
from authsync.logger import StructuredLogger
from authsync.models.profile import Profile
from authsync.repositories.base_repository import BaseRepository, RepositoryError


class ProfileStoreError(RepositoryError):
    """Raised when a profile read or write fails."""


class ProfileRepository(BaseRepository):
    """Data access layer for ``Profile`` rows.

    **No ``delete()`` method.**  Account deletion goes through the
    provider's ``delete_user_account`` RPC, which removes the auth user
    and lets the database cascade the profile.
    """

    TABLE = "profiles"
    ERROR_TYPE = ProfileStoreError

    def __init__(
        self,
        db: SupabaseManager,
        logger: StructuredLogger,
        table: Optional[str] = None,
    ) -> None:
        super().__init__(db, logger)
        if table:
            self.TABLE = table

    async def get_by_id(self, user_id: str) -> Optional[Profile]:
        """Fetch the single profile keyed on *user_id*; ``None`` when absent."""
        async def _query() -> Optional[Profile]:
            response = await (
                self.supabase.table(self.TABLE)
                .select("*")
                .eq("id", user_id)
                .maybe_single()
                .execute()
            )
            # maybe_single() yields no response at all for zero rows.
            if response is None or not response.data:
                return None
            return Profile(**response.data)

        return await self._execute(_query, operation_name=f"get_by_id ({self.TABLE})")

    async def upsert(self, data: dict[str, Any]) -> Profile:
        """Insert or update a profile keyed on ``data["id"]``."""
        if not data.get("id"):
            raise ProfileStoreError("upsert requires an 'id'")

        async def _query() -> Profile:
            response = await (
                self.supabase.table(self.TABLE)
                .upsert(data, on_conflict="id")
                .execute()
            )
            return Profile(**response.data[0])

        profile = await self._execute(_query, operation_name=f"upsert ({self.TABLE})")
        self._logger.info("Profile upserted: %s", profile.id)
        return profile

    async def update_display_name(self, user_id: str, display_name: str) -> Optional[Profile]:
        """Set ``display_name`` and return the full updated row."""
        async def _query() -> Optional[Profile]:
            response = await (
                self.supabase.table(self.TABLE)
                .update({"display_name": display_name})
                .eq("id", user_id)
                .execute()
            )
            return Profile(**response.data[0]) if response.data else None

        return await self._execute(
            _query, operation_name=f"update_display_name ({self.TABLE})",
        )
