"""
Profile Materializer.

Fetches the profile row for a signed-in user and, on a first provider
sign-in, backfills the name the provider supplied once.  The row itself
is created by onboarding, never here.
"""

from __future__ import annotations

from typing import Optional, Protocol

from authsync.auth_provider import AuthProvider, ProviderError
from authsync.logger import LogCategory, StructuredLogger
from authsync.models.auth_models import PendingExternalName, User
from authsync.models.profile import Profile
from authsync.repositories.profile_repository import ProfileStoreError
from authsync.services.base_service import BaseService
from authsync.services.pending_name_store import PendingNameStore


class ProfileStore(Protocol):
    """The profile-row operations the materializer needs."""

    async def get_by_id(self, user_id: str) -> Optional[Profile]: ...

    async def update_display_name(self, user_id: str, display_name: str) -> Optional[Profile]: ...


class ProfileMaterializer(BaseService):
    """Fetch-and-backfill for the current user's profile.

    Parameters
    ----------
    provider:
        Used to write the name into the provider's user metadata.
    profiles:
        Profile row store.
    pending_names:
        Single-slot holder of a provider-supplied name.
    logger:
        Structured JSON logger.
    """

    def __init__(
        self,
        provider: AuthProvider,
        profiles: ProfileStore,
        pending_names: PendingNameStore,
        logger: StructuredLogger,
    ) -> None:
        super().__init__(logger)
        self._provider: AuthProvider = provider
        self._profiles: ProfileStore = profiles
        self._pending_names: PendingNameStore = pending_names

    async def materialize(self, user: User, consume_pending: bool = False) -> Optional[Profile]:
        """Return the freshly fetched profile for *user*, or ``None``.

        With *consume_pending*, a waiting name is written to the user's
        metadata and, when the row lacks one, to the profile; the slot is
        cleared afterwards whatever the outcome.

        Raises ``ProfileStoreError`` if the fetch fails.
        """
        # Taken before the first await so a concurrent path sees an empty slot.
        pending = self._pending_names.take() if consume_pending else None

        profile = await self._profiles.get_by_id(user.id)

        if pending is None or not pending.display_name:
            return profile

        if profile is None:
            # Onboarding reads the name from metadata when it creates the row.
            await self._write_metadata(user, pending)
            return None

        if profile.has_display_name:
            return profile

        await self._write_metadata(user, pending)
        return await self._backfill_profile(profile, pending)

    async def _write_metadata(self, user: User, pending: PendingExternalName) -> None:
        if user.metadata_display_name:
            return
        try:
            await self._provider.update_user_metadata({
                "display_name": pending.display_name,
                "full_name": pending.full_name,
            })
        except ProviderError as exc:
            self._logger.warning(
                "Could not write name to user metadata: %s", exc.message,
                extra={"category": LogCategory.AUTH, "user_id": user.id},
            )

    async def _backfill_profile(self, profile: Profile, pending: PendingExternalName) -> Profile:
        try:
            updated = await self._profiles.update_display_name(profile.id, pending.display_name)
        except ProfileStoreError as exc:
            self._logger.warning(
                "Could not backfill profile display name: %s", exc.message,
                extra={"category": LogCategory.DATABASE, "user_id": profile.id},
            )
            return profile
        self._logger.info(
            "Backfilled profile display name.",
            extra={"category": LogCategory.DATABASE, "user_id": profile.id},
        )
        return updated or profile
