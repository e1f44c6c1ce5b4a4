"""Tests for profile fetch and first-sign-in name backfill."""

from __future__ import annotations

import pytest

from authsync.auth_provider import ProviderError
from authsync.models.auth_models import AuthErrorCode, PendingExternalName
from authsync.models.profile import Profile
from authsync.repositories.profile_repository import ProfileStoreError
from authsync.services.pending_name_store import PendingNameStore
from authsync.services.profile_materializer import ProfileMaterializer
from tests.conftest import make_user

JOHN = PendingExternalName.from_parts("John", "Doe")


@pytest.fixture
def pending_names():
    return PendingNameStore()


@pytest.fixture
def materializer(provider, profiles, pending_names, logger):
    return ProfileMaterializer(
        provider=provider, profiles=profiles, pending_names=pending_names, logger=logger,
    )


def test_pending_name_from_parts():
    assert JOHN.display_name == "John D."
    assert JOHN.full_name == "John Doe"
    assert PendingExternalName.from_parts("Cher", "").display_name == "Cher"


async def test_returns_fetched_profile(materializer, profiles):
    profiles.rows["u1"] = Profile(id="u1", display_name="Sam")
    profile = await materializer.materialize(make_user("u1"))
    assert profile == profiles.rows["u1"]
    assert profiles.get_calls == ["u1"]


async def test_backfills_missing_name(materializer, provider, profiles, pending_names):
    profiles.rows["u1"] = Profile(id="u1", display_name=None)
    pending_names.set(JOHN)

    profile = await materializer.materialize(make_user("u1"), consume_pending=True)

    assert provider.metadata_updates == [{"display_name": "John D.", "full_name": "John Doe"}]
    assert profiles.update_calls == [("u1", "John D.")]
    assert profile is not None and profile.display_name == "John D."
    assert pending_names.get() is None


async def test_existing_name_is_not_overwritten(materializer, provider, profiles, pending_names):
    profiles.rows["u1"] = Profile(id="u1", display_name="Sam")
    pending_names.set(JOHN)

    profile = await materializer.materialize(make_user("u1"), consume_pending=True)

    assert profile.display_name == "Sam"
    assert provider.metadata_updates == []
    assert profiles.update_calls == []
    assert pending_names.get() is None


async def test_absent_profile_gets_metadata_only(materializer, provider, profiles, pending_names):
    pending_names.set(JOHN)

    assert await materializer.materialize(make_user("u1"), consume_pending=True) is None
    assert provider.metadata_updates == [{"display_name": "John D.", "full_name": "John Doe"}]
    assert profiles.update_calls == []
    assert pending_names.get() is None


async def test_metadata_with_name_is_left_alone(materializer, provider, pending_names):
    pending_names.set(JOHN)
    await materializer.materialize(make_user("u1", display_name="Johnny"), consume_pending=True)
    assert provider.metadata_updates == []


async def test_pending_name_untouched_without_consume(materializer, provider, profiles, pending_names):
    profiles.rows["u1"] = Profile(id="u1")
    pending_names.set(JOHN)

    await materializer.materialize(make_user("u1"))

    assert pending_names.get() == JOHN
    assert provider.metadata_updates == []


async def test_backfill_failures_are_not_fatal(materializer, provider, profiles, pending_names):
    row = Profile(id="u1")
    profiles.rows["u1"] = row
    provider.metadata_error = ProviderError(AuthErrorCode.NETWORK_ERROR, "offline")
    profiles.update_error = ProfileStoreError("update failed")
    pending_names.set(JOHN)

    profile = await materializer.materialize(make_user("u1"), consume_pending=True)

    assert profile == row
    assert pending_names.get() is None


async def test_fetch_error_raises_and_clears_pending(materializer, profiles, pending_names):
    profiles.get_error = ProfileStoreError("select failed")
    pending_names.set(JOHN)

    with pytest.raises(ProfileStoreError):
        await materializer.materialize(make_user("u1"), consume_pending=True)
    assert pending_names.get() is None
