"""Shared fixtures and in-memory fakes for the engine tests."""

from __future__ import annotations

import asyncio
import itertools
from typing import Any, Optional

import pytest

from authsync.auth_provider import AuthEventCallback, ProviderError, Unsubscribe
from authsync.config import AppConfig
from authsync.logger import StructuredLogger
from authsync.models.auth_models import AuthErrorCode, AuthEvent, Session, TokenPair, User
from authsync.models.enums import AuthChangeEvent, OAuthProvider
from authsync.models.profile import Profile
from authsync.repositories.profile_repository import ProfileStoreError
from authsync.services import ServiceContainer, create_services
from authsync.services.url_ledger import ProcessedUrlLedger

_logger_ids = itertools.count()


def make_user(user_id: str = "u1", email: Optional[str] = "u1@example.com", **metadata: Any) -> User:
    return User(id=user_id, email=email, metadata=metadata)


def make_session(
    user_id: str = "u1",
    access_token: str = "A",
    refresh_token: str = "B",
    **metadata: Any,
) -> Session:
    return Session(
        access_token=access_token,
        refresh_token=refresh_token,
        user=make_user(user_id, **metadata),
    )


class FakeAuthProvider:
    """In-memory ``AuthProvider`` that records every call."""

    def __init__(self) -> None:
        self.current_session: Optional[Session] = None
        self.callbacks: list[AuthEventCallback] = []
        self.unsubscribe_calls: int = 0

        self.set_session_calls: list[TokenPair] = []
        self.set_session_error: Optional[ProviderError] = None
        # When set, set_session waits on it before returning.
        self.set_session_gate: Optional[asyncio.Event] = None
        self.sessions_by_token: dict[str, Session] = {}

        self.sign_in_result: Optional[Session] = None
        self.sign_in_error: Optional[ProviderError] = None
        self.id_token_calls: list[tuple[OAuthProvider, str, Optional[str]]] = []
        self.sign_out_calls: list[str] = []
        self.sign_out_error: Optional[ProviderError] = None
        self.oauth_calls: list[tuple[OAuthProvider, str]] = []
        self.metadata_updates: list[dict[str, Any]] = []
        self.metadata_error: Optional[ProviderError] = None
        self.delete_calls: int = 0
        self.delete_error: Optional[ProviderError] = None

    # -- event stream --------------------------------------------------------

    def on_auth_state_change(self, callback: AuthEventCallback) -> Unsubscribe:
        self.callbacks.append(callback)

        def _unsubscribe() -> None:
            self.unsubscribe_calls += 1
            if callback in self.callbacks:
                self.callbacks.remove(callback)

        return _unsubscribe

    def emit(self, event: AuthChangeEvent, session: Optional[Session] = None) -> None:
        for callback in list(self.callbacks):
            callback(AuthEvent(event=event, session=session))

    # -- provider surface ----------------------------------------------------

    async def sign_in_with_password(self, email: str, password: str) -> Optional[Session]:
        if self.sign_in_error is not None:
            raise self.sign_in_error
        return self.sign_in_result

    async def sign_up(self, email: str, password: str) -> Optional[Session]:
        if self.sign_in_error is not None:
            raise self.sign_in_error
        return self.sign_in_result

    async def sign_out(self, scope: str) -> None:
        self.sign_out_calls.append(scope)
        if self.sign_out_error is not None:
            raise self.sign_out_error

    async def sign_in_with_oauth(self, provider: OAuthProvider, redirect_to: str) -> str:
        self.oauth_calls.append((provider, redirect_to))
        return f"https://auth.example.com/authorize?provider={provider}"

    async def sign_in_with_id_token(
        self, provider: OAuthProvider, token: str, nonce: Optional[str] = None,
    ) -> Optional[Session]:
        self.id_token_calls.append((provider, token, nonce))
        if self.sign_in_error is not None:
            raise self.sign_in_error
        return self.sign_in_result

    async def set_session(self, tokens: TokenPair) -> Session:
        self.set_session_calls.append(tokens)
        if self.set_session_gate is not None:
            await self.set_session_gate.wait()
        if self.set_session_error is not None:
            raise self.set_session_error
        session = self.sessions_by_token.get(tokens.access_token) or make_session(
            access_token=tokens.access_token, refresh_token=tokens.refresh_token,
        )
        self.current_session = session
        return session

    async def get_session(self) -> Optional[Session]:
        return self.current_session

    async def update_user_metadata(self, data: dict[str, Any]) -> None:
        self.metadata_updates.append(data)
        if self.metadata_error is not None:
            raise self.metadata_error

    async def delete_account(self) -> None:
        self.delete_calls += 1
        if self.delete_error is not None:
            raise self.delete_error


class FakeProfileStore:
    """In-memory profile rows keyed on user id."""

    def __init__(self, *profiles: Profile) -> None:
        self.rows: dict[str, Profile] = {profile.id: profile for profile in profiles}
        self.get_calls: list[str] = []
        self.update_calls: list[tuple[str, str]] = []
        self.get_error: Optional[ProfileStoreError] = None
        self.update_error: Optional[ProfileStoreError] = None

    async def get_by_id(self, user_id: str) -> Optional[Profile]:
        self.get_calls.append(user_id)
        if self.get_error is not None:
            raise self.get_error
        return self.rows.get(user_id)

    async def update_display_name(self, user_id: str, display_name: str) -> Optional[Profile]:
        self.update_calls.append((user_id, display_name))
        if self.update_error is not None:
            raise self.update_error
        row = self.rows.get(user_id)
        if row is None:
            return None
        updated = row.model_copy(update={"display_name": display_name})
        self.rows[user_id] = updated
        return updated


class RecordingCrashReporter:
    def __init__(self) -> None:
        self.user: Optional[tuple[str, Optional[str]]] = None
        self.contexts: dict[str, Optional[dict[str, Any]]] = {}
        self.calls: list[str] = []

    def set_user(self, user_id: str, email: Optional[str] = None) -> None:
        self.calls.append("set_user")
        self.user = (user_id, email)

    def set_context(self, name: str, context: Optional[dict[str, Any]]) -> None:
        self.calls.append("set_context")
        self.contexts[name] = context

    def clear_user(self) -> None:
        self.calls.append("clear_user")
        self.user = None


class RecordingAnalytics:
    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []
        self.user_ids: list[Optional[str]] = []
        self.properties: list[dict[str, Any]] = []
        self.resets: int = 0

    def track_event(self, name: str, params: dict[str, Any]) -> None:
        self.events.append((name, params))

    def set_user_id(self, user_id: Optional[str]) -> None:
        self.user_ids.append(user_id)

    def set_user_properties(self, properties: dict[str, Any]) -> None:
        self.properties.append(properties)

    async def reset(self) -> None:
        self.resets += 1


def session_missing() -> ProviderError:
    return ProviderError(AuthErrorCode.SESSION_MISSING, "Auth session missing!")


@pytest.fixture
def logger() -> StructuredLogger:
    return StructuredLogger(name=f"authsync.test.{next(_logger_ids)}", log_file="")


@pytest.fixture
def config() -> AppConfig:
    return AppConfig(SUPABASE_URL="https://example.supabase.co", SUPABASE_ANON_KEY="anon")


@pytest.fixture
def provider() -> FakeAuthProvider:
    return FakeAuthProvider()


@pytest.fixture
def profiles() -> FakeProfileStore:
    return FakeProfileStore()


@pytest.fixture
def crash() -> RecordingCrashReporter:
    return RecordingCrashReporter()


@pytest.fixture
def analytics() -> RecordingAnalytics:
    return RecordingAnalytics()


@pytest.fixture
def services(
    config: AppConfig,
    provider: FakeAuthProvider,
    profiles: FakeProfileStore,
    crash: RecordingCrashReporter,
    analytics: RecordingAnalytics,
    logger: StructuredLogger,
) -> ServiceContainer:
    return create_services(
        config=config,
        provider=provider,
        profiles=profiles,
        crash_reporter=crash,
        analytics=analytics,
        ledger=ProcessedUrlLedger(max_entries=16),
        logger=logger,
    )
