"""Tests for the supabase-py adapter and error classification."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from authsync.auth_provider import AuthProvider, ProviderError, SupabaseAuthProvider
from authsync.database import SupabaseManager
from authsync.models.auth_models import GENERIC_ERROR_MESSAGE, AuthErrorCode, AuthEvent, TokenPair
from authsync.models.enums import AuthChangeEvent, OAuthProvider


class AuthApiError(Exception):
    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code


class AuthSessionMissingError(Exception):
    pass


def raw_session(user_id: str = "u1", access_token: str = "A", refresh_token: str = "B"):
    return SimpleNamespace(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_at=1_700_000_000,
        user=SimpleNamespace(id=user_id, email="u1@example.com", user_metadata={"full_name": "Sam"}),
    )


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def adapter(client, logger):
    return SupabaseAuthProvider(db=SupabaseManager(client=client, logger=logger), logger=logger)


@pytest.mark.parametrize(
    ("exc", "code"),
    [
        (AuthSessionMissingError("Auth session missing!"), AuthErrorCode.SESSION_MISSING),
        (AuthApiError("Session not found", code="session_not_found"), AuthErrorCode.SESSION_MISSING),
        (AuthApiError("Invalid Refresh Token: Already Used"), AuthErrorCode.TOKEN_ALREADY_USED),
        (AuthApiError("Invalid login credentials"), AuthErrorCode.INVALID_CREDENTIALS),
        (AuthApiError("User already registered"), AuthErrorCode.EMAIL_ALREADY_EXISTS),
        (AuthApiError("banned", code="user_banned"), AuthErrorCode.USER_BANNED),
        (ConnectionError("reset by peer"), AuthErrorCode.NETWORK_ERROR),
        (RuntimeError("Supabase client is not initialised."), AuthErrorCode.NOT_CONFIGURED),
        (AuthApiError("Something odd"), AuthErrorCode.UNKNOWN_ERROR),
    ],
)
def test_error_classification(exc, code):
    error = ProviderError.from_exception(exc)
    assert error.code == code
    assert error.original_error is exc


def test_user_message_falls_back_to_generic():
    assert ProviderError(AuthErrorCode.UNKNOWN_ERROR, "  ").user_message == GENERIC_ERROR_MESSAGE


def test_adapter_satisfies_protocol(adapter):
    assert isinstance(adapter, AuthProvider)


async def test_set_session_converts_models(adapter, client):
    client.auth.set_session = AsyncMock(return_value=SimpleNamespace(session=raw_session()))
    session = await adapter.set_session(TokenPair(access_token="A", refresh_token="B"))

    client.auth.set_session.assert_awaited_once_with("A", "B")
    assert session.user.id == "u1"
    assert session.user.metadata == {"full_name": "Sam"}
    assert "A" not in repr(session)


async def test_set_session_without_session_is_an_error(adapter, client):
    client.auth.set_session = AsyncMock(return_value=SimpleNamespace(session=None))
    with pytest.raises(ProviderError) as info:
        await adapter.set_session(TokenPair(access_token="A", refresh_token="B"))
    assert info.value.code == AuthErrorCode.UNKNOWN_ERROR


async def test_sign_out_wraps_errors(adapter, client):
    client.auth.sign_out = AsyncMock(side_effect=AuthSessionMissingError("Auth session missing!"))
    with pytest.raises(ProviderError) as info:
        await adapter.sign_out("local")
    assert info.value.is_session_missing
    client.auth.sign_out.assert_awaited_once_with({"scope": "local"})


async def test_offline_client_reports_not_configured(logger):
    adapter = SupabaseAuthProvider(db=SupabaseManager(client=None, logger=logger), logger=logger)
    with pytest.raises(ProviderError) as info:
        await adapter.get_session()
    assert info.value.code == AuthErrorCode.NOT_CONFIGURED


async def test_oauth_returns_url(adapter, client):
    client.auth.sign_in_with_oauth = AsyncMock(return_value=SimpleNamespace(url="https://auth/x"))
    url = await adapter.sign_in_with_oauth(OAuthProvider.GOOGLE, "sobers://auth/callback")
    assert url == "https://auth/x"
    client.auth.sign_in_with_oauth.assert_awaited_once_with({
        "provider": "google",
        "options": {"redirect_to": "sobers://auth/callback"},
    })


async def test_delete_account_calls_rpc(adapter, client):
    execute = AsyncMock()
    client.rpc.return_value = SimpleNamespace(execute=execute)
    await adapter.delete_account()
    client.rpc.assert_called_once_with("delete_user_account")
    execute.assert_awaited_once()


def test_event_forwarding(adapter, client):
    subscription = SimpleNamespace(unsubscribe=MagicMock())
    client.auth.on_auth_state_change.return_value = subscription
    received: list[AuthEvent] = []

    unsubscribe = adapter.on_auth_state_change(received.append)
    forward = client.auth.on_auth_state_change.call_args.args[0]
    forward("SIGNED_IN", raw_session())
    forward("SOMETHING_NEW", None)
    forward("SIGNED_OUT", None)

    assert [event.event for event in received] == [AuthChangeEvent.SIGNED_IN, AuthChangeEvent.SIGNED_OUT]
    assert received[0].session.user.id == "u1"
    assert received[1].session is None
    assert unsubscribe is subscription.unsubscribe
