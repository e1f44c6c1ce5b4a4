"""
Auth Provider Boundary.

Declares the provider surface the engine consumes (``AuthProvider``)
and the supabase-py implementation of it (``SupabaseAuthProvider``).

The engine never touches supabase objects directly: the adapter turns
supabase sessions and users into the frozen engine models and turns
every supabase failure into a ``ProviderError`` with a classified
``AuthErrorCode``.  Callers decide benign vs. fatal on the code alone.
"""

from __future__ import annotations

from typing import Any, Callable, Optional, Protocol, runtime_checkable

from authsync.database import SupabaseManager
from authsync.logger import LogCategory, StructuredLogger
from authsync.models.auth_models import (
    GENERIC_ERROR_MESSAGE,
    SUPABASE_ERROR_MAP,
    AuthErrorCode,
    AuthEvent,
    Session,
    TokenPair,
    User,
)
from authsync.models.enums import AuthChangeEvent, OAuthProvider

AuthEventCallback = Callable[[AuthEvent], None]
Unsubscribe = Callable[[], None]


class ProviderError(Exception):
    """A classified failure reported by the auth provider.

    Attributes
    ----------
    code:
        Category used by the engine to tell benign failures apart.
    message:
        The provider's own message.
    original_error:
        The underlying exception, when there is one.
    """

    def __init__(
        self,
        code: AuthErrorCode,
        message: str,
        original_error: Optional[BaseException] = None,
    ) -> None:
        self.code: AuthErrorCode = code
        self.message: str = message
        self.original_error: Optional[BaseException] = original_error
        super().__init__(message)

    @property
    def is_session_missing(self) -> bool:
        return self.code == AuthErrorCode.SESSION_MISSING

    @property
    def user_message(self) -> str:
        """Message for presentation: the provider's, else a generic one."""
        return self.message.strip() or GENERIC_ERROR_MESSAGE

    @classmethod
    def from_exception(cls, exc: BaseException) -> "ProviderError":
        """Classify *exc* against ``SUPABASE_ERROR_MAP``.

        Network-level errors map to ``NETWORK_ERROR``; the offline
        ``RuntimeError`` raised by ``SupabaseManager`` maps to
        ``NOT_CONFIGURED``.
        """
        if isinstance(exc, ProviderError):
            return exc
        if isinstance(exc, (ConnectionError, TimeoutError)):
            return cls(AuthErrorCode.NETWORK_ERROR, str(exc), exc)
        if isinstance(exc, RuntimeError) and "not initialised" in str(exc):
            return cls(AuthErrorCode.NOT_CONFIGURED, str(exc), exc)

        candidates = (
            str(getattr(exc, "code", "") or "").lower(),
            str(getattr(exc, "name", "") or type(exc).__name__).lower(),
            str(exc).lower(),
        )
        for key, (code, _) in SUPABASE_ERROR_MAP.items():
            if any(key in candidate for candidate in candidates if candidate):
                return cls(code, str(exc), exc)
        return cls(AuthErrorCode.UNKNOWN_ERROR, str(exc), exc)


@runtime_checkable
class AuthProvider(Protocol):
    """Opaque remote auth service.

    Every coroutine raises ``ProviderError`` on failure.
    ``on_auth_state_change`` registers a synchronous callback and returns
    a function that removes it.
    """

    async def sign_in_with_password(self, email: str, password: str) -> Optional[Session]: ...

    async def sign_up(self, email: str, password: str) -> Optional[Session]: ...

    async def sign_out(self, scope: str) -> None: ...

    async def sign_in_with_oauth(self, provider: OAuthProvider, redirect_to: str) -> str: ...

    async def sign_in_with_id_token(
        self, provider: OAuthProvider, token: str, nonce: Optional[str] = None,
    ) -> Optional[Session]: ...

    async def set_session(self, tokens: TokenPair) -> Session: ...

    async def get_session(self) -> Optional[Session]: ...

    async def update_user_metadata(self, data: dict[str, Any]) -> None: ...

    def on_auth_state_change(self, callback: AuthEventCallback) -> Unsubscribe: ...

    async def delete_account(self) -> None: ...


# ---------------------------------------------------------------------------
# supabase-py adapter
# ---------------------------------------------------------------------------

def _to_user(raw: Any) -> User:
    return User(
        id=str(raw.id),
        email=getattr(raw, "email", None),
        metadata=dict(getattr(raw, "user_metadata", None) or {}),
    )


def _to_session(raw: Any) -> Optional[Session]:
    if raw is None or getattr(raw, "user", None) is None:
        return None
    return Session(
        access_token=raw.access_token,
        refresh_token=raw.refresh_token,
        expires_at=getattr(raw, "expires_at", None),
        user=_to_user(raw.user),
    )


class SupabaseAuthProvider:
    """``AuthProvider`` backed by the async supabase-py client.

    Parameters
    ----------
    db:
        Holder of the shared async client.
    logger:
        Structured JSON logger.
    delete_account_rpc:
        Name of the Postgres function that deletes the calling user.
    """

    def __init__(
        self,
        db: SupabaseManager,
        logger: StructuredLogger,
        delete_account_rpc: str = "delete_user_account",
    ) -> None:
        self._db: SupabaseManager = db
        self._logger: StructuredLogger = logger
        self._delete_account_rpc: str = delete_account_rpc

    async def sign_in_with_password(self, email: str, password: str) -> Optional[Session]:
        try:
            response = await self._db.supabase.auth.sign_in_with_password({
                "email": email,
                "password": password,
            })
        except Exception as exc:
            raise ProviderError.from_exception(exc) from exc
        return _to_session(response.session)

    async def sign_up(self, email: str, password: str) -> Optional[Session]:
        try:
            response = await self._db.supabase.auth.sign_up({
                "email": email,
                "password": password,
            })
        except Exception as exc:
            raise ProviderError.from_exception(exc) from exc
        return _to_session(response.session)

    async def sign_out(self, scope: str) -> None:
        try:
            await self._db.supabase.auth.sign_out({"scope": scope})
        except Exception as exc:
            raise ProviderError.from_exception(exc) from exc

    async def sign_in_with_oauth(self, provider: OAuthProvider, redirect_to: str) -> str:
        try:
            response = await self._db.supabase.auth.sign_in_with_oauth({
                "provider": str(provider),
                "options": {"redirect_to": redirect_to},
            })
        except Exception as exc:
            raise ProviderError.from_exception(exc) from exc
        return response.url

    async def sign_in_with_id_token(
        self, provider: OAuthProvider, token: str, nonce: Optional[str] = None,
    ) -> Optional[Session]:
        credentials: dict[str, str] = {"provider": str(provider), "token": token}
        if nonce:
            credentials["nonce"] = nonce
        try:
            response = await self._db.supabase.auth.sign_in_with_id_token(credentials)
        except Exception as exc:
            raise ProviderError.from_exception(exc) from exc
        return _to_session(response.session)

    async def set_session(self, tokens: TokenPair) -> Session:
        try:
            response = await self._db.supabase.auth.set_session(
                tokens.access_token, tokens.refresh_token,
            )
        except Exception as exc:
            raise ProviderError.from_exception(exc) from exc
        session = _to_session(response.session)
        if session is None:
            raise ProviderError(
                AuthErrorCode.UNKNOWN_ERROR,
                "Provider returned no session for the supplied tokens.",
            )
        return session

    async def get_session(self) -> Optional[Session]:
        try:
            raw = await self._db.supabase.auth.get_session()
        except Exception as exc:
            raise ProviderError.from_exception(exc) from exc
        return _to_session(raw)

    async def update_user_metadata(self, data: dict[str, Any]) -> None:
        try:
            await self._db.supabase.auth.update_user({"data": data})
        except Exception as exc:
            raise ProviderError.from_exception(exc) from exc

    def on_auth_state_change(self, callback: AuthEventCallback) -> Unsubscribe:
        """Forward supabase auth events to *callback* as ``AuthEvent`` models."""

        def _forward(event: str, raw_session: Any) -> None:
            try:
                change = AuthChangeEvent(event)
            except ValueError:
                self._logger.debug(
                    "Ignoring unknown auth event %s.", event,
                    extra={"category": LogCategory.AUTH},
                )
                return
            callback(AuthEvent(event=change, session=_to_session(raw_session)))

        try:
            subscription = self._db.supabase.auth.on_auth_state_change(_forward)
        except Exception as exc:
            raise ProviderError.from_exception(exc) from exc
        return subscription.unsubscribe

    async def delete_account(self) -> None:
        try:
            await self._db.supabase.rpc(self._delete_account_rpc).execute()
        except Exception as exc:
            raise ProviderError.from_exception(exc) from exc
