"""
Authentication Engine Models.

Pydantic models for the values that flow between the provider adapter,
the session exchanger, the profile materializer and the state
synchronizer.

Every model is frozen: state is replaced wholesale, never patched in
place, so a consumer holding an ``EngineState`` always sees a consistent
snapshot.
"""

from __future__ import annotations

import hashlib
from enum import StrEnum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from authsync.models.enums import AuthChangeEvent, AuthStatus
from authsync.models.profile import Profile


# ---------------------------------------------------------------------------
# Error classification
# ---------------------------------------------------------------------------

class AuthErrorCode(StrEnum):
    """Categories of provider failures.

    Used by ``SupabaseAuthProvider`` to classify supabase errors and by
    the synchronizer to decide which failures are benign.
    """

    SESSION_MISSING = "session_missing"
    TOKEN_ALREADY_USED = "token_already_used"
    INVALID_CREDENTIALS = "invalid_credentials"
    EMAIL_ALREADY_EXISTS = "email_already_exists"
    USER_BANNED = "user_banned"
    NETWORK_ERROR = "network_error"
    NOT_CONFIGURED = "not_configured"
    UNKNOWN_ERROR = "unknown_error"


# Keys are matched against the supabase error code, then its class name,
# then its lower-cased message.
SUPABASE_ERROR_MAP: dict[str, tuple[AuthErrorCode, str]] = {
    "authsessionmissingerror": (
        AuthErrorCode.SESSION_MISSING,
        "You are already signed out.",
    ),
    "session_not_found": (
        AuthErrorCode.SESSION_MISSING,
        "You are already signed out.",
    ),
    "auth session missing": (
        AuthErrorCode.SESSION_MISSING,
        "You are already signed out.",
    ),
    "refresh_token_already_used": (
        AuthErrorCode.TOKEN_ALREADY_USED,
        "This sign-in link has already been used.",
    ),
    "already used": (
        AuthErrorCode.TOKEN_ALREADY_USED,
        "This sign-in link has already been used.",
    ),
    "invalid_credentials": (
        AuthErrorCode.INVALID_CREDENTIALS,
        "Incorrect email or password.",
    ),
    "invalid login credentials": (
        AuthErrorCode.INVALID_CREDENTIALS,
        "Incorrect email or password.",
    ),
    "invalid_grant": (
        AuthErrorCode.INVALID_CREDENTIALS,
        "Incorrect email or password.",
    ),
    "user_already_exists": (
        AuthErrorCode.EMAIL_ALREADY_EXISTS,
        "An account with this email already exists. Try signing in.",
    ),
    "user already registered": (
        AuthErrorCode.EMAIL_ALREADY_EXISTS,
        "An account with this email already exists. Try signing in.",
    ),
    "user_banned": (
        AuthErrorCode.USER_BANNED,
        "This account has been suspended.",
    ),
}

GENERIC_ERROR_MESSAGE: str = "Something went wrong. Please try again."


# ---------------------------------------------------------------------------
# Identity and session
# ---------------------------------------------------------------------------

class TokenPair(BaseModel):
    """Raw access/refresh tokens delivered by an OAuth callback."""

    access_token: str
    refresh_token: str

    model_config = ConfigDict(frozen=True)

    @property
    def fingerprint(self) -> str:
        """SHA-256 hex digest identifying this pair in the ledger."""
        digest = hashlib.sha256()
        digest.update(self.access_token.encode("utf-8"))
        digest.update(b"\x00")
        digest.update(self.refresh_token.encode("utf-8"))
        return digest.hexdigest()

    @property
    def short_fingerprint(self) -> str:
        """First 12 hex characters of ``fingerprint``, safe for logs."""
        return self.fingerprint[:12]

    def __repr__(self) -> str:
        return f"TokenPair(fingerprint={self.short_fingerprint!r})"

    __str__ = __repr__


class User(BaseModel):
    """Provider identity record.  ``id`` is the foreign key into profiles."""

    id: str
    email: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True, from_attributes=True)

    @property
    def metadata_display_name(self) -> Optional[str]:
        value = self.metadata.get("display_name")
        return value if isinstance(value, str) and value.strip() else None


class Session(BaseModel):
    """Read-only copy of a provider session."""

    access_token: str
    refresh_token: str
    expires_at: Optional[int] = None
    user: User

    model_config = ConfigDict(frozen=True, from_attributes=True)

    def __repr__(self) -> str:
        return f"Session(user_id={self.user.id!r}, expires_at={self.expires_at!r})"

    __str__ = __repr__


class PendingExternalName(BaseModel):
    """Name captured from a provider credential that only supplies it once.

    Apple returns the user's name on the first authorization only, and
    outside the identity token, so it has to travel beside the sign-in
    call until the profile is materialized.
    """

    first_name: str = ""
    family_name: str = ""
    display_name: str = ""
    full_name: str = ""

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_parts(cls, first_name: str, family_name: str) -> "PendingExternalName":
        """Build the display and full names the way onboarding expects.

        Display name is the first name plus the family-name initial
        (``"John D."``); full name is both parts joined.
        """
        first = first_name.strip()
        family = family_name.strip()
        display = f"{first} {family[0]}." if first and family else first or family
        full = " ".join(part for part in (first, family) if part)
        return cls(
            first_name=first,
            family_name=family,
            display_name=display,
            full_name=full,
        )


class AuthEvent(BaseModel):
    """One message on the provider's auth state channel."""

    event: AuthChangeEvent
    session: Optional[Session] = None

    model_config = ConfigDict(frozen=True)


class OAuthCallbackError(BaseModel):
    """Error parameters returned by a failed OAuth redirect."""

    error: str
    error_code: Optional[str] = None
    error_description: Optional[str] = None

    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Engine state
# ---------------------------------------------------------------------------

class EngineState(BaseModel):
    """Snapshot of everything downstream screens render from.

    Attributes
    ----------
    initialized:
        ``True`` once ``mount()`` has started.
    loading:
        ``True`` while the initial session or a post-event profile
        fetch is in progress.
    user / session:
        Replaced together on every auth event.
    profile:
        Application profile row, ``None`` until onboarding creates it.
    """

    initialized: bool = False
    loading: bool = True
    user: Optional[User] = None
    session: Optional[Session] = None
    profile: Optional[Profile] = None

    model_config = ConfigDict(frozen=True)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def status(self) -> AuthStatus:
        if not self.initialized:
            return AuthStatus.UNINITIALIZED
        if self.loading:
            return AuthStatus.LOADING
        if self.user is not None:
            return AuthStatus.AUTHENTICATED
        return AuthStatus.UNAUTHENTICATED

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None
