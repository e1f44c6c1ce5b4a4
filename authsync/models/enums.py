"""
Shared Enumerations for the Auth Engine Models.

All string enumerations for type-safe field constraints.
StrEnum values compare equal to their string equivalents, so a raw
provider event name like ``"SIGNED_IN"`` matches ``AuthChangeEvent.SIGNED_IN``.
"""

from __future__ import annotations
from enum import StrEnum


class AuthChangeEvent(StrEnum):
    """Events emitted by the provider's auth state stream."""

    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    INITIAL_SESSION = "INITIAL_SESSION"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    USER_UPDATED = "USER_UPDATED"
    PASSWORD_RECOVERY = "PASSWORD_RECOVERY"
    MFA_CHALLENGE_VERIFIED = "MFA_CHALLENGE_VERIFIED"


class AuthStatus(StrEnum):
    """Lifecycle of the synchronizer as seen by downstream consumers.

    ``AUTHENTICATED`` says nothing about the profile; a signed-in user
    without a profile row is routed to onboarding.
    """

    UNINITIALIZED = "UNINITIALIZED"
    LOADING = "LOADING"
    AUTHENTICATED = "AUTHENTICATED"
    UNAUTHENTICATED = "UNAUTHENTICATED"


class OAuthProvider(StrEnum):
    """External identity providers supported by the sign-in flows."""

    APPLE = "apple"
    GOOGLE = "google"


class LoginMethod(StrEnum):
    """Value of the ``method`` parameter on auth analytics events."""

    EMAIL = "email"
    APPLE = "apple"
    GOOGLE = "google"


class AnalyticsEvent(StrEnum):
    """Product analytics events emitted by the engine."""

    AUTH_LOGIN = "auth_login"
    AUTH_SIGN_UP = "auth_sign_up"
    AUTH_LOGOUT = "auth_logout"
