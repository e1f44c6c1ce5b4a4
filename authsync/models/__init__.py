from __future__ import annotations

"""
Data Models Package.

Re-exports all Pydantic models for convenient imports:
    from authsync.models import Session, User, Profile, EngineState
    from authsync.models import AuthChangeEvent, AuthStatus
"""

from authsync.models.enums import (
    AnalyticsEvent,
    AuthChangeEvent,
    AuthStatus,
    LoginMethod,
    OAuthProvider,
)
from authsync.models.profile import Profile
from authsync.models.auth_models import (
    AuthErrorCode,
    AuthEvent,
    EngineState,
    OAuthCallbackError,
    PendingExternalName,
    Session,
    TokenPair,
    User,
)

__all__ = [
    "AnalyticsEvent",
    "AuthChangeEvent",
    "AuthErrorCode",
    "AuthEvent",
    "AuthStatus",
    "EngineState",
    "LoginMethod",
    "OAuthCallbackError",
    "OAuthProvider",
    "PendingExternalName",
    "Profile",
    "Session",
    "TokenPair",
    "User",
]
