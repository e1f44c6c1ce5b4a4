"""
Observability Sink.

Best-effort side channel that mirrors the signed-in identity into crash
reporting and product analytics.  The concrete SDKs are injected
through the ``CrashReporter`` and ``AnalyticsClient`` protocols; the
logging-backed defaults below are used when none is supplied.

Every call into a client is wrapped individually.  A failing client is
logged at debug level and never affects authentication.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Awaitable, Callable, Optional, Protocol, runtime_checkable

from authsync.logger import LogCategory, StructuredLogger
from authsync.models.enums import AnalyticsEvent
from authsync.models.profile import Profile
from authsync.services.base_service import BaseService
from authsync.utils.redaction import sanitize_params


@runtime_checkable
class CrashReporter(Protocol):
    def set_user(self, user_id: str, email: Optional[str] = None) -> None: ...

    def set_context(self, name: str, context: Optional[dict[str, Any]]) -> None: ...

    def clear_user(self) -> None: ...


@runtime_checkable
class AnalyticsClient(Protocol):
    def track_event(self, name: str, params: dict[str, Any]) -> None: ...

    def set_user_id(self, user_id: Optional[str]) -> None: ...

    def set_user_properties(self, properties: dict[str, Any]) -> None: ...

    async def reset(self) -> None: ...


# ---------------------------------------------------------------------------
# Logging-backed defaults
# ---------------------------------------------------------------------------

class LoggingCrashReporter:
    """Writes crash-report identity changes to the structured log."""

    def __init__(self, logger: StructuredLogger) -> None:
        self._logger = logger

    def set_user(self, user_id: str, email: Optional[str] = None) -> None:
        self._logger.debug(
            "Crash reporter user set.",
            extra={"category": LogCategory.OBSERVABILITY, "user_id": user_id},
        )

    def set_context(self, name: str, context: Optional[dict[str, Any]]) -> None:
        self._logger.debug(
            "Crash reporter context %s %s.", name, "cleared" if context is None else "set",
            extra={"category": LogCategory.OBSERVABILITY},
        )

    def clear_user(self) -> None:
        self._logger.debug(
            "Crash reporter user cleared.",
            extra={"category": LogCategory.OBSERVABILITY},
        )


class LoggingAnalyticsClient:
    """Writes analytics calls to the structured log."""

    def __init__(self, logger: StructuredLogger) -> None:
        self._logger = logger

    def track_event(self, name: str, params: dict[str, Any]) -> None:
        self._logger.info(
            "Analytics event %s.", name,
            extra={"category": LogCategory.OBSERVABILITY, "event": name, "params": params},
        )

    def set_user_id(self, user_id: Optional[str]) -> None:
        self._logger.debug(
            "Analytics user id %s.", "set" if user_id else "cleared",
            extra={"category": LogCategory.OBSERVABILITY},
        )

    def set_user_properties(self, properties: dict[str, Any]) -> None:
        self._logger.debug(
            "Analytics user properties set.",
            extra={"category": LogCategory.OBSERVABILITY, "properties": properties},
        )

    async def reset(self) -> None:
        self._logger.debug(
            "Analytics reset.", extra={"category": LogCategory.OBSERVABILITY},
        )


# ---------------------------------------------------------------------------
# Derived properties
# ---------------------------------------------------------------------------

_BUCKETS: tuple[tuple[int, str], ...] = (
    (7, "0-7"),
    (30, "8-30"),
    (90, "31-90"),
    (180, "91-180"),
    (365, "181-365"),
)


def days_sober_bucket(days: int) -> str:
    """Coarse tenure bucket sent to analytics instead of the raw date."""
    for upper, label in _BUCKETS:
        if days <= upper:
            return label
    return "365+"


def days_since(start: Optional[date], today: Optional[date] = None) -> Optional[int]:
    if start is None:
        return None
    today = today or date.today()
    return max((today - start).days, 0)


# ---------------------------------------------------------------------------
# Sink
# ---------------------------------------------------------------------------

class ObservabilitySink(BaseService):
    """Fans identity and event updates out to crash reporting and analytics.

    Parameters
    ----------
    crash_reporter:
        Crash-report client.  Defaults to ``LoggingCrashReporter``.
    analytics:
        Product analytics client.  Defaults to ``LoggingAnalyticsClient``.
    logger:
        Structured JSON logger.
    today:
        Clock for the tenure bucket; injectable for tests.
    """

    def __init__(
        self,
        logger: StructuredLogger,
        crash_reporter: Optional[CrashReporter] = None,
        analytics: Optional[AnalyticsClient] = None,
        today: Optional[Callable[[], date]] = None,
    ) -> None:
        super().__init__(logger)
        self._crash: CrashReporter = crash_reporter or LoggingCrashReporter(logger)
        self._analytics: AnalyticsClient = analytics or LoggingAnalyticsClient(logger)
        self._today: Callable[[], date] = today or date.today
        # (user_id, email, bucket) last pushed; None when cleared.
        self._identity: Optional[tuple[str, Optional[str], Optional[str]]] = None

    def _safely(self, label: str, call: Callable[[], Any]) -> None:
        try:
            call()
        except Exception as exc:
            self._logger.debug(
                "Observability call %s failed: %s", label, exc,
                extra={"category": LogCategory.OBSERVABILITY},
            )

    async def _safely_await(self, label: str, call: Callable[[], Awaitable[Any]]) -> None:
        try:
            await call()
        except Exception as exc:
            self._logger.debug(
                "Observability call %s failed: %s", label, exc,
                extra={"category": LogCategory.OBSERVABILITY},
            )

    # -- Identity -------------------------------------------------------------

    def identify(self, profile: Optional[Profile]) -> None:
        """Mirror *profile* into both clients; ``None`` clears them.

        Clients are only called when the id, email or tenure bucket
        actually changed since the previous call.
        """
        if profile is None:
            self.clear()
            return

        days = days_since(profile.sobriety_date, self._today())
        bucket = days_sober_bucket(days) if days is not None else None
        identity = (profile.id, profile.email, bucket)
        if identity == self._identity:
            return
        self._identity = identity

        self._safely("crash.set_user", lambda: self._crash.set_user(profile.id, profile.email))
        self._safely(
            "crash.set_context",
            lambda: self._crash.set_context("profile", {"email": profile.email}),
        )
        self._safely("analytics.set_user_id", lambda: self._analytics.set_user_id(profile.id))
        if bucket is not None:
            self._safely(
                "analytics.set_user_properties",
                lambda: self._analytics.set_user_properties({"days_sober_bucket": bucket}),
            )

    def clear(self) -> None:
        """Remove the crash-report identity and context and the analytics user id."""
        self._identity = None
        self._safely("crash.clear_user", self._crash.clear_user)
        self._safely("crash.set_context", lambda: self._crash.set_context("profile", None))
        self._safely("analytics.set_user_id", lambda: self._analytics.set_user_id(None))

    # -- Events ---------------------------------------------------------------

    def track(self, event: AnalyticsEvent, params: Optional[dict[str, Any]] = None) -> None:
        """Send *event* with PII keys stripped from *params*."""
        clean = sanitize_params(params)
        self._safely(f"analytics.track_event:{event}", lambda: self._analytics.track_event(str(event), clean))

    async def reset_analytics(self) -> None:
        self._identity = None
        await self._safely_await("analytics.reset", self._analytics.reset)
