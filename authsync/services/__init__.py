"""
Engine Services Package.

The ``create_services()`` factory wires the ledger, pending-name slot,
exchanger, materializer, observability sink, state store and
synchronizer together, returning a typed dict the application layer
can consume without knowing the internal dependency graph.
"""

from __future__ import annotations

from typing import Optional, TypedDict

from authsync.auth import AuthStateStore
from authsync.auth_provider import AuthProvider
from authsync.config import AppConfig
from authsync.logger import StructuredLogger, get_logger
from authsync.services.auth_synchronizer import AuthStateSynchronizer
from authsync.services.observability import AnalyticsClient, CrashReporter, ObservabilitySink
from authsync.services.pending_name_store import PendingNameStore
from authsync.services.profile_materializer import ProfileMaterializer, ProfileStore
from authsync.services.session_exchanger import SessionExchanger
from authsync.services.url_ledger import ProcessedUrlLedger, get_url_ledger


class ServiceContainer(TypedDict):
    """Typed container for the engine's services."""

    store: AuthStateStore
    ledger: ProcessedUrlLedger
    pending_names: PendingNameStore
    exchanger: SessionExchanger
    materializer: ProfileMaterializer
    observability: ObservabilitySink
    synchronizer: AuthStateSynchronizer


def create_services(
    config: AppConfig,
    provider: AuthProvider,
    profiles: ProfileStore,
    crash_reporter: Optional[CrashReporter] = None,
    analytics: Optional[AnalyticsClient] = None,
    ledger: Optional[ProcessedUrlLedger] = None,
    logger: Optional[StructuredLogger] = None,
) -> ServiceContainer:
    """
    Wire all engine services together.

    This is the single composition root for the service layer.

    Args:
        config: Application configuration.
        provider: Auth provider (``SupabaseAuthProvider`` in production).
        profiles: Profile row store (``ProfileRepository`` in production).
        crash_reporter: Crash-report client; logging-backed when omitted.
        analytics: Analytics client; logging-backed when omitted.
        ledger: Processed-URL ledger; the process-wide one when omitted.
        logger: Shared logger; ``get_logger("services")`` when omitted.

    Returns:
        ServiceContainer mapping service names to fully-wired instances.
    """
    logger = logger or get_logger("services")

    # ------------------------------------------------------------------
    # 1. Process-wide state (survives remounts)
    # ------------------------------------------------------------------
    if ledger is None:
        ledger = get_url_ledger(config.PROCESSED_URL_LEDGER_MAX)
    pending_names = PendingNameStore()
    store = AuthStateStore(logger=logger)

    # ------------------------------------------------------------------
    # 2. Leaf services
    # ------------------------------------------------------------------
    exchanger = SessionExchanger(
        provider=provider,
        ledger=ledger,
        logger=logger,
        retry_failed=config.RETRY_FAILED_DEEP_LINKS,
    )
    materializer = ProfileMaterializer(
        provider=provider,
        profiles=profiles,
        pending_names=pending_names,
        logger=logger,
    )
    observability = ObservabilitySink(
        logger=logger,
        crash_reporter=crash_reporter,
        analytics=analytics,
    )

    # ------------------------------------------------------------------
    # 3. Orchestration
    # ------------------------------------------------------------------
    synchronizer = AuthStateSynchronizer(
        provider=provider,
        store=store,
        exchanger=exchanger,
        materializer=materializer,
        observability=observability,
        pending_names=pending_names,
        logger=logger,
        redirect_url=config.auth_redirect_url,
        sign_out_scope=config.SIGN_OUT_SCOPE,
    )

    logger.info("All engine services created successfully.")

    return ServiceContainer(
        store=store,
        ledger=ledger,
        pending_names=pending_names,
        exchanger=exchanger,
        materializer=materializer,
        observability=observability,
        synchronizer=synchronizer,
    )
