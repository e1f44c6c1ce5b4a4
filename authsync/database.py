"""
Supabase Connection Holder.

Owns the async Supabase client shared by the auth provider adapter and
the profile repository.  This module only manages the client; it
contains no query or auth logic.

The engine owns no persisted state of its own: sessions live in the
provider's runtime and profiles in the ``profiles`` table.

Usage (dependency injection at app startup)::

    from authsync.database import SupabaseManager
    from authsync.logger import StructuredLogger

    db = await SupabaseManager.connect(
        supabase_url=config.SUPABASE_URL,
        supabase_key=config.SUPABASE_ANON_KEY.get_secret_value(),
        logger=StructuredLogger(name="authsync.database"),
    )
    # Inject `db` into SupabaseAuthProvider / ProfileRepository.
"""

from __future__ import annotations

from typing import Optional

from supabase import AsyncClient, acreate_client

from authsync.logger import StructuredLogger


class SupabaseManager:
    """Holds the async Supabase client, or nothing when unconfigured.

    When the URL or key is empty, or client creation fails, no client is
    created.  Every consumer reaches the client through the ``supabase``
    property, whose ``RuntimeError`` the provider adapter reports as a
    ``NOT_CONFIGURED`` provider error.

    Parameters
    ----------
    client:
        An initialised ``AsyncClient``, or ``None`` for offline mode.
    logger:
        A ``StructuredLogger`` instance for structured JSON log output.
    """

    def __init__(
        self,
        client: Optional[AsyncClient],
        logger: StructuredLogger,
    ) -> None:
        self._client: Optional[AsyncClient] = client
        self._logger: StructuredLogger = logger

    @classmethod
    async def connect(
        cls,
        supabase_url: str,
        supabase_key: str,
        logger: StructuredLogger,
    ) -> "SupabaseManager":
        """Create the async client.  Never raises; falls back to offline mode."""
        client: Optional[AsyncClient] = None
        if supabase_url and supabase_key:
            try:
                client = await acreate_client(supabase_url, supabase_key)
                logger.info("Supabase client initialized.")
            except (ValueError, TypeError) as exc:
                logger.warning(
                    "Supabase credential format error: %s. Running without a provider.",
                    exc,
                )
            except Exception as exc:
                logger.error(
                    "Unexpected Supabase initialization failure: %s. "
                    "Running without a provider.",
                    exc,
                    exc_info=True,
                )
        else:
            logger.warning(
                "Supabase credentials not configured; running without a provider."
            )
        return cls(client=client, logger=logger)

    @property
    def supabase(self) -> AsyncClient:
        """Return the initialised Supabase client.

        Raises
        ------
        RuntimeError
            If the client was not initialised.
        """
        if self._client is None:
            raise RuntimeError(
                "Supabase client is not initialised. "
                "Check SUPABASE_URL and SUPABASE_ANON_KEY."
            )
        return self._client
