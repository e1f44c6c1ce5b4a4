"""
Session Exchanger.

Turns a token pair from a deep link into a provider session, at most
once per pair.

Rules:

- The first caller for a fingerprint claims it in the ledger and starts
  the provider call.
- Concurrent callers for the same fingerprint join that call and share
  its outcome.
- A fingerprint already completed is a silent no-op (``None``).
- A "token already used" failure is benign: another path consumed the
  pair first.
- Any other failure is logged and re-raised.  The fingerprint stays in
  the ledger unless ``retry_failed`` is set.
"""

from __future__ import annotations

import asyncio
from typing import Optional

from authsync.auth_provider import AuthProvider, ProviderError
from authsync.logger import LogCategory, StructuredLogger
from authsync.models.auth_models import AuthErrorCode, Session, TokenPair
from authsync.services.base_service import BaseService
from authsync.services.url_ledger import ProcessedUrlLedger


class SessionExchanger(BaseService):
    """Single-flight ``set_session`` keyed on the token-pair fingerprint.

    Parameters
    ----------
    provider:
        The auth provider whose ``set_session`` performs the exchange.
    ledger:
        Process-wide record of fingerprints already submitted.
    logger:
        Structured JSON logger.
    retry_failed:
        Evict the fingerprint after a non-benign failure so the same
        link can be retried.
    """

    def __init__(
        self,
        provider: AuthProvider,
        ledger: ProcessedUrlLedger,
        logger: StructuredLogger,
        retry_failed: bool = False,
    ) -> None:
        super().__init__(logger)
        self._provider: AuthProvider = provider
        self._ledger: ProcessedUrlLedger = ledger
        self._retry_failed: bool = retry_failed
        self._in_flight: dict[str, asyncio.Task[Optional[Session]]] = {}

    @property
    def ledger(self) -> ProcessedUrlLedger:
        return self._ledger

    async def exchange(self, tokens: TokenPair) -> Optional[Session]:
        """Exchange *tokens* for a session.

        Returns the new session, or ``None`` when the pair was already
        handled.  Raises ``ProviderError`` on a genuine failure.
        """
        fingerprint = tokens.fingerprint

        task = self._in_flight.get(fingerprint)
        if task is not None:
            self._logger.debug(
                "Joining in-flight exchange.",
                extra={"category": LogCategory.DEEP_LINK, "fingerprint": tokens.short_fingerprint},
            )
            return await asyncio.shield(task)

        if not self._ledger.claim(fingerprint):
            self._logger.debug(
                "Token pair already exchanged; skipping.",
                extra={"category": LogCategory.DEEP_LINK, "fingerprint": tokens.short_fingerprint},
            )
            return None

        task = asyncio.ensure_future(self._run(tokens))
        self._in_flight[fingerprint] = task
        task.add_done_callback(lambda _: self._in_flight.pop(fingerprint, None))
        return await asyncio.shield(task)

    async def _run(self, tokens: TokenPair) -> Optional[Session]:
        try:
            session = await self._provider.set_session(tokens)
        except ProviderError as exc:
            if exc.code == AuthErrorCode.TOKEN_ALREADY_USED:
                self._logger.debug(
                    "Token pair was already used by another path.",
                    extra={"category": LogCategory.DEEP_LINK, "fingerprint": tokens.short_fingerprint},
                )
                return None
            self._logger.error(
                "Session exchange failed: %s", exc.message,
                extra={
                    "category": LogCategory.DEEP_LINK,
                    "fingerprint": tokens.short_fingerprint,
                    "code": exc.code,
                },
            )
            if self._retry_failed:
                self._ledger.discard(tokens.fingerprint)
            raise

        self._logger.info(
            "Session exchanged.",
            extra={
                "category": LogCategory.DEEP_LINK,
                "fingerprint": tokens.short_fingerprint,
                "user_id": session.user.id,
            },
        )
        return session
