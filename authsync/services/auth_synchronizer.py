"""
Auth State Synchronizer.

Keeps the local ``EngineState`` in step with the auth provider.

Lifecycle
---------
``mount(initial_url)``
    Subscribes to the provider's event stream, starts exchanging the
    deep link the app was opened with and loads the current session.
    ``loading`` drops to ``False`` once the session load is done; the
    link exchange finishes on its own (see ``wait_idle``).
``handle_url(url)``
    Live deep-link entry point for links received after mount.
``unmount()``
    Synchronous.  Closes the mount scope, unsubscribes and stops the
    event consumer.  Late results from in-flight calls are dropped.

Provider events are never handled inside the provider's callback.  The
callback only enqueues them; a single consumer task applies them in
emission order.

Error handling
--------------
User-initiated operations (``sign_in``, ``sign_up``, ``sign_out``,
``sign_in_with_id_token``, ``sign_in_with_oauth_provider``,
``delete_account``) raise ``ProviderError``.  Passive paths (events, deep
links, ``refresh_profile``) log and never raise.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional

from authsync.auth import AuthStateStore
from authsync.auth_provider import AuthProvider, ProviderError, Unsubscribe
from authsync.guards import requires_user
from authsync.logger import LogCategory, StructuredLogger
from authsync.models.auth_models import (
    AuthErrorCode,
    AuthEvent,
    EngineState,
    PendingExternalName,
    Session,
    User,
)
from authsync.models.enums import AnalyticsEvent, AuthChangeEvent, LoginMethod, OAuthProvider
from authsync.repositories.profile_repository import ProfileStoreError
from authsync.services.base_service import BaseService
from authsync.services.observability import ObservabilitySink
from authsync.services.pending_name_store import PendingNameStore
from authsync.services.profile_materializer import ProfileMaterializer
from authsync.services.session_exchanger import SessionExchanger
from authsync.services.token_extractor import (
    extract_oauth_error,
    extract_tokens,
    looks_like_auth_callback,
)
from authsync.services.url_ledger import ProcessedUrlLedger
from authsync.utils.audit import log_audit_event
from authsync.utils.lifetime import MountScope
from authsync.utils.redaction import redact_url

# Opens the authorization URL and resolves with the redirect URL, or None if dismissed.
BrowserSession = Callable[[str], Awaitable[Optional[str]]]

_CONSUMES_PENDING_NAME: frozenset[AuthChangeEvent] = frozenset({
    AuthChangeEvent.SIGNED_IN,
    AuthChangeEvent.INITIAL_SESSION,
})


class AuthStateSynchronizer(BaseService):
    """Single writer of ``EngineState``.

    Parameters
    ----------
    provider:
        Remote auth service.
    store:
        Holder of the ``EngineState`` snapshot.  Exposed as ``store``.
    exchanger:
        Single-flight token exchange for deep links.
    materializer:
        Profile fetch and name backfill.
    observability:
        Crash-report and analytics side channel.
    pending_names:
        Slot for a provider-supplied name awaiting materialization.
    logger:
        Structured JSON logger.
    redirect_url:
        Deep-link URL the OAuth provider redirects back to.
    sign_out_scope:
        Scope passed to the provider's ``sign_out``.
    """

    def __init__(
        self,
        provider: AuthProvider,
        store: AuthStateStore,
        exchanger: SessionExchanger,
        materializer: ProfileMaterializer,
        observability: ObservabilitySink,
        pending_names: PendingNameStore,
        logger: StructuredLogger,
        redirect_url: str,
        sign_out_scope: str = "local",
    ) -> None:
        super().__init__(logger)
        self._provider: AuthProvider = provider
        self.store: AuthStateStore = store
        self._exchanger: SessionExchanger = exchanger
        self._materializer: ProfileMaterializer = materializer
        self._observability: ObservabilitySink = observability
        self._pending_names: PendingNameStore = pending_names
        self._redirect_url: str = redirect_url
        self._sign_out_scope: str = sign_out_scope

        self._scope: MountScope = MountScope.closed()
        self._queue: Optional[asyncio.Queue[Optional[AuthEvent]]] = None
        self._consumer: Optional[asyncio.Task[None]] = None
        self._unsubscribe: Optional[Unsubscribe] = None
        self._initial_load_done: bool = False
        self._deep_links: set[asyncio.Task[Optional[Session]]] = set()

    # -- Read access -----------------------------------------------------------

    @property
    def state(self) -> EngineState:
        return self.store.snapshot

    @property
    def mounted(self) -> bool:
        return self._scope.active

    @property
    def ledger(self) -> ProcessedUrlLedger:
        return self._exchanger.ledger

    # -- Lifecycle -------------------------------------------------------------

    async def mount(self, initial_url: Optional[str] = None) -> EngineState:
        """Start synchronizing and return the state once the current session is loaded."""
        if self._scope.active:
            self.unmount()

        scope = MountScope()
        self._scope = scope
        self._initial_load_done = False
        self.store.replace(initialized=True, loading=True)

        loop = asyncio.get_running_loop()
        queue: asyncio.Queue[Optional[AuthEvent]] = asyncio.Queue()
        self._queue = queue

        def _enqueue(event: AuthEvent) -> None:
            if scope.active:
                loop.call_soon_threadsafe(queue.put_nowait, event)

        # Subscribe before the first await so no event is missed.
        try:
            self._unsubscribe = self._provider.on_auth_state_change(_enqueue)
        except ProviderError as exc:
            self._logger.error(
                "Could not subscribe to auth events: %s", exc.message,
                extra={"category": LogCategory.AUTH, "code": exc.code},
            )
        self._consumer = loop.create_task(self._consume(queue, scope))

        self._logger.info(
            "Synchronizer mounted.",
            extra={"category": LogCategory.AUTH, "scope": scope.id},
        )

        # The launch link is exchanged on its own; a slow exchange never holds ``loading``.
        if initial_url:
            task = loop.create_task(self._process_url(initial_url, scope))
            self._deep_links.add(task)
            task.add_done_callback(self._deep_links.discard)

        await self._load_initial_session(scope)

        if scope.active:
            self._initial_load_done = True
            self.store.replace(loading=False)
        return self.store.snapshot

    def unmount(self) -> None:
        """Stop synchronizing.  No state is written after this returns."""
        scope = self._scope
        if not scope.active:
            return
        scope.close()

        if self._unsubscribe is not None:
            try:
                self._unsubscribe()
            except Exception as exc:
                self._logger.debug(
                    "Unsubscribe failed: %s", exc, extra={"category": LogCategory.AUTH},
                )
            self._unsubscribe = None

        if self._queue is not None:
            self._queue.put_nowait(None)
            self._queue = None
        self._consumer = None

        self._logger.info(
            "Synchronizer unmounted.",
            extra={"category": LogCategory.AUTH, "scope": scope.id},
        )

    async def wait_idle(self) -> None:
        """Return once the launch link and every auth event delivered so far are applied."""
        if self._deep_links:
            await asyncio.gather(*self._deep_links, return_exceptions=True)
        queue = self._queue
        if queue is None:
            return
        # Deliveries are scheduled with call_soon_threadsafe; let them land.
        await asyncio.sleep(0)
        await queue.join()

    # -- Event stream ----------------------------------------------------------

    async def _consume(self, queue: asyncio.Queue[Optional[AuthEvent]], scope: MountScope) -> None:
        while True:
            event = await queue.get()
            try:
                if event is None or not scope.active:
                    return
                await self._apply_event(event, scope)
            except Exception as exc:
                self._logger.error(
                    "Failed to apply auth event: %s", exc,
                    exc_info=True, extra={"category": LogCategory.AUTH},
                )
            finally:
                queue.task_done()

    async def _apply_event(self, event: AuthEvent, scope: MountScope) -> None:
        self._logger.debug(
            "Auth event %s.", event.event,
            extra={"category": LogCategory.AUTH, "event": event.event},
        )
        session = event.session
        if session is None:
            self.store.replace(user=None, session=None, profile=None)
            self._observability.clear()
            if event.event == AuthChangeEvent.SIGNED_OUT:
                self._exchanger.ledger.clear()
                self._pending_names.clear()
            return

        changes: dict[str, object] = {"user": session.user, "session": session}
        if self._initial_load_done:
            changes["loading"] = True
        self.store.replace(**changes)

        await self._materialize(
            session.user, scope, consume_pending=event.event in _CONSUMES_PENDING_NAME,
        )
        if scope.active and self._initial_load_done:
            self.store.replace(loading=False)

    # -- Passive paths ---------------------------------------------------------

    async def _load_initial_session(self, scope: MountScope) -> None:
        try:
            session = await self._provider.get_session()
        except ProviderError as exc:
            self._logger.warning(
                "Could not load the current session: %s", exc.message,
                extra={"category": LogCategory.AUTH, "code": exc.code},
            )
            return
        if session is None or not scope.active:
            return
        await self._apply_session(session, scope, consume_pending=False)

    async def _process_url(
        self,
        url: str,
        scope: MountScope,
        pending_name: Optional[PendingExternalName] = None,
    ) -> Optional[Session]:
        if not looks_like_auth_callback(url):
            return None

        oauth_error = extract_oauth_error(url)
        if oauth_error is not None:
            self._logger.warning(
                "OAuth callback returned an error: %s", oauth_error.error,
                extra={
                    "category": LogCategory.DEEP_LINK,
                    "url": redact_url(url),
                    "error_description": oauth_error.error_description or "",
                },
            )
            return None

        tokens = extract_tokens(url)
        if tokens is None:
            self._logger.debug(
                "Deep link carries no complete token pair.",
                extra={"category": LogCategory.DEEP_LINK, "url": redact_url(url)},
            )
            return None

        if pending_name is not None:
            self._pending_names.set(pending_name)
        applied = False
        try:
            session = await self._exchanger.exchange(tokens)
            if session is not None and scope.active:
                applied = True
                await self._apply_session(session, scope, consume_pending=True)
        except ProviderError:
            return None
        finally:
            # A name that did not reach materialization must not leak into a later sign-in.
            if pending_name is not None and not applied:
                self._pending_names.clear()
        return session

    async def handle_url(
        self,
        url: str,
        pending_name: Optional[PendingExternalName] = None,
    ) -> Optional[Session]:
        """Process a deep link received while mounted.  Never raises."""
        scope = self._scope
        if not scope.active:
            self._logger.debug(
                "Ignoring deep link while unmounted.",
                extra={"category": LogCategory.DEEP_LINK, "url": redact_url(url)},
            )
            return None
        return await self._process_url(url, scope, pending_name)

    async def refresh_profile(self) -> None:
        """Re-fetch the current user's profile.  No-op without a user."""
        scope = self._scope
        user = self.store.user
        if user is None or not scope.active:
            return
        await self._materialize(user, scope, consume_pending=False)

    # -- State helpers ---------------------------------------------------------

    async def _apply_session(self, session: Session, scope: MountScope, consume_pending: bool) -> None:
        if not scope.active:
            return
        self.store.replace(user=session.user, session=session)
        await self._materialize(session.user, scope, consume_pending)

    async def _materialize(self, user: User, scope: MountScope, consume_pending: bool) -> None:
        try:
            profile = await self._materializer.materialize(user, consume_pending)
        except ProfileStoreError as exc:
            self._logger.warning(
                "Profile fetch failed; keeping the cached profile: %s", exc.message,
                extra={"category": LogCategory.DATABASE, "user_id": user.id},
            )
            return

        if not scope.active:
            return
        current = self.store.user
        if current is None or current.id != user.id:
            self._logger.debug(
                "Dropping profile for a user who is no longer signed in.",
                extra={"category": LogCategory.DATABASE, "user_id": user.id},
            )
            return

        self.store.replace(profile=profile)
        self._observability.identify(profile)

    def _clear_local(self) -> None:
        self._exchanger.ledger.clear()
        self._pending_names.clear()
        if self._scope.active:
            self.store.clear_identity()

    def _signed_in(self, session: Optional[Session], method: LoginMethod, action: str) -> None:
        event = AnalyticsEvent.AUTH_SIGN_UP if action == "SIGN_UP" else AnalyticsEvent.AUTH_LOGIN
        self._observability.track(event, {"method": str(method)})
        if session is not None:
            log_audit_event(
                self._logger, action, "User", session.user.id, session.user.id,
                {"method": str(method)},
            )

    # -- User-initiated operations ---------------------------------------------

    async def sign_in(self, email: str, password: str) -> Optional[Session]:
        """Password sign-in.  Raises ``ProviderError`` on failure."""
        try:
            session = await self._provider.sign_in_with_password(email, password)
        except ProviderError as exc:
            self._logger.error(
                "Sign-in failed: %s", exc.message,
                extra={"category": LogCategory.AUTH, "code": exc.code},
            )
            raise
        self._signed_in(session, LoginMethod.EMAIL, "LOGIN")
        if session is not None:
            await self._apply_session(session, self._scope, consume_pending=False)
        return session

    async def sign_up(self, email: str, password: str) -> Optional[Session]:
        """Password sign-up.  The session is ``None`` while email confirmation is pending."""
        try:
            session = await self._provider.sign_up(email, password)
        except ProviderError as exc:
            self._logger.error(
                "Sign-up failed: %s", exc.message,
                extra={"category": LogCategory.AUTH, "code": exc.code},
            )
            raise
        self._signed_in(session, LoginMethod.EMAIL, "SIGN_UP")
        if session is not None:
            await self._apply_session(session, self._scope, consume_pending=False)
        return session

    async def sign_in_with_id_token(
        self,
        provider: OAuthProvider,
        token: str,
        nonce: Optional[str] = None,
        pending_name: Optional[PendingExternalName] = None,
    ) -> Optional[Session]:
        """Native provider sign-in with an identity token.

        *pending_name* is the name the provider returned beside the
        token (Apple does so on the first authorization only).
        """
        if pending_name is not None:
            self._pending_names.set(pending_name)
        try:
            session = await self._provider.sign_in_with_id_token(provider, token, nonce)
        except ProviderError as exc:
            self._pending_names.clear()
            self._logger.error(
                "%s sign-in failed: %s", provider, exc.message,
                extra={"category": LogCategory.AUTH, "code": exc.code},
            )
            raise
        self._signed_in(session, LoginMethod(str(provider)), "LOGIN")
        if session is not None and self._scope.active:
            await self._apply_session(session, self._scope, consume_pending=True)
        elif pending_name is not None:
            self._pending_names.clear()
        return session

    async def sign_in_with_oauth_provider(
        self,
        provider: OAuthProvider,
        redirect_to: Optional[str] = None,
        browser: Optional[BrowserSession] = None,
    ) -> str:
        """Start a browser-based OAuth flow and return the authorization URL.

        With *browser*, the redirect it resolves with is exchanged here
        unless the deep-link path already handled the same tokens.
        """
        redirect = redirect_to or self._redirect_url
        try:
            auth_url = await self._provider.sign_in_with_oauth(provider, redirect)
        except ProviderError as exc:
            self._logger.error(
                "%s OAuth start failed: %s", provider, exc.message,
                extra={"category": LogCategory.AUTH, "code": exc.code},
            )
            raise

        if browser is None:
            return auth_url

        result_url = await browser(auth_url)
        if not result_url:
            self._logger.info(
                "%s OAuth flow dismissed.", provider, extra={"category": LogCategory.AUTH},
            )
            return auth_url

        oauth_error = extract_oauth_error(result_url)
        if oauth_error is not None:
            raise ProviderError(
                AuthErrorCode.UNKNOWN_ERROR,
                oauth_error.error_description or oauth_error.error,
            )
        tokens = extract_tokens(result_url)
        if tokens is None:
            raise ProviderError(
                AuthErrorCode.UNKNOWN_ERROR,
                "OAuth redirect did not include a session.",
            )

        session = await self._exchanger.exchange(tokens)
        if session is not None:
            await self._apply_session(session, self._scope, consume_pending=False)
        self._signed_in(session or self.store.session, LoginMethod(str(provider)), "LOGIN")
        return auth_url

    async def sign_out(self) -> None:
        """Sign out remotely and always clear local state.

        A missing remote session is not an error.  Any other provider
        failure is raised after local state has been cleared.
        """
        user = self.store.user
        self._observability.track(AnalyticsEvent.AUTH_LOGOUT)
        await self._observability.reset_analytics()
        self._observability.clear()
        try:
            await self._provider.sign_out(self._sign_out_scope)
        except ProviderError as exc:
            if not exc.is_session_missing:
                self._logger.error(
                    "Sign-out failed: %s", exc.message,
                    extra={"category": LogCategory.AUTH, "code": exc.code},
                )
                raise
            self._logger.debug(
                "No active session during sign-out.", extra={"category": LogCategory.AUTH},
            )
        finally:
            self._clear_local()
            if user is not None:
                log_audit_event(self._logger, "LOGOUT", "User", user.id, user.id)

    @requires_user
    async def delete_account(self) -> None:
        """Delete the signed-in account and leave the client signed out.

        The provider's error is raised after local cleanup if deletion
        failed.
        """
        user = self.store.user
        failure: Optional[ProviderError] = None
        try:
            await self._provider.delete_account()
        except ProviderError as exc:
            self._logger.error(
                "Account deletion failed: %s", exc.message,
                extra={"category": LogCategory.AUTH, "code": exc.code},
            )
            failure = exc
        else:
            if user is not None:
                log_audit_event(self._logger, "DELETE_ACCOUNT", "User", user.id, user.id)

        try:
            await self._provider.sign_out(self._sign_out_scope)
        except ProviderError as exc:
            self._logger.debug(
                "Sign-out after account deletion failed: %s", exc.message,
                extra={"category": LogCategory.AUTH},
            )
        await self._observability.reset_analytics()
        self._observability.clear()
        self._clear_local()

        if failure is not None:
            raise failure
