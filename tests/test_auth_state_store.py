from __future__ import annotations

import logging

from authsync.auth import AuthStateStore
from authsync.config import AppConfig
from authsync.models.enums import AuthStatus
from tests.conftest import make_session


def test_replace_notifies_only_on_change(logger):
    store = AuthStateStore(logger=logger)
    seen = []
    remove = store.add_listener(seen.append)

    store.replace(initialized=True)
    store.replace(initialized=True)
    assert len(seen) == 1
    assert seen[0].status == AuthStatus.LOADING

    remove()
    store.replace(loading=False)
    assert len(seen) == 1


def test_listener_failure_is_swallowed(logger):
    store = AuthStateStore(logger=logger)
    seen = []

    def broken(state):
        raise ValueError("listener bug")

    store.add_listener(broken)
    store.add_listener(seen.append)
    store.replace(initialized=True)
    assert len(seen) == 1


def test_clear_identity(logger):
    store = AuthStateStore(logger=logger)
    session = make_session()
    store.replace(initialized=True, loading=False, user=session.user, session=session)
    assert store.snapshot.status == AuthStatus.AUTHENTICATED

    store.clear_identity()
    assert store.user is None and store.session is None and store.profile is None
    assert store.snapshot.status == AuthStatus.UNAUTHENTICATED


def test_config_derived_values():
    config = AppConfig(APP_SCHEME="myapp", AUTH_CALLBACK_PATH="/auth/callback/", LOG_LEVEL="verbose")
    assert config.auth_redirect_url == "myapp://auth/callback"
    assert config.log_level == logging.INFO
    assert AppConfig(LOG_LEVEL="debug").log_level == logging.DEBUG
