"""
Auth Session Synchronizer Entry Point.

Bootstraps the dependency graph via constructor injection, mounts the
synchronizer (optionally with the deep link the app was opened with),
prints the resulting state and unmounts.  Every subsystem is wired
here, with no module-level globals.

Usage::

    python main.py
    python main.py "sobers://auth/callback#access_token=...&refresh_token=..."
"""

from __future__ import annotations

import asyncio
import sys
from typing import Optional

from authsync.auth_provider import SupabaseAuthProvider
from authsync.config import get_config
from authsync.database import SupabaseManager
from authsync.logger import StructuredLogger, get_logger
from authsync.repositories.profile_repository import ProfileRepository
from authsync.services import create_services


async def run(initial_url: Optional[str] = None) -> int:
    """Wire dependencies, run one mount/unmount cycle and return an exit code."""
    logger: StructuredLogger = get_logger("main")
    logger.info("Starting auth synchronizer...")

    # ------------------------------------------------------------------
    # 1. Configuration (from .env / environment variables)
    # ------------------------------------------------------------------
    config = get_config()

    # ------------------------------------------------------------------
    # 2. Supabase client (absent when unconfigured)
    # ------------------------------------------------------------------
    db = await SupabaseManager.connect(
        supabase_url=config.SUPABASE_URL,
        supabase_key=config.SUPABASE_ANON_KEY.get_secret_value(),
        logger=StructuredLogger(name="database"),
    )

    # ------------------------------------------------------------------
    # 3. Provider adapter + profile repository
    # ------------------------------------------------------------------
    provider = SupabaseAuthProvider(
        db=db,
        logger=StructuredLogger(name="provider"),
        delete_account_rpc=config.DELETE_ACCOUNT_RPC,
    )
    profiles = ProfileRepository(
        db=db,
        logger=StructuredLogger(name="profiles"),
        table=config.PROFILES_TABLE,
    )

    # ------------------------------------------------------------------
    # 4. Service container (single composition root)
    # ------------------------------------------------------------------
    services = create_services(config=config, provider=provider, profiles=profiles)
    synchronizer = services["synchronizer"]

    # ------------------------------------------------------------------
    # 5. Mount, report, unmount
    # ------------------------------------------------------------------
    try:
        await synchronizer.mount(initial_url)
        await synchronizer.wait_idle()
        state = synchronizer.state
        print(state.model_dump_json(
            indent=2, exclude={"session": {"access_token", "refresh_token"}},
        ))
    finally:
        synchronizer.unmount()
        logger.info("Auth synchronizer shut down.")
    return 0


def main() -> None:
    initial_url = sys.argv[1] if len(sys.argv) > 1 else None
    sys.exit(asyncio.run(run(initial_url)))


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        pass
