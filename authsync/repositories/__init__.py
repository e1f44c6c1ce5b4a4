"""
Repository Layer Package.

Provides data-access abstractions over Supabase.  Services never access
``db.supabase`` tables directly.

Usage:
    from authsync.repositories.profile_repository import ProfileRepository
"""

from authsync.repositories.base_repository import BaseRepository, RepositoryError
from authsync.repositories.profile_repository import ProfileRepository, ProfileStoreError

__all__ = [
    "BaseRepository",
    "ProfileRepository",
    "ProfileStoreError",
    "RepositoryError",
]
