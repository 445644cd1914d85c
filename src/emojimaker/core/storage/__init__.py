"""Storage backends for profiles, emoji metadata, likes and image objects.

Importing this package registers every bundled backend with
:data:`storage_registry`.
"""

from .base import StorageBackend, create_storage, storage_registry
from .local import LocalStorageBackend
from .supabase import SupabaseStorageBackend

__all__ = [
    "StorageBackend",
    "LocalStorageBackend",
    "SupabaseStorageBackend",
    "create_storage",
    "storage_registry",
]
