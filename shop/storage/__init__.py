"""Object storage adapters for invoice documents.

- SupabaseStorageBackend for production (Supabase Storage REST)
- InMemoryStorageBackend for development and tests
"""

from shop.storage.memory import InMemoryStorageBackend
from shop.storage.port import StorageBackend, StoredObject
from shop.storage.supabase import SupabaseStorageBackend


def build_storage_backend(config) -> StorageBackend | None:
    """Adapter for a ``StorageConfig``; ``None`` when credentials are missing."""
    if config.backend == "memory":
        return InMemoryStorageBackend()
    if not config.is_configured:
        return None
    return SupabaseStorageBackend(config.url, config.key, timeout=config.timeout)


__all__ = [
    "InMemoryStorageBackend",
    "StorageBackend",
    "StoredObject",
    "SupabaseStorageBackend",
    "build_storage_backend",
]
