"""
Storage abstractions.

Integration Points:
- MetadataStorage → PostgreSQL
- CacheStorage → Redis
"""

from hearth.storage.base import (
    CacheStorage,
    Collections,
    DuplicateKeyError,
    MetadataStorage,
    StorageProvider,
)
from hearth.storage.local import (
    InMemoryCacheStorage,
    InMemoryMetadataStorage,
    create_local_storage,
)

__all__ = [
    "MetadataStorage",
    "CacheStorage",
    "StorageProvider",
    "Collections",
    "DuplicateKeyError",
    "InMemoryMetadataStorage",
    "InMemoryCacheStorage",
    "create_local_storage",
]
