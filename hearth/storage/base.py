"""
Storage abstraction layer.

All persistence goes through these interfaces. This allows swapping
implementations (in-memory → PostgreSQL, local cache → Redis, etc.)
without changing application code.

Integration Points:
- MetadataStorage → PostgreSQL (users, audit log, notifications, payments)
- CacheStorage → Redis (failed-login tracking shared across instances)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel


class DuplicateKeyError(Exception):
    """Raised by ``MetadataStorage.insert`` when the id is already taken."""

    def __init__(self, collection: str, id: str):
        self.collection = collection
        self.id = id
        super().__init__(f"Duplicate key in {collection}: {id}")


# =============================================================================
# Storage Interfaces
# =============================================================================


class MetadataStorage(ABC):
    """
    Storage for structured data (users, audit entries, payments).

    Implementation: PostgreSQL in production
    Local Implementation: in-memory
    """

    @abstractmethod
    async def insert(self, collection: str, id: str, data: dict[str, Any]) -> None:
        """
        Insert a new document.

        This is the uniqueness primitive: it must fail atomically with
        DuplicateKeyError if ``id`` already exists in the collection.
        """
        pass

    @abstractmethod
    async def save(self, collection: str, id: str, data: dict[str, Any]) -> None:
        """Save (insert or replace) a document."""
        pass

    @abstractmethod
    async def get(self, collection: str, id: str) -> dict[str, Any] | None:
        """Get a document by ID."""
        pass

    @abstractmethod
    async def delete(self, collection: str, id: str) -> bool:
        """Delete a document."""
        pass

    @abstractmethod
    async def query(
        self,
        collection: str,
        filters: dict[str, Any] | None = None,
        limit: int | None = 100,
        offset: int = 0,
        order_by: str | None = None,
    ) -> list[dict[str, Any]]:
        """
        Query documents with optional equality filters.

        ``order_by`` names a field; prefix it with "-" for descending order.
        ``limit=None`` returns every match.
        """
        pass

    @abstractmethod
    async def count(self, collection: str, filters: dict[str, Any] | None = None) -> int:
        """Count documents matching the filters."""
        pass

    @abstractmethod
    async def update(self, collection: str, id: str, updates: dict[str, Any]) -> bool:
        """Partial update of a document."""
        pass


class CacheStorage(ABC):
    """
    Fast key-value cache with expiry.

    Implementation: Redis (shared between API instances)
    Local Implementation: in-memory dict (per process)
    """

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Set a value with optional TTL in seconds."""
        pass

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Get a value."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete a key."""
        pass

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check if key exists."""
        pass


# =============================================================================
# Storage Provider (dependency injection container)
# =============================================================================


class StorageProvider(BaseModel):
    """
    Container for all storage backends.

    Initialize once at app startup with appropriate implementations.
    Services receive this and use the interfaces without knowing
    the underlying implementation.
    """

    model_config = {"arbitrary_types_allowed": True}

    metadata: MetadataStorage
    cache: CacheStorage


# =============================================================================
# Collection Names (for MetadataStorage)
# =============================================================================


class Collections:
    """Standard collection/table names."""

    USERS = "users"
    USER_EMAILS = "user_emails"  # normalized email -> user id (unique index)
    AUDIT_LOGS = "audit_logs"
    NOTIFICATIONS = "notifications"
    PAYMENTS = "payments"
    SUBSCRIPTIONS = "subscriptions"
