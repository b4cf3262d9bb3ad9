"""
Local storage implementations for development and tests.

These are in-memory implementations that work without any external
services. State lives in the process and is lost on restart.
"""

from __future__ import annotations

import heapq
from datetime import datetime, timezone
from typing import Any, Callable

from hearth.storage.base import (
    CacheStorage,
    DuplicateKeyError,
    MetadataStorage,
    StorageProvider,
)


# =============================================================================
# In-Memory Metadata Storage
# =============================================================================


class InMemoryMetadataStorage(MetadataStorage):
    """In-memory document storage for development."""

    def __init__(self):
        self._data: dict[str, dict[str, dict[str, Any]]] = {}

    def _stamp(self, id: str, data: dict[str, Any]) -> dict[str, Any]:
        return {
            **data,
            "_id": id,
            "_updated_at": datetime.now(timezone.utc).isoformat(),
        }

    async def insert(self, collection: str, id: str, data: dict[str, Any]) -> None:
        # No await between the check and the write: atomic on the event loop
        docs = self._data.setdefault(collection, {})
        if id in docs:
            raise DuplicateKeyError(collection, id)
        docs[id] = self._stamp(id, data)

    async def save(self, collection: str, id: str, data: dict[str, Any]) -> None:
        self._data.setdefault(collection, {})[id] = self._stamp(id, data)

    async def get(self, collection: str, id: str) -> dict[str, Any] | None:
        doc = self._data.get(collection, {}).get(id)
        return dict(doc) if doc is not None else None

    async def delete(self, collection: str, id: str) -> bool:
        if collection in self._data and id in self._data[collection]:
            del self._data[collection][id]
            return True
        return False

    def _matching(self, collection: str, filters: dict[str, Any] | None) -> list[dict[str, Any]]:
        results = list(self._data.get(collection, {}).values())

        if filters:
            results = [
                doc for doc in results
                if all(doc.get(key) == value for key, value in filters.items())
            ]

        return results

    async def query(
        self,
        collection: str,
        filters: dict[str, Any] | None = None,
        limit: int | None = 100,
        offset: int = 0,
        order_by: str | None = None,
    ) -> list[dict[str, Any]]:
        results = self._matching(collection, filters)

        if order_by:
            field = order_by.lstrip("-")
            results.sort(
                key=lambda doc: (doc.get(field) is not None, doc.get(field) or ""),
                reverse=order_by.startswith("-"),
            )

        # Apply pagination
        end = None if limit is None else offset + limit
        return [dict(doc) for doc in results[offset:end]]

    async def count(self, collection: str, filters: dict[str, Any] | None = None) -> int:
        return len(self._matching(collection, filters))

    async def update(self, collection: str, id: str, updates: dict[str, Any]) -> bool:
        if collection in self._data and id in self._data[collection]:
            self._data[collection][id].update(updates)
            self._data[collection][id]["_updated_at"] = datetime.now(timezone.utc).isoformat()
            return True
        return False


# =============================================================================
# In-Memory Cache Storage
# =============================================================================


def _utc_timestamp() -> float:
    return datetime.now(timezone.utc).timestamp()


class InMemoryCacheStorage(CacheStorage):
    """
    In-memory cache for development.

    Expiry times are also kept in a heap, and every write evicts whatever
    has expired, so keys that are never read again do not pile up.
    """

    def __init__(self, clock: Callable[[], float] = _utc_timestamp):
        self._clock = clock
        self._cache: dict[str, tuple[Any, float | None]] = {}
        self._expiries: list[tuple[float, str]] = []

    def __len__(self) -> int:
        return len(self._cache)

    def _evict_expired(self, now: float) -> None:
        while self._expiries and self._expiries[0][0] < now:
            expires_at, key = heapq.heappop(self._expiries)
            entry = self._cache.get(key)
            # The key may have been rewritten with a later expiry since
            if entry is not None and entry[1] == expires_at:
                del self._cache[key]

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        now = self._clock()
        self._evict_expired(now)

        expires_at = None
        if ttl:
            expires_at = now + ttl
            heapq.heappush(self._expiries, (expires_at, key))
        self._cache[key] = (value, expires_at)

    async def get(self, key: str) -> Any | None:
        if key not in self._cache:
            return None

        value, expires_at = self._cache[key]
        if expires_at and self._clock() > expires_at:
            del self._cache[key]
            return None

        return value

    async def delete(self, key: str) -> bool:
        if key in self._cache:
            del self._cache[key]
            return True
        return False

    async def exists(self, key: str) -> bool:
        return await self.get(key) is not None


# =============================================================================
# Factory
# =============================================================================


def create_local_storage() -> StorageProvider:
    """Create a StorageProvider with in-memory implementations."""
    return StorageProvider(
        metadata=InMemoryMetadataStorage(),
        cache=InMemoryCacheStorage(),
    )
