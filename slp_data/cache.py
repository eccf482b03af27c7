"""
Raw transaction cache - Injected collaborator for node transaction lookups.

The cache is best-effort: a failed put never fails the lookup, and a
cache miss falls back to the injected node fetch.
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional


logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """Cached raw transaction."""
    data: dict[str, Any]
    created_at: float = field(default_factory=time.time)
    ttl_seconds: Optional[int] = None
    hits: int = 0

    def is_expired(self) -> bool:
        if self.ttl_seconds is None:
            return False
        return time.time() - self.created_at > self.ttl_seconds

    def age_seconds(self) -> float:
        return time.time() - self.created_at


class RawTransactionCache(ABC):
    """Key-value store for raw transactions keyed by txid."""

    @abstractmethod
    async def get(self, key: str) -> Optional[dict[str, Any]]:
        pass

    @abstractmethod
    async def put(self, key: str, value: dict[str, Any]) -> None:
        pass


class MemoryTransactionCache(RawTransactionCache):
    """
    In-process cache with optional TTL and a size bound.

    Confirmed transactions never change, so the default TTL is None.
    Oldest entries are evicted first once `max_entries` is reached.
    """

    def __init__(self, ttl_seconds: Optional[int] = None, max_entries: int = 10000) -> None:
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._entries: dict[str, CacheEntry] = {}
        self._hits = 0
        self._misses = 0

    async def get(self, key: str) -> Optional[dict[str, Any]]:
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None
        if entry.is_expired():
            del self._entries[key]
            self._misses += 1
            return None
        entry.hits += 1
        self._hits += 1
        return entry.data

    async def put(self, key: str, value: dict[str, Any]) -> None:
        if key not in self._entries and len(self._entries) >= self._max_entries:
            oldest = min(self._entries, key=lambda k: self._entries[k].created_at)
            del self._entries[oldest]
        self._entries[key] = CacheEntry(data=value, ttl_seconds=self._ttl)

    def __len__(self) -> int:
        return len(self._entries)

    def get_stats(self) -> dict[str, Any]:
        total = self._hits + self._misses
        return {
            "entries": len(self._entries),
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": self._hits / total if total else 0.0,
        }


class CachedTransactionSource:
    """
    Raw transaction lookup: cache first, node on miss.

    Usage:
        source = CachedTransactionSource(rpc.get_raw_transaction, MemoryTransactionCache())
        tx = await source.get_transaction(txid)
    """

    def __init__(
        self,
        fetch: Callable[[str], Awaitable[dict[str, Any]]],
        cache: Optional[RawTransactionCache] = None,
    ) -> None:
        self._fetch = fetch
        self._cache = cache or MemoryTransactionCache()

    async def get_transaction(self, txid: str) -> dict[str, Any]:
        cached = await self._cache.get(txid)
        if cached is not None:
            logger.debug(f"Cache hit for {txid}")
            return cached

        transaction = await self._fetch(txid)

        try:
            await self._cache.put(txid, transaction)
        except Exception as e:
            logger.warning(f"Failed to cache transaction {txid}: {e}")

        return transaction
