"""
Key-Value Orchestration Service

Composes the shared LRU cache with a worker's ConnectionManager to implement
create/read/delete with write-through coherence:

- create: the store write commits first; only then is the cache updated
- read:   cache hit returns without touching the store; a store hit
          populates the cache; a store miss leaves the cache alone
- delete: the store delete runs first; the cache entry is removed only if
          the store removed a row

The store is the source of truth and the cache is only a speedup, so the
cache never claims a value the store did not commit.

Ordering: operations on the same key are not ordered across workers. Two
concurrent creates of the same key may commit to the store in one order and
reach the cache in the other, leaving the cache holding the value that lost
in the store until the entry is evicted or overwritten. No transaction spans
the store and the cache.
"""

import logging
from typing import Optional

from ..cache.lru import LRUCache
from ..config.settings import settings
from ..results import OpResult
from ..storage.connection import ConnectionManager

logger = logging.getLogger(__name__)


def cache_key(key: int) -> str:
    """
    Canonical cache key for a store key.

    Keys reach the service already canonicalized to int, so every textual
    spelling of the same integer ("7", "07", "+7") shares one cache entry.
    """
    return str(key)


class KVService:
    """
    Stateless orchestration over the shared cache and per-worker connections.

    One instance is shared by all workers. Each call receives the calling
    worker's ConnectionManager explicitly.

    Usage:
        service = KVService(LRUCache(capacity=100))
        with ConnectionManager(backend) as connections:
            service.create(connections, 5, "x")
            result = service.read(connections, 5)   # cache hit
    """

    def __init__(self, cache: LRUCache, purge_on_missing_delete: Optional[bool] = None):
        """
        Initialize the service.

        Args:
            cache: The cache shared by all workers
            purge_on_missing_delete: Also drop the cache entry when the store
                reports that no row existed for a delete
                (default from settings.PURGE_CACHE_ON_MISSING_DELETE)
        """
        self.cache = cache
        self.purge_on_missing_delete = (
            purge_on_missing_delete
            if purge_on_missing_delete is not None
            else settings.PURGE_CACHE_ON_MISSING_DELETE
        )

    def create(self, connections: ConnectionManager, key: int, value: str) -> OpResult:
        """
        Upsert key in the store, then cache it.

        Returns:
            OpResult.success() if the write committed; otherwise an
            unavailable or rejected result and the cache is unchanged
        """
        handle = connections.acquire()
        if handle is None:
            return OpResult.unavailable()

        result = connections.backend.upsert(handle, key, value)
        if result.ok:
            self.cache.put(cache_key(key), value)
        elif result.is_unavailable:
            connections.invalidate()
        return result

    def read(self, connections: ConnectionManager, key: int) -> OpResult:
        """
        Read key from the cache, falling back to the store.

        Returns:
            OpResult.success(value) on a hit, OpResult.not_found() if the
            store has no row, or an unavailable/rejected result
        """
        ckey = cache_key(key)
        value = self.cache.get(ckey)
        if value is not None:
            return OpResult.success(value)

        handle = connections.acquire()
        if handle is None:
            return OpResult.unavailable()

        result = connections.backend.select(handle, key)
        if result.ok:
            self.cache.put(ckey, result.value)
        elif result.is_unavailable:
            connections.invalidate()
        return result

    def delete(self, connections: ConnectionManager, key: int) -> OpResult:
        """
        Delete key from the store, then from the cache.

        Returns:
            OpResult.success() if a row was removed, OpResult.not_found() if
            none existed, or an unavailable/rejected result
        """
        handle = connections.acquire()
        if handle is None:
            return OpResult.unavailable()

        result = connections.backend.delete(handle, key)
        if result.ok:
            self.cache.remove(cache_key(key))
        elif result.is_not_found:
            if self.purge_on_missing_delete and self.cache.remove(cache_key(key)):
                logger.info(f"Dropped stale cache entry for missing key {key}")
        elif result.is_unavailable:
            connections.invalidate()
        return result
