"""
Shared LRU Cache Module

This module implements the bounded Least Recently Used cache that sits in
front of the backing store and is shared by every worker thread.

LRU Concept:
- Most recently accessed items are at the END of the OrderedDict
- Least recently accessed items are at the BEGINNING
- On access (get/put), move item to end
- On eviction, remove from beginning

A single lock serializes every operation, so the cache is the one point of
contention between workers. Each operation is atomic end to end.
"""

import threading
from collections import OrderedDict
from typing import Optional, Dict, Any, List


class LRUCache:
    """
    Thread-safe bounded LRU cache mapping canonical key strings to values.

    The OrderedDict is both the index (hash lookup by key) and the recency
    order (doubly linked list with O(1) move_to_end and popitem), so every
    operation is O(1).

    Usage:
        cache = LRUCache(capacity=100)
        cache.put("7", "hello")
        value = cache.get("7")  # Returns "hello", marks "7" as recently used

    Attributes:
        capacity: Maximum number of entries held at any time
    """

    def __init__(self, capacity: int):
        """
        Initialize the cache.

        Args:
            capacity: Maximum number of entries (must be positive)

        Raises:
            ValueError: If capacity is not positive
        """
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._entries: "OrderedDict[str, str]" = OrderedDict()
        self._lock = threading.Lock()

        # Counters, guarded by the same lock
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def put(self, key: str, value: str) -> Optional[str]:
        """
        Insert or overwrite an entry; it becomes the most recently used.

        Args:
            key: Canonical key string
            value: Value to cache

        Returns:
            The evicted key if inserting a new key exceeded capacity,
            None otherwise

        Time Complexity: O(1)
        """
        with self._lock:
            if key in self._entries:
                self._entries[key] = value
                self._entries.move_to_end(key)
                return None

            evicted_key = None
            if len(self._entries) >= self.capacity:
                evicted_key, _ = self._entries.popitem(last=False)
                self._evictions += 1

            self._entries[key] = value
            return evicted_key

    def get(self, key: str) -> Optional[str]:
        """
        Get a value and mark the entry as most recently used.

        Args:
            key: Canonical key string

        Returns:
            The cached value, or None on a miss (no side effects)

        Time Complexity: O(1)
        """
        with self._lock:
            if key not in self._entries:
                self._misses += 1
                return None

            self._entries.move_to_end(key)
            self._hits += 1
            return self._entries[key]

    def remove(self, key: str) -> bool:
        """
        Remove an entry if present.

        Args:
            key: Canonical key string

        Returns:
            True if an entry was removed, False if the key was absent

        Time Complexity: O(1)
        """
        with self._lock:
            return self._entries.pop(key, None) is not None

    def peek(self, key: str) -> Optional[str]:
        """
        Get a value without updating LRU order or hit/miss counters.

        Time Complexity: O(1)
        """
        with self._lock:
            return self._entries.get(key)

    def contains(self, key: str) -> bool:
        """Check if key is cached (without updating LRU order)."""
        with self._lock:
            return key in self._entries

    def size(self) -> int:
        """Get current number of entries."""
        with self._lock:
            return len(self._entries)

    def __len__(self) -> int:
        return self.size()

    def keys(self) -> List[str]:
        """
        Get all keys in LRU order.

        Returns:
            List of keys from LRU (oldest) to MRU (newest)
        """
        with self._lock:
            return list(self._entries.keys())

    def clear(self) -> None:
        """Remove all entries."""
        with self._lock:
            self._entries.clear()

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        with self._lock:
            size = len(self._entries)
            lookups = self._hits + self._misses
            return {
                "size": size,
                "capacity": self.capacity,
                "utilization": size / self.capacity,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": self._hits / lookups if lookups else 0.0,
                "evictions": self._evictions,
                "lru_key": next(iter(self._entries), None),
                "mru_key": next(reversed(self._entries), None),
            }
