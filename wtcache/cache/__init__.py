"""Cache module for wtcache."""

from .lru import LRUCache

__all__ = ["LRUCache"]
