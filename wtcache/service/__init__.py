"""Key-value orchestration service for wtcache."""

from .kv_service import KVService, cache_key

__all__ = ["KVService", "cache_key"]
