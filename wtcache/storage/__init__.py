"""Backing store module for wtcache."""

from .backend import StoreBackend, kv_store
from .connection import ConnectionManager, ConnectionStatus, WorkerConnection

__all__ = [
    "StoreBackend",
    "kv_store",
    "ConnectionManager",
    "ConnectionStatus",
    "WorkerConnection",
]
