"""Network module for wtcache."""

from .tcp_server import KVServer

__all__ = ["KVServer"]
