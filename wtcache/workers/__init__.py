"""Worker threads for wtcache."""

from .pool import WorkerPool

__all__ = ["WorkerPool"]
