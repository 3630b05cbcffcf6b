"""
Worker Pool Module

A fixed pool of threads, each processing one job at a time to completion.
Every worker owns its own ConnectionManager for its whole lifetime, so the
number of backing-store connections is bounded by the number of workers and
connections never cross threads.

Jobs are callables invoked as `fn(connections, *args)` with the executing
worker's ConnectionManager; results and exceptions are delivered through a
concurrent.futures.Future.
"""

import logging
import queue
import threading
from concurrent.futures import Future
from typing import Any, Callable, List, Optional

from ..config.settings import settings
from ..storage.backend import StoreBackend
from ..storage.connection import ConnectionManager

logger = logging.getLogger(__name__)

# Sent once per worker to stop it
_SHUTDOWN = None


class WorkerPool:
    """
    Fixed-size pool of worker threads with one store connection each.

    Usage:
        pool = WorkerPool(backend, size=4)
        pool.start()
        future = pool.submit(service.read, 7)
        result = future.result()
        pool.shutdown()

    Attributes:
        backend: Store backend used by each worker's ConnectionManager
        size: Number of worker threads
    """

    def __init__(
            self,
            backend: StoreBackend,
            size: Optional[int] = None,
            health_check_interval: Optional[float] = None,
    ):
        """
        Initialize the pool. Threads are started by start().

        Args:
            backend: Store backend for the per-worker connections
            size: Number of workers (default from settings.WORKERS)
            health_check_interval: Seconds between connection probes
                (default from settings.HEALTH_CHECK_INTERVAL)

        Raises:
            ValueError: If size is not positive
        """
        self.size = size if size is not None else settings.WORKERS
        if self.size <= 0:
            raise ValueError("size must be positive")
        self.backend = backend
        self.health_check_interval = health_check_interval

        self._jobs: "queue.Queue[Optional[tuple]]" = queue.Queue()
        self._threads: List[threading.Thread] = []
        self._connections: List[ConnectionManager] = []
        self._lock = threading.Lock()
        self._running = False

    def start(self) -> None:
        """Start the worker threads."""
        with self._lock:
            if self._running:
                return
            self._running = True
            for i in range(self.size):
                thread = threading.Thread(
                    target=self._worker_loop,
                    name=f"wtcache-worker-{i}",
                    daemon=True,
                )
                self._threads.append(thread)
                thread.start()
        logger.info(f"Started {self.size} workers")

    def submit(self, fn: Callable[..., Any], *args: Any) -> Future:
        """
        Queue a job for the next free worker.

        Args:
            fn: Callable invoked as fn(connections, *args)
            *args: Remaining positional arguments

        Returns:
            Future resolved with the job's return value or exception

        Raises:
            RuntimeError: If the pool is not running
        """
        with self._lock:
            if not self._running:
                raise RuntimeError("worker pool is not running")
            future: Future = Future()
            self._jobs.put((future, fn, args))
        return future

    def shutdown(self, wait: bool = True) -> None:
        """
        Stop all workers after the jobs already queued have run.

        Args:
            wait: Block until every worker thread has exited
        """
        with self._lock:
            if not self._running:
                return
            self._running = False
            for _ in self._threads:
                self._jobs.put(_SHUTDOWN)

        if wait:
            for thread in self._threads:
                thread.join()
        self._threads.clear()
        logger.info("Worker pool stopped")

    def is_running(self) -> bool:
        """Check if the pool accepts jobs."""
        return self._running

    def _worker_loop(self) -> None:
        """Run jobs until the shutdown sentinel arrives."""
        name = threading.current_thread().name
        with ConnectionManager(
            self.backend,
            health_check_interval=self.health_check_interval,
            name=name,
        ) as connections:
            with self._lock:
                self._connections.append(connections)
            try:
                while True:
                    job = self._jobs.get()
                    if job is _SHUTDOWN:
                        break

                    future, fn, args = job
                    if not future.set_running_or_notify_cancel():
                        continue
                    try:
                        future.set_result(fn(connections, *args))
                    except Exception as exc:
                        logger.exception(f"[{name}] Job failed: {exc}")
                        future.set_exception(exc)
            finally:
                with self._lock:
                    self._connections.remove(connections)
        logger.debug(f"[{name}] Worker exited")

    def get_stats(self) -> dict:
        """Get per-worker connection statistics."""
        with self._lock:
            return {
                "workers": self.size,
                "running": self._running,
                "pending_jobs": self._jobs.qsize(),
                "connections": [c.get_stats() for c in self._connections],
            }
