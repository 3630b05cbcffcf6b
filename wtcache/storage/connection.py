"""
Connection Lifecycle Module

Each worker owns exactly one ConnectionManager, and through it at most one
backing-store connection. The manager opens the connection lazily, probes it
once the health-check interval has elapsed, and replaces it when the probe
fails.

State machine:

    UNCONNECTED --acquire ok--> OPEN
    OPEN --interval elapsed--> UNCHECKED --probe ok--> OPEN
                                         --probe fail, reconnect ok--> OPEN
                                         --probe fail, reconnect fail--> DEAD
    DEAD --acquire ok--> OPEN

A failed acquire() returns None (connection unavailable). Nothing is retried
beyond the single reconnect attempt per failed probe; the next acquire()
starts over.

Managers are never shared between threads, so nothing here is locked.
"""

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from ..config.settings import settings
from .backend import StoreBackend

logger = logging.getLogger(__name__)


class ConnectionStatus(Enum):
    """Enumeration of connection states."""
    UNCONNECTED = "unconnected"
    OPEN = "open"
    UNCHECKED = "unchecked"
    DEAD = "dead"


@dataclass
class WorkerConnection:
    """
    Per-worker connection context.

    Attributes:
        worker_name: Name of the owning worker (for logs)
        handle: The open connection, or None
        last_checked: Clock reading of the last successful open or probe
        status: Current lifecycle state
    """
    worker_name: str
    handle: Optional[Connection] = None
    last_checked: float = 0.0
    status: ConnectionStatus = ConnectionStatus.UNCONNECTED


class ConnectionManager:
    """
    Lazily connecting, self-healing owner of a single store connection.

    Usage:
        with ConnectionManager(backend) as connections:
            handle = connections.acquire()
            if handle is None:
                ...  # store unavailable for this call
            backend.select(handle, 7)

    The context manager guarantees the handle is closed on every exit path.
    """

    def __init__(
            self,
            backend: StoreBackend,
            health_check_interval: Optional[float] = None,
            clock: Callable[[], float] = time.monotonic,
            name: Optional[str] = None,
    ):
        """
        Initialize the manager. No connection is opened until acquire().

        Args:
            backend: Store backend used to open and probe connections
            health_check_interval: Seconds between probes
                (default from settings.HEALTH_CHECK_INTERVAL)
            clock: Monotonic time source
            name: Owner name for logging (default: current thread name)
        """
        self.backend = backend
        self.health_check_interval = (
            health_check_interval
            if health_check_interval is not None
            else settings.HEALTH_CHECK_INTERVAL
        )
        self._clock = clock
        self.context = WorkerConnection(worker_name=name or threading.current_thread().name)

        # Statistics
        self._opens = 0
        self._probes = 0
        self._probe_failures = 0
        self._reconnects = 0

    @property
    def status(self) -> ConnectionStatus:
        """Current lifecycle state."""
        return self.context.status

    @property
    def last_checked(self) -> float:
        """Clock reading of the last successful open or probe."""
        return self.context.last_checked

    def acquire(self) -> Optional[Connection]:
        """
        Return a usable connection, opening or replacing it as needed.

        Returns:
            The connection handle, or None if the store is unavailable
        """
        ctx = self.context
        handle = ctx.handle

        if handle is None or ctx.status is ConnectionStatus.DEAD or handle.closed or handle.invalidated:
            return self._open()

        if self._clock() - ctx.last_checked < self.health_check_interval:
            return handle

        ctx.status = ConnectionStatus.UNCHECKED
        self._probes += 1
        if self.backend.ping(handle):
            ctx.last_checked = self._clock()
            ctx.status = ConnectionStatus.OPEN
            return handle

        self._probe_failures += 1
        logger.warning(f"[{ctx.worker_name}] Probe failed, reconnecting")
        self._discard()
        self._reconnects += 1
        return self._open()

    def invalidate(self) -> None:
        """
        Drop the current connection after a store call reported a disconnect.

        The next acquire() opens a fresh connection.
        """
        if self.context.handle is not None:
            logger.warning(f"[{self.context.worker_name}] Connection lost, closing")
        self._discard()

    def close(self) -> None:
        """Close the connection and return to the unconnected state."""
        self._discard()
        self.context.status = ConnectionStatus.UNCONNECTED

    def _open(self) -> Optional[Connection]:
        """Open a new connection, discarding any previous handle first."""
        ctx = self.context
        self._discard()

        try:
            handle = self.backend.connect()
        except SQLAlchemyError as exc:
            logger.error(f"[{ctx.worker_name}] Store connection failed: {exc}")
            ctx.status = ConnectionStatus.DEAD
            return None

        ctx.handle = handle
        ctx.last_checked = self._clock()
        ctx.status = ConnectionStatus.OPEN
        self._opens += 1
        logger.debug(f"[{ctx.worker_name}] Store connection opened")
        return handle

    def _discard(self) -> None:
        """Close the current handle, if any, and mark the context dead."""
        ctx = self.context
        handle, ctx.handle = ctx.handle, None
        ctx.status = ConnectionStatus.DEAD
        if handle is None:
            return

        try:
            handle.close()
        except SQLAlchemyError as exc:
            logger.debug(f"[{ctx.worker_name}] Error closing stale connection: {exc}")

    def get_stats(self) -> Dict[str, Any]:
        """Get connection lifecycle statistics."""
        return {
            "worker": self.context.worker_name,
            "status": self.context.status.value,
            "opens": self._opens,
            "probes": self._probes,
            "probe_failures": self._probe_failures,
            "reconnects": self._reconnects,
        }

    def __enter__(self) -> "ConnectionManager":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
