"""
Backing Store Module

SQLAlchemy Core access to the persistent key-value table:

    kv_store(key BIGINT PRIMARY KEY, value TEXT NOT NULL)

The backend is a factory for connection handles plus the three statements
the cache needs (upsert, select, delete) and a liveness probe. It holds no
per-worker state; connection lifetime is managed by ConnectionManager.

Store calls never raise. SQLAlchemy errors are logged and returned as
OpResult values:
- disconnect-class errors  -> ErrorKind.CONNECTION_UNAVAILABLE
- everything else          -> ErrorKind.STORE_REJECTED
"""

import logging
from typing import Callable, Optional

from sqlalchemy import BigInteger, Column, MetaData, Table, Text, create_engine, delete, select, text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import DBAPIError, DisconnectionError, SQLAlchemyError
from sqlalchemy.pool import NullPool

from ..config.settings import settings
from ..results import OpResult

logger = logging.getLogger(__name__)

metadata = MetaData()

kv_store = Table(
    "kv_store",
    metadata,
    Column("key", BigInteger, primary_key=True, autoincrement=False),
    Column("value", Text, nullable=False),
)

# Dialects with INSERT .. ON CONFLICT DO UPDATE support
UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}

PING_QUERY = "SELECT 1"


def is_disconnect(exc: SQLAlchemyError) -> bool:
    """
    Check if an error means the connection itself is no longer usable.

    Args:
        exc: The error raised by a store call

    Returns:
        True for connection-level failures, False for statement failures
    """
    if isinstance(exc, DisconnectionError):
        return True
    return isinstance(exc, DBAPIError) and exc.connection_invalidated


class StoreBackend:
    """
    Persistent key-value table reachable through SQLAlchemy connections.

    The engine uses NullPool: every connect() opens a brand new DBAPI
    connection and close() really closes it, so the number of open
    connections is exactly the number of live ConnectionManagers.

    Usage:
        backend = StoreBackend("sqlite:///kvstore.db")
        backend.create_schema()
        handle = backend.connect()
        backend.upsert(handle, 7, "hello")

    Attributes:
        engine: The SQLAlchemy Engine used as the connection factory
    """

    def __init__(self, url: Optional[str] = None, engine: Optional[Engine] = None):
        """
        Initialize the backend.

        Args:
            url: SQLAlchemy database URL (default from settings.DATABASE_URL)
            engine: Pre-built engine; takes precedence over url

        Raises:
            ValueError: If the database dialect has no upsert support
        """
        if engine is None:
            engine = create_engine(url or settings.DATABASE_URL, poolclass=NullPool)
        self.engine = engine

        dialect = self.engine.dialect.name
        if dialect not in UPSERT_DIALECTS:
            raise ValueError(f"Unsupported database dialect for upsert: {dialect}")
        self._insert = UPSERT_DIALECTS[dialect]

    def create_schema(self) -> None:
        """Create the kv_store table if it does not exist."""
        metadata.create_all(self.engine)
        logger.info(f"Schema ready on {self.engine.url.render_as_string(hide_password=True)}")

    def connect(self) -> Connection:
        """
        Open a new connection handle.

        Raises:
            SQLAlchemyError: If the store cannot be reached
        """
        return self.engine.connect()

    def ping(self, handle: Connection) -> bool:
        """
        Run a minimal no-op query to check the handle is still usable.

        Returns:
            True if the probe round-tripped, False otherwise
        """
        try:
            with handle.begin():
                handle.execute(text(PING_QUERY)).scalar()
            return True
        except SQLAlchemyError as exc:
            logger.warning(f"Liveness probe failed: {exc}")
            return False

    def upsert(self, handle: Connection, key: int, value: str) -> OpResult:
        """
        Insert or overwrite the row for key.

        Returns:
            OpResult.success() once the write has committed
        """
        stmt = self._insert(kv_store).values(key=key, value=value)
        stmt = stmt.on_conflict_do_update(
            index_elements=[kv_store.c["key"]],
            set_={"value": stmt.excluded["value"]},
        )

        def run() -> OpResult:
            handle.execute(stmt)
            return OpResult.success()

        return self._execute(handle, "upsert", key, run)

    def select(self, handle: Connection, key: int) -> OpResult:
        """
        Read the value stored for key.

        Returns:
            OpResult.success(value) if a row exists, OpResult.not_found() otherwise
        """
        stmt = select(kv_store.c["value"]).where(kv_store.c["key"] == key)

        def run() -> OpResult:
            value = handle.execute(stmt).scalar_one_or_none()
            if value is None:
                return OpResult.not_found()
            return OpResult.success(value)

        return self._execute(handle, "select", key, run)

    def delete(self, handle: Connection, key: int) -> OpResult:
        """
        Delete the row for key.

        Returns:
            OpResult.success() if a row was removed, OpResult.not_found()
            if zero rows were affected
        """
        stmt = delete(kv_store).where(kv_store.c["key"] == key)

        def run() -> OpResult:
            result = handle.execute(stmt)
            if result.rowcount > 0:
                return OpResult.success()
            return OpResult.not_found()

        return self._execute(handle, "delete", key, run)

    def _execute(
            self,
            handle: Connection,
            operation: str,
            key: int,
            run: Callable[[], OpResult],
    ) -> OpResult:
        """Run a statement in its own transaction and map errors to results."""
        try:
            with handle.begin():
                return run()
        except SQLAlchemyError as exc:
            if is_disconnect(exc):
                logger.error(f"[DB] {operation} {key} lost connection: {exc}")
                return OpResult.unavailable()
            logger.error(f"[DB] {operation} {key} failed: {exc}")
            return OpResult.rejected()

    def dispose(self) -> None:
        """Release engine resources."""
        self.engine.dispose()
