"""
Pytest Configuration and Fixtures

This module provides shared fixtures and configuration for all tests.
"""

import asyncio
import socket
import pytest
import pytest_asyncio
from contextlib import closing
from typing import AsyncGenerator, Generator

from sqlalchemy.exc import OperationalError

from wtcache.cache.lru import LRUCache
from wtcache.network.tcp_server import KVServer
from wtcache.protocol.parser import ProtocolParser
from wtcache.service.kv_service import KVService
from wtcache.storage.backend import StoreBackend
from wtcache.storage.connection import ConnectionManager
from wtcache.workers.pool import WorkerPool


def find_free_port() -> int:
    """Find an available port for testing."""
    with closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as s:
        s.bind(('', 0))
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return s.getsockname()[1]


# ============================================================================
# Test doubles
# ============================================================================

class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def __call__(self) -> float:
        return self.now


class FlakyBackend(StoreBackend):
    """
    SQLite-backed StoreBackend that can be told to fail.

    Toggle `fail_connect` / `fail_ping` to simulate an unreachable store or a
    connection that died between probes. Every call is counted so tests can
    assert whether the store was touched.
    """

    def __init__(self, url: str):
        super().__init__(url)
        self.fail_connect = False
        self.fail_ping = False
        self.calls = {"connect": 0, "ping": 0, "upsert": 0, "select": 0, "delete": 0}

    def connect(self):
        self.calls["connect"] += 1
        if self.fail_connect:
            raise OperationalError("connect", {}, Exception("could not connect to server"))
        return super().connect()

    def ping(self, handle) -> bool:
        self.calls["ping"] += 1
        if self.fail_ping:
            return False
        return super().ping(handle)

    def upsert(self, handle, key, value):
        self.calls["upsert"] += 1
        return super().upsert(handle, key, value)

    def select(self, handle, key):
        self.calls["select"] += 1
        return super().select(handle, key)

    def delete(self, handle, key):
        self.calls["delete"] += 1
        return super().delete(handle, key)

    def store_calls(self) -> int:
        """Number of statements issued against the table."""
        return self.calls["upsert"] + self.calls["select"] + self.calls["delete"]


# ============================================================================
# Cache Fixtures
# ============================================================================

@pytest.fixture
def cache() -> LRUCache:
    """Create an LRU cache for testing (5 entries max)."""
    return LRUCache(capacity=5)


@pytest.fixture
def small_cache() -> LRUCache:
    """Create an LRU cache with capacity 2 for eviction scenarios."""
    return LRUCache(capacity=2)


# ============================================================================
# Store Fixtures
# ============================================================================

@pytest.fixture
def database_url(tmp_path) -> str:
    """SQLite database file unique to the test."""
    return f"sqlite:///{tmp_path / 'kvstore.db'}"


@pytest.fixture
def backend(database_url: str) -> Generator[FlakyBackend, None, None]:
    """Create a backend with the kv_store table in place."""
    store = FlakyBackend(database_url)
    store.create_schema()
    yield store
    store.dispose()


@pytest.fixture
def clock() -> FakeClock:
    """Create a manually advanced clock."""
    return FakeClock()


@pytest.fixture
def connections(backend: FlakyBackend, clock: FakeClock) -> Generator[ConnectionManager, None, None]:
    """Create a ConnectionManager with a 5 second health-check interval."""
    with ConnectionManager(
        backend,
        health_check_interval=5.0,
        clock=clock,
        name="test-worker",
    ) as manager:
        yield manager


@pytest.fixture
def service(cache: LRUCache) -> KVService:
    """Create a KVService over the 5 entry cache."""
    return KVService(cache)


# ============================================================================
# Protocol Fixtures
# ============================================================================

@pytest.fixture
def parser() -> ProtocolParser:
    """Create a ProtocolParser instance."""
    return ProtocolParser()


# ============================================================================
# Worker Pool Fixtures
# ============================================================================

@pytest.fixture
def pool(backend: FlakyBackend) -> Generator[WorkerPool, None, None]:
    """Create and start a 3 worker pool."""
    workers = WorkerPool(backend, size=3)
    workers.start()
    yield workers
    workers.shutdown()


# ============================================================================
# Server Fixtures
# ============================================================================

@pytest.fixture
def server_port() -> int:
    """Get a free port for server testing."""
    return find_free_port()


@pytest_asyncio.fixture
async def server(
    service: KVService,
    pool: WorkerPool,
    server_port: int,
) -> AsyncGenerator[KVServer, None]:
    """
    Create and start a server instance for testing.

    This fixture:
    1. Creates a KVServer on a random free port backed by the worker pool
    2. Starts it in a background task
    3. Yields the server for testing
    4. Cleans up after the test
    """
    srv = KVServer(service, pool, host='127.0.0.1', port=server_port)

    server_task = asyncio.create_task(srv.start())

    # Wait for server to be ready
    await asyncio.sleep(0.1)

    yield srv

    await srv.stop()
    server_task.cancel()
    try:
        await server_task
    except asyncio.CancelledError:
        pass


# ============================================================================
# Client Fixtures
# ============================================================================

class AsyncClient:
    """
    Helper class for testing server interactions.

    Usage:
        async with AsyncClient('127.0.0.1', port) as client:
            response = await client.send_command("PUT 1 value")
            assert response == "OK stored"
    """

    def __init__(self, host: str, port: int):
        self.host = host
        self.port = port
        self.reader = None
        self.writer = None

    async def connect(self) -> None:
        """Establish connection to server."""
        self.reader, self.writer = await asyncio.open_connection(
            self.host, self.port
        )

    async def disconnect(self) -> None:
        """Close connection to server."""
        if self.writer:
            self.writer.close()
            try:
                await self.writer.wait_closed()
            except Exception:
                pass

    async def send_command(self, command: str) -> str:
        """
        Send a command and receive the response.

        Args:
            command: Command string (newline will be added if missing)

        Returns:
            Response string (stripped of trailing newline)
        """
        if not command.endswith('\n'):
            command += '\n'

        self.writer.write(command.encode())
        await self.writer.drain()

        response = await self.reader.readline()
        return response.decode().strip()

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )

