"""
Integration tests for wtcache

These tests verify the complete system working together:
- Server, worker pool, service, cache and SQLite store
- Cache hits served without touching the store
- Store outages reported as errors, then recovered from

Run with: python -m pytest tests/test_integration.py -v
"""

import asyncio

import pytest
import pytest_asyncio
from sqlalchemy import select

from tests.conftest import AsyncClient
from wtcache.cache.lru import LRUCache
from wtcache.network.tcp_server import KVServer
from wtcache.service.kv_service import KVService
from wtcache.storage.backend import kv_store
from wtcache.workers.pool import WorkerPool


def stored_value(backend, key: int):
    """Read a row straight from the table."""
    with backend.engine.connect() as conn:
        return conn.execute(
            select(kv_store.c["value"]).where(kv_store.c["key"] == key)
        ).scalar_one_or_none()


@pytest_asyncio.fixture
async def probing_server(backend, server_port):
    """
    Single-worker server whose connection is probed before every statement.

    Gives the outage tests a deterministic worker and health check.
    """
    workers = WorkerPool(backend, size=1, health_check_interval=0)
    workers.start()
    srv = KVServer(KVService(LRUCache(capacity=10)), workers, host='127.0.0.1', port=server_port)
    server_task = asyncio.create_task(srv.start())
    await asyncio.sleep(0.1)

    yield srv

    await srv.stop()
    server_task.cancel()
    try:
        await server_task
    except asyncio.CancelledError:
        pass
    workers.shutdown()


@pytest.mark.asyncio
@pytest.mark.integration
class TestEndToEnd:
    """End-to-end integration tests."""

    async def test_complete_workflow(self, server, server_port, backend):
        """Test create, cached read, delete, absent read against the store."""
        async with AsyncClient('127.0.0.1', server_port) as client:
            assert await client.send_command("PUT 5 x") == "OK stored"
            assert stored_value(backend, 5) == "x"

            selects = backend.calls["select"]
            assert await client.send_command("GET 5") == "OK x"
            assert backend.calls["select"] == selects

            assert await client.send_command("DELETE 5") == "OK deleted"
            assert await client.send_command("GET 5") == "ERROR not found"
            assert stored_value(backend, 5) is None

    async def test_store_is_source_of_truth(self, server, server_port, backend):
        """Test rows written behind the cache's back are served on a miss."""
        with backend.engine.begin() as conn:
            conn.execute(kv_store.insert().values(key=77, value="preloaded"))

        async with AsyncClient('127.0.0.1', server_port) as client:
            assert await client.send_command("GET 77") == "OK preloaded"

        assert server.service.cache.peek("77") == "preloaded"

    async def test_evicted_keys_still_readable(self, server, server_port):
        """Test keys pushed out of the cache are read back from the store."""
        async with AsyncClient('127.0.0.1', server_port) as client:
            for i in range(20):
                assert await client.send_command(f"PUT {i} v{i}") == "OK stored"

            assert server.service.cache.size() == 5
            for i in range(20):
                assert await client.send_command(f"GET {i}") == f"OK v{i}"

    async def test_multiple_clients_shared_state(self, server, server_port):
        """Test that multiple clients share the same state."""
        async with AsyncClient('127.0.0.1', server_port) as client1:
            await client1.send_command("PUT 10 shared_value")

        async with AsyncClient('127.0.0.1', server_port) as client2:
            assert await client2.send_command("GET 10") == "OK shared_value"
            await client2.send_command("PUT 10 updated_value")

        async with AsyncClient('127.0.0.1', server_port) as client3:
            assert await client3.send_command("GET 10") == "OK updated_value"

    async def test_error_recovery(self, server, server_port):
        """Test server continues working after errors."""
        async with AsyncClient('127.0.0.1', server_port) as client:
            await client.send_command("INVALID_COMMAND")
            await client.send_command("PUT")
            await client.send_command("GET key")

            assert await client.send_command("PUT 1 value") == "OK stored"
            assert await client.send_command("GET 1") == "OK value"


@pytest.mark.asyncio
@pytest.mark.integration
class TestStoreOutage:
    """Test behaviour while the backing store is unreachable."""

    async def test_outage_and_recovery(self, probing_server, server_port, backend):
        """Test writes fail during an outage and succeed once the store returns."""
        async with AsyncClient('127.0.0.1', server_port) as client:
            assert await client.send_command("PUT 1 before") == "OK stored"

            backend.fail_ping = True
            backend.fail_connect = True

            assert await client.send_command("PUT 2 during") == "ERROR store unavailable"
            assert await client.send_command("GET 3") == "ERROR store unavailable"
            assert await client.send_command("DELETE 1") == "ERROR store unavailable"

            backend.fail_ping = False
            backend.fail_connect = False

            assert await client.send_command("PUT 2 after") == "OK stored"
            assert await client.send_command("GET 2") == "OK after"

        assert stored_value(backend, 1) == "before"
        assert stored_value(backend, 2) == "after"

    async def test_cached_reads_during_outage(self, probing_server, server_port, backend):
        """Test cached keys are still served while the store is down."""
        async with AsyncClient('127.0.0.1', server_port) as client:
            await client.send_command("PUT 1 cached")

            backend.fail_ping = True
            backend.fail_connect = True

            assert await client.send_command("GET 1") == "OK cached"
            assert await client.send_command("GET 2") == "ERROR store unavailable"

    async def test_unavailable_is_not_not_found(self, probing_server, server_port, backend):
        """Test an outage is never reported as a missing key."""
        backend.fail_connect = True

        async with AsyncClient('127.0.0.1', server_port) as client:
            response = await client.send_command("GET 404")

        assert response == "ERROR store unavailable"

    async def test_failed_probe_reconnects_transparently(self, probing_server, server_port, backend):
        """Test a dead connection is replaced without the client noticing."""
        async with AsyncClient('127.0.0.1', server_port) as client:
            await client.send_command("PUT 1 one")
            connects = backend.calls["connect"]

            backend.fail_ping = True
            assert await client.send_command("PUT 2 two") == "OK stored"

        assert backend.calls["connect"] == connects + 1


@pytest.mark.asyncio
@pytest.mark.integration
@pytest.mark.slow
class TestStress:
    """Stress tests for the server."""

    async def test_sustained_load(self, server, server_port):
        """Test sustained request load from several clients."""
        async def client_task(client_id: int):
            async with AsyncClient('127.0.0.1', server_port) as client:
                for i in range(50):
                    key = client_id * 1000 + i
                    assert await client.send_command(f"PUT {key} v{i}") == "OK stored"
                    assert await client.send_command(f"GET {key}") == f"OK v{i}"

        await asyncio.gather(*[client_task(c) for c in range(5)])
