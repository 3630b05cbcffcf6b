"""
Async TCP Server Module

Line-protocol front end for wtcache. The event loop only reads, parses and
writes; every store and cache operation runs on the worker pool, where the
executing worker supplies its own backing-store connection.
"""

import asyncio
import logging
from asyncio import StreamReader, StreamWriter
from typing import Optional

from ..config.settings import settings
from ..protocol.commands import Command, CommandType, Response
from ..protocol.parser import ProtocolParser
from ..results import OpResult
from ..service.kv_service import KVService
from ..storage.connection import ConnectionManager
from ..workers.pool import WorkerPool

logger = logging.getLogger(__name__)


class KVServer:
    """
    Asynchronous TCP server for the wtcache service.

    Each client connection is handled in its own coroutine. Commands are
    dispatched to the worker pool and awaited, so a slow store round-trip
    blocks one worker and never the event loop.

    Usage:
        server = KVServer(service, pool, host='0.0.0.0', port=8080)
        await server.start()  # Runs forever

    Attributes:
        host: Server bind address (e.g., '0.0.0.0')
        port: Server port number (e.g., 8080)
        service: The KVService shared by all workers
        pool: The WorkerPool executing commands
        parser: The ProtocolParser for parsing commands
    """

    def __init__(
            self,
            service: KVService,
            pool: WorkerPool,
            host: Optional[str] = None,
            port: Optional[int] = None,
    ):
        """
        Initialize the server.

        Args:
            service: Orchestration service executed by the workers
            pool: Started worker pool
            host: Bind address (default from settings)
            port: Port number (default from settings)
        """
        self.host = host if host is not None else settings.HOST
        self.port = port if port is not None else settings.PORT
        self.service = service
        self.pool = pool
        self.parser = ProtocolParser()

        # Server state
        self._server: Optional[asyncio.Server] = None
        self._running = False
        self._connection_count = 0
        self._total_requests = 0

    async def handle_client(
            self,
            reader: StreamReader,
            writer: StreamWriter
    ) -> None:
        """
        Handle a single client connection.

        Reads commands until the client disconnects or sends QUIT. Each
        valid command is executed on the worker pool.

        Args:
            reader: StreamReader for reading from the client
            writer: StreamWriter for writing to the client
        """
        addr = writer.get_extra_info('peername')
        self._connection_count += 1
        logger.debug(f"Client connected: {addr}")

        try:
            while True:
                data = await reader.readline()
                if not data:
                    logger.debug(f"Client disconnected: {addr}")
                    break

                try:
                    raw = data.decode().rstrip('\r\n')
                except UnicodeDecodeError:
                    response = Response.error("invalid encoding")
                    writer.write(self.parser.format_response(response).encode())
                    await writer.drain()
                    continue

                command = self.parser.parse_request(raw)

                if command.type == CommandType.QUIT:
                    logger.debug(f"Client requested quit: {addr}")
                    break

                if not command.is_valid:
                    response = Response.error(command.error or "invalid command")
                else:
                    self._total_requests += 1
                    response = await self.dispatch(command)

                writer.write(self.parser.format_response(response).encode())
                await writer.drain()

        except ConnectionResetError:
            logger.debug(f"Connection reset by client: {addr}")
        except Exception as exc:  # Log unexpected errors but keep server alive
            logger.exception(f"Error handling client {addr}: {exc}")
        finally:
            try:
                writer.close()
                await writer.wait_closed()
            except Exception:
                pass

    async def dispatch(self, command: Command) -> Response:
        """
        Run a command on the worker pool and wait for its response.

        Args:
            command: A valid PUT, GET or DELETE command

        Returns:
            Response object with the result
        """
        try:
            future = self.pool.submit(self._execute, command)
        except RuntimeError:
            logger.warning(f"Rejected {command.type.name} {command.key}: worker pool stopped")
            return Response.unavailable()
        return await asyncio.wrap_future(future)

    def _execute(self, connections: ConnectionManager, command: Command) -> Response:
        """
        Execute a parsed command. Runs on a worker thread.

        Args:
            connections: The executing worker's ConnectionManager
            command: The Command object to execute

        Returns:
            Response object with the result
        """
        if command.type == CommandType.PUT:
            result = self.service.create(connections, command.key, command.value)
        elif command.type == CommandType.GET:
            result = self.service.read(connections, command.key)
        elif command.type == CommandType.DELETE:
            result = self.service.delete(connections, command.key)
        else:
            result = OpResult.invalid("invalid command")

        return Response.from_result(command.type, result)

    async def start(self) -> None:
        """
        Start the server and begin accepting connections.

        Runs until cancelled or stop() is called.

        Example:
            server = KVServer(service, pool, port=8080)
            asyncio.run(server.start())
        """
        if self._running:
            return

        self._server = await asyncio.start_server(
            self.handle_client,
            self.host,
            self.port,
            limit=settings.READ_BUFFER_SIZE,
        )
        self._running = True

        addrs = ', '.join(str(sock.getsockname()) for sock in self._server.sockets or [])
        logger.info(f"Serving on {addrs} with {self.pool.size} workers")

        try:
            async with self._server:
                await self._server.serve_forever()
        except asyncio.CancelledError:
            # Expected during shutdown/fixture cleanup
            logger.debug("Server start cancelled")
        finally:
            self._running = False

    async def stop(self) -> None:
        """
        Stop the server gracefully.

        Closes the listening socket and waits for it to fully shut down.
        The worker pool is owned by the caller and is not stopped here.
        """
        if self._server is None:
            return

        self._server.close()
        try:
            await self._server.wait_closed()
        finally:
            self._server = None
            self._running = False

    def is_running(self) -> bool:
        """Check if the server is currently running."""
        return self._running

    def get_stats(self) -> dict:
        """
        Get server statistics.

        Returns:
            Dictionary with server stats including connection counts,
            request counts, cache statistics and worker connection state.
        """
        return {
            "running": self._running,
            "host": self.host,
            "port": self.port,
            "total_connections": self._connection_count,
            "total_requests": self._total_requests,
            "cache_stats": self.service.cache.get_stats(),
            "pool_stats": self.pool.get_stats(),
        }
