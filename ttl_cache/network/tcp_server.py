"""
Async TCP Server Module

This module implements the asynchronous TCP front end for TTL-Cache.

Connections are accepted and read on the asyncio event loop. Each parsed
command is executed on a worker thread pool, so a slow snapshot dump or
load never blocks other clients.
"""

import asyncio
import logging
import os
from asyncio import StreamReader, StreamWriter
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Set

from ..cache.errors import SnapshotFormatError, SnapshotIOError
from ..cache.store import CacheStore
from ..config.settings import settings
from ..protocol.commands import Command, CommandType, Response
from ..protocol.parser import ProtocolParser

logger = logging.getLogger(__name__)


class CacheServer:
    """
    Asynchronous TCP server for the TTL-Cache service.

    Features:
    - Non-blocking I/O with asyncio
    - Persistent connections (multiple commands per connection)
    - Store operations on a bounded worker thread pool
    - Graceful error handling and connection cleanup
    - Shared CacheStore across all connections

    Usage:
        server = CacheServer(host='127.0.0.1', port=8080, store=CacheStore())
        await server.start()  # Runs until stop() is awaited

    Attributes:
        host: Server bind address
        port: Server port number
        store: The CacheStore instance shared by all connections
        parser: The ProtocolParser for parsing commands
        snapshot_dir: Base directory for relative DUMP/LOAD filenames
    """

    def __init__(
            self,
            host: str = None,
            port: int = None,
            store: CacheStore = None,
            workers: int = None,
            snapshot_dir: str = None,
    ):
        """
        Initialize the server.

        Args:
            host: Bind address (default from settings)
            port: Port number (default from settings)
            store: CacheStore instance (creates new one if not provided)
            workers: Worker thread count (default from settings.WORKER_THREADS)
            snapshot_dir: Base for relative snapshot paths (default from settings)
        """
        self.host = host if host is not None else settings.HOST
        self.port = port if port is not None else settings.PORT
        self.store = store if store is not None else CacheStore()
        self.snapshot_dir = snapshot_dir if snapshot_dir is not None else settings.SNAPSHOT_DIR
        self.parser = ProtocolParser()

        self._executor = ThreadPoolExecutor(
            max_workers=workers if workers is not None else settings.WORKER_THREADS,
            thread_name_prefix="cache-worker",
        )

        # Server state
        self._server: Optional[asyncio.Server] = None
        self._running = False
        self._clients: Set[StreamWriter] = set()
        self._connection_count = 0
        self._total_requests = 0

    async def handle_client(
            self,
            reader: StreamReader,
            writer: StreamWriter
    ) -> None:
        """
        Handle a single client connection.

        Reads commands line by line, executes them and writes one response
        line per command until the client disconnects or sends QUIT.
        """
        addr = writer.get_extra_info('peername')
        self._connection_count += 1
        self._clients.add(writer)
        logger.debug(f"Client connected: {addr}")

        try:
            while True:
                try:
                    data = await reader.readline()
                except ValueError:
                    # readline() raises ValueError when a line exceeds the stream limit
                    logger.warning(f"Request line too long from {addr}, closing connection")
                    break
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
                    response = await self._dispatch(command)

                writer.write(self.parser.format_response(response).encode())
                await writer.drain()

        except (ConnectionResetError, BrokenPipeError):
            logger.debug(f"Connection reset by client: {addr}")
        except Exception as exc:  # Log unexpected errors but keep server alive
            logger.exception(f"Error handling client {addr}: {exc}")
        finally:
            self._clients.discard(writer)
            try:
                writer.close()
                await writer.wait_closed()
            except Exception:
                pass

    async def _dispatch(self, command: Command) -> Response:
        """Run a command on the worker pool, mapping faults to a server error."""
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(self._executor, self._execute_command, command)
        except Exception as exc:
            logger.exception(f"Unhandled error executing {command.type.name}: {exc}")
            return Response.server_error(str(exc))

    def _execute_command(self, command: Command) -> Response:
        """
        Execute a parsed command on the store.

        Runs on a worker thread. Expected failures (bad TTL, snapshot IO or
        format problems) become ERROR responses; anything else propagates
        to _dispatch.
        """
        if command.type == CommandType.SET:
            try:
                self.store.set(command.key, command.value, ttl=command.ttl)
            except ValueError as exc:
                return Response.error(f"invalid ttl: {exc}")
            return Response.stored()

        if command.type == CommandType.GET:
            return Response.value_response(self.store.get(command.key))

        if command.type == CommandType.REMOVE:
            return Response.value_response(self.store.remove(command.key))

        if command.type == CommandType.DUMP:
            try:
                self.store.dump(self.resolve_path(command.filename))
            except (SnapshotIOError, SnapshotFormatError) as exc:
                logger.warning(f"Dump to {command.filename} failed: {exc}")
                return Response.error(f"dump failed: {exc}")
            return Response.dumped()

        if command.type == CommandType.LOAD:
            try:
                count = self.store.load(self.resolve_path(command.filename))
            except (SnapshotIOError, SnapshotFormatError) as exc:
                logger.warning(f"Load from {command.filename} failed: {exc}")
                return Response.error(f"load failed: {exc}")
            return Response.loaded(count)

        return Response.error("invalid command")

    def resolve_path(self, filename: str) -> str:
        """Resolve a client-supplied snapshot filename against snapshot_dir."""
        if os.path.isabs(filename):
            return filename
        return os.path.join(self.snapshot_dir, filename)

    async def start(self) -> None:
        """
        Start the server and begin accepting connections.

        Runs until stop() is called or the task is cancelled.

        Example:
            server = CacheServer(port=8080)
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
        logger.info(f"Serving on {addrs}")

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

        Stops accepting connections, closes open client connections and
        waits for in-flight commands on the worker pool to finish. The
        store itself is not shut down here; see CacheLifecycle.
        """
        if self._server is not None:
            self._server.close()
            for writer in list(self._clients):
                writer.close()
            try:
                await self._server.wait_closed()
            finally:
                self._server = None
                self._running = False

        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._executor.shutdown, True)

    def is_running(self) -> bool:
        """Check if the server is currently running."""
        return self._running

    def get_stats(self) -> dict:
        """
        Get server statistics.

        Returns:
            Dictionary with server stats including connection counts,
            request counts, and store statistics.
        """
        return {
            "running": self._running,
            "host": self.host,
            "port": self.port,
            "active_connections": len(self._clients),
            "total_connections": self._connection_count,
            "total_requests": self._total_requests,
            "store_stats": self.store.get_stats(),
        }
