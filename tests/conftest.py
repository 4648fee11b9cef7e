"""
Pytest Configuration and Fixtures

This module provides shared fixtures and configuration for all tests.
"""

import asyncio
import socket
from contextlib import closing
from typing import AsyncGenerator, Iterator

import pytest
import pytest_asyncio

from ttl_cache.cache.scheduler import ExpiryScheduler
from ttl_cache.cache.store import CacheStore
from ttl_cache.network.tcp_server import CacheServer
from ttl_cache.protocol.parser import ProtocolParser


def find_free_port() -> int:
    """Find an available port for testing."""
    with closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as s:
        s.bind(('', 0))
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return s.getsockname()[1]


# ============================================================================
# Store Fixtures
# ============================================================================

@pytest.fixture
def store() -> Iterator[CacheStore]:
    """A fresh CacheStore with a long default TTL (60 seconds)."""
    cache = CacheStore(default_ttl=60_000)
    yield cache
    cache.shutdown(timeout=1.0)


@pytest.fixture
def short_store() -> Iterator[CacheStore]:
    """A CacheStore whose default TTL is short enough to observe (300 ms)."""
    cache = CacheStore(default_ttl=300)
    yield cache
    cache.shutdown(timeout=1.0)


@pytest.fixture
def scheduler() -> Iterator[ExpiryScheduler]:
    """A started ExpiryScheduler with one timer thread."""
    sched = ExpiryScheduler(threads=1, name="test")
    sched.start()
    yield sched
    sched.shutdown(timeout=1.0)


# ============================================================================
# Protocol Fixtures
# ============================================================================

@pytest.fixture
def parser() -> ProtocolParser:
    """Create a ProtocolParser instance."""
    return ProtocolParser()


# ============================================================================
# Server Fixtures
# ============================================================================

@pytest.fixture
def server_port() -> int:
    """Get a free port for server testing."""
    return find_free_port()


@pytest_asyncio.fixture
async def server(server_port: int, tmp_path) -> AsyncGenerator[CacheServer, None]:
    """
    Create and start a server instance for testing.

    This fixture:
    1. Creates a CacheServer on a random free port, with snapshots under tmp_path
    2. Starts it in a background task
    3. Yields the server for testing
    4. Stops the server and shuts down its store
    """
    cache = CacheStore(default_ttl=60_000)
    srv = CacheServer(
        host='127.0.0.1',
        port=server_port,
        store=cache,
        workers=4,
        snapshot_dir=str(tmp_path),
    )

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
    cache.shutdown(timeout=1.0)


# ============================================================================
# Client Fixtures
# ============================================================================

class AsyncClient:
    """
    Helper class for testing server interactions.

    Usage:
        async with AsyncClient('127.0.0.1', port) as client:
            response = await client.send_command("SET key value")
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


@pytest.fixture
def client_factory(server_port: int):
    """
    Factory fixture to create test clients.

    Usage:
        async def test_something(server, client_factory):
            async with client_factory() as client:
                response = await client.send_command("GET key")
    """
    def factory() -> AsyncClient:
        return AsyncClient('127.0.0.1', server_port)
    return factory


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
