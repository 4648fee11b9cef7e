"""
Tests for the Blocking Client

These tests drive CacheClient against a live server. The client blocks, so
every call runs in a worker thread to keep the server's event loop free.

Run with: python -m pytest tests/test_client.py -v
"""

import asyncio

import pytest

from ttl_cache.client import CacheClient, CacheClientError


@pytest.fixture
def client(server_port):
    """A CacheClient pointed at the test server port (connects lazily)."""
    cache_client = CacheClient('127.0.0.1', server_port, timeout=2.0)
    yield cache_client
    cache_client.close()


@pytest.mark.asyncio
class TestClientOperations:
    """Test typed operations over the wire."""

    async def test_set_get_remove(self, server, client):
        """Test the basic key lifecycle."""
        assert await asyncio.to_thread(client.set, "key", "value") is True
        assert await asyncio.to_thread(client.get, "key") == "value"
        assert await asyncio.to_thread(client.remove, "key") == "value"
        assert await asyncio.to_thread(client.get, "key") is None

    async def test_missing_key(self, server, client):
        """Test absent keys come back as None."""
        assert await asyncio.to_thread(client.get, "nope") is None
        assert await asyncio.to_thread(client.remove, "nope") is None

    async def test_value_that_looks_like_a_status(self, server, client):
        """Test a stored value equal to a status word is returned as-is."""
        await asyncio.to_thread(client.set, "key", "stored")
        assert await asyncio.to_thread(client.get, "key") == "stored"

    async def test_set_with_ttl(self, server, client):
        """Test an explicit TTL reaches the store."""
        await asyncio.to_thread(client.set, "key", "value", 60_000)
        assert server.store.get("key") == "value"

    async def test_dump_and_load(self, server, client, tmp_path):
        """Test snapshot commands through the client."""
        await asyncio.to_thread(client.set, "a", "1")
        await asyncio.to_thread(client.set, "b", "2")
        await asyncio.to_thread(client.dump, "client.snap")
        assert (tmp_path / "client.snap").exists()

        await asyncio.to_thread(client.remove, "a")
        assert await asyncio.to_thread(client.load, "client.snap") == 2
        assert await asyncio.to_thread(client.get, "a") == "1"

    async def test_load_failure_raises(self, server, client):
        """Test an ERROR response becomes CacheClientError."""
        with pytest.raises(CacheClientError, match="load failed"):
            await asyncio.to_thread(client.load, "missing.snap")

    async def test_raw_command(self, server, client):
        """Test send_command returns the raw response line."""
        assert await asyncio.to_thread(client.send_command, "GET key") == "OK not found"

    async def test_context_manager(self, server, server_port):
        """Test the client connects on enter and closes on exit."""
        def run():
            with CacheClient('127.0.0.1', server_port) as cache_client:
                assert cache_client.connected
                cache_client.set("key", "value")
            return cache_client.connected

        assert await asyncio.to_thread(run) is False
        assert server.store.get("key") == "value"


class TestClientValidation:
    """Test argument checks that never touch the network."""

    @pytest.mark.parametrize("ttl", [0, -1, 1.5, True])
    def test_invalid_ttl(self, ttl):
        """Test non-positive TTLs are rejected locally."""
        with pytest.raises(ValueError):
            CacheClient('127.0.0.1', 1).set("key", "value", ttl)

    @pytest.mark.parametrize("value", ["", "two words", "line\nbreak"])
    def test_invalid_value(self, value):
        """Test values the protocol cannot carry are rejected locally."""
        with pytest.raises(ValueError, match="value"):
            CacheClient('127.0.0.1', 1).set("key", value)

    @pytest.mark.parametrize("key", ["", "two words", "tab\tkey"])
    def test_invalid_key(self, key):
        """Test keys the protocol cannot carry are rejected locally."""
        with pytest.raises(ValueError):
            CacheClient('127.0.0.1', 1).get(key)

    def test_connection_refused(self, server_port):
        """Test connecting to a closed port raises CacheClientError."""
        cache_client = CacheClient('127.0.0.1', server_port, timeout=1.0)
        with pytest.raises(CacheClientError):
            cache_client.get("key")
