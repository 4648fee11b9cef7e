"""
Lifecycle Module

Startup and shutdown sequencing for a running cache service.

Shutdown order matters: the network server stops first so no new commands
arrive, then the worker pool drains, and only then is the store's expiry
scheduler stopped. Stopping the scheduler first would let in-flight SET
commands fail against a shut-down scheduler.
"""

import asyncio
import logging
from typing import Optional

from .cache.store import CacheStore
from .config.settings import settings
from .network.tcp_server import CacheServer

logger = logging.getLogger(__name__)


class CacheLifecycle:
    """
    Owns a CacheStore and the CacheServer in front of it.

    Usage:
        lifecycle = CacheLifecycle(CacheStore(default_ttl=5000), port=8080)
        await lifecycle.start()   # returns once stop() has run

    Attributes:
        store: The cache store being served
        server: The TCP front end
        grace: Seconds allowed for expiry callbacks to drain on stop
    """

    def __init__(
            self,
            store: CacheStore,
            server: CacheServer = None,
            grace: float = None,
            **server_options,
    ):
        self.store = store
        self.server = server if server is not None else CacheServer(store=store, **server_options)
        self.grace = grace if grace is not None else settings.SHUTDOWN_GRACE_SECONDS

        self._stopped = False
        self._drained = False
        self._stop_lock: Optional[asyncio.Lock] = None

    @property
    def stopped(self) -> bool:
        return self._stopped

    async def start(self) -> None:
        """Serve until stop() is called or the task is cancelled."""
        logger.info(f"Starting cache service (default TTL {self.store.default_ttl} ms)")
        await self.server.start()

    async def stop(self) -> bool:
        """
        Stop serving and release every resource. Safe to call repeatedly.

        Returns:
            True if the expiry scheduler drained within the grace period
        """
        if self._stop_lock is None:
            self._stop_lock = asyncio.Lock()

        async with self._stop_lock:
            if self._stopped:
                return self._drained

            logger.info("Stopping network server")
            await self.server.stop()

            logger.info("Stopping expiry scheduler")
            loop = asyncio.get_running_loop()
            drained = await loop.run_in_executor(None, self.store.shutdown, self.grace)
            self._drained = drained
            self._stopped = True

        if not drained:
            logger.warning(f"Expiry scheduler still busy after {self.grace}s grace period")
        logger.info("Cache service stopped")
        return drained
