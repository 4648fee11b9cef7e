#!/usr/bin/env python3
"""
TTL-Cache Server Entry Point

This is the main entry point for starting the TTL-Cache server.

Usage:
    python -m ttl_cache.server                    # Default settings (127.0.0.1:8080)
    python -m ttl_cache.server --port 9090        # Custom port
    python -m ttl_cache.server --ttl 10000        # Default TTL of 10 seconds
    python -m ttl_cache.server --debug            # Enable debug logging

Environment Variables:
    TTL_CACHE_HOST            - Server bind address
    TTL_CACHE_PORT            - Server port
    TTL_CACHE_DEFAULT_TTL_MS  - Default entry TTL in milliseconds
    TTL_CACHE_WORKER_THREADS  - Request worker pool size
    TTL_CACHE_SNAPSHOT_DIR    - Base directory for DUMP/LOAD filenames
    TTL_CACHE_DEBUG           - Enable debug mode (true/false)
"""

import argparse
import asyncio
import logging
import signal
import sys

from .cache.store import CacheStore
from .config.settings import settings
from .lifecycle import CacheLifecycle


def positive_int(text: str) -> int:
    """argparse type for strictly positive integers."""
    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"{text!r} is not an integer") from None
    if value <= 0:
        raise argparse.ArgumentTypeError(f"{value} must be positive")
    return value


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="TTL-Cache: In-Memory Key-Value Cache Server",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--host",
        type=str,
        default=settings.HOST,
        help="Host address to bind to",
    )

    parser.add_argument(
        "--port",
        type=int,
        default=settings.PORT,
        help="Port number to listen on",
    )

    parser.add_argument(
        "--ttl",
        type=positive_int,
        default=settings.DEFAULT_TTL_MS,
        help="Default entry TTL in milliseconds",
    )

    parser.add_argument(
        "--workers",
        type=positive_int,
        default=settings.WORKER_THREADS,
        help="Number of request worker threads",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        default=settings.DEBUG,
        help="Enable debug logging",
    )

    return parser.parse_args(argv)


def setup_logging(debug: bool = False) -> None:
    """Configure logging based on debug flag."""
    level = logging.DEBUG if debug else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
        ]
    )


def main(argv=None) -> None:
    """Main entry point for the server."""
    args = parse_args(argv)

    setup_logging(debug=args.debug)
    logger = logging.getLogger(__name__)

    store = CacheStore(default_ttl=args.ttl)
    lifecycle = CacheLifecycle(
        store,
        host=args.host,
        port=args.port,
        workers=args.workers,
    )

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    async def shutdown(sig: signal.Signals) -> None:
        """Handle shutdown signal."""
        logger.info(f"Received signal {sig.name}, initiating shutdown...")
        await lifecycle.stop()

    # Register signal handlers (Unix only)
    if sys.platform != 'win32':
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(
                sig,
                lambda s=sig: asyncio.create_task(shutdown(s))
            )

    logger.info("Starting TTL-Cache server")
    logger.info(f"  Host: {args.host}")
    logger.info(f"  Port: {args.port}")
    logger.info(f"  Default TTL: {args.ttl} ms")
    logger.info(f"  Workers: {args.workers}")
    logger.info(f"  Debug: {args.debug}")

    try:
        loop.run_until_complete(lifecycle.start())
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
    except Exception as e:
        logger.error(f"Server error: {e}")
        raise
    finally:
        # The scheduler must drain before the process exits
        loop.run_until_complete(lifecycle.stop())
        loop.run_until_complete(loop.shutdown_asyncgens())
        loop.close()
        logger.info("Server shutdown complete")


if __name__ == "__main__":
    main()
