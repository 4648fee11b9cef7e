"""Network module for TTL-Cache."""

from .tcp_server import CacheServer

__all__ = ["CacheServer"]
