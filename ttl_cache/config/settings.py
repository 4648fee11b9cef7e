"""
TTL-Cache Configuration Settings

This module contains all configuration constants for the TTL-Cache server.
Values can be overridden through environment variables.
"""

import os
from dataclasses import dataclass


@dataclass
class Settings:
    """Server configuration settings."""

    # Network settings
    HOST: str = os.environ.get("TTL_CACHE_HOST", "127.0.0.1")
    PORT: int = int(os.environ.get("TTL_CACHE_PORT", "8080"))

    # Protocol limits
    MAX_KEY_LENGTH: int = 256
    MAX_VALUE_LENGTH: int = 4096
    READ_BUFFER_SIZE: int = 8192

    # TTL settings (milliseconds)
    DEFAULT_TTL_MS: int = int(os.environ.get("TTL_CACHE_DEFAULT_TTL_MS", "5000"))
    # Longest TTL accepted by the store and the protocol (365 days)
    MAX_TTL_MS: int = int(os.environ.get("TTL_CACHE_MAX_TTL_MS", "31536000000"))

    # Thread pools
    WORKER_THREADS: int = int(os.environ.get("TTL_CACHE_WORKER_THREADS", "10"))
    TIMER_THREADS: int = int(os.environ.get("TTL_CACHE_TIMER_THREADS", "1"))

    # Seconds to wait for in-flight expiry callbacks during shutdown
    SHUTDOWN_GRACE_SECONDS: float = float(os.environ.get("TTL_CACHE_SHUTDOWN_GRACE", "5"))

    # Relative snapshot filenames are resolved against this directory
    SNAPSHOT_DIR: str = os.environ.get("TTL_CACHE_SNAPSHOT_DIR", ".")

    # Logging settings
    DEBUG: bool = os.environ.get("TTL_CACHE_DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.environ.get("TTL_CACHE_LOG_LEVEL", "INFO")


# Global settings instance
settings = Settings()
