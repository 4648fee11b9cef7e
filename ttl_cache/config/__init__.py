"""Configuration module for TTL-Cache."""

from .settings import Settings, settings

__all__ = ["Settings", "settings"]
