"""
TTL-Cache: In-Memory Key-Value Cache

A thread-safe key-value cache with per-entry time-to-live expiry and
on-demand snapshots, served over a line-based TCP protocol built on
Python asyncio.
"""

__version__ = "1.0.0"
