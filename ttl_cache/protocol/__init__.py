"""Protocol module for TTL-Cache."""

from .commands import NOT_FOUND, Command, CommandType, Response, ResponseStatus
from .parser import ProtocolParser

__all__ = [
    "NOT_FOUND",
    "Command",
    "CommandType",
    "Response",
    "ResponseStatus",
    "ProtocolParser",
]
