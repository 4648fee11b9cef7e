"""
Protocol Command and Response Definitions

This module defines the data structures for protocol commands and responses.
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional


class CommandType(Enum):
    """Enumeration of supported command types."""
    SET = auto()
    GET = auto()
    REMOVE = auto()
    DUMP = auto()
    LOAD = auto()
    QUIT = auto()
    UNKNOWN = auto()


class ResponseStatus(Enum):
    """Enumeration of response statuses."""
    OK = "OK"
    ERROR = "ERROR"


# Absent marker for GET/REMOVE. Contains a space, so it can never be a value.
NOT_FOUND = "not found"


@dataclass
class Command:
    """
    Represents a parsed protocol command.

    Attributes:
        type: The type of command
        key: The key for SET/GET/REMOVE
        value: The value for SET
        ttl: Time-to-live in milliseconds for SET (None = store default)
        filename: Snapshot path for DUMP/LOAD
        error: Why the command was rejected (set for UNKNOWN commands)
        raw: The original raw command string
    """
    type: CommandType
    key: str = ""
    value: str = ""
    ttl: Optional[int] = None
    filename: str = ""
    error: str = ""
    raw: str = ""

    def __post_init__(self):
        """Normalize string fields after initialization."""
        self.key = str(self.key) if self.key else ""
        self.value = str(self.value) if self.value else ""
        self.filename = str(self.filename) if self.filename else ""

    @property
    def is_valid(self) -> bool:
        """Check if the command is valid for its type."""
        if self.type == CommandType.UNKNOWN:
            return False
        if self.type == CommandType.QUIT:
            return True
        if self.type in (CommandType.GET, CommandType.REMOVE):
            return bool(self.key)
        if self.type == CommandType.SET:
            return bool(self.key) and bool(self.value) and (self.ttl is None or self.ttl > 0)
        if self.type in (CommandType.DUMP, CommandType.LOAD):
            return bool(self.filename)
        return False

    @classmethod
    def invalid(cls, error: str, raw: str = "") -> "Command":
        """Create a rejected command carrying the reason."""
        return cls(type=CommandType.UNKNOWN, error=error, raw=raw)


@dataclass
class Response:
    """
    Represents a protocol response.

    Attributes:
        status: OK or ERROR
        message: Response message or error description
        value: The value returned (for GET/REMOVE hits)
    """
    status: ResponseStatus
    message: str = ""
    value: Optional[str] = None

    @property
    def is_ok(self) -> bool:
        return self.status == ResponseStatus.OK

    @classmethod
    def ok(cls, message: str = "", value: Optional[str] = None) -> "Response":
        """Create a successful response."""
        return cls(status=ResponseStatus.OK, message=message, value=value)

    @classmethod
    def error(cls, message: str) -> "Response":
        """Create an error response."""
        return cls(status=ResponseStatus.ERROR, message=message)

    @classmethod
    def stored(cls) -> "Response":
        """Create a 'stored' response for SET operations."""
        return cls.ok(message="stored")

    @classmethod
    def not_found(cls) -> "Response":
        """Successful GET/REMOVE on a key that is absent."""
        return cls.ok(message=NOT_FOUND)

    @classmethod
    def value_response(cls, value: Optional[str]) -> "Response":
        """Create a GET/REMOVE response, falling back to not_found for None."""
        if value is None:
            return cls.not_found()
        return cls.ok(value=value)

    @classmethod
    def dumped(cls) -> "Response":
        return cls.ok(message="dumped")

    @classmethod
    def loaded(cls, count: int) -> "Response":
        return cls.ok(message=f"loaded {count}")

    @classmethod
    def server_error(cls, message: str) -> "Response":
        """Unhandled internal fault."""
        return cls.error(f"server error: {message}")
