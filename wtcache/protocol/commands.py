"""
Protocol Command and Response Definitions

This module defines the data structures for protocol commands and responses,
and the mapping from service results to responses.
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional

from ..results import ErrorKind, OpResult


class CommandType(Enum):
    """Enumeration of supported command types."""
    PUT = auto()
    GET = auto()
    DELETE = auto()
    QUIT = auto()
    UNKNOWN = auto()


class ResponseStatus(Enum):
    """Enumeration of response statuses."""
    OK = "OK"
    ERROR = "ERROR"


@dataclass
class Command:
    """
    Represents a parsed protocol command.

    Attributes:
        type: The type of command (PUT, GET, DELETE, QUIT, UNKNOWN)
        key: The canonical 64-bit key (None for QUIT and UNKNOWN)
        value: The value for PUT operations (empty for other operations)
        error: Why the command was rejected (UNKNOWN only)
        raw: The raw command line as received
    """
    type: CommandType
    key: Optional[int] = None
    value: str = ""
    error: str = ""
    raw: str = ""

    @property
    def is_valid(self) -> bool:
        """Check if the command is valid for its type."""
        if self.type == CommandType.UNKNOWN:
            return False
        if self.type == CommandType.QUIT:
            return True
        if self.type in (CommandType.GET, CommandType.DELETE):
            return self.key is not None
        if self.type == CommandType.PUT:
            return self.key is not None and bool(self.value)
        return False


@dataclass
class Response:
    """
    Represents a protocol response.

    Attributes:
        status: OK or ERROR
        message: Response message or error description
        value: The value returned (for GET operations)
    """
    status: ResponseStatus
    message: str = ""
    value: Optional[str] = None

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
        """Create a 'stored' response for PUT operations."""
        return cls.ok(message="stored")

    @classmethod
    def deleted(cls) -> "Response":
        """Create a 'deleted' response for DELETE operations."""
        return cls.ok(message="deleted")

    @classmethod
    def not_found(cls) -> "Response":
        """Create a 'not found' error response."""
        return cls.error(message="not found")

    @classmethod
    def unavailable(cls) -> "Response":
        """Create a 'store unavailable' error response."""
        return cls.error(message="store unavailable")

    @classmethod
    def value_response(cls, value: str) -> "Response":
        """Create a GET response with a value."""
        return cls.ok(value=value)

    @classmethod
    def from_result(cls, command_type: CommandType, result: OpResult) -> "Response":
        """
        Build the response for a service result.

        Args:
            command_type: The command that produced the result
            result: The service outcome

        Returns:
            Response for the client
        """
        if result.ok:
            if command_type == CommandType.PUT:
                return cls.stored()
            if command_type == CommandType.DELETE:
                return cls.deleted()
            return cls.value_response(result.value)

        if result.error is ErrorKind.NOT_FOUND:
            return cls.not_found()
        if result.error is ErrorKind.CONNECTION_UNAVAILABLE:
            return cls.unavailable()
        if result.error is ErrorKind.VALIDATION:
            return cls.error(result.message or "invalid key")
        return cls.error("store error")
