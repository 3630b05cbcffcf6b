"""
Operation Result Definitions

Store calls and service operations report their outcome as an OpResult
value instead of raising. Callers branch on `ok` and `error`.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """Enumeration of failure kinds."""
    VALIDATION = "validation"
    CONNECTION_UNAVAILABLE = "connection_unavailable"
    STORE_REJECTED = "store_rejected"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class OpResult:
    """
    Outcome of a store call or service operation.

    Attributes:
        ok: True if the operation succeeded
        value: The value read (successful reads only)
        error: The failure kind (failed operations only)
        message: Optional detail for logs and error responses
    """
    ok: bool
    value: Optional[str] = None
    error: Optional[ErrorKind] = None
    message: str = ""

    @classmethod
    def success(cls, value: Optional[str] = None) -> "OpResult":
        """Create a successful result."""
        return cls(ok=True, value=value)

    @classmethod
    def not_found(cls) -> "OpResult":
        """No matching row (read) or zero rows affected (delete)."""
        return cls(ok=False, error=ErrorKind.NOT_FOUND, message="not found")

    @classmethod
    def unavailable(cls, message: str = "store unavailable") -> "OpResult":
        """No usable connection to the backing store."""
        return cls(ok=False, error=ErrorKind.CONNECTION_UNAVAILABLE, message=message)

    @classmethod
    def rejected(cls, message: str = "store error") -> "OpResult":
        """The store executed the statement but reported a failure."""
        return cls(ok=False, error=ErrorKind.STORE_REJECTED, message=message)

    @classmethod
    def invalid(cls, message: str = "invalid key") -> "OpResult":
        """Input could not be canonicalized."""
        return cls(ok=False, error=ErrorKind.VALIDATION, message=message)

    @property
    def is_not_found(self) -> bool:
        return self.error is ErrorKind.NOT_FOUND

    @property
    def is_unavailable(self) -> bool:
        return self.error is ErrorKind.CONNECTION_UNAVAILABLE
