"""Protocol module for wtcache."""

from .commands import Command, CommandType, Response, ResponseStatus
from .parser import ProtocolParser, canonicalize_key

__all__ = [
    "Command",
    "CommandType",
    "Response",
    "ResponseStatus",
    "ProtocolParser",
    "canonicalize_key",
]
