"""
Protocol Parser Module

This module handles parsing of raw protocol commands, key canonicalization,
and formatting of responses.
"""

import re
from typing import Optional

from .commands import Command, CommandType, Response
from ..config.settings import settings

INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1

_KEY_PATTERN = re.compile(r"[+-]?[0-9]+")

# PUT <key> <value>: the value is everything after the single separator that
# follows the key, kept exactly as sent
_PUT_PATTERN = re.compile(r"(\S+)\s+(\S+)\s(.*)", re.DOTALL)


def canonicalize_key(text: str) -> Optional[int]:
    """
    Normalize a textual key to its canonical 64-bit integer.

    Args:
        text: Key as sent by the client

    Returns:
        The integer key, or None if text is not a decimal integer in the
        signed 64-bit range

    Examples:
        >>> canonicalize_key("07")
        7
        >>> canonicalize_key("-12")
        -12
        >>> canonicalize_key("7a") is None
        True
    """
    if not _KEY_PATTERN.fullmatch(text):
        return None

    key = int(text)
    if key < INT64_MIN or key > INT64_MAX:
        return None
    return key


class ProtocolParser:
    """
    Parser for the wtcache text protocol.

    Protocol Format:
        Request:  <COMMAND> [ARGS...]\n
        Response: <STATUS> [DATA]\n

    Commands:
        PUT <key> <value>   -> OK stored | ERROR store unavailable | ERROR store error
        GET <key>           -> OK <value> | ERROR not found | ERROR store unavailable
        DELETE <key>        -> OK deleted | ERROR not found | ERROR store unavailable
        QUIT                -> (connection closed)

    Constraints:
        - Keys: decimal integers in the signed 64-bit range
        - Values: rest of the line after the key and one separator, kept
          untrimmed, non-empty, max MAX_VALUE_LENGTH characters
    """

    def __init__(self):
        """Initialize the parser with constraints from settings."""
        self.max_value_length = settings.MAX_VALUE_LENGTH

    def parse_request(self, data: str) -> Command:
        """
        Parse a raw request string into a Command object.

        Args:
            data: Raw request string (may include trailing newline)

        Returns:
            Command object representing the parsed request.
            Returns Command with type=UNKNOWN for invalid/malformed requests.

        Examples:
            >>> parser = ProtocolParser()
            >>> cmd = parser.parse_request("PUT 07 hello world")
            >>> cmd.type == CommandType.PUT
            True
            >>> cmd.key
            7
            >>> cmd.value
            'hello world'
        """
        line = data.rstrip("\r\n")
        raw = line.strip()
        if not raw:
            return self._unknown(raw, "invalid command")

        parts = raw.split(maxsplit=2)
        command_name = parts[0].upper()

        if command_name == "PUT":
            return self._parse_put(line, raw)
        if command_name == "GET":
            return self._parse_key_command(CommandType.GET, parts, raw)
        if command_name == "DELETE":
            return self._parse_key_command(CommandType.DELETE, parts, raw)
        if command_name == "QUIT":
            if len(parts) == 1:
                return Command(type=CommandType.QUIT, raw=raw)

        return self._unknown(raw, "invalid command")

    def _parse_put(self, line: str, raw: str) -> Command:
        """
        Parse a PUT command.

        Format: PUT <key> <value>

        The value is not trimmed: leading and trailing spaces after the
        separator belong to it.
        """
        match = _PUT_PATTERN.fullmatch(line.lstrip())
        if match is None or not match.group(3):
            return self._unknown(raw, "invalid command")

        key = canonicalize_key(match.group(2))
        if key is None:
            return self._unknown(raw, "invalid key")

        value = match.group(3)
        if len(value) > self.max_value_length:
            return self._unknown(raw, "value too long")

        return Command(type=CommandType.PUT, key=key, value=value, raw=raw)

    def _parse_key_command(self, command_type: CommandType, parts: list, raw: str) -> Command:
        """
        Parse a GET or DELETE command.

        Format: GET <key> | DELETE <key>
        """
        if len(parts) != 2:
            return self._unknown(raw, "invalid command")

        key = canonicalize_key(parts[1])
        if key is None:
            return self._unknown(raw, "invalid key")

        return Command(type=command_type, key=key, raw=raw)

    @staticmethod
    def _unknown(raw: str, reason: str) -> Command:
        return Command(type=CommandType.UNKNOWN, error=reason, raw=raw)

    def format_response(self, response: Response) -> str:
        """
        Format a Response object into a protocol string.

        Args:
            response: Response object to format

        Returns:
            Formatted response string WITH trailing newline.

        Examples:
            >>> parser = ProtocolParser()
            >>> parser.format_response(Response.stored())
            'OK stored\\n'
            >>> parser.format_response(Response.not_found())
            'ERROR not found\\n'
        """
        prefix = response.status.value

        # If value is provided (GET), prefer it; otherwise use message
        if response.value is not None:
            body = response.value
        else:
            body = response.message

        if body:
            return f"{prefix} {body}\n"
        return f"{prefix}\n"
