"""
Protocol Parser Module

This module handles parsing of raw protocol commands and formatting of
responses, in both directions (server and client).
"""

from typing import Optional

from .commands import Command, CommandType, Response, ResponseStatus
from ..config.settings import settings

_ALIASES = {
    "PUT": "SET",
    "DELETE": "REMOVE",
}


class ProtocolParser:
    """
    Parser for the TTL-Cache text protocol.

    Protocol Format:
        Request:  <COMMAND> [ARGS...]\\n
        Response: <STATUS> [DATA]\\n

    Commands:
        SET <key> <value> [ttl_ms]  -> OK stored
        GET <key>                   -> OK <value> | OK not found
        REMOVE <key>                -> OK <value> | OK not found
        DUMP <filename>             -> OK dumped | ERROR dump failed: ...
        LOAD <filename>             -> OK loaded <n> | ERROR load failed: ...
        QUIT                        -> (connection closed)

    PUT and DELETE are accepted as aliases of SET and REMOVE.

    Constraints:
        - Keys, values and filenames: no whitespace
        - Keys: max settings.MAX_KEY_LENGTH characters
        - Values: max settings.MAX_VALUE_LENGTH characters
        - TTL: integer milliseconds in 1..settings.MAX_TTL_MS; omitted = store default
    """

    def __init__(self):
        """Initialize the parser with constraints from settings."""
        self.max_key_length = settings.MAX_KEY_LENGTH
        self.max_value_length = settings.MAX_VALUE_LENGTH

    def parse_request(self, data: str) -> Command:
        """
        Parse a raw request string into a Command object.

        Args:
            data: Raw request string (may include trailing newline)

        Returns:
            Command object representing the parsed request.
            Returns Command with type=UNKNOWN and an error message for
            invalid/malformed requests.

        Examples:
            >>> parser = ProtocolParser()
            >>> cmd = parser.parse_request("SET mykey myvalue 60000")
            >>> cmd.type == CommandType.SET
            True
            >>> cmd.ttl
            60000
        """
        raw = data.strip()
        if not raw:
            return Command.invalid("empty command", raw)

        parts = raw.split()
        command_name = parts[0].upper()
        command_name = _ALIASES.get(command_name, command_name)

        if command_name == "SET":
            return self._parse_set(parts, raw)
        if command_name in ("GET", "REMOVE"):
            return self._parse_key_command(CommandType[command_name], parts, raw)
        if command_name in ("DUMP", "LOAD"):
            return self._parse_file_command(CommandType[command_name], parts, raw)
        if command_name == "QUIT":
            if len(parts) == 1:
                return Command(type=CommandType.QUIT, raw=raw)
            return Command.invalid("too many arguments", raw)

        return Command.invalid("unknown command", raw)

    def _parse_set(self, parts: list, raw: str) -> Command:
        """
        Parse a SET command.

        Format: SET <key> <value> [ttl_ms]
        """
        if len(parts) < 3:
            return Command.invalid("missing key or value", raw)
        if len(parts) > 4:
            return Command.invalid("too many arguments", raw)

        key, value = parts[1], parts[2]
        if len(key) > self.max_key_length:
            return Command.invalid("key too long", raw)
        if len(value) > self.max_value_length:
            return Command.invalid("value too long", raw)

        ttl = None
        if len(parts) == 4:
            ttl = self.parse_ttl(parts[3])
            if ttl is None:
                return Command.invalid("invalid ttl", raw)

        return Command(type=CommandType.SET, key=key, value=value, ttl=ttl, raw=raw)

    @staticmethod
    def parse_ttl(text: str) -> Optional[int]:
        """Return text as an int in 1..settings.MAX_TTL_MS, or None if it is not one."""
        if not text.isascii() or not text.isdigit():
            return None
        # Longer than any accepted TTL; also keeps int() under its digit limit
        if len(text) > len(str(settings.MAX_TTL_MS)):
            return None
        ttl = int(text)
        return ttl if 0 < ttl <= settings.MAX_TTL_MS else None

    def _parse_key_command(self, command_type: CommandType, parts: list, raw: str) -> Command:
        """
        Parse GET or REMOVE.

        Format: GET <key> | REMOVE <key>
        """
        if len(parts) < 2:
            return Command.invalid("missing key", raw)
        if len(parts) > 2:
            return Command.invalid("too many arguments", raw)

        key = parts[1]
        if len(key) > self.max_key_length:
            return Command.invalid("key too long", raw)

        return Command(type=command_type, key=key, raw=raw)

    def _parse_file_command(self, command_type: CommandType, parts: list, raw: str) -> Command:
        """
        Parse DUMP or LOAD.

        Format: DUMP <filename> | LOAD <filename>
        """
        if len(parts) < 2:
            return Command.invalid("missing filename", raw)
        if len(parts) > 2:
            return Command.invalid("too many arguments", raw)

        return Command(type=command_type, filename=parts[1], raw=raw)

    def format_response(self, response: Response) -> str:
        """
        Format a Response object into a protocol string.

        Returns:
            Formatted response string WITH trailing newline.

        Examples:
            >>> parser = ProtocolParser()
            >>> parser.format_response(Response.stored())
            'OK stored\\n'
            >>> parser.format_response(Response.value_response("hello"))
            'OK hello\\n'
            >>> parser.format_response(Response.not_found())
            'OK not found\\n'
        """
        prefix = response.status.value

        # If value is provided (GET/REMOVE hit), prefer it; otherwise use message
        if response.value is not None:
            body = response.value
        else:
            body = response.message

        # Keep every response on a single line
        body = body.replace("\r", " ").replace("\n", " ")

        if body:
            return f"{prefix} {body}\n"
        return f"{prefix}\n"

    def parse_response(self, line: str) -> Response:
        """
        Parse a response line received by a client.

        The body is returned in Response.message; whether it is a value or
        a status message depends on the command that was sent.

        Raises:
            ValueError: If the line does not start with a known status
        """
        text = line.rstrip("\r\n")
        status_text, _, body = text.partition(" ")
        try:
            status = ResponseStatus(status_text)
        except ValueError:
            raise ValueError(f"malformed response: {text!r}") from None
        return Response(status=status, message=body)
