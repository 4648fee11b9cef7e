#!/usr/bin/env python3
"""
TTL-Cache Client

A blocking TCP client for the TTL-Cache server, plus an interactive shell.

Library usage:
    with CacheClient("127.0.0.1", 8080) as client:
        client.set("user:1", "alice", ttl=60000)
        client.get("user:1")        # "alice"
        client.remove("user:1")     # "alice"
        client.get("user:1")        # None

Shell usage:
    ttl-cache-cli                       # Connect to 127.0.0.1:8080
    ttl-cache-cli --host 1.2.3.4        # Connect to specific host
    ttl-cache-cli --port 9090           # Connect to specific port
"""

import argparse
import socket
import sys
from typing import Optional

from .config.settings import settings
from .protocol.commands import NOT_FOUND, Response
from .protocol.parser import ProtocolParser

# Enable command history with arrow keys (works on Unix systems)
try:
    import readline  # noqa: F401
except ImportError:
    pass  # readline not available on Windows by default


class CacheClientError(Exception):
    """Raised for connection failures and ERROR responses."""


class CacheClient:
    """Simple blocking TCP client for TTL-Cache."""

    def __init__(self, host: str = None, port: int = None, timeout: float = 5.0):
        self.host = host if host is not None else settings.HOST
        self.port = port if port is not None else settings.PORT
        self.timeout = timeout
        self.socket: Optional[socket.socket] = None
        self.parser = ProtocolParser()
        self._buffer = b""

    @property
    def connected(self) -> bool:
        return self.socket is not None

    def connect(self) -> None:
        """
        Connect to the server.

        Raises:
            CacheClientError: If the connection cannot be established
        """
        if self.socket is not None:
            return
        try:
            self.socket = socket.create_connection((self.host, self.port), timeout=self.timeout)
        except OSError as exc:
            raise CacheClientError(f"cannot connect to {self.host}:{self.port}: {exc}") from exc
        self._buffer = b""

    def close(self) -> None:
        """Disconnect from the server."""
        if self.socket is None:
            return
        try:
            self.socket.sendall(b"QUIT\n")
        except OSError:
            pass
        finally:
            self.socket.close()
            self.socket = None
            self._buffer = b""

    def __enter__(self) -> "CacheClient":
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def send_command(self, command: str) -> str:
        """
        Send a raw command line and return the raw response line.

        Raises:
            CacheClientError: On timeout or connection loss
        """
        self.connect()

        if not command.endswith('\n'):
            command += '\n'

        try:
            self.socket.sendall(command.encode('utf-8'))
            while b'\n' not in self._buffer:
                chunk = self.socket.recv(4096)
                if not chunk:
                    self.close()
                    raise CacheClientError("connection closed by server")
                self._buffer += chunk
        except socket.timeout as exc:
            self.close()
            raise CacheClientError("request timed out") from exc
        except OSError as exc:
            self.close()
            raise CacheClientError(f"connection error: {exc}") from exc

        line, _, self._buffer = self._buffer.partition(b'\n')
        return line.decode('utf-8')

    def _request(self, command: str) -> Response:
        response = self.parser.parse_response(self.send_command(command))
        if not response.is_ok:
            raise CacheClientError(response.message)
        return response

    @staticmethod
    def _check_token(name: str, text: str) -> None:
        if not text or any(ch.isspace() for ch in text):
            raise ValueError(f"{name} must be non-empty and contain no whitespace")

    def get(self, key: str) -> Optional[str]:
        """Return the value for key, or None if it is absent."""
        self._check_token("key", key)
        body = self._request(f"GET {key}").message
        return None if body == NOT_FOUND else body

    def set(self, key: str, value: str, ttl: Optional[int] = None) -> bool:
        """
        Store a value. ttl is in milliseconds; None uses the server default.

        Raises:
            ValueError: If ttl is not a positive integer
        """
        self._check_token("key", key)
        self._check_token("value", value)
        command = f"SET {key} {value}"
        if ttl is not None:
            if isinstance(ttl, bool) or not isinstance(ttl, int) or ttl <= 0:
                raise ValueError(f"ttl must be a positive integer, got {ttl!r}")
            command += f" {ttl}"
        self._request(command)
        return True

    def remove(self, key: str) -> Optional[str]:
        """Remove key and return its previous value, or None if absent."""
        self._check_token("key", key)
        body = self._request(f"REMOVE {key}").message
        return None if body == NOT_FOUND else body

    def dump(self, filename: str) -> None:
        """Ask the server to write a snapshot to filename."""
        self._check_token("filename", filename)
        self._request(f"DUMP {filename}")

    def load(self, filename: str) -> int:
        """Ask the server to replace its contents with a snapshot. Returns the key count."""
        self._check_token("filename", filename)
        body = self._request(f"LOAD {filename}").message
        _, _, count = body.partition(" ")
        return int(count) if count.isdigit() else 0


def print_help():
    """Print help message."""
    print("""
TTL-Cache Commands:
-------------------
  SET <key> <value> [ttl]   Store a key-value pair (optional TTL in milliseconds)
  GET <key>                 Retrieve the value for a key
  REMOVE <key>              Delete a key and return its value
  DUMP <filename>           Save the cache contents to a file on the server
  LOAD <filename>           Replace the cache contents from a file on the server
  QUIT                      Close connection and exit

Client Commands:
----------------
  help                      Show this help message
  exit                      Exit the client
  reconnect                 Reconnect to the server
  status                    Show connection status

Examples:
---------
  SET mykey myvalue         Store "myvalue" with the default TTL
  SET tempkey tempval 60000 Store with a 60 second TTL
  GET mykey                 Get value for "mykey"
  DUMP backup.snap          Write a snapshot
""")


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Interactive client for TTL-Cache"
    )
    parser.add_argument(
        "--host",
        type=str,
        default=settings.HOST,
        help=f"Server host (default: {settings.HOST})"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=settings.PORT,
        help=f"Server port (default: {settings.PORT})"
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=5.0,
        help="Socket timeout in seconds (default: 5.0)"
    )

    args = parser.parse_args(argv)

    print("TTL-Cache Client")
    print("================")
    print(f"Connecting to {args.host}:{args.port}...")

    client = CacheClient(args.host, args.port, args.timeout)

    try:
        client.connect()
    except CacheClientError as exc:
        print(f"Failed to connect: {exc}")
        print(f"  Try: ttl-cache --port {args.port}")
        sys.exit(1)

    print("Connected! Type 'help' for commands.\n")

    try:
        while True:
            try:
                command = input(">>> ").strip()

                if not command:
                    continue

                lower_cmd = command.lower()

                if lower_cmd == "help":
                    print_help()
                    continue

                if lower_cmd in ("exit", "quit"):
                    print("Goodbye!")
                    break

                if lower_cmd == "reconnect":
                    client.close()
                    try:
                        client.connect()
                        print("Reconnected!")
                    except CacheClientError as exc:
                        print(f"Reconnection failed: {exc}")
                    continue

                if lower_cmd == "status":
                    status = "Connected" if client.connected else "Disconnected"
                    print(f"Status: {status}")
                    print(f"Server: {args.host}:{args.port}")
                    continue

                try:
                    print(client.send_command(command))
                except CacheClientError as exc:
                    print(f"ERROR: {exc}")

            except EOFError:
                print("\nGoodbye!")
                break

    except KeyboardInterrupt:
        print("\n\nInterrupted. Goodbye!")
    finally:
        client.close()


if __name__ == "__main__":
    main()
