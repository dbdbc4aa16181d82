"""
OpenOCD bridge for JTAG access to the SoC's bus
"""

import logging
import socket

from ..errors import BridgeError
from .base import BridgeBase, check_word

logger = logging.getLogger(__name__)

# OpenOCD terminates every TCL server response with this byte
RESPONSE_TERMINATOR = b"\x1a"


class OpenOCDBridge(BridgeBase):
    """
    Bridge using OpenOCD's TCL server

    Words are read with ``mdw`` and written with ``mww``.
    """

    def __init__(self, host: str = "localhost", port: int = 6666, timeout: float = 5.0) -> None:
        """
        Args:
            host: OpenOCD server host
            port: OpenOCD TCL server port (default 6666)
            timeout: Socket timeout in seconds
        """
        self.host = host
        self.port = port
        self.timeout = timeout
        self.socket: socket.socket | None = None

    def open(self) -> None:
        """Connect to the TCL server"""
        if self.socket is not None:
            return
        try:
            self.socket = socket.create_connection((self.host, self.port), timeout=self.timeout)
        except OSError as e:
            raise BridgeError(f"Failed to connect to OpenOCD at {self.host}:{self.port}: {e}") from e
        logger.debug("connected to OpenOCD at %s:%d", self.host, self.port)

    def close(self) -> None:
        """Close the connection"""
        if self.socket is None:
            return
        try:
            self.socket.sendall(b"exit" + RESPONSE_TERMINATOR)
        except OSError:
            logger.debug("OpenOCD connection already gone while closing")
        self.socket.close()
        self.socket = None

    def _send(self, command: str) -> str:
        """Send a command to OpenOCD and return the response"""
        if self.socket is None:
            raise BridgeError("Not connected to OpenOCD")
        data = b""
        try:
            self.socket.sendall(command.encode("utf-8") + RESPONSE_TERMINATOR)
            while not data.endswith(RESPONSE_TERMINATOR):
                chunk = self.socket.recv(4096)
                if not chunk:
                    break
                data += chunk
        except OSError as e:
            raise BridgeError(f"OpenOCD command `{command}` failed: {e}") from e
        if not data.endswith(RESPONSE_TERMINATOR):
            raise BridgeError(f"OpenOCD closed the connection during `{command}`")
        return data[: -len(RESPONSE_TERMINATOR)].decode("utf-8", errors="ignore")

    def peek(self, address: int) -> int:
        """Read a word via ``mdw``"""
        response = self._send(f"mdw 0x{address:x}")
        # Format: "0xADDRESS: VALUE"
        parts = response.split(":")
        try:
            value = int(parts[1].split()[0], 16)
        except (IndexError, ValueError):
            raise BridgeError(f"Failed to parse OpenOCD response: {response!r}") from None
        logger.debug("peek %#010x -> %#010x", address, value)
        return value

    def poke(self, address: int, value: int) -> None:
        """Write a word via ``mww``"""
        check_word(value)
        self._send(f"mww 0x{address:x} 0x{value:x}")
        logger.debug("poke %#010x <- %#010x", address, value)
