"""
SSH bridge for SoCs whose bus is mapped into a remote host's memory
"""

import logging
import subprocess

from ..errors import BridgeError
from .base import BridgeBase, check_word

logger = logging.getLogger(__name__)


class SSHBridge(BridgeBase):
    """
    Bridge running ``devmem`` (or a compatible tool) on a remote host over SSH
    """

    def __init__(
        self,
        host: str,
        username: str | None = None,
        key_file: str | None = None,
        tool: str = "devmem",
        timeout: float = 30.0,
    ) -> None:
        """
        Args:
            host: SSH host to connect to
            username: SSH username (optional, uses current user if not specified)
            key_file: Path to SSH private key file (optional)
            tool: Memory access tool on the remote system (default: "devmem")
            timeout: Seconds to wait for each remote command
        """
        self.host = host
        self.username = username
        self.key_file = key_file
        self.tool = tool
        self.timeout = timeout

        self.ssh_cmd = ["ssh"]
        if key_file:
            self.ssh_cmd.extend(["-i", key_file])
        self.ssh_cmd.append(f"{username}@{host}" if username else host)

    def open(self) -> None:
        """Check that the host is reachable"""
        self._run_remote_command("true")

    def _run_remote_command(self, command: str) -> str:
        """Execute a command on the remote system"""
        try:
            result = subprocess.run(
                [*self.ssh_cmd, command], capture_output=True, text=True, timeout=self.timeout
            )
        except subprocess.TimeoutExpired:
            raise BridgeError(f"Remote command timed out: {command}") from None
        except OSError as e:
            raise BridgeError(f"Failed to execute remote command: {e}") from e
        if result.returncode != 0:
            raise BridgeError(f"Remote command `{command}` failed: {result.stderr.strip()}")
        return result.stdout.strip()

    def peek(self, address: int) -> int:
        """Read a word with ``devmem <address> 32``"""
        output = self._run_remote_command(f"{self.tool} 0x{address:x} 32")
        try:
            value = int(output.splitlines()[-1].strip(), 0)
        except (IndexError, ValueError):
            raise BridgeError(f"Failed to parse remote read output: {output!r}") from None
        logger.debug("peek %#010x -> %#010x", address, value)
        return value

    def poke(self, address: int, value: int) -> None:
        """Write a word with ``devmem <address> 32 <value>``"""
        check_word(value)
        self._run_remote_command(f"{self.tool} 0x{address:x} 32 0x{value:x}")
        logger.debug("poke %#010x <- %#010x", address, value)
