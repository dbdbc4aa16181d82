import logging
from collections.abc import Iterable

from ..errors import BridgeError
from .base import WORD_MASK, BridgeBase, check_word

logger = logging.getLogger(__name__)


class MockBridge(BridgeBase):
    """
    Mock bridge for testing without hardware

    Simulates the bus in memory and records every access. Addresses listed in
    ``fail_at`` raise ``BridgeError`` when touched.
    """

    def __init__(self, memory: dict[int, int] | None = None, fail_at: Iterable[int] = ()) -> None:
        self.memory: dict[int, int] = dict(memory or {})
        self.fail_at: set[int] = set(fail_at)
        self.reads: list[int] = []
        self.writes: list[tuple[int, int]] = []

    def peek(self, address: int) -> int:
        """Read from simulated memory"""
        if address in self.fail_at:
            raise BridgeError(f"Simulated read failure at {address:#010x}")
        self.reads.append(address)
        value = self.memory.get(address, 0)
        logger.debug("peek %#010x -> %#010x", address, value)
        return value

    def poke(self, address: int, value: int) -> None:
        """Write to simulated memory"""
        check_word(value)
        if address in self.fail_at:
            raise BridgeError(f"Simulated write failure at {address:#010x}")
        self.writes.append((address, value))
        self.memory[address] = value & WORD_MASK
        logger.debug("poke %#010x <- %#010x", address, value)

    def reset(self) -> None:
        """Clear all stored values and the access history"""
        self.memory.clear()
        self.reads.clear()
        self.writes.clear()
