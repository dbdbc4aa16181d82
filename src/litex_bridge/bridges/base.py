from abc import ABC, abstractmethod
from types import TracebackType
from typing import Self

from ..errors import BridgeError

WORD_MASK = 0xFFFFFFFF


def check_word(value: int) -> int:
    """Reject values that do not fit in a 32-bit bus word"""
    if not 0 <= value <= WORD_MASK:
        raise ValueError(f"Value {value:#x} does not fit in a 32-bit word")
    return value


class BridgeBase(ABC):
    """
    Base class for bridges to the SoC's bus

    Bridges provide the actual transport for reading and writing 32-bit
    words on the SoC. Register handles only ever call ``peek`` and ``poke``;
    opening and closing the transport is left to whoever owns the bridge.
    """

    @abstractmethod
    def peek(self, address: int) -> int:
        """
        Read a 32-bit word from the given address

        Args:
            address: Bus address to read from

        Returns:
            Word read from the address

        Raises:
            BridgeError: If the transaction fails
        """
        pass

    @abstractmethod
    def poke(self, address: int, value: int) -> None:
        """
        Write a 32-bit word to the given address

        Args:
            address: Bus address to write to
            value: Word to write

        Raises:
            BridgeError: If the transaction fails
        """
        pass

    def open(self) -> None:
        """Set up the transport; the default does nothing"""

    def close(self) -> None:
        """Tear down the transport; the default does nothing"""

    def __enter__(self) -> Self:
        self.open()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


__all__ = ["BridgeBase", "BridgeError", "WORD_MASK", "check_word"]
