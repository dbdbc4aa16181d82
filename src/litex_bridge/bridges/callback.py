from collections.abc import Callable

from ..errors import BridgeError
from .base import BridgeBase, check_word


class CallbackBridge(BridgeBase):
    """
    Callback-based bridge

    Allows custom peek/poke functions to be provided
    """

    def __init__(
        self,
        peek_callback: Callable[[int], int] | None = None,
        poke_callback: Callable[[int, int], None] | None = None,
    ) -> None:
        """
        Initialize with optional callbacks

        Args:
            peek_callback: Function(address) -> value
            poke_callback: Function(address, value) -> None
        """
        self.peek_callback = peek_callback
        self.poke_callback = poke_callback

    def peek(self, address: int) -> int:
        """Read using callback"""
        if self.peek_callback is None:
            raise BridgeError("No peek callback configured")
        return self.peek_callback(address)

    def poke(self, address: int, value: int) -> None:
        """Write using callback"""
        check_word(value)
        if self.poke_callback is None:
            raise BridgeError("No poke callback configured")
        self.poke_callback(address, value)
