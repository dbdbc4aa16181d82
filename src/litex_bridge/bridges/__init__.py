"""
Bridges to the SoC's bus
"""

from .base import BridgeBase, BridgeError
from .callback import CallbackBridge
from .etherbone import EtherboneBridge
from .mock import MockBridge
from .openocd import OpenOCDBridge
from .ssh import SSHBridge

__all__ = ["BridgeBase", "BridgeError", "CallbackBridge", "EtherboneBridge", "MockBridge", "OpenOCDBridge", "SSHBridge"]
