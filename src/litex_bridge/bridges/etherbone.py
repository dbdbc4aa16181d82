"""
Etherbone bridge: Wishbone transactions over UDP, as served by LiteEth
"""

import logging
import socket
import struct
from dataclasses import dataclass, field

from ..errors import BridgeError
from .base import BridgeBase, check_word

logger = logging.getLogger(__name__)

ETHERBONE_MAGIC = 0x4E6F
ETHERBONE_VERSION = 1
# Address and port sizes are both 32 bits, encoded in bytes
ETHERBONE_SIZES = (4 << 4) | 4
MAX_BURST = 255

# magic, version/flags, address/port size, padding
PACKET_HEADER = struct.Struct(">HBB4x")
# flags, byte enable, write count, read count
RECORD_HEADER = struct.Struct(">BBBB")
WORD = struct.Struct(">I")

FLAG_PROBE = 0x01
FLAG_PROBE_REPLY = 0x02
FLAG_NO_READS = 0x04


@dataclass
class EtherboneRecord:
    """
    One Etherbone record

    ``writes`` are data words written starting at ``base_addr``; ``reads`` are
    addresses whose data the other side writes back starting at ``base_ret_addr``.
    """

    base_addr: int = 0
    writes: list[int] = field(default_factory=list)
    base_ret_addr: int = 0
    reads: list[int] = field(default_factory=list)
    byte_enable: int = 0x0F

    def encode(self) -> bytes:
        if len(self.writes) > MAX_BURST or len(self.reads) > MAX_BURST:
            raise ValueError(f"Burst size exceeds maximum of {MAX_BURST} allowed by Etherbone")
        data = bytearray(RECORD_HEADER.pack(0, self.byte_enable, len(self.writes), len(self.reads)))
        if self.writes:
            data += WORD.pack(self.base_addr)
            for word in self.writes:
                data += WORD.pack(word)
        if self.reads:
            data += WORD.pack(self.base_ret_addr)
            for addr in self.reads:
                data += WORD.pack(addr)
        return bytes(data)


@dataclass
class EtherbonePacket:
    """An Etherbone packet header plus its records"""

    records: list[EtherboneRecord] = field(default_factory=list)
    probe: bool = False
    probe_reply: bool = False

    def encode(self) -> bytes:
        flags = (ETHERBONE_VERSION << 4) | (FLAG_PROBE if self.probe else 0)
        flags |= FLAG_PROBE_REPLY if self.probe_reply else 0
        data = bytearray(PACKET_HEADER.pack(ETHERBONE_MAGIC, flags, ETHERBONE_SIZES))
        for record in self.records:
            data += record.encode()
        if self.probe and not self.records:
            # Probes carry a padding word as payload.
            data += bytes(4)
        return bytes(data)

    @classmethod
    def decode(cls, data: bytes) -> "EtherbonePacket":
        """
        Raises:
            ValueError: If the packet is truncated or has the wrong magic
        """
        if len(data) < PACKET_HEADER.size:
            raise ValueError(f"Etherbone packet too short: {len(data)} bytes")
        magic, flags, _sizes = PACKET_HEADER.unpack_from(data)
        if magic != ETHERBONE_MAGIC:
            raise ValueError(f"Bad Etherbone magic {magic:#06x}")
        packet = cls(probe=bool(flags & FLAG_PROBE), probe_reply=bool(flags & FLAG_PROBE_REPLY))

        offset = PACKET_HEADER.size
        while len(data) - offset >= RECORD_HEADER.size:
            _flags, byte_enable, wcount, rcount = RECORD_HEADER.unpack_from(data, offset)
            offset += RECORD_HEADER.size
            if wcount == 0 and rcount == 0:
                # Padding
                continue
            record = EtherboneRecord(byte_enable=byte_enable)
            if wcount:
                record.base_addr, *record.writes = _words(data, offset, wcount + 1)
                offset += 4 * (wcount + 1)
            if rcount:
                record.base_ret_addr, *record.reads = _words(data, offset, rcount + 1)
                offset += 4 * (rcount + 1)
            packet.records.append(record)
        return packet


def _words(data: bytes, offset: int, count: int) -> list[int]:
    end = offset + 4 * count
    if end > len(data):
        raise ValueError(f"Etherbone record truncated: need {end} bytes, got {len(data)}")
    return [WORD.unpack_from(data, offset + 4 * i)[0] for i in range(count)]


class EtherboneBridge(BridgeBase):
    """
    Bridge speaking Etherbone over UDP

    The LiteEth Etherbone core replies to the port it listens on, so the local
    socket is bound to the same port as the remote one.
    """

    def __init__(self, host: str = "192.168.1.50", port: int = 1234, timeout: float = 1.0, probe: bool = True) -> None:
        self.host = host
        self.port = port
        self.timeout = timeout
        self.probe = probe
        self.socket: socket.socket | None = None

    def open(self) -> None:
        if self.socket is not None:
            return
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.bind(("", self.port))
            sock.settimeout(self.timeout)
        except OSError as e:
            sock.close()
            raise BridgeError(f"Failed to open Etherbone socket on port {self.port}: {e}") from e
        self.socket = sock
        if self.probe:
            try:
                reply = self._transact(EtherbonePacket(probe=True))
            except BridgeError:
                self.close()
                raise
            if not reply.probe_reply:
                self.close()
                raise BridgeError(f"Unexpected probe reply from Etherbone server at {self.host}")
        logger.debug("opened Etherbone bridge to %s:%d", self.host, self.port)

    def close(self) -> None:
        if self.socket is None:
            return
        self.socket.close()
        self.socket = None

    def _send(self, packet: EtherbonePacket) -> None:
        if self.socket is None:
            raise BridgeError("Etherbone bridge is not open")
        try:
            self.socket.sendto(packet.encode(), (self.host, self.port))
        except OSError as e:
            raise BridgeError(f"Failed to send Etherbone packet to {self.host}:{self.port}: {e}") from e

    def _transact(self, packet: EtherbonePacket) -> EtherbonePacket:
        self._send(packet)
        assert self.socket is not None
        try:
            data, _ = self.socket.recvfrom(8192)
        except TimeoutError:
            raise BridgeError(f"Timed out waiting for Etherbone server at {self.host}:{self.port}") from None
        except OSError as e:
            raise BridgeError(f"Failed to receive Etherbone packet: {e}") from e
        try:
            return EtherbonePacket.decode(data)
        except ValueError as e:
            raise BridgeError(f"Malformed Etherbone reply: {e}") from e

    def peek(self, address: int) -> int:
        reply = self._transact(EtherbonePacket(records=[EtherboneRecord(reads=[address])]))
        if not reply.records or len(reply.records[-1].writes) != 1:
            raise BridgeError(f"Etherbone reply to read of {address:#010x} carries no data")
        value = reply.records[-1].writes[0]
        logger.debug("peek %#010x -> %#010x", address, value)
        return value

    def poke(self, address: int, value: int) -> None:
        check_word(value)
        self._send(EtherbonePacket(records=[EtherboneRecord(base_addr=address, writes=[value])]))
        logger.debug("poke %#010x <- %#010x", address, value)
