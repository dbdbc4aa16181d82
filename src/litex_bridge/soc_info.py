"""
Description of a LiteX SoC: CSR bases, CSR registers, constants and memory regions

The model mirrors the ``csr.json`` document LiteX emits when an SoC is built
with ``--soc-json``/``--csr-json`` (or ``csr_json=`` passed to ``Builder``).
"""

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from os import PathLike
from pathlib import Path
from types import MappingProxyType
from typing import Any, Self

from .errors import NoCsrRegion, SocInfoError

SocConstant = str | int | None

CSR_REGION = "csr"
I32_MIN = -(1 << 31)
I32_MAX = (1 << 31) - 1
U32_MAX = (1 << 32) - 1


class CsrKind(Enum):
    """Whether a CSR is read-only or read-write"""

    READ_ONLY = "ro"
    READ_WRITE = "rw"

    def __str__(self) -> str:
        return "read-only" if self is CsrKind.READ_ONLY else "read-write"


@dataclass(frozen=True)
class CsrInfo:
    """
    Information about an individual CSR

    Attributes:
        addr: Address of the register on the SoC's main bus
        size: Number of 32-bit words the register spans
        kind: Access kind of the register
    """

    addr: int
    size: int
    kind: CsrKind


@dataclass(frozen=True)
class MemoryRegion:
    """
    A region of the SoC's address space

    Attributes:
        base: Address where the region starts on the main bus
        size: Size of the region in bytes
        kind: ``"cached"`` or ``"io"``, optionally suffixed with ``"+linker"``
    """

    base: int
    size: int
    kind: str


def _frozen(mapping: Mapping[str, Any] | None) -> Mapping[str, Any]:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class SocInfo:
    """
    Information about a LiteX SoC, mainly the addresses of all its CSRs

    Attributes:
        csr_bases: Module name -> address where that module's CSRs start
        csr_registers: Qualified CSR name -> register information. Names are
            formatted ``<module>_<submodule1>_..._<csr>``.
        constants: Constant name -> value. ``None`` marks a boolean flag that
            is set; a flag that is not set is simply absent.
        memories: Region name -> memory region
    """

    csr_bases: Mapping[str, int] = field(default_factory=dict)
    csr_registers: Mapping[str, CsrInfo] = field(default_factory=dict)
    constants: Mapping[str, SocConstant] = field(default_factory=dict)
    memories: Mapping[str, MemoryRegion] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "csr_bases", _frozen(self.csr_bases))
        object.__setattr__(self, "csr_registers", _frozen(self.csr_registers))
        object.__setattr__(self, "constants", _frozen(self.constants))
        object.__setattr__(self, "memories", _frozen(self.memories))

    def csr_base(self) -> int:
        """
        Base address of the SoC's CSR memory region

        Bridges that only expose the CSR window (PCIe BAR 0) see CSRs at
        offsets relative to this address.

        Raises:
            NoCsrRegion: If the metadata has no ``csr`` memory region
        """
        region = self.memories.get(CSR_REGION)
        if region is None:
            raise NoCsrRegion()
        return region.base

    def constant(self, name: str) -> str | int | bool:
        """
        Look up a constant, treating flags the way C ``#define``s work

        A constant present without a payload is ``True``; an absent one is ``False``.
        """
        if name not in self.constants:
            return False
        value = self.constants[name]
        return True if value is None else value

    @property
    def csr_data_width(self) -> int:
        """Width of the CSR data bus in bits (``config_csr_data_width``)"""
        value = self.constants.get("config_csr_data_width")
        if isinstance(value, int):
            return value
        return 32

    # ------------------------------------------------------------------
    # Document conversion
    # ------------------------------------------------------------------

    @classmethod
    def from_dict(cls, document: Mapping[str, Any]) -> Self:
        """
        Build the model from a deserialized ``csr.json`` document

        Raises:
            SocInfoError: If any entry is malformed
        """
        if not isinstance(document, Mapping):
            raise SocInfoError(f"SoC description must be an object, got {type(document).__name__}")

        csr_bases = {
            name: _u32(addr, f"csr_bases.{name}") for name, addr in _section(document, "csr_bases").items()
        }
        csr_registers = {
            name: _csr_info(name, info) for name, info in _section(document, "csr_registers").items()
        }
        constants = {
            name: _constant(name, value) for name, value in _section(document, "constants").items()
        }
        memories = {
            name: _memory_region(name, region) for name, region in _section(document, "memories").items()
        }
        return cls(csr_bases=csr_bases, csr_registers=csr_registers, constants=constants, memories=memories)

    @classmethod
    def from_json(cls, text: str | bytes) -> Self:
        """Parse a ``csr.json`` document"""
        try:
            document = json.loads(text)
        except json.JSONDecodeError as e:
            raise SocInfoError(f"Invalid SoC description: {e}") from e
        return cls.from_dict(document)

    @classmethod
    def load(cls, path: str | PathLike[str]) -> Self:
        """Read and parse a ``csr.json`` file"""
        return cls.from_json(Path(path).read_text(encoding="utf-8"))

    def to_dict(self) -> dict[str, Any]:
        """Convert back to the ``csr.json`` document shape"""
        return {
            "csr_bases": dict(self.csr_bases),
            "csr_registers": {
                name: {"addr": info.addr, "size": info.size, "type": info.kind.value}
                for name, info in self.csr_registers.items()
            },
            "constants": dict(self.constants),
            "memories": {
                name: {"base": region.base, "size": region.size, "type": region.kind}
                for name, region in self.memories.items()
            },
        }


def _section(document: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    section = document.get(key)
    if section is None:
        return {}
    if not isinstance(section, Mapping):
        raise SocInfoError(f"`{key}` must be an object, got {type(section).__name__}")
    return section


def _u32(value: Any, where: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise SocInfoError(f"`{where}` must be an integer, got {value!r}")
    if not 0 <= value <= U32_MAX:
        raise SocInfoError(f"`{where}` is out of range for a 32-bit address: {value:#x}")
    return value


def _entry(name: str, entry: Any, section: str) -> Mapping[str, Any]:
    if not isinstance(entry, Mapping):
        raise SocInfoError(f"`{section}.{name}` must be an object, got {entry!r}")
    return entry


def _csr_info(name: str, entry: Any) -> CsrInfo:
    entry = _entry(name, entry, "csr_registers")
    where = f"csr_registers.{name}"
    try:
        kind = CsrKind(entry.get("type"))
    except ValueError:
        raise SocInfoError(f"`{where}.type` must be \"ro\" or \"rw\", got {entry.get('type')!r}") from None
    return CsrInfo(
        addr=_u32(entry.get("addr"), f"{where}.addr"),
        size=_u32(entry.get("size"), f"{where}.size"),
        kind=kind,
    )


def _memory_region(name: str, entry: Any) -> MemoryRegion:
    entry = _entry(name, entry, "memories")
    where = f"memories.{name}"
    kind = entry.get("type")
    if not isinstance(kind, str):
        raise SocInfoError(f"`{where}.type` must be a string, got {kind!r}")
    return MemoryRegion(
        base=_u32(entry.get("base"), f"{where}.base"),
        size=_u32(entry.get("size"), f"{where}.size"),
        kind=kind,
    )


def _constant(name: str, value: Any) -> SocConstant:
    # Integer constants come back from C getters as `int`, so keep them within i32.
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        if not I32_MIN <= value <= I32_MAX:
            raise SocInfoError(f"`constants.{name}` does not fit in a 32-bit signed integer: {value}")
        return value
    raise SocInfoError(f"`constants.{name}` must be null, a string or an integer, got {value!r}")
