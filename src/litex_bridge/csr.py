"""
Typed handles to CSRs and groups of CSRs, resolved by name from a ``SocInfo``

Resolution checks the expected shape of every CSR (word count and access
kind) against the metadata once, without touching the bus. The handles it
produces then read and write through a shared bridge.

Example::

    class Uart(CsrStruct):
        rxtx = CsrRw
        txfull = CsrRo
        rxempty = CsrRo
        phy = optional(UartPhy)

    uart = Uart.backed_by(bridge, Uart.addrs(soc_info, False, "uart"))
    uart.rxtx.write([ord("a")])
"""

import logging
from collections.abc import Iterable, Iterator, Mapping, Sequence
from functools import lru_cache
from typing import Any, ClassVar, Protocol, Self, runtime_checkable

from .bridges.base import WORD_MASK, BridgeBase
from .errors import CsrWrongKind, CsrWrongSize, MissingCsr
from .soc_info import CsrKind, SocInfo

logger = logging.getLogger(__name__)


def resolve_csr(soc_info: SocInfo, csr_only: bool, name: str, size: int, kind: CsrKind) -> int:
    """
    Look up a CSR by qualified name and check it has the expected shape

    Args:
        soc_info: SoC metadata
        csr_only: Return the address relative to the ``csr`` memory region,
            for bridges that only expose the CSR window (PCIe)
        name: Qualified CSR name, e.g. ``"uart_rxtx"``
        size: Expected number of 32-bit words
        kind: Expected access kind

    Returns:
        Address of the CSR as seen by the bridge

    Raises:
        MissingCsr: No CSR with that name exists
        CsrWrongSize: The CSR spans a different number of words
        CsrWrongKind: The CSR has a different access kind
        NoCsrRegion: ``csr_only`` was requested but there is no ``csr`` region
    """
    info = soc_info.csr_registers.get(name)
    if info is None:
        raise MissingCsr(name)
    if info.size != size:
        raise CsrWrongSize(name, size, info.size)
    if info.kind is not kind:
        raise CsrWrongKind(name, kind, info.kind)

    addr = info.addr
    if csr_only:
        # Bus addresses are u32; a CSR below the window wraps like the hardware would.
        addr = (addr - soc_info.csr_base()) & WORD_MASK
    logger.debug("resolved CSR %s to %#010x", name, addr)
    return addr


def qualify(prefix: str, name: str) -> str:
    """Join a group prefix and a member name the way LiteX names CSRs"""
    return f"{prefix}_{name}" if prefix else name


@runtime_checkable
class CsrGroup(Protocol):
    """
    Anything that can be resolved from a ``SocInfo`` and bound to a bridge

    ``CsrRo``, ``CsrRw``, ``CsrStruct`` subclasses and ``optional(...)`` all
    implement this.
    """

    def addrs(self, soc_info: SocInfo, csr_only: bool, module: str) -> Any:
        """Resolve the addresses this group needs from the metadata"""
        ...

    def backed_by(self, bridge: BridgeBase, addrs: Any) -> Any:
        """Create a handle to this group from the bridge it is accessed through"""
        ...


# ----------------------------------------------------------------------
# Individual CSRs
# ----------------------------------------------------------------------


class _Csr:
    """
    Handle to a single CSR of ``size`` words

    Subscript the class to get a handle type of another size:
    ``CsrRo[256]``. The unsubscripted class is one word wide.
    """

    kind: ClassVar[CsrKind]
    size: ClassVar[int] = 1
    _root: ClassVar[type["_Csr"]]

    __slots__ = ("bridge", "offset")

    def __init__(self, bridge: BridgeBase, offset: int) -> None:
        self.bridge = bridge
        self.offset = offset

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        if "_root" not in cls.__dict__ and "size" not in cls.__dict__:
            cls._root = cls

    def __class_getitem__(cls, size: int) -> type[Self]:
        if isinstance(size, bool) or not isinstance(size, int):
            raise TypeError(f"{cls._root.__name__}[...] takes a word count, got {size!r}")
        if size < 1:
            raise ValueError(f"{cls._root.__name__} must span at least one word, got {size}")
        return _sized(cls._root, size)

    @classmethod
    def addrs(cls, soc_info: SocInfo, csr_only: bool, module: str) -> int:
        # A single CSR has nothing left to append: `module` is its full name.
        return resolve_csr(soc_info, csr_only, module, cls.size, cls.kind)

    @classmethod
    def backed_by(cls, bridge: BridgeBase, addrs: int) -> Self:
        return cls(bridge, addrs)

    def read(self) -> list[int]:
        """
        Read every word of the CSR, lowest address first

        Raises:
            BridgeError: If any word fails to read; no partial result is returned
        """
        return [self.bridge.peek(self._word_addr(i)) for i in range(self.size)]

    def _word_addr(self, index: int) -> int:
        # Bus addresses are u32; a handle straddling the top of the space wraps.
        return (self.offset + 4 * index) & WORD_MASK

    def __repr__(self) -> str:
        try:
            rendered = "[" + ", ".join(f"{word:#010x}" for word in self.read()) + "]"
        except Exception:
            rendered = "(error)"
        return f"<{type(self).__name__} @ {self.offset:#010x}: {rendered}>"


@lru_cache(maxsize=None)
def _sized(root: type[_Csr], size: int) -> type[_Csr]:
    if size == 1:
        return root
    name = f"{root.__name__}[{size}]"
    return type(name, (root,), {"size": size, "__slots__": (), "__module__": root.__module__, "__qualname__": name})


class CsrRo(_Csr):
    """Handle to a read-only CSR"""

    kind = CsrKind.READ_ONLY
    __slots__ = ()


class CsrRw(_Csr):
    """Handle to a read-write CSR"""

    kind = CsrKind.READ_WRITE
    __slots__ = ()

    def write(self, values: Sequence[int]) -> None:
        """
        Write every word of the CSR, lowest address first

        Words are written one at a time; if a write fails, the words before
        it have already reached the device.

        Raises:
            ValueError: If ``values`` has the wrong length or a value is not an integer that fits in 32 bits
            BridgeError: If any word fails to write
        """
        if len(values) != self.size:
            raise ValueError(f"{type(self).__name__} takes {self.size} words, got {len(values)}")
        for value in values:
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"Value {value!r} is not an integer word")
            if not 0 <= value <= WORD_MASK:
                raise ValueError(f"Value {value:#x} does not fit in a 32-bit word")
        for i, value in enumerate(values):
            self.bridge.poke(self._word_addr(i), value)


# ----------------------------------------------------------------------
# Groups
# ----------------------------------------------------------------------


class optional:
    """
    Mark a group member as possibly absent from the SoC

    Resolution yields ``None`` instead of failing when the member's CSRs are
    missing; a size or kind mismatch still fails. The member's accessor then
    returns ``None``.
    """

    __slots__ = ("inner",)

    def __init__(self, inner: CsrGroup) -> None:
        if not _is_member(inner):
            raise TypeError(f"optional() takes a CSR handle type or CsrStruct subclass, got {inner!r}")
        self.inner = inner

    def addrs(self, soc_info: SocInfo, csr_only: bool, module: str) -> Any | None:
        try:
            return self.inner.addrs(soc_info, csr_only, module)
        except MissingCsr as e:
            logger.debug("optional CSR group %s is absent (%s)", module, e.csr)
            return None

    def backed_by(self, bridge: BridgeBase, addrs: Any | None) -> Any | None:
        if addrs is None:
            return None
        return self.inner.backed_by(bridge, addrs)

    def __repr__(self) -> str:
        return f"optional({getattr(self.inner, '__name__', self.inner)!r})"


class GroupAddrs(Mapping[str, Any]):
    """
    Resolved addresses of a ``CsrStruct``, keyed by member name in declaration order

    Values are ints for CSRs, nested ``GroupAddrs`` for sub-groups and ``None``
    for absent optional members.
    """

    __slots__ = ("_addrs",)

    def __init__(self, items: Iterable[tuple[str, Any]] | Mapping[str, Any] = ()) -> None:
        self._addrs = dict(items)

    def __getitem__(self, name: str) -> Any:
        return self._addrs[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._addrs)

    def __len__(self) -> int:
        return len(self._addrs)

    def __repr__(self) -> str:
        return f"GroupAddrs({self._addrs!r})"


def _is_member(value: Any) -> bool:
    if isinstance(value, optional):
        return True
    return isinstance(value, type) and issubclass(value, (_Csr, CsrStruct))


class _Member:
    """Accessor binding the group's bridge to one member's resolved address"""

    def __init__(self, name: str, group: CsrGroup) -> None:
        self.name = name
        self.group = group

    def __get__(self, instance: "CsrStruct | None", owner: type) -> Any:
        if instance is None:
            return self.group
        return self.group.backed_by(instance.bridge, instance._addrs[self.name])


RESERVED_NAMES = frozenset({"addrs", "attach", "backed_by", "bridge", "members"})


class CsrStruct:
    """
    Base class for groups of CSRs resolved by name

    Members are declared as class attributes whose values are CSR handle
    types, other ``CsrStruct`` subclasses or ``optional(...)`` wrappers. A
    member named ``rxtx`` in a group resolved under ``"uart"`` is looked up as
    ``"uart_rxtx"``; resolving under an empty name uses the member name alone.
    """

    members: ClassVar[Mapping[str, CsrGroup]] = {}

    __slots__ = ("bridge", "_addrs")

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        members: dict[str, CsrGroup] = {}
        for base in cls.__bases__:
            members.update(getattr(base, "members", {}))
        for name, value in list(vars(cls).items()):
            if not _is_member(value):
                continue
            if name.startswith("_") or name in RESERVED_NAMES:
                raise TypeError(f"{cls.__name__}.{name}: `{name}` cannot be used as a CSR member name")
            members[name] = value
            setattr(cls, name, _Member(name, value))
        cls.members = members

    def __init__(self, bridge: BridgeBase, addrs: GroupAddrs) -> None:
        if list(addrs) != list(self.members):
            raise ValueError(
                f"{type(self).__name__} needs addresses for {list(self.members)}, got {list(addrs)}"
            )
        self.bridge = bridge
        self._addrs = addrs

    @classmethod
    def addrs(cls, soc_info: SocInfo, csr_only: bool, module: str) -> GroupAddrs:
        """
        Resolve every member, failing with the first member's error

        Raises:
            CsrError: From the first member that fails to resolve
        """
        return GroupAddrs(
            (name, member.addrs(soc_info, csr_only, qualify(module, name))) for name, member in cls.members.items()
        )

    @classmethod
    def backed_by(cls, bridge: BridgeBase, addrs: GroupAddrs) -> Self:
        return cls(bridge, addrs)

    @classmethod
    def attach(cls, bridge: BridgeBase, soc_info: SocInfo, module: str, csr_only: bool = False) -> Self:
        """Resolve the group under ``module`` and bind it to ``bridge`` in one step"""
        return cls.backed_by(bridge, cls.addrs(soc_info, csr_only, module))

    def __repr__(self) -> str:
        fields = ", ".join(f"{name}={getattr(self, name)!r}" for name in self.members)
        return f"{type(self).__name__}({fields})"


__all__ = ["CsrGroup", "CsrRo", "CsrRw", "CsrStruct", "GroupAddrs", "optional", "qualify", "resolve_csr"]
