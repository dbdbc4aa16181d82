"""
litex-bridge
Type-safe, name-based access to the CSRs of LiteX SoCs
"""

from importlib.metadata import PackageNotFoundError, version

from .csr import CsrGroup, CsrRo, CsrRw, CsrStruct, GroupAddrs, optional, resolve_csr
from .errors import BridgeError, CsrError, CsrWrongKind, CsrWrongSize, MissingCsr, NoCsrRegion, SocInfoError
from .soc_info import CsrInfo, CsrKind, MemoryRegion, SocInfo

try:
    __version__ = version("litex-bridge")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"


__all__ = [
    "BridgeError",
    "CsrError",
    "CsrGroup",
    "CsrInfo",
    "CsrKind",
    "CsrRo",
    "CsrRw",
    "CsrStruct",
    "CsrStructExporter",
    "CsrWrongKind",
    "CsrWrongSize",
    "GroupAddrs",
    "MemoryRegion",
    "MissingCsr",
    "NoCsrRegion",
    "SocInfo",
    "SocInfoError",
    "optional",
    "resolve_csr",
]


def __getattr__(name: str) -> type:
    # The exporter pulls in jinja2, which plain register access never needs.
    if name == "CsrStructExporter":
        from .exporter import CsrStructExporter

        return CsrStructExporter
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
