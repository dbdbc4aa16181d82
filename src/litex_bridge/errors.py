"""
Errors raised while resolving CSRs against SoC metadata
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .soc_info import CsrKind


class CsrError(Exception):
    """Base class for CSR resolution failures"""


class NoCsrRegion(CsrError):
    """The metadata has no ``csr`` memory region"""

    def __init__(self) -> None:
        super().__init__("CSR memory region not found in SocInfo")


class MissingCsr(CsrError):
    """No CSR with the given qualified name exists in the metadata"""

    def __init__(self, csr: str) -> None:
        self.csr = csr
        super().__init__(f"required CSR `{csr}` not found in SocInfo")


class CsrWrongSize(CsrError):
    """The CSR exists but spans a different number of words"""

    def __init__(self, csr: str, expected: int, found: int) -> None:
        self.csr = csr
        self.expected = expected
        self.found = found
        super().__init__(f"expected CSR `{csr}` to be of size {expected}, found {found}")


class CsrWrongKind(CsrError):
    """The CSR exists but has a different access kind"""

    def __init__(self, csr: str, expected: "CsrKind", found: "CsrKind") -> None:
        self.csr = csr
        self.expected = expected
        self.found = found
        super().__init__(f"expected CSR `{csr}` to be {expected}, but it was {found}")


class SocInfoError(ValueError):
    """The SoC description document is malformed"""


class BridgeError(OSError):
    """A bus transaction failed"""
