"""
Shared fixtures: a small SoC description modelled on a LiteX build
"""

import pytest

from litex_bridge import SocInfo
from litex_bridge.bridges import MockBridge

CSR_BASE = 0x8000_0000

SOC_DOCUMENT = {
    "csr_bases": {
        "ctrl": CSR_BASE + 0x0000,
        "identifier_mem": CSR_BASE + 0x0800,
        "uart": CSR_BASE + 0x1000,
        "timer0": CSR_BASE + 0x1800,
    },
    "csr_registers": {
        "ctrl_reset": {"addr": CSR_BASE + 0x0000, "size": 1, "type": "rw"},
        "ctrl_scratch": {"addr": CSR_BASE + 0x0004, "size": 1, "type": "rw"},
        "ctrl_bus_errors": {"addr": CSR_BASE + 0x0008, "size": 1, "type": "ro"},
        "uart_rxtx": {"addr": CSR_BASE + 0x1000, "size": 1, "type": "rw"},
        "uart_txfull": {"addr": CSR_BASE + 0x1004, "size": 1, "type": "ro"},
        "uart_rxempty": {"addr": CSR_BASE + 0x1008, "size": 1, "type": "ro"},
        "uart_phy_tuning_word": {"addr": CSR_BASE + 0x1010, "size": 1, "type": "rw"},
        "timer0_load": {"addr": CSR_BASE + 0x1800, "size": 1, "type": "rw"},
        "timer0_reload": {"addr": CSR_BASE + 0x1804, "size": 1, "type": "rw"},
        "timer0_value": {"addr": CSR_BASE + 0x1808, "size": 2, "type": "ro"},
    },
    "constants": {
        "config_clock_frequency": 100000000,
        "config_cpu_type_vexriscv": None,
        "config_cpu_name": "vexriscv",
        "config_csr_data_width": 32,
    },
    "memories": {
        "rom": {"base": 0x0000_0000, "size": 0x20000, "type": "cached"},
        "sram": {"base": 0x1000_0000, "size": 0x2000, "type": "cached"},
        "csr": {"base": CSR_BASE, "size": 0x10000, "type": "io"},
    },
}


@pytest.fixture
def soc_document() -> dict:
    """A fresh copy of the sample csr.json document"""
    import copy

    return copy.deepcopy(SOC_DOCUMENT)


@pytest.fixture
def soc_info(soc_document: dict) -> SocInfo:
    return SocInfo.from_dict(soc_document)


@pytest.fixture
def bridge() -> MockBridge:
    return MockBridge()
