"""
Tests for the litex-bridge command line interface
"""

import json

import pytest
from click.testing import CliRunner

from litex_bridge import cli
from litex_bridge.bridges import EtherboneBridge, MockBridge, OpenOCDBridge, SSHBridge

from .conftest import CSR_BASE


@pytest.fixture
def csr_json(tmp_path, soc_document):
    path = tmp_path / "csr.json"
    path.write_text(json.dumps(soc_document))
    return path


@pytest.fixture
def bridge(monkeypatch):
    """Route every command to one shared MockBridge and record how it was built"""
    bridge = MockBridge()
    bridge.built_with = None

    def make_bridge(kind, host, port, timeout):
        bridge.built_with = (kind, host, port, timeout)
        return bridge

    monkeypatch.setattr(cli, "make_bridge", make_bridge)
    return bridge


@pytest.fixture
def runner():
    return CliRunner()


class TestMakeBridge:
    """Test building bridges from command line options"""

    def test_etherbone_default_port(self):
        bridge = cli.make_bridge("etherbone", "10.0.0.2", None, 2.0)
        assert isinstance(bridge, EtherboneBridge)
        assert (bridge.host, bridge.port, bridge.timeout) == ("10.0.0.2", 1234, 2.0)

    def test_openocd(self):
        bridge = cli.make_bridge("openocd", "localhost", 4444, 1.0)
        assert isinstance(bridge, OpenOCDBridge)
        assert bridge.port == 4444

    def test_ssh(self):
        assert isinstance(cli.make_bridge("ssh", "board", None, 1.0), SSHBridge)


class TestCommands:
    """Test the subcommands against a mock bridge"""

    def test_identifier(self, runner, csr_json, bridge):
        base = CSR_BASE + 0x800
        for i, char in enumerate(b"LiteX SoC on Arty\0garbage"):
            bridge.memory[base + 4 * i] = char
        result = runner.invoke(cli.main, ["identifier", str(csr_json)])
        assert result.exit_code == 0, result.output
        assert result.output.strip() == "LiteX SoC on Arty"
        assert len(bridge.reads) == 256

    def test_identifier_csr_only(self, runner, csr_json, bridge):
        for i, char in enumerate(b"pcie\0"):
            bridge.memory[0x800 + 4 * i] = char
        result = runner.invoke(cli.main, ["--csr-only", "identifier", str(csr_json)])
        assert result.exit_code == 0, result.output
        assert result.output.strip() == "pcie"

    def test_identifier_below_csr_window_wraps(self, runner, tmp_path, soc_document, bridge):
        soc_document["csr_bases"]["identifier_mem"] = CSR_BASE - 0x400
        path = tmp_path / "csr.json"
        path.write_text(json.dumps(soc_document))
        for i, char in enumerate(b"low\0"):
            bridge.memory[0xFFFF_FC00 + 4 * i] = char
        result = runner.invoke(cli.main, ["--csr-only", "identifier", str(path)])
        assert result.exit_code == 0, result.output
        assert result.output.strip() == "low"
        assert min(bridge.reads) == 0xFFFF_FC00

    def test_regs(self, runner, csr_json, bridge):
        bridge.memory[CSR_BASE + 0x1004] = 1
        result = runner.invoke(cli.main, ["regs", str(csr_json), "--filter", "uart"])
        assert result.exit_code == 0, result.output
        assert result.output.splitlines() == [
            "0x80001000 : 0x00000000 uart_rxtx",
            "0x80001004 : 0x00000001 uart_txfull",
            "0x80001008 : 0x00000000 uart_rxempty",
            "0x80001010 : 0x00000000 uart_phy_tuning_word",
        ]

    def test_read_multi_word(self, runner, csr_json, bridge):
        bridge.memory[CSR_BASE + 0x1808] = 0x1
        bridge.memory[CSR_BASE + 0x180C] = 0x2
        result = runner.invoke(cli.main, ["read", str(csr_json), "timer0_value"])
        assert result.exit_code == 0, result.output
        assert result.output.strip() == "0x00000001 0x00000002"

    def test_write(self, runner, csr_json, bridge):
        result = runner.invoke(cli.main, ["--csr-only", "write", str(csr_json), "ctrl_scratch", "0x55"])
        assert result.exit_code == 0, result.output
        assert bridge.memory == {0x0004: 0x55}

    def test_write_read_only_csr(self, runner, csr_json, bridge):
        result = runner.invoke(cli.main, ["write", str(csr_json), "uart_txfull", "1"])
        assert result.exit_code == 1
        assert "expected CSR `uart_txfull` to be read-write, but it was read-only" in result.output
        assert bridge.writes == []

    def test_write_wrong_word_count(self, runner, csr_json, bridge):
        result = runner.invoke(cli.main, ["write", str(csr_json), "ctrl_scratch", "1", "2"])
        assert result.exit_code == 2
        assert "takes 1 words, got 2" in result.output

    def test_read_missing_csr(self, runner, csr_json, bridge):
        result = runner.invoke(cli.main, ["read", str(csr_json), "uart_nope"])
        assert result.exit_code == 1
        assert "required CSR `uart_nope` not found in SocInfo" in result.output

    def test_bridge_error(self, runner, csr_json, bridge):
        bridge.fail_at.add(CSR_BASE + 0x1004)
        result = runner.invoke(cli.main, ["read", str(csr_json), "uart_txfull"])
        assert result.exit_code == 1
        assert "Simulated read failure" in result.output

    def test_malformed_csr_json(self, runner, tmp_path, bridge):
        path = tmp_path / "csr.json"
        path.write_text('{"csr_registers": {"x": {"addr": 0, "size": 1, "type": "xx"}}}')
        result = runner.invoke(cli.main, ["regs", str(path)])
        assert result.exit_code == 1
        assert "csr_registers.x.type" in result.output

    def test_options_from_environment(self, runner, csr_json, bridge):
        result = runner.invoke(
            cli.main,
            ["read", str(csr_json), "ctrl_scratch"],
            env={"LITEX_BRIDGE_HOST": "10.0.0.9", "LITEX_BRIDGE_BRIDGE": "openocd", "LITEX_BRIDGE_CSR_ONLY": "1"},
        )
        assert result.exit_code == 0, result.output
        assert bridge.built_with == ("openocd", "10.0.0.9", None, 1.0)
        assert bridge.reads == [0x0004]

    def test_generate(self, runner, csr_json, tmp_path):
        output = tmp_path / "arty_csrs.py"
        result = runner.invoke(cli.main, ["generate", str(csr_json), "-o", str(output), "--soc-name", "arty"])
        assert result.exit_code == 0, result.output
        source = output.read_text()
        assert "CSR groups for arty" in source
        assert "class UartCsrs(CsrStruct):" in source
