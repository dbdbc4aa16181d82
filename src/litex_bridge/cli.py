"""Command line interface for poking at a LiteX SoC by CSR name."""

import logging
import sys
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from functools import wraps
from pathlib import Path
from typing import Any

import click

from .bridges import BridgeBase, EtherboneBridge, OpenOCDBridge, SSHBridge
from .bridges.base import WORD_MASK
from .csr import CsrRo, CsrRw, resolve_csr
from .errors import BridgeError, CsrError, SocInfoError
from .soc_info import CsrKind, SocInfo

logger = logging.getLogger(__name__)

IDENTIFIER_MODULE = "identifier_mem"
IDENTIFIER_WORDS = 256

BRIDGES = ("etherbone", "openocd", "ssh")
DEFAULT_PORTS = {"etherbone": 1234, "openocd": 6666}


def make_bridge(kind: str, host: str, port: int | None, timeout: float) -> BridgeBase:
    """Build the bridge selected on the command line"""
    if kind == "etherbone":
        return EtherboneBridge(host=host, port=port or DEFAULT_PORTS[kind], timeout=timeout)
    if kind == "openocd":
        return OpenOCDBridge(host=host, port=port or DEFAULT_PORTS[kind], timeout=timeout)
    if kind == "ssh":
        return SSHBridge(host=host, timeout=timeout)
    raise click.BadParameter(f"Unknown bridge {kind!r}", param_hint="--bridge")


class Session:
    """Options shared by every subcommand"""

    def __init__(self, bridge: str, host: str, port: int | None, timeout: float, csr_only: bool) -> None:
        self.bridge = bridge
        self.host = host
        self.port = port
        self.timeout = timeout
        self.csr_only = csr_only

    @contextmanager
    def connect(self) -> Iterator[BridgeBase]:
        bridge = make_bridge(self.bridge, self.host, self.port, self.timeout)
        logger.info("Connecting to %s via %s", self.host, self.bridge)
        with bridge:
            yield bridge


def reports_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    """Render library errors as click errors"""

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except (CsrError, SocInfoError, BridgeError) as exc:
            raise click.ClickException(str(exc)) from exc

    return wrapper


def load_soc_info(path: Path) -> SocInfo:
    return SocInfo.load(path)


soc_json_argument = click.argument("csr_json", type=click.Path(exists=True, dir_okay=False, path_type=Path))


@click.group(context_settings={"help_option_names": ["-h", "--help"], "auto_envvar_prefix": "LITEX_BRIDGE"})
@click.option("--bridge", type=click.Choice(BRIDGES), default="etherbone", show_default=True, help="Bus transport")
@click.option("--host", default="192.168.1.50", show_default=True, help="Host of the bridge")
@click.option("--port", type=int, default=None, help="Port of the bridge (default depends on --bridge)")
@click.option("--timeout", type=float, default=1.0, show_default=True, help="Transport timeout in seconds")
@click.option("--csr-only", is_flag=True, help="The bridge only exposes the CSR window (e.g. PCIe BAR 0)")
@click.option("-v", "--verbose", is_flag=True, help="Log every bus transaction")
@click.version_option(package_name="litex-bridge")
@click.pass_context
def main(
    ctx: click.Context,
    bridge: str,
    host: str,
    port: int | None,
    timeout: float,
    csr_only: bool,
    verbose: bool,
) -> None:
    """Access the CSRs of a LiteX SoC by name, using its csr.json."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = Session(bridge=bridge, host=host, port=port, timeout=timeout, csr_only=csr_only)


@main.command()
@soc_json_argument
@click.pass_obj
@reports_errors
def identifier(session: Session, csr_json: Path) -> None:
    """Print the SoC's identifier string."""
    soc_info = load_soc_info(csr_json)
    base = soc_info.csr_bases.get(IDENTIFIER_MODULE)
    if base is None:
        raise click.ClickException(f"`{IDENTIFIER_MODULE}` not found in csr_bases")
    if session.csr_only:
        base = (base - soc_info.csr_base()) & WORD_MASK

    with session.connect() as bridge:
        words = CsrRo[IDENTIFIER_WORDS].backed_by(bridge, base).read()
    raw = bytes(word & 0xFF for word in words)
    click.echo(raw.split(b"\0", 1)[0].decode("utf-8", errors="replace"))


@main.command()
@soc_json_argument
@click.option("--filter", "name_filter", default=None, help="Only show CSRs whose name contains this text")
@click.pass_obj
@reports_errors
def regs(session: Session, csr_json: Path, name_filter: str | None) -> None:
    """Dump the value of every CSR."""
    soc_info = load_soc_info(csr_json)
    with session.connect() as bridge:
        for name, info in sorted(soc_info.csr_registers.items(), key=lambda item: item[1].addr):
            if name_filter is not None and name_filter not in name:
                continue
            handle = _handle(soc_info, session.csr_only, bridge, name)
            values = " ".join(f"0x{word:08x}" for word in handle.read())
            click.echo(f"0x{info.addr:08x} : {values} {name}")


@main.command()
@soc_json_argument
@click.argument("name")
@click.pass_obj
@reports_errors
def read(session: Session, csr_json: Path, name: str) -> None:
    """Read one CSR by its qualified name."""
    soc_info = load_soc_info(csr_json)
    with session.connect() as bridge:
        values = _handle(soc_info, session.csr_only, bridge, name).read()
    click.echo(" ".join(f"0x{word:08x}" for word in values))


@main.command()
@soc_json_argument
@click.argument("name")
@click.argument("values", nargs=-1, required=True, type=lambda text: int(text, 0))
@click.pass_obj
@reports_errors
def write(session: Session, csr_json: Path, name: str, values: tuple[int, ...]) -> None:
    """Write one read-write CSR by its qualified name, one value per word."""
    soc_info = load_soc_info(csr_json)
    handle_type = CsrRw[_size_of(soc_info, name)]
    offset = handle_type.addrs(soc_info, session.csr_only, name)
    with session.connect() as bridge:
        try:
            handle_type.backed_by(bridge, offset).write(list(values))
        except ValueError as exc:
            raise click.BadParameter(str(exc), param_hint="VALUES") from exc


@main.command()
@soc_json_argument
@click.option("-o", "--output", type=click.Path(dir_okay=False, path_type=Path), required=True, help="Python file to write")
@click.option("--soc-name", default=None, help="Name used in the generated docstrings (default: file stem)")
@click.option("--class-name", default="Soc", show_default=True, help="Name of the root group class")
@reports_errors
def generate(csr_json: Path, output: Path, soc_name: str | None, class_name: str) -> None:
    """Generate CsrStruct classes for every module of the SoC."""
    from .exporter import CsrStructExporter, ExportOptions

    soc_info = load_soc_info(csr_json)
    options = ExportOptions(soc_name=soc_name or csr_json.stem, soc_class_name=class_name)
    path = CsrStructExporter().export(soc_info, output, options)
    click.echo(f"Generated CSR groups at {path}")


def _size_of(soc_info: SocInfo, name: str) -> int:
    info = soc_info.csr_registers.get(name)
    if info is None:
        # Let resolution produce the usual error
        return 1
    return max(info.size, 1)


def _handle(soc_info: SocInfo, csr_only: bool, bridge: BridgeBase, name: str) -> CsrRo | CsrRw:
    """Resolve a CSR using the shape the metadata declares for it"""
    info = soc_info.csr_registers.get(name)
    kind = info.kind if info is not None else CsrKind.READ_ONLY
    handle_type = (CsrRo if kind is CsrKind.READ_ONLY else CsrRw)[_size_of(soc_info, name)]
    offset = resolve_csr(soc_info, csr_only, name, handle_type.size, handle_type.kind)
    return handle_type.backed_by(bridge, offset)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
