"""
Generate ``CsrStruct`` definitions for an SoC from its metadata
"""

import keyword
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

from jinja2 import Environment, PackageLoader, StrictUndefined

from .csr import RESERVED_NAMES
from .soc_info import CsrInfo, CsrKind, SocInfo

logger = logging.getLogger(__name__)


@dataclass
class RegisterSpec:
    """A CSR as it appears in a generated group"""

    member: str
    qualified_name: str
    info: CsrInfo

    @property
    def type_expr(self) -> str:
        base = "CsrRo" if self.info.kind is CsrKind.READ_ONLY else "CsrRw"
        return base if self.info.size == 1 else f"{base}[{self.info.size}]"


@dataclass
class ModuleSpec:
    """A module from ``csr_bases`` and the CSRs under its prefix"""

    name: str
    base: int
    class_name: str
    registers: list[RegisterSpec] = field(default_factory=list)

    @property
    def member(self) -> str:
        return self.name

    @property
    def type_expr(self) -> str:
        return self.class_name


@dataclass
class ExportOptions:
    """Options that control code generation"""

    soc_name: str = "soc"
    soc_class_name: str = "Soc"


def _hex(value: int) -> str:
    return f"{value:#010x}"


def _camel_case(value: str) -> str:
    parts = [part for part in re.split(r"[^a-zA-Z0-9]+", value) if part]
    return "".join(part[:1].upper() + part[1:] for part in parts)


def _is_member_name(name: str) -> bool:
    return name.isidentifier() and not keyword.iskeyword(name) and not name.startswith("_") and name not in RESERVED_NAMES


class CsrStructExporter:
    """
    Render a Python module of ``CsrStruct`` subclasses from a ``SocInfo``

    Every module in ``csr_bases`` becomes one class whose members are the CSRs
    named ``<module>_<member>``. When module names overlap (``sdram`` and
    ``sdram_phy``), a CSR belongs to the longest matching module. A root class
    lists every module, plus any CSR outside all modules, as an optional member.
    """

    def __init__(self) -> None:
        self.env = Environment(
            loader=PackageLoader("litex_bridge", "templates"),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            undefined=StrictUndefined,
            keep_trailing_newline=True,
        )
        self.env.filters["hex"] = _hex

    def render(self, soc_info: SocInfo, options: ExportOptions | None = None) -> str:
        """Render the generated module source"""
        options = options or ExportOptions()
        modules, loose = self._collect_modules(soc_info)

        root_members: list[ModuleSpec | RegisterSpec] = []
        taken: set[str] = set()
        for module in modules:
            if not _is_member_name(module.name):
                logger.warning("Skipping module `%s`: not usable as a Python attribute name", module.name)
                continue
            root_members.append(module)
            taken.add(module.name)
        for reg in loose:
            if reg.member in taken:
                logger.warning("Skipping CSR `%s`: clashes with a module of the same name", reg.qualified_name)
                continue
            root_members.append(reg)

        template = self.env.get_template("csr_structs.py.jinja")
        return template.render(
            soc_name=options.soc_name,
            soc_class_name=options.soc_class_name,
            modules=modules,
            root_members=root_members,
        )

    def export(self, soc_info: SocInfo, output: str | Path, options: ExportOptions | None = None) -> Path:
        """
        Write the generated module to ``output``

        Returns:
            Path of the written file
        """
        path = Path(output)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.render(soc_info, options), encoding="utf-8")
        logger.info("Wrote CSR groups to %s", path)
        return path

    def _collect_modules(self, soc_info: SocInfo) -> tuple[list[ModuleSpec], list[RegisterSpec]]:
        """Assign every CSR to the module owning its longest matching prefix"""
        modules: dict[str, ModuleSpec] = {}
        class_names: set[str] = set()
        for name in sorted(soc_info.csr_bases):
            class_name = f"{_camel_case(name) or 'Module'}Csrs"
            if class_name[0].isdigit():
                class_name = "_" + class_name
            while class_name in class_names:
                class_name += "_"
            class_names.add(class_name)
            modules[name] = ModuleSpec(name=name, base=soc_info.csr_bases[name], class_name=class_name)

        by_length = sorted(modules, key=len, reverse=True)
        loose: list[RegisterSpec] = []
        for qualified_name, info in soc_info.csr_registers.items():
            owner = next((m for m in by_length if qualified_name.startswith(m + "_")), None)
            member = qualified_name[len(owner) + 1 :] if owner is not None else qualified_name
            if not _is_member_name(member):
                logger.warning("Skipping CSR `%s`: `%s` is not usable as a member name", qualified_name, member)
                continue
            reg = RegisterSpec(member=member, qualified_name=qualified_name, info=info)
            if owner is None:
                loose.append(reg)
            else:
                modules[owner].registers.append(reg)

        populated = []
        for module in modules.values():
            if not module.registers:
                logger.debug("Module `%s` has no CSRs, not generating a group for it", module.name)
                continue
            module.registers.sort(key=lambda reg: (reg.info.addr, reg.member))
            populated.append(module)
        return populated, sorted(loose, key=lambda reg: reg.member)


__all__ = ["CsrStructExporter", "ExportOptions"]
