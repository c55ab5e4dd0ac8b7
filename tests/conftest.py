"""Shared fixtures: a fake MIB parser and service/client factories."""

import os
import sys
import warnings
from typing import Any, Callable, Dict, Iterable, List, Optional

import pytest

# Silence pysnmp's own DeprecationWarnings; not actionable here
warnings.filterwarnings("ignore", category=DeprecationWarning, module=r"pysnmp.*")

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "backend")))

from core.errors import ModuleLoadError, NodeNotFound  # noqa: E402
from core.oid import oid_to_str  # noqa: E402
from services.mib_service import MibTreeService  # noqa: E402
from services.smi_parser import ParsedNode  # noqa: E402
from services.tree_builder import MibNode  # noqa: E402


def node(oid: str, name: Optional[str] = None, **attrs: Any) -> MibNode:
    """Shorthand MibNode constructor for tests."""
    return MibNode(name=name or f"n{oid.replace('.', '_')}", oid=oid, **attrs)


def parsed(oid: Optional[str], name: str, module: str = "TEST-MIB", **attrs: Any) -> ParsedNode:
    return ParsedNode(name=name, module=module, oid=oid, **attrs)


class FakeParser:
    """In-memory stand-in for SmiParser."""

    def __init__(
        self,
        modules: Optional[Dict[str, List[ParsedNode]]] = None,
        failing: Optional[Dict[str, str]] = None,
        dependencies: Iterable[str] = (),
    ) -> None:
        self.modules = modules or {}
        self.failing = failing or {}
        self.dependencies = list(dependencies)
        self.init_calls = 0
        self.search_paths: List[str] = []
        self.load_calls: List[str] = []
        self.lookups: List[tuple] = []

    def init_parser(self) -> None:
        self.init_calls += 1

    def add_search_path(self, directory: str) -> None:
        self.search_paths.append(directory)

    def load_module(self, name: str) -> None:
        self.load_calls.append(name)
        if name in self.failing:
            raise ModuleLoadError(name, self.failing[name])

    def list_loaded_modules(self) -> List[str]:
        loaded = [m for m in self.load_calls if m not in self.failing]
        return self.dependencies + [m for m in self.modules if m in loaded and m not in self.dependencies]

    def get_module_nodes(self, name: str) -> List[ParsedNode]:
        return list(self.modules.get(name, []))

    def lookup_node_by_oid(self, oid: tuple) -> ParsedNode:
        self.lookups.append(oid)
        oid_str = oid_to_str(oid)
        for module in self.list_loaded_modules():
            for p in self.modules.get(module, []):
                if p.oid == oid_str:
                    return p
        raise NodeNotFound(oid_str)


@pytest.fixture
def mib_dir(tmp_path: Any) -> Any:
    """MIB directory with two modules and a non-MIB file."""
    root = tmp_path / "mibs"
    (root / "vendor").mkdir(parents=True)
    (root / "SYSTEM-MIB.txt").write_text("SYSTEM-MIB DEFINITIONS ::= BEGIN END")
    (root / "vendor" / "VENDOR-MIB.mib").write_text("VENDOR-MIB DEFINITIONS ::= BEGIN END")
    (root / "README.md").write_text("not a mib")
    return root


@pytest.fixture
def sample_modules() -> Dict[str, List[ParsedNode]]:
    return {
        "SYSTEM-MIB": [
            parsed("1", "iso", module="SYSTEM-MIB"),
            parsed("1.3", "org", module="SYSTEM-MIB"),
            parsed("1.3.6.1.2.1.1", "system", module="SYSTEM-MIB",
                   description="The system group"),
            parsed("1.3.6.1.2.1.1.10", "sysTen", module="SYSTEM-MIB"),
            parsed("1.3.6.1.2.1.1.2", "sysObjectID", module="SYSTEM-MIB"),
            parsed("1.3.6.1.2.1.1.1", "sysDescr", module="SYSTEM-MIB",
                   description="A textual description", base_type="OctetString",
                   decl="OBJECT-TYPE", format="255a", status="current",
                   ranges=[(0, 255)]),
            parsed(None, "DisplayString", module="SYSTEM-MIB"),
        ],
        "VENDOR-MIB": [
            parsed("1.3.6.1.4.1.9999", "vendor", module="VENDOR-MIB"),
            parsed("1.3.6.1.4.1.9999.1", "vendorStatus", module="VENDOR-MIB",
                   base_type="Integer32", decl="OBJECT-TYPE",
                   enum_values=[(1, "up"), (2, "down")], units="state"),
        ],
    }


@pytest.fixture
def make_service(mib_dir: Any, sample_modules: Dict[str, List[ParsedNode]]) -> Callable[..., MibTreeService]:
    def _make(**kwargs: Any) -> MibTreeService:
        parser = kwargs.pop("parser", None) or FakeParser(modules=sample_modules)
        kwargs.setdefault("mib_dir", mib_dir)
        kwargs.setdefault("duplicate_policy", "overwrite")
        return MibTreeService(parser=parser, **kwargs)

    return _make
