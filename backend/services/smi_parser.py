"""
services/smi_parser.py
~~~~~~~~~~~~~~~~~~~~~~
Thin adapter over pysnmp's MibBuilder + pysmi compiler.

The rest of the backend never touches pysnmp objects directly; it only sees
ParsedNode records produced here. Operations mirror what the loader needs:

  init_parser()            fresh MibBuilder
  add_search_path(dir)     extra pysmi source directory
  load_module(name)        compile (if needed) + load one module
  list_loaded_modules()    every module in the builder, dependencies included
  get_module_nodes(name)   ParsedNode per symbol of a module
  lookup_node_by_oid(oid)  exact match against the builder's OID index
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from pyasn1.type import constraint
from pysnmp.smi import builder, compiler, error, view

from core.config import settings
from core.errors import ModuleLoadError, NodeNotFound
from core.oid import oid_to_str
from services.tree_builder import MibNode

logger = logging.getLogger(__name__)

# pysnmp adds this alias for the MODULE-IDENTITY of every compiled module
MODULE_ID_ALIAS = "PYSNMP_MODULE_ID"

# SMI macro that produced each pysnmp node class
DECL_BY_CLASS = {
    "MibIdentifier": "OBJECT IDENTIFIER",
    "ObjectIdentity": "OBJECT-IDENTITY",
    "ModuleIdentity": "MODULE-IDENTITY",
    "MibScalar": "OBJECT-TYPE",
    "MibTable": "OBJECT-TYPE",
    "MibTableRow": "OBJECT-TYPE",
    "MibTableColumn": "OBJECT-TYPE",
    "NotificationType": "NOTIFICATION-TYPE",
    "ObjectGroup": "OBJECT-GROUP",
    "NotificationGroup": "NOTIFICATION-GROUP",
    "ModuleCompliance": "MODULE-COMPLIANCE",
    "AgentCapabilities": "AGENT-CAPABILITIES",
}

# Application/base types a syntax can derive from, matched by class name
SMI_BASE_TYPES = {
    "Integer32", "Unsigned32", "Counter32", "Counter64", "Gauge32",
    "TimeTicks", "IpAddress", "Opaque", "Bits",
    "Integer", "OctetString", "ObjectIdentifier",
}


@dataclass
class ParsedNode:
    """One symbol as reported by the parser. ``oid`` is None for non-objects."""
    name: str
    module: str
    oid: Optional[str] = None
    description: str = ""
    reference: str = ""
    units: str = ""
    status: str = ""
    base_type: str = ""
    decl: str = ""
    format: str = ""
    enum_values: List[Tuple[int, str]] = field(default_factory=list)
    ranges: List[Tuple[int, int]] = field(default_factory=list)

    def to_mib_node(self) -> MibNode:
        return MibNode(
            name=self.name,
            oid=self.oid or "",
            module=self.module,
            description=self.description,
            reference=self.reference,
            units=self.units,
            status=self.status,
            base_type=self.base_type,
            decl=self.decl,
            format=self.format,
            enum_values=list(self.enum_values),
            ranges=list(self.ranges),
        )


# ==================== Metadata extraction ====================

def _safe_call(obj, method: str):
    fn = getattr(obj, method, None)
    if not callable(fn):
        return None
    try:
        return fn()
    except Exception:
        return None


def _text(value) -> str:
    if value is None:
        return ""
    return str(value).strip()


def symbol_oid(symbol_obj) -> Optional[str]:
    """Dotted OID of a pysnmp node object, None for types and plain values."""
    if isinstance(symbol_obj, type):
        return None
    name = getattr(symbol_obj, "name", None)
    if name is None or isinstance(name, str):
        return None
    try:
        parts = tuple(int(x) for x in name)
    except (TypeError, ValueError):
        return None
    return oid_to_str(parts) if parts else None


def base_type_class(syntax) -> Optional[type]:
    """First class in the syntax's MRO that is an SMI base type."""
    for cls in type(syntax).__mro__:
        if cls.__name__ in SMI_BASE_TYPES:
            return cls
    return None


def extract_display_hint(syntax) -> str:
    hint = _safe_call(syntax, "getDisplayHint")
    if hint is None:
        hint = getattr(syntax, "displayHint", None)
    return _text(hint) if isinstance(hint, str) else ""


def extract_enum_values(syntax) -> List[Tuple[int, str]]:
    """Enumeration labels in declaration order as (value, label) pairs."""
    named_values = getattr(syntax, "namedValues", None)
    if named_values is None:
        return []
    try:
        pairs = list(named_values.items())
    except Exception:
        return []
    return [(int(value), str(label)) for label, value in pairs]


def _collect_ranges(spec, out: List[Tuple[int, int]]) -> None:
    if spec is None:
        return
    # ValueSizeConstraint subclasses ValueRangeConstraint, so SIZE(..) lands here too
    if isinstance(spec, constraint.ValueRangeConstraint):
        out.append((int(spec.start), int(spec.stop)))
    elif isinstance(spec, constraint.AbstractConstraintSet):
        for member in spec:
            _collect_ranges(member, out)


def _ranges_of(spec) -> List[Tuple[int, int]]:
    found: List[Tuple[int, int]] = []
    _collect_ranges(spec, found)
    return found


def _added_ranges(outer, inner) -> List[Tuple[int, int]]:
    # subtype() appends the refinement to the parent's constraint set
    if outer[:len(inner)] == inner:
        added = outer[len(inner):]
    else:
        added = [bounds for bounds in outer if bounds not in inner]
    ranges: List[Tuple[int, int]] = []
    for bounds in added:
        if bounds not in ranges:
            ranges.append(bounds)
    return ranges


def _constraint_levels(syntax) -> List[List[Tuple[int, int]]]:
    """
    Ranges at each refinement step, innermost first: the syntax instance,
    then every class in its lineage down to (and including) the SMI base type.
    """
    levels = [_ranges_of(getattr(syntax, "subtypeSpec", None))]
    base_cls = base_type_class(syntax)
    for cls in type(syntax).__mro__:
        if base_cls is not None and not issubclass(cls, base_cls):
            continue
        if cls is base_cls or "subtypeSpec" in vars(cls):
            levels.append(_ranges_of(getattr(cls, "subtypeSpec", None)))
        if cls is base_cls:
            break
    return levels


def extract_ranges(syntax) -> List[Tuple[int, int]]:
    """
    Range/size constraints of the innermost refinement of the syntax.

    pysnmp stacks every refinement onto its parent's constraints, e.g. an
    object declared ``SnmpAdminString (SIZE (1..32))`` carries OctetString's
    SIZE(0..65535), the TC's SIZE(0..255) and its own SIZE(1..32). Only the
    last step is reported; the base type's own bounds are never reported.
    """
    levels = _constraint_levels(syntax)
    for outer, inner in zip(levels, levels[1:]):
        added = _added_ranges(outer, inner)
        if added:
            return added
    return []


def to_parsed_node(module: str, symbol_name: str, symbol_obj) -> ParsedNode:
    """Project a pysnmp symbol into a ParsedNode."""
    node = ParsedNode(name=symbol_name, module=module, oid=symbol_oid(symbol_obj))
    if node.oid is None:
        return node

    class_name = symbol_obj.__class__.__name__
    node.decl = DECL_BY_CLASS.get(class_name, class_name)
    node.description = _text(_safe_call(symbol_obj, "getDescription"))
    node.reference = _text(_safe_call(symbol_obj, "getReference"))
    node.units = _text(_safe_call(symbol_obj, "getUnits"))
    node.status = _text(_safe_call(symbol_obj, "getStatus"))

    syntax = _safe_call(symbol_obj, "getSyntax")
    if syntax is not None:
        base_cls = base_type_class(syntax)
        node.base_type = base_cls.__name__ if base_cls else syntax.__class__.__name__
        node.format = extract_display_hint(syntax)
        node.enum_values = extract_enum_values(syntax)
        node.ranges = extract_ranges(syntax)

    return node


# ==================== Parser adapter ====================

class SmiParser:
    """pysnmp-backed MIB parser. One instance owns one MibBuilder."""

    def __init__(self, compiled_dir=None, extra_sources=None):
        self.compiled_dir = Path(compiled_dir or settings.MIB_COMPILED_DIR)
        self.extra_sources = list(
            settings.MIB_EXTRA_SOURCES if extra_sources is None else extra_sources
        )
        self.search_paths: List[str] = []
        self.mib_builder = None
        self.mib_view = None
        self._compiler_ready = False

    def init_parser(self) -> None:
        self.mib_builder = builder.MibBuilder()
        # Descriptions/references are only kept when texts are loaded
        self.mib_builder.loadTexts = True
        self.mib_view = view.MibViewController(self.mib_builder)
        self.search_paths = []
        self._compiler_ready = False

    def _require_builder(self):
        if self.mib_builder is None:
            self.init_parser()
        return self.mib_builder

    def add_search_path(self, directory) -> None:
        path = os.path.abspath(str(directory))
        if path in self.search_paths:
            return
        self.search_paths.append(path)
        self._compiler_ready = False
        logger.debug(f"Added MIB search path: {path}")

    def _configure_sources(self) -> None:
        """(Re)attach the pysmi compiler with every known source."""
        mib_builder = self._require_builder()
        sources = [f"file://{p}" for p in self.search_paths] + self.extra_sources

        os.makedirs(self.compiled_dir, exist_ok=True)
        compiler.add_mib_compiler(
            mib_builder, sources=sources, destination=str(self.compiled_dir)
        )
        self._compiler_ready = True
        logger.debug(f"MIB sources configured: {sources}")

    def load_module(self, name: str) -> None:
        mib_builder = self._require_builder()
        if not self._compiler_ready:
            self._configure_sources()
        try:
            mib_builder.load_modules(name)
        except Exception as e:
            raise ModuleLoadError(name, str(e)) from e

    def list_loaded_modules(self) -> List[str]:
        return list(self._require_builder().mibSymbols.keys())

    def get_module_nodes(self, name: str) -> List[ParsedNode]:
        symbols = self._require_builder().mibSymbols.get(name, {})
        return [
            to_parsed_node(name, symbol_name, symbol_obj)
            for symbol_name, symbol_obj in symbols.items()
            if symbol_name != MODULE_ID_ALIAS
        ]

    def lookup_node_by_oid(self, oid: Tuple[int, ...]) -> ParsedNode:
        """Exact OID match; anything that resolves only to an ancestor is NotFound."""
        self._require_builder()
        oid_str = oid_to_str(oid)
        try:
            module, symbol_name, suffix = self.mib_view.get_node_location(tuple(oid))
            (symbol_obj,) = self.mib_builder.import_symbols(module, symbol_name)
        except error.SmiError as e:
            raise NodeNotFound(oid_str, str(e)) from e

        if suffix:
            raise NodeNotFound(oid_str, "no exact match")
        return to_parsed_node(module, symbol_name, symbol_obj)
