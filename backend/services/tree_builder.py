"""
services/tree_builder.py
~~~~~~~~~~~~~~~~~~~~~~~~
Rebuilds the OID hierarchy from a flat collection of MIB nodes.

The parser hands us nodes that only know their own OID. Parent/child
linkage is reconstructed from the OID text itself:

  parent("1.3.6.1.2") == "1.3.6.1"

A node whose parent is not part of the collection (a module loaded without
the module that defines its ancestors) is promoted to a root, so every node
stays reachable. Children and roots are ordered numerically, component by
component ("1.2" < "1.10").
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Optional, Tuple

from core.errors import DuplicateOid
from core.oid import oid_sort_key, parent_oid

logger = logging.getLogger(__name__)

DUPLICATE_POLICIES = ("overwrite", "keep_first", "error")


@dataclass
class MibNode:
    """A node of the reconstructed MIB tree."""
    name: str
    oid: str
    module: str = ""
    description: str = ""
    reference: str = ""
    units: str = ""
    status: str = ""
    base_type: str = ""
    decl: str = ""
    format: str = ""
    enum_values: List[Tuple[int, str]] = field(default_factory=list)
    ranges: List[Tuple[int, int]] = field(default_factory=list)
    children: List["MibNode"] = field(default_factory=list)

    def to_tree_dict(self) -> dict:
        """Projection served by the tree endpoint (recursive)."""
        data = {"name": self.name, "oid": self.oid}
        if self.description:
            data["description"] = self.description
        if self.children:
            data["children"] = [child.to_tree_dict() for child in self.children]
        return data

    def to_detail_dict(self) -> dict:
        """Projection served by the node endpoint. Never includes children."""
        data = {"name": self.name, "oid": self.oid}
        optional = (
            ("description", self.description),
            ("nodeType", self.base_type),
            ("decl", self.decl),
            ("format", self.format),
            ("reference", self.reference),
            ("status", self.status),
            ("units", self.units),
        )
        for key, value in optional:
            if value:
                data[key] = value
        if self.enum_values:
            data["enumValues"] = [
                {"value": value, "label": label} for value, label in self.enum_values
            ]
        if self.ranges:
            data["ranges"] = [{"min": lo, "max": hi} for lo, hi in self.ranges]
        return data


def _sort_nodes(nodes: List[MibNode]) -> None:
    nodes.sort(key=lambda n: oid_sort_key(n.oid))


def index_by_oid(flat_nodes: Iterable[MibNode], policy: str = "overwrite") -> Dict[str, MibNode]:
    """
    OID -> node lookup used for parent resolution.

    Duplicate OIDs are resolved by ``policy``:
      overwrite   last occurrence wins
      keep_first  first occurrence wins
      error       raise DuplicateOid
    """
    if policy not in DUPLICATE_POLICIES:
        raise ValueError(f"Unknown duplicate OID policy '{policy}'")

    nodes_by_oid: Dict[str, MibNode] = {}
    duplicates = 0

    for node in flat_nodes:
        existing = nodes_by_oid.get(node.oid)
        if existing is not None:
            duplicates += 1
            if policy == "error":
                raise DuplicateOid(
                    node.oid,
                    f"{existing.module}::{existing.name}",
                    f"{node.module}::{node.name}",
                )
            logger.debug(
                f"Duplicate OID {node.oid}: {existing.module}::{existing.name} "
                f"vs {node.module}::{node.name} (policy={policy})"
            )
            if policy == "keep_first":
                continue
        # Copy so the caller's nodes never get children attached
        nodes_by_oid[node.oid] = replace(node, children=[])

    if duplicates:
        logger.info(f"Resolved {duplicates} duplicate OID(s) with policy '{policy}'")

    return nodes_by_oid


def build_tree(flat_nodes: Iterable[MibNode], duplicate_policy: str = "overwrite") -> List[MibNode]:
    """
    Link ``flat_nodes`` into a forest and return its roots, sorted.

    Input nodes are not modified. An empty input yields an empty list;
    deciding whether an empty forest is an error is up to the caller.
    """
    nodes_by_oid = index_by_oid(flat_nodes, duplicate_policy)

    roots: List[MibNode] = []
    orphans = 0

    for oid, node in nodes_by_oid.items():
        parent_key = parent_oid(oid)
        if not parent_key:
            roots.append(node)
            continue

        parent: Optional[MibNode] = nodes_by_oid.get(parent_key)
        if parent is not None:
            parent.children.append(node)
        else:
            # Dangling parent: keep the node reachable as a root
            orphans += 1
            logger.debug(
                f"Parent OID {parent_key} not found for {node.name} ({oid}), treating as root"
            )
            roots.append(node)

    for node in nodes_by_oid.values():
        if len(node.children) > 1:
            _sort_nodes(node.children)
    _sort_nodes(roots)

    if orphans:
        logger.info(f"{orphans} node(s) had no parent in the loaded set and became roots")

    return roots


def iter_tree(roots: Iterable[MibNode]):
    """Depth-first, pre-order walk over a forest."""
    stack = list(reversed(list(roots)))
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))
