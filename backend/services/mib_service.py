"""
services/mib_service.py
~~~~~~~~~~~~~~~~~~~~~~~
Loads every MIB under MIB_DIR once, builds the OID forest and answers
tree / node queries.

Lifecycle:
  - one MibTreeService per process, created in the FastAPI lifespan
    and handed to routers through ``get_mib_service``.
  - load_and_build() does the work exactly once. Concurrent callers block
    on the lock and all observe the same outcome (forest or error).
  - the forest is never mutated afterwards; readers need no locking.
"""

import logging
import os
import threading
import time
from typing import Dict, List, Optional

from fastapi import Request

from core.config import settings
from core.errors import (
    DirectoryNotFound,
    ModuleLoadError,
    MibServiceError,
    SerializationError,
    TreeEmpty,
)
from core.oid import oid_to_str, parse_oid
from services.smi_parser import SmiParser
from services.tree_builder import MibNode, build_tree, iter_tree

logger = logging.getLogger(__name__)


class MibInfo:
    """Load outcome of one MIB file"""
    def __init__(self, name: str, file_path: str, status: str = "loaded"):
        self.name = name
        self.file_path = file_path
        self.status = status
        self.error_message: Optional[str] = None

    def to_dict(self):
        return {
            "name": self.name,
            "file": os.path.basename(self.file_path),
            "status": self.status,
            "error": self.error_message
        }


class MibTreeService:
    """
    Owns the parser, the per-file load status and the built forest.
    """

    def __init__(self, mib_dir=None, parser=None, duplicate_policy: Optional[str] = None,
                 extensions=None):
        self.mib_dir = str(mib_dir or settings.MIB_DIR)
        self.parser = parser if parser is not None else SmiParser()
        self.duplicate_policy = duplicate_policy or settings.DUPLICATE_OID_POLICY
        self.extensions = tuple(e.lower() for e in (extensions or settings.MIB_EXTENSIONS))

        self.loaded_mibs: Dict[str, MibInfo] = {}
        self.failed_mibs: Dict[str, MibInfo] = {}

        self._lock = threading.Lock()
        self._done = False
        self._roots: List[MibNode] = []
        self._tree_payload: Optional[list] = None
        self._error: Optional[MibServiceError] = None
        self._node_count = 0
        self._load_seconds = 0.0

    # ==================== Loading ====================

    def _is_mib_file(self, file_name: str) -> bool:
        if file_name.startswith("."):
            return False
        ext = os.path.splitext(file_name)[1].lower()
        return ext == "" or ext in self.extensions

    def discover_mib_files(self) -> Dict[str, str]:
        """
        Walk MIB_DIR, register every directory as a search path and
        return {module_name: file_path} in sorted path order.
        """
        if not os.path.isdir(self.mib_dir):
            raise DirectoryNotFound(self.mib_dir)

        walk_errors: List[OSError] = []
        files: List[str] = []

        for dir_path, dir_names, file_names in os.walk(self.mib_dir, onerror=walk_errors.append):
            dir_names.sort()
            self.parser.add_search_path(dir_path)
            for file_name in sorted(file_names):
                if self._is_mib_file(file_name):
                    files.append(os.path.join(dir_path, file_name))

        if walk_errors:
            err = walk_errors[0]
            raise DirectoryNotFound(err.filename or self.mib_dir, f"cannot be read: {err.strerror}")

        mib_files: Dict[str, str] = {}
        for file_path in files:
            mib_name = os.path.splitext(os.path.basename(file_path))[0]
            if mib_name in mib_files:
                logger.warning(
                    f"MIB {mib_name} found in both {mib_files[mib_name]} and {file_path}, using the first"
                )
                continue
            mib_files[mib_name] = file_path
        return mib_files

    def _load_single_mib(self, mib_name: str, file_path: str) -> None:
        """Load a single MIB and track its status"""
        try:
            self.parser.load_module(mib_name)
            self.loaded_mibs[mib_name] = MibInfo(mib_name, file_path, status="loaded")
            logger.debug(f"Loaded MIB module: {mib_name} (from file {file_path})")

        except ModuleLoadError as e:
            mib_info = MibInfo(mib_name, file_path, status="error")
            mib_info.error_message = e.message

            if "Cannot find" in e.message or "No module named" in e.message:
                mib_info.status = "missing_deps"

            self.failed_mibs[mib_name] = mib_info
            logger.warning(f"Failed to load MIB module {mib_name} (from file {file_path}): {e.message}. Skipping.")

    def collect_nodes(self) -> List[MibNode]:
        """Flatten every loaded module into MibNodes, dropping non-objects."""
        nodes: List[MibNode] = []
        for module_name in self.parser.list_loaded_modules():
            for parsed in self.parser.get_module_nodes(module_name):
                if not parsed.oid:
                    continue
                nodes.append(parsed.to_mib_node())
        return nodes

    def _load(self) -> None:
        started = time.monotonic()
        logger.info(f"Loading MIBs from {self.mib_dir}...")

        self.parser.init_parser()
        mib_files = self.discover_mib_files()

        if not mib_files:
            logger.warning(f"No MIB files found in {self.mib_dir}.")
        else:
            logger.info(f"Found {len(mib_files)} potential MIB files to load.")

        for mib_name, file_path in mib_files.items():
            self._load_single_mib(mib_name, file_path)

        logger.info(
            f"Finished MIB file loading. Loaded: {len(self.loaded_mibs)}, "
            f"Skipped: {len(self.failed_mibs)}"
        )

        flat_nodes = self.collect_nodes()
        self._roots = build_tree(flat_nodes, self.duplicate_policy)
        self._node_count = sum(1 for _ in iter_tree(self._roots))
        self._load_seconds = time.monotonic() - started

        if not self._roots:
            logger.warning("No MIB roots found after building tree. Check MIB files and paths.")
        else:
            logger.info(
                f"Built MIB tree: {len(self._roots)} root(s), {self._node_count} nodes "
                f"in {self._load_seconds:.2f}s"
            )

    def load_and_build(self) -> List[MibNode]:
        """
        Run the load at most once. Returns the sorted forest or raises the
        error recorded by the first (and only) attempt.
        """
        with self._lock:
            if not self._done:
                try:
                    self._load()
                except MibServiceError as e:
                    self._error = e
                    logger.error(f"MIB loading failed: {e}")
                except Exception as e:
                    self._error = MibServiceError(f"Error building MIB tree: {e}")
                    logger.error(f"MIB loading failed: {e}", exc_info=True)
                finally:
                    self._done = True

        if self._error is not None:
            raise self._error
        return self._roots

    # ==================== Queries ====================

    def get_tree(self) -> list:
        """JSON-ready forest. Raises TreeEmpty when nothing was built."""
        roots = self.load_and_build()
        if not roots:
            raise TreeEmpty()

        # Published once; the forest never changes after the build
        if self._tree_payload is None:
            try:
                self._tree_payload = [root.to_tree_dict() for root in roots]
            except (TypeError, ValueError, RecursionError) as e:
                raise SerializationError(f"Error processing MIB tree: {e}") from e
        return self._tree_payload

    def get_node(self, oid: str) -> dict:
        """Detail projection of one node, looked up in the parser's index."""
        oid_tuple = parse_oid(oid)
        self.load_and_build()

        parsed = self.parser.lookup_node_by_oid(oid_tuple)
        logger.debug(f"Node details for {oid_to_str(oid_tuple)}: {parsed.module}::{parsed.name}")
        try:
            return parsed.to_mib_node().to_detail_dict()
        except (TypeError, ValueError) as e:
            raise SerializationError(f"Error processing node details: {e}") from e

    def get_status(self) -> dict:
        """Overall load status"""
        return {
            "loaded": len(self.loaded_mibs),
            "failed": len(self.failed_mibs),
            "total": len(self.loaded_mibs) + len(self.failed_mibs),
            "ready": self._done and self._error is None,
            "error": str(self._error) if self._error else None,
            "roots": len(self._roots),
            "nodes": self._node_count,
            "load_seconds": round(self._load_seconds, 3),
            "mibs": [info.to_dict() for info in self.loaded_mibs.values()],
            "errors": [info.to_dict() for info in self.failed_mibs.values()]
        }

    def list_mib_files(self) -> List[str]:
        """Candidate MIB files under MIB_DIR, relative to it."""
        if not os.path.isdir(self.mib_dir):
            return []
        found = []
        for dir_path, _dirs, file_names in os.walk(self.mib_dir):
            for file_name in file_names:
                if self._is_mib_file(file_name):
                    found.append(os.path.relpath(os.path.join(dir_path, file_name), self.mib_dir))
        return sorted(found)


def get_mib_service(request: Request) -> MibTreeService:
    """FastAPI dependency: the service created at startup."""
    return request.app.state.mib_service
