"""
core/errors.py
~~~~~~~~~~~~~~
Error kinds raised by the MIB loader, tree builder and node queries.

Routers translate these into HTTP status codes:

  MalformedOid        -> 400
  NodeNotFound        -> 404
  everything else     -> 500
"""


class MibServiceError(Exception):
    """Base class for all MIB service failures."""


class DirectoryNotFound(MibServiceError):
    """The MIB root directory is missing or cannot be traversed."""

    def __init__(self, path, reason: str = "not found"):
        self.path = str(path)
        self.reason = reason
        super().__init__(f"MIB directory '{self.path}' {reason}")


class ModuleLoadError(MibServiceError):
    """A single MIB module failed to compile or load."""

    def __init__(self, module: str, message: str):
        self.module = module
        self.message = message
        super().__init__(f"Failed to load MIB module {module}: {message}")


class DuplicateOid(MibServiceError):
    """Two nodes share an OID and the duplicate policy is 'error'."""

    def __init__(self, oid: str, first: str, second: str):
        self.oid = oid
        super().__init__(f"Duplicate OID {oid}: {first} and {second}")


class TreeEmpty(MibServiceError):
    """The load finished but produced no root nodes."""

    def __init__(self):
        super().__init__("No MIBs loaded or no roots found.")


class NodeNotFound(MibServiceError):
    def __init__(self, oid: str, reason: str = ""):
        self.oid = oid
        msg = f"Node not found for OID {oid}"
        super().__init__(f"{msg}: {reason}" if reason else msg)


class MalformedOid(MibServiceError):
    def __init__(self, oid: str):
        self.oid = oid
        super().__init__(f"Invalid OID '{oid}'")


class SerializationError(MibServiceError):
    """A node could not be projected to JSON."""
