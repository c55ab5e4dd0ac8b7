"""
core/oid.py
~~~~~~~~~~~
Dotted-OID string helpers.

Two flavours of parsing live here:

  * permissive: used for ordering. Non-numeric components count as 0,
    so a malformed OID coming out of a MIB never breaks a sort.
  * strict:     used for user input (``?oid=``). Anything that is not a
    dot-separated list of non-negative integers is rejected.
"""

import re
from typing import Tuple

from core.errors import MalformedOid

# ASCII digits only
_STRICT_OID_RE = re.compile(r"^\.?[0-9]+(\.[0-9]+)*$")
_LEADING_DIGITS_RE = re.compile(r"^\s*\+?([0-9]+)")


def _component_value(part: str) -> int:
    # Leading digits win ("12abc" -> 12), anything else is 0
    m = _LEADING_DIGITS_RE.match(part)
    return int(m.group(1)) if m else 0


def oid_sort_key(oid: str) -> Tuple[int, ...]:
    """
    Numeric sort key for a dotted OID string.

    Tuples compare element by element and a shorter tuple that is a prefix
    of a longer one sorts first, which is exactly ancestor-before-descendant.

        >>> sorted(["1.10", "1.2", "1"], key=oid_sort_key)
        ['1', '1.2', '1.10']
    """
    return tuple(_component_value(part) for part in oid.split("."))


def compare_oids(a: str, b: str) -> int:
    """Return -1, 0 or 1 comparing two OIDs numerically."""
    ka, kb = oid_sort_key(a), oid_sort_key(b)
    return (ka > kb) - (ka < kb)


def parent_oid(oid: str) -> str:
    """
    Parent of a dotted OID, or "" when the OID has at most one component.

        >>> parent_oid("1.3.6.1")
        '1.3.6'
        >>> parent_oid("1")
        ''
    """
    if "." not in oid:
        return ""
    return oid.rsplit(".", 1)[0]


def parse_oid(oid: str) -> Tuple[int, ...]:
    """Strictly parse user-supplied OID text into a tuple of ints."""
    text = (oid or "").strip()
    if not _STRICT_OID_RE.match(text):
        raise MalformedOid(oid or "")
    return tuple(int(x) for x in text.lstrip(".").split("."))


def oid_to_str(oid) -> str:
    return ".".join(str(x) for x in oid)
