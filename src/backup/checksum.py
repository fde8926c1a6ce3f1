"""
Backup integrity checksum.

A 32-bit rolling string hash (`h = h * 31 + unit`) over the compact JSON
serialization of the payload, rendered as the absolute value in lowercase
hex. It detects accidental corruption and hand edits of a backup file; it
is not a cryptographic signature.

The hash walks UTF-16 code units so that files produced by the web client
and by this service hash identically for the same JSON text.
"""

import json
from typing import Any

BACKUP_VERSION = "1.0.0"

_MASK = 0xFFFFFFFF


def canonical_json(payload: Any) -> str:
    """Compact JSON in the payload's own key order."""
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


def string_hash(text: str) -> int:
    """Signed 32-bit `h * 31 + unit` hash of a string."""
    encoded = text.encode("utf-16-le", "surrogatepass")
    h = 0
    for i in range(0, len(encoded), 2):
        unit = encoded[i] | (encoded[i + 1] << 8)
        h = (h * 31 + unit) & _MASK
    if h >= 0x80000000:
        h -= 0x100000000
    return h


def compute_checksum(payload: Any) -> str:
    """Checksum of a backup's `data` object."""
    return format(abs(string_hash(canonical_json(payload))), "x")


def major_version(version: str) -> str:
    return version.split(".")[0]


def is_compatible(version: str, current: str = BACKUP_VERSION) -> bool:
    """Only the major component gates compatibility."""
    return major_version(version) == major_version(current)
