"""
Cryptographic Hashing for Governance

SHA256 hashing of raw bytes and canonical JSON objects. Used for the
parameters hash of archived policy/KPI files and for result
fingerprints.

All hashes are returned as lowercase hex strings.
"""

import hashlib
from typing import Any

from governance.canonical_json import canonical_dumps


def hash_bytes(data: bytes) -> str:
    """Lowercase hex SHA256 digest (64 characters)."""
    return hashlib.sha256(data).hexdigest()


def hash_canonical_json(obj: Any) -> str:
    """
    Compute SHA256 hash of the compact canonical JSON representation.

    Raises:
        ValueError: If obj contains NaN or Inf
        TypeError: If obj contains non-serializable types
    """
    canonical = canonical_dumps(obj, indent=None)
    return hash_bytes(canonical.encode('utf-8'))


def hash_canonical_json_short(obj: Any, length: int = 16) -> str:
    """Truncated canonical JSON hash (max 64 hex characters)."""
    return hash_canonical_json(obj)[:length]
