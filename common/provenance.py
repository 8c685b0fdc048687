"""
Provenance tracking for deterministic outputs.
"""
from __future__ import annotations

from typing import Any, Dict

from governance.hashing import hash_canonical_json

# Fields excluded from hash computation (non-deterministic)
HASH_EXCLUDED_FIELDS = frozenset([
    "provenance",
    "generated_at",
    "timestamp",
    "runtime_ms",
])


def _strip_excluded(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            k: _strip_excluded(v)
            for k, v in value.items()
            if k not in HASH_EXCLUDED_FIELDS
        }
    if isinstance(value, (list, tuple)):
        return [_strip_excluded(v) for v in value]
    return value


def compute_hash(data: Any) -> str:
    """
    Deterministic SHA-256 of the canonical JSON form of data, prefixed
    "sha256:". Fields in HASH_EXCLUDED_FIELDS are dropped at every dict
    level.
    """
    return f"sha256:{hash_canonical_json(_strip_excluded(data))}"


def create_provenance(
    engine_version: str,
    inputs: Dict[str, Any],
    outputs: Dict[str, Any],
) -> Dict[str, Any]:
    """
    Create provenance record for an engine output.

    Args:
        engine_version: Version of the engine that produced the output
        inputs: Input data for hash computation (seed, method, profile, ...)
        outputs: Output data for hash computation

    Returns:
        Dict with engine_version, inputs_hash, result_hash
    """
    return {
        "engine_version": engine_version,
        "inputs_hash": compute_hash(inputs),
        "result_hash": compute_hash(outputs),
    }
