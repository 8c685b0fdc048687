"""
Governance Module - Deterministic Output and Parameters Archive

Provides:
- Canonical JSON serialization for byte-identical outputs
- SHA256 hashing for bytes and JSON objects
- Policy table and KPI definition loading from params_archive/

All operations are deterministic: same inputs produce identical outputs.
"""

from governance.canonical_json import canonical_dumps
from governance.hashing import (
    hash_bytes,
    hash_canonical_json,
    hash_canonical_json_short,
)
from governance.params_loader import (
    ParamsLoadError,
    ParamsValidationError,
    compute_parameters_hash,
    get_params_path,
    load_kpi_definitions,
    load_params,
    load_policy_table,
    save_params,
)

__all__ = [
    # Canonical JSON
    "canonical_dumps",
    # Hashing
    "hash_bytes",
    "hash_canonical_json",
    "hash_canonical_json_short",
    # Params
    "ParamsLoadError",
    "ParamsValidationError",
    "compute_parameters_hash",
    "get_params_path",
    "load_kpi_definitions",
    "load_params",
    "load_policy_table",
    "save_params",
]
