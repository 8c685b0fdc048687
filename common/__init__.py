"""
common - Shared utilities for the decision fusion engines.

Provides:
- constants: Thresholds, bonuses and the seed sentinel
- random_state: Seed resolution and the xorshift32 generator
- types: Enums and JSON-shaped input types
- input_validation: Exception hierarchy and contract checks
- score_utils: Decimal conversion, clamping and weight renormalization
- provenance: Deterministic result hashing
- logging_config: Logging setup and run ID correlation
"""

from common.input_validation import (
    DefinitionValidationError,
    EngineInputError,
    FusionInputError,
    LineValidationError,
    PolicyValidationError,
    StructureKeyError,
    ValidationResult,
)
from common.provenance import compute_hash, create_provenance
from common.random_state import DeterministicRNG, fnv1a_32, resolve_seed
from common.types import Direction, FocusHexagram, Polarity, SignalType, ThresholdZone

__all__ = [
    "DefinitionValidationError",
    "EngineInputError",
    "FusionInputError",
    "LineValidationError",
    "PolicyValidationError",
    "StructureKeyError",
    "ValidationResult",
    "compute_hash",
    "create_provenance",
    "DeterministicRNG",
    "fnv1a_32",
    "resolve_seed",
    "Direction",
    "FocusHexagram",
    "Polarity",
    "SignalType",
    "ThresholdZone",
]
