"""
common/input_validation.py - Engine Input Validation Layer

Contract checks shared by the casting, fusion and signal engines.

Design Philosophy:
- Fail-loud: caller contract violations (wrong line count, negative
  weights, malformed definitions) raise an EngineInputError subclass
- Configuration gaps are NOT validated here; the engines absorb those
  into neutral/low-confidence results
- Track failures: validators collect every problem before raising

Usage:
    from common.input_validation import (
        validate_line_values,
        validate_weight_vector,
        LineValidationError,
        PolicyValidationError,
    )

    validate_line_values([7, 8, 9, 6, 7, 8])
    validate_weight_vector({"primary": "0.6", "relating": "0.3", "mutual": "0.1"})

Author: Wake Robin Capital Management
Version: 1.0.0
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence

from common.constants import LINE_COUNT, VALID_LINE_VALUES, WEIGHT_SUM_TOLERANCE
from common.score_utils import to_decimal

logger = logging.getLogger(__name__)


# ============================================================================
# EXCEPTIONS
# ============================================================================

class EngineInputError(ValueError):
    """Base class for caller contract violations."""
    pass


class LineValidationError(EngineInputError):
    """Raised when a line sequence or a single line value is malformed."""
    pass


class StructureKeyError(EngineInputError):
    """Raised when a structure key or number is outside the 64-entry space."""
    pass


class PolicyValidationError(EngineInputError):
    """Raised when a policy table or weight vector is malformed."""
    pass


class FusionInputError(EngineInputError):
    """Raised when fusion is called with an impossible moving-line count."""
    pass


class DefinitionValidationError(EngineInputError):
    """Raised when a KPI threshold definition is malformed."""
    pass


# ============================================================================
# RESULT
# ============================================================================

@dataclass
class ValidationResult:
    """Aggregated validation result."""
    passed: bool
    errors: List[str] = field(default_factory=list)

    def summary(self) -> str:
        """Generate human-readable summary."""
        lines = [f"Validation {'PASSED' if self.passed else 'FAILED'}"]
        for err in self.errors[:10]:
            lines.append(f"  - {err}")
        if len(self.errors) > 10:
            lines.append(f"  ... and {len(self.errors) - 10} more")
        return "\n".join(lines)


# ============================================================================
# LINES
# ============================================================================

def validate_line_values(values: Sequence[Any]) -> None:
    """
    Check a raw outcome sequence: exactly six values, each in {6, 7, 8, 9}.

    Raises:
        LineValidationError: on any violation
    """
    if len(values) != LINE_COUNT:
        raise LineValidationError(
            f"Expected {LINE_COUNT} line values, got {len(values)}"
        )
    bad = [
        f"position {pos}: {value!r}"
        for pos, value in enumerate(values, start=1)
        if isinstance(value, bool) or value not in VALID_LINE_VALUES
    ]
    if bad:
        raise LineValidationError(f"Invalid line values ({'; '.join(bad)})")


# ============================================================================
# WEIGHTS
# ============================================================================

WEIGHT_KEYS = ("primary", "relating", "mutual")


def check_weight_vector(
    weights: Mapping[str, Any],
    label: str = "weights",
    require_unit_sum: bool = True,
) -> ValidationResult:
    """
    Validate a {primary, relating, mutual} weight mapping.

    Checks:
    - All three components present and numeric
    - No negative component
    - Components sum to 1 within WEIGHT_SUM_TOLERANCE (optional)
    """
    errors: List[str] = []
    values: Dict[str, Decimal] = {}

    for key in WEIGHT_KEYS:
        if key not in weights:
            errors.append(f"{label}: missing '{key}'")
            continue
        dec = to_decimal(weights[key])
        if dec is None or not dec.is_finite():
            errors.append(f"{label}: '{key}' is not numeric ({weights[key]!r})")
            continue
        if dec < 0:
            errors.append(f"{label}: '{key}' is negative ({dec})")
        values[key] = dec

    if require_unit_sum and not errors:
        total = sum(values.values(), Decimal("0"))
        if abs(total - Decimal("1")) > WEIGHT_SUM_TOLERANCE:
            errors.append(f"{label}: components sum to {total}, expected 1")

    return ValidationResult(passed=not errors, errors=errors)


def validate_weight_vector(
    weights: Mapping[str, Any],
    label: str = "weights",
    require_unit_sum: bool = True,
) -> None:
    """
    Raises:
        PolicyValidationError: if check_weight_vector fails
    """
    result = check_weight_vector(weights, label, require_unit_sum)
    if not result.passed:
        logger.error(f"Weight vector rejected: {result.errors}")
        raise PolicyValidationError(result.summary())


# ============================================================================
# FEATURES
# ============================================================================

def validate_unit_interval(value: Optional[Any], name: str) -> Optional[Decimal]:
    """
    Convert an optional feature score to Decimal and check it lies in [0, 1].

    None passes through (absent feature). Anything else that is not a
    number in [0, 1] raises EngineInputError.
    """
    if value is None:
        return None
    dec = to_decimal(value)
    if dec is None or not dec.is_finite():
        raise EngineInputError(f"{name} must be numeric, got {value!r}")
    if dec < 0 or dec > 1:
        raise EngineInputError(f"{name} must be within [0, 1], got {dec}")
    return dec
