"""
common/score_utils.py - Score and Weight Manipulation Utilities

Provides standardized utilities shared by the fusion and signal engines:
- Safe Decimal conversion
- Bounds clamping for confidences
- Weight renormalization

Design Philosophy:
- DECIMAL-ONLY: All weight and confidence operations use Decimal
- DETERMINISTIC: Same inputs always produce same outputs
- NO INTERMEDIATE ROUNDING: renormalized weights keep full context
  precision so that they sum to 1 within WEIGHT_SUM_TOLERANCE

Usage:
    from common.score_utils import clamp_unit, normalize_weights, to_decimal

    confidence = clamp_unit(raw_confidence)
    primary, relating, mutual = normalize_weights([p, r, m])

Author: Wake Robin Capital Management
Version: 1.0.0
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, List, Optional, Sequence, Union


UNIT_MIN = Decimal("0")
UNIT_MAX = Decimal("1")


# ============================================================================
# TYPE CONVERSION
# ============================================================================

def to_decimal(
    value: Any,
    default: Optional[Decimal] = None
) -> Optional[Decimal]:
    """
    Safely convert value to Decimal.

    Handles:
    - None -> default
    - Decimal -> pass through
    - int/float -> convert via string (for precision)
    - str -> parse (strips whitespace)
    - bool -> default (prevents True -> Decimal("1"))

    Args:
        value: Value to convert
        default: Default value if conversion fails

    Returns:
        Decimal value or default
    """
    if value is None:
        return default

    try:
        if isinstance(value, Decimal):
            return value
        if isinstance(value, bool):
            return default
        if isinstance(value, (int, float)):
            return Decimal(str(value))
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                return default
            return Decimal(stripped)
        return default
    except (InvalidOperation, ValueError, TypeError):
        return default




# ============================================================================
# CLAMPING
# ============================================================================

def clamp_unit(
    value: Union[Decimal, float, int, str],
    min_val: Decimal = UNIT_MIN,
    max_val: Decimal = UNIT_MAX,
) -> Decimal:
    """
    Clamp a confidence-like value to [min_val, max_val].

    Examples:
        >>> clamp_unit(Decimal("1.07"))
        Decimal('1')
        >>> clamp_unit(Decimal("0.02"), min_val=Decimal("0.1"))
        Decimal('0.1')
    """
    dec_value = to_decimal(value, min_val)
    return max(min_val, min(max_val, dec_value))


# ============================================================================
# WEIGHTS
# ============================================================================

def normalize_weights(weights: Sequence[Decimal]) -> List[Decimal]:
    """
    Divide every weight by the total so the result sums to 1.

    A non-positive total cannot be normalized; the equal split is
    returned instead.

    Args:
        weights: Non-negative Decimal weights

    Returns:
        List of normalized Decimal weights, same order
    """
    total = sum(weights, Decimal("0"))
    if total <= 0:
        share = Decimal("1") / Decimal(len(weights))
        return [share for _ in weights]
    return [w / total for w in weights]
