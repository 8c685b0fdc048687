#!/usr/bin/env python3
"""
casting_engine.py

Seeded Casting Engine

Draws six line values (6/7/8/9) from one of three probability models,
all driven by the same xorshift32 generator in common/random_state.py.

Methods:
1. THREE_COINS: three fair coin sub-draws per line; heads count
   0/1/2/3 -> 6/8/7/9 (P = 1/8, 3/8, 3/8, 1/8 for 6, 7, 8, 9)
2. YARROW_STALK: one draw in [0, 16) split into buckets of width
   1/3/5/7 -> 9/6/7/8 (P = 3/16, 5/16, 7/16, 1/16 for 6, 7, 8, 9)
3. UNIFORM: one draw in [0, 4) indexing (6, 7, 8, 9)

Line semantics:
- 6 old yin   (yin, moving)
- 7 young yang (yang, static)
- 8 young yin  (yin, static)
- 9 old yang  (yang, moving)

Design Philosophy:
- Deterministic: identical seed -> identical lines on every platform
- Never fails at runtime; the resolved seed is always surfaced for replay
- Stdlib-only

Usage:
    caster = Caster(CastingMethod.THREE_COINS, seed="launch-q3")
    lines = cast_lines(caster)
    replay = cast_lines(Caster(CastingMethod.THREE_COINS, seed=caster.seed))

Author: Wake Robin Capital Management
Version: 1.0.0
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from fractions import Fraction
from typing import Any, Dict, List

from common.constants import LINE_COUNT, VALID_LINE_VALUES
from common.input_validation import LineValidationError, validate_line_values
from common.random_state import DeterministicRNG, RNGAudit, SeedLike
from common.types import Polarity

__version__ = "1.0.0"

logger = logging.getLogger(__name__)


class CastingMethod(str, Enum):
    """Closed set of probability models."""
    THREE_COINS = "three-coins"
    YARROW_STALK = "yarrow-stalk"
    UNIFORM = "uniform"


# Exact outcome distribution of each method, keyed by line value
OUTCOME_PROBABILITIES: Dict[CastingMethod, Dict[int, Fraction]] = {
    CastingMethod.THREE_COINS: {
        6: Fraction(1, 8),
        7: Fraction(3, 8),
        8: Fraction(3, 8),
        9: Fraction(1, 8),
    },
    CastingMethod.YARROW_STALK: {
        6: Fraction(3, 16),
        7: Fraction(5, 16),
        8: Fraction(7, 16),
        9: Fraction(1, 16),
    },
    CastingMethod.UNIFORM: {
        6: Fraction(1, 4),
        7: Fraction(1, 4),
        8: Fraction(1, 4),
        9: Fraction(1, 4),
    },
}

# heads count -> line value
_COIN_OUTCOMES = (6, 8, 7, 9)

# (exclusive upper bound in [0, 16), line value), in draw order
_YARROW_BUCKETS = ((1, 9), (4, 6), (9, 7), (16, 8))


@dataclass(frozen=True)
class Line:
    """One cast line."""
    value: int
    polarity: Polarity
    is_moving: bool
    position: int  # 1..6, 1 = bottom

    def to_dict(self) -> Dict[str, Any]:
        return {
            "value": self.value,
            "polarity": self.polarity.value,
            "is_moving": self.is_moving,
            "position": self.position,
        }


def parse_line(value: int, position: int) -> Line:
    """
    Classify a line value.

    Raises:
        LineValidationError: value not in {6,7,8,9} or position not in 1..6
    """
    if isinstance(value, bool) or value not in VALID_LINE_VALUES:
        raise LineValidationError(f"Invalid line value {value!r} at position {position}")
    if not 1 <= position <= LINE_COUNT:
        raise LineValidationError(f"Line position must be 1..{LINE_COUNT}, got {position}")

    polarity = Polarity.YIN if value in (6, 8) else Polarity.YANG
    return Line(
        value=value,
        polarity=polarity,
        is_moving=value in (6, 9),
        position=position,
    )


class Caster:
    """
    A seeded casting method.

    Each caster owns its generator; two casters built from the same
    method and seed produce the same line sequence.
    """

    def __init__(self, method: CastingMethod = CastingMethod.THREE_COINS, seed: SeedLike = None):
        self.method = CastingMethod(method)
        self._rng = DeterministicRNG(seed, context=self.method.value)
        logger.debug(f"Caster {self.method.value} seeded with {self._rng.seed_int}")

    @property
    def seed(self) -> int:
        """Resolved 32-bit seed; pass it back in to replay this caster."""
        return self._rng.seed_int

    def roll(self, position: int) -> int:
        """Draw the value for one line position (position does not affect the draw)."""
        if self.method is CastingMethod.THREE_COINS:
            heads = sum(self._rng.next_int(2) for _ in range(3))
            return _COIN_OUTCOMES[heads]

        if self.method is CastingMethod.YARROW_STALK:
            r = self._rng.next_int(16)
            for upper, value in _YARROW_BUCKETS:
                if r < upper:
                    return value

        return VALID_LINE_VALUES[self._rng.next_int(4)]

    def audit(self) -> RNGAudit:
        return self._rng.audit()


def cast_lines(caster: Caster) -> List[Line]:
    """Roll positions 1..6 in order and classify each value."""
    lines = [parse_line(caster.roll(pos), pos) for pos in range(1, LINE_COUNT + 1)]
    logger.debug(
        f"Cast {caster.method.value} seed={caster.seed}: {[line.value for line in lines]}"
    )
    return lines


def lines_from_values(values: List[int]) -> List[Line]:
    """
    Build lines from six externally supplied values.

    Raises:
        LineValidationError: not exactly six values, or any value invalid
    """
    validate_line_values(values)
    return [parse_line(value, pos) for pos, value in enumerate(values, start=1)]
