#!/usr/bin/env python3
"""
hexagram_engine.py

Hexagram Structure Engine

Derives the three six-bit structures of a cast:
- primary:  polarities as cast (yang = 1, bit i = position i+1)
- relating: primary with every moving line flipped
- mutual:   polarities of positions (2, 3, 4, 3, 4, 5); lines 1 and 6
            never participate

Keys are six "0"/"1" characters, bit 0 first, so key[0] is the bottom
line. Numbers are bits + 1 (1..64) for lookup in external reference
tables.

Also derives phase and emphasis tags from the moving lines and the
inner/outer trigram split.

Design Philosophy:
- Pure functions over immutable inputs; repeated calls are bit-identical
- Contract violations (not six lines, malformed keys) raise
- Stdlib-only

Usage:
    structure = compute_structure(cast_lines(caster))
    structure.primary_key      # "000100"
    structure.moving_lines     # [2]
    infer_phase(structure.moving_lines)   # "BUILD"

Author: Wake Robin Capital Management
Version: 1.0.0
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence, Tuple, Union

from casting_engine import Line, lines_from_values
from common.constants import FULL_MASK, LINE_COUNT, MUTUAL_SOURCE_POSITIONS
from common.input_validation import LineValidationError, StructureKeyError
from common.types import Polarity

__version__ = "1.0.0"

logger = logging.getLogger(__name__)


# Phase by highest moving position
PHASE_STABLE = "STABLE_MODE"
PHASE_BY_TOP_MOVING_LINE: Dict[int, str] = {
    1: "INIT",
    2: "BUILD",
    3: "BUILD",
    4: "CONFLICT",
    5: "CONTROL",
    6: "OVERFLOW",
}

HIGH_VOLATILITY_MOVING_COUNT = 3


@dataclass(frozen=True)
class HexagramStructure:
    """Primary, relating and mutual structures of one cast."""
    primary: int
    relating: int
    mutual: int
    moving_lines: Tuple[int, ...]

    @property
    def primary_key(self) -> str:
        return bits_to_key(self.primary)

    @property
    def relating_key(self) -> str:
        return bits_to_key(self.relating)

    @property
    def mutual_key(self) -> str:
        return bits_to_key(self.mutual)

    @property
    def primary_number(self) -> int:
        return self.primary + 1

    @property
    def relating_number(self) -> int:
        return self.relating + 1

    @property
    def mutual_number(self) -> int:
        return self.mutual + 1

    @property
    def moving_count(self) -> int:
        return len(self.moving_lines)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bits": {
                "primary": self.primary,
                "relating": self.relating,
                "mutual": self.mutual,
            },
            "moving_lines": list(self.moving_lines),
            "primary_key": self.primary_key,
            "relating_key": self.relating_key,
            "mutual_key": self.mutual_key,
            "primary_number": self.primary_number,
            "relating_number": self.relating_number,
            "mutual_number": self.mutual_number,
        }


# =============================================================================
# KEY <-> BITS <-> NUMBER
# =============================================================================

def polarities_to_bits(polarities: Sequence[Polarity]) -> int:
    bits = 0
    for i, polarity in enumerate(polarities):
        if polarity is Polarity.YANG:
            bits |= 1 << i
    return bits


def bits_to_key(bits: int) -> str:
    """Six-char key, bit 0 first."""
    if not 0 <= bits <= FULL_MASK:
        raise StructureKeyError(f"Structure bits must be 0..{FULL_MASK}, got {bits}")
    return "".join("1" if bits & (1 << i) else "0" for i in range(LINE_COUNT))


def key_to_bits(key: str) -> int:
    if len(key) != LINE_COUNT or any(ch not in "01" for ch in key):
        raise StructureKeyError(f"Structure key must be {LINE_COUNT} chars of 0/1, got {key!r}")
    bits = 0
    for i, ch in enumerate(key):
        if ch == "1":
            bits |= 1 << i
    return bits


def key_to_number(key: str) -> int:
    return key_to_bits(key) + 1


def number_to_key(number: int) -> str:
    if not 1 <= number <= FULL_MASK + 1:
        raise StructureKeyError(f"Structure number must be 1..{FULL_MASK + 1}, got {number}")
    return bits_to_key(number - 1)


def trigram_keys(key: str) -> Tuple[str, str]:
    """(inner, outer) trigram keys: lines 1-3 and lines 4-6."""
    key_to_bits(key)
    return key[:3], key[3:]


# =============================================================================
# STRUCTURE
# =============================================================================

def _flip(polarity: Polarity) -> Polarity:
    return Polarity.YIN if polarity is Polarity.YANG else Polarity.YANG


def compute_structure(lines: Sequence[Union[Line, int]]) -> HexagramStructure:
    """
    Derive primary, relating and mutual structures.

    Args:
        lines: Six Line objects (positions 1..6 in order) or six raw
            line values

    Returns:
        HexagramStructure

    Raises:
        LineValidationError: not exactly six lines, invalid values, or
            positions other than 1..6 in order
    """
    if len(lines) != LINE_COUNT:
        raise LineValidationError(f"Expected {LINE_COUNT} lines, got {len(lines)}")
    if not all(isinstance(line, Line) for line in lines):
        lines = lines_from_values(list(lines))
    positions = [line.position for line in lines]
    if positions != list(range(1, LINE_COUNT + 1)):
        raise LineValidationError(f"Line positions must be 1..{LINE_COUNT} in order, got {positions}")

    polarities = [line.polarity for line in lines]
    relating_polarities = [
        _flip(line.polarity) if line.is_moving else line.polarity
        for line in lines
    ]
    mutual_polarities = [polarities[pos - 1] for pos in MUTUAL_SOURCE_POSITIONS]

    structure = HexagramStructure(
        primary=polarities_to_bits(polarities),
        relating=polarities_to_bits(relating_polarities),
        mutual=polarities_to_bits(mutual_polarities),
        moving_lines=tuple(sorted(line.position for line in lines if line.is_moving)),
    )
    logger.debug(
        f"Structure primary={structure.primary_key} relating={structure.relating_key} "
        f"mutual={structure.mutual_key} moving={list(structure.moving_lines)}"
    )
    return structure


def infer_phase(moving_lines: Sequence[int]) -> str:
    """Phase label from the highest moving position."""
    if not moving_lines:
        return PHASE_STABLE
    return PHASE_BY_TOP_MOVING_LINE[max(moving_lines)]


def infer_emphasis(structure: HexagramStructure) -> List[str]:
    """
    Structural emphasis tags, in fixed order:
    - HIGH_VOLATILITY: three or more moving lines
    - ENV_SHIFT: outer trigram changes from primary to relating
    - SELF_SHIFT: inner trigram changes from primary to relating
    """
    tags = []
    if structure.moving_count >= HIGH_VOLATILITY_MOVING_COUNT:
        tags.append("HIGH_VOLATILITY")

    primary_inner, primary_outer = trigram_keys(structure.primary_key)
    relating_inner, relating_outer = trigram_keys(structure.relating_key)
    if primary_outer != relating_outer:
        tags.append("ENV_SHIFT")
    if primary_inner != relating_inner:
        tags.append("SELF_SHIFT")
    return tags
