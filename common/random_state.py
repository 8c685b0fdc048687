# common/random_state.py
"""
Deterministic random state for casting.

The generator is a 32-bit xorshift (13/17/5 shifts). Every draw is a pure
function of the resolved seed and the number of prior draws, so a seed
persisted with a result replays the run exactly on any platform.

Seed resolution:
- int  -> masked to 32 bits
- str  -> FNV-1a over UTF-16 code units
- None -> fresh draw from the OS entropy pool (surfaced for replay)
- a resolved 0 is remapped to ZERO_SEED_SENTINEL (xorshift is stuck at 0)
"""
from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Union

from common.constants import ZERO_SEED_SENTINEL

UINT32_MASK = 0xFFFFFFFF

FNV_OFFSET_BASIS = 2166136261
FNV_PRIME = 16777619

SeedLike = Union[int, str, None]


def to_uint32(seed_int: int) -> int:
    return seed_int & UINT32_MASK


def fnv1a_32(text: str) -> int:
    """FNV-1a hash of a string, 32-bit, over UTF-16 code units."""
    h = FNV_OFFSET_BASIS
    data = text.encode("utf-16-le")
    for i in range(0, len(data), 2):
        h ^= data[i] | (data[i + 1] << 8)
        h = (h * FNV_PRIME) & UINT32_MASK
    return h


def resolve_seed(seed: SeedLike = None) -> int:
    """
    Resolve a caller seed to the non-zero 32-bit integer the generator uses.

    Raises:
        TypeError: seed is neither int, str nor None (bool is rejected)
    """
    if seed is None:
        resolved = random.SystemRandom().getrandbits(32)
    elif isinstance(seed, bool):
        raise TypeError("seed must be int, str or None, not bool")
    elif isinstance(seed, int):
        resolved = to_uint32(seed)
    elif isinstance(seed, str):
        resolved = fnv1a_32(seed)
    else:
        raise TypeError(f"seed must be int, str or None, got {type(seed).__name__}")

    if resolved == 0:
        resolved = ZERO_SEED_SENTINEL
    return resolved


@dataclass(frozen=True)
class RNGAudit:
    context: str
    seed_int: int
    draws: int

    def as_dict(self) -> dict:
        return {"context": self.context, "seed_int": self.seed_int, "draws": self.draws}


class DeterministicRNG:
    """xorshift32 generator with a draw counter for audit."""

    def __init__(self, seed: SeedLike = None, context: str = "casting"):
        self.context = context
        self.seed_int = resolve_seed(seed)
        self._state = self.seed_int
        self._draws = 0

    def next_uint32(self) -> int:
        x = self._state
        x ^= (x << 13) & UINT32_MASK
        x ^= x >> 17
        x ^= (x << 5) & UINT32_MASK
        self._state = x
        self._draws += 1
        return x

    def next_int(self, max_exclusive: int) -> int:
        """Integer in [0, max_exclusive); max_exclusive < 1 is treated as 1."""
        return self.next_uint32() % max(1, max_exclusive)

    @property
    def draws(self) -> int:
        return self._draws

    def audit(self) -> RNGAudit:
        return RNGAudit(context=self.context, seed_int=self.seed_int, draws=self._draws)
