"""
Shared type definitions for the decision fusion engines.

These describe the JSON-shaped inputs accepted from configuration files.
"""
from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional, Union
from typing_extensions import TypedDict, NotRequired


# =============================================================================
# TYPE ALIASES
# =============================================================================

Numeric = Union[int, float, str]
ProfileName = str
KPIId = str


# =============================================================================
# ENUMS
# =============================================================================

class Polarity(str, Enum):
    """Line polarity; YANG is the 1-bit everywhere."""
    YIN = "yin"
    YANG = "yang"


class Direction(str, Enum):
    """KPI direction: which way is better."""
    HIGHER = "higher"
    LOWER = "lower"


class ThresholdZone(str, Enum):
    GOOD = "good"
    WARNING = "warning"
    BAD = "bad"


class SignalType(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


class FocusHexagram(str, Enum):
    PRIMARY = "primary"
    RELATING = "relating"
    MUTUAL = "mutual"
    BALANCED = "balanced"


# =============================================================================
# POLICY TABLE INPUT
# =============================================================================

class WeightVectorInput(TypedDict):
    """One weight vector as found in a policy JSON file."""
    primary: Numeric
    relating: Numeric
    mutual: Numeric


class StrategyEntryInput(TypedDict):
    """One (profile, moving count) policy entry."""
    weights: WeightVectorInput
    focus: NotRequired[str]


# profile name -> 7 entries indexed by moving-line count
PolicyTableInput = Dict[ProfileName, List[StrategyEntryInput]]


# =============================================================================
# KPI DEFINITION INPUT
# =============================================================================

class ThresholdsInput(TypedDict):
    good: Numeric
    warning: Numeric
    bad: Numeric


class KPIDefinitionInput(TypedDict):
    """One KPI definition as found in a definitions JSON file."""
    direction: str
    thresholds: ThresholdsInput
    window: NotRequired[Optional[int]]
    description: NotRequired[str]


KPIDefinitionsInput = Dict[KPIId, KPIDefinitionInput]

