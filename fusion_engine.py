#!/usr/bin/env python3
"""
fusion_engine.py

Weight Fusion Engine

Selects a base (primary, relating, mutual) weight vector from a policy
table keyed by (profile, moving-line count), perturbs it with question
features, renormalizes once, and scores confidence.

Profiles (default table):
1. zhuxi: traditional reading, primary dominates until 3+ moving lines
2. meihua: mutual structure carries 20-30% at every count
3. engineering: balanced shift from primary to relating

Feature adjustments (multiplicative, applied in this order):
- timing intent + trend:   mutual x1.20, relating x1.10, primary x0.90
- risk intent:             primary x1.15, relating x0.95
- low risk / conservative: primary x1.10, relating x0.90
  else high risk / aggressive: relating x1.15, primary x0.95
- high agency:             primary x1.05, relating x1.05, mutual x0.90
  else low agency:         mutual x1.15, primary x0.95
- high urgency:            relating x1.10

Design Philosophy:
- Deterministic: rule order is fixed; the multiplier chains do not commute
  with renormalization, so normalization happens exactly once at the end
- DECIMAL-ONLY: weights and confidences are Decimal
- The policy table is injected configuration, read-only after construction
- Configuration gaps degrade to a neutral base vector, never raise

Usage:
    engine = FusionEngine()
    result = engine.fuse("engineering", 2, FeatureBundle(urgency=0.8))
    result.weights.relating
    analysis = engine.analyze(structure, FeatureBundle(intent="risk"))

Author: Wake Robin Capital Management
Version: 1.0.0
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from common.constants import (
    AGENCY_BONUS,
    DEFAULT_PROFILE,
    FEATURE_HIGH,
    FEATURE_LOW,
    FUSION_BASE_CONFIDENCE,
    FUSION_CONFIDENCE_MAX,
    GOAL_CONTEXT_BONUS,
    INTENT_CONFIDENCE_BONUS,
    LINE_COUNT,
    MUTUAL_FOCUS_THRESHOLD,
    OPTIONS_BONUS,
    PARSE_CONFIDENCE_BONUS,
    PRIMARY_FOCUS_THRESHOLD,
    RELATING_FOCUS_THRESHOLD,
    URGENCY_PENALTY,
)
from common.input_validation import (
    FusionInputError,
    PolicyValidationError,
    validate_unit_interval,
    validate_weight_vector,
)
from common.score_utils import clamp_unit, normalize_weights, to_decimal
from common.types import FocusHexagram, PolicyTableInput
from hexagram_engine import HexagramStructure, infer_emphasis, infer_phase

__version__ = "1.0.0"

logger = logging.getLogger(__name__)


# Strategy focus label by moving-line count
STRATEGY_FOCUS_BY_COUNT: Tuple[str, ...] = (
    "judgment",
    "line",
    "both-lines",
    "transition",
    "relating",
    "major-change",
    "complete-change",
)

UNCONFIGURED_FOCUS = "unconfigured"

# Key lines of high interpretive weight
CENTRAL_LINES = (2, 5)
BOUNDARY_LINES = (1, 6)


# =============================================================================
# WEIGHTS AND POLICY
# =============================================================================

@dataclass(frozen=True)
class FusionWeights:
    """(primary, relating, mutual) weight vector."""
    primary: Decimal
    relating: Decimal
    mutual: Decimal

    def __post_init__(self):
        validate_weight_vector(self.to_dict(), label="weights", require_unit_sum=False)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], label: str = "weights") -> "FusionWeights":
        """
        Raises:
            PolicyValidationError: missing/negative component or sum != 1
        """
        validate_weight_vector(data, label=label)
        return cls(
            primary=to_decimal(data["primary"]),
            relating=to_decimal(data["relating"]),
            mutual=to_decimal(data["mutual"]),
        )

    @property
    def total(self) -> Decimal:
        return self.primary + self.relating + self.mutual

    def as_tuple(self) -> Tuple[Decimal, Decimal, Decimal]:
        return (self.primary, self.relating, self.mutual)

    def to_dict(self) -> Dict[str, str]:
        return {
            "primary": str(self.primary),
            "relating": str(self.relating),
            "mutual": str(self.mutual),
        }


NEUTRAL_WEIGHTS = FusionWeights(
    primary=Decimal("1") / Decimal("3"),
    relating=Decimal("1") / Decimal("3"),
    mutual=Decimal("1") / Decimal("3"),
)


@dataclass(frozen=True)
class StrategyEntry:
    """Base weights for one (profile, moving count) pair."""
    focus: str
    weights: FusionWeights

    def to_dict(self) -> Dict[str, Any]:
        return {"focus": self.focus, "weights": self.weights.to_dict()}


class PolicyTable:
    """
    Read-only mapping (profile, moving count 0..6) -> StrategyEntry.

    A profile may leave trailing counts (or individual counts, as None)
    unconfigured; lookups for those return None and the fusion engine
    falls back to NEUTRAL_WEIGHTS.
    """

    def __init__(self, profiles: Mapping[str, Sequence[Optional[StrategyEntry]]]):
        if not profiles:
            raise PolicyValidationError("Policy table must define at least one profile")

        frozen: Dict[str, Tuple[Optional[StrategyEntry], ...]] = {}
        for profile, entries in profiles.items():
            if not isinstance(profile, str) or not profile:
                raise PolicyValidationError(f"Profile name must be a non-empty string, got {profile!r}")
            if len(entries) > LINE_COUNT + 1:
                raise PolicyValidationError(
                    f"Profile '{profile}' has {len(entries)} entries, at most {LINE_COUNT + 1} allowed"
                )
            for count, entry in enumerate(entries):
                if entry is None:
                    continue
                if not isinstance(entry, StrategyEntry):
                    raise PolicyValidationError(
                        f"Profile '{profile}' count {count}: expected StrategyEntry, got {type(entry).__name__}"
                    )
                validate_weight_vector(entry.weights.to_dict(), label=f"{profile}[{count}]")
            frozen[profile] = tuple(entries)

        self._profiles = MappingProxyType(frozen)

    @classmethod
    def from_mapping(cls, data: PolicyTableInput) -> "PolicyTable":
        """
        Build from the JSON shape {profile: [entry for count 0..6]}.

        Each entry is {"weights": {primary, relating, mutual}, "focus"?};
        null entries are configuration gaps.

        Raises:
            PolicyValidationError: malformed table or weight vector
        """
        if not isinstance(data, Mapping):
            raise PolicyValidationError(f"Policy table must be a mapping, got {type(data).__name__}")

        profiles: Dict[str, List[Optional[StrategyEntry]]] = {}
        for profile, raw_entries in data.items():
            if not isinstance(raw_entries, (list, tuple)):
                raise PolicyValidationError(f"Profile '{profile}' must map to a list of entries")
            entries: List[Optional[StrategyEntry]] = []
            for count, raw in enumerate(raw_entries):
                if raw is None:
                    entries.append(None)
                    continue
                if not isinstance(raw, Mapping) or "weights" not in raw:
                    raise PolicyValidationError(f"Profile '{profile}' count {count}: missing 'weights'")
                focus = raw.get("focus")
                if focus is None:
                    focus = STRATEGY_FOCUS_BY_COUNT[count] if count <= LINE_COUNT else UNCONFIGURED_FOCUS
                entries.append(StrategyEntry(
                    focus=str(focus),
                    weights=FusionWeights.from_mapping(raw["weights"], label=f"{profile}[{count}]"),
                ))
            profiles[str(profile)] = entries
        return cls(profiles)

    @property
    def profiles(self) -> Tuple[str, ...]:
        return tuple(self._profiles.keys())

    def get(self, profile: str, moving_count: int) -> Optional[StrategyEntry]:
        entries = self._profiles.get(profile)
        if entries is None or moving_count >= len(entries):
            return None
        return entries[moving_count]

    def to_dict(self) -> Dict[str, List[Optional[Dict[str, Any]]]]:
        return {
            profile: [entry.to_dict() if entry else None for entry in entries]
            for profile, entries in self._profiles.items()
        }


def _w(primary: str, relating: str, mutual: str) -> Dict[str, str]:
    return {"primary": primary, "relating": relating, "mutual": mutual}


DEFAULT_POLICY_DATA: PolicyTableInput = {
    # Traditional: primary judgment with no moving lines, relating dominates late
    "zhuxi": [
        {"weights": _w("1.0", "0.0", "0.0")},
        {"weights": _w("0.7", "0.2", "0.1")},
        {"weights": _w("0.6", "0.3", "0.1")},
        {"weights": _w("0.4", "0.4", "0.2")},
        {"weights": _w("0.3", "0.5", "0.2")},
        {"weights": _w("0.2", "0.7", "0.1")},
        {"weights": _w("0.1", "0.9", "0.0")},
    ],
    # Mutual structure weighted at every count
    "meihua": [
        {"weights": _w("0.8", "0.0", "0.2")},
        {"weights": _w("0.6", "0.2", "0.2")},
        {"weights": _w("0.5", "0.25", "0.25")},
        {"weights": _w("0.35", "0.35", "0.3")},
        {"weights": _w("0.3", "0.4", "0.3")},
        {"weights": _w("0.2", "0.5", "0.3")},
        {"weights": _w("0.1", "0.7", "0.2")},
    ],
    # Dynamic balance
    "engineering": [
        {"weights": _w("1.0", "0.0", "0.0")},
        {"weights": _w("0.6", "0.3", "0.1")},
        {"weights": _w("0.5", "0.35", "0.15")},
        {"weights": _w("0.35", "0.35", "0.3")},
        {"weights": _w("0.25", "0.5", "0.25")},
        {"weights": _w("0.15", "0.65", "0.2")},
        {"weights": _w("0.1", "0.8", "0.1")},
    ],
}

DEFAULT_POLICY_TABLE = PolicyTable.from_mapping(DEFAULT_POLICY_DATA)


# =============================================================================
# FEATURES
# =============================================================================

_UNIT_FEATURES = ("risk_score", "urgency", "agency", "intent_confidence", "parse_confidence")


@dataclass(frozen=True)
class FeatureBundle:
    """
    Question features extracted upstream. Every field is optional;
    None means "not observed" and disables the rules that read it.

    Score fields (risk_score, urgency, agency, intent_confidence,
    parse_confidence) must lie in [0, 1] and are stored as Decimal.
    """
    risk_score: Optional[Decimal] = None
    urgency: Optional[Decimal] = None
    agency: Optional[Decimal] = None
    has_trend: Optional[bool] = None
    intent: Optional[str] = None
    risk_preference: Optional[str] = None
    goal: Optional[str] = None
    context: Optional[str] = None
    options: Tuple[str, ...] = field(default_factory=tuple)
    intent_confidence: Optional[Decimal] = None
    parse_confidence: Optional[Decimal] = None

    def __post_init__(self) -> None:
        for name in _UNIT_FEATURES:
            object.__setattr__(self, name, validate_unit_interval(getattr(self, name), name))
        object.__setattr__(self, "options", tuple(self.options or ()))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "risk_score": str(self.risk_score) if self.risk_score is not None else None,
            "urgency": str(self.urgency) if self.urgency is not None else None,
            "agency": str(self.agency) if self.agency is not None else None,
            "has_trend": self.has_trend,
            "intent": self.intent,
            "risk_preference": self.risk_preference,
            "goal": self.goal,
            "context": self.context,
            "options": list(self.options),
            "intent_confidence": str(self.intent_confidence) if self.intent_confidence is not None else None,
            "parse_confidence": str(self.parse_confidence) if self.parse_confidence is not None else None,
        }


def _above(value: Optional[Decimal], threshold: Decimal) -> bool:
    return value is not None and value > threshold


def _below(value: Optional[Decimal], threshold: Decimal) -> bool:
    return value is not None and value < threshold


# =============================================================================
# FUSION RULES
# =============================================================================

def adjust_weights(
    base: FusionWeights,
    features: Optional[FeatureBundle] = None,
) -> Tuple[FusionWeights, List[str]]:
    """
    Apply the feature multipliers in fixed order, then renormalize once.

    Returns:
        (normalized weights, names of the rules that fired)
    """
    features = features or FeatureBundle()
    primary, relating, mutual = base.as_tuple()
    applied: List[str] = []

    if features.intent == "timing" and features.has_trend is True:
        mutual *= Decimal("1.2")
        relating *= Decimal("1.1")
        primary *= Decimal("0.9")
        applied.append("timing_trend")

    if features.intent == "risk":
        primary *= Decimal("1.15")
        relating *= Decimal("0.95")
        applied.append("risk_intent")

    if _below(features.risk_score, FEATURE_LOW) or features.risk_preference == "conservative":
        primary *= Decimal("1.1")
        relating *= Decimal("0.9")
        applied.append("conservative")
    elif _above(features.risk_score, FEATURE_HIGH) or features.risk_preference == "aggressive":
        relating *= Decimal("1.15")
        primary *= Decimal("0.95")
        applied.append("aggressive")

    if _above(features.agency, FEATURE_HIGH):
        primary *= Decimal("1.05")
        relating *= Decimal("1.05")
        mutual *= Decimal("0.9")
        applied.append("high_agency")
    elif _below(features.agency, FEATURE_LOW):
        mutual *= Decimal("1.15")
        primary *= Decimal("0.95")
        applied.append("low_agency")

    if _above(features.urgency, FEATURE_HIGH):
        relating *= Decimal("1.1")
        applied.append("high_urgency")

    p, r, m = normalize_weights([primary, relating, mutual])
    return FusionWeights(primary=p, relating=r, mutual=m), applied


def decide_focus(weights: FusionWeights) -> FocusHexagram:
    """
    Dominant structure. Ties resolve primary, then relating, then mutual;
    mutual needs only > 0.4 but must still be the maximum.
    """
    top = max(weights.as_tuple())
    if weights.primary == top and weights.primary > PRIMARY_FOCUS_THRESHOLD:
        return FocusHexagram.PRIMARY
    if weights.relating == top and weights.relating > RELATING_FOCUS_THRESHOLD:
        return FocusHexagram.RELATING
    if weights.mutual == top and weights.mutual > MUTUAL_FOCUS_THRESHOLD:
        return FocusHexagram.MUTUAL
    return FocusHexagram.BALANCED


def compute_confidence(moving_count: int, features: Optional[FeatureBundle] = None) -> Decimal:
    """Base confidence by moving count plus independent additive bonuses, capped at 1."""
    features = features or FeatureBundle()
    confidence = FUSION_BASE_CONFIDENCE[moving_count]

    if features.goal and features.context:
        confidence += GOAL_CONTEXT_BONUS
    if features.options:
        confidence += OPTIONS_BONUS
    if _above(features.intent_confidence, FEATURE_HIGH):
        confidence += INTENT_CONFIDENCE_BONUS
    if _above(features.parse_confidence, FEATURE_HIGH):
        confidence += PARSE_CONFIDENCE_BONUS
    if _above(features.urgency, FEATURE_HIGH):
        confidence -= URGENCY_PENALTY
    if _above(features.agency, FEATURE_HIGH):
        confidence += AGENCY_BONUS

    return clamp_unit(confidence, max_val=FUSION_CONFIDENCE_MAX)


def pick_key_lines(moving_lines: Sequence[int]) -> List[int]:
    """
    0 moving -> none; 1 or 2 -> all of them; 3+ -> lines 2 and 5 when
    moving, otherwise the highest moving line.
    """
    moving = sorted(set(moving_lines))
    if len(moving) <= 2:
        return moving
    picked = [pos for pos in CENTRAL_LINES if pos in moving]
    return picked or [moving[-1]]


def line_priority(position: int) -> str:
    if position in CENTRAL_LINES:
        return "high"
    if position in BOUNDARY_LINES:
        return "moderate"
    return "normal"


def _check_moving_count(moving_count: int) -> None:
    if isinstance(moving_count, bool) or not isinstance(moving_count, int):
        raise FusionInputError(f"moving_count must be an int, got {type(moving_count).__name__}")
    if not 0 <= moving_count <= LINE_COUNT:
        raise FusionInputError(f"moving_count must be 0..{LINE_COUNT}, got {moving_count}")


# =============================================================================
# RESULTS
# =============================================================================

@dataclass(frozen=True)
class FusionResult:
    """Outcome of one weight fusion."""
    profile: str
    moving_count: int
    strategy_focus: str
    base_weights: FusionWeights
    weights: FusionWeights
    focus: FocusHexagram
    confidence: Decimal
    adjustments: Tuple[str, ...]
    policy_fallback: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "profile": self.profile,
            "moving_count": self.moving_count,
            "strategy_focus": self.strategy_focus,
            "base_weights": self.base_weights.to_dict(),
            "weights": self.weights.to_dict(),
            "focus": self.focus.value,
            "confidence": str(self.confidence),
            "adjustments": list(self.adjustments),
            "policy_fallback": self.policy_fallback,
        }


@dataclass(frozen=True)
class RuleAnalysis:
    """Fusion result plus the structure-derived reading aids."""
    fusion: FusionResult
    key_lines: Tuple[int, ...]
    key_line_priorities: Tuple[Tuple[int, str], ...]
    phase: str
    emphasis: Tuple[str, ...]

    @property
    def weights(self) -> FusionWeights:
        return self.fusion.weights

    @property
    def confidence(self) -> Decimal:
        return self.fusion.confidence

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fusion": self.fusion.to_dict(),
            "key_lines": list(self.key_lines),
            "key_line_priorities": {str(pos): prio for pos, prio in self.key_line_priorities},
            "phase": self.phase,
            "emphasis": list(self.emphasis),
        }


# =============================================================================
# ENGINE
# =============================================================================

class FusionEngine:
    """
    Weight fusion over an injected, read-only policy table.

    Usage:
        engine = FusionEngine(load_policy_table("policy_v1"))
        result = engine.fuse("meihua", 3, FeatureBundle(agency=0.9))
    """

    VERSION = __version__

    def __init__(self, policy_table: Optional[PolicyTable] = None):
        self.policy_table = policy_table or DEFAULT_POLICY_TABLE

    def fuse(
        self,
        profile: str,
        moving_count: int,
        features: Optional[FeatureBundle] = None,
    ) -> FusionResult:
        """
        Raises:
            FusionInputError: moving_count not an int in 0..6
        """
        _check_moving_count(moving_count)
        features = features or FeatureBundle()

        entry = self.policy_table.get(profile, moving_count)
        if entry is None:
            logger.warning(
                f"No policy entry for profile '{profile}' with {moving_count} moving lines; "
                f"using neutral weights"
            )
            base, strategy_focus, fallback = NEUTRAL_WEIGHTS, UNCONFIGURED_FOCUS, True
        else:
            base, strategy_focus, fallback = entry.weights, entry.focus, False

        weights, applied = adjust_weights(base, features)
        result = FusionResult(
            profile=profile,
            moving_count=moving_count,
            strategy_focus=strategy_focus,
            base_weights=base,
            weights=weights,
            focus=decide_focus(weights),
            confidence=compute_confidence(moving_count, features),
            adjustments=tuple(applied),
            policy_fallback=fallback,
        )
        logger.debug(
            f"Fusion {profile}/{moving_count}: rules={applied} focus={result.focus.value} "
            f"confidence={result.confidence}"
        )
        return result

    def analyze(
        self,
        structure: HexagramStructure,
        features: Optional[FeatureBundle] = None,
        profile: str = DEFAULT_PROFILE,
    ) -> RuleAnalysis:
        fusion = self.fuse(profile, structure.moving_count, features)
        key_lines = pick_key_lines(structure.moving_lines)
        return RuleAnalysis(
            fusion=fusion,
            key_lines=tuple(key_lines),
            key_line_priorities=tuple((pos, line_priority(pos)) for pos in key_lines),
            phase=infer_phase(structure.moving_lines),
            emphasis=tuple(infer_emphasis(structure)),
        )
