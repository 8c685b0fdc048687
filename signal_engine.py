#!/usr/bin/env python3
"""
signal_engine.py

KPI Signal Engine

Evaluates a KPI time series against its threshold definition and
produces a directional signal with a data-quality confidence.

Pipeline per series:
1. Trend slope: OLS of value against 0-based index over the trailing
   window (whole series when no window is configured)
2. Threshold zone of the last value (good / warning / bad / undefined)
3. Signal:
   - good zone:  positive unless the trend is falling (then neutral)
   - bad zone:   negative unless the trend is rising (then neutral)
   - otherwise:  slope against 5% of |last value|, mirrored for
                 lower-is-better KPIs
4. Confidence: series length and coefficient of variation, [0.1, 1.0]

Zone rules:
- higher-is-better: good if v >= good, warning if v >= warning,
  bad if v < bad, otherwise undefined
- lower-is-better:  good if v <= good, warning if v <= warning,
  bad if v > bad, otherwise undefined
A value between the warning and bad thresholds is "undefined" (None),
never an error.

Design Philosophy:
- Deterministic, pure functions over immutable inputs
- Missing definitions degrade to neutral / zero confidence
- Numeric edge cases (short series, zero mean) use fixed fallbacks
- Series statistics in float; confidence in Decimal

Usage:
    engine = SignalEngine(load_definitions({
        "nps": {"direction": "higher", "thresholds": {"good": 50, "warning": 30, "bad": 0}},
    }))
    result = engine.evaluate(KPITimeSeries("nps", [10, 20, 30, 40, 55]))
    result.signal        # SignalType.POSITIVE

Author: Wake Robin Capital Management
Version: 1.0.0
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from decimal import Decimal
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from common.constants import (
    CV_STABLE,
    CV_VOLATILE,
    DEFAULT_TREND_CHANGE_WINDOW,
    LONG_SERIES_BONUS,
    LONG_SERIES_LENGTH,
    MEDIUM_SERIES_BONUS,
    MEDIUM_SERIES_LENGTH,
    SIGNAL_CONFIDENCE_BASE,
    SIGNAL_CONFIDENCE_MAX,
    SIGNAL_CONFIDENCE_MIN,
    SLOPE_RELATIVE_THRESHOLD,
    STABLE_BONUS,
    VOLATILE_PENALTY,
)
from common.input_validation import DefinitionValidationError, EngineInputError
from common.score_utils import clamp_unit
from common.types import Direction, KPIDefinitionsInput, SignalType, ThresholdZone

__version__ = "1.0.0"

logger = logging.getLogger(__name__)


# =============================================================================
# DEFINITIONS AND SERIES
# =============================================================================

@dataclass(frozen=True)
class KPIDefinition:
    """Threshold definition for one KPI."""
    kpi_id: str
    direction: Direction
    good: float
    warning: float
    bad: float
    window: Optional[int] = None
    description: str = ""

    @classmethod
    def from_dict(cls, kpi_id: str, data: Mapping[str, Any]) -> "KPIDefinition":
        """
        Parse {direction, thresholds: {good, warning, bad}, window?, description?}.

        Raises:
            DefinitionValidationError: on any malformed field
        """
        if not isinstance(data, Mapping):
            raise DefinitionValidationError(f"{kpi_id}: definition must be a mapping")

        try:
            direction = Direction(data.get("direction"))
        except ValueError:
            raise DefinitionValidationError(
                f"{kpi_id}: direction must be 'higher' or 'lower', got {data.get('direction')!r}"
            )

        thresholds = data.get("thresholds")
        if not isinstance(thresholds, Mapping):
            raise DefinitionValidationError(f"{kpi_id}: missing thresholds")

        parsed: Dict[str, float] = {}
        for name in ("good", "warning", "bad"):
            raw = thresholds.get(name)
            if isinstance(raw, bool) or raw is None:
                raise DefinitionValidationError(f"{kpi_id}: threshold '{name}' missing")
            try:
                value = float(raw)
            except (TypeError, ValueError):
                raise DefinitionValidationError(f"{kpi_id}: threshold '{name}' is not numeric ({raw!r})")
            if not math.isfinite(value):
                raise DefinitionValidationError(f"{kpi_id}: threshold '{name}' is not finite")
            parsed[name] = value

        window = data.get("window")
        if window is not None:
            if isinstance(window, bool) or not isinstance(window, int) or window < 1:
                raise DefinitionValidationError(f"{kpi_id}: window must be a positive int, got {window!r}")

        return cls(
            kpi_id=kpi_id,
            direction=direction,
            good=parsed["good"],
            warning=parsed["warning"],
            bad=parsed["bad"],
            window=window,
            description=str(data.get("description", "")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "direction": self.direction.value,
            "thresholds": {"good": self.good, "warning": self.warning, "bad": self.bad},
            "window": self.window,
            "description": self.description,
        }


def load_definitions(data: KPIDefinitionsInput) -> Dict[str, KPIDefinition]:
    """
    Parse a {kpi_id: definition} mapping.

    Raises:
        DefinitionValidationError: malformed mapping or definition
    """
    if not isinstance(data, Mapping):
        raise DefinitionValidationError(f"KPI definitions must be a mapping, got {type(data).__name__}")
    return {str(kpi_id): KPIDefinition.from_dict(str(kpi_id), raw) for kpi_id, raw in data.items()}


@dataclass(frozen=True)
class KPITimeSeries:
    """Values in time order (last = most recent)."""
    kpi_id: str
    values: Tuple[float, ...]
    timestamps: Optional[Tuple[float, ...]] = None

    def __post_init__(self) -> None:
        values: List[float] = []
        for index, raw in enumerate(self.values):
            try:
                value = float(raw)
            except (TypeError, ValueError) as e:
                raise EngineInputError(f"KPI '{self.kpi_id}' value {index} is not numeric: {raw!r}") from e
            if isinstance(raw, bool) or not math.isfinite(value):
                raise EngineInputError(f"KPI '{self.kpi_id}' value {index} must be a finite number, got {raw!r}")
            values.append(value)
        object.__setattr__(self, "values", tuple(values))
        if self.timestamps is not None:
            object.__setattr__(self, "timestamps", tuple(self.timestamps))


# =============================================================================
# RESULTS
# =============================================================================

@dataclass(frozen=True)
class SignalResult:
    kpi_id: str
    signal: SignalType
    confidence: Decimal
    definition_found: bool = True
    slope: Optional[float] = None
    last_value: Optional[float] = None
    threshold_zone: Optional[ThresholdZone] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kpi_id": self.kpi_id,
            "signal": self.signal.value,
            "confidence": str(self.confidence),
            "definition_found": self.definition_found,
            "slope": self.slope,
            "last_value": self.last_value,
            "threshold_zone": self.threshold_zone.value if self.threshold_zone else None,
        }


@dataclass(frozen=True)
class ThresholdCross:
    crossed: bool
    from_zone: Optional[ThresholdZone] = None
    to_zone: Optional[ThresholdZone] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "crossed": self.crossed,
            "from": self.from_zone.value if self.from_zone else None,
            "to": self.to_zone.value if self.to_zone else None,
        }


@dataclass(frozen=True)
class TrendChange:
    changed: bool
    direction: Optional[str] = None  # "upward" | "downward"
    recent_slope: float = 0.0
    previous_slope: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "changed": self.changed,
            "direction": self.direction,
            "recent_slope": self.recent_slope,
            "previous_slope": self.previous_slope,
        }


# =============================================================================
# STATISTICS
# =============================================================================

def compute_slope(values: Sequence[float], window: Optional[int] = None) -> float:
    """
    OLS slope of value against 0-based index.

    Restricted to the trailing `window` points when window is truthy.
    Fewer than two points, or a zero denominator, give 0.0.
    """
    data = list(values[-window:]) if window else list(values)
    n = len(data)
    if n < 2:
        return 0.0

    x_mean = (n - 1) / 2
    y_mean = sum(data) / n

    numerator = 0.0
    denominator = 0.0
    for i, y in enumerate(data):
        x_diff = i - x_mean
        numerator += x_diff * (y - y_mean)
        denominator += x_diff * x_diff

    return 0.0 if denominator == 0 else numerator / denominator


def population_std(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    mean = sum(values) / len(values)
    variance = sum((v - mean) ** 2 for v in values) / len(values)
    return math.sqrt(variance)


def coefficient_of_variation(values: Sequence[float]) -> float:
    """Population std / |mean|; a zero mean (or empty series) counts as 1."""
    if not values:
        return 1.0
    mean = sum(values) / len(values)
    if mean == 0:
        return 1.0
    return population_std(values) / abs(mean)


def compute_confidence(values: Sequence[float]) -> Decimal:
    """
    Data-quality confidence: 0.5 base, +0.2 at 10+ points, +0.1 more at 30+,
    +0.1 when CV < 0.1, -0.2 when CV > 0.5; clamped to [0.1, 1.0].
    An empty series has confidence 0.
    """
    if not values:
        return Decimal("0")

    confidence = SIGNAL_CONFIDENCE_BASE
    if len(values) >= MEDIUM_SERIES_LENGTH:
        confidence += MEDIUM_SERIES_BONUS
    if len(values) >= LONG_SERIES_LENGTH:
        confidence += LONG_SERIES_BONUS

    cv = coefficient_of_variation(values)
    if cv < CV_STABLE:
        confidence += STABLE_BONUS
    if cv > CV_VOLATILE:
        confidence -= VOLATILE_PENALTY

    return clamp_unit(confidence, min_val=SIGNAL_CONFIDENCE_MIN, max_val=SIGNAL_CONFIDENCE_MAX)


# =============================================================================
# CLASSIFICATION
# =============================================================================

def classify_zone(value: float, definition: KPIDefinition) -> Optional[ThresholdZone]:
    """Threshold zone of a value; None when it falls in the warning/bad gap."""
    if definition.direction is Direction.HIGHER:
        if value >= definition.good:
            return ThresholdZone.GOOD
        if value >= definition.warning:
            return ThresholdZone.WARNING
        if value < definition.bad:
            return ThresholdZone.BAD
    else:
        if value <= definition.good:
            return ThresholdZone.GOOD
        if value <= definition.warning:
            return ThresholdZone.WARNING
        if value > definition.bad:
            return ThresholdZone.BAD
    return None


def classify_signal(value: float, slope: float, definition: KPIDefinition) -> SignalType:
    zone = classify_zone(value, definition)

    if zone is ThresholdZone.GOOD:
        return SignalType.POSITIVE if slope >= 0 else SignalType.NEUTRAL
    if zone is ThresholdZone.BAD:
        return SignalType.NEGATIVE if slope <= 0 else SignalType.NEUTRAL

    slope_threshold = abs(value) * SLOPE_RELATIVE_THRESHOLD
    if definition.direction is Direction.HIGHER:
        if slope > slope_threshold:
            return SignalType.POSITIVE
        if slope < -slope_threshold:
            return SignalType.NEGATIVE
    else:
        if slope < -slope_threshold:
            return SignalType.POSITIVE
        if slope > slope_threshold:
            return SignalType.NEGATIVE
    return SignalType.NEUTRAL


def _sign(value: float) -> int:
    return (value > 0) - (value < 0)


# =============================================================================
# ENGINE
# =============================================================================

DefinitionsArg = Union[Mapping[str, KPIDefinition], Iterable[KPIDefinition], None]


def _index_definitions(definitions: DefinitionsArg) -> Dict[str, KPIDefinition]:
    if definitions is None:
        return {}
    if isinstance(definitions, Mapping):
        return dict(definitions)
    return {definition.kpi_id: definition for definition in definitions}


class SignalEngine:
    """
    Evaluates KPI series against a read-only definitions table.

    Usage:
        engine = SignalEngine([cpu_definition, nps_definition])
        results = engine.evaluate_multiple(series_list)
    """

    VERSION = __version__

    def __init__(self, definitions: DefinitionsArg = None):
        self._definitions = MappingProxyType(_index_definitions(definitions))

    @property
    def definitions(self) -> Mapping[str, KPIDefinition]:
        return self._definitions

    def load_kpis(self, definitions: DefinitionsArg) -> "SignalEngine":
        """New engine with `definitions` merged over the current ones."""
        merged = dict(self._definitions)
        merged.update(_index_definitions(definitions))
        return SignalEngine(merged)

    def evaluate(self, series: KPITimeSeries) -> SignalResult:
        definition = self._definitions.get(series.kpi_id)
        if definition is None:
            logger.warning(f"KPI definition not found: {series.kpi_id}")
            return SignalResult(
                kpi_id=series.kpi_id,
                signal=SignalType.NEUTRAL,
                confidence=Decimal("0"),
                definition_found=False,
            )

        values = series.values
        slope = compute_slope(values, definition.window)
        if not values:
            logger.debug(f"{series.kpi_id}: empty series")
            return SignalResult(
                kpi_id=series.kpi_id,
                signal=SignalType.NEUTRAL,
                confidence=Decimal("0"),
                slope=slope,
            )

        last_value = values[-1]
        result = SignalResult(
            kpi_id=series.kpi_id,
            signal=classify_signal(last_value, slope, definition),
            confidence=compute_confidence(values),
            slope=slope,
            last_value=last_value,
            threshold_zone=classify_zone(last_value, definition),
        )
        logger.debug(
            f"{series.kpi_id}: last={last_value} slope={slope:.4f} "
            f"zone={result.threshold_zone.value if result.threshold_zone else None} "
            f"signal={result.signal.value} confidence={result.confidence}"
        )
        return result

    def evaluate_multiple(self, series_list: Iterable[KPITimeSeries]) -> List[SignalResult]:
        return [self.evaluate(series) for series in series_list]

    def detect_threshold_cross(self, series: KPITimeSeries) -> ThresholdCross:
        """Compare the zones of the last two values."""
        definition = self._definitions.get(series.kpi_id)
        if definition is None or len(series.values) < 2:
            return ThresholdCross(crossed=False)

        previous = classify_zone(series.values[-2], definition)
        current = classify_zone(series.values[-1], definition)
        if previous != current:
            return ThresholdCross(crossed=True, from_zone=previous, to_zone=current)
        return ThresholdCross(crossed=False)

    def detect_trend_change(
        self,
        series: KPITimeSeries,
        window: int = DEFAULT_TREND_CHANGE_WINDOW,
    ) -> TrendChange:
        """
        Compare the slope of the last `window` points with the slope of
        the `window` points before them. Only a strict sign flip counts;
        a zero slope is not a sign.

        Raises:
            EngineInputError: window < 1
        """
        if isinstance(window, bool) or not isinstance(window, int) or window < 1:
            raise EngineInputError(f"window must be a positive int, got {window!r}")

        values = series.values
        if len(values) < window * 2:
            return TrendChange(changed=False)

        recent = compute_slope(values[-window:])
        previous = compute_slope(values[-2 * window:-window])

        if _sign(recent) * _sign(previous) < 0:
            return TrendChange(
                changed=True,
                direction="upward" if recent > 0 else "downward",
                recent_slope=recent,
                previous_slope=previous,
            )
        return TrendChange(changed=False, recent_slope=recent, previous_slope=previous)
