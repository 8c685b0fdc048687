#!/usr/bin/env python3
"""
Tests for signal_engine.py

Covers:
- Definition parsing and validation
- Slope, zone, signal and confidence rules
- Worked NPS / CPU examples
- Threshold-cross and trend-change detection
- Missing definitions and empty series
"""

from decimal import Decimal

import pytest

from common.input_validation import DefinitionValidationError, EngineInputError
from common.types import Direction, SignalType, ThresholdZone
from signal_engine import (
    KPIDefinition,
    KPITimeSeries,
    SignalEngine,
    classify_signal,
    classify_zone,
    compute_confidence,
    compute_slope,
    load_definitions,
)


def _definition(direction, good, warning, bad, window=None, kpi_id="kpi"):
    data = {"direction": direction, "thresholds": {"good": good, "warning": warning, "bad": bad}}
    if window is not None:
        data["window"] = window
    return KPIDefinition.from_dict(kpi_id, data)


# ============================================================================
# DEFINITIONS
# ============================================================================

class TestDefinitions:
    """Tests for KPIDefinition.from_dict and load_definitions."""

    def test_parses(self, kpi_definitions):
        cpu = kpi_definitions["cpu"]
        assert cpu.direction is Direction.LOWER
        assert (cpu.good, cpu.warning, cpu.bad) == (50.0, 75.0, 90.0)
        assert cpu.window == 5

    def test_window_optional(self):
        assert _definition("higher", 1, 0, -1).window is None

    @pytest.mark.parametrize("data", [
        {"direction": "sideways", "thresholds": {"good": 1, "warning": 0, "bad": -1}},
        {"direction": "higher"},
        {"direction": "higher", "thresholds": {"good": 1, "warning": 0}},
        {"direction": "higher", "thresholds": {"good": "abc", "warning": 0, "bad": -1}},
        {"direction": "higher", "thresholds": {"good": True, "warning": 0, "bad": -1}},
        {"direction": "higher", "thresholds": {"good": 1, "warning": 0, "bad": -1}, "window": 0},
        {"direction": "higher", "thresholds": {"good": 1, "warning": 0, "bad": -1}, "window": True},
        "not a mapping",
    ])
    def test_rejects_malformed(self, data):
        with pytest.raises(DefinitionValidationError):
            KPIDefinition.from_dict("bad", data)

    def test_load_definitions_requires_mapping(self):
        with pytest.raises(DefinitionValidationError):
            load_definitions([{"direction": "higher"}])

    def test_to_dict_round_trip(self, kpi_definitions):
        cpu = kpi_definitions["cpu"]
        assert KPIDefinition.from_dict("cpu", cpu.to_dict()) == cpu


# ============================================================================
# STATISTICS
# ============================================================================

class TestComputeSlope:
    """Tests for compute_slope."""

    def test_linear(self):
        assert compute_slope([10, 20, 30, 40, 55]) == pytest.approx(11.0)

    def test_short_series(self):
        assert compute_slope([]) == 0.0
        assert compute_slope([5]) == 0.0

    def test_window_uses_tail(self):
        assert compute_slope([100, 0, 10, 20, 30], window=3) == pytest.approx(10.0)

    def test_window_larger_than_series(self):
        assert compute_slope([1, 2], window=10) == pytest.approx(1.0)

    def test_flat(self):
        assert compute_slope([3, 3, 3, 3]) == 0.0


class TestComputeConfidence:
    """Tests for compute_confidence."""

    def test_empty(self):
        assert compute_confidence([]) == Decimal("0")

    def test_short_volatile(self):
        """n=5, CV ~0.50 > 0.5 -> 0.5 - 0.2."""
        assert compute_confidence([10, 20, 30, 40, 55]) == Decimal("0.3")

    def test_short_moderate(self):
        assert compute_confidence([30, 40, 60, 80, 95]) == Decimal("0.5")

    def test_medium_stable(self):
        assert compute_confidence([100] * 10) == Decimal("0.8")

    def test_long_stable(self):
        assert compute_confidence([100] * 30) == Decimal("0.9")

    def test_zero_mean_counts_as_volatile(self):
        assert compute_confidence([0, 0, 0]) == Decimal("0.3")

    def test_bounds(self):
        for values in ([1], [1, -1, 1, -1], [5] * 40, [1, 1000]):
            assert Decimal("0.1") <= compute_confidence(values) <= Decimal("1.0")


# ============================================================================
# CLASSIFICATION
# ============================================================================

class TestClassifyZone:
    """Tests for classify_zone."""

    def test_higher(self, kpi_definitions):
        nps = kpi_definitions["nps"]
        assert classify_zone(60, nps) is ThresholdZone.GOOD
        assert classify_zone(50, nps) is ThresholdZone.GOOD
        assert classify_zone(30, nps) is ThresholdZone.WARNING
        assert classify_zone(-5, nps) is ThresholdZone.BAD

    def test_lower(self, kpi_definitions):
        cpu = kpi_definitions["cpu"]
        assert classify_zone(40, cpu) is ThresholdZone.GOOD
        assert classify_zone(75, cpu) is ThresholdZone.WARNING
        assert classify_zone(95, cpu) is ThresholdZone.BAD

    def test_gap_is_undefined(self, kpi_definitions):
        """Between warning and bad thresholds no zone applies."""
        assert classify_zone(10, kpi_definitions["nps"]) is None
        assert classify_zone(85, kpi_definitions["cpu"]) is None


class TestClassifySignal:
    """Tests for classify_signal."""

    def test_good_rising_positive(self, kpi_definitions):
        assert classify_signal(55, 11.0, kpi_definitions["nps"]) is SignalType.POSITIVE

    def test_good_falling_neutral(self, kpi_definitions):
        assert classify_signal(52, -4.5, kpi_definitions["nps"]) is SignalType.NEUTRAL

    def test_bad_flat_negative(self, kpi_definitions):
        assert classify_signal(-10, 0.0, kpi_definitions["nps"]) is SignalType.NEGATIVE

    def test_bad_rising_neutral(self, kpi_definitions):
        assert classify_signal(95, 17.0, kpi_definitions["cpu"]) is SignalType.NEUTRAL

    def test_warning_higher_falling(self):
        definition = _definition("higher", 50, 30, 0)
        assert classify_signal(32, -2.0, definition) is SignalType.NEGATIVE

    def test_warning_lower_falling_is_positive(self):
        definition = _definition("lower", 20, 40, 60)
        assert classify_signal(30, -5.0, definition) is SignalType.POSITIVE
        assert classify_signal(30, 5.0, definition) is SignalType.NEGATIVE

    def test_small_slope_neutral(self):
        """|slope| within 5% of |value| is noise."""
        definition = _definition("higher", 50, 30, 0)
        assert classify_signal(32, 0.2, definition) is SignalType.NEUTRAL

    def test_undefined_zone_uses_slope(self):
        definition = _definition("higher", 80, 60, 20)
        assert classify_signal(40, 5.0, definition) is SignalType.POSITIVE
        assert classify_signal(40, 0.0, definition) is SignalType.NEUTRAL


# ============================================================================
# ENGINE
# ============================================================================

class TestKPITimeSeries:
    """Tests for KPITimeSeries value checks."""

    def test_values_become_float_tuple(self):
        series = KPITimeSeries("nps", [10, "20", 30.5])
        assert series.values == (10.0, 20.0, 30.5)

    @pytest.mark.parametrize("bad", [float("nan"), float("inf"), float("-inf"), "nan"])
    def test_rejects_non_finite(self, bad):
        with pytest.raises(EngineInputError):
            KPITimeSeries("nps", [1.0, bad])

    @pytest.mark.parametrize("bad", ["high", None, True])
    def test_rejects_non_numeric(self, bad):
        with pytest.raises(EngineInputError):
            KPITimeSeries("nps", [1.0, bad])


class TestEvaluate:
    """Tests for SignalEngine.evaluate."""

    def test_nps_improving(self, signal_engine):
        result = signal_engine.evaluate(KPITimeSeries("nps", [10, 20, 30, 40, 55]))
        assert result.signal is SignalType.POSITIVE
        assert result.threshold_zone is ThresholdZone.GOOD
        assert result.slope == pytest.approx(11.0)
        assert result.last_value == 55.0
        assert result.confidence == Decimal("0.3")
        assert result.definition_found is True

    def test_cpu_rising_into_bad_zone(self, signal_engine):
        """Bad zone with a rising slope is neutral, not negative."""
        result = signal_engine.evaluate(KPITimeSeries("cpu", [30, 40, 60, 80, 95]))
        assert result.threshold_zone is ThresholdZone.BAD
        assert result.slope == pytest.approx(17.0)
        assert result.signal is SignalType.NEUTRAL
        assert result.confidence == Decimal("0.5")

    def test_unknown_kpi(self, signal_engine, caplog):
        result = signal_engine.evaluate(KPITimeSeries("latency", [1, 2, 3]))
        assert result.definition_found is False
        assert result.signal is SignalType.NEUTRAL
        assert result.confidence == Decimal("0")
        assert result.slope is None
        assert result.threshold_zone is None
        assert "latency" in caplog.text

    def test_empty_series(self, signal_engine):
        result = signal_engine.evaluate(KPITimeSeries("nps", []))
        assert result.definition_found is True
        assert result.signal is SignalType.NEUTRAL
        assert result.confidence == Decimal("0")
        assert result.last_value is None
        assert result.threshold_zone is None

    def test_evaluate_multiple_keeps_order(self, signal_engine):
        results = signal_engine.evaluate_multiple([
            KPITimeSeries("cpu", [40, 45]),
            KPITimeSeries("nps", [40, 45]),
        ])
        assert [r.kpi_id for r in results] == ["cpu", "nps"]

    def test_to_dict(self, signal_engine):
        data = signal_engine.evaluate(KPITimeSeries("nps", [10, 20, 30, 40, 55])).to_dict()
        assert data["signal"] == "positive"
        assert data["threshold_zone"] == "good"
        assert data["confidence"] == "0.3"

    def test_load_kpis_returns_new_engine(self, kpi_definitions):
        empty = SignalEngine()
        loaded = empty.load_kpis(kpi_definitions)
        assert set(loaded.definitions) == {"cpu", "nps"}
        assert dict(empty.definitions) == {}

    def test_accepts_definition_list(self, kpi_definitions):
        engine = SignalEngine(list(kpi_definitions.values()))
        assert set(engine.definitions) == {"cpu", "nps"}


class TestThresholdCross:
    """Tests for SignalEngine.detect_threshold_cross."""

    def test_crossed(self, signal_engine):
        cross = signal_engine.detect_threshold_cross(KPITimeSeries("nps", [45, 55]))
        assert cross.crossed is True
        assert cross.from_zone is ThresholdZone.WARNING
        assert cross.to_zone is ThresholdZone.GOOD

    def test_same_zone(self, signal_engine):
        assert signal_engine.detect_threshold_cross(KPITimeSeries("nps", [55, 60])).crossed is False

    def test_into_undefined_gap(self, signal_engine):
        cross = signal_engine.detect_threshold_cross(KPITimeSeries("cpu", [70, 85]))
        assert cross.crossed is True
        assert cross.to_zone is None
        assert cross.to_dict() == {"crossed": True, "from": "warning", "to": None}

    def test_short_or_unknown(self, signal_engine):
        assert signal_engine.detect_threshold_cross(KPITimeSeries("nps", [55])).crossed is False
        assert signal_engine.detect_threshold_cross(KPITimeSeries("latency", [1, 99])).crossed is False


class TestTrendChange:
    """Tests for SignalEngine.detect_trend_change."""

    def test_downward(self, signal_engine):
        change = signal_engine.detect_trend_change(KPITimeSeries("nps", [1, 2, 3, 3, 2, 1]))
        assert change.changed is True
        assert change.direction == "downward"

    def test_upward(self, signal_engine):
        change = signal_engine.detect_trend_change(KPITimeSeries("nps", [3, 2, 1, 1, 2, 3]))
        assert change.changed is True
        assert change.direction == "upward"

    def test_flat_is_not_a_flip(self, signal_engine):
        assert signal_engine.detect_trend_change(KPITimeSeries("nps", [1, 2, 3, 3, 3, 3])).changed is False

    def test_too_short(self, signal_engine):
        assert signal_engine.detect_trend_change(KPITimeSeries("nps", [1, 2, 3, 2, 1])).changed is False

    def test_custom_window(self, signal_engine):
        change = signal_engine.detect_trend_change(KPITimeSeries("nps", [5, 1, 1, 3]), window=2)
        assert change.changed is True
        assert change.direction == "upward"

    def test_invalid_window(self, signal_engine):
        with pytest.raises(EngineInputError):
            signal_engine.detect_trend_change(KPITimeSeries("nps", [1, 2]), window=0)
