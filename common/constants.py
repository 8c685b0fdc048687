"""
common/constants.py - Centralized Configuration Constants

All magic numbers and thresholds used across the casting, fusion and
signal engines. Centralizing these keeps the engines and their tests in
agreement.

Usage:
    from common.constants import (
        FUSION_BASE_CONFIDENCE,
        SIGNAL_CONFIDENCE_MIN,
        ZERO_SEED_SENTINEL,
    )
"""

from decimal import Decimal

# =============================================================================
# CASTING
# =============================================================================

# xorshift32 has a fixed point at 0; a zero seed is replaced by this value
ZERO_SEED_SENTINEL = 0xDEADBEEF

LINE_COUNT = 6
VALID_LINE_VALUES = (6, 7, 8, 9)
FULL_MASK = (1 << LINE_COUNT) - 1

# Mutual structure source positions (1-based), bottom to top
MUTUAL_SOURCE_POSITIONS = (2, 3, 4, 3, 4, 5)


# =============================================================================
# FUSION
# =============================================================================

DEFAULT_PROFILE = "engineering"

# Tolerance for weight vectors that must sum to 1
WEIGHT_SUM_TOLERANCE = Decimal("1e-9")

# Focus thresholds
PRIMARY_FOCUS_THRESHOLD = Decimal("0.5")
RELATING_FOCUS_THRESHOLD = Decimal("0.5")
MUTUAL_FOCUS_THRESHOLD = Decimal("0.4")

# Feature thresholds shared by the adjustment and confidence rules
FEATURE_HIGH = Decimal("0.7")
FEATURE_LOW = Decimal("0.3")

# Base confidence by moving-line count (1 moving line is the clearest read)
FUSION_BASE_CONFIDENCE = {
    0: Decimal("0.70"),
    1: Decimal("0.90"),
    2: Decimal("0.80"),
    3: Decimal("0.60"),
    4: Decimal("0.50"),
    5: Decimal("0.55"),
    6: Decimal("0.55"),
}

GOAL_CONTEXT_BONUS = Decimal("0.05")
OPTIONS_BONUS = Decimal("0.05")
INTENT_CONFIDENCE_BONUS = Decimal("0.03")
PARSE_CONFIDENCE_BONUS = Decimal("0.02")
URGENCY_PENALTY = Decimal("0.02")
AGENCY_BONUS = Decimal("0.02")
FUSION_CONFIDENCE_MAX = Decimal("1.0")


# =============================================================================
# SIGNALS
# =============================================================================

# Relative slope threshold for warning/undefined zones (5% of |value|)
SLOPE_RELATIVE_THRESHOLD = 0.05

SIGNAL_CONFIDENCE_BASE = Decimal("0.5")
SIGNAL_CONFIDENCE_MIN = Decimal("0.1")
SIGNAL_CONFIDENCE_MAX = Decimal("1.0")

# Series length bonuses
MEDIUM_SERIES_LENGTH = 10
LONG_SERIES_LENGTH = 30
MEDIUM_SERIES_BONUS = Decimal("0.2")
LONG_SERIES_BONUS = Decimal("0.1")

# Coefficient of variation bands
CV_STABLE = 0.1
CV_VOLATILE = 0.5
STABLE_BONUS = Decimal("0.1")
VOLATILE_PENALTY = Decimal("0.2")

DEFAULT_TREND_CHANGE_WINDOW = 3
