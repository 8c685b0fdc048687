#!/usr/bin/env python3
"""
Shared test fixtures for the decision fusion test suite.

Provides reusable fixtures for:
- Fixed seeds and their known casts
- Fusion and signal engines over the default configuration
- KPI definitions and series
- Temporary params directories
"""

import json
import sys
from pathlib import Path
from typing import Any, Dict

import pytest

# Add parent to path for module imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from casting_engine import lines_from_values
from common.logging_config import run_id_context
from fusion_engine import FusionEngine
from hexagram_engine import compute_structure
from signal_engine import KPIDefinition, SignalEngine, load_definitions


# ============================================================================
# SEEDS
# ============================================================================

@pytest.fixture
def golden_seed() -> int:
    """Seed whose three-coin cast is [8, 6, 8, 7, 8, 8]."""
    return 42


@pytest.fixture
def golden_coin_values():
    return [8, 6, 8, 7, 8, 8]


@pytest.fixture
def golden_structure(golden_coin_values):
    """Structure of the seed-42 three-coin cast (one moving line at 2)."""
    return compute_structure(lines_from_values(golden_coin_values))


# ============================================================================
# ENGINES
# ============================================================================

@pytest.fixture
def fusion_engine() -> FusionEngine:
    return FusionEngine()


@pytest.fixture
def kpi_definitions_data() -> Dict[str, Any]:
    """cpu (lower is better) and nps (higher is better)."""
    return {
        "cpu": {
            "direction": "lower",
            "thresholds": {"good": 50, "warning": 75, "bad": 90},
            "window": 5,
        },
        "nps": {
            "direction": "higher",
            "thresholds": {"good": 50, "warning": 30, "bad": 0},
            "window": 5,
        },
    }


@pytest.fixture
def kpi_definitions(kpi_definitions_data) -> Dict[str, KPIDefinition]:
    return load_definitions(kpi_definitions_data)


@pytest.fixture
def signal_engine(kpi_definitions) -> SignalEngine:
    return SignalEngine(kpi_definitions)


# ============================================================================
# FILESYSTEM
# ============================================================================

@pytest.fixture
def params_dir(tmp_path) -> Path:
    """Empty temporary params archive directory."""
    params_dir = tmp_path / "params_archive"
    params_dir.mkdir()
    return params_dir


@pytest.fixture
def write_params(params_dir):
    """Write a JSON document into params_dir under the given version."""
    def _write(version: str, data: Any) -> Path:
        path = params_dir / f"{version}.json"
        path.write_text(json.dumps(data), encoding="utf-8")
        return path
    return _write


# ============================================================================
# LOGGING
# ============================================================================

@pytest.fixture(autouse=True)
def reset_run_id():
    """Leave no run ID behind between tests."""
    token = run_id_context.set("")
    yield
    run_id_context.reset(token)
