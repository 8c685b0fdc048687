#!/usr/bin/env python3
"""
decision_engine.py

Decision Pipeline

Runs one full decision: cast six lines, derive the hexagram structure,
fuse weights against the policy table and (optionally) evaluate KPI
series, then fingerprint the result.

Pipeline:
1. Casting (casting_engine) with a resolved, replayable seed
2. Structure (hexagram_engine): primary / relating / mutual, moving lines
3. Fusion (fusion_engine): profile weights, feature adjustments, focus,
   confidence, key lines, phase, emphasis
4. Signals (signal_engine): one SignalResult per supplied KPI series
5. Provenance: inputs_hash and result_hash over canonical JSON

Design Philosophy:
- Deterministic: the same seed, method, profile, features and series give
  byte-identical to_dict() output and the same result_hash
- The resolved seed is always part of the result, including when the
  caller passed None
- Configuration is injected at construction and never mutated

Usage:
    engine = DecisionEngine(load_policy_table("policy_v1"))
    result = engine.run(FeatureBundle(intent="timing"), seed="launch-q3")
    result.structure.primary_key
    result.provenance["result_hash"]

    python decision_engine.py --seed 42 --profile meihua --output result.json

Author: Wake Robin Capital Management
Version: 1.0.0
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from casting_engine import Caster, CastingMethod, Line, cast_lines
from common.constants import DEFAULT_PROFILE
from common.input_validation import EngineInputError
from common.logging_config import LogContext, run_id_for_seed, setup_logging
from common.provenance import create_provenance
from common.random_state import SeedLike, resolve_seed
from fusion_engine import FeatureBundle, FusionEngine, PolicyTable, RuleAnalysis
from governance.canonical_json import canonical_dumps
from governance.params_loader import ParamsLoadError, load_kpi_definitions, load_policy_table
from hexagram_engine import HexagramStructure, compute_structure
from signal_engine import DefinitionsArg, KPITimeSeries, SignalEngine, SignalResult

__version__ = "1.0.0"

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DecisionResult:
    """Everything one run produced, plus its fingerprint."""
    lines: Tuple[Line, ...]
    structure: HexagramStructure
    analysis: RuleAnalysis
    seed: int
    method: CastingMethod
    profile: str
    signals: Tuple[SignalResult, ...]
    provenance: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lines": [line.to_dict() for line in self.lines],
            "structure": self.structure.to_dict(),
            "analysis": self.analysis.to_dict(),
            "seed": self.seed,
            "method": self.method.value,
            "profile": self.profile,
            "signals": [signal.to_dict() for signal in self.signals],
            "provenance": dict(self.provenance),
        }


class DecisionEngine:
    """
    Orchestrates casting, structure, fusion and KPI signals.

    Usage:
        engine = DecisionEngine(kpi_definitions=load_kpi_definitions("kpi_definitions_v1"))
        result = engine.run(profile="meihua", seed=42, kpi_series=[cpu_series])
    """

    VERSION = __version__

    def __init__(
        self,
        policy_table: Optional[PolicyTable] = None,
        kpi_definitions: DefinitionsArg = None,
    ):
        self.fusion_engine = FusionEngine(policy_table)
        self.signal_engine = SignalEngine(kpi_definitions)

    def run(
        self,
        features: Optional[FeatureBundle] = None,
        profile: str = DEFAULT_PROFILE,
        method: CastingMethod = CastingMethod.THREE_COINS,
        seed: SeedLike = None,
        kpi_series: Optional[Iterable[KPITimeSeries]] = None,
    ) -> DecisionResult:
        """
        Run one decision.

        Args:
            features: Question features (None = no adjustments)
            profile: Policy profile name
            method: Casting method
            seed: int, str or None (fresh seed, surfaced on the result)
            kpi_series: KPI series to evaluate alongside the cast

        Returns:
            DecisionResult

        Raises:
            TypeError: unsupported seed type
        """
        features = features or FeatureBundle()
        method = CastingMethod(method)
        resolved_seed = resolve_seed(seed)
        series_list: List[KPITimeSeries] = list(kpi_series or [])

        with LogContext(run_id_for_seed(resolved_seed)):
            caster = Caster(method, seed=resolved_seed)
            lines = tuple(cast_lines(caster))
            logger.debug(f"Stage 1/4 casting: {[line.value for line in lines]}")

            structure = compute_structure(lines)
            logger.debug(
                f"Stage 2/4 structure: primary #{structure.primary_number} "
                f"relating #{structure.relating_number} mutual #{structure.mutual_number}"
            )

            analysis = self.fusion_engine.analyze(structure, features, profile=profile)
            logger.debug(f"Stage 3/4 fusion: weights={analysis.weights.to_dict()}")

            signals = tuple(self.signal_engine.evaluate_multiple(series_list))
            logger.debug(f"Stage 4/4 signals: {len(signals)} KPI series evaluated")

            inputs = {
                "seed": resolved_seed,
                "method": method.value,
                "profile": profile,
                "features": features.to_dict(),
                "kpi_series": [
                    {"kpi_id": series.kpi_id, "values": list(series.values)}
                    for series in series_list
                ],
            }
            outputs = {
                "lines": [line.to_dict() for line in lines],
                "structure": structure.to_dict(),
                "analysis": analysis.to_dict(),
                "signals": [signal.to_dict() for signal in signals],
            }
            provenance = create_provenance(__version__, inputs, outputs)

            logger.info(
                f"Decision {method.value}/{profile} seed={resolved_seed}: "
                f"#{structure.primary_number} -> #{structure.relating_number} "
                f"({structure.moving_count} moving), focus={analysis.fusion.focus.value}, "
                f"confidence={analysis.confidence}"
            )

        return DecisionResult(
            lines=lines,
            structure=structure,
            analysis=analysis,
            seed=resolved_seed,
            method=method,
            profile=profile,
            signals=signals,
            provenance=provenance,
        )


# =============================================================================
# CLI
# =============================================================================

def _parse_seed(raw: Optional[str]) -> SeedLike:
    if raw is None:
        return None
    try:
        return int(raw, 16) if raw.lower().startswith("0x") else int(raw)
    except ValueError:
        return raw


def _read_json(path: str) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entrypoint."""
    parser = argparse.ArgumentParser(
        description="Deterministic decision fusion run",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Seeded run with the default policy table
  python decision_engine.py --seed 42

  # String seed, meihua profile, yarrow casting, JSON to file
  python decision_engine.py --seed launch-q3 --profile meihua --method yarrow-stalk --output result.json

  # With question features and KPI series ({"nps": [10, 20, 30]})
  python decision_engine.py --seed 7 --features features.json --kpi-series series.json

Determinism guarantees:
  - Identical seed + method + profile + features + series -> identical output
  - Unseeded runs report the resolved seed for replay
        """,
    )
    parser.add_argument("--seed", default=None, help="int (0x.. allowed) or string seed; omitted = fresh seed")
    parser.add_argument(
        "--method",
        default=CastingMethod.THREE_COINS.value,
        choices=[m.value for m in CastingMethod],
        help="Casting method (default: three-coins)",
    )
    parser.add_argument("--profile", default=DEFAULT_PROFILE, help=f"Policy profile (default: {DEFAULT_PROFILE})")
    parser.add_argument("--policy", default=None, help="Policy table version in params_archive (default: built-in table)")
    parser.add_argument("--kpi-definitions", default="kpi_definitions_v1", help="KPI definitions version in params_archive")
    parser.add_argument("--params-dir", default=None, help="Override params_archive directory")
    parser.add_argument("--features", default=None, help="JSON file with question features")
    parser.add_argument("--kpi-series", default=None, help="JSON file mapping kpi_id -> list of values")
    parser.add_argument("--output", default=None, help="Write result JSON here instead of stdout")
    parser.add_argument("--log-level", default="WARNING", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--structured-logs", action="store_true", help="JSON-lines log output")
    parser.add_argument("--log-file", default=None, help="Also log to this size-rotated file")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    args = parser.parse_args(argv)
    setup_logging(
        log_level=getattr(logging, args.log_level),
        log_file=args.log_file,
        structured_output=args.structured_logs,
    )

    try:
        policy_table = load_policy_table(args.policy, args.params_dir) if args.policy else None
        definitions = load_kpi_definitions(args.kpi_definitions, args.params_dir)
        features = FeatureBundle(**_read_json(args.features)) if args.features else None
        series = [
            KPITimeSeries(kpi_id, values)
            for kpi_id, values in sorted(_read_json(args.kpi_series).items())
        ] if args.kpi_series else None

        result = DecisionEngine(policy_table, definitions).run(
            features=features,
            profile=args.profile,
            method=CastingMethod(args.method),
            seed=_parse_seed(args.seed),
            kpi_series=series,
        )
        content = canonical_dumps(result.to_dict())

        if args.output:
            Path(args.output).write_text(content, encoding="utf-8")
            logger.info(f"Result written to {args.output}")
        else:
            sys.stdout.write(content)
        return 0

    except (ParamsLoadError, EngineInputError, OSError, json.JSONDecodeError, TypeError) as e:
        logger.error(f"ERROR: {e}")
        return 1
    except Exception as e:
        logger.exception(f"UNEXPECTED ERROR: {e}")
        return 2


if __name__ == "__main__":
    sys.exit(main())
