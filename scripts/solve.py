#!/usr/bin/env python3
"""Solve every reachable position of a rule by retrograde analysis.

Usage:
    # Small variant, inline
    python scripts/solve.py --config configs/mini.yaml --output-dir out/mini

    # Same with four worker threads and a forward-search cross-check
    python scripts/solve.py --config configs/mini.yaml --workers 4 --validate

Writes ``positions.bin`` (position-store export with a count prefix) and
``values.bin`` (value table) into the output directory.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import yaml

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from _01_board.exceptions import ConsistencyError, DovesError
from _01_board.logging_config import setup_logging
from _01_board.rules import GameRule, rule_from_dict
from _03_analysis.retrograde import RetrogradeConfig, RetrogradeSolver

logger = logging.getLogger("solve")


def load_config(path: Path | None) -> tuple[GameRule, RetrogradeConfig]:
    """Rule and solver configuration from a YAML file (defaults without one)."""
    if path is None:
        return GameRule(), RetrogradeConfig()
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    rule = rule_from_dict(data.get("rule", {}))
    config = RetrogradeConfig.from_dict(data.get("solver", {}))
    return rule, config


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Retrograde solver for Tokyo Doves",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="YAML file with 'rule' and 'solver' sections",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help="Directory for positions.bin and values.bin",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Number of workers (overrides the config; 0 = CPU count)",
    )
    parser.add_argument(
        "--processes",
        action="store_true",
        help="Run the pure phase in worker processes",
    )
    parser.add_argument(
        "--validate",
        action="store_true",
        help="Cross-check sampled values with forward search",
    )
    parser.add_argument(
        "--validate-depth",
        type=int,
        default=6,
        help="Forward search depth for --validate (default: 6)",
    )
    parser.add_argument(
        "--log-format",
        choices=["plain", "json"],
        default="plain",
        help="Log line format",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )
    args = parser.parse_args()

    setup_logging("DEBUG" if args.verbose else "INFO", format_json=args.log_format == "json")

    try:
        rule, config = load_config(args.config)
    except (OSError, DovesError) as e:
        logger.error("Cannot load configuration: %s", e)
        return 2

    if args.workers is not None:
        config.parallel.num_workers = args.workers or None
    if args.processes:
        config.parallel.use_processes = True

    logger.info("Rule: %s", rule.to_dict())
    solver = RetrogradeSolver(rule, config)
    try:
        stats = solver.solve()
    except ConsistencyError as e:
        logger.error("Analysis aborted: %s", e)
        return 1

    start_value = solver.value_of(rule.initial_board, rule.first_player)
    logger.info("Initial position: %s", start_value)
    logger.info(
        "Positions: %d (win %d, lose %d, draw %d), longest forced line %d plies",
        stats.total_positions,
        stats.win_positions,
        stats.lose_positions,
        stats.draw_positions,
        stats.max_distance,
    )

    if args.validate:
        logger.info("Validating against forward search...")
        validation = solver.validate_against_forward(
            sample_size=min(200, stats.total_positions), depth=args.validate_depth
        )
        logger.info(
            "Validation: %d matches, %d mismatches of %d",
            validation["matches"],
            validation["mismatches"],
            validation["total"],
        )
        if validation["mismatches"]:
            return 1

    if args.output_dir is not None:
        args.output_dir.mkdir(parents=True, exist_ok=True)
        solver.save_positions(args.output_dir / "positions.bin")
        solver.to_value_table().save(args.output_dir / "values.bin")
        logger.info("Wrote results to %s", args.output_dir)

    return 0


if __name__ == "__main__":
    sys.exit(main())
