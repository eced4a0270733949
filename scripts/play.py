#!/usr/bin/env python
"""Play Tokyo Doves in the terminal or run agent series.

Usage:
    python scripts/play.py --red console --green analyst --depth 3
    python scripts/play.py --config configs/mini.yaml --red tablebase --values out/mini/values.bin
    python scripts/play.py --red random --green analyst --games 50

Agents: console, random, analyst, tablebase. A single game is shown turn by
turn; with ``--games`` above one a series is played and summarized.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from _01_board.logging_config import setup_logging
from _01_board.rules import GameRule, load_rule
from _03_analysis.storage import ValueTable
from _04_game.agents import Agent, AnalystAgent, ConsoleAgent, RandomAgent, TablebaseAgent
from _04_game.arena import Arena, SeriesConfig, play_series
from _04_game.game import Game

logger = logging.getLogger(__name__)

AGENTS = ("console", "random", "analyst", "tablebase")


def create_agent(
    kind: str,
    rule: GameRule,
    depth: int,
    seed: int | None,
    values: ValueTable | None,
) -> Agent:
    """Build an agent by name."""
    if kind == "console":
        return ConsoleAgent()
    if kind == "random":
        return RandomAgent(seed)
    if kind == "analyst":
        return AnalystAgent(rule, depth=depth, seed=seed, declare_about_to_end=True)
    if kind == "tablebase":
        if values is None:
            raise SystemExit("--values is required for the tablebase agent")
        return TablebaseAgent(values, rule, fallback_agent=RandomAgent(seed), seed=seed)
    raise SystemExit(f"Unknown agent {kind!r}; choose from {', '.join(AGENTS)}")


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Play Tokyo Doves",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--config", type=Path, default=None, help="YAML rule file")
    parser.add_argument("--red", choices=AGENTS, default="console", help="Red agent")
    parser.add_argument("--green", choices=AGENTS, default="analyst", help="Green agent")
    parser.add_argument("--depth", type=int, default=3, help="Analyst search depth")
    parser.add_argument("--values", type=Path, default=None, help="Value table for the tablebase agent")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument("--games", type=int, default=1, help="Number of games")
    parser.add_argument("--max-turns", type=int, default=200, help="Stop a game after this many turns")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    args = parser.parse_args()

    setup_logging("DEBUG" if args.verbose else "INFO")

    rule = load_rule(args.config) if args.config else GameRule()
    values = ValueTable.load(args.values) if args.values else None
    red = create_agent(args.red, rule, args.depth, args.seed, values)
    green = create_agent(args.green, rule, args.depth, args.seed, values)

    try:
        if args.games > 1:
            if "console" in (args.red, args.green):
                raise SystemExit("Series cannot include the console agent")
            result = play_series(
                SeriesConfig(games=args.games, agent_a=red, agent_b=green, rule=rule, max_turns=args.max_turns)
            )
            summary = result.summary
            print(f"{red.name} vs {green.name}: {summary.wins[0]}-{summary.wins[1]}")
            print(f"Draws: {summary.draws}, unfinished: {summary.unfinished}")
            print(f"Average turns: {summary.average_turns:.1f}")
        else:
            arena = Arena(red, green, Game(rule))
            print(arena)
            arena.auto_play(verbose=True, max_turns=args.max_turns)
    except KeyboardInterrupt:
        print("\nInterrupted.")
        return 130
    finally:
        if values is not None:
            values.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
