"""Agent playing perfectly from solved values.

The value source is a live ``RetrogradeSolver`` or a ``ValueTable`` loaded
from disk; both answer ``lookup(position_code)``.
"""
from __future__ import annotations

import logging
import random
from collections import defaultdict
from collections.abc import Sequence
from typing import Protocol

from _01_board.actions import Action
from _01_board.board import Board
from _01_board.canonical import position_code
from _01_board.engine import perform
from _01_board.pieces import Color
from _01_board.rules import GameRule
from _03_analysis.board_value import BoardValue

from .base import Agent, ensure_legal

logger = logging.getLogger(__name__)


class ValueSource(Protocol):
    def lookup(self, code: int) -> BoardValue: ...


class TablebaseAgent(Agent):
    """Plays the action whose successor value is best for the mover.

    Falls back to a provided agent (or a random action) when no successor
    is in the table.
    """

    def __init__(
        self,
        source: ValueSource,
        rule: GameRule | None = None,
        fallback_agent: Agent | None = None,
        seed: int | None = None,
    ) -> None:
        """Initialize tablebase agent.

        Args:
            source: Solver or value table answering ``lookup(code)``
            rule: Rule the values were computed under
            fallback_agent: Agent to use for positions missing from the table
            seed: Seed for breaking ties between equally good actions
        """
        self.source = source
        self.rule = rule or getattr(source, "rule", None) or GameRule()
        self.fallback_agent = fallback_agent
        self._rng = random.Random(seed)
        self._stats: dict[str, int] = defaultdict(int)

    def action_values(self, board: Board, player: Color, legal: Sequence[Action]) -> list[tuple[Action, BoardValue]]:
        """Value for the mover of each legal action; Unknown when not in the table."""
        symmetric = self.rule.color_symmetric
        result = []
        for action in legal:
            child = perform(board, action)
            value = self.source.lookup(position_code(child, player.opponent, symmetric))
            result.append((action, value.propagated()))
        return result

    def select_action(self, board: Board, player: Color, legal: Sequence[Action]) -> Action:
        if not legal:
            raise RuntimeError("TablebaseAgent received no legal actions")

        known = [(a, v) for a, v in self.action_values(board, player, legal) if not v.is_unknown]
        if known:
            best = max(v for _, v in known)
            choices = [a for a, v in known if v == best]
            self._stats["tablebase_hits"] += 1
            return ensure_legal(self._rng.choice(choices), legal)

        self._stats["fallback"] += 1
        if self.fallback_agent is not None:
            return self.fallback_agent.select_action(board, player, legal)
        return ensure_legal(self._rng.choice(list(legal)), legal)

    @property
    def name(self) -> str:
        return "TablebaseAgent"

    def get_stats(self) -> dict[str, int]:
        """Get usage statistics."""
        return dict(self._stats)


__all__ = ["TablebaseAgent", "ValueSource"]
