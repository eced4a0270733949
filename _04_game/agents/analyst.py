"""Agent choosing among the best actions of a shallow forward search."""
from __future__ import annotations

import logging
import random
from collections.abc import Sequence

from _01_board.actions import Action
from _01_board.board import Board
from _01_board.pieces import Color
from _01_board.rules import GameRule
from _03_analysis.search import ForwardSearch

from .base import Agent, ensure_legal

logger = logging.getLogger(__name__)


class AnalystAgent(Agent):
    """Searches ``depth`` plies and plays a random action among the best.

    With ``declare_about_to_end`` the agent logs the exact value whenever the
    search proves the outcome.
    """

    def __init__(
        self,
        rule: GameRule | None = None,
        depth: int = 3,
        seed: int | None = None,
        declare_about_to_end: bool = False,
    ) -> None:
        self.rule = rule or GameRule()
        self.depth = depth
        self.declare_about_to_end = declare_about_to_end
        self._search = ForwardSearch(self.rule)
        self._rng = random.Random(seed)

    def select_action(self, board: Board, player: Color, legal: Sequence[Action]) -> Action:
        if not legal:
            raise RuntimeError("AnalystAgent received no legal actions")
        candidates = self._search.best_actions(board, player, self.depth)
        if self.declare_about_to_end:
            value = self._search.evaluate(board, player, self.depth).single()
            if value is not None:
                logger.info("This game is about to end: value=%s", value)
        if not candidates:
            # Every action is proven worse than a draw; any of them will do
            candidates = list(legal)
        return ensure_legal(self._rng.choice(candidates), legal)

    @property
    def name(self) -> str:
        return f"AnalystAgent(depth={self.depth})"


__all__ = ["AnalystAgent"]
