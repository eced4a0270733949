"""Uniform random baseline agent."""
from __future__ import annotations

import random
from collections.abc import Sequence

from _01_board.actions import Action
from _01_board.board import Board
from _01_board.pieces import Color

from .base import Agent, ensure_legal


class RandomAgent(Agent):
    """Agent that samples uniformly from the available legal actions."""

    def __init__(self, seed: int | None = None) -> None:
        self._rng = random.Random(seed)

    def select_action(self, board: Board, player: Color, legal: Sequence[Action]) -> Action:
        del board, player  # unused
        if not legal:
            raise RuntimeError("RandomAgent received no legal actions")
        choice = self._rng.randrange(len(legal))
        return ensure_legal(legal[choice], legal)


__all__ = ["RandomAgent"]
