"""Human player reading actions in text notation from a console."""
from __future__ import annotations

from collections.abc import Callable, Sequence

from _01_board.actions import Action, parse_action
from _01_board.board import Board
from _01_board.exceptions import ActionNotationError
from _01_board.formatting import action_list
from _01_board.pieces import Color

from .base import Agent

PROMPT = "Input an action (e.g. '+Y 1 0', 'T 2 0', '-A'), or '?' for the list: "


class ConsoleAgent(Agent):
    """Asks until the input names a legal action."""

    def __init__(
        self,
        input_fn: Callable[[str], str] = input,
        output_fn: Callable[[str], None] = print,
    ) -> None:
        self._input = input_fn
        self._output = output_fn

    def select_action(self, board: Board, player: Color, legal: Sequence[Action]) -> Action:
        if not legal:
            raise RuntimeError("ConsoleAgent received no legal actions")
        while True:
            text = self._input(PROMPT).strip()
            if text == "?":
                self._output(action_list(legal))
                continue
            if text.isdigit() and int(text) < len(legal):
                return legal[int(text)]
            try:
                action = parse_action(text, board, player)
            except ActionNotationError as e:
                self._output(f"Invalid input: {e}. Try again.")
                continue
            self._output(f"---> {action}")
            if action not in legal:
                self._output("Illegal action. Try again.")
                continue
            return action


__all__ = ["ConsoleAgent"]
