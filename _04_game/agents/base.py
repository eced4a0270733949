"""Base agent interface and type definitions."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence

from _01_board.actions import Action
from _01_board.board import Board
from _01_board.exceptions import IllegalActionError
from _01_board.pieces import Color

AgentFn = Callable[[Board, Color, Sequence[Action]], Action]


def ensure_legal(action: Action, legal: Sequence[Action]) -> Action:
    """Return ``action`` if it is among ``legal``.

    Raises:
        IllegalActionError: If the agent picked something else.
    """
    if action not in legal:
        raise IllegalActionError(action, "not among the legal actions offered")
    return action


class Agent(ABC):
    """Abstract base class for Tokyo Doves agents."""

    @abstractmethod
    def select_action(
        self,
        board: Board,
        player: Color,
        legal_actions: Sequence[Action],
    ) -> Action:
        """Select an action from the available legal moves.

        Args:
            board: The current board.
            player: The side to move.
            legal_actions: Available legal actions to choose from.

        Returns:
            The selected action.
        """
        ...

    def __call__(
        self,
        board: Board,
        player: Color,
        legal_actions: Sequence[Action],
    ) -> Action:
        """Make the agent callable to satisfy AgentFn interface."""
        return self.select_action(board, player, legal_actions)

    def start_game(self, board: Board) -> None:
        """Hook called before the first action of a game."""

    def end_game(self, board: Board) -> None:
        """Hook called once the game is over."""

    @property
    def name(self) -> str:
        """Return the agent's name for display purposes."""
        return self.__class__.__name__


__all__ = ["Agent", "AgentFn", "ensure_legal"]
