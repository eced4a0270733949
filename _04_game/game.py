"""Stateful game: a board, the side to move and the history of actions."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from _01_board.actions import Action
from _01_board.board import Board
from _01_board.canonical import position_code
from _01_board.engine import (
    GameStatus,
    LegalActions,
    check_action,
    legal_actions,
    perform,
    perform_checked,
    perform_with_inverse,
    status_after,
)
from _01_board.exceptions import GameFinishedError, PlayerMismatchError
from _01_board.formatting import framed, hand_summary
from _01_board.pieces import Color
from _01_board.rules import GameRule

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Turn:
    """One performed action and the boards around it."""

    index: int
    player: Color
    action: Action
    before: Board
    after: Board
    inverse: Action  # Undoes ``action`` on ``after``


class Game:
    """A single game under a fixed rule.

    ``perform`` either applies an action completely or raises and leaves the
    game unchanged.
    """

    def __init__(self, rule: GameRule | None = None) -> None:
        self.rule = rule or GameRule()
        self.reset()

    def reset(self) -> None:
        self._board = self.rule.initial_board
        self._player = self.rule.first_player
        self._status = GameStatus.ONGOING
        self._history: list[Turn] = []

    @property
    def board(self) -> Board:
        return self._board

    @property
    def player(self) -> Color:
        """Side to move (the last mover once the game is finished)."""
        return self._player

    @property
    def status(self) -> GameStatus:
        return self._status

    @property
    def history(self) -> tuple[Turn, ...]:
        return tuple(self._history)

    @property
    def turns(self) -> int:
        return len(self._history)

    def is_ongoing(self) -> bool:
        return self._status is GameStatus.ONGOING

    def winner(self) -> Color | None:
        return self._status.winner

    def position_code(self) -> int:
        return position_code(self._board, self._player, self.rule.color_symmetric)

    def legal_actions(self) -> LegalActions:
        return legal_actions(self._board, self._player, self.rule)

    def check_action(self, action: Action) -> None:
        """Raise the error ``perform`` would raise for ``action``.

        Raises:
            GameFinishedError: If the game is over.
            PlayerMismatchError: If the action belongs to the other side.
            IllegalActionError: If the board does not allow the action.
        """
        if not self.is_ongoing():
            raise GameFinishedError()
        if action.color is not self._player:
            raise PlayerMismatchError(self._player, action.color)
        # perform_checked raises for illegal actions without side effects
        perform_checked(self._board, action, self.rule)

    def perform(self, action: Action) -> GameStatus:
        """Apply ``action`` for the side to move.

        Returns:
            Status after the action.

        Raises:
            GameFinishedError: If the game is over.
            PlayerMismatchError: If the action belongs to the other side.
            IllegalActionError: If the board does not allow the action.
        """
        if not self.is_ongoing():
            raise GameFinishedError()
        if action.color is not self._player:
            raise PlayerMismatchError(self._player, action.color)
        check_action(self._board, action, self.rule)
        after, inverse = perform_with_inverse(self._board, action)

        self._history.append(
            Turn(len(self._history), self._player, action, self._board, after, inverse)
        )
        self._board = after
        self._status = status_after(after, self._player, self.rule)
        if self._status is GameStatus.ONGOING:
            self._player = self._player.opponent
            if self.legal_actions().is_empty():
                # Nobody can ever act again
                self._status = GameStatus.DRAW
        logger.debug("Turn %d: %s -> %s", len(self._history), action, self._status.value)
        return self._status

    def undo(self) -> Turn:
        """Take back the last action.

        Returns:
            The turn that was taken back.

        Raises:
            IndexError: If no action has been performed.
        """
        if not self._history:
            raise IndexError("No action to undo")
        turn = self._history.pop()
        self._board = perform(turn.after, turn.inverse)
        self._player = turn.player
        self._status = GameStatus.ONGOING
        return turn

    def render(self) -> str:
        lines = [
            framed(self._board, self.rule.field_size),
            hand_summary(self._board, self.rule),
        ]
        if self.is_ongoing():
            lines.append(f"{self._player.name} to move")
        else:
            lines.append(f"Finished: {self._status.value}")
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.render()


__all__ = ["Game", "GameStatus", "Turn"]
