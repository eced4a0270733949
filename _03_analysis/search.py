"""Depth-limited forward search.

Exact negamax over the same rules as the retrograde solver. A search to
depth ``n`` decides every position whose value is decisive within ``n``
plies; anything else comes back as Unknown, which means the true value is
Draw, a win slower than ``n`` or a loss slower than ``n``.

Used on demand for single positions (analyst agent, puzzles) and to
cross-check solver output.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass

from _01_board.actions import Action
from _01_board.board import Board
from _01_board.canonical import position_code
from _01_board.engine import GameStatus, next_boards, status_after
from _01_board.exceptions import InvalidSearchArgumentError
from _01_board.pieces import Color
from _01_board.rules import GameRule

from .board_value import DRAW, UNKNOWN, BoardValue, BoardValueTree, Interval

logger = logging.getLogger(__name__)


def terminal_value(board: Board, player: Color, rule: GameRule) -> BoardValue | None:
    """Value of a finished board for ``player`` to move, None if ongoing.

    The opponent produced the board, so a boss-pair surround is judged with
    the opponent as the mover.
    """
    if not board.is_finished(rule.field_size):
        return None
    status = status_after(board, player.opponent, rule)
    if status is GameStatus.DRAW:
        return DRAW
    if status.winner is player:
        return BoardValue.win(0)
    return BoardValue.lose(0)


@dataclass
class SearchConfig:
    """Configuration for forward search."""

    cache_size: int = 1_000_000


class ForwardSearch:
    """Negamax with a per-position cache.

    An exact result is cached with the shallowest depth that decides it
    (its distance for Win and Lose) and is only reused by searches at least
    that deep. Unknown results record the deepest search that failed to
    decide the position.

    Every decisive value returned by a ``depth``-ply search has a distance of
    at most ``depth``.
    """

    def __init__(self, rule: GameRule | None = None, config: SearchConfig | None = None):
        self.rule = rule or GameRule()
        self.config = config or SearchConfig()
        self._exact: dict[int, tuple[BoardValue, int]] = {}
        self._undecided: dict[int, int] = {}
        self._stats: dict[str, int] = defaultdict(int)

    def _check(self, depth: int) -> None:
        if depth < 0:
            raise InvalidSearchArgumentError(f"Search depth must be non-negative, got {depth}")

    def solve(self, board: Board, player: Color, depth: int) -> BoardValue:
        """Exact value of the position, or Unknown if not decided within ``depth`` plies.

        Raises:
            InvalidSearchArgumentError: If depth is negative.
        """
        self._check(depth)
        return self._negamax(board, player, depth)

    def _negamax(self, board: Board, player: Color, depth: int) -> BoardValue:
        terminal = terminal_value(board, player, self.rule)
        if terminal is not None:
            return terminal
        if depth == 0:
            return UNKNOWN

        key = position_code(board, player, self.rule.color_symmetric)
        cached = self._exact.get(key)
        if cached is not None and cached[1] <= depth:
            self._stats["cache_hits"] += 1
            return cached[0]
        if self._undecided.get(key, -1) >= depth:
            self._stats["cache_hits"] += 1
            return UNKNOWN
        self._stats["nodes"] += 1

        best: BoardValue | None = None
        undecided = False
        has_action = False
        for _, child in next_boards(board, player, self.rule):
            has_action = True
            child_value = self._negamax(child, player.opponent, depth - 1)
            if child_value.is_unknown:
                undecided = True
                continue
            value = child_value.propagated()
            if best is None or value > best:
                best = value
            if best.is_win and best.distance == 1:
                break

        if not has_action:
            result = DRAW
        elif best is not None and best.is_win:
            # A slower win cannot hide behind an undecided child
            result = best
        elif undecided:
            result = UNKNOWN
        else:
            result = best

        if result.is_unknown:
            self._undecided[key] = max(depth, self._undecided.get(key, -1))
        else:
            self._store_exact(key, result, depth)
        return result

    def _store_exact(self, key: int, value: BoardValue, depth: int) -> None:
        # Win and Lose are decided by any search reaching their distance
        needed = value.distance if value.is_decisive else depth
        cached = self._exact.get(key)
        if cached is not None:
            if needed < cached[1]:
                self._exact[key] = (value, needed)
        elif len(self._exact) < self.config.cache_size:
            self._exact[key] = (value, needed)

    def evaluate(self, board: Board, player: Color, depth: int) -> Interval:
        """Bounds on the position's value from a ``depth``-ply search."""
        value = self.solve(board, player, depth)
        if value.is_unknown:
            return Interval(BoardValue.lose(depth + 1), BoardValue.win(depth + 1))
        return Interval.point(value)

    def compare(self, board: Board, value: BoardValue, player: Color) -> int:
        """Sign of (actual value - ``value``), searching only as deep as needed.

        Raises:
            InvalidSearchArgumentError: If ``value`` is not Win or Lose.
        """
        if not value.is_decisive:
            raise InvalidSearchArgumentError(f"Can only compare against Win or Lose, got {value}")
        actual = self.solve(board, player, value.distance)
        if actual.is_unknown:
            # Nothing decisive within the distance: below a win, above a loss
            return -1 if value.is_win else 1
        if actual == value:
            return 0
        return 1 if actual > value else -1

    def best_actions(self, board: Board, player: Color, depth: int) -> list[Action]:
        """Actions achieving the searched value.

        When the position is undecided, returns the actions that are not
        proven worse than a draw.
        """
        value = self.solve(board, player, depth)
        if depth == 0:
            return []
        result = []
        for action, child in next_boards(board, player, self.rule):
            child_value = self._negamax(child, player.opponent, depth - 1)
            if value.is_unknown:
                if child_value.is_unknown or child_value.is_draw:
                    result.append(action)
            elif not child_value.is_unknown and child_value.propagated() == value:
                result.append(action)
        return result

    def checkmate_tree(self, board: Board, player: Color, depth: int) -> BoardValueTree | None:
        """Forced win of ``player`` within ``depth`` plies as a tree.

        The winner's nodes list every fastest winning action; the loser's
        nodes list every defence.

        Returns:
            The tree, or None when no win within ``depth`` exists.
        """
        value = self.solve(board, player, depth)
        if not value.is_win:
            return None
        return self._tree(board, player, value)

    def _tree(self, board: Board, player: Color, value: BoardValue) -> BoardValueTree:
        node = BoardValueTree(board, player, value)
        if value.distance == 0:
            return node
        for action, child in next_boards(board, player, self.rule):
            child_value = self._negamax(child, player.opponent, value.distance - 1)
            if value.is_win and child_value != value.successor_target():
                continue
            node.children[action] = self._tree(child, player.opponent, child_value)
        return node

    def get_stats(self) -> dict[str, int]:
        return {
            **self._stats,
            "exact_cached": len(self._exact),
            "undecided_cached": len(self._undecided),
        }


def evaluate_board(board: Board, player: Color, depth: int, rule: GameRule | None = None) -> Interval:
    return ForwardSearch(rule).evaluate(board, player, depth)


def compare_board_value(
    board: Board, value: BoardValue, player: Color, rule: GameRule | None = None
) -> int:
    return ForwardSearch(rule).compare(board, value, player)


def find_best_actions(
    board: Board, player: Color, depth: int, rule: GameRule | None = None
) -> list[Action]:
    return ForwardSearch(rule).best_actions(board, player, depth)


def create_checkmate_tree(
    board: Board, player: Color, depth: int, rule: GameRule | None = None
) -> BoardValueTree | None:
    return ForwardSearch(rule).checkmate_tree(board, player, depth)


__all__ = [
    "ForwardSearch",
    "SearchConfig",
    "compare_board_value",
    "create_checkmate_tree",
    "evaluate_board",
    "find_best_actions",
    "terminal_value",
]
