"""Forward and backward action generation.

All functions here are pure: they take a board, a player and a rule and
return new values. They are safe to call from any thread or worker process.
"""

from __future__ import annotations

from collections.abc import Iterator
from enum import Enum

from .actions import Action, ActionKind
from .board import FRAME, Board, Cell, SurroundedStatus, normalize_coords
from .exceptions import IllegalActionError, ProhibitedRemoveError
from .pieces import KING_STEPS, ORTHOGONAL_STEPS, STEP_PATTERNS, Color, Dove, piece_index
from .rules import GameRule, Judge

# Longest T slide worth trying; anything further breaks the field limit
MAX_SLIDE = 2 * FRAME


class GameStatus(Enum):
    """Result of the game after an action."""

    ONGOING = "ongoing"
    RED_WINS = "red_wins"
    GREEN_WINS = "green_wins"
    DRAW = "draw"

    @classmethod
    def win(cls, color: Color) -> GameStatus:
        return cls.RED_WINS if color is Color.RED else cls.GREEN_WINS

    @property
    def winner(self) -> Color | None:
        if self is GameStatus.RED_WINS:
            return Color.RED
        if self is GameStatus.GREEN_WINS:
            return Color.GREEN
        return None

    @property
    def is_finished(self) -> bool:
        return self is not GameStatus.ONGOING


def status_after(board: Board, mover: Color, rule: GameRule) -> GameStatus:
    """Game status once ``mover`` has produced ``board``."""
    status = board.surrounded_status(rule.field_size)
    if status is SurroundedStatus.NONE:
        return GameStatus.ONGOING
    if status is SurroundedStatus.BOTH:
        if rule.judge is Judge.LAST_WINS:
            return GameStatus.win(mover)
        if rule.judge is Judge.NEXT_WINS:
            return GameStatus.win(mover.opponent)
        return GameStatus.DRAW
    if status.is_surrounded(mover):
        return GameStatus.win(mover.opponent)
    return GameStatus.win(mover)


def _edit(board: Board, index: int, cell: Cell | None, field_size: int) -> tuple[Board, Cell] | None:
    """Relocate one piece; None when the result breaks the field or isolation rule."""
    coords = board.coords_list()
    coords[index] = cell
    rows = [c[0] for c in coords if c is not None]
    cols = [c[1] for c in coords if c is not None]
    if max(rows) - min(rows) >= field_size or max(cols) - min(cols) >= field_size:
        return None
    positions, shift = normalize_coords(coords)
    result = Board(positions)
    if result.is_isolated():
        return None
    return result, shift


def _put_targets(board: Board, player: Color) -> list[Cell]:
    own = [cell for cell in (board.coords(player, d) for d in Dove) if cell is not None]
    targets: set[Cell] = set()
    for row, col in own:
        for dr, dc in KING_STEPS:
            if board.is_empty_at(row + dr, col + dc):
                targets.add((row + dr, col + dc))
    return sorted(targets)


def _move_targets(board: Board, dove: Dove, source: Cell) -> Iterator[Cell]:
    row, col = source
    if dove is Dove.T:
        for dr, dc in ORTHOGONAL_STEPS:
            for k in range(1, MAX_SLIDE):
                target = (row + k * dr, col + k * dc)
                if not board.is_empty_at(*target):
                    break
                yield target
        return
    for dr, dc in STEP_PATTERNS[dove]:
        if board.is_empty_at(row + dr, col + dc):
            yield (row + dr, col + dc)


def iter_legal_actions(board: Board, player: Color, rule: GameRule) -> Iterator[Action]:
    """Lazily generate the legal actions of ``player``; nothing on a finished board."""
    field_size = rule.field_size
    if board.is_finished(field_size):
        return

    hand = [dove for dove in rule.hand(board, player) if not dove.is_boss]
    if hand:
        height, width = board.height, board.width
        targets = [
            (r, c)
            for r, c in _put_targets(board, player)
            if max(height, r + 1) - min(0, r) <= field_size
            and max(width, c + 1) - min(0, c) <= field_size
        ]
        for dove in hand:
            for target in targets:
                yield Action.put(player, dove, target)

    for dove in board.doves_on_field(player):
        index = piece_index(player, dove)
        source = board.coords(player, dove)
        for target in _move_targets(board, dove, source):
            if _edit(board, index, target, field_size) is not None:
                yield Action.move(player, dove, source, target)

    if rule.remove_accepted:
        for dove in board.doves_on_field(player):
            if dove.is_boss:
                continue
            if _edit(board, piece_index(player, dove), None, field_size) is not None:
                yield Action.remove(player, dove, board.coords(player, dove))


def illegal_reason(board: Board, action: Action, rule: GameRule) -> str | None:
    """Why ``action`` is illegal on ``board``, or None when it is legal."""
    player, dove = action.color, action.dove
    if board.is_finished(rule.field_size):
        return "the game is already finished"
    if action.kind is ActionKind.REMOVE and not rule.remove_accepted:
        return "remove actions are not accepted by the rule"
    if dove not in rule.roster(player):
        return f"{dove.name} is not in the roster"
    index = piece_index(player, dove)
    current = board.coords(player, dove)

    if action.kind is ActionKind.PUT:
        if dove.is_boss:
            return "the boss cannot be put"
        if current is not None:
            return f"{dove.name} is not in the hand"
        if action.target not in _put_targets(board, player):
            return f"{action.target} is not an empty cell next to an own dove"
    else:
        if current is None:
            return f"{dove.name} is not on the field"
        if action.source != current:
            return f"{dove.name} is at {current}, not {action.source}"
        if action.kind is ActionKind.MOVE:
            if action.target not in set(_move_targets(board, dove, current)):
                return f"{dove.name} cannot reach {action.target}"
        elif dove.is_boss:
            return "the boss cannot be removed"

    target = action.target if action.kind is not ActionKind.REMOVE else None
    if _edit(board, index, target, rule.field_size) is None:
        return "the result leaves a dove isolated or overflows the field"
    return None


def check_action(board: Board, action: Action, rule: GameRule) -> None:
    """Raise if ``action`` is not legal on ``board``.

    Raises:
        ProhibitedRemoveError: If the rule forbids remove actions.
        IllegalActionError: For every other violation, with a reason.
    """
    if action.kind is ActionKind.REMOVE and not rule.remove_accepted:
        raise ProhibitedRemoveError(action)
    reason = illegal_reason(board, action, rule)
    if reason is not None:
        raise IllegalActionError(action, reason)


def is_legal(board: Board, action: Action, rule: GameRule) -> bool:
    return illegal_reason(board, action, rule) is None


def perform_with_shift(board: Board, action: Action) -> tuple[Board, Cell]:
    """Apply ``action`` without legality checks.

    Returns:
        Tuple of (board, shift); subtract ``shift`` from coordinates of the
        old frame to express them in the new board's frame.
    """
    cell = None if action.kind is ActionKind.REMOVE else action.target
    return board.with_coords({piece_index(action.color, action.dove): cell})


def perform(board: Board, action: Action) -> Board:
    return perform_with_shift(board, action)[0]


def perform_with_inverse(board: Board, action: Action) -> tuple[Board, Action]:
    """Apply ``action`` and return the action undoing it on the result.

    ``perform(result, inverse)`` equals ``board``.
    """
    result, shift = perform_with_shift(board, action)
    return result, action.reverse(shift)


def perform_checked(board: Board, action: Action, rule: GameRule) -> Board:
    check_action(board, action, rule)
    return perform(board, action)


class LegalActions:
    """Restartable lazy view over the legal actions of ``player`` on ``board``.

    Iterating twice generates the actions twice; :meth:`to_list` materializes.
    """

    def __init__(self, board: Board, player: Color, rule: GameRule) -> None:
        self.board = board
        self.player = player
        self.rule = rule

    def __iter__(self) -> Iterator[Action]:
        return iter_legal_actions(self.board, self.player, self.rule)

    def __contains__(self, action: object) -> bool:
        return (
            isinstance(action, Action)
            and action.color is self.player
            and is_legal(self.board, action, self.rule)
        )

    def to_list(self) -> list[Action]:
        return list(self)

    def count(self) -> int:
        return sum(1 for _ in self)

    def is_empty(self) -> bool:
        return next(iter(self), None) is None


def legal_actions(board: Board, player: Color, rule: GameRule) -> LegalActions:
    return LegalActions(board, player, rule)


def next_boards(board: Board, player: Color, rule: GameRule) -> Iterator[tuple[Action, Board]]:
    """Pairs of each legal action and the board it produces."""
    for action in iter_legal_actions(board, player, rule):
        yield action, perform(board, action)


# Backward generation


def _source_candidates(board: Board, dove: Dove, target: Cell) -> Iterator[Cell]:
    # Every pattern is symmetric, so sources are found by stepping away from the target
    yield from _move_targets(board, dove, target)


def _confirmed(
    prev: Board, action: Action, board: Board, rule: GameRule
) -> tuple[Action, Board] | None:
    if prev.is_finished(rule.field_size):
        return None
    if illegal_reason(prev, action, rule) is not None:
        return None
    if perform(prev, action) != board:
        return None
    return action, prev


def backward_actions(board: Board, player: Color, rule: GameRule) -> Iterator[tuple[Action, Board]]:
    """Actions of ``player`` that lead to ``board`` from a legal unfinished board.

    Yields:
        Tuples of (action, previous_board); the action is expressed in the
        frame of ``previous_board`` and ``perform(previous_board, action)``
        equals ``board``.
    """
    field_size = rule.field_size

    for dove in board.doves_on_field(player):
        index = piece_index(player, dove)
        current = board.coords(player, dove)

        # Undo a move
        for source in _source_candidates(board, dove, current):
            edited = _edit(board, index, source, field_size)
            if edited is None:
                continue
            prev, (dr, dc) = edited
            action = Action.move(player, dove, source, current).translated(dr, dc)
            confirmed = _confirmed(prev, action, board, rule)
            if confirmed is not None:
                yield confirmed

        # Undo a put
        if not dove.is_boss:
            edited = _edit(board, index, None, field_size)
            if edited is not None:
                prev, (dr, dc) = edited
                action = Action.put(player, dove, current).translated(dr, dc)
                confirmed = _confirmed(prev, action, board, rule)
                if confirmed is not None:
                    yield confirmed

    # Undo a remove
    if rule.remove_accepted:
        hand = [dove for dove in rule.hand(board, player) if not dove.is_boss]
        cells = [
            (r, c)
            for r in range(board.height - field_size, field_size)
            for c in range(board.width - field_size, field_size)
            if board.is_empty_at(r, c)
        ]
        for dove in hand:
            index = piece_index(player, dove)
            for cell in cells:
                edited = _edit(board, index, cell, field_size)
                if edited is None:
                    continue
                prev, (dr, dc) = edited
                action = Action.remove(player, dove, cell).translated(dr, dc)
                confirmed = _confirmed(prev, action, board, rule)
                if confirmed is not None:
                    yield confirmed


__all__ = [
    "GameStatus",
    "LegalActions",
    "backward_actions",
    "check_action",
    "illegal_reason",
    "is_legal",
    "iter_legal_actions",
    "legal_actions",
    "next_boards",
    "perform",
    "perform_checked",
    "perform_with_inverse",
    "perform_with_shift",
    "status_after",
]
