"""Action dataclass, compact integer encoding and text notation.

Cells in an action are ``(row, col)`` pairs in the frame of the board the
action applies to. Targets may lie outside that frame (for example row -1 when
a dove moves above every other dove); the resulting board is re-normalized.

Compact encoding (18 bits)::

    bits 0..1    kind (PUT=0, MOVE=1, REMOVE=2)
    bit  2       color
    bits 3..5    dove
    bits 6..9    target row + 4
    bits 10..13  target col + 4
    bits 14..15  source row
    bits 16..17  source col
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

from .board import FRAME, Board, Cell
from .exceptions import ActionCodeError, ActionNotationError
from .pieces import Color, Dove, parse_dove, piece_char

TARGET_OFFSET = 4
TARGET_MIN = -TARGET_OFFSET
TARGET_MAX = 15 - TARGET_OFFSET
ACTION_CODE_BITS = 18


class ActionKind(IntEnum):
    PUT = 0
    MOVE = 1
    REMOVE = 2


@dataclass(frozen=True)
class Action:
    """One ply.

    Attributes:
        kind: Put, move or remove.
        color: Player performing the action.
        dove: Dove being put, moved or removed.
        source: Cell the dove leaves (move and remove).
        target: Cell the dove lands on (put and move).
    """

    kind: ActionKind
    color: Color
    dove: Dove
    source: Cell | None = None
    target: Cell | None = None

    @classmethod
    def put(cls, color: Color, dove: Dove, target: Cell) -> Action:
        return cls(ActionKind.PUT, color, dove, None, target)

    @classmethod
    def move(cls, color: Color, dove: Dove, source: Cell, target: Cell) -> Action:
        return cls(ActionKind.MOVE, color, dove, source, target)

    @classmethod
    def remove(cls, color: Color, dove: Dove, source: Cell) -> Action:
        return cls(ActionKind.REMOVE, color, dove, source, None)

    def reverse(self, shift: Cell = (0, 0)) -> Action:
        """Inverse edit, expressed in the frame of the resulting board.

        Put and remove invert each other; a move inverts to the move back.

        Args:
            shift: Frame shift reported by ``perform_with_shift`` for this
                action; ``(0, 0)`` keeps the cells of this action's frame.
        """
        if self.kind is ActionKind.PUT:
            inverse = Action.remove(self.color, self.dove, self.target)
        elif self.kind is ActionKind.REMOVE:
            inverse = Action.put(self.color, self.dove, self.source)
        else:
            inverse = Action.move(self.color, self.dove, self.target, self.source)
        return inverse.translated(*shift)

    def translated(self, drow: int, dcol: int) -> Action:
        """Shift every cell by ``(-drow, -dcol)``; used to follow re-normalization."""

        def shift(cell: Cell | None) -> Cell | None:
            return None if cell is None else (cell[0] - drow, cell[1] - dcol)

        return Action(self.kind, self.color, self.dove, shift(self.source), shift(self.target))

    def swap_color(self) -> Action:
        return Action(self.kind, self.color.opponent, self.dove, self.source, self.target)

    def to_code(self) -> int:
        """Compact integer form.

        Raises:
            ActionCodeError: If the action's cells do not fit the encoding.
        """
        has_source = self.kind is not ActionKind.PUT
        has_target = self.kind is not ActionKind.REMOVE
        if has_source != (self.source is not None) or has_target != (self.target is not None):
            raise ActionCodeError(self, "cells do not match the action kind")
        code = int(self.kind) | (int(self.color) << 2) | (int(self.dove) << 3)
        if self.target is not None:
            row, col = self.target
            if not (TARGET_MIN <= row <= TARGET_MAX and TARGET_MIN <= col <= TARGET_MAX):
                raise ActionCodeError(self, f"target {self.target} out of range")
            code |= ((row + TARGET_OFFSET) << 6) | ((col + TARGET_OFFSET) << 10)
        if self.source is not None:
            row, col = self.source
            if not (0 <= row < FRAME and 0 <= col < FRAME):
                raise ActionCodeError(self, f"source {self.source} outside the frame")
            code |= (row << 14) | (col << 16)
        return code

    @classmethod
    def from_code(cls, code: int) -> Action:
        """Decode :meth:`to_code` output.

        Raises:
            ActionCodeError: If ``code`` is not a valid action code.
        """
        if code < 0 or code >> ACTION_CODE_BITS:
            raise ActionCodeError(code, "value out of range")
        try:
            kind = ActionKind(code & 0b11)
            dove = Dove((code >> 3) & 0b111)
        except ValueError as e:
            raise ActionCodeError(code, str(e)) from e
        color = Color((code >> 2) & 1)
        target_bits = (code >> 6) & 0xFF
        source_bits = (code >> 14) & 0xF
        target = None
        source = None
        if kind is not ActionKind.REMOVE:
            target = ((target_bits & 0xF) - TARGET_OFFSET, (target_bits >> 4) - TARGET_OFFSET)
        elif target_bits:
            raise ActionCodeError(code, "remove carries a target")
        if kind is not ActionKind.PUT:
            source = (source_bits & 0b11, source_bits >> 2)
        elif source_bits:
            raise ActionCodeError(code, "put carries a source")
        return cls(kind, color, dove, source, target)

    def to_notation(self) -> str:
        """``+Y 1 0`` (put), ``T 2 0`` (move) or ``-A`` (remove)."""
        name = self.dove.name
        if self.kind is ActionKind.PUT:
            return f"+{name} {self.target[0]} {self.target[1]}"
        if self.kind is ActionKind.MOVE:
            return f"{name} {self.target[0]} {self.target[1]}"
        return f"-{name}"

    def __str__(self) -> str:
        char = piece_char(self.color, self.dove)
        if self.kind is ActionKind.PUT:
            return f"put {char} at {self.target}"
        if self.kind is ActionKind.MOVE:
            return f"move {char} {self.source}->{self.target}"
        return f"remove {char} from {self.source}"


def parse_action(text: str, board: Board, player: Color) -> Action:
    """Parse :meth:`Action.to_notation` text for ``player`` on ``board``.

    Raises:
        ActionNotationError: If the text is malformed or names a dove in the
            wrong place.
    """
    parts = text.split()
    if not parts:
        raise ActionNotationError(text, "empty input")
    head = parts[0]
    sign = head[0] if head[0] in "+-" else ""
    try:
        dove = parse_dove(head[len(sign) :])
    except ValueError as e:
        raise ActionNotationError(text, str(e)) from e

    source = board.coords(player, dove)
    if sign == "-":
        if len(parts) != 1:
            raise ActionNotationError(text, "remove takes no coordinates")
        if source is None:
            raise ActionNotationError(text, f"{dove.name} is not on the field")
        return Action.remove(player, dove, source)

    if len(parts) != 3:
        raise ActionNotationError(text, "expected a dove followed by row and column")
    try:
        target = (int(parts[1]), int(parts[2]))
    except ValueError as e:
        raise ActionNotationError(text, "row and column must be integers") from e
    if sign == "+":
        return Action.put(player, dove, target)
    if source is None:
        raise ActionNotationError(text, f"{dove.name} is not on the field")
    return Action.move(player, dove, source, target)


__all__ = ["ACTION_CODE_BITS", "Action", "ActionKind", "parse_action"]
