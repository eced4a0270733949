"""Human readable board and action rendering."""

from __future__ import annotations

from collections.abc import Iterable

from .actions import Action
from .board import FIELD_SIZE, Board
from .pieces import Color, piece_char
from .rules import GameRule


def framed(board: Board, field_size: int = FIELD_SIZE) -> str:
    """Grid with ``+---+`` borders, padded to the field size.

    Example for the initial board::

        +---+---+---+---+
        | b |   |   |   |
        +---+---+---+---+
        | B |   |   |   |
        ...
    """
    rows = board.to_rows()
    separator = "+" + "---+" * field_size
    lines = [separator]
    for r in range(field_size):
        text = rows[r] if r < len(rows) else ""
        cells = [text[c] if c < len(text) else " " for c in range(field_size)]
        lines.append("|" + "|".join(f" {char} " for char in cells) + "|")
        lines.append(separator)
    return "\n".join(lines)


def simple(board: Board, empty: str = "-", delimiter: str = "\n") -> str:
    """One line per row, empty cells shown as ``empty``."""
    return delimiter.join(
        row.ljust(board.width).replace(" ", empty) for row in board.to_rows()
    )


def hand_summary(board: Board, rule: GameRule) -> str:
    parts = []
    for color in Color:
        hand = "".join(piece_char(color, d) for d in rule.hand(board, color)) or "-"
        parts.append(f"{color.name.lower()} hand: {hand}")
    return ", ".join(parts)


def action_list(actions: Iterable[Action]) -> str:
    return "\n".join(f"  [{i}] {action}" for i, action in enumerate(actions))


__all__ = ["action_list", "framed", "hand_summary", "simple"]
