"""Colors, doves and their movement patterns."""

from __future__ import annotations

from enum import IntEnum


class Color(IntEnum):
    """Side owning a dove. Red is written in upper case, green in lower case."""

    RED = 0
    GREEN = 1

    @property
    def opponent(self) -> Color:
        return Color.GREEN if self is Color.RED else Color.RED


class Dove(IntEnum):
    """Dove ranks. ``B`` is the boss and never leaves the field."""

    B = 0
    A = 1
    Y = 2
    M = 3
    T = 4
    H = 5

    @property
    def is_boss(self) -> bool:
        return self is Dove.B


COLORS = (Color.RED, Color.GREEN)
DOVES = tuple(Dove)
NUM_DOVES = len(DOVES)
NUM_PIECES = len(COLORS) * NUM_DOVES

ALL_DOVES: frozenset[Dove] = frozenset(DOVES)

# Relative (row, col) offsets
KING_STEPS = ((-1, -1), (-1, 0), (-1, 1), (0, -1), (0, 1), (1, -1), (1, 0), (1, 1))
ORTHOGONAL_STEPS = ((-1, 0), (0, -1), (0, 1), (1, 0))
DIAGONAL_STEPS = ((-1, -1), (-1, 1), (1, -1), (1, 1))
KNIGHT_JUMPS = ((-2, -1), (-2, 1), (-1, -2), (-1, 2), (1, -2), (1, 2), (2, -1), (2, 1))

# Single-step patterns; T slides along ORTHOGONAL_STEPS instead
STEP_PATTERNS: dict[Dove, tuple[tuple[int, int], ...]] = {
    Dove.B: KING_STEPS,
    Dove.A: KING_STEPS,
    Dove.Y: ORTHOGONAL_STEPS,
    Dove.M: DIAGONAL_STEPS,
    Dove.H: KNIGHT_JUMPS,
}


def piece_index(color: Color, dove: Dove) -> int:
    """Slot of a piece inside a board's position tuple."""
    return int(color) * NUM_DOVES + int(dove)


def piece_of(index: int) -> tuple[Color, Dove]:
    return Color(index // NUM_DOVES), Dove(index % NUM_DOVES)


def piece_char(color: Color, dove: Dove) -> str:
    name = dove.name
    return name if color is Color.RED else name.lower()


def parse_piece_char(char: str) -> tuple[Color, Dove] | None:
    """Inverse of :func:`piece_char`; returns None for unknown characters."""
    upper = char.upper()
    if upper not in Dove.__members__:
        return None
    color = Color.RED if char == upper else Color.GREEN
    return color, Dove[upper]


def parse_dove(name: str | Dove) -> Dove:
    """Accept ``"T"``, ``"t"`` or a Dove."""
    if isinstance(name, Dove):
        return name
    try:
        return Dove[name.upper()]
    except KeyError:
        raise ValueError(f"Unknown dove: {name!r}") from None


def parse_color(name: str | Color) -> Color:
    if isinstance(name, Color):
        return name
    try:
        return Color[name.upper()]
    except KeyError:
        raise ValueError(f"Unknown color: {name!r}") from None


__all__ = [
    "ALL_DOVES",
    "COLORS",
    "DIAGONAL_STEPS",
    "DOVES",
    "KING_STEPS",
    "KNIGHT_JUMPS",
    "NUM_DOVES",
    "NUM_PIECES",
    "ORTHOGONAL_STEPS",
    "STEP_PATTERNS",
    "Color",
    "Dove",
    "parse_color",
    "parse_dove",
    "parse_piece_char",
    "piece_char",
    "piece_index",
    "piece_of",
]
