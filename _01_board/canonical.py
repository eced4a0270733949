"""Canonical codes: one integer per symmetry orbit of boards.

A board is already translation normalized. The remaining symmetries are the
eight rotations and reflections of its bounding box; the canonical code is the
smallest code among the eight images, ties going to the earliest transform in
``SYMMETRIES`` (identity first).

Positions add the side to move. When the rule treats both colors alike the
board is color-swapped so that red is always to move; otherwise bit 60 of the
code marks green to move.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from .board import EMPTY, FRAME, Board, Cell, cell_index
from .pieces import NUM_PIECES, Color

NUM_DIHEDRAL = 8
GREEN_TO_MOVE = 1 << 60

_PRESENCE_SHIFT = 48


def _transform_cell(cell: Cell, height: int, width: int, index: int) -> Cell:
    row, col = cell
    if index >= 4:
        col = width - 1 - col
    for _ in range(index % 4):
        # quarter turn clockwise
        row, col = col, height - 1 - row
        height, width = width, height
    return row, col


@lru_cache(maxsize=None)
def cell_maps(height: int, width: int) -> tuple[tuple[int, ...], ...]:
    """Per transform, a 16-entry table mapping frame cells of a ``height x width`` box."""
    maps = []
    for index in range(NUM_DIHEDRAL):
        table = [EMPTY] * (FRAME * FRAME)
        for row in range(height):
            for col in range(width):
                table[cell_index(row, col)] = cell_index(
                    *_transform_cell((row, col), height, width, index)
                )
        maps.append(tuple(table))
    return tuple(maps)


@dataclass(frozen=True)
class Symmetry:
    """Dihedral transform (0 is identity, 1-3 quarter turns, 4-7 mirrored) plus color swap."""

    index: int = 0
    swap_colors: bool = False

    @property
    def is_identity(self) -> bool:
        return self.index == 0 and not self.swap_colors

    def inverse(self) -> Symmetry:
        # Mirrored transforms are involutions; rotations invert to the opposite turn
        index = self.index if self.index >= 4 else (4 - self.index) % 4
        return Symmetry(index, self.swap_colors)

    def apply(self, board: Board) -> Board:
        table = cell_maps(board.height, board.width)[self.index]
        result = Board(tuple(EMPTY if cell == EMPTY else table[cell] for cell in board.positions))
        return result.swap_colors() if self.swap_colors else result

    def apply_cell(self, cell: Cell, height: int, width: int) -> Cell:
        return _transform_cell(cell, height, width, self.index)


SYMMETRIES = tuple(Symmetry(i) for i in range(NUM_DIHEDRAL))


@dataclass(frozen=True)
class Canonical:
    """Canonical code plus the symmetry carrying the input onto it."""

    code: int
    symmetry: Symmetry

    def board(self) -> Board:
        return Board.from_code(self.code & ~GREEN_TO_MOVE, validate=False)


def canonicalize(board: Board) -> Canonical:
    """Smallest code over the dihedral images of ``board``."""
    positions = board.positions
    presence = 0
    for i, cell in enumerate(positions):
        if cell != EMPTY:
            presence |= 1 << (_PRESENCE_SHIFT + i)

    best_cells = -1
    best_index = 0
    for index, table in enumerate(cell_maps(board.height, board.width)):
        cells = 0
        for i in range(NUM_PIECES):
            cell = positions[i]
            if cell != EMPTY:
                cells |= table[cell] << (4 * i)
        if best_cells < 0 or cells < best_cells:
            best_cells = cells
            best_index = index
    return Canonical(presence | best_cells, SYMMETRIES[best_index])


def canonical_code(board: Board) -> int:
    return canonicalize(board).code


def canonical_board(board: Board) -> Board:
    return canonicalize(board).board()


def canonicalize_position(board: Board, player: Color, color_symmetric: bool = True) -> Canonical:
    """Canonical code of ``board`` with ``player`` to move."""
    swap = color_symmetric and player is Color.GREEN
    if swap:
        board = board.swap_colors()
    canonical = canonicalize(board)
    code = canonical.code
    if player is Color.GREEN and not color_symmetric:
        code |= GREEN_TO_MOVE
    return Canonical(code, Symmetry(canonical.symmetry.index, swap))


def position_code(board: Board, player: Color, color_symmetric: bool = True) -> int:
    return canonicalize_position(board, player, color_symmetric).code


def decode_position(code: int) -> tuple[Board, Color]:
    """Board and side to move of a position code (trusted input)."""
    player = Color.GREEN if code & GREEN_TO_MOVE else Color.RED
    return Board.from_code(code & ~GREEN_TO_MOVE, validate=False), player


__all__ = [
    "GREEN_TO_MOVE",
    "NUM_DIHEDRAL",
    "SYMMETRIES",
    "Canonical",
    "Symmetry",
    "canonical_board",
    "canonical_code",
    "canonicalize",
    "canonicalize_position",
    "cell_maps",
    "decode_position",
    "position_code",
]
