"""Immutable board snapshot, its integer codec and a validating builder.

A board stores, for each of the twelve pieces, the index of the cell it
occupies (``4 * row + col``) or ``EMPTY`` when the dove is in hand. Coordinates
are normalized so that the smallest occupied row and column are both zero;
translations of the same layout therefore share one representation.

Board code layout (60 bits)::

    bits 48..59   presence flag of piece i at bit 48 + i
    bits 4i..4i+3 cell index of piece i (zero when absent)

Piece ``i`` is ``color * 6 + dove`` (see :func:`pieces.piece_index`).
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from functools import cached_property

from .exceptions import (
    BoardStringError,
    DuplicatePieceError,
    FieldOverflowError,
    InvalidBoardCodeError,
    IsolatedPieceError,
    MissingBossError,
    OverlappingPiecesError,
    RosterViolationError,
)
from .pieces import (
    COLORS,
    KING_STEPS,
    NUM_PIECES,
    ORTHOGONAL_STEPS,
    Color,
    Dove,
    parse_piece_char,
    piece_char,
    piece_index,
    piece_of,
)

Cell = tuple[int, int]

FRAME = 4  # side of the encoding frame
FIELD_SIZE = 4  # default limit on the doves' bounding box
EMPTY = -1

PRESENCE_SHIFT = 48
CELL_BITS = 4
CELL_MASK = 0xF
CODE_BITS = PRESENCE_SHIFT + NUM_PIECES


def cell_index(row: int, col: int) -> int:
    return row * FRAME + col


def cell_coords(index: int) -> Cell:
    row, col = divmod(index, FRAME)
    return row, col


def _neighbor_mask(index: int) -> int:
    row, col = cell_coords(index)
    mask = 0
    for dr, dc in KING_STEPS:
        r, c = row + dr, col + dc
        if 0 <= r < FRAME and 0 <= c < FRAME:
            mask |= 1 << cell_index(r, c)
    return mask


NEIGHBOR_MASKS = tuple(_neighbor_mask(i) for i in range(FRAME * FRAME))


class SurroundedStatus(Enum):
    """Which bosses are surrounded on a board."""

    NONE = "none"
    RED = "red"
    GREEN = "green"
    BOTH = "both"

    @classmethod
    def from_flags(cls, red: bool, green: bool) -> SurroundedStatus:
        if red and green:
            return cls.BOTH
        if red:
            return cls.RED
        if green:
            return cls.GREEN
        return cls.NONE

    def is_surrounded(self, color: Color) -> bool:
        if self is SurroundedStatus.BOTH:
            return True
        if self is SurroundedStatus.NONE:
            return False
        return (self is SurroundedStatus.RED) == (color is Color.RED)


def normalize_coords(coords: Sequence[Cell | None]) -> tuple[tuple[int, ...], Cell]:
    """Translate piece coordinates to the origin.

    Args:
        coords: One optional ``(row, col)`` per piece slot.

    Returns:
        Tuple of (positions, shift) where ``shift`` is the ``(row, col)`` that
        was subtracted from every coordinate.

    Raises:
        FieldOverflowError: If the doves do not fit the encoding frame.
    """
    rows = [cell[0] for cell in coords if cell is not None]
    cols = [cell[1] for cell in coords if cell is not None]
    top, left = min(rows), min(cols)
    height, width = max(rows) - top + 1, max(cols) - left + 1
    if height > FRAME or width > FRAME:
        raise FieldOverflowError(height, width, FRAME)
    positions = tuple(
        EMPTY if cell is None else cell_index(cell[0] - top, cell[1] - left) for cell in coords
    )
    return positions, (top, left)


@dataclass(frozen=True)
class Board:
    """Placement of all doves on the field.

    Attributes:
        positions: Twelve cell indices in piece order, ``EMPTY`` for doves in hand.
    """

    positions: tuple[int, ...]

    @classmethod
    def initial(cls) -> Board:
        """Green boss directly above the red boss."""
        return cls.from_str("b;B")

    @classmethod
    def from_str(cls, text: str, field_size: int = FIELD_SIZE) -> Board:
        return BoardBuilder.from_str(text).build(field_size=field_size)

    @classmethod
    def from_code(cls, code: int, validate: bool = True) -> Board:
        """Decode a board code.

        Args:
            code: Integer produced by :meth:`to_code`.
            validate: When False the code is trusted (solver internals).

        Raises:
            InvalidBoardCodeError: If ``validate`` and the code is malformed.
            BoardBuildError: If ``validate`` and the decoded board breaks a rule.
        """
        if validate:
            return BoardBuilder.from_code(code).build()
        return cls(
            tuple(
                (code >> (CELL_BITS * i)) & CELL_MASK
                if (code >> (PRESENCE_SHIFT + i)) & 1
                else EMPTY
                for i in range(NUM_PIECES)
            )
        )

    def to_code(self) -> int:
        code = 0
        for i, cell in enumerate(self.positions):
            if cell != EMPTY:
                code |= (1 << (PRESENCE_SHIFT + i)) | (cell << (CELL_BITS * i))
        return code

    # Geometry

    @cached_property
    def occupied(self) -> int:
        """Bitmask of occupied cells in the frame."""
        mask = 0
        for cell in self.positions:
            if cell != EMPTY:
                mask |= 1 << cell
        return mask

    @cached_property
    def height(self) -> int:
        return max(cell // FRAME for cell in self.positions if cell != EMPTY) + 1

    @cached_property
    def width(self) -> int:
        return max(cell % FRAME for cell in self.positions if cell != EMPTY) + 1

    @cached_property
    def _cell_owner(self) -> dict[int, int]:
        return {cell: i for i, cell in enumerate(self.positions) if cell != EMPTY}

    def occupancy(self, color: Color) -> int:
        """Bitmask of cells occupied by ``color``."""
        mask = 0
        start = piece_index(color, Dove.B)
        for cell in self.positions[start : start + len(Dove)]:
            if cell != EMPTY:
                mask |= 1 << cell
        return mask

    def coords(self, color: Color, dove: Dove) -> Cell | None:
        cell = self.positions[piece_index(color, dove)]
        return None if cell == EMPTY else cell_coords(cell)

    def coords_list(self) -> list[Cell | None]:
        return [None if cell == EMPTY else cell_coords(cell) for cell in self.positions]

    def is_on_field(self, color: Color, dove: Dove) -> bool:
        return self.positions[piece_index(color, dove)] != EMPTY

    def doves_on_field(self, color: Color) -> list[Dove]:
        return [dove for dove in Dove if self.is_on_field(color, dove)]

    def piece_at(self, row: int, col: int) -> tuple[Color, Dove] | None:
        if not (0 <= row < FRAME and 0 <= col < FRAME):
            return None
        index = self._cell_owner.get(cell_index(row, col))
        return None if index is None else piece_of(index)

    def is_empty_at(self, row: int, col: int) -> bool:
        """True for free cells, including every cell outside the frame."""
        if not (0 <= row < FRAME and 0 <= col < FRAME):
            return True
        return not (self.occupied >> cell_index(row, col)) & 1

    def fits(self, field_size: int = FIELD_SIZE) -> bool:
        return self.height <= field_size and self.width <= field_size

    def isolated_pieces(self) -> list[int]:
        """Piece slots whose dove has no neighbouring dove."""
        occupied = self.occupied
        return [
            i
            for i, cell in enumerate(self.positions)
            if cell != EMPTY and not (occupied & NEIGHBOR_MASKS[cell])
        ]

    def is_isolated(self) -> bool:
        occupied = self.occupied
        return any(
            cell != EMPTY and not (occupied & NEIGHBOR_MASKS[cell]) for cell in self.positions
        )

    # Game status

    def is_boss_surrounded(self, color: Color, field_size: int = FIELD_SIZE) -> bool:
        cell = self.positions[piece_index(color, Dove.B)]
        if cell == EMPTY:
            return False
        row, col = cell_coords(cell)
        height, width, occupied = self.height, self.width, self.occupied
        for dr, dc in ORTHOGONAL_STEPS:
            r, c = row + dr, col + dc
            if not 0 <= r < height:
                if height < field_size:
                    return False
            elif not 0 <= c < width:
                if width < field_size:
                    return False
            elif not (occupied >> cell_index(r, c)) & 1:
                return False
        return True

    def surrounded_status(self, field_size: int = FIELD_SIZE) -> SurroundedStatus:
        return SurroundedStatus.from_flags(
            self.is_boss_surrounded(Color.RED, field_size),
            self.is_boss_surrounded(Color.GREEN, field_size),
        )

    def is_finished(self, field_size: int = FIELD_SIZE) -> bool:
        return self.surrounded_status(field_size) is not SurroundedStatus.NONE

    # Transformations

    def swap_colors(self) -> Board:
        half = len(Dove)
        return Board(self.positions[half:] + self.positions[:half])

    def with_coords(self, changes: Mapping[int, Cell | None]) -> tuple[Board, Cell]:
        """Move pieces to new frame coordinates and normalize.

        Args:
            changes: Piece slot -> new ``(row, col)`` (may be negative) or None.

        Returns:
            Tuple of (board, shift) where ``shift`` is subtracted from frame
            coordinates to obtain coordinates in the new board.
        """
        coords = self.coords_list()
        for index, cell in changes.items():
            coords[index] = cell
        positions, shift = normalize_coords(coords)
        return Board(positions), shift

    # Text

    def to_rows(self) -> list[str]:
        rows = [[" "] * self.width for _ in range(self.height)]
        for i, cell in enumerate(self.positions):
            if cell != EMPTY:
                row, col = cell_coords(cell)
                rows[row][col] = piece_char(*piece_of(i))
        return ["".join(row).rstrip() for row in rows]

    def to_str(self) -> str:
        """Compact text form, e.g. ``"b;B"``; accepted by :meth:`from_str`."""
        return ";".join(self.to_rows())

    def __str__(self) -> str:
        return self.to_str()

    def __repr__(self) -> str:
        return f"Board({self.to_str()!r})"


class BoardBuilder:
    """Mutable staging area for boards.

    Pieces may be placed at arbitrary integer coordinates and may even collide
    while staging; :meth:`build` validates and normalizes.
    """

    def __init__(self) -> None:
        self._placements: list[tuple[Color, Dove, Cell]] = []

    @classmethod
    def from_str(cls, text: str) -> BoardBuilder:
        """Parse rows separated by ``;``. Spaces or ``-`` mark empty cells."""
        if not text.strip(" ;-"):
            raise BoardStringError(text, "no doves on the board")
        builder = cls()
        for row, line in enumerate(text.split(";")):
            for col, char in enumerate(line):
                if char in " -":
                    continue
                piece = parse_piece_char(char)
                if piece is None:
                    raise BoardStringError(text, f"unknown dove {char!r}")
                builder.put(piece[0], piece[1], row, col)
        return builder

    @classmethod
    def from_matrix(cls, rows: Iterable[Iterable[str | None]]) -> BoardBuilder:
        """Build from a 2D array of piece characters (None or ' ' for empty)."""
        builder = cls()
        for row, line in enumerate(rows):
            for col, char in enumerate(line):
                if char is None or char in " -":
                    continue
                piece = parse_piece_char(char)
                if piece is None:
                    raise BoardStringError(str(char), "unknown dove")
                builder.put(piece[0], piece[1], row, col)
        return builder

    @classmethod
    def from_board(cls, board: Board) -> BoardBuilder:
        builder = cls()
        for i, cell in enumerate(board.coords_list()):
            if cell is not None:
                builder.put(*piece_of(i), *cell)
        return builder

    @classmethod
    def from_code(cls, code: int) -> BoardBuilder:
        if code < 0 or code >> CODE_BITS:
            raise InvalidBoardCodeError(code, "bits outside the board layout are set")
        builder = cls()
        for i in range(NUM_PIECES):
            cell = (code >> (CELL_BITS * i)) & CELL_MASK
            if (code >> (PRESENCE_SHIFT + i)) & 1:
                builder.put(*piece_of(i), *cell_coords(cell))
            elif cell:
                color, dove = piece_of(i)
                raise InvalidBoardCodeError(
                    code, f"absent dove {piece_char(color, dove)} has a cell"
                )
        cells = [cell for _, _, cell in builder._placements]
        if cells and (min(r for r, _ in cells) or min(c for _, c in cells)):
            raise InvalidBoardCodeError(code, "layout is not normalized to the origin")
        return builder

    def put(self, color: Color, dove: Dove, row: int, col: int) -> BoardBuilder:
        self._placements.append((Color(color), Dove(dove), (row, col)))
        return self

    def remove(self, color: Color, dove: Dove) -> BoardBuilder:
        self._placements = [p for p in self._placements if (p[0], p[1]) != (color, dove)]
        return self

    def __len__(self) -> int:
        return len(self._placements)

    def _coords(self) -> list[Cell | None]:
        coords: list[Cell | None] = [None] * NUM_PIECES
        seen_cells: set[Cell] = set()
        for color, dove, cell in self._placements:
            index = piece_index(color, dove)
            if coords[index] is not None:
                raise DuplicatePieceError(color, dove)
            if cell in seen_cells:
                raise OverlappingPiecesError(cell)
            seen_cells.add(cell)
            coords[index] = cell
        for color in COLORS:
            if coords[piece_index(color, Dove.B)] is None:
                raise MissingBossError(color)
        return coords

    def build_unchecked(self) -> Board:
        """Build after structural checks only (duplicates, overlaps, bosses)."""
        positions, _ = normalize_coords(self._coords())
        return Board(positions)

    def build(
        self,
        field_size: int = FIELD_SIZE,
        roster: Mapping[Color, Iterable[Dove]] | None = None,
    ) -> Board:
        """Validate and build the board.

        Args:
            field_size: Maximum side of the doves' bounding box.
            roster: Optional allowed doves per color.

        Raises:
            BoardBuildError: A subclass naming the first violated rule.
        """
        coords = self._coords()
        rows = [cell[0] for cell in coords if cell is not None]
        cols = [cell[1] for cell in coords if cell is not None]
        height, width = max(rows) - min(rows) + 1, max(cols) - min(cols) + 1
        if height > field_size or width > field_size:
            raise FieldOverflowError(height, width, field_size)
        if roster is not None:
            for i, cell in enumerate(coords):
                color, dove = piece_of(i)
                if cell is not None and dove not in set(roster[color]):
                    raise RosterViolationError(color, dove)
        board = Board(normalize_coords(coords)[0])
        isolated = board.isolated_pieces()
        if isolated:
            raise IsolatedPieceError(*piece_of(isolated[0]))
        return board


__all__ = [
    "EMPTY",
    "FIELD_SIZE",
    "FRAME",
    "NEIGHBOR_MASKS",
    "Board",
    "BoardBuilder",
    "Cell",
    "SurroundedStatus",
    "cell_coords",
    "cell_index",
    "normalize_coords",
]
