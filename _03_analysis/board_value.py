"""Game-theoretic values, value intervals and witness trees.

Distances count plies from the position's side to move:

* ``Win(0)`` / ``Lose(0)``: the game is already decided at this position.
* ``Win(n)``: the side to move can force a win with its n-th ply from now.
* ``Lose(n)``: the opponent can force a win within n plies.

Order: faster wins > slower wins > Draw > slower losses > faster losses.
Unknown is not comparable.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import IntEnum
from functools import total_ordering

from _01_board.actions import Action
from _01_board.board import Board
from _01_board.pieces import Color


class BoardValueKind(IntEnum):
    """Stored kind (fits in 2 bits)."""

    UNKNOWN = 0
    WIN = 1
    LOSE = 2
    DRAW = 3


@total_ordering
@dataclass(frozen=True)
class BoardValue:
    kind: BoardValueKind
    distance: int | None = None

    def __post_init__(self) -> None:
        decisive = self.kind in (BoardValueKind.WIN, BoardValueKind.LOSE)
        if decisive and (self.distance is None or self.distance < 0):
            raise ValueError(f"{self.kind.name} needs a non-negative distance")
        if not decisive and self.distance is not None:
            raise ValueError(f"{self.kind.name} carries no distance")

    @classmethod
    def win(cls, distance: int) -> BoardValue:
        return cls(BoardValueKind.WIN, distance)

    @classmethod
    def lose(cls, distance: int) -> BoardValue:
        return cls(BoardValueKind.LOSE, distance)

    @classmethod
    def draw(cls) -> BoardValue:
        return DRAW

    @classmethod
    def unknown(cls) -> BoardValue:
        return UNKNOWN

    @property
    def is_win(self) -> bool:
        return self.kind is BoardValueKind.WIN

    @property
    def is_lose(self) -> bool:
        return self.kind is BoardValueKind.LOSE

    @property
    def is_draw(self) -> bool:
        return self.kind is BoardValueKind.DRAW

    @property
    def is_unknown(self) -> bool:
        return self.kind is BoardValueKind.UNKNOWN

    @property
    def is_decisive(self) -> bool:
        return self.is_win or self.is_lose

    @property
    def is_terminal(self) -> bool:
        return self.is_decisive and self.distance == 0

    def propagated(self) -> BoardValue:
        """Value of a position whose chosen successor has this value."""
        if self.kind is BoardValueKind.WIN:
            return BoardValue.lose(self.distance + 1)
        if self.kind is BoardValueKind.LOSE:
            return BoardValue.win(self.distance + 1)
        return self

    def successor_target(self) -> BoardValue:
        """Value a successor must have for this position to get this value."""
        if not self.is_decisive or self.distance == 0:
            raise ValueError(f"{self} has no successor target")
        if self.kind is BoardValueKind.WIN:
            return BoardValue.lose(self.distance - 1)
        return BoardValue.win(self.distance - 1)

    def _rank(self) -> tuple[int, int]:
        if self.kind is BoardValueKind.WIN:
            return (2, -self.distance)
        if self.kind is BoardValueKind.LOSE:
            return (0, self.distance)
        if self.kind is BoardValueKind.DRAW:
            return (1, 0)
        raise TypeError("Unknown board values are not comparable")

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, BoardValue):
            return NotImplemented
        return self._rank() < other._rank()

    def __str__(self) -> str:
        if self.is_decisive:
            return f"{self.kind.name.capitalize()}({self.distance})"
        return self.kind.name.capitalize()


DRAW = BoardValue(BoardValueKind.DRAW)
UNKNOWN = BoardValue(BoardValueKind.UNKNOWN)


@dataclass(frozen=True)
class Interval:
    """Closed range of possible values, e.g. at least Draw, at most Win(7)."""

    left: BoardValue
    right: BoardValue

    def __post_init__(self) -> None:
        if self.right < self.left:
            raise ValueError(f"Empty interval [{self.left}, {self.right}]")

    @classmethod
    def point(cls, value: BoardValue) -> Interval:
        return cls(value, value)

    def contains(self, value: BoardValue) -> bool:
        return self.left <= value <= self.right

    def __contains__(self, value: object) -> bool:
        return isinstance(value, BoardValue) and self.contains(value)

    def is_single(self) -> bool:
        return self.left == self.right

    def single(self) -> BoardValue | None:
        return self.left if self.is_single() else None

    def narrow(self, other: Interval) -> Interval:
        """Intersection; the bounds only ever move inward."""
        return Interval(max(self.left, other.left), min(self.right, other.right))

    def __str__(self) -> str:
        return f"[{self.left}, {self.right}]"


@dataclass(frozen=True)
class ActionTree:
    """Witness actions of one position and the value they achieve."""

    value: BoardValue
    actions: tuple[Action, ...] = ()

    def __contains__(self, action: object) -> bool:
        return action in self.actions

    def __iter__(self) -> Iterator[Action]:
        return iter(self.actions)

    def __len__(self) -> int:
        return len(self.actions)


@dataclass
class BoardValueTree:
    """Optimal lines from a board: each child is reached by a witness action."""

    board: Board
    player: Color
    value: BoardValue
    children: dict[Action, BoardValueTree] = field(default_factory=dict)

    def depth(self) -> int:
        return 1 + max((c.depth() for c in self.children.values()), default=0)

    def size(self) -> int:
        return 1 + sum(c.size() for c in self.children.values())

    def lines(self) -> Iterator[list[Action]]:
        """Every root-to-leaf action sequence."""
        if not self.children:
            yield []
            return
        for action, child in self.children.items():
            for line in child.lines():
                yield [action, *line]

    def is_good_for_puzzle(self, step: int) -> bool:
        """True when every node within ``step`` plies has exactly one child.

        Both sides then have a single line to follow, which is what a puzzle
        built from a ``Win(n)`` tree needs for ``step = n - 2``.
        """
        if step <= 0:
            return True
        if len(self.children) != 1:
            return False
        return all(c.is_good_for_puzzle(step - 1) for c in self.children.values())


__all__ = [
    "DRAW",
    "UNKNOWN",
    "ActionTree",
    "BoardValue",
    "BoardValueKind",
    "BoardValueTree",
    "Interval",
]
