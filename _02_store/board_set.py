"""Position store: sharded sets of 64-bit canonical codes.

``RawBoardSet`` knows nothing about boards. Codes are spread over
``2 ** partition_bits`` shards by a multiplicative hash; each shard has its own
lock so workers handling different shards never contend. Iteration and the
set-algebra views are not synchronized: run them between barriers, not while
other threads mutate the set.

``BoardSet`` stores boards by canonical code, so symmetric boards collapse
into one entry.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO

import numpy as np

from _01_board.board import Board
from _01_board.canonical import canonical_code

from .stream import LazyBoardLoader, LazyRawBoardLoader, load_codes_array, save_codes, write_codes

logger = logging.getLogger(__name__)

DEFAULT_PARTITION_BITS = 4
MAX_PARTITION_BITS = 16

_GOLDEN = 0x9E3779B97F4A7C15
_MASK64 = (1 << 64) - 1


def shard_of(code: int, partition_bits: int) -> int:
    """Shard index of ``code``; spreads neighbouring codes across shards."""
    if partition_bits == 0:
        return 0
    return ((code * _GOLDEN) & _MASK64) >> (64 - partition_bits)


@dataclass
class Capacity:
    """Per-shard size hint. Only affects bookkeeping, never membership."""

    partition_bits: int = DEFAULT_PARTITION_BITS
    counts: dict[int, int] = field(default_factory=dict)

    @classmethod
    def from_codes(cls, codes: Iterable[int], partition_bits: int = DEFAULT_PARTITION_BITS) -> Capacity:
        capacity = cls(partition_bits)
        for code in codes:
            capacity.add(code)
        return capacity

    def add(self, code: int, n: int = 1) -> None:
        shard = shard_of(code, self.partition_bits)
        self.counts[shard] = self.counts.get(shard, 0) + n

    def total(self) -> int:
        return sum(self.counts.values())

    def __add__(self, other: Capacity) -> Capacity:
        if other.partition_bits != self.partition_bits:
            raise ValueError(
                f"Cannot add capacities with {self.partition_bits} and {other.partition_bits} partition bits"
            )
        counts = dict(self.counts)
        for shard, n in other.counts.items():
            counts[shard] = counts.get(shard, 0) + n
        return Capacity(self.partition_bits, counts)


class RawBoardSet:
    """Set of 64-bit codes with shard locks, set algebra and streaming I/O."""

    def __init__(
        self,
        codes: Iterable[int] | None = None,
        *,
        partition_bits: int = DEFAULT_PARTITION_BITS,
    ) -> None:
        if not 0 <= partition_bits <= MAX_PARTITION_BITS:
            raise ValueError(f"partition_bits must be in [0, {MAX_PARTITION_BITS}]")
        self._bits = partition_bits
        self._shards: list[set[int]] = [set() for _ in range(1 << partition_bits)]
        self._locks = [threading.Lock() for _ in self._shards]
        self._reserved = Capacity(partition_bits)
        if codes is not None:
            self.extend(codes)

    # Construction

    @classmethod
    def with_capacity(cls, capacity: Capacity) -> RawBoardSet:
        raw = cls(partition_bits=capacity.partition_bits)
        raw.reserve(capacity)
        return raw

    @classmethod
    def from_array(cls, array: np.ndarray | Iterable[int], partition_bits: int = DEFAULT_PARTITION_BITS) -> RawBoardSet:
        """Bulk construction; duplicates collapse."""
        unique = np.unique(np.asarray(array, dtype=np.uint64))
        return cls((int(code) for code in unique), partition_bits=partition_bits)

    @classmethod
    def from_file(
        cls,
        path: Path | str,
        counted: bool = False,
        partition_bits: int = DEFAULT_PARTITION_BITS,
    ) -> RawBoardSet:
        return cls.from_array(load_codes_array(path, counted=counted), partition_bits)

    @staticmethod
    def required_capacity(
        reader: BinaryIO,
        counted: bool = False,
        partition_bits: int = DEFAULT_PARTITION_BITS,
    ) -> Capacity:
        """Scan an export and count its codes per shard."""
        return Capacity.from_codes(LazyRawBoardLoader(reader, counted=counted), partition_bits)

    # Introspection

    @property
    def partition_bits(self) -> int:
        return self._bits

    @property
    def num_shards(self) -> int:
        return len(self._shards)

    def shard_index(self, code: int) -> int:
        return shard_of(code, self._bits)

    def shard(self, index: int) -> frozenset[int]:
        return frozenset(self._shards[index])

    def capacity(self) -> Capacity:
        """Current per-shard sizes, or the reserved hint where larger."""
        counts = {i: len(s) for i, s in enumerate(self._shards) if s}
        for shard, n in self._reserved.counts.items():
            counts[shard] = max(n, counts.get(shard, 0))
        return Capacity(self._bits, counts)

    def reserve(self, capacity: Capacity) -> None:
        """Record a size hint. Python sets grow on demand, so this never fails."""
        if capacity.partition_bits == self._bits:
            self._reserved = self._reserved + capacity
        else:
            self._reserved.add(0, capacity.total())

    def __len__(self) -> int:
        return sum(len(s) for s in self._shards)

    def __bool__(self) -> bool:
        return any(self._shards)

    def __contains__(self, code: object) -> bool:
        if not isinstance(code, (int, np.integer)):
            return False
        code = int(code)
        return code in self._shards[shard_of(code, self._bits)]

    def contains(self, code: int) -> bool:
        return code in self

    def __iter__(self) -> Iterator[int]:
        for shard in self._shards:
            yield from shard

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RawBoardSet):
            return NotImplemented
        return len(self) == len(other) and all(code in other for code in self)

    def __repr__(self) -> str:
        return f"RawBoardSet(len={len(self)}, shards={self.num_shards})"

    # Mutation (shard locked)

    def insert(self, code: int) -> bool:
        """Add ``code``; False if it was already present."""
        code = int(code)
        index = shard_of(code, self._bits)
        shard = self._shards[index]
        with self._locks[index]:
            if code in shard:
                return False
            shard.add(code)
            return True

    def extend(self, codes: Iterable[int]) -> int:
        """Insert many codes; returns how many were new."""
        return sum(1 for code in codes if self.insert(code))

    def remove(self, code: int) -> bool:
        code = int(code)
        index = shard_of(code, self._bits)
        with self._locks[index]:
            try:
                self._shards[index].remove(code)
            except KeyError:
                return False
            return True

    def take(self, code: int) -> int | None:
        """Remove and return ``code`` if present."""
        return code if self.remove(code) else None

    def drain(self) -> Iterator[int]:
        """Yield every code exactly once, emptying the set as it goes."""
        for shard, lock in zip(self._shards, self._locks):
            while True:
                with lock:
                    if not shard:
                        break
                    code = shard.pop()
                yield code

    def retain(self, predicate: Callable[[int], bool]) -> int:
        """Keep only codes satisfying ``predicate``; returns how many were dropped."""
        dropped = 0
        for shard, lock in zip(self._shards, self._locks):
            with lock:
                doomed = [code for code in shard if not predicate(code)]
                shard.difference_update(doomed)
            dropped += len(doomed)
        return dropped

    def clear(self) -> None:
        for shard, lock in zip(self._shards, self._locks):
            with lock:
                shard.clear()

    def absorb(self, other: Iterable[int]) -> int:
        """Insert every code of ``other``, leaving ``other`` untouched."""
        return self.extend(other)

    def absorb_drained(self, other: RawBoardSet) -> int:
        """Move every code of ``other`` into this set."""
        return self.extend(other.drain())

    def split(self, left_len: int) -> tuple[RawBoardSet, RawBoardSet]:
        """Two new sets: ``left_len`` codes (or all if fewer) and the rest."""
        left = RawBoardSet(partition_bits=self._bits)
        right = RawBoardSet(partition_bits=self._bits)
        for n, code in enumerate(self):
            (left if n < left_len else right).insert(code)
        return left, right

    # Set algebra: lazy views

    def union(self, other: RawBoardSet) -> Iterator[int]:
        yield from self
        for code in other:
            if code not in self:
                yield code

    def intersection(self, other: RawBoardSet) -> Iterator[int]:
        small, large = (self, other) if len(self) <= len(other) else (other, self)
        for code in small:
            if code in large:
                yield code

    def difference(self, other: RawBoardSet) -> Iterator[int]:
        for code in self:
            if code not in other:
                yield code

    def symmetric_difference(self, other: RawBoardSet) -> Iterator[int]:
        yield from self.difference(other)
        yield from other.difference(self)

    def is_disjoint(self, other: RawBoardSet) -> bool:
        return next(self.intersection(other), None) is None

    def is_subset(self, other: RawBoardSet) -> bool:
        return len(self) <= len(other) and all(code in other for code in self)

    def is_superset(self, other: RawBoardSet) -> bool:
        return other.is_subset(self)

    # Set algebra: new stores

    def _new(self, codes: Iterable[int]) -> RawBoardSet:
        return RawBoardSet(codes, partition_bits=self._bits)

    def __or__(self, other: RawBoardSet) -> RawBoardSet:
        return self._new(self.union(other))

    def __and__(self, other: RawBoardSet) -> RawBoardSet:
        return self._new(self.intersection(other))

    def __sub__(self, other: RawBoardSet) -> RawBoardSet:
        return self._new(self.difference(other))

    def __xor__(self, other: RawBoardSet) -> RawBoardSet:
        return self._new(self.symmetric_difference(other))

    def __le__(self, other: RawBoardSet) -> bool:
        return self.is_subset(other)

    def __ge__(self, other: RawBoardSet) -> bool:
        return self.is_superset(other)

    # Arrays and streams

    def to_array(self) -> np.ndarray:
        """Sorted ``uint64`` array of all codes."""
        array = np.fromiter(iter(self), dtype=np.uint64, count=len(self))
        array.sort()
        return array

    def save(self, writer: BinaryIO, with_count: bool = False) -> int:
        """Write all codes; with ``with_count`` a length prefix comes first."""
        return write_codes(writer, iter(self), count=len(self) if with_count else None)

    def save_file(self, path: Path | str, with_count: bool = False) -> int:
        """Write an export file; an existing file is only replaced on success."""
        written = save_codes(path, iter(self), count=len(self) if with_count else None)
        logger.info("Saved %d codes to %s", written, path)
        return written

    def load(self, reader: BinaryIO, counted: bool = False) -> int:
        """Insert every code of an export; returns how many were new."""
        return self.extend(LazyRawBoardLoader(reader, counted=counted))

    def load_filter(
        self,
        reader: BinaryIO,
        predicate: Callable[[int], bool],
        counted: bool = False,
    ) -> int:
        return self.extend(
            code for code in LazyRawBoardLoader(reader, counted=counted) if predicate(code)
        )

    def remove_loaded_values(self, reader: BinaryIO, counted: bool = False) -> int:
        """Remove every code found in an export; returns how many were removed."""
        return sum(1 for code in LazyRawBoardLoader(reader, counted=counted) if self.remove(code))


class BoardSet:
    """Set of boards keyed by canonical code.

    Iteration yields the canonical representative of each stored orbit.
    """

    def __init__(
        self,
        boards: Iterable[Board] | None = None,
        *,
        partition_bits: int = DEFAULT_PARTITION_BITS,
    ) -> None:
        self._raw = RawBoardSet(partition_bits=partition_bits)
        if boards is not None:
            for board in boards:
                self.insert(board)

    @classmethod
    def from_raw(cls, raw: RawBoardSet) -> BoardSet:
        """Wrap codes that are already canonical."""
        board_set = cls(partition_bits=raw.partition_bits)
        board_set._raw = raw
        return board_set

    @classmethod
    def from_file(cls, path: Path | str, counted: bool = False) -> BoardSet:
        board_set = cls()
        with open(path, "rb") as f:
            board_set.load(f, counted=counted)
        return board_set

    @property
    def raw(self) -> RawBoardSet:
        return self._raw

    def __len__(self) -> int:
        return len(self._raw)

    def __contains__(self, board: object) -> bool:
        return isinstance(board, Board) and canonical_code(board) in self._raw

    def contains(self, board: Board) -> bool:
        return board in self

    def __iter__(self) -> Iterator[Board]:
        for code in self._raw:
            yield Board.from_code(code, validate=False)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BoardSet):
            return NotImplemented
        return self._raw == other._raw

    def __repr__(self) -> str:
        return f"BoardSet(len={len(self)})"

    def insert(self, board: Board) -> bool:
        return self._raw.insert(canonical_code(board))

    def remove(self, board: Board) -> bool:
        return self._raw.remove(canonical_code(board))

    def drain(self) -> Iterator[Board]:
        for code in self._raw.drain():
            yield Board.from_code(code, validate=False)

    def retain(self, predicate: Callable[[Board], bool]) -> int:
        return self._raw.retain(lambda code: predicate(Board.from_code(code, validate=False)))

    def clear(self) -> None:
        self._raw.clear()

    def absorb(self, other: BoardSet) -> int:
        return self._raw.absorb(other._raw)

    def union(self, other: BoardSet) -> Iterator[Board]:
        return (Board.from_code(c, validate=False) for c in self._raw.union(other._raw))

    def intersection(self, other: BoardSet) -> Iterator[Board]:
        return (Board.from_code(c, validate=False) for c in self._raw.intersection(other._raw))

    def difference(self, other: BoardSet) -> Iterator[Board]:
        return (Board.from_code(c, validate=False) for c in self._raw.difference(other._raw))

    def symmetric_difference(self, other: BoardSet) -> Iterator[Board]:
        return (
            Board.from_code(c, validate=False)
            for c in self._raw.symmetric_difference(other._raw)
        )

    def __or__(self, other: BoardSet) -> BoardSet:
        return BoardSet.from_raw(self._raw | other._raw)

    def __and__(self, other: BoardSet) -> BoardSet:
        return BoardSet.from_raw(self._raw & other._raw)

    def __sub__(self, other: BoardSet) -> BoardSet:
        return BoardSet.from_raw(self._raw - other._raw)

    def __xor__(self, other: BoardSet) -> BoardSet:
        return BoardSet.from_raw(self._raw ^ other._raw)

    def is_disjoint(self, other: BoardSet) -> bool:
        return self._raw.is_disjoint(other._raw)

    def is_subset(self, other: BoardSet) -> bool:
        return self._raw.is_subset(other._raw)

    def is_superset(self, other: BoardSet) -> bool:
        return self._raw.is_superset(other._raw)

    def save(self, writer: BinaryIO, with_count: bool = False) -> int:
        return self._raw.save(writer, with_count=with_count)

    def load(self, reader: BinaryIO, counted: bool = False) -> int:
        """Insert every board of an export, validating each record.

        Raises:
            DecodeError: At the first record that is not a valid board.
        """
        return sum(1 for board in LazyBoardLoader(reader, counted=counted) if self.insert(board))


__all__ = [
    "DEFAULT_PARTITION_BITS",
    "BoardSet",
    "Capacity",
    "RawBoardSet",
    "shard_of",
]
