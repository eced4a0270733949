"""Persisted value table for solved positions.

File layout:

- 8 bytes magic ``DOVEVAL1``
- 8 bytes big-endian record count
- record count big-endian u64 position codes, sorted
- record count big-endian u16 packed values, in the same order

Packed value (16 bits):
- Bits 0-1: kind (UNKNOWN=0/WIN=1/LOSE=2/DRAW=3)
- Bits 2-15: distance in plies (0-16383)

Tables are reopened with ``np.memmap`` so lookups on large tables touch
only the pages binary search needs.
"""

from __future__ import annotations

import logging
import struct
from collections.abc import Iterable, Iterator
from pathlib import Path

import numpy as np

from _01_board.exceptions import DecodeError

from .board_value import UNKNOWN, BoardValue, BoardValueKind

logger = logging.getLogger(__name__)

MAGIC = b"DOVEVAL1"
HEADER = struct.Struct(">8sQ")
KIND_MASK = 0x03
DISTANCE_SHIFT = 2
MAX_DISTANCE = (1 << 14) - 1

CODE_DTYPE = np.dtype(">u8")
VALUE_DTYPE = np.dtype(">u2")


def pack_value(value: BoardValue) -> int:
    """Pack a value into 16 bits.

    Raises:
        ValueError: If the distance does not fit.
    """
    distance = value.distance or 0
    if distance > MAX_DISTANCE:
        raise ValueError(f"Distance {distance} exceeds {MAX_DISTANCE}")
    return int(value.kind) | (distance << DISTANCE_SHIFT)


def unpack_value(packed: int) -> BoardValue:
    kind = BoardValueKind(packed & KIND_MASK)
    if kind in (BoardValueKind.WIN, BoardValueKind.LOSE):
        return BoardValue(kind, packed >> DISTANCE_SHIFT)
    return BoardValue(kind)


class ValueTable:
    """Sorted (code, value) records with binary-search lookup."""

    def __init__(self, codes: np.ndarray, values: np.ndarray, mmap: bool = False) -> None:
        if len(codes) != len(values):
            raise ValueError("codes and values differ in length")
        self._codes = codes
        self._values = values
        self._mmap = mmap

    @classmethod
    def from_items(cls, items: Iterable[tuple[int, BoardValue]]) -> ValueTable:
        pairs = sorted((int(code), pack_value(value)) for code, value in items)
        codes = np.fromiter((c for c, _ in pairs), dtype=np.uint64, count=len(pairs))
        values = np.fromiter((v for _, v in pairs), dtype=np.uint16, count=len(pairs))
        return cls(codes, values)

    def __len__(self) -> int:
        return len(self._codes)

    def __enter__(self) -> ValueTable:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        if self._mmap:
            # Dropping the last references unmaps the file
            self._mmap = False
            self._codes = np.empty(0, dtype=np.uint64)
            self._values = np.empty(0, dtype=np.uint16)

    def _find(self, code: int) -> int | None:
        i = int(np.searchsorted(self._codes, np.array(code, dtype=self._codes.dtype)))
        if i < len(self._codes) and int(self._codes[i]) == code:
            return i
        return None

    def __contains__(self, code: object) -> bool:
        return isinstance(code, int) and self._find(code) is not None

    def lookup(self, code: int) -> BoardValue:
        """Value of ``code``; Unknown when the table does not hold it."""
        i = self._find(code)
        return UNKNOWN if i is None else unpack_value(int(self._values[i]))

    def items(self) -> Iterator[tuple[int, BoardValue]]:
        for code, packed in zip(self._codes, self._values):
            yield int(code), unpack_value(int(packed))

    def get_stats(self) -> dict[str, int]:
        kinds = self._values & KIND_MASK
        return {
            "total": len(self),
            "win": int(np.count_nonzero(kinds == BoardValueKind.WIN)),
            "lose": int(np.count_nonzero(kinds == BoardValueKind.LOSE)),
            "draw": int(np.count_nonzero(kinds == BoardValueKind.DRAW)),
            "unknown": int(np.count_nonzero(kinds == BoardValueKind.UNKNOWN)),
        }

    def save(self, path: Path | str) -> None:
        with open(path, "wb") as f:
            f.write(HEADER.pack(MAGIC, len(self)))
            f.write(np.asarray(self._codes, dtype=CODE_DTYPE).tobytes())
            f.write(np.asarray(self._values, dtype=VALUE_DTYPE).tobytes())
        logger.info("Saved value table: %d positions to %s", len(self), path)

    @classmethod
    def load(cls, path: Path | str, mmap: bool = True) -> ValueTable:
        """Open a saved table.

        Raises:
            DecodeError: On a bad magic or a truncated file.
        """
        size = Path(path).stat().st_size
        with open(path, "rb") as f:
            header = f.read(HEADER.size)
        if len(header) < HEADER.size:
            raise DecodeError(0, 0, "value table header truncated")
        magic, count = HEADER.unpack(header)
        if magic != MAGIC:
            raise DecodeError(0, 0, f"bad magic {magic!r}")
        record_size = CODE_DTYPE.itemsize + VALUE_DTYPE.itemsize
        if size - HEADER.size < count * record_size:
            raise DecodeError(HEADER.size, 0, f"value table truncated before {count} records")
        if count == 0:
            return cls(np.empty(0, dtype=np.uint64), np.empty(0, dtype=np.uint16))
        values_offset = HEADER.size + count * CODE_DTYPE.itemsize
        if mmap:
            codes = np.memmap(path, dtype=CODE_DTYPE, mode="r", offset=HEADER.size, shape=(count,))
            values = np.memmap(path, dtype=VALUE_DTYPE, mode="r", offset=values_offset, shape=(count,))
            table = cls(codes, values, mmap=True)
        else:
            codes = np.fromfile(path, dtype=CODE_DTYPE, count=count, offset=HEADER.size)
            values = np.fromfile(path, dtype=VALUE_DTYPE, count=count, offset=values_offset)
            table = cls(codes.astype(np.uint64), values.astype(np.uint16))
        logger.info("Loaded value table: %d positions from %s", count, path)
        return table


__all__ = [
    "CODE_DTYPE",
    "MAX_DISTANCE",
    "ValueTable",
    "pack_value",
    "unpack_value",
]
