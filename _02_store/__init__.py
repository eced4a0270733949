"""Canonical position store and its streaming export format."""

from __future__ import annotations

from .board_set import DEFAULT_PARTITION_BITS, BoardSet, Capacity, RawBoardSet, shard_of
from .stream import (
    LazyBoardLoader,
    LazyRawBoardLoader,
    iter_codes_file,
    load_codes_array,
    save_codes,
    write_codes,
)

__all__ = [
    "DEFAULT_PARTITION_BITS",
    "BoardSet",
    "Capacity",
    "LazyBoardLoader",
    "LazyRawBoardLoader",
    "RawBoardSet",
    "iter_codes_file",
    "load_codes_array",
    "save_codes",
    "shard_of",
    "write_codes",
]
