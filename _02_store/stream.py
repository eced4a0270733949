"""Streaming codec for position-store exports.

Format: a flat sequence of big-endian unsigned 64-bit codes, optionally
preceded by one more 64-bit integer holding the number of codes. There is no
other header.

The lazy loaders read from any object with a ``read(n)`` method. Short reads
are fine (pipes, sockets); a record cut off by the end of the stream raises
:class:`DecodeError` from the step that reached it and ends the stream.
"""

from __future__ import annotations

import itertools
import logging
import os
import struct
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import BinaryIO

import numpy as np

from _01_board.board import Board
from _01_board.exceptions import BoardBuildError, DecodeError

logger = logging.getLogger(__name__)

CODE_SIZE = 8
CODE_STRUCT = struct.Struct(">Q")
CODE_DTYPE = np.dtype(">u8")
DEFAULT_CHUNK = 8192  # codes per read or write


def write_codes(
    writer: BinaryIO,
    codes: Iterable[int],
    count: int | None = None,
    chunk_size: int = DEFAULT_CHUNK,
) -> int:
    """Write codes in chunks.

    Args:
        writer: Binary sink.
        codes: Codes to write, in the order they are produced.
        count: If given, written first as the length prefix; checked
            against the codes before anything is written.
        chunk_size: Codes encoded per numpy batch.

    Returns:
        Number of codes written.

    Raises:
        ValueError: If ``count`` disagrees with the codes; nothing is
            written in that case.
    """
    if count is not None:
        # The prefix comes first, so the codes are counted before writing
        data = np.fromiter(codes, dtype=np.uint64)
        if data.size != count:
            raise ValueError(f"Length prefix says {count} codes but {data.size} were given")
        writer.write(CODE_STRUCT.pack(count))
        for start in range(0, data.size, chunk_size):
            writer.write(data[start : start + chunk_size].astype(CODE_DTYPE).tobytes())
        return int(data.size)

    written = 0
    iterator = iter(codes)
    while True:
        chunk = np.fromiter(itertools.islice(iterator, chunk_size), dtype=np.uint64)
        if chunk.size == 0:
            break
        writer.write(chunk.astype(CODE_DTYPE).tobytes())
        written += int(chunk.size)
    return written


class LazyRawBoardLoader:
    """Single-pass iterator over the codes of an export.

    Attributes:
        index: Number of codes produced so far.
        offset: Byte offset of the next record in the source.
        expected: Count from the length prefix, once read (None otherwise).
    """

    def __init__(self, reader: BinaryIO, counted: bool = False, chunk_size: int = DEFAULT_CHUNK):
        self._reader = reader
        self._read_size = chunk_size * CODE_SIZE
        self._buffer = b""
        self._pos = 0
        self._counted = counted
        self._header_pending = counted
        self._done = False
        self.index = 0
        self.offset = 0
        self.expected: int | None = None

    def __iter__(self) -> LazyRawBoardLoader:
        return self

    def _available(self) -> int:
        return len(self._buffer) - self._pos

    def _fill(self, size: int) -> bool:
        while self._available() < size:
            data = self._reader.read(self._read_size)
            if not data:
                return False
            self._buffer = self._buffer[self._pos :] + data
            self._pos = 0
        return True

    def _take(self) -> int:
        (value,) = CODE_STRUCT.unpack_from(self._buffer, self._pos)
        self._pos += CODE_SIZE
        self.offset += CODE_SIZE
        return value

    def _fail(self, reason: str) -> DecodeError:
        self._done = True
        return DecodeError(self.offset, self.index, reason)

    def __next__(self) -> int:
        if self._done:
            raise StopIteration
        if self._header_pending:
            if not self._fill(CODE_SIZE):
                raise self._fail(f"length prefix truncated to {self._available()} bytes")
            self.expected = self._take()
            self._header_pending = False
        if self.expected is not None and self.index >= self.expected:
            self._done = True
            raise StopIteration
        if not self._fill(CODE_SIZE):
            if self._available():
                raise self._fail(f"record truncated to {self._available()} of {CODE_SIZE} bytes")
            if self.expected is not None:
                raise self._fail(f"stream ended after {self.index} of {self.expected} records")
            self._done = True
            raise StopIteration
        code = self._take()
        self.index += 1
        return code


class LazyBoardLoader:
    """Single-pass iterator decoding each stored code into a validated Board."""

    def __init__(self, reader: BinaryIO, counted: bool = False, chunk_size: int = DEFAULT_CHUNK):
        self._raw = LazyRawBoardLoader(reader, counted=counted, chunk_size=chunk_size)

    def __iter__(self) -> LazyBoardLoader:
        return self

    @property
    def index(self) -> int:
        return self._raw.index

    def __next__(self) -> Board:
        code = next(self._raw)
        try:
            return Board.from_code(code)
        except BoardBuildError as e:
            self._raw._done = True
            raise DecodeError(self._raw.offset - CODE_SIZE, self._raw.index - 1, str(e)) from e


def save_codes(path: Path | str, codes: Iterable[int], count: int | None = None) -> int:
    """Write an export file; an existing file is only replaced on success."""
    path = Path(path)
    tmp_path = path.with_name(path.name + ".tmp")
    try:
        with open(tmp_path, "wb") as f:
            written = write_codes(f, codes, count=count)
        os.replace(tmp_path, path)
    finally:
        tmp_path.unlink(missing_ok=True)
    logger.debug("Wrote %d codes to %s", written, path)
    return written


def iter_codes_file(path: Path | str, counted: bool = False) -> Iterator[int]:
    """Stream the codes of a file; the file closes when the generator finishes."""
    with open(path, "rb") as f:
        yield from LazyRawBoardLoader(f, counted=counted)


def load_codes_array(path: Path | str, counted: bool = False) -> np.ndarray:
    """Read a whole export into a native ``uint64`` array.

    Raises:
        DecodeError: If the file size is not a whole number of records or the
            length prefix disagrees with the payload.
    """
    raw = np.fromfile(path, dtype=np.uint8)
    if raw.size % CODE_SIZE:
        whole = raw.size // CODE_SIZE
        raise DecodeError(whole * CODE_SIZE, whole, "file ends inside a record")
    codes = raw.view(CODE_DTYPE)
    if counted:
        if codes.size == 0:
            raise DecodeError(0, 0, "missing length prefix")
        expected = int(codes[0])
        codes = codes[1:]
        if codes.size < expected:
            raise DecodeError(
                CODE_SIZE * (codes.size + 1),
                int(codes.size),
                f"stream ended after {codes.size} of {expected} records",
            )
        codes = codes[:expected]
    return codes.astype(np.uint64)


__all__ = [
    "CODE_DTYPE",
    "CODE_SIZE",
    "LazyBoardLoader",
    "LazyRawBoardLoader",
    "iter_codes_file",
    "load_codes_array",
    "save_codes",
    "write_codes",
]
