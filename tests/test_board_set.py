import io
import struct
import threading

import numpy as np
import pytest

from _01_board.board import Board
from _01_board.canonical import SYMMETRIES, canonical_code
from _01_board.exceptions import DecodeError
from _01_board.pieces import Color, Dove
from _02_store import board_set, stream


class TrickleReader:
    """Returns at most ``step`` bytes per read, like a pipe."""

    def __init__(self, data: bytes, step: int = 3):
        self._data = data
        self._pos = 0
        self._step = step

    def read(self, n: int) -> bytes:
        chunk = self._data[self._pos : self._pos + min(n, self._step)]
        self._pos += len(chunk)
        return chunk


def make_boards():
    return [Board.from_str(text) for text in ("b;B", "bA; B;  Y", "bBA;T", "Ab;mB")]


def encode(codes, count=None):
    buffer = io.BytesIO()
    stream.write_codes(buffer, codes, count=count)
    return buffer.getvalue()


# Streams


def test_write_codes_is_big_endian():
    data = encode([1, 0x0102030405060708])
    assert data == struct.pack(">QQ", 1, 0x0102030405060708)


def test_write_codes_with_count_prefix():
    data = encode([5, 6, 7], count=3)
    assert data[:8] == struct.pack(">Q", 3)
    assert len(data) == 32


def test_write_codes_rejects_wrong_count():
    buffer = io.BytesIO()
    with pytest.raises(ValueError):
        stream.write_codes(buffer, [5, 6], count=3)
    assert buffer.getvalue() == b""


def test_failed_save_keeps_previous_file(tmp_path):
    path = tmp_path / "codes.bin"
    stream.save_codes(path, [1, 2], count=2)
    before = path.read_bytes()
    with pytest.raises(ValueError):
        stream.save_codes(path, [5, 6, 7], count=2)
    assert path.read_bytes() == before
    assert sorted(p.name for p in tmp_path.iterdir()) == ["codes.bin"]


def test_raw_loader_reads_short_reads():
    codes = list(range(100, 120))
    loader = stream.LazyRawBoardLoader(TrickleReader(encode(codes), step=5), chunk_size=2)
    assert list(loader) == codes
    assert loader.index == 20
    assert loader.offset == 160


def test_raw_loader_counted_stops_at_prefix():
    data = struct.pack(">Q", 2) + encode([1, 2, 3])
    loader = stream.LazyRawBoardLoader(io.BytesIO(data), counted=True)
    assert list(loader) == [1, 2]
    assert loader.expected == 2


def test_truncated_record_raises_then_stops():
    data = encode([1, 2]) + b"\x00\x00\x01"
    loader = stream.LazyRawBoardLoader(io.BytesIO(data))
    assert next(loader) == 1
    assert next(loader) == 2
    with pytest.raises(DecodeError) as exc:
        next(loader)
    assert exc.value.offset == 16
    assert exc.value.index == 2
    assert list(loader) == []


def test_counted_stream_ending_early():
    data = encode([1], count=None)
    loader = stream.LazyRawBoardLoader(io.BytesIO(struct.pack(">Q", 4) + data), counted=True)
    assert next(loader) == 1
    with pytest.raises(DecodeError):
        next(loader)


def test_missing_length_prefix():
    loader = stream.LazyRawBoardLoader(io.BytesIO(b"\x00\x01"), counted=True)
    with pytest.raises(DecodeError):
        next(loader)


def test_board_loader_validates_records():
    good = Board.initial().to_code()
    loader = stream.LazyBoardLoader(io.BytesIO(encode([good, 1 << 62])))
    assert next(loader) == Board.initial()
    with pytest.raises(DecodeError) as exc:
        next(loader)
    assert exc.value.index == 1
    assert exc.value.offset == 8


def test_files_round_trip(tmp_path):
    path = tmp_path / "codes.bin"
    codes = [9, 3, 7]
    assert stream.save_codes(path, codes, count=3) == 3
    assert list(stream.iter_codes_file(path, counted=True)) == codes
    array = stream.load_codes_array(path, counted=True)
    assert array.dtype == np.uint64
    assert array.tolist() == codes


def test_load_codes_array_rejects_partial_record(tmp_path):
    path = tmp_path / "broken.bin"
    path.write_bytes(encode([1, 2])[:-1])
    with pytest.raises(DecodeError):
        stream.load_codes_array(path)


# RawBoardSet


def test_raw_insert_and_contains():
    raw = board_set.RawBoardSet()
    assert raw.insert(42)
    assert not raw.insert(42)
    assert 42 in raw
    assert np.uint64(42) in raw
    assert "42" not in raw
    assert len(raw) == 1
    assert raw.remove(42)
    assert not raw.remove(42)
    assert not raw


def test_shards_partition_codes():
    raw = board_set.RawBoardSet(range(1000), partition_bits=3)
    assert raw.num_shards == 8
    assert sum(len(raw.shard(i)) for i in range(8)) == 1000
    for i in range(8):
        assert all(raw.shard_index(code) == i for code in raw.shard(i))
    assert board_set.shard_of(123, 0) == 0


def test_invalid_partition_bits():
    with pytest.raises(ValueError):
        board_set.RawBoardSet(partition_bits=17)


def test_set_algebra():
    left = board_set.RawBoardSet([1, 2, 3, 4])
    right = board_set.RawBoardSet([3, 4, 5])
    assert set(left | right) == {1, 2, 3, 4, 5}
    assert set(left & right) == {3, 4}
    assert set(left - right) == {1, 2}
    assert set(left ^ right) == {1, 2, 5}
    assert sorted(left.union(right)) == [1, 2, 3, 4, 5]
    assert not left.is_disjoint(right)
    assert board_set.RawBoardSet([3]) <= right
    assert left >= board_set.RawBoardSet([1, 4])
    assert left == board_set.RawBoardSet([4, 3, 2, 1], partition_bits=0)


def test_drain_retain_split():
    raw = board_set.RawBoardSet(range(10))
    assert raw.retain(lambda code: code % 2 == 0) == 5
    assert sorted(raw) == [0, 2, 4, 6, 8]
    left, right = raw.split(2)
    assert len(left) == 2
    assert len(right) == 3
    assert set(left) | set(right) == {0, 2, 4, 6, 8}
    assert sorted(raw.drain()) == [0, 2, 4, 6, 8]
    assert len(raw) == 0


def test_absorb():
    target = board_set.RawBoardSet([1])
    source = board_set.RawBoardSet([1, 2, 3])
    assert target.absorb(source) == 2
    assert len(source) == 3
    assert target.absorb_drained(source) == 0
    assert len(source) == 0
    assert target.take(3) == 3
    assert target.take(3) is None


def test_to_array_is_sorted():
    raw = board_set.RawBoardSet([30, 10, 20])
    assert raw.to_array().tolist() == [10, 20, 30]
    assert board_set.RawBoardSet.from_array([5, 5, 1]) == board_set.RawBoardSet([1, 5])


def test_capacity():
    codes = list(range(50))
    capacity = board_set.Capacity.from_codes(codes, partition_bits=2)
    assert capacity.total() == 50
    raw = board_set.RawBoardSet.with_capacity(capacity)
    assert len(raw) == 0
    assert raw.capacity().total() == 50
    raw.extend(codes)
    assert raw.capacity().counts == capacity.counts
    with pytest.raises(ValueError):
        capacity + board_set.Capacity(partition_bits=3)


def test_required_capacity_scans_stream():
    data = encode(range(40), count=40)
    capacity = board_set.RawBoardSet.required_capacity(io.BytesIO(data), counted=True)
    assert capacity.total() == 40


def test_save_and_load_stream(tmp_path):
    raw = board_set.RawBoardSet(range(100, 110))
    buffer = io.BytesIO()
    assert raw.save(buffer, with_count=True) == 10
    loaded = board_set.RawBoardSet()
    assert loaded.load(io.BytesIO(buffer.getvalue()), counted=True) == 10
    assert loaded == raw

    path = tmp_path / "set.bin"
    raw.save_file(path)
    assert board_set.RawBoardSet.from_file(path) == raw


def test_load_filter_and_remove_loaded():
    data = encode(range(10))
    raw = board_set.RawBoardSet()
    raw.load_filter(io.BytesIO(data), lambda code: code > 6)
    assert sorted(raw) == [7, 8, 9]
    raw.extend([20, 21])
    assert raw.remove_loaded_values(io.BytesIO(data)) == 3
    assert sorted(raw) == [20, 21]


def test_concurrent_inserts():
    raw = board_set.RawBoardSet(partition_bits=4)

    def worker(start):
        for code in range(start, start + 2000):
            raw.insert(code % 3000)

    threads = [threading.Thread(target=worker, args=(i * 500,)) for i in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert len(raw) == 3000


# BoardSet


def test_board_set_collapses_symmetric_boards():
    board = Board.from_str("bBA;T")
    boards = board_set.BoardSet(symmetry.apply(board) for symmetry in SYMMETRIES)
    assert len(boards) == 1
    for symmetry in SYMMETRIES:
        assert symmetry.apply(board) in boards
    assert next(iter(boards)).to_code() == canonical_code(board)


def test_board_set_algebra_and_io():
    first = board_set.BoardSet(make_boards()[:3])
    second = board_set.BoardSet(make_boards()[2:])
    assert len(first | second) == 4
    assert len(first & second) == 1
    assert len(first - second) == 2
    assert len(first ^ second) == 3
    assert first.is_subset(first | second)

    buffer = io.BytesIO()
    first.save(buffer, with_count=True)
    loaded = board_set.BoardSet()
    loaded.load(io.BytesIO(buffer.getvalue()), counted=True)
    assert loaded == first


def test_board_set_load_rejects_invalid_board():
    board_set_ = board_set.BoardSet()
    with pytest.raises(DecodeError):
        board_set_.load(io.BytesIO(encode([Board.initial().to_code(), 1 << 62])))
    assert len(board_set_) == 1


def test_board_set_retain_and_remove():
    boards = board_set.BoardSet(make_boards())
    assert boards.retain(lambda board: board.is_on_field(Color.RED, Dove.Y)) == 3
    assert len(boards) == 1
    assert Board.from_str("bA; B;  Y") in boards
    assert boards.remove(Board.from_str("bA; B;  Y"))
    assert "b;B" not in boards
