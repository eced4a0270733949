import numpy as np
import pytest

from _01_board.exceptions import DecodeError
from _03_analysis.board_value import DRAW, UNKNOWN, BoardValue
from _03_analysis.storage import MAX_DISTANCE, ValueTable, pack_value, unpack_value


def make_items():
    return [
        (0x30, BoardValue.win(1)),
        (0x10, BoardValue.lose(12)),
        (1 << 60 | 0x5, DRAW),
        (0x20, BoardValue.win(0)),
    ]


def test_pack_value_layout():
    assert pack_value(BoardValue.win(3)) == 1 | (3 << 2)
    assert pack_value(BoardValue.lose(0)) == 2
    assert pack_value(DRAW) == 3
    assert pack_value(UNKNOWN) == 0


def test_pack_unpack_extremes():
    for value in (BoardValue.win(MAX_DISTANCE), BoardValue.lose(MAX_DISTANCE), DRAW, UNKNOWN):
        assert unpack_value(pack_value(value)) == value
    with pytest.raises(ValueError):
        pack_value(BoardValue.win(MAX_DISTANCE + 1))


def test_lookup():
    table = ValueTable.from_items(make_items())
    assert len(table) == 4
    assert table.lookup(0x10) == BoardValue.lose(12)
    assert table.lookup(1 << 60 | 0x5) == DRAW
    assert table.lookup(0x11).is_unknown
    assert 0x20 in table
    assert 0x21 not in table
    assert [code for code, _ in table.items()] == [0x10, 0x20, 0x30, 1 << 60 | 0x5]


def test_stats():
    stats = ValueTable.from_items(make_items()).get_stats()
    assert stats == {"total": 4, "win": 2, "lose": 1, "draw": 1, "unknown": 0}


@pytest.mark.parametrize("mmap", [True, False])
def test_save_and_load(tmp_path, mmap):
    path = tmp_path / "values.bin"
    ValueTable.from_items(make_items()).save(path)
    assert path.read_bytes()[:8] == b"DOVEVAL1"
    with ValueTable.load(path, mmap=mmap) as table:
        assert dict(table.items()) == dict(make_items())
        assert table.lookup(0x30) == BoardValue.win(1)
        assert table.lookup(0x31) == UNKNOWN


def test_empty_table(tmp_path):
    path = tmp_path / "empty.bin"
    ValueTable.from_items([]).save(path)
    table = ValueTable.load(path)
    assert len(table) == 0
    assert table.lookup(5) == UNKNOWN


def test_load_rejects_bad_files(tmp_path):
    path = tmp_path / "values.bin"
    ValueTable.from_items(make_items()).save(path)
    data = path.read_bytes()

    path.write_bytes(data[:-1])
    with pytest.raises(DecodeError):
        ValueTable.load(path)

    path.write_bytes(b"NOTVALUE" + data[8:])
    with pytest.raises(DecodeError):
        ValueTable.load(path)

    path.write_bytes(data[:5])
    with pytest.raises(DecodeError):
        ValueTable.load(path)


def test_mismatched_arrays():
    with pytest.raises(ValueError):
        ValueTable(np.zeros(2, dtype=np.uint64), np.zeros(1, dtype=np.uint16))
