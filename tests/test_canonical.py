import pytest

from _01_board import canonical
from _01_board.board import Board
from _01_board.pieces import Color

BOARDS = ["b;B", "bA; B;  Y", "bBA;T", "Ab;mB", "bA;YB;  T;   H", "bTm;  H;BY"]


@pytest.mark.parametrize("text", BOARDS)
def test_symmetric_images_share_code(text):
    board = Board.from_str(text)
    code = canonical.canonical_code(board)
    for symmetry in canonical.SYMMETRIES:
        image = symmetry.apply(board)
        assert canonical.canonical_code(image) == code


@pytest.mark.parametrize("text", BOARDS)
def test_symmetry_carries_board_to_code(text):
    board = Board.from_str(text)
    result = canonical.canonicalize(board)
    assert result.symmetry.apply(board).to_code() == result.code
    assert result.board().to_code() == result.code


@pytest.mark.parametrize("text", BOARDS)
def test_inverse_undoes_symmetry(text):
    board = Board.from_str(text)
    for symmetry in canonical.SYMMETRIES:
        assert symmetry.inverse().apply(symmetry.apply(board)) == board


def test_canonical_is_minimum():
    board = Board.from_str("bTm;  H;BY")
    code = canonical.canonical_code(board)
    assert code == min(s.apply(board).to_code() for s in canonical.SYMMETRIES)


def test_canonical_board_is_idempotent():
    board = Board.from_str("Ab;mB")
    once = canonical.canonical_board(board)
    assert canonical.canonical_board(once) == once
    assert canonical.canonicalize(once).symmetry.is_identity


def test_rotation_changes_shape():
    board = Board.from_str("bBA;T")
    quarter = canonical.Symmetry(1).apply(board)
    assert (quarter.height, quarter.width) == (board.width, board.height)


def test_apply_cell_matches_board_transform():
    board = Board.from_str("bBA;T")
    for symmetry in canonical.SYMMETRIES:
        image = symmetry.apply(board)
        for color in Color:
            for dove in board.doves_on_field(color):
                cell = board.coords(color, dove)
                assert symmetry.apply_cell(cell, board.height, board.width) == image.coords(color, dove)


def test_color_symmetric_position_codes():
    board = Board.from_str("bA; B;  Y")
    green = canonical.position_code(board, Color.GREEN, color_symmetric=True)
    assert green == canonical.position_code(board.swap_colors(), Color.RED, color_symmetric=True)
    assert not green & canonical.GREEN_TO_MOVE
    result = canonical.canonicalize_position(board, Color.GREEN, color_symmetric=True)
    assert result.symmetry.swap_colors


def test_asymmetric_position_codes_mark_green():
    board = Board.from_str("bA; B;  Y")
    red = canonical.position_code(board, Color.RED, color_symmetric=False)
    green = canonical.position_code(board, Color.GREEN, color_symmetric=False)
    assert green == red | canonical.GREEN_TO_MOVE
    assert not red & canonical.GREEN_TO_MOVE


@pytest.mark.parametrize("player", [Color.RED, Color.GREEN])
def test_decode_position(player):
    board = Board.from_str("bBA;T")
    code = canonical.position_code(board, player, color_symmetric=False)
    decoded, to_move = canonical.decode_position(code)
    assert to_move is player
    assert decoded == canonical.canonical_board(board)
