import pytest

from _01_board.actions import Action
from _01_board.board import Board
from _01_board.pieces import Color, Dove
from _03_analysis.board_value import (
    DRAW,
    UNKNOWN,
    ActionTree,
    BoardValue,
    BoardValueKind,
    BoardValueTree,
    Interval,
)

win = BoardValue.win
lose = BoardValue.lose


def test_ordering():
    ordered = [lose(0), lose(1), lose(7), DRAW, win(9), win(2), win(0)]
    assert sorted(reversed(ordered)) == ordered
    assert win(1) > win(3)
    assert lose(5) > lose(1)
    assert max(DRAW, lose(40)) == DRAW


def test_unknown_is_not_comparable():
    with pytest.raises(TypeError):
        UNKNOWN < DRAW
    with pytest.raises(TypeError):
        win(1) > UNKNOWN


def test_distance_validation():
    with pytest.raises(ValueError):
        BoardValue(BoardValueKind.WIN)
    with pytest.raises(ValueError):
        BoardValue(BoardValueKind.LOSE, -1)
    with pytest.raises(ValueError):
        BoardValue(BoardValueKind.DRAW, 3)


def test_predicates():
    assert win(0).is_terminal
    assert not win(1).is_terminal
    assert lose(2).is_decisive
    assert not DRAW.is_decisive
    assert BoardValue.draw() is DRAW
    assert BoardValue.unknown().is_unknown


def test_propagation():
    assert win(0).propagated() == lose(1)
    assert lose(3).propagated() == win(4)
    assert DRAW.propagated() == DRAW
    assert win(4).successor_target() == lose(3)
    assert lose(1).successor_target() == win(0)
    with pytest.raises(ValueError):
        win(0).successor_target()
    with pytest.raises(ValueError):
        DRAW.successor_target()


def test_str():
    assert str(win(3)) == "Win(3)"
    assert str(lose(0)) == "Lose(0)"
    assert str(DRAW) == "Draw"
    assert str(UNKNOWN) == "Unknown"


def test_interval():
    interval = Interval(lose(5), win(5))
    assert DRAW in interval
    assert win(3) not in interval
    assert win(7) in interval
    assert win(5) in interval
    assert "Draw" not in interval
    assert not interval.is_single()
    assert interval.single() is None
    assert Interval.point(DRAW).single() == DRAW
    assert str(Interval.point(DRAW)) == "[Draw, Draw]"


def test_interval_narrow():
    wide = Interval(lose(5), win(5))
    narrowed = wide.narrow(Interval(DRAW, win(1)))
    assert narrowed == Interval(DRAW, win(5))
    with pytest.raises(ValueError):
        wide.narrow(Interval(win(2), win(1)))
    with pytest.raises(ValueError):
        Interval(win(1), lose(1))


def test_action_tree():
    put = Action.put(Color.RED, Dove.M, (1, 0))
    tree = ActionTree(win(1), (put,))
    assert put in tree
    assert list(tree) == [put]
    assert len(tree) == 1
    assert len(ActionTree(DRAW)) == 0


def test_board_value_tree_lines():
    board = Board.initial()
    first = Action.put(Color.RED, Dove.A, (2, 0))
    second = Action.put(Color.GREEN, Dove.A, (-1, 0))
    third = Action.put(Color.GREEN, Dove.Y, (-1, 0))
    leaf = BoardValueTree(board, Color.RED, win(0))
    middle = BoardValueTree(board, Color.GREEN, lose(1), {second: leaf, third: leaf})
    root = BoardValueTree(board, Color.RED, win(2), {first: middle})
    assert root.depth() == 3
    assert root.size() == 4
    assert list(root.lines()) == [[first, second], [first, third]]
    assert root.is_good_for_puzzle(1)
    assert root.is_good_for_puzzle(0)
    assert not root.is_good_for_puzzle(2)

    root.children[second] = leaf
    assert not root.is_good_for_puzzle(1)
