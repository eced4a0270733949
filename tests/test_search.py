import pytest

from _01_board.actions import Action
from _01_board.board import Board
from _01_board.canonical import decode_position
from _01_board.exceptions import InvalidSearchArgumentError
from _01_board.pieces import Color, Dove
from _01_board.rules import GameRule, Judge
from _03_analysis.board_value import DRAW, UNKNOWN, BoardValue, Interval
from _03_analysis.search import (
    ForwardSearch,
    compare_board_value,
    create_checkmate_tree,
    evaluate_board,
    find_best_actions,
    terminal_value,
)

from conftest import make_bosses_rule, make_mini_rule

WINNING_PUT = Action.put(Color.RED, Dove.M, (1, 0))


def make_search():
    return ForwardSearch(make_mini_rule())


def test_terminal_value_single_surround():
    board = Board.from_str("bA;YB;  T;   H")
    rule = GameRule()
    assert terminal_value(board, Color.RED, rule) == BoardValue.win(0)
    assert terminal_value(board, Color.GREEN, rule) == BoardValue.lose(0)
    assert terminal_value(Board.initial(), Color.RED, rule) is None


@pytest.mark.parametrize(
    "judge, expected",
    [
        (Judge.NEXT_WINS, BoardValue.win(0)),
        (Judge.LAST_WINS, BoardValue.lose(0)),
        (Judge.DRAW, DRAW),
    ],
)
def test_terminal_value_both_surrounded(judge, expected):
    # Red to move, so green made the surrounding action
    board = Board.from_str("bA;MB", field_size=2)
    rule = GameRule(field_size=2, judge=judge)
    assert terminal_value(board, Color.RED, rule) == expected


def test_solve_finds_immediate_win():
    search = make_search()
    initial = search.rule.initial_board
    assert search.solve(initial, Color.RED, 0) == UNKNOWN
    assert search.solve(initial, Color.RED, 1) == BoardValue.win(1)
    assert search.solve(initial, Color.RED, 3) == BoardValue.win(1)
    assert search.get_stats()["exact_cached"] > 0


def test_negative_depth():
    search = make_search()
    with pytest.raises(InvalidSearchArgumentError):
        search.solve(search.rule.initial_board, Color.RED, -1)


def test_evaluate_bounds():
    search = make_search()
    initial = search.rule.initial_board
    assert search.evaluate(initial, Color.RED, 0) == Interval(BoardValue.lose(1), BoardValue.win(1))
    assert search.evaluate(initial, Color.RED, 2) == Interval.point(BoardValue.win(1))


def test_terminal_positions_are_decided_at_depth_zero():
    search = ForwardSearch(GameRule())
    board = Board.from_str("bA;YB;  T;   H")
    assert search.evaluate(board, Color.GREEN, 0).single() == BoardValue.lose(0)


def test_compare():
    search = make_search()
    initial = search.rule.initial_board
    assert search.compare(initial, BoardValue.win(1), Color.RED) == 0
    assert search.compare(initial, BoardValue.win(3), Color.RED) == 1
    assert search.compare(initial, BoardValue.lose(2), Color.RED) == 1
    with pytest.raises(InvalidSearchArgumentError):
        search.compare(initial, DRAW, Color.RED)


def test_compare_undecided():
    search = ForwardSearch(make_bosses_rule())
    initial = Board.initial()
    assert search.compare(initial, BoardValue.win(2), Color.RED) == -1
    assert search.compare(initial, BoardValue.lose(2), Color.RED) == 1


def test_best_actions():
    search = make_search()
    assert search.best_actions(search.rule.initial_board, Color.RED, 1) == [WINNING_PUT]
    assert search.best_actions(search.rule.initial_board, Color.RED, 0) == []


def test_best_actions_when_undecided():
    search = ForwardSearch(make_bosses_rule())
    actions = search.best_actions(Board.initial(), Color.RED, 2)
    assert len(actions) == 4
    assert all(action.dove is Dove.B for action in actions)


def test_checkmate_tree():
    search = make_search()
    tree = search.checkmate_tree(search.rule.initial_board, Color.RED, 3)
    assert tree is not None
    assert tree.value == BoardValue.win(1)
    assert list(tree.children) == [WINNING_PUT]
    assert tree.children[WINNING_PUT].value == BoardValue.lose(0)
    assert tree.is_good_for_puzzle(1)


def test_checkmate_tree_without_win():
    search = ForwardSearch(make_bosses_rule())
    assert search.checkmate_tree(Board.initial(), Color.RED, 3) is None


def test_undecided_position_contains_draw():
    search = ForwardSearch(make_bosses_rule())
    interval = search.evaluate(Board.initial(), Color.RED, 3)
    assert DRAW in interval
    assert not interval.is_single()
    # A shallower search reuses the cached undecided result
    assert search.solve(Board.initial(), Color.RED, 2) == UNKNOWN


def test_module_helpers():
    rule = make_mini_rule()
    initial = rule.initial_board
    assert evaluate_board(initial, Color.RED, 1, rule).single() == BoardValue.win(1)
    assert compare_board_value(initial, BoardValue.win(1), Color.RED, rule) == 0
    assert find_best_actions(initial, Color.RED, 1, rule) == [WINNING_PUT]
    assert create_checkmate_tree(initial, Color.RED, 1, rule).value == BoardValue.win(1)


def test_search_agrees_with_solver(mini_solver, mini_rule):
    search = ForwardSearch(mini_rule)
    checked = 0
    for code, value in mini_solver.items():
        if not value.is_decisive or value.distance > 2:
            continue
        board, player = decode_position(code)
        assert search.solve(board, player, 3) == value
        checked += 1
        if checked >= 50:
            break
    assert checked > 0


def test_shared_search_agrees_with_solver_across_depths(mini_solver, mini_rule):
    # One instance, so later searches reuse entries cached at other depths
    search = ForwardSearch(mini_rule)
    positions = [(decode_position(code), value) for code, value in mini_solver.items()]
    for depth in (6, 2, 3, 4):
        for (board, player), value in positions:
            interval = search.evaluate(board, player, depth)
            assert value in interval, (board, player, depth)
            if value.is_decisive and value.distance <= depth:
                assert interval.single() == value


def test_cached_slow_win_is_not_reused_by_shallow_search(mini_solver, mini_rule):
    search = ForwardSearch(mini_rule)
    for code, value in mini_solver.items():
        if value.is_win and value.distance >= 3:
            board, player = decode_position(code)
            assert search.solve(board, player, value.distance) == value
            assert search.solve(board, player, value.distance - 1) == UNKNOWN
            break
    else:
        pytest.skip("no slow win in the mini rule")


def test_validate_against_forward_on_every_position(mini_solver):
    report = mini_solver.validate_against_forward(sample_size=len(mini_solver), depth=6)
    assert report["total"] == len(mini_solver)
    assert report["mismatches"] == 0
