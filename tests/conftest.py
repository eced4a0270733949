"""Shared rules and solved tables for the test suite."""

import pytest

from _01_board.board import Board
from _01_board.rules import GameRule
from _03_analysis.retrograde import RetrogradeSolver


def make_mini_rule(**changes) -> GameRule:
    """Field 3, red BAYM against a lone green boss, no removes.

    Red to move wins at once by putting M at (1, 0).
    """
    rule = GameRule(
        remove_accepted=False,
        field_size=3,
        red_roster="BAYM",
        green_roster="B",
        initial_board=Board.from_str("bA; B;  Y", field_size=3),
    )
    return rule.replace(**changes) if changes else rule


def make_bosses_rule(**changes) -> GameRule:
    """Only the two bosses; nobody can ever be surrounded."""
    rule = GameRule(red_roster="B", green_roster="B")
    return rule.replace(**changes) if changes else rule


@pytest.fixture(scope="session")
def mini_rule() -> GameRule:
    return make_mini_rule()


@pytest.fixture(scope="session")
def mini_solver(mini_rule) -> RetrogradeSolver:
    solver = RetrogradeSolver(mini_rule)
    solver.solve()
    return solver


@pytest.fixture(scope="session")
def bosses_solver() -> RetrogradeSolver:
    solver = RetrogradeSolver(make_bosses_rule())
    solver.solve()
    return solver
