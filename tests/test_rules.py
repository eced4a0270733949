import io
import logging
from pathlib import Path

import pytest

from _01_board.board import Board
from _01_board.exceptions import RuleConfigError
from _01_board.logging_config import setup_logging
from _01_board.pieces import Color, Dove
from _01_board.rules import GameRule, Judge, load_rule, rule_from_dict

from conftest import make_mini_rule

CONFIGS = Path(__file__).parent.parent / "configs"


def test_default_rule():
    rule = GameRule()
    assert rule.remove_accepted
    assert rule.judge is Judge.NEXT_WINS
    assert rule.first_player is Color.RED
    assert rule.field_size == 4
    assert rule.color_symmetric
    assert rule.initial_board == Board.initial()
    assert rule.hand(Board.initial(), Color.RED) == [Dove.A, Dove.Y, Dove.M, Dove.T, Dove.H]


def test_mini_rule_is_asymmetric():
    rule = make_mini_rule()
    assert not rule.color_symmetric
    assert rule.hand(rule.initial_board, Color.RED) == [Dove.M]
    assert rule.hand(rule.initial_board, Color.GREEN) == []


@pytest.mark.parametrize(
    "changes",
    [
        {"field_size": 5},
        {"field_size": 1},
        {"red_roster": "AY"},
        {"green_roster": "B", "initial_board": Board.from_str("bA;aB")},
        {"field_size": 2, "initial_board": Board.from_str("bA; B;  Y")},
        {"initial_board": Board.from_str("bA;YB;  T;   H")},
    ],
)
def test_invalid_rules(changes):
    with pytest.raises(RuleConfigError):
        GameRule(**changes)


def test_dict_round_trip():
    rule = make_mini_rule(judge=Judge.LAST_WINS)
    data = rule.to_dict()
    assert data["roster"] == {"red": "BAYM", "green": "B"}
    assert data["judge"] == "last_wins"
    assert rule_from_dict(data) == rule


@pytest.mark.parametrize(
    "data",
    [
        {"colour": "red"},
        {"judge": "first_wins"},
        {"first_player": "blue"},
        {"roster": {"red": "BX"}},
        {"initial_board": "b;;B"},
    ],
)
def test_rule_from_dict_errors(data):
    with pytest.raises(RuleConfigError):
        rule_from_dict(data)


def test_load_rule_from_section(tmp_path):
    path = tmp_path / "rule.yaml"
    path.write_text(
        "rule:\n"
        "  remove_accepted: false\n"
        "  field_size: 3\n"
        "  roster:\n"
        "    red: BAYM\n"
        "    green: B\n"
        '  initial_board: "bA; B;  Y"\n'
    )
    assert load_rule(path) == make_mini_rule()


def test_load_rule_top_level(tmp_path):
    path = tmp_path / "rule.yaml"
    path.write_text("judge: draw\nfirst_player: green\n")
    rule = load_rule(path)
    assert rule.judge is Judge.DRAW
    assert rule.first_player is Color.GREEN


def test_load_rule_rejects_non_mapping(tmp_path):
    path = tmp_path / "rule.yaml"
    path.write_text("- just\n- a list\n")
    with pytest.raises(RuleConfigError):
        load_rule(path)


def test_shipped_configs_load():
    assert load_rule(CONFIGS / "mini.yaml") == make_mini_rule()
    standard = load_rule(CONFIGS / "standard.yaml")
    assert standard.field_size == 4
    assert standard.color_symmetric


def test_setup_logging_replaces_handler():
    first_stream = io.StringIO()
    second_stream = io.StringIO()
    first = setup_logging("DEBUG", stream=first_stream)
    second = setup_logging("INFO", format_json=True, stream=second_stream)
    try:
        assert first not in logging.root.handlers
        assert second in logging.root.handlers
        logging.getLogger("doves.test").info("hello")
        assert '"message":"hello"' in second_stream.getvalue()
        assert first_stream.getvalue() == ""
    finally:
        logging.root.removeHandler(second)
