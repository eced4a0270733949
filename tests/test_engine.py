import pytest

from _01_board import engine
from _01_board.actions import Action, ActionKind
from _01_board.board import Board
from _01_board.exceptions import IllegalActionError, ProhibitedRemoveError
from _01_board.pieces import Color, Dove
from _01_board.rules import GameRule, Judge

from conftest import make_mini_rule


def make_both_surrounded():
    # Field 2: both bosses are boxed in by walls and doves
    return Board.from_str("bA;MB", field_size=2)


def test_initial_board_has_puts_and_boss_moves():
    rule = GameRule()
    acts = engine.legal_actions(Board.initial(), Color.RED, rule).to_list()
    puts = [a for a in acts if a.kind is ActionKind.PUT]
    moves = [a for a in acts if a.kind is ActionKind.MOVE]
    assert len(puts) == 35  # five doves in hand, seven free neighbours
    assert len(moves) == 4
    assert len(acts) == 39
    assert all(a.dove is Dove.B for a in moves)


def test_legal_actions_are_restartable():
    legal = engine.legal_actions(Board.initial(), Color.GREEN, GameRule())
    assert legal.to_list() == legal.to_list()
    assert legal.count() == 39
    assert not legal.is_empty()


def test_legal_actions_contains():
    legal = engine.legal_actions(Board.initial(), Color.RED, GameRule())
    assert Action.put(Color.RED, Dove.A, (2, 0)) in legal
    assert Action.put(Color.GREEN, Dove.A, (2, 0)) not in legal
    assert Action.put(Color.RED, Dove.A, (3, 0)) not in legal
    assert "not an action" not in legal


def test_t_slides_until_blocked():
    board = Board.from_str("bBA;T")
    acts = engine.legal_actions(board, Color.RED, GameRule()).to_list()
    targets = {a.target for a in acts if a.kind is ActionKind.MOVE and a.dove is Dove.T}
    assert targets == {(1, 1), (1, 2), (1, 3), (1, -1)}


def test_removes_follow_rule_flag():
    board = Board.from_str("bA; B")
    allowed = engine.legal_actions(board, Color.RED, GameRule()).to_list()
    assert Action.remove(Color.RED, Dove.A, (0, 1)) in allowed
    forbidden = engine.legal_actions(board, Color.RED, GameRule(remove_accepted=False)).to_list()
    assert all(a.kind is not ActionKind.REMOVE for a in forbidden)


def test_remove_that_isolates_is_illegal():
    # Removing A would leave the two bosses apart
    board = Board.from_str("bA;  B")
    rule = GameRule()
    assert Action.remove(Color.RED, Dove.A, (0, 1)) not in engine.legal_actions(board, Color.RED, rule)
    assert engine.illegal_reason(board, Action.remove(Color.RED, Dove.A, (0, 1)), rule)


def test_no_actions_on_finished_board():
    board = Board.from_str("bA;YB;  T;   H")
    assert board.is_finished()
    assert engine.legal_actions(board, Color.RED, GameRule()).is_empty()
    assert engine.legal_actions(board, Color.GREEN, GameRule()).is_empty()


def test_check_action_errors():
    board = Board.initial()
    rule = GameRule()
    with pytest.raises(IllegalActionError):
        engine.check_action(board, Action.put(Color.RED, Dove.B, (2, 0)), rule)
    with pytest.raises(IllegalActionError):
        engine.check_action(board, Action.put(Color.RED, Dove.A, (3, 3)), rule)
    with pytest.raises(IllegalActionError):
        engine.check_action(board, Action.move(Color.RED, Dove.B, (0, 0), (0, 1)), rule)
    with pytest.raises(IllegalActionError):
        engine.check_action(board, Action.remove(Color.RED, Dove.B, (1, 0)), rule)


def test_prohibited_remove():
    board = Board.from_str("bA; B")
    rule = GameRule(remove_accepted=False)
    with pytest.raises(ProhibitedRemoveError):
        engine.check_action(board, Action.remove(Color.RED, Dove.A, (0, 1)), rule)


def test_roster_is_enforced():
    rule = GameRule(red_roster="BA")
    with pytest.raises(IllegalActionError):
        engine.perform_checked(Board.initial(), Action.put(Color.RED, Dove.Y, (2, 0)), rule)
    assert engine.perform_checked(Board.initial(), Action.put(Color.RED, Dove.A, (2, 0)), rule)


def test_perform_renormalizes():
    board = Board.initial()
    after, shift = engine.perform_with_shift(board, Action.put(Color.RED, Dove.A, (0, -1)))
    assert after.to_str() == "Ab; B"
    assert shift == (0, -1)
    assert after.coords(Color.GREEN, Dove.B) == (0, 1)
    assert after.coords(Color.RED, Dove.A) == (0, 0)


def test_mini_rule_immediate_win():
    rule = make_mini_rule()
    winning = Action.put(Color.RED, Dove.M, (1, 0))
    assert winning in engine.legal_actions(rule.initial_board, Color.RED, rule)
    after = engine.perform(rule.initial_board, winning)
    assert engine.status_after(after, Color.RED, rule) is engine.GameStatus.RED_WINS


def test_status_after_single_surrounded():
    board = Board.from_str("bA;YB;  T;   H")
    rule = GameRule()
    assert engine.status_after(board, Color.RED, rule) is engine.GameStatus.RED_WINS
    # Surrounding your own boss hands the win to the opponent
    assert engine.status_after(board.swap_colors(), Color.RED, rule) is engine.GameStatus.GREEN_WINS
    assert engine.status_after(Board.initial(), Color.RED, rule) is engine.GameStatus.ONGOING


@pytest.mark.parametrize(
    "judge, expected",
    [
        (Judge.NEXT_WINS, engine.GameStatus.GREEN_WINS),
        (Judge.LAST_WINS, engine.GameStatus.RED_WINS),
        (Judge.DRAW, engine.GameStatus.DRAW),
    ],
)
def test_status_after_both_surrounded(judge, expected):
    rule = GameRule(field_size=2, judge=judge)
    assert engine.status_after(make_both_surrounded(), Color.RED, rule) is expected


def test_game_status_helpers():
    assert engine.GameStatus.win(Color.GREEN).winner is Color.GREEN
    assert engine.GameStatus.DRAW.winner is None
    assert engine.GameStatus.DRAW.is_finished
    assert not engine.GameStatus.ONGOING.is_finished


def test_next_boards_match_perform():
    board = Board.from_str("bA; B;  Y")
    rule = GameRule()
    for action, child in engine.next_boards(board, Color.GREEN, rule):
        assert child == engine.perform(board, action)
        assert not child.is_isolated()
        assert child.fits(rule.field_size)


@pytest.mark.parametrize("text", ["b;B", "bA; B;  Y", "bBA;T", "Ab;mB"])
@pytest.mark.parametrize("player", [Color.RED, Color.GREEN])
def test_backward_actions_invert_forward(text, player):
    board = Board.from_str(text)
    rule = GameRule()
    for action, child in engine.next_boards(board, player, rule):
        if child.is_finished(rule.field_size):
            continue
        parents = list(engine.backward_actions(child, player, rule))
        assert board in {prev for _, prev in parents}
        for back, prev in parents:
            assert engine.perform(prev, back) == child
            assert engine.is_legal(prev, back, rule)


def test_backward_actions_skip_finished_parents():
    rule = make_mini_rule()
    child = engine.perform(rule.initial_board, Action.put(Color.RED, Dove.M, (1, 0)))
    for _, prev in engine.backward_actions(child, Color.RED, rule):
        assert not prev.is_finished(rule.field_size)


@pytest.mark.parametrize("text", ["b;B", "bA; B;  Y", "bBA;T", "Ab;mB"])
@pytest.mark.parametrize("player", [Color.RED, Color.GREEN])
def test_inverse_action_restores_board(text, player):
    board = Board.from_str(text)
    rule = GameRule()
    for action in engine.legal_actions(board, player, rule):
        child, inverse = engine.perform_with_inverse(board, action)
        assert child == engine.perform(board, action)
        assert engine.perform(child, inverse) == board, action


def test_inverse_follows_the_frame_shift():
    board = Board.from_str("bBA;T")
    action = Action.move(Color.RED, Dove.B, (0, 1), (-1, 2))
    child, shift = engine.perform_with_shift(board, action)
    assert child.to_str() == "  B;b A;T"
    assert shift == (-1, 0)
    inverse = action.reverse(shift)
    assert inverse == Action.move(Color.RED, Dove.B, (0, 2), (1, 1))
    assert engine.perform(child, inverse) == board
