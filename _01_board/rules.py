"""Rule descriptor: roster, field size, remove flag and the both-surrounded judge."""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from .board import FIELD_SIZE, FRAME, Board
from .exceptions import BoardBuildError, RuleConfigError
from .pieces import ALL_DOVES, Color, Dove, parse_color, parse_dove

logger = logging.getLogger(__name__)


class Judge(Enum):
    """Winner when both bosses end up surrounded by the same action."""

    LAST_WINS = "last_wins"  # the player who made the action
    NEXT_WINS = "next_wins"  # the player to move next
    DRAW = "draw"


def _roster(doves: Iterable[Dove | str]) -> frozenset[Dove]:
    if isinstance(doves, str):
        doves = list(doves)
    return frozenset(parse_dove(d) for d in doves)


@dataclass(frozen=True)
class GameRule:
    """Immutable rule set shared by the generators, the solver and the game.

    Attributes:
        remove_accepted: Whether doves may be taken back into the hand.
        judge: Outcome when both bosses are surrounded at once.
        first_player: Color moving first from ``initial_board``.
        field_size: Maximum side of the doves' bounding box (2..4).
        red_roster: Doves red plays with.
        green_roster: Doves green plays with.
        initial_board: Starting layout.
    """

    remove_accepted: bool = True
    judge: Judge = Judge.NEXT_WINS
    first_player: Color = Color.RED
    field_size: int = FIELD_SIZE
    red_roster: frozenset[Dove] = ALL_DOVES
    green_roster: frozenset[Dove] = ALL_DOVES
    initial_board: Board = field(default_factory=Board.initial)

    def __post_init__(self) -> None:
        object.__setattr__(self, "red_roster", _roster(self.red_roster))
        object.__setattr__(self, "green_roster", _roster(self.green_roster))
        if not 2 <= self.field_size <= FRAME:
            raise RuleConfigError(f"field_size must be in [2, {FRAME}], got {self.field_size}")
        for color in Color:
            if Dove.B not in self.roster(color):
                raise RuleConfigError(f"Roster of {color.name} has no boss")
            for dove in self.initial_board.doves_on_field(color):
                if dove not in self.roster(color):
                    raise RuleConfigError(
                        f"Initial board uses {dove.name} of {color.name} outside the roster"
                    )
        board = self.initial_board
        if not board.fits(self.field_size):
            raise RuleConfigError(f"Initial board {board} does not fit the field")
        if board.is_isolated():
            raise RuleConfigError(f"Initial board {board} has an isolated dove")
        if board.is_finished(self.field_size):
            raise RuleConfigError(f"Initial board {board} is already finished")

    def roster(self, color: Color) -> frozenset[Dove]:
        return self.red_roster if color is Color.RED else self.green_roster

    @property
    def color_symmetric(self) -> bool:
        """True when swapping colors maps legal positions to legal positions."""
        return self.red_roster == self.green_roster

    def hand(self, board: Board, color: Color) -> list[Dove]:
        """Doves of ``color`` available to put, in rank order."""
        roster = self.roster(color)
        return [dove for dove in Dove if dove in roster and not board.is_on_field(color, dove)]

    def replace(self, **changes: Any) -> GameRule:
        return dataclasses.replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "remove_accepted": self.remove_accepted,
            "judge": self.judge.value,
            "first_player": self.first_player.name.lower(),
            "field_size": self.field_size,
            "roster": {
                "red": "".join(d.name for d in sorted(self.red_roster)),
                "green": "".join(d.name for d in sorted(self.green_roster)),
            },
            "initial_board": self.initial_board.to_str(),
        }


_RULE_KEYS = {"remove_accepted", "judge", "first_player", "field_size", "roster", "initial_board"}


def rule_from_dict(data: Mapping[str, Any]) -> GameRule:
    """Build a rule from a plain mapping (the ``rule`` section of a YAML file).

    Raises:
        RuleConfigError: On unknown keys or values that cannot be parsed.
    """
    unknown = set(data) - _RULE_KEYS
    if unknown:
        raise RuleConfigError(f"Unknown rule keys: {sorted(unknown)}")
    kwargs: dict[str, Any] = {}
    try:
        if "remove_accepted" in data:
            kwargs["remove_accepted"] = bool(data["remove_accepted"])
        if "judge" in data:
            kwargs["judge"] = Judge(str(data["judge"]).lower())
        if "first_player" in data:
            kwargs["first_player"] = parse_color(data["first_player"])
        if "field_size" in data:
            kwargs["field_size"] = int(data["field_size"])
        roster = data.get("roster") or {}
        if "red" in roster:
            kwargs["red_roster"] = _roster(roster["red"])
        if "green" in roster:
            kwargs["green_roster"] = _roster(roster["green"])
        if "initial_board" in data:
            kwargs["initial_board"] = Board.from_str(str(data["initial_board"]))
    except (ValueError, BoardBuildError) as e:
        raise RuleConfigError(f"Invalid rule configuration: {e}") from e
    return GameRule(**kwargs)


def load_rule(path: Path | str) -> GameRule:
    """Load a rule from a YAML file.

    The file either holds the rule keys at top level or under ``rule:``.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise RuleConfigError(f"{path}: expected a mapping at top level")
    section = data.get("rule", data)
    rule = rule_from_dict(section)
    logger.info("Loaded rule from %s: %s", path, rule.to_dict())
    return rule


__all__ = ["GameRule", "Judge", "load_rule", "rule_from_dict"]
