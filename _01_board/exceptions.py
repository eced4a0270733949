"""Custom exception classes for the doves board library."""

from __future__ import annotations

from typing import Any


class DovesError(Exception):
    """Base exception for all recoverable doves errors."""


# Construction errors


class BoardBuildError(DovesError):
    """Raised when staged pieces do not form a valid board."""


class DuplicatePieceError(BoardBuildError):
    """Raised when the same dove of the same color is placed twice."""

    def __init__(self, color: Any, dove: Any) -> None:
        self.color = color
        self.dove = dove
        super().__init__(f"Dove {dove.name} of {color.name} placed more than once.")


class OverlappingPiecesError(BoardBuildError):
    """Raised when two doves share a cell."""

    def __init__(self, cell: tuple[int, int]) -> None:
        self.cell = cell
        super().__init__(f"More than one dove placed at {cell}.")


class MissingBossError(BoardBuildError):
    """Raised when a color has no boss on the field."""

    def __init__(self, color: Any) -> None:
        self.color = color
        super().__init__(f"Boss of {color.name} is not on the field.")


class FieldOverflowError(BoardBuildError):
    """Raised when the doves span more than the field allows."""

    def __init__(self, height: int, width: int, field_size: int) -> None:
        self.height = height
        self.width = width
        self.field_size = field_size
        super().__init__(
            f"Doves span {height}x{width} cells; field is limited to {field_size}x{field_size}."
        )


class IsolatedPieceError(BoardBuildError):
    """Raised when a dove has no neighbouring dove."""

    def __init__(self, color: Any, dove: Any) -> None:
        self.color = color
        self.dove = dove
        super().__init__(f"Dove {dove.name} of {color.name} is isolated.")


class RosterViolationError(BoardBuildError):
    """Raised when a dove outside the rule's roster is on the field."""

    def __init__(self, color: Any, dove: Any) -> None:
        self.color = color
        self.dove = dove
        super().__init__(f"Dove {dove.name} of {color.name} is not in the roster.")


class BoardStringError(BoardBuildError):
    """Raised when a board string cannot be parsed."""

    def __init__(self, text: str, reason: str) -> None:
        self.text = text
        self.reason = reason
        super().__init__(f"Cannot parse board {text!r}: {reason}")


class InvalidBoardCodeError(BoardBuildError):
    """Raised when an integer is not a valid board code."""

    def __init__(self, code: int, reason: str) -> None:
        self.code = code
        self.reason = reason
        super().__init__(f"Invalid board code {code:#x}: {reason}")


# Conversion and legality errors


class ActionError(DovesError):
    """Base class for action related errors."""


class ActionCodeError(ActionError):
    """Raised when an action cannot be mapped to or from its compact encoding."""

    def __init__(self, value: Any, reason: str) -> None:
        self.value = value
        self.reason = reason
        super().__init__(f"Cannot convert action {value!r}: {reason}")


class ActionNotationError(ActionError):
    """Raised when action text notation cannot be parsed."""

    def __init__(self, text: str, reason: str) -> None:
        self.text = text
        self.reason = reason
        super().__init__(f"Cannot parse action {text!r}: {reason}")


class IllegalActionError(ActionError):
    """Raised when an action is not legal on the given board."""

    def __init__(self, action: Any, reason: str) -> None:
        self.action = action
        self.reason = reason
        super().__init__(f"Illegal action {action}: {reason}")


class ProhibitedRemoveError(IllegalActionError):
    """Raised when a remove is attempted under a rule that forbids it."""

    def __init__(self, action: Any) -> None:
        super().__init__(action, "remove actions are not accepted by the rule")


# Decoding errors


class DecodeError(DovesError):
    """Raised when a stored record cannot be decoded.

    Attributes:
        offset: Byte offset of the failing record in the source.
        index: Zero-based record index.
    """

    def __init__(self, offset: int, index: int, reason: str) -> None:
        self.offset = offset
        self.index = index
        self.reason = reason
        super().__init__(f"Record {index} at byte {offset}: {reason}")


# Game and configuration errors


class GameError(DovesError):
    """Base class for game flow errors."""


class GameFinishedError(GameError):
    """Raised when trying to play on a finished game."""

    def __init__(self) -> None:
        super().__init__("Cannot perform action; game already finished")


class PlayerMismatchError(GameError):
    """Raised when an action is performed by the player not on turn."""

    def __init__(self, expected: Any, actual: Any) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"It is {expected.name}'s turn, got an action of {actual.name}.")


class RuleConfigError(DovesError):
    """Raised when a rule configuration is invalid."""


class InvalidSearchArgumentError(DovesError):
    """Raised when a search is called with unusable arguments."""


# Non-recoverable


class ConsistencyError(RuntimeError):
    """Raised when retrograde propagation detects an internal contradiction.

    This points at a defect (forward/backward generator asymmetry or a
    canonicalization bug) and aborts the analysis run.
    """


__all__ = [
    "ActionCodeError",
    "ActionError",
    "ActionNotationError",
    "BoardBuildError",
    "BoardStringError",
    "ConsistencyError",
    "DecodeError",
    "DovesError",
    "DuplicatePieceError",
    "FieldOverflowError",
    "GameError",
    "GameFinishedError",
    "IllegalActionError",
    "InvalidBoardCodeError",
    "InvalidSearchArgumentError",
    "IsolatedPieceError",
    "MissingBossError",
    "OverlappingPiecesError",
    "PlayerMismatchError",
    "ProhibitedRemoveError",
    "RosterViolationError",
    "RuleConfigError",
]
