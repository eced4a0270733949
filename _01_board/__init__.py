"""Board model, rules and action generation for Tokyo Doves."""

from . import actions, board, canonical, engine, exceptions, formatting, pieces, rules

__all__ = [
    "actions",
    "board",
    "canonical",
    "engine",
    "exceptions",
    "formatting",
    "pieces",
    "rules",
]
