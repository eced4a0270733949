"""Tokyo Doves solver package exposing the main domain areas."""

from . import _01_board, _02_store, _03_analysis, _04_game

__all__ = [
    "_01_board",
    "_02_store",
    "_03_analysis",
    "_04_game",
]
