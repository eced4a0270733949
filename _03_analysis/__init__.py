"""Position values for Tokyo Doves.

Solves every position reachable from a rule's initial board through
retrograde analysis from finished positions.

Modules:
- board_value: Values, intervals and witness trees
- search: Depth-limited forward negamax
- retrograde: Backward analysis from finished positions
- parallel: Level executor over thread or process pools
- storage: Memory-mapped value tables
"""

from __future__ import annotations

from .board_value import (
    DRAW,
    UNKNOWN,
    ActionTree,
    BoardValue,
    BoardValueKind,
    BoardValueTree,
    Interval,
)
from .parallel import LevelExecutor, ParallelConfig
from .retrograde import (
    PositionValues,
    RetrogradeConfig,
    RetrogradeSolver,
    RetrogradeStats,
    expand_position,
    generate_retrograde_tablebase,
    predecessor_codes,
)
from .search import (
    ForwardSearch,
    SearchConfig,
    compare_board_value,
    create_checkmate_tree,
    evaluate_board,
    find_best_actions,
    terminal_value,
)
from .storage import MAX_DISTANCE, ValueTable, pack_value, unpack_value

__all__ = [
    "DRAW",
    "MAX_DISTANCE",
    "UNKNOWN",
    "ActionTree",
    "BoardValue",
    "BoardValueKind",
    "BoardValueTree",
    "ForwardSearch",
    "Interval",
    "LevelExecutor",
    "ParallelConfig",
    "PositionValues",
    "RetrogradeConfig",
    "RetrogradeSolver",
    "RetrogradeStats",
    "SearchConfig",
    "ValueTable",
    "compare_board_value",
    "create_checkmate_tree",
    "evaluate_board",
    "expand_position",
    "find_best_actions",
    "generate_retrograde_tablebase",
    "pack_value",
    "predecessor_codes",
    "terminal_value",
    "unpack_value",
]
