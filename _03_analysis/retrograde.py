"""Retrograde analysis over every position reachable from the start.

Works in four phases:

1. Discover all positions reachable from the start positions by forward
   flood fill into a sharded position store, one BFS level at a time.
2. Classify finished positions from the mover's perspective
   (``Win(0)``, ``Lose(0)`` or ``Draw`` per the rule's judge).
3. Propagate values backward level by level with outstanding-successor
   counters:
   - A successor with ``Lose(d)`` makes every predecessor ``Win(d+1)``
   - The last outstanding ``Win(d)`` successor makes a predecessor ``Lose(d+1)``
4. Classify what is left as Draw.

Each level runs a pure phase (predecessor generation) and a sharded update
phase on the level executor; levels are separated by a barrier, so every
position finalized in level ``d`` has distance ``d + 1``.

Positions are identified by position codes, which fold board symmetries
and, for color-symmetric rules, the side to move.
"""

from __future__ import annotations

import logging
import random
import time
from collections import defaultdict
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path

import numpy as np

from _01_board.actions import Action
from _01_board.board import Board
from _01_board.canonical import decode_position, position_code
from _01_board.engine import backward_actions, iter_legal_actions, next_boards, perform
from _01_board.exceptions import ConsistencyError
from _01_board.pieces import Color
from _01_board.rules import GameRule
from _02_store.board_set import RawBoardSet, shard_of

from .board_value import DRAW, UNKNOWN, ActionTree, BoardValue, BoardValueKind, BoardValueTree
from .parallel import LevelExecutor, ParallelConfig, partition
from .search import ForwardSearch, terminal_value
from .storage import DISTANCE_SHIFT, MAX_DISTANCE, ValueTable

logger = logging.getLogger(__name__)

NO_COUNTER = -1


# Pure per-position work, importable by worker processes


def expand_position(code: int, rule: GameRule) -> tuple[int, BoardValue | None, tuple[int, ...]]:
    """Terminal value or distinct successor codes of one position.

    Returns:
        Tuple of (code, terminal_value, successor_codes); successors are
        empty for finished positions.
    """
    board, player = decode_position(code)
    terminal = terminal_value(board, player, rule)
    if terminal is not None:
        return code, terminal, ()
    symmetric = rule.color_symmetric
    children = {
        position_code(perform(board, action), player.opponent, symmetric)
        for action in iter_legal_actions(board, player, rule)
    }
    return code, None, tuple(children)


def expand_chunk(codes: list[int], rule: GameRule) -> list[tuple[int, BoardValue | None, tuple[int, ...]]]:
    return [expand_position(code, rule) for code in codes]


def predecessor_codes(code: int, rule: GameRule) -> set[int]:
    """Distinct codes of unfinished positions with an action reaching ``code``."""
    board, player = decode_position(code)
    mover = player.opponent
    symmetric = rule.color_symmetric
    return {position_code(prev, mover, symmetric) for _, prev in backward_actions(board, mover, rule)}


def predecessor_chunk(codes: list[int], rule: GameRule) -> list[tuple[int, tuple[int, ...]]]:
    return [(code, tuple(predecessor_codes(code, rule))) for code in codes]


@dataclass
class RetrogradeConfig:
    """Configuration for retrograde analysis."""

    store_actions: bool = True
    log_interval: int = 1
    verify: bool = False  # Distance consistency sweep after solving
    parallel: ParallelConfig = field(default_factory=ParallelConfig)

    @classmethod
    def from_dict(cls, data: dict) -> RetrogradeConfig:
        """Build from the ``solver`` section of a YAML config."""
        data = dict(data)
        parallel = ParallelConfig(**data.pop("parallel", {}))
        return cls(parallel=parallel, **data)


@dataclass
class RetrogradeStats:
    """Statistics from retrograde analysis."""

    total_positions: int = 0
    terminal_positions: int = 0
    solved_positions: int = 0
    stalemate_positions: int = 0
    win_positions: int = 0
    lose_positions: int = 0
    draw_positions: int = 0
    discovery_levels: int = 0
    iterations: int = 0
    max_distance: int = 0
    elapsed_seconds: float = 0.0
    positions_per_second: float = 0.0


class PositionValues:
    """Write-once values and outstanding-successor counters of indexed positions.

    Positions are indexed by their rank in a sorted code array; kinds,
    distances and counters are flat numpy arrays.
    """

    def __init__(self, codes: np.ndarray):
        self.codes = np.asarray(codes, dtype=np.uint64)
        self._index = {code: i for i, code in enumerate(self.codes.tolist())}
        n = len(self.codes)
        self.kinds = np.zeros(n, dtype=np.uint8)
        self.distances = np.zeros(n, dtype=np.uint32)
        self.pending = np.full(n, NO_COUNTER, dtype=np.int32)

    def __len__(self) -> int:
        return len(self.codes)

    def __contains__(self, code: object) -> bool:
        return code in self._index

    def index_of(self, code: int) -> int | None:
        return self._index.get(int(code))

    def code_at(self, i: int) -> int:
        return int(self.codes[i])

    def value_at(self, i: int) -> BoardValue:
        kind = BoardValueKind(int(self.kinds[i]))
        if kind in (BoardValueKind.WIN, BoardValueKind.LOSE):
            return BoardValue(kind, int(self.distances[i]))
        return BoardValue(kind)

    def value_of(self, code: int) -> BoardValue:
        i = self.index_of(code)
        return UNKNOWN if i is None else self.value_at(i)

    def set_value(self, i: int, value: BoardValue) -> None:
        """Finalize a position.

        Raises:
            ConsistencyError: If the position already has a value.
        """
        if self.kinds[i] != BoardValueKind.UNKNOWN:
            raise ConsistencyError(
                f"Position {self.code_at(i):#x} already finalized as {self.value_at(i)}, "
                f"cannot write {value}"
            )
        self.kinds[i] = value.kind
        self.distances[i] = value.distance or 0

    def set_pending(self, i: int, count: int) -> None:
        self.pending[i] = count

    def on_lose_successor(self, i: int, distance: int) -> bool:
        """A successor was finalized as ``Lose(distance)``.

        Returns:
            True if this position was newly finalized as a win.
        """
        if self.kinds[i] != BoardValueKind.UNKNOWN:
            return False
        self.set_value(i, BoardValue.win(distance + 1))
        return True

    def on_win_successor(self, i: int, distance: int) -> bool:
        """A successor was finalized as ``Win(distance)``.

        Returns:
            True if this was the last outstanding successor.

        Raises:
            ConsistencyError: If the position has no outstanding successor.
        """
        if self.kinds[i] != BoardValueKind.UNKNOWN:
            return False
        if self.pending[i] <= 0:
            raise ConsistencyError(
                f"Position {self.code_at(i):#x} has no outstanding successor "
                f"(counter {int(self.pending[i])})"
            )
        self.pending[i] -= 1
        if self.pending[i] == 0:
            self.set_value(i, BoardValue.lose(distance + 1))
            return True
        return False

    def unknown_indices(self) -> np.ndarray:
        return np.flatnonzero(self.kinds == BoardValueKind.UNKNOWN)

    def indices_with(self, kind: BoardValueKind, distance: int | None = None) -> np.ndarray:
        mask = self.kinds == kind
        if distance is not None:
            mask &= self.distances == distance
        return np.flatnonzero(mask)

    def count(self, kind: BoardValueKind) -> int:
        return int(np.count_nonzero(self.kinds == kind))


class RetrogradeSolver:
    """Solve every position reachable from the start positions of a rule.

    Values are from the perspective of the side to move. Witness actions
    are stored per position code, in the frame of the decoded canonical
    board; ``best_actions`` maps them onto arbitrary boards.
    """

    def __init__(self, rule: GameRule | None = None, config: RetrogradeConfig | None = None):
        self.rule = rule or GameRule()
        self.config = config or RetrogradeConfig()
        self._positions = RawBoardSet(partition_bits=self.config.parallel.partition_bits)
        self._values: PositionValues | None = None
        self._witnesses: dict[int, tuple[int, ...]] = {}
        self._stats = RetrogradeStats()
        self._executor: LevelExecutor | None = None

    # Phases

    def solve(self, starts: Iterable[tuple[Board, Color]] | None = None) -> RetrogradeStats:
        """Discover, classify and propagate.

        Args:
            starts: (board, side to move) pairs; defaults to the rule's
                initial board with its first player.

        Returns:
            Solve statistics.

        Raises:
            ConsistencyError: If propagation contradicts itself.
        """
        start_time = time.time()
        self._stats = RetrogradeStats()
        self._witnesses = {}
        logger.info(
            "Starting retrograde analysis (field %d, workers %s)",
            self.rule.field_size,
            self.config.parallel.num_workers,
        )

        with LevelExecutor(self.config.parallel) as executor:
            self._executor = executor
            try:
                logger.info("Phase 1: Discovering positions...")
                expansions = self._discover(starts)

                logger.info("Phase 2: Classifying terminal positions...")
                frontier = self._classify(expansions)
                del expansions

                logger.info("Phase 3: Propagating values backward...")
                self._propagate(frontier)

                logger.info("Phase 4: Classifying remaining positions as draws...")
                self._classify_remaining_as_draw()
            finally:
                self._executor = None

        values = self._require_values()
        self._stats.win_positions = values.count(BoardValueKind.WIN)
        self._stats.lose_positions = values.count(BoardValueKind.LOSE)
        self._stats.draw_positions = values.count(BoardValueKind.DRAW)
        self._stats.solved_positions = len(values)
        self._stats.elapsed_seconds = time.time() - start_time
        self._stats.positions_per_second = (
            self._stats.total_positions / self._stats.elapsed_seconds
            if self._stats.elapsed_seconds > 0
            else 0
        )
        logger.info(
            "Retrograde complete: %d positions (%d win, %d lose, %d draw) in %.1fs (%.1f pos/s)",
            self._stats.total_positions,
            self._stats.win_positions,
            self._stats.lose_positions,
            self._stats.draw_positions,
            self._stats.elapsed_seconds,
            self._stats.positions_per_second,
        )

        if self.config.verify:
            report = self.verify()
            if report["violations"]:
                raise ConsistencyError(f"{report['violations']} positions fail the distance check")

        return self._stats

    def start_codes(self, starts: Iterable[tuple[Board, Color]] | None = None) -> list[int]:
        if starts is None:
            starts = [(self.rule.initial_board, self.rule.first_player)]
        symmetric = self.rule.color_symmetric
        return [position_code(board, player, symmetric) for board, player in starts]

    def discover(self, starts: Iterable[tuple[Board, Color]] | None = None) -> RawBoardSet:
        """Reachable position codes only, without solving."""
        with LevelExecutor(self.config.parallel) as executor:
            self._executor = executor
            try:
                self._discover(starts)
            finally:
                self._executor = None
        return self._positions

    def _discover(
        self, starts: Iterable[tuple[Board, Color]] | None
    ) -> dict[int, tuple[BoardValue | None, int]]:
        executor = self._require_executor()
        self._positions = RawBoardSet(partition_bits=self.config.parallel.partition_bits)
        expansions: dict[int, tuple[BoardValue | None, int]] = {}

        frontier = [code for code in self.start_codes(starts) if self._positions.insert(code)]
        level = 0
        while frontier:
            results = executor.map_chunks(expand_chunk, frontier, self.rule)

            children: list[int] = []
            for code, terminal, successors in results:
                expansions[code] = (terminal, len(successors))
                children.extend(successors)

            buckets = partition(children, self._positions.partition_bits)
            frontier = executor.run_sharded(self._insert_shard, buckets)

            level += 1
            if level % self.config.log_interval == 0:
                logger.info(
                    "Discovery level %d: expanded %d, +%d new, %d total",
                    level,
                    len(results),
                    len(frontier),
                    len(self._positions),
                )

        self._stats.discovery_levels = level
        self._stats.total_positions = len(self._positions)
        logger.info("Discovered %d unique positions in %d levels", len(self._positions), level)
        return expansions

    def _insert_shard(self, shard: int, codes: list[int]) -> list[int]:
        return [code for code in codes if self._positions.insert(code)]

    def _classify(self, expansions: dict[int, tuple[BoardValue | None, int]]) -> list[int]:
        values = PositionValues(self._positions.to_array())
        terminal_count = 0
        stalemates = 0
        frontier = []
        for code, (terminal, successors) in expansions.items():
            i = values.index_of(code)
            if terminal is not None:
                values.set_value(i, terminal)
                terminal_count += 1
                if terminal.is_decisive:
                    frontier.append(code)
            else:
                values.set_pending(i, successors)
                if successors == 0:
                    stalemates += 1
        self._values = values

        self._stats.terminal_positions = terminal_count
        self._stats.stalemate_positions = stalemates
        logger.info(
            "Classified %d terminal positions: %d WIN, %d LOSS, %d DRAW (%d without actions)",
            terminal_count,
            values.count(BoardValueKind.WIN),
            values.count(BoardValueKind.LOSE),
            values.count(BoardValueKind.DRAW),
            stalemates,
        )
        return sorted(frontier)

    def _propagate(self, frontier: list[int]) -> None:
        executor = self._require_executor()
        values = self._require_values()
        distance = 0
        solved = self._stats.terminal_positions

        while frontier:
            edges = executor.map_chunks(predecessor_chunk, frontier, self.rule)

            buckets: dict[int, list[tuple[int, bool]]] = defaultdict(list)
            bits = self._positions.partition_bits
            for code, predecessors in edges:
                successor_lost = values.value_of(code).is_lose
                for pred in predecessors:
                    i = values.index_of(pred)
                    if i is None:
                        # Predecessor not reachable from the start positions
                        continue
                    buckets[shard_of(pred, bits)].append((i, successor_lost))

            finalized = executor.run_sharded(partial(self._apply_updates, distance=distance), dict(buckets))
            frontier = sorted(values.code_at(i) for i in finalized)
            if self.config.store_actions and frontier:
                self._record_witnesses(frontier)

            distance += 1
            solved += len(frontier)
            if frontier:
                self._stats.max_distance = distance
            if distance % self.config.log_interval == 0:
                logger.info(
                    "Level %d: +%d solved, %d/%d total (%.1f%%)",
                    distance,
                    len(frontier),
                    solved,
                    self._stats.total_positions,
                    100 * solved / max(1, self._stats.total_positions),
                )

        self._stats.iterations = distance

    def _apply_updates(self, shard: int, updates: list[tuple[int, bool]], distance: int) -> list[int]:
        values = self._require_values()
        finalized = []
        for i, successor_lost in updates:
            if successor_lost:
                done = values.on_lose_successor(i, distance)
            else:
                done = values.on_win_successor(i, distance)
            if done:
                finalized.append(i)
        return finalized

    def _classify_remaining_as_draw(self) -> None:
        values = self._require_values()
        remaining = values.unknown_indices()
        codes = []
        for i in remaining.tolist():
            values.set_value(i, DRAW)
            codes.append(values.code_at(i))
        if len(remaining) > 0:
            logger.info("Classified %d remaining positions as DRAW", len(remaining))
        if self.config.store_actions:
            self._record_witnesses(codes)

    # Witnesses

    def _witness_actions(self, code: int) -> tuple[Action, ...]:
        """Actions from the decoded canonical board reaching the successor target."""
        values = self._require_values()
        value = values.value_of(code)
        if value.is_terminal or value.is_unknown:
            return ()
        target = DRAW if value.is_draw else value.successor_target()
        board, player = decode_position(code)
        symmetric = self.rule.color_symmetric
        return tuple(
            action
            for action, child in next_boards(board, player, self.rule)
            if values.value_of(position_code(child, player.opponent, symmetric)) == target
        )

    def _record_witnesses(self, codes: list[int]) -> None:
        executor = self._executor
        if executor is None:
            found = [self._witness_actions(code) for code in codes]
        else:
            found = executor.map_threads(self._witness_actions, codes)
        for code, actions in zip(codes, found):
            if actions:
                self._witnesses[code] = tuple(action.to_code() for action in actions)

    # Queries

    def _require_values(self) -> PositionValues:
        if self._values is None:
            raise RuntimeError("Solver has not been run")
        return self._values

    def _require_executor(self) -> LevelExecutor:
        if self._executor is None:
            raise RuntimeError("No level executor is active")
        return self._executor

    @property
    def positions(self) -> RawBoardSet:
        return self._positions

    def __len__(self) -> int:
        return len(self._positions)

    def __contains__(self, code: object) -> bool:
        return code in self._positions

    def lookup(self, code: int) -> BoardValue:
        """Value of a position code; Unknown for codes never discovered."""
        if self._values is None:
            return UNKNOWN
        return self._values.value_of(code)

    def value_of(self, board: Board, player: Color) -> BoardValue:
        return self.lookup(position_code(board, player, self.rule.color_symmetric))

    def action_tree(self, code: int) -> ActionTree:
        """Stored witnesses of ``code``, in the frame of its decoded board."""
        actions = self._witnesses.get(code, ())
        return ActionTree(self.lookup(code), tuple(Action.from_code(a) for a in actions))

    def items(self) -> Iterator[tuple[int, BoardValue]]:
        values = self._require_values()
        for i in range(len(values)):
            yield values.code_at(i), values.value_at(i)

    def best_actions(self, board: Board, player: Color) -> list[Action]:
        """Actions on ``board`` that keep the solved value of the position."""
        value = self.value_of(board, player)
        if value.is_unknown or value.is_terminal:
            return []
        symmetric = self.rule.color_symmetric
        return [
            action
            for action, child in next_boards(board, player, self.rule)
            if self.lookup(position_code(child, player.opponent, symmetric)).propagated() == value
        ]

    def witness_tree(self, board: Board, player: Color, depth: int) -> BoardValueTree:
        """Optimal lines from ``board``, cut after ``depth`` plies."""
        node = BoardValueTree(board, player, self.value_of(board, player))
        if depth <= 0 or not node.value.is_decisive:
            return node
        for action in self.best_actions(board, player):
            child = perform(board, action)
            node.children[action] = self.witness_tree(child, player.opponent, depth - 1)
        return node

    def get_stats(self) -> RetrogradeStats:
        return self._stats

    # Checks

    def verify(self, limit: int = 20) -> dict[str, int]:
        """Recheck every value against its successors' values.

        Win(n) needs a Lose(n-1) successor and none faster; Lose(n) needs
        only Win successors, the slowest being Win(n-1); a non-terminal Draw
        needs no Lose successor and, unless it has no actions, a Draw one.
        """
        values = self._require_values()
        symmetric = self.rule.color_symmetric
        violations = 0
        for i in range(len(values)):
            value = values.value_at(i)
            if value.is_terminal:
                continue
            board, player = decode_position(values.code_at(i))
            if board.is_finished(self.rule.field_size):
                continue
            successors = [
                values.value_of(position_code(child, player.opponent, symmetric)).propagated()
                for _, child in next_boards(board, player, self.rule)
            ]
            best = max(successors) if successors else DRAW
            if best != value:
                violations += 1
                if violations <= limit:
                    logger.warning(
                        "Position %#x stored as %s, successors give %s", values.code_at(i), value, best
                    )
        logger.info("Verified %d positions: %d violations", len(values), violations)
        return {"checked": len(values), "violations": violations}

    def validate_against_forward(
        self,
        sample_size: int = 100,
        depth: int = 6,
        seed: int = 42,
    ) -> dict[str, int]:
        """Check sampled values against a depth-limited forward search.

        Args:
            sample_size: Number of positions to validate
            depth: Forward search depth
            seed: Random seed for sampling

        Returns:
            Dict with match/mismatch counts
        """
        values = self._require_values()
        rng = random.Random(seed)
        sample = rng.sample(range(len(values)), min(sample_size, len(values)))
        search = ForwardSearch(self.rule)

        matches = 0
        mismatches = 0
        for i in sample:
            board, player = decode_position(values.code_at(i))
            value = values.value_at(i)
            if value in search.evaluate(board, player, depth):
                matches += 1
            else:
                mismatches += 1
                logger.debug("Mismatch at %#x: retro=%s", values.code_at(i), value)

        return {"matches": matches, "mismatches": mismatches, "total": len(sample)}

    # Export

    def to_value_table(self) -> ValueTable:
        values = self._require_values()
        return ValueTable(values.codes.copy(), _pack_all(values))

    def save_positions(self, path: Path | str, with_count: bool = True) -> int:
        """Write the discovered position codes in the position-store format."""
        return self._positions.save_file(path, with_count=with_count)


def _pack_all(values: PositionValues) -> np.ndarray:
    if len(values) and int(values.distances.max()) > MAX_DISTANCE:
        raise ValueError(f"Distance exceeds {MAX_DISTANCE}")
    packed = values.kinds.astype(np.uint16) | (values.distances.astype(np.uint16) << DISTANCE_SHIFT)
    return packed.astype(np.uint16)


def generate_retrograde_tablebase(
    rule: GameRule | None = None,
    output_dir: Path | str | None = None,
    config: RetrogradeConfig | None = None,
    validate: bool = False,
) -> tuple[RetrogradeSolver, RetrogradeStats]:
    """Solve a rule and optionally save positions and values.

    Args:
        rule: Game rule (default rule if None)
        output_dir: Directory receiving ``positions.bin`` and ``values.bin``
        config: Solver configuration
        validate: Whether to validate against forward search

    Returns:
        Tuple of (solver, stats)
    """
    solver = RetrogradeSolver(rule, config)
    stats = solver.solve()

    if validate:
        validation = solver.validate_against_forward()
        logger.info(
            "Validation: %d matches, %d mismatches of %d",
            validation["matches"],
            validation["mismatches"],
            validation["total"],
        )

    if output_dir is not None:
        out = Path(output_dir)
        out.mkdir(parents=True, exist_ok=True)
        solver.save_positions(out / "positions.bin")
        solver.to_value_table().save(out / "values.bin")

    return solver, stats


__all__ = [
    "PositionValues",
    "RetrogradeConfig",
    "RetrogradeSolver",
    "RetrogradeStats",
    "expand_position",
    "generate_retrograde_tablebase",
    "predecessor_codes",
]
