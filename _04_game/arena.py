"""Play games between two agents and collect per-game records."""
from __future__ import annotations

import csv
import json
import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import asdict, dataclass
from pathlib import Path

from _01_board.pieces import Color
from _01_board.rules import GameRule

from .agents.base import Agent
from .game import Game

logger = logging.getLogger(__name__)

DEFAULT_MAX_TURNS = 200


@dataclass
class SeriesConfig:
    """Configuration describing a head-to-head agent series."""

    games: int
    agent_a: Agent
    agent_b: Agent
    rule: GameRule | None = None
    alternate_start: bool = True  # Swap colors every other game
    max_turns: int = DEFAULT_MAX_TURNS  # Unfinished after this many turns
    collect_actions: bool = False


@dataclass
class GameRecord:
    """Telemetry for a single game."""

    index: int
    red_agent: int  # 0 = agent_a, 1 = agent_b
    turns: int
    status: str
    winner: int | None  # Agent index
    finished: bool
    actions: tuple[str, ...] | None = None


@dataclass
class SeriesSummary:
    """Aggregated statistics for a series of games."""

    games: int
    wins: tuple[int, int]
    draws: int
    unfinished: int
    average_turns: float


@dataclass
class SeriesResult:
    """Verbose result containing both summary statistics and per-game data."""

    summary: SeriesSummary
    records: list[GameRecord]


class Arena:
    """Runs one game between a red and a green agent."""

    def __init__(
        self,
        agent_red: Agent,
        agent_green: Agent,
        game: Game | None = None,
        output_fn: Callable[[str], None] = print,
    ) -> None:
        self.agents = {Color.RED: agent_red, Color.GREEN: agent_green}
        self.game = game or Game()
        self._output = output_fn

    def step(self) -> None:
        """Let the side to move act once."""
        game = self.game
        agent = self.agents[game.player]
        legal = game.legal_actions().to_list()
        action = agent.select_action(game.board, game.player, legal)
        game.perform(action)

    def auto_play(self, verbose: bool = False, max_turns: int | None = None) -> Game:
        """Play until the game ends or ``max_turns`` actions were made."""
        game = self.game
        for agent in self.agents.values():
            agent.start_game(game.board)

        while game.is_ongoing() and (max_turns is None or game.turns < max_turns):
            if verbose:
                self._output(str(game))
            self.step()

        for agent in self.agents.values():
            agent.end_game(game.board)

        if verbose:
            self._output("~~~~~~ Game Finished! ~~~~~~")
            self._output(f"Total {game.turns} turns")
            self._output(str(game))
            winner = game.winner()
            if winner is not None:
                self._output(f"---> {winner.name} ({self.agents[winner].name}) wins!")
            elif game.is_ongoing():
                self._output("---> Stopped unfinished.")
            else:
                self._output("---> Draw!")
        logger.debug("Game over after %d turns: %s", game.turns, game.status.value)
        return game

    def __str__(self) -> str:
        return (
            f"Red Agent  : {self.agents[Color.RED].name}\n"
            f"Green Agent: {self.agents[Color.GREEN].name}\n{self.game}"
        )


def play_series(config: SeriesConfig) -> SeriesResult:
    """Play a block of games and collect telemetry."""

    if config.games < 1:
        raise ValueError("games must be at least 1")

    rule = config.rule or GameRule()
    agents: Sequence[Agent] = (config.agent_a, config.agent_b)
    records: list[GameRecord] = []

    for offset in range(config.games):
        starter = (offset % 2) if config.alternate_start else 0
        first = rule.first_player
        by_color = {first: agents[starter], first.opponent: agents[1 - starter]}
        arena = Arena(by_color[Color.RED], by_color[Color.GREEN], Game(rule))
        game = arena.auto_play(max_turns=config.max_turns)

        winner_color = game.winner()
        winner = None
        if winner_color is not None:
            winner = starter if winner_color is first else 1 - starter
        records.append(
            GameRecord(
                index=offset,
                red_agent=starter if first is Color.RED else 1 - starter,
                turns=game.turns,
                status=game.status.value,
                winner=winner,
                finished=not game.is_ongoing(),
                actions=(
                    tuple(turn.action.to_notation() for turn in game.history)
                    if config.collect_actions
                    else None
                ),
            )
        )

    summary = summarize(records)
    logger.info(
        "Series %s vs %s: %d-%d, %d draws, %d unfinished",
        config.agent_a.name,
        config.agent_b.name,
        summary.wins[0],
        summary.wins[1],
        summary.draws,
        summary.unfinished,
    )
    return SeriesResult(summary=summary, records=records)


def summarize(records: Iterable[GameRecord]) -> SeriesSummary:
    records = list(records)
    total_games = len(records)
    if total_games == 0:
        raise ValueError("No records provided for summary")

    wins = [0, 0]
    draws = 0
    unfinished = 0
    total_turns = 0
    for record in records:
        if not record.finished:
            unfinished += 1
        elif record.winner is None:
            draws += 1
        else:
            wins[record.winner] += 1
        total_turns += record.turns

    return SeriesSummary(
        games=total_games,
        wins=(wins[0], wins[1]),
        draws=draws,
        unfinished=unfinished,
        average_turns=total_turns / total_games,
    )


def export_csv(path: Path, records: Iterable[GameRecord]) -> None:
    """Write per-game telemetry to CSV."""

    rows = list(records)
    with path.open("w", newline="") as handle:
        writer = csv.writer(handle)
        writer.writerow(["game", "red_agent", "turns", "status", "winner"])
        for record in rows:
            writer.writerow(
                [
                    record.index,
                    record.red_agent,
                    record.turns,
                    record.status,
                    record.winner if record.winner is not None else "none",
                ]
            )


def export_json(path: Path, records: Iterable[GameRecord]) -> None:
    """Write per-game telemetry to JSON."""

    data = [asdict(record) for record in records]
    path.write_text(json.dumps(data, indent=2))


__all__ = [
    "Arena",
    "GameRecord",
    "SeriesConfig",
    "SeriesResult",
    "SeriesSummary",
    "export_csv",
    "export_json",
    "play_series",
    "summarize",
]
