"""Agents selecting actions for one side of a game."""

from .analyst import AnalystAgent
from .base import Agent, AgentFn, ensure_legal
from .console import ConsoleAgent
from .random_agent import RandomAgent
from .tablebase import TablebaseAgent

__all__ = [
    "Agent",
    "AgentFn",
    "AnalystAgent",
    "ConsoleAgent",
    "RandomAgent",
    "TablebaseAgent",
    "ensure_legal",
]
