"""Playing Tokyo Doves: game state, agents and the arena."""

from . import agents, arena, game

__all__ = ["agents", "arena", "game"]
