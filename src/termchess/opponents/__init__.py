"""Opponent move sources behind the OpponentSource contract."""
from __future__ import annotations

import random

from ..config import SETTINGS, Settings
from .base import DEFAULT_DIFFICULTY, OpponentSource
from .random_opponent import RandomOpponent

OPPONENT_KINDS = ("engine", "llm", "random")


def create_opponent(kind: str | None = None, settings: Settings = SETTINGS, rng: random.Random | None = None, **kwargs) -> OpponentSource:
    """Build an opponent by kind ("engine" | "llm" | "random")."""
    kind = (kind or settings.opponent or "engine").lower()
    if kind == "random":
        return RandomOpponent(rng=rng)
    if kind == "llm":
        from .llm_opponent import LLMOpponent
        return LLMOpponent(model=kwargs.get("model") or settings.llm_model)
    if kind == "engine":
        from .engine_opponent import EngineOpponent
        return EngineOpponent(engine_path=kwargs.get("engine_path"), depth=kwargs.get("depth"))
    raise ValueError(f"Unknown opponent kind '{kind}'; expected one of {', '.join(OPPONENT_KINDS)}")


__all__ = ["OpponentSource", "RandomOpponent", "create_opponent", "DEFAULT_DIFFICULTY", "OPPONENT_KINDS"]
