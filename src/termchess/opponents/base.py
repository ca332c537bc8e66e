"""
Opponent move source contract.

Every source answers request_move() with an OpponentReply and never raises for
expected failures (engine missing, network down, malformed reply); those
resolve to OpponentReply.none() so the coordinator can fall back.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional, Sequence

from .. import openings
from ..models import OpponentReply

DEFAULT_DIFFICULTY = 650  # rating-like strength knob


class OpponentSource(ABC):
    name: str = "Opponent"

    @abstractmethod
    async def request_move(self, position: str, played_moves: Sequence[str], difficulty: float = DEFAULT_DIFFICULTY) -> OpponentReply:
        """Return the reply for the side to move in position."""
        ...

    async def close(self) -> None:
        return

    @staticmethod
    def opening_for(position: str) -> Optional[str]:
        return openings.lookup(position)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"
