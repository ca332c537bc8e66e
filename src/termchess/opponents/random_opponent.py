"""
RandomOpponent: picks a uniformly random legal move.

- Offline baseline and deterministic test double (pass a seeded random.Random).
- No engine resources; close() is a no-op.
"""
from __future__ import annotations
import random
from typing import Sequence

import chess

from ..models import OpponentReply
from .base import DEFAULT_DIFFICULTY, OpponentSource


class RandomOpponent(OpponentSource):
    name = "Random"

    def __init__(self, rng: random.Random | None = None):
        self.rng = rng or random.Random()

    async def request_move(self, position: str, played_moves: Sequence[str], difficulty: float = DEFAULT_DIFFICULTY) -> OpponentReply:
        try:
            board = chess.Board(fen=position)
        except ValueError:
            return OpponentReply.none()
        legal = list(board.legal_moves)
        if not legal:
            return OpponentReply.none()
        mv = self.rng.choice(legal)
        return OpponentReply(move_token=mv.uci(), opening_name=self.opening_for(position))
