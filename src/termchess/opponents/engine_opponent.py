"""
Stockfish-backed opponent over the async UCI protocol.

- Resolves engine binary path from: explicit parameter, SETTINGS.stockfish_path/env, or system PATH.
- One persistent engine process per session, started lazily on the first request.
- request_move(): searches to a depth derived from difficulty and returns the bestmove token.
- Any launch failure, crash or timeout resolves to OpponentReply.none().
"""
from __future__ import annotations
import asyncio
import logging
import os
import shutil
from typing import Optional, Sequence

import chess
import chess.engine

from ..config import SETTINGS
from ..models import OpponentReply
from .base import DEFAULT_DIFFICULTY, OpponentSource

log = logging.getLogger("engine_opponent")

RATING_PER_DEPTH = 130
MAX_DEPTH = 20


def depth_for_difficulty(difficulty: float | None, default: int = 5) -> int:
    """Map a rating-like difficulty to search depth (650 -> 5)."""
    if not difficulty or difficulty <= 0:
        return default
    return max(1, min(MAX_DEPTH, int(difficulty) // RATING_PER_DEPTH))


def resolve_engine_path(engine_path: str | None = None) -> Optional[str]:
    candidate = engine_path or SETTINGS.stockfish_path or "stockfish"
    resolved = shutil.which(candidate) or (candidate if os.path.isfile(candidate) else None)
    return resolved or shutil.which("stockfish")


class EngineOpponent(OpponentSource):
    name = "Stockfish"

    def __init__(self, engine_path: str | None = None, depth: int | None = None, timeout_s: float | None = None):
        self.engine_path = resolve_engine_path(engine_path)
        self.depth = depth
        self.timeout_s = timeout_s if timeout_s is not None else SETTINGS.engine_timeout_s
        self._transport: asyncio.SubprocessTransport | None = None
        self._engine: chess.engine.UciProtocol | None = None
        self._lock = asyncio.Lock()
        self._failed = False

    async def _ensure_engine(self) -> chess.engine.UciProtocol | None:
        if self._engine is not None:
            return self._engine
        if self._failed:
            return None
        if not self.engine_path:
            log.warning("Stockfish engine not found; set STOCKFISH_PATH or install stockfish on PATH")
            self._failed = True
            return None
        try:
            self._transport, self._engine = await chess.engine.popen_uci(self.engine_path)
        except (OSError, chess.engine.EngineError):
            log.exception("Failed launching engine at '%s'", self.engine_path)
            self._failed = True
            return None
        log.info("Engine ready: %s", self._engine.id.get("name", self.engine_path))
        return self._engine

    async def request_move(self, position: str, played_moves: Sequence[str], difficulty: float = DEFAULT_DIFFICULTY) -> OpponentReply:
        opening = self.opening_for(position)
        depth = self.depth or depth_for_difficulty(difficulty, SETTINGS.engine_depth)
        async with self._lock:
            engine = await self._ensure_engine()
            if engine is None:
                return OpponentReply.none(opening_name=opening)
            try:
                board = chess.Board(fen=position)
                result = await asyncio.wait_for(engine.play(board, chess.engine.Limit(depth=depth)), self.timeout_s)
            except asyncio.TimeoutError:
                log.warning("Engine timed out after %.1fs at depth %d", self.timeout_s, depth)
                await self._drop_engine()
                return OpponentReply.none(opening_name=opening)
            except (ValueError, chess.engine.EngineError, chess.engine.EngineTerminatedError):
                log.exception("Engine request failed")
                await self._drop_engine()
                return OpponentReply.none(opening_name=opening)
        if result.move is None:
            return OpponentReply.none(opening_name=opening)
        return OpponentReply(move_token=result.move.uci(), opening_name=opening)

    async def _drop_engine(self) -> None:
        # A timed out or crashed engine is restarted on the next request.
        engine, self._engine = self._engine, None
        if engine is not None:
            try:
                await asyncio.wait_for(engine.quit(), 2.0)
            except (asyncio.TimeoutError, chess.engine.EngineError, chess.engine.EngineTerminatedError):
                if self._transport is not None:
                    self._transport.close()
        self._transport = None

    async def close(self) -> None:
        await self._drop_engine()
