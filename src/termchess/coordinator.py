"""
TurnCoordinator: the single writer for one human-vs-opponent game.

- Owns the live RulesOracle and replaces the GameSnapshot wholesale after every commit or reset.
- Human moves are validated and applied synchronously; when it becomes the opponent's
  turn, one asyncio task per ply asks the OpponentSource for a move.
- The opponent request and the think delay run concurrently; the coordinator waits for both.
- Replies are applied only if (generation, ply) still match; otherwise they are dropped.
- Unusable or missing replies fall back to a uniformly random legal move (seedable rng).
- Every committed move feeds the commentary log and the mission tracker.
"""
from __future__ import annotations
import asyncio
import logging
import random
from typing import Callable, Optional

from . import commentary
from .config import SETTINGS, Settings
from .errors import IllegalMove, InvalidMove
from .missions import MissionTracker, apply_progress
from .models import (
    ANALYSIS,
    HUMAN_SIDE,
    OPPONENT_SIDE,
    SYSTEM,
    GameSnapshot,
    LogEntry,
    Mission,
    MoveRecord,
    OpponentReply,
    ProgressStats,
    TurnState,
)
from .move_validator import parse_move_token
from .opponents.base import DEFAULT_DIFFICULTY, OpponentSource
from .rules import RulesOracle

BOOT_LINES = (
    "booting kernel v5.15.0-generic...",
    "mounting file systems... done.",
    "starting workflow_optimizer_pro service...",
    "ready. waiting for user input.",
)
RESET_LINE = "reboot sequence initiated. memory cleared."
ALL_RESOLVED_LINE = "All tickets resolved. Good work."

SnapshotListener = Callable[[GameSnapshot], None]


class TurnCoordinator:
    def __init__(
        self,
        opponent: OpponentSource,
        difficulty: float = DEFAULT_DIFFICULTY,
        think_delay: float | None = None,
        voice: str | None = None,
        rng: random.Random | None = None,
        settings: Settings = SETTINGS,
    ):
        self.log = logging.getLogger("coordinator")
        self.opponent = opponent
        self.difficulty = difficulty
        self.think_delay = settings.think_delay_s if think_delay is None else max(0.0, think_delay)
        self.voice = voice or settings.voice
        self.rng = rng or random.Random()
        self.tracker = MissionTracker()
        self.stats = ProgressStats()
        self._feed: list[LogEntry] = []
        self._listeners: list[SnapshotListener] = []
        self._generation = 0
        self._in_flight: Optional[asyncio.Task] = None
        self._background: set[asyncio.Task] = set()
        self._oracle = RulesOracle()
        self._snapshot = self._build_snapshot(None)
        for line in BOOT_LINES:
            self._emit(SYSTEM, line)

    # ---------------- Read side -----------------
    @property
    def snapshot(self) -> GameSnapshot:
        return self._snapshot

    @property
    def state(self) -> TurnState:
        return self._snapshot.state

    @property
    def missions(self) -> list[Mission]:
        return self.tracker.missions

    @property
    def feed(self) -> tuple[LogEntry, ...]:
        return tuple(self._feed)

    @property
    def generation(self) -> int:
        return self._generation

    def opponent_in_flight(self) -> bool:
        return self._in_flight is not None and not self._in_flight.done()

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register a snapshot observer; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)
        return _unsubscribe

    def request_legal_targets(self, square: str) -> frozenset[str]:
        if self._snapshot.state is not TurnState.AWAITING_HUMAN:
            return frozenset()
        try:
            if self._oracle.owner_of(square) != HUMAN_SIDE:
                return frozenset()
            return self._oracle.legal_targets(square)
        except IllegalMove:
            return frozenset()

    def export_pgn(self) -> str:
        return self._oracle.pgn(white="Human", black=getattr(self.opponent, "name", "Opponent"))

    # ---------------- Human turn -----------------
    def submit_human_move(self, from_square: str, to_square: str, promotion: str | None = None) -> MoveRecord:
        """Validate and apply a human move; schedules the opponent turn when one is due."""
        snap = self._snapshot
        if snap.state is TurnState.TERMINAL:
            raise InvalidMove("game_over")
        if snap.state is not TurnState.AWAITING_HUMAN:
            raise InvalidMove("not_human_turn")
        try:
            if self._oracle.owner_of(from_square) != HUMAN_SIDE:
                raise InvalidMove(f"no {HUMAN_SIDE} piece on {from_square}")
            if (to_square or "").strip().lower() not in self._oracle.legal_targets(from_square):
                raise InvalidMove(f"illegal move {from_square}{to_square}")
            record = self._oracle.apply_move(from_square, to_square, promotion)
        except IllegalMove as exc:
            raise InvalidMove(str(exc)) from exc

        self._commit(record)
        self._emit(ANALYSIS, commentary.describe(record, voice=self.voice, rng=self.rng))
        self._evaluate_missions(record, HUMAN_SIDE)
        self._announce_terminal()
        self._schedule_opponent()
        return record

    # ---------------- Opponent turn -----------------
    def _schedule_opponent(self) -> None:
        if self._snapshot.state is not TurnState.AWAITING_OPPONENT or self.opponent_in_flight():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop: the caller drives the turn with play_opponent_turn().
            return
        self._start_opponent_task(loop)

    def _start_opponent_task(self, loop: asyncio.AbstractEventLoop) -> asyncio.Task:
        task = loop.create_task(self._opponent_turn(self._generation, self._snapshot))
        self._in_flight = task
        self._background.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if self._in_flight is task:
            self._in_flight = None
        if not task.cancelled() and task.exception() is not None:
            self.log.error("Opponent turn crashed", exc_info=task.exception())

    async def play_opponent_turn(self) -> Optional[MoveRecord]:
        """Run the opponent turn now. A no-op while one is already in flight."""
        if self._snapshot.state is not TurnState.AWAITING_OPPONENT:
            return None
        if self.opponent_in_flight():
            self.log.debug("Opponent request already in flight at ply %d; trigger suppressed", self._snapshot.ply)
            return None
        task = self._start_opponent_task(asyncio.get_running_loop())
        return await task

    async def wait_idle(self) -> None:
        """Wait until no opponent request (current or stale) is outstanding."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
            await asyncio.sleep(0)

    async def _request(self, position: str, played: tuple[str, ...]) -> OpponentReply:
        try:
            return await self.opponent.request_move(position, list(played), self.difficulty)
        except Exception:  # any source failure degrades to "no answer"
            self.log.exception("Opponent source %r failed", self.opponent)
            return OpponentReply.none()

    async def _opponent_turn(self, generation: int, snap: GameSnapshot) -> Optional[MoveRecord]:
        ply = snap.ply
        reply, _ = await asyncio.gather(
            self._request(snap.position, snap.move_history),
            asyncio.sleep(self.think_delay),
        )
        if self._is_stale(generation, ply):
            self.log.debug("Discarding stale opponent reply for generation %d ply %d", generation, ply)
            return None

        record = None
        if reply.has_move:
            parsed = parse_move_token(reply.move_token, snap.position)
            if parsed.get("ok"):
                record = self._oracle.apply_uci(parsed["uci"])
            else:
                self.log.warning("Opponent token %r unusable (%s); falling back", reply.move_token, parsed.get("reason"))
        else:
            self.log.warning("Opponent returned no move at ply %d; falling back", ply)
        if record is None:
            record = self._fallback_move()
            if record is None:
                return None
            self._emit(SYSTEM, commentary.fallback_line(self.voice))

        self._commit(record)
        for line in commentary.narrate_opponent(record, reply.opening_name):
            self._emit(SYSTEM, line)
        if reply.commentary:
            self._emit(SYSTEM, reply.commentary)
        self._evaluate_missions(record, OPPONENT_SIDE)
        self._announce_terminal()
        return record

    def _is_stale(self, generation: int, ply: int) -> bool:
        snap = self._snapshot
        return generation != self._generation or snap.ply != ply or snap.state is not TurnState.AWAITING_OPPONENT

    def _fallback_move(self) -> Optional[MoveRecord]:
        legal = self._oracle.legal_moves()
        if not legal:
            return None
        return self._oracle.apply(self.rng.choice(legal))

    # ---------------- Hint -----------------
    async def request_hint(self) -> Optional[tuple[str, str]]:
        """Ask the opponent source for a move in the human's position; (from, to) or None."""
        snap = self._snapshot
        if snap.state is not TurnState.AWAITING_HUMAN:
            return None
        generation = self._generation
        self._emit(SYSTEM, "running_diagnostics...")
        reply = await self._request(snap.position, snap.move_history)
        if generation != self._generation or self._snapshot.position != snap.position:
            return None
        parsed = parse_move_token(reply.move_token, snap.position) if reply.has_move else {"ok": False}
        if not parsed.get("ok"):
            self._emit(SYSTEM, "diagnostics_failed: engine_busy")
            return None
        uci = parsed["uci"]
        self._emit(SYSTEM, f"diagnostics: suggested patch {uci[:2]} -> {uci[2:4]}")
        return uci[:2], uci[2:4]

    # ---------------- Reset -----------------
    def reset(self) -> None:
        """Start over: fresh board, reopened missions, default stats; late replies are ignored."""
        self._generation += 1
        self._in_flight = None
        self._oracle = RulesOracle()
        self.tracker.reset()
        self.stats = ProgressStats()
        self._publish(self._build_snapshot(None))
        self._emit(SYSTEM, RESET_LINE)

    # ---------------- Internals -----------------
    def _build_snapshot(self, last_move: Optional[MoveRecord]) -> GameSnapshot:
        oracle = self._oracle
        side = oracle.side_to_move()
        if oracle.is_game_over():
            state = TurnState.TERMINAL
        elif side == OPPONENT_SIDE:
            state = TurnState.AWAITING_OPPONENT
        else:
            state = TurnState.AWAITING_HUMAN
        return GameSnapshot(
            position=oracle.current_position(),
            side_to_move=side,
            is_check=oracle.is_in_check(),
            is_checkmate=oracle.is_checkmate(),
            move_history=tuple(oracle.move_history_notation()),
            last_move=last_move,
            state=state,
            result=oracle.result(),
            termination_reason=oracle.termination_reason(),
        )

    def _commit(self, record: MoveRecord) -> None:
        self._publish(self._build_snapshot(record))
        self.log.debug("Ply %d %s %s", self._snapshot.ply, record.uci, record.san)

    def _publish(self, snapshot: GameSnapshot) -> None:
        self._snapshot = snapshot
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:  # observers must not break the game
                self.log.exception("Snapshot listener failed")

    def _emit(self, source: str, text: str) -> None:
        self._feed.append(LogEntry(source=source, text=text))
        self.log.info("[%s] %s", source, text)

    def _evaluate_missions(self, record: MoveRecord, side: str) -> None:
        xp_delta, newly = self.tracker.on_move_committed(record, side)
        if not newly:
            return
        before = self.stats.level
        self.stats = apply_progress(self.stats, xp_delta, newly)
        for mission in newly:
            self._emit(SYSTEM, f"TICKET_CLOSED: {mission.title} (+{mission.xp_reward} uptime)")
        if self.stats.level != before:
            self._emit(SYSTEM, f"role updated: {before} -> {self.stats.level}")
        if self.tracker.all_completed():
            self._emit(SYSTEM, ALL_RESOLVED_LINE)

    def _announce_terminal(self) -> None:
        snap = self._snapshot
        if snap.state is not TurnState.TERMINAL:
            return
        if snap.is_checkmate:
            self._emit(SYSTEM, f"SUCCESS: PROCESS COMPLETED ({snap.result})")
        else:
            self._emit(SYSTEM, f"process halted: {snap.termination_reason or 'game_over'} ({snap.result})")
