"""
Mission tracking: one-shot training goals evaluated against the learner's latest move.

- MISSION_TEMPLATES is the fixed list every game (and every reset) starts from.
- MissionTracker.on_move_committed() checks only the most recent move, only for
  the human side, and completes each mission at most once.
- apply_progress() folds the resulting xp into ProgressStats and recomputes the level.
"""
from __future__ import annotations

import logging
from dataclasses import replace

from .models import HUMAN_SIDE, Mission, MissionCondition, MoveRecord, ProgressStats, level_for_xp

log = logging.getLogger("missions")

CENTER_SQUARES = frozenset({"e4", "d4", "e5", "d5"})

MISSION_TEMPLATES: tuple[Mission, ...] = (
    Mission(
        id="m1",
        title="Init Protocol",
        description="Land a piece on e4, d4, e5 or d5 to claim center memory.",
        xp_reward=50,
        condition=MissionCondition.CONTROL_CENTER,
    ),
    Mission(
        id="m2",
        title="Deploy Assets",
        description="Develop a Knight (Lead) to f3 or c3.",
        xp_reward=75,
        condition=MissionCondition.MOVE_PIECE,
        target_piece="n",
    ),
    Mission(
        id="m3",
        title="Secure Kernel",
        description="Castle (O-O) to protect the CEO.",
        xp_reward=100,
        condition=MissionCondition.CASTLE,
    ),
)


def condition_met(mission: Mission, move: MoveRecord) -> bool:
    if mission.condition is MissionCondition.CONTROL_CENTER:
        return move.to_square in CENTER_SQUARES
    if mission.condition is MissionCondition.MOVE_PIECE:
        return bool(mission.target_piece) and move.piece == mission.target_piece
    if mission.condition is MissionCondition.CASTLE:
        return move.is_castle
    return False


class MissionTracker:
    def __init__(self, templates: tuple[Mission, ...] = MISSION_TEMPLATES):
        self._templates = templates
        self.missions: list[Mission] = []
        self.reset()

    def reset(self) -> None:
        self.missions = [replace(m, completed=False) for m in self._templates]

    def all_completed(self) -> bool:
        return all(m.completed for m in self.missions)

    def on_move_committed(self, move: MoveRecord, side_that_moved: str) -> tuple[int, list[Mission]]:
        """Return (xp_delta, newly_completed) for this move."""
        if side_that_moved != HUMAN_SIDE:
            return 0, []
        xp_delta = 0
        newly: list[Mission] = []
        for mission in self.missions:
            if mission.completed or not condition_met(mission, move):
                continue
            mission.completed = True
            xp_delta += mission.xp_reward
            newly.append(mission)
            log.debug("Mission %s completed by %s (+%d xp)", mission.id, move.san, mission.xp_reward)
        return xp_delta, newly


def apply_progress(stats: ProgressStats, xp_delta: int, completed: list[Mission]) -> ProgressStats:
    if xp_delta <= 0 and not completed:
        return stats
    xp = stats.xp + max(0, xp_delta)
    return replace(stats, xp=xp, level=level_for_xp(xp), tickets_closed=stats.tickets_closed + len(completed))
