"""
Value types shared by the coordinator, missions and commentary.

Snapshots, move records and replies are frozen; the coordinator replaces them
wholesale instead of mutating in place.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

WHITE = "white"
BLACK = "black"
HUMAN_SIDE = WHITE
OPPONENT_SIDE = BLACK

# (exclusive xp floor, level) in ascending order
LEVEL_THRESHOLDS: tuple[tuple[int, str], ...] = (
    (500, "Junior Dev"),
    (1500, "Senior Dev"),
)
DEFAULT_LEVEL = "Intern"


class TurnState(str, enum.Enum):
    AWAITING_HUMAN = "awaiting_human"
    AWAITING_OPPONENT = "awaiting_opponent"
    TERMINAL = "terminal"


class MissionCondition(str, enum.Enum):
    CONTROL_CENTER = "control_center"
    MOVE_PIECE = "move_piece"
    CASTLE = "castle"


@dataclass(frozen=True)
class MoveRecord:
    """One applied move as reported by the rules oracle."""

    from_square: str
    to_square: str
    promotion: Optional[str]
    piece: str  # lowercase piece letter: p n b r q k
    is_capture: bool
    is_check: bool
    is_castle: bool
    san: str
    uci: str

    def to_dict(self) -> dict:
        return {
            "from": self.from_square,
            "to": self.to_square,
            "promotion": self.promotion,
            "piece": self.piece,
            "capture": self.is_capture,
            "check": self.is_check,
            "castle": self.is_castle,
            "san": self.san,
            "uci": self.uci,
        }


@dataclass(frozen=True)
class GameSnapshot:
    position: str
    side_to_move: str
    is_check: bool
    is_checkmate: bool
    move_history: tuple[str, ...]
    last_move: Optional[MoveRecord]
    state: TurnState
    result: str = "*"
    termination_reason: Optional[str] = None

    @property
    def ply(self) -> int:
        return len(self.move_history)

    def to_dict(self) -> dict:
        return {
            "fen": self.position,
            "side_to_move": self.side_to_move,
            "is_check": self.is_check,
            "is_checkmate": self.is_checkmate,
            "history": list(self.move_history),
            "last_move": self.last_move.to_dict() if self.last_move else None,
            "state": self.state.value,
            "ply": self.ply,
            "result": self.result,
            "termination_reason": self.termination_reason,
        }


@dataclass(frozen=True)
class OpponentReply:
    move_token: str = ""
    commentary: Optional[str] = None
    opening_name: Optional[str] = None

    @classmethod
    def none(cls, opening_name: Optional[str] = None) -> "OpponentReply":
        """The "no answer" reply; callers fall back to a random legal move."""
        return cls(move_token="", opening_name=opening_name)

    @property
    def has_move(self) -> bool:
        return bool(self.move_token and self.move_token.strip())


@dataclass
class Mission:
    id: str
    title: str
    description: str
    xp_reward: int
    condition: MissionCondition
    target_piece: Optional[str] = None
    completed: bool = False

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "xp_reward": self.xp_reward,
            "condition": self.condition.value,
            "target_piece": self.target_piece,
            "completed": self.completed,
        }


def level_for_xp(xp: int) -> str:
    level = DEFAULT_LEVEL
    for floor, name in LEVEL_THRESHOLDS:
        if xp > floor:
            level = name
    return level


@dataclass(frozen=True)
class ProgressStats:
    level: str = DEFAULT_LEVEL
    xp: int = 0
    streak: int = 4
    tickets_closed: int = 0

    def to_dict(self) -> dict:
        return {"level": self.level, "xp": self.xp, "streak": self.streak, "tickets_closed": self.tickets_closed}


ANALYSIS = "analysis"
SYSTEM = "system"


@dataclass(frozen=True)
class LogEntry:
    source: str  # ANALYSIS | SYSTEM
    text: str
    time: str = field(default_factory=lambda: datetime.now().strftime("%H:%M:%S"))

    def to_dict(self) -> dict:
        return {"source": self.source, "text": self.text, "time": self.time}
