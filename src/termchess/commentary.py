"""
Move commentary: short status lines derived from a move's properties.

Priority is opening > check > capture > castle > generic. Each category has a
fixed set of equivalent phrasings per voice ("stealth" terminal jargon or
plain "coach" advice); the phrase within a category is picked at random.
"""
from __future__ import annotations

import enum
import random
from typing import Optional

from .models import MoveRecord

STEALTH = "stealth"
COACH = "coach"


class Category(str, enum.Enum):
    OPENING = "opening"
    CHECK = "check"
    CAPTURE = "capture"
    CASTLE = "castle"
    GENERIC = "good"


PHRASES: dict[str, dict[Category, tuple[str, ...]]] = {
    STEALTH: {
        Category.OPENING: ("initializing protocols...", "loading standard config...", "handshake initiated..."),
        Category.CAPTURE: ("garbage collection executed.", "pid terminated.", "freeing memory address.", "process kill -9 sent."),
        Category.CHECK: ("interrupt signal received!", "warning: high latency detected.", "deadlock risk increasing."),
        Category.CASTLE: ("backup routine successful.", "data migration complete.", "secure shell established."),
        Category.GENERIC: ("optimization successful.", "efficiency +15%.", "cpu load nominal."),
    },
    COACH: {
        Category.OPENING: ("Let's control the center.", "Develop your pieces early.", "King safety is priority."),
        Category.CAPTURE: ("Material advantage gained.", "Good trade.", "Removing the defender."),
        Category.CHECK: ("Keep the pressure on!", "The King is under attack.", "Force a response."),
        Category.CASTLE: ("King is safe now.", "Rooks are connected.", "Good defensive measure."),
        Category.GENERIC: ("Solid move.", "Improving position.", "Nice find."),
    },
}

FALLBACK_LINES = {
    STEALTH: "engine offline: spawning fallback worker (random legal move).",
    COACH: "The opponent engine is unavailable; it played a random legal move.",
}


def _voice(voice: str | None) -> str:
    return voice if voice in PHRASES else STEALTH


def classify(move: MoveRecord, opening_name: Optional[str] = None) -> Category:
    if opening_name:
        return Category.OPENING
    if move.is_check:
        return Category.CHECK
    if move.is_capture:
        return Category.CAPTURE
    if move.is_castle:
        return Category.CASTLE
    return Category.GENERIC


def describe(move: MoveRecord, opening_name: Optional[str] = None, voice: str = STEALTH, rng: random.Random | None = None) -> str:
    """Return a one-line comment on the move in the given voice."""
    voice = _voice(voice)
    category = classify(move, opening_name)
    if category is Category.OPENING:
        return f"{'pattern match' if voice == STEALTH else 'Opening'}: {opening_name}"
    phrase = (rng or random).choice(PHRASES[voice][category])
    if category is Category.GENERIC and voice == STEALTH:
        return f"{phrase} [op:{move.san}]"
    return phrase


def narrate_opponent(move: MoveRecord, opening_name: Optional[str] = None) -> list[str]:
    """System-feed lines for an opponent move, opening line first when matched."""
    lines = []
    if opening_name:
        lines.append(f"init_protocol: {opening_name}")
    if move.is_check:
        lines.append("CRITICAL: DEADLOCK_RISK (check)")
    elif move.is_capture:
        lines.append(f"gc_collect: {move.san}")
    else:
        lines.append(f"exec_pid: {move.san}")
    return lines


def fallback_line(voice: str = STEALTH) -> str:
    return FALLBACK_LINES[_voice(voice)]
