"""
Agent-backed normalizer for free-text LLM replies.

Flow:
1) Quick regex to extract a UCI token from free-form text.
2) If not found and TERMCHESS_USE_GUARD_AGENT is on, ask a tiny guard Agent (Agents SDK) to return UCI or NONE.
3) Otherwise give up with "".
"""
from __future__ import annotations
import logging

from agents import Agent, ModelSettings, Runner

from .config import SETTINGS
from .move_validator import extract_uci

log = logging.getLogger("agent_normalizer")

INSTRUCTIONS = (
    "You receive a raw reply.\n"
    "Ensure it is a chess move and avoid any other text.\n"
    "Output ONLY the move in UCI (lowercase, include promotion letter if any). If no move is present, output the single word NONE."
)

move_guard = Agent(
    name="MoveGuard",
    instructions=INSTRUCTIONS,
    model=SETTINGS.llm_model,
    model_settings=ModelSettings(temperature=0.0),
)


async def _agent_suggest(raw_reply: str) -> str:
    user = f"RAW REPLY: {raw_reply}\nReturn only the move in UCI or NONE:"
    result = await Runner.run(move_guard, user)
    return (result.final_output or "").strip()


async def normalize_with_agent(raw_reply: str, use_agent: bool | None = None) -> str:
    """Return a lowercase UCI candidate from raw text, or "" when none is found."""
    cand = extract_uci(raw_reply)
    if cand:
        return cand
    if not (SETTINGS.use_guard_agent if use_agent is None else use_agent):
        return ""
    try:
        suggested = await _agent_suggest(raw_reply)
    except Exception:  # agents SDK surfaces provider errors of many types
        log.exception("Guard agent failed")
        return ""
    token = (suggested.split() or [""])[0].strip().lower()
    return "" if token in {"", "none"} else token
