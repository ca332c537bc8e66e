from __future__ import annotations
"""LLM-backed opponent: one schema-constrained chat completion per move."""
import json
import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

from ..agent_normalizer import normalize_with_agent
from ..llm_client import ask_for_move_json
from ..models import OpponentReply
from ..prompting import MOVE_SCHEMA, PromptConfig, build_move_messages
from .base import DEFAULT_DIFFICULTY, OpponentSource

log = logging.getLogger("llm_opponent")


def parse_move_reply(raw: str) -> Optional[dict]:
    """Validate raw text against MOVE_SCHEMA; None when it does not conform."""
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        return None
    if not isinstance(data, dict):
        return None
    for key in MOVE_SCHEMA["required"]:
        if not isinstance(data.get(key), str):
            return None
    if set(data) - set(MOVE_SCHEMA["properties"]):
        return None
    return data


@dataclass
class LLMOpponent(OpponentSource):
    model: Optional[str] = None
    prompt_cfg: PromptConfig = field(default_factory=PromptConfig)
    name: str = "LLM"

    def label(self) -> str:
        return self.model or self.name

    async def request_move(self, position: str, played_moves: Sequence[str], difficulty: float = DEFAULT_DIFFICULTY) -> OpponentReply:
        opening = self.opening_for(position)
        messages = build_move_messages(position, played_moves, difficulty, self.prompt_cfg)
        raw = await ask_for_move_json(messages, MOVE_SCHEMA, model=self.model)
        if not raw:
            return OpponentReply.none(opening_name=opening)
        data = parse_move_reply(raw)
        if data is None:
            log.warning("LLM reply did not match schema: %r", raw[:140])
            token = await normalize_with_agent(raw)
            return OpponentReply(move_token=token, opening_name=opening)
        return OpponentReply(
            move_token=data["move"].strip(),
            commentary=data["commentary"].strip() or None,
            opening_name=opening,
        )
