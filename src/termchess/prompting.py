"""
Prompt builders and config for LLM move requests using a modular template.

Callers supply system instructions and a template string with placeholders
that are substituted per turn.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Sequence

DEFAULT_SYSTEM = (
    "You are a chess opponent and a terse commentator. When asked for a move, pick one legal move "
    "for the side to move and answer with JSON only."
)
DEFAULT_TEMPLATE = """Board FEN: {FEN}
Move history (SAN): {SAN_HISTORY}
Side to move: {SIDE_TO_MOVE}
Play at roughly {RATING} rating strength.
Return JSON with "move" (one legal move in UCI, e.g. e7e5 or e7e8q) and "commentary" (one short sentence)."""

MOVE_SCHEMA = {
    "type": "object",
    "properties": {
        "move": {"type": "string"},
        "commentary": {"type": "string"},
    },
    "required": ["move", "commentary"],
    "additionalProperties": False,
}


@dataclass
class PromptConfig:
    """Configuration for shaping move prompts using a custom template."""

    system_instructions: str = DEFAULT_SYSTEM
    template: str = DEFAULT_TEMPLATE


def render_custom_prompt(template: str, values: Dict[str, str]) -> str:
    """Replace known placeholders in the template. Unknown tokens are left intact."""
    rendered = template or ""
    for key, val in values.items():
        rendered = rendered.replace(f"{{{key}}}", val)
    return rendered


def san_history_text(played_moves: Sequence[str]) -> str:
    """Numbered SAN move list: '1. e4 e5 2. Nf3'."""
    parts: list[str] = []
    for idx, san in enumerate(played_moves):
        if idx % 2 == 0:
            parts.append(f"{idx // 2 + 1}. {san}")
        else:
            parts.append(san)
    return " ".join(parts)


def build_move_messages(position: str, played_moves: Sequence[str], difficulty: float, cfg: PromptConfig | None = None) -> list[dict]:
    cfg = cfg or PromptConfig()
    side = "white" if (position.split()[1:2] or ["w"])[0] == "w" else "black"
    values = {
        "FEN": position,
        "SAN_HISTORY": san_history_text(played_moves) or "(none)",
        "SIDE_TO_MOVE": side,
        "RATING": str(int(difficulty)),
    }
    return [
        {"role": "system", "content": cfg.system_instructions},
        {"role": "user", "content": render_custom_prompt(cfg.template, values)},
    ]
