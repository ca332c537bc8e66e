from __future__ import annotations
"""
LLM client facade over an OpenAI-compatible chat endpoint (base URL configurable).

The rest of the code should not care which SDK is in use. This module sends
`model` + `messages` with a JSON-schema response format and returns raw text.
Missing credentials or repeated transport failures return "" instead of raising.
"""
from typing import Optional, List, Dict
import asyncio
import logging
import random

from openai import AsyncOpenAI, OpenAIError

from .config import SETTINGS

log = logging.getLogger("llm_client")

_CLIENT: AsyncOpenAI | None = None


def get_client() -> AsyncOpenAI | None:
    """Build the shared client on first use; None when no API key is configured."""
    global _CLIENT
    if _CLIENT is None:
        if not SETTINGS.llm_api_key:
            return None
        _CLIENT = AsyncOpenAI(api_key=SETTINGS.llm_api_key, base_url=SETTINGS.api_base or None)
    return _CLIENT


# ------------------------- Chat wrappers -------------------------
async def ask_for_move_json(messages: List[Dict[str, str]], schema: dict, model: Optional[str] = None) -> str:
    """Request one schema-constrained completion and return its text ("" on failure)."""
    client = get_client()
    if client is None:
        log.warning("No LLM API key configured (TERMCHESS_LLM_API_KEY / OPENAI_API_KEY)")
        return ""
    model = model or SETTINGS.llm_model
    delay = 0.5
    for attempt in range(SETTINGS.responses_retries + 1):
        try:
            rsp = await client.chat.completions.create(
                model=model,
                messages=messages,
                timeout=SETTINGS.responses_timeout_s,
                response_format={
                    "type": "json_schema",
                    "json_schema": {"name": "opponent_move", "schema": schema, "strict": True},
                },
            )
            text = _extract_text(rsp)
            if text:
                return text.strip()
        except OpenAIError:
            if attempt >= SETTINGS.responses_retries:
                log.exception("Chat request failed after %d attempts", attempt + 1)
                break
            sleep_s = delay * (2 ** attempt) * (0.8 + 0.4 * random.random())
            await asyncio.sleep(min(sleep_s, 10.0))
    return ""


def _extract_text(rsp) -> str:
    choices = getattr(rsp, "choices", None)
    if not choices:
        return ""
    content = getattr(choices[0].message, "content", None)
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for c in content:
            t = c.get("text") if isinstance(c, dict) else getattr(c, "text", None)
            if isinstance(t, str):
                parts.append(t)
        return "\n".join(parts)
    return ""
