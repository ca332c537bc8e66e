"""
Configuration and environment loading for termchess.

- Loads settings.yml (YAML) from repo root if present; falls back to environment variables.
- Exposes SETTINGS with keys used across the project (API keys, opponent selection, tuning knobs).
"""
from dataclasses import dataclass
import logging
import os
from typing import Any, Callable

import yaml
from dotenv import load_dotenv

load_dotenv()

log = logging.getLogger("config")


def _repo_root() -> str:
    # this file: src/termchess/config.py → repo root is two levels up
    return os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))


def _load_yaml(path: str) -> dict:
    if not os.path.isfile(path):
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError):
        log.exception("Failed to read %s; using environment only", path)
        return {}
    return data if isinstance(data, dict) else {}


_cfg = _load_yaml(os.environ.get("TERMCHESS_SETTINGS", os.path.join(_repo_root(), "settings.yml")))


def _get(name: str, default: Any, cast: Callable[[Any], Any] | None = None) -> Any:
    if name in _cfg:
        val = _cfg[name]
        return cast(val) if cast else val
    env = os.environ.get(name)
    if env is not None:
        return cast(env) if cast else env
    return default


def _flag(val: Any) -> bool:
    return str(val).strip().lower() not in {"0", "false", "no", "off", ""}


@dataclass(frozen=True)
class Settings:
    # Auth / endpoint (OpenAI-compatible wire format)
    llm_api_key: str
    api_base: str
    llm_model: str

    # Tuning knobs
    responses_timeout_s: float
    responses_retries: int
    use_guard_agent: bool

    # Local engine
    stockfish_path: str
    engine_depth: int
    engine_timeout_s: float

    # Gameplay
    opponent: str  # "engine" | "llm" | "random"
    voice: str  # "stealth" | "coach"
    think_delay_s: float
    log_level: str


SETTINGS = Settings(
    llm_api_key=_get("TERMCHESS_LLM_API_KEY", _get("OPENAI_API_KEY", "")),
    api_base=_get("TERMCHESS_LLM_BASE_URL", ""),
    llm_model=_get("TERMCHESS_LLM_MODEL", "gpt-4o-mini"),
    responses_timeout_s=float(_get("TERMCHESS_RESPONSES_TIMEOUT_S", 30.0, cast=float)),
    responses_retries=int(_get("TERMCHESS_RESPONSES_RETRIES", 2, cast=int)),
    use_guard_agent=bool(_get("TERMCHESS_USE_GUARD_AGENT", False, cast=_flag)),
    stockfish_path=_get("STOCKFISH_PATH", ""),
    engine_depth=int(_get("TERMCHESS_ENGINE_DEPTH", 5, cast=int)),
    engine_timeout_s=float(_get("TERMCHESS_ENGINE_TIMEOUT_S", 10.0, cast=float)),
    opponent=str(_get("TERMCHESS_OPPONENT", "engine")).lower(),
    voice=str(_get("TERMCHESS_VOICE", "stealth")).lower(),
    think_delay_s=float(_get("TERMCHESS_THINK_DELAY_S", 1.0, cast=float)),
    log_level=str(_get("TERMCHESS_LOG_LEVEL", "INFO")).upper(),
)
