"""
Move parsing/validation helpers for opponent replies.

Opponents answer with a compact coordinate token (e2e4, e7e8q). Replies are
tolerated in a few common shapes: code fences, surrounding chatter, upper
case, 0-0 castling spellings, and as a last resort SAN (Nf3, O-O).
"""
from __future__ import annotations

import re
from typing import TypedDict

import chess

UCI_RE = re.compile(r"^[a-h][1-8][a-h][1-8][qrbn]?$", re.I)
UCI_SEARCH_RE = re.compile(r"\b([a-h][1-8][a-h][1-8][qrbn]?)\b", re.I)
CASTLE_ZERO = {"0-0": "O-O", "0-0-0": "O-O-O", "o-o": "O-O", "o-o-o": "O-O-O"}


class ParsedMove(TypedDict, total=False):
    ok: bool
    uci: str
    san: str
    reason: str


def _strip_code_fence(text: str) -> str:
    """Remove simple ``` fences if present."""
    text = text.strip()
    if text.startswith("```") and text.endswith("```"):
        inner = text.split("\n", 1)
        if len(inner) == 2:
            return inner[1].rsplit("\n", 1)[0].strip()
    return text


def _primary_token(text: str) -> str:
    tokens = _strip_code_fence(text).replace("\n", " ").split()
    return tokens[0].strip(".,;:!") if tokens else ""


def extract_uci(text: str) -> str | None:
    """Return the first coordinate-looking token in free text, lowercased."""
    m = UCI_SEARCH_RE.search(text or "")
    return m.group(1).lower() if m else None


def parse_move_token(raw_text: str, fen: str) -> ParsedMove:
    """Parse an opponent token against the position; never raises."""
    board = chess.Board(fen=fen)
    cleaned = _strip_code_fence(raw_text or "")
    token = _primary_token(cleaned)
    if not token:
        return {"ok": False, "reason": "empty_reply"}

    lowered = token.lower()
    if lowered in CASTLE_ZERO:
        token = CASTLE_ZERO[lowered]
    elif not UCI_RE.fullmatch(lowered):
        found = extract_uci(cleaned)
        if found:
            lowered = found

    if UCI_RE.fullmatch(lowered):
        try:
            mv = chess.Move.from_uci(lowered)
        except ValueError:
            return {"ok": False, "reason": "bad_uci_format"}
        if mv not in board.legal_moves and mv.promotion is None:
            # bare pawn push to the last rank promotes to a queen
            queen = chess.Move(mv.from_square, mv.to_square, promotion=chess.QUEEN)
            if queen in board.legal_moves:
                mv = queen
        if mv not in board.legal_moves:
            return {"ok": False, "reason": "illegal_move", "uci": lowered}
        return {"ok": True, "uci": mv.uci(), "san": board.san(mv)}

    try:
        mv = board.parse_san(token)
    except ValueError:
        return {"ok": False, "reason": "bad_san"}
    return {"ok": True, "uci": mv.uci(), "san": board.san(mv)}


__all__ = [
    "parse_move_token",
    "extract_uci",
    "ParsedMove",
]
