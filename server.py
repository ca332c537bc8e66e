"""
Minimal Flask API that exposes TurnCoordinator games to a UI.

Endpoints:
- POST /api/games                      -> start a game (opponent/voice/difficulty in the JSON body)
- GET  /api/games/<id>                 -> snapshot, missions, stats
- POST /api/games/<id>/move            -> submit {"from": "e2", "to": "e4", "promotion": null}; ?wait=1 waits for the reply
- GET  /api/games/<id>/targets/<sq>    -> legal destination squares for a human piece
- POST /api/games/<id>/hint            -> ask the opponent source for a suggested move
- POST /api/games/<id>/reset           -> reset the game
- GET  /api/games/<id>/log?since=N     -> append-only commentary/system feed
- GET  /api/games/<id>/pgn             -> PGN export

All coordinator calls run on one background asyncio loop, so game state has a single writer.
Nothing is written to disk; inactive games are dropped after an hour.
"""
from __future__ import annotations

import asyncio
import logging
import threading
import time
import uuid
from typing import Dict, Optional

from flask import Flask, jsonify, request

from termchess.config import SETTINGS
from termchess.coordinator import TurnCoordinator
from termchess.errors import InvalidMove
from termchess.opponents import OPPONENT_KINDS, create_opponent
from termchess.opponents.base import DEFAULT_DIFFICULTY

logging.basicConfig(level=getattr(logging, SETTINGS.log_level, logging.INFO), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
log = logging.getLogger("server")

app = Flask(__name__)
games_lock = threading.Lock()

GAMES: Dict[str, dict] = {}
GAME_TTL_S = 3600
CALL_TIMEOUT_S = 120.0

LOOP = asyncio.new_event_loop()
threading.Thread(target=LOOP.run_forever, name="termchess-loop", daemon=True).start()


def _run(coro, timeout: float = CALL_TIMEOUT_S):
    """Run a coroutine on the game loop and block this request thread for its result."""
    return asyncio.run_coroutine_threadsafe(coro, LOOP).result(timeout)


async def _call(fn, *args):
    return fn(*args)


def _cleanup_stale_games(max_age_s: int = GAME_TTL_S) -> None:
    now = time.time()
    with games_lock:
        expired = [gid for gid, sess in GAMES.items() if now - sess["updated_at"] > max_age_s]
        dropped = [GAMES.pop(gid) for gid in expired]
    for sess in dropped:
        asyncio.run_coroutine_threadsafe(sess["opponent"].close(), LOOP)


def _session(game_id: str) -> Optional[dict]:
    with games_lock:
        sess = GAMES.get(game_id)
        if sess:
            sess["updated_at"] = time.time()
        return sess


def _serialize(sess: dict) -> dict:
    # call on the loop thread only, via _run(_call(_serialize, sess))
    coord: TurnCoordinator = sess["coordinator"]
    return {
        "game_id": sess["id"],
        "opponent": sess["opponent_kind"],
        "snapshot": coord.snapshot.to_dict(),
        "thinking": coord.opponent_in_flight(),
        "missions": [m.to_dict() for m in coord.missions],
        "all_missions_completed": coord.tracker.all_completed(),
        "stats": coord.stats.to_dict(),
        "log_size": len(coord.feed),
    }


@app.route("/api/games", methods=["POST"])
def create_game():
    _cleanup_stale_games()
    data = request.get_json(silent=True) or {}
    kind = str(data.get("opponent") or SETTINGS.opponent).lower()
    if kind not in OPPONENT_KINDS:
        return jsonify({"error": f"opponent must be one of {list(OPPONENT_KINDS)}"}), 400
    opponent = create_opponent(kind, model=data.get("model"))
    think_delay = data.get("think_delay")

    async def _build() -> TurnCoordinator:
        # created on the loop thread so its tasks and locks belong to LOOP
        return TurnCoordinator(
            opponent,
            difficulty=float(data.get("difficulty") or DEFAULT_DIFFICULTY),
            think_delay=float(think_delay) if think_delay is not None else None,
            voice=data.get("voice"),
        )

    coord = _run(_build())
    game_id = data.get("game_id") or f"game_{int(time.time())}_{uuid.uuid4().hex[:6]}"
    sess = {
        "id": game_id,
        "coordinator": coord,
        "opponent": opponent,
        "opponent_kind": kind,
        "created_at": time.time(),
        "updated_at": time.time(),
    }
    with games_lock:
        GAMES[game_id] = sess
    log.info("Started game %s vs %s", game_id, kind)
    return jsonify(_run(_call(_serialize, sess))), 201


@app.route("/api/games/<game_id>", methods=["GET"])
def get_game(game_id: str):
    sess = _session(game_id)
    if not sess:
        return jsonify({"error": "not found"}), 404
    return jsonify(_run(_call(_serialize, sess)))


@app.route("/api/games/<game_id>/move", methods=["POST"])
def submit_move(game_id: str):
    sess = _session(game_id)
    if not sess:
        return jsonify({"error": "not found"}), 404
    data = request.get_json(silent=True) or {}
    frm, to = data.get("from"), data.get("to")
    if not frm or not to:
        return jsonify({"error": "from and to are required"}), 400
    coord: TurnCoordinator = sess["coordinator"]
    request_wait = request.args.get("wait", "0") not in {"0", "false", ""}

    async def _move():
        try:
            record = coord.submit_human_move(str(frm), str(to), data.get("promotion"))
        except InvalidMove as e:
            return {"error": "invalid_move", "reason": str(e), "snapshot": coord.snapshot.to_dict()}
        if request_wait:
            await coord.wait_idle()
        body = _serialize(sess)
        body["human_move"] = record.to_dict()
        return body

    body = _run(_move())
    return jsonify(body), (400 if "error" in body else 200)


@app.route("/api/games/<game_id>/targets/<square>", methods=["GET"])
def legal_targets(game_id: str, square: str):
    sess = _session(game_id)
    if not sess:
        return jsonify({"error": "not found"}), 404
    targets = _run(_call(sess["coordinator"].request_legal_targets, square))
    return jsonify({"square": square, "targets": sorted(targets)})


@app.route("/api/games/<game_id>/hint", methods=["POST"])
def hint(game_id: str):
    sess = _session(game_id)
    if not sess:
        return jsonify({"error": "not found"}), 404
    suggestion = _run(sess["coordinator"].request_hint())
    return jsonify({"hint": {"from": suggestion[0], "to": suggestion[1]} if suggestion else None})


@app.route("/api/games/<game_id>/reset", methods=["POST"])
def reset_game(game_id: str):
    sess = _session(game_id)
    if not sess:
        return jsonify({"error": "not found"}), 404

    async def _reset():
        sess["coordinator"].reset()
        return _serialize(sess)

    return jsonify(_run(_reset()))


@app.route("/api/games/<game_id>/log", methods=["GET"])
def game_log(game_id: str):
    sess = _session(game_id)
    if not sess:
        return jsonify({"error": "not found"}), 404
    since = max(0, request.args.get("since", 0, type=int))
    feed = _run(_call(lambda: sess["coordinator"].feed))
    return jsonify({"entries": [e.to_dict() for e in feed[since:]], "next": len(feed)})


@app.route("/api/games/<game_id>/pgn", methods=["GET"])
def game_pgn(game_id: str):
    sess = _session(game_id)
    if not sess:
        return jsonify({"error": "not found"}), 404
    return app.response_class(_run(_call(sess["coordinator"].export_pgn)), mimetype="application/x-chess-pgn")


@app.after_request
def add_cors_headers(response):
    response.headers["Access-Control-Allow-Origin"] = request.headers.get("Origin", "*")
    response.headers["Access-Control-Allow-Credentials"] = "true"
    response.headers["Access-Control-Allow-Headers"] = "Content-Type, Authorization"
    response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
    # Prevent caching so the UI always sees the freshest snapshot
    response.headers["Cache-Control"] = "no-store, max-age=0"
    return response


@app.route("/api/<path:path>", methods=["OPTIONS"])
def cors_preflight(path: str):
    resp = app.make_response(("", 204))
    resp.headers["Access-Control-Allow-Origin"] = request.headers.get("Origin", "*")
    resp.headers["Access-Control-Allow-Credentials"] = "true"
    resp.headers["Access-Control-Allow-Headers"] = "Content-Type, Authorization"
    resp.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
    return resp


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=8000, debug=False)
