import argparse
import asyncio
import json
import logging
import random

import chess

from termchess.config import SETTINGS
from termchess.coordinator import TurnCoordinator
from termchess.errors import InvalidMove
from termchess.models import TurnState
from termchess.opponents import OPPONENT_KINDS, create_opponent
from termchess.opponents.base import DEFAULT_DIFFICULTY

HELP = "Commands: a move like e2e4 (e7e8q to promote), 'targets e2', 'hint', 'stats', 'reset', 'pgn', 'quit'."


def load_json_config(path: str) -> dict:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError) as e:
        logging.getLogger("play_one").error("Failed to read config %s: %s", path, e)
        return {}


def print_new_feed(coord: TurnCoordinator, seen: int) -> int:
    feed = coord.feed
    for entry in feed[seen:]:
        author = "audit" if entry.source == "analysis" else "root"
        print(f"[{entry.time}] {author}: {entry.text}")
    return len(feed)


def print_board(coord: TurnCoordinator) -> None:
    snap = coord.snapshot
    print()
    print(chess.Board(snap.position))
    flags = []
    if snap.is_checkmate:
        flags.append("SUCCESS: PROCESS COMPLETED")
    elif snap.is_check:
        flags.append("WARN: DEADLOCK DETECTED")
    stats = coord.stats
    print(f"role: {stats.level} | tickets: {stats.tickets_closed} | uptime: {stats.xp}ms " + " ".join(flags))


async def play(coord: TurnCoordinator, pgn_out: str | None) -> None:
    seen = print_new_feed(coord, 0)
    print(HELP)
    while True:
        if coord.state is TurnState.AWAITING_OPPONENT:
            if coord.opponent_in_flight():
                await coord.wait_idle()
            else:
                await coord.play_opponent_turn()
        seen = print_new_feed(coord, seen)
        print_board(coord)
        if coord.state is TurnState.TERMINAL:
            print(f"Game over: {coord.snapshot.result} ({coord.snapshot.termination_reason}). Type 'reset' or 'quit'.")

        raw = (await asyncio.to_thread(input, "$ ")).strip()
        cmd = raw.lower()
        if not cmd:
            continue
        if cmd in {"quit", "exit", "q"}:
            break
        if cmd == "reset":
            coord.reset()
        elif cmd == "hint":
            await coord.request_hint()
        elif cmd == "stats":
            for m in coord.missions:
                print(f"  [{'x' if m.completed else ' '}] {m.title}: {m.description} (+{m.xp_reward}xp)")
            if coord.tracker.all_completed():
                print("  All tickets resolved. Good work.")
        elif cmd == "pgn":
            print(coord.export_pgn())
        elif cmd.startswith("targets"):
            square = cmd.split()[-1]
            print("  " + (" ".join(sorted(coord.request_legal_targets(square))) or "(none)"))
        elif len(cmd) in (4, 5):
            try:
                coord.submit_human_move(cmd[:2], cmd[2:4], cmd[4:] or None)
            except InvalidMove as e:
                print(f"  rejected: {e}")
        else:
            print(HELP)
        seen = print_new_feed(coord, seen)

    if pgn_out:
        with open(pgn_out, "w", encoding="utf-8") as f:
            f.write(coord.export_pgn())


async def main(args, cfg_dict: dict) -> None:
    def pick(key, default=None):
        v = getattr(args, key, None)
        if v is not None:
            return v
        return cfg_dict.get(key, default)

    seed = pick("seed")
    rng = random.Random(seed) if seed is not None else None
    opponent = create_opponent(
        pick("opponent", SETTINGS.opponent),
        rng=rng,
        model=pick("model"),
        engine_path=pick("engine_path"),
        depth=pick("depth"),
    )
    coord = TurnCoordinator(
        opponent,
        difficulty=pick("difficulty", DEFAULT_DIFFICULTY),
        think_delay=pick("think_delay"),
        voice=pick("voice"),
        rng=rng,
    )
    try:
        await play(coord, pick("pgn_out"))
    finally:
        await coord.wait_idle()
        await opponent.close()


if __name__ == "__main__":
    ap = argparse.ArgumentParser(description="Play White against an engine, an LLM, or a random mover.")
    ap.add_argument("--config", default=None, help="Optional JSON config file to load defaults from.")
    ap.add_argument("--opponent", choices=OPPONENT_KINDS, default=None, help="Opponent type")
    ap.add_argument("--model", default=None, help="LLM model name (llm opponent)")
    ap.add_argument("--engine-path", default=None, help="Path to a UCI engine binary (engine opponent)")
    ap.add_argument("--depth", type=int, default=None, help="Fixed engine search depth (overrides --difficulty)")
    ap.add_argument("--difficulty", type=float, default=None, help="Rating-like strength, e.g. 650")
    ap.add_argument("--voice", choices=["stealth", "coach"], default=None, help="Commentary voice")
    ap.add_argument("--think-delay", type=float, default=None, help="Minimum opponent thinking time in seconds")
    ap.add_argument("--seed", type=int, default=None, help="Seed for fallback moves and phrase choice")
    ap.add_argument("--pgn-out", default=None, help="Optional path to write PGN at exit")
    ap.add_argument("--log-level", default=None, help="Python logging level (e.g., INFO, DEBUG)")
    args = ap.parse_args()

    cfg_dict = load_json_config(args.config) if args.config else {}
    log_level = (args.log_level or cfg_dict.get("log_level") or "WARNING").upper()
    logging.basicConfig(level=getattr(logging, log_level, logging.WARNING), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    asyncio.run(main(args, cfg_dict))
