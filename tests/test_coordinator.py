import asyncio
import random
import unittest

import chess

from termchess import commentary
from termchess.coordinator import ALL_RESOLVED_LINE, RESET_LINE, TurnCoordinator
from termchess.errors import InvalidMove
from termchess.models import ANALYSIS, BLACK, WHITE, OpponentReply, TurnState
from termchess.opponents.base import OpponentSource


def _as_reply(item) -> OpponentReply:
    return item if isinstance(item, OpponentReply) else OpponentReply(move_token=item)


class ScriptedOpponent(OpponentSource):
    """Answers with canned replies in order; "no answer" once the script runs out."""

    name = "Scripted"

    def __init__(self, replies=()):
        self.replies = [_as_reply(r) for r in replies]
        self.positions = []

    async def request_move(self, position, played_moves, difficulty=650):
        self.positions.append(position)
        if not self.replies:
            return OpponentReply.none()
        return self.replies.pop(0)


class GatedOpponent(OpponentSource):
    """Holds every reply until the gate opens."""

    name = "Gated"

    def __init__(self, reply="e7e5"):
        self.reply = _as_reply(reply)
        self.gate = asyncio.Event()
        self.calls = 0

    async def request_move(self, position, played_moves, difficulty=650):
        self.calls += 1
        await self.gate.wait()
        return self.reply


class BrokenOpponent(OpponentSource):
    name = "Broken"

    async def request_move(self, position, played_moves, difficulty=650):
        raise RuntimeError("transport exploded")


class SlowOpponent(OpponentSource):
    """Answers e7e5 after a fixed latency."""

    name = "Slow"

    def __init__(self, latency):
        self.latency = latency

    async def request_move(self, position, played_moves, difficulty=650):
        await asyncio.sleep(self.latency)
        return OpponentReply(move_token="e7e5")


def _texts(coord):
    return [entry.text for entry in coord.feed]


def _coordinator(opponent, seed=1, voice="stealth"):
    return TurnCoordinator(opponent, think_delay=0, voice=voice, rng=random.Random(seed))


class HumanMoveTests(unittest.TestCase):
    def test_rejections_leave_snapshot_untouched(self):
        opp = ScriptedOpponent()
        coord = _coordinator(opp)
        before = coord.snapshot
        for frm, to in (("e3", "e4"), ("e7", "e5"), ("e2", "e5"), ("z9", "e4"), ("", "e4")):
            with self.subTest(move=frm + to):
                with self.assertRaises(InvalidMove):
                    coord.submit_human_move(frm, to)
                self.assertIs(coord.snapshot, before)
        with self.assertRaises(InvalidMove):
            coord.submit_human_move("e2", None)
        self.assertIs(coord.snapshot, before)
        self.assertEqual(opp.positions, [])

    def test_legal_targets_only_for_own_pieces(self):
        coord = _coordinator(ScriptedOpponent())
        self.assertEqual(coord.request_legal_targets("g1"), frozenset({"f3", "h3"}))
        self.assertEqual(coord.request_legal_targets("g8"), frozenset())
        self.assertEqual(coord.request_legal_targets("e4"), frozenset())
        self.assertEqual(coord.request_legal_targets("zz"), frozenset())

    def test_without_loop_caller_drives_opponent_turn(self):
        coord = _coordinator(ScriptedOpponent(["e7e5"]))
        seen = []

        def _broken(snapshot):
            raise RuntimeError("observer bug")

        coord.subscribe(_broken)
        unsubscribe = coord.subscribe(seen.append)
        with self.assertLogs("coordinator", level="ERROR"):
            record = coord.submit_human_move("e2", "e4")
        self.assertEqual(record.san, "e4")
        self.assertEqual(coord.state, TurnState.AWAITING_OPPONENT)
        self.assertEqual(seen[-1].ply, 1)
        self.assertFalse(coord.opponent_in_flight())

        with self.assertLogs("coordinator", level="ERROR"):
            reply = asyncio.run(coord.play_opponent_turn())
        self.assertEqual(reply.uci, "e7e5")
        self.assertEqual(coord.state, TurnState.AWAITING_HUMAN)
        self.assertEqual(seen[-1].ply, 2)

        unsubscribe()
        coord.reset()
        self.assertEqual(seen[-1].ply, 2)


class OpponentTurnTests(unittest.IsolatedAsyncioTestCase):
    async def test_first_move_closes_ticket_and_opponent_replies(self):
        coord = _coordinator(ScriptedOpponent(["e7e5"]))
        coord.submit_human_move("e2", "e4")

        self.assertEqual(coord.state, TurnState.AWAITING_OPPONENT)
        self.assertEqual(coord.snapshot.side_to_move, BLACK)
        self.assertEqual(coord.stats.xp, 50)
        self.assertTrue(coord.missions[0].completed)
        self.assertEqual(coord.feed[-1].text, "TICKET_CLOSED: Init Protocol (+50 uptime)")
        self.assertEqual(coord.feed[-2].source, ANALYSIS)

        await coord.wait_idle()
        snap = coord.snapshot
        self.assertEqual(snap.state, TurnState.AWAITING_HUMAN)
        self.assertEqual(snap.move_history, ("e4", "e5"))
        self.assertEqual(snap.last_move.uci, "e7e5")
        self.assertEqual(coord.feed[-1].text, "exec_pid: e5")
        self.assertEqual(coord.stats.xp, 50)

    async def test_opponent_commentary_and_opening_are_logged(self):
        reply = OpponentReply(move_token="e7e5", commentary="Mirroring you.", opening_name="King's Pawn Opening")
        coord = _coordinator(ScriptedOpponent([reply]))
        coord.submit_human_move("e2", "e4")
        await coord.wait_idle()
        self.assertEqual(
            _texts(coord)[-3:],
            ["init_protocol: King's Pawn Opening", "exec_pid: e5", "Mirroring you."],
        )

    async def test_human_blocked_while_opponent_thinks(self):
        opp = GatedOpponent()
        coord = _coordinator(opp)
        coord.submit_human_move("e2", "e4")
        pending = coord.snapshot
        self.assertTrue(coord.opponent_in_flight())

        with self.assertRaises(InvalidMove) as ctx:
            coord.submit_human_move("d2", "d4")
        self.assertEqual(str(ctx.exception), "not_human_turn")
        self.assertIs(coord.snapshot, pending)
        self.assertEqual(coord.request_legal_targets("d2"), frozenset())
        self.assertIsNone(await coord.request_hint())

        opp.gate.set()
        await coord.wait_idle()
        self.assertEqual(coord.snapshot.ply, 2)

    async def test_second_trigger_is_a_no_op(self):
        opp = GatedOpponent()
        coord = _coordinator(opp)
        coord.submit_human_move("e2", "e4")
        await asyncio.sleep(0)
        self.assertIsNone(await coord.play_opponent_turn())
        opp.gate.set()
        await coord.wait_idle()
        self.assertEqual(opp.calls, 1)
        self.assertEqual(coord.snapshot.move_history, ("e4", "e5"))

    async def test_empty_reply_falls_back_to_random_legal_move(self):
        coord = _coordinator(ScriptedOpponent([""]))
        before = chess.Board(coord.snapshot.position)
        coord.submit_human_move("e2", "e4")
        board = chess.Board(coord.snapshot.position)
        await coord.wait_idle()

        snap = coord.snapshot
        self.assertEqual(snap.ply, 2)
        self.assertEqual(snap.state, TurnState.AWAITING_HUMAN)
        self.assertIn(chess.Move.from_uci(snap.last_move.uci), board.legal_moves)
        self.assertNotEqual(before.fen(), snap.position)
        self.assertIn(commentary.fallback_line("stealth"), _texts(coord))

    async def test_illegal_reply_falls_back(self):
        coord = _coordinator(ScriptedOpponent(["g1f3"]))
        coord.submit_human_move("e2", "e4")
        await coord.wait_idle()
        snap = coord.snapshot
        self.assertEqual(snap.ply, 2)
        self.assertNotEqual(snap.last_move.uci, "g1f3")
        self.assertEqual(chess.Board(snap.position).turn, chess.WHITE)

    async def test_fallback_is_deterministic_for_a_seed(self):
        replies = []
        for _ in range(2):
            coord = _coordinator(ScriptedOpponent([""]), seed=42)
            coord.submit_human_move("d2", "d4")
            await coord.wait_idle()
            replies.append(coord.snapshot.last_move.uci)
        self.assertEqual(replies[0], replies[1])

    async def test_source_exception_degrades_to_fallback(self):
        coord = _coordinator(BrokenOpponent())
        coord.submit_human_move("e2", "e4")
        with self.assertLogs("coordinator", level="WARNING"):
            await coord.wait_idle()
        self.assertEqual(coord.snapshot.ply, 2)
        self.assertEqual(coord.state, TurnState.AWAITING_HUMAN)

    async def test_reply_after_reset_is_discarded(self):
        opp = GatedOpponent()
        coord = _coordinator(opp)
        coord.submit_human_move("e2", "e4")
        await asyncio.sleep(0)
        coord.reset()
        self.assertEqual(coord.generation, 1)

        opp.gate.set()
        await coord.wait_idle()
        snap = coord.snapshot
        self.assertEqual(snap.ply, 0)
        self.assertEqual(snap.state, TurnState.AWAITING_HUMAN)
        self.assertEqual(snap.position, chess.STARTING_FEN)
        self.assertEqual(coord.feed[-1].text, RESET_LINE)

    async def test_old_reply_does_not_land_in_new_game(self):
        opp = GatedOpponent()
        coord = _coordinator(opp)
        coord.submit_human_move("e2", "e4")
        await asyncio.sleep(0)
        coord.reset()
        coord.submit_human_move("e2", "e4")

        opp.gate.set()
        await coord.wait_idle()
        self.assertEqual(opp.calls, 2)
        self.assertEqual(coord.snapshot.move_history, ("e4", "e5"))
        self.assertEqual(_texts(coord).count("exec_pid: e5"), 1)

    async def test_side_to_move_follows_ply_parity(self):
        coord = _coordinator(ScriptedOpponent(["e7e5", "b8c6", "g8f6"]))
        seen = []
        coord.subscribe(seen.append)
        for frm, to in (("e2", "e4"), ("g1", "f3"), ("f1", "c4")):
            coord.submit_human_move(frm, to)
            await coord.wait_idle()

        self.assertEqual([s.ply for s in seen], [1, 2, 3, 4, 5, 6])
        for snap in seen:
            expected = WHITE if snap.ply % 2 == 0 else BLACK
            self.assertEqual(snap.side_to_move, expected)
            self.assertEqual(snap.position.split()[1], expected[0])
            self.assertEqual(len(snap.move_history), snap.ply)
        self.assertEqual(coord.stats.xp, 125)

    async def test_closing_last_ticket_announces_all_resolved(self):
        coord = _coordinator(ScriptedOpponent(["e7e5", "b8c6", "g8f6"]))
        for frm, to in (("e2", "e4"), ("g1", "f3"), ("f1", "c4")):
            coord.submit_human_move(frm, to)
            self.assertNotIn(ALL_RESOLVED_LINE, _texts(coord))
            await coord.wait_idle()
        self.assertFalse(coord.tracker.all_completed())

        coord.submit_human_move("e1", "g1")
        self.assertTrue(coord.tracker.all_completed())
        self.assertEqual(
            _texts(coord)[-2:],
            ["TICKET_CLOSED: Secure Kernel (+100 uptime)", ALL_RESOLVED_LINE],
        )
        self.assertEqual(coord.stats.xp, 225)
        self.assertEqual(coord.stats.tickets_closed, 3)
        await coord.wait_idle()
        self.assertEqual(_texts(coord).count(ALL_RESOLVED_LINE), 1)

    async def test_human_checkmate_ends_game(self):
        coord = _coordinator(ScriptedOpponent(["e7e5", "b8c6", "g8f6"]))
        for frm, to in (("e2", "e4"), ("f1", "c4"), ("d1", "h5")):
            coord.submit_human_move(frm, to)
            await coord.wait_idle()
        record = coord.submit_human_move("h5", "f7")

        snap = coord.snapshot
        self.assertTrue(record.is_check)
        self.assertEqual(snap.state, TurnState.TERMINAL)
        self.assertTrue(snap.is_checkmate)
        self.assertEqual(snap.result, "1-0")
        self.assertFalse(coord.opponent_in_flight())
        self.assertEqual(coord.feed[-1].text, "SUCCESS: PROCESS COMPLETED (1-0)")

        with self.assertRaises(InvalidMove) as ctx:
            coord.submit_human_move("e1", "e2")
        self.assertEqual(str(ctx.exception), "game_over")
        self.assertIsNone(await coord.play_opponent_turn())

        coord.reset()
        self.assertEqual(coord.state, TurnState.AWAITING_HUMAN)
        self.assertEqual(coord.stats.xp, 0)
        self.assertFalse(any(m.completed for m in coord.missions))

    async def test_opponent_checkmate_ends_game(self):
        coord = _coordinator(ScriptedOpponent(["e7e5", "d8h4"]))
        for frm, to in (("f2", "f3"), ("g2", "g4")):
            coord.submit_human_move(frm, to)
            await coord.wait_idle()

        snap = coord.snapshot
        self.assertEqual(snap.state, TurnState.TERMINAL)
        self.assertEqual(snap.result, "0-1")
        self.assertEqual(_texts(coord)[-2:], ["CRITICAL: DEADLOCK_RISK (check)", "SUCCESS: PROCESS COMPLETED (0-1)"])
        self.assertIn('[Result "0-1"]', coord.export_pgn())


class ThinkDelayTests(unittest.IsolatedAsyncioTestCase):
    async def _timed_turn(self, latency, think_delay):
        coord = TurnCoordinator(SlowOpponent(latency), think_delay=think_delay, rng=random.Random(1))
        loop = asyncio.get_running_loop()
        started = loop.time()
        coord.submit_human_move("e2", "e4")
        longer = max(latency, think_delay)

        await asyncio.sleep(longer / 2)
        self.assertEqual(coord.snapshot.ply, 1)
        self.assertEqual(coord.state, TurnState.AWAITING_OPPONENT)

        await coord.wait_idle()
        elapsed = loop.time() - started
        self.assertEqual(coord.snapshot.ply, 2)
        self.assertEqual(coord.snapshot.last_move.uci, "e7e5")
        return elapsed

    async def test_delay_longer_than_reply(self):
        elapsed = await self._timed_turn(latency=0.0, think_delay=0.2)
        self.assertGreaterEqual(elapsed, 0.19)
        self.assertLess(elapsed, 0.35)

    async def test_reply_longer_than_delay(self):
        elapsed = await self._timed_turn(latency=0.2, think_delay=0.0)
        self.assertGreaterEqual(elapsed, 0.19)
        self.assertLess(elapsed, 0.35)

    async def test_equal_delay_and_reply_overlap(self):
        elapsed = await self._timed_turn(latency=0.2, think_delay=0.2)
        self.assertGreaterEqual(elapsed, 0.19)
        # the two waits overlap; sequential waits would take 0.4s
        self.assertLess(elapsed, 0.35)


class HintTests(unittest.IsolatedAsyncioTestCase):
    async def test_hint_suggests_a_legal_move(self):
        opp = ScriptedOpponent(["e2e4"])
        coord = _coordinator(opp)
        self.assertEqual(await coord.request_hint(), ("e2", "e4"))
        self.assertEqual(_texts(coord)[-2:], ["running_diagnostics...", "diagnostics: suggested patch e2 -> e4"])
        self.assertEqual(opp.positions, [chess.STARTING_FEN])
        self.assertEqual(coord.snapshot.ply, 0)

    async def test_hint_failure(self):
        for reply in ("", "e7e5"):
            with self.subTest(reply=reply):
                coord = _coordinator(ScriptedOpponent([reply]))
                self.assertIsNone(await coord.request_hint())
                self.assertEqual(coord.feed[-1].text, "diagnostics_failed: engine_busy")


if __name__ == "__main__":
    unittest.main()
