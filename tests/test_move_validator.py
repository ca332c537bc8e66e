import unittest

import chess

from termchess.move_validator import extract_uci, parse_move_token

AFTER_E4 = "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq - 0 1"
CASTLE_READY = "r3k2r/8/8/8/8/8/8/R3K2R w KQkq - 0 1"


class MoveValidatorTests(unittest.TestCase):
    def test_plain_and_noisy_uci(self):
        for raw in ("e2e4", "E2E4", "```\ne2e4\n```", "e2e4."):
            with self.subTest(raw=raw):
                parsed = parse_move_token(raw, chess.STARTING_FEN)
                self.assertTrue(parsed["ok"])
                self.assertEqual(parsed["uci"], "e2e4")
                self.assertEqual(parsed["san"], "e4")

        parsed = parse_move_token("I will answer with e7e5 here", AFTER_E4)
        self.assertTrue(parsed["ok"])
        self.assertEqual(parsed["uci"], "e7e5")

    def test_san_and_castling_spellings(self):
        self.assertEqual(parse_move_token("Nf3", chess.STARTING_FEN)["uci"], "g1f3")
        for raw in ("O-O", "0-0", "o-o"):
            with self.subTest(raw=raw):
                self.assertEqual(parse_move_token(raw, CASTLE_READY)["uci"], "e1g1")
        self.assertEqual(parse_move_token("0-0-0", CASTLE_READY)["uci"], "e1c1")

    def test_illegal_and_garbage(self):
        parsed = parse_move_token("g1f3", AFTER_E4)
        self.assertFalse(parsed["ok"])
        self.assertEqual(parsed["reason"], "illegal_move")
        self.assertEqual(parse_move_token("", AFTER_E4)["reason"], "empty_reply")
        self.assertEqual(parse_move_token("   ", AFTER_E4)["reason"], "empty_reply")
        self.assertEqual(parse_move_token("hello", AFTER_E4)["reason"], "bad_san")
        self.assertEqual(parse_move_token("a1a1", AFTER_E4)["reason"], "bad_uci_format")

    def test_bare_promotion_defaults_to_queen(self):
        parsed = parse_move_token("e7e8", "8/4P3/8/8/8/8/8/k6K w - - 0 1")
        self.assertTrue(parsed["ok"])
        self.assertEqual(parsed["uci"], "e7e8q")

    def test_extract_uci(self):
        self.assertEqual(extract_uci("best is G8F6!"), "g8f6")
        self.assertIsNone(extract_uci("no move"))


if __name__ == "__main__":
    unittest.main()
