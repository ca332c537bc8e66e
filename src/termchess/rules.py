"""
RulesOracle: the single live python-chess Board for one game.

- Applies validated moves and reports them as immutable MoveRecords.
- Answers legality/check/mate queries and serializes the position as FEN.
- Emits PGN for finished or ongoing games.

Only the TurnCoordinator holds a RulesOracle; it is replaced wholesale on reset.
"""
from __future__ import annotations
import datetime
from typing import Optional

import chess
import chess.pgn

from .errors import IllegalMove
from .models import BLACK, WHITE, MoveRecord

PROMOTION_LETTERS = {"q": chess.QUEEN, "r": chess.ROOK, "b": chess.BISHOP, "n": chess.KNIGHT}


def _square(name: str) -> chess.Square:
    try:
        return chess.parse_square((name or "").strip().lower())
    except ValueError:
        raise IllegalMove(f"bad square '{name}'") from None


class RulesOracle:
    """Plain rules oracle around a python-chess Board."""

    def __init__(self, starting_fen: str | None = None):
        self.board = chess.Board(fen=starting_fen) if starting_fen else chess.Board()

    # ---------------- Queries -----------------
    def current_position(self) -> str:
        return self.board.fen()

    def side_to_move(self) -> str:
        return WHITE if self.board.turn == chess.WHITE else BLACK

    def is_in_check(self) -> bool:
        return self.board.is_check()

    def is_checkmate(self) -> bool:
        return self.board.is_checkmate()

    def is_game_over(self) -> bool:
        return self.board.is_game_over()

    def result(self) -> str:
        return self.board.result() if self.board.is_game_over() else "*"

    def termination_reason(self) -> Optional[str]:
        """Derive a readable termination reason from a finished board."""
        b = self.board
        if b.is_checkmate():
            return "checkmate"
        if b.is_stalemate():
            return "stalemate"
        if b.is_insufficient_material():
            return "insufficient_material"
        if b.is_seventyfive_moves():
            return "seventyfive_move_rule"
        if b.is_fivefold_repetition():
            return "fivefold_repetition"
        if b.is_fifty_moves():
            return "fifty_move_rule"
        if b.is_repetition():
            return "threefold_repetition"
        return None

    def piece_at(self, square: str) -> Optional[chess.Piece]:
        return self.board.piece_at(_square(square))

    def owner_of(self, square: str) -> Optional[str]:
        piece = self.piece_at(square)
        if piece is None:
            return None
        return WHITE if piece.color == chess.WHITE else BLACK

    def legal_moves(self, from_square: str | None = None) -> list[chess.Move]:
        if from_square is None:
            return list(self.board.legal_moves)
        sq = _square(from_square)
        return [mv for mv in self.board.legal_moves if mv.from_square == sq]

    def legal_targets(self, from_square: str) -> frozenset[str]:
        return frozenset(chess.square_name(mv.to_square) for mv in self.legal_moves(from_square))

    def move_history_notation(self) -> list[str]:
        replay = self.board.root()
        sans: list[str] = []
        for mv in self.board.move_stack:
            sans.append(replay.san(mv))
            replay.push(mv)
        return sans

    # ---------------- Move Application -----------------
    def apply_move(self, from_square: str, to_square: str, promotion: str | None = None) -> MoveRecord:
        """Apply from→to (with optional promotion letter) or raise IllegalMove."""
        frm, to = _square(from_square), _square(to_square)
        promo = None
        if promotion:
            promo = PROMOTION_LETTERS.get(promotion.strip().lower())
            if promo is None:
                raise IllegalMove(f"bad promotion piece '{promotion}'")
        else:
            piece = self.board.piece_at(frm)
            if piece and piece.piece_type == chess.PAWN and chess.square_rank(to) in (0, 7):
                promo = chess.QUEEN
        return self.apply(chess.Move(frm, to, promotion=promo))

    def apply_uci(self, uci: str) -> MoveRecord:
        try:
            mv = chess.Move.from_uci(uci)
        except ValueError:
            raise IllegalMove(f"bad uci '{uci}'") from None
        return self.apply(mv)

    def apply(self, mv: chess.Move) -> MoveRecord:
        if mv not in self.board.legal_moves:
            raise IllegalMove(f"illegal move {mv.uci()} in {self.board.fen()}")
        piece = self.board.piece_at(mv.from_square)
        record_kwargs = dict(
            from_square=chess.square_name(mv.from_square),
            to_square=chess.square_name(mv.to_square),
            promotion=chess.piece_symbol(mv.promotion) if mv.promotion else None,
            piece=piece.symbol().lower() if piece else "?",
            is_capture=self.board.is_capture(mv),
            is_check=self.board.gives_check(mv),
            is_castle=self.board.is_castling(mv),
            san=self.board.san(mv),
            uci=mv.uci(),
        )
        self.board.push(mv)
        return MoveRecord(**record_kwargs)

    # ---------------- PGN -----------------
    def pgn(self, white: str = "Human", black: str = "Opponent", event: str = "termchess") -> str:
        game = chess.pgn.Game.from_board(self.board)
        game.headers["Event"] = event
        game.headers["Date"] = datetime.date.today().strftime("%Y.%m.%d")
        game.headers["White"] = white
        game.headers["Black"] = black
        game.headers["Result"] = self.result()
        exporter = chess.pgn.StringExporter(headers=True, variations=False, comments=False)
        return game.accept(exporter)
