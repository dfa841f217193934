"""Tests for Position make/unmake and the functional apply_move."""

from chessterm.core.enums import CastlingRights, Color, MoveFlag, PieceType
from chessterm.core.move import Move
from chessterm.core.move_generator import MoveGenerator, legal_moves
from chessterm.core.notation import STARTING_FEN, position_from_fen, position_to_fen
from chessterm.core.piece import Piece
from chessterm.core.position import apply_move
from chessterm.core.types import (
    A1, A8, C1, D1, D5, D7, E1, E2, E4, E7, E8, F1, G1, H1, H8,
    parse_square,
)

CASTLE_FEN = "r3k2r/pppppppp/8/8/8/8/PPPPPPPP/R3K2R w KQkq - 0 1"


class TestMakeUnmake:
    def test_side_switches(self) -> None:
        pos = position_from_fen(STARTING_FEN)
        pos.make_move(Move(E2, E4, MoveFlag.DOUBLE_PUSH))
        assert pos.side_to_move == Color.BLACK

    def test_unmake_restores_fen(self) -> None:
        """After make+unmake of every legal move, the position must match."""
        pos = position_from_fen(CASTLE_FEN)
        before = pos.copy()
        for move in MoveGenerator(pos).generate_legal_moves():
            pos.make_move(move)
            pos.unmake_move(move)
            assert pos == before, f"Failed for {move}"

    def test_en_passant_set_by_double_push(self) -> None:
        pos = position_from_fen(STARTING_FEN)
        pos.make_move(Move(E2, E4, MoveFlag.DOUBLE_PUSH))
        assert pos.en_passant == parse_square("e3")

    def test_en_passant_replaced_then_cleared(self) -> None:
        pos = position_from_fen(STARTING_FEN)
        pos.make_move(Move(E2, E4, MoveFlag.DOUBLE_PUSH))
        pos.make_move(Move(D7, D5, MoveFlag.DOUBLE_PUSH))
        assert pos.en_passant == parse_square("d6")
        pos.make_move(Move(G1, parse_square("f3")))
        assert pos.en_passant is None

    def test_capture_and_undo(self) -> None:
        fen = "rnbqkbnr/ppp1pppp/8/3p4/4P3/8/PPPP1PPP/RNBQKBNR w KQkq d6 0 2"
        pos = position_from_fen(fen)
        capture = Move(E4, D5)
        pos.make_move(capture)
        assert pos.board[D5] == Piece(Color.WHITE, PieceType.PAWN)
        pos.unmake_move(capture)
        assert position_to_fen(pos) == fen


class TestClocks:
    def test_quiet_piece_move_increments_halfmove(self) -> None:
        pos = position_from_fen(STARTING_FEN)
        pos.make_move(Move(G1, parse_square("f3")))
        assert pos.halfmove_clock == 1
        assert pos.fullmove_number == 1

    def test_pawn_move_resets_halfmove(self) -> None:
        pos = position_from_fen("4k3/8/8/8/8/8/4P3/4K3 w - - 7 30")
        pos.make_move(Move(E2, parse_square("e3")))
        assert pos.halfmove_clock == 0

    def test_fullmove_increments_after_black(self) -> None:
        pos = position_from_fen(STARTING_FEN)
        pos.make_move(Move(E2, E4, MoveFlag.DOUBLE_PUSH))
        pos.make_move(Move(E7, parse_square("e5"), MoveFlag.DOUBLE_PUSH))
        assert pos.fullmove_number == 2


class TestCastlingRightsUpdate:
    def test_king_move_removes_rights(self) -> None:
        pos = position_from_fen(CASTLE_FEN)
        pos.make_move(Move(E1, F1))
        assert not (pos.castling & CastlingRights.WHITE_BOTH)
        assert pos.castling & CastlingRights.BLACK_BOTH == CastlingRights.BLACK_BOTH

    def test_rook_move_removes_one_right(self) -> None:
        pos = position_from_fen(CASTLE_FEN)
        pos.make_move(Move(A1, parse_square("b1")))
        assert not (pos.castling & CastlingRights.WHITE_QUEENSIDE)
        assert pos.castling & CastlingRights.WHITE_KINGSIDE

    def test_capturing_home_rook_removes_right(self) -> None:
        pos = position_from_fen("r3k2r/8/8/8/8/8/8/R3K2R w KQkq - 0 1")
        pos.make_move(Move(A1, A8))
        assert not (pos.castling & CastlingRights.BLACK_QUEENSIDE)
        assert not (pos.castling & CastlingRights.WHITE_QUEENSIDE)
        assert pos.castling & CastlingRights.BLACK_KINGSIDE

    def test_rights_never_return(self) -> None:
        pos = position_from_fen("r3k2r/8/8/8/8/8/8/R3K2R w KQkq - 0 1")
        for move in (Move(H1, parse_square("h2")), Move(E8, parse_square("d8")),
                     Move(parse_square("h2"), H1), Move(parse_square("d8"), E8)):
            pos.make_move(move)
        assert pos.castling == CastlingRights.WHITE_QUEENSIDE
        assert not any(m.is_castle and m.to_sq == G1 for m in legal_moves(pos))

    def test_castling_kingside(self) -> None:
        pos = position_from_fen(CASTLE_FEN)
        pos.make_move(Move(E1, G1, MoveFlag.CASTLE_KINGSIDE))
        assert pos.board[G1] == Piece(Color.WHITE, PieceType.KING)
        assert pos.board[F1] == Piece(Color.WHITE, PieceType.ROOK)
        assert pos.board[H1] is None

    def test_castling_queenside(self) -> None:
        pos = position_from_fen(CASTLE_FEN)
        pos.make_move(Move(E1, C1, MoveFlag.CASTLE_QUEENSIDE))
        assert pos.board[C1] == Piece(Color.WHITE, PieceType.KING)
        assert pos.board[D1] == Piece(Color.WHITE, PieceType.ROOK)
        assert pos.board[A1] is None

    def test_black_castling_kingside(self) -> None:
        pos = position_from_fen("r3k2r/8/8/8/8/8/8/R3K2R b KQkq - 0 1")
        pos.make_move(Move(E8, parse_square("g8"), MoveFlag.CASTLE_KINGSIDE))
        assert pos.board[parse_square("f8")] == Piece(Color.BLACK, PieceType.ROOK)
        assert pos.board[H8] is None
        assert not (pos.castling & CastlingRights.BLACK_BOTH)


class TestPromotion:
    def test_promote_to_knight(self) -> None:
        pos = position_from_fen("8/4P3/8/8/8/8/4k3/K7 w - - 0 1")
        pos.make_move(Move(E7, E8, promotion=PieceType.KNIGHT))
        assert pos.board[E8] == Piece(Color.WHITE, PieceType.KNIGHT)
        assert pos.board[E7] is None

    def test_promote_unmake_restores_pawn(self) -> None:
        fen = "8/4P3/8/8/8/8/4k3/K7 w - - 0 1"
        pos = position_from_fen(fen)
        move = Move(E7, E8, promotion=PieceType.QUEEN)
        pos.make_move(move)
        pos.unmake_move(move)
        assert position_to_fen(pos) == fen


class TestApplyMove:
    def test_original_untouched(self) -> None:
        pos = position_from_fen(STARTING_FEN)
        after = apply_move(pos, Move(E2, E4, MoveFlag.DOUBLE_PUSH))
        assert position_to_fen(pos) == STARTING_FEN
        assert after.board[E4] == Piece(Color.WHITE, PieceType.PAWN)

    def test_equality_ignores_history(self) -> None:
        pos = position_from_fen(STARTING_FEN)
        played = apply_move(pos, Move(G1, parse_square("f3")))
        played = apply_move(played, Move(parse_square("g8"), parse_square("f6")))
        played = apply_move(played, Move(parse_square("f3"), G1))
        played = apply_move(played, Move(parse_square("f6"), parse_square("g8")))
        assert played.board == pos.board
        assert played != pos  # counters differ
