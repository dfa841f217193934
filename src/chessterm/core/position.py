"""Position — complete game state (board + metadata) with make/unmake."""

from __future__ import annotations

from dataclasses import dataclass

from chessterm.core.board import Board
from chessterm.core.enums import CastlingRights, Color, MoveFlag, PieceType
from chessterm.core.move import Move
from chessterm.core.piece import Piece
from chessterm.core.types import Square, file_of, make_square, rank_of


@dataclass(slots=True)
class _PositionState:
    """Snapshot saved before each move so we can undo it."""

    castling: CastlingRights
    en_passant: Square | None
    halfmove_clock: int
    captured_piece: Piece | None


# Rook home square -> the right that disappears once it is vacated or captured.
_ROOK_CORNERS: dict[Square, CastlingRights] = {
    make_square(0, 0): CastlingRights.WHITE_QUEENSIDE,
    make_square(7, 0): CastlingRights.WHITE_KINGSIDE,
    make_square(0, 7): CastlingRights.BLACK_QUEENSIDE,
    make_square(7, 7): CastlingRights.BLACK_KINGSIDE,
}

_KING_RIGHTS: tuple[CastlingRights, CastlingRights] = (
    CastlingRights.WHITE_BOTH,
    CastlingRights.BLACK_BOTH,
)


class Position:
    """Full chess position: board + side to move + castling + en passant + clocks.

    :meth:`make_move` is the move applier.  It trusts its caller: the move
    must come from :class:`~chessterm.core.move_generator.MoveGenerator`
    for this very position.  :meth:`unmake_move` reverts the most recent
    :meth:`make_move` via an internal history stack (Command pattern).
    """

    __slots__ = (
        "board",
        "side_to_move",
        "castling",
        "en_passant",
        "halfmove_clock",
        "fullmove_number",
        "_history",
    )

    def __init__(
        self,
        board: Board | None = None,
        side_to_move: Color = Color.WHITE,
        castling: CastlingRights = CastlingRights.ALL,
        en_passant: Square | None = None,
        halfmove_clock: int = 0,
        fullmove_number: int = 1,
    ) -> None:
        self.board = board if board is not None else Board.initial()
        self.side_to_move = side_to_move
        self.castling = castling
        self.en_passant = en_passant
        self.halfmove_clock = halfmove_clock
        self.fullmove_number = fullmove_number
        self._history: list[_PositionState] = []

    # ── Core move operations ─────────────────────────────────────────────

    def make_move(self, move: Move) -> None:
        """Apply *move*, pushing undo state onto the history stack."""
        board = self.board
        piece = board[move.from_sq]
        if piece is None:
            raise ValueError(f"No piece on {move.from_sq}")

        captured = board[move.to_sq]
        capture_sq = move.to_sq

        # En passant: the captured pawn sits beside the origin, not on to_sq
        if move.flag == MoveFlag.EN_PASSANT:
            capture_sq = make_square(file_of(move.to_sq), rank_of(move.from_sq))
            captured = board[capture_sq]

        self._history.append(
            _PositionState(
                castling=self.castling,
                en_passant=self.en_passant,
                halfmove_clock=self.halfmove_clock,
                captured_piece=captured,
            )
        )

        board[move.from_sq] = None
        if captured is not None:
            board[capture_sq] = None

        if move.promotion is not None:
            board[move.to_sq] = Piece(piece.color, move.promotion)
        else:
            board[move.to_sq] = piece

        if move.flag == MoveFlag.CASTLE_KINGSIDE:
            self._slide_rook(rank_of(move.from_sq), 7, 5)
        elif move.flag == MoveFlag.CASTLE_QUEENSIDE:
            self._slide_rook(rank_of(move.from_sq), 0, 3)

        # Re-armed only by a double push
        if move.flag == MoveFlag.DOUBLE_PUSH:
            self.en_passant = (move.from_sq + move.to_sq) // 2
        else:
            self.en_passant = None

        self._update_castling(move, piece)

        if piece.piece_type == PieceType.PAWN or captured is not None:
            self.halfmove_clock = 0
        else:
            self.halfmove_clock += 1

        if self.side_to_move == Color.BLACK:
            self.fullmove_number += 1

        self.side_to_move = self.side_to_move.opposite

    def unmake_move(self, move: Move) -> None:
        """Undo the last :meth:`make_move`."""
        state = self._history.pop()

        self.side_to_move = self.side_to_move.opposite
        if self.side_to_move == Color.BLACK:
            self.fullmove_number -= 1

        piece = self.board[move.to_sq]
        assert piece is not None

        if move.promotion is not None:
            piece = Piece(piece.color, PieceType.PAWN)

        self.board[move.from_sq] = piece
        if move.flag == MoveFlag.EN_PASSANT:
            self.board[move.to_sq] = None
            ep_capture_sq = make_square(file_of(move.to_sq), rank_of(move.from_sq))
            self.board[ep_capture_sq] = state.captured_piece
        else:
            self.board[move.to_sq] = state.captured_piece

        if move.flag == MoveFlag.CASTLE_KINGSIDE:
            self._slide_rook(rank_of(move.from_sq), 5, 7)
        elif move.flag == MoveFlag.CASTLE_QUEENSIDE:
            self._slide_rook(rank_of(move.from_sq), 3, 0)

        self.castling = state.castling
        self.en_passant = state.en_passant
        self.halfmove_clock = state.halfmove_clock

    # ── Internal bookkeeping ─────────────────────────────────────────────

    def _slide_rook(self, rank: int, from_file: int, to_file: int) -> None:
        rook_from = make_square(from_file, rank)
        rook = self.board[rook_from]
        assert rook is not None
        self.board[rook_from] = None
        self.board[make_square(to_file, rank)] = rook

    def _update_castling(self, move: Move, piece: Piece) -> None:
        castling = self.castling
        if not castling:
            return
        if piece.piece_type == PieceType.KING:
            castling &= ~_KING_RIGHTS[int(piece.color)]
        # Covers both a rook leaving its corner and a rook captured on it.
        for sq in (move.from_sq, move.to_sq):
            right = _ROOK_CORNERS.get(sq)
            if right is not None:
                castling &= ~right
        self.castling = castling

    # ── Utilities ────────────────────────────────────────────────────────

    def copy(self) -> Position:
        """Deep copy without history."""
        return Position(
            board=self.board.copy(),
            side_to_move=self.side_to_move,
            castling=self.castling,
            en_passant=self.en_passant,
            halfmove_clock=self.halfmove_clock,
            fullmove_number=self.fullmove_number,
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Position):
            return NotImplemented
        return (
            self.board == other.board
            and self.side_to_move == other.side_to_move
            and self.castling == other.castling
            and self.en_passant == other.en_passant
            and self.halfmove_clock == other.halfmove_clock
            and self.fullmove_number == other.fullmove_number
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return (
            f"{self.board!r}\n"
            f"side={self.side_to_move} castling={self.castling!r} "
            f"ep={self.en_passant} clocks={self.halfmove_clock}/{self.fullmove_number}"
        )


def apply_move(position: Position, move: Move) -> Position:
    """Return a new position with *move* applied; *position* is untouched."""
    result = position.copy()
    result.make_move(move)
    return result
