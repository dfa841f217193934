"""Board - piece placement on an 8x8 board."""

from __future__ import annotations

from chessterm.core.enums import Color, PieceType
from chessterm.core.piece import Piece
from chessterm.core.types import Square, make_square
from chessterm.errors import NoKing

_BACK_RANK: tuple[PieceType, ...] = (
    PieceType.ROOK,
    PieceType.KNIGHT,
    PieceType.BISHOP,
    PieceType.QUEEN,
    PieceType.KING,
    PieceType.BISHOP,
    PieceType.KNIGHT,
    PieceType.ROOK,
)


def _index(color: Color, piece_type: PieceType) -> int:
    return int(color) * 6 + int(piece_type) - 1


class Board:
    """64 slots, a1=0 .. h8=63, each empty or holding one piece.

    Occupancy masks per (colour, piece type) and the king squares are
    maintained alongside the slots by :meth:`__setitem__`; the move
    generator reads the masks for attack queries.
    """

    __slots__ = ("_slots", "_masks", "_kings")

    def __init__(self) -> None:
        self._slots: list[Piece | None] = [None] * 64
        self._masks: list[int] = [0] * 12
        self._kings: list[Square | None] = [None, None]

    def __getitem__(self, sq: Square) -> Piece | None:
        return self._slots[sq]

    def __setitem__(self, sq: Square, piece: Piece | None) -> None:
        previous = self._slots[sq]
        if previous == piece:
            return
        bit = 1 << sq
        if previous is not None:
            idx = _index(previous.color, previous.piece_type)
            self._masks[idx] &= ~bit
            if previous.piece_type == PieceType.KING and self._kings[previous.color] == sq:
                rest = self._masks[idx]
                self._kings[previous.color] = (rest & -rest).bit_length() - 1 if rest else None
        self._slots[sq] = piece
        if piece is not None:
            self._masks[_index(piece.color, piece.piece_type)] |= bit
            if piece.piece_type == PieceType.KING:
                self._kings[piece.color] = sq

    def is_empty(self, sq: Square) -> bool:
        return self._slots[sq] is None

    def pieces_bitboard(self, color: Color, piece_type: PieceType) -> int:
        """Mask of the squares holding *color*'s *piece_type*."""
        return self._masks[_index(color, piece_type)]

    def king_square(self, color: Color) -> Square:
        """Square of *color*'s king; raise :class:`NoKing` if there is none."""
        sq = self._kings[color]
        if sq is None:
            raise NoKing(f"No {color} king on board")
        return sq

    def copy(self) -> Board:
        clone = Board()
        clone._slots = self._slots.copy()
        clone._masks = self._masks.copy()
        clone._kings = self._kings.copy()
        return clone

    @classmethod
    def initial(cls) -> Board:
        """Standard starting placement."""
        board = cls()
        for file, piece_type in enumerate(_BACK_RANK):
            board[make_square(file, 0)] = Piece(Color.WHITE, piece_type)
            board[make_square(file, 1)] = Piece(Color.WHITE, PieceType.PAWN)
            board[make_square(file, 6)] = Piece(Color.BLACK, PieceType.PAWN)
            board[make_square(file, 7)] = Piece(Color.BLACK, piece_type)
        return board

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Board):
            return NotImplemented
        return self._slots == other._slots

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        lines = []
        for rank in range(7, -1, -1):
            cells = (str(self[make_square(file, rank)] or ".") for file in range(8))
            lines.append(f"{rank + 1} {' '.join(cells)}")
        lines.append("  a b c d e f g h")
        return "\n".join(lines)
