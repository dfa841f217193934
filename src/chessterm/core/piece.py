"""Piece value object."""

from __future__ import annotations

from dataclasses import dataclass

from chessterm.core.enums import Color, PieceType

_FEN_LETTERS: dict[PieceType, str] = {
    PieceType.PAWN: "p",
    PieceType.KNIGHT: "n",
    PieceType.BISHOP: "b",
    PieceType.ROOK: "r",
    PieceType.QUEEN: "q",
    PieceType.KING: "k",
}
_LETTER_TYPES: dict[str, PieceType] = {v: k for k, v in _FEN_LETTERS.items()}


@dataclass(frozen=True, slots=True)
class Piece:
    """Immutable value object representing a chess piece."""

    color: Color
    piece_type: PieceType

    # ── Serialisation ────────────────────────────────────────────────────

    def __str__(self) -> str:
        """FEN character (uppercase = white, lowercase = black)."""
        letter = _FEN_LETTERS[self.piece_type]
        return letter.upper() if self.color == Color.WHITE else letter

    @classmethod
    def from_char(cls, char: str) -> Piece:
        """Create piece from FEN character, e.g. 'N' → white knight."""
        ptype = _LETTER_TYPES.get(char.lower()) if len(char) == 1 else None
        if ptype is None:
            raise ValueError(f"Invalid piece character: {char!r}")
        return cls(Color.WHITE if char.isupper() else Color.BLACK, ptype)


def piece_type_letter(piece_type: PieceType) -> str:
    """Lowercase FEN letter for *piece_type*."""
    return _FEN_LETTERS[piece_type]


def piece_type_from_letter(letter: str) -> PieceType:
    """Inverse of :func:`piece_type_letter` (case-insensitive)."""
    ptype = _LETTER_TYPES.get(letter.lower()) if len(letter) == 1 else None
    if ptype is None:
        raise ValueError(f"Invalid piece letter: {letter!r}")
    return ptype
