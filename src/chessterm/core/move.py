"""Move value object (UCI-style representation)."""

from __future__ import annotations

from dataclasses import dataclass

from chessterm.core.enums import MoveFlag, PieceType
from chessterm.core.piece import piece_type_letter
from chessterm.core.types import Square, square_name


@dataclass(frozen=True, slots=True)
class Move:
    """Immutable value object representing a single chess move.

    Equality compares every field, so a move built by hand only matches a
    generated one when its flag and promotion agree as well.
    """

    from_sq: Square
    to_sq: Square
    flag: MoveFlag = MoveFlag.NORMAL
    promotion: PieceType | None = None

    # ── Display ──────────────────────────────────────────────────────────

    def __str__(self) -> str:
        base = f"{square_name(self.from_sq)}{square_name(self.to_sq)}"
        if self.promotion is not None:
            base += piece_type_letter(self.promotion)
        return base

    @property
    def uci(self) -> str:
        """UCI long-algebraic notation."""
        return str(self)

    @property
    def is_castle(self) -> bool:
        return self.flag in (MoveFlag.CASTLE_KINGSIDE, MoveFlag.CASTLE_QUEENSIDE)
