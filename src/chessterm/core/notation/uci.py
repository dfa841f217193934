"""Long algebraic move text (``e2e4``, ``e7e8q``)."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

from chessterm.core.enums import PieceType
from chessterm.core.move import Move
from chessterm.core.piece import piece_type_from_letter, piece_type_letter
from chessterm.core.types import Square, parse_square, square_name
from chessterm.errors import IllegalMove, MalformedMove

_MOVE_RE = re.compile(r"([a-h][1-8])([a-h][1-8])([qrbn])?")


@dataclass(frozen=True, slots=True)
class MoveText:
    """Parsed, not yet validated, move text.

    Text carries no flag, so it is resolved against the legal move set
    with :func:`resolve_move` rather than compared to a :class:`Move`.
    """

    from_sq: Square
    to_sq: Square
    promotion: PieceType | None = None

    def __str__(self) -> str:
        text = f"{square_name(self.from_sq)}{square_name(self.to_sq)}"
        if self.promotion is not None:
            text += piece_type_letter(self.promotion)
        return text


def parse_move_text(text: str) -> MoveText:
    """Parse ``<from><to>[promotion]``; raise :class:`MalformedMove` otherwise."""
    match = _MOVE_RE.fullmatch(text)
    if match is None:
        raise MalformedMove(f"Invalid move text: {text!r}")
    from_part, to_part, promo_part = match.groups()
    return MoveText(
        parse_square(from_part),
        parse_square(to_part),
        piece_type_from_letter(promo_part) if promo_part else None,
    )


def resolve_move(move_text: MoveText, legal: Iterable[Move]) -> Move:
    """Return the legal move that *move_text* names; raise :class:`IllegalMove`."""
    for move in legal:
        if (
            move.from_sq == move_text.from_sq
            and move.to_sq == move_text.to_sq
            and move.promotion == move_text.promotion
        ):
            return move
    raise IllegalMove(f"Illegal move: {move_text}")
