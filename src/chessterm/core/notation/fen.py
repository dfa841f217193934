"""FEN parsing and serialization."""

from __future__ import annotations

from chessterm.core.board import Board
from chessterm.core.enums import CastlingRights, Color
from chessterm.core.piece import Piece
from chessterm.core.position import Position
from chessterm.core.types import Square, make_square, parse_square, rank_of, square_name
from chessterm.errors import MalformedFen

STARTING_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"

_CASTLING_LETTERS: tuple[tuple[str, CastlingRights], ...] = (
    ("K", CastlingRights.WHITE_KINGSIDE),
    ("Q", CastlingRights.WHITE_QUEENSIDE),
    ("k", CastlingRights.BLACK_KINGSIDE),
    ("q", CastlingRights.BLACK_QUEENSIDE),
)
_CASTLING_RIGHTS: dict[str, CastlingRights] = dict(_CASTLING_LETTERS)


def position_from_fen(fen: str) -> Position:
    """Parse a FEN string into a :class:`Position`.

    Only placement and side to move are mandatory.  Missing trailing fields
    default to no castling rights, no en-passant target, halfmove clock 0
    and fullmove number 1.
    """
    parts = fen.split()
    if not (2 <= len(parts) <= 6):
        raise MalformedFen(f"Invalid FEN (need 2-6 fields): {fen!r}")

    placement, side_part = parts[:2]
    castling_part = parts[2] if len(parts) > 2 else "-"
    ep_part = parts[3] if len(parts) > 3 else "-"

    board = _parse_placement(placement, fen)

    # 2. Side to move
    if side_part == "w":
        side = Color.WHITE
    elif side_part == "b":
        side = Color.BLACK
    else:
        raise MalformedFen(f"Invalid FEN side-to-move field: {side_part!r}")

    # 3. Castling
    castling = CastlingRights.NONE
    if castling_part != "-":
        seen: set[str] = set()
        for ch in castling_part:
            right = _CASTLING_RIGHTS.get(ch)
            if right is None or ch in seen:
                raise MalformedFen(f"Invalid FEN castling field: {castling_part!r}")
            seen.add(ch)
            castling |= right

    # 4. En passant
    ep: Square | None = None
    if ep_part != "-":
        try:
            ep = parse_square(ep_part)
        except ValueError:
            raise MalformedFen(f"Invalid FEN en-passant square: {ep_part!r}") from None
        expected_ep_rank = 5 if side == Color.WHITE else 2
        if rank_of(ep) != expected_ep_rank:
            raise MalformedFen(
                f"Invalid FEN en-passant square for side-to-move: {ep_part!r}"
            )

    # 5–6. Clocks
    halfmove = _parse_counter(parts, 4, default=0, minimum=0, label="halfmove clock")
    fullmove = _parse_counter(parts, 5, default=1, minimum=1, label="fullmove number")

    return Position(board, side, castling, ep, halfmove, fullmove)


def position_to_fen(pos: Position) -> str:
    """Serialise a :class:`Position` to FEN."""
    # 1. Board
    rows: list[str] = []
    for rank in range(7, -1, -1):
        empty = 0
        row = ""
        for file in range(8):
            piece = pos.board[make_square(file, rank)]
            if piece is None:
                empty += 1
            else:
                if empty:
                    row += str(empty)
                    empty = 0
                row += str(piece)
        if empty:
            row += str(empty)
        rows.append(row)
    board_str = "/".join(rows)

    # 2. Side
    side_str = "w" if pos.side_to_move == Color.WHITE else "b"

    # 3. Castling
    castling_str = "".join(
        letter for letter, right in _CASTLING_LETTERS if pos.castling & right
    )
    if not castling_str:
        castling_str = "-"

    # 4. En passant
    ep_str = square_name(pos.en_passant) if pos.en_passant is not None else "-"

    return f"{board_str} {side_str} {castling_str} {ep_str} {pos.halfmove_clock} {pos.fullmove_number}"


def _parse_placement(placement: str, fen: str) -> Board:
    ranks = placement.split("/")
    if len(ranks) != 8:
        raise MalformedFen(f"Invalid FEN board (must contain 8 ranks): {fen!r}")
    board = Board()
    for rank_idx, rank_text in enumerate(ranks):
        rank = 7 - rank_idx
        file = 0
        for ch in rank_text:
            if ch in "0123456789":
                step = int(ch)
                if not (1 <= step <= 8):
                    raise MalformedFen(f"Invalid FEN digit {ch!r}: {fen!r}")
                file += step
            else:
                if file >= 8:
                    raise MalformedFen(f"Invalid FEN rank width: {fen!r}")
                try:
                    board[make_square(file, rank)] = Piece.from_char(ch)
                except ValueError:
                    raise MalformedFen(
                        f"Invalid FEN piece letter {ch!r}: {fen!r}"
                    ) from None
                file += 1
            if file > 8:
                raise MalformedFen(f"Invalid FEN rank width: {fen!r}")
        if file != 8:
            raise MalformedFen(f"Invalid FEN rank width: {fen!r}")
    return board


def _parse_counter(
    parts: list[str], index: int, *, default: int, minimum: int, label: str
) -> int:
    if len(parts) <= index:
        return default
    text = parts[index]
    if not (text.isascii() and text.isdigit()):
        raise MalformedFen(f"Invalid FEN {label}: {text!r}")
    value = int(text)
    if value < minimum:
        raise MalformedFen(f"Invalid FEN {label}: {text!r}")
    return value
