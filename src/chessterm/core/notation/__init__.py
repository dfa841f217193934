"""Notation package: FEN and long-algebraic move text."""

from chessterm.core.notation.fen import STARTING_FEN, position_from_fen, position_to_fen
from chessterm.core.notation.uci import MoveText, parse_move_text, resolve_move

__all__ = [
    "STARTING_FEN",
    "MoveText",
    "parse_move_text",
    "position_from_fen",
    "position_to_fen",
    "resolve_move",
]
