"""Core domain layer — pure chess logic with zero external dependencies.

Quick start::

    from chessterm.core import MoveGenerator, position_from_fen, STARTING_FEN

    pos = position_from_fen(STARTING_FEN)
    gen = MoveGenerator(pos)
    for move in gen.generate_legal_moves():
        print(move)
"""

from chessterm.core.board import Board
from chessterm.core.enums import CastlingRights, Color, GameStatus, MoveFlag, PieceType
from chessterm.core.move import Move
from chessterm.core.move_generator import MoveGenerator, attacked, legal_moves
from chessterm.core.notation import (
    STARTING_FEN,
    MoveText,
    parse_move_text,
    position_from_fen,
    position_to_fen,
    resolve_move,
)
from chessterm.core.piece import Piece
from chessterm.core.position import Position, apply_move
from chessterm.core.rules import Rules
from chessterm.core.types import (
    Square,
    file_of,
    make_square,
    parse_square,
    rank_of,
    square_name,
)

__all__ = [
    # Enums / flags
    "CastlingRights",
    "Color",
    "GameStatus",
    "MoveFlag",
    "PieceType",
    # Types / helpers
    "Square",
    "file_of",
    "make_square",
    "parse_square",
    "rank_of",
    "square_name",
    # Domain objects
    "Board",
    "Move",
    "MoveGenerator",
    "Piece",
    "Position",
    "Rules",
    "apply_move",
    "attacked",
    "legal_moves",
    # Notation
    "STARTING_FEN",
    "MoveText",
    "parse_move_text",
    "position_from_fen",
    "position_to_fen",
    "resolve_move",
]
