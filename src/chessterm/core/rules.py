"""High-level chess rules: check, checkmate and stalemate."""

from __future__ import annotations

from typing import TYPE_CHECKING

from chessterm.core.enums import GameStatus
from chessterm.core.move_generator import MoveGenerator

if TYPE_CHECKING:
    from chessterm.core.position import Position


class Rules:
    """Static rule-checker that operates on a :class:`Position`.

    Every query raises :class:`~chessterm.errors.NoKing` when the side to
    move has no king, rather than reporting a terminal state.
    """

    @staticmethod
    def is_in_check(position: Position) -> bool:
        gen = MoveGenerator(position)
        return gen.is_in_check(position.side_to_move)

    @staticmethod
    def is_checkmate(position: Position) -> bool:
        return Rules.status(position) == GameStatus.CHECKMATE

    @staticmethod
    def is_stalemate(position: Position) -> bool:
        return Rules.status(position) == GameStatus.STALEMATE

    @staticmethod
    def status(position: Position) -> GameStatus:
        """Classify the position for the side to move."""
        gen = MoveGenerator(position)
        if gen.generate_legal_moves():
            return GameStatus.IN_PROGRESS
        if gen.is_in_check(position.side_to_move):
            return GameStatus.CHECKMATE
        return GameStatus.STALEMATE
