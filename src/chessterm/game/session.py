"""GameSession is the single mutation entry point for the current position.

Holds the current :class:`Position` and the moves applied to it since the
last :meth:`GameSession.set_position`.  Every operation either succeeds
completely or raises and leaves the session untouched.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

from chessterm.core.enums import GameStatus
from chessterm.core.move import Move
from chessterm.core.move_generator import MoveGenerator
from chessterm.core.notation import (
    STARTING_FEN,
    parse_move_text,
    position_from_fen,
    position_to_fen,
    resolve_move,
)
from chessterm.core.position import Position
from chessterm.core.rules import Rules
from chessterm.errors import IllegalMove

# ── Event definitions ────────────────────────────────────────────────────────

PositionCallback = Callable[["GameSession"], None]
MoveCallback = Callable[[Move, "GameSession"], None]


@dataclass
class SessionEvents:
    """Observable callbacks. Multiple handlers per event."""

    on_position_changed: list[PositionCallback] = field(default_factory=list)
    on_move: list[MoveCallback] = field(default_factory=list)


# ── Session ──────────────────────────────────────────────────────────────────


class GameSession:
    """Current position plus the append-only list of moves played on it."""

    __slots__ = ("_position", "_start_fen", "_history", "events")

    def __init__(self, fen: str | None = None) -> None:
        self._start_fen = STARTING_FEN
        self._position = position_from_fen(STARTING_FEN)
        self._history: list[Move] = []
        self.events = SessionEvents()
        if fen is not None:
            self._replace(fen)

    # ── Properties ───────────────────────────────────────────────────────

    @property
    def position(self) -> Position:
        """A copy of the current position; mutating it has no effect here."""
        return self._position.copy()

    @property
    def start_fen(self) -> str:
        return self._start_fen

    @property
    def history(self) -> tuple[Move, ...]:
        return tuple(self._history)

    def history_uci(self) -> tuple[str, ...]:
        return tuple(move.uci for move in self._history)

    # ── Mutation ─────────────────────────────────────────────────────────

    def set_position(self, fen: str) -> None:
        """Replace the whole position and clear the history.

        Raises :class:`~chessterm.errors.MalformedFen`.
        """
        self._replace(fen)
        self._emit_position_changed()

    def apply_move(self, move_text: str) -> Move:
        """Parse, validate and play a ``<from><to>[promotion]`` move.

        Raises ``MalformedMove``, ``NoKing`` or ``IllegalMove``; on any of
        them the position and history are unchanged.
        """
        parsed = parse_move_text(move_text)
        move = resolve_move(parsed, self.legal_moves())
        self._play(move)
        return move

    def submit_move(self, move: Move) -> Move:
        """Play an already structured move after checking it is legal."""
        if move not in self.legal_moves():
            raise IllegalMove(f"{move.uci} is not legal in {self.current_fen()}")
        self._play(move)
        return move

    # ── Queries ──────────────────────────────────────────────────────────

    def legal_moves(self) -> frozenset[Move]:
        """Legal moves for the side to move; raises ``NoKing`` without a king."""
        return frozenset(MoveGenerator(self._position).generate_legal_moves())

    def current_fen(self) -> str:
        return position_to_fen(self._position)

    def status(self) -> GameStatus:
        return Rules.status(self._position)

    def is_in_check(self) -> bool:
        return Rules.is_in_check(self._position)

    # ── Internal ─────────────────────────────────────────────────────────

    def _replace(self, fen: str) -> None:
        position = position_from_fen(fen)
        self._position = position
        self._start_fen = position_to_fen(position)
        self._history = []

    def _play(self, move: Move) -> None:
        self._position.make_move(move)
        self._history.append(move)
        for cb in self.events.on_move:
            cb(move, self)
        self._emit_position_changed()

    def _emit_position_changed(self) -> None:
        for cb in self.events.on_position_changed:
            cb(self)
