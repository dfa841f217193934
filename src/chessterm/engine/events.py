"""Typed events delivered by :class:`~chessterm.engine.session.EngineSession`."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum, auto
from typing import TypeAlias

from chessterm.errors import ErrorKind


class EngineState(IntEnum):
    """Search state of an engine session."""

    IDLE = auto()
    SEARCHING = auto()
    STOPPING = auto()
    RESTARTING = auto()


@dataclass(slots=True, frozen=True)
class Score:
    """Engine score from the side to move's point of view."""

    cp: int | None = None
    mate: int | None = None
    lowerbound: bool = False
    upperbound: bool = False

    def __str__(self) -> str:
        if self.mate is not None:
            return f"#{self.mate}"
        if self.cp is None:
            return "?"
        return f"{self.cp / 100:+.2f}"


@dataclass(slots=True, frozen=True)
class Progress:
    """One ``info`` line reported while searching."""

    generation: int
    depth: int | None
    score: Score | None
    pv: tuple[str, ...] = ()
    seldepth: int | None = None
    nodes: int | None = None
    nps: int | None = None
    time_ms: int | None = None
    multipv: int | None = None


@dataclass(slots=True, frozen=True)
class BestMove:
    """Terminal result of a search; ``move`` is ``None`` when there is none."""

    generation: int
    move: str | None
    ponder: str | None = None


@dataclass(slots=True, frozen=True)
class EngineFailure:
    """The engine process failed; play on the board is unaffected."""

    kind: ErrorKind
    message: str


EngineEvent: TypeAlias = Progress | BestMove | EngineFailure
