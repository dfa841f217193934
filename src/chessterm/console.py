"""Line-oriented command console on top of :class:`AnalysisController`.

Syntax::

    exit                    leave the program
    !<fen>                  set the position
    :set-position <fen>     set the position
    :search                 start searching the current position
    :stop                   stop the running search
    :restart                relaunch the engine
    :fen                    print the current FEN
    :moves                  list the legal moves
    e2e4 | e7e8q            play a move
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import TypeAlias

from chessterm.core.enums import GameStatus
from chessterm.engine.events import BestMove, EngineEvent, EngineFailure, Progress
from chessterm.errors import ChessError
from chessterm.game.controller import AnalysisController

_LOGGER = logging.getLogger(__name__)

_SET_POSITION_PREFIX = "!"


# ── Commands ─────────────────────────────────────────────────────────────────


@dataclass(slots=True, frozen=True)
class Exit:
    pass


@dataclass(slots=True, frozen=True)
class SetPosition:
    fen: str


@dataclass(slots=True, frozen=True)
class StartSearch:
    pass


@dataclass(slots=True, frozen=True)
class StopSearch:
    pass


@dataclass(slots=True, frozen=True)
class MakeMove:
    text: str


@dataclass(slots=True, frozen=True)
class RestartEngine:
    pass


@dataclass(slots=True, frozen=True)
class ShowFen:
    pass


@dataclass(slots=True, frozen=True)
class ShowMoves:
    pass


Command: TypeAlias = (
    Exit
    | SetPosition
    | StartSearch
    | StopSearch
    | MakeMove
    | RestartEngine
    | ShowFen
    | ShowMoves
)

_KEYWORDS: dict[str, Command] = {
    "exit": Exit(),
    ":search": StartSearch(),
    ":stop": StopSearch(),
    ":restart": RestartEngine(),
    ":fen": ShowFen(),
    ":moves": ShowMoves(),
}


class CommandErrorReason(StrEnum):
    NO_COMMAND = "no command received"
    INVALID_COMMAND = "invalid command"


class CommandError(ValueError):
    """Console input that is not a command."""

    def __init__(self, reason: CommandErrorReason, text: str = "") -> None:
        super().__init__(reason.value if not text else f"{reason.value}: {text!r}")
        self.reason = reason


def parse_command(text: str) -> Command:
    """Parse one line of console input."""
    line = text.strip()
    if not line:
        raise CommandError(CommandErrorReason.NO_COMMAND)

    if line.startswith(_SET_POSITION_PREFIX):
        fen = line[len(_SET_POSITION_PREFIX):].strip()
        if not fen:
            raise CommandError(CommandErrorReason.INVALID_COMMAND, line)
        return SetPosition(fen)

    word, _, rest = line.partition(" ")
    rest = rest.strip()
    if word == ":set-position":
        if not rest:
            raise CommandError(CommandErrorReason.INVALID_COMMAND, line)
        return SetPosition(rest)
    if word in _KEYWORDS and not rest:
        return _KEYWORDS[word]
    if not word.startswith(":") and not rest:
        return MakeMove(word)
    raise CommandError(CommandErrorReason.INVALID_COMMAND, line)


# ── Console ──────────────────────────────────────────────────────────────────


def format_event(event: EngineEvent) -> str:
    if isinstance(event, Progress):
        parts = ["info"]
        if event.depth is not None:
            parts.append(f"depth {event.depth}")
        if event.score is not None:
            parts.append(f"score {event.score}")
        if event.nodes is not None:
            parts.append(f"nodes {event.nodes}")
        if event.pv:
            parts.append("pv " + " ".join(event.pv))
        return " ".join(parts)
    if isinstance(event, BestMove):
        line = f"bestmove {event.move or '(none)'}"
        if event.ponder:
            line += f" ponder {event.ponder}"
        return line
    if isinstance(event, EngineFailure):
        return f"engine error: {event.message}"
    return str(event)


class Console:
    """Executes commands and writes everything worth showing to *write*."""

    def __init__(
        self,
        controller: AnalysisController,
        write: Callable[[str], object] = print,
    ) -> None:
        self._controller = controller
        self._write = write
        controller.subscribe(self._on_engine_event)

    def log_line(self, line: str) -> None:
        self._write(line)

    def handle_line(self, text: str) -> bool:
        """Parse and execute one input line; ``False`` once ``exit`` was read."""
        try:
            command = parse_command(text)
        except CommandError as exc:
            if exc.reason is not CommandErrorReason.NO_COMMAND:
                self.log_line(f"error: {exc}")
            return True
        return self.execute(command)

    def execute(self, command: Command) -> bool:
        """Run *command*; errors are logged, never raised."""
        ctrl = self._controller
        try:
            if isinstance(command, Exit):
                return False
            if isinstance(command, SetPosition):
                ctrl.set_position(command.fen)
                self.log_line(ctrl.current_fen())
            elif isinstance(command, MakeMove):
                move = ctrl.apply_move(command.text)
                self.log_line(f"played {move.uci}")
                self._log_status()
            elif isinstance(command, StartSearch):
                generation = ctrl.start_search()
                _LOGGER.debug("Search started for generation %d", generation)
            elif isinstance(command, StopSearch):
                ctrl.stop_search()
            elif isinstance(command, RestartEngine):
                ctrl.restart_engine()
                self.log_line("engine restarted")
            elif isinstance(command, ShowFen):
                self.log_line(ctrl.current_fen())
            elif isinstance(command, ShowMoves):
                moves = sorted(move.uci for move in ctrl.legal_moves())
                self.log_line(" ".join(moves) if moves else "(no legal moves)")
        except ChessError as exc:
            self.log_line(f"{exc.kind}: {exc}")
        return True

    def _log_status(self) -> None:
        status = self._controller.session.status()
        if status == GameStatus.CHECKMATE:
            self.log_line("checkmate")
        elif status == GameStatus.STALEMATE:
            self.log_line("stalemate")

    def _on_engine_event(self, event: EngineEvent) -> None:
        self.log_line(format_event(event))
