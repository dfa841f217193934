"""External UCI engine session: process lifecycle, commands and typed output."""

from __future__ import annotations

import logging
import time
from collections import deque
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import NoReturn

from PyQt6.QtCore import QObject, QProcess, pyqtSignal

from chessterm.config import EngineSettings
from chessterm.engine.events import (
    BestMove,
    EngineEvent,
    EngineFailure,
    EngineState,
    Progress,
)
from chessterm.engine.protocol import (
    BestMoveLine,
    IdLine,
    InfoLine,
    OptionLine,
    ReadyOk,
    UciOk,
    go_command,
    parse_line,
    position_command,
    setoption_command,
)
from chessterm.engine.search import SearchLimits
from chessterm.errors import AlreadySearching, EngineUnavailable, ErrorKind

_LOGGER = logging.getLogger(__name__)

EventListener = Callable[[EngineEvent], object]


class _HandshakeTimeout(EngineUnavailable):
    """The process started but never finished the uci/isready exchange."""


@dataclass(slots=True, eq=False)
class _SearchTicket:
    """One issued ``go``; retired by the ``bestmove`` that answers it."""

    generation: int
    cancelled: bool = False


class EngineSession(QObject):
    """Owns one external engine process and its protocol conversation.

    Commands are written from the owning thread.  Output is consumed by the
    ``readyReadStandardOutput`` callback, parsed and re-emitted as typed
    events through :attr:`progress`, :attr:`best_move` and :attr:`failure`.

    Every :meth:`sync_position` bumps :attr:`generation`.  Each :meth:`search`
    queues a ticket tagged with the generation it was issued for; ``info``
    lines belong to the oldest outstanding ticket and ``bestmove`` retires
    it.  Output is delivered only for a ticket that was neither stopped nor
    superseded, so a late answer to an older position never reaches
    subscribers.  Events of one generation are delivered in emission order.
    """

    progress = pyqtSignal(object)
    best_move = pyqtSignal(object)
    failure = pyqtSignal(object)
    state_changed = pyqtSignal(object)

    def __init__(
        self,
        settings: EngineSettings | None = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._settings = settings if settings is not None else EngineSettings()
        self._process: QProcess | None = None
        self._program: str | None = None
        self._arguments: list[str] = []
        self._buffer = bytearray()
        self._state = EngineState.IDLE
        self._generation = 0
        self._searches: deque[_SearchTicket] = deque()
        self._position: tuple[str, tuple[str, ...]] | None = None
        self._synced = False
        self._starting = False
        self._uciok = False
        self._readyok = False
        self.engine_name: str | None = None
        self.engine_author: str | None = None
        self.options: dict[str, dict[str, str]] = {}

    # ── Properties ───────────────────────────────────────────────────────

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def is_running(self) -> bool:
        process = self._process
        return (
            process is not None
            and process.state() != QProcess.ProcessState.NotRunning
        )

    @property
    def position(self) -> tuple[str, tuple[str, ...]] | None:
        """Last position handed to :meth:`sync_position` as ``(fen, moves)``."""
        return self._position

    # ── Lifecycle ────────────────────────────────────────────────────────

    def start_process(
        self,
        path: str | None = None,
        args: Sequence[str] | None = None,
    ) -> None:
        """Launch the engine and complete the uci/isready handshake.

        A handshake that times out is retried ``handshake_retries`` times
        with a fresh process; a program that cannot be launched is not.
        Raises :class:`EngineUnavailable` (after emitting an
        :class:`EngineFailure`) when no attempt succeeds.
        """
        program = path or self._settings.path
        if not program:
            self._fail_start("No engine executable configured")
        if self._process is not None:
            self._terminate_process()

        self._program = program
        self._arguments = list(self._settings.args if args is None else args)

        attempts = 1 + max(0, self._settings.handshake_retries)
        for attempt in range(1, attempts + 1):
            self._starting = True
            try:
                self._launch()
                self._handshake()
            except _HandshakeTimeout as exc:
                self._terminate_process()
                _LOGGER.warning(
                    "Engine handshake failed (attempt %d/%d): %s", attempt, attempts, exc
                )
                continue
            except EngineUnavailable as exc:
                self._terminate_process()
                self._fail_start(str(exc))
            except BaseException:
                self._terminate_process()
                self._set_state(EngineState.IDLE)
                raise
            finally:
                self._starting = False

            _LOGGER.info("Engine ready: %s", self.engine_name or program)
            if self._position is not None:
                self._transmit_position()
            self._set_state(EngineState.IDLE)
            return

        self._fail_start(
            f"Engine {program!r} did not complete the handshake within "
            f"{self._settings.handshake_timeout_ms} ms"
        )

    def restart(self) -> None:
        """Relaunch the engine, discarding any search in flight.

        The last synchronised position is retransmitted in full to the new
        process; the generation is bumped so nothing from the old process
        can be delivered.
        """
        if self._program is None:
            raise EngineUnavailable("Engine was never started")
        self._set_state(EngineState.RESTARTING)
        self._generation += 1
        self._terminate_process()
        self.start_process(self._program, self._arguments)

    def shutdown(self) -> None:
        """Quit the engine process and release its handles."""
        self._terminate_process()
        self._set_state(EngineState.IDLE)

    def __enter__(self) -> EngineSession:
        if not self.is_running:
            self.start_process()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.shutdown()
        return False

    # ── Commands ─────────────────────────────────────────────────────────

    def sync_position(self, fen: str, moves: Sequence[str] = ()) -> int:
        """Transmit the full position and return the new generation.

        A running search is abandoned first; its remaining output becomes
        stale.  Without a running process the position is only remembered
        and sent once the engine is (re)started.
        """
        self._abandon_search()
        self._generation += 1
        self._position = (fen, tuple(moves))
        if self.is_running:
            self._transmit_position()
        return self._generation

    def search(self, limits: SearchLimits | None = None) -> int:
        """Start searching the synchronised position; returns its generation."""
        if self._state in (EngineState.SEARCHING, EngineState.STOPPING):
            raise AlreadySearching("Engine is already searching")
        if not self.is_running or self._state == EngineState.RESTARTING:
            raise EngineUnavailable("Engine is not running")
        if not self._synced:
            raise RuntimeError("sync_position() must be called before search()")

        ticket = _SearchTicket(self._generation)
        self._searches.append(ticket)
        self._set_state(EngineState.SEARCHING)
        self._write(go_command(limits if limits is not None else self._settings.limits))
        return ticket.generation

    def stop(self) -> None:
        """Stop the running search; a no-op when idle.

        Once this returns no further event of the stopped search is
        delivered.  The engine's final ``bestmove`` is absorbed here when it
        arrives within ``stop_timeout_ms``, otherwise it is dropped later.
        """
        if self._state != EngineState.SEARCHING:
            return
        ticket = self._live_ticket()
        if ticket is not None:
            ticket.cancelled = True
        self._set_state(EngineState.STOPPING)
        try:
            self._write("stop")
            if ticket is not None:
                self._wait_for(
                    lambda: ticket not in self._searches,
                    self._settings.stop_timeout_ms,
                )
        finally:
            if self._state == EngineState.STOPPING:
                self._set_state(EngineState.IDLE)

    def wait_until_idle(self, timeout_ms: int) -> bool:
        """Block until the current search completes; ``False`` on timeout."""
        return self._wait_for(lambda: self._state == EngineState.IDLE, timeout_ms)

    # ── Subscription ─────────────────────────────────────────────────────

    def subscribe(self, listener: EventListener) -> None:
        """Register *listener* for every event kind."""
        self.progress.connect(listener)
        self.best_move.connect(listener)
        self.failure.connect(listener)

    def unsubscribe(self, listener: EventListener) -> None:
        self.progress.disconnect(listener)
        self.best_move.disconnect(listener)
        self.failure.disconnect(listener)

    # ── Process plumbing ─────────────────────────────────────────────────

    def _launch(self) -> None:
        assert self._program is not None
        process = QProcess(self)
        process.setProgram(self._program)
        process.setArguments(self._arguments)
        process.setStandardErrorFile(QProcess.nullDevice())
        process.readyReadStandardOutput.connect(self._on_ready_read)
        process.finished.connect(self._on_finished)

        self._process = process
        self._buffer.clear()
        self.engine_name = None
        self.engine_author = None
        self.options = {}

        process.start()
        if not process.waitForStarted(self._settings.handshake_timeout_ms):
            raise EngineUnavailable(
                f"Cannot launch engine {self._program!r}: {process.errorString()}"
            )

    def _handshake(self) -> None:
        deadline = time.monotonic() + self._settings.handshake_timeout_ms / 1000
        self._uciok = False
        self._readyok = False

        self._write("uci")
        if not self._wait_for(lambda: self._uciok, _remaining_ms(deadline)):
            raise _HandshakeTimeout("no 'uciok' received")

        for name, value in self._settings.options.items():
            self._write(setoption_command(name, value))

        self._write("isready")
        if not self._wait_for(lambda: self._readyok, _remaining_ms(deadline)):
            raise _HandshakeTimeout("no 'readyok' received")

    def _terminate_process(self) -> None:
        process = self._process
        self._process = None
        self._searches.clear()
        self._buffer.clear()
        self._synced = False
        if process is None:
            return

        # Nothing the dying process prints may reach subscribers.
        process.blockSignals(True)
        timeout = self._settings.quit_timeout_ms
        if process.state() != QProcess.ProcessState.NotRunning:
            process.write(b"quit\n")
            if not process.waitForFinished(timeout):
                _LOGGER.warning("Engine ignored 'quit'; killing it")
                process.kill()
                process.waitForFinished(timeout)
        process.deleteLater()

    def _write(self, command: str) -> None:
        process = self._process
        if process is None:
            raise EngineUnavailable("Engine is not running")
        _LOGGER.debug(">> %s", command)
        if process.write(f"{command}\n".encode()) < 0:
            message = f"Failed to write to engine: {process.errorString()}"
            self._handle_process_lost(message)
            raise EngineUnavailable(message)

    def _transmit_position(self) -> None:
        assert self._position is not None
        fen, moves = self._position
        self._write(position_command(fen, moves))
        self._synced = True

    def _wait_for(self, predicate: Callable[[], bool], timeout_ms: int) -> bool:
        """Pump engine output until *predicate* holds or the time runs out.

        Works without a running Qt event loop.
        """
        deadline = time.monotonic() + timeout_ms / 1000
        while not predicate():
            process = self._process
            if process is None:
                return False
            remaining = _remaining_ms(deadline)
            if remaining <= 0:
                return False
            if not process.waitForReadyRead(remaining):
                # Timed out or the process went away.
                self._drain_output()
                return predicate()
            self._drain_output()
        return True

    # ── Output handling ──────────────────────────────────────────────────

    def _on_ready_read(self) -> None:
        self._drain_output()

    def _drain_output(self) -> None:
        process = self._process
        if process is None:
            return
        data = process.readAllStandardOutput().data()
        if not data:
            return
        self._buffer.extend(data)
        while (end := self._buffer.find(b"\n")) >= 0:
            raw = bytes(self._buffer[:end])
            del self._buffer[: end + 1]
            line = raw.decode("utf-8", errors="replace").strip()
            if line:
                self._handle_line(line)

    def _handle_line(self, line: str) -> None:
        _LOGGER.debug("<< %s", line)
        message = parse_line(line)
        if isinstance(message, InfoLine):
            self._on_info(message)
        elif isinstance(message, BestMoveLine):
            self._on_bestmove(message)
        elif isinstance(message, UciOk):
            self._uciok = True
        elif isinstance(message, ReadyOk):
            self._readyok = True
        elif isinstance(message, IdLine):
            if message.key == "name":
                self.engine_name = message.value
            elif message.key == "author":
                self.engine_author = message.value
        elif isinstance(message, OptionLine):
            self.options[message.name] = message.info

    def _on_info(self, info: InfoLine) -> None:
        if not info.is_progress:
            if info.string is not None:
                _LOGGER.debug("Engine says: %s", info.string)
            return
        ticket = self._searches[0] if self._searches else None
        if not self._is_deliverable(ticket):
            _LOGGER.debug("Dropping stale progress (generation %d)", self._generation)
            return
        assert ticket is not None
        self.progress.emit(
            Progress(
                generation=ticket.generation,
                depth=info.depth,
                score=info.score,
                pv=info.pv,
                seldepth=info.seldepth,
                nodes=info.nodes,
                nps=info.nps,
                time_ms=info.time_ms,
                multipv=info.multipv,
            )
        )

    def _on_bestmove(self, line: BestMoveLine) -> None:
        if not self._searches:
            _LOGGER.debug("Ignoring unsolicited bestmove %s", line.move)
            return
        ticket = self._searches.popleft()
        deliver = self._is_deliverable(ticket)
        if not ticket.cancelled and self._state == EngineState.SEARCHING:
            self._set_state(EngineState.IDLE)
        if not deliver:
            _LOGGER.debug(
                "Dropping stale bestmove %s (generation %d, current %d)",
                line.move,
                ticket.generation,
                self._generation,
            )
            return
        self.best_move.emit(BestMove(ticket.generation, line.move, line.ponder))

    def _on_finished(self, exit_code: int, _exit_status: object) -> None:
        if self._starting or self._process is None:
            return
        self._drain_output()
        self._handle_process_lost(f"Engine exited unexpectedly (code {exit_code})")

    def _handle_process_lost(self, message: str) -> None:
        process = self._process
        self._process = None
        if process is not None:
            process.blockSignals(True)
            process.deleteLater()
        self._searches.clear()
        self._buffer.clear()
        self._synced = False
        self._set_state(EngineState.IDLE)
        self._report_failure(message)

    # ── Internal helpers ─────────────────────────────────────────────────

    def _is_deliverable(self, ticket: _SearchTicket | None) -> bool:
        return (
            ticket is not None
            and not ticket.cancelled
            and ticket.generation == self._generation
        )

    def _live_ticket(self) -> _SearchTicket | None:
        for ticket in self._searches:
            if not ticket.cancelled:
                return ticket
        return None

    def _abandon_search(self) -> None:
        """Cancel the running search without waiting for its bestmove."""
        if self._state != EngineState.SEARCHING:
            return
        ticket = self._live_ticket()
        if ticket is not None:
            ticket.cancelled = True
        self._set_state(EngineState.IDLE)
        if self.is_running:
            self._write("stop")

    def _set_state(self, state: EngineState) -> None:
        if state == self._state:
            return
        self._state = state
        self.state_changed.emit(state)

    def _report_failure(self, message: str) -> None:
        _LOGGER.warning("Engine failure: %s", message)
        self.failure.emit(EngineFailure(ErrorKind.ENGINE_UNAVAILABLE, message))

    def _fail_start(self, message: str) -> NoReturn:
        self._set_state(EngineState.IDLE)
        self._report_failure(message)
        raise EngineUnavailable(message)


def _remaining_ms(deadline: float) -> int:
    return max(0, int((deadline - time.monotonic()) * 1000))
