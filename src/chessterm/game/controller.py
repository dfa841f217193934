"""AnalysisController: the API the console (or any other front end) talks to.

Couples a :class:`GameSession` to an :class:`EngineSession`: every position
change is pushed to the engine in full, engine events are relayed to
subscribers, and engine trouble never blocks play on the board.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from chessterm.config import AppSettings
from chessterm.core.move import Move
from chessterm.engine.events import EngineState
from chessterm.engine.search import SearchLimits
from chessterm.engine.session import EngineSession, EventListener
from chessterm.errors import EngineUnavailable
from chessterm.game.session import GameSession

_LOGGER = logging.getLogger(__name__)


class AnalysisController:
    """Game session + engine session behind one set of commands."""

    def __init__(
        self,
        settings: AppSettings | None = None,
        *,
        session: GameSession | None = None,
        engine: EngineSession | None = None,
    ) -> None:
        self._settings = settings if settings is not None else AppSettings()
        self._session = session if session is not None else GameSession()
        self._engine = engine if engine is not None else EngineSession(self._settings.engine)
        self._limits: SearchLimits | None = None

        self._session.events.on_position_changed.append(self._on_position_changed)
        self._sync_engine()

    # ── Properties ───────────────────────────────────────────────────────

    @property
    def session(self) -> GameSession:
        return self._session

    @property
    def engine(self) -> EngineSession:
        return self._engine

    @property
    def settings(self) -> AppSettings:
        return self._settings

    # ── Board ────────────────────────────────────────────────────────────

    def set_position(self, fen: str) -> None:
        self._session.set_position(fen)

    def apply_move(self, move_text: str) -> Move:
        return self._session.apply_move(move_text)

    def legal_moves(self) -> frozenset[Move]:
        return self._session.legal_moves()

    def current_fen(self) -> str:
        return self._session.current_fen()

    # ── Engine ───────────────────────────────────────────────────────────

    def start_engine(
        self, path: str | None = None, args: Sequence[str] | None = None
    ) -> None:
        self._engine.start_process(path, args)

    def restart_engine(self) -> None:
        self._engine.restart()

    def start_search(self, limits: SearchLimits | None = None) -> int:
        """Search the current position; returns the generation searched."""
        self._limits = limits
        return self._engine.search(limits)

    def stop_search(self) -> None:
        self._engine.stop()

    def subscribe(self, listener: EventListener) -> None:
        self._engine.subscribe(listener)

    def shutdown(self) -> None:
        self._engine.shutdown()

    # ── Internal ─────────────────────────────────────────────────────────

    def _sync_engine(self) -> int:
        return self._engine.sync_position(
            self._session.start_fen, self._session.history_uci()
        )

    def _on_position_changed(self, _session: GameSession) -> None:
        was_searching = self._engine.state == EngineState.SEARCHING
        try:
            generation = self._sync_engine()
            if was_searching and self._settings.follow_search and self._engine.is_running:
                _LOGGER.debug(
                    "Following position change with a new search (generation %d)", generation
                )
                self._engine.search(self._limits)
        except EngineUnavailable as exc:
            # Subscribers already received the EngineFailure.
            _LOGGER.debug("Engine resync after position change failed: %s", exc)
