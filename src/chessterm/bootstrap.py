"""Application bootstrap helpers."""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING

from chessterm.config import AppSettings
from chessterm.errors import EngineUnavailable

if TYPE_CHECKING:
    from PyQt6.QtCore import QCoreApplication

    from chessterm.console import Console
    from chessterm.game.controller import AnalysisController

_LOGGER = logging.getLogger(__name__)
_LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s %(message)s"


def configure_logging(level: str | int = logging.WARNING) -> None:
    """Send log records to stderr so they never mix with console output."""
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown log level: {level!r}")
        level = resolved
    logging.basicConfig(level=level, format=_LOG_FORMAT, stream=sys.stderr, force=True)


def _attach_stdin(app: QCoreApplication, console: Console) -> None:
    """Feed stdin lines to *console* from the Qt event loop."""
    from PyQt6.QtCore import QSocketNotifier

    notifier = QSocketNotifier(sys.stdin.fileno(), QSocketNotifier.Type.Read, app)

    def _on_activated() -> None:
        line = sys.stdin.readline()
        if not line or not console.handle_line(line):
            notifier.setEnabled(False)
            app.quit()

    notifier.activated.connect(_on_activated)


def _start_engine(controller: AnalysisController) -> None:
    if not controller.settings.engine.path:
        _LOGGER.info("No engine configured; running without analysis")
        return
    try:
        controller.start_engine()
    except EngineUnavailable as exc:
        # Already reported to subscribers; the board stays usable.
        _LOGGER.debug("Continuing without engine: %s", exc)


def run_application(
    argv: list[str] | None = None, settings: AppSettings | None = None
) -> int:
    """Create the controller and console and run the Qt event loop."""
    from PyQt6.QtCore import QCoreApplication

    from chessterm.console import Console
    from chessterm.game.controller import AnalysisController

    settings = settings if settings is not None else AppSettings.from_env()
    configure_logging(settings.log_level)

    app = QCoreApplication(sys.argv if argv is None else argv)
    app.setApplicationName("chessterm")

    controller = AnalysisController(settings)
    console = Console(controller)
    app.aboutToQuit.connect(controller.shutdown)

    _start_engine(controller)
    console.log_line(controller.current_fen())
    _attach_stdin(app, console)

    return app.exec()
