"""Game layer: the mutable session and the engine-aware controller.

Quick start::

    from chessterm.game import AnalysisController

    ctrl = AnalysisController()
    ctrl.apply_move("e2e4")
    print(ctrl.current_fen())
"""

from chessterm.game.controller import AnalysisController
from chessterm.game.session import GameSession, SessionEvents

__all__ = [
    "AnalysisController",
    "GameSession",
    "SessionEvents",
]
