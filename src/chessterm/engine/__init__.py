"""External engine package: UCI protocol and typed events.

The process wrapper lives in :mod:`chessterm.engine.session`; it is not
re-exported here because it depends on :mod:`chessterm.config`, which in
turn depends on :class:`SearchLimits`.
"""

from chessterm.engine.events import (
    BestMove,
    EngineEvent,
    EngineFailure,
    EngineState,
    Progress,
    Score,
)
from chessterm.engine.search import SearchLimits

__all__ = [
    "BestMove",
    "EngineEvent",
    "EngineFailure",
    "EngineState",
    "Progress",
    "Score",
    "SearchLimits",
]
