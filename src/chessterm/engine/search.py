"""Search limits passed to the external engine."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class SearchLimits:
    """Search constraints for a single ``go`` command.

    With every field left at ``None`` the engine searches until stopped.
    """

    depth: int | None = None
    movetime_ms: int | None = None
    nodes: int | None = None
    mate: int | None = None

    @property
    def is_infinite(self) -> bool:
        return (
            self.depth is None
            and self.movetime_ms is None
            and self.nodes is None
            and self.mate is None
        )
