"""Application settings."""

from __future__ import annotations

import os
import shlex
from collections.abc import Mapping
from dataclasses import dataclass, field

from chessterm.engine.search import SearchLimits

_ENV_PREFIX = "CHESSTERM_"


@dataclass
class EngineSettings:
    """How to launch and talk to the external engine."""

    path: str | None = None
    args: list[str] = field(default_factory=list)
    handshake_timeout_ms: int = 5000
    handshake_retries: int = 1
    stop_timeout_ms: int = 2000
    quit_timeout_ms: int = 2000
    limits: SearchLimits = field(default_factory=SearchLimits)
    # Sent as ``setoption`` right after ``uciok``.
    options: dict[str, str] = field(default_factory=dict)


@dataclass
class AppSettings:
    """All user-configurable settings."""

    engine: EngineSettings = field(default_factory=EngineSettings)
    log_level: str = "WARNING"
    # Re-issue a search that a position change interrupted.
    follow_search: bool = True

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> AppSettings:
        """Build settings from ``CHESSTERM_*`` environment variables."""
        env = os.environ if environ is None else environ
        settings = cls()
        engine = settings.engine

        engine.path = env.get(f"{_ENV_PREFIX}ENGINE") or None
        if args := env.get(f"{_ENV_PREFIX}ENGINE_ARGS"):
            engine.args = shlex.split(args)
        engine.handshake_timeout_ms = _env_int(
            env, "HANDSHAKE_TIMEOUT_MS", engine.handshake_timeout_ms
        )
        engine.stop_timeout_ms = _env_int(env, "STOP_TIMEOUT_MS", engine.stop_timeout_ms)
        depth = _env_optional_int(env, "DEPTH")
        movetime_ms = _env_optional_int(env, "MOVETIME_MS")
        engine.limits = SearchLimits(depth=depth, movetime_ms=movetime_ms)

        settings.log_level = env.get(f"{_ENV_PREFIX}LOG_LEVEL", settings.log_level).upper()
        follow = env.get(f"{_ENV_PREFIX}FOLLOW_SEARCH")
        if follow is not None:
            settings.follow_search = follow.strip().lower() not in ("0", "false", "no", "off")
        return settings


def _env_optional_int(env: Mapping[str, str], name: str) -> int | None:
    raw = env.get(f"{_ENV_PREFIX}{name}")
    if raw is None or not raw.strip():
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{_ENV_PREFIX}{name} must be an integer, got {raw!r}") from None


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    value = _env_optional_int(env, name)
    return default if value is None else value
