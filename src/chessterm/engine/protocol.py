"""UCI text protocol: command formatting and engine output parsing."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TypeAlias

from chessterm.core.notation.fen import STARTING_FEN
from chessterm.engine.events import Score
from chessterm.engine.search import SearchLimits

_NULL_MOVES = frozenset({"(none)", "0000"})

_INT_INFO_KEYS: dict[str, str] = {
    "depth": "depth",
    "seldepth": "seldepth",
    "multipv": "multipv",
    "nodes": "nodes",
    "nps": "nps",
    "time": "time_ms",
    "hashfull": "hashfull",
    "tbhits": "tbhits",
    "currmovenumber": "currmovenumber",
}
_INFO_KEYWORDS = frozenset(_INT_INFO_KEYS) | {
    "score",
    "pv",
    "currmove",
    "refutation",
    "currline",
    "string",
    "cpuload",
}
_OPTION_KEYWORDS = frozenset({"type", "default", "min", "max", "var"})


# ── Parsed engine output ─────────────────────────────────────────────────────


@dataclass(slots=True, frozen=True)
class IdLine:
    key: str
    value: str


@dataclass(slots=True, frozen=True)
class OptionLine:
    name: str
    info: dict[str, str] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class UciOk:
    pass


@dataclass(slots=True, frozen=True)
class ReadyOk:
    pass


@dataclass(slots=True, frozen=True)
class InfoLine:
    depth: int | None = None
    seldepth: int | None = None
    multipv: int | None = None
    nodes: int | None = None
    nps: int | None = None
    time_ms: int | None = None
    score: Score | None = None
    pv: tuple[str, ...] = ()
    string: str | None = None

    @property
    def is_progress(self) -> bool:
        """Whether the line reports search progress (not just a message)."""
        return self.depth is not None or self.score is not None or bool(self.pv)


@dataclass(slots=True, frozen=True)
class BestMoveLine:
    move: str | None
    ponder: str | None = None


EngineLine: TypeAlias = IdLine | OptionLine | UciOk | ReadyOk | InfoLine | BestMoveLine


def parse_line(line: str) -> EngineLine | None:
    """Parse one line of engine output; ``None`` for anything unrecognised."""
    tokens = line.split()
    if not tokens:
        return None
    head = tokens[0]
    if head == "info":
        return parse_info(tokens[1:])
    if head == "bestmove":
        return _parse_bestmove(tokens[1:])
    if head == "uciok":
        return UciOk()
    if head == "readyok":
        return ReadyOk()
    if head == "id" and len(tokens) >= 3:
        return IdLine(tokens[1], " ".join(tokens[2:]))
    if head == "option":
        return _parse_option(tokens)
    return None


def parse_info(tokens: Sequence[str]) -> InfoLine:
    """Parse the tokens following ``info``.

    Malformed numeric values are skipped rather than rejected: engines
    differ in the extras they print and a bad field must not drop the line.
    """
    values: dict[str, int] = {}
    score: Score | None = None
    pv: list[str] = []
    string: str | None = None

    i = 0
    while i < len(tokens):
        key = tokens[i]
        i += 1
        if key in _INT_INFO_KEYS:
            if i < len(tokens):
                number = _to_int(tokens[i])
                if number is not None:
                    values[_INT_INFO_KEYS[key]] = number
                i += 1
        elif key == "score":
            score, i = _parse_score(tokens, i)
        elif key == "pv":
            while i < len(tokens) and tokens[i] not in _INFO_KEYWORDS:
                pv.append(tokens[i])
                i += 1
        elif key == "string":
            string = " ".join(tokens[i:])
            break

    return InfoLine(
        depth=values.get("depth"),
        seldepth=values.get("seldepth"),
        multipv=values.get("multipv"),
        nodes=values.get("nodes"),
        nps=values.get("nps"),
        time_ms=values.get("time_ms"),
        score=score,
        pv=tuple(pv),
        string=string,
    )


def _parse_score(tokens: Sequence[str], i: int) -> tuple[Score | None, int]:
    cp: int | None = None
    mate: int | None = None
    lowerbound = upperbound = False
    while i < len(tokens):
        key = tokens[i]
        if key in ("cp", "mate") and i + 1 < len(tokens):
            number = _to_int(tokens[i + 1])
            if key == "cp":
                cp = number
            else:
                mate = number
            i += 2
        elif key == "lowerbound":
            lowerbound = True
            i += 1
        elif key == "upperbound":
            upperbound = True
            i += 1
        else:
            break
    if cp is None and mate is None:
        return None, i
    return Score(cp=cp, mate=mate, lowerbound=lowerbound, upperbound=upperbound), i


def _parse_bestmove(tokens: Sequence[str]) -> BestMoveLine:
    move = tokens[0] if tokens else None
    if move in _NULL_MOVES:
        move = None
    ponder: str | None = None
    if len(tokens) >= 3 and tokens[1] == "ponder" and tokens[2] not in _NULL_MOVES:
        ponder = tokens[2]
    return BestMoveLine(move, ponder)


def _parse_option(tokens: Sequence[str]) -> OptionLine | None:
    """Parse ``option name <name...> type <t> [default ...] [min ...] [max ...]``."""
    if len(tokens) < 4 or tokens[1] != "name":
        return None

    name_parts: list[str] = []
    i = 2
    while i < len(tokens) and tokens[i] not in _OPTION_KEYWORDS:
        name_parts.append(tokens[i])
        i += 1
    if not name_parts:
        return None

    info: dict[str, str] = {}
    variants: list[str] = []
    while i < len(tokens):
        key = tokens[i]
        i += 1
        value_parts: list[str] = []
        while i < len(tokens) and tokens[i] not in _OPTION_KEYWORDS:
            value_parts.append(tokens[i])
            i += 1
        if key == "var":
            variants.append(" ".join(value_parts))
        else:
            info[key] = " ".join(value_parts)
    if variants:
        info["var"] = ",".join(variants)
    return OptionLine(" ".join(name_parts), info)


def _to_int(text: str) -> int | None:
    try:
        return int(text)
    except ValueError:
        return None


# ── Commands ─────────────────────────────────────────────────────────────────


def position_command(fen: str, moves: Sequence[str] = ()) -> str:
    """Full position description; never a diff against an earlier one."""
    base = "position startpos" if fen == STARTING_FEN else f"position fen {fen}"
    if moves:
        return f"{base} moves {' '.join(moves)}"
    return base


def go_command(limits: SearchLimits) -> str:
    if limits.is_infinite:
        return "go infinite"
    parts = ["go"]
    if limits.depth is not None:
        parts.append(f"depth {limits.depth}")
    if limits.movetime_ms is not None:
        parts.append(f"movetime {limits.movetime_ms}")
    if limits.nodes is not None:
        parts.append(f"nodes {limits.nodes}")
    if limits.mate is not None:
        parts.append(f"mate {limits.mate}")
    return " ".join(parts)


def setoption_command(name: str, value: str | None = None) -> str:
    if value is None:
        return f"setoption name {name}"
    return f"setoption name {name} value {value}"
