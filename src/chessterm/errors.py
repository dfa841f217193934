"""Error taxonomy shared by the rules core, the game session and the engine."""

from __future__ import annotations

from enum import StrEnum


class ErrorKind(StrEnum):
    """Stable identifiers for every error the core reports."""

    MALFORMED_FEN = "MalformedFen"
    MALFORMED_MOVE = "MalformedMove"
    ILLEGAL_MOVE = "IllegalMove"
    NO_KING = "NoKing"
    ENGINE_UNAVAILABLE = "EngineUnavailable"
    ALREADY_SEARCHING = "AlreadySearching"


class ChessError(Exception):
    """Base class for all errors raised by ``chessterm``."""

    kind: ErrorKind


class MalformedFen(ChessError, ValueError):
    """FEN text does not describe a position."""

    kind = ErrorKind.MALFORMED_FEN


class MalformedMove(ChessError, ValueError):
    """Move text is not ``<from><to>[promotion]``."""

    kind = ErrorKind.MALFORMED_MOVE


class IllegalMove(ChessError, ValueError):
    """Well-formed move that is not legal in the current position."""

    kind = ErrorKind.ILLEGAL_MOVE


class NoKing(ChessError, ValueError):
    """The side to move has no king, so legality is undefined."""

    kind = ErrorKind.NO_KING


class EngineUnavailable(ChessError, RuntimeError):
    """The engine process could not be launched or did not answer."""

    kind = ErrorKind.ENGINE_UNAVAILABLE


class AlreadySearching(ChessError, RuntimeError):
    """A search was requested while another one is still running."""

    kind = ErrorKind.ALREADY_SEARCHING
