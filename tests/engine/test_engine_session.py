"""Tests for EngineSession bookkeeping, driven through a scripted process."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest
from PyQt6.QtCore import QByteArray, QProcess
from PyQt6.QtTest import QSignalSpy

from chessterm.config import EngineSettings
from chessterm.core.notation import STARTING_FEN
from chessterm.engine.events import BestMove, EngineFailure, EngineState, Progress
from chessterm.engine.search import SearchLimits
from chessterm.engine.session import EngineSession
from chessterm.errors import AlreadySearching, EngineUnavailable, ErrorKind

FAKE_ENGINE = str(Path(__file__).with_name("fake_engine.py"))


class _ScriptedProcess:
    """Stands in for QProcess: records commands and replays canned output."""

    def __init__(self, replies: dict[str, list[str]] | None = None) -> None:
        self.written: list[str] = []
        self.replies = replies or {}
        self.running = True
        self._pending = bytearray()

    def feed(self, *lines: str) -> None:
        for line in lines:
            self._pending.extend(f"{line}\n".encode())

    # -- QProcess surface -------------------------------------------------

    def state(self) -> QProcess.ProcessState:
        if self.running:
            return QProcess.ProcessState.Running
        return QProcess.ProcessState.NotRunning

    def write(self, data: bytes) -> int:
        command = data.decode().strip()
        self.written.append(command)
        self.feed(*self.replies.get(command, ()))
        return len(data)

    def waitForReadyRead(self, _msecs: int) -> bool:
        return bool(self._pending)

    def readAllStandardOutput(self) -> QByteArray:
        data = bytes(self._pending)
        self._pending.clear()
        return QByteArray(data)

    def waitForFinished(self, _msecs: int) -> bool:
        self.running = False
        return True

    def kill(self) -> None:
        self.running = False

    def blockSignals(self, _block: bool) -> bool:
        return False

    def deleteLater(self) -> None:
        pass

    def errorString(self) -> str:
        return "scripted"


def _session(
    replies: dict[str, list[str]] | None = None, **settings: object
) -> tuple[EngineSession, _ScriptedProcess, list[object]]:
    session = EngineSession(EngineSettings(**settings))
    process = _ScriptedProcess(replies)
    session._process = process  # type: ignore[assignment]
    events: list[object] = []
    session.subscribe(events.append)
    return session, process, events


class TestSyncPosition:
    def test_sends_full_position(self) -> None:
        session, process, _ = _session()
        generation = session.sync_position(STARTING_FEN, ["e2e4", "e7e5"])
        assert generation == 1
        assert process.written == ["position startpos moves e2e4 e7e5"]

    def test_each_sync_bumps_generation(self) -> None:
        session, _, _ = _session()
        session.sync_position(STARTING_FEN)
        session.sync_position(STARTING_FEN)
        assert session.generation == 2

    def test_without_process_only_remembers(self) -> None:
        session = EngineSession()
        session.sync_position(STARTING_FEN, ["d2d4"])
        assert session.position == (STARTING_FEN, ("d2d4",))
        assert not session.is_running


class TestSearch:
    def test_search_requires_process(self) -> None:
        session = EngineSession()
        session.sync_position(STARTING_FEN)
        with pytest.raises(EngineUnavailable):
            session.search()

    def test_search_requires_synced_position(self) -> None:
        session, _, _ = _session()
        with pytest.raises(RuntimeError, match="sync_position"):
            session.search()

    def test_second_search_is_rejected(self) -> None:
        session, process, _ = _session()
        session.sync_position(STARTING_FEN)
        session.search(SearchLimits(depth=5))
        with pytest.raises(AlreadySearching) as info:
            session.search()
        assert info.value.kind == ErrorKind.ALREADY_SEARCHING
        assert process.written.count("go depth 5") == 1

    def test_default_limits_come_from_settings(self) -> None:
        session, process, _ = _session(limits=SearchLimits(movetime_ms=250))
        session.sync_position(STARTING_FEN)
        session.search()
        assert process.written[-1] == "go movetime 250"

    def test_progress_and_bestmove_delivered_in_order(self) -> None:
        session, process, events = _session()
        best_spy = QSignalSpy(session.best_move)
        session.sync_position(STARTING_FEN)
        generation = session.search()
        assert session.state == EngineState.SEARCHING

        process.feed(
            "info depth 1 score cp 20 pv e2e4",
            "info string thinking hard",
            "info depth 2 score cp 31 pv e2e4 e7e5",
            "bestmove e2e4 ponder e7e5",
        )
        session._drain_output()

        assert [type(e) for e in events] == [Progress, Progress, BestMove]
        assert [e.depth for e in events[:2]] == [1, 2]
        assert events[2] == BestMove(generation, "e2e4", "e7e5")
        assert len(best_spy) == 1
        assert session.state == EngineState.IDLE

    def test_partial_lines_are_buffered(self) -> None:
        session, process, events = _session()
        session.sync_position(STARTING_FEN)
        session.search()
        process._pending.extend(b"bestmove e2")
        session._drain_output()
        assert events == []
        process._pending.extend(b"e4\n")
        session._drain_output()
        assert [e.move for e in events] == ["e2e4"]

    def test_bestmove_none(self) -> None:
        session, process, events = _session()
        session.sync_position("7k/5Q2/6K1/8/8/8/8/8 b - - 0 1")
        session.search()
        process.feed("bestmove (none)")
        session._drain_output()
        assert events == [BestMove(1, None)]


class TestStaleness:
    def test_old_generation_bestmove_is_dropped(self) -> None:
        session, process, events = _session()
        session.sync_position(STARTING_FEN)
        session.search()
        session.sync_position(STARTING_FEN, ["e2e4"])
        session.sync_position(STARTING_FEN, ["d2d4"])
        assert session.state == EngineState.IDLE
        assert "stop" in process.written

        process.feed("info depth 9 score cp 5 pv e2e4", "bestmove e2e4")
        session._drain_output()
        assert events == []

    def test_new_search_after_stale_answer(self) -> None:
        session, process, events = _session()
        session.sync_position(STARTING_FEN)
        session.search()
        generation = session.sync_position(STARTING_FEN, ["e2e4"])
        session.search()

        process.feed(
            "bestmove e2e4",  # answers the abandoned search
            "info depth 3 score cp -10 pv e7e5",
            "bestmove e7e5",
        )
        session._drain_output()

        assert [type(e) for e in events] == [Progress, BestMove]
        assert all(e.generation == generation for e in events)
        assert events[-1].move == "e7e5"

    def test_unsolicited_bestmove_is_ignored(self) -> None:
        session, process, events = _session()
        process.feed("bestmove e2e4")
        session._drain_output()
        assert events == []


class TestStop:
    def test_stop_absorbs_final_bestmove(self) -> None:
        session, process, events = _session({"stop": ["bestmove e2e4"]})
        spy = QSignalSpy(session.best_move)
        session.sync_position(STARTING_FEN)
        session.search()

        session.stop()

        assert session.state == EngineState.IDLE
        assert process.written[-1] == "stop"
        assert len(spy) == 0
        assert events == []
        assert not session._searches

    def test_late_output_after_stop_is_dropped(self) -> None:
        session, process, events = _session(stop_timeout_ms=10)
        session.sync_position(STARTING_FEN)
        session.search()
        session.stop()  # engine does not answer in time
        assert session.state == EngineState.IDLE

        process.feed("info depth 7 score cp 1 pv d2d4", "bestmove d2d4")
        session._drain_output()
        assert events == []

        generation = session.search()
        process.feed("bestmove g1f3")
        session._drain_output()
        assert events == [BestMove(generation, "g1f3")]

    def test_stop_when_idle_is_noop(self) -> None:
        session, process, _ = _session()
        session.sync_position(STARTING_FEN)
        session.stop()
        assert "stop" not in process.written

    def test_state_transitions(self) -> None:
        session, _, _ = _session({"stop": ["bestmove e2e4"]})
        states: list[object] = []
        session.state_changed.connect(states.append)
        session.sync_position(STARTING_FEN)
        session.search()
        session.stop()
        assert states == [EngineState.SEARCHING, EngineState.STOPPING, EngineState.IDLE]


class TestEngineOutput:
    def test_id_and_option_lines(self) -> None:
        session, process, _ = _session()
        process.feed(
            "id name FakeFish 1.0",
            "id author Somebody",
            "option name Hash type spin default 16 min 1 max 1024",
        )
        session._drain_output()
        assert session.engine_name == "FakeFish 1.0"
        assert session.engine_author == "Somebody"
        assert session.options["Hash"]["default"] == "16"

    def test_unexpected_exit_reports_failure(self) -> None:
        session, process, events = _session()
        failure_spy = QSignalSpy(session.failure)
        session.sync_position(STARTING_FEN)
        session.search()

        process.running = False
        session._on_finished(3, QProcess.ExitStatus.CrashExit)

        assert len(failure_spy) == 1
        assert isinstance(events[-1], EngineFailure)
        assert events[-1].kind == ErrorKind.ENGINE_UNAVAILABLE
        assert session.state == EngineState.IDLE
        assert not session.is_running
        assert session.position == (STARTING_FEN, ())

    def test_shutdown_quits_process(self) -> None:
        session, process, _ = _session()
        session.shutdown()
        assert process.written[-1] == "quit"
        assert not process.running
        assert not session.is_running

    def test_unsubscribe(self) -> None:
        session = EngineSession()
        process = _ScriptedProcess()
        session._process = process  # type: ignore[assignment]
        events: list[object] = []

        def listener(event: object) -> None:
            events.append(event)

        session.subscribe(listener)
        session.unsubscribe(listener)
        session.sync_position(STARTING_FEN)
        session.search()
        process.feed("bestmove e2e4")
        session._drain_output()
        assert events == []


class TestStartProcess:
    def test_missing_path(self) -> None:
        session = EngineSession()
        failures: list[object] = []
        session.failure.connect(failures.append)
        with pytest.raises(EngineUnavailable, match="No engine"):
            session.start_process()
        assert len(failures) == 1

    def test_unlaunchable_program(self, qapp: object, tmp_path: Path) -> None:
        session = EngineSession(EngineSettings(handshake_timeout_ms=2000))
        failures: list[object] = []
        session.failure.connect(failures.append)
        with pytest.raises(EngineUnavailable, match="Cannot launch"):
            session.start_process(str(tmp_path / "no-such-engine"))
        assert len(failures) == 1
        assert not session.is_running


@pytest.mark.slow
class TestRealProcess:
    """End-to-end runs against ``fake_engine.py`` in a child interpreter."""

    def _settings(self, *extra: str, **kwargs: object) -> EngineSettings:
        return EngineSettings(
            path=sys.executable, args=[FAKE_ENGINE, *extra], **kwargs
        )

    def test_handshake_and_search(self, qapp: object) -> None:
        with EngineSession(self._settings(options={"Hash": "32"})) as session:
            assert session.engine_name == "FakeFish 1.0"
            assert "Hash" in session.options

            events: list[object] = []
            session.subscribe(events.append)
            session.sync_position(STARTING_FEN)
            generation = session.search(SearchLimits(depth=3))
            assert session.wait_until_idle(5000)

            assert [type(e) for e in events] == [Progress, Progress, Progress, BestMove]
            assert events[-1] == BestMove(generation, "e2e4", "e7e5")
        assert not session.is_running

    def test_stop_infinite_search(self, qapp: object) -> None:
        with EngineSession(self._settings()) as session:
            events: list[object] = []
            session.sync_position(STARTING_FEN)
            session.search()
            session.subscribe(events.append)
            session.stop()
            assert session.state == EngineState.IDLE
            assert not any(isinstance(e, BestMove) for e in events)

    def test_restart_retransmits_position(self, qapp: object) -> None:
        with EngineSession(self._settings()) as session:
            session.sync_position(STARTING_FEN, ["e2e4"])
            before = session.generation
            session.restart()
            assert session.is_running
            assert session.generation > before

            events: list[object] = []
            session.subscribe(events.append)
            generation = session.search(SearchLimits(depth=1))
            assert session.wait_until_idle(5000)
            # The fake engine answers differently once it has seen moves.
            assert events[-1] == BestMove(generation, "a7a6", "e7e5")

    def test_silent_engine_times_out(self, qapp: object) -> None:
        session = EngineSession(
            self._settings("--silent", handshake_timeout_ms=300, handshake_retries=1)
        )
        failures: list[object] = []
        session.failure.connect(failures.append)
        with pytest.raises(EngineUnavailable, match="handshake"):
            session.start_process()
        assert len(failures) == 1
        assert not session.is_running
