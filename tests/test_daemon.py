"""Tests for the watch loop, the shutdown flush and the watchdog adapter."""

import logging
import queue
import threading
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from watchdog.events import (
    DirCreatedEvent,
    FileClosedEvent,
    FileCreatedEvent,
    FileMovedEvent,
)

from auto_git_sync import daemon
from auto_git_sync.classifier import ChangeKind, RawEvent, RawEventKind
from auto_git_sync.config import Config
from auto_git_sync.engine import SyncEngine, SyncOutcome
from auto_git_sync.errors import VcsCommandError, WatchError
from auto_git_sync.scheduler import SyncState

from .conftest import FakeClock


@pytest.fixture
def mock_display(mocker: MagicMock) -> MagicMock:
    return mocker.patch("auto_git_sync.daemon.display")


@pytest.fixture
def engine() -> MagicMock:
    mock = MagicMock(spec=SyncEngine)
    mock.sync.return_value = SyncOutcome(committed=True)
    return mock


@pytest.fixture
def session(
    tmp_path: Path,
    engine: MagicMock,
    config: Config,
    clock: FakeClock,
    mock_display: MagicMock,
) -> daemon.WatchSession:
    return daemon.WatchSession(
        tmp_path, engine, config, threading.Event(), clock=clock
    )


def created(name: str) -> RawEvent:
    return RawEvent(RawEventKind.CREATED, (Path(name),))


def modified(name: str) -> RawEvent:
    return RawEvent(RawEventKind.MODIFIED, (Path(name),))


# --- watchdog adapter ---


def test_to_raw_event_maps_watchdog_events() -> None:
    raw = daemon.to_raw_event(FileCreatedEvent("/w/a.txt"))
    assert raw == RawEvent(RawEventKind.CREATED, (Path("/w/a.txt"),), False)

    raw = daemon.to_raw_event(FileMovedEvent("/w/New Folder", "/w/b.txt"))
    assert raw.kind is RawEventKind.MOVED
    assert (raw.src, raw.dest) == (Path("/w/New Folder"), Path("/w/b.txt"))

    assert daemon.to_raw_event(DirCreatedEvent("/w/sub")).is_directory
    assert daemon.to_raw_event(FileClosedEvent("/w/a.txt")).kind is RawEventKind.OTHER


def test_handler_queues_events_and_skips_others() -> None:
    events: queue.Queue[RawEvent] = queue.Queue()
    handler = daemon.QueueingHandler(events)

    handler.on_any_event(FileClosedEvent("/w/a.txt"))
    handler.on_any_event(FileCreatedEvent("/w/a.txt"))

    assert events.get_nowait().kind is RawEventKind.CREATED
    assert events.empty()


def test_handler_drops_when_queue_is_full(caplog: pytest.LogCaptureFixture) -> None:
    events = MagicMock()
    events.put.side_effect = queue.Full

    daemon.QueueingHandler(events).on_any_event(FileCreatedEvent("/w/a.txt"))

    assert "Event queue full" in caplog.text


def test_file_watcher_delivers_real_events(tmp_path: Path) -> None:
    events: queue.Queue[RawEvent] = queue.Queue()
    watcher = daemon.FileWatcher(tmp_path, events)
    watcher.start()
    assert watcher.is_alive()
    try:
        (tmp_path / "hello.txt").write_text("hi")
        seen = set()
        while Path(tmp_path / "hello.txt") not in seen:
            seen.add(events.get(timeout=5).src)
    finally:
        watcher.stop()
    assert not watcher.is_alive()


# --- watch session ---


def test_handle_reports_and_records(
    session: daemon.WatchSession, mock_display: MagicMock
) -> None:
    session.handle(created("notes.txt"))

    mock_display.status_change.assert_called_once_with(Path("notes.txt"), "added")
    assert session.aggregator.pending[Path("notes.txt")].kind is ChangeKind.ADDED
    assert session.scheduler.state is SyncState.DEBOUNCING


def test_handle_repeat_only_extends_debounce(
    session: daemon.WatchSession, mock_display: MagicMock, clock: FakeClock
) -> None:
    session.handle(modified("a.txt"))
    first = session.aggregator.last_event_at
    clock.advance(1.0)

    session.handle(modified("a.txt"))

    assert mock_display.status_change.call_count == 1
    assert session.aggregator.last_event_at == first + 1.0
    assert len(session.aggregator) == 1


def test_handle_drops_noise(
    session: daemon.WatchSession, mock_display: MagicMock
) -> None:
    session.handle(modified(".git/index.lock"))
    session.handle(created("~$report.docx"))

    mock_display.status_change.assert_not_called()
    assert not session.aggregator.has_pending


def test_step_syncs_after_debounce(
    session: daemon.WatchSession,
    engine: MagicMock,
    mock_display: MagicMock,
    clock: FakeClock,
) -> None:
    session.events.put(created("a.txt"))

    session.step()
    engine.sync.assert_not_called()

    clock.advance(session.config.sync.debounce)
    session.step()

    engine.sync.assert_called_once()
    mock_display.success.assert_called_once_with("Changes synced ✓")
    assert not session.aggregator.has_pending


def test_step_reports_sync_failure_and_keeps_changes(
    session: daemon.WatchSession,
    engine: MagicMock,
    mock_display: MagicMock,
    clock: FakeClock,
) -> None:
    engine.sync.side_effect = VcsCommandError(["push"], "remote hung up")
    session.handle(created("a.txt"))
    clock.advance(session.config.sync.debounce)

    session.step()

    mock_display.error.assert_called_once()
    assert "remote hung up" in mock_display.error.call_args[0][0]
    assert session.aggregator.has_pending


def test_run_survives_unexpected_errors(
    session: daemon.WatchSession, mocker: MagicMock, mock_display: MagicMock
) -> None:
    calls = []

    def step() -> None:
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("boom")
        session.shutdown.set()

    mocker.patch.object(session, "step", side_effect=step)

    session.run()

    assert len(calls) == 2
    mock_display.error.assert_called_once_with(
        "Unexpected error in watch loop, continuing."
    )


def test_step_restarts_a_dead_watcher(
    session: daemon.WatchSession, mock_display: MagicMock
) -> None:
    watcher = MagicMock(spec=daemon.FileWatcher)
    watcher.is_alive.return_value = False
    session.watcher = watcher

    session.step()

    watcher.stop.assert_called_once()
    watcher.start.assert_called_once()
    assert "Lost the filesystem watch" in mock_display.warning.call_args[0][0]
    assert not session.shutdown.is_set()


def test_step_leaves_a_live_watcher_alone(session: daemon.WatchSession) -> None:
    watcher = MagicMock(spec=daemon.FileWatcher)
    watcher.is_alive.return_value = True
    session.watcher = watcher

    session.step()

    watcher.start.assert_not_called()


def test_run_stops_and_flushes_when_watch_cannot_restart(
    session: daemon.WatchSession,
    engine: MagicMock,
    mock_display: MagicMock,
    tmp_path: Path,
) -> None:
    watcher = MagicMock(spec=daemon.FileWatcher)
    watcher.is_alive.return_value = False
    watcher.start.side_effect = WatchError(tmp_path, "inotify limit reached")
    session.watcher = watcher
    session.handle(modified("a.txt"))

    session.run()

    assert session.shutdown.is_set()
    assert "inotify limit reached" in mock_display.error.call_args_list[0][0][0]
    engine.sync.assert_called_once()


def test_run_flushes_on_shutdown(
    session: daemon.WatchSession, engine: MagicMock
) -> None:
    session.handle(modified("a.txt"))
    session.shutdown.set()

    session.run()

    engine.sync.assert_called_once()


def test_flush_records_queued_events_first(
    session: daemon.WatchSession, engine: MagicMock
) -> None:
    session.events.put(created("late.txt"))

    assert session.flush() is True

    engine.sync.assert_called_once()
    assert not session.aggregator.has_pending


def test_flush_with_nothing_pending(
    session: daemon.WatchSession, engine: MagicMock
) -> None:
    assert session.flush() is True
    engine.sync.assert_not_called()


def test_flush_failure_is_reported(
    session: daemon.WatchSession, engine: MagicMock, mock_display: MagicMock
) -> None:
    engine.sync.side_effect = VcsCommandError(["push"], "denied")
    session.handle(modified("a.txt"))

    assert session.flush() is True

    assert "Final sync failed" in mock_display.error.call_args[0][0]


def test_flush_gives_up_after_timeout(
    session: daemon.WatchSession, engine: MagicMock, mock_display: MagicMock
) -> None:
    release = threading.Event()

    def slow_sync() -> SyncOutcome:
        release.wait(5)
        return SyncOutcome(committed=True)

    engine.sync.side_effect = slow_sync
    session.config.sync.shutdown_timeout = 0.05
    session.handle(modified("a.txt"))

    try:
        assert session.flush() is False
    finally:
        release.set()

    mock_display.warning.assert_called_once_with(
        "Final sync timed out; exiting anyway."
    )


# --- process plumbing ---


def test_signal_handlers_set_shutdown(mocker: MagicMock) -> None:
    mock_signal = mocker.patch("auto_git_sync.daemon.signal.signal")
    shutdown = threading.Event()

    daemon.install_signal_handlers(shutdown)

    assert mock_signal.call_count == 2
    handler = mock_signal.call_args_list[0][0][1]
    handler(2, None)
    assert shutdown.is_set()


@pytest.fixture
def restore_logger():
    logger = logging.getLogger("auto-git-sync")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield logger
    for handler in logger.handlers[len(handlers) :]:
        handler.close()
    logger.handlers = handlers
    logger.setLevel(level)
    logger.propagate = propagate


def test_setup_logging_writes_rotating_file(
    tmp_path: Path, config: Config, mocker: MagicMock, restore_logger: logging.Logger
) -> None:
    log_file = tmp_path / "state" / "sync.log"
    mocker.patch("auto_git_sync.daemon.LOG_FILE", log_file)

    daemon.setup_logging(config, verbose=True)
    restore_logger.debug("hello log")
    for handler in restore_logger.handlers:
        handler.flush()

    assert restore_logger.level == logging.DEBUG
    assert "DEBUG: hello log" in log_file.read_text()
