import logging
import queue
import signal
import threading
from collections.abc import Callable
from logging.handlers import RotatingFileHandler
from pathlib import Path
from types import FrameType

from watchdog.events import (
    DirCreatedEvent,
    DirDeletedEvent,
    DirModifiedEvent,
    DirMovedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from . import display
from .aggregator import ChangeAggregator
from .classifier import EventClassifier, RawEvent, RawEventKind
from .config import Config
from .constants import APP_NAME, EVENT_QUEUE_SIZE, LOG_FILE
from .engine import SyncEngine, SyncOutcome
from .errors import AutoGitSyncError, VcsCommandError, WatchError
from .scheduler import SyncScheduler

logger = logging.getLogger(APP_NAME)

_KINDS: dict[type, RawEventKind] = {
    FileCreatedEvent: RawEventKind.CREATED,
    DirCreatedEvent: RawEventKind.CREATED,
    FileModifiedEvent: RawEventKind.MODIFIED,
    DirModifiedEvent: RawEventKind.MODIFIED,
    FileMovedEvent: RawEventKind.MOVED,
    DirMovedEvent: RawEventKind.MOVED,
    FileDeletedEvent: RawEventKind.DELETED,
    DirDeletedEvent: RawEventKind.DELETED,
}


def _as_path(value: str | bytes) -> Path:
    if isinstance(value, bytes):
        value = value.decode(errors="surrogateescape")
    return Path(value)


def to_raw_event(event: FileSystemEvent) -> RawEvent:
    """Converts a watchdog event into a RawEvent."""
    kind = _KINDS.get(type(event), RawEventKind.OTHER)
    paths = [_as_path(event.src_path)]
    if kind is RawEventKind.MOVED:
        paths.append(_as_path(event.dest_path))
    return RawEvent(kind, tuple(paths), bool(event.is_directory))


class QueueingHandler(FileSystemEventHandler):
    """Forwards watchdog events into the watch loop's queue.

    Runs on the observer's thread and never touches session state.
    """

    def __init__(self, events: "queue.Queue[RawEvent]"):
        super().__init__()
        self.events = events

    def on_any_event(self, event: FileSystemEvent) -> None:
        raw = to_raw_event(event)
        if raw.kind is RawEventKind.OTHER:
            return
        try:
            self.events.put(raw, timeout=1.0)
        except queue.Full:
            # The next sync stages the whole tree, so the content is not lost.
            logger.warning(f"Event queue full, dropped {raw.kind.value} {raw.src}")


class FileWatcher:
    """Recursively watches a directory with a watchdog observer.

    Attributes:
        root (Path): The watched directory.
        events (queue.Queue[RawEvent]): Where notifications are delivered.
    """

    def __init__(self, root: Path, events: "queue.Queue[RawEvent]"):
        self.root = root
        self.events = events
        self._observer: Observer | None = None  # type: ignore[valid-type]

    def start(self) -> None:
        """Starts delivering events.

        Raises:
            WatchError: If the watch could not be established.
        """
        observer = Observer()
        try:
            observer.schedule(QueueingHandler(self.events), str(self.root), recursive=True)
            observer.daemon = True
            observer.start()
        except OSError as e:
            raise WatchError(self.root, str(e)) from e
        self._observer = observer
        logger.info(f"Watching {self.root}")

    def is_alive(self) -> bool:
        return self._observer is not None and self._observer.is_alive()

    def stop(self, timeout: float = 5.0) -> None:
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join(timeout=timeout)
        self._observer = None


class WatchSession:
    """The single consumer of filesystem events and owner of all sync state.

    Attributes:
        root (Path): The mirrored directory.
        config (Config): Sync settings.
        shutdown (threading.Event): Set to stop the loop.
        events (queue.Queue[RawEvent]): Notifications from the watcher thread.
        watcher (FileWatcher | None): The observer feeding `events`, restarted if it dies.
    """

    def __init__(
        self,
        root: Path,
        engine: SyncEngine,
        config: Config,
        shutdown: threading.Event,
        clock: Callable[[], float] | None = None,
        watcher: FileWatcher | None = None,
    ):
        self.root = root
        self.engine = engine
        self.config = config
        self.shutdown = shutdown
        self.watcher = watcher
        self.events: queue.Queue[RawEvent] = queue.Queue(maxsize=EVENT_QUEUE_SIZE)

        clock_kwargs = {"clock": clock} if clock else {}
        self.classifier = EventClassifier()
        self.aggregator = ChangeAggregator(config.sync.debounce, **clock_kwargs)
        self.scheduler = SyncScheduler(
            self.aggregator,
            self.classifier,
            self._sync,
            config.sync.interval,
            **clock_kwargs,
        )

    def _sync(self) -> SyncOutcome:
        outcome = self.engine.sync()
        if outcome.committed:
            display.success("Changes synced ✓")
        return outcome

    def handle(self, raw: RawEvent) -> None:
        """Classifies one notification and records it."""
        event = self.classifier.classify(raw)
        if event is None:
            return
        if event.repeat:
            self.aggregator.touch()
            return

        display.status_change(event.path, event.kind.value)
        self.aggregator.record(event)
        self.scheduler.note_event()

    def step(self) -> None:
        """Waits briefly for one notification, then lets the scheduler decide."""
        self._check_watcher()

        try:
            raw = self.events.get(timeout=self.config.sync.poll_interval)
        except queue.Empty:
            pass
        else:
            self.handle(raw)

        try:
            self.scheduler.tick()
        except VcsCommandError as e:
            display.error(f"Sync failed: {e}")

    def _check_watcher(self) -> None:
        """Restarts the observer if its thread died.

        Raises:
            WatchError: If the watch could not be re-established. Shutdown is
                set, so the session stops and flushes.
        """
        if self.watcher is None or self.watcher.is_alive():
            return

        display.warning(f"Lost the filesystem watch on {self.root}, restarting it.")
        self.watcher.stop(timeout=1.0)
        try:
            self.watcher.start()
        except WatchError:
            self.shutdown.set()
            raise

    def run(self) -> None:
        """Processes events until shutdown is requested, then flushes."""
        while not self.shutdown.is_set():
            try:
                self.step()
            except AutoGitSyncError as e:
                display.error(str(e))
            except Exception:
                logger.exception("LOOP ERROR")
                display.error("Unexpected error in watch loop, continuing.")

        self.flush()

    def flush(self) -> bool:
        """Performs the final sync, bounded by the shutdown timeout.

        Events still queued are recorded first. Failures and timeouts are logged
        and never block exit.

        Returns:
            bool: True if the flush finished (or there was nothing to do) in time.
        """
        while True:
            try:
                self.handle(self.events.get_nowait())
            except queue.Empty:
                break

        if not self.aggregator.has_pending:
            return True

        display.info("Flushing pending changes before exit...")

        def _flush() -> None:
            try:
                self.scheduler.flush()
            except Exception as e:
                display.error(f"Final sync failed: {e}")

        worker = threading.Thread(target=_flush, name="final-sync", daemon=True)
        worker.start()
        worker.join(timeout=self.config.sync.shutdown_timeout)
        if worker.is_alive():
            display.warning("Final sync timed out; exiting anyway.")
            return False
        return True


def install_signal_handlers(shutdown: threading.Event) -> None:
    """Routes SIGINT and SIGTERM to the shutdown event."""

    def handler(_signum: int, _frame: FrameType | None) -> None:
        shutdown.set()

    signal.signal(signal.SIGINT, handler)
    signal.signal(signal.SIGTERM, handler)


def setup_logging(config: Config, verbose: bool = False) -> None:
    """Configures the file logger.

    Console output goes through `display`; the log file keeps a rotating history.

    Args:
        config (Config): Supplies the log rotation size.
        verbose (bool): Whether to record DEBUG messages.
    """
    formatter = logging.Formatter(
        "[%(asctime)s] %(levelname)s: %(message)s", "%Y-%m-%d %H:%M:%S"
    )
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.propagate = False

    try:
        LOG_FILE.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            LOG_FILE,
            maxBytes=config.limits.max_log_size,
            backupCount=5,
        )
    except OSError as e:
        display.warning(f"Could not open log file {LOG_FILE}: {e}")
        return

    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)


def watch(
    root: Path,
    engine: SyncEngine,
    config: Config,
    shutdown: threading.Event,
) -> None:
    """Watches a bootstrapped directory until shutdown.

    Raises:
        WatchError: If the watch could not be established.
    """
    session = WatchSession(root, engine, config, shutdown)
    watcher = FileWatcher(root, session.events)
    watcher.start()
    session.watcher = watcher
    try:
        session.run()
    finally:
        watcher.stop()
