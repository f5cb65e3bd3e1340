import logging
import time
from collections.abc import Callable
from enum import Enum

from .aggregator import ChangeAggregator
from .classifier import EventClassifier
from .constants import APP_NAME
from .engine import SyncOutcome

logger = logging.getLogger(APP_NAME)


class SyncState(Enum):
    """Scheduler states.

    IDLE: nothing pending, no sync running.
    DEBOUNCING: changes pending, waiting out the debounce window or interval.
    SYNCING: a sync is in flight.
    """

    IDLE = "idle"
    DEBOUNCING = "debouncing"
    SYNCING = "syncing"


class SyncScheduler:
    """Decides when a sync runs and applies its outcome.

    A sync fires when changes are pending, no create-then-rename pair is still
    unresolved, the debounce window has elapsed, and either an addition forced it
    or the sync interval has passed since the previous sync. At most one sync is
    in flight at any time.

    Attributes:
        state (SyncState): The current state.
        last_sync_at (float): Clock reading of the previous sync attempt.
        sync_interval (float): Minimum spacing between two non-forced syncs.
    """

    def __init__(
        self,
        aggregator: ChangeAggregator,
        classifier: EventClassifier,
        sync: Callable[[], SyncOutcome],
        sync_interval: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.aggregator = aggregator
        self.classifier = classifier
        self.sync = sync
        self.sync_interval = sync_interval
        self.clock = clock
        self.state = SyncState.IDLE
        # Bootstrap has just pushed, so the interval counts from start-up.
        self.last_sync_at = clock()

    def note_event(self) -> None:
        """Moves IDLE to DEBOUNCING once something is pending."""
        if self.state is SyncState.IDLE and self.aggregator.has_pending:
            self.state = SyncState.DEBOUNCING

    def is_due(self, now: float | None = None) -> bool:
        """Whether every condition for a sync attempt holds."""
        if self.state is SyncState.SYNCING:
            return False

        agg = self.aggregator
        if not agg.has_pending or self.classifier.rename_armed:
            return False

        now = self.clock() if now is None else now
        if not agg.is_quiet(now):
            return False

        return agg.force_sync or now - self.last_sync_at >= self.sync_interval

    def tick(self) -> SyncOutcome | None:
        """Runs a sync if one is due.

        Returns:
            SyncOutcome | None: The outcome, or None if no sync was attempted.
        """
        if not self.is_due():
            return None
        return self._run()

    def flush(self) -> SyncOutcome | None:
        """Final sync at shutdown, ignoring the debounce, interval and force gates.

        Returns:
            SyncOutcome | None: The outcome, or None if nothing was pending.
        """
        if not self.aggregator.has_pending:
            return None
        if self.state is SyncState.SYNCING:
            logger.warning("Shutdown flush skipped: a sync is already running.")
            return None
        return self._run()

    def _run(self) -> SyncOutcome:
        synced = self.aggregator.snapshot()
        self.state = SyncState.SYNCING
        try:
            outcome = self.sync()
        except Exception:
            self._retry_later()
            raise

        if outcome.committed:
            self.aggregator.clear(synced)
            self.classifier.reset()
            self.last_sync_at = self.clock()
            self.state = (
                SyncState.DEBOUNCING if self.aggregator.has_pending else SyncState.IDLE
            )
        else:
            self._retry_later()
        return outcome

    def _retry_later(self) -> None:
        # Pending changes stay; the next attempt waits out the interval.
        self.aggregator.force_sync = False
        self.last_sync_at = self.clock()
        self.state = SyncState.DEBOUNCING
