import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from .classifier import ChangeKind, ClassifiedEvent


@dataclass
class PendingChange:
    """A change waiting to be synced.

    Attributes:
        path (Path): The changed file.
        kind (ChangeKind): The most recent change observed for the path.
        observed_at (float): Clock reading when the change was recorded.
    """

    path: Path
    kind: ChangeKind
    observed_at: float


class ChangeAggregator:
    """Accumulates pending changes keyed by path, with debounce timing.

    A later event for a path overwrites the earlier record, so the pending set
    holds at most one record per path. An ``added`` change raises ``force_sync``
    so new content does not wait out the full sync interval.

    Attributes:
        debounce_window (float): Quiet period required before a sync may start.
        pending (dict[Path, PendingChange]): The pending set.
        last_event_at (float | None): Clock reading of the latest event.
        force_sync (bool): Whether the interval gate should be bypassed.
    """

    def __init__(
        self, debounce_window: float, clock: Callable[[], float] = time.monotonic
    ):
        self.debounce_window = debounce_window
        self.clock = clock
        self.pending: dict[Path, PendingChange] = {}
        self.last_event_at: float | None = None
        self.force_sync = False

    def __len__(self) -> int:
        return len(self.pending)

    @property
    def has_pending(self) -> bool:
        return bool(self.pending)

    def record(self, event: ClassifiedEvent) -> PendingChange:
        """Inserts or overwrites the pending record for the event's path."""
        now = self.clock()
        change = PendingChange(event.path, event.kind, now)
        self.pending[event.path] = change
        self.last_event_at = now
        if event.kind is ChangeKind.ADDED:
            self.force_sync = True
        return change

    def touch(self) -> None:
        """Restarts the debounce window without recording a change."""
        self.last_event_at = self.clock()

    def is_quiet(self, now: float | None = None) -> bool:
        """Whether the debounce window has elapsed since the last event."""
        if self.last_event_at is None:
            return True
        now = self.clock() if now is None else now
        return now - self.last_event_at >= self.debounce_window

    def clear(self, synced: list[PendingChange] | None = None) -> None:
        """Drops pending records once a sync has committed them.

        Args:
            synced (list[PendingChange] | None): The records that were pending when
                the sync started. Records replaced or added since then are kept.
                None drops everything.
        """
        if synced is None:
            self.pending.clear()
        else:
            for change in synced:
                if self.pending.get(change.path) is change:
                    del self.pending[change.path]

        self.force_sync = any(
            c.kind is ChangeKind.ADDED for c in self.pending.values()
        )

    def snapshot(self) -> list[PendingChange]:
        return list(self.pending.values())
