import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from .constants import (
    APP_NAME,
    IGNORED_FILE_NAMES,
    PLACEHOLDER_NAMES,
    PLACEHOLDER_PREFIX,
    TEMP_MARKERS,
    TEMP_SUFFIXES,
)

logger = logging.getLogger(APP_NAME)


class RawEventKind(Enum):
    """The kind of a notification delivered by the filesystem watcher."""

    CREATED = "created"
    MODIFIED = "modified"
    MOVED = "moved"
    DELETED = "deleted"
    OTHER = "other"


@dataclass(frozen=True)
class RawEvent:
    """A filesystem notification before any filtering.

    Attributes:
        kind (RawEventKind): What happened.
        paths (tuple[Path, ...]): Affected paths. Moves carry ``(src, dest)``.
        is_directory (bool): Whether the event concerns a directory.
    """

    kind: RawEventKind
    paths: tuple[Path, ...]
    is_directory: bool = False

    @property
    def src(self) -> Path:
        return self.paths[0]

    @property
    def dest(self) -> Path:
        return self.paths[-1]


class ChangeKind(str, Enum):
    """The semantic change a logical event represents."""

    ADDED = "added"
    MODIFIED = "modified"
    RENAMED = "renamed"
    DELETED = "deleted"


@dataclass(frozen=True)
class ClassifiedEvent:
    """A de-noised change record.

    Attributes:
        path (Path): The file the change applies to.
        kind (ChangeKind): The semantic change.
        repeat (bool): True for a repeated modification of a path that was already
            reported since the last sync. Repeats extend the debounce window but
            are neither reported nor aggregated.
    """

    path: Path
    kind: ChangeKind
    repeat: bool = False


def should_ignore_file(path: Path) -> bool:
    """Whether a path is a VCS-internal or OS artifact.

    Git's own files (``index.lock``, ``.git*`` names and anything under a ``.git``
    directory) and desktop metadata files never reach the pending set.
    """
    name = path.name
    if name in IGNORED_FILE_NAMES or name.startswith(".git"):
        return True

    return ".git" in path.parts


def is_temp_file(path: Path) -> bool:
    """Whether a path looks like an editor temp file or an OS placeholder name."""
    name = path.name
    return (
        name.endswith(TEMP_SUFFIXES)
        or name.startswith("~")
        or any(marker in name for marker in TEMP_MARKERS)
        or name in PLACEHOLDER_NAMES
        or name.startswith(PLACEHOLDER_PREFIX)
    )


class EventClassifier:
    """Turns raw filesystem notifications into logical change events.

    A create event for a temp or placeholder name does not count as an addition.
    It arms the classifier, and the rename that follows (the user naming the new
    file, or an editor moving its temp file into place) is reported as a single
    ``added`` event for the destination.

    Attributes:
        rename_armed (bool): True while waiting for a create-then-rename pair.
    """

    def __init__(self) -> None:
        self.rename_armed = False
        self._armed_path: Path | None = None
        self._reported: dict[Path, ChangeKind] = {}

    def reset(self) -> None:
        """Forgets which paths were reported. Called after a committed sync."""
        self._reported.clear()

    def _arm(self, path: Path) -> None:
        self.rename_armed = True
        self._armed_path = path

    def _disarm(self) -> None:
        self.rename_armed = False
        self._armed_path = None

    def _emit(self, path: Path, kind: ChangeKind) -> ClassifiedEvent:
        self._reported[path] = kind
        return ClassifiedEvent(path, kind)

    def classify(self, raw: RawEvent) -> ClassifiedEvent | None:
        """Maps a raw notification to a logical event, or None if it is noise.

        Args:
            raw (RawEvent): The notification from the watcher.

        Returns:
            ClassifiedEvent | None: The logical event, or None when filtered.
        """
        if not raw.paths:
            return None
        if any(should_ignore_file(p) for p in raw.paths):
            logger.debug(f"Ignored {raw.kind.value} event for {raw.src}")
            return None

        if raw.is_directory and raw.kind in (
            RawEventKind.CREATED,
            RawEventKind.MODIFIED,
        ):
            # Git does not track empty directories; files inside report themselves.
            return None

        if raw.kind is RawEventKind.CREATED:
            return self._on_created(raw.src)
        if raw.kind is RawEventKind.MOVED:
            return self._on_moved(raw.dest)
        if raw.kind is RawEventKind.MODIFIED:
            return self._on_modified(raw.src)
        if raw.kind is RawEventKind.DELETED:
            return self._on_deleted(raw.src)
        return None

    def _on_created(self, path: Path) -> ClassifiedEvent | None:
        if is_temp_file(path):
            self._arm(path)
            return None

        self._disarm()
        return self._emit(path, ChangeKind.ADDED)

    def _on_moved(self, dest: Path) -> ClassifiedEvent | None:
        if self.rename_armed:
            if is_temp_file(dest):
                # Intermediate step of an atomic save; the final rename follows.
                return None
            self._disarm()
            return self._emit(dest, ChangeKind.ADDED)

        return self._emit(dest, ChangeKind.RENAMED)

    def _on_modified(self, path: Path) -> ClassifiedEvent | None:
        if is_temp_file(path):
            return None

        self._disarm()
        if self._reported.get(path) in (ChangeKind.MODIFIED, ChangeKind.ADDED):
            return ClassifiedEvent(path, ChangeKind.MODIFIED, repeat=True)

        return self._emit(path, ChangeKind.MODIFIED)

    def _on_deleted(self, path: Path) -> ClassifiedEvent | None:
        if is_temp_file(path):
            if path == self._armed_path:
                # The placeholder was discarded without ever being renamed.
                self._disarm()
            return None

        self._disarm()
        return self._emit(path, ChangeKind.DELETED)
