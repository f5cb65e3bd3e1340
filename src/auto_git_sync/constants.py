import os
from pathlib import Path

"""Global constants and configuration path definitions for Auto Git Sync.

This module defines the filesystem layout (adhering to XDG standards where applicable),
application identifiers, the file name patterns the event classifier filters, and the
default sync timings used across the application.
"""

# --- Identity ---
APP_NAME = "auto-git-sync"
"""str: The human-readable application name."""

USER_AGENT = "auto-git-sync"
"""str: The User-Agent header sent to the GitHub API."""

# --- Paths ---
_XDG_STATE = os.environ.get("XDG_STATE_HOME")
_BASE_STATE = Path(_XDG_STATE) if _XDG_STATE else Path.home() / ".local/state"

STATE_DIR = _BASE_STATE / "auto-git-sync"
"""Path: The directory for runtime state data (logs)."""

LOG_FILE = STATE_DIR / "sync.log"
"""Path: The file path for the watcher logs."""

_XDG_CONFIG = os.environ.get("XDG_CONFIG_HOME")
_BASE_CONFIG = Path(_XDG_CONFIG) if _XDG_CONFIG else Path.home() / ".config"

CONFIG_DIR: Path = _BASE_CONFIG / "auto-git-sync"
"""Path: The directory for user configuration files."""

CONFIG_FILE: Path = CONFIG_DIR / "config.toml"
"""Path: The main configuration file path."""

TOKEN_ENV_VARS = ("AUTO_GIT_SYNC_TOKEN", "GITHUB_TOKEN")
"""tuple[str, ...]: Environment variables that override the configured token."""

# --- Git / Sync Constants ---
DEFAULT_BRANCH = "main"
DEFAULT_REMOTE = "origin"
DEFAULT_COMMIT_MESSAGE = "Auto-sync update"
INITIAL_COMMIT_MESSAGE = "Initial commit"

DEFAULT_SYNC_INTERVAL = 2.0
"""float: Minimum seconds between two non-forced syncs."""

DEFAULT_DEBOUNCE_WINDOW = 2.0
"""float: Quiet period after the last event before a sync may start."""

DEFAULT_POLL_INTERVAL = 0.1
"""float: Seconds the watch loop waits for an event before ticking the scheduler."""

DEFAULT_SHUTDOWN_TIMEOUT = 10.0
"""float: Upper bound on the final sync performed during shutdown."""

EVENT_QUEUE_SIZE = 10_000
"""int: Capacity of the queue between the watchdog thread and the watch loop."""

GIT_COMMAND_TIMEOUT = 120.0
"""float: Upper bound on a single git invocation, so a stalled push cannot block shutdown."""

GITHUB_API_URL = "https://api.github.com"
GITHUB_HOST = "github.com"

# --- Event filtering ---
IGNORED_FILE_NAMES = frozenset(
    {
        "index.lock",
        ".DS_Store",
        "Thumbs.db",
        "desktop.ini",
    }
)
"""frozenset[str]: VCS and OS artifacts that never enter the pending set."""

TEMP_SUFFIXES = (".tmp", ".TMP")

TEMP_MARKERS = ("~RF", "~$")
"""tuple[str, ...]: Substrings used by office-suite atomic-save temp files."""

PLACEHOLDER_NAMES = frozenset(
    {
        "New Text Document.txt",
        "New Microsoft Word Document.docx",
        "New Microsoft Excel Worksheet.xlsx",
        "New Microsoft PowerPoint Presentation.pptx",
        "New Rich Text Document.rtf",
        "New folder",
    }
)
"""frozenset[str]: Default names produced by OS "new file" actions."""

PLACEHOLDER_PREFIX = "New "

# --- Path security ---
SENSITIVE_ROOTS = (
    "/etc",
    "/usr",
    "/bin",
    "/sbin",
    "/dev",
    "/proc",
    "/sys",
    "/var",
    "/boot",
    "/lib",
)
"""tuple[str, ...]: POSIX system locations that must never be mirrored."""

SENSITIVE_WINDOWS_PARTS = frozenset({"windows", "system32", "program files"})
"""frozenset[str]: Lowercased Windows path components that must never be mirrored."""
