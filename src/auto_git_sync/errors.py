import re
from pathlib import Path

from .constants import SENSITIVE_ROOTS, SENSITIVE_WINDOWS_PARTS

_CREDENTIAL_RE = re.compile(r"(://)[^@/\s]+@")


def redact(text: str) -> str:
    """Masks credentials embedded in URLs (``https://<token>@host``)."""
    return _CREDENTIAL_RE.sub(r"\1***@", text)


class AutoGitSyncError(Exception):
    """Base class for every error raised by Auto Git Sync."""


class WatchError(AutoGitSyncError):
    """The filesystem watch could not be established or maintained.

    Attributes:
        path (Path): The watched root.
        message (str): The underlying failure reason.
    """

    def __init__(self, path: Path, message: str):
        self.path = path
        self.message = message
        super().__init__(f"Failed to watch directory {path}: {message}")


class VcsCommandError(AutoGitSyncError):
    """A git command exited with a non-zero status.

    Attributes:
        command (list[str]): The git arguments, with credentials redacted.
        stderr (str): The command's standard error (or output if stderr was empty).
    """

    def __init__(self, command: list[str], stderr: str):
        self.command = [redact(part) for part in command]
        self.stderr = redact(stderr.strip())
        super().__init__(
            f"Git command failed: {self.stderr or 'unknown error'} "
            f"({' '.join(self.command)})"
        )


class ProvisioningError(AutoGitSyncError):
    """The remote repository could not be created.

    Attributes:
        name (str): The repository name.
        status_code (int | None): The HTTP status, or None on transport failure.
        body (str): The response body or transport error text.
    """

    def __init__(self, name: str, status_code: int | None, body: str):
        self.name = name
        self.status_code = status_code
        self.body = body
        status = f"HTTP {status_code}" if status_code is not None else "network error"
        super().__init__(f"Failed to create repository '{name}' ({status}): {body}")


class InvalidPathError(AutoGitSyncError):
    """The target directory is missing or unusable."""

    def __init__(self, path: Path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid path {path}: {reason}")


class SecurityError(AutoGitSyncError):
    """The target directory is a sensitive system location."""

    def __init__(self, path: Path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Refusing to monitor {path}: {reason}")


class ConfigError(AutoGitSyncError):
    """The configuration file is missing or holds invalid values."""

    def __init__(self, path: Path, message: str):
        self.path = path
        self.message = message
        super().__init__(f"Invalid configuration in {path}: {message}")


def _is_sensitive(resolved: Path) -> bool:
    if resolved == Path(resolved.anchor):
        return True

    for root in SENSITIVE_ROOTS:
        if resolved == Path(root) or resolved.is_relative_to(root):
            return True

    parts = {part.lower() for part in resolved.parts}
    return bool(parts & SENSITIVE_WINDOWS_PARTS)


def validate_path(path: Path) -> Path:
    """Checks that a directory may be watched and mirrored.

    Args:
        path (Path): The user-supplied directory.

    Returns:
        Path: The resolved directory path.

    Raises:
        InvalidPathError: If the path does not exist or is not a directory.
        SecurityError: If the path is the filesystem root or a system directory.
    """
    if not path.exists():
        raise InvalidPathError(path, "Path does not exist")

    if not path.is_dir():
        raise InvalidPathError(path, "Path must be a directory")

    resolved = path.resolve()
    if _is_sensitive(resolved):
        raise SecurityError(resolved, "Cannot monitor system directories")

    return resolved


def sanitize_repo_name(name: str) -> str:
    """Converts a directory name into a valid GitHub repository name.

    Alphanumerics, ``-`` and ``_`` are kept (lowercased); everything else becomes
    ``-``. Leading and trailing dashes are stripped.
    """
    sanitized = "".join(
        c.lower() if (c.isascii() and c.isalnum()) or c in "-_" else "-" for c in name
    )
    return sanitized.strip("-")
