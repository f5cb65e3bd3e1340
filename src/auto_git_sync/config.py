import logging
import os
import re
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from .constants import (
    APP_NAME,
    CONFIG_FILE,
    DEFAULT_BRANCH,
    DEFAULT_COMMIT_MESSAGE,
    DEFAULT_DEBOUNCE_WINDOW,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_REMOTE,
    DEFAULT_SHUTDOWN_TIMEOUT,
    DEFAULT_SYNC_INTERVAL,
    TOKEN_ENV_VARS,
)
from .errors import ConfigError

logger = logging.getLogger(APP_NAME)

TOKEN_PREFIXES = ("ghp_", "github_pat_")
MIN_TOKEN_LENGTH = 40


def parse_size(value: int | str) -> int:
    """Converts human-readable size strings (e.g., '100MB') to bytes."""
    if isinstance(value, int):
        return value
    match = re.match(r"^(\d+(?:\.\d+)?)\s*([kmg]b?)$", str(value).strip().lower())
    if not match:
        raise ValueError(f"Invalid size format '{value}'")
    num, unit = float(match.group(1)), match.group(2)
    multiplier = {
        "k": 1024,
        "kb": 1024,
        "m": 1024**2,
        "mb": 1024**2,
        "g": 1024**3,
        "gb": 1024**3,
    }
    return int(num * multiplier[unit])


def parse_time(value: int | float | str) -> float:
    """Converts human-readable time strings (e.g., '2s', '500ms', '5m') to seconds."""
    if isinstance(value, bool):
        raise ValueError(f"Invalid time format '{value}'")
    if isinstance(value, (int, float)):
        if value < 0:
            raise ValueError(f"Invalid time format '{value}'")
        return float(value)
    match = re.match(
        r"^(\d+(?:\.\d+)?)\s*(ms|s|sec|m|min|h|hr)s?$", str(value).strip().lower()
    )
    if not match:
        raise ValueError(f"Invalid time format '{value}'")
    num, unit = float(match.group(1)), match.group(2)
    multiplier = {
        "ms": 0.001,
        "s": 1,
        "sec": 1,
        "m": 60,
        "min": 60,
        "h": 3600,
        "hr": 3600,
    }
    return num * multiplier[unit]


@dataclass
class GitHubConfig:
    """Credentials and identity used for commits and the GitHub API.

    Attributes:
        token (str): Personal access token. Never shown in reprs.
        username (str): GitHub account that owns the mirrored repository.
        email (str): Email recorded in commits.
    """

    token: str = field(default="", repr=False)
    username: str = ""
    email: str = ""


@dataclass
class SyncConfig:
    """Sync scheduling settings.

    Attributes:
        interval (float): Minimum seconds between two non-forced syncs.
        debounce (float): Quiet period after the last event before syncing.
        poll_interval (float): Event wait timeout of the watch loop.
        shutdown_timeout (float): Upper bound on the final sync at shutdown.
        branch (str): The branch that mirrors the directory.
        remote (str): The remote the branch is force-pushed to.
        commit_message (str): Message used for every automatic commit.
    """

    interval: float = DEFAULT_SYNC_INTERVAL
    debounce: float = DEFAULT_DEBOUNCE_WINDOW
    poll_interval: float = DEFAULT_POLL_INTERVAL
    shutdown_timeout: float = DEFAULT_SHUTDOWN_TIMEOUT
    branch: str = DEFAULT_BRANCH
    remote: str = DEFAULT_REMOTE
    commit_message: str = DEFAULT_COMMIT_MESSAGE


@dataclass
class LimitsConfig:
    """Resource limitation settings.

    Attributes:
        max_log_size (int): Max bytes for log files before rotation.
    """

    max_log_size: int = 5 * 1024 * 1024


_TIME_KEYS = ("interval", "debounce", "poll_interval", "shutdown_timeout")
_SIZE_KEYS = ("max_log_size",)


@dataclass
class Config:
    """Global configuration aggregator.

    Attributes:
        github (GitHubConfig): Credentials and identity.
        sync (SyncConfig): Scheduling settings.
        limits (LimitsConfig): Resource limits.
        path (Path): The file this configuration was read from.
    """

    github: GitHubConfig = field(default_factory=GitHubConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    path: Path = CONFIG_FILE

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Loads configuration from disk, applying defaults where necessary.

        Environment variables listed in ``TOKEN_ENV_VARS`` override the token.

        Args:
            path (Path | None): Config file to read. Defaults to ``CONFIG_FILE``.

        Returns:
            Config: The populated configuration object.

        Raises:
            ConfigError: If the file does not exist or is not valid TOML.
        """
        path = path or CONFIG_FILE
        if not path.exists():
            raise ConfigError(path, "Config file not found")

        instance = cls(path=path)
        instance._merge_from_file(path)

        for var in TOKEN_ENV_VARS:
            if token := os.environ.get(var):
                instance.github.token = token
                break

        return instance

    def _merge_from_file(self, path: Path) -> None:
        """Parses a TOML file and merges it into the current instance."""
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(path, f"Syntax error: {e}") from e
        except OSError as e:
            raise ConfigError(path, str(e)) from e

        if "github" in data:
            self.github = self._update_dataclass("github", self.github, data["github"])
        if "sync" in data:
            self.sync = self._update_dataclass("sync", self.sync, data["sync"])
        if "limits" in data:
            self.limits = self._update_dataclass("limits", self.limits, data["limits"])

        unknown = set(data) - {"github", "sync", "limits"}
        if unknown:
            logger.warning(
                f"Unknown config sections: {', '.join(sorted(unknown))}. Ignoring."
            )

    @staticmethod
    def _update_dataclass(section_name: str, instance: Any, updates: dict) -> Any:
        """Updates a dataclass, warning on invalid keys and parsing human-readable formats."""
        valid_keys = instance.__dataclass_fields__.keys()
        filtered_updates = {}

        invalid_keys = set(updates.keys()) - set(valid_keys)
        if invalid_keys:
            logger.warning(
                f"Unknown config keys in [{section_name}]: {', '.join(sorted(invalid_keys))}. Ignoring."
            )

        for k, v in updates.items():
            if k not in valid_keys:
                continue

            try:
                if k in _SIZE_KEYS:
                    filtered_updates[k] = parse_size(v)
                elif k in _TIME_KEYS:
                    filtered_updates[k] = parse_time(v)
                elif not isinstance(v, str):
                    raise ValueError(f"Expected a string, got '{v}'")
                else:
                    filtered_updates[k] = v
            except ValueError as e:
                logger.warning(
                    f"Config error in [{section_name}].{k}: {e}. Falling back to default."
                )

        return replace(instance, **filtered_updates)

    def validate(self) -> None:
        """Checks the credentials required to provision and push.

        Raises:
            ConfigError: If the token, username or email is unusable.
        """
        token = self.github.token
        if not token:
            raise ConfigError(self.path, "GitHub token cannot be empty")
        if len(token) < MIN_TOKEN_LENGTH or not token.startswith(TOKEN_PREFIXES):
            raise ConfigError(
                self.path,
                "Invalid GitHub token format: must start with 'ghp_' or 'github_pat_'",
            )
        if not self.github.username:
            raise ConfigError(self.path, "Git username cannot be empty")
        email = self.github.email
        if "@" not in email or "." not in email:
            raise ConfigError(self.path, "Invalid email format")


def _toml_string(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def write_example(path: Path = CONFIG_FILE) -> Path:
    """Writes a template config file for the user to fill in.

    Returns:
        Path: The path that was written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        "# Auto Git Sync Configuration\n\n"
        "[github]\n"
        'token = "your_github_token"\n'
        'username = "your_name"\n'
        'email = "your_email"\n\n'
        "[sync]\n"
        "# Minimum time between syncs (e.g. '2s', '1m', 30).\n"
        f'interval = "{int(DEFAULT_SYNC_INTERVAL)}s"\n'
        "# Quiet period after the last change before syncing.\n"
        f'debounce = "{int(DEFAULT_DEBOUNCE_WINDOW)}s"\n'
        f'# branch = "{DEFAULT_BRANCH}"\n'
    )
    return path


def update_file(
    path: Path = CONFIG_FILE,
    token: str | None = None,
    username: str | None = None,
    email: str | None = None,
) -> Path:
    """Sets GitHub credentials in the config file, keeping the other sections.

    Args:
        path (Path): The config file to rewrite. Created if missing.
        token (str | None): New token, or None to keep the current one.
        username (str | None): New username, or None to keep the current one.
        email (str | None): New email, or None to keep the current one.

    Returns:
        Path: The path that was written.
    """
    lines = path.read_text().splitlines() if path.exists() else []
    updates = {
        k: v
        for k, v in (("token", token), ("username", username), ("email", email))
        if v is not None
    }

    out: list[str] = []
    section = None
    seen_github = False
    for line in lines:
        stripped = line.strip()
        if stripped.startswith("[") and stripped.endswith("]"):
            if section == "github":
                out.extend(f"{k} = {_toml_string(v)}" for k, v in updates.items())
                updates = {}
            section = stripped[1:-1].strip()
            seen_github = seen_github or section == "github"
        elif section == "github":
            key = stripped.split("=", 1)[0].strip()
            if key in updates:
                out.append(f"{key} = {_toml_string(updates.pop(key))}")
                continue
        out.append(line)

    if section == "github":
        out.extend(f"{k} = {_toml_string(v)}" for k, v in updates.items())
    elif not seen_github:
        if out:
            out.append("")
        out.append("[github]")
        out.extend(f"{k} = {_toml_string(v)}" for k, v in updates.items())

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(out) + "\n")
    return path
