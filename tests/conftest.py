"""Shared fixtures for the test suite."""

import shutil
import subprocess
from pathlib import Path

import pytest

from auto_git_sync.config import Config

VALID_TOKEN = "ghp_" + "a" * 40


class FakeClock:
    """A manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config(tmp_path: Path) -> Config:
    """A valid configuration with short timings."""
    conf = Config(path=tmp_path / "config.toml")
    conf.github.token = VALID_TOKEN
    conf.github.username = "octocat"
    conf.github.email = "octocat@example.com"
    conf.sync.interval = 30.0
    conf.sync.debounce = 2.0
    conf.sync.poll_interval = 0.01
    conf.sync.shutdown_timeout = 2.0
    return conf


requires_git = pytest.mark.skipif(
    shutil.which("git") is None, reason="git executable not available"
)


def git(cwd: Path, *args: str) -> str:
    """Runs a git command in a test repository and returns its stdout."""
    res = subprocess.run(
        ["git", *args], cwd=cwd, capture_output=True, text=True, check=True
    )
    return res.stdout.strip()


@pytest.fixture
def bare_remote(tmp_path: Path) -> Path:
    """An empty bare repository acting as the remote."""
    remote = tmp_path / "remote.git"
    remote.mkdir()
    git(remote, "init", "--bare", "--initial-branch=main")
    return remote
