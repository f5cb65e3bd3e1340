"""Auto Git Sync: one-way mirroring of a directory into a GitHub repository.

This package provides the command-line interface, the change-detection and
sync-scheduling engine, and the git/GitHub plumbing that keeps a remote branch
identical to the contents of a watched directory. Local state always wins.
"""

from . import (
    aggregator,
    classifier,
    cli,
    config,
    constants,
    daemon,
    display,
    engine,
    errors,
    git_wrapper,
    provisioner,
    scheduler,
)

__all__ = [
    "aggregator",
    "classifier",
    "cli",
    "config",
    "constants",
    "daemon",
    "display",
    "engine",
    "errors",
    "git_wrapper",
    "provisioner",
    "scheduler",
]
