"""User-facing status lines.

Every line is printed to the terminal with `rich` and mirrored into the log file
through the application logger, so the log keeps a plain-text history of what the
user saw.
"""

import datetime
import logging
from pathlib import Path

from rich.console import Console
from rich.markup import escape

from .constants import APP_NAME

logger = logging.getLogger(APP_NAME)

console = Console(highlight=False)
err_console = Console(stderr=True, highlight=False)

CHANGE_STYLES = {
    "added": ("+", "bright_green"),
    "modified": ("~", "blue"),
    "renamed": ("→", "bright_blue"),
    "deleted": ("-", "red"),
}


def _stamp() -> str:
    return f"[dim]{datetime.datetime.now().strftime('%H:%M:%S')}[/dim]"


def status_change(path: Path, change_type: str) -> None:
    """Prints one labeled line for a classified change, e.g. ``+ added notes.txt``."""
    symbol, color = CHANGE_STYLES.get(change_type, (" ", "white"))
    console.print(
        f"{_stamp()} [{color}]{symbol} {change_type}[/{color}] {escape(path.name)}"
    )
    logger.info(f"{change_type} {path}")


def success(msg: str) -> None:
    console.print(f"{_stamp()} [green]SUCCESS[/green] {escape(msg)}")
    logger.info(f"SUCCESS {msg}")


def info(msg: str) -> None:
    console.print(f"{_stamp()} [blue]INFO[/blue] {escape(msg)}")
    logger.info(msg)


def warning(msg: str) -> None:
    console.print(f"{_stamp()} [yellow]WARN[/yellow] {escape(msg)}")
    logger.warning(msg)


def error(msg: str) -> None:
    err_console.print(f"{_stamp()} [red]ERROR[/red] {escape(msg)}")
    logger.error(msg)


def git_operation(operation: str) -> None:
    console.print(f"{_stamp()} [cyan]GIT[/cyan] {escape(operation)}")
    logger.debug(f"GIT {operation}")


def init_message(msg: str) -> None:
    console.print(f"{_stamp()} [magenta]INIT[/magenta] {escape(msg)}")
    logger.info(f"INIT {msg}")


def startup_message(path: Path, username: str, repo_name: str) -> None:
    """Prints the banner shown once the watch loop is about to start."""
    stamp = _stamp()
    label = "[bright_blue]STARTUP[/bright_blue]"
    console.print(f"\n{stamp} {label} Auto Git Sync")
    console.print(f"{stamp} {label} Monitoring directory: [cyan]{escape(str(path))}[/cyan]")
    console.print(
        f"{stamp} {label} Mirroring to: "
        f"[cyan]https://github.com/{escape(username)}/{escape(repo_name)}[/cyan]"
    )
    console.print(f"{stamp} {label} Press Ctrl+C to stop\n")
    logger.info(f"STARTUP watching {path} -> {username}/{repo_name}")
