import argparse
import logging
import sys
import threading
from pathlib import Path

from rich.console import Console
from rich.table import Table

from . import daemon, display
from .config import Config, update_file, write_example
from .constants import APP_NAME, CONFIG_FILE
from .engine import SyncEngine, bootstrap
from .errors import AutoGitSyncError, ConfigError, sanitize_repo_name, validate_path
from .git_wrapper import GitRepo
from .provisioner import GitHubProvisioner

logger = logging.getLogger(APP_NAME)
console = Console()


def _load_config(config_path: Path) -> Config | None:
    """Loads and validates the configuration, creating a template if missing.

    Returns:
        Config | None: The configuration, or None if the user must edit the template.
    """
    if not config_path.exists():
        write_example(config_path)
        display.info(f"Created example config at: {config_path}")
        display.info("Please edit this file with your GitHub credentials and run again.")
        return None

    conf = Config.load(config_path)
    conf.validate()
    return conf


def _bootstrap(
    path: Path, conf: Config, name: str | None, verbose: bool
) -> GitRepo:
    provisioner = GitHubProvisioner(conf.github.token)
    return bootstrap(path, conf, provisioner, name=name, verbose=verbose)


def run_init(path: Path, name: str | None, verbose: bool, config_path: Path) -> int:
    """Bootstraps a directory without watching it."""
    conf = _load_config(config_path)
    if conf is None:
        return 0
    daemon.setup_logging(conf, verbose)
    _bootstrap(path, conf, name, verbose)
    return 0


def run_watch(path: Path, verbose: bool, config_path: Path) -> int:
    """Bootstraps a directory and mirrors it until interrupted."""
    conf = _load_config(config_path)
    if conf is None:
        return 0
    daemon.setup_logging(conf, verbose)

    root = validate_path(path)
    repo = _bootstrap(root, conf, None, verbose)
    engine = SyncEngine(
        repo,
        branch=conf.sync.branch,
        remote=conf.sync.remote,
        message=conf.sync.commit_message,
    )

    display.startup_message(root, conf.github.username, sanitize_repo_name(root.name))

    shutdown = threading.Event()
    daemon.install_signal_handlers(shutdown)
    daemon.watch(root, engine, conf, shutdown)

    display.info("Stopped.")
    return 0


def run_config(
    config_path: Path,
    token: str | None,
    username: str | None,
    email: str | None,
    show: bool,
) -> int:
    """Updates credentials in the config file, or shows the effective settings."""
    if token is not None or username is not None or email is not None:
        update_file(config_path, token=token, username=username, email=email)
        display.success(f"Configuration updated: {config_path}")

    if show or (token is None and username is None and email is None):
        show_config(config_path)
    return 0


def show_config(config_path: Path) -> None:
    """Displays the effective configuration as a table. The token is masked."""
    if not config_path.exists():
        console.print(
            f"[yellow]No config file at {config_path}. "
            "Run 'auto-git-sync config --token ... --username ... --email ...'.[/yellow]"
        )
        return

    conf = Config.load(config_path)
    token = conf.github.token
    masked = f"{token[:4]}…{token[-4:]}" if len(token) > 8 else "(not set)"

    table = Table(title=f"Auto Git Sync Configuration ({config_path})", show_lines=True)
    table.add_column("Section", style="cyan", justify="right")
    table.add_column("Key", style="green")
    table.add_column("Value", style="yellow")

    table.add_row("github", "token", masked)
    table.add_row("", "username", conf.github.username or "(not set)")
    table.add_row("", "email", conf.github.email or "(not set)")
    table.add_row("sync", "interval", f"{conf.sync.interval:g}s")
    table.add_row("", "debounce", f"{conf.sync.debounce:g}s")
    table.add_row("", "poll_interval", f"{conf.sync.poll_interval:g}s")
    table.add_row("", "shutdown_timeout", f"{conf.sync.shutdown_timeout:g}s")
    table.add_row("", "branch", conf.sync.branch)
    table.add_row("", "remote", conf.sync.remote)
    table.add_row("", "commit_message", conf.sync.commit_message)
    table.add_row("limits", "max_log_size", f"{conf.limits.max_log_size} bytes")

    console.print(table)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="Mirror a directory into a GitHub repository on every change.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=CONFIG_FILE,
        help=f"Path to the config file (default: {CONFIG_FILE})",
    )
    subparsers = parser.add_subparsers(dest="command")

    watch_parser = subparsers.add_parser("watch", help="Start monitoring a directory")
    watch_parser.add_argument(
        "path", nargs="?", type=Path, default=Path("."), help="Directory to monitor"
    )
    watch_parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose output"
    )

    init_parser = subparsers.add_parser("init", help="Initialize a new project")
    init_parser.add_argument(
        "path", nargs="?", type=Path, default=Path("."), help="Directory to initialize"
    )
    init_parser.add_argument(
        "-n", "--name", help="Project name (defaults to directory name)"
    )
    init_parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose output"
    )

    config_parser = subparsers.add_parser("config", help="Configure credentials")
    config_parser.add_argument("--token", help="Set GitHub token")
    config_parser.add_argument("--username", help="Set Git username")
    config_parser.add_argument("--email", help="Set Git email")
    config_parser.add_argument(
        "--list", "-l", action="store_true", help="Show the effective configuration"
    )

    return parser


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the Auto Git Sync CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        if args.command == "init":
            code = run_init(args.path, args.name, args.verbose, args.config)
        elif args.command == "config":
            code = run_config(
                args.config, args.token, args.username, args.email, args.list
            )
        else:
            # Default action: watch the current directory.
            path = getattr(args, "path", Path("."))
            verbose = getattr(args, "verbose", False)
            code = run_watch(path, verbose, args.config)
    except ConfigError as e:
        display.error(str(e))
        display.info(f"Fix the configuration with '{APP_NAME} config'.")
        code = 1
    except AutoGitSyncError as e:
        display.error(str(e))
        code = 1

    sys.exit(code)


if __name__ == "__main__":
    main()
