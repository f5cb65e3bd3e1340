import logging
import subprocess
from pathlib import Path

from . import display
from .constants import APP_NAME, GIT_COMMAND_TIMEOUT
from .errors import VcsCommandError, redact

logger = logging.getLogger(APP_NAME)


class GitRepo:
    """A wrapper around the Git command-line interface for a specific repository.

    This class provides the operations the sync engine and the bootstrap sequence
    need, executing each one through `subprocess` and turning non-zero exits into
    `VcsCommandError`.

    Attributes:
        path (Path): The file system path to the repository root.
        verbose (bool): Whether to print a GIT line for every invocation.
    """

    def __init__(self, path: Path, verbose: bool = False):
        """Initializes the GitRepo instance.

        Args:
            path (Path): The path to the repository root directory.
            verbose (bool, optional): Log each git operation. Defaults to False.

        Raises:
            ValueError: If the specified path does not contain a .git directory.
        """
        self.path = path
        self.verbose = verbose
        if not (self.path / ".git").exists():
            raise ValueError(f"Not a git repository: {self.path}")

    @classmethod
    def init(cls, path: Path, verbose: bool = False) -> "GitRepo":
        """Runs `git init` in a directory and returns a wrapper for it.

        Args:
            path (Path): The directory to initialize.
            verbose (bool, optional): Log each git operation. Defaults to False.

        Raises:
            VcsCommandError: If `git init` fails.
        """
        _execute(path, ["init"], verbose)
        return cls(path, verbose=verbose)

    def _run(self, args: list[str]) -> str:
        """Executes a Git command within the repository context.

        Args:
            args (list[str]): A list of arguments to pass to the git command.

        Returns:
            str: The stripped stdout of the command.

        Raises:
            VcsCommandError: If the git command returns a non-zero exit code.
        """
        return _execute(self.path, args, self.verbose)

    def current_branch(self) -> str:
        """Retrieves the name of the currently checked-out branch."""
        return self._run(["branch", "--show-current"])

    def status_porcelain(self) -> list[str]:
        """Returns the porcelain (machine-readable) status of the repository.

        Returns:
            list[str]: A list of status lines returned by `git status --porcelain`.
        """
        output = self._run(["status", "--porcelain"])
        return output.splitlines() if output else []

    def is_dirty(self) -> bool:
        """Whether the working tree or index differs from HEAD."""
        return bool(self.status_porcelain())

    def add_all(self) -> None:
        """
        Stages all changes (modified, deleted, and untracked files)
        in the working directory.
        """
        self._run(["add", "--all", "."])

    def commit(self, message: str) -> None:
        """Creates a new commit with the provided message.

        Args:
            message (str): The commit message.
        """
        self._run(["commit", "-m", message])

    def branch_reset(self, branch: str, target: str) -> str:
        """Forcefully resets a branch pointer to a specific target commit.

        Uses `update-ref` so the branch may be the one currently checked out.

        Args:
            branch (str): The branch name to reset.
            target (str): The target commit SHA or reference.

        Returns:
            str: The commit SHA the branch now points at.

        Raises:
            VcsCommandError: If the target does not resolve to a commit.
        """
        sha = self.rev_parse(f"{target}^{{commit}}")
        if sha is None:
            raise VcsCommandError(
                ["rev-parse", "--verify", target], f"Cannot resolve '{target}' to a commit"
            )
        self._run(["update-ref", "-m", "auto-git-sync", f"refs/heads/{branch}", sha])
        return sha

    def branch_rename(self, branch: str) -> None:
        """Renames the current branch, overwriting any existing branch of that name."""
        self._run(["branch", "-M", branch])

    def push_force(self, remote: str, branch: str) -> None:
        """Force-pushes a branch, overwriting the remote history.

        Args:
            remote (str): The remote name.
            branch (str): The branch to push.
        """
        self._run(["push", "-f", remote, branch])

    def config_set(self, key: str, value: str) -> None:
        """Sets a repository-local configuration value."""
        self._run(["config", key, value])

    def remote_names(self) -> list[str]:
        """Lists the configured remotes."""
        output = self._run(["remote"])
        return output.splitlines() if output else []

    def remote_add(self, name: str, url: str) -> None:
        self._run(["remote", "add", name, url])

    def remote_remove(self, name: str) -> None:
        self._run(["remote", "remove", name])

    def remote_get_url(self, name: str) -> str | None:
        """Returns the URL of a remote, or None if the remote does not exist."""
        try:
            return self._run(["remote", "get-url", name])
        except VcsCommandError as e:
            logger.debug(f"remote get-url failed for '{name}': {e}")
            return None

    def remote_set_url(self, name: str, url: str) -> None:
        self._run(["remote", "set-url", name, url])

    def rev_parse(self, rev: str) -> str | None:
        """Resolves a revision (tag, branch, relative ref) to a full SHA-1 hash.

        Args:
            rev (str): The revision to parse (e.g., 'HEAD', 'main').

        Returns:
            str | None: The full SHA-1 hash, or None if the revision could not
                be resolved.
        """
        try:
            return self._run(["rev-parse", "--verify", "--quiet", rev])
        except VcsCommandError as e:
            logger.debug(f"rev-parse failed for '{rev}': {e}")
            return None


def _execute(cwd: Path, args: list[str], verbose: bool) -> str:
    if verbose:
        display.git_operation(redact(" ".join(args)))
    try:
        res = subprocess.run(
            ["git", *args],
            cwd=cwd,
            capture_output=True,
            text=True,
            check=True,
            timeout=GIT_COMMAND_TIMEOUT,
        )
    except subprocess.TimeoutExpired as e:
        raise VcsCommandError(
            args, f"git timed out after {GIT_COMMAND_TIMEOUT:g}s"
        ) from e
    except subprocess.CalledProcessError as e:
        raise VcsCommandError(args, e.stderr or e.stdout or str(e)) from e
    except OSError as e:
        raise VcsCommandError(args, str(e)) from e
    return res.stdout.strip()
