import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from . import display
from .config import Config
from .constants import (
    APP_NAME,
    DEFAULT_BRANCH,
    DEFAULT_COMMIT_MESSAGE,
    DEFAULT_REMOTE,
    GITHUB_HOST,
    INITIAL_COMMIT_MESSAGE,
)
from .errors import InvalidPathError, sanitize_repo_name, validate_path
from .git_wrapper import GitRepo

logger = logging.getLogger(APP_NAME)


@dataclass(frozen=True)
class SyncOutcome:
    """Result of a sync attempt.

    Attributes:
        committed (bool): True iff a new commit was created and pushed. False means
            there was nothing to do, not that the attempt failed.
    """

    committed: bool


class Provisioner(Protocol):
    def create_repository(self, name: str, private: bool = True) -> bool: ...


class SyncEngine:
    """Mirrors the working tree into the remote branch.

    Each sync stages everything, commits if the tree is dirty, force-points the
    tracked branch at the new commit and force-pushes it. The remote therefore
    always converges to the local disk state, whatever happened to the branch
    history locally or remotely.

    Attributes:
        repo (GitRepo): The repository being mirrored.
        branch (str): The branch that is force-updated and pushed.
        remote (str): The remote to push to.
        message (str): The commit message used for every sync.
    """

    def __init__(
        self,
        repo: GitRepo,
        branch: str = DEFAULT_BRANCH,
        remote: str = DEFAULT_REMOTE,
        message: str = DEFAULT_COMMIT_MESSAGE,
    ):
        self.repo = repo
        self.branch = branch
        self.remote = remote
        self.message = message

    def sync(self) -> SyncOutcome:
        """Runs one stage/commit/reset/push sequence.

        Returns:
            SyncOutcome: ``committed=False`` if the tree was already clean.

        Raises:
            VcsCommandError: If any step fails. Later steps are not attempted.
        """
        self.repo.add_all()

        if not self.repo.is_dirty():
            logger.debug("Working tree clean, nothing to sync.")
            return SyncOutcome(committed=False)

        self.repo.commit(self.message)
        sha = self.repo.branch_reset(self.branch, "HEAD")
        self.repo.push_force(self.remote, self.branch)
        logger.info(f"Pushed {sha[:8]} to {self.remote}/{self.branch}")
        return SyncOutcome(committed=True)


def authenticated_url(token: str, username: str, repo_name: str) -> str:
    return f"https://{token}@{GITHUB_HOST}/{username}/{repo_name}"


def bootstrap(
    path: Path,
    config: Config,
    provisioner: Provisioner,
    name: str | None = None,
    remote_url: str | None = None,
    verbose: bool = False,
) -> GitRepo:
    """Prepares a directory for mirroring.

    Ensures a local repository exists, sets the commit identity, provisions the
    remote repository, points the remote at an authenticated URL and performs an
    initial commit and force-push, so steady-state syncs always have a remote
    branch to converge against.

    Args:
        path (Path): The directory to mirror.
        config (Config): Loaded configuration (credentials and sync settings).
        provisioner (Provisioner): Creates the remote repository.
        name (str | None, optional): Repository name. Defaults to the directory name.
        remote_url (str | None, optional): Remote URL override. Defaults to the
            authenticated GitHub URL.
        verbose (bool, optional): Print every git operation.

    Returns:
        GitRepo: The prepared repository.

    Raises:
        InvalidPathError: If the path or the derived repository name is unusable.
        SecurityError: If the path is a system directory.
        ProvisioningError: If the remote repository could not be created.
        VcsCommandError: If a git step fails.
    """
    path = validate_path(path)
    repo_name = sanitize_repo_name(name or path.name)
    if not repo_name:
        raise InvalidPathError(path, "Repository name is empty after sanitization")

    gh = config.github
    sync = config.sync

    if (path / ".git").exists():
        display.warning("Using existing Git repository")
        repo = GitRepo(path, verbose=verbose)
    else:
        display.init_message("Initializing Git repository...")
        repo = GitRepo.init(path, verbose=verbose)

    display.init_message("Configuring Git credentials...")
    repo.config_set("user.name", gh.username)
    repo.config_set("user.email", gh.email)

    display.init_message("Setting up GitHub repository...")
    provisioner.create_repository(repo_name, private=True)

    url = remote_url or authenticated_url(gh.token, gh.username, repo_name)
    if sync.remote not in repo.remote_names():
        repo.remote_add(sync.remote, url)
    elif repo.remote_get_url(sync.remote) != url:
        repo.remote_set_url(sync.remote, url)

    readme = path / "README.md"
    if not readme.exists():
        readme.write_text(
            f"# {repo_name}\n\nAutomatically synced with auto-git-sync\n"
        )

    display.git_operation("Initial commit...")
    repo.add_all()
    if repo.is_dirty():
        repo.commit(INITIAL_COMMIT_MESSAGE)
    else:
        logger.info("Nothing to commit during bootstrap.")

    current = repo.current_branch()
    if current != sync.branch:
        logger.info(f"Renaming branch '{current}' to '{sync.branch}'")
        repo.branch_rename(sync.branch)
    repo.push_force(sync.remote, sync.branch)

    display.success("Repository initialized successfully")
    return repo
