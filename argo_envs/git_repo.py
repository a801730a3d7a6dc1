"""Library for recording working tree changes in the local GitOps repository.

Hosting providers are not involved: the repository is expected to be cloned
already (or is created locally), and pushing uses whatever remote and
credentials the clone was configured with.
"""

import logging
from pathlib import Path

import git

from .exceptions import GitException

__all__ = [
    "GitRepository",
]

_LOGGER = logging.getLogger(__name__)

DEFAULT_REMOTE = "origin"


class GitRepository:
    """A local git working tree."""

    def __init__(self, repo: git.repo.Repo) -> None:
        """Initialize GitRepository."""
        self._repo = repo

    @classmethod
    def open(cls, path: Path) -> "GitRepository":
        """Return the git repository containing `path`."""
        try:
            return cls(git.repo.Repo(str(path), search_parent_directories=True))
        except git.GitError as err:
            raise GitException(f"Unable to find git repository at {path}: {err}") from err

    @classmethod
    def init(cls, path: Path) -> "GitRepository":
        """Create a new git repository at `path`."""
        try:
            return cls(git.repo.Repo.init(str(path)))
        except git.GitError as err:
            raise GitException(f"Unable to create git repository at {path}: {err}") from err

    @property
    def root(self) -> Path:
        """Return the root of the working tree."""
        if self._repo.working_tree_dir is None:
            raise GitException("Repository has no working tree")
        return Path(self._repo.working_tree_dir)

    def add(self, pattern: str = ".") -> None:
        """Stage files matching the pattern, including deletions."""
        try:
            self._repo.git.add(pattern, all=True)
        except git.GitError as err:
            raise GitException(f"Unable to add '{pattern}' in {self.root}: {err}") from err

    def commit(self, message: str) -> str:
        """Commit the staged changes and return the commit sha."""
        try:
            commit = self._repo.index.commit(message)
        except git.GitError as err:
            raise GitException(f"Unable to commit in {self.root}: {err}") from err
        _LOGGER.debug("Created commit %s: %s", commit.hexsha, message)
        return commit.hexsha

    def push(self, remote: str = DEFAULT_REMOTE) -> None:
        """Push the current branch to the remote."""
        try:
            results = self._repo.remote(remote).push()
        except (git.GitError, ValueError) as err:
            raise GitException(f"Unable to push {self.root} to {remote}: {err}") from err
        for info in results:
            if info.flags & info.ERROR:
                raise GitException(
                    f"Unable to push {self.root} to {remote}: {info.summary.strip()}"
                )
        _LOGGER.debug("Pushed %s to %s", self.root, remote)
