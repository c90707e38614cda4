"""Source-control acquisition: git clones and subversion checkouts.

Writes (clone, checkout) go through the command line tools so their own
configuration is respected; reads use pygit2.
"""
from __future__ import annotations

from pathlib import Path

import pygit2

from .command_runner import CommandResult, CommandRunner
from .console import Console


class SourceControl:
    def __init__(self, runner: CommandRunner, console: Console | None = None) -> None:
        self._runner = runner
        self._console = console or Console("none")

    def clone(
        self,
        repository_url: str,
        destination: Path,
        *,
        stdout_log: Path | None = None,
        stderr_log: Path | None = None,
    ) -> CommandResult:
        """Fresh recursive clone of the default branch tip."""
        self._console.info(f"Cloning {repository_url} into {destination}")
        return self._runner.run(
            ["git", "clone", "--recursive", repository_url, str(destination)],
            cwd=destination.parent,
            note="clone",
            stdout_log=stdout_log,
            stderr_log=stderr_log,
        )

    def checkout(
        self,
        repository_url: str,
        revision: str,
        destination: Path,
        *,
        stdout_log: Path | None = None,
        stderr_log: Path | None = None,
    ) -> CommandResult:
        """Revision-pinned checkout from a centralized repository (``HEAD`` allowed)."""
        self._console.info(f"Checking out {repository_url} at revision {revision} into {destination}")
        return self._runner.run(
            ["svn", "checkout", "--revision", revision, repository_url, str(destination)],
            cwd=destination.parent,
            note="checkout",
            stdout_log=stdout_log,
            stderr_log=stderr_log,
        )

    @staticmethod
    def is_git_repository(path: Path) -> bool:
        if not path.is_dir():
            return False
        try:
            found = pygit2.discover_repository(str(path))
            if found is None:
                return False
            # discovery walks upwards; only a repository rooted at *path* counts
            if Path(found).resolve() != (path / ".git").resolve():
                return False
            pygit2.Repository(str(path))
        except (KeyError, pygit2.GitError):
            return False
        return True

    @staticmethod
    def head_commit(path: Path) -> str | None:
        try:
            return str(pygit2.Repository(str(path)).head.target)
        except (pygit2.GitError, KeyError, ValueError):
            return None

    @staticmethod
    def is_svn_working_copy(path: Path) -> bool:
        return (path / ".svn").is_dir()
