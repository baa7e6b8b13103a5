# src/publish/git.py — v1
"""Minimal git CLI wrapper for the publish branch checkout."""

from __future__ import annotations

import logging
from pathlib import Path

from docspublisher.core.errors import DocsPublisherError
from docspublisher.core.process import CommandResult, run_command

logger = logging.getLogger(__name__)

_REJECTION_MARKERS = ("[rejected]", "non-fast-forward", "fetch first", "[remote rejected]")


class GitCommandError(DocsPublisherError):
    """A git command failed."""

    def __init__(self, result: CommandResult) -> None:
        self.result = result
        super().__init__(
            f"git {' '.join(result.args[1:])} exited with {result.returncode}: {result.tail(5)}"
        )


class PushRejectedError(GitCommandError):
    """The remote branch advanced since the checkout was fetched."""


def remote_url(repo_dir: Path, remote: str = "origin") -> str:
    """URL of a remote of an existing repository."""
    result = run_command(["git", "remote", "get-url", remote], cwd=repo_dir)
    if not result.ok:
        raise GitCommandError(result)
    return result.stdout.strip()


class GitRepository:
    """A working copy of a single branch."""

    def __init__(self, path: Path, branch: str, remote: str = "origin") -> None:
        self._path = path
        self._branch = branch
        self._remote = remote

    @property
    def path(self) -> Path:
        return self._path

    @property
    def branch(self) -> str:
        return self._branch

    def _git(self, *args: str, cwd: Path | None = None) -> CommandResult:
        result = run_command(["git", *args], cwd=cwd or self._path)
        if not result.ok:
            raise GitCommandError(result)
        return result

    def is_cloned(self) -> bool:
        return (self._path / ".git").exists()

    def clone(self, url: str) -> None:
        """Shallow-clone the branch into ``path``."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        logger.info("Cloning %s (branch %s) into %s", url, self._branch, self._path)
        self._git(
            "clone", "--depth", "1", "--branch", self._branch, "--single-branch",
            url, str(self._path),
            cwd=self._path.parent,
        )

    def sync(self) -> str:
        """Discard local changes and match the remote branch exactly.

        Returns:
            The commit the checkout now points at.
        """
        self._git("fetch", "--depth", "1", self._remote, self._branch)
        self._git("reset", "--hard", f"{self._remote}/{self._branch}")
        self._git("clean", "-fdx")
        return self.head()

    def head(self) -> str:
        return self._git("rev-parse", "HEAD").stdout.strip()

    def configure_identity(self, name: str, email: str) -> None:
        self._git("config", "user.name", name)
        self._git("config", "user.email", email)

    def has_changes(self) -> bool:
        return bool(self._git("status", "--porcelain").stdout.strip())

    def commit_all(self, message: str) -> str | None:
        """Stage everything and commit. Returns None when nothing changed."""
        self._git("add", "-A")
        if not self.has_changes():
            logger.info("Publish tree unchanged, nothing to commit")
            return None
        self._git("commit", "--quiet", "-m", message)
        return self.head()

    def push(self) -> None:
        """Push the branch.

        Raises:
            PushRejectedError: If the remote rejected a non-fast-forward push.
            GitCommandError: On any other failure.
        """
        result = run_command(
            ["git", "push", self._remote, f"HEAD:refs/heads/{self._branch}"], cwd=self._path
        )
        if result.ok:
            return
        output = f"{result.stdout}\n{result.stderr}"
        if any(marker in output for marker in _REJECTION_MARKERS):
            raise PushRejectedError(result)
        raise GitCommandError(result)
