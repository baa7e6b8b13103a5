# src/publish/publisher.py — v1
"""Multi-version publishing onto a persistent branch.

One attempt is:

1. replace ``versions/<version>/`` with the freshly rendered site;
2. pick the version-maximal directory under ``versions/``;
3. make the branch root an exact mirror of that directory;
4. commit and push.

A rejected push means another run published in between. The tree copies of
steps 1 and 3 cannot be merged file by file, so the whole attempt is redone
on a freshly fetched checkout.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from docspublisher.core.errors import DocsPublisherError
from docspublisher.core.models import latest_by_version
from docspublisher.publish.git import GitRepository, PushRejectedError
from docspublisher.publish.retry import RetryConfig, with_retry
from docspublisher.storage import layout
from docspublisher.storage.tree import list_subdirectories, mirror_into, replace_tree

logger = logging.getLogger(__name__)


class PublishError(DocsPublisherError):
    """The site cannot be published as given."""


@dataclass
class PublishResult:
    """Outcome of a successful publish."""

    version: str
    latest_version: str
    commit: str | None
    attempts: int
    pushed: bool


def select_latest_version(checkout: Path, versions_dir: str = layout.VERSIONS_DIR) -> str | None:
    """Version-maximal subdirectory of ``versions/`` (never filesystem order)."""
    return latest_by_version(list_subdirectories(layout.versions_root(checkout, versions_dir)))


def apply_version_tree(
    checkout: Path,
    site_dir: Path,
    version: str,
    versions_dir: str = layout.VERSIONS_DIR,
    preserve: list[str] | None = None,
) -> str:
    """Run publish steps 1-3 against a checkout; return the root's version."""
    if not site_dir.is_dir():
        raise PublishError(f"Rendered site not found: {site_dir}")
    reserved = {layout.GIT_DIR, versions_dir}
    clashes = sorted(e.name for e in site_dir.iterdir() if e.name in reserved)
    if clashes:
        raise PublishError(f"Rendered site contains reserved names: {', '.join(clashes)}")

    target = layout.version_dir(checkout, version, versions_dir)
    replace_tree(site_dir, target)
    logger.info("Copied site into %s", target.relative_to(checkout))

    latest = select_latest_version(checkout, versions_dir)
    if latest is None:
        raise PublishError(f"No version directories under {versions_dir}/")
    mirror_into(
        layout.version_dir(checkout, latest, versions_dir),
        checkout,
        keep=layout.root_protected_names(versions_dir, preserve),
    )
    logger.info("Publish root now mirrors %s", latest)
    return latest


def commit_message(repository: str, sha: str) -> str:
    """Commit message naming the source repository and commit of the build."""
    source = f"{repository or 'local'}@{sha or 'unknown'}"
    return f"Publish docs @ {source}"


class MultiVersionPublisher:
    """Publish a rendered site into a checkout of the publishing branch.

    Args:
        repo: Working copy of the publishing branch.
        repo_url: Clone URL, used when the working copy does not exist yet.
        versions_dir: Name of the per-version directory at the branch root.
        preserve: Root names kept across mirroring (e.g. CNAME).
        retry: Bound and backoff for rejected pushes.
        push: Push after committing (False for dry runs).
        identity: Commit author (name, email), or None to use git config.
    """

    def __init__(
        self,
        repo: GitRepository,
        repo_url: str = "",
        versions_dir: str = layout.VERSIONS_DIR,
        preserve: list[str] | None = None,
        retry: RetryConfig | None = None,
        push: bool = True,
        identity: tuple[str, str] | None = None,
    ) -> None:
        self._repo = repo
        self._repo_url = repo_url
        self._versions_dir = versions_dir
        self._preserve = preserve or []
        self._retry = retry or RetryConfig()
        self._push = push
        self._identity = identity

    def _prepare_checkout(self, attempt: int) -> None:
        if not self._repo.is_cloned():
            if not self._repo_url:
                raise PublishError(
                    f"No checkout at {self._repo.path} and no publish repository URL"
                )
            self._repo.clone(self._repo_url)
        elif attempt > 0 or self._push:
            self._repo.sync()
        if self._identity is not None:
            self._repo.configure_identity(*self._identity)

    async def publish(self, site_dir: Path, version: str, message: str) -> PublishResult:
        """Publish ``site_dir`` as ``version``, retrying rejected pushes.

        Raises:
            PublishError: If the site or checkout is unusable.
            PublishRetryExhausted: If every push was rejected.
            GitCommandError: On any other git failure.
        """

        async def attempt_once(attempt: int) -> PublishResult:
            self._prepare_checkout(attempt)
            latest = apply_version_tree(
                self._repo.path, site_dir, version, self._versions_dir, self._preserve
            )
            commit = self._repo.commit_all(message)
            pushed = False
            if commit is not None and self._push:
                self._repo.push()
                pushed = True
            return PublishResult(
                version=version,
                latest_version=latest,
                commit=commit,
                attempts=attempt + 1,
                pushed=pushed,
            )

        result = await with_retry(attempt_once, (PushRejectedError,), self._retry)
        logger.info(
            "Published %s (root: %s, commit: %s, attempts: %d)",
            result.version, result.latest_version, result.commit or "none", result.attempts,
        )
        return result
