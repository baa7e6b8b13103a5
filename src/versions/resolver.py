# src/versions/resolver.py — v1
"""Version resolution: which upstream release do these docs describe?

The minor version (``M.m``) is read from the site configuration; the patch
level is the newest stable ``vM.m.*`` tag upstream. Comparing that tag with
the upstream's latest release decides whether the changelog and version
listing are regenerated.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable

from pydantic import BaseModel, Field

from docspublisher.config.settings import ConfigurationError
from docspublisher.core.errors import DocsPublisherError
from docspublisher.core.models import ReleaseVersion, parse_minor_version
from docspublisher.versions.github import GitHubReleaseClient, UpstreamFetchError

logger = logging.getLogger(__name__)

# Navbar entry of the version menu, e.g. `text: "v0.36"`
_MINOR_IN_CONFIG_RE = re.compile(r'text:\s+"v(\d+\.\d+)')


class VersionResolutionError(DocsPublisherError):
    """No stable tag belongs to the configured minor family."""


class VersionResolution(BaseModel):
    """Outcome of version resolution, threaded into the pipeline state."""

    minor_version: str
    version: str
    resolved: ReleaseVersion | None = None
    latest_release: str | None = None
    regenerate_metadata: bool = False
    warnings: list[str] = Field(default_factory=list)

    @property
    def is_exact(self) -> bool:
        """True when the version came from a matching upstream tag."""
        return self.resolved is not None


def extract_minor_version(site_config_text: str) -> str | None:
    """Return the first ``M.m`` version declared in the site configuration."""
    match = _MINOR_IN_CONFIG_RE.search(site_config_text)
    if not match:
        return None
    return parse_minor_version(match.group(1))


def stable_tags(names: Iterable[str]) -> list[ReleaseVersion]:
    """Keep well-formed stable ``vX.Y.Z`` tags; drop pre-releases and noise."""
    return [ReleaseVersion.parse(n) for n in names if ReleaseVersion.is_stable_tag(n)]


def resolve_latest_patch(minor_version: str, tags: Iterable[str]) -> ReleaseVersion:
    """Return the version-maximal stable tag of the ``M.m`` family.

    Raises:
        VersionResolutionError: If no stable tag matches the family.
    """
    minor = parse_minor_version(minor_version)
    family = [v for v in stable_tags(tags) if v.in_family(minor)]
    if not family:
        raise VersionResolutionError(f"No stable release tag matches v{minor}.*")
    return max(family)


def is_latest_release(resolved: ReleaseVersion | str | None, latest_tag: str | None) -> bool:
    """Gate for changelog/version-list regeneration.

    False whenever either side is unknown.
    """
    if resolved is None or not latest_tag:
        return False
    return str(resolved) == latest_tag.strip()


def fallback_version(minor_version: str) -> str:
    """Best-effort version used when no patch release could be resolved."""
    return f"v{minor_version}"


class VersionResolver:
    """Resolve the docs version against the upstream release list.

    Args:
        client: Upstream API client.
        strict: Raise on upstream fetch failures instead of degrading to
            the best-effort version.
    """

    def __init__(self, client: GitHubReleaseClient, strict: bool = False) -> None:
        self._client = client
        self._strict = strict

    def resolve(self, site_config_text: str) -> VersionResolution:
        """Resolve the version for a site configuration.

        Raises:
            ConfigurationError: If the site configuration declares no minor version.
            UpstreamFetchError: On fetch failure in strict mode.
            VersionResolutionError: On an unmatched family in strict mode.
        """
        minor = extract_minor_version(site_config_text)
        if minor is None:
            raise ConfigurationError(
                'Site configuration declares no minor version (expected `text: "vM.m"`)'
            )

        result = VersionResolution(minor_version=minor, version=fallback_version(minor))

        try:
            result.resolved = resolve_latest_patch(minor, self._client.fetch_tags())
            result.version = result.resolved.tag
        except (UpstreamFetchError, VersionResolutionError) as e:
            if self._strict:
                raise
            logger.warning("Could not resolve patch version for v%s: %s", minor, e)
            result.warnings.append(str(e))

        try:
            result.latest_release = self._client.fetch_latest_release()
        except UpstreamFetchError as e:
            if self._strict:
                raise
            logger.warning("Could not fetch latest upstream release: %s", e)
            result.warnings.append(str(e))

        result.regenerate_metadata = is_latest_release(result.resolved, result.latest_release)
        logger.info(
            "Resolved docs version %s (latest upstream release: %s, regenerate metadata: %s)",
            result.version,
            result.latest_release or "unknown",
            result.regenerate_metadata,
        )
        return result
