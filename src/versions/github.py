# src/versions/github.py — v2
"""Read-only client for the upstream project's GitHub REST API.

Only two endpoints are used: the tag list (``name`` of each tag) and the
latest release (``tag_name``). Failures are not retried here; the caller
decides whether a failed fetch is fatal.
"""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.request
from typing import Any

from docspublisher.core.errors import DocsPublisherError

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
TAGS_PER_PAGE = 100
MAX_TAG_PAGES = 50


class UpstreamFetchError(DocsPublisherError):
    """The upstream hosting API could not be queried or returned garbage."""


def fetch_json(url: str, token: str = "", timeout_s: float = 30.0) -> Any:
    """GET a URL and decode its JSON body.

    Raises:
        UpstreamFetchError: On network, HTTP or decoding errors.
    """
    headers = {"Accept": "application/json", "User-Agent": "docspublisher"}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    req = urllib.request.Request(url, headers=headers)
    try:
        with urllib.request.urlopen(req, timeout=timeout_s) as resp:
            body = resp.read().decode("utf-8")
    except urllib.error.HTTPError as e:
        raise UpstreamFetchError(f"GET {url} failed with HTTP {e.code}") from e
    except (urllib.error.URLError, TimeoutError, OSError) as e:
        raise UpstreamFetchError(f"GET {url} failed: {e}") from e
    try:
        return json.loads(body)
    except json.JSONDecodeError as e:
        raise UpstreamFetchError(f"GET {url} returned invalid JSON: {e}") from e


class GitHubReleaseClient:
    """Query tags and the latest release of ``owner/name`` on GitHub."""

    def __init__(
        self,
        repo: str,
        api_url: str = DEFAULT_API_URL,
        token: str = "",
        timeout_s: float = 30.0,
    ) -> None:
        self._repo = repo
        self._api_url = api_url.rstrip("/")
        self._token = token
        self._timeout_s = timeout_s

    @property
    def repo(self) -> str:
        return self._repo

    def fetch_tags(self) -> list[str]:
        """Return the names of all the repository's tags, newest first as served.

        Pages are requested until one comes back short of ``TAGS_PER_PAGE``.
        """
        names: list[str] = []
        for page in range(1, MAX_TAG_PAGES + 1):
            url = (
                f"{self._api_url}/repos/{self._repo}/tags"
                f"?per_page={TAGS_PER_PAGE}&page={page}"
            )
            data = fetch_json(url, token=self._token, timeout_s=self._timeout_s)
            if not isinstance(data, list):
                raise UpstreamFetchError(f"Tag list for {self._repo} is not a JSON array")
            names.extend(
                item["name"]
                for item in data
                if isinstance(item, dict) and isinstance(item.get("name"), str)
            )
            if len(data) < TAGS_PER_PAGE:
                break
        else:
            logger.warning(
                "Stopped after %d pages of tags for %s", MAX_TAG_PAGES, self._repo
            )
        logger.debug("Fetched %d tags for %s", len(names), self._repo)
        return names

    def fetch_latest_release(self) -> str:
        """Return the tag name of the repository's latest published release."""
        url = f"{self._api_url}/repos/{self._repo}/releases/latest"
        data = fetch_json(url, token=self._token, timeout_s=self._timeout_s)
        tag = data.get("tag_name") if isinstance(data, dict) else None
        if not isinstance(tag, str) or not tag:
            raise UpstreamFetchError(f"Latest release of {self._repo} has no tag_name")
        logger.debug("Latest release of %s is %s", self._repo, tag)
        return tag
