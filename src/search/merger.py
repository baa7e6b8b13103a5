# src/search/merger.py — v1
"""Merge this version's search index with the main site's index.

The merged index is served from ``versions/<version>/`` (and from the
publish root), so links of the main site's entries get a ``../`` prefix.
``objectID`` doubles as a lookup key correlated with ``href`` in this index
format, so it is rewritten the same way.
"""

from __future__ import annotations

import json
import logging
from collections import Counter
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from docspublisher.core.errors import DocsPublisherError
from docspublisher.search.models import SearchIndexEntry
from docspublisher.storage import layout
from docspublisher.versions.github import UpstreamFetchError, fetch_json

logger = logging.getLogger(__name__)

DEFAULT_URL_PREFIX = "../"


class SearchIndexError(DocsPublisherError):
    """A search index is missing or malformed."""


class SearchIndexFetchError(SearchIndexError):
    """The main site's search index could not be fetched."""


def parse_index(raw: Any, source: str = "<index>") -> list[SearchIndexEntry]:
    """Validate decoded JSON as a list of index entries."""
    if not isinstance(raw, list):
        raise SearchIndexError(f"{source}: search index must be a JSON array")
    entries: list[SearchIndexEntry] = []
    for i, item in enumerate(raw):
        if not isinstance(item, dict):
            raise SearchIndexError(f"{source}: entry {i} is not a JSON object")
        try:
            entries.append(SearchIndexEntry(**item))
        except ValidationError as e:
            raise SearchIndexError(f"{source}: entry {i} is invalid: {e}") from e
    return entries


def load_index(path: Path) -> list[SearchIndexEntry]:
    """Read and validate an index file."""
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise SearchIndexError(f"Search index not found: {path}") from e
    except json.JSONDecodeError as e:
        raise SearchIndexError(f"{path}: invalid JSON: {e}") from e
    return parse_index(raw, source=str(path))


def dump_index(entries: list[SearchIndexEntry], path: Path) -> None:
    """Write an index as a JSON array."""
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = [e.to_json_dict() for e in entries]
    path.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")


def fetch_main_index(url: str, timeout_s: float = 30.0) -> list[SearchIndexEntry]:
    """Fetch the main site's index from a URL or read it from a local path.

    Raises:
        SearchIndexFetchError: If the index cannot be obtained or is malformed.
    """
    if "://" not in url:
        try:
            return load_index(Path(url))
        except SearchIndexError as e:
            raise SearchIndexFetchError(str(e)) from e
    try:
        raw = fetch_json(url, timeout_s=timeout_s)
    except UpstreamFetchError as e:
        raise SearchIndexFetchError(str(e)) from e
    try:
        return parse_index(raw, source=url)
    except SearchIndexError as e:
        raise SearchIndexFetchError(str(e)) from e


def relativize_entry(entry: SearchIndexEntry, prefix: str = DEFAULT_URL_PREFIX) -> SearchIndexEntry:
    """Prefix ``href`` and ``objectID`` (when present) with ``prefix``."""
    update: dict[str, str] = {}
    if entry.href is not None:
        update["href"] = prefix + entry.href
    if entry.objectID is not None:
        update["objectID"] = prefix + entry.objectID
    return entry.model_copy(update=update)


def merge_indices(
    local: list[SearchIndexEntry],
    remote: list[SearchIndexEntry],
    prefix: str = DEFAULT_URL_PREFIX,
) -> list[SearchIndexEntry]:
    """Local entries first, then the relativized remote entries."""
    merged = list(local) + [relativize_entry(e, prefix) for e in remote]
    duplicates = find_duplicate_ids(merged)
    if duplicates:
        logger.warning(
            "Merged search index has %d duplicate objectIDs (e.g. %s)",
            len(duplicates),
            duplicates[0],
        )
    return merged


def find_duplicate_ids(entries: list[SearchIndexEntry]) -> list[str]:
    """objectIDs occurring more than once, in first-seen order."""
    counts = Counter(e.objectID for e in entries if e.objectID is not None)
    return [oid for oid, n in counts.items() if n > 1]


class SearchIndexMerger:
    """Merge a rendered site's index with the main site's index in place."""

    def __init__(
        self,
        main_index_url: str,
        prefix: str = DEFAULT_URL_PREFIX,
        timeout_s: float = 30.0,
    ) -> None:
        self._main_index_url = main_index_url
        self._prefix = prefix
        self._timeout_s = timeout_s

    def merge_site(self, site_dir: Path) -> int:
        """Write ``search.json`` = own index + main-site index.

        Returns:
            Number of entries in the merged index.

        Raises:
            SearchIndexError: If the site's own index is missing or malformed.
            SearchIndexFetchError: If the main-site index is unavailable.
        """
        local = load_index(layout.original_search_index_path(site_dir))
        remote = fetch_main_index(self._main_index_url, timeout_s=self._timeout_s)
        merged = merge_indices(local, remote, self._prefix)
        dump_index(merged, layout.search_index_path(site_dir))
        logger.info(
            "Merged search index: %d local + %d main-site entries",
            len(local),
            len(remote),
        )
        return len(merged)
