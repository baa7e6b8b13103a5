# src/storage/layout.py — v1
"""Directory and file conventions of the rendered site and the publish tree.

Publish tree (a checkout of the publishing branch):

    <checkout>/
        versions/<version>/...   one full site per published version
        ...                      root: mirror of the version-maximal site
"""

from __future__ import annotations

from pathlib import Path

# Rendered site
SEARCH_INDEX_FILE = "search.json"
ORIGINAL_SEARCH_INDEX_FILE = "search_original.json"

# Publish tree
VERSIONS_DIR = "versions"
GIT_DIR = ".git"


def search_index_path(site_dir: Path) -> Path:
    """Index served by the site (merged after the merge stage)."""
    return site_dir / SEARCH_INDEX_FILE


def original_search_index_path(site_dir: Path) -> Path:
    """The renderer's own, unmerged index."""
    return site_dir / ORIGINAL_SEARCH_INDEX_FILE


def versions_root(checkout: Path, versions_dir: str = VERSIONS_DIR) -> Path:
    """Return the directory holding one subdirectory per published version."""
    return checkout / versions_dir


def version_dir(checkout: Path, version: str, versions_dir: str = VERSIONS_DIR) -> Path:
    """Return the directory of a single published version."""
    if not version or "/" in version or version in {".", ".."}:
        raise ValueError(f"Invalid version directory name: {version!r}")
    return versions_root(checkout, versions_dir) / version


def root_protected_names(versions_dir: str = VERSIONS_DIR, preserve: list[str] | None = None) -> set[str]:
    """Names at the publish root that mirroring must never delete."""
    return {GIT_DIR, versions_dir, *(preserve or [])}
