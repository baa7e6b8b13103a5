# tests/conftest.py — v2
"""Shared test fixtures for unit and integration tests.

Provides a throwaway docs project, rendered sites, publish checkouts and
settings pointing at them. No network: upstream clients are mocked.
"""

from __future__ import annotations

import filecmp
import json
from pathlib import Path
from typing import Iterable
from unittest.mock import MagicMock

import pytest

from docspublisher.config.settings import Settings

QUARTO_YML = """\
project:
  type: website

website:
  navbar:
    right:
      - text: "v1.9"
        menu:
          - text: Changelog
            href: changelog.qmd
"""


def write_tree(root: Path, files: dict[str, str]) -> Path:
    """Create ``files`` (relative path -> text) under ``root``."""
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return root


def make_site(root: Path, label: str, search: list[dict] | None = None) -> Path:
    """A small rendered site whose pages mention ``label``."""
    write_tree(root, {
        "index.html": f"<h1>{label}</h1>",
        "tutorials/regression/index.html": f"<p>regression {label}</p>",
        "site_libs/search.js": "// search",
    })
    if search is not None:
        (root / "search.json").write_text(json.dumps(search), encoding="utf-8")
    return root


def compare_trees(a: Path, b: Path, ignore: Iterable[str] = ()) -> bool:
    """Recursively compare two trees by names and file contents."""
    return _dircmp_equal(filecmp.dircmp(a, b, ignore=list(ignore)))


def _dircmp_equal(cmp: filecmp.dircmp) -> bool:
    if cmp.left_only or cmp.right_only or cmp.funny_files:
        return False
    _, mismatch, errors = filecmp.cmpfiles(cmp.left, cmp.right, cmp.common_files, shallow=False)
    if mismatch or errors:
        return False
    return all(_dircmp_equal(sub) for sub in cmp.subdirs.values())


# === FIXTURES: Project ===


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    """Docs project with a site config, a lock file and two notebooks."""
    root = tmp_path / "project"
    write_tree(root, {
        "_quarto.yml": QUARTO_YML,
        "Manifest.toml": "[deps]\nTuring = \"1.9.0\"\n",
        "tutorials/regression/index.qmd": "# Bayesian regression\n",
        "tutorials/gplvm/index.qmd": "# GPLVM\n",
    })
    return root


@pytest.fixture
def settings(project_root: Path, tmp_path: Path) -> Settings:
    """Settings isolated from any .env or CI environment."""
    return Settings(
        _env_file=None,
        project_root=project_root,
        cache_root=tmp_path / "cache",
        cache_os="Linux",
        main_search_index_url=str(tmp_path / "main_search.json"),
        publish_checkout_dir=tmp_path / "gh-pages",
        publish_repo_url="",
        publish_retry_base_delay_s=0.0,
        github_repository="TuringLang/docs",
        github_sha="abc123",
    )


@pytest.fixture
def rendered_site(tmp_path: Path) -> Path:
    """Rendered site for version v1.10.0."""
    return make_site(tmp_path / "_site", "v1.10.0")


@pytest.fixture
def mock_release_client() -> MagicMock:
    """Upstream client answering with a fixed tag list and latest release."""
    client = MagicMock()
    client.repo = "TuringLang/Turing.jl"
    client.fetch_tags.return_value = ["v1.9.0", "v1.8.0", "v1.9.0-rc1"]
    client.fetch_latest_release.return_value = "v1.9.0"
    return client


# === FIXTURES: Temp dirs ===


@pytest.fixture
def tmp_cache_dir(tmp_path: Path) -> Path:
    """Temporary cache directory."""
    cache = tmp_path / "cache"
    cache.mkdir()
    return cache


@pytest.fixture
def site_factory():
    """Factory building rendered sites: site_factory(root, label, search=None)."""
    return make_site


@pytest.fixture
def tree_writer():
    """Factory writing file trees: tree_writer(root, {rel: text})."""
    return write_tree


@pytest.fixture
def trees_equal():
    """Deep tree comparison: trees_equal(a, b, ignore=())."""
    return compare_trees
