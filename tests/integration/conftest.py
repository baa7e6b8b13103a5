# tests/integration/conftest.py — v8
"""Shared fixtures for integration tests against a real git binary.

A bare repository under tmp_path stands in for the remote of the
publishing branch; every test gets its own. Tests marked ``git`` are
skipped when the binary is missing.
"""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

import pytest


# ── Pytest markers ──────────────────────────────────────────────

def pytest_configure(config):
    config.addinivalue_line("markers", "git: marks tests requiring the git binary")


def pytest_collection_modifyitems(config, items):
    if shutil.which("git") is not None:
        return
    skip_git = pytest.mark.skip(reason="git binary not available")
    for item in items:
        if "git" in item.keywords:
            item.add_marker(skip_git)


# ── Git helpers ─────────────────────────────────────────────────

def run_git(*args: str, cwd: Path) -> str:
    completed = subprocess.run(
        ["git", *args], cwd=str(cwd), capture_output=True, text=True, check=True,
    )
    return completed.stdout


@pytest.fixture
def git():
    """run_git(*args, cwd=...) -> stdout, raising on failure."""
    return run_git


@pytest.fixture(autouse=True)
def git_identity(monkeypatch, tmp_path):
    """Commit identity and an empty global config for every git call."""
    monkeypatch.setenv("GIT_AUTHOR_NAME", "docs-bot")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "docs-bot@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "docs-bot")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "docs-bot@example.com")
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(tmp_path / "gitconfig"))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")


@pytest.fixture
def bare_remote(tmp_path, site_factory, tree_writer) -> Path:
    """Bare repo whose gh-pages branch has v1.8.0 published at the root."""
    remote = tmp_path / "remote.git"
    seed = tmp_path / "seed"
    run_git("init", "--bare", str(remote), cwd=tmp_path)
    run_git("init", str(seed), cwd=tmp_path)
    run_git("symbolic-ref", "HEAD", "refs/heads/gh-pages", cwd=seed)
    site_factory(seed / "versions" / "v1.8.0", "v1.8.0")
    site_factory(seed, "v1.8.0")
    tree_writer(seed, {"CNAME": "turinglang.org\n", ".nojekyll": ""})
    run_git("add", "-A", cwd=seed)
    run_git("commit", "--quiet", "-m", "Initial publish", cwd=seed)
    run_git("remote", "add", "origin", str(remote), cwd=seed)
    run_git("push", "--quiet", "origin", "gh-pages", cwd=seed)
    return remote


@pytest.fixture
def clone_branch(tmp_path):
    """clone_branch(remote, name) -> fresh full clone of gh-pages for assertions."""

    def _clone(remote: Path, name: str = "verify") -> Path:
        target = tmp_path / name
        run_git("clone", "--quiet", "--branch", "gh-pages", str(remote), str(target), cwd=tmp_path)
        return target

    return _clone
