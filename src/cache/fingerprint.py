# src/cache/fingerprint.py — v2
"""Content hashing of file sets and cache key construction.

File-set hashing follows the CI ``hashFiles`` convention: SHA-256 of each
matched file, visited in sorted relative-path order, then SHA-256 over the
concatenated digests. No matching file yields an empty hash, so keys stay
stable (if weak) for projects without lock files.
"""

from __future__ import annotations

import hashlib
from pathlib import Path

from docspublisher.cache.models import CacheKey

_CHUNK_SIZE = 1024 * 1024


def hash_file(path: Path) -> bytes:
    """SHA-256 digest of a file's bytes."""
    digest = hashlib.sha256()
    with path.open("rb") as fh:
        for chunk in iter(lambda: fh.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.digest()


def matching_files(root: Path, pattern: str) -> list[Path]:
    """Files under ``root`` matching a glob, sorted by relative path."""
    matches = [p for p in root.glob(pattern) if p.is_file()]
    return sorted(matches, key=lambda p: p.relative_to(root).as_posix())


def hash_files(root: Path, pattern: str) -> str:
    """Hex hash over every file matching ``pattern``; empty if none match."""
    files = matching_files(root, pattern)
    if not files:
        return ""
    combined = hashlib.sha256()
    for path in files:
        combined.update(hash_file(path))
    return combined.hexdigest()


def freeze_cache_key(
    root: Path,
    os_name: str,
    lockfile_pattern: str = "**/Manifest.toml",
    notebook_pattern: str = "**/index.qmd",
) -> CacheKey:
    """Key of the rendered-notebook cache.

    The exact key covers the environment lock and every notebook; the
    restore key drops the notebooks so a run with edited notebooks still
    starts from the previous outputs and only re-executes what changed.
    """
    lock_hash = hash_files(root, lockfile_pattern)
    notebook_hash = hash_files(root, notebook_pattern)
    weak = f"{os_name}-{lock_hash}"
    return CacheKey(key=f"{weak}-{notebook_hash}", restore_keys=[weak])


def dependency_cache_key(
    root: Path,
    os_name: str,
    name: str,
    lockfile_pattern: str = "**/Manifest.toml",
) -> CacheKey:
    """Key of the dependency/environment cache (exact matches only)."""
    return CacheKey(key=f"{os_name}-{name}-{hash_files(root, lockfile_pattern)}")
