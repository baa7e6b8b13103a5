# src/cache/local_store.py — v1
"""Local directory cache store (default CACHE_BACKEND=local).

Each entry is a gzip'd tarball plus a JSON sidecar describing it, both
named after a filesystem-safe digest of the key:

    <cache_root>/<digest>.json
    <cache_root>/<digest>.tar.gz
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tarfile
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from docspublisher.cache.base_cache_store import BaseCacheStore
from docspublisher.cache.models import CacheEntry
from docspublisher.storage.tree import remove_path

logger = logging.getLogger(__name__)


class LocalCacheStore(BaseCacheStore):
    """File-based cache store of tarball snapshots."""

    def __init__(self, cache_root: Path) -> None:
        self._root = Path(cache_root).expanduser()
        self._root.mkdir(parents=True, exist_ok=True)

    @property
    def root(self) -> Path:
        return self._root

    async def get(self, key: str) -> CacheEntry | None:
        """Retrieve cache entry by exact key."""
        path = self._entry_path(key)
        if not path.exists():
            return None
        entry = self._read_entry(path)
        if entry is None or entry.key != key:
            return None
        if not (self._root / entry.archive).is_file():
            logger.warning("Cache entry %s has no archive, ignoring", key)
            return None
        return entry

    async def find_latest(self, prefix: str) -> CacheEntry | None:
        """Newest entry whose key starts with ``prefix``."""
        candidates = [
            e for e in await self.list_entries()
            if e.key.startswith(prefix) and (self._root / e.archive).is_file()
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda e: e.created_at)

    async def save(self, key: str, paths: list[str], base_dir: Path) -> CacheEntry | None:
        """Archive existing ``paths`` under ``key``; existing keys are immutable."""
        if await self.get(key) is not None:
            logger.info("Cache key %s already exists, not saving", key)
            return None

        present = [p for p in paths if (base_dir / p).exists()]
        if not present:
            logger.info("Nothing to cache for %s: none of %s exist", key, paths)
            return None

        archive_name = f"{self._digest(key)}.tar.gz"
        # Write to a temp file first so a crash never leaves a truncated archive.
        fd, tmp_name = tempfile.mkstemp(dir=self._root, suffix=".tmp")
        os.close(fd)
        try:
            with tarfile.open(tmp_name, "w:gz") as tar:
                for rel in present:
                    tar.add(base_dir / rel, arcname=rel)
            os.replace(tmp_name, self._root / archive_name)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        entry = CacheEntry(
            key=key,
            paths=present,
            archive=archive_name,
            size_bytes=(self._root / archive_name).stat().st_size,
            created_at=datetime.now(timezone.utc),
        )
        self._entry_path(key).write_text(entry.model_dump_json(indent=2), encoding="utf-8")
        logger.info("Saved cache %s (%d bytes)", key, entry.size_bytes)
        return entry

    async def load(self, entry: CacheEntry, base_dir: Path) -> list[str]:
        """Replace each cached path under ``base_dir`` with the snapshot."""
        base_dir.mkdir(parents=True, exist_ok=True)
        for rel in entry.paths:
            remove_path(base_dir / rel)
        with tarfile.open(self._root / entry.archive, "r:gz") as tar:
            tar.extractall(base_dir, filter="data")
        logger.info("Restored cache %s into %s", entry.key, base_dir)
        return list(entry.paths)

    async def delete(self, key: str) -> None:
        """Remove a cache entry and its archive."""
        path = self._entry_path(key)
        entry = self._read_entry(path) if path.exists() else None
        if entry is not None:
            (self._root / entry.archive).unlink(missing_ok=True)
        path.unlink(missing_ok=True)

    async def list_entries(self) -> list[CacheEntry]:
        """List all readable cache entries."""
        entries: list[CacheEntry] = []
        for path in sorted(self._root.glob("*.json")):
            entry = self._read_entry(path)
            if entry is not None:
                entries.append(entry)
        return entries

    def _read_entry(self, path: Path) -> CacheEntry | None:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return CacheEntry(**data)
        except (OSError, json.JSONDecodeError, TypeError, ValidationError) as e:
            logger.warning("Failed to read cache entry %s: %s", path.name, e)
            return None

    @staticmethod
    def _digest(key: str) -> str:
        return hashlib.sha256(key.encode("utf-8")).hexdigest()[:32]

    def _entry_path(self, key: str) -> Path:
        """Return the sidecar path for a cache key."""
        return self._root / f"{self._digest(key)}.json"
