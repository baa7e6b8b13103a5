# src/cache/base_cache_store.py — v3
"""Abstract cache store interface: key-addressed directory-tree snapshots."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from docspublisher.cache.models import CacheEntry, CacheRestoreResult


class BaseCacheStore(ABC):
    """Unified interface for cache storage backends."""

    @abstractmethod
    async def get(self, key: str) -> CacheEntry | None:
        """Retrieve the entry saved under exactly ``key``."""

    @abstractmethod
    async def find_latest(self, prefix: str) -> CacheEntry | None:
        """Most recently created entry whose key starts with ``prefix``."""

    @abstractmethod
    async def save(self, key: str, paths: list[str], base_dir: Path) -> CacheEntry | None:
        """Snapshot ``paths`` (relative to ``base_dir``) under ``key``.

        Returns None without writing when ``key`` already exists.
        """

    @abstractmethod
    async def load(self, entry: CacheEntry, base_dir: Path) -> list[str]:
        """Unpack an entry's snapshot into ``base_dir``; return restored paths."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove a cache entry."""

    @abstractmethod
    async def list_entries(self) -> list[CacheEntry]:
        """List all cached entries."""

    async def restore(
        self, key: str, restore_keys: list[str], base_dir: Path
    ) -> CacheRestoreResult:
        """Restore by exact key, then by restore-key prefixes in order."""
        entry = await self.get(key)
        hit_level = "exact" if entry is not None else None

        if entry is None:
            for prefix in restore_keys:
                entry = await self.find_latest(prefix)
                if entry is not None:
                    hit_level = "partial"
                    break

        if entry is None:
            return CacheRestoreResult(requested_key=key)

        restored = await self.load(entry, base_dir)
        return CacheRestoreResult(
            hit_level=hit_level,
            requested_key=key,
            matched_key=entry.key,
            restored_paths=restored,
        )

    async def prune(self, keep: int, protect: tuple[str, ...] = ()) -> list[str]:
        """Delete all but the ``keep`` newest entries; return the removed keys.

        Keys in ``protect`` are never removed and count towards ``keep``.
        """
        entries = sorted(await self.list_entries(), key=lambda e: e.created_at, reverse=True)
        kept = [e for e in entries if e.key in protect]
        removed: list[str] = []
        for entry in entries:
            if entry.key in protect:
                continue
            if len(kept) < keep:
                kept.append(entry)
                continue
            await self.delete(entry.key)
            removed.append(entry.key)
        return removed
