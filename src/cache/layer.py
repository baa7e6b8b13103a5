# src/cache/layer.py — v2
"""Cache reuse around the render step.

Two independent caches wrap rendering:

- the freeze cache (rendered-notebook outputs), restored by exact key or,
  failing that, by the newest entry sharing the dependency-lock hash;
- the dependency cache (installed environment), exact key only, saved
  only when it was not restored by an exact hit.

Both are saved after rendering whether or not rendering succeeded, each in
its own store directory, and old entries are pruned after saving.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

from docspublisher.cache.base_cache_store import BaseCacheStore
from docspublisher.cache.cache_factory import create_cache_store
from docspublisher.cache.fingerprint import dependency_cache_key, freeze_cache_key
from docspublisher.cache.models import CacheEntry, CacheKey, CacheRestoreResult
from docspublisher.config.settings import Settings

logger = logging.getLogger(__name__)


@dataclass
class CacheSpec:
    """One cache: what to snapshot, under which key, and when to save it."""

    name: str
    key: CacheKey
    paths: list[str]
    save_on_exact_hit: bool = True


@dataclass
class CacheReport:
    """Restore/save outcome per cache name."""

    restored: dict[str, CacheRestoreResult] = field(default_factory=dict)
    saved: dict[str, CacheEntry | None] = field(default_factory=dict)
    skipped: list[str] = field(default_factory=list)
    pruned: dict[str, list[str]] = field(default_factory=dict)


def build_cache_specs(settings: Settings) -> list[CacheSpec]:
    """Derive the freeze and dependency cache specs from settings."""
    root = settings.project_root
    os_name = settings.effective_cache_os
    specs = [
        CacheSpec(
            name="freeze",
            key=freeze_cache_key(
                root,
                os_name,
                lockfile_pattern=settings.cache_lockfile_pattern,
                notebook_pattern=settings.cache_notebook_pattern,
            ),
            paths=[settings.freeze_dir.as_posix()],
        )
    ]
    if settings.dependency_cache_paths_list:
        specs.append(
            CacheSpec(
                name="dependencies",
                key=dependency_cache_key(
                    root,
                    os_name,
                    settings.dependency_cache_name,
                    lockfile_pattern=settings.cache_lockfile_pattern,
                ),
                paths=settings.dependency_cache_paths_list,
                save_on_exact_hit=False,
            )
        )
    return specs


class CacheLayer:
    """Restore caches before rendering and save them afterwards.

    Each cache lives in its own store so that a restore-key prefix of one
    cache can never match an entry of another.
    """

    def __init__(
        self,
        stores: Mapping[str, BaseCacheStore],
        specs: list[CacheSpec],
        base_dir: Path,
        keep_entries: int | None = None,
    ) -> None:
        missing = [s.name for s in specs if s.name not in stores]
        if missing:
            raise ValueError(f"No cache store for: {', '.join(missing)}")
        self._stores = dict(stores)
        self._specs = specs
        self._base_dir = base_dir
        self._keep_entries = keep_entries

    @property
    def specs(self) -> list[CacheSpec]:
        return list(self._specs)

    def store_for(self, name: str) -> BaseCacheStore:
        return self._stores[name]

    async def restore(self, report: CacheReport) -> CacheReport:
        """Restore every cache. Misses are logged, never raised."""
        for spec in self._specs:
            result = await self._stores[spec.name].restore(
                spec.key.key, spec.key.restore_keys, self._base_dir
            )
            report.restored[spec.name] = result
            if result.is_hit:
                logger.info(
                    "Cache %s: %s hit on %s", spec.name, result.hit_level, result.matched_key
                )
            else:
                logger.info("Cache %s: miss for %s", spec.name, spec.key.key)
        return report

    async def save(self, report: CacheReport) -> CacheReport:
        """Save every cache under its exact key, honoring save_on_exact_hit.

        With ``keep_entries`` set, each store is then pruned to that many
        newest entries; the current key is always kept.
        """
        for spec in self._specs:
            store = self._stores[spec.name]
            restored = report.restored.get(spec.name)
            if not spec.save_on_exact_hit and restored is not None and restored.is_exact_hit:
                logger.info("Cache %s: exact hit, skipping save", spec.name)
                report.skipped.append(spec.name)
            else:
                report.saved[spec.name] = await store.save(
                    spec.key.key, spec.paths, self._base_dir
                )
            if self._keep_entries is not None:
                removed = await store.prune(self._keep_entries, protect=(spec.key.key,))
                if removed:
                    logger.info("Cache %s: pruned %d old entries", spec.name, len(removed))
                report.pruned[spec.name] = removed
        return report


def build_cache_layer(settings: Settings) -> CacheLayer:
    """Cache layer with one namespaced store per configured cache."""
    specs = build_cache_specs(settings)
    stores = {spec.name: create_cache_store(settings, namespace=spec.name) for spec in specs}
    return CacheLayer(
        stores, specs, settings.project_root, keep_entries=settings.cache_keep_entries
    )
