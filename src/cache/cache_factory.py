# src/cache/cache_factory.py — v4
"""Factory for cache store instantiation."""

from __future__ import annotations

from pathlib import Path

from docspublisher.cache.base_cache_store import BaseCacheStore
from docspublisher.config.settings import Settings


def create_cache_store(settings: Settings | None = None, namespace: str = "") -> BaseCacheStore:
    """Instantiate the configured cache backend.

    Args:
        settings: Application settings. Defaults to a local store under
            ``.cache`` in the working directory.
        namespace: Subdirectory isolating one cache's entries from the
            others, so prefix lookups never cross between caches.
    """
    backend = "local" if settings is None else settings.cache_backend

    if backend == "local":
        from docspublisher.cache.local_store import LocalCacheStore
        cache_root = Path(".cache" if settings is None else settings.cache_root)
        if namespace:
            cache_root = cache_root.expanduser() / namespace
        return LocalCacheStore(cache_root=cache_root)

    raise ValueError(f"Unsupported cache backend: {backend!r}")
