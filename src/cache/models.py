# src/cache/models.py — v1
"""Cache domain models: CacheKey, CacheEntry, CacheRestoreResult."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class CacheKey(BaseModel):
    """Exact key plus the weaker prefixes tried when the exact key misses."""

    key: str
    restore_keys: list[str] = Field(default_factory=list)


class CacheEntry(BaseModel):
    """A saved directory-tree snapshot."""

    key: str
    paths: list[str]
    archive: str
    size_bytes: int
    created_at: datetime


class CacheRestoreResult(BaseModel):
    """Result of a restore attempt. A miss is not an error."""

    hit_level: Literal["exact", "partial"] | None = None
    requested_key: str
    matched_key: str | None = None
    restored_paths: list[str] = Field(default_factory=list)

    @property
    def is_hit(self) -> bool:
        return self.hit_level is not None

    @property
    def is_exact_hit(self) -> bool:
        return self.hit_level == "exact"
