# src/pipeline/state.py — v2
"""Pipeline state threaded through every stage of a publishing run.

Stages read what earlier stages resolved (version, cache outcome, site
location) from this record and write their own results back; nothing is
handed over through environment variables.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field

from docspublisher.cache.models import CacheRestoreResult


class Stage(str, Enum):
    """States of a single pipeline run."""

    START = "START"
    RESOLVE_VERSION = "RESOLVE_VERSION"
    GENERATE_METADATA = "GENERATE_METADATA"
    RESTORE_CACHE = "RESTORE_CACHE"
    RENDER = "RENDER"
    SAVE_CACHE = "SAVE_CACHE"
    MERGE_SEARCH_INDEX = "MERGE_SEARCH_INDEX"
    PUBLISH = "PUBLISH"
    DONE = "DONE"
    FAIL = "FAIL"


class StageRecord(BaseModel):
    """One executed (or skipped) stage."""

    stage: Stage
    ok: bool
    skipped: bool = False
    fatal: bool = False
    error: str | None = None
    duration_ms: int = 0


class PipelineState(BaseModel):
    """Mutable state accumulating results across all pipeline stages."""

    # === IDENTITY ===
    run_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    stage: Stage = Stage.START

    # === VERSION ===
    minor_version: str = ""
    version: str = ""
    version_is_exact: bool = False
    latest_release: str | None = None
    regenerate_metadata: bool = False

    # === METADATA ===
    metadata_scripts_run: list[str] = Field(default_factory=list)

    # === CACHE ===
    cache_restored: dict[str, CacheRestoreResult] = Field(default_factory=dict)
    cache_saved: list[str] = Field(default_factory=list)

    # === RENDER ===
    site_dir: Path | None = None
    render_duration_ms: int = 0

    # === SEARCH ===
    search_entries: int = 0

    # === PUBLISH ===
    published_version: str | None = None
    root_version: str | None = None
    publish_commit: str | None = None
    publish_attempts: int = 0

    # === BOOKKEEPING ===
    cancelled: bool = False
    history: list[StageRecord] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)

    def record(self, record: StageRecord) -> None:
        """Append a stage record and collect its error."""
        self.history.append(record)
        if record.error:
            if record.ok or not record.fatal:
                self.warnings.append(f"{record.stage.value}: {record.error}")
            else:
                self.errors.append(f"{record.stage.value}: {record.error}")

    def transition(self, stage: Stage) -> None:
        self.stage = stage

    @property
    def failed(self) -> bool:
        return self.stage == Stage.FAIL

    def stages_run(self) -> list[Stage]:
        """Stages that executed (skipped ones excluded), in order."""
        return [r.stage for r in self.history if not r.skipped]
