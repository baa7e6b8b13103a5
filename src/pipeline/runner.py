# src/pipeline/runner.py — v3
"""Pipeline runner: drive one publishing run through its state machine.

    START -> RESOLVE_VERSION -> GENERATE_METADATA -> RESTORE_CACHE -> RENDER
          -> SAVE_CACHE -> MERGE_SEARCH_INDEX -> PUBLISH -> DONE

Any fatal stage result moves the run to FAIL and stops it. SAVE_CACHE runs
after RENDER even when rendering failed, but not when the run was
cancelled. The publish root is only touched by PUBLISH, which is only
reached after a successful render and merge.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

from docspublisher.logging.context import (
    set_run_context,
    set_stage_context,
    set_version_context,
)
from docspublisher.pipeline import stages
from docspublisher.pipeline.stages import PipelineContext, StageResult
from docspublisher.pipeline.state import PipelineState, Stage, StageRecord

logger = logging.getLogger(__name__)

StageFn = Callable[[PipelineState, PipelineContext], Awaitable[StageResult]]


@dataclass
class RunResult:
    """Result of a full pipeline run."""

    state: PipelineState
    success: bool = True
    failed_stage: Stage | None = None
    duration_ms: int = 0


class PipelineRunner:
    """Execute the publishing stages against a PipelineState.

    Args:
        context: Collaborators built from settings.
        stage_fns: Optional overrides of individual stage functions.
    """

    DEFAULT_STAGES: dict[Stage, StageFn] = {
        Stage.RESOLVE_VERSION: stages.resolve_version,
        Stage.GENERATE_METADATA: stages.generate_metadata,
        Stage.RESTORE_CACHE: stages.restore_cache,
        Stage.RENDER: stages.render,
        Stage.SAVE_CACHE: stages.save_cache,
        Stage.MERGE_SEARCH_INDEX: stages.merge_search_index,
        Stage.PUBLISH: stages.publish,
    }

    def __init__(
        self,
        context: PipelineContext,
        stage_fns: dict[Stage, StageFn] | None = None,
    ) -> None:
        self._context = context
        self._stages = {**self.DEFAULT_STAGES, **(stage_fns or {})}

    async def run(self, state: PipelineState | None = None) -> RunResult:
        """Run every stage in order, stopping at the first fatal failure."""
        state = state or PipelineState()
        start_ns = time.monotonic_ns()
        set_run_context(state.run_id)
        logger.info("Starting docs pipeline run %s", state.run_id)

        try:
            failed = await self._run_all(state)
        finally:
            set_stage_context(None)

        result = RunResult(
            state=state,
            success=failed is None,
            failed_stage=failed,
            duration_ms=(time.monotonic_ns() - start_ns) // 1_000_000,
        )
        if result.success:
            state.transition(Stage.DONE)
            logger.info(
                "Pipeline complete: %s published, %dms", state.version, result.duration_ms
            )
        else:
            state.transition(Stage.FAIL)
            logger.error(
                "Pipeline failed at %s: %s",
                failed.value if failed else "?",
                "; ".join(state.errors) or "unknown error",
            )
        return result

    async def _run_all(self, state: PipelineState) -> Stage | None:
        """Return the stage that failed fatally, or None."""
        for stage in (Stage.RESOLVE_VERSION, Stage.GENERATE_METADATA, Stage.RESTORE_CACHE):
            if not await self._step(stage, state):
                return stage
            if stage == Stage.RESOLVE_VERSION:
                set_version_context(state.version)

        try:
            rendered = await self._step(Stage.RENDER, state)
        except (asyncio.CancelledError, KeyboardInterrupt):
            state.cancelled = True
            logger.warning("Run cancelled during rendering, not saving caches")
            raise
        except Exception:
            await self._step(Stage.SAVE_CACHE, state)
            raise
        await self._step(Stage.SAVE_CACHE, state)
        if not rendered:
            return Stage.RENDER

        for stage in (Stage.MERGE_SEARCH_INDEX, Stage.PUBLISH):
            if not await self._step(stage, state):
                return stage
        return None

    async def _step(self, stage: Stage, state: PipelineState) -> bool:
        """Run one stage and record it. Returns False on a fatal failure."""
        state.transition(stage)
        set_stage_context(stage.value)
        start_ns = time.monotonic_ns()

        result = await self._stages[stage](state, self._context)

        record = StageRecord(
            stage=stage,
            ok=result.ok,
            skipped=result.skipped,
            fatal=result.fatal,
            error=result.error,
            duration_ms=(time.monotonic_ns() - start_ns) // 1_000_000,
        )
        state.record(record)

        # Structured copy of the record for the JSON formatter.
        extra = {"data": record.model_dump(mode="json")}
        if result.skipped:
            logger.info(
                "Skipped %s: %s", stage.value, result.error or "not needed", extra=extra
            )
        elif not result.ok:
            log = logger.error if result.fatal else logger.warning
            log("%s failed: %s", stage.value, result.error, extra=extra)
        elif result.error:
            logger.warning(
                "%s completed with warnings: %s", stage.value, result.error, extra=extra
            )
        else:
            logger.debug("%s completed in %dms", stage.value, record.duration_ms, extra=extra)

        return result.ok or not result.fatal
