# tests/unit/pipeline/test_runner.py — v3
"""Tests for pipeline/runner.py — stage ordering and failure handling."""

from __future__ import annotations

import asyncio
import json
import logging
from unittest.mock import MagicMock

import pytest

from docspublisher.logging.context import clear_context, get_context
from docspublisher.logging.logger import JsonFormatter
from docspublisher.pipeline.runner import PipelineRunner
from docspublisher.pipeline.stages import PipelineContext, StageResult
from docspublisher.pipeline.state import PipelineState, Stage


@pytest.fixture(autouse=True)
def _reset_log_context():
    clear_context()
    yield
    clear_context()


def _context(settings) -> PipelineContext:
    return PipelineContext(
        settings=settings,
        resolver=MagicMock(),
        metadata=MagicMock(),
        renderer=MagicMock(),
        merger=MagicMock(),
    )


def _stages(calls: list[Stage], results: dict[Stage, StageResult] | None = None,
            errors: dict[Stage, BaseException] | None = None):
    """Stage functions that record their call and answer from the tables."""
    results = results or {}
    errors = errors or {}

    def make(stage: Stage):
        async def fn(state: PipelineState, ctx: PipelineContext) -> StageResult:
            calls.append(stage)
            if stage == Stage.RESOLVE_VERSION:
                state.version = "v1.9.0"
            if stage in errors:
                raise errors[stage]
            return results.get(stage, StageResult())
        return fn

    return {stage: make(stage) for stage in PipelineRunner.DEFAULT_STAGES}


ALL_STAGES = [
    Stage.RESOLVE_VERSION,
    Stage.GENERATE_METADATA,
    Stage.RESTORE_CACHE,
    Stage.RENDER,
    Stage.SAVE_CACHE,
    Stage.MERGE_SEARCH_INDEX,
    Stage.PUBLISH,
]


class TestPipelineRunner:
    @pytest.mark.asyncio
    async def test_happy_path_order(self, settings):
        calls: list[Stage] = []
        result = await PipelineRunner(_context(settings), _stages(calls)).run()
        assert result.success
        assert result.failed_stage is None
        assert calls == ALL_STAGES
        assert result.state.stage == Stage.DONE
        assert [r.stage for r in result.state.history] == ALL_STAGES

    @pytest.mark.asyncio
    async def test_render_failure_still_saves_cache(self, settings):
        calls: list[Stage] = []
        fns = _stages(calls, results={Stage.RENDER: StageResult.failure("quarto exited 1")})
        result = await PipelineRunner(_context(settings), fns).run()
        assert not result.success
        assert result.failed_stage == Stage.RENDER
        assert calls[-2:] == [Stage.RENDER, Stage.SAVE_CACHE]
        assert Stage.MERGE_SEARCH_INDEX not in calls
        assert Stage.PUBLISH not in calls
        assert result.state.stage == Stage.FAIL
        assert result.state.errors == ["RENDER: quarto exited 1"]

    @pytest.mark.asyncio
    async def test_render_crash_saves_cache_and_propagates(self, settings):
        calls: list[Stage] = []
        fns = _stages(calls, errors={Stage.RENDER: RuntimeError("boom")})
        with pytest.raises(RuntimeError):
            await PipelineRunner(_context(settings), fns).run()
        assert calls[-1] == Stage.SAVE_CACHE

    @pytest.mark.asyncio
    async def test_cancelled_render_skips_cache_save(self, settings):
        calls: list[Stage] = []
        state = PipelineState()
        fns = _stages(calls, errors={Stage.RENDER: asyncio.CancelledError()})
        with pytest.raises(asyncio.CancelledError):
            await PipelineRunner(_context(settings), fns).run(state)
        assert Stage.SAVE_CACHE not in calls
        assert state.cancelled

    @pytest.mark.asyncio
    async def test_merge_failure_blocks_publish(self, settings):
        calls: list[Stage] = []
        fns = _stages(calls, results={
            Stage.MERGE_SEARCH_INDEX: StageResult.failure("main index unavailable"),
        })
        result = await PipelineRunner(_context(settings), fns).run()
        assert result.failed_stage == Stage.MERGE_SEARCH_INDEX
        assert Stage.PUBLISH not in calls

    @pytest.mark.asyncio
    async def test_non_fatal_failure_continues(self, settings):
        calls: list[Stage] = []
        fns = _stages(calls, results={
            Stage.RESTORE_CACHE: StageResult.failure("corrupt archive", fatal=False),
        })
        result = await PipelineRunner(_context(settings), fns).run()
        assert result.success
        assert calls == ALL_STAGES
        assert result.state.warnings == ["RESTORE_CACHE: corrupt archive"]

    @pytest.mark.asyncio
    async def test_resolve_failure_stops_everything(self, settings):
        calls: list[Stage] = []
        fns = _stages(calls, results={Stage.RESOLVE_VERSION: StageResult.failure("no version")})
        result = await PipelineRunner(_context(settings), fns).run()
        assert calls == [Stage.RESOLVE_VERSION]
        assert result.failed_stage == Stage.RESOLVE_VERSION

    @pytest.mark.asyncio
    async def test_skipped_stage_recorded(self, settings):
        calls: list[Stage] = []
        fns = _stages(calls, results={Stage.GENERATE_METADATA: StageResult.skip("not latest")})
        result = await PipelineRunner(_context(settings), fns).run()
        assert result.success
        assert Stage.GENERATE_METADATA not in result.state.stages_run()

    @pytest.mark.asyncio
    async def test_log_context_carries_run_and_version(self, settings):
        seen = {}

        async def render(state, ctx):
            ctx_now = get_context()
            seen.update(run_id=ctx_now.run_id, stage=ctx_now.stage, version=ctx_now.version)
            return StageResult()

        fns = _stages([])
        fns[Stage.RENDER] = render
        result = await PipelineRunner(_context(settings), fns).run()
        assert seen == {"run_id": result.state.run_id, "stage": "RENDER", "version": "v1.9.0"}
        assert get_context().stage is None

    @pytest.mark.asyncio
    async def test_stage_logs_carry_structured_record(self, settings, caplog):
        caplog.set_level(logging.DEBUG, logger="docspublisher")
        fns = _stages([], results={Stage.MERGE_SEARCH_INDEX: StageResult.failure("bad index")})
        await PipelineRunner(_context(settings), fns).run()

        failed = [r for r in caplog.records if getattr(r, "data", None)
                  and r.data["stage"] == "MERGE_SEARCH_INDEX"]
        assert len(failed) == 1
        assert failed[0].levelno == logging.ERROR
        assert failed[0].data["ok"] is False
        assert failed[0].data["error"] == "bad index"

        line = json.loads(JsonFormatter().format(failed[0]))
        assert line["data"]["fatal"] is True
        assert "duration_ms" in line["data"]
