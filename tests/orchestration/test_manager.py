"""Tests for ExecutionManager — tracking, cancellation, and state."""

from __future__ import annotations

import asyncio

import pytest
import structlog

from jobspine.core.cancellation import CancellationSource
from jobspine.orchestration.context import ExecutionContext
from jobspine.orchestration.jobs import ActionJob, SequenceJob
from jobspine.orchestration.manager import (
    ExecutionManager,
    PipelineState,
    get_execution_manager,
    reset_execution_manager,
)


def _blocking_root(release: asyncio.Event) -> SequenceJob:
    async def wait_for_release(ctx):
        await release.wait()
        return True

    return SequenceJob([ActionJob(wait_for_release)])


class TestExecutePipeline:
    @pytest.mark.asyncio
    async def test_returns_root_result(self, manager, recorder, context):
        root = SequenceJob([recorder.job("A"), recorder.job("B")])
        assert await manager.execute_pipeline("p", root, context) is True
        assert recorder.calls == ["A", "B"]
        assert manager.last_state("p") is PipelineState.COMPLETED

    @pytest.mark.asyncio
    async def test_false_result_is_completed(self, manager, recorder, context):
        root = SequenceJob([recorder.job("A", result=False)])
        assert await manager.execute_pipeline("p", root, context) is False
        assert manager.last_state("p") is PipelineState.COMPLETED

    @pytest.mark.asyncio
    async def test_tracked_only_while_running(self, manager, context):
        release = asyncio.Event()
        task = asyncio.ensure_future(
            manager.execute_pipeline("p", _blocking_root(release), context)
        )
        await asyncio.sleep(0.01)

        assert manager.is_pipeline_running("p")
        assert manager.running_count == 1
        assert manager.running_pipeline_ids() == ["p"]
        assert manager.last_state("p") is PipelineState.RUNNING

        release.set()
        assert await task is True
        assert not manager.is_pipeline_running("p")
        assert manager.running_count == 0

    @pytest.mark.asyncio
    async def test_rejects_empty_id_and_missing_root(self, manager, context):
        with structlog.testing.capture_logs() as logs:
            assert await manager.execute_pipeline("", SequenceJob([]), context) is False
            assert await manager.execute_pipeline("p", None, context) is False
        assert [entry["event"] for entry in logs] == ["pipeline.rejected", "pipeline.rejected"]
        assert manager.running_count == 0

    def test_unknown_id_is_idle(self, manager):
        assert manager.last_state("never") is PipelineState.IDLE


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancel_pipeline(self, manager, context):
        task = asyncio.ensure_future(
            manager.execute_pipeline("p", _blocking_root(asyncio.Event()), context)
        )
        await asyncio.sleep(0.01)

        assert manager.cancel_pipeline("p") is True
        assert await task is False
        assert not manager.is_pipeline_running("p")
        assert manager.last_state("p") is PipelineState.CANCELLED

    @pytest.mark.asyncio
    async def test_cancel_after_completion_is_noop(self, manager, recorder, context):
        assert await manager.execute_pipeline("p", SequenceJob([recorder.job("A")]), context)
        assert manager.cancel_pipeline("p") is False
        assert manager.last_state("p") is PipelineState.COMPLETED
        assert not context.is_cancelled

    def test_cancel_unknown_returns_false(self, manager):
        assert manager.cancel_pipeline("missing") is False

    @pytest.mark.asyncio
    async def test_context_cancel_stops_run(self, manager, context):
        task = asyncio.ensure_future(
            manager.execute_pipeline("p", _blocking_root(asyncio.Event()), context)
        )
        await asyncio.sleep(0.01)

        context.cancel()
        assert await task is False

    @pytest.mark.asyncio
    async def test_caller_token_stops_run(self, manager, context):
        caller = CancellationSource()
        task = asyncio.ensure_future(
            manager.execute_pipeline(
                "p", _blocking_root(asyncio.Event()), context, caller.token
            )
        )
        await asyncio.sleep(0.01)

        caller.cancel()
        assert await task is False
        assert not context.is_cancelled

    @pytest.mark.asyncio
    async def test_pre_cancelled_context_runs_nothing(self, manager, recorder, context):
        context.cancel()
        root = SequenceJob([recorder.job("A")])
        assert await manager.execute_pipeline("p", root, context) is False
        assert recorder.calls == []

    @pytest.mark.asyncio
    async def test_cancel_all(self, manager):
        contexts = [ExecutionContext() for _ in range(3)]
        tasks = [
            asyncio.ensure_future(
                manager.execute_pipeline(f"p{i}", _blocking_root(asyncio.Event()), ctx)
            )
            for i, ctx in enumerate(contexts)
        ]
        await asyncio.sleep(0.01)
        assert manager.running_count == 3

        assert manager.cancel_all_pipelines() == 3
        assert manager.running_count == 0
        assert await asyncio.gather(*tasks) == [False, False, False]
        assert manager.cancel_all_pipelines() == 0

    @pytest.mark.asyncio
    async def test_superseded_run_keeps_newer_record(self, manager):
        first_release, second_release = asyncio.Event(), asyncio.Event()
        first = asyncio.ensure_future(
            manager.execute_pipeline("p", _blocking_root(first_release), ExecutionContext())
        )
        await asyncio.sleep(0.01)
        second = asyncio.ensure_future(
            manager.execute_pipeline("p", _blocking_root(second_release), ExecutionContext())
        )
        await asyncio.sleep(0.01)

        first_release.set()
        assert await first is True
        assert manager.is_pipeline_running("p")

        second_release.set()
        assert await second is True
        assert not manager.is_pipeline_running("p")

    @pytest.mark.asyncio
    async def test_outer_task_cancellation_propagates(self, manager, context):
        task = asyncio.ensure_future(
            manager.execute_pipeline("p", _blocking_root(asyncio.Event()), context)
        )
        await asyncio.sleep(0.01)

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert not manager.is_pipeline_running("p")


class TestFaults:
    @pytest.mark.asyncio
    async def test_root_that_raises_is_faulted(self, manager, context):
        class ExplodingRoot(SequenceJob):
            async def run(self, context):
                raise RuntimeError("root")

        with structlog.testing.capture_logs() as logs:
            assert await manager.execute_pipeline("p", ExplodingRoot([]), context) is False
        assert manager.last_state("p") is PipelineState.FAULTED
        assert any(entry["event"] == "pipeline.faulted" for entry in logs)


class TestDefaultManager:
    def test_singleton(self):
        assert get_execution_manager() is get_execution_manager()

    def test_reset_creates_new_instance(self):
        first = get_execution_manager()
        reset_execution_manager()
        assert get_execution_manager() is not first
        assert isinstance(get_execution_manager(), ExecutionManager)
