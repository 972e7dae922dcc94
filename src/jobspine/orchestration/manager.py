"""Execution Manager — tracks and cancels in-flight pipeline runs.

WHY
───
A pipeline key ("game.init", "login") names one logical flow. Starting the
flow again must be able to stop the previous run, and shutdown must be able
to stop everything. The manager owns the table of running executions,
keyed by pipeline id, and the cancellation scope of each.

ARCHITECTURE
────────────
::

    ExecutionManager
      ├── .execute_pipeline(id, root, context, token)  ─ run + track
      ├── .cancel_pipeline(id)                         ─ fire one scope
      ├── .cancel_all_pipelines()                      ─ fire all, clear table
      ├── .is_pipeline_running(id) / .running_count    ─ observation only
      └── .last_state(id)                              ─ PipelineState

    Per id:  IDLE → RUNNING → COMPLETED | CANCELLED | FAULTED → (entry removed)

    scope = CancellationSource.linked(caller token, context token)
    scope fires ──► root task.cancel() ──► CancelledError at the next await

BEST PRACTICES
──────────────
- The manager does not cancel an existing run when a new one starts under
  the same id; callers that need "latest wins" cancel first
  (``PipelineRegistry.execute_priority_pipeline`` does).
- Use :func:`get_execution_manager` for the process-wide instance; pass an
  explicit instance in tests.

Example::

    manager = ExecutionManager()
    ok = await manager.execute_pipeline("init", SequenceJob(jobs), ctx)
"""

from __future__ import annotations

import asyncio
import threading
from enum import Enum
from typing import Any

from jobspine.core.cancellation import CancellationSource, CancellationToken
from jobspine.core.errors import JobFaultError, JobValidationError, PipelineCancelledError
from jobspine.core.logging import LogContext, get_logger
from jobspine.orchestration.context import ExecutionContext
from jobspine.orchestration.jobs import Job

logger = get_logger(__name__)


class PipelineState(str, Enum):
    """Lifecycle state of a pipeline id."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAULTED = "faulted"


class ExecutionManager:
    """Owns the running-execution table.

    At most one scope is tracked per pipeline id. A run that finishes only
    removes the entry if it still owns it, so a superseded run never erases
    the record of the run that replaced it.
    """

    def __init__(self) -> None:
        self._running: dict[str, CancellationSource] = {}
        self._states: dict[str, PipelineState] = {}
        self._lock = threading.Lock()

    async def execute_pipeline(
        self,
        pipeline_id: str,
        root_job: Job | None,
        context: Any,
        cancellation_token: CancellationToken | None = None,
    ) -> bool:
        """Run ``root_job`` against ``context`` under a tracked cancellation scope.

        Returns:
            The root job's result. Cancellation and unexpected faults are
            reported as False and told apart in the log only.
        """
        if not pipeline_id:
            error = JobValidationError("Pipeline id must not be empty")
            logger.error("pipeline.rejected", **error.to_dict())
            return False
        if root_job is None:
            error = JobValidationError("Root job must not be None").with_context(
                pipeline_id=pipeline_id
            )
            logger.error("pipeline.rejected", **error.to_dict())
            return False

        context_token = (
            context.cancellation_token if isinstance(context, ExecutionContext) else None
        )
        scope = CancellationSource.linked(cancellation_token, context_token)
        with self._lock:
            self._running[pipeline_id] = scope
            self._states[pipeline_id] = PipelineState.RUNNING

        state = PipelineState.FAULTED
        async with LogContext(pipeline_id=pipeline_id):
            task = asyncio.ensure_future(root_job.run(context))
            try:
                with scope.token.register(task.cancel):
                    logger.debug("pipeline.start", root=root_job.name)
                    result = await task
                if scope.is_cancelled and not result:
                    state = PipelineState.CANCELLED
                    logger.info("pipeline.cancelled", **PipelineCancelledError(pipeline_id).to_dict())
                else:
                    state = PipelineState.COMPLETED
                    logger.debug("pipeline.completed", result=result)
                return result
            except asyncio.CancelledError:
                state = PipelineState.CANCELLED
                if not scope.is_cancelled:
                    # The caller's own task was cancelled, not this pipeline.
                    raise
                logger.info("pipeline.cancelled", **PipelineCancelledError(pipeline_id).to_dict())
                return False
            except Exception as exc:
                fault = JobFaultError(root_job.name, cause=exc).with_context(pipeline_id=pipeline_id)
                logger.error("pipeline.faulted", exc_info=True, **fault.to_dict())
                return False
            finally:
                if not task.done():
                    task.cancel()
                with self._lock:
                    if self._running.get(pipeline_id) is scope:
                        del self._running[pipeline_id]
                        self._states[pipeline_id] = state
                scope.close()

    def cancel_pipeline(self, pipeline_id: str) -> bool:
        """Signal the scope tracked for ``pipeline_id``.

        Returns:
            True if a run was tracked; False otherwise (not an error).
        """
        with self._lock:
            scope = self._running.get(pipeline_id)
        if scope is None:
            return False
        logger.debug("pipeline.cancel_requested", pipeline_id=pipeline_id)
        scope.cancel()
        return True

    def cancel_all_pipelines(self) -> int:
        """Signal every tracked scope and clear the table.

        Returns:
            Number of runs that were signalled.
        """
        with self._lock:
            scopes = list(self._running.items())
            self._running.clear()
            for pipeline_id, _ in scopes:
                self._states[pipeline_id] = PipelineState.CANCELLED
        for _, scope in scopes:
            scope.cancel()
        if scopes:
            logger.info("pipeline.cancel_all", count=len(scopes))
        return len(scopes)

    def is_pipeline_running(self, pipeline_id: str) -> bool:
        with self._lock:
            return pipeline_id in self._running

    @property
    def running_count(self) -> int:
        with self._lock:
            return len(self._running)

    def running_pipeline_ids(self) -> list[str]:
        """Sorted ids of tracked runs."""
        with self._lock:
            return sorted(self._running)

    def last_state(self, pipeline_id: str) -> PipelineState:
        """RUNNING while tracked, else the terminal state of the latest run, else IDLE."""
        with self._lock:
            return self._states.get(pipeline_id, PipelineState.IDLE)


# === PROCESS-WIDE DEFAULT ===

_default_manager: ExecutionManager | None = None


def get_execution_manager() -> ExecutionManager:
    """Get the process-wide manager, creating it on first access."""
    global _default_manager
    if _default_manager is None:
        _default_manager = ExecutionManager()
    return _default_manager


def reset_execution_manager() -> None:
    """Cancel all runs of the process-wide manager and drop it (for testing/shutdown)."""
    global _default_manager
    if _default_manager is not None:
        _default_manager.cancel_all_pipelines()
    _default_manager = None


__all__ = [
    "ExecutionManager",
    "PipelineState",
    "get_execution_manager",
    "reset_execution_manager",
]
