"""Pipeline — fluent builder for an ordered list of jobs plus its context.

ARCHITECTURE
────────────
::

    Pipeline(pipeline_id)
      ├── context: ExecutionContext          ─ owned, one per pipeline
      ├── jobs: [Job, ...]                   ─ ordered
      │
      ├── .add_job / .add_action / .add_typed_action
      ├── .add_delay(seconds)                ─ Outcome.CANCELLED on cancel
      ├── .add_wait_until(pred, timeout)     ─ Outcome.TIMEOUT on bound
      ├── .add_parallel(*jobs)               ─ ParallelJob
      ├── .set_context / .set_or_update_context
      ├── .clear_jobs()
      │
      └── .execute()
            snapshot jobs ──► SequenceJob("<id>.root")
                          ──► ExecutionManager.execute_pipeline(id, root, context, token)

BEST PRACTICES
──────────────
- Give long-lived flows a stable id; the manager tracks runs by id.
- Jobs appended while a run is in flight apply to the *next* run only.
- A pipeline cancelled through its context stays cancelled until
  ``context.reset_cancellation()``.

Example::

    ok = await (
        Pipeline("game.init")
        .set_context(InitState())
        .add_typed_action(InitState, load_config, name="load_config")
        .add_delay(0.1)
        .add_parallel(ActionJob(load_audio), ActionJob(load_textures))
        .add_wait_until(lambda: network.ready, timeout=10.0)
        .execute()
    )
"""

from __future__ import annotations

import uuid
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from jobspine.core.cancellation import CancellationToken
from jobspine.core.errors import JobValidationError, WaitTimeoutError
from jobspine.core.logging import get_logger
from jobspine.core.outcome import Outcome
from jobspine.core.scheduler import Scheduler
from jobspine.orchestration.context import ExecutionContext
from jobspine.orchestration.jobs import (
    ActionFn,
    ActionJob,
    Job,
    JobResult,
    ParallelJob,
    SequenceJob,
    TypedJob,
)
from jobspine.orchestration.manager import ExecutionManager, get_execution_manager

logger = get_logger(__name__)

T = TypeVar("T")


class Pipeline:
    """Named, ordered collection of jobs plus one owned execution context.

    Args:
        pipeline_id: Stable identity of the flow; a random id is generated
            when omitted or empty.
        manager: Execution manager to run through; defaults to the
            process-wide manager at execution time.
        scheduler: Scheduler for the owned context's suspension points.
    """

    def __init__(
        self,
        pipeline_id: str | None = None,
        *,
        manager: ExecutionManager | None = None,
        scheduler: Scheduler | None = None,
    ) -> None:
        self._pipeline_id = pipeline_id or uuid.uuid4().hex
        self._manager = manager
        self._context = ExecutionContext(scheduler=scheduler)
        self._jobs: list[Job] = []

    @property
    def pipeline_id(self) -> str:
        return self._pipeline_id

    @property
    def context(self) -> ExecutionContext:
        return self._context

    @property
    def manager(self) -> ExecutionManager:
        return self._manager or get_execution_manager()

    @property
    def jobs(self) -> tuple[Job, ...]:
        """Snapshot of the current job list."""
        return tuple(self._jobs)

    @property
    def job_count(self) -> int:
        return len(self._jobs)

    # =========================================================================
    # Building
    # =========================================================================

    def add_job(self, job: Job) -> Pipeline:
        if not isinstance(job, Job):
            raise JobValidationError(
                f"Expected Job, got {type(job).__name__}"
            ).with_context(pipeline_id=self._pipeline_id)
        self._jobs.append(job)
        return self

    def add_action(self, action: ActionFn, name: str | None = None) -> Pipeline:
        return self.add_job(ActionJob(action, name))

    def add_typed_action(
        self,
        kind: type[T],
        action: Callable[[T], JobResult | Awaitable[JobResult]],
        name: str | None = None,
    ) -> Pipeline:
        return self.add_job(TypedJob(kind, action, name))

    def set_context(self, obj: Any) -> Pipeline:
        """Store ``obj`` in the context; raises DuplicateKindError if its kind exists."""
        self._context.set(obj)
        return self

    def set_or_update_context(self, obj: Any) -> Pipeline:
        self._context.set_or_replace(obj)
        return self

    def add_delay(self, seconds: float) -> Pipeline:
        """Append a job that suspends for ``seconds``.

        The delay observes the pipeline's current cancellation token; a
        cancellation during the delay reports ``Outcome.CANCELLED``.
        """
        if seconds < 0:
            raise JobValidationError(f"Delay must be non-negative, got {seconds}")

        async def _delay(_: Any) -> Outcome:
            return await self._context.delay(seconds)

        return self.add_job(ActionJob(_delay, name=f"delay[{seconds}s]"))

    def add_wait_until(
        self, predicate: Callable[[], bool], timeout: float | None = None
    ) -> Pipeline:
        """Append a job that waits for ``predicate()`` to become true.

        Reports ``Outcome.TIMEOUT`` (logged) when ``timeout`` elapses first.
        ``timeout`` defaults to ``JobSpineSettings.default_wait_timeout``.
        """
        if not callable(predicate):
            raise JobValidationError("add_wait_until requires a callable predicate")
        if timeout is None:
            from jobspine.core.settings import get_settings

            timeout = get_settings().default_wait_timeout

        async def _wait(_: Any) -> Outcome:
            outcome = await self._context.wait_until(predicate, timeout)
            if outcome is Outcome.TIMEOUT:
                logger.warning(
                    "pipeline.wait_timeout",
                    pipeline_id=self._pipeline_id,
                    **WaitTimeoutError(timeout).to_dict(),
                )
            return outcome

        return self.add_job(ActionJob(_wait, name="wait_until"))

    def add_parallel(self, *jobs: Job) -> Pipeline:
        """Append a group that runs ``jobs`` concurrently; see :class:`ParallelJob`."""
        return self.add_job(ParallelJob(jobs, name="parallel_group"))

    def clear_jobs(self) -> Pipeline:
        self._jobs.clear()
        return self

    def cancel(self) -> None:
        """Cancel the owned context (and through it any tracked run)."""
        self._context.cancel()

    # =========================================================================
    # Execution
    # =========================================================================

    async def execute(self, cancellation_token: CancellationToken | None = None) -> bool:
        """Run a snapshot of the job list through the execution manager.

        Args:
            cancellation_token: Optional caller token linked into the run's scope.
        """
        if not self._jobs:
            logger.warning("pipeline.empty", pipeline_id=self._pipeline_id)
            return True

        try:
            root = SequenceJob(list(self._jobs), name=f"{self._pipeline_id}.root")
            logger.info(
                "pipeline.execute",
                pipeline_id=self._pipeline_id,
                job_count=len(root.jobs),
            )
            token = cancellation_token or self._context.cancellation_token
            result = await self.manager.execute_pipeline(
                self._pipeline_id, root, self._context, token
            )
            logger.info("pipeline.finished", pipeline_id=self._pipeline_id, result=result)
            return result
        except Exception:
            logger.error("pipeline.execute_failed", pipeline_id=self._pipeline_id, exc_info=True)
            return False

    def dispose(self) -> None:
        """Drop the job list and dispose the owned context."""
        self._jobs.clear()
        self._context.dispose()

    def __repr__(self) -> str:
        return f"Pipeline({self._pipeline_id!r}, jobs={len(self._jobs)})"


__all__ = ["Pipeline"]
