"""Jobs — units of work and the rules for composing them.

Manifesto:
    A job is anything that, given a context, eventually answers "did it
work?". Every job is also a composite: it can carry pre-jobs that must all
succeed before its body runs, and post-jobs that run only after the body
succeeded. Faults never travel further than the job that raised them.

ARCHITECTURE
────────────
::

    Job (ABC)                       run(): pre* → on_run() → post*
      ├── ActionJob                 body = action(context)
      ├── TypedJob                  body = action(context.get(kind))
      ├── CompositeJob              body = main.run(context)
      ├── SequenceJob               body = jobs in order, stop at first False
      └── ParallelJob               body = all jobs at once, AND of results

    Boundary (Job._run_body):
      on_run() result ──► Outcome.from_value ──► bool
      Exception       ──► log "job.fault"     ──► False
      CancelledError  ──► propagates (cancellation path, not a fault)

BEST PRACTICES
──────────────
- Return ``bool`` or an :class:`~jobspine.core.outcome.Outcome` from job
  bodies; other return values are treated as a faulty body.
- Subclass :class:`Job` and implement ``on_run`` for reusable jobs with state
  (retry counters, progress); use ``ActionJob`` for one-off closures.

Example::

    download = ActionJob(fetch_manifest, name="fetch_manifest")
    download.add_pre_job(ActionJob(check_disk_space))
    ok = await download.run(ctx)
"""

from __future__ import annotations

import asyncio
import inspect
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, Generic, TypeVar, Union

from jobspine.core.errors import JobFaultError, JobValidationError, TypeMismatchError
from jobspine.core.logging import get_logger
from jobspine.core.outcome import Outcome
from jobspine.orchestration.context import ExecutionContext

logger = get_logger(__name__)

T = TypeVar("T")

JobResult = Union[bool, Outcome]
ActionFn = Callable[[Any], Union[JobResult, Awaitable[JobResult]]]


class Job(ABC):
    """Base class for every job.

    ``run`` enforces the composite ordering and the fault boundary; subclasses
    only implement ``on_run``.
    """

    default_name = "job"

    def __init__(self, name: str | None = None) -> None:
        self.name = name or self.default_name
        self._pre_jobs: list[Job] = []
        self._post_jobs: list[Job] = []

    def add_pre_job(self, job: Job) -> Job:
        """Append a job that must succeed before the body runs."""
        self._pre_jobs.append(_require_job(job))
        return self

    def add_post_job(self, job: Job) -> Job:
        """Append a job that runs after the body succeeded."""
        self._post_jobs.append(_require_job(job))
        return self

    @property
    def pre_jobs(self) -> tuple[Job, ...]:
        return tuple(self._pre_jobs)

    @property
    def post_jobs(self) -> tuple[Job, ...]:
        return tuple(self._post_jobs)

    async def run(self, context: Any) -> bool:
        """Run pre-jobs, the body, then post-jobs, stopping at the first failure."""
        for job in list(self._pre_jobs):
            if not await job.run(context):
                return False

        if not await self._run_body(context):
            return False

        for job in list(self._post_jobs):
            if not await job.run(context):
                return False

        return True

    async def _run_body(self, context: Any) -> bool:
        try:
            outcome = Outcome.from_value(await self.on_run(context))
        except Exception as exc:
            fault = JobFaultError(self.name, cause=exc)
            logger.error("job.fault", job=self.name, exc_info=True, **fault.to_dict())
            return False

        if outcome is Outcome.FAILURE:
            logger.debug("job.failed", job=self.name)
        elif outcome is Outcome.TIMEOUT:
            logger.warning("job.timeout", job=self.name)
        elif outcome is Outcome.CANCELLED:
            logger.info("job.cancelled", job=self.name)
        return outcome.succeeded

    @abstractmethod
    async def on_run(self, context: Any) -> JobResult:
        """The job's own work."""

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.name!r})"


class ActionJob(Job):
    """Job whose body is a callable ``(context) -> bool | Outcome``.

    Coroutine functions and plain functions are both accepted.
    """

    default_name = "action"

    def __init__(self, action: ActionFn, name: str | None = None) -> None:
        if not callable(action):
            raise JobValidationError("ActionJob requires a callable action")
        super().__init__(name or getattr(action, "__name__", None))
        if self.name == "<lambda>":
            self.name = self.default_name
        self._action = action

    async def on_run(self, context: Any) -> JobResult:
        return await _call(self._action, context)


class TypedJob(Job, Generic[T]):
    """Job whose body receives one context object of a given kind.

    Resolution order:
        1. ``context`` is an :class:`ExecutionContext` → the stored ``kind``
           instance, or a type mismatch when the store has none
        2. ``context`` itself is a ``kind`` instance → used as-is
        3. otherwise → type mismatch, logged, reported as False
    """

    def __init__(
        self,
        kind: type[T],
        action: Callable[[T], JobResult | Awaitable[JobResult]],
        name: str | None = None,
    ) -> None:
        if not isinstance(kind, type):
            raise JobValidationError("TypedJob requires a context object kind")
        if not callable(action):
            raise JobValidationError("TypedJob requires a callable action")
        super().__init__(name or f"typed[{kind.__name__}]")
        self.kind = kind
        self._action = action

    def resolve(self, context: Any) -> tuple[T | None, bool]:
        """Find the ``kind`` instance for this run."""
        if isinstance(context, ExecutionContext):
            return context.try_get(self.kind)
        if isinstance(context, self.kind):
            return context, True
        return None, False

    async def on_run(self, context: Any) -> JobResult:
        target, found = self.resolve(context)
        if not found:
            actual = context if not isinstance(context, ExecutionContext) else None
            mismatch = TypeMismatchError(self.kind, actual).with_context(job=self.name)
            logger.error(
                "job.type_mismatch",
                job=self.name,
                expected=self.kind.__name__,
                actual=type(context).__name__ if context is not None else "None",
                **mismatch.to_dict(),
            )
            return Outcome.FAILURE
        return await _call(self._action, target)


class CompositeJob(Job):
    """Explicit composite: pre-jobs, one main job, post-jobs."""

    default_name = "composite"

    def __init__(
        self,
        main: Job,
        pre_jobs: Iterable[Job] = (),
        post_jobs: Iterable[Job] = (),
        name: str | None = None,
    ) -> None:
        super().__init__(name or _require_job(main).name)
        self.main = main
        for job in pre_jobs:
            self.add_pre_job(job)
        for job in post_jobs:
            self.add_post_job(job)

    async def on_run(self, context: Any) -> JobResult:
        return await self.main.run(context)


class SequenceJob(Job):
    """Runs jobs in order and stops at the first one that returns False."""

    default_name = "sequence"

    def __init__(self, jobs: Iterable[Job], name: str | None = None) -> None:
        super().__init__(name)
        self._jobs = [_require_job(job) for job in jobs]

    @property
    def jobs(self) -> tuple[Job, ...]:
        return tuple(self._jobs)

    async def on_run(self, context: Any) -> JobResult:
        for index, job in enumerate(self._jobs):
            if not await job.run(context):
                logger.debug(
                    "sequence.stopped",
                    sequence=self.name,
                    job=job.name,
                    index=index,
                    skipped=len(self._jobs) - index - 1,
                )
                return False
        return True


class ParallelJob(Job):
    """Starts every job concurrently on the same context and joins them all.

    A failing member does not cancel its siblings; the group's result is the
    logical AND of every member, available only once all have finished. An
    empty group succeeds.
    """

    default_name = "parallel"

    def __init__(self, jobs: Iterable[Job], name: str | None = None) -> None:
        super().__init__(name)
        self._jobs = [_require_job(job) for job in jobs]

    @property
    def jobs(self) -> tuple[Job, ...]:
        return tuple(self._jobs)

    async def on_run(self, context: Any) -> JobResult:
        if not self._jobs:
            return True
        results = await asyncio.gather(*(job.run(context) for job in self._jobs))
        if not all(results):
            logger.debug(
                "parallel.partial_failure",
                group=self.name,
                failed=[job.name for job, ok in zip(self._jobs, results) if not ok],
            )
        return all(results)


async def _call(action: Callable[[Any], Any], argument: Any) -> Any:
    result = action(argument)
    if inspect.isawaitable(result):
        result = await result
    return result


def _require_job(job: Any) -> Job:
    if not isinstance(job, Job):
        raise JobValidationError(f"Expected Job, got {type(job).__name__}")
    return job


__all__ = [
    "ActionJob",
    "CompositeJob",
    "Job",
    "JobResult",
    "ParallelJob",
    "SequenceJob",
    "TypedJob",
]
