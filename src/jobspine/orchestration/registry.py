"""Pipeline Registry — many call sites contributing jobs to one named pipeline.

Manifesto:
Large applications assemble flows like "game.init" from modules that do not
know about each other: the audio module registers its loader, the network
module registers its handshake. The registry gives each of them a key to
register against, and orders their contributions by priority.

ARCHITECTURE
────────────
::

    PipelineRegistry
      ├── pipelines:      key → Pipeline
      ├── priority_jobs:  key → {priority → [Job, ...]}
      │
      ├── .get_or_create_pipeline(key)
      ├── .register_job / .register_action                 → pipeline job list
      ├── .register_job_with_priority / ..._action_...     → priority bucket
      ├── .build_priority_pipeline(key)                    → clear + rebuild
      ├── .execute(key)                                    → run job list as-is
      ├── .execute_priority_pipeline(key)                  → cancel, rebuild, run
      ├── .set_context_object / .set_or_update_context_object
      ├── .cancel_pipeline(key)
      └── .clear(key) / .clear_all()

    Buckets are visited in ascending priority (lower runs earlier); jobs in a
    bucket keep registration order. {A:0, B:5, C:5, D:-1} → D, A, B, C

BEST PRACTICES
──────────────
- Use one registration style per key. Direct registrations are discarded by
  the next priority rebuild.
- Call ``clear_all()`` (or ``reset_pipeline_registry()``) in test fixtures.

Example::

    registry = get_pipeline_registry()
    registry.set_context_object("game.init", InitState())
    registry.register_action_with_priority("game.init", load_config, priority=0)
    registry.register_action_with_priority("game.init", connect, priority=10)
    ok = await registry.execute_priority_pipeline("game.init")
"""

from __future__ import annotations

from typing import Any

from jobspine.core.errors import JobValidationError
from jobspine.core.logging import get_logger
from jobspine.core.scheduler import Scheduler
from jobspine.orchestration.jobs import ActionFn, ActionJob, Job
from jobspine.orchestration.manager import ExecutionManager, get_execution_manager
from jobspine.orchestration.pipeline import Pipeline

logger = get_logger(__name__)


class PipelineRegistry:
    """Named pipelines plus priority-bucketed job registrations.

    Args:
        manager: Execution manager shared by every pipeline this registry
            creates; defaults to the process-wide manager.
        scheduler: Scheduler handed to pipelines this registry creates.
    """

    def __init__(
        self,
        manager: ExecutionManager | None = None,
        scheduler: Scheduler | None = None,
    ) -> None:
        self._manager = manager
        self._scheduler = scheduler
        self._pipelines: dict[str, Pipeline] = {}
        self._priority_jobs: dict[str, dict[int, list[Job]]] = {}

    @property
    def manager(self) -> ExecutionManager:
        return self._manager or get_execution_manager()

    # =========================================================================
    # Lookup
    # =========================================================================

    def get_or_create_pipeline(self, key: str) -> Pipeline:
        """Return the pipeline for ``key``, creating it (and its buckets) if needed.

        Raises:
            JobValidationError: If ``key`` is empty
        """
        if not key:
            raise JobValidationError("Pipeline key must not be empty")

        pipeline = self._pipelines.get(key)
        if pipeline is None:
            pipeline = Pipeline(key, manager=self.manager, scheduler=self._scheduler)
            self._pipelines[key] = pipeline
            self._priority_jobs[key] = {}
            logger.debug("registry.pipeline_created", pipeline_id=key)
        return pipeline

    def get_pipeline(self, key: str) -> Pipeline | None:
        return self._pipelines.get(key)

    def has_pipeline(self, key: str) -> bool:
        return key in self._pipelines

    def pipeline_keys(self) -> list[str]:
        return sorted(self._pipelines)

    def registered_priorities(self, key: str) -> list[int]:
        """Priorities with at least one registration for ``key``, ascending."""
        return sorted(self._priority_jobs.get(key, {}))

    # =========================================================================
    # Registration
    # =========================================================================

    def register_job(self, key: str, job: Job | None) -> bool:
        """Append ``job`` directly to the pipeline's job list."""
        if not self._valid_registration(key, job, "register_job", expects_job=True):
            return False
        self.get_or_create_pipeline(key).add_job(job)
        logger.debug("registry.job_registered", pipeline_id=key, job=job.name)
        return True

    def register_action(self, key: str, action: ActionFn | None, name: str | None = None) -> bool:
        if not self._valid_registration(key, action, "register_action", expects_job=False):
            return False
        return self.register_job(key, ActionJob(action, name))

    def register_job_with_priority(self, key: str, job: Job | None, priority: int = 0) -> bool:
        """Append ``job`` to the bucket for ``priority`` (lower runs earlier)."""
        if not self._valid_registration(key, job, "register_job_with_priority", expects_job=True):
            return False
        self.get_or_create_pipeline(key)
        self._priority_jobs[key].setdefault(priority, []).append(job)
        logger.debug(
            "registry.job_registered",
            pipeline_id=key,
            job=job.name,
            priority=priority,
        )
        return True

    def register_action_with_priority(
        self,
        key: str,
        action: ActionFn | None,
        priority: int = 0,
        name: str | None = None,
    ) -> bool:
        if not self._valid_registration(
            key, action, "register_action_with_priority", expects_job=False
        ):
            return False
        return self.register_job_with_priority(key, ActionJob(action, name), priority)

    def _valid_registration(
        self, key: str, item: Any, operation: str, *, expects_job: bool
    ) -> bool:
        if not key:
            logger.error("registry.invalid_registration", operation=operation, reason="empty key")
            return False
        if item is None:
            logger.error(
                "registry.invalid_registration",
                operation=operation,
                pipeline_id=key,
                reason="missing job or action",
            )
            return False
        valid = isinstance(item, Job) if expects_job else callable(item)
        if valid:
            return True
        logger.error(
            "registry.invalid_registration",
            operation=operation,
            pipeline_id=key,
            reason=f"unsupported {type(item).__name__}",
        )
        return False

    # =========================================================================
    # Building & execution
    # =========================================================================

    def build_priority_pipeline(self, key: str) -> Pipeline | None:
        """Replace the pipeline's job list with its priority registrations.

        Idempotent: rebuilding without new registrations yields the same order.
        """
        buckets = self._priority_jobs.get(key)
        if not buckets:
            logger.warning("registry.no_priority_jobs", pipeline_id=key)
            return None

        pipeline = self.get_or_create_pipeline(key)
        pipeline.clear_jobs()
        for priority in sorted(buckets):
            for job in buckets[priority]:
                pipeline.add_job(job)

        logger.debug(
            "registry.pipeline_built",
            pipeline_id=key,
            job_count=pipeline.job_count,
            priorities=sorted(buckets),
        )
        return pipeline

    async def execute(self, key: str) -> bool:
        """Run the pipeline's current job list as-is."""
        pipeline = self._pipelines.get(key)
        if pipeline is None:
            logger.error("registry.pipeline_not_found", pipeline_id=key)
            return False
        return await pipeline.execute()

    async def execute_priority_pipeline(self, key: str) -> bool:
        """Cancel any run for ``key``, rebuild from priority buckets, and run.

        The previous run's scope is signalled before rebuilding, and the
        context starts a fresh cancellation epoch so the new run is not born
        cancelled.
        """
        pipeline = self._pipelines.get(key)
        if pipeline is not None:
            self.cancel_pipeline(key)
            pipeline.context.reset_cancellation()

        pipeline = self.build_priority_pipeline(key)
        if pipeline is None:
            logger.error("registry.pipeline_not_found", pipeline_id=key)
            return False
        return await pipeline.execute()

    # =========================================================================
    # Context
    # =========================================================================

    def set_context_object(self, key: str, obj: Any) -> bool:
        """Store ``obj`` in the pipeline's context.

        Raises:
            DuplicateKindError: If the context already holds that kind
        """
        if not key or obj is None:
            logger.error("registry.invalid_context_object", pipeline_id=key or None)
            return False
        self.get_or_create_pipeline(key).set_context(obj)
        return True

    def set_or_update_context_object(self, key: str, obj: Any) -> bool:
        if not key or obj is None:
            logger.error("registry.invalid_context_object", pipeline_id=key or None)
            return False
        self.get_or_create_pipeline(key).set_or_update_context(obj)
        return True

    # =========================================================================
    # Cancellation & teardown
    # =========================================================================

    def cancel_pipeline(self, key: str) -> bool:
        """Cancel the pipeline's context and its tracked run.

        Returns:
            True if the manager was tracking a run for ``key``.
        """
        if not key:
            return False
        pipeline = self._pipelines.get(key)
        if pipeline is not None:
            pipeline.cancel()
        cancelled = self.manager.cancel_pipeline(key)
        logger.debug("registry.pipeline_cancelled", pipeline_id=key, was_running=cancelled)
        return cancelled

    def clear(self, key: str) -> None:
        """Cancel and forget the pipeline and the priority buckets for ``key``."""
        if not key:
            return
        pipeline = self._pipelines.pop(key, None)
        self._priority_jobs.pop(key, None)
        if pipeline is not None:
            pipeline.cancel()
            self.manager.cancel_pipeline(key)
            pipeline.dispose()
            logger.debug("registry.pipeline_cleared", pipeline_id=key)

    def clear_all(self) -> None:
        """Cancel and forget every pipeline, then cancel every tracked run."""
        pipelines = list(self._pipelines.values())
        self._pipelines.clear()
        self._priority_jobs.clear()
        for pipeline in pipelines:
            pipeline.cancel()
            pipeline.dispose()
        self.manager.cancel_all_pipelines()
        logger.debug("registry.cleared", count=len(pipelines))


# === PROCESS-WIDE DEFAULT ===

_default_registry: PipelineRegistry | None = None


def get_pipeline_registry() -> PipelineRegistry:
    """Get the process-wide registry, creating it (empty) on first access."""
    global _default_registry
    if _default_registry is None:
        _default_registry = PipelineRegistry()
    return _default_registry


def reset_pipeline_registry() -> None:
    """Clear the process-wide registry and drop it (for testing/shutdown)."""
    global _default_registry
    if _default_registry is not None:
        _default_registry.clear_all()
    _default_registry = None


__all__ = ["PipelineRegistry", "get_pipeline_registry", "reset_pipeline_registry"]
