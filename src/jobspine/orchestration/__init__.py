"""
jobspine orchestration: jobs, contexts, pipelines, and the registry.

Layers (bottom-up):
    context   ExecutionContext, ContextObject   typed store + cancellation
    jobs      Job, ActionJob, TypedJob, ...     composable units of work
    manager   ExecutionManager                  tracks and cancels runs
    pipeline  Pipeline                          fluent builder, one context
    registry  PipelineRegistry                  priority-ordered registration

Example:
    >>> from jobspine.orchestration import Pipeline
    >>> pipeline = Pipeline("demo").add_action(lambda ctx: True)
    >>> pipeline.job_count
    1
"""

from jobspine.orchestration.context import ContextObject, ExecutionContext
from jobspine.orchestration.jobs import (
    ActionJob,
    CompositeJob,
    Job,
    JobResult,
    ParallelJob,
    SequenceJob,
    TypedJob,
)
from jobspine.orchestration.manager import (
    ExecutionManager,
    PipelineState,
    get_execution_manager,
    reset_execution_manager,
)
from jobspine.orchestration.pipeline import Pipeline
from jobspine.orchestration.registry import (
    PipelineRegistry,
    get_pipeline_registry,
    reset_pipeline_registry,
)

__all__ = [
    # Context
    "ContextObject",
    "ExecutionContext",
    # Jobs
    "ActionJob",
    "CompositeJob",
    "Job",
    "JobResult",
    "ParallelJob",
    "SequenceJob",
    "TypedJob",
    # Manager
    "ExecutionManager",
    "PipelineState",
    "get_execution_manager",
    "reset_execution_manager",
    # Pipeline
    "Pipeline",
    # Registry
    "PipelineRegistry",
    "get_pipeline_registry",
    "reset_pipeline_registry",
]
