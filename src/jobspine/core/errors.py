"""
Structured error types for jobspine.

Every condition the engine can report has a typed error here, even the ones
that never escape a job boundary. Conditions that are contained (type
mismatches, job faults, cancellation, timeouts) are logged with the same
``error_type`` and ``to_dict()`` payload as the ones that are raised, so log
records look the same whichever path produced them.

Manifesto:
    - **Typed Error Hierarchy:** One class per condition in the taxonomy
    - **Contained by default:** Only caller-construction errors are raised
    - **Rich Context:** Errors carry pipeline/job metadata for logging
    - **Error Chaining:** Original exceptions preserved as ``cause``

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                      JobSpineError                               │
        │  (category, context, cause)                                      │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  Raised to the caller          Contained at the job boundary     │
        │  ────────────────────          ─────────────────────────────     │
        │  JobValidationError            TypeMismatchError                 │
        │  DuplicateKindError            JobFaultError                     │
        │                                PipelineCancelledError            │
        │                                WaitTimeoutError                  │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    >>> error = DuplicateKindError(dict)
    >>> error.kind
    <class 'dict'>
    >>> error.category
    <ErrorCategory.CONTEXT: 'CONTEXT'>

    >>> fault = JobFaultError("load_assets", cause=RuntimeError("disk"))
    >>> fault.to_dict()["context"]
    {'job': 'load_assets'}

Guardrails:
    ❌ DON'T: Raise TypeMismatchError or JobFaultError out of a job
    ✅ DO: Log ``err.to_dict()`` and return ``False``

    ❌ DON'T: Swallow DuplicateKindError in builder code
    ✅ DO: Use ``set_or_replace`` when overwriting is intended

Tags:
    error-handling, exception-hierarchy, jobspine, observability

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Error categories used for routing log records."""

    VALIDATION = "VALIDATION"  # Malformed call into the public API
    CONTEXT = "CONTEXT"  # Context store misuse or lookup failure
    JOB = "JOB"  # Fault raised inside a job body
    CANCELLATION = "CANCELLATION"  # Cooperative cancellation observed
    TIMEOUT = "TIMEOUT"  # Wait-until bound exceeded
    INTERNAL = "INTERNAL"  # Bugs, unexpected state


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Attributes:
        pipeline_id: Identity of the pipeline being built or run
        job: Name of the job where the condition arose
        metadata: Additional key-value pairs
    """

    pipeline_id: str | None = None
    job: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result: dict[str, Any] = {}
        if self.pipeline_id is not None:
            result["pipeline_id"] = self.pipeline_id
        if self.job is not None:
            result["job"] = self.job
        if self.metadata:
            result.update(self.metadata)
        return result


class JobSpineError(Exception):
    """
    Base exception for all jobspine errors.

    Subclasses set ``default_category`` so that callers and log processors
    can route on ``category`` without isinstance chains.

    Example:
        >>> err = JobSpineError("boom").with_context(pipeline_id="init")
        >>> err.context.pipeline_id
        'init'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> JobSpineError:
        """
        Add context to this error (fluent API).

        Usage:
            raise JobValidationError("empty key").with_context(pipeline_id=key)
        """
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = repr(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# RAISED TO THE CALLER
# =============================================================================


class JobValidationError(JobSpineError, ValueError):
    """Malformed call: empty identity, missing job or action, wrong kind."""

    default_category = ErrorCategory.VALIDATION


class DuplicateKindError(JobSpineError):
    """A context object of this kind is already stored.

    Raised by ``ExecutionContext.set``; use ``set_or_replace`` to overwrite.
    """

    default_category = ErrorCategory.CONTEXT

    def __init__(self, kind: type, **kwargs: Any):
        self.kind = kind
        super().__init__(f"Context object of kind {_kind_name(kind)} already exists", **kwargs)


# =============================================================================
# CONTAINED AT THE JOB BOUNDARY (logged, reported as False)
# =============================================================================


class TypeMismatchError(JobSpineError):
    """A typed job could not resolve the context object it requires."""

    default_category = ErrorCategory.CONTEXT

    def __init__(self, expected: type, actual: Any, **kwargs: Any):
        self.expected = expected
        self.actual = actual
        actual_name = "None" if actual is None else _kind_name(type(actual))
        super().__init__(
            f"Typed job requires context object {_kind_name(expected)}, got {actual_name}",
            **kwargs,
        )


class JobFaultError(JobSpineError):
    """An exception escaped a job body."""

    default_category = ErrorCategory.JOB

    def __init__(self, job_name: str, **kwargs: Any):
        self.job_name = job_name
        cause = kwargs.get("cause")
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Job '{job_name}' faulted{detail}", **kwargs)
        self.context.job = job_name


class PipelineCancelledError(JobSpineError):
    """Cooperative cancellation was observed while a pipeline was running."""

    default_category = ErrorCategory.CANCELLATION

    def __init__(self, pipeline_id: str, **kwargs: Any):
        self.pipeline_id = pipeline_id
        super().__init__(f"Pipeline '{pipeline_id}' was cancelled", **kwargs)
        self.context.pipeline_id = pipeline_id


class WaitTimeoutError(JobSpineError):
    """A wait-until predicate did not become true within its bound."""

    default_category = ErrorCategory.TIMEOUT

    def __init__(self, timeout: float | None, **kwargs: Any):
        self.timeout = timeout
        super().__init__(f"Condition not met within {timeout}s", **kwargs)


def _kind_name(kind: type) -> str:
    return getattr(kind, "__qualname__", None) or repr(kind)


__all__ = [
    "DuplicateKindError",
    "ErrorCategory",
    "ErrorContext",
    "JobFaultError",
    "JobSpineError",
    "JobValidationError",
    "PipelineCancelledError",
    "TypeMismatchError",
    "WaitTimeoutError",
]
