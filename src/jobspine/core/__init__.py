"""jobspine core primitives: errors, logging, settings, cancellation, scheduling."""

from jobspine.core.cancellation import (
    CancellationRegistration,
    CancellationSource,
    CancellationToken,
)
from jobspine.core.errors import (
    DuplicateKindError,
    ErrorCategory,
    ErrorContext,
    JobFaultError,
    JobSpineError,
    JobValidationError,
    PipelineCancelledError,
    TypeMismatchError,
    WaitTimeoutError,
)
from jobspine.core.logging import LogContext, configure_logging, get_logger
from jobspine.core.outcome import Outcome
from jobspine.core.scheduler import AsyncioScheduler, Scheduler
from jobspine.core.settings import JobSpineSettings, clear_settings_cache, get_settings

__all__ = [
    "AsyncioScheduler",
    "CancellationRegistration",
    "CancellationSource",
    "CancellationToken",
    "DuplicateKindError",
    "ErrorCategory",
    "ErrorContext",
    "JobFaultError",
    "JobSpineError",
    "JobSpineSettings",
    "JobValidationError",
    "LogContext",
    "Outcome",
    "PipelineCancelledError",
    "Scheduler",
    "TypeMismatchError",
    "WaitTimeoutError",
    "clear_settings_cache",
    "configure_logging",
    "get_logger",
    "get_settings",
]
