"""
jobspine - asynchronous job pipelines with typed context and cooperative cancellation.

Subpackages:
- jobspine.core: errors, logging, settings, outcomes, cancellation, scheduling
- jobspine.orchestration: jobs, contexts, pipelines, execution manager, registry
"""

__version__ = "0.1.0"

from jobspine.core import *  # noqa
from jobspine.core import __all__ as _core_all
from jobspine.orchestration import *  # noqa
from jobspine.orchestration import __all__ as _orchestration_all

__all__ = ["__version__", *_core_all, *_orchestration_all]
