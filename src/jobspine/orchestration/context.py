"""Execution Context — typed object store + cancellation shared by every job.

Manifesto:
    Jobs in one pipeline need to share data without knowing about each
    other. The context is a *typed* store: at most one instance per kind,
    looked up by the kind itself. It is not a general key-value bag; a job
    asks for ``ctx.get(LoginSession)`` and gets the one session or ``None``.

ARCHITECTURE
────────────
::

    ExecutionContext
      ├── store: kind → instance        (threading.Lock guarded)
      │     ├── .set(obj)               → DuplicateKindError if kind present
      │     ├── .set_or_replace(obj)    → overwrite
      │     ├── .get(kind) / .try_get(kind) / .remove(kind)
      │     └── .clear()
      ├── cancellation                  (CancellationSource)
      │     ├── .cancel() / .is_cancelled / .cancellation_token
      │     └── .reset_cancellation()   → fresh epoch; epochs runs still observe stay cancellable
      ├── suspension helpers            (observe the current token)
      │     ├── .delay(seconds)         → Outcome
      │     └── .wait_until(pred, t)    → Outcome
      └── .dispose()

BEST PRACTICES
──────────────
- Store one object per concern (``LoginSession``, ``AssetManifest``) and
  mutate its fields; do not store primitives keyed by ``int`` or ``str``.
- Parallel branches share the same context. The store itself is safe for
  concurrent access, a stored object's own fields are not.

Example::

    ctx = ExecutionContext()
    ctx.set(LoginSession(user="ada"))
    session = ctx.get(LoginSession)
    outcome = await ctx.delay(0.5)
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Any, TypeVar, overload

from jobspine.core.cancellation import CancellationSource, CancellationToken
from jobspine.core.errors import DuplicateKindError, JobValidationError
from jobspine.core.logging import get_logger
from jobspine.core.outcome import Outcome
from jobspine.core.scheduler import AsyncioScheduler, Scheduler

logger = get_logger(__name__)

T = TypeVar("T")


class ContextObject:
    """Marker base for objects shared through an :class:`ExecutionContext`.

    Inheriting is optional; any object can be stored. The marker documents
    intent and lets typed jobs receive a context object directly.
    """


class ExecutionContext(ContextObject):
    """Typed object store plus the cancellation signal of one pipeline."""

    def __init__(self, scheduler: Scheduler | None = None) -> None:
        self._objects: dict[type, Any] = {}
        self._lock = threading.Lock()
        self._cancellation = CancellationSource()
        self._retired: list[CancellationSource] = []
        self._scheduler = scheduler
        self._disposed = False

    # =========================================================================
    # Store
    # =========================================================================

    def set(self, obj: Any, kind: type | None = None) -> None:
        """Store ``obj`` under its kind.

        Raises:
            DuplicateKindError: If an object of that kind is already stored
            JobValidationError: If ``obj`` is None or not an instance of ``kind``
        """
        key = self._kind_for(obj, kind)
        with self._lock:
            if key in self._objects:
                raise DuplicateKindError(key)
            self._objects[key] = obj

    def set_or_replace(self, obj: Any, kind: type | None = None) -> None:
        """Store ``obj`` under its kind, overwriting any previous instance."""
        key = self._kind_for(obj, kind)
        with self._lock:
            self._objects[key] = obj

    @overload
    def get(self, kind: type[T]) -> T | None: ...

    @overload
    def get(self, kind: type[T], default: T) -> T: ...

    def get(self, kind, default=None):
        """Return the stored instance of ``kind`` or ``default``. Never raises."""
        with self._lock:
            return self._objects.get(kind, default)

    def try_get(self, kind: type[T]) -> tuple[T | None, bool]:
        """Return ``(instance, True)`` or ``(None, False)``."""
        with self._lock:
            if kind in self._objects:
                return self._objects[kind], True
        return None, False

    def remove(self, kind: type) -> bool:
        """Remove the instance of ``kind``; True if one was stored."""
        with self._lock:
            if kind not in self._objects:
                return False
            del self._objects[kind]
            return True

    def contains(self, kind: type) -> bool:
        with self._lock:
            return kind in self._objects

    def clear(self) -> None:
        """Remove every stored object; the cancellation signal is untouched."""
        with self._lock:
            self._objects.clear()

    def __contains__(self, kind: object) -> bool:
        return isinstance(kind, type) and self.contains(kind)

    def __len__(self) -> int:
        with self._lock:
            return len(self._objects)

    @staticmethod
    def _kind_for(obj: Any, kind: type | None) -> type:
        if obj is None:
            raise JobValidationError("Context object must not be None")
        if kind is None:
            return type(obj)
        if not isinstance(obj, kind):
            raise JobValidationError(
                f"{type(obj).__name__} is not an instance of kind {kind.__name__}"
            )
        return kind

    # =========================================================================
    # Cancellation
    # =========================================================================

    @property
    def cancellation_token(self) -> CancellationToken:
        """Token of the current cancellation epoch."""
        return self._cancellation.token

    @property
    def is_cancelled(self) -> bool:
        return self._cancellation.is_cancelled

    def cancel(self) -> None:
        """Cancel the current epoch and any earlier epoch a run still observes; idempotent."""
        self._cancellation.cancel()
        retired, self._retired = self._retired, []
        for source in retired:
            source.cancel()
            source.close()

    def reset_cancellation(self) -> None:
        """Start a fresh, un-cancelled epoch.

        A previous epoch that is not cancelled and still has runs linked to it
        stays reachable: a later ``cancel()`` signals it too. Epochs nothing
        observes any more are released.
        """
        old, self._cancellation = self._cancellation, CancellationSource()
        self._retired.append(old)
        keep = []
        for source in self._retired:
            if source.is_cancelled or not source.has_registrations:
                source.close()
            else:
                keep.append(source)
        self._retired = keep
        logger.debug("context.cancellation_reset")

    # =========================================================================
    # Suspension helpers
    # =========================================================================

    @property
    def scheduler(self) -> Scheduler:
        if self._scheduler is None:
            self._scheduler = AsyncioScheduler()
        return self._scheduler

    async def delay(self, seconds: float) -> Outcome:
        """Suspend for ``seconds``; CANCELLED if this context is cancelled first."""
        return await self.scheduler.sleep(seconds, self.cancellation_token)

    async def wait_until(
        self, predicate: Callable[[], bool], timeout: float | None = None
    ) -> Outcome:
        """Suspend until ``predicate()`` is true, ``timeout`` elapses, or cancellation."""
        return await self.scheduler.wait_until(predicate, timeout, self.cancellation_token)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> None:
        """Clear the store and release the cancellation signal; idempotent."""
        if self._disposed:
            return
        self._disposed = True
        self.clear()
        self._cancellation.close()
        retired, self._retired = self._retired, []
        for source in retired:
            source.close()

    def __repr__(self) -> str:
        with self._lock:
            kinds = sorted(k.__name__ for k in self._objects)
        return f"ExecutionContext(kinds={kinds}, cancelled={self.is_cancelled})"


__all__ = ["ContextObject", "ExecutionContext"]
