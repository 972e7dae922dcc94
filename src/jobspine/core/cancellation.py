"""Cancellation — cooperative, linkable cancellation signals.

WHY
───
``asyncio`` cancels *tasks*; a pipeline needs to cancel a *flow*. A run can be
stopped by the pipeline itself (its context), by the registry (a re-run of the
same key), or by whoever started it (a caller token). Each of those is a
``CancellationSource``; a run observes one linked scope that fires when any of
them fires.

ARCHITECTURE
────────────
::

    CancellationSource                   ─ owner side
      ├── .cancel()                      ─ idempotent, fires callbacks once
      ├── .close()                       ─ detach from parents, drop callbacks
      ├── .token                         ─ read-only view handed to observers
      └── .linked(*tokens)               ─ child fired by any parent

    CancellationToken                    ─ observer side
      ├── .is_cancelled
      ├── .register(callback)            ─ → CancellationRegistration
      ├── .wait(timeout)                 ─ suspension point, True if cancelled
      └── .none()                        ─ token that never fires

    context token ──┐
                    ├──► linked scope ──► manager cancels the root task
    caller token  ──┘

BEST PRACTICES
──────────────
- Close linked scopes when the run ends (``with`` or ``finally``) so parents
  do not keep callbacks for finished runs.
- Callbacks run synchronously inside ``cancel()``; keep them short
  (``task.cancel``, ``future.set_result``).

Example::

    source = CancellationSource()
    scope = CancellationSource.linked(source.token, caller_token)
    with scope:
        cancelled = await scope.token.wait(timeout=1.0)
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Callable

from jobspine.core.logging import get_logger

logger = get_logger(__name__)


class CancellationRegistration:
    """Handle for a callback registered on a token."""

    def __init__(self, source: CancellationSource | None, callback: Callable[[], None]):
        self._source = source
        self.callback = callback

    def unregister(self) -> None:
        """Detach the callback; a no-op once fired or already detached."""
        if self._source is not None:
            self._source._unregister(self)
            self._source = None

    def __enter__(self) -> CancellationRegistration:
        return self

    def __exit__(self, *args) -> None:
        self.unregister()


class CancellationToken:
    """Read-only view of a :class:`CancellationSource`."""

    __slots__ = ("_source",)

    def __init__(self, source: CancellationSource | None = None):
        self._source = source

    @classmethod
    def none(cls) -> CancellationToken:
        """A token that is never cancelled."""
        return cls(None)

    @property
    def is_cancelled(self) -> bool:
        return self._source is not None and self._source.is_cancelled

    @property
    def can_be_cancelled(self) -> bool:
        return self._source is not None

    def register(self, callback: Callable[[], None]) -> CancellationRegistration:
        """Invoke ``callback`` once when cancelled (immediately if already cancelled)."""
        if self._source is None:
            return CancellationRegistration(None, callback)
        return self._source._register(callback)

    async def wait(self, timeout: float | None = None) -> bool:
        """Suspend until cancelled or ``timeout`` seconds pass.

        Returns:
            True if the token was cancelled, False if the timeout elapsed.
        """
        if self.is_cancelled:
            return True

        waiter = asyncio.get_running_loop().create_future()

        def _wake() -> None:
            if not waiter.done():
                waiter.set_result(None)

        with self.register(_wake):
            try:
                done, _ = await asyncio.wait({waiter}, timeout=timeout)
            finally:
                waiter.cancel()
        return bool(done)

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.is_cancelled})"


class CancellationSource:
    """Owner of a cancellation signal.

    A source is cancelled at most once. Closing releases it: callbacks are
    dropped, links to parent tokens are removed and later ``cancel()`` calls
    are ignored.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._cancelled = False
        self._closed = False
        self._callbacks: list[CancellationRegistration] = []
        self._links: list[CancellationRegistration] = []
        self.token = CancellationToken(self)

    @classmethod
    def linked(cls, *tokens: CancellationToken | None) -> CancellationSource:
        """Create a source that is cancelled when any of ``tokens`` is."""
        source = cls()
        for token in tokens:
            if token is None:
                continue
            source._links.append(token.register(source.cancel))
        return source

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def has_registrations(self) -> bool:
        """True while any callback (a linked scope, a waiter) is attached."""
        with self._lock:
            return bool(self._callbacks)

    def cancel(self) -> None:
        """Signal cancellation; idempotent."""
        with self._lock:
            if self._cancelled or self._closed:
                return
            self._cancelled = True
            callbacks, self._callbacks = self._callbacks, []

        for registration in callbacks:
            registration._source = None
            try:
                registration.callback()
            except Exception:
                logger.warning("cancellation.callback_failed", exc_info=True)

    def close(self) -> None:
        """Release the source; idempotent."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            links, self._links = self._links, []
            self._callbacks = []

        for link in links:
            link.unregister()

    def _register(self, callback: Callable[[], None]) -> CancellationRegistration:
        with self._lock:
            if not self._cancelled:
                registration = CancellationRegistration(None if self._closed else self, callback)
                if not self._closed:
                    self._callbacks.append(registration)
                return registration
        callback()
        return CancellationRegistration(None, callback)

    def _unregister(self, registration: CancellationRegistration) -> None:
        with self._lock:
            try:
                self._callbacks.remove(registration)
            except ValueError:
                pass

    def __enter__(self) -> CancellationSource:
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"CancellationSource(cancelled={self._cancelled}, closed={self._closed})"


__all__ = ["CancellationRegistration", "CancellationSource", "CancellationToken"]
