"""Outcome — explicit result variants for jobs and suspension points.

A job reports a single boolean to its caller, but the reason behind a
``False`` matters for logging: an ordinary failure, an elapsed wait bound,
and an observed cancellation are different events. ``Outcome`` carries that
distinction as a value instead of an exception.

    Outcome
      ├── SUCCESS     → True
      ├── FAILURE     → False (ordinary)
      ├── TIMEOUT     → False (wait-until bound elapsed)
      └── CANCELLED   → False (cancellation observed)

Example::

    async def wait_for_login(ctx):
        return await ctx.wait_until(lambda: session.logged_in, timeout=5.0)
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class Outcome(str, Enum):
    """Result of a job body or a scheduler suspension."""

    SUCCESS = "success"
    FAILURE = "failure"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"

    @property
    def succeeded(self) -> bool:
        return self is Outcome.SUCCESS

    @classmethod
    def from_value(cls, value: Any) -> Outcome:
        """Coerce a job body's return value.

        ========== ==========================================
        Type       Behaviour
        ========== ==========================================
        Outcome    Returned as-is.
        bool       SUCCESS if True, FAILURE if False.
        other      ``TypeError`` (a faulty job body).
        ========== ==========================================
        """
        if isinstance(value, Outcome):
            return value
        if isinstance(value, bool):
            return cls.SUCCESS if value else cls.FAILURE
        raise TypeError(
            f"Job body must return bool or Outcome, got {type(value).__name__}"
        )


__all__ = ["Outcome"]
