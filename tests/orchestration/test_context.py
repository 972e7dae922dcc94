"""Tests for ExecutionContext — typed store, cancellation epochs, suspension."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

import pytest

from jobspine.core.errors import DuplicateKindError, JobValidationError
from jobspine.core.outcome import Outcome
from jobspine.orchestration.context import ContextObject, ExecutionContext


@dataclass
class PlayerState:
    name: str = "ada"


class BaseSession(ContextObject):
    pass


class GuestSession(BaseSession):
    pass


class TestTypedStore:
    def test_set_and_get(self, context):
        state = PlayerState()
        context.set(state)
        assert context.get(PlayerState) is state
        assert PlayerState in context
        assert len(context) == 1

    def test_get_missing_returns_default(self, context):
        assert context.get(PlayerState) is None
        fallback = PlayerState("fallback")
        assert context.get(PlayerState, fallback) is fallback

    def test_try_get(self, context):
        assert context.try_get(PlayerState) == (None, False)
        state = PlayerState()
        context.set(state)
        assert context.try_get(PlayerState) == (state, True)

    def test_set_duplicate_kind_raises_and_keeps_original(self, context):
        first = PlayerState("first")
        context.set(first)
        with pytest.raises(DuplicateKindError) as exc_info:
            context.set(PlayerState("second"))
        assert exc_info.value.kind is PlayerState
        assert context.get(PlayerState) is first

    def test_set_or_replace_overwrites(self, context):
        context.set(PlayerState("first"))
        second = PlayerState("second")
        context.set_or_replace(second)
        assert context.get(PlayerState) is second
        assert len(context) == 1

    def test_explicit_kind(self, context):
        guest = GuestSession()
        context.set(guest, kind=BaseSession)
        assert context.get(BaseSession) is guest
        assert context.get(GuestSession) is None

    def test_explicit_kind_must_match(self, context):
        with pytest.raises(JobValidationError):
            context.set(PlayerState(), kind=BaseSession)

    def test_none_rejected(self, context):
        with pytest.raises(JobValidationError):
            context.set(None)

    def test_remove(self, context):
        context.set(PlayerState())
        assert context.remove(PlayerState) is True
        assert context.remove(PlayerState) is False
        assert not context.contains(PlayerState)

    def test_clear(self, context):
        context.set(PlayerState())
        context.set(GuestSession())
        context.clear()
        assert len(context) == 0


class TestCancellation:
    def test_cancel_is_idempotent(self, context):
        context.cancel()
        context.cancel()
        assert context.is_cancelled
        assert context.cancellation_token.is_cancelled

    def test_clear_keeps_cancellation(self, context):
        context.cancel()
        context.clear()
        assert context.is_cancelled

    def test_reset_starts_fresh_epoch(self, context):
        old_token = context.cancellation_token
        context.cancel()
        context.reset_cancellation()
        assert not context.is_cancelled
        assert old_token.is_cancelled
        assert context.cancellation_token is not old_token

    def test_cancel_after_reset_reaches_earlier_epoch(self, context):
        fired = []
        context.cancellation_token.register(lambda: fired.append("old"))

        context.reset_cancellation()
        assert fired == []

        context.cancel()
        assert fired == ["old"]
        assert context._retired == []

    def test_reset_releases_unobserved_epochs(self, context):
        old_token = context.cancellation_token
        context.reset_cancellation()
        context.reset_cancellation()

        assert context._retired == []
        assert not old_token.is_cancelled


class TestSuspension:
    @pytest.mark.asyncio
    async def test_delay_succeeds(self, context):
        assert await context.delay(0) is Outcome.SUCCESS

    @pytest.mark.asyncio
    async def test_delay_cancelled(self, context):
        asyncio.get_running_loop().call_later(0.01, context.cancel)
        assert await context.delay(5.0) is Outcome.CANCELLED

    @pytest.mark.asyncio
    async def test_wait_until_timeout(self, context):
        assert await context.wait_until(lambda: False, 0.01) is Outcome.TIMEOUT


class TestLifecycle:
    def test_dispose_clears_and_is_idempotent(self):
        ctx = ExecutionContext()
        ctx.set(PlayerState())
        ctx.dispose()
        ctx.dispose()
        assert ctx.disposed
        assert len(ctx) == 0

    def test_repr_lists_kinds(self, context):
        context.set(PlayerState())
        assert "PlayerState" in repr(context)
