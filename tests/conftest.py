"""
Shared pytest fixtures and configuration for jobspine tests.

This module provides:
- Process-wide singleton cleanup (execution manager, registry, settings)
- Recording helpers for asserting job execution order

Usage:
    Fixtures are auto-discovered by pytest.

    async def test_order(recorder):
        job = recorder.job("A")
        await job.run(ExecutionContext())
        assert recorder.calls == ["A"]
"""

from __future__ import annotations

import asyncio
from collections.abc import Generator
from dataclasses import dataclass, field
from pathlib import Path

import pytest
import structlog

from jobspine.core.settings import clear_settings_cache
from jobspine.orchestration import (
    ActionJob,
    ExecutionContext,
    ExecutionManager,
    reset_execution_manager,
    reset_pipeline_registry,
)


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on their location."""
    for item in items:
        test_path = Path(item.fspath).relative_to(Path(__file__).parent)

        if "integration" in str(test_path):
            item.add_marker(pytest.mark.integration)

        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration", "slow"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Singleton Cleanup Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def clean_singletons_fixture() -> Generator[None, None, None]:
    """
    Reset the process-wide manager, registry, and settings around each test.

    This ensures test isolation - no test can affect another by leaving
    pipelines registered or runs tracked.
    """
    reset_pipeline_registry()
    reset_execution_manager()
    clear_settings_cache()
    yield
    reset_pipeline_registry()
    reset_execution_manager()
    clear_settings_cache()
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


# =============================================================================
# Helpers
# =============================================================================


@dataclass
class Recorder:
    """Collects the names of jobs in the order they ran."""

    calls: list[str] = field(default_factory=list)

    def job(self, name: str, result: bool = True, delay: float = 0.0) -> ActionJob:
        """An ActionJob that records ``name`` and returns ``result``."""

        async def _action(_ctx) -> bool:
            if delay:
                await asyncio.sleep(delay)
            self.calls.append(name)
            return result

        return ActionJob(_action, name=name)

    def started(self, name: str, release: asyncio.Event) -> ActionJob:
        """An ActionJob that records ``name`` on entry and blocks on ``release``."""

        async def _action(_ctx) -> bool:
            self.calls.append(name)
            await release.wait()
            return True

        return ActionJob(_action, name=name)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def context() -> Generator[ExecutionContext, None, None]:
    ctx = ExecutionContext()
    yield ctx
    ctx.dispose()


@pytest.fixture
def manager() -> ExecutionManager:
    """A private manager, so tests never share tracked runs."""
    return ExecutionManager()
