#!/usr/bin/env python3
"""Parallel and Composite Jobs - fan-out, pre/post jobs, and custom Job classes.

Demonstrates:
    1. ParallelJob: members start together, the group waits for the slowest
    2. Pre-jobs gate the body; post-jobs run only after it succeeded
    3. A Job subclass carrying its own state (a retry counter)
    4. Cancelling a running pipeline with a caller-owned token

Run: python examples/03_parallel_and_composite.py
"""
import asyncio
import time

from jobspine import (
    ActionJob,
    CancellationSource,
    CompositeJob,
    ExecutionContext,
    Job,
    ParallelJob,
    Pipeline,
    configure_logging,
)


def timed_download(name: str, seconds: float) -> ActionJob:
    async def _download(ctx) -> bool:
        await asyncio.sleep(seconds)
        print(f"  downloaded {name} ({seconds:.2f}s)")
        return True

    return ActionJob(_download, name=f"download_{name}")


class FlakyJob(Job):
    """Fails until it has been attempted ``succeed_on`` times."""

    default_name = "flaky"

    def __init__(self, succeed_on: int):
        super().__init__()
        self.attempts = 0
        self.succeed_on = succeed_on

    async def on_run(self, context) -> bool:
        self.attempts += 1
        return self.attempts >= self.succeed_on


async def main():
    configure_logging(level="WARNING", json_format=False)

    print("=" * 60)
    print("Parallel and Composite Jobs")
    print("=" * 60)

    # === 1. Fan-out ===
    print("\n[1] Parallel downloads")
    group = ParallelJob([
        timed_download("textures", 0.10),
        timed_download("audio", 0.05),
        timed_download("maps", 0.02),
    ])
    started = time.perf_counter()
    ok = await group.run(ExecutionContext())
    print(f"  Result: {ok} in {time.perf_counter() - started:.2f}s (not the sum)")

    # === 2. Pre/post jobs ===
    print("\n[2] Composite with pre and post jobs")
    install = CompositeJob(
        ActionJob(lambda ctx: print("  installing") or True, name="install"),
        pre_jobs=[ActionJob(lambda ctx: print("  checking disk") or True, name="check_disk")],
        post_jobs=[ActionJob(lambda ctx: print("  cleaning up") or True, name="cleanup")],
    )
    print(f"  Result: {await install.run(ExecutionContext())}")

    # === 3. Stateful job ===
    print("\n[3] Stateful job across runs")
    flaky = FlakyJob(succeed_on=3)
    pipeline = Pipeline("flaky").add_job(flaky)
    for _ in range(3):
        print(f"  attempt {flaky.attempts + 1}: {await pipeline.execute()}")

    # === 4. Caller cancellation ===
    print("\n[4] Cancel with a caller token")
    caller = CancellationSource()
    slow = Pipeline("slow").add_delay(10.0).add_action(lambda ctx: True, name="never")
    task = asyncio.ensure_future(slow.execute(caller.token))
    await asyncio.sleep(0.05)
    caller.cancel()
    print(f"  Result: {await task}")

    print("\n" + "=" * 60)
    print("[OK] Parallel and Composite Jobs Complete!")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
