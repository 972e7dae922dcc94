#!/usr/bin/env python3
"""Priority Registry - independent modules contributing to one flow.

Each "module" below registers its own jobs against the shared
``game.init`` key without knowing about the others. The registry orders
them by priority (lower runs first) and runs them as one pipeline.

The second half starts the flow, then starts it again before the first
run finishes: the first run is cancelled and the second runs from a
clean cancellation state.

Run: python examples/02_priority_registry.py
"""
import asyncio
from dataclasses import dataclass, field

from jobspine import (
    ExecutionContext,
    Outcome,
    TypedJob,
    configure_logging,
    get_execution_manager,
    get_pipeline_registry,
)

KEY = "game.init"


@dataclass
class GameInit:
    order: list[str] = field(default_factory=list)
    attempts: int = 0


# === Module: audio ===
def register_audio(registry):
    def load_sounds(state: GameInit) -> bool:
        state.order.append("audio")
        return True

    registry.register_job_with_priority(KEY, TypedJob(GameInit, load_sounds), priority=20)


# === Module: config ===
def register_config(registry):
    def load_config(state: GameInit) -> bool:
        state.order.append("config")
        return True

    registry.register_job_with_priority(KEY, TypedJob(GameInit, load_config), priority=-10)


# === Module: network ===
def register_network(registry):
    async def handshake(ctx: ExecutionContext) -> Outcome:
        state = ctx.get(GameInit)
        state.attempts += 1
        state.order.append(f"network#{state.attempts}")
        # The first attempt hangs until something cancels it.
        if state.attempts == 1:
            return await ctx.delay(10.0)
        return Outcome.SUCCESS

    registry.register_action_with_priority(KEY, handshake, priority=0, name="handshake")


async def main():
    configure_logging(level="INFO", json_format=False)
    registry = get_pipeline_registry()

    print("=" * 60)
    print("Priority Registry")
    print("=" * 60)

    state = GameInit()
    registry.set_context_object(KEY, state)
    register_audio(registry)
    register_network(registry)
    register_config(registry)

    print(f"\n[1] Priorities: {registry.registered_priorities(KEY)}")
    built = registry.build_priority_pipeline(KEY)
    print(f"  Jobs: {[job.name for job in built.jobs]}")

    print("\n[2] Start, then restart before the first run finishes")
    first = asyncio.ensure_future(registry.execute_priority_pipeline(KEY))
    await asyncio.sleep(0.05)
    print(f"  Running: {get_execution_manager().running_pipeline_ids()}")
    second = await registry.execute_priority_pipeline(KEY)
    print(f"  First run:  {await first}")
    print(f"  Second run: {second}")
    print(f"  Order:      {state.order}")
    print(f"  State:      {get_execution_manager().last_state(KEY).value}")

    registry.clear_all()

    print("\n" + "=" * 60)
    print("[OK] Priority Registry Complete!")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
