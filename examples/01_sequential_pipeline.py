#!/usr/bin/env python3
"""Sequential Pipeline - building and running a pipeline with a shared context.

This example walks through the Pipeline builder: typed actions that share
one context object, a delay, a wait-until on a flag flipped by an earlier
job, and what happens when a job reports failure.

Run: python examples/01_sequential_pipeline.py
"""
import asyncio
from dataclasses import dataclass, field

from jobspine import Pipeline, configure_logging


@dataclass
class LoginSession:
    user: str = "ada"
    token: str | None = None
    connected: bool = False
    steps: list[str] = field(default_factory=list)


def authenticate(session: LoginSession) -> bool:
    session.token = f"token-for-{session.user}"
    session.steps.append("authenticate")
    return True


def open_socket(session: LoginSession) -> bool:
    # The socket reports ready a little later, as a real connection would.
    asyncio.get_running_loop().call_later(0.05, setattr, session, "connected", True)
    session.steps.append("open_socket")
    return True


async def fetch_profile(session: LoginSession) -> bool:
    await asyncio.sleep(0.01)
    session.steps.append("fetch_profile")
    return session.token is not None


async def main():
    configure_logging(level="INFO", json_format=False)

    print("=" * 60)
    print("Sequential Pipeline")
    print("=" * 60)

    # === 1. Build and run ===
    print("\n[1] Login flow")
    session = LoginSession()
    login = (
        Pipeline("login")
        .set_context(session)
        .add_typed_action(LoginSession, authenticate)
        .add_typed_action(LoginSession, open_socket)
        .add_wait_until(lambda: session.connected, timeout=2.0)
        .add_delay(0.01)
        .add_typed_action(LoginSession, fetch_profile)
    )
    ok = await login.execute()
    print(f"  Result: {ok}")
    print(f"  Steps:  {session.steps}")

    # === 2. A failing job stops the rest ===
    print("\n[2] Failure stops the sequence")
    broken = (
        Pipeline("broken")
        .add_action(lambda ctx: True, name="first")
        .add_action(lambda ctx: False, name="refuses")
        .add_action(lambda ctx: print("  never printed") or True, name="skipped")
    )
    print(f"  Result: {await broken.execute()}")

    # === 3. Wait-until timeout ===
    print("\n[3] Wait-until timeout")
    stuck = Pipeline("stuck").add_wait_until(lambda: False, timeout=0.05)
    print(f"  Result: {await stuck.execute()}")

    print("\n" + "=" * 60)
    print("[OK] Sequential Pipeline Complete!")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
