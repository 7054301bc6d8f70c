#!/usr/bin/env python3
"""
Example: Embedding testify in another asyncio program.

This example demonstrates:
- Using TestifyController without the watchdog observer
- Feeding change events from your own source (an editor plugin, a build server)
- A custom notification backend
- Observing run state and outcomes through hooks
"""

import asyncio
import sys
from pathlib import Path

from testify_cli import TestifyController
from testify_core import ChangeEvent, NotificationPayload, RunOutcome, RunState, load_config


class PrintDelivery:
    """Notification backend that writes to the terminal."""

    async def send(self, payload: NotificationPayload) -> None:
        print(f"[{payload.urgency.value}] {payload.title}: {payload.body}")


async def main(project: Path) -> None:
    config = load_config(
        project / "testify.toml",
        root=project,
        command=[sys.executable, "-m", "pytest", "-q"],
        quiet_period_ms=200,
        run_on_start=False,
    )
    controller = TestifyController(config, delivery=PrintDelivery(), enable_watchers=False)

    outcomes: list[RunOutcome] = []
    controller.coordinator.on_outcome = outcomes.append
    controller.coordinator.on_state_changed = lambda state: print(f"state -> {state.value}")

    controller.attach(asyncio.get_running_loop())
    try:
        # A burst of saves collapses into one run.
        for name in ("src/app.py", "src/util.py", "tests/test_app.py"):
            controller.handle_event(ChangeEvent(str(project / name)))
            await asyncio.sleep(0.05)

        while not outcomes:
            await asyncio.sleep(0.1)
        await controller.coordinator.wait_idle()
        assert controller.state is RunState.IDLE
    finally:
        await controller.shutdown()

    print(f"Finished with {outcomes[-1].kind.value}: {outcomes[-1].summary}")


if __name__ == "__main__":
    asyncio.run(main(Path(sys.argv[1] if len(sys.argv) > 1 else ".").resolve()))
