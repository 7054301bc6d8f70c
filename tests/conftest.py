"""Pytest configuration and fixtures."""

import asyncio
import sys
from pathlib import Path

import pytest

# Add src directory to Python path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from testify_core.models import NotificationPayload, ProcessResult  # noqa: E402


class FakeHandle:
    """In-memory RunHandle; the test decides when the "process" exits."""

    def __init__(self, runner: "FakeRunner", ignore_terminate: bool = False):
        self.runner = runner
        self.ignore_terminate = ignore_terminate
        self._done = asyncio.get_running_loop().create_future()
        self._cancel_requested = False
        self.terminated = False
        self.killed = False

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_requested

    @property
    def finished(self) -> bool:
        return self._done.done()

    def finish(self, exit_code: int = 0, stdout: str = "", stderr: str = "") -> None:
        if self._done.done():
            return
        self.runner.active -= 1
        self._done.set_result(ProcessResult(exit_code, stdout, stderr))

    async def wait(self) -> ProcessResult:
        return await self._done

    async def terminate(self, grace_period: float) -> None:
        self._cancel_requested = True
        self.terminated = True
        if self._done.done():
            return
        if self.ignore_terminate:
            await asyncio.sleep(grace_period)
            self.killed = True
            self.finish(-9)
        else:
            self.finish(-15)


class FakeRunner:
    """Runner recording spawns and the number of concurrently live processes.

    ``results`` is consumed one entry per spawn: a ``(exit_code, stdout, stderr)``
    tuple finishes the run after ``delay`` seconds, ``None`` leaves it running
    until the test calls ``handle.finish()``.
    """

    def __init__(self, results=None, delay: float = 0.0, ignore_terminate: bool = False):
        self.results = list(results or [])
        self.delay = delay
        self.ignore_terminate = ignore_terminate
        self.fail_with: Exception | None = None
        self.handles: list[FakeHandle] = []
        self.commands: list[tuple[tuple[str, ...], Path]] = []
        self.active = 0
        self.max_active = 0

    async def spawn(self, command, cwd):
        self.commands.append((tuple(command), Path(cwd)))
        if self.fail_with is not None:
            raise self.fail_with

        handle = FakeHandle(self, ignore_terminate=self.ignore_terminate)
        self.handles.append(handle)
        self.active += 1
        self.max_active = max(self.max_active, self.active)

        result = self.results.pop(0) if self.results else None
        if result is not None:
            asyncio.get_running_loop().call_later(self.delay, lambda: handle.finish(*result))
        return handle


class RecordingDelivery:
    """Delivery backend that remembers every payload."""

    def __init__(self, error: Exception | None = None):
        self.error = error
        self.payloads: list[NotificationPayload] = []

    async def send(self, payload: NotificationPayload) -> None:
        self.payloads.append(payload)
        if self.error is not None:
            raise self.error


async def wait_until(predicate, timeout: float = 2.0, interval: float = 0.005) -> None:
    """Poll ``predicate`` on the loop until it is true or fail after ``timeout``."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(interval)


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture
def delivery():
    return RecordingDelivery()


@pytest.fixture
def project(tmp_path):
    """A small project tree with a source and a test directory."""
    (tmp_path / "src").mkdir()
    (tmp_path / "tests").mkdir()
    (tmp_path / "src" / "app.py").write_text("x = 1\n")
    (tmp_path / "tests" / "test_app.py").write_text("def test_x():\n    assert True\n")
    return tmp_path
