"""Process execution primitive for the test command."""

import asyncio
import logging
import os
import signal
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

from testify_core.models import ProcessResult

logger = logging.getLogger(__name__)

# POSIX: each run gets its own process group, so grandchildren such as the
# test binaries started by `cargo test` are signalled with it.
_PROCESS_GROUPS = sys.platform != "win32"


class RunHandle(Protocol):
    """Ownership token for one in-flight test process."""

    @property
    def cancel_requested(self) -> bool:
        """Whether terminate() has been called on this handle."""
        ...

    async def wait(self) -> ProcessResult:
        """Wait for the process to exit and return its captured output."""
        ...

    async def terminate(self, grace_period: float) -> None:
        """Ask the process to stop; force-kill after ``grace_period`` seconds."""
        ...


class Runner(Protocol):
    """Spawns test processes."""

    async def spawn(self, command: Sequence[str], cwd: Path) -> RunHandle:
        """Start ``command`` in ``cwd``.

        Raises:
            OSError: If the process cannot be started
            ValueError: If an argument cannot be passed to the OS (embedded NUL)
        """
        ...


class ProcessHandle:
    """RunHandle backed by an asyncio subprocess."""

    def __init__(self, process: asyncio.subprocess.Process, echo_output: bool = False):
        self._process = process
        self._echo_output = echo_output
        self._cancel_requested = False

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_requested

    async def wait(self) -> ProcessResult:
        stdout, stderr = await self._process.communicate()
        out = stdout.decode(errors="replace") if stdout else ""
        err = stderr.decode(errors="replace") if stderr else ""

        if self._echo_output and not self._cancel_requested:
            sys.stdout.write(out)
            sys.stderr.write(err)
            sys.stdout.flush()
            sys.stderr.flush()

        return ProcessResult(exit_code=self._process.returncode, stdout=out, stderr=err)

    def _signal(self, sig: int) -> bool:
        """Send ``sig`` to the process group (POSIX) or the process.

        Returns:
            False if nothing was left to signal
        """
        try:
            if _PROCESS_GROUPS:
                os.killpg(self.pid, sig)
            elif sig == signal.SIGTERM:
                self._process.terminate()
            else:
                self._process.kill()
        except (ProcessLookupError, PermissionError):
            # PermissionError: macOS reports a group of zombies as EPERM
            return False
        return True

    async def terminate(self, grace_period: float) -> None:
        self._cancel_requested = True
        if self._process.returncode is not None:
            return

        logger.debug(f"Terminating test process {self.pid}")
        if not self._signal(signal.SIGTERM):
            return

        try:
            await asyncio.wait_for(self._process.wait(), timeout=grace_period)
        except asyncio.TimeoutError:
            logger.warning(
                f"Test process {self.pid} did not exit within {grace_period:.1f}s, killing it"
            )
            self._signal(getattr(signal, "SIGKILL", signal.SIGTERM))
            await self._process.wait()
        else:
            # The leader is gone; descendants still holding the output pipes
            # would keep wait() blocked.
            if _PROCESS_GROUPS:
                self._signal(signal.SIGKILL)


class ProcessRunner:
    """Runner that starts the test command with asyncio subprocesses."""

    def __init__(self, echo_output: bool = False, env: dict[str, str] | None = None):
        """Initialize runner.

        Args:
            echo_output: Write captured stdout/stderr to the console after each run
            env: Environment for the child process (None: inherit)
        """
        self.echo_output = echo_output
        self.env = env

    async def spawn(self, command: Sequence[str], cwd: Path) -> ProcessHandle:
        if not command:
            raise FileNotFoundError("empty test command")

        process = await asyncio.create_subprocess_exec(
            *command,
            cwd=str(cwd),
            env=self.env,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            start_new_session=_PROCESS_GROUPS,
        )
        logger.debug(f"Started {' '.join(command)} (pid {process.pid})")
        return ProcessHandle(process, echo_output=self.echo_output)
