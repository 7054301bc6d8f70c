"""Run coordinator: the state machine owning the single in-flight test run.

States and transitions::

    IDLE                          + trigger   -> RUNNING (spawn)
    RUNNING                       + trigger   -> RUNNING_WITH_PENDING_RESTART (terminate current)
    RUNNING_WITH_PENDING_RESTART  + trigger   -> (absorbed)
    RUNNING                       + completed -> IDLE (classify, notify)
    RUNNING_WITH_PENDING_RESTART  + completed -> RUNNING (discard, respawn)
    any                           + shutdown  -> STOPPED (terminate, drain)

Every mutation happens on the event loop thread, so the loop itself is the
single writer of the state; no locks guard it. The only lock serializes
notification delivery so outcomes are never reported out of order.
"""

import asyncio
import logging
import shlex
from collections.abc import Callable, Sequence
from pathlib import Path

from testify_core.classifier import ResultClassifier
from testify_core.models import OutcomeKind, RunOutcome, RunState
from testify_core.notifier import NotifierAdapter
from testify_core.process import ProcessRunner, RunHandle, Runner

logger = logging.getLogger(__name__)


class RunCoordinator:
    """Decides whether to start, restart, or drop a test run on each trigger.

    At most one test process is active at any time. A trigger during a run
    supersedes it: the run is terminated (or, with ``cancel_on_change=False``,
    allowed to finish), its outcome is discarded, and a fresh run starts for
    the latest source state. There is no run queue.

    Outbound events (host wires these):
        on_state_changed(state): called after every state transition
        on_outcome(outcome): called before an outcome is handed to the notifier
    """

    def __init__(
        self,
        command: Sequence[str],
        cwd: str | Path,
        runner: Runner | None = None,
        classifier: ResultClassifier | None = None,
        notifier: NotifierAdapter | None = None,
        grace_period: float = 3.0,
        cancel_on_change: bool = True,
    ):
        """Initialize coordinator.

        Args:
            command: Test command and arguments
            cwd: Working directory for the test command
            runner: Process execution primitive
            classifier: Maps finished runs to outcomes
            notifier: Receives every non-discarded outcome
            grace_period: Seconds between terminate and force-kill
            cancel_on_change: Terminate a superseded run instead of letting it finish
        """
        self.command = tuple(command)
        self.cwd = Path(cwd)
        self.runner = runner or ProcessRunner()
        self.classifier = classifier or ResultClassifier()
        self.notifier = notifier or NotifierAdapter()
        self.grace_period = grace_period
        self.cancel_on_change = cancel_on_change

        self._state = RunState.IDLE
        self._handle: RunHandle | None = None
        self._task: asyncio.Task | None = None
        # Every run task still alive, including earlier ones still delivering
        self._run_tasks: set[asyncio.Task] = set()
        self._terminate_tasks: set[asyncio.Task] = set()
        self._delivery_lock = asyncio.Lock()
        self.runs_started = 0

        self.on_state_changed: Callable[[RunState], None] | None = None
        self.on_outcome: Callable[[RunOutcome], None] | None = None

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def command_line(self) -> str:
        return shlex.join(self.command)

    def _set_state(self, state: RunState) -> None:
        if state is self._state:
            return
        logger.debug(f"Run state: {self._state.value} -> {state.value}")
        self._state = state
        if self.on_state_changed:
            try:
                self.on_state_changed(state)
            except Exception as e:
                logger.exception(f"Error in state callback: {e}")

    # ========================================================================
    # Inputs
    # ========================================================================

    def trigger(self) -> None:
        """Signal that a debounced batch of relevant changes occurred.

        Must be called from the event loop thread.
        """
        if self._state is RunState.STOPPED:
            logger.debug("Trigger dropped - coordinator is shutting down")
            return

        if self._state is RunState.IDLE:
            self._start_run()
        elif self._state is RunState.RUNNING:
            logger.info("Files changed during test run - restarting")
            self._set_state(RunState.RUNNING_WITH_PENDING_RESTART)
            if self.cancel_on_change:
                self._cancel_active()
        else:
            logger.debug("Trigger absorbed - restart already pending")

    async def shutdown(self) -> None:
        """Stop accepting triggers and terminate the active run, if any.

        Bounded by the grace period: the process is force-killed if it
        ignores the termination request.
        """
        if self._state is RunState.STOPPED:
            return
        self._set_state(RunState.STOPPED)
        self._cancel_active()

        tasks = self._run_tasks | self._terminate_tasks
        if not tasks:
            return

        # Spawn, terminate and kill all fit within the grace period; the extra
        # second covers a notification that is still being delivered.
        _, pending = await asyncio.wait(tasks, timeout=self.grace_period + 1.0)
        if pending:
            logger.warning(f"{len(pending)} task(s) did not finish during shutdown, cancelling them")
            for task in pending:
                task.cancel()
            await asyncio.wait(pending)

    async def wait_idle(self) -> None:
        """Wait until no run is active and every outcome has been delivered."""
        while self._run_tasks:
            await asyncio.wait(set(self._run_tasks))

    # ========================================================================
    # Run lifecycle
    # ========================================================================

    def _start_run(self) -> None:
        self._set_state(RunState.RUNNING)
        self.runs_started += 1
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(
            self._execute(self.runs_started), name=f"testify-run-{self.runs_started}"
        )
        self._run_tasks.add(self._task)
        self._task.add_done_callback(self._on_task_done)

    def _cancel_active(self) -> None:
        handle = self._handle
        if handle is None or handle.cancel_requested:
            # Still spawning: _execute terminates the process once it exists.
            return
        loop = asyncio.get_running_loop()
        task = loop.create_task(handle.terminate(self.grace_period), name="testify-terminate")
        self._terminate_tasks.add(task)
        task.add_done_callback(self._on_terminate_done)

    def _on_terminate_done(self, task: asyncio.Task) -> None:
        self._terminate_tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Failed to terminate test process: {error!r}")

    def _should_cancel(self) -> bool:
        if self._state is RunState.STOPPED:
            return True
        return self._state is RunState.RUNNING_WITH_PENDING_RESTART and self.cancel_on_change

    async def _execute(self, run_number: int) -> None:
        logger.info(f"Running tests (run #{run_number}): {self.command_line}")

        try:
            handle = await self.runner.spawn(self.command, self.cwd)
        except (OSError, ValueError) as e:
            # ValueError: arguments the OS cannot pass, such as embedded NUL
            logger.error(f"Failed to start test command '{self.command_line}': {e}")
            await self._complete(self.classifier.launch_error(e))
            return

        self._handle = handle
        try:
            if self._should_cancel():
                self._cancel_active()
            result = await handle.wait()
        except Exception as e:
            logger.exception(f"Error while waiting for test run #{run_number}: {e}")
            await self._complete(RunOutcome(OutcomeKind.ERRORED, f"test run failed: {e}"))
            return
        finally:
            self._handle = None

        if handle.cancel_requested:
            logger.debug(f"Run #{run_number} was cancelled")
            await self._complete(None)
        else:
            await self._complete(self.classifier.classify(result))

    async def _complete(self, outcome: RunOutcome | None) -> None:
        if self._state is RunState.STOPPED:
            logger.debug("Discarding run result - shutting down")
            return

        if self._state is RunState.RUNNING_WITH_PENDING_RESTART:
            logger.debug("Discarding result of superseded run")
            self._start_run()
            return

        self._set_state(RunState.IDLE)
        if outcome is None:
            return

        logger.info(f"Tests {outcome.kind.value}: {outcome.summary}")
        if self.on_outcome:
            try:
                self.on_outcome(outcome)
            except Exception as e:
                logger.exception(f"Error in outcome callback: {e}")

        async with self._delivery_lock:
            await self.notifier.notify(outcome)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._run_tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Test run task crashed: {error!r}")
            if task is self._task and self._state is not RunState.STOPPED:
                self._set_state(RunState.IDLE)
