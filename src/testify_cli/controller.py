"""Controller wiring the testify core into one event loop. Primary embed point."""

import asyncio
import logging

from testify_core.change_filter import ChangeFilter
from testify_core.classifier import ResultClassifier
from testify_core.config import TestifyConfig
from testify_core.coordinator import RunCoordinator
from testify_core.debouncer import Debouncer
from testify_core.models import ChangeEvent, Relevance, RunState
from testify_core.notifier import NotificationDelivery, NotifierAdapter
from testify_core.process import ProcessRunner, Runner
from testify_core.watchers import ChangeSource

from testify_cli.desktop import select_delivery

logger = logging.getLogger(__name__)


class TestifyController:
    """Owns the watch loop: change source -> filter -> debouncer -> coordinator.

    Stable methods: attach(), shutdown(), run_until(), handle_event(),
    request_run(). Internal methods (_consume_events, etc.) may change.
    """

    __test__ = False

    def __init__(
        self,
        config: TestifyConfig,
        delivery: NotificationDelivery | None = None,
        runner: Runner | None = None,
        enable_watchers: bool = True,
    ):
        """Initialize controller.

        Args:
            config: Loaded configuration
            delivery: Notification backend (defaults to the one named in config)
            runner: Process execution primitive (defaults to ProcessRunner)
            enable_watchers: If True, the watchdog source starts on attach(). If False,
                the host feeds events through handle_event().

        Raises:
            ConfigError: If ignore patterns or watch paths are malformed
        """
        self.config = config
        self.enable_watchers = enable_watchers
        self._loop: asyncio.AbstractEventLoop | None = None
        self._queue: asyncio.Queue | None = None
        self._consumer: asyncio.Task | None = None
        self._file_watcher: ChangeSource | None = None

        watch = config.watch
        self.change_filter = ChangeFilter(watch.root, watch.ignore, watch.paths or None)

        if delivery is None:
            delivery = select_delivery(config.notify.backend, config.notify.app_name)
        self.notifier = NotifierAdapter(delivery)

        self.coordinator = RunCoordinator(
            command=config.run.command,
            cwd=watch.root,
            runner=runner or ProcessRunner(echo_output=config.run.echo_output),
            classifier=ResultClassifier(config.patterns, config.run.failure_exit_codes),
            notifier=self.notifier,
            grace_period=config.run.grace_period,
            cancel_on_change=config.run.cancel_on_change,
        )
        self.debouncer = Debouncer(watch.quiet_period, self.coordinator.trigger)

    @property
    def state(self) -> RunState:
        return self.coordinator.state

    @property
    def is_attached(self) -> bool:
        return self._loop is not None

    def attach(self, loop: asyncio.AbstractEventLoop) -> None:
        """Attach to a running event loop, start the change source and the initial run.

        Idempotent: a second call is a no-op.

        Raises:
            RuntimeError: If the loop is not running
        """
        if self._loop is not None:
            return

        if not loop.is_running():
            raise RuntimeError(
                "Event loop must be running before attach(). "
                "Call attach() from within a coroutine running on the loop."
            )

        self._loop = loop
        self._queue = asyncio.Queue(maxsize=self.config.watch.queue_size)
        self._consumer = loop.create_task(self._consume_events(), name="testify-events")

        if self.enable_watchers:
            # Imported here so embedding without watchdog installed still works.
            from testify_core.file_watcher import FileWatcherManager

            self._file_watcher = FileWatcherManager(self.config.watch, self._queue, loop)
            self._file_watcher.start()

        if self.config.run.run_on_start:
            self.request_run()

    def request_run(self) -> None:
        """Trigger a run immediately, bypassing the debouncer."""
        if self._loop is None:
            raise RuntimeError("Controller not attached to event loop. Call attach() first.")
        self.coordinator.trigger()

    def handle_event(self, event: ChangeEvent) -> Relevance:
        """Filter one change event and feed it to the debouncer.

        Must be called on the event loop thread.
        """
        relevance = self.change_filter.classify(event.path)
        if relevance is Relevance.RELEVANT:
            logger.debug(f"Change detected: {event.path}")
            self.debouncer.push(event)
        return relevance

    async def _consume_events(self) -> None:
        assert self._queue is not None
        while True:
            event = await self._queue.get()
            try:
                self.handle_event(event)
            except Exception as e:
                logger.exception(f"Error handling change event for {event.path}: {e}")
            finally:
                self._queue.task_done()

    async def shutdown(self) -> None:
        """Stop watching, drop pending triggers and drain the active run."""
        if self._loop is None:
            return

        if self._consumer is not None:
            self._consumer.cancel()
            try:
                await self._consumer
            except asyncio.CancelledError:
                pass
            self._consumer = None

        self.debouncer.cancel()
        await self.coordinator.shutdown()

        if self._file_watcher is not None:
            try:
                self._file_watcher.stop()
            except Exception as e:
                logger.error(f"Error stopping file watcher: {e}")
            self._file_watcher = None

        self._loop = None
        logger.info("Stopped")

    async def run_until(self, stop: asyncio.Event) -> None:
        """Run the watch loop until ``stop`` is set, then shut down."""
        self.attach(asyncio.get_running_loop())
        try:
            await stop.wait()
        finally:
            await self.shutdown()
