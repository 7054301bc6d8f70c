"""Change source implementation using watchdog."""

import asyncio
import logging
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from testify_core.models import ChangeEvent
from testify_core.watchers import WatchConfig

logger = logging.getLogger(__name__)


class _QueueingHandler(FileSystemEventHandler):
    """Forwards file events from the observer thread to an asyncio queue."""

    def __init__(self, queue: asyncio.Queue, loop: asyncio.AbstractEventLoop):
        """Initialize handler.

        Args:
            queue: Bounded queue consumed on the event loop
            loop: Event loop owning the queue
        """
        self.queue = queue
        self.loop = loop
        self.dropped = 0

    def _enqueue(self, event: ChangeEvent) -> None:
        """Runs on the event loop."""
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            # Later events re-arm the debounce, so losing one is harmless.
            self.dropped += 1
            logger.warning(f"Event queue full; dropping change for {event.path}")

    def on_any_event(self, event: FileSystemEvent) -> None:
        """Handle any filesystem event (called on the observer thread)."""
        if event.is_directory or event.event_type in ("opened", "closed_no_write"):
            return

        # Atomic saves write a temp file and move it over the target.
        path = getattr(event, "dest_path", "") or event.src_path
        if isinstance(path, bytes):
            path = path.decode(errors="replace")

        if self.loop.is_closed():
            return
        try:
            self.loop.call_soon_threadsafe(self._enqueue, ChangeEvent(path=str(path)))
        except RuntimeError as e:
            # Loop closed between the check and the call.
            logger.debug(f"Dropping change for {path}: {e}")


class FileWatcherManager:
    """Manages the watchdog observer feeding the watch loop."""

    def __init__(
        self,
        config: WatchConfig,
        queue: asyncio.Queue,
        loop: asyncio.AbstractEventLoop,
    ):
        """Initialize file watcher manager.

        Args:
            config: Watch configuration
            queue: Queue receiving ChangeEvents
            loop: Event loop for scheduling
        """
        self.config = config
        self.loop = loop
        self.observer = Observer()
        self.handler = _QueueingHandler(queue, loop)
        self._started = False

    @property
    def root(self) -> Path:
        return self.config.root

    def start(self) -> None:
        """Start watching the project root recursively."""
        if self._started:
            return
        self.observer.schedule(self.handler, str(self.root), recursive=True)
        self.observer.start()
        self._started = True
        logger.info(f"Watching {self.root} (quiet period: {self.config.quiet_period_ms}ms)")

    def stop(self) -> None:
        """Stop the observer thread."""
        if self.observer.is_alive():
            self.observer.stop()
            self.observer.join(timeout=2.0)
            logger.info("Stopped file watcher")
        self._started = False
