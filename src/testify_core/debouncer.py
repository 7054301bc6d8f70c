"""Single-timer debounce of relevant change events."""

import asyncio
import logging
from collections.abc import Callable

from testify_core.models import ChangeEvent

logger = logging.getLogger(__name__)


class Debouncer:
    """Coalesces bursts of relevant changes into one trigger.

    Every pushed event re-arms a single deadline ``quiet_period`` seconds in
    the future. When the deadline passes with no further events,
    ``on_trigger`` is called once and the deadline is cleared.

    There is no upper bound on the wait: if changes keep arriving faster than
    the quiet period, no trigger fires until they stop.

    All methods must be called from the event loop thread.
    """

    def __init__(
        self,
        quiet_period: float,
        on_trigger: Callable[[], None],
        loop: asyncio.AbstractEventLoop | None = None,
    ):
        """Initialize debouncer.

        Args:
            quiet_period: Seconds without events before a trigger fires
            on_trigger: Called on the loop when the quiet period elapses
            loop: Event loop for the timer (defaults to the running loop on first push)
        """
        if quiet_period < 0:
            raise ValueError(f"quiet_period must be >= 0, got {quiet_period}")
        self.quiet_period = quiet_period
        self.on_trigger = on_trigger
        self._loop = loop
        self._timer: asyncio.TimerHandle | None = None
        self._last_event: ChangeEvent | None = None
        self._burst_size = 0

    @property
    def pending(self) -> bool:
        """Whether a deadline is currently armed."""
        return self._timer is not None

    def push(self, event: ChangeEvent) -> None:
        """Register a relevant change and (re)arm the deadline."""
        if self._loop is None:
            self._loop = asyncio.get_running_loop()

        if self._timer is not None:
            self._timer.cancel()

        self._last_event = event
        self._burst_size += 1
        self._timer = self._loop.call_later(self.quiet_period, self._fire)

    def cancel(self) -> None:
        """Drop a pending deadline without firing."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
            logger.debug(f"Dropped pending trigger ({self._burst_size} change(s))")
        self._burst_size = 0

    def _fire(self) -> None:
        self._timer = None
        count, self._burst_size = self._burst_size, 0
        last = self._last_event.path if self._last_event else "?"
        logger.debug(f"Quiet period elapsed after {count} change(s), last: {last}")
        try:
            self.on_trigger()
        except Exception as e:
            logger.exception(f"Trigger callback failed: {e}")
