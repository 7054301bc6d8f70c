"""Desktop notification backends.

Linux/BSD desktops get ``notify-send`` (libnotify), macOS gets ``osascript``.
Anything else falls back to logging. The backend is chosen once at startup.
"""

import asyncio
import logging
import shutil
import sys

from testify_core.errors import TestifyError
from testify_core.models import NotificationPayload
from testify_core.notifier import LoggingDelivery, NoOpDelivery, NotificationDelivery

logger = logging.getLogger(__name__)


class NotificationError(TestifyError):
    """A notification could not be shown."""


async def _run_delivery_command(command: list[str], timeout: float) -> None:
    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise NotificationError(f"Cannot run {command[0]}: {e}") from e

    try:
        _, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        raise NotificationError(f"{command[0]} did not finish within {timeout:.0f}s") from None

    if process.returncode != 0:
        detail = stderr.decode(errors="replace").strip() if stderr else ""
        raise NotificationError(f"{command[0]} exited with {process.returncode}: {detail}")


class NotifySendDelivery:
    """freedesktop notifications through the ``notify-send`` tool."""

    def __init__(self, app_name: str = "testify", executable: str = "notify-send", timeout: float = 5.0):
        self.app_name = app_name
        self.executable = executable
        self.timeout = timeout

    def build_command(self, payload: NotificationPayload) -> list[str]:
        command = [
            self.executable,
            f"--app-name={self.app_name}",
            f"--urgency={payload.urgency.value}",
        ]
        if payload.icon:
            command.append(f"--icon={payload.icon}")
        # "--" keeps a summary starting with "-" from being read as an option.
        command += ["--", payload.title, payload.body]
        return command

    async def send(self, payload: NotificationPayload) -> None:
        await _run_delivery_command(self.build_command(payload), self.timeout)


def _applescript_string(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


class OsascriptDelivery:
    """macOS Notification Center through ``osascript``."""

    def __init__(self, app_name: str = "testify", executable: str = "osascript", timeout: float = 5.0):
        self.app_name = app_name
        self.executable = executable
        self.timeout = timeout

    def build_command(self, payload: NotificationPayload) -> list[str]:
        script = (
            f"display notification {_applescript_string(payload.body)} "
            f"with title {_applescript_string(self.app_name)} "
            f"subtitle {_applescript_string(payload.title)}"
        )
        return [self.executable, "-e", script]

    async def send(self, payload: NotificationPayload) -> None:
        await _run_delivery_command(self.build_command(payload), self.timeout)


def select_delivery(backend: str = "auto", app_name: str = "testify") -> NotificationDelivery:
    """Pick a delivery backend.

    Args:
        backend: auto, notify-send, osascript, log, or none
        app_name: Application name for backends that show one

    Returns:
        Delivery backend instance

    Raises:
        ValueError: If backend is unknown
    """
    if backend == "auto":
        if sys.platform == "darwin" and shutil.which("osascript"):
            backend = "osascript"
        elif sys.platform != "win32" and shutil.which("notify-send"):
            backend = "notify-send"
        else:
            logger.warning("No desktop notification tool found - results will only be logged")
            backend = "log"

    if backend == "notify-send":
        delivery: NotificationDelivery = NotifySendDelivery(app_name=app_name)
    elif backend == "osascript":
        delivery = OsascriptDelivery(app_name=app_name)
    elif backend == "log":
        delivery = LoggingDelivery()
    elif backend == "none":
        delivery = NoOpDelivery()
    else:
        raise ValueError(f"Unknown notification backend: {backend}")

    logger.debug(f"Using notification backend: {backend}")
    return delivery
