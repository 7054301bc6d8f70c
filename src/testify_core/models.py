"""Shared data models for testify_core."""

import time
from dataclasses import dataclass, field
from enum import Enum


@dataclass(frozen=True)
class ChangeEvent:
    """A raw "path changed" notification from the change source."""

    path: str
    """Path of the changed file, as reported by the watcher."""

    timestamp: float = field(default_factory=time.time)
    """Wall-clock time the event was observed."""


class Relevance(Enum):
    """Result of classifying a changed path."""

    RELEVANT = "relevant"
    IGNORED = "ignored"


class RunState(Enum):
    """States of the run coordinator."""

    IDLE = "idle"
    RUNNING = "running"
    RUNNING_WITH_PENDING_RESTART = "running_with_pending_restart"
    STOPPED = "stopped"


@dataclass(frozen=True)
class ProcessResult:
    """Raw result of one finished test-command process."""

    exit_code: int
    """Process exit status. Negative values mean "killed by signal -exit_code"."""

    stdout: str = ""
    stderr: str = ""


class OutcomeKind(Enum):
    """Semantic outcome of a test run."""

    PASSED = "passed"
    FAILED = "failed"
    ERRORED = "errored"


@dataclass(frozen=True)
class RunOutcome:
    """Classified result of one test-command execution."""

    kind: OutcomeKind
    summary: str


class Urgency(Enum):
    """Notification urgency (freedesktop names)."""

    LOW = "low"
    NORMAL = "normal"
    CRITICAL = "critical"


@dataclass(frozen=True)
class NotificationPayload:
    """What gets shown to the developer for one outcome."""

    title: str
    body: str
    urgency: Urgency
    icon: str = ""
    """Freedesktop icon name; backends that have no icons ignore it."""


def map_outcome_to_icon(kind: OutcomeKind) -> str:
    """Map an outcome kind to a desktop icon name.

    Args:
        kind: Outcome kind.

    Returns:
        Freedesktop icon name.
    """
    if kind == OutcomeKind.PASSED:
        return "face-angel"
    return "face-angry"
