"""Abstract change-source protocol for file watching implementations."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol


@dataclass
class WatchConfig:
    """Configuration for the change source, filter and debouncer."""

    root: Path
    """Project root to watch (recursively)."""

    paths: list[str] = field(default_factory=list)
    """Root-relative paths that can trigger runs (empty: the whole root)."""

    ignore: list[str] = field(default_factory=list)
    """Extra ignore patterns (glob style), on top of the built-in defaults."""

    quiet_period_ms: int = 500
    """Debounce quiet period in milliseconds."""

    queue_size: int = 1000
    """Capacity of the event queue between the watcher thread and the loop."""

    @property
    def quiet_period(self) -> float:
        return self.quiet_period_ms / 1000.0


class ChangeSource(Protocol):
    """Protocol for change-event sources."""

    def start(self) -> None:
        """Start watching."""
        ...

    def stop(self) -> None:
        """Stop watching."""
        ...
