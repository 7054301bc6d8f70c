"""Configuration parsing for testify."""

import logging
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # type: ignore

from testify_core.classifier import OutcomePatterns
from testify_core.errors import ConfigError
from testify_core.watchers import WatchConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_NAME = "testify.toml"
DEFAULT_COMMAND = ["pytest", "-q"]
NOTIFY_BACKENDS = ("auto", "notify-send", "osascript", "log", "none")


@dataclass
class RunConfig:
    """How the test command is run."""

    command: list[str] = field(default_factory=lambda: list(DEFAULT_COMMAND))
    """Test command and arguments."""

    run_on_start: bool = True
    """Run the suite once at startup, before any change."""

    cancel_on_change: bool = True
    """Terminate a run superseded by newer changes instead of letting it finish."""

    grace_period_ms: int = 3000
    """Time between terminate and force-kill."""

    failure_exit_codes: list[int] = field(default_factory=list)
    """Exit codes meaning "tests failed" (empty: any positive code)."""

    echo_output: bool = True
    """Write the test command's output to the console."""

    @property
    def grace_period(self) -> float:
        return self.grace_period_ms / 1000.0


@dataclass
class NotifyConfig:
    """Notification delivery settings."""

    backend: str = "auto"
    """One of auto, notify-send, osascript, log, none."""

    app_name: str = "testify"
    """Application name shown by the notification daemon."""


@dataclass
class TestifyConfig:
    """Complete static configuration."""

    __test__ = False

    watch: WatchConfig
    run: RunConfig = field(default_factory=RunConfig)
    notify: NotifyConfig = field(default_factory=NotifyConfig)
    patterns: OutcomePatterns = field(default_factory=OutcomePatterns)
    source: Path | None = None
    """Config file this was loaded from (None: defaults only)."""


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    value = raw.get(name, {})
    if not isinstance(value, dict):
        raise ConfigError(f"[{name}] must be a table")
    return value


def _string_list(value: Any, key: str) -> list[str]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"'{key}' must be a list of strings")
    return list(value)


def _positive_int(value: Any, key: str, allow_zero: bool = False) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"'{key}' must be an integer, got {value!r}")
    if value < 0 or (value == 0 and not allow_zero):
        raise ConfigError(f"'{key}' must be positive, got {value}")
    return value


def _bool(value: Any, key: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"'{key}' must be true or false, got {value!r}")
    return value


def parse_command(value: Any) -> list[str]:
    """Parse a test command given as a string or a list of arguments.

    Raises:
        ConfigError: If the command is empty or malformed
    """
    if isinstance(value, str):
        try:
            command = shlex.split(value)
        except ValueError as e:
            raise ConfigError(f"Cannot parse test command {value!r}: {e}") from e
    elif isinstance(value, list) and all(isinstance(v, str) for v in value):
        command = list(value)
    else:
        raise ConfigError(f"'run.command' must be a string or list of strings, got {value!r}")

    if not command:
        raise ConfigError("'run.command' must not be empty")
    if any("\0" in arg for arg in command):
        raise ConfigError(f"'run.command' must not contain NUL characters, got {command!r}")
    return command


def _resolve_root(root: str | Path, base: Path) -> Path:
    path = Path(root).expanduser()
    if not path.is_absolute():
        path = base / path
    path = path.resolve()
    if not path.exists():
        raise ConfigError(f"Project path does not exist: {path}")
    if not path.is_dir():
        raise ConfigError(f"Project path is not a directory: {path}")
    return path


def load_config(
    path: str | Path | None = None,
    *,
    required: bool = False,
    root: str | Path | None = None,
    command: list[str] | str | None = None,
    quiet_period_ms: int | None = None,
    run_on_start: bool | None = None,
    notify_backend: str | None = None,
) -> TestifyConfig:
    """Load configuration from a TOML file and apply command-line overrides.

    Args:
        path: Path to TOML config file (None: defaults only)
        required: Raise if ``path`` does not exist instead of using defaults
        root: Override for ``watch.root``
        command: Override for ``run.command``
        quiet_period_ms: Override for ``watch.quiet_period_ms``
        run_on_start: Override for ``run.run_on_start``
        notify_backend: Override for ``notify.backend``

    Returns:
        Validated configuration

    Raises:
        ConfigError: On any invalid setting
    """
    raw: dict[str, Any] = {}
    source: Path | None = None
    base = Path.cwd()

    if path is not None:
        path = Path(path)
        if path.exists():
            try:
                with open(path, "rb") as f:
                    raw = tomllib.load(f)
            except (OSError, tomllib.TOMLDecodeError) as e:
                raise ConfigError(f"Failed to parse config file {path}: {e}") from e
            source = path.resolve()
            base = source.parent
            logger.debug(f"Loaded config from {source}")
        elif required:
            raise ConfigError(
                f"Config file not found: {path}\nRun 'testify --init' to create a default config."
            )

    watch_raw = _section(raw, "watch")
    run_raw = _section(raw, "run")
    notify_raw = _section(raw, "notify")
    patterns_raw = _section(raw, "patterns")

    # Watch
    watch = WatchConfig(
        root=_resolve_root(root if root is not None else watch_raw.get("root", "."), base),
        paths=_string_list(watch_raw.get("paths", []), "watch.paths"),
        ignore=_string_list(watch_raw.get("ignore", []), "watch.ignore"),
        quiet_period_ms=_positive_int(
            quiet_period_ms if quiet_period_ms is not None else watch_raw.get("quiet_period_ms", 500),
            "watch.quiet_period_ms",
        ),
        queue_size=_positive_int(watch_raw.get("queue_size", 1000), "watch.queue_size"),
    )

    # Run
    exit_codes = run_raw.get("failure_exit_codes", [])
    if not isinstance(exit_codes, list) or not all(
        isinstance(c, int) and not isinstance(c, bool) and c > 0 for c in exit_codes
    ):
        raise ConfigError("'run.failure_exit_codes' must be a list of positive integers")

    run = RunConfig(
        command=parse_command(command if command is not None else run_raw.get("command", DEFAULT_COMMAND)),
        run_on_start=_bool(
            run_on_start if run_on_start is not None else run_raw.get("run_on_start", True),
            "run.run_on_start",
        ),
        cancel_on_change=_bool(run_raw.get("cancel_on_change", True), "run.cancel_on_change"),
        grace_period_ms=_positive_int(
            run_raw.get("grace_period_ms", 3000), "run.grace_period_ms", allow_zero=True
        ),
        failure_exit_codes=exit_codes,
        echo_output=_bool(run_raw.get("echo_output", True), "run.echo_output"),
    )

    # Notify
    notify = NotifyConfig(
        backend=notify_backend or notify_raw.get("backend", "auto"),
        app_name=str(notify_raw.get("app_name", "testify")),
    )
    if notify.backend not in NOTIFY_BACKENDS:
        raise ConfigError(
            f"Unknown notification backend '{notify.backend}'. Valid: {', '.join(NOTIFY_BACKENDS)}"
        )

    # Patterns (user patterns are tried before the defaults)
    patterns = OutcomePatterns.with_extra(
        passed=_string_list(patterns_raw.get("passed", []), "patterns.passed"),
        failed=_string_list(patterns_raw.get("failed", []), "patterns.failed"),
    )

    return TestifyConfig(watch=watch, run=run, notify=notify, patterns=patterns, source=source)
