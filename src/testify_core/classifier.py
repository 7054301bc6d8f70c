"""Map a finished test process to a semantic outcome."""

import logging
import re
import signal
from collections.abc import Iterable
from dataclasses import dataclass, field

from testify_core.errors import ConfigError
from testify_core.models import OutcomeKind, ProcessResult, RunOutcome

logger = logging.getLogger(__name__)

# Tried in order; the first pattern with a match wins.
DEFAULT_PASSED_PATTERNS = (
    r"test result: ok\.[^\n]*",  # cargo test
    r"\d+ passed[^\n]*",  # pytest
    r"Ran \d+ tests? in [^\n]*",  # unittest
)

DEFAULT_FAILED_PATTERNS = (
    r"test result: FAILED\.[^\n]*",  # cargo test
    r"\d+ (?:tests? )?failed[^\n]*",  # pytest, generic runners
    r"FAILED \([^)\n]*\)",  # unittest
    r"error(?::|\[)[^\n]*",  # compiler errors
)

PASSED_FALLBACK = "all tests passed"


def compile_patterns(patterns: Iterable[str], kind: str) -> tuple[re.Pattern[str], ...]:
    """Compile output patterns.

    Raises:
        ConfigError: If a pattern is not a valid regular expression
    """
    compiled = []
    for pattern in patterns:
        try:
            compiled.append(re.compile(pattern))
        except (re.error, TypeError) as e:
            raise ConfigError(f"Invalid {kind} pattern {pattern!r}: {e}") from e
    return tuple(compiled)


@dataclass(frozen=True)
class OutcomePatterns:
    """Recognized summary patterns, kept as data so they can be extended."""

    passed: tuple[re.Pattern[str], ...] = field(
        default_factory=lambda: compile_patterns(DEFAULT_PASSED_PATTERNS, "passed")
    )
    failed: tuple[re.Pattern[str], ...] = field(
        default_factory=lambda: compile_patterns(DEFAULT_FAILED_PATTERNS, "failed")
    )

    @classmethod
    def with_extra(
        cls, passed: Iterable[str] = (), failed: Iterable[str] = ()
    ) -> "OutcomePatterns":
        """Build patterns with user-supplied ones tried before the defaults."""
        return cls(
            passed=compile_patterns([*passed, *DEFAULT_PASSED_PATTERNS], "passed"),
            failed=compile_patterns([*failed, *DEFAULT_FAILED_PATTERNS], "failed"),
        )


def _first_match(patterns: Iterable[re.Pattern[str]], *texts: str) -> str | None:
    for pattern in patterns:
        for text in texts:
            match = pattern.search(text)
            if match:
                summary = match.group(0).strip().strip("=").strip()
                if summary:
                    return summary
    return None


def _signal_name(signum: int) -> str:
    try:
        return signal.Signals(signum).name
    except ValueError:
        return f"signal {signum}"


class ResultClassifier:
    """Turns exit status and output into a RunOutcome.

    Cancelled runs must never be passed here; the coordinator discards them.
    """

    def __init__(
        self,
        patterns: OutcomePatterns | None = None,
        failure_exit_codes: Iterable[int] | None = None,
    ):
        """Initialize classifier.

        Args:
            patterns: Summary patterns (defaults cover pytest, unittest, cargo)
            failure_exit_codes: Exit codes meaning "tests failed". None or empty
                accepts any positive code; other codes are classified as errors.
        """
        self.patterns = patterns or OutcomePatterns()
        codes = frozenset(failure_exit_codes or ())
        self.failure_exit_codes = codes or None

    def classify(self, result: ProcessResult) -> RunOutcome:
        """Classify a finished (not cancelled) run."""
        code = result.exit_code

        if code == 0:
            summary = _first_match(self.patterns.passed, result.stdout, result.stderr)
            return RunOutcome(OutcomeKind.PASSED, summary or PASSED_FALLBACK)

        if code < 0:
            return RunOutcome(
                OutcomeKind.ERRORED,
                f"test command was killed by {_signal_name(-code)}",
            )

        if self.failure_exit_codes is not None and code not in self.failure_exit_codes:
            return RunOutcome(
                OutcomeKind.ERRORED,
                f"test command exited with unrecognized status {code}",
            )

        summary = _first_match(self.patterns.failed, result.stdout, result.stderr)
        if summary is None:
            logger.debug(f"No failure pattern matched output of run with exit code {code}")
            summary = f"tests failed (exit code {code})"
        return RunOutcome(OutcomeKind.FAILED, summary)

    def launch_error(self, error: BaseException) -> RunOutcome:
        """Outcome for a test command that could not be started."""
        return RunOutcome(OutcomeKind.ERRORED, f"could not start test command: {error}")
