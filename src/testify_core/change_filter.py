"""Classify changed paths as relevant or ignored."""

import logging
import re
from collections.abc import Iterable
from fnmatch import fnmatchcase
from pathlib import Path, PurePosixPath

from testify_core.errors import ConfigError
from testify_core.models import Relevance

logger = logging.getLogger(__name__)

# Version-control metadata, tool caches, virtualenvs and build output.
DEFAULT_IGNORE_DIRS = (
    ".git",
    ".hg",
    ".svn",
    ".bzr",
    "__pycache__",
    ".pytest_cache",
    ".mypy_cache",
    ".ruff_cache",
    ".tox",
    ".nox",
    ".venv",
    "venv",
    ".eggs",
    "*.egg-info",
    "build",
    "dist",
    "target",
    "node_modules",
    "htmlcov",
)

# Editor swap/backup files and compiled artifacts.
DEFAULT_IGNORE_FILES = (
    "*.pyc",
    "*.pyo",
    "*.swp",
    "*.swx",
    "*~",
    ".#*",
    ".coverage",
    ".coverage.*",
)

DEFAULT_IGNORE_PATTERNS = DEFAULT_IGNORE_DIRS + DEFAULT_IGNORE_FILES

_DRIVE_RE = re.compile(r"^[A-Za-z]:/")


def _to_posix(path: str | Path) -> str:
    """Normalize separators so Windows and POSIX paths compare the same."""
    return str(path).replace("\\", "/")


def _validate_pattern(pattern: object) -> str:
    if not isinstance(pattern, str):
        raise ConfigError(f"Ignore pattern must be a string, got {pattern!r}")
    stripped = pattern.strip().rstrip("/")
    if not stripped or "\0" in stripped:
        raise ConfigError(f"Malformed ignore pattern: {pattern!r}")
    return stripped


class ChangeFilter:
    """Decides whether a changed path should lead to a test run.

    Patterns without a ``/`` match any single path component (``build``,
    ``*.log``). Patterns with a ``/`` are anchored at the project root and
    match the relative path or any of its parent directories
    (``docs/_build``, ``tests/fixtures/*.json``).

    The filter is a pure function of its configuration.
    """

    def __init__(
        self,
        root: str | Path,
        ignore_patterns: Iterable[str] = (),
        watch_paths: Iterable[str] | None = None,
        use_defaults: bool = True,
    ):
        """Initialize filter.

        Args:
            root: Project root; paths outside it are ignored
            ignore_patterns: Extra glob patterns to ignore
            watch_paths: Root-relative paths to restrict relevance to (None: whole root)
            use_defaults: Whether to include the built-in ignore patterns

        Raises:
            ConfigError: If a pattern or watch path is malformed
        """
        self.root = PurePosixPath(_to_posix(root))
        patterns = list(DEFAULT_IGNORE_PATTERNS) if use_defaults else []
        patterns.extend(_validate_pattern(p) for p in ignore_patterns)

        self._component_patterns = tuple(p for p in patterns if "/" not in p)
        self._anchored_patterns = tuple(p.lstrip("/") for p in patterns if "/" in p)

        self._watch_paths: tuple[tuple[str, ...], ...] | None = None
        if watch_paths is not None:
            parts = []
            for wp in watch_paths:
                rel = PurePosixPath(_validate_pattern(wp)).parts
                parts.append(tuple(p for p in rel if p != "."))
            # An entry of "." (or nothing at all) means the whole root.
            if parts and all(parts):
                self._watch_paths = tuple(parts)

        logger.debug(
            f"Change filter for {self.root}: {len(patterns)} ignore pattern(s), "
            f"watch paths: {watch_paths or 'all'}"
        )

    def _relative_parts(self, path: str | Path) -> tuple[str, ...] | None:
        posix = PurePosixPath(_to_posix(path))
        try:
            parts = posix.relative_to(self.root).parts
        except ValueError:
            if posix.is_absolute() or _DRIVE_RE.match(str(posix)):
                return None
            parts = tuple(p for p in posix.parts if p != ".")
        if ".." in parts:
            return None
        return parts

    def classify(self, path: str | Path) -> Relevance:
        """Classify a changed path.

        Args:
            path: Absolute path, or path relative to the project root

        Returns:
            Relevance.RELEVANT if the change should trigger a run
        """
        parts = self._relative_parts(path)
        if not parts:
            return Relevance.IGNORED

        if self._watch_paths is not None and not any(
            parts[: len(wp)] == wp for wp in self._watch_paths
        ):
            return Relevance.IGNORED

        for component in parts:
            for pattern in self._component_patterns:
                if fnmatchcase(component, pattern):
                    return Relevance.IGNORED

        if self._anchored_patterns:
            # Check the file itself and every parent directory.
            for end in range(1, len(parts) + 1):
                candidate = "/".join(parts[:end])
                for pattern in self._anchored_patterns:
                    if fnmatchcase(candidate, pattern):
                        return Relevance.IGNORED

        return Relevance.RELEVANT

    def is_relevant(self, path: str | Path) -> bool:
        """Shorthand for ``classify(path) is Relevance.RELEVANT``."""
        return self.classify(path) is Relevance.RELEVANT
