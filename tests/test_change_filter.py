"""Tests for ChangeFilter path classification."""

import pytest

from testify_core.change_filter import ChangeFilter
from testify_core.errors import ConfigError
from testify_core.models import Relevance

ROOT = "/project"


@pytest.fixture
def change_filter():
    return ChangeFilter(ROOT)


class TestDefaults:
    """Built-in ignore patterns."""

    @pytest.mark.parametrize(
        "path",
        [
            "/project/src/main.py",
            "/project/tests/test_main.py",
            "/project/pyproject.toml",
            "/project/src/pkg/deep/module.py",
        ],
    )
    def test_source_files_are_relevant(self, change_filter, path):
        assert change_filter.classify(path) is Relevance.RELEVANT

    @pytest.mark.parametrize(
        "path",
        [
            "/project/.git/index",
            "/project/.git/refs/heads/main",
            "/project/.hg/store/data",
            "/project/src/__pycache__/main.cpython-312.pyc",
            "/project/.pytest_cache/v/cache/lastfailed",
            "/project/build/lib/main.py",
            "/project/dist/pkg-0.1.tar.gz",
            "/project/target/debug/app",
            "/project/node_modules/left-pad/index.js",
            "/project/src/pkg.egg-info/PKG-INFO",
            "/project/src/.main.py.swp",
            "/project/src/main.py~",
            "/project/.coverage",
        ],
    )
    def test_vcs_and_build_output_ignored(self, change_filter, path):
        assert change_filter.classify(path) is Relevance.IGNORED

    def test_path_outside_root_ignored(self, change_filter):
        assert change_filter.classify("/tmp/file.py") is Relevance.IGNORED
        assert change_filter.classify("/tmp/src/file.py") is Relevance.IGNORED

    def test_root_itself_ignored(self, change_filter):
        assert change_filter.classify("/project") is Relevance.IGNORED

    def test_parent_traversal_ignored(self, change_filter):
        assert change_filter.classify("../elsewhere/file.py") is Relevance.IGNORED

    def test_relative_paths_are_relative_to_root(self, change_filter):
        assert change_filter.classify("src/main.py") is Relevance.RELEVANT
        assert change_filter.classify("./src/main.py") is Relevance.RELEVANT
        assert change_filter.classify(".git/HEAD") is Relevance.IGNORED

    def test_defaults_can_be_disabled(self):
        change_filter = ChangeFilter(ROOT, use_defaults=False)
        assert change_filter.classify("/project/build/out.txt") is Relevance.RELEVANT


class TestSeparators:
    """Windows and POSIX separators are treated the same."""

    def test_backslash_paths(self):
        change_filter = ChangeFilter("C:\\project")
        assert change_filter.classify("C:\\project\\src\\main.py") is Relevance.RELEVANT
        assert change_filter.classify("C:\\project\\.git\\index") is Relevance.IGNORED
        assert change_filter.classify("D:\\other\\main.py") is Relevance.IGNORED

    def test_mixed_separators(self, change_filter):
        assert change_filter.classify("/project/src\\__pycache__\\x.pyc") is Relevance.IGNORED
        assert change_filter.classify("src\\pkg\\mod.py") is Relevance.RELEVANT


class TestUserPatterns:
    """Configured ignore patterns."""

    def test_component_pattern_matches_anywhere(self):
        change_filter = ChangeFilter(ROOT, ["*.log", "snapshots"])
        assert change_filter.classify("/project/app.log") is Relevance.IGNORED
        assert change_filter.classify("/project/logs/deep/run.log") is Relevance.IGNORED
        assert change_filter.classify("/project/tests/snapshots/a.txt") is Relevance.IGNORED
        assert change_filter.classify("/project/tests/test_log.py") is Relevance.RELEVANT

    def test_anchored_pattern_matches_from_root(self):
        change_filter = ChangeFilter(ROOT, ["docs/_build", "tests/fixtures/*.json"])
        assert change_filter.classify("/project/docs/_build/html/index.html") is Relevance.IGNORED
        assert change_filter.classify("/project/tests/fixtures/data.json") is Relevance.IGNORED
        assert change_filter.classify("/project/tests/fixtures/data.py") is Relevance.RELEVANT
        # Anchored: the same directory elsewhere is not ignored
        assert change_filter.classify("/project/src/docs/_build/x.py") is Relevance.RELEVANT

    def test_trailing_slash_is_ignored(self):
        change_filter = ChangeFilter(ROOT, ["generated/"])
        assert change_filter.classify("/project/generated/api.py") is Relevance.IGNORED

    def test_matching_is_case_sensitive(self):
        change_filter = ChangeFilter(ROOT, ["*.LOG"])
        assert change_filter.classify("/project/app.log") is Relevance.RELEVANT

    @pytest.mark.parametrize("pattern", ["", "   ", "/", "bad\0pattern", 42])
    def test_malformed_pattern_rejected(self, pattern):
        with pytest.raises(ConfigError):
            ChangeFilter(ROOT, [pattern])


class TestWatchPaths:
    """Restricting relevance to parts of the tree."""

    @pytest.fixture
    def change_filter(self):
        return ChangeFilter(ROOT, watch_paths=["src", "tests", "Cargo.toml", "Cargo.lock", "build.rs"])

    @pytest.mark.parametrize(
        "path",
        [
            "/project/src/main.rs",
            "/project/src/lib/os.rs",
            "/project/tests/watch.rs",
            "/project/Cargo.toml",
            "/project/Cargo.lock",
            "/project/build.rs",
        ],
    )
    def test_allowed(self, change_filter, path):
        assert change_filter.is_relevant(path)

    @pytest.mark.parametrize(
        "path",
        ["/project/README.md", "/tmp/file.rs", "/tmp/src/file.rs", "/project/srcs/x.rs"],
    )
    def test_not_allowed(self, change_filter, path):
        assert not change_filter.is_relevant(path)

    def test_ignore_still_applies_inside_watch_paths(self, change_filter):
        assert not change_filter.is_relevant("/project/src/__pycache__/x.pyc")

    def test_dot_means_whole_root(self):
        change_filter = ChangeFilter(ROOT, watch_paths=["."])
        assert change_filter.is_relevant("/project/README.md")
