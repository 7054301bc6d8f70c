"""Exception types shared by testify components."""


class TestifyError(Exception):
    """Base class for all testify errors."""

    # Not a test class, despite the name.
    __test__ = False


class ConfigError(TestifyError, ValueError):
    """Invalid configuration detected at startup.

    Raised before the watch loop starts; the CLI reports it and exits nonzero.
    """
