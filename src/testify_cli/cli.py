"""CLI entry point for testify: watch the project, re-run tests, notify."""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

from testify_core.config import DEFAULT_CONFIG_NAME, NOTIFY_BACKENDS, load_config
from testify_core.errors import ConfigError

from testify_cli import __version__
from testify_cli.controller import TestifyController

logger = logging.getLogger(__name__)

# Default config template for Python projects
DEFAULT_CONFIG_TEMPLATE = """\
# Auto-generated testify.toml

[watch]
root = "."
# Only changes under these root-relative paths trigger a run (empty: everything).
paths = []
# Ignored on top of the built-in defaults (.git, __pycache__, build, dist, ...).
ignore = ["*.log", "*.tmp"]
quiet_period_ms = 500

[run]
command = "pytest -q"
run_on_start = true
cancel_on_change = true
grace_period_ms = 3000
# Exit codes meaning "tests failed"; anything else nonzero is an error.
# Empty: any nonzero exit code means "tests failed".
failure_exit_codes = []
echo_output = true

[patterns]
# Extra regexes used to extract the notification summary.
passed = []
failed = []

[notify]
backend = "auto"
app_name = "testify"
"""


def create_default_config(config_path: Path) -> bool:
    """
    Create a default testify.toml if it doesn't exist.

    Args:
        config_path: Path where config should be created

    Returns:
        True if config was created, False if it already exists

    Raises:
        PermissionError: If unable to write to the directory
        OSError: If other file system errors occur
    """
    if config_path.exists():
        return False

    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(DEFAULT_CONFIG_TEMPLATE)
    return True


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        prog="testify",
        description="Re-run your test suite on every change and get a desktop notification.",
        epilog="Examples:\n"
        "  testify                          # Use testify.toml if present, else defaults\n"
        "  testify --init                   # Write a default testify.toml\n"
        "  testify -- cargo test --quiet    # Custom test command\n"
        "  testify --root src --quiet-period 1000",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "-c",
        "--config",
        default=None,
        help=f"Path to config file (default: {DEFAULT_CONFIG_NAME} if present)",
    )
    parser.add_argument("--root", default=None, help="Project root to watch (default: config or .)")
    parser.add_argument(
        "--quiet-period",
        type=int,
        default=None,
        metavar="MS",
        help="Milliseconds without changes before tests run (default: 500)",
    )
    parser.add_argument(
        "--no-initial-run",
        action="store_true",
        help="Do not run the tests at startup, only after the first change",
    )
    parser.add_argument(
        "--notify",
        choices=NOTIFY_BACKENDS,
        default=None,
        help="Notification backend (default: auto)",
    )
    parser.add_argument(
        "--init",
        action="store_true",
        help=f"Create a default {DEFAULT_CONFIG_NAME} and exit",
    )

    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    verbosity.add_argument("-q", "--quiet", action="store_true", help="Only log warnings and errors")

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "command",
        nargs=argparse.REMAINDER,
        help="Test command after '--' (default: config or 'pytest -q')",
    )

    args = parser.parse_args(argv)
    # argparse keeps the leading '--' in the remainder
    if args.command and args.command[0] == "--":
        args.command = args.command[1:]
    return args


def configure_logging(verbose: bool = False, quiet: bool = False) -> None:
    """Set up root logging for the CLI."""
    level = logging.DEBUG if verbose else logging.WARNING if quiet else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    # watchdog is chatty at DEBUG
    logging.getLogger("watchdog").setLevel(logging.INFO)


async def _serve(controller: TestifyController) -> None:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, stop.set)
        except (NotImplementedError, RuntimeError):
            # Windows: Ctrl+C arrives as KeyboardInterrupt instead
            pass
    await controller.run_until(stop)


def main(argv: list[str] | None = None) -> None:
    """
    Main entry point for the testify CLI.

    Handles:
    - Argument parsing
    - Creation of testify.toml (--init)
    - Running the watch loop until SIGINT/SIGTERM
    - Error handling and exit codes
    """
    args = parse_args(argv)
    configure_logging(args.verbose, args.quiet)

    config_path = Path(args.config or DEFAULT_CONFIG_NAME).resolve()

    if args.init:
        try:
            if create_default_config(config_path):
                print(f"Created default config at: {config_path}")
            else:
                print(f"Config already exists: {config_path}")
        except (PermissionError, OSError) as e:
            print(f"Error: Failed to create config: {e}", file=sys.stderr)
            sys.exit(1)
        sys.exit(0)

    try:
        config = load_config(
            config_path,
            required=args.config is not None,
            root=args.root,
            command=args.command or None,
            quiet_period_ms=args.quiet_period,
            run_on_start=False if args.no_initial_run else None,
            notify_backend=args.notify,
        )
        controller = TestifyController(config)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        asyncio.run(_serve(controller))
    except KeyboardInterrupt:
        # Signal handlers are unavailable on Windows; the run task dies with the loop.
        pass
    except OSError as e:
        print(f"Error: Failed to watch {config.watch.root}: {e}", file=sys.stderr)
        sys.exit(1)

    sys.exit(0)


if __name__ == "__main__":
    main()
