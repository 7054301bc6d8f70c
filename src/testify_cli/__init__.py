"""testify: re-run the test suite on change and report results as desktop notifications."""

__version__ = "0.2.0"

# Public API
from testify_cli.controller import TestifyController
from testify_cli.desktop import NotifySendDelivery, OsascriptDelivery, select_delivery

__all__ = [
    "__version__",
    # Primary components
    "TestifyController",
    "NotifySendDelivery",
    "OsascriptDelivery",
    "select_delivery",
]
