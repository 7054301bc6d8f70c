"""testify-core: watch, debounce, run and report loop for testify."""

__version__ = "0.2.0"

# Models
from testify_core.models import (
    ChangeEvent,
    NotificationPayload,
    OutcomeKind,
    ProcessResult,
    Relevance,
    RunOutcome,
    RunState,
    Urgency,
)

# Components
from testify_core.change_filter import ChangeFilter
from testify_core.classifier import OutcomePatterns, ResultClassifier
from testify_core.coordinator import RunCoordinator
from testify_core.debouncer import Debouncer
from testify_core.notifier import (
    LoggingDelivery,
    NoOpDelivery,
    NotificationDelivery,
    NotifierAdapter,
    build_payload,
)
from testify_core.process import ProcessRunner

# Config
from testify_core.config import TestifyConfig, load_config
from testify_core.errors import ConfigError, TestifyError

__all__ = [
    "__version__",
    # Models
    "ChangeEvent",
    "Relevance",
    "RunState",
    "ProcessResult",
    "OutcomeKind",
    "RunOutcome",
    "Urgency",
    "NotificationPayload",
    # Components
    "ChangeFilter",
    "Debouncer",
    "RunCoordinator",
    "ResultClassifier",
    "OutcomePatterns",
    "NotifierAdapter",
    "NotificationDelivery",
    "NoOpDelivery",
    "LoggingDelivery",
    "build_payload",
    "ProcessRunner",
    # Config
    "TestifyConfig",
    "load_config",
    "ConfigError",
    "TestifyError",
]
