"""Pluggable notification delivery for testify_core.

The notifier adapter turns a RunOutcome into a NotificationPayload and hands
it to a delivery backend. Backends can be replaced for testing, embedding, or
platform-specific desktop integration.
"""

import logging
from typing import Protocol

from testify_core.models import (
    NotificationPayload,
    OutcomeKind,
    RunOutcome,
    Urgency,
    map_outcome_to_icon,
)

logger = logging.getLogger(__name__)

TITLES = {
    OutcomeKind.PASSED: "Tests passed",
    OutcomeKind.FAILED: "Tests failed",
    OutcomeKind.ERRORED: "Could not run tests",
}

URGENCIES = {
    OutcomeKind.PASSED: Urgency.LOW,
    OutcomeKind.FAILED: Urgency.CRITICAL,
    OutcomeKind.ERRORED: Urgency.CRITICAL,
}


class NotificationDelivery(Protocol):
    """Protocol for delivery backends - host can provide custom implementation."""

    async def send(self, payload: NotificationPayload) -> None:
        """Show a notification. May raise; the adapter logs failures."""
        ...


class NoOpDelivery:
    """Silent backend - for embedding or ``--notify none``."""

    async def send(self, payload: NotificationPayload) -> None:
        """Do nothing."""
        pass


class LoggingDelivery:
    """Backend using stdlib logging - for headless use and debugging."""

    async def send(self, payload: NotificationPayload) -> None:
        if payload.urgency == Urgency.CRITICAL:
            logging.warning(f"{payload.title}: {payload.body}")
        else:
            logging.info(f"{payload.title}: {payload.body}")


def build_payload(outcome: RunOutcome) -> NotificationPayload:
    """Derive the notification for an outcome.

    Args:
        outcome: Classified run outcome

    Returns:
        Payload with title, body, urgency and icon
    """
    if outcome.kind == OutcomeKind.ERRORED:
        body = f"No test result: {outcome.summary}"
    else:
        body = outcome.summary
    return NotificationPayload(
        title=TITLES[outcome.kind],
        body=body,
        urgency=URGENCIES[outcome.kind],
        icon=map_outcome_to_icon(outcome.kind),
    )


class NotifierAdapter:
    """Delivers one notification per outcome; delivery errors never propagate."""

    def __init__(self, delivery: NotificationDelivery | None = None):
        self.delivery = delivery or NoOpDelivery()

    async def notify(self, outcome: RunOutcome) -> None:
        payload = build_payload(outcome)
        try:
            await self.delivery.send(payload)
        except Exception as e:
            logger.error(f"Failed to deliver notification '{payload.title}': {e}")
        else:
            logger.debug(f"Delivered notification: {payload.title} - {payload.body}")
