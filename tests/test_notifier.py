"""Tests for the notifier adapter and built-in delivery backends."""

import logging

import pytest

from testify_core.models import NotificationPayload, OutcomeKind, RunOutcome, Urgency
from testify_core.notifier import (
    LoggingDelivery,
    NoOpDelivery,
    NotifierAdapter,
    build_payload,
)

from conftest import RecordingDelivery


class TestBuildPayload:
    def test_passed(self):
        payload = build_payload(RunOutcome(OutcomeKind.PASSED, "12 passed in 0.3s"))
        assert payload.title == "Tests passed"
        assert payload.body == "12 passed in 0.3s"
        assert payload.urgency is Urgency.LOW
        assert payload.icon == "face-angel"

    def test_failed(self):
        payload = build_payload(RunOutcome(OutcomeKind.FAILED, "3 failed"))
        assert payload.title == "Tests failed"
        assert payload.body == "3 failed"
        assert payload.urgency is Urgency.CRITICAL
        assert payload.icon == "face-angry"

    def test_errored_says_no_result(self):
        payload = build_payload(RunOutcome(OutcomeKind.ERRORED, "could not start test command: nope"))
        assert payload.title == "Could not run tests"
        assert "No test result" in payload.body
        assert "nope" in payload.body
        assert payload.urgency is Urgency.CRITICAL


class TestNotifierAdapter:
    @pytest.mark.asyncio
    async def test_delivers_exactly_once(self):
        delivery = RecordingDelivery()
        adapter = NotifierAdapter(delivery)

        await adapter.notify(RunOutcome(OutcomeKind.PASSED, "all tests passed"))

        assert len(delivery.payloads) == 1
        assert delivery.payloads[0].title == "Tests passed"

    @pytest.mark.asyncio
    async def test_delivery_failure_is_logged_not_raised(self, caplog):
        delivery = RecordingDelivery(error=RuntimeError("no notification daemon"))
        adapter = NotifierAdapter(delivery)

        with caplog.at_level(logging.ERROR, logger="testify_core.notifier"):
            await adapter.notify(RunOutcome(OutcomeKind.FAILED, "1 failed"))

        assert len(delivery.payloads) == 1
        assert "no notification daemon" in caplog.text

    def test_default_delivery_is_noop(self):
        adapter = NotifierAdapter()
        assert isinstance(adapter.delivery, NoOpDelivery)


class TestBuiltinBackends:
    @pytest.mark.asyncio
    async def test_noop_does_nothing(self):
        await NoOpDelivery().send(NotificationPayload("t", "b", Urgency.LOW))

    @pytest.mark.asyncio
    async def test_logging_backend_levels(self, caplog):
        delivery = LoggingDelivery()
        with caplog.at_level(logging.INFO):
            await delivery.send(NotificationPayload("Tests passed", "4 passed", Urgency.LOW))
            await delivery.send(NotificationPayload("Tests failed", "1 failed", Urgency.CRITICAL))

        levels = {r.getMessage(): r.levelno for r in caplog.records}
        assert levels["Tests passed: 4 passed"] == logging.INFO
        assert levels["Tests failed: 1 failed"] == logging.WARNING
