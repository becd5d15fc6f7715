"""Tests for the structured JSON logging layer."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from travel_kernel.exceptions import BookingNotFoundError
from travel_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)
from travel_modules.booking.models import BookingStatus


def _record(message="event", level=logging.INFO, exc_info=None, **extra):
    record = logging.LogRecord("travel_kernel.test", level, __file__, 1, message, (), exc_info)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def _format(record) -> dict:
    return json.loads(StructuredFormatter().format(record))


@pytest.fixture
def fresh_logging():
    """Reset the logger hierarchy and restore the suite configuration after."""
    reset_logging()
    yield
    reset_logging()
    configure_logging(level=logging.DEBUG)


class TestStructuredFormatter:
    def test_base_fields(self):
        payload = _format(_record("booking_created", level=logging.WARNING))
        assert payload["message"] == "booking_created"
        assert payload["level"] == "WARNING"
        assert payload["logger"] == "travel_kernel.test"
        assert payload["ts"].endswith("+00:00")

    def test_extra_fields_serialised(self):
        booking_id = uuid4()
        payload = _format(
            _record(booking_id=booking_id, amount=Decimal("10.50"), status=BookingStatus.COMPLETE)
        )
        assert payload["booking_id"] == str(booking_id)
        assert payload["amount"] == "10.50"
        assert payload["status"] == "complete"

    def test_exception_fields(self):
        try:
            raise BookingNotFoundError("abc")
        except BookingNotFoundError as exc:
            record = _record(level=logging.ERROR, exc_info=(type(exc), exc, exc.__traceback__))
        payload = _format(record)
        assert payload["exc_type"] == "BookingNotFoundError"
        assert payload["exc_code"] == "BOOKING_NOT_FOUND"
        assert "traceback" in payload


class TestLogContext:
    def test_bind_and_clear(self):
        with LogContext.bind(actor_id="actor-1", correlation_id="req-9"):
            assert LogContext.get_all() == {"correlation_id": "req-9", "actor_id": "actor-1"}
            LogContext.clear()
            assert LogContext.get_all() == {}

    def test_bind_restores_previous(self):
        with LogContext.bind(booking_id="outer"):
            with LogContext.bind(booking_id="inner", invoice_id=None):
                assert LogContext.get_all() == {"booking_id": "inner"}
            assert LogContext.get_all() == {"booking_id": "outer"}
        assert LogContext.get_all() == {}

    def test_context_lands_in_payload(self):
        with LogContext.bind(invoice_id="inv-1"):
            payload = _format(_record())
        assert payload["invoice_id"] == "inv-1"

    def test_explicit_extra_does_not_override_context(self):
        with LogContext.bind(booking_id="from-context"):
            payload = _format(_record(booking_id="from-extra"))
        assert payload["booking_id"] == "from-context"


class TestConfiguration:
    def test_loggers_are_namespaced(self):
        assert get_logger("services.booking").name == "travel_kernel.services.booking"

    def test_configure_is_idempotent(self, fresh_logging):
        stream = StringIO()
        configure_logging(level=logging.INFO, stream=stream)
        configure_logging(level=logging.DEBUG, stream=StringIO())

        root = logging.getLogger("travel_kernel")
        assert len(root.handlers) == 1
        assert root.level == logging.INFO

        get_logger("test").info("hello", extra={"n": 1})
        get_logger("test").debug("hidden")
        lines = [json.loads(line) for line in stream.getvalue().splitlines()]
        assert [line["message"] for line in lines] == ["hello"]
        assert lines[0]["n"] == 1

    def test_reset_clears_handlers(self, fresh_logging):
        configure_logging(stream=StringIO())
        reset_logging()
        assert logging.getLogger("travel_kernel").handlers == []
