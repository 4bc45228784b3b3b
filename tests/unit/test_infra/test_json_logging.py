"""Tests for JSON log formatting and contextvars injection."""

from __future__ import annotations

import json
import logging
import sys

import pytest

from alpr_service.infra.logging import (
    ContextInjectingFilter,
    JSONFormatter,
    clear_log_context,
    get_log_context,
    log_context,
    set_log_context,
)


def make_record(msg: str = "Outbox batch processed", **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="alpr_service.infra.events.outbox.processor",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture(autouse=True)
def _clean_context():
    clear_log_context()
    yield
    clear_log_context()


@pytest.mark.unit
class TestJSONFormatter:
    def test_core_fields_and_extras(self) -> None:
        formatter = JSONFormatter(static={"service": "alpr-service"})

        data = json.loads(formatter.format(make_record(claimed=3)))

        assert data["level"] == "INFO"
        assert data["logger"] == "alpr_service.infra.events.outbox.processor"
        assert data["message"] == "Outbox batch processed"
        assert data["service"] == "alpr-service"
        assert data["claimed"] == 3
        assert data["timestamp"].endswith("Z")

    def test_exception_kept_on_one_line(self) -> None:
        formatter = JSONFormatter()
        try:
            raise ValueError("bad payload")
        except ValueError:
            record = make_record()
            record.exc_info = sys.exc_info()

        output = formatter.format(record)

        assert "\n" not in output
        assert "ValueError: bad payload" in json.loads(output)["exception"]


@pytest.mark.unit
class TestLogContext:
    def test_context_injected_into_records(self) -> None:
        formatter = JSONFormatter()
        log_filter = ContextInjectingFilter()

        with log_context(worker_id="w1", event_id="e-1"):
            record = make_record()
            assert log_filter.filter(record)

        data = json.loads(formatter.format(record))
        assert data["worker_id"] == "w1"
        assert data["event_id"] == "e-1"

    def test_log_context_restores_previous_values(self) -> None:
        set_log_context(worker_id="w1")

        with log_context(record_id="r-1"):
            assert get_log_context() == {"worker_id": "w1", "record_id": "r-1"}

        assert get_log_context() == {"worker_id": "w1"}
