"""Tests for structured logging."""

import json
import logging
import sys

from core.middleware.logging import StructuredFormatter, should_log_request


def make_record(message="Sweep finished", **extra):
    record = logging.LogRecord(
        name="allocation.reallocation",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=message,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredFormatter:
    def test_basic_fields(self):
        payload = json.loads(StructuredFormatter().format(make_record()))

        assert payload["level"] == "INFO"
        assert payload["logger"] == "allocation.reallocation"
        assert payload["message"] == "Sweep finished"

    def test_context_fields(self):
        record = make_record(job="idle_sweep", copy_id=4, examiner_id=2, unrelated="x")

        payload = json.loads(StructuredFormatter().format(record))

        assert payload["job"] == "idle_sweep"
        assert payload["copy_id"] == 4
        assert payload["examiner_id"] == 2
        assert "unrelated" not in payload

    def test_exception(self):
        try:
            raise ValueError("bad row")
        except ValueError:
            record = make_record(exc_info=sys.exc_info())

        payload = json.loads(StructuredFormatter().format(record))

        assert payload["exception"]["type"] == "ValueError"
        assert payload["exception"]["message"] == "bad row"


def test_health_checks_not_logged():
    assert not should_log_request("/health")
    assert not should_log_request("/ready")
    assert should_log_request("/api/v1/allocation/summary")
