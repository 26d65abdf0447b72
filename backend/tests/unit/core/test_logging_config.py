"""
Tests for the structured log formatters.
"""

import json
import logging
from datetime import datetime

import pytest

from salon_booking.core.logging_config import ConsoleFormatter, JSONFormatter

pytestmark = [pytest.mark.unit]


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="salon_booking.services.booking_service",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg="Appointments created",
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_context():
    payload = json.loads(
        JSONFormatter().format(_record(context={"appointment_ids": [1, 2]}))
    )

    assert payload["level"] == "INFO"
    assert payload["message"] == "Appointments created"
    assert payload["context"] == {"appointment_ids": [1, 2]}


def test_json_formatter_serializes_unknown_types():
    payload = json.loads(
        JSONFormatter().format(_record(context={"start_at": datetime(2025, 1, 6, 10, 0)}))
    )

    assert payload["context"]["start_at"] == "2025-01-06 10:00:00"


def test_console_formatter_restores_level_name():
    record = _record()

    ConsoleFormatter("%(levelname)s %(message)s").format(record)

    assert record.levelname == "INFO"
