"""
Unit tests for structured logging.
"""

import json
import logging

import pytest

from pkg.logger.logger import (
    StructuredFormatter,
    get_logger,
    get_run_id,
    run_id_var,
    set_run_id,
)


@pytest.fixture
def reset_run_id():
    """Restore the run ID after the test."""
    token = run_id_var.set(None)
    yield
    run_id_var.reset(token)


class TestStructuredLogging:
    """Tests for JSON log output."""

    def test_context_fields_in_json(self, reset_run_id):
        """Test that keyword context and run ID end up in the JSON line."""
        set_run_id("run-42")
        record = logging.LogRecord(
            name="internal.usecase",
            level=logging.INFO,
            pathname=__file__,
            lineno=1,
            msg="Taxonomy built",
            args=(),
            exc_info=None,
        )
        record.node_total = 4
        record.tags = ["a"]

        payload = json.loads(StructuredFormatter().format(record))

        assert payload["message"] == "Taxonomy built"
        assert payload["level"] == "INFO"
        assert payload["run_id"] == "run-42"
        assert payload["node_total"] == 4
        assert payload["tags"] == ["a"]

    def test_run_id_context(self, reset_run_id):
        """Test run ID getter and setter."""
        assert get_run_id() is None

        set_run_id("abc")

        assert get_run_id() == "abc"

    def test_logger_accepts_keyword_context(self, caplog):
        """Test that loggers take context fields as keyword arguments."""
        logger = get_logger("tests.structured")

        with caplog.at_level(logging.INFO, logger="tests.structured"):
            logger.info("Merged category", loser="Accessory", survivor="Accessories")

        record = caplog.records[-1]
        assert record.getMessage() == "Merged category"
        assert record.loser == "Accessory"
        assert record.survivor == "Accessories"
