"""
Tests for structured logging setup.
"""
import json
import logging

import pytest
import structlog

from logging_config import LogContext, get_logger, setup_logging


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    structlog.reset_defaults()
    root.handlers, root.level = handlers, level


@pytest.mark.unit
class TestLogging:

    def test_json_event_carries_bound_context(self, restore_logging, capsys):
        setup_logging(json_logs=True)
        logger = get_logger("report_sync")

        with LogContext(run_id="abc", meeting_uuid="u1=="):
            logger.info("report_sync_meeting_done", matched=2)

        record = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
        event = json.loads(record["message"])
        assert event["event"] == "report_sync_meeting_done"
        assert event["run_id"] == "abc"
        assert event["meeting_uuid"] == "u1=="
        assert event["matched"] == 2
        assert event["level"] == "info"

    def test_context_unbound_on_exit(self, restore_logging):
        with LogContext(run_id="abc"):
            assert structlog.contextvars.get_contextvars()["run_id"] == "abc"

        assert "run_id" not in structlog.contextvars.get_contextvars()

    def test_debug_filtered_unless_enabled(self, restore_logging, capsys):
        setup_logging(debug=False, json_logs=False)
        get_logger("participant_matcher").debug("participant_unmatched", name="Guest")

        assert "participant_unmatched" not in capsys.readouterr().out
