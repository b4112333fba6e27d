"""Tests for structured logging."""

import io
import json
import logging

import pytest

from sla_alerts.shared.infrastructure.logging import (
    CustomJsonFormatter,
    get_context_logger,
    log_latency,
    setup_logging,
)


def make_record(**extra):
    record = logging.LogRecord(
        name="sla_alerts.test",
        level=logging.WARNING,
        pathname=__file__,
        lineno=1,
        msg="Alert dispatched",
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestCustomJsonFormatter:

    def test_emits_json_with_context(self):
        formatter = CustomJsonFormatter("%(name)s %(levelname)s %(message)s", environment="staging")
        payload = json.loads(formatter.format(make_record(correlation_id="abc123", ticket_id="T-1")))

        assert payload["message"] == "Alert dispatched"
        assert payload["levelname"] == "WARNING"
        assert payload["environment"] == "staging"
        assert payload["correlation_id"] == "abc123"
        assert payload["ticket_id"] == "T-1"
        assert "timestamp" in payload

    def test_redacts_sensitive_fields(self):
        formatter = CustomJsonFormatter("%(message)s")
        payload = json.loads(formatter.format(make_record(
            webhook_url="https://hooks.example.com/secret",
            auth_token="abc",
            alert_id="sla-T-1-warning",
        )))

        assert payload["webhook_url"] == "***REDACTED***"
        assert payload["auth_token"] == "***REDACTED***"
        assert payload["alert_id"] == "sla-T-1-warning"


class TestSetupLogging:

    @pytest.fixture(autouse=True)
    def restore_root(self):
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        yield
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_installs_json_handler(self):
        handler = setup_logging(level="debug", environment="production")

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert handler in root.handlers
        assert isinstance(handler.formatter, CustomJsonFormatter)
        assert handler.formatter.environment == "production"
        assert logging.getLogger("apscheduler").level == logging.WARNING

    def test_repeated_setup_replaces_own_handler_only(self):
        root = logging.getLogger()
        foreign = logging.NullHandler()
        root.addHandler(foreign)

        first = setup_logging()
        second = setup_logging()

        assert first not in root.handlers
        assert second in root.handlers
        assert foreign in root.handlers

    def test_writes_json_lines(self):
        stream = io.StringIO()
        setup_logging(level="INFO", environment="staging", stream=stream)

        logging.getLogger("sla_alerts.test").info("SLA poller started", extra={"interval_ms": 30000})

        payload = json.loads(stream.getvalue().strip().splitlines()[-1])
        assert payload["message"] == "SLA poller started"
        assert payload["interval_ms"] == 30000
        assert payload["environment"] == "staging"


class TestContextLogger:

    def test_merges_correlation_id_with_call_extra(self, caplog):
        logger = get_context_logger("sla_alerts.test", "tick-1")
        with caplog.at_level(logging.INFO, logger="sla_alerts.test"):
            logger.info("tick", extra={"ticket_id": "T-1"})

        record = caplog.records[-1]
        assert record.correlation_id == "tick-1"
        assert record.ticket_id == "T-1"

    def test_without_correlation_id_returns_plain_logger(self):
        assert isinstance(get_context_logger("sla_alerts.test"), logging.Logger)


class TestLogLatency:

    def test_logs_completion(self, caplog):
        logger = logging.getLogger("sla_alerts.test")
        with caplog.at_level(logging.DEBUG, logger="sla_alerts.test"):
            with log_latency(logger, "sla_tick", level=logging.DEBUG, tickets=3):
                pass

        record = caplog.records[-1]
        assert record.getMessage() == "sla_tick completed"
        assert record.levelno == logging.DEBUG
        assert record.tickets == 3
        assert record.latency_ms >= 0

    def test_logs_even_when_block_raises(self, caplog):
        logger = logging.getLogger("sla_alerts.test")
        with caplog.at_level(logging.INFO, logger="sla_alerts.test"):
            with pytest.raises(RuntimeError):
                with log_latency(logger, "sla_tick"):
                    raise RuntimeError("boom")

        assert caplog.records[-1].operation == "sla_tick"
