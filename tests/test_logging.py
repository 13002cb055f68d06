"""Tests for the JSON log formatter."""

import json
import logging

from complianceops.shared.infrastructure.logging import ComplianceOpsJsonFormatter, REDACTED, log_latency


def _format(**extra):
    formatter = ComplianceOpsJsonFormatter(
        fmt="%(asctime)s %(name)s %(levelname)s %(message)s",
        service="compliance-ops",
        environment="test",
    )
    record = logging.LogRecord("complianceops.test", logging.INFO, __file__, 1, "hello", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return json.loads(formatter.format(record))


class TestComplianceOpsJsonFormatter:
    def test_service_metadata(self):
        line = _format(correlation_id="abc-123")

        assert line["message"] == "hello"
        assert line["service"] == "compliance-ops"
        assert line["environment"] == "test"
        assert line["correlation_id"] == "abc-123"
        assert "timestamp" in line

    def test_secrets_are_redacted(self):
        line = _format(api_token="t0k3n", db_password="hunter2", entity_id="entity-1")

        assert line["api_token"] == REDACTED
        assert line["db_password"] == REDACTED
        assert line["entity_id"] == "entity-1"

    def test_webhook_url_query_is_masked(self):
        line = _format(webhook_url="https://user:pw@hooks.example.test/ops?key=abc")
        assert line["webhook_url"] == f"https://hooks.example.test/ops?{REDACTED}"


class TestLogLatency:
    def test_logs_completion(self, caplog):
        logger = logging.getLogger("complianceops.test.latency")
        with caplog.at_level(logging.INFO, logger=logger.name):
            with log_latency(logger, "recalculation_pass", trigger="timer"):
                pass

        record = caplog.records[-1]
        assert record.getMessage() == "recalculation_pass completed"
        assert record.trigger == "timer"
        assert record.failed is False
