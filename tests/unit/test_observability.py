"""
Unit tests for logging and metrics setup.
"""

import json
import logging

import pytest
import structlog
from prometheus_client import CollectorRegistry

from leasequeue.config import Settings
from leasequeue.observability.logging import (
    bind_context,
    clear_context,
    get_logger,
    setup_logging,
)
from leasequeue.observability.metrics import MetricsCollector
from leasequeue.types.message import QueueStats


@pytest.fixture
def restore_logging():
    """Put the root logger back the way pytest left it."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers = handlers
    root.setLevel(level)
    clear_context()
    structlog.reset_defaults()


class TestLogging:
    """Tests for structured logging."""

    def test_json_output_includes_bound_context(self, restore_logging, capsys):
        setup_logging(Settings(log_level="INFO", log_format="json"))
        bind_context(request_id="req-1")

        logging.getLogger("leasequeue.test").info(
            "Claimed messages", extra={"client_id": "worker-1"}
        )

        line = capsys.readouterr().out.strip().splitlines()[-1]
        record = json.loads(line)
        assert record["event"] == "Claimed messages"
        assert record["request_id"] == "req-1"
        assert record["client_id"] == "worker-1"
        assert record["level"] == "info"
        assert record["logger"] == "leasequeue.test"

    def test_level_filters_records(self, restore_logging, capsys):
        setup_logging(Settings(log_level="WARNING", log_format="json"))

        logging.getLogger("leasequeue.test").info("hidden")

        assert "hidden" not in capsys.readouterr().out

    def test_get_logger_renders_through_stdlib(self, restore_logging, capsys):
        setup_logging(Settings(log_level="INFO", log_format="json"))

        get_logger("leasequeue.test").info("Enqueued message", message_id="abc")

        record = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
        assert record["event"] == "Enqueued message"
        assert record["message_id"] == "abc"


class TestMetricsCollector:
    """Tests for MetricsCollector."""

    @pytest.fixture
    def metrics(self) -> MetricsCollector:
        return MetricsCollector(registry=CollectorRegistry())

    def test_update_queue_depth(self, metrics):
        metrics.update_queue_depth(QueueStats(unclaimed=3, leased=2, expired=1))

        sample = metrics.registry.get_sample_value
        assert sample("queue_depth", {"state": "unclaimed"}) == 3
        assert sample("queue_depth", {"state": "leased"}) == 2
        assert sample("queue_depth", {"state": "expired"}) == 1

    def test_record_claimed_skips_empty_categories(self, metrics):
        metrics.record_claimed({"unclaimed": 2, "expired": 0})

        sample = metrics.registry.get_sample_value
        assert sample("messages_claimed_total", {"category": "unclaimed"}) == 2
        assert sample("messages_claimed_total", {"category": "expired"}) is None
        assert sample("claim_batch_size_count") == 1
        assert sample("claim_batch_size_sum") == 2

    def test_record_api_request(self, metrics):
        metrics.record_api_request("POST", "/v1/messages", 201, 0.01)

        assert metrics.registry.get_sample_value(
            "api_requests_total",
            {"method": "POST", "endpoint": "/v1/messages", "status": "201"},
        ) == 1
        assert b"api_requests_total" in metrics.get_metrics()
