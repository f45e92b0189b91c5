"""
Tests for the shared structured logging setup.
"""

import json
import logging

import pytest
import structlog

from shared.logging import clear_context, configure_logging, set_client_key, set_request_id


class TestConfigureLogging:
    """Test cases for configure_logging."""

    @pytest.fixture(autouse=True)
    def reset_structlog(self):
        yield
        clear_context()
        structlog.reset_defaults()

    def render(self, event: str) -> dict:
        configure_logging("gateway", "info")
        logger = logging.getLogger("gateway.quota_store")
        event_dict = {"event": event}
        for processor in structlog.get_config()["processors"]:
            event_dict = processor(logger, "info", event_dict)
        return json.loads(event_dict)

    def test_timestamp_is_iso_string(self):
        data = self.render("Evicted expired quota records")

        assert isinstance(data["timestamp"], str)
        assert "T" in data["timestamp"]
        assert data["level"] == "info"

    def test_service_and_correlation_context(self):
        set_request_id("req-42")
        set_client_key("rate_limit:203.0.113.7")

        data = self.render("Rate limit exceeded")

        assert data["service"] == "gateway"
        assert data["logger"] == "gateway.quota_store"
        assert data["request_id"] == "req-42"
        assert data["client_key"] == "rate_limit:203.0.113.7"
