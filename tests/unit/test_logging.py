"""Unit tests for logging helpers."""

import structlog

from deploybot.utils.logging import bind_delivery, get_logger


class TestBindDelivery:
    """Tests for per-delivery log context."""

    def test_binds_delivery_and_event(self):
        bind_delivery("72d3162e", "push")

        assert structlog.contextvars.get_contextvars() == {
            "request_id": "72d3162e",
            "github_event": "push",
        }

    def test_rebinding_replaces_previous_delivery(self):
        bind_delivery("first", "push")
        bind_delivery("second")

        assert structlog.contextvars.get_contextvars() == {"request_id": "second"}

    def test_get_logger(self):
        assert get_logger("orchestrator") is not None
