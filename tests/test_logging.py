"""
Tests for structured logging setup and redaction.
"""

import json
import logging

import structlog

from iap_receipts.observability.logging import (
    REDACTED,
    build_processors,
    log_context,
    redact_sensitive_fields,
)


def render(event_dict: dict, log_format: str = "json") -> str:
    """Run an event through the configured processor chain."""
    logger = logging.getLogger("iap_receipts.tests")
    result = event_dict
    for processor in build_processors(log_format, "INFO"):
        result = processor(logger, "info", result)
    return result


class TestRedactSensitiveFields:
    """Tests for the redaction processor."""

    def test_top_level_keys(self):
        """Receipt and secret fields are replaced."""
        event = redact_sensitive_fields(
            None,
            "info",
            {
                "event": "apple_receipt_verifying",
                "receipt": "MIIT...",
                "shared_secret": "s3cret",
                "password": "s3cret",
                "product_id": "credits_100",
            },
        )

        assert event["receipt"] == REDACTED
        assert event["shared_secret"] == REDACTED
        assert event["password"] == REDACTED
        assert event["product_id"] == "credits_100"
        assert event["event"] == "apple_receipt_verifying"

    def test_nested_payload(self):
        """Request payloads logged as dicts are redacted too."""
        event = redact_sensitive_fields(
            None,
            "info",
            {"event": "x", "payload": {"receipt-data": "YQ==", "password": "s3cret", "n": 1}},
        )

        assert event["payload"] == {"receipt-data": REDACTED, "password": REDACTED, "n": 1}

    def test_unrelated_event_untouched(self):
        """Events without sensitive keys pass through unchanged."""
        event = {"event": "apple_receipt_verified", "environment": "sandbox", "line_items": 2}
        assert redact_sensitive_fields(None, "info", dict(event)) == event


class TestProcessorChain:
    """Tests for the rendered output."""

    def test_json_output_has_no_secret(self):
        """The rendered JSON line never contains the secret."""
        line = render({"event": "apple_receipt_verifying", "shared_secret": "s3cret"})

        assert "s3cret" not in line
        parsed = json.loads(line)
        assert parsed["shared_secret"] == REDACTED
        assert parsed["level"] == "info"
        assert parsed["logger"] == "iap_receipts.tests"
        assert "service" in parsed
        assert "timestamp" in parsed

    def test_context_fields_are_redacted(self):
        """Fields bound through log_context are redacted as well."""
        with log_context(receipt="MIIT...", product_id="credits_100"):
            line = render({"event": "apple_receipt_verify_request"})

        parsed = json.loads(line)
        assert parsed["receipt"] == REDACTED
        assert parsed["product_id"] == "credits_100"

    def test_console_format_renders_text(self):
        """Console format produces a plain string."""
        line = render({"event": "apple_receipt_verified"}, log_format="console")
        assert isinstance(line, str)
        assert "apple_receipt_verified" in line


class TestLogContext:
    """Tests for the log_context context manager."""

    def test_binds_and_unbinds(self):
        """Fields are bound inside the block and removed after it."""
        with log_context(product_id="credits_100", transaction_id="1000000001"):
            bound = structlog.contextvars.get_contextvars()
            assert bound["product_id"] == "credits_100"
            assert bound["transaction_id"] == "1000000001"

        bound = structlog.contextvars.get_contextvars()
        assert "product_id" not in bound
        assert "transaction_id" not in bound
