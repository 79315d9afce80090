"""
Structured Logging with Structlog.

Receipts and shared secrets are redacted before rendering, wherever they
appear in the event (including nested payload dicts).
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from iap_receipts.config import settings

REDACTED = "[REDACTED]"

# Field names that carry receipt bodies or the app's shared secret
SENSITIVE_KEYS = frozenset({"password", "receipt", "receipt-data", "receipt_data", "shared_secret"})


def _redact(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            key: REDACTED if key in SENSITIVE_KEYS else _redact(item)
            for key, item in value.items()
        }
    return value


def redact_sensitive_fields(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Replace receipt and shared-secret values with a placeholder."""
    return _redact(event_dict)  # type: ignore[no-any-return]


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Add service name and version to all log entries."""
    event_dict["service"] = settings.service_name
    event_dict["version"] = settings.api_version
    return event_dict


def build_processors(log_format: str, log_level: str) -> list[Processor]:
    """
    Processor chain for the given format and level.

    Redaction runs after context is merged, so fields bound through
    log_context are covered too.
    """
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        redact_sensitive_fields,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_app_context,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    if log_level.upper() == "DEBUG":
        processors.append(structlog.processors.ExceptionRenderer())
    else:
        processors.append(structlog.processors.format_exc_info)

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    return processors


def setup_logging() -> None:
    """
    Configure structlog over stdlib logging from settings.

    JSON output looks like:
    {
        "event": "apple_receipt_verified",
        "level": "info",
        "timestamp": "2025-01-08T12:00:00.123456Z",
        "logger": "iap_receipts.services.apple_reconciler",
        "service": "iap-receipts-api",
        "version": "0.1.0",
        "environment": "sandbox",
        "line_items": 1
    }
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level.upper()),
    )

    structlog.configure(
        processors=build_processors(settings.log_format, settings.log_level),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)  # type: ignore[no-any-return]


class log_context:
    """
    Bind request-scoped fields for the duration of a block.

    Usage:
        with log_context(product_id="credits_100", transaction_id="1000000001"):
            logger.info("apple_receipt_verify_request")
    """

    def __init__(self, **kwargs: Any) -> None:
        self.context = kwargs

    def __enter__(self) -> None:
        structlog.contextvars.bind_contextvars(**self.context)

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        structlog.contextvars.unbind_contextvars(*self.context.keys())
