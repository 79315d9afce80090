"""
Metrics Collection with Prometheus.

Exposes receipt verification and HTTP metrics for monitoring.
"""

import time
from enum import Enum

from prometheus_client import Counter, Gauge, Histogram, Info

from iap_receipts.config import settings


class MetricLabels(str, Enum):
    """Standard metric label names."""

    ENDPOINT = "endpoint"
    METHOD = "method"
    STATUS_CODE = "status_code"
    OPERATION = "operation"
    ENVIRONMENT = "environment"
    OUTCOME = "outcome"
    ERROR_TYPE = "error_type"


class ReceiptMetrics:
    """
    Centralized metrics for the receipt verification API.

    Covers:
    - HTTP requests (rate, duration, in flight)
    - Receipt verifications (outcome per environment)
    - Calls to Apple (duration per environment, sandbox fallbacks)
    - Errors by type
    """

    def __init__(self) -> None:
        """Initialize all Prometheus metrics."""

        # ====================================================================
        # Service Info
        # ====================================================================
        self.service_info = Info(
            "iap_receipts_service",
            "Service information",
        )
        self.service_info.info(
            {
                "version": settings.api_version,
                "service_name": settings.service_name,
            }
        )

        # ====================================================================
        # HTTP Metrics
        # ====================================================================
        self.http_requests_total = Counter(
            "iap_receipts_http_requests_total",
            "Total HTTP requests",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD, MetricLabels.STATUS_CODE],
        )

        self.http_request_duration_seconds = Histogram(
            "iap_receipts_http_request_duration_seconds",
            "HTTP request duration in seconds",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
            buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
        )

        self.http_requests_in_progress = Gauge(
            "iap_receipts_http_requests_in_progress",
            "Number of HTTP requests currently being processed",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
        )

        # ====================================================================
        # Verification Metrics
        # ====================================================================
        self.verifications_total = Counter(
            "iap_receipts_verifications_total",
            "Receipt verifications by final outcome",
            [MetricLabels.ENVIRONMENT, MetricLabels.OUTCOME],
        )

        self.apple_request_duration_seconds = Histogram(
            "iap_receipts_apple_request_duration_seconds",
            "verifyReceipt round-trip duration in seconds",
            [MetricLabels.ENVIRONMENT],
            buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
        )

        self.sandbox_fallbacks_total = Counter(
            "iap_receipts_sandbox_fallbacks_total",
            "Production requests redirected to sandbox (status 21007)",
        )

        # ====================================================================
        # Error Metrics
        # ====================================================================
        self.errors_total = Counter(
            "iap_receipts_errors_total",
            "Total errors by type",
            [MetricLabels.ERROR_TYPE, MetricLabels.OPERATION],
        )

    # ========================================================================
    # Helper Methods
    # ========================================================================

    def record_http_request(
        self, endpoint: str, method: str, status_code: int, duration: float
    ) -> None:
        """Record HTTP request metrics."""
        self.http_requests_total.labels(
            endpoint=endpoint, method=method, status_code=status_code
        ).inc()
        self.http_request_duration_seconds.labels(endpoint=endpoint, method=method).observe(
            duration
        )

    def record_verification(self, environment: str | None, outcome: str) -> None:
        """Record the final outcome of a verify_payment call."""
        self.verifications_total.labels(
            environment=environment or "unknown", outcome=outcome
        ).inc()

    def record_apple_request(self, environment: str, duration: float) -> None:
        """Record one verifyReceipt round-trip."""
        self.apple_request_duration_seconds.labels(environment=environment).observe(duration)

    def record_sandbox_fallback(self) -> None:
        """Record a 21007 redirect to the sandbox endpoint."""
        self.sandbox_fallbacks_total.inc()

    def record_error(self, error_type: str, operation: str) -> None:
        """Record error occurrence."""
        self.errors_total.labels(error_type=error_type, operation=operation).inc()


# Global metrics instance
metrics = ReceiptMetrics()


class track_apple_request:
    """
    Context manager for timing verifyReceipt calls.

    Usage:
        with track_apple_request("sandbox"):
            response = await transport.post_json(url, body)
    """

    def __init__(self, environment: str) -> None:
        self.environment = environment
        self.start_time: float = 0.0

    def __enter__(self) -> "track_apple_request":
        """Start tracking."""
        self.start_time = time.time()
        return self

    def __exit__(self, exc_type: type, exc_val: Exception, exc_tb: object) -> None:
        """Record duration, successful or not."""
        metrics.record_apple_request(self.environment, time.time() - self.start_time)
