"""
Metrics Collection with Prometheus.

Exposes business and system metrics for monitoring.
"""

from enum import Enum

from prometheus_client import Counter, Gauge, Histogram, Info

from app.config import settings


class MetricLabels(str, Enum):
    """Standard metric label names."""

    ENDPOINT = "endpoint"
    METHOD = "method"
    STATUS_CODE = "status_code"
    PROVIDER = "provider"
    RESULT = "result"
    OPERATION = "operation"
    ERROR_TYPE = "error_type"


class RewardEngineMetrics:
    """
    Centralized metrics for the receipt reward engine.

    Covers:
    - HTTP requests (rate, duration, errors)
    - Receipt verifications per store (rate, outcome, duration)
    - Mint dispatches (rate, success/failure, duration)
    """

    def __init__(self) -> None:
        """Initialize all Prometheus metrics."""

        # ====================================================================
        # Service Info
        # ====================================================================
        self.service_info = Info(
            "reward_engine_service",
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
            "reward_engine_http_requests_total",
            "Total HTTP requests",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD, MetricLabels.STATUS_CODE],
        )

        self.http_request_duration_seconds = Histogram(
            "reward_engine_http_request_duration_seconds",
            "HTTP request duration in seconds",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
            buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
        )

        self.http_requests_in_progress = Gauge(
            "reward_engine_http_requests_in_progress",
            "Number of HTTP requests currently being processed",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
        )

        # ====================================================================
        # Receipt Verification Metrics
        # ====================================================================
        self.receipt_verifications_total = Counter(
            "reward_engine_receipt_verifications_total",
            "Total receipt verifications by store and outcome",
            [MetricLabels.PROVIDER, MetricLabels.RESULT],
        )

        self.receipt_verification_duration_seconds = Histogram(
            "reward_engine_receipt_verification_duration_seconds",
            "Store verification duration in seconds",
            [MetricLabels.PROVIDER],
            buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
        )

        # ====================================================================
        # Mint Metrics
        # ====================================================================
        self.mint_dispatches_total = Counter(
            "reward_engine_mint_dispatches_total",
            "Total mint authorizations sent to Engine",
            ["success"],
        )

        self.mint_dispatch_duration_seconds = Histogram(
            "reward_engine_mint_dispatch_duration_seconds",
            "Mint dispatch duration in seconds",
            buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
        )

        # ====================================================================
        # Error Metrics
        # ====================================================================
        self.errors_total = Counter(
            "reward_engine_errors_total",
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

    def record_verification(self, provider: str, reason: str | None, duration: float) -> None:
        """Record receipt verification metrics; reason is None on success."""
        self.receipt_verifications_total.labels(
            provider=provider, result=reason or "verified"
        ).inc()
        self.receipt_verification_duration_seconds.labels(provider=provider).observe(duration)

    def record_mint_dispatch(self, success: bool, duration: float) -> None:
        """Record mint dispatch metrics."""
        self.mint_dispatches_total.labels(success=str(success)).inc()
        self.mint_dispatch_duration_seconds.observe(duration)

    def record_error(self, error_type: str, operation: str) -> None:
        """Record error occurrence."""
        self.errors_total.labels(error_type=error_type, operation=operation).inc()


# Global metrics instance
metrics = RewardEngineMetrics()
