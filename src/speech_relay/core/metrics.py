"""
Prometheus Metrics for speech-relay.

Metrics Exposed:
    speech_relay_requests_total                 - Requests by source and status
    speech_relay_first_byte_seconds             - Time until audio starts streaming
    speech_relay_cache_lookups_total            - Lookups by result (hit/miss/error)
    speech_relay_uploads_total                  - Background uploads by status
    speech_relay_audio_bytes_total              - Audio bytes relayed to clients
    speech_relay_background_tasks_in_flight     - Uploads currently running

Usage:
    from speech_relay.core.metrics import metrics

    metrics.record_request(source="cache", status="success")
    metrics.record_cache_lookup("miss")
    metrics.record_upload("success")

    content, content_type = metrics.get_metrics_response()

Prometheus Scrape Config Example:
    scrape_configs:
      - job_name: 'speech-relay'
        static_configs:
          - targets: ['localhost:8000']
        metrics_path: '/metrics'
"""
from __future__ import annotations

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)


class SpeechMetrics:
    """
    Metrics collection for the relay.

    A private CollectorRegistry keeps these series apart from anything
    else registered in the process, and lets tests build a fresh instance.

    Example:
        >>> from speech_relay.core.metrics import metrics
        >>> metrics.record_request("synthesis", "success")
        >>> content, _ = metrics.get_metrics_response()
    """

    def __init__(self):
        self._registry = CollectorRegistry()

        self._requests_total = Counter(
            "speech_relay_requests_total",
            "Total speech requests",
            ["source", "status"],
            registry=self._registry,
        )

        self._first_byte = Histogram(
            "speech_relay_first_byte_seconds",
            "Seconds from request start to the first audio byte",
            ["source"],
            buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
            registry=self._registry,
        )

        self._cache_lookups = Counter(
            "speech_relay_cache_lookups_total",
            "Cache lookups by result",
            ["result"],
            registry=self._registry,
        )

        self._uploads = Counter(
            "speech_relay_uploads_total",
            "Background artifact uploads by status",
            ["status"],
            registry=self._registry,
        )

        self._audio_bytes_total = Counter(
            "speech_relay_audio_bytes_total",
            "Total audio bytes relayed to clients",
            ["source"],
            registry=self._registry,
        )

        self._background_in_flight = Gauge(
            "speech_relay_background_tasks_in_flight",
            "Background uploads currently running",
            registry=self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def record_request(self, source: str, status: str) -> None:
        """
        Record a finished request.

        Args:
            source: "cache", "synthesis" or "none" (failed before streaming)
            status: "success" or "error"
        """
        self._requests_total.labels(source=source, status=status).inc()

    def observe_first_byte(self, source: str, seconds: float) -> None:
        self._first_byte.labels(source=source).observe(seconds)

    def record_cache_lookup(self, result: str) -> None:
        """Record a lookup outcome: "hit", "miss" or "error"."""
        self._cache_lookups.labels(result=result).inc()

    def record_upload(self, status: str) -> None:
        self._uploads.labels(status=status).inc()

    def record_audio_bytes(self, source: str, count: int) -> None:
        if count > 0:
            self._audio_bytes_total.labels(source=source).inc(count)

    def set_background_in_flight(self, count: int) -> None:
        self._background_in_flight.set(count)

    def get_metrics_response(self) -> tuple[bytes, str]:
        """Return (content, content_type) for the /metrics endpoint."""
        return generate_latest(self._registry), CONTENT_TYPE_LATEST


# Global singleton
metrics = SpeechMetrics()
