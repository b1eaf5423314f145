"""
Prometheus Metrics for tts-gateway.

Metrics Exposed:
    tts_gateway_requests_total              - Requests by mode (buffered/stream) and status
    tts_gateway_request_duration_seconds    - Histogram of request latency by mode
    tts_gateway_audio_bytes_total           - Audio bytes delivered to sinks
    tts_gateway_chunks_total                - Chunks synthesized
    tts_gateway_batches_total               - Batches completed
    tts_gateway_synthesis_calls_total       - Backend synthesis calls by outcome
    tts_gateway_inflight_synthesis          - Gauge of synthesis calls in flight
    tts_gateway_credential_refresh_total    - Credential refreshes by result
    tts_gateway_credential_stale_total      - Requests served with a stale credential

All collectors live in a private CollectorRegistry so several app instances
(tests) never collide with the process-global default registry.

Usage:
    from tts_gateway.core.metrics import metrics

    metrics.record_request("buffered", "success", duration=1.2, audio_bytes=48213)
    metrics.record_synthesis_call("error")
    content, content_type = metrics.get_metrics_response()
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


class GatewayMetrics:
    """
    Metric collection for the gateway.

    One instance is shared by the service, the pipeline and the credential
    manager through the module-level ``metrics`` object. Prometheus
    collectors are thread-safe, so no extra locking is needed.
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        self._registry = registry or CollectorRegistry()

        self._requests_total = Counter(
            "tts_gateway_requests_total",
            "Total speech requests",
            ["mode", "status"],
            registry=self._registry,
        )
        self._request_duration = Histogram(
            "tts_gateway_request_duration_seconds",
            "Speech request duration in seconds",
            ["mode"],
            buckets=(0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
            registry=self._registry,
        )
        self._audio_bytes_total = Counter(
            "tts_gateway_audio_bytes_total",
            "Total audio bytes delivered",
            registry=self._registry,
        )
        self._chunks_total = Counter(
            "tts_gateway_chunks_total",
            "Total chunks synthesized",
            registry=self._registry,
        )
        self._batches_total = Counter(
            "tts_gateway_batches_total",
            "Total batches completed",
            registry=self._registry,
        )
        self._synthesis_calls = Counter(
            "tts_gateway_synthesis_calls_total",
            "Backend synthesis calls",
            ["outcome"],
            registry=self._registry,
        )
        self._inflight = Gauge(
            "tts_gateway_inflight_synthesis",
            "Synthesis calls currently in flight",
            registry=self._registry,
        )
        self._credential_refresh = Counter(
            "tts_gateway_credential_refresh_total",
            "Backend credential refresh attempts",
            ["result"],
            registry=self._registry,
        )
        self._credential_stale = Counter(
            "tts_gateway_credential_stale_total",
            "Times a stale credential was returned after a failed refresh",
            registry=self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def record_request(self, mode: str, status: str, duration: float, audio_bytes: int = 0) -> None:
        """
        Record a finished speech request.

        Args:
            mode: "buffered" or "stream".
            status: "success" or "error".
            duration: Request duration in seconds.
            audio_bytes: Bytes delivered to the caller.
        """
        self._requests_total.labels(mode=mode, status=status).inc()
        self._request_duration.labels(mode=mode).observe(duration)
        if audio_bytes > 0:
            self._audio_bytes_total.inc(audio_bytes)

    def record_batch(self, size: int) -> None:
        self._batches_total.inc()
        self._chunks_total.inc(size)

    def record_synthesis_call(self, outcome: str) -> None:
        self._synthesis_calls.labels(outcome=outcome).inc()

    def inflight_inc(self) -> None:
        self._inflight.inc()

    def inflight_dec(self) -> None:
        self._inflight.dec()

    def record_credential_refresh(self, result: str) -> None:
        self._credential_refresh.labels(result=result).inc()

    def record_stale_credential(self) -> None:
        self._credential_stale.inc()

    def get_metrics_response(self) -> tuple[bytes, str]:
        """Return (body, content_type) for the /metrics endpoint."""
        return generate_latest(self._registry), CONTENT_TYPE_LATEST


# Global singleton metrics instance
metrics = GatewayMetrics()
