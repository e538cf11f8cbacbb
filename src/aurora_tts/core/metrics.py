"""
Prometheus Metrics for the Job Service.

Metrics are optional: every operation is a no-op when prometheus_client
is not installed, so minimal deployments run without it.

Metrics Exposed:
    aurora_jobs_submitted_total        - Counter of accepted jobs by voice
    aurora_jobs_finished_total         - Counter of terminal jobs by status and error code
    aurora_job_duration_seconds        - Histogram of submit-to-terminal latency
    aurora_chunks_synthesized_total    - Counter of backend calls that succeeded
    aurora_audio_bytes_total           - Counter of MP3 bytes produced
    aurora_jobs_queued                 - Gauge of jobs waiting for a worker
    aurora_jobs_active                 - Gauge of jobs being processed
    aurora_backend_loaded              - Gauge indicating if a backend is loaded

Usage:
    from aurora_tts.core.metrics import metrics

    metrics.record_submitted(voice="fem-soft")
    metrics.record_finished("completed", duration=4.2, audio_bytes=160_000)
    content, content_type = metrics.get_metrics_response()

Installation:
    pip install aurora-tts[metrics]
"""
from __future__ import annotations

from typing import Optional

# Prometheus client is optional, operations become no-ops without it
try:
    from prometheus_client import (
        CONTENT_TYPE_LATEST,
        CollectorRegistry,
        Counter,
        Gauge,
        Histogram,
        generate_latest,
    )
    PROMETHEUS_AVAILABLE = True
except ImportError:
    PROMETHEUS_AVAILABLE = False
    Counter = None
    Histogram = None
    Gauge = None
    CollectorRegistry = None


class JobMetrics:
    """
    Job service metrics backed by a private CollectorRegistry.

    Prometheus metric objects are thread-safe, so pipeline threads record
    into the global instance directly.

    Attributes:
        enabled: Whether metrics collection is active.
    """

    def __init__(self):
        self._enabled = PROMETHEUS_AVAILABLE
        self._registry: Optional["CollectorRegistry"] = None

        if self._enabled:
            self._setup_metrics()

    def _setup_metrics(self) -> None:
        self._registry = CollectorRegistry()

        self._submitted_total = Counter(
            "aurora_jobs_submitted_total",
            "Total accepted synthesis jobs",
            ["voice"],
            registry=self._registry,
        )
        self._finished_total = Counter(
            "aurora_jobs_finished_total",
            "Total jobs that reached a terminal state",
            ["status", "error_code"],
            registry=self._registry,
        )
        self._job_duration = Histogram(
            "aurora_job_duration_seconds",
            "Time from submission to terminal state",
            ["status"],
            buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0, 600.0),
            registry=self._registry,
        )
        self._chunks_total = Counter(
            "aurora_chunks_synthesized_total",
            "Total text chunks synthesized",
            registry=self._registry,
        )
        self._audio_bytes_total = Counter(
            "aurora_audio_bytes_total",
            "Total MP3 bytes produced",
            registry=self._registry,
        )
        self._queued = Gauge(
            "aurora_jobs_queued",
            "Jobs waiting for a worker",
            registry=self._registry,
        )
        self._active = Gauge(
            "aurora_jobs_active",
            "Jobs currently processing",
            registry=self._registry,
        )
        self._backend_loaded = Gauge(
            "aurora_backend_loaded",
            "Whether the backend is loaded (1) or not (0)",
            ["backend"],
            registry=self._registry,
        )

    @property
    def enabled(self) -> bool:
        """Whether metrics collection is enabled."""
        return self._enabled

    def record_submitted(self, voice: str) -> None:
        if not self._enabled:
            return
        self._submitted_total.labels(voice=voice).inc()

    def record_finished(
        self,
        status: str,
        duration: float,
        error_code: str = "",
        audio_bytes: int = 0,
    ) -> None:
        """
        Record a job reaching a terminal state.

        Args:
            status: "completed" or "failed"
            duration: Seconds since submission
            error_code: Failure code, empty for completed jobs
            audio_bytes: Size of the produced MP3
        """
        if not self._enabled:
            return

        self._finished_total.labels(status=status, error_code=error_code).inc()
        self._job_duration.labels(status=status).observe(duration)
        if audio_bytes > 0:
            self._audio_bytes_total.inc(audio_bytes)

    def inc_chunks(self, count: int = 1) -> None:
        if not self._enabled:
            return
        self._chunks_total.inc(count)

    def set_queued(self, count: int) -> None:
        if not self._enabled:
            return
        self._queued.set(count)

    def set_active(self, count: int) -> None:
        if not self._enabled:
            return
        self._active.set(count)

    def set_backend_loaded(self, backend: str, loaded: bool) -> None:
        if not self._enabled:
            return
        self._backend_loaded.labels(backend=backend).set(1 if loaded else 0)

    def get_metrics_response(self) -> tuple[bytes, str]:
        """
        Get metrics in Prometheus text format.

        Returns:
            Tuple of (content_bytes, content_type)
        """
        if not self._enabled:
            return (
                b"# Metrics not available (prometheus_client not installed)\n",
                "text/plain; charset=utf-8",
            )

        content = generate_latest(self._registry)
        return (content, CONTENT_TYPE_LATEST)


# Global instance: from aurora_tts.core.metrics import metrics
metrics = JobMetrics()
