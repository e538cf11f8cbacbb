"""
JobManager - The Job Service Façade.

Callers (HTTP routes, CLI, Python code) use three operations:

    job_id = manager.submit({"text": "...", "voiceId": "fem-soft"})
    view = manager.status(job_id)          # poll
    payload = manager.fetch_audio(job_id)  # once view.status == "completed"

submit() validates synchronously and returns as soon as the job is
registered; synthesis runs on a bounded executor of jobs.max_concurrent
workers. When every worker is busy new jobs simply stay queued.

The manager never touches a job after creating it. The pipeline writes
progress and results into the store, and status()/fetch_audio() read
snapshots back.
"""
from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

from aurora_tts.core.config import ServiceConfig, Settings
from aurora_tts.core.logging import error, get_logger, info, verbose
from aurora_tts.core.metrics import metrics
from aurora_tts.services.errors import AudioMissing, ErrorCode, NotFound, NotReady, TTSError
from aurora_tts.services.job_store import JobStatus, JobStore
from aurora_tts.services.pipeline import JobPipeline
from aurora_tts.services.validators import SynthesisRequest, validate_request
from aurora_tts.tts.backend import SynthesisBackend, get_backend
from aurora_tts.tts.encoder import AudioEncoder, FFmpegEncoder
from aurora_tts.tts.voices import VoiceCatalog

_LOG = get_logger("aurora-tts.manager")

MEDIA_TYPE_MP3 = "audio/mpeg"


@dataclass(frozen=True)
class JobStatusView:
    """
    Read-only view of a job for pollers.

    download_available is True only for completed jobs.
    """
    job_id: str
    status: str
    progress: int
    error: Optional[str] = None
    error_code: Optional[str] = None
    duration: Optional[float] = None
    download_available: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "status": self.status,
            "progress": self.progress,
            "error": self.error,
            "error_code": self.error_code,
            "duration": self.duration,
            "download_available": self.download_available,
        }


@dataclass(frozen=True)
class AudioPayload:
    """Finished audio ready to send. length always equals len(data)."""
    data: bytes
    length: int
    media_type: str
    filename: str


def audio_filename(job_id: str) -> str:
    return f"aurora-{job_id}.mp3"


class JobManager:
    """
    Façade over JobStore and JobPipeline.

    Build it from Settings for production, or pass collaborators
    directly in tests:

        manager = JobManager(config=ServiceConfig(), backend=FakeBackend(),
                             encoder=FakeEncoder())

    Args:
        settings: Loaded settings; supplies config, backend and voices.
        config: Validated config (overrides settings).
        store: Job store (default: new JobStore).
        backend: Synthesis backend (default: get_backend(settings)).
        encoder: Audio encoder (default: FFmpegEncoder).
        catalog: Voice catalog (default: built-ins plus settings voices).
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        config: Optional[ServiceConfig] = None,
        store: Optional[JobStore] = None,
        backend: Optional[SynthesisBackend] = None,
        encoder: Optional[AudioEncoder] = None,
        catalog: Optional[VoiceCatalog] = None,
    ):
        if config is None:
            config = settings.get_service_config() if settings is not None else ServiceConfig()
        if backend is None:
            if settings is None:
                raise ValueError("JobManager needs settings or an explicit backend")
            backend = get_backend(settings)
        if catalog is None:
            catalog = VoiceCatalog.from_settings(settings.raw.get("voices") if settings is not None else None)

        self._config = config
        self._store = store or JobStore(config.jobs)
        self._backend = backend
        self._encoder = encoder or FFmpegEncoder(config.encoder)
        self._catalog = catalog
        self._pipeline = JobPipeline(self._store, self._backend, self._encoder, self._catalog, self._config)

        self._executor = ThreadPoolExecutor(
            max_workers=config.jobs.max_concurrent,
            thread_name_prefix="aurora-job",
        )
        self._counter_lock = threading.Lock()
        self._queued = 0
        self._active = 0
        self._closed = False

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def config(self) -> ServiceConfig:
        return self._config

    @property
    def catalog(self) -> VoiceCatalog:
        return self._catalog

    @property
    def store(self) -> JobStore:
        return self._store

    @property
    def backend(self) -> SynthesisBackend:
        return self._backend

    # =========================================================================
    # Operations
    # =========================================================================

    def submit(self, request: SynthesisRequest | Mapping[str, Any]) -> str:
        """
        Validate and enqueue a synthesis job.

        Returns:
            The new job id; the job is queued.

        Raises:
            InvalidRequest: Validation failed; no job was created.
            TTSError: The manager has been shut down.
        """
        req = validate_request(request, self._catalog, self._config.request)

        with self._counter_lock:
            if self._closed:
                raise TTSError("Service is shutting down", ErrorCode.INTERNAL_ERROR)
            job_id = self._store.create(voice_id=req.voice_id, chars=len(req.text))
            self._queued += 1
            self._executor.submit(self._execute, job_id, req)
            self._publish_counts()

        metrics.record_submitted(req.voice_id)
        info(_LOG, "job_submitted", job_id=job_id, voice=req.voice_id, chars=len(req.text))
        return job_id

    def _execute(self, job_id: str, request: SynthesisRequest) -> None:
        with self._counter_lock:
            self._queued -= 1
            self._active += 1
            self._publish_counts()
        try:
            self._pipeline.run(job_id, request)
        finally:
            with self._counter_lock:
                self._active -= 1
                self._publish_counts()

    def _publish_counts(self) -> None:
        metrics.set_queued(self._queued)
        metrics.set_active(self._active)

    def status(self, job_id: str) -> JobStatusView:
        """
        Snapshot of a job's state.

        Raises:
            NotFound: Unknown or evicted job id.
        """
        job = self._store.get(job_id)
        if job is None:
            raise NotFound(f"Job not found: {job_id}", {"job_id": job_id})
        return JobStatusView(
            job_id=job.job_id,
            status=job.status.value,
            progress=job.progress,
            error=job.error,
            error_code=job.error_code,
            duration=job.duration,
            download_available=job.status is JobStatus.COMPLETED,
        )

    def fetch_audio(self, job_id: str) -> AudioPayload:
        """
        Return the finished MP3.

        Raises:
            NotFound: Unknown or evicted job id.
            NotReady: The job has not completed (queued, processing or failed).
            AudioMissing: The job completed but holds no audio.
        """
        job = self._store.get(job_id)
        if job is None:
            raise NotFound(f"Job not found: {job_id}", {"job_id": job_id})
        if job.status is not JobStatus.COMPLETED:
            raise NotReady(
                f"Audio not ready, job is {job.status.value}",
                {"job_id": job_id, "status": job.status.value, "progress": job.progress},
            )
        if not job.audio:
            error(_LOG, "audio_missing", job_id=job_id)
            raise AudioMissing("Audio not available", {"job_id": job_id})

        return AudioPayload(
            data=job.audio,
            length=len(job.audio),
            media_type=MEDIA_TYPE_MP3,
            filename=audio_filename(job_id),
        )

    def wait(
        self,
        job_id: str,
        timeout: Optional[float] = None,
        poll_interval: float = 0.1,
        on_poll: Optional[Callable[[JobStatusView], None]] = None,
    ) -> JobStatusView:
        """
        Poll until the job is completed or failed.

        on_poll, when given, receives every snapshot (progress display).

        Raises:
            NotFound: Unknown job id.
            TimeoutError: The job is still running after timeout seconds.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            view = self.status(job_id)
            if on_poll is not None:
                on_poll(view)
            if view.status in (JobStatus.COMPLETED.value, JobStatus.FAILED.value):
                return view
            if deadline is not None and time.monotonic() >= deadline:
                raise TimeoutError(f"job {job_id} still {view.status} after {timeout}s")
            time.sleep(poll_interval)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def warmup(self) -> None:
        """Load the backend ahead of the first job."""
        self._backend.warmup()
        metrics.set_backend_loaded(self._backend.name, self._backend.is_loaded())
        verbose(_LOG, "backend_warm", backend=self._backend.name)

    def get_health_info(self) -> Dict[str, Any]:
        with self._counter_lock:
            queued, active = self._queued, self._active
        encoder_binary = None
        if isinstance(self._encoder, FFmpegEncoder):
            encoder_binary = self._encoder.resolve_binary()
        return {
            "ok": not self._closed,
            "backend": self._backend.name,
            "backend_loaded": self._backend.is_loaded(),
            "encoder": getattr(self._encoder, "name", type(self._encoder).__name__),
            "encoder_binary": encoder_binary,
            "voices": len(self._catalog),
            "jobs": self._store.stats(),
            "queued": queued,
            "active": active,
            "max_concurrent": self._config.jobs.max_concurrent,
        }

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting jobs; optionally wait for running and queued ones."""
        with self._counter_lock:
            self._closed = True
        self._executor.shutdown(wait=wait)
        info(_LOG, "manager_stopped", wait=wait)


# =============================================================================
# Global Manager (Singleton)
# =============================================================================

_manager: Optional[JobManager] = None
_manager_lock = threading.Lock()


def get_manager(settings: Settings) -> JobManager:
    """
    Get or create the global JobManager.

    Thread-safe lazy singleton: created on first call, reused after.
    """
    global _manager
    if _manager is None:
        with _manager_lock:
            if _manager is None:
                _manager = JobManager(settings)
    return _manager


def reset_manager() -> None:
    """Shut down and drop the global manager (tests)."""
    global _manager
    with _manager_lock:
        if _manager is not None:
            _manager.shutdown(wait=False)
        _manager = None
