"""
Synthesis Job API Routes.

Endpoints:
    POST /api/tts                  - Submit a job (202 {"jobId"})
    GET  /api/tts/{jobId}          - Poll job status
    GET  /api/tts/{jobId}/audio    - Download the finished MP3
    GET  /api/voices               - Voice catalog and emotions
    GET  /health                   - Health check
    GET  /metrics                  - Prometheus metrics

Error Handling:
    Errors are JSON in the standard format:
    {
        "ok": false,
        "error": "<ERROR_CODE>",
        "message": "<human readable message>"
    }

    HTTP status codes are mapped from TTSError codes:
        - INVALID_REQUEST -> 400 Bad Request
        - NOT_FOUND       -> 404 Not Found
        - NOT_READY       -> 409 Conflict
        - AUDIO_MISSING   -> 500 Internal Server Error

Example:
    curl -X POST http://localhost:8000/api/tts \\
        -H "Content-Type: application/json" \\
        -d '{"text": "Olá, mundo.", "voiceId": "fem-soft"}'
    # {"jobId": "6f1c..."}
    curl http://localhost:8000/api/tts/6f1c...
    # {"status": "completed", "progress": 100, "duration": 1.2, "downloadUrl": "/api/tts/6f1c.../audio"}
"""
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse

from aurora_tts.api.dependencies import get_job_manager
from aurora_tts.api.schemas import TTSJobAccepted, TTSJobRequest, TTSJobStatus, VoiceInfo, VoiceList
from aurora_tts.core.logging import get_logger, set_request_id, verbose
from aurora_tts.core.metrics import metrics
from aurora_tts.services.errors import ErrorCode, TTSError
from aurora_tts.services.job_manager import JobManager
from aurora_tts.services.validators import EMOTIONS

router = APIRouter()

_LOG = get_logger("aurora-tts.api")

STATUS_MAP = {
    ErrorCode.INVALID_REQUEST: 400,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.NOT_READY: 409,
    ErrorCode.AUDIO_MISSING: 500,
}


def _error_response(error: TTSError) -> JSONResponse:
    """Standard JSON error body with the status mapped from the error code."""
    return JSONResponse(status_code=STATUS_MAP.get(error.code, 500), content=error.to_dict())


def _new_request_id() -> str:
    rid = str(uuid.uuid4())[:12]
    set_request_id(rid)
    return rid


def download_url(job_id: str) -> str:
    return f"/api/tts/{job_id}/audio"


@router.post("/api/tts", status_code=202, response_model=TTSJobAccepted)
def submit_job(req: TTSJobRequest, manager: JobManager = Depends(get_job_manager)):
    """
    Accept a synthesis job and return its id immediately.

    The job runs in the background; poll GET /api/tts/{jobId}.
    """
    _new_request_id()
    try:
        job_id = manager.submit(req.to_payload())
    except TTSError as e:
        return _error_response(e)
    return TTSJobAccepted(jobId=job_id)


@router.get("/api/tts/{job_id}", response_model=TTSJobStatus, response_model_exclude_none=True)
def job_status(job_id: str, manager: JobManager = Depends(get_job_manager)):
    """Current status, progress and, once completed, the download URL."""
    _new_request_id()
    try:
        view = manager.status(job_id)
    except TTSError as e:
        return _error_response(e)

    verbose(_LOG, "status_polled", job_id=job_id, status=view.status, progress=view.progress)
    return TTSJobStatus(
        status=view.status,
        progress=view.progress,
        error=view.error,
        duration=view.duration,
        downloadUrl=download_url(job_id) if view.download_available else None,
    )


@router.get("/api/tts/{job_id}/audio", response_class=Response)
def job_audio(job_id: str, manager: JobManager = Depends(get_job_manager)):
    """
    Download the finished MP3 as an attachment named aurora-{jobId}.mp3.

    409 while the job is queued, processing or failed.
    """
    rid = _new_request_id()
    try:
        payload = manager.fetch_audio(job_id)
    except TTSError as e:
        return _error_response(e)

    headers = {
        "Content-Disposition": f'attachment; filename="{payload.filename}"',
        "Content-Length": str(payload.length),
        "X-Request-Id": rid,
    }
    return Response(content=payload.data, media_type=payload.media_type, headers=headers)


@router.get("/api/voices", response_model=VoiceList)
def list_voices(manager: JobManager = Depends(get_job_manager)):
    """Voices clients can pass as voiceId, plus the accepted emotions."""
    return VoiceList(
        voices=[VoiceInfo(**v.to_dict()) for v in manager.catalog.voices()],
        emotions=list(EMOTIONS),
    )


@router.get("/health")
def health(manager: JobManager = Depends(get_job_manager)):
    """Backend, encoder and job counts for probes and dashboards."""
    return manager.get_health_info()


@router.get("/metrics")
def prometheus_metrics():
    """Prometheus text format; placeholder text without prometheus_client."""
    content, content_type = metrics.get_metrics_response()
    return Response(content=content, media_type=content_type)
