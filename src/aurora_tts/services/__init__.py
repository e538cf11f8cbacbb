"""
Job Service Layer.

    - errors.py: ErrorCode and the TTSError hierarchy
    - validators.py: SynthesisRequest validation
    - job_store.py: In-memory job registry
    - pipeline.py: Text to MP3 for one job
    - job_manager.py: submit / status / fetch_audio façade
"""
from aurora_tts.services.errors import (
    AudioMissing,
    EncodingFailure,
    ErrorCode,
    InvalidRequest,
    NotFound,
    NotReady,
    SynthesisFailure,
    TTSError,
)
from aurora_tts.services.job_manager import (
    AudioPayload,
    JobManager,
    JobStatusView,
    get_manager,
    reset_manager,
)
from aurora_tts.services.job_store import InvalidTransition, Job, JobNotFound, JobStatus, JobStore
from aurora_tts.services.pipeline import JobPipeline
from aurora_tts.services.validators import EMOTIONS, SynthesisRequest, validate_request

__all__ = [
    "AudioMissing",
    "AudioPayload",
    "EMOTIONS",
    "EncodingFailure",
    "ErrorCode",
    "InvalidRequest",
    "InvalidTransition",
    "Job",
    "JobManager",
    "JobNotFound",
    "JobPipeline",
    "JobStatus",
    "JobStatusView",
    "JobStore",
    "NotFound",
    "NotReady",
    "SynthesisFailure",
    "SynthesisRequest",
    "TTSError",
    "get_manager",
    "reset_manager",
    "validate_request",
]
