"""
Error Codes and Exceptions for the Job Service.

Every error raised to callers is a TTSError carrying a machine-readable
code, a human-readable message and optional details. The HTTP layer
renders them with to_dict():

    {"ok": false, "error": "INVALID_REQUEST", "message": "...", "details": {...}}

Failures inside a running job never propagate: the pipeline records
their code and message on the job instead.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class ErrorCode:
    """
    Standardized error codes.

    Request errors (raised synchronously):
        INVALID_REQUEST, NOT_FOUND, NOT_READY, AUDIO_MISSING
    Job failure codes (stored on failed jobs):
        SYNTHESIS_FAILED, ENCODING_FAILED, TIMEOUT, INTERNAL_ERROR
    """
    INVALID_REQUEST = "INVALID_REQUEST"     # Validation failed, no job created
    NOT_FOUND = "NOT_FOUND"                 # Unknown or evicted job id
    NOT_READY = "NOT_READY"                 # Audio requested before completion
    AUDIO_MISSING = "AUDIO_MISSING"         # Completed job without audio buffer
    SYNTHESIS_FAILED = "SYNTHESIS_FAILED"   # Backend error
    ENCODING_FAILED = "ENCODING_FAILED"     # Encoder error
    TIMEOUT = "TIMEOUT"                     # Backend call or encode took too long
    INTERNAL_ERROR = "INTERNAL_ERROR"       # Unexpected error


class TTSError(Exception):
    """
    Base exception for service errors.

    Attributes:
        message: Human-readable error message.
        code: Error code from ErrorCode.
        details: Optional dictionary with additional context.
    """

    def __init__(self, message: str, code: str = ErrorCode.INTERNAL_ERROR, details: Optional[Dict] = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the standard error response body."""
        result: Dict[str, Any] = {
            "ok": False,
            "error": self.code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class InvalidRequest(TTSError):
    """Raised at submission when a request fails validation."""

    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.INVALID_REQUEST, details)


class NotFound(TTSError):
    """Raised when a job id is unknown (never created, or evicted)."""

    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.NOT_FOUND, details)


class NotReady(TTSError):
    """Raised when audio is requested for a job that has not completed."""

    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.NOT_READY, details)


class AudioMissing(TTSError):
    """Raised when a completed job has no audio buffer."""

    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.AUDIO_MISSING, details)


class SynthesisFailure(TTSError):
    """A backend call failed; code is SYNTHESIS_FAILED or TIMEOUT."""

    def __init__(self, message: str, details: Optional[Dict] = None, code: str = ErrorCode.SYNTHESIS_FAILED):
        super().__init__(message, code, details)


class EncodingFailure(TTSError):
    """The encoder failed; code is ENCODING_FAILED or TIMEOUT."""

    def __init__(self, message: str, details: Optional[Dict] = None, code: str = ErrorCode.ENCODING_FAILED):
        super().__init__(message, code, details)
