"""
API Request/Response Schemas.

The submit body is deliberately loose: field rules (text length, known
voice, clamping of speed and pitch) live in services/validators.py so
that HTTP, CLI and Python callers get identical behavior and the same
error messages.

Example Request:
    {
        "text": "Era uma vez...",
        "voiceId": "masc-deep",
        "speed": 1.0,
        "pitch": 0,
        "emotion": "épico"
    }
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class TTSJobRequest(BaseModel):
    """
    Body of POST /api/tts.

    voiceId is the wire name; voice_id is accepted too.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    text: Optional[str] = Field(None, description="Text to synthesize (up to 100,000 characters)")
    voice_id: Optional[str] = Field(None, alias="voiceId", description="Catalog voice id, e.g. fem-soft")
    speed: Optional[float] = Field(None, description="Speaking rate, clamped to 0.5-2.0")
    pitch: Optional[float] = Field(None, description="Pitch shift in semitones, clamped to -10..10")
    emotion: Optional[str] = Field(None, description="neutro, feliz, triste, intenso, misterioso or épico")

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class TTSJobAccepted(BaseModel):
    """Response of POST /api/tts (202)."""
    jobId: str


class TTSJobStatus(BaseModel):
    """
    Response of GET /api/tts/{jobId}.

    downloadUrl is present only once the job is completed.
    """
    status: str
    progress: int
    error: Optional[str] = None
    duration: Optional[float] = None
    downloadUrl: Optional[str] = None


class VoiceInfo(BaseModel):
    id: str
    label: str
    description: str
    gender: str
    tone: str
    language: str


class VoiceList(BaseModel):
    """Response of GET /api/voices."""
    voices: List[VoiceInfo]
    emotions: List[str]
