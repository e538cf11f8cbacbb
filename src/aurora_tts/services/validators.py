"""
Request Validation.

Turns untrusted input (API body, CLI arguments, Python callers) into an
immutable SynthesisRequest. Validation happens once, at submission;
a request that fails never creates a job.

Rules:
    - text: required, non-empty after trim, at most request.max_chars
      (100,000) characters. Length is counted on the text as sent.
    - voice_id: required, must resolve in the VoiceCatalog
    - speed: number, clamped to [0.5, 2.0], default 1.0
    - pitch: number (semitones), clamped to [-10, 10], default 0
    - emotion: one of EMOTIONS, default "neutro"; "neutral" is accepted
      as an alias of "neutro"

Usage:
    from aurora_tts.services.validators import validate_request

    request = validate_request(payload, catalog, config.request)
"""
from __future__ import annotations

import math
import unicodedata
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from aurora_tts.core.config import RequestConfig
from aurora_tts.core.logging import get_logger, warn
from aurora_tts.services.errors import InvalidRequest
from aurora_tts.tts.voices import VoiceCatalog

_LOG = get_logger("aurora-tts.validators")

EMOTIONS = ("neutro", "feliz", "triste", "intenso", "misterioso", "épico")

_EMOTION_ALIASES = {
    "neutral": "neutro",
    "epico": "épico",
}


@dataclass(frozen=True)
class SynthesisRequest:
    """
    A validated synthesis request.

    Attributes:
        text: Text to synthesize, as submitted.
        voice_id: Catalog voice id.
        speed: Speaking rate multiplier, clamped.
        pitch: Pitch shift in semitones, clamped.
        emotion: Canonical emotion name.
    """
    text: str
    voice_id: str
    speed: float = 1.0
    pitch: float = 0.0
    emotion: str = "neutro"


def _number(value: Any, name: str, default: float) -> float:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise InvalidRequest(f"{name} must be a number", {"field": name})
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidRequest(f"{name} must be a number", {"field": name}) from None
    if not math.isfinite(number):
        raise InvalidRequest(f"{name} must be a finite number", {"field": name})
    return number


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def validate_text(text: Any, max_chars: int) -> str:
    """
    Validate request text.

    Raises:
        InvalidRequest: Missing, blank, non-string, too long, or nothing
            to speak (no letters or digits).
    """
    if not isinstance(text, str) or not text.strip():
        raise InvalidRequest("Text is required", {"field": "text"})
    if len(text) > max_chars:
        raise InvalidRequest(
            f"Text exceeds maximum length ({len(text)} > {max_chars})",
            {"field": "text", "length": len(text), "max_chars": max_chars},
        )
    if not any(ch.isalnum() for ch in text):
        raise InvalidRequest("Text has nothing to speak", {"field": "text"})
    return text


def validate_emotion(emotion: Any, default: str = "neutro") -> str:
    """
    Canonicalize an emotion name.

    Raises:
        InvalidRequest: Unknown emotion.
    """
    if emotion is None or emotion == "":
        return default
    if not isinstance(emotion, str):
        raise InvalidRequest("emotion must be a string", {"field": "emotion"})
    key = unicodedata.normalize("NFC", emotion.strip().lower())
    key = _EMOTION_ALIASES.get(key, key)
    if key not in EMOTIONS:
        raise InvalidRequest(
            f"Unknown emotion: {emotion!r}",
            {"field": "emotion", "allowed": list(EMOTIONS)},
        )
    return key


def validate_request(
    payload: Mapping[str, Any] | SynthesisRequest,
    catalog: VoiceCatalog,
    config: Optional[RequestConfig] = None,
) -> SynthesisRequest:
    """
    Validate a submission and return a normalized SynthesisRequest.

    Args:
        payload: A SynthesisRequest, or a mapping with text, voiceId or
            voice_id, speed, pitch and emotion.
        catalog: Catalog used to check the voice.
        config: Request limits; defaults apply when omitted.

    Raises:
        InvalidRequest: If any field is invalid.
    """
    cfg = config or RequestConfig()

    if isinstance(payload, SynthesisRequest):
        data: Mapping[str, Any] = {
            "text": payload.text,
            "voice_id": payload.voice_id,
            "speed": payload.speed,
            "pitch": payload.pitch,
            "emotion": payload.emotion,
        }
    elif isinstance(payload, Mapping):
        data = payload
    else:
        raise InvalidRequest("Request body must be an object")

    text = validate_text(data.get("text"), cfg.max_chars)

    voice_id = data.get("voice_id", data.get("voiceId"))
    if not isinstance(voice_id, str) or not voice_id.strip():
        raise InvalidRequest("voiceId is required", {"field": "voiceId"})
    voice_id = voice_id.strip()
    if catalog.resolve(voice_id) is None:
        warn(_LOG, "unknown_voice", voice=voice_id)
        raise InvalidRequest(
            f"Unknown voice: {voice_id!r}",
            {"field": "voiceId", "allowed": catalog.ids()},
        )

    speed = _clamp(_number(data.get("speed"), "speed", 1.0), cfg.speed_min, cfg.speed_max)
    pitch = _clamp(_number(data.get("pitch"), "pitch", 0.0), cfg.pitch_min, cfg.pitch_max)
    emotion = validate_emotion(data.get("emotion"), cfg.default_emotion)

    return SynthesisRequest(text=text, voice_id=voice_id, speed=speed, pitch=pitch, emotion=emotion)
