"""
Synthesis Backend Base Class and Factory.

A backend turns one text chunk plus voice parameters into WAV audio.
The pipeline only ever calls ``synthesize``; everything else here is
lifecycle (load, health) and selection.

Backends:
    - mock: Deterministic tone generator (development, tests, CI)
    - piper: Piper ONNX voices (CPU, fast)

Selection:
    AURORA_TTS_ENGINE environment variable, else ``tts.engine`` in
    settings.yaml.

Implementing a New Backend:
    1. Create backends/<name>_backend.py
    2. Inherit from SynthesisBackend
    3. Implement load() and synthesize()
    4. Register it in _create_backend()
"""
from __future__ import annotations

import os
import threading
from dataclasses import dataclass, field
from typing import Dict, Optional

from aurora_tts.core.config import Settings
from aurora_tts.core.logging import get_logger, warn
from aurora_tts.tts.voices import VoiceParams


@dataclass(frozen=True)
class BackendCapabilities:
    """
    What a backend can render natively.

    Attributes:
        pitch: Applies pitch shifts itself. When False the encoder
            shifts pitch during transcoding.
        emotion: Varies delivery by emotion.
    """
    pitch: bool
    emotion: bool


@dataclass
class SynthResult:
    """
    Result of one backend call.

    Attributes:
        wav_bytes: PCM 16-bit mono WAV.
        sample_rate: Sample rate of wav_bytes.
        timings_s: Per-stage timing breakdown in seconds.
    """
    wav_bytes: bytes
    sample_rate: int
    timings_s: Dict[str, float] = field(default_factory=dict)


class SynthesisBackend:
    """
    Base class for synthesis backends.

    Subclasses implement load() and synthesize(). synthesize() may be
    called from several chunk worker threads at once.

    Attributes:
        name: Backend identifier ("mock", "piper").
        capabilities: BackendCapabilities.
        max_input_chars: Longest text accepted per synthesize() call.
    """

    name: str = "base"
    capabilities: BackendCapabilities = BackendCapabilities(pitch=False, emotion=False)
    max_input_chars: int = 500

    def __init__(self, settings: Settings):
        self.settings = settings
        self.logger = get_logger(f"aurora-tts.backend.{self.name}")
        self._loaded = False

    def load(self) -> None:
        raise NotImplementedError

    def is_loaded(self) -> bool:
        return bool(self._loaded)

    def warmup(self) -> None:
        """Load the backend if it is not loaded yet."""
        if not self.is_loaded():
            self.load()

    def synthesize(
        self,
        text: str,
        voice: VoiceParams,
        speed: float = 1.0,
        pitch: float = 0.0,
        emotion: str = "neutro",
    ) -> SynthResult:
        """
        Synthesize one chunk.

        Args:
            text: Chunk text, at most max_input_chars characters.
            voice: Resolved catalog voice.
            speed: Speaking rate multiplier, already clamped.
            pitch: Pitch shift in semitones; ignored when
                capabilities.pitch is False.
            emotion: Canonical emotion name.

        Returns:
            SynthResult with non-empty WAV bytes.

        Raises:
            RuntimeError: On any backend failure.
        """
        raise NotImplementedError


# =============================================================================
# Backend Factory (Singleton)
# =============================================================================

_BACKEND: Optional[SynthesisBackend] = None
_BACKEND_TYPE: Optional[str] = None
_BACKEND_LOCK = threading.Lock()


def _resolve_backend_type(settings: Settings) -> str:
    env = os.getenv("AURORA_TTS_ENGINE")
    if env:
        return env.strip().lower()
    return settings.engine_type.strip().lower()


def _create_backend(backend_type: str, settings: Settings) -> SynthesisBackend:
    """
    Create a backend instance.

    Imports are lazy so piper-tts is only needed when selected.

    Raises:
        ValueError: If backend_type is unknown.
    """
    if backend_type == "mock":
        from aurora_tts.tts.backends.mock_backend import MockBackend
        return MockBackend(settings)

    if backend_type == "piper":
        from aurora_tts.tts.backends.piper_backend import PiperBackend
        return PiperBackend(settings)

    raise ValueError(f"Unknown backend type: {backend_type}")


def get_backend(settings: Settings) -> SynthesisBackend:
    """
    Get or create the process-wide backend.

    One instance is shared by every job so model weights load once.
    A different configured type replaces the existing instance.
    """
    global _BACKEND
    global _BACKEND_TYPE

    backend_type = _resolve_backend_type(settings)

    if _BACKEND is None or _BACKEND_TYPE != backend_type:
        with _BACKEND_LOCK:
            if _BACKEND is None or _BACKEND_TYPE != backend_type:
                _BACKEND = _create_backend(backend_type, settings)
                _BACKEND_TYPE = backend_type

    if _BACKEND.name != backend_type:
        warn(get_logger("aurora-tts.backend"), "backend_name_mismatch",
             expected=backend_type, actual=_BACKEND.name)

    return _BACKEND


def reset_backend() -> None:
    """Drop the shared backend (tests)."""
    global _BACKEND
    global _BACKEND_TYPE
    with _BACKEND_LOCK:
        _BACKEND = None
        _BACKEND_TYPE = None
