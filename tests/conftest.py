"""Shared fixtures and fakes for the aurora-tts test suite."""
from __future__ import annotations

import os
import threading
import time
from typing import Callable, Dict, List, Optional

import numpy as np
import pytest

os.environ.setdefault("AURORA_TTS_ENGINE", "mock")
os.environ.setdefault("AURORA_TTS_SKIP_WARMUP", "1")
os.environ.setdefault("AURORA_TTS_NO_COLOR", "1")

from aurora_tts.core.config import Settings  # noqa: E402
from aurora_tts.tts.backend import BackendCapabilities, SynthesisBackend, SynthResult  # noqa: E402
from aurora_tts.tts.encoder import AudioEncoder, EncodeOptions, EncoderError, EncoderEvent  # noqa: E402
from aurora_tts.utils.audio import wav_bytes_from_int16  # noqa: E402


class FakeBackend(SynthesisBackend):
    """
    Backend returning a constant-valued block per chunk.

    Each chunk becomes samples_per_chunk samples of value
    ord(text[0]) * 10, so the assembled PCM shows chunk order.
    hooks maps chunk text to a callable run before returning.
    """

    name = "fake"
    capabilities = BackendCapabilities(pitch=True, emotion=False)
    max_input_chars = 1000

    def __init__(
        self,
        sample_rate: int = 8000,
        samples_per_chunk: int = 10,
        hooks: Optional[Dict[str, Callable[[], None]]] = None,
        pitch: bool = True,
    ):
        super().__init__(Settings(raw={}))
        self.sample_rate = sample_rate
        self.samples_per_chunk = samples_per_chunk
        self.hooks = hooks or {}
        self.calls: List[Dict] = []
        self._calls_lock = threading.Lock()
        if not pitch:
            self.capabilities = BackendCapabilities(pitch=False, emotion=False)

    def load(self) -> None:
        self._loaded = True

    @staticmethod
    def value_for(text: str) -> int:
        return ord(text[0]) * 10

    def synthesize(self, text, voice, speed=1.0, pitch=0.0, emotion="neutro") -> SynthResult:
        with self._calls_lock:
            self.calls.append({"text": text, "voice": voice.voice_id, "speed": speed, "pitch": pitch, "emotion": emotion})
        hook = self.hooks.get(text)
        if hook is not None:
            hook()
        samples = np.full(self.samples_per_chunk, self.value_for(text), dtype=np.int16)
        return SynthResult(wav_bytes=wav_bytes_from_int16(samples, self.sample_rate), sample_rate=self.sample_rate)


class GateBackend(FakeBackend):
    """FakeBackend that blocks every call until release() is called."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.gate = threading.Event()
        self.entered = threading.Event()

    def synthesize(self, text, voice, speed=1.0, pitch=0.0, emotion="neutro") -> SynthResult:
        self.entered.set()
        if not self.gate.wait(timeout=10):
            raise RuntimeError("gate never opened")
        return super().synthesize(text, voice, speed, pitch, emotion)

    def release(self) -> None:
        self.gate.set()


class FakeEncoder(AudioEncoder):
    """
    Encoder that returns b"ID3" + the PCM it read.

    Emits start, progress 50, progress 100 and end. fail_with makes it
    emit an error event and raise instead.
    """

    name = "fake"

    def __init__(self, fail_with: Optional[EncoderError] = None):
        self.fail_with = fail_with
        self.options: Optional[EncodeOptions] = None
        self.pcm = b""
        self.events: List[EncoderEvent] = []

    def encode(self, stream, options, on_event=None) -> bytes:
        emit = on_event or (lambda event: None)

        def record(event: EncoderEvent) -> None:
            self.events.append(event)
            emit(event)

        self.options = options
        self.pcm = stream.read()
        record(EncoderEvent("start"))
        record(EncoderEvent("progress", percent=50.0))
        if self.fail_with is not None:
            record(EncoderEvent("error", message=str(self.fail_with)))
            raise self.fail_with
        record(EncoderEvent("progress", percent=100.0))
        record(EncoderEvent("end", percent=100.0))
        return b"ID3" + self.pcm

    def decoded(self) -> np.ndarray:
        return np.frombuffer(self.pcm, dtype="<i2")


def wait_until(predicate: Callable[[], bool], timeout: float = 5.0, interval: float = 0.01) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def fake_encoder() -> FakeEncoder:
    return FakeEncoder()


@pytest.fixture(autouse=True)
def _reset_singletons():
    """Drop process-wide backend and manager between tests."""
    yield
    from aurora_tts.services.job_manager import reset_manager
    from aurora_tts.tts.backend import reset_backend

    reset_manager()
    reset_backend()
