"""
Mock Backend.

Renders each chunk as a short, deterministic tone instead of speech so
the full pipeline (chunking, ordering, encoding, download) runs without
model files. Output length follows the text length and speed, so
durations behave like real speech:

    "Hello world." (12 chars) at speed 1.0 -> 1.0 s

Voice gender sets the base frequency, pitch shifts it by semitones and
emotion changes loudness and vibrato. Same input, same bytes.

settings.yaml:
    tts:
      engine: mock
      mock:
        sample_rate: 22050
        seconds_per_char: 0.0833
"""
from __future__ import annotations

import numpy as np

from aurora_tts.core.config import Settings
from aurora_tts.core.logging import debug, info
from aurora_tts.tts.backend import BackendCapabilities, SynthesisBackend, SynthResult
from aurora_tts.tts.voices import VoiceParams
from aurora_tts.utils.audio import wav_bytes_from_float32
from aurora_tts.utils.timeit import timeit

_BASE_HZ = {"masculine": 110.0, "feminine": 220.0}

# emotion -> (amplitude, vibrato_hz, vibrato_depth)
_EMOTION_SHAPES = {
    "neutro": (0.30, 0.0, 0.000),
    "feliz": (0.40, 6.0, 0.020),
    "triste": (0.20, 2.0, 0.010),
    "intenso": (0.55, 8.0, 0.030),
    "misterioso": (0.25, 3.0, 0.040),
    "épico": (0.60, 5.0, 0.025),
}

_FADE_S = 0.01


class MockBackend(SynthesisBackend):
    name = "mock"
    capabilities = BackendCapabilities(pitch=True, emotion=True)
    max_input_chars = 1000

    def __init__(self, settings: Settings):
        super().__init__(settings)
        cfg = settings.backend_options("mock")
        self.sample_rate = int(cfg.get("sample_rate", settings.sample_rate))
        self.seconds_per_char = float(cfg.get("seconds_per_char", 1.0 / 12.0))

    def load(self) -> None:
        if self._loaded:
            return
        self._loaded = True
        info(self.logger, "mock backend ready", sample_rate=self.sample_rate)

    def render(self, text: str, voice: VoiceParams, speed: float, pitch: float, emotion: str) -> np.ndarray:
        """Float32 waveform for the given parameters."""
        seconds = len(text) * self.seconds_per_char / max(speed, 1e-3)
        n = max(1, int(round(seconds * self.sample_rate)))
        t = np.arange(n, dtype=np.float64) / self.sample_rate

        freq = _BASE_HZ.get(voice.gender, 165.0) * (2.0 ** (pitch / 12.0))
        amp, vib_hz, vib_depth = _EMOTION_SHAPES.get(emotion, _EMOTION_SHAPES["neutro"])
        inst_freq = freq * (1.0 + vib_depth * np.sin(2 * np.pi * vib_hz * t))
        phase = 2 * np.pi * np.cumsum(inst_freq) / self.sample_rate
        wave = amp * np.sin(phase)

        fade = min(n // 2, int(_FADE_S * self.sample_rate))
        if fade > 0:
            ramp = np.linspace(0.0, 1.0, fade)
            wave[:fade] *= ramp
            wave[-fade:] *= ramp[::-1]
        return wave.astype(np.float32)

    def synthesize(
        self,
        text: str,
        voice: VoiceParams,
        speed: float = 1.0,
        pitch: float = 0.0,
        emotion: str = "neutro",
    ) -> SynthResult:
        if not self._loaded:
            self.load()
        if not text.strip():
            raise RuntimeError("mock backend got empty text")

        debug(self.logger, "mock_synth_start", text_len=len(text), voice=voice.voice_id)
        with timeit("synth") as t:
            wav_bytes = wav_bytes_from_float32(self.render(text, voice, speed, pitch, emotion), self.sample_rate)
        return SynthResult(wav_bytes=wav_bytes, sample_rate=self.sample_rate, timings_s={"synth": t.seconds})
