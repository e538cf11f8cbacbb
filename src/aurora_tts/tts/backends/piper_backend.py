"""
Piper Backend.

Piper is a fast, CPU-only TTS engine running ONNX voice models.

Mapping of request parameters:
    - speed   -> length_scale (length_scale / speed)
    - emotion -> noise_scale / noise_w presets (variation in delivery)
    - voice   -> per-voice model, else speaker_id in the default model
    - pitch   -> not supported; the encoder shifts pitch instead

settings.yaml:
    tts:
      engine: piper
      piper:
        model_path: models/piper/pt_BR-faber-medium.onnx
        config_path: models/piper/pt_BR-faber-medium.onnx.json
        voices:                       # optional per-voice models
          fem-soft:
            model_path: models/piper/pt_BR-cadu-medium.onnx
            config_path: models/piper/pt_BR-cadu-medium.onnx.json
        length_scale: 1.0
        noise_scale: 0.667
        noise_w: 0.8
        max_input_chars: 500

Installation:
    pip install aurora-tts[piper]
    # Voice files come from HuggingFace rhasspy/piper-voices
"""
from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import numpy as np

from aurora_tts.core.config import Settings
from aurora_tts.core.logging import debug, info
from aurora_tts.tts.backend import BackendCapabilities, SynthesisBackend, SynthResult
from aurora_tts.tts.voices import VoiceParams
from aurora_tts.utils.audio import wav_bytes_from_int16
from aurora_tts.utils.timeit import timeit

# emotion -> (noise_scale factor, noise_w factor, length factor)
_EMOTION_PRESETS = {
    "neutro": (1.00, 1.00, 1.00),
    "feliz": (1.15, 1.10, 0.95),
    "triste": (0.80, 0.85, 1.12),
    "intenso": (1.25, 1.20, 0.92),
    "misterioso": (0.90, 1.25, 1.08),
    "épico": (1.20, 1.05, 1.05),
}


class PiperBackend(SynthesisBackend):
    """
    Piper backend with optional per-voice models.

    Models load once; ONNX sessions are safe to run from several chunk
    worker threads.
    """

    name = "piper"
    capabilities = BackendCapabilities(pitch=False, emotion=True)

    def __init__(self, settings: Settings):
        super().__init__(settings)
        self._cfg: Dict[str, Any] = settings.backend_options("piper")
        self.max_input_chars = int(self._cfg.get("max_input_chars", 500))
        self._default_voice = None
        self._sample_rate = settings.sample_rate
        self._voices: Dict[str, Tuple[object, int]] = {}
        self._load_lock = threading.Lock()

    def _load_voice(self, model_path: str, config_path: str, label: str):
        """Load one PiperVoice and return (voice, sample_rate)."""
        from piper import PiperVoice

        config_data = json.loads(Path(config_path).read_text(encoding="utf-8"))
        sr = int(config_data.get("audio", {}).get("sample_rate", self._sample_rate))
        debug(self.logger, "piper_config", label=label, sample_rate=sr)

        with timeit("load_model") as t:
            voice = PiperVoice.load(model_path, config_path)
        info(self.logger, "voice loaded", label=label, model=model_path, seconds=round(t.seconds, 3))
        return voice, sr

    def load(self) -> None:
        with self._load_lock:
            if self._loaded:
                return
            try:
                from piper import PiperVoice  # noqa: F401
            except ImportError as exc:
                raise RuntimeError("Piper dependency missing. Install: pip install aurora-tts[piper]") from exc

            model_path = self._cfg.get("model_path")
            config_path = self._cfg.get("config_path")
            if not model_path or not config_path:
                raise RuntimeError("Piper config requires model_path and config_path.")
            self._default_voice, self._sample_rate = self._load_voice(model_path, config_path, label="default")

            for voice_id, vcfg in (self._cfg.get("voices", {}) or {}).items():
                mp = vcfg.get("model_path")
                cp = vcfg.get("config_path")
                if mp and cp and Path(mp).exists():
                    self._voices[voice_id] = self._load_voice(mp, cp, label=voice_id)

            self._loaded = True
            info(self.logger, "piper ready", voices=list(self._voices) or ["default"])

    def _resolve_voice(self, voice: VoiceParams) -> Tuple[object, int, Optional[int]]:
        """Return (piper_voice, sample_rate, speaker_id)."""
        if voice.voice_id in self._voices:
            piper_voice, sr = self._voices[voice.voice_id]
            return piper_voice, sr, None
        speaker_id = self._cfg.get("speaker_id")
        if speaker_id is None:
            speaker_id = voice.speaker_id
        return self._default_voice, self._sample_rate, int(speaker_id)

    def _syn_config(self, speaker_id: Optional[int], speed: float, emotion: str):
        from piper.config import SynthesisConfig

        noise_f, noise_w_f, length_f = _EMOTION_PRESETS.get(emotion, _EMOTION_PRESETS["neutro"])
        num_speakers = getattr(getattr(self._default_voice, "config", None), "num_speakers", 1)
        return SynthesisConfig(
            speaker_id=speaker_id if speaker_id is not None and num_speakers > 1 else None,
            length_scale=float(self._cfg.get("length_scale", 1.0)) * length_f / max(speed, 1e-3),
            noise_scale=float(self._cfg.get("noise_scale", 0.667)) * noise_f,
            noise_w_scale=float(self._cfg.get("noise_w", 0.8)) * noise_w_f,
        )

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

        piper_voice, sample_rate, speaker_id = self._resolve_voice(voice)
        if piper_voice is None:
            raise RuntimeError("Piper voice not loaded")

        debug(self.logger, "piper_synth_start", text_len=len(text), voice=voice.voice_id, emotion=emotion)
        syn_config = self._syn_config(speaker_id, speed, emotion)

        with timeit("synth") as t_synth:
            audio_chunks = list(piper_voice.synthesize(text, syn_config))
            audio = (
                np.concatenate([chunk.audio_int16_array for chunk in audio_chunks])
                if audio_chunks else np.array([], dtype=np.int16)
            )

        if audio.size == 0:
            raise RuntimeError(f"Piper returned empty audio for text: {text[:80]!r}")

        return SynthResult(
            wav_bytes=wav_bytes_from_int16(audio, sample_rate),
            sample_rate=sample_rate,
            timings_s={"synth": t_synth.seconds},
        )
