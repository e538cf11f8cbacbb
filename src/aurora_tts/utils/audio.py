"""
Audio Conversion Utilities.

Internal audio format between synthesis and encoding:
    - PCM 16-bit signed little-endian
    - Mono
    - Sample rate set by the backend (22050 for Piper medium voices)

Backends return WAV bytes; the pipeline decodes each chunk to an int16
array, joins the chunks with short silences and hands raw PCM to the
encoder.

Dependencies:
    - numpy: Array operations
    - soundfile: WAV reading/writing (libsndfile)
"""
from __future__ import annotations

import io
from typing import Sequence

import numpy as np
import soundfile as sf


def wav_bytes_from_float32(waveform: np.ndarray, sample_rate: int) -> bytes:
    """
    Encode a float32 waveform in [-1, 1] as a PCM 16-bit mono WAV.

    Multi-dimensional input is flattened to mono.
    """
    wav = np.asarray(waveform, dtype=np.float32)
    if wav.ndim > 1:
        wav = wav.reshape(-1)

    buf = io.BytesIO()
    sf.write(buf, wav, sample_rate, format="WAV", subtype="PCM_16")
    return buf.getvalue()


def wav_bytes_from_int16(samples: np.ndarray, sample_rate: int) -> bytes:
    """Encode int16 samples as a PCM 16-bit mono WAV."""
    buf = io.BytesIO()
    sf.write(buf, np.asarray(samples, dtype=np.int16).reshape(-1), sample_rate, format="WAV", subtype="PCM_16")
    return buf.getvalue()


def wav_bytes_to_pcm16(wav_bytes: bytes) -> tuple[np.ndarray, int]:
    """
    Decode WAV bytes to int16 mono samples.

    Stereo input is averaged to mono.

    Returns:
        Tuple of (samples, sample_rate).

    Raises:
        soundfile.LibsndfileError (a RuntimeError) if the bytes are not
        a readable audio file.
    """
    buf = io.BytesIO(wav_bytes)
    wav, sr = sf.read(buf, dtype="int16", always_2d=False)
    if wav.ndim > 1:
        wav = wav.mean(axis=1).astype(np.int16)
    return np.asarray(wav, dtype=np.int16), int(sr)


def silence(duration_ms: int, sample_rate: int) -> np.ndarray:
    """Return duration_ms of int16 silence."""
    n = int(round(sample_rate * duration_ms / 1000.0))
    return np.zeros(max(0, n), dtype=np.int16)


def concat_with_gaps(parts: Sequence[np.ndarray], sample_rate: int, gap_ms: int) -> np.ndarray:
    """
    Join int16 chunks in order with gap_ms of silence between them.

    No silence is added before the first or after the last chunk.
    """
    if not parts:
        return np.zeros(0, dtype=np.int16)

    gap = silence(gap_ms, sample_rate)
    pieces: list[np.ndarray] = []
    for i, part in enumerate(parts):
        if i > 0 and gap.size:
            pieces.append(gap)
        pieces.append(np.asarray(part, dtype=np.int16))
    return np.concatenate(pieces)


def duration_seconds(num_samples: int, sample_rate: int) -> float:
    """Playback length of num_samples mono samples."""
    if sample_rate <= 0:
        return 0.0
    return num_samples / float(sample_rate)
