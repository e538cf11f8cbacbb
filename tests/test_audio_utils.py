"""Tests for WAV/PCM helpers and the timing context manager."""
from __future__ import annotations

import numpy as np
import pytest

from aurora_tts.utils.audio import (
    concat_with_gaps,
    duration_seconds,
    silence,
    wav_bytes_from_float32,
    wav_bytes_from_int16,
    wav_bytes_to_pcm16,
)
from aurora_tts.utils.timeit import timeit


class TestWavEncoding:
    def test_float32_wav_header(self):
        b = wav_bytes_from_float32(np.zeros(100, dtype=np.float32), 22050)
        assert b[:4] == b"RIFF"
        assert b[8:12] == b"WAVE"
        assert len(b) > 44

    def test_int16_samples_preserved(self):
        samples = np.array([0, 1, -1, 32767, -32768], dtype=np.int16)
        decoded, sr = wav_bytes_to_pcm16(wav_bytes_from_int16(samples, 8000))
        assert sr == 8000
        assert decoded.dtype == np.int16
        assert np.array_equal(decoded, samples)

    def test_multidimensional_flattened(self):
        b = wav_bytes_from_float32(np.zeros((1, 50), dtype=np.float32), 16000)
        decoded, _ = wav_bytes_to_pcm16(b)
        assert decoded.shape == (50,)

    def test_unreadable_bytes(self):
        with pytest.raises(RuntimeError):
            wav_bytes_to_pcm16(b"not audio at all")


class TestJoining:
    def test_silence_length(self):
        assert silence(120, 22050).size == 2646
        assert silence(0, 22050).size == 0

    def test_gaps_only_between_parts(self):
        parts = [np.ones(3, dtype=np.int16), np.full(3, 2, dtype=np.int16)]
        joined = concat_with_gaps(parts, 1000, 2)
        assert joined.tolist() == [1, 1, 1, 0, 0, 2, 2, 2]

    def test_single_part_has_no_gap(self):
        joined = concat_with_gaps([np.ones(4, dtype=np.int16)], 1000, 50)
        assert joined.tolist() == [1, 1, 1, 1]

    def test_no_parts(self):
        assert concat_with_gaps([], 1000, 50).size == 0

    def test_duration(self):
        assert duration_seconds(22050, 22050) == 1.0
        assert duration_seconds(100, 0) == 0.0


class TestTimeit:
    def test_records_seconds(self):
        with timeit("work") as t:
            sum(range(1000))
        assert t.seconds >= 0.0

    def test_seconds_before_exit(self):
        with timeit("work") as t:
            assert t.seconds == -1.0
