"""Tests for request validation."""
from __future__ import annotations

import pytest

from aurora_tts.core.config import RequestConfig
from aurora_tts.services.errors import ErrorCode, InvalidRequest
from aurora_tts.services.validators import (
    EMOTIONS,
    SynthesisRequest,
    validate_emotion,
    validate_request,
    validate_text,
)
from aurora_tts.tts.voices import VoiceCatalog


@pytest.fixture
def catalog() -> VoiceCatalog:
    return VoiceCatalog()


class TestValidateText:
    def test_valid(self):
        assert validate_text("Olá.", 10) == "Olá."

    @pytest.mark.parametrize("text", [None, "", "   \n", 42])
    def test_missing_or_blank(self, text):
        with pytest.raises(InvalidRequest) as exc_info:
            validate_text(text, 10)
        assert exc_info.value.code == ErrorCode.INVALID_REQUEST
        assert exc_info.value.details["field"] == "text"

    @pytest.mark.parametrize("text", ["...", " ?! ", "\u2026 \u2014"])
    def test_punctuation_only(self, text):
        """Text with no letters or digits is rejected before a job exists."""
        with pytest.raises(InvalidRequest, match="nothing to speak"):
            validate_text(text, 10)

    def test_digits_are_speakable(self):
        assert validate_text("42!", 10) == "42!"

    def test_limit_is_inclusive(self):
        assert validate_text("a" * 100_000, 100_000)
        with pytest.raises(InvalidRequest, match="maximum length"):
            validate_text("a" * 100_001, 100_000)


class TestValidateEmotion:
    def test_all_emotions_accepted(self):
        for emotion in EMOTIONS:
            assert validate_emotion(emotion) == emotion

    def test_aliases_and_case(self):
        assert validate_emotion("Neutral") == "neutro"
        assert validate_emotion("epico") == "épico"
        assert validate_emotion(" FELIZ ") == "feliz"

    def test_default(self):
        assert validate_emotion(None) == "neutro"
        assert validate_emotion("") == "neutro"

    def test_unknown(self):
        with pytest.raises(InvalidRequest) as exc_info:
            validate_emotion("raiva")
        assert exc_info.value.details["allowed"] == list(EMOTIONS)


class TestValidateRequest:
    """validate_request() turns a payload into a SynthesisRequest."""

    def test_minimal_payload(self, catalog):
        req = validate_request({"text": "Olá.", "voiceId": "fem-soft"}, catalog)
        assert req == SynthesisRequest(text="Olá.", voice_id="fem-soft", speed=1.0, pitch=0.0, emotion="neutro")

    def test_snake_case_voice_id(self, catalog):
        assert validate_request({"text": "Olá.", "voice_id": "masc-deep"}, catalog).voice_id == "masc-deep"

    def test_unknown_voice(self, catalog):
        with pytest.raises(InvalidRequest) as exc_info:
            validate_request({"text": "Olá.", "voiceId": "robot"}, catalog)
        assert exc_info.value.details["field"] == "voiceId"
        assert "fem-soft" in exc_info.value.details["allowed"]

    def test_missing_voice(self, catalog):
        with pytest.raises(InvalidRequest, match="voiceId"):
            validate_request({"text": "Olá."}, catalog)

    def test_speed_and_pitch_clamped(self, catalog):
        req = validate_request({"text": "Olá.", "voiceId": "fem-soft", "speed": 5, "pitch": -30}, catalog)
        assert req.speed == 2.0
        assert req.pitch == -10.0

        req = validate_request({"text": "Olá.", "voiceId": "fem-soft", "speed": 0.1, "pitch": 30}, catalog)
        assert req.speed == 0.5
        assert req.pitch == 10.0

    def test_numeric_strings_accepted(self, catalog):
        req = validate_request({"text": "Olá.", "voiceId": "fem-soft", "speed": "1.5"}, catalog)
        assert req.speed == 1.5

    @pytest.mark.parametrize("value", ["fast", True, float("nan"), float("inf"), [1]])
    def test_bad_numbers_rejected(self, catalog, value):
        with pytest.raises(InvalidRequest):
            validate_request({"text": "Olá.", "voiceId": "fem-soft", "speed": value}, catalog)

    def test_custom_limits(self, catalog):
        config = RequestConfig(max_chars=5, speed_max=1.2)
        with pytest.raises(InvalidRequest):
            validate_request({"text": "Texto longo", "voiceId": "fem-soft"}, catalog, config)
        req = validate_request({"text": "Oi.", "voiceId": "fem-soft", "speed": 2}, catalog, config)
        assert req.speed == 1.2

    def test_request_object_revalidated(self, catalog):
        req = validate_request(SynthesisRequest(text="Oi.", voice_id="fem-soft", speed=9.0, emotion="Neutral"), catalog)
        assert req.speed == 2.0
        assert req.emotion == "neutro"

    def test_non_mapping_rejected(self, catalog):
        with pytest.raises(InvalidRequest):
            validate_request(["Olá."], catalog)
