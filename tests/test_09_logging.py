"""Tests for the logging layer: levels, console output, JSONL file."""
from __future__ import annotations

import io
import json
import logging
import os
from unittest.mock import patch

import pytest


@pytest.fixture(autouse=True)
def restore_logging():
    """Put logging back to NORMAL on the real stdout after each test."""
    yield
    from aurora_tts.core.logging import configure_logging, set_request_id

    set_request_id("-")
    configure_logging(level=2, force=True)


class TestLevelCoercion:
    """coerce_level() accepts ints, names and stdlib levels."""

    def test_numeric(self):
        from aurora_tts.core.logging import LogLevel, coerce_level

        assert coerce_level(1) == LogLevel.MINIMAL
        assert coerce_level(4) == LogLevel.DEBUG
        assert coerce_level("3") == LogLevel.VERBOSE

    def test_names(self):
        from aurora_tts.core.logging import LogLevel, coerce_level

        assert coerce_level("minimal") == LogLevel.MINIMAL
        assert coerce_level("VERBOSE") == LogLevel.VERBOSE
        assert coerce_level("INFO") == LogLevel.NORMAL
        assert coerce_level("WARNING") == LogLevel.MINIMAL
        assert coerce_level("TRACE") == LogLevel.DEBUG

    def test_stdlib_levels(self):
        from aurora_tts.core.logging import LogLevel, coerce_level

        assert coerce_level(logging.WARNING) == LogLevel.MINIMAL
        assert coerce_level(logging.INFO) == LogLevel.NORMAL
        assert coerce_level(logging.DEBUG) == LogLevel.DEBUG

    def test_invalid_defaults_to_normal(self):
        from aurora_tts.core.logging import LogLevel, coerce_level

        assert coerce_level("loud") == LogLevel.NORMAL
        assert coerce_level(None) == LogLevel.NORMAL


class TestLevelFiltering:
    """Messages above the configured level are suppressed."""

    def _capture(self, level, emit):
        from aurora_tts.core.logging import configure_logging, get_logger

        captured = io.StringIO()
        with patch("sys.stdout", captured):
            configure_logging(level=level, force=True)
            emit(get_logger(f"test_level_{level}"))
        return captured.getvalue()

    def test_minimal(self):
        from aurora_tts.core.logging import debug, fail, info

        def emit(log):
            info(log, "info message")
            fail(log, "fail message")
            debug(log, "debug message")

        output = self._capture(1, emit)
        assert "fail message" in output
        assert "info message" not in output
        assert "debug message" not in output

    def test_normal(self):
        from aurora_tts.core.logging import info, success, verbose

        def emit(log):
            info(log, "info message")
            success(log, "success message")
            verbose(log, "verbose message")

        output = self._capture(2, emit)
        assert "info message" in output
        assert "success message" in output
        assert "verbose message" not in output

    def test_verbose(self):
        from aurora_tts.core.logging import debug, verbose

        def emit(log):
            verbose(log, "verbose message")
            debug(log, "debug message")

        output = self._capture(3, emit)
        assert "verbose message" in output
        assert "debug message" not in output

    def test_debug(self):
        from aurora_tts.core.logging import debug, warn

        def emit(log):
            warn(log, "warn message")
            debug(log, "debug message")

        output = self._capture(4, emit)
        assert "warn message" in output
        assert "debug message" in output

    def test_env_override(self):
        from aurora_tts.core.logging import LogLevel, configure_logging, get_level, get_level_name

        with patch.dict(os.environ, {"AURORA_TTS_LOG_LEVEL": "3"}):
            configure_logging(force=True)
            assert get_level() == LogLevel.VERBOSE
            assert get_level_name() == "VERBOSE"


class TestConsoleOutput:
    def test_request_id_and_fields(self):
        from aurora_tts.core.logging import configure_logging, get_logger, info, set_request_id

        captured = io.StringIO()
        with patch("sys.stdout", captured):
            configure_logging(level=2, force=True)
            set_request_id("job-123")
            info(get_logger("test_console"), "job_started", voice="fem-soft", seconds=0.05)

        output = captured.getvalue()
        assert "(job-123)" in output
        assert "job_started" in output
        assert "voice=fem-soft" in output
        assert "0.050s" in output

    def test_no_color_env(self):
        from aurora_tts.core.logging import supports_color

        with patch.dict(os.environ, {"AURORA_TTS_NO_COLOR": "1"}):
            assert supports_color() is False

    def test_standard_no_color_env(self):
        from aurora_tts.core.logging import supports_color

        env = {k: v for k, v in os.environ.items() if k != "AURORA_TTS_NO_COLOR"}
        env["NO_COLOR"] = "1"
        with patch.dict(os.environ, env, clear=True):
            assert supports_color() is False

    def test_colors_applied(self):
        from aurora_tts.core.logging import ColoredConsoleFormatter, Colors

        record = logging.LogRecord("t", logging.INFO, __file__, 1, "done", None, None)
        record.tag = "SUCCESS"
        record.request_id = "-"
        record.extra_data = {"status": "completed"}

        colored = ColoredConsoleFormatter(use_colors=True).format(record)
        plain = ColoredConsoleFormatter(use_colors=False).format(record)

        assert Colors.BRIGHT_GREEN in colored
        assert Colors.RESET in colored
        assert "\033[" not in plain
        assert "status=completed" in plain


class TestJsonlOutput:
    def test_formatter_fields(self):
        from aurora_tts.core.logging import JsonlFormatter

        record = logging.LogRecord("t", logging.INFO, __file__, 1, "chunk_done", None, None)
        record.tag = "INFO"
        record.numeric_level = 3
        record.request_id = "job-9"
        record.seconds = 0.25
        record.extra_data = {"index": 2}

        payload = json.loads(JsonlFormatter().format(record))
        assert payload["message"] == "chunk_done"
        assert payload["level"] == 3
        assert payload["request_id"] == "job-9"
        assert payload["seconds"] == 0.25
        assert payload["extra"] == {"index": 2}
        assert "event" not in payload

    def test_file_persistence(self, tmp_path, monkeypatch):
        from aurora_tts.core.logging import configure_logging, get_logger, info, set_request_id

        monkeypatch.setenv("AURORA_TTS_LOG_DIR", str(tmp_path))
        monkeypatch.setenv("AURORA_TTS_JSONL_FILE", "test.jsonl")

        configure_logging(force=True)
        set_request_id("rid-1")
        info(get_logger("test_jsonl"), "hello", event="logging_test", foo="bar")
        for handler in logging.getLogger().handlers:
            handler.flush()

        line = (tmp_path / "test.jsonl").read_text(encoding="utf-8").strip().splitlines()[-1]
        payload = json.loads(line)
        assert payload["message"] == "hello"
        assert payload["request_id"] == "rid-1"
        assert payload["event"] == "logging_test"
        assert payload["extra"]["foo"] == "bar"

        for handler in logging.getLogger().handlers:
            handler.close()
