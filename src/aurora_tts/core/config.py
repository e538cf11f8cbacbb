"""
Configuration Management for aurora-tts.

This module provides centralized configuration handling with:
    - Default values (Defaults class)
    - Dataclass-based configuration sections
    - YAML file loading with environment variable overrides
    - Validation with meaningful error messages

Configuration Hierarchy (highest priority first):
    1. Environment variables (AURORA_TTS_ENGINE, AURORA_TTS_FFMPEG, ...)
    2. YAML config file (config/settings.yaml)
    3. Defaults class values

Example settings.yaml:
    tts:
      engine: piper

    jobs:
      max_concurrent: 2
      ttl_seconds: 3600

    encoder:
      bitrate: 320k
      normalize: true

    logging:
      level: 2  # NORMAL
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict
import os
import yaml


class ConfigValidationError(Exception):
    """
    Raised when configuration validation fails.

    Thrown when a configuration value is outside acceptable bounds
    or of the wrong type.
    """
    pass


class Defaults:
    """
    Centralized default configuration values.

    Every default lives here so the config sections, the validators and
    the tests agree on the same numbers.

    Sections:
        - Request: Submission limits and parameter ranges
        - Chunking: Text splitting for the synthesis backend
        - Synthesis: Backend worker pool and call timeout
        - Jobs: Job executor and retention policy
        - Encoder: MP3 transcoding
        - Logging: Log level and formatting
        - TTS: Backend selection
    """

    # ─────────────────────────────────────────────────────────────────────────
    # Request Limits
    # ─────────────────────────────────────────────────────────────────────────
    REQUEST_MAX_CHARS = 100_000         # Longest accepted script
    REQUEST_SPEED_MIN = 0.5
    REQUEST_SPEED_MAX = 2.0
    REQUEST_PITCH_MIN = -10.0           # Semitones
    REQUEST_PITCH_MAX = 10.0
    REQUEST_DEFAULT_EMOTION = "neutro"

    # ─────────────────────────────────────────────────────────────────────────
    # Text Chunking
    # ─────────────────────────────────────────────────────────────────────────
    CHUNKING_MAX_CHARS = 400            # Upper bound per backend call
    CHUNKING_GAP_MS = 120               # Silence inserted between chunks

    # ─────────────────────────────────────────────────────────────────────────
    # Synthesis Worker Pool
    # ─────────────────────────────────────────────────────────────────────────
    SYNTHESIS_CHUNK_WORKERS = 2         # Parallel backend calls per job
    SYNTHESIS_TIMEOUT_S = 60.0          # Per backend call

    # ─────────────────────────────────────────────────────────────────────────
    # Job Executor and Retention
    # ─────────────────────────────────────────────────────────────────────────
    JOBS_MAX_CONCURRENT = 2             # Jobs processed at once
    JOBS_TTL_SECONDS = 3600             # Terminal job lifetime (1 hour)
    JOBS_MAX_RETAINED = 256             # Terminal jobs kept in memory

    # ─────────────────────────────────────────────────────────────────────────
    # Encoder
    # ─────────────────────────────────────────────────────────────────────────
    ENCODER_FFMPEG_PATH = "ffmpeg"
    ENCODER_BITRATE = "320k"            # Constant bitrate MP3
    ENCODER_SAMPLE_RATE = 44100         # MPEG-1 rate, required for 320k
    ENCODER_NORMALIZE = True            # EBU R128 loudness normalization
    ENCODER_TIMEOUT_S = 300.0

    # ─────────────────────────────────────────────────────────────────────────
    # Logging
    # ─────────────────────────────────────────────────────────────────────────
    LOGGING_TEXT_PREVIEW_CHARS = 80
    LOGGING_LEVEL = 2                   # 1=MINIMAL, 2=NORMAL, 3=VERBOSE, 4=DEBUG

    # ─────────────────────────────────────────────────────────────────────────
    # TTS Backend
    # ─────────────────────────────────────────────────────────────────────────
    TTS_ENGINE = "piper"
    TTS_SAMPLE_RATE = 22050


@dataclass
class RequestConfig:
    """
    Submission limits.

    Speed and pitch outside their ranges are clamped, not rejected;
    text longer than max_chars is rejected.
    """
    max_chars: int = Defaults.REQUEST_MAX_CHARS
    speed_min: float = Defaults.REQUEST_SPEED_MIN
    speed_max: float = Defaults.REQUEST_SPEED_MAX
    pitch_min: float = Defaults.REQUEST_PITCH_MIN
    pitch_max: float = Defaults.REQUEST_PITCH_MAX
    default_emotion: str = Defaults.REQUEST_DEFAULT_EMOTION


@dataclass
class ChunkingConfig:
    """
    Text chunking configuration.

    The effective chunk size is the smaller of max_chars and the
    backend's own per-call input limit.
    """
    max_chars: int = Defaults.CHUNKING_MAX_CHARS
    gap_ms: int = Defaults.CHUNKING_GAP_MS


@dataclass
class SynthesisConfig:
    """Per-job backend worker pool and call timeout."""
    chunk_workers: int = Defaults.SYNTHESIS_CHUNK_WORKERS
    timeout_s: float = Defaults.SYNTHESIS_TIMEOUT_S


@dataclass
class JobsConfig:
    """
    Job executor and in-memory retention.

    Only terminal jobs are evicted: after ttl_seconds, or oldest-first
    once more than max_retained of them are held.
    """
    max_concurrent: int = Defaults.JOBS_MAX_CONCURRENT
    ttl_seconds: int = Defaults.JOBS_TTL_SECONDS
    max_retained: int = Defaults.JOBS_MAX_RETAINED


@dataclass
class EncoderConfig:
    """MP3 encoder configuration."""
    ffmpeg_path: str = Defaults.ENCODER_FFMPEG_PATH
    bitrate: str = Defaults.ENCODER_BITRATE
    sample_rate: int = Defaults.ENCODER_SAMPLE_RATE
    normalize: bool = Defaults.ENCODER_NORMALIZE
    timeout_s: float = Defaults.ENCODER_TIMEOUT_S


@dataclass
class LoggingConfig:
    """
    Logging configuration.

    Log levels:
        1 = MINIMAL: Startup, shutdown, critical errors only
        2 = NORMAL: Job lifecycle (default)
        3 = VERBOSE: Per-stage timing, per-chunk progress
        4 = DEBUG: Internal state, full tracing
    """
    text_preview_chars: int = Defaults.LOGGING_TEXT_PREVIEW_CHARS
    level: int = Defaults.LOGGING_LEVEL


@dataclass
class ServiceConfig:
    """
    Validated configuration for the job service.

    Built from Settings; gives typed access to every section.

    Usage:
        settings = load_settings("config/settings.yaml")
        config = ServiceConfig.from_settings(settings)
        print(config.jobs.max_concurrent)
    """
    request: RequestConfig = field(default_factory=RequestConfig)
    chunking: ChunkingConfig = field(default_factory=ChunkingConfig)
    synthesis: SynthesisConfig = field(default_factory=SynthesisConfig)
    jobs: JobsConfig = field(default_factory=JobsConfig)
    encoder: EncoderConfig = field(default_factory=EncoderConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "ServiceConfig":
        """
        Create ServiceConfig from Settings with validation.

        Args:
            settings: Raw Settings object loaded from YAML.

        Returns:
            Validated ServiceConfig instance.

        Raises:
            ConfigValidationError: If any value fails validation.
        """
        raw = settings.raw

        # ─────────────────────────────────────────────────────────────────────
        # Request limits
        # ─────────────────────────────────────────────────────────────────────
        request_raw = raw.get("request", {}) or {}
        request = RequestConfig(
            max_chars=int(request_raw.get("max_chars", Defaults.REQUEST_MAX_CHARS)),
            speed_min=float(request_raw.get("speed_min", Defaults.REQUEST_SPEED_MIN)),
            speed_max=float(request_raw.get("speed_max", Defaults.REQUEST_SPEED_MAX)),
            pitch_min=float(request_raw.get("pitch_min", Defaults.REQUEST_PITCH_MIN)),
            pitch_max=float(request_raw.get("pitch_max", Defaults.REQUEST_PITCH_MAX)),
            default_emotion=str(request_raw.get("default_emotion", Defaults.REQUEST_DEFAULT_EMOTION)),
        )
        cls._validate_positive("request.max_chars", request.max_chars)
        cls._validate_positive("request.speed_min", request.speed_min)
        cls._validate_ordered("request.speed", request.speed_min, request.speed_max)
        cls._validate_ordered("request.pitch", request.pitch_min, request.pitch_max)

        # ─────────────────────────────────────────────────────────────────────
        # Chunking
        # ─────────────────────────────────────────────────────────────────────
        chunking_raw = raw.get("chunking", {}) or {}
        chunking = ChunkingConfig(
            max_chars=int(chunking_raw.get("max_chars", Defaults.CHUNKING_MAX_CHARS)),
            gap_ms=int(chunking_raw.get("gap_ms", Defaults.CHUNKING_GAP_MS)),
        )
        cls._validate_positive("chunking.max_chars", chunking.max_chars)
        cls._validate_non_negative("chunking.gap_ms", chunking.gap_ms)

        # ─────────────────────────────────────────────────────────────────────
        # Synthesis worker pool
        # ─────────────────────────────────────────────────────────────────────
        synthesis_raw = raw.get("synthesis", {}) or {}
        synthesis = SynthesisConfig(
            chunk_workers=int(synthesis_raw.get("chunk_workers", Defaults.SYNTHESIS_CHUNK_WORKERS)),
            timeout_s=float(synthesis_raw.get("timeout_s", Defaults.SYNTHESIS_TIMEOUT_S)),
        )
        cls._validate_positive("synthesis.chunk_workers", synthesis.chunk_workers)
        cls._validate_positive("synthesis.timeout_s", synthesis.timeout_s)

        # ─────────────────────────────────────────────────────────────────────
        # Jobs
        # ─────────────────────────────────────────────────────────────────────
        jobs_raw = raw.get("jobs", {}) or {}
        jobs = JobsConfig(
            max_concurrent=int(jobs_raw.get("max_concurrent", Defaults.JOBS_MAX_CONCURRENT)),
            ttl_seconds=int(jobs_raw.get("ttl_seconds", Defaults.JOBS_TTL_SECONDS)),
            max_retained=int(jobs_raw.get("max_retained", Defaults.JOBS_MAX_RETAINED)),
        )
        cls._validate_positive("jobs.max_concurrent", jobs.max_concurrent)
        cls._validate_positive("jobs.ttl_seconds", jobs.ttl_seconds)
        cls._validate_positive("jobs.max_retained", jobs.max_retained)

        # ─────────────────────────────────────────────────────────────────────
        # Encoder (with environment variable override for the binary)
        # ─────────────────────────────────────────────────────────────────────
        encoder_raw = raw.get("encoder", {}) or {}
        encoder = EncoderConfig(
            ffmpeg_path=os.getenv("AURORA_TTS_FFMPEG")
                or str(encoder_raw.get("ffmpeg_path", Defaults.ENCODER_FFMPEG_PATH)),
            bitrate=str(encoder_raw.get("bitrate", Defaults.ENCODER_BITRATE)),
            sample_rate=int(encoder_raw.get("sample_rate", Defaults.ENCODER_SAMPLE_RATE)),
            normalize=bool(encoder_raw.get("normalize", Defaults.ENCODER_NORMALIZE)),
            timeout_s=float(encoder_raw.get("timeout_s", Defaults.ENCODER_TIMEOUT_S)),
        )
        cls._validate_positive("encoder.timeout_s", encoder.timeout_s)
        cls._validate_positive("encoder.sample_rate", encoder.sample_rate)
        if not encoder.bitrate.rstrip("kK").isdigit():
            raise ConfigValidationError(f"encoder.bitrate must look like '320k', got {encoder.bitrate!r}")

        # ─────────────────────────────────────────────────────────────────────
        # Logging
        # ─────────────────────────────────────────────────────────────────────
        logging_raw = raw.get("logging", {}) or {}
        log_level_raw = logging_raw.get("level", Defaults.LOGGING_LEVEL)

        # Handle string log levels (e.g., "INFO", "DEBUG")
        if isinstance(log_level_raw, str):
            level_map = {
                "MINIMAL": 1, "1": 1,
                "NORMAL": 2, "INFO": 2, "2": 2,
                "VERBOSE": 3, "3": 3,
                "DEBUG": 4, "TRACE": 4, "4": 4,
            }
            log_level = level_map.get(log_level_raw.upper(), Defaults.LOGGING_LEVEL)
        else:
            log_level = int(log_level_raw)

        logging_cfg = LoggingConfig(
            text_preview_chars=int(logging_raw.get("text_preview_chars", Defaults.LOGGING_TEXT_PREVIEW_CHARS)),
            level=log_level,
        )
        cls._validate_non_negative("logging.text_preview_chars", logging_cfg.text_preview_chars)
        cls._validate_range("logging.level", logging_cfg.level, 1, 4)

        return cls(
            request=request,
            chunking=chunking,
            synthesis=synthesis,
            jobs=jobs,
            encoder=encoder,
            logging=logging_cfg,
        )

    @staticmethod
    def _validate_positive(name: str, value: int | float) -> None:
        """Validate that a value is positive (> 0)."""
        if value <= 0:
            raise ConfigValidationError(f"{name} must be positive, got {value}")

    @staticmethod
    def _validate_non_negative(name: str, value: int | float) -> None:
        """Validate that a value is non-negative (>= 0)."""
        if value < 0:
            raise ConfigValidationError(f"{name} must be non-negative, got {value}")

    @staticmethod
    def _validate_range(name: str, value: int | float, min_val: int | float, max_val: int | float) -> None:
        """Validate that a value is within a range [min_val, max_val]."""
        if not (min_val <= value <= max_val):
            raise ConfigValidationError(f"{name} must be between {min_val} and {max_val}, got {value}")

    @staticmethod
    def _validate_ordered(name: str, low: float, high: float) -> None:
        """Validate that a [low, high] range is not inverted."""
        if low > high:
            raise ConfigValidationError(f"{name} range is inverted: min {low} > max {high}")


@dataclass(frozen=True)
class Settings:
    """
    Immutable settings container loaded from YAML.

    This is the raw settings object before validation. Use
    get_service_config() to get the validated ServiceConfig.

    Attributes:
        raw: Dictionary of raw configuration values.
    """
    raw: Dict[str, Any]

    @property
    def engine_type(self) -> str:
        """Get the synthesis backend type (piper, mock)."""
        return str(self.raw.get("tts", {}).get("engine", Defaults.TTS_ENGINE))

    @property
    def sample_rate(self) -> int:
        """Get the fallback audio sample rate."""
        return int(self.raw.get("tts", {}).get("sample_rate", Defaults.TTS_SAMPLE_RATE))

    def backend_options(self, name: str) -> Dict[str, Any]:
        """Get the backend-specific section under tts.<name>."""
        return dict(self.raw.get("tts", {}).get(name, {}) or {})

    def get_service_config(self) -> ServiceConfig:
        """
        Get validated ServiceConfig from these settings.

        Raises:
            ConfigValidationError: If validation fails.
        """
        return ServiceConfig.from_settings(self)


def load_settings(path: str | None = None) -> Settings:
    """
    Load settings from a YAML configuration file.

    The path defaults to AURORA_TTS_SETTINGS, then config/settings.yaml.

    Environment variable overrides:
        - AURORA_TTS_ENGINE: Override tts.engine

    Args:
        path: Path to the YAML configuration file.

    Returns:
        Settings object with loaded configuration.

    Raises:
        FileNotFoundError: If the settings file doesn't exist.
    """
    p = Path(path or os.getenv("AURORA_TTS_SETTINGS", "config/settings.yaml"))
    if not p.exists():
        raise FileNotFoundError(f"settings file not found: {p.resolve()}")

    with p.open("r", encoding="utf-8") as f:
        raw: Dict[str, Any] = yaml.safe_load(f) or {}

    engine = os.getenv("AURORA_TTS_ENGINE")
    if engine:
        raw.setdefault("tts", {})["engine"] = engine

    return Settings(raw=raw)


def load_settings_or_defaults(path: str | None = None) -> Settings:
    """
    Like load_settings(), but a missing file yields built-in defaults.

    Used by the API and CLI so the service starts without a settings file.
    """
    try:
        return load_settings(path)
    except FileNotFoundError:
        raw: Dict[str, Any] = {}
        engine = os.getenv("AURORA_TTS_ENGINE")
        if engine:
            raw["tts"] = {"engine": engine}
        return Settings(raw=raw)
