"""
Correlation Context and Configuration State for Logging.

The correlation id lives in a ContextVar so it follows a request through
the API handler, and follows a job through its pipeline thread. Chunk
worker threads receive it by running inside a copied context.

Environment Variables:
    - AURORA_TTS_LOG_LEVEL: Override log level (1-4 or name)
    - AURORA_TTS_LOG_DIR: Directory for the JSONL log file
    - AURORA_TTS_JSONL_FILE: JSONL filename
    - AURORA_TTS_LOG_ROTATE_BYTES: Max file size before rotation
    - AURORA_TTS_LOG_ROTATE_BACKUP: Number of rotated files to keep
"""
from __future__ import annotations

import os
from contextvars import ContextVar
from typing import Any, Dict

import yaml

from .levels import LEVEL_NAMES, LogLevel

# "-" marks log lines emitted outside any request or job
_request_id: ContextVar[str] = ContextVar("request_id", default="-")

_configured: bool = False
_log_config: Dict[str, Any] = {}
_current_level: LogLevel = LogLevel.NORMAL


def get_request_id() -> str:
    """Get the correlation id for the current context, or "-"."""
    return _request_id.get()


def set_request_id(rid: str) -> None:
    """
    Set the correlation id for the current context.

    API handlers set a short request id; pipeline threads set the
    job id so every line of a job can be grepped together.
    """
    _request_id.set(rid)


def get_level() -> LogLevel:
    """Get the current numeric log level."""
    return _current_level


def set_level(level: LogLevel) -> None:
    """Set the current numeric log level."""
    global _current_level
    _current_level = level


def get_level_name() -> str:
    """Get the current log level as a name ("NORMAL", ...)."""
    return LEVEL_NAMES.get(_current_level, "NORMAL")


def is_configured() -> bool:
    return _configured


def set_configured(value: bool) -> None:
    global _configured
    _configured = value


def get_log_config() -> Dict[str, Any]:
    return _log_config


def set_log_config(config: Dict[str, Any]) -> None:
    global _log_config
    _log_config = config


def read_logging_config() -> Dict[str, Any]:
    """
    Read logging configuration from the settings file and environment.

    Priority (highest to lowest):
        1. AURORA_TTS_LOG_* environment variables
        2. logging section of the settings file
        3. Defaults applied by configure_logging()

    Returns:
        Dictionary with resolved logging configuration.
    """
    cfg: Dict[str, Any] = {}

    settings_path = os.getenv("AURORA_TTS_SETTINGS", "config/settings.yaml")
    try:
        from aurora_tts.core.config import load_settings
        settings = load_settings(settings_path)
        cfg.update(settings.raw.get("logging", {}) or {})
    except (FileNotFoundError, yaml.YAMLError):
        # No usable settings file, keep defaults
        pass

    if os.getenv("AURORA_TTS_LOG_LEVEL"):
        cfg["level"] = os.environ["AURORA_TTS_LOG_LEVEL"]
    if os.getenv("AURORA_TTS_LOG_DIR"):
        cfg["log_dir"] = os.environ["AURORA_TTS_LOG_DIR"]
    if os.getenv("AURORA_TTS_JSONL_FILE"):
        cfg["jsonl_file"] = os.environ["AURORA_TTS_JSONL_FILE"]
    if os.getenv("AURORA_TTS_LOG_ROTATE_BYTES"):
        try:
            cfg["rotate_max_bytes"] = int(os.environ["AURORA_TTS_LOG_ROTATE_BYTES"])
        except ValueError:
            pass
    if os.getenv("AURORA_TTS_LOG_ROTATE_BACKUP"):
        try:
            cfg["rotate_backup_count"] = int(os.environ["AURORA_TTS_LOG_ROTATE_BACKUP"])
        except ValueError:
            pass

    return cfg
