"""
FastAPI Dependency Providers.

    get_settings()     - Loads and caches settings.yaml
    get_job_manager()  - Returns the process-wide JobManager
    warmup_manager()   - Loads the synthesis backend at startup

Tests swap the manager with app.dependency_overrides[get_job_manager].
"""
from __future__ import annotations

from functools import lru_cache

from aurora_tts.core.config import Settings, load_settings_or_defaults
from aurora_tts.services.job_manager import JobManager, get_manager


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Load and cache settings.

    Reads AURORA_TTS_SETTINGS (default config/settings.yaml); a missing
    file means built-in defaults.
    """
    return load_settings_or_defaults()


def get_job_manager() -> JobManager:
    """The shared JobManager, created on first use."""
    return get_manager(get_settings())


def warmup_manager() -> None:
    """Load the backend before the first job arrives."""
    get_job_manager().warmup()
