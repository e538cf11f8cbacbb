"""
Core Infrastructure for aurora-tts.

    - config.py: Settings loading and validated ServiceConfig
    - logging/: Structured logging with numeric levels
    - metrics.py: Prometheus job metrics
"""
