"""
aurora-tts: asynchronous text-to-speech job service.

Submit long-form text, poll the job, download a 320 kbps MP3.
"""

__version__ = "0.1.0"
