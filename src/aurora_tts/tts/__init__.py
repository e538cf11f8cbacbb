"""
Speech Components.

    - voices.py: VoiceCatalog
    - backend.py: SynthesisBackend base class and factory
    - backends/: Mock and Piper backends
    - encoder.py: PCM to MP3 encoding (ffmpeg)
    - chunker.py: Text chunking
"""
