"""Synthesis backend implementations, imported lazily by get_backend()."""
