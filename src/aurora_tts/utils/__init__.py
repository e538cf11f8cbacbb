"""Shared helpers: audio conversion, text normalization and timing."""
