"""
Text Normalization for Synthesis.

Normalization Steps:
    1. Unicode NFC (composed accents, so "é" is one code point)
    2. Strip leading/trailing whitespace
    3. Collapse runs of whitespace to a single space
    4. Fix punctuation spacing (remove space before ,.!?;:)
    5. Fix bracket spacing (remove space after opening, before closing)
    6. Expand common Portuguese title abbreviations (Sr., Dra., ...)

The normalization is non-destructive: case and accents are kept, and
numbers are left for the backend's own phonemizer.

Example:
    >>> normalize_text("  Olá  ,  Dra. Ana  ! ")
    'Olá, Doutora Ana!'
"""
from __future__ import annotations

import re
import unicodedata

_WS_RE = re.compile(r"\s+")

# "word ," -> "word,"
_SPACE_BEFORE_PUNCT = re.compile(r"\s+([,.!?;:…])")

# "( word" -> "(word"
_SPACE_AFTER_OPEN = re.compile(r"([(\[{«])\s+")

# "word )" -> "word)"
_SPACE_BEFORE_CLOSE = re.compile(r"\s+([)\]}»])")

# Expanded before chunking so the period is not read as a sentence end
_ABBREVIATIONS = {
    "sr.": "senhor",
    "sra.": "senhora",
    "srta.": "senhorita",
    "dr.": "doutor",
    "dra.": "doutora",
    "prof.": "professor",
    "profa.": "professora",
}

_ABBREV_RE = re.compile(
    r"(?<!\w)(" + "|".join(re.escape(a) for a in _ABBREVIATIONS) + r")(?=\s)",
    re.IGNORECASE,
)


def _expand_abbreviation(match: re.Match) -> str:
    found = match.group(1)
    expanded = _ABBREVIATIONS[found.lower()]
    return expanded.capitalize() if found[0].isupper() else expanded


def normalize_text(text: str) -> str:
    """
    Normalize text before chunking.

    Args:
        text: Raw request text.

    Returns:
        Normalized text; empty if the input was only whitespace.
    """
    t = unicodedata.normalize("NFC", text)
    t = t.strip()
    t = _WS_RE.sub(" ", t)
    t = _SPACE_BEFORE_PUNCT.sub(r"\1", t)
    t = _SPACE_AFTER_OPEN.sub(r"\1", t)
    t = _SPACE_BEFORE_CLOSE.sub(r"\1", t)
    t = _ABBREV_RE.sub(_expand_abbreviation, t)
    return t


def preview(text: str, max_chars: int) -> str:
    """Shorten text for log lines."""
    if max_chars <= 0:
        return ""
    if len(text) <= max_chars:
        return text
    return text[: max_chars - 1] + "…"
