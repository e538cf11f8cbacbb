"""
Text Chunking for Synthesis.

Splits normalized text into chunks no longer than the backend accepts
per call. Preferred boundaries, best first:
    1. Sentence endings (. ! ? …)
    2. Clause boundaries (, ; :)
    3. Whitespace
    4. Hard cut, moved back so it never lands inside a grapheme
       (combining marks, variation selectors, zero-width joiner sequences)

Neighbouring short sentences are packed together up to the limit, so a
long script produces few, full chunks instead of one call per sentence.

Example:
    >>> chunk_text("Olá. Tudo bem? Sim, tudo ótimo.", max_chars=16).chunks
    ['Olá. Tudo bem?', 'Sim, tudo ótimo.']
"""
from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass
from typing import Dict, List

from aurora_tts.core.logging import get_logger, verbose
from aurora_tts.utils.timeit import timeit

_LOG = get_logger("aurora-tts.chunker")

# Keeps the delimiter with the sentence. A delimiter only ends a sentence
# when whitespace or the end of text follows, so 3.14 and www.site.com stay whole.
_SENT_SPLIT = re.compile(r"(.+?[.!?…]+[\"'»)\]]*(?=\s|$)|.+$)", re.UNICODE | re.DOTALL)

# Same rule for clauses: 1.500,00 and 12:30 are not clause breaks
_SOFT_SPLIT = re.compile(r"(.+?[,;:]+(?=\s|$)|.+$)", re.UNICODE | re.DOTALL)

_ZWJ = "\u200d"


@dataclass
class ChunkResult:
    """
    Result of chunking.

    Attributes:
        chunks: Text chunks in reading order.
        timings_s: Timing measurements in seconds.
    """
    chunks: List[str]
    timings_s: Dict[str, float]


def _is_extender(ch: str) -> bool:
    """True for code points that attach to the previous character."""
    if ch == _ZWJ:
        return True
    if unicodedata.combining(ch):
        return True
    cat = unicodedata.category(ch)
    if cat in ("Mn", "Me", "Mc"):
        return True
    # Variation selectors and emoji skin tone modifiers
    cp = ord(ch)
    return 0xFE00 <= cp <= 0xFE0F or 0x1F3FB <= cp <= 0x1F3FF or 0xE0100 <= cp <= 0xE01EF


def _safe_cut(text: str, limit: int) -> int:
    """
    Largest index <= limit where text can be cut without breaking a grapheme.

    A cut is unsafe when the next character attaches to the previous one,
    or when the previous character is a zero-width joiner.
    """
    cut = min(limit, len(text))
    while cut > 0 and cut < len(text) and (_is_extender(text[cut]) or text[cut - 1] == _ZWJ):
        cut -= 1
    if cut == 0:
        # A single grapheme longer than the limit: take it whole
        cut = 1
        while cut < len(text) and (_is_extender(text[cut]) or text[cut - 1] == _ZWJ):
            cut += 1
    return cut


def _split_words(text: str, max_chars: int) -> List[str]:
    """Split at whitespace, hard-cutting single words longer than max_chars."""
    out: List[str] = []
    current = ""
    for word in text.split(" "):
        if not word:
            continue
        candidate = f"{current} {word}" if current else word
        if len(candidate) <= max_chars:
            current = candidate
            continue
        if current:
            out.append(current)
        while len(word) > max_chars:
            cut = _safe_cut(word, max_chars)
            out.append(word[:cut])
            word = word[cut:]
        current = word
    if current:
        out.append(current)
    return out


def _split_long(sentence: str, max_chars: int) -> List[str]:
    """Split one over-long sentence at clauses, then whitespace."""
    out: List[str] = []
    for part in (m.group(0).strip() for m in _SOFT_SPLIT.finditer(sentence)):
        if not part:
            continue
        if len(part) <= max_chars:
            out.append(part)
        else:
            out.extend(_split_words(part, max_chars))
    return _pack(out, max_chars)


def _pack(pieces: List[str], max_chars: int) -> List[str]:
    """Greedily join neighbouring pieces with a space while they fit."""
    out: List[str] = []
    current = ""
    for piece in pieces:
        candidate = f"{current} {piece}" if current else piece
        if len(candidate) <= max_chars:
            current = candidate
        else:
            if current:
                out.append(current)
            current = piece
    if current:
        out.append(current)
    return out


def chunk_text(text: str, max_chars: int = 400) -> ChunkResult:
    """
    Split text into ordered chunks of at most max_chars characters.

    Args:
        text: Normalized input text.
        max_chars: Maximum characters per chunk; must be positive.

    Returns:
        ChunkResult; chunks is empty for blank input.

    Raises:
        ValueError: If max_chars is not positive.
    """
    if max_chars <= 0:
        raise ValueError(f"max_chars must be positive, got {max_chars}")

    timings: Dict[str, float] = {}
    with timeit("chunk") as t:
        sentences = [m.group(0).strip() for m in _SENT_SPLIT.finditer(text) if m.group(0).strip()]
        pieces: List[str] = []
        for sent in sentences:
            if len(sent) <= max_chars:
                pieces.append(sent)
            else:
                pieces.extend(_split_long(sent, max_chars))
        out = [c for c in _pack(pieces, max_chars) if c]

    timings["chunk"] = t.seconds
    verbose(_LOG, "chunked", chunks=len(out), max_chars=max_chars, seconds=round(timings["chunk"], 4))
    return ChunkResult(chunks=out, timings_s=timings)
