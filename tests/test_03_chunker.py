"""Tests for text normalization and chunking."""
from __future__ import annotations

import unicodedata

import pytest

from aurora_tts.tts.chunker import chunk_text
from aurora_tts.utils.text import normalize_text, preview


class TestNormalizeText:
    """normalize_text() cleans whitespace and punctuation without losing content."""

    def test_whitespace_and_punctuation(self):
        assert normalize_text("  Olá  ,  Dra. Ana  ! ") == "Olá, Doutora Ana!"

    def test_nfc_composition(self):
        """Decomposed accents are composed to single code points."""
        assert normalize_text("cafe\u0301") == "caf\u00e9"

    def test_bracket_spacing(self):
        assert normalize_text("Disse ( em voz baixa ) que sim.") == "Disse (em voz baixa) que sim."

    def test_abbreviation_case(self):
        """Lowercase abbreviations expand lowercase, capitalized ones capitalized."""
        assert normalize_text("o sr. Silva e a Profa. Lima") == "o senhor Silva e a Professora Lima"

    def test_abbreviation_at_end_is_kept(self):
        """A trailing abbreviation may be a real sentence end; leave it."""
        assert normalize_text("Falei com o Sr.") == "Falei com o Sr."

    def test_blank_input(self):
        assert normalize_text(" \n\t ") == ""


class TestPreview:
    def test_short_text_unchanged(self):
        assert preview("abc", 10) == "abc"

    def test_long_text_truncated(self):
        assert preview("abcdef", 4) == "abc…"

    def test_zero_disables(self):
        assert preview("abcdef", 0) == ""


class TestChunkText:
    """chunk_text() splits at the best boundary available."""

    def test_sentence_packing(self):
        chunks = chunk_text("Olá. Tudo bem? Sim, tudo ótimo.", max_chars=16).chunks
        assert chunks == ["Olá. Tudo bem?", "Sim, tudo ótimo."]

    def test_everything_fits(self):
        text = "Primeira frase. Segunda frase!"
        assert chunk_text(text, max_chars=400).chunks == [text]

    def test_order_and_content_preserved(self):
        """Joining the chunks with spaces gives back the text."""
        text = " ".join(f"Frase numero {i}, com uma pausa." for i in range(40))
        result = chunk_text(text, max_chars=60)

        assert all(len(c) <= 60 for c in result.chunks)
        assert " ".join(result.chunks) == text
        assert isinstance(result.timings_s.get("chunk"), float)

    @pytest.mark.parametrize("text", [
        "O valor subiu 3.14 por cento hoje.",
        "Custa R$ 1.500,00 ou 2.5 kg. Acesse www.site.com.br agora.",
        "A reunião é às 12:30, na sala 2.1! Veja https://exemplo.com/a?b=1 antes.",
    ])
    def test_inner_punctuation_is_not_a_break(self, text):
        """Dots and commas inside numbers and URLs reach the backend unchanged."""
        normalized = normalize_text(text)
        for max_chars in (400, 30):
            chunks = chunk_text(normalized, max_chars=max_chars).chunks
            assert " ".join(chunks) == normalized

    def test_clause_split_skips_thousands_separator(self):
        chunks = chunk_text("Custa R$ 1.500,00 hoje, sem desconto.", max_chars=20).chunks
        assert chunks == ["Custa R$ 1.500,00", "hoje, sem desconto."]

    def test_clause_split(self):
        """A sentence longer than the limit splits at commas first."""
        assert chunk_text("um, dois, três, quatro", max_chars=10).chunks == ["um, dois,", "três,", "quatro"]

    def test_hard_cut_long_word(self):
        assert chunk_text("a" * 25, max_chars=10).chunks == ["a" * 10, "a" * 10, "a" * 5]

    def test_hard_cut_keeps_combining_marks(self):
        """A cut never separates a base letter from its accent."""
        word = "e\u0301" * 6
        chunks = chunk_text(word, max_chars=5).chunks

        assert "".join(chunks) == word
        assert all(len(c) <= 5 for c in chunks)
        assert not any(unicodedata.combining(c[0]) for c in chunks)

    def test_hard_cut_keeps_zwj_sequences(self):
        """An emoji ZWJ sequence stays whole even when longer than the limit."""
        family = "\U0001F468\u200d\U0001F469\u200d\U0001F467"
        assert chunk_text(family * 3, max_chars=4).chunks == [family, family, family]

    def test_blank_text(self):
        assert chunk_text("", max_chars=10).chunks == []
        assert chunk_text("   ", max_chars=10).chunks == []

    def test_invalid_max_chars(self):
        with pytest.raises(ValueError):
            chunk_text("texto", max_chars=0)
