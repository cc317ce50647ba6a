import pytest

from gradesheet.normalizer import normalize_digits, normalize_name, normalize_whitespace, tokenize

# Arabic "Ahmad" with and without vowel marks (fatha, sukun)
AHMAD_MARKED = "أَحْمَد"
AHMAD_PLAIN = "أحمد"


class TestNormalizeDigits:
    """Arabic-Indic digits map to ASCII."""

    def test_arabic_indic_digits(self):
        assert normalize_digits("١٧/٢٠") == "17/20"

    def test_extended_arabic_indic_digits(self):
        assert normalize_digits("۹۵") == "95"

    def test_other_text_passes_through(self):
        assert normalize_digits("Ahmed 17/20") == "Ahmed 17/20"

    def test_none_is_empty(self):
        assert normalize_digits(None) == ""


class TestNormalizeName:

    def test_lowercases_and_collapses_whitespace(self):
        assert normalize_name("  Ahmed    ALI ") == "ahmed ali"

    def test_strips_punctuation(self):
        assert normalize_name("Ahmed-Ali.") == "ahmedali"
        assert normalize_name("Sara (Noor)") == "sara noor"

    def test_strips_latin_diacritics(self):
        assert normalize_name("Zoé Müller") == "zoe muller"

    def test_strips_arabic_vowel_marks(self):
        assert normalize_name(AHMAD_MARKED) == normalize_name(AHMAD_PLAIN)
        assert normalize_name(AHMAD_PLAIN) == AHMAD_PLAIN

    def test_keeps_digits(self):
        assert normalize_name("Student 12") == "student 12"

    @pytest.mark.parametrize("value", ["Ahmed  Ali", AHMAD_MARKED + " Ali", "Zoé-Müller", "", None])
    def test_idempotent(self, value):
        once = normalize_name(value)
        assert normalize_name(once) == once

    def test_empty_values(self):
        assert normalize_name(None) == ""
        assert normalize_name("!!!") == ""


def test_normalize_whitespace():
    assert normalize_whitespace(" a \t b\n c ") == "a b c"


def test_tokenize():
    assert tokenize("Ahmed  Ali") == ["ahmed", "ali"]
    assert tokenize("") == []
