#!/usr/bin/env python3
"""
Text Normalizer - Canonical forms for digits and student names.

Grade sheets arrive as OCR output or pasted text in English and Arabic.
Before anything is compared or parsed:
- Arabic-Indic digits are mapped to ASCII digits
- whitespace runs are collapsed
- names are lowercased and stripped of vowel marks, diacritics and punctuation
"""

import re
import unicodedata
from typing import List

ARABIC_DIGIT_MAP = {
    # Arabic-Indic
    "\u0660": "0", "\u0661": "1", "\u0662": "2", "\u0663": "3", "\u0664": "4",
    "\u0665": "5", "\u0666": "6", "\u0667": "7", "\u0668": "8", "\u0669": "9",
    # Extended Arabic-Indic (Persian/Urdu)
    "\u06F0": "0", "\u06F1": "1", "\u06F2": "2", "\u06F3": "3", "\u06F4": "4",
    "\u06F5": "5", "\u06F6": "6", "\u06F7": "7", "\u06F8": "8", "\u06F9": "9",
}

_DIGIT_TABLE = str.maketrans(ARABIC_DIGIT_MAP)

# Quranic annotation signs, harakat and small high marks
_ARABIC_MARKS_RE = re.compile(r"[\u0610-\u061A\u064B-\u065F\u06D6-\u06ED]")
_NAME_NOISE_RE = re.compile(r"[^\u0600-\u06FFa-z0-9\s]")
_WHITESPACE_RE = re.compile(r"\s+")


def _as_text(value) -> str:
    if value is None:
        return ""
    return str(value)


def normalize_digits(text) -> str:
    """Map Arabic-Indic digit glyphs to ASCII; everything else passes through."""
    return _as_text(text).translate(_DIGIT_TABLE)


def normalize_whitespace(text) -> str:
    """Trim and collapse whitespace runs to a single space."""
    return _WHITESPACE_RE.sub(" ", _as_text(text)).strip()


def _strip_latin_diacritics(text: str) -> str:
    # Arabic letters are left alone so hamza forms stay distinct.
    chars = []
    for char in text:
        if "\u0600" <= char <= "\u06ff":
            chars.append(char)
            continue
        for part in unicodedata.normalize("NFKD", char):
            if not unicodedata.combining(part):
                chars.append(part)
    return "".join(chars)


def normalize_name(text) -> str:
    """
    Normalize a student name for comparison.

    Lowercases, removes Arabic vowel marks and Latin diacritics, drops
    punctuation outside the Latin/Arabic letter and digit ranges, and
    collapses whitespace. Idempotent.

    Args:
        text: Raw name (any type, None allowed)

    Returns:
        Normalized name, possibly empty
    """
    value = _strip_latin_diacritics(_as_text(text)).lower()
    value = _ARABIC_MARKS_RE.sub("", value)
    value = _NAME_NOISE_RE.sub("", value)
    return normalize_whitespace(value)


def tokenize(text) -> List[str]:
    """Split a normalized name into its non-empty tokens."""
    return [token for token in normalize_name(text).split(" ") if token]
