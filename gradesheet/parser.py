#!/usr/bin/env python3
"""
Score Parser - Extract a score and its maximum from a free-form token.

Handles the formats found on grade sheets:
- "17/20" or "17 / 20"   -> score 17 out of 20
- "85%"                  -> score 85 out of 100
- "17" or "17,5"         -> bare score, out of the sheet's default maximum

Ratios are tried first so "17/20" is never read as the bare number 17.
"""

import re
import math
import logging
from dataclasses import dataclass, field
from typing import Optional, List

from .models import IssueCode
from .normalizer import normalize_digits

logger = logging.getLogger(__name__)

DEFAULT_MAX_MARKS = 100.0

_NUMBER = r"-?\d+(?:\.\d+)?"


@dataclass
class ParsedScore:
    """Score extracted from a single token."""
    score: Optional[float]
    max_marks: float
    issues: List[IssueCode] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return self.score is not None


def parse_number(value) -> Optional[float]:
    """
    Parse the first decimal number found in a value.

    Commas are accepted as decimal separators ("17,5" -> 17.5).

    Returns:
        The number, or None when the value holds no number
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return None if math.isnan(value) or math.isinf(value) else float(value)

    text = normalize_digits(value).replace(",", ".")
    match = re.search(_NUMBER, text)
    if not match:
        return None
    try:
        return float(match.group(0))
    except ValueError:
        return None


class ScoreParser:
    """
    Parser for score tokens.

    Patterns are tried in order; the first that matches decides the result.
    """

    RATIO_PATTERN = rf"({_NUMBER})\s*/\s*({_NUMBER})"
    PERCENT_PATTERN = rf"({_NUMBER})\s*%"

    def __init__(self, default_max_marks: float = DEFAULT_MAX_MARKS):
        """
        Initialize the parser.

        Args:
            default_max_marks: Maximum used for bare numbers (falls back to 100 if falsy)
        """
        self.default_max_marks = float(default_max_marks or DEFAULT_MAX_MARKS)
        self._ratio = re.compile(self.RATIO_PATTERN)
        self._percent = re.compile(self.PERCENT_PATTERN)

    def parse(self, raw_text) -> ParsedScore:
        """
        Parse a score token.

        Args:
            raw_text: Token as written on the sheet (None allowed)

        Returns:
            ParsedScore; score is None when nothing usable was found
        """
        text = normalize_digits(raw_text)

        if not text.strip():
            return ParsedScore(None, self.default_max_marks, [IssueCode.MISSING_SCORE])

        match = self._ratio.search(text)
        if match:
            try:
                return ParsedScore(float(match.group(1)), float(match.group(2)))
            except ValueError:
                logger.debug(f"Unparseable ratio in score token: {text!r}")
                return ParsedScore(None, self.default_max_marks, [IssueCode.INVALID_NUMERIC_VALUE])

        match = self._percent.search(text)
        if match:
            try:
                return ParsedScore(float(match.group(1)), 100.0)
            except ValueError:
                return ParsedScore(None, 100.0, [IssueCode.INVALID_NUMERIC_VALUE])

        score = parse_number(text)
        if score is None:
            return ParsedScore(None, self.default_max_marks, [IssueCode.MISSING_SCORE])

        return ParsedScore(score, self.default_max_marks)


def parse_score(raw_text, default_max_marks: float = DEFAULT_MAX_MARKS) -> ParsedScore:
    """
    Convenience function to parse one score token.

    Args:
        raw_text: Token as written on the sheet
        default_max_marks: Maximum used for bare numbers

    Returns:
        ParsedScore with score, max_marks and issues
    """
    return ScoreParser(default_max_marks).parse(raw_text)
