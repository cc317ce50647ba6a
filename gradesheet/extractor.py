#!/usr/bin/env python3
"""
Row Extractor - Turn an extraction source into raw grade rows.

Strategies, tried in order until one yields rows:
1. structured: rows supplied by the caller
2. ai: an external extraction capability (LLM), best effort
3. text: deterministic line parser over the OCR/pasted text (always available)
"""

import re
import logging
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any, Callable, Tuple

from .models import RawRow
from .normalizer import normalize_digits, normalize_whitespace
from .parser import DEFAULT_MAX_MARKS, parse_number, parse_score
from .llm_extractor import is_image_data_url

logger = logging.getLogger(__name__)

EXPECTED_COLUMNS = ["Student Name", "Score", "Max Marks"]
TEXT_COLUMNS = ["Student Name", "Score"]

NO_ROWS_NOTE = (
    "No structured rows were found in OCR text. "
    "You can manually add rows before confirming import."
)

NAME_KEYS = ("source_student_name", "sourceStudentName", "student_name", "studentName", "name", "student")
SCORE_TEXT_KEYS = ("score_text", "scoreText", "value", "grade")
MAX_MARKS_KEYS = ("max_marks", "maxMarks", "max")
LABEL_KEYS = ("assessment_label", "assessmentLabel", "exam_title", "examTitle")
MATCHED_ID_KEYS = ("matched_student_id", "matchedStudentId")
CONFIRM_KEYS = ("confirm_overwrite", "confirmOverwrite")

# "Ahmed Ali 17/20"
_TRAILING_RATIO_RE = re.compile(r"^(.*?)\s+(-?\d+(?:\.\d+)?)\s*/\s*(-?\d+(?:\.\d+)?)\s*$")
# tab, pipe, comma, semicolon or a run of 2+ spaces
_FIELD_SPLIT_RE = re.compile(r"\t|\||,|;|\s{2,}")


@dataclass
class ExtractionSource:
    """Where grade rows come from. Any combination may be present."""
    rows: List[Dict[str, Any]] = field(default_factory=list)
    ocr_text: str = ""
    image_data_url: str = ""

    @property
    def is_empty(self) -> bool:
        return not self.rows and not str(self.ocr_text or "").strip() and not str(self.image_data_url or "").strip()


@dataclass
class ExtractionResult:
    """Rows produced by a single strategy."""
    rows: List[RawRow] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)
    columns: List[str] = field(default_factory=list)
    strategy: str = ""


def _first(row: Dict[str, Any], keys: Tuple[str, ...], default=None):
    for key in keys:
        if key in row and row[key] is not None and row[key] != "":
            return row[key]
    return default


def normalize_input_row(row: Dict[str, Any], default_max_marks: float) -> RawRow:
    """
    Normalize one caller- or model-supplied row.

    Numeric "score" fields are read directly; otherwise a raw text field
    (score_text, value, grade) goes through the score parser.
    """
    if not isinstance(row, dict):
        row = {}

    source_name = normalize_whitespace(_first(row, NAME_KEYS, ""))

    if "score" in row:
        score = parse_number(row.get("score"))
        max_marks = parse_number(_first(row, MAX_MARKS_KEYS, default_max_marks))
        issues = []
    else:
        parsed = parse_score(_first(row, SCORE_TEXT_KEYS, ""), default_max_marks)
        score, max_marks, issues = parsed.score, parsed.max_marks, list(parsed.issues)

    return RawRow(
        source_student_name=source_name,
        score=score,
        max_marks=max_marks,
        issues=issues,
        assessment_label=normalize_whitespace(_first(row, LABEL_KEYS, "")),
        matched_student_id=str(_first(row, MATCHED_ID_KEYS, "")).strip(),
        confirm_overwrite=any(row.get(key) is True for key in CONFIRM_KEYS),
        skip=row.get("skip") is True,
    )


def parse_rows_from_text(text: str, default_max_marks: float = DEFAULT_MAX_MARKS) -> ExtractionResult:
    """
    Deterministic line parser for OCR or pasted text.

    Lines that yield neither a trailing "name score/max" nor a delimited
    "name<sep>score" are dropped; OCR noise is expected.

    Args:
        text: Raw text, one student per line
        default_max_marks: Maximum used for bare scores

    Returns:
        ExtractionResult (never raises; empty rows come with a note)
    """
    rows = []

    for line in str(text or "").splitlines():
        line = normalize_digits(line.strip())
        if not line:
            continue

        match = _TRAILING_RATIO_RE.match(line)
        if match:
            rows.append(RawRow(
                source_student_name=normalize_whitespace(match.group(1)),
                score=float(match.group(2)),
                max_marks=float(match.group(3)),
            ))
            continue

        parts = [part.strip() for part in _FIELD_SPLIT_RE.split(line)]
        parts = [part for part in parts if part]
        if len(parts) < 2:
            continue

        parsed = parse_score(parts[-1], default_max_marks)
        if parsed.score is None:
            continue

        rows.append(RawRow(
            source_student_name=normalize_whitespace(" ".join(parts[:-1])),
            score=parsed.score,
            max_marks=parsed.max_marks,
        ))

    logger.debug(f"Text parser found {len(rows)} rows")

    return ExtractionResult(
        rows=rows,
        notes=[] if rows else [NO_ROWS_NOTE],
        columns=list(TEXT_COLUMNS),
        strategy="text",
    )


class RowExtractor:
    """
    Runs extraction strategies in order and returns the first non-empty result.

    The text parser is the final fallback and always produces a result.
    """

    def __init__(self, capability=None, default_max_marks: float = DEFAULT_MAX_MARKS):
        """
        Initialize the extractor.

        Args:
            capability: Optional object with extract(text, image_data_url, expected_columns, default_max_marks)
            default_max_marks: Maximum used for bare scores
        """
        self.capability = capability
        self.default_max_marks = float(default_max_marks or DEFAULT_MAX_MARKS)

    @property
    def strategies(self) -> List[Callable[[ExtractionSource, float], Optional[ExtractionResult]]]:
        return [self._from_structured_rows, self._from_capability, self._from_text]

    def extract(self, source: ExtractionSource, default_max_marks: Optional[float] = None) -> ExtractionResult:
        """
        Extract raw rows from a source.

        Args:
            source: Rows, OCR text and/or image handle
            default_max_marks: Overrides the extractor default for this call

        Returns:
            ExtractionResult from the first strategy that produced rows
        """
        max_marks = float(default_max_marks or self.default_max_marks)

        result = None
        for strategy in self.strategies:
            result = strategy(source, max_marks)
            if result is not None and result.rows:
                logger.info(f"Extracted {len(result.rows)} rows using '{result.strategy}' strategy")
                return result

        return result or ExtractionResult(notes=[NO_ROWS_NOTE], columns=list(TEXT_COLUMNS), strategy="text")

    def _from_structured_rows(self, source: ExtractionSource, max_marks: float) -> Optional[ExtractionResult]:
        if not source.rows:
            return None
        rows = [normalize_input_row(row, max_marks) for row in source.rows]
        return ExtractionResult(rows=rows, columns=list(EXPECTED_COLUMNS), strategy="structured")

    def _from_capability(self, source: ExtractionSource, max_marks: float) -> Optional[ExtractionResult]:
        if self.capability is None:
            return None

        text = str(source.ocr_text or "")
        image = str(source.image_data_url or "").strip()
        if not text.strip() and not is_image_data_url(image):
            return None

        try:
            payload = self.capability.extract(text, image, list(EXPECTED_COLUMNS), max_marks)
        except Exception as e:
            logger.warning(f"AI extraction failed, falling back: {e}")
            return None

        if not isinstance(payload, dict):
            if payload is not None:
                logger.warning(f"AI extraction returned {type(payload).__name__}, expected object")
            return None

        raw_rows = payload.get("rows")
        if not isinstance(raw_rows, list):
            return None

        rows = [normalize_input_row(row, max_marks) for row in raw_rows if isinstance(row, dict)]
        # Model rows carry no review state
        for row in rows:
            row.matched_student_id = ""
            row.confirm_overwrite = False
            row.skip = False

        return ExtractionResult(
            rows=rows,
            notes=_string_list(payload.get("notes")),
            columns=_string_list(payload.get("columns")) or list(EXPECTED_COLUMNS),
            strategy="ai",
        )

    def _from_text(self, source: ExtractionSource, max_marks: float) -> ExtractionResult:
        return parse_rows_from_text(source.ocr_text, max_marks)


def _string_list(value) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if str(item or "").strip()]
