#!/usr/bin/env python3
"""
Import Models - Data carried through the grade sheet import pipeline.

- RosterEntry / ScoreRecord: what the caller knows about a class
- RawRow: one extracted row before matching
- PreviewRow / PreviewReport: the read-only preview handed back for review
"""

import re
from datetime import datetime
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional, List, Set, Dict, Any

DEFAULT_ASSESSMENT_LABEL = "Assessment"

STUDENT_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.:-]{0,63}$")


class IssueCode(str, Enum):
    """Problems detected on a single row during extraction or preview."""
    MISSING_STUDENT_NAME = "missing_student_name"
    MISSING_SCORE = "missing_score"
    INVALID_NUMERIC_VALUE = "invalid_numeric_value"
    INVALID_MAX_MARKS = "invalid_max_marks"
    SCORE_OUT_OF_RANGE = "score_out_of_range"
    UNRECOGNIZED_NAME = "unrecognized_name"
    OVERWRITE_CONFIRMATION_REQUIRED = "overwrite_confirmation_required"


# Issues that make a row inconsistent in the preview summary
INCONSISTENT_ISSUES = {
    IssueCode.MISSING_SCORE,
    IssueCode.INVALID_MAX_MARKS,
    IssueCode.SCORE_OUT_OF_RANGE,
    IssueCode.OVERWRITE_CONFIRMATION_REQUIRED,
    IssueCode.MISSING_STUDENT_NAME,
}


def is_valid_student_id(value) -> bool:
    """Check that a student id is a non-empty, well-formed identifier."""
    if value is None or isinstance(value, bool):
        return False
    return bool(STUDENT_ID_PATTERN.match(str(value).strip()))


def assessment_key(label: Optional[str]) -> str:
    """Case-insensitive key for an assessment label; blank means the default label."""
    return (str(label or "").strip() or DEFAULT_ASSESSMENT_LABEL).lower()


@dataclass
class ScoreRecord:
    """A recorded score, unique per (subject, assessment_label) for one student."""
    subject: str
    assessment_label: str
    score: float
    max_marks: float
    recorded_by: str = ""
    recorded_at: Optional[datetime] = None

    @property
    def key(self) -> tuple:
        return (str(self.subject or "").strip().lower(), assessment_key(self.assessment_label))

    @property
    def percentage(self) -> Optional[float]:
        if not self.max_marks:
            return None
        return round(self.score / self.max_marks * 100, 2)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subject": self.subject,
            "assessment_label": self.assessment_label,
            "score": self.score,
            "max_marks": self.max_marks,
            "percentage": self.percentage,
            "recorded_by": self.recorded_by,
            "recorded_at": self.recorded_at.isoformat() if self.recorded_at else None,
        }


@dataclass
class RosterEntry:
    """A student the caller may import grades for."""
    student_id: str
    student_name: str
    class_membership: Set[str] = field(default_factory=set)
    existing_scores: List[ScoreRecord] = field(default_factory=list)

    def in_class(self, class_name: str) -> bool:
        return class_name in self.class_membership


@dataclass
class RawRow:
    """A row produced by the extractor, before matching."""
    source_student_name: str
    score: Optional[float] = None
    max_marks: Optional[float] = None
    issues: List[IssueCode] = field(default_factory=list)

    # Carried through when a client echoes reviewed rows back
    assessment_label: str = ""
    matched_student_id: str = ""
    confirm_overwrite: bool = False
    skip: bool = False


@dataclass
class CandidateMatch:
    """A ranked roster candidate for an extracted name."""
    student_id: str
    student_name: str
    confidence: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "student_id": self.student_id,
            "student_name": self.student_name,
            "confidence": round(self.confidence, 3),
        }


@dataclass
class PreviewRow:
    """An annotated row in the preview report. Never persisted."""
    row_index: int
    source_student_name: str
    matched_student_id: str = ""
    matched_student_name: str = ""
    match_confidence: float = 0.0
    candidate_matches: List[CandidateMatch] = field(default_factory=list)
    score: Optional[float] = None
    max_marks: Optional[float] = None
    normalized_percentage: Optional[float] = None
    assessment_label: str = DEFAULT_ASSESSMENT_LABEL
    issues: List[IssueCode] = field(default_factory=list)
    requires_overwrite_confirmation: bool = False
    skip: bool = False
    confirm_overwrite: bool = False
    existing: Optional[ScoreRecord] = None

    @property
    def is_inconsistent(self) -> bool:
        return any(issue in INCONSISTENT_ISSUES for issue in self.issues)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "row_index": self.row_index,
            "source_student_name": self.source_student_name,
            "matched_student_id": self.matched_student_id,
            "matched_student_name": self.matched_student_name,
            "match_confidence": self.match_confidence,
            "candidate_matches": [c.to_dict() for c in self.candidate_matches],
            "score": self.score,
            "max_marks": self.max_marks,
            "normalized_percentage": self.normalized_percentage,
            "assessment_label": self.assessment_label,
            "issues": [issue.value for issue in self.issues],
            "requires_overwrite_confirmation": self.requires_overwrite_confirmation,
            "skip": self.skip,
            "confirm_overwrite": self.confirm_overwrite,
            "existing": self.existing.to_dict() if self.existing else None,
        }


@dataclass
class PreviewReport:
    """Result of the preview phase."""
    rows: List[PreviewRow] = field(default_factory=list)
    detected_columns: List[str] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)
    strategy: str = ""

    @property
    def matched_rows(self) -> List[PreviewRow]:
        return [row for row in self.rows if row.matched_student_id and not row.skip]

    @property
    def unrecognized_rows(self) -> List[PreviewRow]:
        return [row for row in self.rows if not row.matched_student_id and not row.skip]

    @property
    def inconsistent_rows(self) -> List[PreviewRow]:
        return [row for row in self.rows if row.is_inconsistent]

    @property
    def overwrite_rows(self) -> List[PreviewRow]:
        return [row for row in self.rows if row.requires_overwrite_confirmation]

    @property
    def summary(self) -> Dict[str, int]:
        return {
            "total_rows": len(self.rows),
            "matched_rows": len(self.matched_rows),
            "unrecognized_rows": len(self.unrecognized_rows),
            "inconsistent_rows": len(self.inconsistent_rows),
            "overwrite_rows": len(self.overwrite_rows),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "detected_columns": self.detected_columns,
            "rows": [row.to_dict() for row in self.rows],
            "unrecognized_names": [
                row.source_student_name or f"Row {row.row_index + 1}"
                for row in self.unrecognized_rows
            ],
            "inconsistent_rows": [
                {
                    "row_index": row.row_index,
                    "source_student_name": row.source_student_name,
                    "issues": [issue.value for issue in row.issues],
                }
                for row in self.inconsistent_rows
            ],
            "summary": self.summary,
            "notes": self.notes,
            "strategy": self.strategy,
        }
