"""
Conflict Detector - Compare an incoming score with what is already recorded.

Records are keyed by (subject, assessment label), case-insensitive.
Values are compared at 4-decimal precision.
"""

from dataclasses import dataclass
from typing import Optional, Iterable

from .models import ScoreRecord, assessment_key


@dataclass
class OverwriteCheck:
    """Result of checking a new score against existing records."""
    has_existing: bool = False
    requires_overwrite_confirmation: bool = False
    existing: Optional[ScoreRecord] = None

    @property
    def no_change(self) -> bool:
        """An identical record already exists; writing it again would be a no-op."""
        return self.has_existing and not self.requires_overwrite_confirmation


def find_existing(records: Iterable[ScoreRecord], subject: str, assessment_label: str) -> Optional[ScoreRecord]:
    """Find the record for (subject, assessment_label), ignoring case."""
    key = (str(subject or "").strip().lower(), assessment_key(assessment_label))
    for record in records or []:
        if record.key == key:
            return record
    return None


def _same(left, right) -> bool:
    return round(float(left or 0), 4) == round(float(right or 0), 4)


def check_overwrite(existing_records, subject, assessment_label, new_score, new_max_marks) -> OverwriteCheck:
    """
    Decide whether writing a score would overwrite a different value.

    Args:
        existing_records: The student's current ScoreRecords
        subject: Subject of the import
        assessment_label: Assessment label of the row
        new_score: Incoming score (None compares as 0)
        new_max_marks: Incoming maximum (None compares as 0)

    Returns:
        OverwriteCheck; requires_overwrite_confirmation is set when score or max differs
    """
    existing = find_existing(existing_records, subject, assessment_label)
    if existing is None:
        return OverwriteCheck()

    differs = not _same(existing.score, new_score) or not _same(existing.max_marks or 100, new_max_marks)
    return OverwriteCheck(has_existing=True, requires_overwrite_confirmation=differs, existing=existing)
