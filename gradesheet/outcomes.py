#!/usr/bin/env python3
"""
Import Outcomes - What happened to each row of a confirmed import.

Every row ends in exactly one outcome:
- Created: a new score record was written
- Updated: an existing record was replaced (only with confirm_overwrite)
- Skipped: nothing was written, with a reason
- Unrecognized: the row had no usable student id
"""

from enum import Enum
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any, Union


class SkipReason(str, Enum):
    """Why a row did not result in a write."""
    ROW_MARKED_TO_SKIP = "row_marked_to_skip"
    UNRECOGNIZED_NAME = "unrecognized_name"
    UNAUTHORIZED_STUDENT = "unauthorized_student"
    INVALID_NUMERIC_VALUES = "invalid_numeric_values"
    SCORE_OUT_OF_RANGE = "score_out_of_range"
    OVERWRITE_CONFIRMATION_REQUIRED = "overwrite_confirmation_required"
    NO_CHANGE_DETECTED = "no_change_detected"


@dataclass(frozen=True)
class Created:
    student_id: str


@dataclass(frozen=True)
class Updated:
    student_id: str


@dataclass(frozen=True)
class Skipped:
    reason: SkipReason
    student_id: Optional[str] = None


@dataclass(frozen=True)
class Unrecognized:
    pass


ImportOutcome = Union[Created, Updated, Skipped, Unrecognized]


@dataclass
class SkippedRow:
    """Ledger entry for a row that was not written."""
    row_index: int
    source_student_name: str
    reason: SkipReason
    matched_student_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "row_index": self.row_index,
            "source_student_name": self.source_student_name,
            "reason": self.reason.value,
        }
        if self.matched_student_id:
            data["matched_student_id"] = self.matched_student_id
        return data


@dataclass
class ImportResult:
    """Aggregated outcome ledger of a confirm call."""
    created_count: int = 0
    updated_count: int = 0
    skipped_count: int = 0
    unrecognized_count: int = 0
    skipped: List[SkippedRow] = field(default_factory=list)
    outcomes: List[ImportOutcome] = field(default_factory=list)

    @property
    def imported_count(self) -> int:
        return self.created_count + self.updated_count

    def record(self, row_index: int, source_student_name: str, outcome: ImportOutcome):
        """Add one row's outcome to the counts and ledger."""
        self.outcomes.append(outcome)

        if isinstance(outcome, Created):
            self.created_count += 1
        elif isinstance(outcome, Updated):
            self.updated_count += 1
        elif isinstance(outcome, Skipped):
            self.skipped_count += 1
            self.skipped.append(SkippedRow(row_index, source_student_name, outcome.reason, outcome.student_id))
        elif isinstance(outcome, Unrecognized):
            self.unrecognized_count += 1
            self.skipped.append(SkippedRow(row_index, source_student_name, SkipReason.UNRECOGNIZED_NAME))
        else:
            raise TypeError(f"Unknown import outcome: {outcome!r}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "created_count": self.created_count,
            "updated_count": self.updated_count,
            "imported_count": self.imported_count,
            "skipped_count": self.skipped_count,
            "unrecognized_count": self.unrecognized_count,
            "skipped": [entry.to_dict() for entry in self.skipped],
        }
