#!/usr/bin/env python3
"""
Grade Import Service - Two-phase grade sheet import.

preview(): extract rows, match names, flag issues and conflicts. Read-only.
confirm(): re-validate every reviewed row and write the ones that pass.

Rows are processed in order and each write stands on its own; a later
row failing never undoes an earlier one. Row problems are reported as
issue/reason codes, only a malformed request raises.
"""

import math
import logging
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any, Union

from config import ImportConfig
from database.models import utcnow
from .conflicts import check_overwrite
from .exceptions import ImportRequestError
from .extractor import (
    ExtractionSource,
    RowExtractor,
    NAME_KEYS,
    LABEL_KEYS,
    MATCHED_ID_KEYS,
    MAX_MARKS_KEYS,
    CONFIRM_KEYS,
)
from .matcher import StudentDirectory, StudentMatcher, MatchResult
from .models import (
    IssueCode,
    PreviewReport,
    PreviewRow,
    RawRow,
    RosterEntry,
    ScoreRecord,
    is_valid_student_id,
)
from .normalizer import normalize_digits, normalize_whitespace
from .outcomes import Created, Updated, Skipped, Unrecognized, ImportOutcome, ImportResult, SkipReason
from .store import ScoreStore

logger = logging.getLogger(__name__)


@dataclass
class PreviewRequest:
    """Input of the preview phase."""
    class_name: str
    subject: str
    roster: List[RosterEntry]
    source: ExtractionSource = field(default_factory=ExtractionSource)
    assessment_label: str = ""
    default_max_marks: Optional[float] = None


@dataclass
class ConfirmRequest:
    """Input of the confirm phase. Rows are usually preview rows echoed back."""
    class_name: str
    subject: str
    roster: List[RosterEntry]
    rows: List[Union[Dict[str, Any], PreviewRow]] = field(default_factory=list)
    confirm_import: bool = False
    assessment_label: str = ""
    recorded_by: str = ""


def _to_number(value) -> Optional[float]:
    """Strict numeric conversion for confirmed rows ("17/20" is not a number)."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        try:
            number = float(normalize_digits(value).strip())
        except ValueError:
            return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _lookup(row: Dict[str, Any], keys, default=None):
    for key in keys:
        if row.get(key) not in (None, ""):
            return row[key]
    return default


def _dedupe(issues: List[IssueCode]) -> List[IssueCode]:
    seen = []
    for issue in issues:
        if issue not in seen:
            seen.append(issue)
    return seen


class GradeImportService:
    """
    Orchestrates extraction, matching and conflict detection.

    Usage:
        service = GradeImportService(SqlScoreStore(session), RowExtractor(llm))
        report = service.preview(PreviewRequest("5A", "Math", roster, ExtractionSource(ocr_text=text)))
        result = service.confirm(ConfirmRequest("5A", "Math", roster, rows, confirm_import=True))
    """

    def __init__(
        self,
        store: ScoreStore,
        extractor: Optional[RowExtractor] = None,
        matcher: Optional[StudentMatcher] = None,
        settings: Optional[ImportConfig] = None,
    ):
        """
        Initialize the service.

        Args:
            store: Score record store written by confirm()
            extractor: Row extractor (text parser only if not given)
            matcher: Student matcher (built from settings if not given)
            settings: Import policy (defaults if not given)
        """
        self.settings = settings or ImportConfig()
        self.store = store
        self.extractor = extractor or RowExtractor(default_max_marks=self.settings.default_max_marks)
        self.matcher = matcher or StudentMatcher(
            threshold=self.settings.match_threshold,
            limit=self.settings.candidate_limit,
        )

    # -------------------------------------------------------------------------
    # Preview
    # -------------------------------------------------------------------------

    def preview(self, request: PreviewRequest) -> PreviewReport:
        """
        Build an annotated preview of an import. Never writes.

        Raises:
            ImportRequestError: Missing class/subject or nothing to extract from
        """
        self._require_class_and_subject(request.class_name, request.subject)
        if request.source is None or request.source.is_empty:
            raise ImportRequestError("Provide OCR text, an image or extracted rows before running preview.")

        class_name = request.class_name.strip()
        subject = request.subject.strip()
        default_label = self._label(request.assessment_label)
        default_max_marks = float(request.default_max_marks or self.settings.default_max_marks)

        extraction = self.extractor.extract(request.source, default_max_marks)
        directory = StudentDirectory(request.roster)

        rows = [
            self._preview_row(index, raw, directory, subject, default_label, default_max_marks)
            for index, raw in enumerate(extraction.rows)
        ]

        report = PreviewReport(
            rows=rows,
            detected_columns=extraction.columns,
            notes=extraction.notes,
            strategy=extraction.strategy,
        )
        logger.info(
            f"Preview {class_name}/{subject}: {len(rows)} rows, "
            f"{len(report.matched_rows)} matched, {len(report.unrecognized_rows)} unrecognized, "
            f"{len(report.overwrite_rows)} need overwrite confirmation"
        )
        return report

    def _preview_row(
        self,
        index: int,
        raw: RawRow,
        directory: StudentDirectory,
        subject: str,
        default_label: str,
        default_max_marks: float,
    ) -> PreviewRow:
        issues = list(raw.issues)

        score = raw.score
        max_marks = raw.max_marks if raw.max_marks is not None else default_max_marks
        max_ok = max_marks is not None and max_marks > 0

        if not raw.source_student_name:
            issues.append(IssueCode.MISSING_STUDENT_NAME)
        if score is None:
            issues.append(IssueCode.MISSING_SCORE)
        if not max_ok:
            issues.append(IssueCode.INVALID_MAX_MARKS)
        if score is not None and max_ok and (score < 0 or score > max_marks):
            issues.append(IssueCode.SCORE_OUT_OF_RANGE)

        match = self._match(raw, directory)
        entry = directory.get(match.matched_student_id) if match.matched_student_id else None
        if entry is None:
            issues.append(IssueCode.UNRECOGNIZED_NAME)

        label = self._label(raw.assessment_label or default_label)
        overwrite = check_overwrite(entry.existing_scores if entry else [], subject, label, score, max_marks)
        if overwrite.requires_overwrite_confirmation:
            issues.append(IssueCode.OVERWRITE_CONFIRMATION_REQUIRED)

        percentage = None
        if score is not None and max_ok:
            percentage = round(min(max(score / max_marks * 100, 0.0), 100.0), 2)

        return PreviewRow(
            row_index=index,
            source_student_name=raw.source_student_name,
            matched_student_id=match.matched_student_id,
            matched_student_name=match.matched_student_name,
            match_confidence=round(match.confidence, 3),
            candidate_matches=match.candidates,
            score=score,
            max_marks=max_marks,
            normalized_percentage=percentage,
            assessment_label=label,
            issues=_dedupe(issues),
            requires_overwrite_confirmation=overwrite.requires_overwrite_confirmation,
            skip=raw.skip,
            confirm_overwrite=raw.confirm_overwrite,
            existing=overwrite.existing,
        )

    def _match(self, raw: RawRow, directory: StudentDirectory) -> MatchResult:
        if not raw.matched_student_id:
            return self.matcher.resolve(raw.source_student_name, directory)

        # Reviewed rows keep their chosen student if it is on the roster
        entry = directory.get(raw.matched_student_id)
        candidates = self.matcher.candidates(raw.source_student_name, directory)
        if entry is None:
            return MatchResult(candidates=candidates)
        return MatchResult(entry.student_id, entry.student_name, 1.0, candidates)

    # -------------------------------------------------------------------------
    # Confirm
    # -------------------------------------------------------------------------

    def confirm(self, request: ConfirmRequest) -> ImportResult:
        """
        Apply reviewed rows. Only rows passing every check are written.

        Raises:
            ImportRequestError: Missing class/subject, no confirmation, or no rows
        """
        self._require_class_and_subject(request.class_name, request.subject)
        if request.confirm_import is not True:
            raise ImportRequestError("Import confirmation is required. No grades were changed.")
        if not request.rows:
            raise ImportRequestError("At least one row is required for import.")

        class_name = request.class_name.strip()
        directory = StudentDirectory(request.roster)
        result = ImportResult()

        for index, item in enumerate(request.rows):
            row = item.to_dict() if isinstance(item, PreviewRow) else item
            if not isinstance(row, dict):
                row = {}

            row_index = row.get("row_index", row.get("rowIndex", index))
            if not isinstance(row_index, int) or isinstance(row_index, bool):
                row_index = index
            source_name = normalize_whitespace(_lookup(row, NAME_KEYS, ""))

            outcome = self._confirm_row(row, directory, request, class_name)
            result.record(row_index, source_name, outcome)

        logger.info(
            f"Confirm {class_name}/{request.subject.strip()}: "
            f"{result.created_count} created, {result.updated_count} updated, "
            f"{result.skipped_count} skipped, {result.unrecognized_count} unrecognized"
        )
        return result

    def _confirm_row(
        self,
        row: Dict[str, Any],
        directory: StudentDirectory,
        request: ConfirmRequest,
        class_name: str,
    ) -> ImportOutcome:
        if row.get("skip") is True:
            return Skipped(SkipReason.ROW_MARKED_TO_SKIP)

        student_id = str(_lookup(row, MATCHED_ID_KEYS, "")).strip()
        if not is_valid_student_id(student_id):
            return Unrecognized()

        entry = directory.get(student_id)
        if entry is None or not entry.in_class(class_name):
            return Skipped(SkipReason.UNAUTHORIZED_STUDENT, student_id)

        score = _to_number(row.get("score"))
        max_marks = _to_number(_lookup(row, MAX_MARKS_KEYS))
        if score is None or max_marks is None or max_marks <= 0:
            return Skipped(SkipReason.INVALID_NUMERIC_VALUES, student_id)

        if score < 0 or score > max_marks:
            return Skipped(SkipReason.SCORE_OUT_OF_RANGE, student_id)

        subject = request.subject.strip()
        label = self._label(_lookup(row, LABEL_KEYS) or request.assessment_label)

        overwrite = check_overwrite(self.store.get(student_id), subject, label, score, max_marks)
        confirmed = any(row.get(key) is True for key in CONFIRM_KEYS)
        if overwrite.requires_overwrite_confirmation and not confirmed:
            return Skipped(SkipReason.OVERWRITE_CONFIRMATION_REQUIRED, student_id)
        if overwrite.no_change:
            return Skipped(SkipReason.NO_CHANGE_DETECTED, student_id)

        record = ScoreRecord(
            subject=subject,
            assessment_label=label,
            score=score,
            max_marks=max_marks,
            recorded_by=request.recorded_by,
            recorded_at=utcnow(),
        )
        replaced = self.store.upsert(student_id, record)
        logger.debug(f"{'Updated' if replaced else 'Created'} {subject}/{label} for {entry.student_name}: {score:g}/{max_marks:g}")

        return Updated(student_id) if replaced else Created(student_id)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _label(self, value) -> str:
        return normalize_whitespace(value) or self.settings.default_assessment_label

    @staticmethod
    def _require_class_and_subject(class_name: str, subject: str):
        if not str(class_name or "").strip() or not str(subject or "").strip():
            raise ImportRequestError("Class name and subject are required.")
