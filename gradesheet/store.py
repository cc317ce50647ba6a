#!/usr/bin/env python3
"""
Score Record Stores - Where confirmed grades are written.

- InMemoryScoreStore: dict-backed, for tests and dry runs
- SqlScoreStore: SQLAlchemy-backed, one committed transaction per upsert

Writes for one student are serialized by locking the student row
(SELECT ... FOR UPDATE) so the record read before the write is still
the one being replaced.
"""

import abc
import logging
from dataclasses import replace
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from database.models import Student, ExamMark, utcnow
from .exceptions import GradeImportError
from .models import ScoreRecord, RosterEntry

logger = logging.getLogger(__name__)


class ScoreStore(abc.ABC):
    """Interface for reading and writing a student's score records."""

    @abc.abstractmethod
    def get(self, student_id: str) -> List[ScoreRecord]:
        """Return the student's current score records."""
        raise NotImplementedError

    @abc.abstractmethod
    def upsert(self, student_id: str, record: ScoreRecord) -> bool:
        """
        Write a record, replacing any with the same (subject, assessment) key.

        Returns:
            True if an existing record was replaced, False if appended
        """
        raise NotImplementedError


class InMemoryScoreStore(ScoreStore):
    """Dict-backed store. Records are copied in and out."""

    def __init__(self, records: Optional[Dict[str, List[ScoreRecord]]] = None):
        self._records: Dict[str, List[ScoreRecord]] = {
            str(student_id): [replace(r) for r in items]
            for student_id, items in (records or {}).items()
        }

    @classmethod
    def from_roster(cls, roster: List[RosterEntry]) -> "InMemoryScoreStore":
        """Seed the store with the existing scores carried on a roster."""
        return cls({entry.student_id: entry.existing_scores for entry in roster})

    def get(self, student_id: str) -> List[ScoreRecord]:
        return [replace(r) for r in self._records.get(str(student_id), [])]

    def upsert(self, student_id: str, record: ScoreRecord) -> bool:
        records = self._records.setdefault(str(student_id), [])
        for index, existing in enumerate(records):
            if existing.key == record.key:
                records[index] = replace(record)
                return True
        records.append(replace(record))
        return False


def exam_mark_to_record(mark: ExamMark) -> ScoreRecord:
    """Convert an ExamMark row into a ScoreRecord."""
    return ScoreRecord(
        subject=mark.subject,
        assessment_label=mark.assessment_label,
        score=mark.score,
        max_marks=mark.max_marks,
        recorded_by=mark.recorded_by or "",
        recorded_at=mark.recorded_at,
    )


def _primary_key(student_id) -> Optional[int]:
    value = str(student_id or "").strip()
    return int(value) if value.isdigit() else None


class SqlScoreStore(ScoreStore):
    """
    SQLAlchemy-backed store over the exam_marks table.

    Usage:
        store = SqlScoreStore(get_session())
        store.upsert("12", ScoreRecord("Math", "Quiz 1", 9, 10))
    """

    def __init__(self, session: Session):
        """
        Initialize the store.

        Args:
            session: SQLAlchemy database session
        """
        self.session = session

    def get(self, student_id: str) -> List[ScoreRecord]:
        pk = _primary_key(student_id)
        if pk is None:
            return []
        marks = (
            self.session.query(ExamMark)
            .filter(ExamMark.student_id == pk)
            .order_by(ExamMark.id)
            .all()
        )
        return [exam_mark_to_record(mark) for mark in marks]

    def upsert(self, student_id: str, record: ScoreRecord) -> bool:
        pk = _primary_key(student_id)
        subject_key, label_key = record.key

        try:
            student = (
                self.session.query(Student)
                .filter(Student.id == pk)
                .with_for_update()
                .first()
            ) if pk is not None else None

            if student is None:
                raise GradeImportError(f"Student {student_id} not found")

            mark = (
                self.session.query(ExamMark)
                .filter_by(student_id=pk, subject_key=subject_key, assessment_key=label_key)
                .first()
            )
            replaced = mark is not None

            if mark is None:
                mark = ExamMark(student_id=pk, subject_key=subject_key, assessment_key=label_key)
                self.session.add(mark)

            mark.subject = record.subject
            mark.assessment_label = record.assessment_label
            mark.score = record.score
            mark.max_marks = record.max_marks
            mark.percentage = record.percentage
            mark.recorded_by = record.recorded_by
            mark.recorded_at = record.recorded_at or utcnow()

            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        logger.debug(f"{'Updated' if replaced else 'Created'} exam mark for student {student_id}: {label_key}")
        return replaced

