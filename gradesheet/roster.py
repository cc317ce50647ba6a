#!/usr/bin/env python3
"""
Roster Provider - Load the students a grade sheet can be imported against.

Authorization happens before this point; the provider only scopes the
roster to members of one class.
"""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session, selectinload

from database.models import Student, ClassMembership
from .models import RosterEntry
from .store import exam_mark_to_record

logger = logging.getLogger(__name__)


def student_to_roster_entry(student: Student, subject: Optional[str] = None) -> RosterEntry:
    """
    Convert a Student row into a RosterEntry.

    Args:
        student: Student with memberships and exam marks loaded
        subject: If given, only scores for this subject are carried

    Returns:
        RosterEntry keyed by the string form of the student's id
    """
    marks = student.exam_marks
    if subject:
        marks = [m for m in marks if (m.subject or "").strip().lower() == subject.strip().lower()]

    return RosterEntry(
        student_id=str(student.id),
        student_name=student.name,
        class_membership=set(student.class_names),
        existing_scores=[exam_mark_to_record(mark) for mark in marks],
    )


class SqlRosterProvider:
    """
    Builds rosters from the students/class_memberships tables.

    Usage:
        provider = SqlRosterProvider(session)
        roster = provider.get_roster("Grade 5A", "Math")
    """

    def __init__(self, session: Session):
        """
        Initialize the provider.

        Args:
            session: SQLAlchemy database session
        """
        self.session = session

    def get_roster(self, class_name: str, subject: Optional[str] = None) -> List[RosterEntry]:
        """
        Get the roster for a class, in name order.

        Args:
            class_name: Class to load
            subject: Optional subject to scope existing scores to

        Returns:
            List of RosterEntry
        """
        students = (
            self.session.query(Student)
            .join(ClassMembership)
            .filter(ClassMembership.class_name == class_name)
            .options(selectinload(Student.memberships), selectinload(Student.exam_marks))
            .order_by(Student.name, Student.id)
            .all()
        )

        logger.info(f"Loaded roster for {class_name}: {len(students)} students")
        return [student_to_roster_entry(student, subject) for student in students]
