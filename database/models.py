#!/usr/bin/env python3
"""
Database Models - SQLAlchemy models for the grade sheet importer

Tables:
- students: Students known to the school
- class_memberships: Which classes each student belongs to
- exam_marks: Recorded scores, one per student/subject/assessment
"""

from datetime import datetime, timezone
from sqlalchemy import (
    Column,
    Integer,
    String,
    Float,
    DateTime,
    ForeignKey,
    Index,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow() -> datetime:
    """Current UTC time, naive, as stored in the DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Student(Base):
    """
    Student record.

    Owned by the student directory; the importer only reads names and
    class membership and writes exam marks.
    """
    __tablename__ = "students"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    memberships = relationship("ClassMembership", back_populates="student", cascade="all, delete-orphan")
    exam_marks = relationship("ExamMark", back_populates="student", cascade="all, delete-orphan")

    @property
    def class_names(self):
        return {m.class_name for m in self.memberships}

    def __repr__(self):
        return f"<Student(id={self.id}, name='{self.name}')>"


class ClassMembership(Base):
    """Student enrollment in a named class (e.g. "Grade 5A")."""
    __tablename__ = "class_memberships"

    id = Column(Integer, primary_key=True)
    student_id = Column(Integer, ForeignKey("students.id"), nullable=False)
    class_name = Column(String(100), nullable=False)

    __table_args__ = (
        UniqueConstraint("student_id", "class_name", name="uq_membership_student_class"),
        Index("ix_membership_class", "class_name"),
    )

    student = relationship("Student", back_populates="memberships")

    def __repr__(self):
        return f"<ClassMembership(student_id={self.student_id}, class_name='{self.class_name}')>"


class ExamMark(Base):
    """
    Recorded score for one assessment.

    Unique per student, subject and assessment label, compared
    case-insensitively through the *_key columns.
    """
    __tablename__ = "exam_marks"

    id = Column(Integer, primary_key=True)
    student_id = Column(Integer, ForeignKey("students.id"), nullable=False)

    subject = Column(String(100), nullable=False)
    assessment_label = Column(String(255), nullable=False)
    subject_key = Column(String(100), nullable=False)
    assessment_key = Column(String(255), nullable=False)

    score = Column(Float, nullable=False)
    max_marks = Column(Float, nullable=False)
    percentage = Column(Float)  # score / max_marks * 100

    recorded_by = Column(String(255))
    recorded_at = Column(DateTime, default=utcnow)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("student_id", "subject_key", "assessment_key", name="uq_exam_mark"),
        Index("ix_exam_mark_student", "student_id"),
    )

    student = relationship("Student", back_populates="exam_marks")

    def __repr__(self):
        return (
            f"<ExamMark(student_id={self.student_id}, subject='{self.subject}', "
            f"assessment='{self.assessment_label}', score={self.score}/{self.max_marks})>"
        )
