"""
Database module for the grade sheet importer

Provides SQLAlchemy models and database connection handling.
"""

from database.models import (
    Base,
    Student,
    ClassMembership,
    ExamMark,
)
from database.connection import get_engine, get_session, get_db, init_db

__all__ = [
    "Base",
    "Student",
    "ClassMembership",
    "ExamMark",
    "get_engine",
    "get_session",
    "get_db",
    "init_db",
]
