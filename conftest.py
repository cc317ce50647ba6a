import pytest
from datetime import datetime
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database.models import Base, Student, ClassMembership, ExamMark
from gradesheet.models import RosterEntry, ScoreRecord

# --- Fixtures ---


@pytest.fixture
def roster():
    """Class 5A roster; Omar is listed but enrolled in 5B only."""
    return [
        RosterEntry("s1", "Ahmed Ali", {"5A"}),
        RosterEntry("s2", "Sara Noor", {"5A"}),
        RosterEntry("s3", "Omar Hassan", {"5B"}),
        RosterEntry(
            "s4", "Layla Mahmoud", {"5A"},
            [ScoreRecord("Math", "Quiz 1", 8, 10, recorded_by="teacher", recorded_at=datetime(2024, 1, 10))],
        ),
    ]


@pytest.fixture
def engine():
    """In-memory SQLite engine shared by every session of a test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def seeded_db(db_session):
    """
    Students 1-3 in Grade 5A (Layla has a Math Quiz 1 mark of 8/10),
    student 4 in Grade 5B only.
    """
    students = [
        Student(id=1, name="Ahmed Ali"),
        Student(id=2, name="Sara Noor"),
        Student(id=3, name="Layla Mahmoud"),
        Student(id=4, name="Omar Hassan"),
    ]
    db_session.add_all(students)
    db_session.add_all([
        ClassMembership(student_id=1, class_name="Grade 5A"),
        ClassMembership(student_id=2, class_name="Grade 5A"),
        ClassMembership(student_id=3, class_name="Grade 5A"),
        ClassMembership(student_id=4, class_name="Grade 5B"),
        ExamMark(
            student_id=3, subject="Math", assessment_label="Quiz 1",
            subject_key="math", assessment_key="quiz 1",
            score=8, max_marks=10, percentage=80.0, recorded_by="teacher",
        ),
        ExamMark(
            student_id=1, subject="Science", assessment_label="Quiz 1",
            subject_key="science", assessment_key="quiz 1",
            score=5, max_marks=10, percentage=50.0,
        ),
    ])
    db_session.commit()
    return db_session
