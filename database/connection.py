#!/usr/bin/env python3
"""
Database Connection - Engine and sessions for the grade store

Any SQLAlchemy URL works. PostgreSQL/MySQL get a pooled engine; SQLite
shares one connection so an in-memory database lives as long as the engine.
"""

from typing import Optional, Generator
from contextlib import contextmanager

from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool, StaticPool

from config import get_config
from database.models import Base, Student, ClassMembership, ExamMark

# Module-level engine and session factory, created on first use
_engine = None
_SessionLocal = None


def _create_engine(database_url: str):
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(
        database_url,
        poolclass=QueuePool,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
    )


def get_engine(database_url: Optional[str] = None):
    """
    Get the shared engine, creating it on first call.

    Args:
        database_url: Database URL (DATABASE_URL from config if omitted)

    Returns:
        SQLAlchemy engine

    Raises:
        ValueError: If no database URL is configured
    """
    global _engine

    if _engine is None:
        database_url = database_url or get_config().database.url
        if not database_url:
            raise ValueError(
                "DATABASE_URL not configured. Set it in .env file.\n"
                "Example: DATABASE_URL=sqlite:///grades.db"
            )
        _engine = _create_engine(database_url)

    return _engine


def get_session_factory():
    """Get the sessionmaker bound to the shared engine."""
    global _SessionLocal

    if _SessionLocal is None:
        _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=get_engine())

    return _SessionLocal


def get_session() -> Session:
    """
    Open a new session. The caller closes it.

    Score stores commit their own writes; roster reads need no commit.
    """
    return get_session_factory()()


@contextmanager
def get_db() -> Generator[Session, None, None]:
    """
    Session scope that commits on success and rolls back on error.

    Usage:
        with get_db() as db:
            SqlRosterProvider(db).get_roster("Grade 5A")
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(database_url: Optional[str] = None):
    """Create the students, class_memberships and exam_marks tables if missing."""
    Base.metadata.create_all(bind=get_engine(database_url))
    print("Database tables created successfully.")


def drop_db(database_url: Optional[str] = None):
    """Drop every table, including all recorded marks."""
    Base.metadata.drop_all(bind=get_engine(database_url))
    print("Database tables dropped.")


def reset_engine():
    """Dispose of the shared engine so the next call builds a new one."""
    global _engine, _SessionLocal

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None


def test_connection(database_url: Optional[str] = None) -> bool:
    """
    Check that the database answers a trivial query.

    Returns:
        True if the query succeeded
    """
    try:
        with get_engine(database_url).connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        print(f"Database connection failed: {e}")
        return False


# =============================================================================
# MAIN (for testing)
# =============================================================================

if __name__ == "__main__":
    print("Grade Store Connection Check")
    print("=" * 50)

    url = get_config().database.url
    if not url:
        print("\nDATABASE_URL not set in .env file.")
        print("Example: DATABASE_URL=sqlite:///grades.db")
        exit(1)

    print(f"\nDatabase URL: {url[:30]}...")

    if not test_connection():
        print("Connection: FAILED")
        exit(1)

    print("Connection: OK")
    init_db()

    with get_db() as db:
        print(f"\n  Students:     {db.query(Student).count()}")
        print(f"  Memberships:  {db.query(ClassMembership).count()}")
        print(f"  Exam marks:   {db.query(ExamMark).count()}")
