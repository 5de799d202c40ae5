"""
Database connection and session management
"""

import logging
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from proctorly.core.config import settings
from proctorly.core.exceptions import StoreFailure

logger = logging.getLogger("proctorly.database")

Base = declarative_base()


def build_engine(database_url: str) -> Engine:
    """Create an engine; SQLite connections are shared across worker threads."""
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False, "timeout": 30}
    return create_engine(database_url, connect_args=connect_args, echo=False)


engine = build_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """Get database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def store_errors(db: Session, action: str):
    """Roll back and re-raise driver/ORM errors as StoreFailure"""
    try:
        yield
    except SQLAlchemyError as e:
        logger.error(f"Store failure while trying to {action}: {e}")
        db.rollback()
        raise StoreFailure(f"Failed to {action}") from e


def init_db(bind: Engine = None):
    """Initialize database - create tables"""
    from proctorly.models.subject import Subject  # noqa: F401
    from proctorly.models.event import Event  # noqa: F401
    Base.metadata.create_all(bind=bind or engine)
