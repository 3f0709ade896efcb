"""
Database configuration and models using SQLAlchemy.
Supports SQLite (default) or PostgreSQL.
"""

import os
import uuid
from datetime import datetime, timezone

from sqlalchemy import create_engine, CheckConstraint, Column, String, Text, DateTime, event
from sqlalchemy.orm import declarative_base, sessionmaker

# Database URL - defaults to SQLite, can use PostgreSQL
DATABASE_URL = os.environ.get(
    "DATABASE_URL",
    "sqlite:///./data/tasks.db"
)

# Handle PostgreSQL URL format from some cloud providers
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)

# Create engine
if DATABASE_URL.startswith("sqlite"):
    engine = create_engine(DATABASE_URL, connect_args={"check_same_thread": False})

    # Enable WAL mode for crash safety and better concurrent access
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.close()
else:
    engine = create_engine(DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

TASK_STATUSES = ("To Do", "In Progress", "Done")
TASK_PRIORITIES = ("Low", "Medium", "High", "Urgent")


def utcnow() -> datetime:
    """Naive UTC timestamp for storage (SQLite keeps no tzinfo)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ============================================================================
# MODELS
# ============================================================================

class Task(Base):
    """A unit of work on the board."""
    __tablename__ = "tasks"
    __table_args__ = (
        CheckConstraint(f"status IN {TASK_STATUSES}", name="ck_tasks_status"),
        CheckConstraint(f"priority IN {TASK_PRIORITIES}", name="ck_tasks_priority"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    title = Column(String(500), nullable=False)
    description = Column(Text)
    status = Column(String(20), nullable=False, default="To Do")
    priority = Column(String(20), nullable=False, default="Medium")

    # All timestamps are naive UTC
    due_date = Column(DateTime, index=True)
    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


# ============================================================================
# DATABASE HELPERS
# ============================================================================

def init_db():
    """Initialize database tables."""
    # Ensure data directory exists for SQLite
    if DATABASE_URL.startswith("sqlite:///"):
        db_dir = os.path.dirname(DATABASE_URL.replace("sqlite:///", "", 1))
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

    Base.metadata.create_all(bind=engine)


def get_db():
    """Get database session (for FastAPI dependency injection)."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
