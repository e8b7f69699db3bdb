"""Persistence and SQLModel definitions for the Chorely web frontend."""
from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel, create_engine

from .config import SQLITE_FILE_NAME

# ---------------------------------------------------------------------------
# Database models
# ---------------------------------------------------------------------------
engine = create_engine(
    f"sqlite:///{SQLITE_FILE_NAME}",
    echo=False,
    connect_args={"check_same_thread": False},
)


class UserRecord(SQLModel, table=True):
    __tablename__ = "users"  # type: ignore[assignment]

    id: str = Field(primary_key=True)
    name: str
    login: str = Field(index=True, unique=True)
    role: str = "child"  # parent|child
    created_at: datetime = Field(default_factory=datetime.utcnow)


class TaskTemplateRecord(SQLModel, table=True):
    __tablename__ = "task_templates"  # type: ignore[assignment]

    id: str = Field(primary_key=True)
    title: str
    condition: Optional[str] = None
    active: bool = True
    created_at: datetime = Field(default_factory=datetime.utcnow)


class TemplateAssignment(SQLModel, table=True):
    __tablename__ = "task_template_assignments"  # type: ignore[assignment]
    __table_args__ = (UniqueConstraint("task_template_id", "user_id"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    task_template_id: str = Field(index=True)
    user_id: str = Field(index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class DailyQuotaRecord(SQLModel, table=True):
    __tablename__ = "daily_quotas"  # type: ignore[assignment]
    __table_args__ = (UniqueConstraint("user_id", "weekday"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    weekday: int  # 0 = Sunday
    tasks_required: int = 0
    created_at: datetime = Field(default_factory=datetime.utcnow)


class TaskInstanceRecord(SQLModel, table=True):
    __tablename__ = "task_instances"  # type: ignore[assignment]
    __table_args__ = (UniqueConstraint("user_id", "template_id", "date"),)

    id: str = Field(primary_key=True)
    user_id: str = Field(index=True)
    template_id: str
    date: str = Field(index=True)  # YYYY-MM-DD
    status: str = "pending"  # pending|done|moved
    move_count: int = 0
    created_at: datetime = Field(default_factory=datetime.utcnow)


# ---------------------------------------------------------------------------
# Database initialisation & migrations
# ---------------------------------------------------------------------------
def create_db_and_tables() -> None:
    SQLModel.metadata.create_all(engine)


def _column_exists(conn: sqlite3.Connection, table: str, column: str) -> bool:
    cur = conn.execute(f"PRAGMA table_info({table});")
    return any(row[1] == column for row in cur.fetchall())


def run_migrations() -> None:
    raw = sqlite3.connect(SQLITE_FILE_NAME)
    try:
        if not _column_exists(raw, "task_templates", "condition"):
            raw.execute("ALTER TABLE task_templates ADD COLUMN condition TEXT;")
        if not _column_exists(raw, "task_instances", "move_count"):
            raw.execute("ALTER TABLE task_instances ADD COLUMN move_count INTEGER DEFAULT 0;")
        raw.execute(
            """
            CREATE INDEX IF NOT EXISTS idx_task_instances_user_date
            ON task_instances(user_id, date);
            """
        )
        raw.commit()
    finally:
        raw.close()


create_db_and_tables()
run_migrations()


__all__ = [
    "engine",
    "UserRecord",
    "TaskTemplateRecord",
    "TemplateAssignment",
    "DailyQuotaRecord",
    "TaskInstanceRecord",
    "create_db_and_tables",
    "run_migrations",
]
