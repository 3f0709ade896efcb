"""
Task persistence: CRUD and board filtering over the tasks table.
"""

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from engine.models import ExtractedTaskFields, TaskPriority, TaskStatus, format_utc

from .database import Task, utcnow

logger = logging.getLogger(__name__)

# Fields a client may change on an existing task
UPDATABLE_FIELDS = ("title", "description", "status", "priority", "due_date")


def _to_storage(value: Optional[datetime]) -> Optional[datetime]:
    """Aware datetime → naive UTC. Naive input is assumed to be UTC already."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def task_to_dict(task: Task) -> dict:
    return {
        "id": task.id,
        "title": task.title,
        "description": task.description,
        "status": task.status,
        "priority": task.priority,
        "due_date": format_utc(task.due_date),
        "created_at": format_utc(task.created_at),
        "updated_at": format_utc(task.updated_at),
    }


class TaskStore:
    """Reads and writes tasks through one SQLAlchemy session."""

    def __init__(self, db: Session):
        self.db = db

    def list_tasks(
        self,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        search: Optional[str] = None,
        due: Optional[str] = None,
        due_from: Optional[date] = None,
        due_to: Optional[date] = None,
        today: Optional[date] = None,
    ) -> list[Task]:
        """List tasks, newest first.

        due="overdue" keeps tasks due before today (UTC). due="range" keeps
        tasks whose due day falls within [due_from, due_to]; either bound may
        be omitted. Tasks with no due date never match a due filter.
        """
        query = self.db.query(Task)

        if status:
            query = query.filter(Task.status == status)
        if priority:
            query = query.filter(Task.priority == priority)
        if search and search.strip():
            pattern = f"%{search.strip()}%"
            query = query.filter(or_(Task.title.ilike(pattern), Task.description.ilike(pattern)))

        if due == "overdue":
            today = today or datetime.now(timezone.utc).date()
            query = query.filter(Task.due_date.isnot(None), Task.due_date < datetime.combine(today, time.min))
        elif due == "range":
            query = query.filter(Task.due_date.isnot(None))
            if due_from:
                query = query.filter(Task.due_date >= datetime.combine(due_from, time.min))
            if due_to:
                query = query.filter(Task.due_date < datetime.combine(due_to + timedelta(days=1), time.min))

        return query.order_by(Task.created_at.desc()).all()

    def get_task(self, task_id: str) -> Optional[Task]:
        return self.db.query(Task).filter(Task.id == task_id).first()

    def create_task(
        self,
        title: str,
        description: Optional[str] = None,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        due_date: Optional[datetime] = None,
    ) -> Task:
        if not title or not title.strip():
            raise ValueError("Title is required")
        now = utcnow()
        task = Task(
            title=title.strip(),
            description=description,
            status=status or TaskStatus.TODO.value,
            priority=priority or TaskPriority.MEDIUM.value,
            due_date=_to_storage(due_date),
            created_at=now,
            updated_at=now,
        )
        self.db.add(task)
        self.db.commit()
        self.db.refresh(task)
        logger.info(f"Created task | ID: {task.id} | Title: {task.title}")
        return task

    def create_from_fields(self, fields: ExtractedTaskFields, transcript: str) -> Task:
        """Persist extracted fields, filling the defaults the pipeline leaves open."""
        return self.create_task(
            title=fields.title or transcript,
            description=fields.description,
            status=fields.status.value,
            priority=fields.priority.value if fields.priority else None,
            due_date=fields.due_date,
        )

    def update_task(self, task_id: str, changes: dict) -> Optional[Task]:
        """Apply a partial update. Returns None when the task doesn't exist."""
        task = self.get_task(task_id)
        if not task:
            return None

        changes = {name: value for name, value in changes.items() if name in UPDATABLE_FIELDS}
        for name, value in changes.items():
            if name == "title" and (value is None or not str(value).strip()):
                raise ValueError("Title cannot be empty")
            if name in ("status", "priority") and value is None:
                raise ValueError(f"{name.capitalize()} cannot be null")

        for name, value in changes.items():
            if name == "due_date":
                value = _to_storage(value)
            setattr(task, name, value)

        task.updated_at = utcnow()
        self.db.commit()
        self.db.refresh(task)
        logger.info(f"Updated task | ID: {task.id} | Fields: {', '.join(changes) or 'none'}")
        return task

    def delete_task(self, task_id: str) -> bool:
        task = self.get_task(task_id)
        if not task:
            return False
        self.db.delete(task)
        self.db.commit()
        logger.info(f"Deleted task | ID: {task_id}")
        return True
