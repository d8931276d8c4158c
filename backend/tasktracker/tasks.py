"""Per-user task operations.

Every function is scoped by the owning user's id; a task that belongs to
someone else is indistinguishable from one that does not exist.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from .clock import local_day_bounds, to_naive_utc, utcnow
from .errors import NotFoundError, ValidationError
from .models import Priority, Task, TaskStatus
from .schemas import TaskOut

logger = logging.getLogger(__name__)

PRIORITY_RANK = {Priority.HIGH: 3, Priority.MEDIUM: 2, Priority.LOW: 1}

SORT_COLUMNS = {
    "createdAt": Task.created_at,
    "updatedAt": Task.updated_at,
    "dueDate": Task.due_date,
    "completedAt": Task.completed_at,
    "title": Task.title,
}


@dataclass(slots=True)
class TaskQuery:
    status: str | None = None
    priority: str | None = None
    search: str | None = None
    sort_by: str = "createdAt"
    sort_order: str = "desc"
    filter: str = "all"


def derive_status(completed: bool, due_date: datetime | None, now: datetime) -> TaskStatus:
    if completed:
        return TaskStatus.COMPLETED
    if due_date is not None and due_date < now:
        return TaskStatus.OVERDUE
    return TaskStatus.ACTIVE


def apply_status(t: Task, now: datetime) -> None:
    """Bring ``status`` (and ``completed_at`` for completed tasks) in line with the task's fields."""
    if t.completed and t.completed_at is None:
        t.completed_at = now
    t.status = derive_status(bool(t.completed), t.due_date, now).value


def normalize_priority(raw: str | None) -> Priority:
    pr = (raw or "").strip().capitalize()
    if not pr:
        return Priority.LOW
    try:
        return Priority(pr)
    except ValueError:
        raise ValidationError("Priority must be High, Medium or Low") from None


def task_out(t: Task) -> TaskOut:
    return TaskOut(
        id=int(t.id),
        user_id=int(t.user_id),
        title=t.title,
        description=t.description or "",
        due_date=t.due_date,
        priority=str(t.priority or Priority.LOW.value),
        completed=bool(t.completed),
        completed_at=t.completed_at,
        status=str(t.status),
        created_at=t.created_at,
        updated_at=t.updated_at,
    )


def _clean_title(title: str | None) -> str:
    title = (title or "").strip()
    if not title:
        raise ValidationError("Title is required")
    return title


def _get_owned(s: Session, user_id: int, task_id: int) -> Task:
    t = s.execute(select(Task).where(Task.id == task_id, Task.user_id == user_id)).scalars().first()
    if t is None:
        raise NotFoundError("Task not found")
    return t


def create_task(
    s: Session,
    user_id: int,
    title: str | None,
    description: str | None = None,
    due_date: datetime | None = None,
    priority: str | None = None,
    *,
    now: datetime | None = None,
) -> TaskOut:
    now = now or utcnow()
    t = Task(
        user_id=user_id,
        title=_clean_title(title),
        description=(description or "").strip(),
        due_date=to_naive_utc(due_date),
        priority=normalize_priority(priority).value,
        completed=False,
        completed_at=None,
        created_at=now,
        updated_at=now,
    )
    apply_status(t, now)
    s.add(t)
    s.commit()
    s.refresh(t)
    return task_out(t)


def get_task(s: Session, user_id: int, task_id: int, *, now: datetime | None = None) -> TaskOut:
    t = _get_owned(s, user_id, task_id)
    _heal_overdue(s, [t], now or utcnow())
    return task_out(t)


def update_task(
    s: Session,
    user_id: int,
    task_id: int,
    title: str | None,
    description: str | None = None,
    due_date: datetime | None = None,
    priority: str | None = None,
    *,
    now: datetime | None = None,
) -> TaskOut:
    now = now or utcnow()
    title = _clean_title(title)
    pr = normalize_priority(priority)

    t = _get_owned(s, user_id, task_id)
    t.title = title
    t.description = (description or "").strip()
    t.due_date = to_naive_utc(due_date)
    t.priority = pr.value
    t.updated_at = now
    apply_status(t, now)
    s.commit()
    s.refresh(t)
    return task_out(t)


def delete_task(s: Session, user_id: int, task_id: int) -> None:
    t = _get_owned(s, user_id, task_id)
    s.delete(t)
    s.commit()


def complete_task(s: Session, user_id: int, task_id: int, *, now: datetime | None = None) -> TaskOut:
    # completed_at is re-stamped even if the task was already complete
    now = now or utcnow()
    t = _get_owned(s, user_id, task_id)
    t.completed = True
    t.completed_at = now
    t.status = TaskStatus.COMPLETED.value
    t.updated_at = now
    s.commit()
    s.refresh(t)
    return task_out(t)


def reset_task(s: Session, user_id: int, task_id: int, *, now: datetime | None = None) -> TaskOut:
    now = now or utcnow()
    t = _get_owned(s, user_id, task_id)
    t.completed = False
    t.completed_at = None
    t.updated_at = now
    apply_status(t, now)
    s.commit()
    s.refresh(t)
    return task_out(t)


def _status_clause(status: str, now: datetime):
    try:
        st = TaskStatus(status.strip().lower())
    except ValueError:
        raise ValidationError("Status must be active, completed or overdue") from None
    if st is TaskStatus.COMPLETED:
        return Task.completed.is_(True)
    if st is TaskStatus.OVERDUE:
        return and_(Task.completed.is_(False), Task.due_date.is_not(None), Task.due_date < now)
    return and_(Task.completed.is_(False), or_(Task.due_date.is_(None), Task.due_date >= now))


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def build_filters(user_id: int, q: TaskQuery, now: datetime) -> list:
    """Translate list query parameters into WHERE clauses (all ANDed)."""
    clauses = [Task.user_id == user_id]

    if q.status and q.status.strip().lower() != "all":
        clauses.append(_status_clause(q.status, now))

    if q.priority and q.priority.strip().lower() != "all":
        clauses.append(Task.priority == normalize_priority(q.priority).value)

    term = (q.search or "").strip()
    if term:
        pattern = f"%{_escape_like(term)}%"
        clauses.append(
            or_(
                Task.title.ilike(pattern, escape="\\"),
                Task.description.ilike(pattern, escape="\\"),
            )
        )

    view = (q.filter or "all").strip().lower()
    if view == "today":
        start, end = local_day_bounds(now)
        clauses.extend([Task.due_date >= start, Task.due_date < end])
    elif view == "upcoming":
        clauses.extend([Task.due_date >= now, Task.completed.is_(False)])
    elif view == "overdue":
        clauses.extend([Task.due_date < now, Task.completed.is_(False)])
    elif view == "completed":
        clauses.append(Task.completed.is_(True))
    elif view == "active":
        clauses.append(Task.completed.is_(False))
    # anything else is "all"

    return clauses


def _heal_overdue(s: Session, rows: list[Task], now: datetime) -> None:
    """Persist ``overdue`` for rows whose due date passed since they were last written."""
    stale = [
        t
        for t in rows
        if not t.completed and t.due_date is not None and t.due_date < now and t.status != TaskStatus.OVERDUE.value
    ]
    if not stale:
        return
    for t in stale:
        t.status = TaskStatus.OVERDUE.value
        t.updated_at = now
        logger.debug("task %s is now overdue", t.id)
    s.commit()


def list_tasks(s: Session, user_id: int, q: TaskQuery, *, now: datetime | None = None) -> list[TaskOut]:
    now = now or utcnow()
    descending = (q.sort_order or "").strip().lower() != "asc"
    stmt = select(Task).where(*build_filters(user_id, q, now))

    if q.sort_by == "priority":
        # High > Medium > Low; string order would put Medium last
        rows = list(s.execute(stmt.order_by(Task.id.asc())).scalars().all())
        rows.sort(key=lambda t: PRIORITY_RANK.get(t.priority, 0), reverse=descending)
    else:
        col = SORT_COLUMNS.get(q.sort_by)
        if col is None:
            raise ValidationError(f"Cannot sort by {q.sort_by!r}")
        if descending:
            stmt = stmt.order_by(col.desc().nulls_last(), Task.id.desc())
        else:
            stmt = stmt.order_by(col.asc().nulls_first(), Task.id.asc())
        rows = list(s.execute(stmt).scalars().all())

    _heal_overdue(s, rows, now)
    return [task_out(t) for t in rows]
