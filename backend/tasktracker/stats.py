from __future__ import annotations

import math
from datetime import datetime

from sqlalchemy import and_, case, func, or_, select
from sqlalchemy.orm import Session

from .clock import utcnow
from .models import Priority, Task
from .schemas import StatsOut


def _count(cond):
    return func.coalesce(func.sum(case((cond, 1), else_=0)), 0)


def percent(part: int, whole: int) -> int:
    """Whole-number percentage, halves rounded up; 0 when ``whole`` is 0."""
    if whole <= 0:
        return 0
    return int(math.floor(100 * part / whole + 0.5))


def get_statistics(s: Session, user_id: int, *, now: datetime | None = None) -> StatsOut:
    now = now or utcnow()
    done = Task.completed.is_(True)
    open_ = Task.completed.is_(False)
    has_due = Task.due_date.is_not(None)

    stmt = select(
        func.count(Task.id).label("total"),
        _count(done).label("completed"),
        _count(and_(done, or_(Task.due_date.is_(None), Task.completed_at <= Task.due_date))).label("completed_on_time"),
        _count(and_(done, has_due, Task.completed_at > Task.due_date)).label("completed_overdue"),
        _count(and_(open_, or_(Task.due_date.is_(None), Task.due_date >= now))).label("active"),
        _count(and_(open_, has_due, Task.due_date < now)).label("overdue"),
        _count(Task.priority == Priority.HIGH.value).label("high"),
        _count(Task.priority == Priority.MEDIUM.value).label("medium"),
        _count(Task.priority == Priority.LOW.value).label("low"),
        _count(and_(Task.priority == Priority.HIGH.value, done)).label("high_completed"),
        _count(and_(Task.priority == Priority.MEDIUM.value, done)).label("medium_completed"),
        _count(and_(Task.priority == Priority.LOW.value, done)).label("low_completed"),
    ).where(Task.user_id == user_id)

    row = s.execute(stmt).mappings().one()
    counts = {k: int(v or 0) for k, v in row.items()}

    return StatsOut(
        **counts,
        completion_rate=percent(counts["completed"], counts["total"]),
        on_time_rate=percent(counts["completed_on_time"], counts["completed"]),
    )
