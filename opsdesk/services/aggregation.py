"""Financial aggregation over tasks and their deductions.

All functions here are pure reductions: they accept ORM rows or any objects
exposing ``amount``, ``status``, ``date`` and ``deductions`` and never touch
the database. Windows are Monday-based weeks.
"""

from collections import Counter
from dataclasses import dataclass, asdict
from datetime import date, datetime, time, timedelta
from typing import Iterable

from opsdesk.models.models import TaskStatus


@dataclass(frozen=True)
class WorkerStats:
    completed_earnings: float = 0.0
    weekly_project_total: float = 0.0
    all_time_tasks: int = 0
    weekly_tasks: int = 0
    daily_tasks: int = 0
    assigned_tasks: int = 0
    completed_tasks: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class TaskSummary:
    total: int = 0
    assigned: int = 0
    completed: int = 0
    gross: float = 0.0
    deductions: float = 0.0
    net: float = 0.0


def _as_datetime(value) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    return datetime.fromisoformat(str(value))


def deduction_total(task) -> float:
    return sum((d.amount or 0) for d in (getattr(task, "deductions", None) or []))


def net_amount(task) -> float:
    # not floored: deductions larger than the amount give a negative net
    return (task.amount or 0) - deduction_total(task)


def week_window(now: datetime | date) -> tuple[datetime, datetime]:
    """Monday 00:00 through Sunday 23:59:59.999999 of the week containing ``now``."""
    day = _as_datetime(now).date()
    monday = day - timedelta(days=day.weekday())
    start = datetime.combine(monday, time.min)
    end = datetime.combine(monday + timedelta(days=6), time.max)
    return start, end


def day_window(now: datetime | date) -> tuple[datetime, datetime]:
    day = _as_datetime(now).date()
    return datetime.combine(day, time.min), datetime.combine(day, time.max)


def in_window(task, window: tuple[datetime, datetime]) -> bool:
    start, end = window
    return start <= _as_datetime(task.date) <= end


def tasks_in_window(tasks: Iterable, window: tuple[datetime, datetime]) -> list:
    return [t for t in tasks if in_window(t, window)]


def is_completed(task) -> bool:
    return task.status == TaskStatus.COMPLETED


def is_assigned(task) -> bool:
    return task.status == TaskStatus.PENDING


def worker_stats(tasks: Iterable, now: datetime) -> WorkerStats:
    tasks = list(tasks)
    weekly = tasks_in_window(tasks, week_window(now))
    daily = tasks_in_window(tasks, day_window(now))
    weekly_completed = [t for t in weekly if is_completed(t)]

    return WorkerStats(
        completed_earnings=sum(net_amount(t) for t in weekly_completed),
        weekly_project_total=sum(net_amount(t) for t in weekly),
        all_time_tasks=len(tasks),
        weekly_tasks=len(weekly),
        daily_tasks=len(daily),
        assigned_tasks=sum(1 for t in weekly if is_assigned(t)),
        completed_tasks=len(weekly_completed),
    )


def summarize(tasks: Iterable) -> TaskSummary:
    tasks = list(tasks)
    gross = sum((t.amount or 0) for t in tasks)
    deductions = sum(deduction_total(t) for t in tasks)
    return TaskSummary(
        total=len(tasks),
        assigned=sum(1 for t in tasks if is_assigned(t)),
        completed=sum(1 for t in tasks if is_completed(t)),
        gross=gross,
        deductions=deductions,
        net=gross - deductions,
    )


def status_counts(tasks: Iterable) -> dict[str, int]:
    counts = Counter(TaskStatus(t.status).value for t in tasks)
    return {s.value: counts.get(s.value, 0) for s in TaskStatus}


def total_payouts(tasks: Iterable) -> float:
    return sum(net_amount(t) for t in tasks)
