from datetime import date, datetime

import structlog

from opsdesk.core.errors import InvalidTransition, NotFound, ValidationFailed
from opsdesk.db.session import commit_or_rollback
from opsdesk.db.tenant import TenantContext
from opsdesk.models.models import (
    Deduction, Project, Task, TaskStatus, Worker, WorkerProjectRate
)

logger = structlog.get_logger(__name__)

# completed is terminal
TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.PENDING: frozenset({TaskStatus.IN_PROGRESS, TaskStatus.DELAYED, TaskStatus.COMPLETED}),
    TaskStatus.IN_PROGRESS: frozenset({TaskStatus.PENDING, TaskStatus.DELAYED, TaskStatus.COMPLETED}),
    TaskStatus.DELAYED: frozenset({TaskStatus.PENDING, TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED}),
    TaskStatus.COMPLETED: frozenset(),
}


def _clean(text: str | None) -> str | None:
    if text is None:
        return None
    text = text.strip()
    return text or None


def can_transition(current, requested) -> bool:
    return TaskStatus(requested) in TRANSITIONS[TaskStatus(current)]


def transition(task, new_status, reason: str | None = None, now: datetime | None = None):
    """Move ``task`` to ``new_status`` and apply the side effects of entering it.

    Raises InvalidTransition for undeclared edges and ValidationFailed when a
    delay is requested without a reason. The task is left untouched on error.
    """
    current = TaskStatus(task.status)
    requested = TaskStatus(new_status)
    if not can_transition(current, requested):
        raise InvalidTransition(current.value, requested.value)

    reason = _clean(reason)
    if requested == TaskStatus.DELAYED and not reason:
        raise ValidationFailed("A reason is required when marking a task as delayed")

    now = now or datetime.utcnow()
    task.status = requested
    if requested == TaskStatus.COMPLETED:
        task.completed_at = now
    elif requested == TaskStatus.DELAYED:
        task.delay_reason = reason
    task.status_changed_at = now
    return task


def requires_late_reason(task_date: date, today: date | None = None) -> bool:
    return task_date < (today or date.today())


def resolve_rate(tenant: TenantContext, worker_id: str, project_id: str) -> float:
    rate = tenant.db.query(WorkerProjectRate).filter(
        WorkerProjectRate.worker_id == worker_id,
        WorkerProjectRate.project_id == project_id
    ).first()
    return rate.rate if rate else 0.0


def create_task(
    tenant: TenantContext,
    worker_id: str,
    project_id: str,
    task_date: date,
    description: str | None = None,
    late_reason: str | None = None,
    today: date | None = None,
) -> Task:
    worker = tenant.get_or_404(Worker, worker_id, "Worker")
    project = tenant.get_or_404(Project, project_id, "Project")

    is_late = requires_late_reason(task_date, today)
    if is_late and not (late_reason or "").strip():
        raise ValidationFailed("A late reason is required for tasks dated before today")

    task = Task(
        organization_id=tenant.org_id,
        worker_id=worker.id,
        project_id=project.id,
        date=task_date,
        description=_clean(description),
        amount=resolve_rate(tenant, worker.id, project.id),
        status=TaskStatus.PENDING,
        late_reason=late_reason if is_late else None,
    )
    tenant.db.add(task)
    commit_or_rollback(tenant.db, "create_task", worker_id=worker.id)
    tenant.db.refresh(task)
    logger.info("task_created", task_id=task.id, worker_id=worker.id,
                project_id=project.id, amount=task.amount, late=is_late)
    return task


def change_status(tenant: TenantContext, task: Task, new_status, reason: str | None = None) -> Task:
    previous = TaskStatus(task.status)
    transition(task, new_status, reason)
    commit_or_rollback(tenant.db, "change_task_status", task_id=task.id)
    tenant.db.refresh(task)
    logger.info("task_status_changed", task_id=task.id,
                previous=previous.value, status=TaskStatus(task.status).value)
    return task


def add_deduction(tenant: TenantContext, task: Task, amount: float, reason: str) -> Deduction:
    reason = _clean(reason)
    if amount is None or amount <= 0:
        raise ValidationFailed("Deduction amount must be positive")
    if not reason:
        raise ValidationFailed("A deduction reason is required")

    deduction = Deduction(task_id=task.id, amount=amount, reason=reason)
    tenant.db.add(deduction)
    commit_or_rollback(tenant.db, "add_deduction", task_id=task.id)
    tenant.db.refresh(deduction)
    logger.info("deduction_added", task_id=task.id, deduction_id=deduction.id, amount=amount)
    return deduction


def remove_deduction(tenant: TenantContext, task: Task, deduction_id: str) -> None:
    deduction = tenant.db.query(Deduction).filter(
        Deduction.id == deduction_id, Deduction.task_id == task.id
    ).first()
    if deduction is None:
        raise NotFound("Deduction not found")
    tenant.db.delete(deduction)
    commit_or_rollback(tenant.db, "remove_deduction", task_id=task.id)
    logger.info("deduction_removed", task_id=task.id, deduction_id=deduction_id)
