from datetime import date

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from opsdesk.core.auth import get_tenant
from opsdesk.db.session import commit_or_rollback
from opsdesk.db.tenant import TenantContext
from opsdesk.models.models import Task, TaskStatus
from opsdesk.schemas.schemas import (
    TaskCreate, TaskUpdate, TaskResponse, TaskStatusUpdate,
    DeductionCreate, DeductionResponse
)
from opsdesk.services import task_lifecycle
from opsdesk.services.aggregation import deduction_total, net_amount
from opsdesk.services.reporting import week_bounds

router = APIRouter(prefix="/api/tasks", tags=["tasks"])

logger = structlog.get_logger(__name__)

VALID_TASK_STATUSES = [s.value for s in TaskStatus]


def task_to_response(task: Task) -> TaskResponse:
    return TaskResponse(
        id=task.id,
        worker_id=task.worker_id,
        worker_name=task.worker.name if task.worker else None,
        project_id=task.project_id,
        project_name=task.project.name if task.project else None,
        date=task.date,
        description=task.description,
        amount=task.amount,
        deductions_total=deduction_total(task),
        net_amount=net_amount(task),
        status=task.status.value,
        late_reason=task.late_reason,
        delay_reason=task.delay_reason,
        completed_at=task.completed_at,
        status_changed_at=task.status_changed_at,
        deductions=[DeductionResponse.model_validate(d) for d in task.deductions],
        created_at=task.created_at
    )


def _parse_status(value: str) -> TaskStatus:
    if value not in VALID_TASK_STATUSES:
        raise HTTPException(status_code=422, detail=f"Invalid status. Must be one of: {VALID_TASK_STATUSES}")
    return TaskStatus(value)


@router.get("", response_model=list[TaskResponse])
def list_tasks(
    status: str = Query(None),
    worker_id: str = Query(None),
    project_id: str = Query(None),
    week_of: date = Query(None),
    start: date = Query(None),
    end: date = Query(None),
    tenant: TenantContext = Depends(get_tenant)
):
    q = tenant.query(Task)
    if status:
        q = q.filter(Task.status == _parse_status(status))
    if worker_id:
        q = q.filter(Task.worker_id == worker_id)
    if project_id:
        q = q.filter(Task.project_id == project_id)
    if week_of:
        start, end = week_bounds(week_of)
    if start:
        q = q.filter(Task.date >= start)
    if end:
        q = q.filter(Task.date <= end)
    tasks = q.order_by(Task.date.desc(), Task.created_at.desc()).all()
    return [task_to_response(t) for t in tasks]


@router.post("", response_model=TaskResponse)
def create_task(data: TaskCreate, tenant: TenantContext = Depends(get_tenant)):
    task = task_lifecycle.create_task(
        tenant, data.worker_id, data.project_id, data.date,
        description=data.description, late_reason=data.late_reason
    )
    return task_to_response(task)


@router.get("/{task_id}", response_model=TaskResponse)
def get_task(task_id: str, tenant: TenantContext = Depends(get_tenant)):
    return task_to_response(tenant.get_or_404(Task, task_id, "Task"))


@router.put("/{task_id}", response_model=TaskResponse)
def update_task(task_id: str, data: TaskUpdate, tenant: TenantContext = Depends(get_tenant)):
    task = tenant.get_or_404(Task, task_id, "Task")
    updates = data.model_dump(exclude_unset=True)
    if "description" in updates:
        task.description = (updates["description"] or "").strip() or None
    if updates.get("date") and updates["date"] != task.date:
        requested_reason = updates.get("late_reason") or ""
        late_reason = requested_reason if requested_reason.strip() else task.late_reason
        if task_lifecycle.requires_late_reason(updates["date"]) and not late_reason:
            raise HTTPException(status_code=422, detail="A late reason is required for tasks dated before today")
        task.date = updates["date"]
        if task_lifecycle.requires_late_reason(task.date):
            task.late_reason = late_reason
    commit_or_rollback(tenant.db, "update_task", task_id=task.id)
    tenant.db.refresh(task)
    return task_to_response(task)


@router.post("/{task_id}/status", response_model=TaskResponse)
def update_task_status(task_id: str, data: TaskStatusUpdate, tenant: TenantContext = Depends(get_tenant)):
    task = tenant.get_or_404(Task, task_id, "Task")
    task_lifecycle.change_status(tenant, task, _parse_status(data.status), data.reason)
    return task_to_response(task)


@router.delete("/{task_id}")
def delete_task(task_id: str, tenant: TenantContext = Depends(get_tenant)):
    task = tenant.get_or_404(Task, task_id, "Task")
    tenant.db.delete(task)
    commit_or_rollback(tenant.db, "delete_task", task_id=task_id)
    logger.info("task_deleted", task_id=task_id)
    return {"ok": True}


@router.post("/{task_id}/deductions", response_model=TaskResponse)
def add_deduction(task_id: str, data: DeductionCreate, tenant: TenantContext = Depends(get_tenant)):
    task = tenant.get_or_404(Task, task_id, "Task")
    task_lifecycle.add_deduction(tenant, task, data.amount, data.reason)
    tenant.db.refresh(task)
    return task_to_response(task)


@router.delete("/{task_id}/deductions/{deduction_id}", response_model=TaskResponse)
def remove_deduction(task_id: str, deduction_id: str, tenant: TenantContext = Depends(get_tenant)):
    task = tenant.get_or_404(Task, task_id, "Task")
    task_lifecycle.remove_deduction(tenant, task, deduction_id)
    tenant.db.refresh(task)
    return task_to_response(task)
