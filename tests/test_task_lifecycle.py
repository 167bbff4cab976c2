"""Tests for task status transitions, late entries, rates and deductions."""

from datetime import date, datetime, timedelta
from types import SimpleNamespace

import pytest

from opsdesk.core.errors import InvalidTransition, NotFound, ValidationFailed
from opsdesk.models.models import Task, TaskStatus
from opsdesk.services import task_lifecycle

TODAY = date(2024, 3, 14)


def make_task(status=TaskStatus.PENDING):
    return SimpleNamespace(
        status=status, completed_at=None, delay_reason=None, status_changed_at=None
    )


def test_completing_sets_completed_at():
    task = make_task(TaskStatus.IN_PROGRESS)
    now = datetime(2024, 3, 14, 10, 0)
    task_lifecycle.transition(task, TaskStatus.COMPLETED, now=now)
    assert task.status == TaskStatus.COMPLETED
    assert task.completed_at == now
    assert task.status_changed_at == now


def test_delay_requires_reason():
    task = make_task()
    with pytest.raises(ValidationFailed):
        task_lifecycle.transition(task, TaskStatus.DELAYED, reason="   ")
    assert task.status == TaskStatus.PENDING
    assert task.status_changed_at is None


def test_delay_stores_reason():
    task = make_task()
    task_lifecycle.transition(task, "delayed", reason="Rain all day")
    assert task.status == TaskStatus.DELAYED
    assert task.delay_reason == "Rain all day"


def test_completed_is_terminal():
    task = make_task(TaskStatus.COMPLETED)
    for status in (TaskStatus.PENDING, TaskStatus.IN_PROGRESS, TaskStatus.DELAYED):
        with pytest.raises(InvalidTransition):
            task_lifecycle.transition(task, status, reason="late")
    assert task.status == TaskStatus.COMPLETED


def test_same_status_is_rejected():
    task = make_task(TaskStatus.IN_PROGRESS)
    with pytest.raises(InvalidTransition) as exc:
        task_lifecycle.transition(task, TaskStatus.IN_PROGRESS)
    assert exc.value.status_code == 409
    assert "in_progress" in exc.value.message


def test_delayed_task_can_resume():
    task = make_task(TaskStatus.DELAYED)
    task_lifecycle.transition(task, TaskStatus.IN_PROGRESS)
    assert task.status == TaskStatus.IN_PROGRESS


def test_requires_late_reason_only_for_past_dates():
    assert task_lifecycle.requires_late_reason(TODAY - timedelta(days=1), today=TODAY)
    assert not task_lifecycle.requires_late_reason(TODAY, today=TODAY)
    assert not task_lifecycle.requires_late_reason(TODAY + timedelta(days=2), today=TODAY)


def test_create_task_captures_rate(tenant, worker, project, rate):
    task = task_lifecycle.create_task(tenant, worker.id, project.id, TODAY, today=TODAY)
    assert task.amount == 120.0
    assert task.status == TaskStatus.PENDING

    rate.rate = 200.0
    tenant.db.commit()
    tenant.db.refresh(task)
    assert task.amount == 120.0


def test_create_task_without_rate_is_zero(tenant, worker, project):
    task = task_lifecycle.create_task(tenant, worker.id, project.id, TODAY, today=TODAY)
    assert task.amount == 0.0


def test_late_task_rejected_without_reason(tenant, worker, project):
    with pytest.raises(ValidationFailed):
        task_lifecycle.create_task(tenant, worker.id, project.id, TODAY - timedelta(days=2), today=TODAY)
    assert tenant.query(Task).count() == 0


def test_late_task_stores_reason_verbatim(tenant, worker, project):
    task = task_lifecycle.create_task(
        tenant, worker.id, project.id, TODAY - timedelta(days=2),
        late_reason="Forgot to log it on site", today=TODAY,
    )
    assert task.late_reason == "Forgot to log it on site"


def test_late_reason_keeps_surrounding_spaces(tenant, worker, project):
    task = task_lifecycle.create_task(
        tenant, worker.id, project.id, TODAY - timedelta(days=1),
        late_reason="  Rain delayed the crew ", today=TODAY,
    )
    assert task.late_reason == "  Rain delayed the crew "


def test_blank_late_reason_rejected(tenant, worker, project):
    with pytest.raises(ValidationFailed):
        task_lifecycle.create_task(
            tenant, worker.id, project.id, TODAY - timedelta(days=1), late_reason="   ", today=TODAY,
        )


def test_create_task_for_other_tenant_worker(tenant, other_tenant, worker, project):
    with pytest.raises(NotFound):
        task_lifecycle.create_task(other_tenant, worker.id, project.id, TODAY, today=TODAY)


def test_change_status_persists(tenant, worker, project):
    task = task_lifecycle.create_task(tenant, worker.id, project.id, TODAY, today=TODAY)
    task_lifecycle.change_status(tenant, task, TaskStatus.COMPLETED)
    stored = tenant.get(Task, task.id)
    assert stored.status == TaskStatus.COMPLETED
    assert stored.completed_at is not None


def test_deductions_do_not_change_amount(tenant, worker, project, rate):
    task = task_lifecycle.create_task(tenant, worker.id, project.id, TODAY, today=TODAY)
    first = task_lifecycle.add_deduction(tenant, task, 20, "Broken tiles")
    task_lifecycle.add_deduction(tenant, task, 10, "Late arrival")
    tenant.db.refresh(task)
    assert sorted(d.amount for d in task.deductions) == [10, 20]
    assert task.amount == 120.0

    task_lifecycle.remove_deduction(tenant, task, first.id)
    tenant.db.refresh(task)
    assert [d.amount for d in task.deductions] == [10]
    assert task.amount == 120.0


@pytest.mark.parametrize("amount,reason", [(0, "x"), (-5, "x"), (10, "  ")])
def test_invalid_deductions_rejected(tenant, worker, project, amount, reason):
    task = task_lifecycle.create_task(tenant, worker.id, project.id, TODAY, today=TODAY)
    with pytest.raises(ValidationFailed):
        task_lifecycle.add_deduction(tenant, task, amount, reason)


def test_remove_unknown_deduction(tenant, worker, project):
    task = task_lifecycle.create_task(tenant, worker.id, project.id, TODAY, today=TODAY)
    with pytest.raises(NotFound):
        task_lifecycle.remove_deduction(tenant, task, "missing")
