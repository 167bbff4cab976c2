import io
from datetime import date
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse
from opsdesk.core.auth import get_tenant
from opsdesk.db.tenant import TenantContext
from opsdesk.models.models import Task, Worker
from opsdesk.schemas.schemas import FinancialReport
from opsdesk.services import reporting

router = APIRouter(prefix="/api/reports", tags=["reports"])


def _tasks_between(tenant: TenantContext, start: date, end: date, worker_id: str = None):
    q = tenant.query(Task).filter(Task.date >= start, Task.date <= end)
    if worker_id:
        q = q.filter(Task.worker_id == worker_id)
    return q.order_by(Task.date).all()


def _range(week_of: date = None, start: date = None, end: date = None) -> tuple[date, date]:
    if start and end:
        if start > end:
            raise HTTPException(status_code=422, detail="start must be on or before end")
        return start, end
    return reporting.week_bounds(week_of or start or end)


@router.get("/financial", response_model=FinancialReport)
def get_financial_report(
    week_of: date = Query(None),
    start: date = Query(None),
    end: date = Query(None),
    tenant: TenantContext = Depends(get_tenant)
):
    start, end = _range(week_of, start, end)
    rows = reporting.daily_breakdown(_tasks_between(tenant, start, end), start, end)
    return {
        "start": start,
        "end": end,
        "currency": tenant.currency,
        "rows": [r.to_dict() for r in rows],
        "totals": reporting.totals(rows),
    }


@router.get("/financial/export")
def export_financial_report(
    week_of: date = Query(None),
    start: date = Query(None),
    end: date = Query(None),
    tenant: TenantContext = Depends(get_tenant)
):
    start, end = _range(week_of, start, end)
    rows = reporting.daily_breakdown(_tasks_between(tenant, start, end), start, end)
    content = reporting.financial_csv(rows, tenant.currency)

    filename = f"financial_report_{start.isoformat()}_{end.isoformat()}.csv"
    return StreamingResponse(
        io.BytesIO(content.encode('utf-8')),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )


@router.get("/workers/{worker_id}")
def get_worker_report(
    worker_id: str,
    start: date = Query(None),
    end: date = Query(None),
    tenant: TenantContext = Depends(get_tenant)
):
    worker = tenant.get_or_404(Worker, worker_id, "Worker")
    start, end = _range(None, start, end)
    tasks = _tasks_between(tenant, start, end, worker.id)
    return reporting.worker_report(worker, tasks, start, end, tenant.currency)
