from datetime import datetime

import structlog
from fastapi import APIRouter, Depends, HTTPException
from opsdesk.core.auth import get_tenant
from opsdesk.db.session import commit_or_rollback
from opsdesk.db.tenant import TenantContext
from opsdesk.models.models import Project, Worker, WorkerProjectRate
from opsdesk.schemas.schemas import (
    WorkerCreate, WorkerUpdate, WorkerResponse, WorkerStatsResponse,
    RateCreate, RateUpdate, RateResponse
)
from opsdesk.services.aggregation import worker_stats

router = APIRouter(prefix="/api/workers", tags=["workers"])

logger = structlog.get_logger(__name__)


def worker_to_response(worker: Worker, now: datetime | None = None) -> WorkerResponse:
    stats = worker_stats(worker.tasks, now or datetime.utcnow())
    return WorkerResponse(
        id=worker.id, name=worker.name, whatsapp=worker.whatsapp,
        image_url=worker.image_url, created_at=worker.created_at,
        stats=WorkerStatsResponse(**stats.to_dict())
    )


def rate_to_response(rate: WorkerProjectRate) -> RateResponse:
    return RateResponse(
        id=rate.id, worker_id=rate.worker_id, project_id=rate.project_id,
        project_name=rate.project.name if rate.project else None, rate=rate.rate
    )


def _get_rate_or_404(worker: Worker, rate_id: str, tenant: TenantContext) -> WorkerProjectRate:
    rate = tenant.db.query(WorkerProjectRate).filter(
        WorkerProjectRate.id == rate_id, WorkerProjectRate.worker_id == worker.id
    ).first()
    if not rate:
        raise HTTPException(status_code=404, detail="Rate not found")
    return rate


@router.get("", response_model=list[WorkerResponse])
def list_workers(tenant: TenantContext = Depends(get_tenant)):
    now = datetime.utcnow()
    workers = tenant.query(Worker).order_by(Worker.name).all()
    return [worker_to_response(w, now) for w in workers]


@router.post("", response_model=WorkerResponse)
def create_worker(data: WorkerCreate, tenant: TenantContext = Depends(get_tenant)):
    name = data.name.strip()
    if not name:
        raise HTTPException(status_code=422, detail="Worker name is required")
    worker = Worker(
        organization_id=tenant.org_id, name=name,
        whatsapp=(data.whatsapp or "").strip() or None,
        image_url=data.image_url or None
    )
    tenant.db.add(worker)
    commit_or_rollback(tenant.db, "create_worker")
    tenant.db.refresh(worker)
    logger.info("worker_created", worker_id=worker.id)
    return worker_to_response(worker)


@router.get("/{worker_id}", response_model=WorkerResponse)
def get_worker(worker_id: str, tenant: TenantContext = Depends(get_tenant)):
    return worker_to_response(tenant.get_or_404(Worker, worker_id, "Worker"))


@router.put("/{worker_id}", response_model=WorkerResponse)
def update_worker(worker_id: str, data: WorkerUpdate, tenant: TenantContext = Depends(get_tenant)):
    worker = tenant.get_or_404(Worker, worker_id, "Worker")
    updates = data.model_dump(exclude_unset=True)
    if "name" in updates and not (updates["name"] or "").strip():
        raise HTTPException(status_code=422, detail="Worker name is required")
    for field, value in updates.items():
        setattr(worker, field, value)
    commit_or_rollback(tenant.db, "update_worker", worker_id=worker.id)
    tenant.db.refresh(worker)
    return worker_to_response(worker)


@router.delete("/{worker_id}")
def delete_worker(worker_id: str, tenant: TenantContext = Depends(get_tenant)):
    worker = tenant.get_or_404(Worker, worker_id, "Worker")
    task_count = len(worker.tasks)
    tenant.db.delete(worker)
    commit_or_rollback(tenant.db, "delete_worker", worker_id=worker_id)
    logger.info("worker_deleted", worker_id=worker_id, tasks_removed=task_count)
    return {"ok": True}


@router.get("/{worker_id}/rates", response_model=list[RateResponse])
def list_rates(worker_id: str, tenant: TenantContext = Depends(get_tenant)):
    worker = tenant.get_or_404(Worker, worker_id, "Worker")
    return [rate_to_response(r) for r in worker.rates]


@router.post("/{worker_id}/rates", response_model=RateResponse)
def create_rate(worker_id: str, data: RateCreate, tenant: TenantContext = Depends(get_tenant)):
    worker = tenant.get_or_404(Worker, worker_id, "Worker")
    project = tenant.get_or_404(Project, data.project_id, "Project")
    existing = tenant.db.query(WorkerProjectRate).filter(
        WorkerProjectRate.worker_id == worker.id, WorkerProjectRate.project_id == project.id
    ).first()
    if existing:
        raise HTTPException(status_code=400, detail="Worker already has a rate for this project")

    rate = WorkerProjectRate(
        worker_id=worker.id, project_id=project.id,
        rate=data.rate if data.rate is not None else project.base_price
    )
    tenant.db.add(rate)
    commit_or_rollback(tenant.db, "create_rate", worker_id=worker.id, project_id=project.id)
    tenant.db.refresh(rate)
    logger.info("rate_created", worker_id=worker.id, project_id=project.id, rate=rate.rate)
    return rate_to_response(rate)


@router.put("/{worker_id}/rates/{rate_id}", response_model=RateResponse)
def update_rate(worker_id: str, rate_id: str, data: RateUpdate, tenant: TenantContext = Depends(get_tenant)):
    worker = tenant.get_or_404(Worker, worker_id, "Worker")
    rate = _get_rate_or_404(worker, rate_id, tenant)
    previous = rate.rate
    # tasks already created keep the amount they captured
    rate.rate = data.rate
    commit_or_rollback(tenant.db, "update_rate", rate_id=rate.id)
    tenant.db.refresh(rate)
    logger.info("rate_updated", rate_id=rate.id, previous=previous, rate=rate.rate)
    return rate_to_response(rate)


@router.delete("/{worker_id}/rates/{rate_id}")
def delete_rate(worker_id: str, rate_id: str, tenant: TenantContext = Depends(get_tenant)):
    worker = tenant.get_or_404(Worker, worker_id, "Worker")
    rate = _get_rate_or_404(worker, rate_id, tenant)
    tenant.db.delete(rate)
    commit_or_rollback(tenant.db, "delete_rate", rate_id=rate_id)
    return {"ok": True}
