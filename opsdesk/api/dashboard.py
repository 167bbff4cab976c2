from datetime import datetime
from fastapi import APIRouter, Depends
from sqlalchemy import func
from opsdesk.core.auth import get_tenant
from opsdesk.db.tenant import TenantContext
from opsdesk.models.models import Order, Product, SalesOrder, Task, Worker
from opsdesk.schemas.schemas import DashboardStats
from opsdesk.services import aggregation

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


@router.get("/stats", response_model=DashboardStats)
def get_stats(tenant: TenantContext = Depends(get_tenant)):
    total_workers = tenant.query(Worker).count()
    tasks = tenant.query(Task).all()
    weekly = aggregation.tasks_in_window(tasks, aggregation.week_window(datetime.utcnow()))

    receivables = 0.0
    for model in (Order, SalesOrder):
        receivables += tenant.db.query(func.coalesce(func.sum(model.outstanding_balance), 0)).filter(
            model.organization_id == tenant.org_id
        ).scalar()

    low_stock = tenant.query(Product).filter(Product.stock_quantity <= Product.reorder_point).count()

    return DashboardStats(
        total_workers=total_workers,
        total_tasks=len(tasks),
        task_status_counts=aggregation.status_counts(tasks),
        total_payouts=aggregation.total_payouts(tasks),
        weekly_payouts=aggregation.total_payouts(weekly),
        outstanding_receivables=round(float(receivables), 2),
        low_stock_products=low_stock,
        currency=tenant.currency
    )
