from fastapi import APIRouter, Depends, HTTPException
from opsdesk.core.auth import get_tenant
from opsdesk.db.session import commit_or_rollback
from opsdesk.db.tenant import TenantContext
from opsdesk.models.models import Service
from opsdesk.schemas.schemas import ServiceCreate, ServiceUpdate, ServiceResponse

router = APIRouter(prefix="/api/services", tags=["services"])


@router.get("", response_model=list[ServiceResponse])
def list_services(tenant: TenantContext = Depends(get_tenant)):
    return tenant.query(Service).order_by(Service.name).all()


@router.post("", response_model=ServiceResponse)
def create_service(data: ServiceCreate, tenant: TenantContext = Depends(get_tenant)):
    name = data.name.strip()
    if not name:
        raise HTTPException(status_code=422, detail="Service name is required")
    service = Service(organization_id=tenant.org_id, name=name, description=data.description, cost=data.cost)
    tenant.db.add(service)
    commit_or_rollback(tenant.db, "create_service")
    tenant.db.refresh(service)
    return service


@router.put("/{service_id}", response_model=ServiceResponse)
def update_service(service_id: str, data: ServiceUpdate, tenant: TenantContext = Depends(get_tenant)):
    service = tenant.get_or_404(Service, service_id, "Service")
    updates = data.model_dump(exclude_unset=True)
    if "name" in updates and not (updates["name"] or "").strip():
        raise HTTPException(status_code=422, detail="Service name is required")
    # order lines captured the old cost; only new orders see the change
    for field, value in updates.items():
        setattr(service, field, value)
    commit_or_rollback(tenant.db, "update_service", service_id=service.id)
    tenant.db.refresh(service)
    return service


@router.delete("/{service_id}")
def delete_service(service_id: str, tenant: TenantContext = Depends(get_tenant)):
    service = tenant.get_or_404(Service, service_id, "Service")
    tenant.db.delete(service)
    commit_or_rollback(tenant.db, "delete_service", service_id=service_id)
    return {"ok": True}
