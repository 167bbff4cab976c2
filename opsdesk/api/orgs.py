import structlog
from fastapi import APIRouter, Depends, HTTPException
from opsdesk.core.auth import get_tenant
from opsdesk.db.session import commit_or_rollback
from opsdesk.db.tenant import TenantContext
from opsdesk.schemas.schemas import OrganizationResponse, OrganizationUpdate, CurrencyResponse
from opsdesk.services.currency import CURRENCIES, is_supported

router = APIRouter(prefix="/api/settings", tags=["settings"])

logger = structlog.get_logger(__name__)


@router.get("/currencies", response_model=list[CurrencyResponse])
def list_currencies():
    return [CurrencyResponse(code=code, name=c["name"], symbol=c["symbol"]) for code, c in CURRENCIES.items()]


@router.get("/organization", response_model=OrganizationResponse)
def get_organization(tenant: TenantContext = Depends(get_tenant)):
    return tenant.organization


@router.put("/organization", response_model=OrganizationResponse)
def update_organization(data: OrganizationUpdate, tenant: TenantContext = Depends(get_tenant)):
    org = tenant.organization
    updates = data.model_dump(exclude_unset=True)
    if "name" in updates and not (updates["name"] or "").strip():
        raise HTTPException(status_code=422, detail="Organization name is required")
    if "currency" in updates:
        if not is_supported(updates["currency"]):
            raise HTTPException(status_code=422, detail=f"Unsupported currency: {updates['currency']}")
        updates["currency"] = updates["currency"].upper()
    for field, value in updates.items():
        setattr(org, field, value)
    commit_or_rollback(tenant.db, "update_organization", organization_id=org.id)
    tenant.db.refresh(org)
    logger.info("organization_updated", organization_id=org.id, fields=sorted(updates))
    return org


@router.delete("/organization")
def delete_organization(tenant: TenantContext = Depends(get_tenant)):
    org_id = tenant.org_id
    tenant.db.delete(tenant.organization)
    commit_or_rollback(tenant.db, "delete_organization", organization_id=org_id)
    logger.info("organization_deleted", organization_id=org_id)
    return {"ok": True}


@router.delete("/account")
def delete_account(tenant: TenantContext = Depends(get_tenant)):
    user_id = tenant.user.id
    tenant.db.delete(tenant.user)
    commit_or_rollback(tenant.db, "delete_account", user_id=user_id)
    logger.info("account_deleted", user_id=user_id, organization_id=tenant.org_id)
    return {"ok": True}
