import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from opsdesk.core.auth import get_tenant
from opsdesk.db.session import commit_or_rollback
from opsdesk.db.tenant import TenantContext
from opsdesk.models.models import Client, ClientCustomField, CustomFieldType
from opsdesk.schemas.schemas import (
    ClientCreate, ClientUpdate, ClientResponse,
    CustomFieldCreate, CustomFieldResponse
)

router = APIRouter(prefix="/api/clients", tags=["clients"])

logger = structlog.get_logger(__name__)


def client_balance(client: Client) -> float:
    """Outstanding balance across the client's service orders and product sales."""
    documents = list(client.orders) + list(client.sales_orders)
    return round(sum(d.outstanding_balance or 0 for d in documents), 2)


def custom_field_to_response(field: ClientCustomField) -> CustomFieldResponse:
    return CustomFieldResponse(
        id=field.id, client_id=field.client_id, title=field.title,
        value=field.value, field_type=field.field_type.value, created_at=field.created_at
    )


def client_to_response(client: Client) -> ClientResponse:
    return ClientResponse(
        id=client.id, name=client.name, email=client.email, phone=client.phone,
        address=client.address, image_url=client.image_url,
        total_balance=client_balance(client),
        custom_fields=[custom_field_to_response(f) for f in client.custom_fields],
        created_at=client.created_at
    )


@router.get("", response_model=list[ClientResponse])
def list_clients(search: str = Query(None), tenant: TenantContext = Depends(get_tenant)):
    q = tenant.query(Client)
    if search:
        q = q.filter(Client.name.ilike(f"%{search}%"))
    return [client_to_response(c) for c in q.order_by(Client.name).all()]


@router.post("", response_model=ClientResponse)
def create_client(data: ClientCreate, tenant: TenantContext = Depends(get_tenant)):
    name = data.name.strip()
    if not name:
        raise HTTPException(status_code=422, detail="Client name is required")
    client = Client(
        organization_id=tenant.org_id, name=name, email=data.email,
        phone=data.phone, address=data.address, image_url=data.image_url
    )
    tenant.db.add(client)
    commit_or_rollback(tenant.db, "create_client")
    tenant.db.refresh(client)
    logger.info("client_created", client_id=client.id)
    return client_to_response(client)


@router.get("/{client_id}", response_model=ClientResponse)
def get_client(client_id: str, tenant: TenantContext = Depends(get_tenant)):
    return client_to_response(tenant.get_or_404(Client, client_id, "Client"))


@router.put("/{client_id}", response_model=ClientResponse)
def update_client(client_id: str, data: ClientUpdate, tenant: TenantContext = Depends(get_tenant)):
    client = tenant.get_or_404(Client, client_id, "Client")
    updates = data.model_dump(exclude_unset=True)
    if "name" in updates and not (updates["name"] or "").strip():
        raise HTTPException(status_code=422, detail="Client name is required")
    for field, value in updates.items():
        setattr(client, field, value)
    commit_or_rollback(tenant.db, "update_client", client_id=client.id)
    tenant.db.refresh(client)
    return client_to_response(client)


@router.delete("/{client_id}")
def delete_client(client_id: str, tenant: TenantContext = Depends(get_tenant)):
    client = tenant.get_or_404(Client, client_id, "Client")
    tenant.db.delete(client)
    commit_or_rollback(tenant.db, "delete_client", client_id=client_id)
    logger.info("client_deleted", client_id=client_id)
    return {"ok": True}


@router.post("/{client_id}/custom-fields", response_model=CustomFieldResponse)
def add_custom_field(client_id: str, data: CustomFieldCreate, tenant: TenantContext = Depends(get_tenant)):
    client = tenant.get_or_404(Client, client_id, "Client")
    if data.field_type not in [t.value for t in CustomFieldType]:
        raise HTTPException(status_code=422, detail="Field type must be text or file")
    title, value = data.title.strip(), data.value.strip()
    if not title or not value:
        raise HTTPException(status_code=422, detail="Custom fields need a title and a value")

    field = ClientCustomField(
        client_id=client.id, title=title, value=value,
        field_type=CustomFieldType(data.field_type)
    )
    tenant.db.add(field)
    commit_or_rollback(tenant.db, "add_custom_field", client_id=client.id)
    tenant.db.refresh(field)
    return custom_field_to_response(field)


@router.delete("/{client_id}/custom-fields/{field_id}")
def remove_custom_field(client_id: str, field_id: str, tenant: TenantContext = Depends(get_tenant)):
    client = tenant.get_or_404(Client, client_id, "Client")
    field = tenant.db.query(ClientCustomField).filter(
        ClientCustomField.id == field_id, ClientCustomField.client_id == client.id
    ).first()
    if not field:
        raise HTTPException(status_code=404, detail="Custom field not found")
    tenant.db.delete(field)
    commit_or_rollback(tenant.db, "remove_custom_field", client_id=client.id)
    return {"ok": True}
