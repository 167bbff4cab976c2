from fastapi import APIRouter, Depends, HTTPException, Query
from opsdesk.api.clients import custom_field_to_response
from opsdesk.core.auth import get_tenant
from opsdesk.db.tenant import TenantContext
from opsdesk.models.models import Order, OrderStatus, OrderWorkerStatus, Payment, PaymentStatus
from opsdesk.schemas.schemas import (
    OrderCreate, OrderResponse, OrderStatusUpdate, OrderServiceResponse, OrderWorkerResponse,
    PaymentCreate, PaymentResponse
)
from opsdesk.services import ledger, orders

router = APIRouter(prefix="/api/orders", tags=["orders"])

VALID_ORDER_STATUSES = [s.value for s in OrderStatus]
VALID_WORKER_STATUSES = [s.value for s in OrderWorkerStatus]
VALID_PAYMENT_STATUSES = [s.value for s in PaymentStatus]


def payment_to_response(payment: Payment) -> PaymentResponse:
    return PaymentResponse(
        id=payment.id, order_id=payment.order_id, sales_order_id=payment.sales_order_id,
        amount=payment.amount, payment_method=payment.payment_method.value,
        payment_method_label=ledger.PAYMENT_METHOD_LABELS.get(payment.payment_method),
        reference=payment.reference, recorded_by=payment.recorded_by,
        created_at=payment.created_at
    )


def order_to_response(order: Order) -> OrderResponse:
    return OrderResponse(
        id=order.id,
        order_number=order.order_number,
        client_id=order.client_id,
        client_name=order.client.name if order.client else None,
        description=order.description,
        due_date=order.due_date,
        status=order.status.value,
        total_amount=order.total_amount,
        outstanding_balance=order.outstanding_balance,
        amount_paid=ledger.amount_paid(order),
        payment_status=order.payment_status.value,
        revision=order.revision,
        services=[OrderServiceResponse(
            id=s.id, service_id=s.service_id, name=s.name,
            unit_cost=s.unit_cost, quantity=s.quantity, cost=s.cost
        ) for s in order.services],
        workers=[OrderWorkerResponse(
            id=w.id, worker_id=w.worker_id,
            worker_name=w.worker.name if w.worker else None,
            project_id=w.project_id,
            project_name=w.project.name if w.project else None,
            status=w.status.value
        ) for w in order.workers],
        payments=[payment_to_response(p) for p in order.payments],
        custom_fields=[custom_field_to_response(link.custom_field) for link in order.custom_fields],
        created_at=order.created_at
    )


def _check_choice(value: str, choices: list[str], label: str):
    if value not in choices:
        raise HTTPException(status_code=422, detail=f"Invalid {label}. Must be one of: {choices}")


@router.get("", response_model=list[OrderResponse])
def list_orders(
    status: str = Query(None),
    payment_status: str = Query(None),
    client_id: str = Query(None),
    tenant: TenantContext = Depends(get_tenant)
):
    q = tenant.query(Order)
    if status:
        _check_choice(status, VALID_ORDER_STATUSES, "status")
        q = q.filter(Order.status == OrderStatus(status))
    if payment_status:
        _check_choice(payment_status, VALID_PAYMENT_STATUSES, "payment status")
        q = q.filter(Order.payment_status == PaymentStatus(payment_status))
    if client_id:
        q = q.filter(Order.client_id == client_id)
    return [order_to_response(o) for o in q.order_by(Order.created_at.desc()).all()]


@router.post("", response_model=OrderResponse)
def create_order(data: OrderCreate, tenant: TenantContext = Depends(get_tenant)):
    order = orders.create_order(
        tenant, data.client_id, data.services, data.workers,
        description=data.description, due_date=data.due_date,
        initial_payment=data.initial_payment, payment_method=data.payment_method,
        custom_field_ids=data.custom_field_ids
    )
    return order_to_response(order)


@router.get("/{order_id}", response_model=OrderResponse)
def get_order(order_id: str, tenant: TenantContext = Depends(get_tenant)):
    return order_to_response(tenant.get_or_404(Order, order_id, "Order"))


@router.post("/{order_id}/status", response_model=OrderResponse)
def update_order_status(order_id: str, data: OrderStatusUpdate, tenant: TenantContext = Depends(get_tenant)):
    order = tenant.get_or_404(Order, order_id, "Order")
    _check_choice(data.status, VALID_ORDER_STATUSES, "status")
    orders.change_status(tenant, order, OrderStatus(data.status))
    return order_to_response(order)


@router.post("/{order_id}/workers/{assignment_id}/status", response_model=OrderResponse)
def update_order_worker_status(
    order_id: str, assignment_id: str, data: OrderStatusUpdate,
    tenant: TenantContext = Depends(get_tenant)
):
    order = tenant.get_or_404(Order, order_id, "Order")
    _check_choice(data.status, VALID_WORKER_STATUSES, "worker status")
    orders.update_worker_status(tenant, order, assignment_id, OrderWorkerStatus(data.status))
    tenant.db.refresh(order)
    return order_to_response(order)


@router.get("/{order_id}/payments", response_model=list[PaymentResponse])
def list_order_payments(order_id: str, tenant: TenantContext = Depends(get_tenant)):
    order = tenant.get_or_404(Order, order_id, "Order")
    return [payment_to_response(p) for p in order.payments]


@router.post("/{order_id}/payments", response_model=OrderResponse)
def record_order_payment(order_id: str, data: PaymentCreate, tenant: TenantContext = Depends(get_tenant)):
    order = tenant.get_or_404(Order, order_id, "Order")
    ledger.record_payment(
        tenant, order, data.amount, data.payment_method,
        reference=data.reference, expected_revision=data.expected_revision
    )
    tenant.db.refresh(order)
    return order_to_response(order)


@router.delete("/{order_id}")
def delete_order(order_id: str, tenant: TenantContext = Depends(get_tenant)):
    order = tenant.get_or_404(Order, order_id, "Order")
    orders.delete_order(tenant, order)
    return {"ok": True}
