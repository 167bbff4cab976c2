from collections import OrderedDict
from datetime import date

import structlog

from opsdesk.core.errors import InvalidTransition, NotFound, ValidationFailed
from opsdesk.db.session import commit_or_rollback
from opsdesk.db.tenant import TenantContext
from opsdesk.models.models import (
    Client, ClientCustomField, Order, OrderCustomField, OrderService, OrderStatus,
    OrderWorker, OrderWorkerStatus, Project, Service, Worker
)
from opsdesk.services import ledger

logger = structlog.get_logger(__name__)

ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.IN_PROGRESS, OrderStatus.COMPLETED, OrderStatus.CANCELLED}),
    OrderStatus.IN_PROGRESS: frozenset({OrderStatus.PENDING, OrderStatus.COMPLETED, OrderStatus.CANCELLED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


def _merge_service_lines(lines) -> "OrderedDict[str, int]":
    merged: OrderedDict[str, int] = OrderedDict()
    for line in lines or []:
        if not line.service_id:
            raise ValidationFailed("Each service line needs a service")
        if line.quantity is None or line.quantity < 1:
            raise ValidationFailed("Service quantity must be at least 1")
        merged[line.service_id] = merged.get(line.service_id, 0) + line.quantity
    return merged


def order_total(priced_lines) -> float:
    """Sum of cost x quantity over (service, quantity) pairs."""
    return sum(service.cost * quantity for service, quantity in priced_lines)


def create_order(
    tenant: TenantContext,
    client_id: str,
    services,
    workers,
    description: str | None = None,
    due_date: date | None = None,
    initial_payment: float | None = None,
    payment_method: str | None = None,
    custom_field_ids: list[str] | None = None,
) -> Order:
    client = tenant.get(Client, client_id)
    merged = _merge_service_lines(services)
    assignments = [w for w in (workers or []) if w.worker_id and w.project_id]
    if client is None or not merged or not assignments:
        raise ValidationFailed(
            "Please select a client, at least one service, and assign at least one worker with a project."
        )

    priced = [(tenant.get_or_404(Service, sid, "Service"), qty) for sid, qty in merged.items()]
    for assignment in assignments:
        tenant.get_or_404(Worker, assignment.worker_id, "Worker")
        tenant.get_or_404(Project, assignment.project_id, "Project")

    fields = []
    for field_id in custom_field_ids or []:
        field = tenant.db.query(ClientCustomField).filter(
            ClientCustomField.id == field_id, ClientCustomField.client_id == client.id
        ).first()
        if field is None:
            raise ValidationFailed("Custom field does not belong to the selected client")
        fields.append(field)

    total = order_total(priced)
    wants_payment = initial_payment is not None and initial_payment != 0
    if wants_payment:
        if initial_payment < 0:
            raise ValidationFailed("Initial payment must be positive")
        if initial_payment > total:
            raise ValidationFailed("Initial payment cannot be greater than the total amount.")
        if not payment_method:
            raise ValidationFailed("A payment method is required for the initial payment")

    order = Order(
        organization_id=tenant.org_id,
        client_id=client.id,
        order_number=ledger.next_order_number(tenant, "ORD", Order),
        description=(description or "").strip() or None,
        due_date=due_date,
        status=OrderStatus.PENDING,
    )
    ledger.open_balance(order, total)
    for service, quantity in priced:
        order.services.append(OrderService(
            service_id=service.id, name=service.name, unit_cost=service.cost,
            quantity=quantity, cost=service.cost * quantity,
        ))
    for assignment in assignments:
        order.workers.append(OrderWorker(
            worker_id=assignment.worker_id, project_id=assignment.project_id,
            status=OrderWorkerStatus.PENDING,
        ))
    for field in fields:
        order.custom_fields.append(OrderCustomField(custom_field_id=field.id))

    if wants_payment:
        ledger.apply_payment(
            order, initial_payment, payment_method, tenant.org_id,
            reference=f"Initial payment for order {order.order_number}",
            recorded_by=tenant.user.id,
        )

    tenant.db.add(order)
    commit_or_rollback(tenant.db, "create_order", client_id=client.id)
    tenant.db.refresh(order)
    logger.info("order_created", order_id=order.id, order_number=order.order_number,
                total_amount=order.total_amount, outstanding_balance=order.outstanding_balance,
                initial_payment=initial_payment if wants_payment else None)
    return order


def change_status(tenant: TenantContext, order: Order, new_status) -> Order:
    current = OrderStatus(order.status)
    requested = OrderStatus(new_status)
    if requested not in ORDER_TRANSITIONS[current]:
        raise InvalidTransition(current.value, requested.value)
    order.status = requested
    commit_or_rollback(tenant.db, "change_order_status", order_id=order.id)
    tenant.db.refresh(order)
    logger.info("order_status_changed", order_id=order.id, previous=current.value, status=requested.value)
    return order


def update_worker_status(tenant: TenantContext, order: Order, assignment_id: str, new_status) -> OrderWorker:
    assignment = tenant.db.query(OrderWorker).filter(
        OrderWorker.id == assignment_id, OrderWorker.order_id == order.id
    ).first()
    if assignment is None:
        raise NotFound("Order worker not found")
    assignment.status = OrderWorkerStatus(new_status)
    commit_or_rollback(tenant.db, "update_order_worker_status", order_id=order.id)
    tenant.db.refresh(assignment)
    logger.info("order_worker_status_changed", order_id=order.id,
                assignment_id=assignment.id, status=assignment.status.value)
    return assignment


def delete_order(tenant: TenantContext, order: Order) -> None:
    order_id = order.id
    tenant.db.delete(order)
    commit_or_rollback(tenant.db, "delete_order", order_id=order_id)
    logger.info("order_deleted", order_id=order_id)
