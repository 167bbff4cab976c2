"""Payment reconciliation shared by service orders and product sales.

Both ``Order`` and ``SalesOrder`` carry the billable columns
(total_amount, outstanding_balance, payment_status, revision), so a single
routine records payments against either of them.
"""

from datetime import datetime

import structlog

from opsdesk.core.errors import StaleRevision, ValidationFailed
from opsdesk.db.session import commit_or_rollback
from opsdesk.db.tenant import TenantContext
from opsdesk.models.models import Payment, PaymentMethod, PaymentStatus

logger = structlog.get_logger(__name__)

PAYMENT_METHOD_LABELS = {
    PaymentMethod.CASH: "Cash",
    PaymentMethod.MOBILE_MONEY: "Mobile Money",
    PaymentMethod.BANK_TRANSFER: "Bank Transfer",
    PaymentMethod.OTHER: "Other",
}


def _money(value: float | None) -> float:
    return round(value or 0, 2)


def derive_payment_status(total_amount: float, outstanding_balance: float) -> PaymentStatus:
    balance = _money(outstanding_balance)
    if balance <= 0:
        return PaymentStatus.PAID
    if balance >= _money(total_amount):
        return PaymentStatus.UNPAID
    return PaymentStatus.PARTIALLY_PAID


def parse_payment_method(method) -> PaymentMethod:
    if not method:
        raise ValidationFailed("A payment method is required")
    try:
        return PaymentMethod(method)
    except ValueError:
        raise ValidationFailed(f"Unsupported payment method: {method}")


def validate_payment(document, amount: float | None, method) -> PaymentMethod:
    if amount is None or _money(amount) <= 0:
        raise ValidationFailed("Payment amount must be positive")
    if _money(amount) > _money(document.outstanding_balance):
        raise ValidationFailed("Payment amount cannot exceed outstanding balance")
    return parse_payment_method(method)


def open_balance(document, total_amount: float) -> None:
    """Initialize a new document: nothing paid yet."""
    document.total_amount = _money(total_amount)
    document.outstanding_balance = document.total_amount
    document.payment_status = derive_payment_status(document.total_amount, document.outstanding_balance)


def apply_payment(
    document,
    amount: float,
    method,
    organization_id: str,
    reference: str | None = None,
    recorded_by: str | None = None,
) -> Payment:
    """Append a payment to ``document`` and update its balance, without committing."""
    payment_method = validate_payment(document, amount, method)
    payment = Payment(
        organization_id=organization_id,
        amount=_money(amount),
        payment_method=payment_method,
        reference=(reference or "").strip() or None,
        recorded_by=recorded_by,
    )
    document.payments.append(payment)
    document.outstanding_balance = _money(document.outstanding_balance - payment.amount)
    document.payment_status = derive_payment_status(document.total_amount, document.outstanding_balance)
    return payment


def record_payment(
    tenant: TenantContext,
    document,
    amount: float,
    method,
    reference: str | None = None,
    expected_revision: int | None = None,
) -> Payment:
    if expected_revision is not None and expected_revision != document.revision:
        logger.warning("payment_rejected", document=document.kind, document_id=document.id,
                       reason="stale_revision", expected=expected_revision, actual=document.revision)
        raise StaleRevision("The order was changed by another request; reload and retry")

    previous_balance = document.outstanding_balance
    try:
        payment = apply_payment(
            document, amount, method, tenant.org_id,
            reference=reference, recorded_by=tenant.user.id,
        )
    except ValidationFailed as exc:
        logger.warning("payment_rejected", document=document.kind, document_id=document.id,
                       amount=amount, outstanding_balance=previous_balance, reason=exc.message)
        raise

    commit_or_rollback(tenant.db, "record_payment", document_id=document.id)
    tenant.db.refresh(payment)
    logger.info("payment_recorded", document=document.kind, document_id=document.id,
                payment_id=payment.id, amount=payment.amount,
                outstanding_balance=document.outstanding_balance,
                payment_status=PaymentStatus(document.payment_status).value)
    return payment


def amount_paid(document) -> float:
    return _money(document.total_amount - document.outstanding_balance)


def next_order_number(tenant: TenantContext, prefix: str, model) -> str:
    """Next number in the organization's daily sequence, e.g. ``ORD-20240105-0003``.

    Continues after the highest suffix still in use today.
    """
    today = datetime.utcnow().strftime("%Y%m%d")
    stem = f"{prefix}-{today}-"
    issued = tenant.db.query(model.order_number).filter(
        model.organization_id == tenant.org_id,
        model.order_number.like(f"{stem}%"),
    ).all()
    last = max((int(number[len(stem):]) for (number,) in issued if number[len(stem):].isdigit()), default=0)
    return f"{stem}{last + 1:04d}"
