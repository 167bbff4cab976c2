import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import or_
from opsdesk.api.orders import payment_to_response
from opsdesk.core.auth import get_tenant
from opsdesk.db.session import commit_or_rollback
from opsdesk.db.tenant import TenantContext
from opsdesk.models.models import Client, PaymentStatus, Product, ProductCategory, SalesOrder
from opsdesk.schemas.schemas import (
    ProductCreate, ProductUpdate, ProductResponse,
    SalesOrderCreate, SalesOrderResponse, SalesOrderItemResponse,
    PaymentCreate, PaymentResponse
)
from opsdesk.services import inventory, ledger

router = APIRouter(prefix="/api", tags=["inventory"])

logger = structlog.get_logger(__name__)

VALID_CATEGORIES = [c.value for c in ProductCategory]


def product_to_response(product: Product) -> ProductResponse:
    return ProductResponse(
        id=product.id, name=product.name, description=product.description,
        sku=product.sku, category=product.category.value,
        unit_price=product.unit_price, stock_quantity=product.stock_quantity,
        reorder_point=product.reorder_point,
        is_low_stock=inventory.is_low_stock(product),
        created_at=product.created_at
    )


def sales_order_to_response(order: SalesOrder) -> SalesOrderResponse:
    return SalesOrderResponse(
        id=order.id,
        order_number=order.order_number,
        client_id=order.client_id,
        client_name=order.client.name if order.client else None,
        notes=order.notes,
        total_amount=order.total_amount,
        outstanding_balance=order.outstanding_balance,
        amount_paid=ledger.amount_paid(order),
        payment_status=order.payment_status.value,
        revision=order.revision,
        items=[SalesOrderItemResponse.model_validate(i) for i in order.items],
        payments=[payment_to_response(p) for p in order.payments],
        created_at=order.created_at
    )


def _check_category(category: str):
    if category not in VALID_CATEGORIES:
        raise HTTPException(status_code=422, detail=f"Invalid category. Must be one of: {VALID_CATEGORIES}")


@router.get("/products", response_model=list[ProductResponse])
def list_products(
    category: str = Query(None),
    low_stock: bool = Query(False),
    tenant: TenantContext = Depends(get_tenant)
):
    q = tenant.query(Product)
    if category:
        _check_category(category)
        q = q.filter(Product.category == ProductCategory(category))
    if low_stock:
        q = q.filter(Product.stock_quantity <= Product.reorder_point)
    return [product_to_response(p) for p in q.order_by(Product.name).all()]


@router.post("/products", response_model=ProductResponse)
def create_product(data: ProductCreate, tenant: TenantContext = Depends(get_tenant)):
    name = data.name.strip()
    if not name:
        raise HTTPException(status_code=422, detail="Product name is required")
    _check_category(data.category)
    product = Product(
        organization_id=tenant.org_id, name=name, description=data.description,
        sku=data.sku, category=ProductCategory(data.category),
        unit_price=data.unit_price, stock_quantity=data.stock_quantity,
        reorder_point=data.reorder_point
    )
    tenant.db.add(product)
    commit_or_rollback(tenant.db, "create_product")
    tenant.db.refresh(product)
    logger.info("product_created", product_id=product.id, stock_quantity=product.stock_quantity)
    return product_to_response(product)


@router.get("/products/{product_id}", response_model=ProductResponse)
def get_product(product_id: str, tenant: TenantContext = Depends(get_tenant)):
    return product_to_response(tenant.get_or_404(Product, product_id, "Product"))


@router.put("/products/{product_id}", response_model=ProductResponse)
def update_product(product_id: str, data: ProductUpdate, tenant: TenantContext = Depends(get_tenant)):
    product = tenant.get_or_404(Product, product_id, "Product")
    updates = data.model_dump(exclude_unset=True)
    if "name" in updates and not (updates["name"] or "").strip():
        raise HTTPException(status_code=422, detail="Product name is required")
    if "category" in updates:
        _check_category(updates["category"])
        updates["category"] = ProductCategory(updates["category"])
    for field, value in updates.items():
        setattr(product, field, value)
    commit_or_rollback(tenant.db, "update_product", product_id=product.id)
    tenant.db.refresh(product)
    return product_to_response(product)


@router.delete("/products/{product_id}")
def delete_product(product_id: str, tenant: TenantContext = Depends(get_tenant)):
    product = tenant.get_or_404(Product, product_id, "Product")
    inventory.delete_product(tenant, product)
    return {"ok": True}


@router.get("/sales-orders", response_model=list[SalesOrderResponse])
def list_sales_orders(
    payment_status: str = Query(None),
    search: str = Query(None),
    tenant: TenantContext = Depends(get_tenant)
):
    q = tenant.query(SalesOrder)
    if payment_status:
        if payment_status not in [s.value for s in PaymentStatus]:
            raise HTTPException(status_code=422, detail="Invalid payment status")
        q = q.filter(SalesOrder.payment_status == PaymentStatus(payment_status))
    if search:
        pattern = f"%{search}%"
        q = q.join(Client, SalesOrder.client_id == Client.id).filter(
            or_(SalesOrder.order_number.ilike(pattern), Client.name.ilike(pattern))
        )
    return [sales_order_to_response(o) for o in q.order_by(SalesOrder.created_at.desc()).all()]


@router.post("/sales-orders", response_model=SalesOrderResponse)
def create_sales_order(data: SalesOrderCreate, tenant: TenantContext = Depends(get_tenant)):
    order = inventory.create_sales_order(tenant, data.client_id, data.items, data.notes)
    return sales_order_to_response(order)


@router.get("/sales-orders/{order_id}", response_model=SalesOrderResponse)
def get_sales_order(order_id: str, tenant: TenantContext = Depends(get_tenant)):
    return sales_order_to_response(tenant.get_or_404(SalesOrder, order_id, "Sales order"))


@router.get("/sales-orders/{order_id}/payments", response_model=list[PaymentResponse])
def list_sales_order_payments(order_id: str, tenant: TenantContext = Depends(get_tenant)):
    order = tenant.get_or_404(SalesOrder, order_id, "Sales order")
    return [payment_to_response(p) for p in order.payments]


@router.post("/sales-orders/{order_id}/payments", response_model=SalesOrderResponse)
def record_sales_order_payment(order_id: str, data: PaymentCreate, tenant: TenantContext = Depends(get_tenant)):
    order = tenant.get_or_404(SalesOrder, order_id, "Sales order")
    ledger.record_payment(
        tenant, order, data.amount, data.payment_method,
        reference=data.reference, expected_revision=data.expected_revision
    )
    tenant.db.refresh(order)
    return sales_order_to_response(order)


@router.delete("/sales-orders/{order_id}")
def delete_sales_order(order_id: str, tenant: TenantContext = Depends(get_tenant)):
    order = tenant.get_or_404(SalesOrder, order_id, "Sales order")
    tenant.db.delete(order)
    # stock taken by the sale is not returned
    commit_or_rollback(tenant.db, "delete_sales_order", sales_order_id=order_id)
    logger.info("sales_order_deleted", sales_order_id=order_id)
    return {"ok": True}
