from collections import OrderedDict
from dataclasses import dataclass

import structlog

from opsdesk.core.errors import InsufficientStock, NotFound, ValidationFailed
from opsdesk.db.session import commit_or_rollback
from opsdesk.db.tenant import TenantContext
from opsdesk.models.models import Client, Product, SalesOrder, SalesOrderItem
from opsdesk.services import ledger

logger = structlog.get_logger(__name__)


def is_low_stock(product) -> bool:
    return product.stock_quantity <= product.reorder_point


@dataclass
class DraftLine:
    name: str
    quantity: int
    unit_price: float
    product: Product | None = None

    @property
    def product_id(self) -> str | None:
        return self.product.id if self.product is not None else None

    @property
    def is_custom_item(self) -> bool:
        return self.product is None

    @property
    def total_price(self) -> float:
        return self.quantity * self.unit_price


class SalesOrderDraft:
    """Line items of a product sale before it is saved.

    Product lines are bounded by the product's stock as read when the line is
    changed; custom lines are not stock-bound. ``create_sales_order`` fills a
    draft in one pass; ``set_quantity`` and ``remove_line`` are for callers that
    build a sale incrementally, such as a cart kept open while the user edits.
    """

    def __init__(self):
        self.lines: list[DraftLine] = []

    def __len__(self):
        return len(self.lines)

    def _line_for(self, product) -> DraftLine | None:
        for line in self.lines:
            if line.product is not None and line.product.id == product.id:
                return line
        return None

    def _line_at(self, index: int) -> DraftLine:
        if index < 0 or index >= len(self.lines):
            raise NotFound("Line item not found")
        return self.lines[index]

    def add_product(self, product, quantity: int = 1) -> DraftLine:
        if quantity < 1:
            raise ValidationFailed("Quantity must be at least 1")
        if product.stock_quantity <= 0:
            raise InsufficientStock(f"{product.name} is out of stock")

        line = self._line_for(product)
        wanted = quantity + (line.quantity if line else 0)
        if wanted > product.stock_quantity:
            raise InsufficientStock(f"Not enough stock available for {product.name}")

        if line is None:
            line = DraftLine(name=product.name, quantity=quantity,
                             unit_price=product.unit_price, product=product)
            self.lines.append(line)
        else:
            line.quantity = wanted
        return line

    def add_custom_item(self, name: str, quantity: int, unit_price: float) -> DraftLine:
        name = (name or "").strip()
        if not name or quantity is None or quantity <= 0 or unit_price is None or unit_price <= 0:
            raise ValidationFailed("Custom items need a name, a positive quantity and a positive price")
        line = DraftLine(name=name, quantity=quantity, unit_price=unit_price)
        self.lines.append(line)
        return line

    def set_quantity(self, index: int, quantity: int) -> DraftLine | None:
        line = self._line_at(index)
        if quantity <= 0:
            self.lines.pop(index)
            return None
        if line.product is not None and quantity > line.product.stock_quantity:
            raise InsufficientStock(f"Not enough stock available for {line.name}")
        line.quantity = quantity
        return line

    def remove_line(self, index: int) -> None:
        self._line_at(index)
        self.lines.pop(index)

    @property
    def total(self) -> float:
        return sum(line.total_price for line in self.lines)


def _merge_product_items(items) -> tuple["OrderedDict[str, int]", list]:
    products: OrderedDict[str, int] = OrderedDict()
    custom = []
    for item in items or []:
        if item.product_id:
            if item.quantity is None or item.quantity < 1:
                raise ValidationFailed("Quantity must be at least 1")
            products[item.product_id] = products.get(item.product_id, 0) + item.quantity
        else:
            custom.append(item)
    return products, custom


def create_sales_order(tenant: TenantContext, client_id: str, items, notes: str | None = None) -> SalesOrder:
    """Create a product sale and take its quantities out of stock in one commit."""
    client = tenant.get(Client, client_id)
    if client is None:
        raise ValidationFailed("Please select a client")

    product_quantities, custom_items = _merge_product_items(items)
    draft = SalesOrderDraft()
    for product_id, quantity in product_quantities.items():
        product = tenant.query(Product).filter(Product.id == product_id).with_for_update().first()
        if product is None:
            raise NotFound("Product not found")
        draft.add_product(product, quantity)
    for item in custom_items:
        draft.add_custom_item(item.name, item.quantity, item.unit_price)

    if not len(draft):
        raise ValidationFailed("Add at least one item to the order")

    order = SalesOrder(
        organization_id=tenant.org_id,
        client_id=client.id,
        order_number=ledger.next_order_number(tenant, "SO", SalesOrder),
        notes=(notes or "").strip() or None,
    )
    ledger.open_balance(order, draft.total)
    for line in draft.lines:
        order.items.append(SalesOrderItem(
            product_id=line.product_id, name=line.name, quantity=line.quantity,
            unit_price=line.unit_price, total_price=line.total_price,
            is_custom_item=line.is_custom_item,
        ))
        if line.product is not None:
            line.product.stock_quantity -= line.quantity

    tenant.db.add(order)
    commit_or_rollback(tenant.db, "create_sales_order", client_id=client.id)
    tenant.db.refresh(order)
    for line in draft.lines:
        if line.product is not None:
            logger.info("stock_decremented", product_id=line.product.id,
                        quantity=line.quantity, stock_quantity=line.product.stock_quantity)
    logger.info("sales_order_created", sales_order_id=order.id,
                order_number=order.order_number, total_amount=order.total_amount)
    return order


def delete_product(tenant: TenantContext, product: Product) -> None:
    product_id = product.id
    tenant.db.delete(product)
    commit_or_rollback(tenant.db, "delete_product", product_id=product_id)
    logger.info("product_deleted", product_id=product_id)
