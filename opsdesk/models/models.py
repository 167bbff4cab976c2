import uuid
from datetime import datetime
from sqlalchemy import (
    Column, String, Integer, Float, Boolean, Text, Date, DateTime, ForeignKey,
    Enum as SAEnum, Index, UniqueConstraint, CheckConstraint
)
from sqlalchemy.orm import declared_attr, relationship
from opsdesk.core.config import DEFAULT_CURRENCY
from opsdesk.models.base import Base
import enum

__all__ = [
    "TaskStatus", "OrderStatus", "OrderWorkerStatus", "PaymentStatus",
    "PaymentMethod", "ProductCategory", "CustomFieldType",
    "User", "Organization", "Worker", "Project", "WorkerProjectRate",
    "Task", "Deduction", "Client", "ClientCustomField", "Service",
    "Order", "OrderService", "OrderWorker", "OrderCustomField",
    "Product", "SalesOrder", "SalesOrderItem", "Payment",
]


class TaskStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    DELAYED = "delayed"
    COMPLETED = "completed"


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class OrderWorkerStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class PaymentStatus(str, enum.Enum):
    UNPAID = "unpaid"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"


class PaymentMethod(str, enum.Enum):
    CASH = "cash"
    MOBILE_MONEY = "mobile_money"
    BANK_TRANSFER = "bank_transfer"
    OTHER = "other"


class ProductCategory(str, enum.Enum):
    RAW_MATERIAL = "raw_material"
    FINISHED_GOOD = "finished_good"
    PACKAGING = "packaging"
    OTHER = "other"


class CustomFieldType(str, enum.Enum):
    TEXT = "text"
    FILE = "file"


def gen_uuid():
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    email = Column(String(255), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)
    full_name = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    organization = relationship(
        "Organization", back_populates="owner", uselist=False, cascade="all, delete-orphan"
    )


class Organization(Base):
    __tablename__ = "organizations"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    owner_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    name = Column(String(255), nullable=False)
    currency = Column(String(3), nullable=False, default=DEFAULT_CURRENCY)
    country = Column(String(100), nullable=True)
    city = Column(String(100), nullable=True)
    address = Column(Text, nullable=True)
    employee_count = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    owner = relationship("User", back_populates="organization")
    workers = relationship("Worker", back_populates="organization", cascade="all, delete-orphan")
    projects = relationship("Project", back_populates="organization", cascade="all, delete-orphan")
    clients = relationship("Client", back_populates="organization", cascade="all, delete-orphan")
    services = relationship("Service", back_populates="organization", cascade="all, delete-orphan")
    products = relationship("Product", back_populates="organization", cascade="all, delete-orphan")


class Worker(Base):
    __tablename__ = "workers"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    organization_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)
    whatsapp = Column(String(50), nullable=True)
    image_url = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    organization = relationship("Organization", back_populates="workers")
    rates = relationship("WorkerProjectRate", back_populates="worker", cascade="all, delete-orphan")
    tasks = relationship("Task", back_populates="worker", cascade="all, delete-orphan")
    order_assignments = relationship("OrderWorker", back_populates="worker", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_worker_org", "organization_id"),
    )


class Project(Base):
    __tablename__ = "projects"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    organization_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    base_price = Column(Float, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    organization = relationship("Organization", back_populates="projects")
    rates = relationship("WorkerProjectRate", back_populates="project", cascade="all, delete-orphan")
    tasks = relationship("Task", back_populates="project", cascade="all, delete-orphan")
    order_assignments = relationship("OrderWorker", back_populates="project", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_project_org", "organization_id"),
    )


class WorkerProjectRate(Base):
    __tablename__ = "worker_project_rates"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    worker_id = Column(String(36), ForeignKey("workers.id", ondelete="CASCADE"), nullable=False)
    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    rate = Column(Float, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    worker = relationship("Worker", back_populates="rates")
    project = relationship("Project", back_populates="rates")

    __table_args__ = (
        UniqueConstraint("worker_id", "project_id", name="uq_worker_project"),
    )


class Task(Base):
    __tablename__ = "tasks"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    organization_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    worker_id = Column(String(36), ForeignKey("workers.id", ondelete="CASCADE"), nullable=False)
    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)
    description = Column(Text, nullable=True)
    # captured from the worker's rate when the task is created
    amount = Column(Float, nullable=False, default=0)
    status = Column(SAEnum(TaskStatus, name="task_status_enum"), nullable=False, default=TaskStatus.PENDING)
    late_reason = Column(Text, nullable=True)
    delay_reason = Column(Text, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    status_changed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    worker = relationship("Worker", back_populates="tasks")
    project = relationship("Project", back_populates="tasks")
    deductions = relationship(
        "Deduction", back_populates="task", cascade="all, delete-orphan",
        order_by="Deduction.created_at"
    )

    __table_args__ = (
        Index("idx_task_org_date", "organization_id", "date"),
        Index("idx_task_worker", "worker_id"),
    )


class Deduction(Base):
    __tablename__ = "deductions"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    task_id = Column(String(36), ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False)
    amount = Column(Float, nullable=False)
    reason = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    task = relationship("Task", back_populates="deductions")


class Client(Base):
    __tablename__ = "clients"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    organization_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    address = Column(Text, nullable=True)
    image_url = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    organization = relationship("Organization", back_populates="clients")
    custom_fields = relationship(
        "ClientCustomField", back_populates="client", cascade="all, delete-orphan",
        order_by="ClientCustomField.created_at"
    )
    orders = relationship("Order", back_populates="client", cascade="all, delete-orphan")
    sales_orders = relationship("SalesOrder", back_populates="client", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_client_org", "organization_id"),
    )


class ClientCustomField(Base):
    __tablename__ = "client_custom_fields"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    client_id = Column(String(36), ForeignKey("clients.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(255), nullable=False)
    # for file fields this is the storage reference returned by the upload service
    value = Column(Text, nullable=False)
    field_type = Column(SAEnum(CustomFieldType, name="custom_field_type_enum"), nullable=False, default=CustomFieldType.TEXT)
    created_at = Column(DateTime, default=datetime.utcnow)

    client = relationship("Client", back_populates="custom_fields")
    order_links = relationship("OrderCustomField", back_populates="custom_field", cascade="all, delete-orphan")


class Service(Base):
    __tablename__ = "services"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    organization_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    cost = Column(Float, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    organization = relationship("Organization", back_populates="services")


class BillableMixin:
    """Columns shared by every document that accepts payments."""

    order_number = Column(String(50), nullable=False)
    total_amount = Column(Float, nullable=False, default=0)
    outstanding_balance = Column(Float, nullable=False, default=0)
    payment_status = Column(SAEnum(PaymentStatus, name="payment_status_enum"), nullable=False, default=PaymentStatus.UNPAID)
    revision = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @declared_attr
    def __mapper_args__(cls):
        # revision increments on every UPDATE; a stale one raises StaleDataError
        return {"version_id_col": cls.__table__.c.revision}


class Order(BillableMixin, Base):
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    organization_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    client_id = Column(String(36), ForeignKey("clients.id", ondelete="CASCADE"), nullable=False)
    description = Column(Text, nullable=True)
    due_date = Column(Date, nullable=True)
    status = Column(SAEnum(OrderStatus, name="order_status_enum"), nullable=False, default=OrderStatus.PENDING)

    client = relationship("Client", back_populates="orders")
    services = relationship("OrderService", back_populates="order", cascade="all, delete-orphan")
    workers = relationship("OrderWorker", back_populates="order", cascade="all, delete-orphan")
    custom_fields = relationship("OrderCustomField", back_populates="order", cascade="all, delete-orphan")
    payments = relationship(
        "Payment", back_populates="order", cascade="all, delete-orphan",
        order_by="Payment.created_at"
    )

    __table_args__ = (
        Index("idx_order_org", "organization_id"),
        Index("idx_order_client", "client_id"),
        UniqueConstraint("organization_id", "order_number", name="uq_order_number"),
    )

    kind = "order"


class OrderService(Base):
    __tablename__ = "order_services"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    service_id = Column(String(36), ForeignKey("services.id", ondelete="SET NULL"), nullable=True)
    name = Column(String(255), nullable=False)
    unit_cost = Column(Float, nullable=False, default=0)
    quantity = Column(Integer, nullable=False, default=1)
    cost = Column(Float, nullable=False, default=0)

    order = relationship("Order", back_populates="services")
    service = relationship("Service")


class OrderWorker(Base):
    __tablename__ = "order_workers"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    worker_id = Column(String(36), ForeignKey("workers.id", ondelete="CASCADE"), nullable=False)
    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    status = Column(SAEnum(OrderWorkerStatus, name="order_worker_status_enum"), nullable=False, default=OrderWorkerStatus.PENDING)
    created_at = Column(DateTime, default=datetime.utcnow)

    order = relationship("Order", back_populates="workers")
    worker = relationship("Worker", back_populates="order_assignments")
    project = relationship("Project", back_populates="order_assignments")


class OrderCustomField(Base):
    __tablename__ = "order_custom_fields"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    custom_field_id = Column(String(36), ForeignKey("client_custom_fields.id", ondelete="CASCADE"), nullable=False)

    order = relationship("Order", back_populates="custom_fields")
    custom_field = relationship("ClientCustomField", back_populates="order_links")


class Product(Base):
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    organization_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(SAEnum(ProductCategory, name="product_category_enum"), nullable=False, default=ProductCategory.OTHER)
    sku = Column(String(100), nullable=True)
    unit_price = Column(Float, nullable=False, default=0)
    stock_quantity = Column(Integer, nullable=False, default=0)
    reorder_point = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    organization = relationship("Organization", back_populates="products")
    # deleting a product nulls product_id on past sale lines
    sales_items = relationship("SalesOrderItem", back_populates="product")

    __table_args__ = (
        Index("idx_product_org", "organization_id"),
    )


class SalesOrder(BillableMixin, Base):
    __tablename__ = "sales_orders"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    organization_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    client_id = Column(String(36), ForeignKey("clients.id", ondelete="CASCADE"), nullable=False)
    notes = Column(Text, nullable=True)

    client = relationship("Client", back_populates="sales_orders")
    items = relationship("SalesOrderItem", back_populates="sales_order", cascade="all, delete-orphan")
    payments = relationship(
        "Payment", back_populates="sales_order", cascade="all, delete-orphan",
        order_by="Payment.created_at"
    )

    __table_args__ = (
        Index("idx_sales_order_org", "organization_id"),
        UniqueConstraint("organization_id", "order_number", name="uq_sales_order_number"),
    )

    kind = "sales_order"


class SalesOrderItem(Base):
    __tablename__ = "sales_order_items"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    sales_order_id = Column(String(36), ForeignKey("sales_orders.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(String(36), ForeignKey("products.id", ondelete="SET NULL"), nullable=True)
    name = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Float, nullable=False)
    total_price = Column(Float, nullable=False)
    is_custom_item = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    sales_order = relationship("SalesOrder", back_populates="items")
    product = relationship("Product", back_populates="sales_items")


class Payment(Base):
    __tablename__ = "payments"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    organization_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=True)
    sales_order_id = Column(String(36), ForeignKey("sales_orders.id", ondelete="CASCADE"), nullable=True)
    amount = Column(Float, nullable=False)
    payment_method = Column(SAEnum(PaymentMethod, name="payment_method_enum"), nullable=False)
    reference = Column(String(255), nullable=True)
    recorded_by = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    order = relationship("Order", back_populates="payments")
    sales_order = relationship("SalesOrder", back_populates="payments")
    recorder = relationship("User", foreign_keys=[recorded_by])

    __table_args__ = (
        CheckConstraint(
            "(order_id IS NULL) <> (sales_order_id IS NULL)",
            name="ck_payment_single_document"
        ),
        Index("idx_payment_order", "order_id"),
        Index("idx_payment_sales_order", "sales_order_id"),
    )
