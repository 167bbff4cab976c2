from pydantic import BaseModel, Field
from datetime import date as Date, datetime
from typing import Optional


class LoginRequest(BaseModel):
    email: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserCreate(BaseModel):
    email: str
    password: str
    full_name: str
    organization_name: Optional[str] = None
    currency: Optional[str] = None


class UserResponse(BaseModel):
    id: str
    email: str
    full_name: str
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class UserWithOrg(UserResponse):
    organization_id: Optional[str] = None
    organization_name: Optional[str] = None
    currency: Optional[str] = None


class OrganizationResponse(BaseModel):
    id: str
    name: str
    currency: str
    country: Optional[str] = None
    city: Optional[str] = None
    address: Optional[str] = None
    employee_count: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True


class OrganizationUpdate(BaseModel):
    name: Optional[str] = None
    currency: Optional[str] = None
    country: Optional[str] = None
    city: Optional[str] = None
    address: Optional[str] = None
    employee_count: Optional[int] = Field(None, ge=0)


class CurrencyResponse(BaseModel):
    code: str
    name: str
    symbol: str


class WorkerCreate(BaseModel):
    name: str
    whatsapp: Optional[str] = None
    image_url: Optional[str] = None


class WorkerUpdate(BaseModel):
    name: Optional[str] = None
    whatsapp: Optional[str] = None
    image_url: Optional[str] = None


class WorkerStatsResponse(BaseModel):
    completed_earnings: float = 0
    weekly_project_total: float = 0
    all_time_tasks: int = 0
    weekly_tasks: int = 0
    daily_tasks: int = 0
    assigned_tasks: int = 0
    completed_tasks: int = 0


class WorkerResponse(BaseModel):
    id: str
    name: str
    whatsapp: Optional[str] = None
    image_url: Optional[str] = None
    created_at: datetime
    stats: Optional[WorkerStatsResponse] = None

    class Config:
        from_attributes = True


class RateCreate(BaseModel):
    project_id: str
    rate: Optional[float] = Field(None, ge=0)


class RateUpdate(BaseModel):
    rate: float = Field(..., ge=0)


class RateResponse(BaseModel):
    id: str
    worker_id: str
    project_id: str
    project_name: Optional[str] = None
    rate: float


class ProjectCreate(BaseModel):
    name: str
    description: Optional[str] = None
    base_price: float = Field(0, ge=0)


class ProjectUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    base_price: Optional[float] = Field(None, ge=0)


class ProjectResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    base_price: float
    created_at: datetime

    class Config:
        from_attributes = True


class TaskCreate(BaseModel):
    worker_id: str
    project_id: str
    date: Date
    description: Optional[str] = None
    late_reason: Optional[str] = None


class TaskUpdate(BaseModel):
    description: Optional[str] = None
    date: Optional[Date] = None
    late_reason: Optional[str] = None


class TaskStatusUpdate(BaseModel):
    status: str
    reason: Optional[str] = None


class DeductionCreate(BaseModel):
    amount: float
    reason: str


class DeductionResponse(BaseModel):
    id: str
    task_id: str
    amount: float
    reason: str
    created_at: datetime

    class Config:
        from_attributes = True


class TaskResponse(BaseModel):
    id: str
    worker_id: str
    worker_name: Optional[str] = None
    project_id: str
    project_name: Optional[str] = None
    date: Date
    description: Optional[str] = None
    amount: float
    deductions_total: float = 0
    net_amount: float = 0
    status: str
    late_reason: Optional[str] = None
    delay_reason: Optional[str] = None
    completed_at: Optional[datetime] = None
    status_changed_at: Optional[datetime] = None
    deductions: list[DeductionResponse] = []
    created_at: datetime


class CustomFieldCreate(BaseModel):
    title: str
    value: str
    field_type: str = "text"


class CustomFieldResponse(BaseModel):
    id: str
    client_id: str
    title: str
    value: str
    field_type: str
    created_at: datetime


class ClientCreate(BaseModel):
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    image_url: Optional[str] = None


class ClientUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    image_url: Optional[str] = None


class ClientResponse(BaseModel):
    id: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    image_url: Optional[str] = None
    total_balance: float = 0
    custom_fields: list[CustomFieldResponse] = []
    created_at: datetime


class ServiceCreate(BaseModel):
    name: str
    description: Optional[str] = None
    cost: float = Field(..., ge=0)


class ServiceUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    cost: Optional[float] = Field(None, ge=0)


class ServiceResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    cost: float
    created_at: datetime

    class Config:
        from_attributes = True


class OrderServiceLine(BaseModel):
    service_id: str
    quantity: int = 1


class OrderWorkerAssignment(BaseModel):
    worker_id: Optional[str] = None
    project_id: Optional[str] = None


class OrderCreate(BaseModel):
    client_id: Optional[str] = None
    services: list[OrderServiceLine] = []
    workers: list[OrderWorkerAssignment] = []
    description: Optional[str] = None
    due_date: Optional[Date] = None
    initial_payment: Optional[float] = None
    payment_method: Optional[str] = None
    custom_field_ids: list[str] = []


class OrderStatusUpdate(BaseModel):
    status: str


class PaymentCreate(BaseModel):
    amount: float
    payment_method: str
    reference: Optional[str] = None
    expected_revision: Optional[int] = None


class PaymentResponse(BaseModel):
    id: str
    order_id: Optional[str] = None
    sales_order_id: Optional[str] = None
    amount: float
    payment_method: str
    payment_method_label: Optional[str] = None
    reference: Optional[str] = None
    recorded_by: Optional[str] = None
    created_at: datetime


class OrderServiceResponse(BaseModel):
    id: str
    service_id: Optional[str] = None
    name: str
    unit_cost: float
    quantity: int
    cost: float


class OrderWorkerResponse(BaseModel):
    id: str
    worker_id: str
    worker_name: Optional[str] = None
    project_id: str
    project_name: Optional[str] = None
    status: str


class OrderResponse(BaseModel):
    id: str
    order_number: str
    client_id: str
    client_name: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[Date] = None
    status: str
    total_amount: float
    outstanding_balance: float
    amount_paid: float = 0
    payment_status: str
    revision: int
    services: list[OrderServiceResponse] = []
    workers: list[OrderWorkerResponse] = []
    payments: list[PaymentResponse] = []
    custom_fields: list[CustomFieldResponse] = []
    created_at: datetime


class ProductCreate(BaseModel):
    name: str
    description: Optional[str] = None
    sku: Optional[str] = None
    category: str = "other"
    unit_price: float = Field(..., ge=0)
    stock_quantity: int = Field(0, ge=0)
    reorder_point: int = Field(0, ge=0)


class ProductUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    sku: Optional[str] = None
    category: Optional[str] = None
    unit_price: Optional[float] = Field(None, ge=0)
    stock_quantity: Optional[int] = Field(None, ge=0)
    reorder_point: Optional[int] = Field(None, ge=0)


class ProductResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    sku: Optional[str] = None
    category: str
    unit_price: float
    stock_quantity: int
    reorder_point: int
    is_low_stock: bool = False
    created_at: datetime


class SalesOrderItemCreate(BaseModel):
    product_id: Optional[str] = None
    name: Optional[str] = None
    quantity: int = 1
    unit_price: Optional[float] = None


class SalesOrderCreate(BaseModel):
    client_id: Optional[str] = None
    items: list[SalesOrderItemCreate] = []
    notes: Optional[str] = None


class SalesOrderItemResponse(BaseModel):
    id: str
    product_id: Optional[str] = None
    name: str
    quantity: int
    unit_price: float
    total_price: float
    is_custom_item: bool

    class Config:
        from_attributes = True


class SalesOrderResponse(BaseModel):
    id: str
    order_number: str
    client_id: str
    client_name: Optional[str] = None
    notes: Optional[str] = None
    total_amount: float
    outstanding_balance: float
    amount_paid: float = 0
    payment_status: str
    revision: int
    items: list[SalesOrderItemResponse] = []
    payments: list[PaymentResponse] = []
    created_at: datetime


class DailyFinancialRow(BaseModel):
    date: Date
    total_tasks: int
    total_amount: float
    total_deductions: float
    net_amount: float


class FinancialTotals(BaseModel):
    total_tasks: int
    total_amount: float
    total_deductions: float
    net_amount: float


class FinancialReport(BaseModel):
    start: Date
    end: Date
    currency: str
    rows: list[DailyFinancialRow]
    totals: FinancialTotals


class DashboardStats(BaseModel):
    total_workers: int
    total_tasks: int
    task_status_counts: dict[str, int]
    total_payouts: float
    weekly_payouts: float
    outstanding_receivables: float
    low_stock_products: int
    currency: str
