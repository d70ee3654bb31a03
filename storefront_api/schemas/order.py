"""
Order and Payment Schemas
"""
from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator
from typing import Optional, List
from datetime import datetime

ORDER_STATUS_PATTERN = "^(draft|confirmed|paid|processing|shipped|delivered|cancelled|refunded)$"


class Address(BaseModel):
    name: Optional[str] = None
    line1: str = Field(..., min_length=1)
    line2: Optional[str] = None
    city: str = Field(..., min_length=1)
    state: Optional[str] = None
    postal_code: str = Field(..., min_length=1)
    country: str = Field("US", min_length=2, max_length=2)


class Customer(BaseModel):
    email: EmailStr
    name: Optional[str] = None
    phone: Optional[str] = None


class OrderItemCreate(BaseModel):
    inventory_item_id: Optional[str] = None
    sku: Optional[str] = None
    name: Optional[str] = None
    quantity: int = Field(..., ge=1)
    unit_price_cents: Optional[int] = Field(None, ge=0)
    tax_rate: float = Field(0.0, ge=0, le=1)
    discount_cents: int = Field(0, ge=0)

    @model_validator(mode="after")
    def check_reference(self):
        if not self.inventory_item_id and not (self.sku and self.name and self.unit_price_cents is not None):
            raise ValueError("Each item needs inventory_item_id or sku, name and unit_price_cents")
        return self


class OrderCreate(BaseModel):
    customer: Customer
    items: List[OrderItemCreate] = Field(..., min_length=1)
    shipping_address: Optional[Address] = None
    billing_address: Optional[Address] = None
    shipping_cents: int = Field(0, ge=0)
    discount_cents: int = Field(0, ge=0)
    currency: str = Field("USD", min_length=3, max_length=3)
    customer_notes: Optional[str] = None
    source: str = "storefront"
    metadata: dict = Field(default_factory=dict)


class OrderStatusUpdate(BaseModel):
    status: str = Field(..., pattern=ORDER_STATUS_PATTERN)
    reason: Optional[str] = None
    notes: Optional[str] = None


class OrderItemResponse(BaseModel):
    id: str
    inventory_item_id: Optional[str]
    sku: str
    name: str
    quantity: int
    unit_price_cents: int
    tax_rate: float
    subtotal_cents: int
    tax_cents: int
    discount_cents: int
    total_cents: int

    model_config = ConfigDict(from_attributes=True)


class StatusHistoryResponse(BaseModel):
    status_type: str
    old_status: Optional[str]
    new_status: str
    reason: Optional[str]
    notes: Optional[str]
    changed_by: Optional[str]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PaymentResponse(BaseModel):
    id: str
    order_id: str
    gateway_type: str
    gateway_transaction_id: Optional[str]
    payment_method: Optional[str]
    amount_cents: int
    currency: str
    gateway_fee_cents: int
    platform_fee_cents: int
    fee_waived_reason: Optional[str]
    net_amount_cents: int
    refunded_cents: int
    payment_status: str
    authorized_at: Optional[datetime]
    authorization_expires_at: Optional[datetime]
    captured_at: Optional[datetime]
    refunded_at: Optional[datetime]
    failure_code: Optional[str]
    failure_message: Optional[str]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class OrderResponse(BaseModel):
    id: str
    tenant_id: str
    order_number: str
    customer_email: str
    customer_name: Optional[str]
    customer_phone: Optional[str]
    shipping_address: Optional[dict]
    billing_address: Optional[dict]
    subtotal_cents: int
    tax_cents: int
    shipping_cents: int
    discount_cents: int
    total_cents: int
    currency: str
    order_status: str
    payment_status: str
    fulfillment_status: str
    customer_notes: Optional[str]
    source: str
    created_at: datetime
    confirmed_at: Optional[datetime]
    paid_at: Optional[datetime]
    fulfilled_at: Optional[datetime]
    cancelled_at: Optional[datetime]

    model_config = ConfigDict(from_attributes=True)


class OrderDetailResponse(OrderResponse):
    items: List[OrderItemResponse]
    payments: List[PaymentResponse]
    history: List[StatusHistoryResponse]


class OrderListResponse(BaseModel):
    orders: List[OrderResponse]
    total: int
    page: int
    page_size: int


class PaymentMethod(BaseModel):
    type: str = Field("card", max_length=50)
    token: str = Field(..., min_length=1)


class PaymentRequest(BaseModel):
    order_id: str
    gateway_type: str = Field("stripe", pattern="^(stripe|paypal)$")
    payment_method: PaymentMethod
    amount_cents: Optional[int] = Field(None, ge=1)


class CaptureRequest(BaseModel):
    amount_cents: Optional[int] = Field(None, ge=1)


class RefundRequest(BaseModel):
    amount_cents: Optional[int] = Field(None, ge=1)
    reason: Optional[str] = Field(None, max_length=500)
