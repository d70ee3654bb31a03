"""
Order Models

Orders, their line items and an append-only status history.
All money columns are integer cents.
"""
from sqlalchemy import Column, String, DateTime, Integer, Float, Text, ForeignKey, Index, JSON
from sqlalchemy.orm import relationship
from datetime import datetime
from storefront_api.database import Base
import uuid

ORDER_STATUSES = (
    "draft", "confirmed", "paid", "processing", "shipped", "delivered", "cancelled", "refunded",
)
PAYMENT_STATUSES = (
    "pending", "authorized", "paid", "partially_refunded", "refunded", "failed", "cancelled",
)
FULFILLMENT_STATUSES = ("unfulfilled", "partially_fulfilled", "fulfilled")


class Order(Base):
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    tenant_id = Column(
        String(36),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    order_number = Column(String(50), nullable=False, unique=True, index=True)

    customer_email = Column(String(255), nullable=False, index=True)
    customer_name = Column(String(255), nullable=True)
    customer_phone = Column(String(50), nullable=True)

    shipping_address = Column(JSON, nullable=True)
    billing_address = Column(JSON, nullable=True)

    subtotal_cents = Column(Integer, default=0, nullable=False)
    tax_cents = Column(Integer, default=0, nullable=False)
    shipping_cents = Column(Integer, default=0, nullable=False)
    discount_cents = Column(Integer, default=0, nullable=False)
    total_cents = Column(Integer, default=0, nullable=False)
    currency = Column(String(3), default="USD", nullable=False)

    order_status = Column(String(20), default="draft", nullable=False)
    payment_status = Column(String(20), default="pending", nullable=False)
    fulfillment_status = Column(String(20), default="unfulfilled", nullable=False)

    customer_notes = Column(Text, nullable=True)
    internal_notes = Column(Text, nullable=True)
    source = Column(String(50), default="storefront", nullable=False)
    order_metadata = Column("metadata", JSON, default=dict, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    confirmed_at = Column(DateTime, nullable=True)
    paid_at = Column(DateTime, nullable=True)
    fulfilled_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)

    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")
    payments = relationship("Payment", back_populates="order", cascade="all, delete-orphan")
    history = relationship(
        "OrderStatusHistory",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderStatusHistory.created_at"
    )

    __table_args__ = (
        Index('idx_order_tenant_status', 'tenant_id', 'order_status'),
        Index('idx_order_tenant_created', 'tenant_id', 'created_at'),
    )

    def __repr__(self):
        return f"<Order {self.order_number}>"


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id = Column(
        String(36),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    inventory_item_id = Column(
        String(36),
        ForeignKey("inventory_items.id", ondelete="SET NULL"),
        nullable=True
    )

    sku = Column(String(100), nullable=False)
    name = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    image_url = Column(String(1000), nullable=True)

    quantity = Column(Integer, nullable=False)
    unit_price_cents = Column(Integer, nullable=False)
    tax_rate = Column(Float, default=0, nullable=False)
    subtotal_cents = Column(Integer, nullable=False)
    tax_cents = Column(Integer, default=0, nullable=False)
    discount_cents = Column(Integer, default=0, nullable=False)
    total_cents = Column(Integer, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    order = relationship("Order", back_populates="items")


class OrderStatusHistory(Base):
    __tablename__ = "order_status_history"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id = Column(
        String(36),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # order | payment | fulfillment
    status_type = Column(String(20), nullable=False)
    old_status = Column(String(20), nullable=True)
    new_status = Column(String(20), nullable=False)
    reason = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    changed_by = Column(String(36), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    order = relationship("Order", back_populates="history")
