"""
Payment Model

One gateway transaction (authorization, capture or direct charge)
against an order. Refunds reduce ``refunded_cents``; the payment status
moves to partially_refunded / refunded accordingly.
"""
from sqlalchemy import Column, String, DateTime, Integer, Text, ForeignKey, Index, JSON
from sqlalchemy.orm import relationship
from datetime import datetime
from storefront_api.database import Base
import uuid

GATEWAY_TYPES = ("stripe", "paypal")


class Payment(Base):
    __tablename__ = "payments"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    tenant_id = Column(
        String(36),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    order_id = Column(
        String(36),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    gateway_type = Column(String(20), nullable=False)
    gateway_transaction_id = Column(String(255), nullable=True, index=True)
    payment_method = Column(String(50), nullable=True)

    amount_cents = Column(Integer, nullable=False)
    currency = Column(String(3), default="USD", nullable=False)
    gateway_fee_cents = Column(Integer, default=0, nullable=False)
    platform_fee_cents = Column(Integer, default=0, nullable=False)
    platform_fee_percent = Column(String(10), nullable=True)
    fee_waived_reason = Column(String(100), nullable=True)
    net_amount_cents = Column(Integer, nullable=False)
    refunded_cents = Column(Integer, default=0, nullable=False)

    payment_status = Column(String(20), default="pending", nullable=False)

    authorized_at = Column(DateTime, nullable=True)
    authorization_expires_at = Column(DateTime, nullable=True)
    captured_at = Column(DateTime, nullable=True)
    refunded_at = Column(DateTime, nullable=True)

    failure_code = Column(String(100), nullable=True)
    failure_message = Column(Text, nullable=True)
    gateway_response = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    order = relationship("Order", back_populates="payments")

    __table_args__ = (
        Index('idx_payment_tenant_status', 'tenant_id', 'payment_status'),
    )

    def __repr__(self):
        return f"<Payment {self.id} {self.gateway_type} {self.payment_status}>"

    @property
    def refundable_cents(self) -> int:
        return self.amount_cents - (self.refunded_cents or 0)
