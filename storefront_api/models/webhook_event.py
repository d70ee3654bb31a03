"""
Stripe Webhook Event Model

Processed Stripe event ids. The unique constraint on event_id is what
makes webhook delivery idempotent.
"""
from sqlalchemy import Column, String, DateTime
from datetime import datetime
from storefront_api.database import Base
import uuid


class StripeWebhookEvent(Base):
    __tablename__ = "stripe_webhook_events"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    event_id = Column(String(255), nullable=False, unique=True, index=True)
    event_type = Column(String(100), nullable=False)
    processed_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<StripeWebhookEvent {self.event_id} {self.event_type}>"
