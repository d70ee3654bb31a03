"""
Behavior Event Model

Anonymous and signed-in browsing events used for recommendations and
store analytics.
"""
from sqlalchemy import Column, String, DateTime, Integer, Float, Text, Index, JSON
from datetime import datetime
from storefront_api.database import Base
import uuid

ENTITY_TYPES = ("store", "product", "category", "search", "page")
EVENT_TYPES = (
    "page_view", "product_view", "store_view", "search", "click",
    "scroll", "form_submit", "purchase", "signup", "login",
)


class BehaviorEvent(Base):
    __tablename__ = "user_behavior_tracking"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    user_id = Column(String(36), nullable=True, index=True)
    session_id = Column(String(100), nullable=False, index=True)
    tenant_id = Column(String(36), nullable=True, index=True)

    entity_type = Column(String(20), nullable=False)
    entity_id = Column(String(100), nullable=False)
    entity_name = Column(String(255), nullable=True)
    event_type = Column(String(30), default="page_view", nullable=False)

    context = Column(JSON, nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    page_url = Column(Text, nullable=True)
    referrer = Column(Text, nullable=True)
    user_agent = Column(Text, nullable=True)
    ip_address = Column(String(64), nullable=True)
    duration_seconds = Column(Integer, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    __table_args__ = (
        Index('idx_behavior_entity', 'entity_type', 'entity_id'),
    )
