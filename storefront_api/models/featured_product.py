"""
Featured Product Model

An inventory item promoted on the storefront under one featured type.
An item can carry several types at once (e.g. sale and staff_pick).
"""
from sqlalchemy import Column, String, Boolean, DateTime, Integer, ForeignKey, Index
from sqlalchemy.orm import relationship
from datetime import datetime
from storefront_api.database import Base
import uuid

FEATURED_TYPES = ("store_selection", "new_arrival", "seasonal", "sale", "staff_pick")


class FeaturedProduct(Base):
    __tablename__ = "featured_products"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    tenant_id = Column(
        String(36),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    inventory_item_id = Column(
        String(36),
        ForeignKey("inventory_items.id", ondelete="CASCADE"),
        nullable=False
    )

    featured_type = Column(String(30), nullable=False)
    featured_priority = Column(Integer, default=50, nullable=False)
    featured_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    featured_expires_at = Column(DateTime, nullable=True)
    auto_unfeature = Column(Boolean, default=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    item = relationship("InventoryItem")

    __table_args__ = (
        Index('idx_featured_item_type', 'inventory_item_id', 'featured_type', unique=True),
        Index('idx_featured_tenant_type_active', 'tenant_id', 'featured_type', 'is_active'),
    )

    def is_expired(self, now: datetime) -> bool:
        return self.featured_expires_at is not None and self.featured_expires_at <= now
