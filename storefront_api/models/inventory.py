"""
Inventory Item Model

One product in a tenant's catalog. Prices are stored in cents.

``category_path`` is the list of tenant category slugs from root to
leaf; the leaf slug is what feed generation resolves against the
tenant's categories when ``directory_category_id`` is not set.
"""
from sqlalchemy import Column, String, Boolean, DateTime, Integer, Text, ForeignKey, Index, JSON
from sqlalchemy.orm import relationship
from datetime import datetime
from storefront_api.database import Base
import uuid

ITEM_STATUSES = ("active", "inactive", "archived")
ITEM_VISIBILITY = ("public", "private")
AVAILABILITY_VALUES = ("in_stock", "out_of_stock", "preorder", "backorder")
CONDITION_VALUES = ("new", "refurbished", "used")


class InventoryItem(Base):
    __tablename__ = "inventory_items"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    tenant_id = Column(
        String(36),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    sku = Column(String(100), nullable=False)
    name = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)

    price_cents = Column(Integer, nullable=True)
    currency = Column(String(3), default="USD", nullable=False)
    stock = Column(Integer, default=0, nullable=False)

    brand = Column(String(255), nullable=True)
    gtin = Column(String(50), nullable=True)
    mpn = Column(String(100), nullable=True)

    image_url = Column(String(1000), nullable=True)
    image_gallery = Column(JSON, default=list, nullable=False)

    availability = Column(String(20), nullable=True)
    condition = Column(String(20), nullable=True)

    item_status = Column(String(20), default="active", nullable=False)
    visibility = Column(String(20), default="public", nullable=False)

    category_path = Column(JSON, default=list, nullable=False)
    directory_category_id = Column(
        String(36),
        ForeignKey("directory_category.id", ondelete="SET NULL"),
        nullable=True
    )

    # "metadata" is reserved on declarative classes
    item_metadata = Column("metadata", JSON, default=dict, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    directory_category = relationship("TenantCategory")

    __table_args__ = (
        Index('idx_item_tenant_sku', 'tenant_id', 'sku', unique=True),
        Index('idx_item_tenant_status_visibility', 'tenant_id', 'item_status', 'visibility'),
    )

    def __repr__(self):
        return f"<InventoryItem {self.sku} (tenant={self.tenant_id})>"

    @property
    def is_listed(self) -> bool:
        """Active and publicly visible: eligible for storefront and feeds."""
        return self.item_status == "active" and self.visibility == "public"

    @property
    def price(self):
        if self.price_cents is None:
            return None
        return round(self.price_cents / 100, 2)

    @property
    def primary_image(self):
        if self.image_url:
            return self.image_url
        gallery = self.image_gallery or []
        return gallery[0] if gallery else None

    @property
    def leaf_category_slug(self):
        path = self.category_path or []
        return path[-1] if path else None
