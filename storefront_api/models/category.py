"""
Tenant Category Model

Store-defined product categories. A category is "aligned" once it
points at a Google product taxonomy id; only aligned categories can be
pushed to Google Merchant.
"""
from sqlalchemy import Column, String, Boolean, DateTime, Integer, ForeignKey, Index
from sqlalchemy.orm import relationship
from datetime import datetime
from storefront_api.database import Base
import uuid


class TenantCategory(Base):
    __tablename__ = "directory_category"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    tenant_id = Column(
        String(36),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    name = Column(String(100), nullable=False)
    slug = Column(String(100), nullable=False)
    parent_id = Column(
        String(36),
        ForeignKey("directory_category.id", ondelete="SET NULL"),
        nullable=True
    )
    google_category_id = Column(String(20), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    parent = relationship("TenantCategory", remote_side=[id])

    __table_args__ = (
        Index('idx_category_tenant_slug', 'tenant_id', 'slug', unique=True),
        Index('idx_category_tenant_active', 'tenant_id', 'is_active'),
    )

    def __repr__(self):
        return f"<TenantCategory {self.slug} (tenant={self.tenant_id})>"

    @property
    def is_mapped(self) -> bool:
        return bool(self.google_category_id)
