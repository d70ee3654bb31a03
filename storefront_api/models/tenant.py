"""
Tenant Model

A tenant is one merchant (store) on the platform and the isolation
boundary for every catalog, order and feed row. Billing state mirrored
from Stripe lives on the tenant row; the public-facing address and
contact data live in BusinessProfile.
"""
from sqlalchemy import Column, String, Boolean, DateTime, Integer, Float, Text, ForeignKey, Index, JSON
from sqlalchemy.orm import relationship
from datetime import datetime
from storefront_api.database import Base
import uuid


class Tenant(Base):
    __tablename__ = "tenants"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    name = Column(String(255), nullable=False)
    slug = Column(String(100), unique=True, nullable=False, index=True)

    # Optional subdomain routing (e.g. acme.shop.example)
    subdomain = Column(String(63), unique=True, nullable=True, index=True)

    is_active = Column(Boolean, default=True, nullable=False, index=True)

    # Subscription: tier drives limits and features, status is kept in
    # sync by the Stripe webhook handlers
    subscription_tier = Column(String(20), default="starter", nullable=False, index=True)
    subscription_status = Column(String(20), default="trial", nullable=False, index=True)
    trial_ends_at = Column(DateTime, nullable=True)
    subscription_ends_at = Column(DateTime, nullable=True)
    stripe_customer_id = Column(String(255), nullable=True, unique=True, index=True)
    stripe_subscription_id = Column(String(255), nullable=True)

    # Physical location state: active, inactive, closed, pending, archived
    location_status = Column(String(20), default="active", nullable=False)

    # Per-tenant rate limit overrides; NULL falls back to the tier table
    rate_limit_per_minute = Column(Integer, nullable=True)
    rate_limit_burst = Column(Integer, nullable=True)

    admin_email = Column(String(255), nullable=False)
    billing_email = Column(String(255), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    users = relationship("User", back_populates="tenant", cascade="all, delete-orphan")
    profile = relationship("BusinessProfile", back_populates="tenant", uselist=False, cascade="all, delete-orphan")
    listing = relationship("DirectoryListing", back_populates="tenant", uselist=False, cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_tenant_tier_status', 'subscription_tier', 'subscription_status'),
    )

    def __repr__(self):
        return f"<Tenant {self.slug}>"

    @property
    def is_trial(self) -> bool:
        return self.subscription_status == "trial"


class BusinessProfile(Base):
    """Public business details used by the directory and storefront."""

    __tablename__ = "tenant_business_profiles"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(
        String(36),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True
    )

    business_name = Column(String(255), nullable=True)
    address_line1 = Column(String(255), nullable=True)
    address_line2 = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(100), nullable=True)
    postal_code = Column(String(20), nullable=True)
    country_code = Column(String(2), default="US", nullable=False)
    phone_number = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    website = Column(String(500), nullable=True)
    description = Column(Text, nullable=True)
    logo_url = Column(String(500), nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    hours = Column(JSON, nullable=True)

    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    tenant = relationship("Tenant", back_populates="profile")

    @property
    def is_complete(self) -> bool:
        """The directory needs at least a name and a city/state to list a store."""
        return bool(self.business_name and self.city and self.state)
