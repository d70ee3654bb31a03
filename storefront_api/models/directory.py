"""
Directory Listing Models

A DirectoryListing is a tenant's public entry in the merchant directory.
Category membership is stored twice: as columns on the listing (for
display) and as DirectoryListingCategory rows (for filtering and
counting). ``sync_categories`` keeps the two in step.
"""
from sqlalchemy import Column, String, Boolean, DateTime, Integer, Float, Text, ForeignKey, Index, JSON
from sqlalchemy.orm import relationship
from datetime import datetime
from storefront_api.database import Base
from storefront_api.utils.text import slugify
import uuid


class DirectoryListing(Base):
    __tablename__ = "directory_listings_list"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    tenant_id = Column(
        String(36),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True
    )

    business_name = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False, unique=True, index=True)

    address = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(100), nullable=True)
    zip_code = Column(String(20), nullable=True)
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    website = Column(String(500), nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    primary_category = Column(String(100), nullable=True)
    secondary_categories = Column(JSON, default=list, nullable=False)

    description = Column(Text, nullable=True)
    seo_keywords = Column(JSON, default=list, nullable=False)
    features = Column(JSON, default=list, nullable=False)
    business_hours = Column(JSON, nullable=True)
    logo_url = Column(String(500), nullable=True)

    rating_avg = Column(Float, default=0, nullable=False)
    rating_count = Column(Integer, default=0, nullable=False)
    product_count = Column(Integer, default=0, nullable=False)

    is_featured = Column(Boolean, default=False, nullable=False)
    is_published = Column(Boolean, default=False, nullable=False, index=True)
    subscription_tier = Column(String(20), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    tenant = relationship("Tenant", back_populates="listing")
    categories = relationship(
        "DirectoryListingCategory",
        back_populates="listing",
        cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index('idx_listing_published_city_state', 'is_published', 'city', 'state'),
        Index('idx_listing_primary_category', 'primary_category'),
    )

    def __repr__(self):
        return f"<DirectoryListing {self.slug}>"

    def sync_categories(self) -> None:
        """Rebuild the category rows from primary/secondary columns."""
        wanted = []
        if self.primary_category:
            wanted.append((self.primary_category, True))
        for name in self.secondary_categories or []:
            if name and name != self.primary_category:
                wanted.append((name, False))

        self.categories = [
            DirectoryListingCategory(
                category_name=name,
                category_slug=slugify(name),
                is_primary=is_primary,
            )
            for name, is_primary in wanted
        ]


class DirectoryListingCategory(Base):
    __tablename__ = "directory_listing_categories"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    listing_id = Column(
        String(36),
        ForeignKey("directory_listings_list.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    category_name = Column(String(100), nullable=False)
    category_slug = Column(String(100), nullable=False, index=True)
    is_primary = Column(Boolean, default=False, nullable=False)

    listing = relationship("DirectoryListing", back_populates="categories")
