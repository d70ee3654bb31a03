"""
Directory Schemas
"""
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List
from datetime import datetime


class ListingResponse(BaseModel):
    id: str
    tenant_id: str
    business_name: str
    slug: str
    address: Optional[str]
    city: Optional[str]
    state: Optional[str]
    zip_code: Optional[str]
    phone: Optional[str]
    email: Optional[str]
    website: Optional[str]
    latitude: Optional[float]
    longitude: Optional[float]
    primary_category: Optional[str]
    secondary_categories: List[str]
    description: Optional[str]
    seo_keywords: List[str]
    features: List[str]
    business_hours: Optional[dict]
    logo_url: Optional[str]
    rating_avg: float
    rating_count: int
    product_count: int
    is_featured: bool
    is_published: bool
    subscription_tier: Optional[str]
    created_at: datetime
    updated_at: datetime
    distance_km: Optional[float] = None

    model_config = ConfigDict(from_attributes=True)


class Pagination(BaseModel):
    page: int
    limit: int
    total_items: int
    total_pages: int


class ListingSearchResponse(BaseModel):
    listings: List[ListingResponse]
    pagination: Pagination


class ListingUpdate(BaseModel):
    """Fields a store may edit on its own listing."""
    description: Optional[str] = Field(None, max_length=500)
    seo_keywords: Optional[List[str]] = Field(None, max_length=10)
    primary_category: Optional[str] = Field(None, min_length=1, max_length=100)
    secondary_categories: Optional[List[str]] = Field(None, max_length=5)
    features: Optional[List[str]] = Field(None, max_length=20)
    business_hours: Optional[dict] = None
    is_featured: Optional[bool] = None

    @field_validator("seo_keywords", "secondary_categories", "features", "is_featured")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("may not be null")
        return value


class DirectoryCategory(BaseModel):
    name: str
    slug: str
    count: int


class DirectoryLocation(BaseModel):
    city: str
    state: str
    slug: str
    count: int
