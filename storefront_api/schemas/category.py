"""
Tenant Category Schemas
"""
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List
from datetime import datetime

SLUG_PATTERN = "^[a-z0-9-]+$"


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    slug: str = Field(..., min_length=1, max_length=100, pattern=SLUG_PATTERN)
    parent_id: Optional[str] = None
    google_category_id: Optional[str] = None
    sort_order: int = 0


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    slug: Optional[str] = Field(None, min_length=1, max_length=100, pattern=SLUG_PATTERN)
    parent_id: Optional[str] = None
    google_category_id: Optional[str] = None
    sort_order: Optional[int] = None
    is_active: Optional[bool] = None

    @field_validator("name", "slug", "sort_order", "is_active")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("may not be null")
        return value


class CategoryAlignRequest(BaseModel):
    google_category_id: str = Field(..., min_length=1)


class GoogleCategoryRef(BaseModel):
    id: str
    name: str
    full_path: str


class CategoryResponse(BaseModel):
    id: str
    tenant_id: str
    name: str
    slug: str
    parent_id: Optional[str]
    google_category_id: Optional[str]
    is_active: bool
    sort_order: int
    is_mapped: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CategoryDetailResponse(CategoryResponse):
    google_category: Optional[GoogleCategoryRef] = None
    child_count: int = 0
    product_count: int = 0


class CategoryStats(BaseModel):
    total: int
    mapped: int
    unmapped: int
    mapping_coverage: float


class CategoryListResponse(BaseModel):
    categories: List[CategoryResponse]
    stats: CategoryStats
