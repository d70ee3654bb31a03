"""
Inventory Item Schemas
"""
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List
from datetime import datetime


class ItemBase(BaseModel):
    sku: str = Field(..., min_length=1, max_length=100)
    name: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = None
    price_cents: Optional[int] = Field(None, ge=0)
    currency: str = Field("USD", min_length=3, max_length=3)
    stock: int = Field(0, ge=0)
    brand: Optional[str] = Field(None, max_length=255)
    gtin: Optional[str] = Field(None, max_length=50)
    mpn: Optional[str] = Field(None, max_length=100)
    image_url: Optional[str] = Field(None, max_length=1000)
    image_gallery: List[str] = Field(default_factory=list, max_length=10)
    availability: Optional[str] = Field(None, pattern="^(in_stock|out_of_stock|preorder|backorder)$")
    condition: Optional[str] = Field(None, pattern="^(new|refurbished|used)$")
    item_status: str = Field("active", pattern="^(active|inactive|archived)$")
    visibility: str = Field("public", pattern="^(public|private)$")
    category_path: List[str] = Field(default_factory=list)
    directory_category_id: Optional[str] = None
    metadata: dict = Field(default_factory=dict)


class ItemCreate(ItemBase):
    pass


class ItemUpdate(BaseModel):
    """All fields optional; sku changes are checked for clashes."""
    sku: Optional[str] = Field(None, min_length=1, max_length=100)
    name: Optional[str] = Field(None, min_length=1, max_length=500)
    description: Optional[str] = None
    price_cents: Optional[int] = Field(None, ge=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    stock: Optional[int] = Field(None, ge=0)
    brand: Optional[str] = Field(None, max_length=255)
    gtin: Optional[str] = Field(None, max_length=50)
    mpn: Optional[str] = Field(None, max_length=100)
    image_url: Optional[str] = Field(None, max_length=1000)
    image_gallery: Optional[List[str]] = Field(None, max_length=10)
    availability: Optional[str] = Field(None, pattern="^(in_stock|out_of_stock|preorder|backorder)$")
    condition: Optional[str] = Field(None, pattern="^(new|refurbished|used)$")
    item_status: Optional[str] = Field(None, pattern="^(active|inactive|archived)$")
    visibility: Optional[str] = Field(None, pattern="^(public|private)$")
    category_path: Optional[List[str]] = None
    directory_category_id: Optional[str] = None
    metadata: Optional[dict] = None

    @field_validator(
        "sku", "name", "currency", "stock", "image_gallery", "item_status", "visibility", "category_path"
    )
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("may not be null")
        return value


class ItemResponse(BaseModel):
    id: str
    tenant_id: str
    sku: str
    name: str
    description: Optional[str]
    price_cents: Optional[int]
    currency: str
    stock: int
    brand: Optional[str]
    gtin: Optional[str]
    mpn: Optional[str]
    image_url: Optional[str]
    image_gallery: List[str]
    availability: Optional[str]
    condition: Optional[str]
    item_status: str
    visibility: str
    category_path: List[str]
    directory_category_id: Optional[str]
    metadata: dict = Field(validation_alias="item_metadata")
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ItemListResponse(BaseModel):
    items: List[ItemResponse]
    total: int
    page: int
    page_size: int
