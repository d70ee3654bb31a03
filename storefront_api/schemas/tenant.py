"""
Tenant and Business Profile Schemas
"""
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from typing import Optional, List
from datetime import datetime


class TenantResponse(BaseModel):
    id: str
    name: str
    slug: str
    subdomain: Optional[str]
    is_active: bool
    subscription_tier: str
    subscription_status: str
    trial_ends_at: Optional[datetime]
    subscription_ends_at: Optional[datetime]
    location_status: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TierLimits(BaseModel):
    max_skus: Optional[int]
    max_locations: Optional[int]
    rate_limit_per_minute: int


class TierUsage(BaseModel):
    sku_count: int
    sku_limit: Optional[int]
    sku_percent: Optional[float]
    at_sku_limit: bool


class TierResponse(BaseModel):
    tenant_id: str
    tier: str
    display_name: str
    monthly_price: int
    subscription_status: str
    is_trial: bool
    is_frozen: bool
    trial_ends_at: Optional[datetime]
    limits: TierLimits
    features: List[str]
    usage: TierUsage


class TierChangeRequest(BaseModel):
    subscription_tier: str = Field(..., pattern="^(google_only|starter|professional|enterprise|organization)$")
    subscription_status: Optional[str] = Field(None, pattern="^(trial|active|past_due|canceled|expired)$")
    reason: Optional[str] = Field(None, max_length=500)


class BusinessProfileUpdate(BaseModel):
    business_name: Optional[str] = Field(None, min_length=1, max_length=255)
    address_line1: Optional[str] = Field(None, max_length=255)
    address_line2: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    postal_code: Optional[str] = Field(None, max_length=20)
    country_code: Optional[str] = Field(None, min_length=2, max_length=2)
    phone_number: Optional[str] = Field(None, max_length=50)
    email: Optional[EmailStr] = None
    website: Optional[str] = Field(None, max_length=500)
    description: Optional[str] = None
    logo_url: Optional[str] = Field(None, max_length=500)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    hours: Optional[dict] = None

    @field_validator("country_code")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("may not be null")
        return value


class BusinessProfileResponse(BaseModel):
    tenant_id: str
    business_name: Optional[str]
    address_line1: Optional[str]
    address_line2: Optional[str]
    city: Optional[str]
    state: Optional[str]
    postal_code: Optional[str]
    country_code: str
    phone_number: Optional[str]
    email: Optional[str]
    website: Optional[str]
    description: Optional[str]
    logo_url: Optional[str]
    latitude: Optional[float]
    longitude: Optional[float]
    hours: Optional[dict]
    is_complete: bool

    model_config = ConfigDict(from_attributes=True)
