"""
Featured Products, Behavior Tracking and Security Alert Schemas
"""
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List
from datetime import datetime

FEATURED_TYPE_PATTERN = "^(store_selection|new_arrival|seasonal|sale|staff_pick)$"
EVENT_TYPE_PATTERN = (
    "^(page_view|product_view|store_view|search|click|scroll|form_submit|purchase|signup|login)$"
)


class FeatureRequest(BaseModel):
    inventory_item_id: str
    featured_type: str = Field("store_selection", pattern=FEATURED_TYPE_PATTERN)
    featured_priority: int = Field(50, ge=0, le=100)
    featured_expires_at: Optional[datetime] = None
    auto_unfeature: bool = True


class FeatureUpdate(BaseModel):
    featured_priority: Optional[int] = Field(None, ge=0, le=100)
    featured_expires_at: Optional[datetime] = None
    auto_unfeature: Optional[bool] = None
    is_active: Optional[bool] = None

    @field_validator("featured_priority", "auto_unfeature", "is_active")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("may not be null")
        return value


class FeaturedProductResponse(BaseModel):
    id: str
    inventory_item_id: str
    featured_type: str
    featured_priority: int
    featured_at: datetime
    featured_expires_at: Optional[datetime]
    auto_unfeature: bool
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class TrackEventRequest(BaseModel):
    session_id: str = Field(..., min_length=1, max_length=100)
    entity_type: str = Field(..., pattern="^(store|product|category|search|page)$")
    entity_id: Optional[str] = Field(None, max_length=100)
    entity_name: Optional[str] = Field(None, max_length=255)
    event_type: str = Field("page_view", pattern=EVENT_TYPE_PATTERN)
    user_id: Optional[str] = None
    tenant_id: Optional[str] = None
    context: Optional[dict] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    page_url: Optional[str] = None
    referrer: Optional[str] = None
    duration_seconds: Optional[int] = Field(None, ge=0)


class SecurityTelemetry(BaseModel):
    type: str = Field(..., pattern="^(rate_limit_exceeded|auth_failure|suspicious_activity|security_incident)$")
    severity: str = Field("warning", pattern="^(info|warning|critical)$")
    message: str = Field(..., min_length=1, max_length=2000)
    user_id: Optional[str] = None
    tenant_id: Optional[str] = None
    metadata: Optional[dict] = None


class SecurityAlertResponse(BaseModel):
    id: str
    user_id: Optional[str]
    tenant_id: Optional[str]
    type: str
    severity: str
    title: str
    message: str
    metadata: Optional[dict] = Field(None, validation_alias="alert_metadata")
    read: bool
    read_at: Optional[datetime]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SecurityAlertListResponse(BaseModel):
    alerts: List[SecurityAlertResponse]
    total: int
    page: int
    page_size: int
    unread: int
