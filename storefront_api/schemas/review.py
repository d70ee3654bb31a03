"""
Store Review Schemas
"""
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Dict, Optional, List
from datetime import datetime


class ReviewCreate(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    review_text: Optional[str] = Field(None, max_length=5000)
    location_lat: Optional[float] = Field(None, ge=-90, le=90)
    location_lng: Optional[float] = Field(None, ge=-180, le=180)


class ReviewUpdate(BaseModel):
    rating: Optional[int] = Field(None, ge=1, le=5)
    review_text: Optional[str] = Field(None, max_length=5000)
    location_lat: Optional[float] = Field(None, ge=-90, le=90)
    location_lng: Optional[float] = Field(None, ge=-180, le=180)

    @field_validator("rating")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("may not be null")
        return value


class HelpfulVote(BaseModel):
    is_helpful: bool


class ReviewResponse(BaseModel):
    id: str
    tenant_id: str
    user_id: str
    reviewer_name: Optional[str] = None
    rating: int
    review_text: Optional[str]
    verified_purchase: bool
    helpful_count: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RatingSummary(BaseModel):
    tenant_id: str
    rating_avg: float
    rating_count: int
    distribution: Dict[str, int]
    helpful_count_total: int
    verified_purchase_count: int
    last_review_at: Optional[datetime]


class ReviewListResponse(BaseModel):
    reviews: List[ReviewResponse]
    summary: RatingSummary
    total: int
    page: int
    page_size: int
