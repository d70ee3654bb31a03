"""
Feed Job Schemas
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Any
from datetime import datetime


class FeedJobCreate(BaseModel):
    sku: Optional[str] = Field(None, max_length=100)
    payload: Optional[dict] = None
    max_retries: int = Field(5, ge=0, le=10)


class FeedJobStatusUpdate(BaseModel):
    status: str = Field(..., pattern="^(queued|processing|success|failed)$")
    error_message: Optional[str] = None
    error_code: Optional[str] = Field(None, max_length=100)
    result: Optional[Any] = None


class FeedJobResponse(BaseModel):
    id: str
    tenant_id: str
    sku: Optional[str]
    payload: Optional[Any]
    job_status: str
    retry_count: int
    max_retries: int
    next_retry: Optional[datetime]
    last_attempt: Optional[datetime]
    error_message: Optional[str]
    error_code: Optional[str]
    result: Optional[Any]
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime]

    model_config = ConfigDict(from_attributes=True)


class FeedJobListResponse(BaseModel):
    jobs: List[FeedJobResponse]
    total: int
    limit: int
    offset: int
    has_more: bool


class FeedJobStats(BaseModel):
    total: int
    queued: int
    processing: int
    success: int
    failed: int
    success_rate: float
