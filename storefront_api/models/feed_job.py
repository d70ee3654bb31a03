"""
Feed Push Job Model

A queued push of (part of) a tenant's catalog to Google Merchant.
Failed jobs are re-queued with a backoff until max_retries is reached.
"""
from sqlalchemy import Column, String, DateTime, Integer, Text, ForeignKey, Index, JSON
from datetime import datetime
from storefront_api.database import Base
import uuid

JOB_STATUSES = ("queued", "processing", "success", "failed")


class FeedPushJob(Base):
    __tablename__ = "feed_push_jobs_list"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    tenant_id = Column(
        String(36),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    # NULL sku = full catalog push
    sku = Column(String(100), nullable=True)
    payload = Column(JSON, nullable=True)

    job_status = Column(String(20), default="queued", nullable=False)
    retry_count = Column(Integer, default=0, nullable=False)
    max_retries = Column(Integer, default=5, nullable=False)
    next_retry = Column(DateTime, nullable=True)
    last_attempt = Column(DateTime, nullable=True)

    error_message = Column(Text, nullable=True)
    error_code = Column(String(100), nullable=True)
    result = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    completed_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index('idx_feed_job_status_next_retry', 'job_status', 'next_retry'),
        Index('idx_feed_job_tenant_created', 'tenant_id', 'created_at'),
    )

    def __repr__(self):
        return f"<FeedPushJob {self.id} {self.job_status}>"
