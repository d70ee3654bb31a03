"""
Feed Job Endpoints

Queue and track Google Merchant push jobs for the current store.
A worker claims jobs from ``/feed-jobs/ready`` and reports progress
through the status endpoint.
"""
from datetime import datetime
from fastapi import APIRouter, Depends, status, Query
from sqlalchemy import func, or_
from sqlalchemy.orm import Session
from typing import List, Optional

from storefront_api.config import get_settings
from storefront_api.database import get_db
from storefront_api.models import User, Tenant, FeedPushJob, InventoryItem
from storefront_api.schemas.feed_job import (
    FeedJobCreate,
    FeedJobStatusUpdate,
    FeedJobResponse,
    FeedJobListResponse,
    FeedJobStats,
)
from storefront_api.api.deps import get_current_user, get_current_tenant, require_member, require_writable_tenant
from storefront_api.core.exceptions import FeedJobNotFoundError, UnprocessableError
from storefront_api.services import feed as feed_service
from storefront_api.services.feed_jobs import apply_status, READY_QUEUE_LIMIT
from storefront_api.utils.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()

router = APIRouter(prefix="/feed-jobs", tags=["feed-jobs"])

# Items inspected by the alignment gate for a full-catalog job
ALIGNMENT_SCAN_LIMIT = 2000
ALIGNMENT_EXAMPLE_COUNT = 10


def get_tenant_job(db: Session, tenant_id: str, job_id: str) -> FeedPushJob:
    job = db.query(FeedPushJob).filter(
        FeedPushJob.id == job_id,
        FeedPushJob.tenant_id == tenant_id
    ).first()
    if not job:
        raise FeedJobNotFoundError(job_id)
    return job


def enforce_alignment(db: Session, tenant_id: str, sku: Optional[str]) -> None:
    """Refuse the job while listed items still point at unaligned categories."""
    query = db.query(InventoryItem).filter(
        InventoryItem.tenant_id == tenant_id,
        InventoryItem.item_status == "active",
        InventoryItem.visibility == "public"
    )
    if sku:
        query = query.filter(InventoryItem.sku == sku)
    items = query.limit(1 if sku else ALIGNMENT_SCAN_LIMIT).all()

    index = feed_service.CategoryIndex.load(db, tenant_id)
    unaligned = [item for item in items if not index.google_category_id(item)]
    if not unaligned:
        return

    raise UnprocessableError({
        "error": "alignment_required",
        "message": "Some products use categories that are not aligned to the Google taxonomy",
        "checked": len(items),
        "unaligned": len(unaligned),
        "examples": [
            {"id": item.id, "sku": item.sku, "category_path": item.category_path or []}
            for item in unaligned[:ALIGNMENT_EXAMPLE_COUNT]
        ],
        "next_steps": [
            "Align each store category to a Google category",
            "Or assign the products to an aligned category",
        ],
    })


@router.post("", response_model=FeedJobResponse, status_code=status.HTTP_201_CREATED)
async def create_feed_job(
    job_data: FeedJobCreate,
    current_user: User = Depends(require_member),
    tenant: Tenant = Depends(require_writable_tenant),
    db: Session = Depends(get_db)
):
    if settings.FEED_ALIGNMENT_ENFORCE:
        enforce_alignment(db, tenant.id, job_data.sku)

    job = FeedPushJob(
        tenant_id=tenant.id,
        sku=job_data.sku,
        payload=job_data.payload,
        max_retries=job_data.max_retries,
        job_status="queued",
    )
    db.add(job)
    db.commit()
    db.refresh(job)

    logger.info(f"Feed job queued: {job.id} for tenant {tenant.id}", extra={"tenant_id": tenant.id})

    return job


@router.get("", response_model=FeedJobListResponse)
async def list_feed_jobs(
    job_status: Optional[str] = Query(None, alias="status", pattern="^(queued|processing|success|failed)$"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    query = db.query(FeedPushJob).filter(FeedPushJob.tenant_id == tenant.id)
    if job_status:
        query = query.filter(FeedPushJob.job_status == job_status)

    total = query.count()
    jobs = query.order_by(FeedPushJob.created_at.desc()).offset(offset).limit(limit).all()

    return FeedJobListResponse(
        jobs=jobs,
        total=total,
        limit=limit,
        offset=offset,
        has_more=offset + len(jobs) < total,
    )


@router.get("/ready", response_model=List[FeedJobResponse])
async def ready_feed_jobs(
    current_user: User = Depends(require_member),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """Queued jobs whose retry time has come, oldest first."""
    now = datetime.utcnow()
    return db.query(FeedPushJob).filter(
        FeedPushJob.tenant_id == tenant.id,
        FeedPushJob.job_status == "queued",
        or_(FeedPushJob.next_retry.is_(None), FeedPushJob.next_retry <= now)
    ).order_by(FeedPushJob.created_at.asc()).limit(READY_QUEUE_LIMIT).all()


@router.get("/stats", response_model=FeedJobStats)
async def feed_job_stats(
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    rows = db.query(FeedPushJob.job_status, func.count(FeedPushJob.id)).filter(
        FeedPushJob.tenant_id == tenant.id
    ).group_by(FeedPushJob.job_status).all()
    counts = {job_status: count for job_status, count in rows}

    total = sum(counts.values())
    success = counts.get("success", 0)
    return FeedJobStats(
        total=total,
        queued=counts.get("queued", 0),
        processing=counts.get("processing", 0),
        success=success,
        failed=counts.get("failed", 0),
        success_rate=round(success / total * 100, 2) if total else 0.0,
    )


@router.get("/{job_id}", response_model=FeedJobResponse)
async def get_feed_job(
    job_id: str,
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    return get_tenant_job(db, tenant.id, job_id)


@router.patch("/{job_id}/status", response_model=FeedJobResponse)
async def update_feed_job_status(
    job_id: str,
    status_data: FeedJobStatusUpdate,
    current_user: User = Depends(require_member),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    job = get_tenant_job(db, tenant.id, job_id)

    apply_status(
        job,
        status_data.status,
        error_message=status_data.error_message,
        error_code=status_data.error_code,
        result=status_data.result,
    )
    db.commit()
    db.refresh(job)

    if status_data.status == "failed":
        logger.warning(
            f"Feed job {job.id} failed (attempt {job.retry_count}/{job.max_retries}): {job.error_message}",
            extra={"tenant_id": tenant.id}
        )

    return job


@router.delete("/{job_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_feed_job(
    job_id: str,
    current_user: User = Depends(require_member),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    job = get_tenant_job(db, tenant.id, job_id)
    db.delete(job)
    db.commit()
    return None
