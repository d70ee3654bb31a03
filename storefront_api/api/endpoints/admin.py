"""
Platform Admin Endpoints

Cross-tenant dashboards for platform operators, plus the public security
telemetry intake that feeds the alert inbox.

Every /admin route requires a user flagged ``is_platform_admin``.
"""
from datetime import datetime, timedelta
from fastapi import APIRouter, Depends, Request, status, Query
from sqlalchemy import func
from sqlalchemy.orm import Session
from typing import Optional

from storefront_api.database import get_db, refresh_directory_views
from storefront_api.models import User, Tenant, Order, FeedPushJob, SecurityAlert, DirectoryListing
from storefront_api.schemas.engagement import SecurityTelemetry, SecurityAlertResponse, SecurityAlertListResponse
from storefront_api.schemas.tenant import TenantResponse, TierChangeRequest
from storefront_api.api.deps import require_platform_admin
from storefront_api.core.exceptions import AlertNotFoundError, TenantNotFoundError
from storefront_api.core.tiers import TIER_HIERARCHY, SUBSCRIPTION_STATUSES
from storefront_api.utils.logging import get_logger, log_security_event

logger = get_logger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])
telemetry_router = APIRouter(prefix="/security", tags=["security"])

TELEMETRY_TITLES = {
    "rate_limit_exceeded": "Rate limit exceeded",
    "auth_failure": "Authentication failure",
    "suspicious_activity": "Suspicious activity",
    "security_incident": "Security incident",
}


# ============================================================================
# SECURITY ALERTS
# ============================================================================

@router.get("/security/alerts", response_model=SecurityAlertListResponse)
async def list_security_alerts(
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    unread: Optional[bool] = Query(None),
    severity: Optional[str] = Query(None, pattern="^(info|warning|critical)$"),
    admin: User = Depends(require_platform_admin),
    db: Session = Depends(get_db)
):
    query = db.query(SecurityAlert)
    if unread is True:
        query = query.filter(SecurityAlert.read == False)  # noqa: E712
    elif unread is False:
        query = query.filter(SecurityAlert.read == True)  # noqa: E712
    if severity:
        query = query.filter(SecurityAlert.severity == severity)

    total = query.count()
    alerts = query.order_by(SecurityAlert.created_at.desc()).offset((page - 1) * page_size).limit(page_size).all()
    unread_count = db.query(SecurityAlert).filter(SecurityAlert.read == False).count()  # noqa: E712

    return SecurityAlertListResponse(
        alerts=alerts,
        total=total,
        page=page,
        page_size=page_size,
        unread=unread_count,
    )


@router.get("/security/alerts/stats")
async def security_alert_stats(
    admin: User = Depends(require_platform_admin),
    db: Session = Depends(get_db)
):
    since = datetime.utcnow() - timedelta(hours=24)

    by_type = dict(
        db.query(SecurityAlert.type, func.count(SecurityAlert.id)).group_by(SecurityAlert.type).all()
    )
    by_severity = dict(
        db.query(SecurityAlert.severity, func.count(SecurityAlert.id)).group_by(SecurityAlert.severity).all()
    )

    return {
        "total": sum(by_type.values()),
        "unread": db.query(SecurityAlert).filter(SecurityAlert.read == False).count(),  # noqa: E712
        "last_24h": db.query(SecurityAlert).filter(SecurityAlert.created_at >= since).count(),
        "critical": by_severity.get("critical", 0),
        "warning": by_severity.get("warning", 0),
        "by_type": by_type,
    }


@router.post("/security/alerts/{alert_id}/read", response_model=SecurityAlertResponse)
async def mark_alert_read(
    alert_id: str,
    admin: User = Depends(require_platform_admin),
    db: Session = Depends(get_db)
):
    alert = db.query(SecurityAlert).filter(SecurityAlert.id == alert_id).first()
    if not alert:
        raise AlertNotFoundError(alert_id)

    if not alert.read:
        alert.read = True
        alert.read_at = datetime.utcnow()
        db.commit()
        db.refresh(alert)

    return alert


# ============================================================================
# PLATFORM
# ============================================================================

def _counts(db: Session, column, keys) -> dict:
    """Grouped counts with every expected key present."""
    counts = {key: 0 for key in keys}
    counts.update(db.query(column, func.count()).group_by(column).all())
    return counts


@router.get("/platform/stats")
async def platform_stats(
    admin: User = Depends(require_platform_admin),
    db: Session = Depends(get_db)
):
    since = datetime.utcnow() - timedelta(days=30)

    return {
        "tenants": {
            "total": db.query(Tenant).count(),
            "active": db.query(Tenant).filter(Tenant.is_active == True).count(),  # noqa: E712
            "by_tier": _counts(db, Tenant.subscription_tier, TIER_HIERARCHY),
            "by_status": _counts(db, Tenant.subscription_status, SUBSCRIPTION_STATUSES),
        },
        "directory": {
            "published_listings": db.query(DirectoryListing).filter(
                DirectoryListing.is_published == True  # noqa: E712
            ).count(),
        },
        "orders": {
            "total": db.query(Order).count(),
            "last_30_days": db.query(Order).filter(Order.created_at >= since).count(),
            "paid_revenue_cents": db.query(func.coalesce(func.sum(Order.total_cents), 0)).filter(
                Order.payment_status == "paid"
            ).scalar(),
        },
        "feed_jobs": _counts(db, FeedPushJob.job_status, ("queued", "processing", "success", "failed")),
        "generated_at": datetime.utcnow().isoformat(),
    }


@router.patch("/tenants/{tenant_id}/tier", response_model=TenantResponse)
async def change_tenant_tier(
    tenant_id: str,
    tier_data: TierChangeRequest,
    admin: User = Depends(require_platform_admin),
    db: Session = Depends(get_db)
):
    tenant = db.query(Tenant).filter(Tenant.id == tenant_id).first()
    if not tenant:
        raise TenantNotFoundError(tenant_id)

    old_tier = tenant.subscription_tier
    tenant.subscription_tier = tier_data.subscription_tier
    if tier_data.subscription_status:
        tenant.subscription_status = tier_data.subscription_status

    listing = db.query(DirectoryListing).filter(DirectoryListing.tenant_id == tenant.id).first()
    if listing:
        listing.subscription_tier = tenant.subscription_tier

    db.commit()
    db.refresh(tenant)
    refresh_directory_views()

    logger.info(
        f"Tenant {tenant.id} tier {old_tier} -> {tenant.subscription_tier} by platform admin {admin.id}"
        + (f": {tier_data.reason}" if tier_data.reason else ""),
        extra={"tenant_id": tenant.id, "user_id": admin.id}
    )

    return tenant


# ============================================================================
# TELEMETRY
# ============================================================================

@telemetry_router.post("/telemetry", status_code=status.HTTP_201_CREATED)
async def ingest_security_telemetry(
    telemetry: SecurityTelemetry,
    request: Request,
    db: Session = Depends(get_db)
):
    """Client-reported security signal, stored as an unread alert."""
    metadata = dict(telemetry.metadata or {})
    metadata["ip_address"] = request.client.host if request.client else None
    metadata["user_agent"] = request.headers.get("user-agent")

    alert = SecurityAlert(
        user_id=telemetry.user_id,
        tenant_id=telemetry.tenant_id,
        type=telemetry.type,
        severity=telemetry.severity,
        title=TELEMETRY_TITLES.get(telemetry.type, "Security event"),
        message=telemetry.message,
        alert_metadata=metadata,
    )
    db.add(alert)
    db.commit()

    log_security_event(
        telemetry.type,
        {"alert_id": alert.id, "severity": telemetry.severity, "tenant_id": telemetry.tenant_id},
        logger
    )

    return {"received": True, "alert_id": alert.id}
