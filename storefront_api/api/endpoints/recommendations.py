"""
Behavior Tracking, Recommendations and Store Analytics

Tracking and recommendations are public (anonymous shoppers send a
session id). Store analytics is a tenant route gated on the
``behavior_analytics`` tier feature.
"""
from datetime import datetime, timedelta
from fastapi import APIRouter, Depends, Request, status, Query
from sqlalchemy import func, or_, and_
from sqlalchemy.orm import Session
from typing import Optional

from storefront_api.database import get_db
from storefront_api.models import User, Tenant, BehaviorEvent
from storefront_api.schemas.engagement import TrackEventRequest
from storefront_api.api.deps import get_current_user, require_tier_feature
from storefront_api.core.exceptions import InvalidInputError
from storefront_api.services import recommendations as recommendation_service
from storefront_api.utils.logging import get_logger
from storefront_api.utils.text import slugify

logger = get_logger(__name__)

router = APIRouter(prefix="/recommendations", tags=["recommendations"])
analytics_router = APIRouter(prefix="/analytics", tags=["analytics"])

TOP_PRODUCTS = 10


@router.post("/track", status_code=status.HTTP_201_CREATED)
async def track_event(
    event_data: TrackEventRequest,
    request: Request,
    db: Session = Depends(get_db)
):
    if not event_data.entity_id:
        raise InvalidInputError({"error": "entity_id_required", "message": "entity_id is required"})

    event = BehaviorEvent(
        **event_data.model_dump(),
        user_agent=request.headers.get("user-agent"),
        ip_address=request.client.host if request.client else None,
    )
    db.add(event)
    db.commit()

    return {"tracked": True, "id": event.id}


@router.get("/stores-like-this/{tenant_id}")
async def stores_like_this(
    tenant_id: str,
    limit: int = Query(3, ge=1, le=20),
    db: Session = Depends(get_db)
):
    return recommendation_service.stores_like_this(db, tenant_id, limit)


@router.get("/popular-in-category/{category_slug}")
async def popular_in_category(
    category_slug: str,
    lat: Optional[float] = Query(None, ge=-90, le=90),
    lng: Optional[float] = Query(None, ge=-180, le=180),
    limit: int = Query(3, ge=1, le=20),
    db: Session = Depends(get_db)
):
    return recommendation_service.popular_in_category(db, slugify(category_slug), lat, lng, limit)


@router.get("/trending")
async def trending_stores(
    days: int = Query(7, ge=1, le=90),
    lat: Optional[float] = Query(None, ge=-90, le=90),
    lng: Optional[float] = Query(None, ge=-180, le=180),
    radius_km: float = Query(50, gt=0, le=500),
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db)
):
    return recommendation_service.trending(db, days, limit, lat, lng, radius_km)


@analytics_router.get("/behavior")
async def behavior_analytics(
    days: int = Query(30, ge=1, le=365),
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(require_tier_feature("behavior_analytics")),
    db: Session = Depends(get_db)
):
    """Views of the store and its products over the last ``days`` days."""
    since = datetime.utcnow() - timedelta(days=days)
    scope = db.query(BehaviorEvent).filter(
        BehaviorEvent.created_at >= since,
        or_(
            BehaviorEvent.tenant_id == tenant.id,
            and_(BehaviorEvent.entity_type == "store", BehaviorEvent.entity_id == tenant.id)
        )
    )

    total = scope.count()
    sessions = scope.with_entities(func.count(func.distinct(BehaviorEvent.session_id))).scalar() or 0

    by_type = dict(
        scope.with_entities(BehaviorEvent.event_type, func.count(BehaviorEvent.id))
        .group_by(BehaviorEvent.event_type).all()
    )

    view_count = func.count(BehaviorEvent.id).label("views")
    top_products = scope.filter(BehaviorEvent.entity_type == "product").with_entities(
        BehaviorEvent.entity_id, func.max(BehaviorEvent.entity_name), view_count
    ).group_by(BehaviorEvent.entity_id).order_by(view_count.desc()).limit(TOP_PRODUCTS).all()

    store_views = scope.filter(
        BehaviorEvent.entity_type == "store",
        BehaviorEvent.entity_id == tenant.id
    ).count()

    return {
        "tenant_id": tenant.id,
        "period_days": days,
        "total_events": total,
        "unique_sessions": sessions,
        "store_views": store_views,
        "events_by_type": by_type,
        "top_products": [
            {"entity_id": entity_id, "name": name, "views": views}
            for entity_id, name, views in top_products
        ],
    }
