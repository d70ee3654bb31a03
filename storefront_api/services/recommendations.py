"""
Store recommendations built from behavior events and listing data.

Three simple signals:
- stores_like_this: stores viewed in the same sessions as a given store
- popular_in_category: best-rated published stores in a category,
  nearest first when a location is supplied
- trending: most viewed stores over a recent window
"""
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from storefront_api.models import BehaviorEvent, DirectoryListing, DirectoryListingCategory
from storefront_api.utils.geo import haversine_km


def _recommendation(listing: DirectoryListing, score, reason: str, distance_km: Optional[float] = None) -> dict:
    data = {
        "tenant_id": listing.tenant_id,
        "business_name": listing.business_name,
        "slug": listing.slug,
        "city": listing.city,
        "state": listing.state,
        "score": score,
        "reason": reason,
    }
    if distance_km is not None:
        data["distance_km"] = round(distance_km, 2)
    return data


def _response(recommendations: List[dict], algorithm: str) -> dict:
    return {
        "recommendations": recommendations,
        "algorithm": algorithm,
        "generated_at": datetime.utcnow().isoformat(),
    }


def stores_like_this(db: Session, tenant_id: str, limit: int = 3, days: int = 30) -> dict:
    since = datetime.utcnow() - timedelta(days=days)

    sessions = select(BehaviorEvent.session_id).where(
        BehaviorEvent.entity_type == "store",
        BehaviorEvent.entity_id == tenant_id,
        BehaviorEvent.created_at >= since
    ).distinct()

    view_count = func.count(BehaviorEvent.id).label("view_count")
    rows = db.query(BehaviorEvent.entity_id, view_count).filter(
        BehaviorEvent.session_id.in_(sessions),
        BehaviorEvent.entity_type == "store",
        BehaviorEvent.entity_id != tenant_id,
        BehaviorEvent.created_at >= since
    ).group_by(BehaviorEvent.entity_id).order_by(view_count.desc()).limit(limit * 3).all()

    counts = {entity_id: count for entity_id, count in rows}
    if not counts:
        return _response([], "same_sessions")

    listings = db.query(DirectoryListing).filter(
        DirectoryListing.tenant_id.in_(list(counts)),
        DirectoryListing.is_published == True  # noqa: E712
    ).all()
    listings.sort(key=lambda l: counts[l.tenant_id], reverse=True)

    return _response(
        [
            _recommendation(l, counts[l.tenant_id], "Shoppers who viewed this store also viewed")
            for l in listings[:limit]
        ],
        "same_sessions",
    )


def popular_in_category(
    db: Session,
    category_slug: str,
    lat: Optional[float] = None,
    lng: Optional[float] = None,
    limit: int = 3,
) -> dict:
    listings = db.query(DirectoryListing).join(
        DirectoryListingCategory,
        DirectoryListingCategory.listing_id == DirectoryListing.id
    ).filter(
        DirectoryListingCategory.category_slug == category_slug,
        DirectoryListing.is_published == True  # noqa: E712
    ).distinct().all()

    if lat is not None and lng is not None:
        located = [
            (haversine_km(lat, lng, l.latitude, l.longitude), l)
            for l in listings
            if l.latitude is not None and l.longitude is not None
        ]
        located.sort(key=lambda pair: (pair[0], -(pair[1].rating_avg or 0)))
        recommendations = [
            _recommendation(l, l.rating_avg, "Popular in this category near you", distance)
            for distance, l in located[:limit]
        ]
        return _response(recommendations, "popular_in_category_nearby")

    listings.sort(key=lambda l: (l.rating_avg or 0, l.rating_count or 0, l.product_count or 0), reverse=True)
    return _response(
        [_recommendation(l, l.rating_avg, "Popular in this category") for l in listings[:limit]],
        "popular_in_category",
    )


def trending(
    db: Session,
    days: int = 7,
    limit: int = 10,
    lat: Optional[float] = None,
    lng: Optional[float] = None,
    radius_km: float = 50.0,
) -> dict:
    since = datetime.utcnow() - timedelta(days=days)
    view_count = func.count(BehaviorEvent.id).label("view_count")
    rows = db.query(BehaviorEvent.entity_id, view_count).filter(
        BehaviorEvent.entity_type == "store",
        BehaviorEvent.created_at >= since
    ).group_by(BehaviorEvent.entity_id).order_by(view_count.desc()).limit(limit * 5).all()

    counts = {entity_id: count for entity_id, count in rows}
    if not counts:
        return _response([], "trending")

    listings = db.query(DirectoryListing).filter(
        DirectoryListing.tenant_id.in_(list(counts)),
        DirectoryListing.is_published == True  # noqa: E712
    ).all()

    results = []
    for listing in listings:
        distance = None
        if lat is not None and lng is not None:
            if listing.latitude is None or listing.longitude is None:
                continue
            distance = haversine_km(lat, lng, listing.latitude, listing.longitude)
            if distance > radius_km:
                continue
        results.append((counts[listing.tenant_id], listing, distance))

    results.sort(key=lambda r: r[0], reverse=True)
    return _response(
        [_recommendation(l, count, "Trending this week", distance) for count, l, distance in results[:limit]],
        "trending_nearby" if lat is not None and lng is not None else "trending",
    )
