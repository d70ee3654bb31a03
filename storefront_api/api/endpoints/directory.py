"""
Public Directory Endpoints

Search and browse published store listings. No authentication; the
tenant middleware skips this prefix.
"""
from math import ceil, cos, radians
from fastapi import APIRouter, Depends, Query
from sqlalchemy import String, cast, func, or_
from sqlalchemy.orm import Session
from typing import List, Optional

from storefront_api.database import get_db
from storefront_api.models import DirectoryListing, DirectoryListingCategory
from storefront_api.schemas.directory import (
    ListingResponse,
    ListingSearchResponse,
    Pagination,
    DirectoryCategory,
    DirectoryLocation,
)
from storefront_api.core.exceptions import ListingNotFoundError
from storefront_api.services.relevance import find_related_stores, MAX_RELATED
from storefront_api.utils.geo import haversine_km, EARTH_RADIUS_KM
from storefront_api.utils.logging import get_logger
from storefront_api.utils.text import slugify, location_slug

logger = get_logger(__name__)

router = APIRouter(prefix="/directory", tags=["directory"])

SORT_OPTIONS = "^(relevance|rating|newest|name|distance)$"
MAX_LOCATIONS = 100


def _published(db: Session):
    return db.query(DirectoryListing).filter(DirectoryListing.is_published == True)  # noqa: E712


def _order_by(query, sort: str):
    if sort == "rating":
        return query.order_by(DirectoryListing.rating_avg.desc(), DirectoryListing.rating_count.desc())
    if sort == "newest":
        return query.order_by(DirectoryListing.created_at.desc())
    if sort == "name":
        return query.order_by(DirectoryListing.business_name.asc())
    return query.order_by(
        DirectoryListing.is_featured.desc(),
        DirectoryListing.rating_avg.desc(),
        DirectoryListing.product_count.desc()
    )


def _bounding_box(query, lat: float, lng: float, radius_km: float):
    """Coarse lat/lng box; exact distance is checked afterwards."""
    lat_delta = radius_km / EARTH_RADIUS_KM * 57.2958
    lng_delta = lat_delta / max(cos(radians(lat)), 0.01)
    query = query.filter(
        DirectoryListing.latitude.isnot(None),
        DirectoryListing.longitude.isnot(None),
        DirectoryListing.latitude.between(lat - lat_delta, lat + lat_delta)
    )
    if lng_delta >= 180:
        return query

    west, east = lng - lng_delta, lng + lng_delta
    # A box crossing the antimeridian wraps into two longitude ranges
    if west < -180:
        return query.filter(or_(
            DirectoryListing.longitude >= west + 360,
            DirectoryListing.longitude <= east
        ))
    if east > 180:
        return query.filter(or_(
            DirectoryListing.longitude >= west,
            DirectoryListing.longitude <= east - 360
        ))
    return query.filter(DirectoryListing.longitude.between(west, east))


def _to_response(listing: DirectoryListing, distance_km: Optional[float] = None) -> ListingResponse:
    response = ListingResponse.model_validate(listing)
    if distance_km is not None:
        response.distance_km = round(distance_km, 2)
    return response


@router.get("/search", response_model=ListingSearchResponse)
async def search_directory(
    q: Optional[str] = Query(None, max_length=200),
    category: Optional[str] = Query(None, max_length=100),
    city: Optional[str] = Query(None, max_length=100),
    state: Optional[str] = Query(None, max_length=100),
    min_rating: Optional[float] = Query(None, ge=0, le=5),
    features: Optional[str] = Query(None, description="Comma-separated feature names"),
    lat: Optional[float] = Query(None, ge=-90, le=90),
    lng: Optional[float] = Query(None, ge=-180, le=180),
    radius_km: float = Query(25, gt=0, le=500),
    sort: str = Query("relevance", pattern=SORT_OPTIONS),
    page: int = Query(1, ge=1),
    limit: int = Query(24, ge=1, le=100),
    db: Session = Depends(get_db)
):
    query = _published(db)

    if q:
        pattern = f"%{q}%"
        query = query.filter(or_(
            DirectoryListing.business_name.ilike(pattern),
            DirectoryListing.description.ilike(pattern),
            DirectoryListing.primary_category.ilike(pattern),
            DirectoryListing.city.ilike(pattern)
        ))
    if category:
        query = query.join(DirectoryListingCategory).filter(
            DirectoryListingCategory.category_slug == slugify(category)
        ).distinct()
    if city:
        query = query.filter(func.lower(DirectoryListing.city) == city.lower())
    if state:
        query = query.filter(func.lower(DirectoryListing.state) == state.lower())
    if min_rating is not None:
        query = query.filter(DirectoryListing.rating_avg >= min_rating)
    if features:
        for feature in [f.strip() for f in features.split(",") if f.strip()]:
            query = query.filter(cast(DirectoryListing.features, String).ilike(f'%"{feature}"%'))

    offset = (page - 1) * limit
    geo = lat is not None and lng is not None

    if geo:
        # Radius filtering and distance sort happen in Python over the box
        candidates = _order_by(_bounding_box(query, lat, lng, radius_km), sort).all()
        with_distance = [
            (listing, haversine_km(lat, lng, listing.latitude, listing.longitude))
            for listing in candidates
        ]
        with_distance = [(listing, d) for listing, d in with_distance if d <= radius_km]
        if sort == "distance":
            with_distance.sort(key=lambda pair: pair[1])
        total = len(with_distance)
        listings = [_to_response(listing, d) for listing, d in with_distance[offset:offset + limit]]
    else:
        total = query.count()
        rows = _order_by(query, sort).offset(offset).limit(limit).all()
        listings = [_to_response(listing) for listing in rows]

    return ListingSearchResponse(
        listings=listings,
        pagination=Pagination(
            page=page,
            limit=limit,
            total_items=total,
            total_pages=ceil(total / limit) if total else 0,
        ),
    )


@router.get("/categories", response_model=List[DirectoryCategory])
async def list_directory_categories(db: Session = Depends(get_db)):
    rows = db.query(
        DirectoryListingCategory.category_name,
        DirectoryListingCategory.category_slug,
        func.count(func.distinct(DirectoryListingCategory.listing_id)).label("count")
    ).join(DirectoryListing).filter(
        DirectoryListing.is_published == True  # noqa: E712
    ).group_by(
        DirectoryListingCategory.category_name,
        DirectoryListingCategory.category_slug
    ).order_by(func.count(func.distinct(DirectoryListingCategory.listing_id)).desc()).all()

    return [DirectoryCategory(name=name, slug=slug, count=count) for name, slug, count in rows]


@router.get("/locations", response_model=List[DirectoryLocation])
async def list_directory_locations(db: Session = Depends(get_db)):
    rows = db.query(
        DirectoryListing.city,
        DirectoryListing.state,
        func.count(DirectoryListing.id).label("count")
    ).filter(
        DirectoryListing.is_published == True,  # noqa: E712
        DirectoryListing.city.isnot(None),
        DirectoryListing.state.isnot(None)
    ).group_by(
        DirectoryListing.city,
        DirectoryListing.state
    ).order_by(func.count(DirectoryListing.id).desc()).limit(MAX_LOCATIONS).all()

    return [
        DirectoryLocation(city=city, state=state, slug=location_slug(city, state), count=count)
        for city, state, count in rows
    ]


def get_published_listing(db: Session, slug: str) -> DirectoryListing:
    listing = _published(db).filter(DirectoryListing.slug == slug).first()
    if not listing:
        raise ListingNotFoundError(slug)
    return listing


@router.get("/{slug}", response_model=ListingResponse)
async def get_listing(slug: str, db: Session = Depends(get_db)):
    return get_published_listing(db, slug)


@router.get("/{slug}/related")
async def get_related_stores(
    slug: str,
    limit: int = Query(MAX_RELATED, ge=1, le=MAX_RELATED),
    db: Session = Depends(get_db)
):
    listing = get_published_listing(db, slug)
    return find_related_stores(db, listing, limit)
