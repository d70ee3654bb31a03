"""
Related stores for a directory listing.

Score per candidate (published listings only, current listing excluded):

    category  3  same primary category
              2  one listing's primary is among the other's categories
              1  secondary categories overlap
    location  2  same city and state
              1  same state
    rating    1  average ratings within half a star

Candidates scoring below 1 are dropped. Ties break on rating, then
product count.

The fast path reads the ``directory_category_listings`` materialized
view (built by ``database.create_directory_views``) through the
direct pool. If that query fails (view missing, pool exhausted,
timeout) the same score is computed in Python over the listings table.
"""
from dataclasses import dataclass
from typing import List, Optional, Set

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront_api.database import direct_engine
from storefront_api.models import DirectoryListing, Tenant
from storefront_api.utils.logging import get_logger
from storefront_api.utils.text import slugify

logger = get_logger(__name__)

MAX_RELATED = 6
RELATED_LOCATION_STATUSES = ("active", "inactive", "closed")
# Upper bound on rows pulled into Python on the fallback path
FALLBACK_SCAN_LIMIT = 2000

RELATED_STORES_SQL = text("""
WITH current_categories AS (
    SELECT category_slug, is_primary
    FROM directory_category_listings
    WHERE slug = :slug
),
candidates AS (
    SELECT
        l.tenant_id, l.slug, l.business_name, l.city, l.state, l.logo_url,
        l.primary_category, l.rating_avg, l.rating_count, l.product_count,
        MAX(CASE
            WHEN cc.category_slug IS NULL THEN 0
            WHEN l.is_primary AND cc.is_primary THEN 3
            WHEN l.is_primary OR cc.is_primary THEN 2
            ELSE 1
        END) AS category_score
    FROM directory_category_listings l
    LEFT JOIN current_categories cc ON cc.category_slug = l.category_slug
    WHERE l.slug <> :slug
      AND l.is_published = true
      AND l.location_status IN ('active', 'inactive', 'closed')
    GROUP BY l.tenant_id, l.slug, l.business_name, l.city, l.state, l.logo_url,
             l.primary_category, l.rating_avg, l.rating_count, l.product_count
),
scored AS (
    SELECT
        c.*,
        CASE
            WHEN LOWER(c.city) = LOWER(:city) AND LOWER(c.state) = LOWER(:state) THEN 2
            WHEN LOWER(c.state) = LOWER(:state) THEN 1
            ELSE 0
        END AS location_score,
        CASE WHEN ABS(COALESCE(c.rating_avg, 0) - :rating) < 0.5 THEN 1 ELSE 0 END AS rating_score
    FROM candidates c
)
SELECT *, category_score + location_score + rating_score AS relevance_score
FROM scored
WHERE category_score + location_score + rating_score >= 1
ORDER BY relevance_score DESC, rating_avg DESC NULLS LAST, product_count DESC
LIMIT :limit
""")


@dataclass
class RelatedStore:
    tenant_id: str
    slug: str
    business_name: str
    city: Optional[str]
    state: Optional[str]
    logo_url: Optional[str]
    primary_category: Optional[str]
    rating_avg: float
    rating_count: int
    product_count: int
    category_score: int
    location_score: int
    rating_score: int

    @property
    def relevance_score(self) -> int:
        return self.category_score + self.location_score + self.rating_score

    def to_dict(self) -> dict:
        return {
            "tenant_id": self.tenant_id,
            "slug": self.slug,
            "business_name": self.business_name,
            "city": self.city,
            "state": self.state,
            "logo_url": self.logo_url,
            "primary_category": self.primary_category,
            "rating_avg": self.rating_avg,
            "rating_count": self.rating_count,
            "product_count": self.product_count,
            "relevance_score": self.relevance_score,
            "score_breakdown": {
                "category": self.category_score,
                "location": self.location_score,
                "rating": self.rating_score,
            },
        }


def _secondary_slugs(listing: DirectoryListing) -> Set[str]:
    primary = slugify(listing.primary_category or "")
    return {slugify(name) for name in listing.secondary_categories or [] if name} - {primary, ""}


def category_score(current: DirectoryListing, candidate: DirectoryListing) -> int:
    current_primary = slugify(current.primary_category or "")
    candidate_primary = slugify(candidate.primary_category or "")
    current_secondary = _secondary_slugs(current)
    candidate_secondary = _secondary_slugs(candidate)

    if current_primary and current_primary == candidate_primary:
        return 3
    if candidate_primary and candidate_primary in current_secondary:
        return 2
    if current_primary and current_primary in candidate_secondary:
        return 2
    if current_secondary & candidate_secondary:
        return 1
    return 0


def location_score(current: DirectoryListing, candidate: DirectoryListing) -> int:
    same_state = bool(current.state) and (candidate.state or "").lower() == current.state.lower()
    if not same_state:
        return 0
    same_city = bool(current.city) and (candidate.city or "").lower() == current.city.lower()
    return 2 if same_city else 1


def rating_score(current: DirectoryListing, candidate: DirectoryListing) -> int:
    return 1 if abs((candidate.rating_avg or 0) - (current.rating_avg or 0)) < 0.5 else 0


def score_candidate(current: DirectoryListing, candidate: DirectoryListing) -> RelatedStore:
    return RelatedStore(
        tenant_id=candidate.tenant_id,
        slug=candidate.slug,
        business_name=candidate.business_name,
        city=candidate.city,
        state=candidate.state,
        logo_url=candidate.logo_url,
        primary_category=candidate.primary_category,
        rating_avg=candidate.rating_avg or 0,
        rating_count=candidate.rating_count or 0,
        product_count=candidate.product_count or 0,
        category_score=category_score(current, candidate),
        location_score=location_score(current, candidate),
        rating_score=rating_score(current, candidate),
    )


def rank_related(
    current: DirectoryListing,
    candidates: List[DirectoryListing],
    limit: int = MAX_RELATED,
) -> List[RelatedStore]:
    scored = [
        score_candidate(current, candidate)
        for candidate in candidates
        if candidate.slug != current.slug
    ]
    scored = [s for s in scored if s.relevance_score >= 1]
    scored.sort(key=lambda s: (s.relevance_score, s.rating_avg, s.product_count), reverse=True)
    return scored[:limit]


def _related_from_view(listing: DirectoryListing, limit: int) -> List[RelatedStore]:
    with direct_engine.connect() as conn:
        rows = conn.execute(RELATED_STORES_SQL, {
            "slug": listing.slug,
            "city": listing.city or "",
            "state": listing.state or "",
            "rating": listing.rating_avg or 0,
            "limit": limit,
        }).mappings().all()

    return [
        RelatedStore(
            tenant_id=row["tenant_id"],
            slug=row["slug"],
            business_name=row["business_name"],
            city=row["city"],
            state=row["state"],
            logo_url=row["logo_url"],
            primary_category=row["primary_category"],
            rating_avg=float(row["rating_avg"] or 0),
            rating_count=int(row["rating_count"] or 0),
            product_count=int(row["product_count"] or 0),
            category_score=int(row["category_score"]),
            location_score=int(row["location_score"]),
            rating_score=int(row["rating_score"]),
        )
        for row in rows
    ]


def _related_from_table(db: Session, listing: DirectoryListing, limit: int) -> List[RelatedStore]:
    candidates = db.query(DirectoryListing).join(
        Tenant, Tenant.id == DirectoryListing.tenant_id
    ).filter(
        DirectoryListing.is_published == True,  # noqa: E712
        DirectoryListing.id != listing.id,
        Tenant.location_status.in_(RELATED_LOCATION_STATUSES)
    ).limit(FALLBACK_SCAN_LIMIT).all()
    return rank_related(listing, candidates, limit)


def find_related_stores(db: Session, listing: DirectoryListing, limit: int = MAX_RELATED) -> dict:
    """Related stores for ``listing``; reports which path produced them."""
    limit = max(1, min(limit, MAX_RELATED))
    try:
        related = _related_from_view(listing, limit)
        source = "materialized_view"
    except SQLAlchemyError as e:
        logger.warning(f"Related stores view query failed, using table fallback: {e}")
        related = _related_from_table(db, listing, limit)
        source = "fallback"

    return {
        "listing_slug": listing.slug,
        "related": [r.to_dict() for r in related],
        "count": len(related),
        "source": source,
    }
