"""
Directory Listing Management

The current store's own directory entry. Contact and location details
come from the business profile; the store edits description,
categories and features here, then publishes.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront_api.database import get_db, refresh_directory_views
from storefront_api.models import User, Tenant, BusinessProfile, DirectoryListing
from storefront_api.schemas.directory import ListingResponse, ListingUpdate
from storefront_api.api.deps import get_current_user, get_current_tenant, require_admin, require_member, require_writable_tenant
from storefront_api.api.endpoints.tenants import count_skus
from storefront_api.core.exceptions import InvalidInputError, TierAccessDenied
from storefront_api.core.tiers import tier_has_feature
from storefront_api.utils.logging import get_logger
from storefront_api.utils.text import slugify

logger = get_logger(__name__)

router = APIRouter(prefix="/directory-listing", tags=["directory"])

REQUIRED_FIELDS = ("business_name", "city", "state")


def unique_listing_slug(db: Session, name: str) -> str:
    base = slugify(name) or "store"
    slug = base
    suffix = 2
    while db.query(DirectoryListing.id).filter(DirectoryListing.slug == slug).first():
        slug = f"{base}-{suffix}"
        suffix += 1
    return slug


def copy_profile(listing: DirectoryListing, profile: BusinessProfile) -> None:
    """Contact and location fields always follow the business profile."""
    if profile.business_name:
        listing.business_name = profile.business_name
    listing.address = " ".join(p for p in (profile.address_line1, profile.address_line2) if p) or None
    listing.city = profile.city
    listing.state = profile.state
    listing.zip_code = profile.postal_code
    listing.phone = profile.phone_number
    listing.email = profile.email
    listing.website = profile.website
    listing.latitude = profile.latitude
    listing.longitude = profile.longitude
    listing.logo_url = profile.logo_url
    if profile.hours and not listing.business_hours:
        listing.business_hours = profile.hours
    if profile.description and not listing.description:
        listing.description = profile.description[:500]


def get_or_create_listing(db: Session, tenant: Tenant) -> DirectoryListing:
    listing = db.query(DirectoryListing).filter(DirectoryListing.tenant_id == tenant.id).first()
    if listing:
        return listing

    profile = db.query(BusinessProfile).filter(BusinessProfile.tenant_id == tenant.id).first()
    name = (profile.business_name if profile else None) or tenant.name

    listing = DirectoryListing(
        tenant_id=tenant.id,
        business_name=name,
        slug=unique_listing_slug(db, name),
        subscription_tier=tenant.subscription_tier,
        secondary_categories=[],
        seo_keywords=[],
        features=[],
    )
    if profile:
        copy_profile(listing, profile)

    db.add(listing)
    db.commit()
    db.refresh(listing)

    logger.info(f"Directory listing created: {listing.slug} for tenant {tenant.id}")

    return listing


@router.get("", response_model=ListingResponse)
async def get_directory_listing(
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    return get_or_create_listing(db, tenant)


@router.patch("", response_model=ListingResponse)
async def update_directory_listing(
    listing_data: ListingUpdate,
    current_user: User = Depends(require_member),
    tenant: Tenant = Depends(require_writable_tenant),
    db: Session = Depends(get_db)
):
    listing = get_or_create_listing(db, tenant)

    for field, value in listing_data.model_dump(exclude_unset=True).items():
        setattr(listing, field, value)
    listing.sync_categories()

    db.commit()
    db.refresh(listing)
    refresh_directory_views()

    return listing


@router.post("/publish", response_model=ListingResponse)
async def publish_directory_listing(
    current_user: User = Depends(require_admin),
    tenant: Tenant = Depends(require_writable_tenant),
    db: Session = Depends(get_db)
):
    if not tier_has_feature(tenant.subscription_tier, "directory_listing"):
        raise TierAccessDenied(
            "directory_not_available_for_tier",
            "Directory listings are not included in your plan",
            current_tier=tenant.subscription_tier,
        )

    listing = get_or_create_listing(db, tenant)
    profile = db.query(BusinessProfile).filter(BusinessProfile.tenant_id == tenant.id).first()
    if profile:
        copy_profile(listing, profile)

    missing = [field for field in REQUIRED_FIELDS if not getattr(listing, field)]
    if missing:
        raise InvalidInputError({
            "error": "incomplete_profile",
            "message": "Complete your business profile before publishing",
            "missing_fields": missing,
        })

    listing.subscription_tier = tenant.subscription_tier
    listing.product_count = count_skus(db, tenant.id)
    listing.is_published = True
    listing.sync_categories()

    db.commit()
    db.refresh(listing)
    refresh_directory_views()

    logger.info(f"Directory listing published: {listing.slug} by {current_user.id}")

    return listing


@router.post("/unpublish", response_model=ListingResponse)
async def unpublish_directory_listing(
    current_user: User = Depends(require_admin),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    listing = get_or_create_listing(db, tenant)
    listing.is_published = False
    db.commit()
    db.refresh(listing)
    refresh_directory_views()

    logger.info(f"Directory listing unpublished: {listing.slug} by {current_user.id}")

    return listing
