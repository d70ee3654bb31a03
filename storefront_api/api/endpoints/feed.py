"""
Google Merchant Feed Endpoints

Read-only checks over the current store's catalog before a feed push.
"""
from fastapi import APIRouter, Depends, Query, HTTPException, status
from sqlalchemy.orm import Session

from storefront_api.config import get_settings
from storefront_api.database import get_db
from storefront_api.models import User, Tenant
from storefront_api.api.deps import get_current_user, get_current_tenant
from storefront_api.services import feed as feed_service
from storefront_api.utils.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()

router = APIRouter(prefix="/feed", tags=["feed"])


@router.get("/precheck")
async def feed_precheck(
    limit: int = Query(feed_service.PRECHECK_DEFAULT_LIMIT, ge=1, le=feed_service.MAX_FEED_ITEMS),
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """Items that would be rejected for a missing or unaligned category."""
    items = feed_service.load_tenant_items(db, tenant.id, limit)
    index = feed_service.CategoryIndex.load(db, tenant.id)
    return feed_service.precheck(items, index)


@router.get("/validate")
async def feed_validate(
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """Every item in the catalog, whatever its status or visibility."""
    items = feed_service.load_tenant_items(db, tenant.id)
    index = feed_service.CategoryIndex.load(db, tenant.id)
    result = feed_service.validate(items, index)
    logger.debug(f"Feed validation for tenant {tenant.id}: {result['invalid']} of {result['total']} invalid")
    return result


@router.get("/serialize")
async def feed_serialize(
    limit: int = Query(1000, ge=1, le=feed_service.MAX_FEED_ITEMS),
    include_inactive: bool = Query(False),
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """Catalog in Merchant Center shape; active items only unless asked."""
    items = feed_service.load_tenant_items(db, tenant.id, limit, active_only=not include_inactive)

    index = feed_service.CategoryIndex.load(db, tenant.id)
    storefront_url = f"{settings.PUBLIC_WEB_URL.rstrip('/')}/s/{tenant.slug}"
    products = feed_service.serialize(items, index, storefront_url)

    return {"tenant_id": tenant.id, "count": len(products), "products": products}


@router.get("/coverage")
async def feed_coverage(
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """Share of listed items whose category is aligned to Google."""
    if not settings.FEED_COVERAGE_ENABLED:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": "feature_disabled"}
        )

    items = feed_service.load_listed_items(db, tenant.id)
    index = feed_service.CategoryIndex.load(db, tenant.id)
    return {"tenant_id": tenant.id, **feed_service.coverage(items, index)}
