"""
Featured Products and Public Storefront

Tenant routes manage which catalog items are promoted. The public
storefront routes serve a store's featured and listed products by slug.
"""
from datetime import datetime
from fastapi import APIRouter, Depends, status, Query
from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload
from typing import List, Optional

from storefront_api.database import get_db
from storefront_api.models import User, Tenant, InventoryItem, FeaturedProduct
from storefront_api.models.featured_product import FEATURED_TYPES
from storefront_api.schemas.engagement import FeatureRequest, FeatureUpdate, FeaturedProductResponse
from storefront_api.api.deps import get_current_user, require_member, require_tier_feature
from storefront_api.api.endpoints.items import get_tenant_item
from storefront_api.core.exceptions import ConflictError, NotFoundError, TenantNotFoundError
from storefront_api.core.tiers import tier_has_feature
from storefront_api.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/featured-products", tags=["featured"])
storefront_router = APIRouter(prefix="/storefront", tags=["storefront"])

featured_products_enabled = require_tier_feature("featured_products")


class FeaturedProductNotFoundError(NotFoundError):
    entity = "Featured product"


def get_tenant_feature(db: Session, tenant_id: str, feature_id: str) -> FeaturedProduct:
    feature = db.query(FeaturedProduct).filter(
        FeaturedProduct.id == feature_id,
        FeaturedProduct.tenant_id == tenant_id
    ).first()
    if not feature:
        raise FeaturedProductNotFoundError(feature_id)
    return feature


@router.get("", response_model=List[FeaturedProductResponse])
async def list_featured_products(
    featured_type: Optional[str] = Query(None, pattern="^(store_selection|new_arrival|seasonal|sale|staff_pick)$"),
    include_inactive: bool = Query(False),
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(featured_products_enabled),
    db: Session = Depends(get_db)
):
    query = db.query(FeaturedProduct).filter(FeaturedProduct.tenant_id == tenant.id)
    if featured_type:
        query = query.filter(FeaturedProduct.featured_type == featured_type)
    if not include_inactive:
        query = query.filter(FeaturedProduct.is_active == True)  # noqa: E712
    return query.order_by(FeaturedProduct.featured_priority.desc(), FeaturedProduct.featured_at.desc()).all()


@router.get("/stats")
async def featured_product_stats(
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(featured_products_enabled),
    db: Session = Depends(get_db)
):
    now = datetime.utcnow()
    active = db.query(FeaturedProduct).filter(
        FeaturedProduct.tenant_id == tenant.id,
        FeaturedProduct.is_active == True  # noqa: E712
    ).all()

    by_type = {featured_type: 0 for featured_type in FEATURED_TYPES}
    for feature in active:
        if not feature.is_expired(now):
            by_type[feature.featured_type] = by_type.get(feature.featured_type, 0) + 1

    return {
        "total_active": sum(by_type.values()),
        "expired": sum(1 for feature in active if feature.is_expired(now)),
        "by_type": by_type,
    }


@router.post("", response_model=FeaturedProductResponse, status_code=status.HTTP_201_CREATED)
async def feature_product(
    feature_data: FeatureRequest,
    current_user: User = Depends(require_member),
    tenant: Tenant = Depends(featured_products_enabled),
    db: Session = Depends(get_db)
):
    item = get_tenant_item(db, tenant.id, feature_data.inventory_item_id)

    feature = db.query(FeaturedProduct).filter(
        FeaturedProduct.inventory_item_id == item.id,
        FeaturedProduct.featured_type == feature_data.featured_type
    ).first()
    if feature and feature.is_active:
        raise ConflictError(f"Item {item.sku} is already featured as {feature_data.featured_type}")

    if feature is None:
        feature = FeaturedProduct(
            tenant_id=tenant.id,
            inventory_item_id=item.id,
            featured_type=feature_data.featured_type,
        )
        db.add(feature)

    # A previously unfeatured row is reused; the pair is unique
    feature.featured_priority = feature_data.featured_priority
    feature.featured_expires_at = feature_data.featured_expires_at
    feature.auto_unfeature = feature_data.auto_unfeature
    feature.featured_at = datetime.utcnow()
    feature.is_active = True

    db.commit()
    db.refresh(feature)

    logger.info(f"Item {item.sku} featured as {feature.featured_type} for tenant {tenant.id}")

    return feature


@router.patch("/{feature_id}", response_model=FeaturedProductResponse)
async def update_featured_product(
    feature_id: str,
    feature_data: FeatureUpdate,
    current_user: User = Depends(require_member),
    tenant: Tenant = Depends(featured_products_enabled),
    db: Session = Depends(get_db)
):
    feature = get_tenant_feature(db, tenant.id, feature_id)

    for field, value in feature_data.model_dump(exclude_unset=True).items():
        setattr(feature, field, value)

    db.commit()
    db.refresh(feature)

    return feature


@router.delete("/{feature_id}", status_code=status.HTTP_204_NO_CONTENT)
async def unfeature_product(
    feature_id: str,
    current_user: User = Depends(require_member),
    tenant: Tenant = Depends(featured_products_enabled),
    db: Session = Depends(get_db)
):
    feature = get_tenant_feature(db, tenant.id, feature_id)
    feature.is_active = False
    db.commit()
    return None


# ============================================================================
# PUBLIC STOREFRONT
# ============================================================================

def get_storefront_tenant(db: Session, slug: str) -> Tenant:
    tenant = db.query(Tenant).filter(
        Tenant.slug == slug,
        Tenant.is_active == True  # noqa: E712
    ).first()
    if not tenant or not tier_has_feature(tenant.subscription_tier, "storefront"):
        raise TenantNotFoundError(slug)
    return tenant


def _storefront_item(item: InventoryItem) -> dict:
    return {
        "id": item.id,
        "sku": item.sku,
        "name": item.name,
        "description": item.description,
        "price_cents": item.price_cents,
        "currency": item.currency,
        "image_url": item.primary_image,
        "availability": item.availability,
        "brand": item.brand,
    }


@storefront_router.get("/{slug}/featured")
async def storefront_featured(
    slug: str,
    limit_per_type: int = Query(12, ge=1, le=50),
    db: Session = Depends(get_db)
):
    """
    Active featured products grouped by type.

    Expired entries flagged auto_unfeature are deactivated on the way.
    """
    tenant = get_storefront_tenant(db, slug)
    now = datetime.utcnow()

    features = db.query(FeaturedProduct).options(joinedload(FeaturedProduct.item)).filter(
        FeaturedProduct.tenant_id == tenant.id,
        FeaturedProduct.is_active == True  # noqa: E712
    ).order_by(FeaturedProduct.featured_priority.desc(), FeaturedProduct.featured_at.desc()).all()

    expired = [f for f in features if f.is_expired(now)]
    for feature in expired:
        if feature.auto_unfeature:
            feature.is_active = False
    if any(f.auto_unfeature for f in expired):
        db.commit()
        logger.info(f"Auto-unfeatured {sum(1 for f in expired if f.auto_unfeature)} products for {tenant.slug}")

    grouped = {featured_type: [] for featured_type in FEATURED_TYPES}
    for feature in features:
        if feature.is_expired(now) or not feature.item or not feature.item.is_listed:
            continue
        bucket = grouped.setdefault(feature.featured_type, [])
        if len(bucket) < limit_per_type:
            bucket.append({
                **_storefront_item(feature.item),
                "featured_type": feature.featured_type,
                "featured_priority": feature.featured_priority,
                "featured_expires_at": feature.featured_expires_at,
            })

    return {
        "tenant_id": tenant.id,
        "slug": tenant.slug,
        "featured": grouped,
        "total": sum(len(bucket) for bucket in grouped.values()),
    }


@storefront_router.get("/{slug}/products")
async def storefront_products(
    slug: str,
    search: Optional[str] = Query(None, max_length=200),
    category: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(24, ge=1, le=100),
    db: Session = Depends(get_db)
):
    tenant = get_storefront_tenant(db, slug)

    query = db.query(InventoryItem).filter(
        InventoryItem.tenant_id == tenant.id,
        InventoryItem.item_status == "active",
        InventoryItem.visibility == "public"
    )
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(InventoryItem.name.ilike(pattern), InventoryItem.description.ilike(pattern)))
    if category:
        query = query.filter(InventoryItem.directory_category_id == category)

    total = query.with_entities(func.count(InventoryItem.id)).scalar()
    items = query.order_by(InventoryItem.name.asc()).offset((page - 1) * limit).limit(limit).all()

    return {
        "tenant_id": tenant.id,
        "products": [_storefront_item(item) for item in items],
        "total": total,
        "page": page,
        "limit": limit,
    }
