"""
Current Tenant Endpoints

Store account, subscription tier/limits and the business profile.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront_api.database import get_db
from storefront_api.models import User, Tenant, BusinessProfile, InventoryItem
from storefront_api.schemas.tenant import (
    TenantResponse,
    TierResponse,
    TierLimits,
    TierUsage,
    BusinessProfileResponse,
    BusinessProfileUpdate,
)
from storefront_api.api.deps import get_current_user, get_current_tenant, require_admin
from storefront_api.core.tiers import get_tier, is_tenant_frozen, max_skus
from storefront_api.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/tenant", tags=["tenant"])


def count_skus(db: Session, tenant_id: str) -> int:
    """Archived items do not count against the SKU limit."""
    return db.query(InventoryItem).filter(
        InventoryItem.tenant_id == tenant_id,
        InventoryItem.item_status != "archived"
    ).count()


def build_usage(db: Session, tenant: Tenant) -> TierUsage:
    sku_count = count_skus(db, tenant.id)
    limit = max_skus(tenant.subscription_tier)
    return TierUsage(
        sku_count=sku_count,
        sku_limit=limit,
        sku_percent=round(sku_count / limit * 100, 1) if limit else None,
        at_sku_limit=limit is not None and sku_count >= limit,
    )


@router.get("", response_model=TenantResponse)
async def get_tenant(
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
):
    return tenant


@router.get("/tier", response_model=TierResponse)
async def get_tenant_tier(
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    tier = get_tier(tenant.subscription_tier)
    return TierResponse(
        tenant_id=tenant.id,
        tier=tier.tier,
        display_name=tier.display_name,
        monthly_price=tier.monthly_price,
        subscription_status=tenant.subscription_status,
        is_trial=tenant.is_trial,
        is_frozen=is_tenant_frozen(tenant),
        trial_ends_at=tenant.trial_ends_at,
        limits=TierLimits(
            max_skus=tier.max_skus,
            max_locations=tier.max_locations,
            rate_limit_per_minute=tier.rate_limit_per_minute,
        ),
        features=sorted(tier.features),
        usage=build_usage(db, tenant),
    )


@router.get("/usage", response_model=TierUsage)
async def get_tenant_usage(
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    return build_usage(db, tenant)


def _get_or_create_profile(db: Session, tenant: Tenant) -> BusinessProfile:
    profile = db.query(BusinessProfile).filter(BusinessProfile.tenant_id == tenant.id).first()
    if profile is None:
        profile = BusinessProfile(tenant_id=tenant.id, business_name=tenant.name)
        db.add(profile)
        db.commit()
        db.refresh(profile)
    return profile


@router.get("/profile", response_model=BusinessProfileResponse)
async def get_business_profile(
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    return _get_or_create_profile(db, tenant)


@router.put("/profile", response_model=BusinessProfileResponse)
async def update_business_profile(
    profile_data: BusinessProfileUpdate,
    current_user: User = Depends(require_admin),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    profile = _get_or_create_profile(db, tenant)

    for field, value in profile_data.model_dump(exclude_unset=True).items():
        setattr(profile, field, value)

    db.commit()
    db.refresh(profile)

    logger.info(f"Business profile updated for tenant {tenant.id} by {current_user.id}")

    return profile
