"""
Inventory Endpoints

Catalog CRUD for the current store.

RBAC:
- List / get: any staff member
- Create / update / delete: member or admin
Writes are refused while the subscription is read-only, and creation is
capped by the tier's SKU limit.
"""
from fastapi import APIRouter, Depends, status, Query
from sqlalchemy import or_
from sqlalchemy.orm import Session
from typing import Optional

from storefront_api.database import get_db
from storefront_api.models import User, Tenant, InventoryItem, TenantCategory
from storefront_api.schemas.item import ItemCreate, ItemUpdate, ItemResponse, ItemListResponse
from storefront_api.api.deps import get_current_user, get_current_tenant, require_member, require_writable_tenant
from storefront_api.api.endpoints.tenants import count_skus
from storefront_api.core.exceptions import ConflictError, InvalidInputError, ItemNotFoundError, TierAccessDenied
from storefront_api.core.tiers import get_tier, max_skus
from storefront_api.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/items", tags=["inventory"])


def get_tenant_item(db: Session, tenant_id: str, item_id: str) -> InventoryItem:
    item = db.query(InventoryItem).filter(
        InventoryItem.id == item_id,
        InventoryItem.tenant_id == tenant_id
    ).first()
    if not item:
        raise ItemNotFoundError(item_id)
    return item


def _check_category(db: Session, tenant_id: str, category_id: Optional[str]) -> None:
    if not category_id:
        return
    exists = db.query(TenantCategory.id).filter(
        TenantCategory.id == category_id,
        TenantCategory.tenant_id == tenant_id
    ).first()
    if not exists:
        raise InvalidInputError(f"Unknown directory_category_id: {category_id}")


def _sku_taken(db: Session, tenant_id: str, sku: str) -> bool:
    return db.query(InventoryItem.id).filter(
        InventoryItem.tenant_id == tenant_id,
        InventoryItem.sku == sku
    ).first() is not None


def _enforce_sku_limit(db: Session, tenant: Tenant) -> None:
    """Refuse one more non-archived item once the tier's SKU cap is reached."""
    limit = max_skus(tenant.subscription_tier)
    if limit is None:
        return
    current = count_skus(db, tenant.id)
    if current >= limit:
        tier = get_tier(tenant.subscription_tier)
        raise TierAccessDenied(
            "sku_limit_reached",
            f"The {tier.display_name} tier allows {tier.sku_limit_label} SKUs",
            current_count=current,
            limit=limit,
            current_tier=tier.tier,
        )


@router.get("", response_model=ItemListResponse)
async def list_items(
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    item_status: Optional[str] = Query(None, pattern="^(active|inactive|archived)$"),
    visibility: Optional[str] = Query(None, pattern="^(public|private)$"),
    search: Optional[str] = Query(None, max_length=200),
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    query = db.query(InventoryItem).filter(InventoryItem.tenant_id == tenant.id)

    if item_status:
        query = query.filter(InventoryItem.item_status == item_status)
    if visibility:
        query = query.filter(InventoryItem.visibility == visibility)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(InventoryItem.name.ilike(pattern), InventoryItem.sku.ilike(pattern)))

    total = query.count()
    items = query.order_by(InventoryItem.created_at.desc()).offset((page - 1) * page_size).limit(page_size).all()

    return ItemListResponse(items=items, total=total, page=page, page_size=page_size)


@router.get("/{item_id}", response_model=ItemResponse)
async def get_item(
    item_id: str,
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    return get_tenant_item(db, tenant.id, item_id)


@router.post("", response_model=ItemResponse, status_code=status.HTTP_201_CREATED)
async def create_item(
    item_data: ItemCreate,
    current_user: User = Depends(require_member),
    tenant: Tenant = Depends(require_writable_tenant),
    db: Session = Depends(get_db)
):
    if item_data.item_status != "archived":
        _enforce_sku_limit(db, tenant)

    if _sku_taken(db, tenant.id, item_data.sku):
        raise ConflictError(f"SKU already exists: {item_data.sku}")

    _check_category(db, tenant.id, item_data.directory_category_id)

    values = item_data.model_dump(exclude={"metadata"})
    item = InventoryItem(tenant_id=tenant.id, item_metadata=item_data.metadata, **values)

    db.add(item)
    db.commit()
    db.refresh(item)

    logger.info(f"Item created: {item.id} ({item.sku}) by {current_user.id}")

    return item


@router.patch("/{item_id}", response_model=ItemResponse)
async def update_item(
    item_id: str,
    item_data: ItemUpdate,
    current_user: User = Depends(require_member),
    tenant: Tenant = Depends(require_writable_tenant),
    db: Session = Depends(get_db)
):
    item = get_tenant_item(db, tenant.id, item_id)
    update_data = item_data.model_dump(exclude_unset=True)

    if "sku" in update_data and update_data["sku"] != item.sku and _sku_taken(db, tenant.id, update_data["sku"]):
        raise ConflictError(f"SKU already exists: {update_data['sku']}")

    if "directory_category_id" in update_data:
        _check_category(db, tenant.id, update_data["directory_category_id"])

    # Restoring an archived item counts against the SKU cap again
    if item.item_status == "archived" and update_data.get("item_status", "archived") != "archived":
        _enforce_sku_limit(db, tenant)

    if "metadata" in update_data:
        item.item_metadata = update_data.pop("metadata") or {}

    for field, value in update_data.items():
        setattr(item, field, value)

    db.commit()
    db.refresh(item)

    logger.info(f"Item updated: {item.id} by {current_user.id}")

    return item


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_item(
    item_id: str,
    current_user: User = Depends(require_member),
    tenant: Tenant = Depends(require_writable_tenant),
    db: Session = Depends(get_db)
):
    item = get_tenant_item(db, tenant.id, item_id)

    db.delete(item)
    db.commit()

    logger.info(f"Item deleted: {item_id} by {current_user.id}")

    return None
