"""
Tenant Category Endpoints

Store categories and their alignment to the Google product taxonomy.

RBAC:
- List / get / unmapped: any staff member
- Create / update / delete / align: member or admin
"""
from fastapi import APIRouter, Depends, status, Query
from sqlalchemy import or_
from sqlalchemy.orm import Session
from typing import List, Optional

from storefront_api.database import get_db
from storefront_api.models import User, Tenant, TenantCategory, InventoryItem
from storefront_api.schemas.category import (
    CategoryCreate,
    CategoryUpdate,
    CategoryAlignRequest,
    CategoryResponse,
    CategoryDetailResponse,
    CategoryListResponse,
    CategoryStats,
    GoogleCategoryRef,
)
from storefront_api.api.deps import get_current_user, get_current_tenant, require_member
from storefront_api.core import taxonomy
from storefront_api.core.exceptions import CategoryNotFoundError, ConflictError, InvalidInputError, NotFoundError
from storefront_api.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/categories", tags=["categories"])


class GoogleCategoryNotFoundError(NotFoundError):
    entity = "Google category"


def get_tenant_category(db: Session, tenant_id: str, category_id: str) -> TenantCategory:
    category = db.query(TenantCategory).filter(
        TenantCategory.id == category_id,
        TenantCategory.tenant_id == tenant_id
    ).first()
    if not category:
        raise CategoryNotFoundError(category_id)
    return category


def category_stats(categories: List[TenantCategory]) -> CategoryStats:
    total = len(categories)
    mapped = sum(1 for c in categories if c.is_mapped)
    return CategoryStats(
        total=total,
        mapped=mapped,
        unmapped=total - mapped,
        mapping_coverage=round(mapped / total * 100, 2) if total else 0.0,
    )


def _check_google_category(google_category_id: Optional[str]) -> None:
    if google_category_id and not taxonomy.get_category(google_category_id):
        raise GoogleCategoryNotFoundError(google_category_id)


def _check_slug_free(db: Session, tenant_id: str, slug: str, exclude_id: Optional[str] = None) -> None:
    query = db.query(TenantCategory.id).filter(
        TenantCategory.tenant_id == tenant_id,
        TenantCategory.slug == slug
    )
    if exclude_id:
        query = query.filter(TenantCategory.id != exclude_id)
    if query.first():
        raise ConflictError({"error": "duplicate_slug", "message": f"Category slug already exists: {slug}"})


def _check_parent(db: Session, tenant_id: str, parent_id: Optional[str], category_id: Optional[str] = None) -> None:
    if not parent_id:
        return
    if parent_id == category_id:
        raise InvalidInputError("A category cannot be its own parent")
    ancestor = get_tenant_category(db, tenant_id, parent_id)

    # Walk up from the new parent; meeting the category itself means a loop
    seen = {ancestor.id}
    while category_id and ancestor.parent_id:
        if ancestor.parent_id == category_id:
            raise InvalidInputError("A category cannot be moved under one of its descendants")
        if ancestor.parent_id in seen:
            break
        seen.add(ancestor.parent_id)
        ancestor = db.query(TenantCategory).filter(
            TenantCategory.id == ancestor.parent_id,
            TenantCategory.tenant_id == tenant_id
        ).first()
        if ancestor is None:
            break


@router.get("", response_model=CategoryListResponse)
async def list_categories(
    search: Optional[str] = Query(None, max_length=100),
    mapped: Optional[bool] = Query(None),
    include_inactive: bool = Query(False),
    parent_id: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """
    List categories with mapping stats.

    Stats always cover every active category of the store, independent
    of the filters applied to the list.
    """
    base = db.query(TenantCategory).filter(TenantCategory.tenant_id == tenant.id)
    all_active = base.filter(TenantCategory.is_active == True).all()  # noqa: E712

    query = base if include_inactive else base.filter(TenantCategory.is_active == True)  # noqa: E712
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(TenantCategory.name.ilike(pattern), TenantCategory.slug.ilike(pattern)))
    if mapped is True:
        query = query.filter(TenantCategory.google_category_id.isnot(None))
    elif mapped is False:
        query = query.filter(TenantCategory.google_category_id.is_(None))
    if parent_id:
        query = query.filter(TenantCategory.parent_id == parent_id)

    categories = query.order_by(TenantCategory.sort_order.asc(), TenantCategory.name.asc()).all()

    return CategoryListResponse(categories=categories, stats=category_stats(all_active))


@router.get("/unmapped", response_model=List[CategoryResponse])
async def list_unmapped_categories(
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    return db.query(TenantCategory).filter(
        TenantCategory.tenant_id == tenant.id,
        TenantCategory.is_active == True,  # noqa: E712
        TenantCategory.google_category_id.is_(None)
    ).order_by(TenantCategory.name.asc()).all()


@router.get("/{category_id}", response_model=CategoryDetailResponse)
async def get_category(
    category_id: str,
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    category = get_tenant_category(db, tenant.id, category_id)

    child_count = db.query(TenantCategory).filter(
        TenantCategory.tenant_id == tenant.id,
        TenantCategory.parent_id == category.id
    ).count()
    product_count = db.query(InventoryItem).filter(
        InventoryItem.tenant_id == tenant.id,
        InventoryItem.directory_category_id == category.id
    ).count()

    google = taxonomy.get_category(category.google_category_id)
    detail = CategoryDetailResponse.model_validate(category)
    detail.child_count = child_count
    detail.product_count = product_count
    if google:
        detail.google_category = GoogleCategoryRef(id=google.id, name=google.name, full_path=google.full_path)
    return detail


@router.post("", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
async def create_category(
    category_data: CategoryCreate,
    current_user: User = Depends(require_member),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    _check_slug_free(db, tenant.id, category_data.slug)
    _check_parent(db, tenant.id, category_data.parent_id)
    _check_google_category(category_data.google_category_id)

    category = TenantCategory(tenant_id=tenant.id, **category_data.model_dump())
    db.add(category)
    db.commit()
    db.refresh(category)

    logger.info(f"Category created: {category.slug} for tenant {tenant.id}")

    return category


@router.patch("/{category_id}", response_model=CategoryResponse)
async def update_category(
    category_id: str,
    category_data: CategoryUpdate,
    current_user: User = Depends(require_member),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    category = get_tenant_category(db, tenant.id, category_id)
    update_data = category_data.model_dump(exclude_unset=True)

    if "slug" in update_data:
        _check_slug_free(db, tenant.id, update_data["slug"], exclude_id=category.id)
    if "parent_id" in update_data:
        _check_parent(db, tenant.id, update_data["parent_id"], category.id)
    if "google_category_id" in update_data:
        _check_google_category(update_data["google_category_id"])

    for field, value in update_data.items():
        setattr(category, field, value)

    db.commit()
    db.refresh(category)

    return category


@router.delete("/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_category(
    category_id: str,
    current_user: User = Depends(require_member),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """Soft delete: items keep their reference but it no longer resolves."""
    category = get_tenant_category(db, tenant.id, category_id)
    category.is_active = False
    db.commit()

    logger.info(f"Category deactivated: {category.slug} for tenant {tenant.id}")

    return None


@router.post("/{category_id}/align", response_model=CategoryDetailResponse)
async def align_category(
    category_id: str,
    align_data: CategoryAlignRequest,
    current_user: User = Depends(require_member),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """Map a store category onto a Google taxonomy category."""
    category = get_tenant_category(db, tenant.id, category_id)

    google = taxonomy.get_category(align_data.google_category_id)
    if not google:
        raise GoogleCategoryNotFoundError(align_data.google_category_id)

    category.google_category_id = google.id
    db.commit()
    db.refresh(category)

    logger.info(f"Category {category.slug} aligned to Google {google.id} ({google.full_path})")

    detail = CategoryDetailResponse.model_validate(category)
    detail.google_category = GoogleCategoryRef(id=google.id, name=google.name, full_path=google.full_path)
    return detail
