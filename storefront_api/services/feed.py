"""
Google Merchant feed preparation.

Single pass helpers over a tenant's inventory:

- ``precheck``: which items cannot be pushed because their category is
  missing or not aligned to the Google taxonomy
- ``validate``: per-item errors (blocking) and warnings (advisory)
- ``serialize``: the Merchant Center product shape
- ``coverage``: share of listed items with an aligned category

All of them resolve categories through a CategoryIndex loaded once per
request, so the cost is one categories query plus one items query.
"""
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from storefront_api.core.taxonomy import get_category as get_google_category
from storefront_api.models import InventoryItem, TenantCategory

# Precheck reasons
MISSING_CATEGORY = "missing_category"
UNMAPPED_CATEGORY = "unmapped_category"

# Validation codes
SKU_REQUIRED = "sku_required"
NAME_REQUIRED = "name_required"
PRICE_INVALID = "price_invalid"
CATEGORY_REQUIRED = "category_required"
CATEGORY_UNMAPPED = "category_unmapped"
IMAGE_RECOMMENDED = "image_recommended"
AVAILABILITY_RECOMMENDED = "availability_recommended"
CONDITION_RECOMMENDED = "condition_recommended"
IDENTIFIERS_RECOMMENDED = "identifiers_recommended"

PRECHECK_DEFAULT_LIMIT = 1000
MAX_FEED_ITEMS = 5000


@dataclass
class CategoryIndex:
    """Active tenant categories keyed by id and by slug."""

    by_id: Dict[str, TenantCategory] = field(default_factory=dict)
    by_slug: Dict[str, TenantCategory] = field(default_factory=dict)

    @classmethod
    def from_categories(cls, categories: Iterable[TenantCategory]) -> "CategoryIndex":
        index = cls()
        for category in categories:
            if not category.is_active:
                continue
            index.by_id[category.id] = category
            index.by_slug[category.slug] = category
        return index

    @classmethod
    def load(cls, db: Session, tenant_id: str) -> "CategoryIndex":
        categories = db.query(TenantCategory).filter(
            TenantCategory.tenant_id == tenant_id,
            TenantCategory.is_active == True  # noqa: E712
        ).all()
        return cls.from_categories(categories)

    def resolve(self, item: InventoryItem) -> Optional[TenantCategory]:
        """Explicit directory category first, then the leaf of category_path."""
        if item.directory_category_id:
            category = self.by_id.get(item.directory_category_id)
            if category is not None:
                return category
        slug = item.leaf_category_slug
        if slug:
            return self.by_slug.get(slug)
        return None

    def google_category_id(self, item: InventoryItem) -> Optional[str]:
        category = self.resolve(item)
        return category.google_category_id if category else None


def has_category_reference(item: InventoryItem) -> bool:
    return bool(item.directory_category_id or item.leaf_category_slug)


def precheck(items: List[InventoryItem], index: CategoryIndex) -> dict:
    missing = []
    unmapped = []
    for item in items:
        entry = {"id": item.id, "sku": item.sku, "name": item.name}
        if not has_category_reference(item):
            missing.append({**entry, "reason": MISSING_CATEGORY})
        elif not index.google_category_id(item):
            unmapped.append({
                **entry,
                "category_path": item.category_path or [],
                "reason": UNMAPPED_CATEGORY,
            })

    return {
        "total": len(items),
        "missing_category": missing,
        "unmapped": unmapped,
        "ok": not missing and not unmapped,
    }


def _present(value) -> bool:
    return value is not None and bool(str(value).strip())


def _has_identifiers(item: InventoryItem) -> bool:
    metadata = item.item_metadata or {}
    return _present(item.gtin) or _present(metadata.get("barcode")) or _present(item.brand)


def validate_item(item: InventoryItem, index: CategoryIndex) -> dict:
    errors = []
    warnings = []

    if not _present(item.sku):
        errors.append(SKU_REQUIRED)
    if not _present(item.name):
        errors.append(NAME_REQUIRED)
    if item.price_cents is None or item.price_cents <= 0:
        errors.append(PRICE_INVALID)

    if not has_category_reference(item):
        errors.append(CATEGORY_REQUIRED)
    elif not index.google_category_id(item):
        errors.append(CATEGORY_UNMAPPED)

    if not item.primary_image:
        warnings.append(IMAGE_RECOMMENDED)
    if not item.availability:
        warnings.append(AVAILABILITY_RECOMMENDED)
    if not item.condition:
        warnings.append(CONDITION_RECOMMENDED)
    if not _has_identifiers(item):
        warnings.append(IDENTIFIERS_RECOMMENDED)

    return {"id": item.id, "sku": item.sku, "errors": errors, "warnings": warnings}


def validate(items: List[InventoryItem], index: CategoryIndex) -> dict:
    results = [validate_item(item, index) for item in items]

    error_counts: Dict[str, int] = {}
    warning_counts: Dict[str, int] = {}
    for result in results:
        for code in result["errors"]:
            error_counts[code] = error_counts.get(code, 0) + 1
        for code in result["warnings"]:
            warning_counts[code] = warning_counts.get(code, 0) + 1

    invalid = sum(1 for r in results if r["errors"])
    return {
        "total": len(results),
        "valid": len(results) - invalid,
        "invalid": invalid,
        "error_counts": error_counts,
        "warning_counts": warning_counts,
        # Clean items are omitted to keep large catalogs readable
        "items": [r for r in results if r["errors"] or r["warnings"]],
    }


def serialize_item(item: InventoryItem, index: CategoryIndex, storefront_url: str) -> dict:
    google_id = index.google_category_id(item)
    google_category = get_google_category(google_id)
    return {
        "id": item.id,
        "offer_id": item.sku or item.id,
        "title": item.name,
        "description": item.description,
        "price": item.price,
        "currency": item.currency,
        "availability": item.availability,
        "condition": item.condition,
        "brand": item.brand,
        "gtin": item.gtin,
        "mpn": item.mpn,
        "google_product_category": google_category.full_path if google_category else google_id,
        "google_product_category_id": google_id,
        "category_path": item.category_path or [],
        "directory_category_id": item.directory_category_id,
        "link": f"{storefront_url.rstrip('/')}/products/{item.id}",
        "image_link": item.primary_image,
    }


def serialize(items: List[InventoryItem], index: CategoryIndex, storefront_url: str) -> List[dict]:
    return [serialize_item(item, index, storefront_url) for item in items]


def coverage(items: List[InventoryItem], index: CategoryIndex) -> dict:
    total = len(items)
    mapped = sum(1 for item in items if index.google_category_id(item))
    return {
        "total": total,
        "mapped": mapped,
        "unmapped": total - mapped,
        "coverage": round(mapped / total * 100, 2) if total else 0.0,
    }


def load_tenant_items(
    db: Session,
    tenant_id: str,
    limit: Optional[int] = None,
    active_only: bool = False,
) -> List[InventoryItem]:
    """The whole catalog, oldest first; checks run before anything is listed."""
    query = db.query(InventoryItem).filter(InventoryItem.tenant_id == tenant_id)
    if active_only:
        query = query.filter(InventoryItem.item_status == "active")
    query = query.order_by(InventoryItem.created_at.asc())
    if limit:
        query = query.limit(limit)
    return query.all()


def load_listed_items(db: Session, tenant_id: str) -> List[InventoryItem]:
    """Active, public items: the set that is eligible for the feed."""
    return db.query(InventoryItem).filter(
        InventoryItem.tenant_id == tenant_id,
        InventoryItem.item_status == "active",
        InventoryItem.visibility == "public"
    ).order_by(InventoryItem.created_at.asc()).all()
