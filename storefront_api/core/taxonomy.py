"""
Google Product Taxonomy

A bundled subset of Google's product taxonomy (id + full path), enough
for category alignment and feed serialization. The full file can be
swapped in by replacing GOOGLE_PRODUCT_TAXONOMY; lookups only rely on
the (id, path) shape.
"""
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

_RAW_TAXONOMY: List[Tuple[str, str]] = [
    ("1", "Animals & Pet Supplies"),
    ("2", "Animals & Pet Supplies > Pet Supplies"),
    ("4", "Animals & Pet Supplies > Pet Supplies > Cat Supplies"),
    ("5", "Animals & Pet Supplies > Pet Supplies > Dog Supplies"),
    ("166", "Apparel & Accessories"),
    ("1604", "Apparel & Accessories > Clothing"),
    ("212", "Apparel & Accessories > Clothing > Shirts & Tops"),
    ("204", "Apparel & Accessories > Clothing > Pants"),
    ("167", "Apparel & Accessories > Clothing Accessories"),
    ("188", "Apparel & Accessories > Jewelry"),
    ("187", "Apparel & Accessories > Shoes"),
    ("8", "Arts & Entertainment"),
    ("5710", "Arts & Entertainment > Hobbies & Creative Arts"),
    ("537", "Baby & Toddler"),
    ("111", "Business & Industrial"),
    ("141", "Cameras & Optics"),
    ("222", "Electronics"),
    ("223", "Electronics > Audio"),
    ("262", "Electronics > Communications"),
    ("267", "Electronics > Communications > Telephony > Mobile Phones"),
    ("278", "Electronics > Computers"),
    ("412", "Food, Beverages & Tobacco"),
    ("413", "Food, Beverages & Tobacco > Beverages"),
    ("499676", "Food, Beverages & Tobacco > Beverages > Alcoholic Beverages"),
    ("1868", "Food, Beverages & Tobacco > Beverages > Coffee"),
    ("422", "Food, Beverages & Tobacco > Food Items"),
    ("1876", "Food, Beverages & Tobacco > Food Items > Bakery"),
    ("428", "Food, Beverages & Tobacco > Food Items > Dairy Products"),
    ("430", "Food, Beverages & Tobacco > Food Items > Fruits & Vegetables"),
    ("436", "Furniture"),
    ("632", "Hardware"),
    ("1167", "Hardware > Tools"),
    ("469", "Health & Beauty"),
    ("491", "Health & Beauty > Health Care"),
    ("2915", "Health & Beauty > Personal Care"),
    ("473", "Health & Beauty > Personal Care > Cosmetics"),
    ("536", "Home & Garden"),
    ("696", "Home & Garden > Decor"),
    ("638", "Home & Garden > Kitchen & Dining"),
    ("689", "Home & Garden > Lawn & Garden"),
    ("5181", "Luggage & Bags"),
    ("783", "Media"),
    ("784", "Media > Books"),
    ("839", "Media > Music & Sound Recordings"),
    ("922", "Office Supplies"),
    ("5605", "Religious & Ceremonial"),
    ("2092", "Software"),
    ("988", "Sporting Goods"),
    ("990", "Sporting Goods > Athletics"),
    ("1011", "Sporting Goods > Outdoor Recreation"),
    ("1239", "Toys & Games"),
    ("3793", "Toys & Games > Games"),
    ("1253", "Toys & Games > Toys"),
    ("888", "Vehicles & Parts"),
]


@dataclass(frozen=True)
class TaxonomyCategory:
    id: str
    path: Tuple[str, ...]

    @property
    def name(self) -> str:
        return self.path[-1]

    @property
    def full_path(self) -> str:
        return " > ".join(self.path)

    @property
    def level(self) -> int:
        return len(self.path)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "path": list(self.path),
            "full_path": self.full_path,
            "level": self.level,
        }


def _split_path(path: str) -> Tuple[str, ...]:
    return tuple(part.strip() for part in path.split(">") if part.strip())


GOOGLE_PRODUCT_TAXONOMY: List[TaxonomyCategory] = [
    TaxonomyCategory(id=category_id, path=_split_path(path))
    for category_id, path in _RAW_TAXONOMY
]

_BY_ID: Dict[str, TaxonomyCategory] = {c.id: c for c in GOOGLE_PRODUCT_TAXONOMY}


def get_category(category_id: Optional[str]) -> Optional[TaxonomyCategory]:
    if not category_id:
        return None
    return _BY_ID.get(str(category_id))


def search(query: str, limit: int = 100) -> List[TaxonomyCategory]:
    """Case-insensitive match on the category name or full path."""
    needle = query.strip().lower()
    results = []
    for category in GOOGLE_PRODUCT_TAXONOMY:
        if needle in category.name.lower() or needle in category.full_path.lower():
            results.append(category)
            if len(results) >= limit:
                break
    return results


def search_branch(branch: str, limit: int = 100) -> List[TaxonomyCategory]:
    """
    Categories under a branch path (the branch itself first).

    Falls back to a keyword match on the last two levels of the branch
    when nothing lives under the exact path.
    """
    branch_path = _split_path(branch)
    prefix = " > ".join(branch_path)
    results = [
        c for c in GOOGLE_PRODUCT_TAXONOMY
        if c.full_path == prefix or c.full_path.startswith(prefix + " > ")
    ][:limit]
    if results:
        results.sort(key=lambda c: c.full_path != prefix)
        return results

    keyword = " ".join(branch_path[-2:]).lower()
    return [c for c in GOOGLE_PRODUCT_TAXONOMY if keyword in c.full_path.lower()][:limit]


def browse(parent: Optional[str] = None) -> List[TaxonomyCategory]:
    """Direct children of ``parent`` (top-level categories when omitted)."""
    if not parent:
        return [c for c in GOOGLE_PRODUCT_TAXONOMY if c.level == 1]
    parent_path = _split_path(parent)
    depth = len(parent_path)
    return [
        c for c in GOOGLE_PRODUCT_TAXONOMY
        if c.level == depth + 1 and c.path[:depth] == parent_path
    ]
