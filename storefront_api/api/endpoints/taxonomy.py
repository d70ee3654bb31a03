"""
Google Taxonomy Endpoints

Public lookups over the bundled Google product taxonomy.
"""
from fastapi import APIRouter, Query
from typing import Optional

from storefront_api.core import taxonomy
from storefront_api.core.exceptions import InvalidInputError, NotFoundError

router = APIRouter(prefix="/taxonomy", tags=["taxonomy"])


class TaxonomyCategoryNotFoundError(NotFoundError):
    entity = "Google category"


@router.get("/search")
async def search_taxonomy(
    q: Optional[str] = Query(None, max_length=200),
    branch: Optional[str] = Query(None, max_length=500),
    limit: int = Query(100, ge=1, le=1000),
):
    """Search by keyword, or list everything under a branch path."""
    if not q and not branch:
        raise InvalidInputError("Provide q or branch")

    if branch:
        results = taxonomy.search_branch(branch, limit)
    else:
        results = taxonomy.search(q, limit)

    return {
        "query": q,
        "branch": branch,
        "count": len(results),
        "categories": [c.to_dict() for c in results],
    }


@router.get("/browse")
async def browse_taxonomy(parent: Optional[str] = Query(None, max_length=500)):
    children = taxonomy.browse(parent)
    return {
        "parent": parent,
        "count": len(children),
        "categories": [c.to_dict() for c in children],
    }


@router.get("/{category_id}")
async def get_taxonomy_category(category_id: str):
    category = taxonomy.get_category(category_id)
    if not category:
        raise TaxonomyCategoryNotFoundError(category_id)
    return category.to_dict()
