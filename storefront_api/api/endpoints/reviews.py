"""
Store Review Endpoints

Public: list a store's reviews and its rating summary.
Signed-in users: submit, edit or withdraw their own review, and vote
on whether other reviews were helpful. A store's own staff cannot
review it.
"""
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session, joinedload

from storefront_api.database import get_db, refresh_directory_views
from storefront_api.models import Tenant, User, StoreReview, StoreRatingSummary
from storefront_api.models.review import REVIEW_SORTS
from storefront_api.schemas.review import (
    HelpfulVote,
    RatingSummary,
    ReviewCreate,
    ReviewListResponse,
    ReviewResponse,
    ReviewUpdate,
)
from storefront_api.api.deps import get_reviewer
from storefront_api.core.exceptions import ConflictError, ReviewNotFoundError, TenantNotFoundError
from storefront_api.services.reviews import (
    cast_helpful_vote,
    empty_summary,
    is_verified_purchase,
    refresh_rating_summary,
)
from storefront_api.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["reviews"])

SORT_PATTERN = "^(" + "|".join(REVIEW_SORTS) + ")$"


def _get_store(db: Session, tenant_id: str) -> Tenant:
    tenant = db.query(Tenant).filter(Tenant.id == tenant_id, Tenant.is_active == True).first()  # noqa: E712
    if not tenant:
        raise TenantNotFoundError(tenant_id)
    return tenant


def _own_review(db: Session, tenant_id: str, user: User) -> StoreReview:
    review = db.query(StoreReview).filter(
        StoreReview.tenant_id == tenant_id,
        StoreReview.user_id == user.id
    ).first()
    if not review:
        raise ReviewNotFoundError()
    return review


def _summary(db: Session, tenant_id: str) -> RatingSummary:
    summary = db.query(StoreRatingSummary).filter(StoreRatingSummary.tenant_id == tenant_id).first()
    return RatingSummary(**(summary or empty_summary(tenant_id)).to_dict())


def _order_by(query, sort: str):
    if sort == "rating_high":
        return query.order_by(StoreReview.rating.desc(), StoreReview.created_at.desc())
    if sort == "rating_low":
        return query.order_by(StoreReview.rating.asc(), StoreReview.created_at.desc())
    if sort == "helpful":
        return query.order_by(StoreReview.helpful_count.desc(), StoreReview.created_at.desc())
    return query.order_by(StoreReview.created_at.desc())


def _after_write(db: Session, tenant_id: str) -> None:
    refresh_rating_summary(db, tenant_id)
    db.commit()
    refresh_directory_views()


@router.get("/stores/{tenant_id}/reviews", response_model=ReviewListResponse)
async def list_reviews(
    tenant_id: str,
    sort: str = Query("newest", pattern=SORT_PATTERN),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db)
):
    _get_store(db, tenant_id)

    query = db.query(StoreReview).filter(StoreReview.tenant_id == tenant_id)
    total = query.count()
    reviews = _order_by(query.options(joinedload(StoreReview.user)), sort) \
        .offset((page - 1) * page_size).limit(page_size).all()

    return ReviewListResponse(
        reviews=reviews,
        summary=_summary(db, tenant_id),
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/stores/{tenant_id}/reviews/summary", response_model=RatingSummary)
async def get_rating_summary(tenant_id: str, db: Session = Depends(get_db)):
    _get_store(db, tenant_id)
    return _summary(db, tenant_id)


@router.get("/stores/{tenant_id}/reviews/mine", response_model=ReviewResponse)
async def get_my_review(
    tenant_id: str,
    reviewer: User = Depends(get_reviewer),
    db: Session = Depends(get_db)
):
    return _own_review(db, tenant_id, reviewer)


@router.post("/stores/{tenant_id}/reviews", response_model=ReviewResponse, status_code=status.HTTP_201_CREATED)
async def submit_review(
    tenant_id: str,
    review_data: ReviewCreate,
    reviewer: User = Depends(get_reviewer),
    db: Session = Depends(get_db)
):
    """
    One review per user and store.

    ``verified_purchase`` is set when the reviewer's email has a paid
    order at the store.
    """
    store = _get_store(db, tenant_id)

    if reviewer.tenant_id == store.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"error": "own_store", "message": "Staff cannot review their own store"}
        )

    existing = db.query(StoreReview.id).filter(
        StoreReview.tenant_id == store.id,
        StoreReview.user_id == reviewer.id
    ).first()
    if existing:
        raise ConflictError({"error": "already_reviewed", "message": "You have already reviewed this store",
                             "review_id": existing.id})

    review = StoreReview(
        tenant_id=store.id,
        user_id=reviewer.id,
        verified_purchase=is_verified_purchase(db, store.id, reviewer.email),
        **review_data.model_dump()
    )
    db.add(review)
    _after_write(db, store.id)
    db.refresh(review)

    logger.info(f"Review {review.id} ({review.rating}*) submitted for tenant {store.id}")

    return review


@router.put("/stores/{tenant_id}/reviews", response_model=ReviewResponse)
async def update_review(
    tenant_id: str,
    review_data: ReviewUpdate,
    reviewer: User = Depends(get_reviewer),
    db: Session = Depends(get_db)
):
    review = _own_review(db, tenant_id, reviewer)

    for field, value in review_data.model_dump(exclude_unset=True).items():
        setattr(review, field, value)

    _after_write(db, tenant_id)
    db.refresh(review)
    return review


@router.delete("/stores/{tenant_id}/reviews", status_code=status.HTTP_204_NO_CONTENT)
async def delete_review(
    tenant_id: str,
    reviewer: User = Depends(get_reviewer),
    db: Session = Depends(get_db)
):
    review = _own_review(db, tenant_id, reviewer)
    db.delete(review)
    _after_write(db, tenant_id)

    logger.info(f"Review {review.id} withdrawn from tenant {tenant_id}")

    return None


@router.post("/reviews/{review_id}/helpful")
async def vote_helpful(
    review_id: str,
    vote: HelpfulVote,
    reviewer: User = Depends(get_reviewer),
    db: Session = Depends(get_db)
):
    """Repeat a vote to withdraw it."""
    review = db.query(StoreReview).filter(StoreReview.id == review_id).first()
    if not review:
        raise ReviewNotFoundError(review_id)
    if review.user_id == reviewer.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"error": "own_review", "message": "You cannot vote on your own review"}
        )

    current = cast_helpful_vote(db, review, reviewer.id, vote.is_helpful)
    _after_write(db, review.tenant_id)

    return {"review_id": review.id, "helpful_count": review.helpful_count, "your_vote": current}
