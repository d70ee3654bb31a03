"""
Store review bookkeeping.

The rating rollup is recomputed from the review rows after every write.
The directory listing carries a copy of the average and count for
search sorting.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import func, case
from sqlalchemy.orm import Session

from storefront_api.models import DirectoryListing, Order, ReviewHelpfulVote, StoreRatingSummary, StoreReview
from storefront_api.utils.logging import get_logger

logger = get_logger(__name__)

# Orders in these states count as a completed purchase
PURCHASED_ORDER_STATUSES = ("paid", "processing", "shipped", "delivered")


def is_verified_purchase(db: Session, tenant_id: str, email: str) -> bool:
    """True when ``email`` has a paid order at the store."""
    return db.query(Order.id).filter(
        Order.tenant_id == tenant_id,
        func.lower(Order.customer_email) == email.lower(),
        Order.order_status.in_(PURCHASED_ORDER_STATUSES)
    ).first() is not None


def refresh_rating_summary(db: Session, tenant_id: str) -> StoreRatingSummary:
    """Rebuild the store's rating rollup and copy it onto its listing."""
    # Sessions do not autoflush; pending review writes must be visible
    db.flush()

    def _count_of(stars: int):
        return func.sum(case((StoreReview.rating == stars, 1), else_=0))

    row = db.query(
        func.count(StoreReview.id),
        func.avg(StoreReview.rating),
        _count_of(1),
        _count_of(2),
        _count_of(3),
        _count_of(4),
        _count_of(5),
        func.sum(StoreReview.helpful_count),
        func.sum(case((StoreReview.verified_purchase == True, 1), else_=0)),  # noqa: E712
        func.max(StoreReview.created_at),
    ).filter(StoreReview.tenant_id == tenant_id).one()

    count, average, ones, twos, threes, fours, fives, helpful, verified, last_review_at = row

    summary = db.query(StoreRatingSummary).filter(StoreRatingSummary.tenant_id == tenant_id).first()
    if summary is None:
        summary = StoreRatingSummary(tenant_id=tenant_id)
        db.add(summary)

    summary.rating_count = count or 0
    summary.rating_avg = round(float(average), 2) if average is not None else 0.0
    summary.rating_1_count = ones or 0
    summary.rating_2_count = twos or 0
    summary.rating_3_count = threes or 0
    summary.rating_4_count = fours or 0
    summary.rating_5_count = fives or 0
    summary.helpful_count_total = helpful or 0
    summary.verified_purchase_count = verified or 0
    summary.last_review_at = last_review_at
    summary.updated_at = datetime.utcnow()

    listing = db.query(DirectoryListing).filter(DirectoryListing.tenant_id == tenant_id).first()
    if listing is not None:
        listing.rating_avg = summary.rating_avg
        listing.rating_count = summary.rating_count

    return summary


def empty_summary(tenant_id: str) -> StoreRatingSummary:
    return StoreRatingSummary(
        tenant_id=tenant_id, rating_avg=0.0, rating_count=0,
        rating_1_count=0, rating_2_count=0, rating_3_count=0, rating_4_count=0, rating_5_count=0,
        helpful_count_total=0, verified_purchase_count=0, last_review_at=None,
    )


def cast_helpful_vote(db: Session, review: StoreReview, user_id: str, is_helpful: bool) -> Optional[bool]:
    """
    Record a helpfulness vote and keep ``helpful_count`` in step.

    Repeating the same vote withdraws it. Returns the vote now on record,
    or None once it has been withdrawn.
    """
    vote = db.query(ReviewHelpfulVote).filter(
        ReviewHelpfulVote.review_id == review.id,
        ReviewHelpfulVote.user_id == user_id
    ).first()

    if vote is None:
        db.add(ReviewHelpfulVote(review_id=review.id, user_id=user_id, is_helpful=is_helpful))
        if is_helpful:
            review.helpful_count += 1
        return is_helpful

    if vote.is_helpful == is_helpful:
        db.delete(vote)
        if is_helpful:
            review.helpful_count -= 1
        return None

    vote.is_helpful = is_helpful
    review.helpful_count += 1 if is_helpful else -1
    return is_helpful
