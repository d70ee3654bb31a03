"""
Store Review Models

Shoppers rate a store once (1 to 5 stars) and may edit or withdraw the
review later. StoreRatingSummary is a per-store rollup rebuilt after
every change; directory ranking reads the average and count from it.
"""
from sqlalchemy import Column, String, Boolean, DateTime, Integer, Float, Text, ForeignKey, Index
from sqlalchemy.orm import relationship
from datetime import datetime
from storefront_api.database import Base
import uuid

REVIEW_SORTS = ("newest", "rating_high", "rating_low", "helpful")


class StoreReview(Base):
    __tablename__ = "store_reviews"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    tenant_id = Column(
        String(36),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False
    )

    rating = Column(Integer, nullable=False)
    review_text = Column(Text, nullable=True)
    verified_purchase = Column(Boolean, default=False, nullable=False)
    helpful_count = Column(Integer, default=0, nullable=False)

    location_lat = Column(Float, nullable=True)
    location_lng = Column(Float, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    user = relationship("User")
    votes = relationship("ReviewHelpfulVote", back_populates="review", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_review_tenant_user', 'tenant_id', 'user_id', unique=True),
        Index('idx_review_tenant_created', 'tenant_id', 'created_at'),
    )

    def __repr__(self):
        return f"<StoreReview {self.rating}* (tenant={self.tenant_id})>"

    @property
    def reviewer_name(self):
        return self.user.full_name if self.user else None


class ReviewHelpfulVote(Base):
    __tablename__ = "review_helpful_votes"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    review_id = Column(
        String(36),
        ForeignKey("store_reviews.id", ondelete="CASCADE"),
        nullable=False
    )
    user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False
    )
    is_helpful = Column(Boolean, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    review = relationship("StoreReview", back_populates="votes")

    __table_args__ = (
        Index('idx_vote_review_user', 'review_id', 'user_id', unique=True),
    )


class StoreRatingSummary(Base):
    __tablename__ = "store_rating_summary"

    tenant_id = Column(
        String(36),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        primary_key=True
    )

    rating_avg = Column(Float, default=0, nullable=False)
    rating_count = Column(Integer, default=0, nullable=False)
    rating_1_count = Column(Integer, default=0, nullable=False)
    rating_2_count = Column(Integer, default=0, nullable=False)
    rating_3_count = Column(Integer, default=0, nullable=False)
    rating_4_count = Column(Integer, default=0, nullable=False)
    rating_5_count = Column(Integer, default=0, nullable=False)
    helpful_count_total = Column(Integer, default=0, nullable=False)
    verified_purchase_count = Column(Integer, default=0, nullable=False)
    last_review_at = Column(DateTime, nullable=True)

    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def to_dict(self) -> dict:
        return {
            "tenant_id": self.tenant_id,
            "rating_avg": self.rating_avg or 0,
            "rating_count": self.rating_count or 0,
            "distribution": {
                "1": self.rating_1_count or 0,
                "2": self.rating_2_count or 0,
                "3": self.rating_3_count or 0,
                "4": self.rating_4_count or 0,
                "5": self.rating_5_count or 0,
            },
            "helpful_count_total": self.helpful_count_total or 0,
            "verified_purchase_count": self.verified_purchase_count or 0,
            "last_review_at": self.last_review_at,
        }
