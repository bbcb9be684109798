"""
ReputationMetric — immutable dated snapshot of one review platform.
"""
from sqlalchemy import Column, Integer, Float, Text, Boolean, DateTime, JSON, Index
from sqlalchemy.sql import func

from growth.database import Base
from growth.engine.reputation import PlatformSnapshot


class ReputationMetric(Base):
    __tablename__ = 'reputation_metrics'
    __table_args__ = (
        Index('ix_reputation_metrics_org_platform_captured', 'organization_id', 'platform', 'captured_at'),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    organization_id = Column(Text, nullable=False)
    platform = Column(Text, nullable=False)
    rating = Column(Float, nullable=False)
    review_count = Column(Integer, default=0)
    rating_breakdown = Column(JSON, default=dict)    # {"5": 120, "4": 20, ...}
    response_rate = Column(Float, default=0.0)
    sentiment = Column(Float, nullable=True)          # -1..1
    has_negative_review = Column(Boolean, default=False)
    captured_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    def to_snapshot(self) -> PlatformSnapshot:
        return PlatformSnapshot(
            platform=self.platform,
            rating=self.rating,
            review_count=self.review_count or 0,
            captured_at=self.captured_at,
            response_rate=self.response_rate or 0.0,
            sentiment=self.sentiment,
            rating_breakdown=tuple(sorted((self.rating_breakdown or {}).items())),
            has_negative_review=bool(self.has_negative_review),
        )

    def to_dict(self):
        return {
            'id': self.id,
            'platform': self.platform,
            'rating': self.rating,
            'review_count': self.review_count,
            'rating_breakdown': self.rating_breakdown or {},
            'response_rate': self.response_rate,
            'sentiment': self.sentiment,
            'has_negative_review': self.has_negative_review,
            'captured_at': self.captured_at.isoformat(),
        }
