"""
Reputation service — stores review-platform snapshots and reports the
aggregate score.
"""
import logging
import math
from datetime import datetime

from growth.engine.config import load_growth_config
from growth.engine.reputation import summarize
from growth.errors import BadRequestError
from growth.models.reputation_metric import ReputationMetric

logger = logging.getLogger('services.reputation')


def _number(name, value, low, high):
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise BadRequestError(f"{name} must be a number")
    if not math.isfinite(number):
        raise BadRequestError(f"{name} must be a finite number")
    if number < low and high == float("inf"):
        raise BadRequestError(f"{name} must not be negative")
    if not low <= number <= high:
        raise BadRequestError(f"{name} must be between {low:g} and {high:g}")
    return number


def _breakdown(value):
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise BadRequestError("rating_breakdown must be an object of star -> count")
    return {str(star): int(_number(f"rating_breakdown[{star}]", count, 0, float("inf")))
            for star, count in value.items()}


class ReputationService:

    def __init__(self, repo, audit, config=None, clock=datetime.now):
        self.repo = repo
        self.audit = audit
        self.config = config or load_growth_config()
        self.clock = clock

    def record_snapshot(self, platform, rating, review_count, response_rate=0.0,
                        sentiment=None, rating_breakdown=None, has_negative_review=False,
                        captured_at=None) -> dict:
        platform = (platform or '').strip().lower()
        if not platform:
            raise BadRequestError("platform is required")
        rating = _number('rating', rating, 0, 5)
        review_count = int(_number('review_count', review_count, 0, float('inf')))
        response_rate = _number('response_rate', response_rate or 0, 0, 1)
        if sentiment is not None:
            sentiment = _number('sentiment', sentiment, -1, 1)
        breakdown = _breakdown(rating_breakdown)

        with self.repo.transaction():
            metric = self.repo.add(ReputationMetric(
                platform=platform,
                rating=rating,
                review_count=review_count,
                response_rate=response_rate,
                sentiment=sentiment,
                rating_breakdown=breakdown,
                has_negative_review=bool(has_negative_review),
                captured_at=captured_at or self.clock(),
            ))
            self.audit.record('reputation.snapshot_recorded', 'reputation_metric', {
                'platform': platform, 'rating': rating, 'review_count': review_count,
            })
            logger.info("Recorded %s snapshot: %.1f stars, %d reviews", platform, rating, review_count)
            return metric.to_dict()

    def list_snapshots(self, platform=None, limit=100) -> list:
        criteria = [ReputationMetric.platform == platform.lower()] if platform else []
        rows = self.repo.query(
            ReputationMetric, *criteria,
            order_by=(ReputationMetric.captured_at.desc(), ReputationMetric.id.desc()),
            limit=limit,
        )
        return [r.to_dict() for r in rows]

    def get_reputation_score(self) -> dict:
        snapshots = [m.to_snapshot() for m in self.repo.query(ReputationMetric)]
        return summarize(snapshots, self.config.reputation).to_dict()
