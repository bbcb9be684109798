"""
Reputation scoring — per-platform review health, a weighted practice-wide
score, risk level, and a trend computed from snapshots taken at different
times.
"""
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence, Tuple


@dataclass(frozen=True)
class ReputationConfig:
    rating_weight: float = 60.0
    review_volume_multiplier: float = 10.0
    review_volume_cap: float = 20.0
    response_rate_weight: float = 10.0
    sentiment_weight: float = 10.0
    platform_weights: Dict[str, float] = field(default_factory=lambda: {
        'google': 0.4,
        'yelp': 0.25,
        'facebook': 0.2,
        'healthgrades': 0.15,
    })
    default_platform_weight: float = 0.1
    high_risk_below: float = 50.0
    medium_risk_below: float = 70.0
    # Snapshots closer together than this are not compared
    trend_min_gap_days: int = 7
    trend_threshold: float = 2.0
    alert_rating_below: float = 3.5


@dataclass(frozen=True)
class PlatformSnapshot:
    platform: str
    rating: float
    review_count: int
    captured_at: datetime
    response_rate: float = 0.0
    # -1 (all negative) .. 1 (all positive); None when unmeasured
    sentiment: Optional[float] = None
    rating_breakdown: Tuple = ()
    has_negative_review: bool = False


@dataclass
class ReputationSummary:
    overall_score: float
    platform_scores: Dict[str, float]
    risk_level: str
    trend: Dict[str, object]
    alerts: List[str]

    def to_dict(self):
        return {
            'overall_score': self.overall_score,
            'platform_scores': self.platform_scores,
            'risk_level': self.risk_level,
            'trend': self.trend,
            'alerts': self.alerts,
        }


DEFAULT_REPUTATION = ReputationConfig()


def platform_score(snapshot: PlatformSnapshot, cfg: ReputationConfig = DEFAULT_REPUTATION) -> float:
    rating = max(0.0, min(5.0, snapshot.rating)) / 5 * cfg.rating_weight
    volume = min(cfg.review_volume_cap,
                 math.log10(max(0, snapshot.review_count) + 1) * cfg.review_volume_multiplier)
    responses = max(0.0, min(1.0, snapshot.response_rate)) * cfg.response_rate_weight
    sentiment = 0.0 if snapshot.sentiment is None else max(-1.0, min(1.0, snapshot.sentiment))
    tone = (sentiment + 1) / 2 * cfg.sentiment_weight
    return round(max(0.0, min(100.0, rating + volume + responses + tone)), 1)


def overall_score(scores: Dict[str, float], cfg: ReputationConfig = DEFAULT_REPUTATION) -> float:
    """Weighted average of per-platform scores, normalized by the weights present."""
    if not scores:
        return 0.0
    weighted = 0.0
    total_weight = 0.0
    for platform, score in scores.items():
        weight = cfg.platform_weights.get(platform, cfg.default_platform_weight)
        weighted += score * weight
        total_weight += weight
    return round(weighted / total_weight, 1)


def risk_level(score: float, cfg: ReputationConfig = DEFAULT_REPUTATION) -> str:
    if score < cfg.high_risk_below:
        return 'high'
    if score < cfg.medium_risk_below:
        return 'medium'
    return 'low'


def compute_trend(current: Optional[float], previous: Optional[float],
                  cfg: ReputationConfig = DEFAULT_REPUTATION) -> Dict[str, object]:
    if current is None or previous is None:
        return {'direction': 'insufficient_data', 'change': None}
    change = round(current - previous, 1)
    if change >= cfg.trend_threshold:
        direction = 'improving'
    elif change <= -cfg.trend_threshold:
        direction = 'declining'
    else:
        direction = 'stable'
    return {'direction': direction, 'change': change}


def group_by_platform(snapshots: Sequence[PlatformSnapshot],
                      cfg: ReputationConfig = DEFAULT_REPUTATION) -> Dict[str, List[PlatformSnapshot]]:
    """Snapshots per platform, newest first; known platforms in weight order."""
    grouped = {}
    for snap in snapshots:
        grouped.setdefault(snap.platform, []).append(snap)

    known = [p for p in cfg.platform_weights if p in grouped]
    others = sorted(p for p in grouped if p not in cfg.platform_weights)
    return {
        p: sorted(grouped[p], key=lambda s: s.captured_at, reverse=True)
        for p in known + others
    }


def _baseline(history: List[PlatformSnapshot], gap: timedelta) -> Optional[PlatformSnapshot]:
    latest = history[0]
    for snap in history[1:]:
        if snap.captured_at <= latest.captured_at - gap:
            return snap
    return None


def summarize(snapshots: Sequence[PlatformSnapshot],
              cfg: ReputationConfig = DEFAULT_REPUTATION) -> ReputationSummary:
    grouped = group_by_platform(snapshots, cfg)
    gap = timedelta(days=cfg.trend_min_gap_days)

    platform_scores = {}
    current_paired = {}
    previous_paired = {}
    alerts = []
    for platform, history in grouped.items():
        latest = history[0]
        platform_scores[platform] = platform_score(latest, cfg)

        baseline = _baseline(history, gap)
        if baseline is not None:
            current_paired[platform] = platform_scores[platform]
            previous_paired[platform] = platform_score(baseline, cfg)

        if latest.has_negative_review:
            alerts.append(f'New negative review on {platform}')
        if latest.rating < cfg.alert_rating_below:
            alerts.append(f'{platform} rating {latest.rating:g} is below {cfg.alert_rating_below:g}')

    overall = overall_score(platform_scores, cfg)
    # Trend compares only platforms that have both an old and a new snapshot
    if current_paired:
        trend = compute_trend(overall_score(current_paired, cfg),
                              overall_score(previous_paired, cfg), cfg)
    else:
        trend = compute_trend(None, None, cfg)

    return ReputationSummary(
        overall_score=overall,
        platform_scores=platform_scores,
        risk_level=risk_level(overall, cfg) if platform_scores else 'unknown',
        trend=trend,
        alerts=alerts,
    )
