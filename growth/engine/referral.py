"""
Referral scoring — behavioral NPS inference, referral propensity, and the
outreach date rule.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Optional, Tuple

from growth.engine.patient import PatientHistory


@dataclass(frozen=True)
class ReferralConfig:
    # NPS inference, applied to a base of nps_base and clamped to [0, 10]
    nps_base: float = 5.0
    # (monthly visit rate, adjustment)
    nps_frequency_tiers: Tuple = ((4.0, 2.0), (2.0, 1.0))
    nps_low_frequency_rate: float = 0.5
    nps_low_frequency_penalty: float = 1.0
    # (consecutive visits, adjustment)
    nps_streak_tiers: Tuple = ((10, 1.5), (5, 1.0))
    # (min rating, adjustment) for good reviews; (max rating, adjustment) for bad ones
    nps_good_review_tiers: Tuple = ((4.5, 2.0), (4.0, 1.0))
    nps_bad_review_tiers: Tuple = ((2.0, -3.0), (3.0, -1.0))
    # (prior referrals, adjustment)
    nps_referral_tiers: Tuple = ((2, 2.0), (1, 1.0))
    nps_high_completion: float = 0.9
    nps_high_completion_bonus: float = 1.0
    nps_low_completion: float = 0.6
    nps_low_completion_penalty: float = 1.5
    nps_outcome_adjustment: float = 1.0

    promoter_min: float = 9.0
    passive_min: float = 7.0

    # Referral score factors
    frequency_points: Tuple = ((4.0, 25), (2.0, 18), (1.0, 12), (0.01, 6))
    review_points: Tuple = ((4.5, 30), (4.0, 22), (3.5, 12))
    tenure_points: Tuple = ((730, 20), (365, 15), (180, 10), (90, 5))
    treatment_success_points: int = 15
    positive_outcome_points: int = 12
    treatment_completed_points: int = 8
    points_per_referral: int = 5
    referral_points_cap: int = 10

    # Outreach window after a visit, and the gap between outreaches
    outreach_window_start_days: int = 1
    outreach_window_end_days: int = 3
    outreach_cooldown_days: int = 14


@dataclass
class ReferralAnalysis:
    patient_id: str
    nps_score: float
    nps_category: str
    referral_score: int
    factors: Dict[str, int]
    optimal_outreach_date: datetime

    def to_dict(self):
        return {
            'patient_id': self.patient_id,
            'nps_score': self.nps_score,
            'nps_category': self.nps_category,
            'referral_score': self.referral_score,
            'factors': self.factors,
            'optimal_outreach_date': self.optimal_outreach_date.isoformat(),
        }


DEFAULT_REFERRAL = ReferralConfig()


def _tier(value, tiers, default=0):
    for threshold, points in tiers:
        if value >= threshold:
            return points
    return default


def infer_nps(history: PatientHistory, now: datetime, cfg: ReferralConfig = DEFAULT_REFERRAL) -> float:
    """NPS proxy on 0–10. A survey answer, when present, wins over inference."""
    if history.survey_nps is not None:
        return round(max(0.0, min(10.0, float(history.survey_nps))), 1)

    score = cfg.nps_base

    rate = history.monthly_visit_rate(now)
    score += _tier(rate, cfg.nps_frequency_tiers)
    if history.visit_count and rate < cfg.nps_low_frequency_rate:
        score -= cfg.nps_low_frequency_penalty

    score += _tier(history.consecutive_visits, cfg.nps_streak_tiers)

    if history.review_count and history.average_review_rating is not None:
        rating = history.average_review_rating
        score += _tier(rating, cfg.nps_good_review_tiers)
        for ceiling, adjustment in cfg.nps_bad_review_tiers:
            if rating <= ceiling:
                score += adjustment
                break

    score += _tier(history.referrals_made, cfg.nps_referral_tiers)

    completion = history.completion_rate()
    if completion is not None:
        if completion >= cfg.nps_high_completion:
            score += cfg.nps_high_completion_bonus
        elif completion < cfg.nps_low_completion:
            score -= cfg.nps_low_completion_penalty

    if history.positive_outcome is True:
        score += cfg.nps_outcome_adjustment
    elif history.positive_outcome is False:
        score -= cfg.nps_outcome_adjustment

    return round(max(0.0, min(10.0, score)), 1)


def nps_category(nps: float, cfg: ReferralConfig = DEFAULT_REFERRAL) -> str:
    if nps >= cfg.promoter_min:
        return 'promoter'
    if nps >= cfg.passive_min:
        return 'passive'
    return 'detractor'


def referral_factors(history: PatientHistory, now: datetime,
                     cfg: ReferralConfig = DEFAULT_REFERRAL) -> Dict[str, int]:
    reviews = 0
    if history.review_count and history.average_review_rating is not None:
        reviews = _tier(history.average_review_rating, cfg.review_points)

    if history.treatment_completed and history.positive_outcome:
        treatment = cfg.treatment_success_points
    elif history.positive_outcome:
        treatment = cfg.positive_outcome_points
    elif history.treatment_completed:
        treatment = cfg.treatment_completed_points
    else:
        treatment = 0

    return {
        'visit_frequency': _tier(history.monthly_visit_rate(now), cfg.frequency_points),
        'positive_reviews': reviews,
        'tenure': _tier(history.tenure_days(now), cfg.tenure_points),
        'treatment_success': treatment,
        'referral_engagement': min(cfg.referral_points_cap,
                                   history.referrals_made * cfg.points_per_referral),
    }


def referral_score(history: PatientHistory, now: datetime,
                   cfg: ReferralConfig = DEFAULT_REFERRAL) -> Tuple[int, Dict[str, int]]:
    factors = referral_factors(history, now, cfg)
    return max(0, min(100, sum(factors.values()))), factors


def optimal_outreach_date(now: datetime, last_visit_at: Optional[datetime] = None,
                          last_outreach_at: Optional[datetime] = None,
                          cfg: ReferralConfig = DEFAULT_REFERRAL) -> datetime:
    """1–3 days after the last visit, never inside the cooldown of the previous outreach."""
    candidate = now
    if last_visit_at:
        window_start = last_visit_at + timedelta(days=cfg.outreach_window_start_days)
        window_end = last_visit_at + timedelta(days=cfg.outreach_window_end_days)
        if now <= window_end:
            candidate = max(window_start, now)

    if last_outreach_at:
        candidate = max(candidate, last_outreach_at + timedelta(days=cfg.outreach_cooldown_days))
    return candidate


def analyze_referral(history: PatientHistory, now: datetime,
                     cfg: ReferralConfig = DEFAULT_REFERRAL) -> ReferralAnalysis:
    nps = infer_nps(history, now, cfg)
    score, factors = referral_score(history, now, cfg)
    return ReferralAnalysis(
        patient_id=history.patient_id,
        nps_score=nps,
        nps_category=nps_category(nps, cfg),
        referral_score=score,
        factors=factors,
        optimal_outreach_date=optimal_outreach_date(
            now, history.last_visit_at, history.last_referral_outreach_at, cfg,
        ),
    )
