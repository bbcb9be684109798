"""
Reactivation engine — why did a patient lapse, how likely are they to come
back, and what should the practice offer them.

Lapse-reason inference is a weighted vote: every observed signal adds weight
to one or more candidate reasons, the heaviest reason wins and its share of
the total weight is the confidence.
"""
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

import yaml

from growth.engine.patient import PatientHistory
from growth.engine.timing import DEFAULT_TIMING, OptimalTiming, TimingConfig, optimal_send_time

logger = logging.getLogger('engine.reactivation')

OFFERS_PATH = os.path.join(os.path.dirname(__file__), 'reactivation_offers.yaml')

# Catalog order doubles as the tie-break order
LAPSE_REASONS = (
    'moved_away',
    'insurance_change',
    'financial',
    'scheduling_conflict',
    'treatment_completed',
    'felt_better',
    'dissatisfied',
    'switched_provider',
    'forgot',
    'life_event',
    'health_issue',
)
UNKNOWN_REASON = 'unknown'


class ReactivationStatus(str, Enum):
    IDENTIFIED = 'IDENTIFIED'
    CONTACTED = 'CONTACTED'
    ENGAGED = 'ENGAGED'
    REACTIVATED = 'REACTIVATED'
    DECLINED = 'DECLINED'
    LOST = 'LOST'


CLOSED_STATUSES = {
    ReactivationStatus.REACTIVATED,
    ReactivationStatus.DECLINED,
    ReactivationStatus.LOST,
}

STATUS_TRANSITIONS = {
    ReactivationStatus.IDENTIFIED: {
        ReactivationStatus.CONTACTED,
        ReactivationStatus.REACTIVATED,
        ReactivationStatus.DECLINED,
        ReactivationStatus.LOST,
    },
    ReactivationStatus.CONTACTED: {
        ReactivationStatus.ENGAGED,
        ReactivationStatus.REACTIVATED,
        ReactivationStatus.DECLINED,
        ReactivationStatus.LOST,
    },
    ReactivationStatus.ENGAGED: {
        ReactivationStatus.REACTIVATED,
        ReactivationStatus.DECLINED,
        ReactivationStatus.LOST,
    },
    ReactivationStatus.REACTIVATED: set(),
    ReactivationStatus.DECLINED: set(),
    ReactivationStatus.LOST: set(),
}

# reason -> (approach, channel, message)
APPROACHES = {
    'moved_away': ('farewell_referral', 'EMAIL',
                   'Wish them well and ask for a referral or offer telehealth follow-ups'),
    'insurance_change': ('insurance_update', 'EMAIL',
                         'Offer to verify benefits under their new plan'),
    'financial': ('payment_plan_offer', 'EMAIL',
                  'Present flexible payment options'),
    'scheduling_conflict': ('flexible_scheduling', 'SMS',
                            'Highlight evening and weekend availability'),
    'treatment_completed': ('maintenance_checkup', 'EMAIL',
                            'Invite back for a maintenance check-up'),
    'felt_better': ('wellness_checkin', 'EMAIL',
                    'Check in on progress and explain preventive care'),
    'dissatisfied': ('personal_call', 'PHONE',
                     'Practice manager calls to hear concerns and make it right'),
    'switched_provider': ('win_back_offer', 'EMAIL',
                          'Share what has changed and include a returning-patient offer'),
    'forgot': ('friendly_reminder', 'SMS',
               'Send a friendly reminder with a direct booking link'),
    'life_event': ('gentle_checkin', 'EMAIL',
                   'Send a low-pressure check-in without an offer'),
    'health_issue': ('care_checkin', 'PHONE',
                     'Call to ask about their health and offer a priority visit'),
    UNKNOWN_REASON: ('general_reactivation', 'EMAIL',
                     'Send a general we-miss-you message'),
}

HIGH_VALUE_APPROACH = ('personal_call', 'PHONE',
                       'High-value patient: personal call from their provider')


@dataclass(frozen=True)
class ReactivationConfig:
    # signal -> {reason: weight}
    signal_weights: Dict[str, Dict[str, float]] = field(default_factory=lambda: {
        'address_change': {'moved_away': 6.0},
        'insurance_lapse': {'insurance_change': 4.0, 'financial': 1.0},
        'financial_cancellation': {'financial': 2.0},
        'scheduling_cancellation': {'scheduling_conflict': 2.0},
        'treatment_plan_completed': {'treatment_completed': 3.0, 'felt_better': 2.0},
        'no_show_pattern': {'forgot': 1.5, 'dissatisfied': 1.0},
        'single_no_show': {'forgot': 1.0},
        'very_long_absence': {'switched_provider': 0.5, 'forgot': 0.5},
        'long_absence': {'forgot': 0.5},
        'low_review_rating': {'dissatisfied': 3.0},
    })
    max_counted_cancellations: int = 3
    no_show_pattern_min: int = 2
    long_absence_days: int = 180
    very_long_absence_days: int = 365
    low_review_rating: float = 2.0
    note_weight: float = 2.5
    note_keywords: Dict[str, Tuple] = field(default_factory=lambda: {
        'moved_away': ('moved', 'relocat', 'new city', 'out of state'),
        'insurance_change': ('insurance', 'coverage', 'new plan'),
        'financial': ('afford', 'expensive', 'cost', 'money', 'lost job'),
        'scheduling_conflict': ('busy', 'schedule', 'work hours', 'no time'),
        'felt_better': ('feel better', 'feeling better', 'pain free', 'recovered'),
        'dissatisfied': ('unhappy', 'rude', 'long wait', 'disappointed', 'complain'),
        'switched_provider': ('another chiropractor', 'new provider', 'other doctor', 'switched'),
        'life_event': ('baby', 'pregnan', 'wedding', 'divorce', 'passed away', 'caregiver'),
        'health_issue': ('injury', 'surgery', 'hospital', 'illness'),
    })
    unknown_confidence: float = 0.1

    # Reactivation score
    base_score: int = 50
    lifetime_value_points: Tuple = ((5000, 25), (2500, 20), (1000, 12), (500, 6))
    visit_points: Tuple = ((20, 15), (10, 10), (5, 5))
    # (days lapsed exceeded, penalty)
    recency_penalties: Tuple = ((365, 10), (180, 5))
    reason_modifiers: Dict[str, int] = field(default_factory=lambda: {
        'switched_provider': -10,
        'moved_away': -8,
        'dissatisfied': -7,
        'insurance_change': -3,
        'financial': -3,
        'treatment_completed': -2,
        'felt_better': -2,
        'life_event': 0,
        'unknown': 0,
        'scheduling_conflict': 2,
        'health_issue': 3,
        'forgot': 5,
    })
    points_per_open: int = 2
    points_per_response: int = 5
    engagement_cap: int = 10

    high_value_lifetime_value: float = 2500.0

    # Candidate search defaults
    min_days_lapsed: int = 90
    max_days_lapsed: int = 730


@dataclass(frozen=True)
class Offer:
    id: str
    name: str
    description: str
    reasons: Tuple[str, ...]
    min_days: int
    max_days: int

    def applies_to(self, reason: str, days_lapsed: int) -> bool:
        fits_reason = '*' in self.reasons or reason in self.reasons
        return fits_reason and self.min_days <= days_lapsed <= self.max_days

    def to_dict(self):
        return {'id': self.id, 'name': self.name, 'description': self.description}


@dataclass
class LapseInference:
    reason: str
    confidence: float
    factors: List[str]
    weights: Dict[str, float]


@dataclass
class LapseAnalysis:
    patient_id: str
    days_lapsed: int
    lifetime_value: float
    likely_reason: str
    confidence: float
    factors: List[str]
    reactivation_score: int
    suggested_approach: Dict[str, str]
    suggested_offer: Optional[Offer]
    applicable_offers: List[Offer]
    optimal_timing: OptimalTiming

    def to_dict(self):
        return {
            'patient_id': self.patient_id,
            'days_lapsed': self.days_lapsed,
            'lifetime_value': self.lifetime_value,
            'likely_reason': self.likely_reason,
            'confidence': self.confidence,
            'factors': self.factors,
            'reactivation_score': self.reactivation_score,
            'suggested_approach': self.suggested_approach,
            'suggested_offer': self.suggested_offer.to_dict() if self.suggested_offer else None,
            'applicable_offers': [o.to_dict() for o in self.applicable_offers],
            'optimal_timing': self.optimal_timing.to_dict(),
        }


DEFAULT_REACTIVATION = ReactivationConfig()


def load_offers(path: str = OFFERS_PATH) -> Tuple[Offer, ...]:
    with open(path) as f:
        raw = yaml.safe_load(f)

    offers = []
    for item in raw:
        reasons = tuple(item['reasons'])
        for reason in reasons:
            if reason != '*' and reason != UNKNOWN_REASON and reason not in LAPSE_REASONS:
                raise ValueError(f"Offer {item['id']} names unknown lapse reason: {reason}")
        offers.append(Offer(
            id=item['id'],
            name=item['name'],
            description=item['description'],
            reasons=reasons,
            min_days=int(item['min_days']),
            max_days=int(item['max_days']),
        ))

    logger.info("Loaded %d reactivation offers from %s", len(offers), path)
    return tuple(offers)


def _observed_signals(history: PatientHistory, days_lapsed: int, cfg: ReactivationConfig):
    """Yield (signal, multiplier, evidence) for every signal present."""
    if history.address_changed:
        yield 'address_change', 1, 'Address on file changed since last visit'
    if history.insurance_lapsed:
        yield 'insurance_lapse', 1, 'Insurance coverage lapsed or changed'
    if history.financial_cancellations:
        n = min(history.financial_cancellations, cfg.max_counted_cancellations)
        yield 'financial_cancellation', n, f'{history.financial_cancellations} cancellation(s) citing cost'
    if history.scheduling_cancellations:
        n = min(history.scheduling_cancellations, cfg.max_counted_cancellations)
        yield 'scheduling_cancellation', n, f'{history.scheduling_cancellations} cancellation(s) citing scheduling'
    if history.treatment_completed:
        yield 'treatment_plan_completed', 1, 'Treatment plan was completed'
    if history.no_show_count >= cfg.no_show_pattern_min:
        yield 'no_show_pattern', 1, f'{history.no_show_count} no-shows before lapsing'
    elif history.no_show_count == 1:
        yield 'single_no_show', 1, 'Missed an appointment before lapsing'
    if days_lapsed > cfg.very_long_absence_days:
        yield 'very_long_absence', 1, f'No visit in {days_lapsed} days'
    elif days_lapsed > cfg.long_absence_days:
        yield 'long_absence', 1, f'No visit in {days_lapsed} days'
    if (history.review_count and history.average_review_rating is not None
            and history.average_review_rating <= cfg.low_review_rating):
        yield 'low_review_rating', 1, f'Left a {history.average_review_rating:g}-star review'


def infer_lapse_reason(history: PatientHistory, now: datetime,
                       cfg: ReactivationConfig = DEFAULT_REACTIVATION) -> LapseInference:
    days_lapsed = history.days_since_last_visit(now)
    weights = {reason: 0.0 for reason in LAPSE_REASONS}
    factors = []

    for signal, multiplier, evidence in _observed_signals(history, days_lapsed, cfg):
        for reason, weight in cfg.signal_weights[signal].items():
            weights[reason] += weight * multiplier
        factors.append(evidence)

    notes = (history.notes or '').lower()
    if notes:
        for reason, keywords in cfg.note_keywords.items():
            matched = [k for k in keywords if k in notes]
            if matched:
                weights[reason] += cfg.note_weight
                factors.append(f"Notes mention '{matched[0]}'")

    total = sum(weights.values())
    if total <= 0:
        return LapseInference(
            reason=UNKNOWN_REASON,
            confidence=cfg.unknown_confidence,
            factors=[],
            weights={},
        )

    # max() keeps the first of equal weights, i.e. catalog order
    reason = max(LAPSE_REASONS, key=lambda r: weights[r])
    confidence = max(cfg.unknown_confidence, round(weights[reason] / total, 2))
    return LapseInference(
        reason=reason,
        confidence=confidence,
        factors=factors,
        weights={r: w for r, w in weights.items() if w > 0},
    )


def _tier(value, tiers):
    for threshold, points in tiers:
        if value >= threshold:
            return points
    return 0


def reactivation_score(history: PatientHistory, reason: str, now: datetime,
                       cfg: ReactivationConfig = DEFAULT_REACTIVATION) -> int:
    days_lapsed = history.days_since_last_visit(now)
    score = cfg.base_score
    score += _tier(history.lifetime_value, cfg.lifetime_value_points)
    score += _tier(history.visit_count, cfg.visit_points)

    for days, penalty in cfg.recency_penalties:
        if days_lapsed > days:
            score -= penalty
            break

    # Reasons outside the modifier table are programming errors
    score += cfg.reason_modifiers[reason]
    score += min(cfg.engagement_cap,
                 history.outreach_opened * cfg.points_per_open
                 + history.outreach_responses * cfg.points_per_response)

    return max(0, min(100, score))


def select_approach(reason: str, lifetime_value: float,
                    cfg: ReactivationConfig = DEFAULT_REACTIVATION) -> Dict[str, str]:
    if lifetime_value >= cfg.high_value_lifetime_value:
        approach, channel, message = HIGH_VALUE_APPROACH
    else:
        approach, channel, message = APPROACHES[reason]
    return {'approach': approach, 'channel': channel, 'message': message}


def select_offers(offers: Sequence[Offer], reason: str, days_lapsed: int) -> List[Offer]:
    """Applicable offers, reason-specific ones ahead of catch-all ones."""
    applicable = [o for o in offers if o.applies_to(reason, days_lapsed)]
    return sorted(applicable, key=lambda o: '*' in o.reasons)


def can_transition(current, target) -> bool:
    return ReactivationStatus(target) in STATUS_TRANSITIONS[ReactivationStatus(current)]


class ReactivationEngine:

    def __init__(self, offers: Sequence[Offer],
                 cfg: ReactivationConfig = DEFAULT_REACTIVATION,
                 timing: TimingConfig = DEFAULT_TIMING):
        self.offers = tuple(offers)
        self.cfg = cfg
        self.timing = timing

    def get_offer(self, offer_id: str) -> Optional[Offer]:
        for offer in self.offers:
            if offer.id == offer_id:
                return offer
        return None

    def analyze(self, history: PatientHistory, now: datetime) -> LapseAnalysis:
        inference = infer_lapse_reason(history, now, self.cfg)
        days_lapsed = history.days_since_last_visit(now)
        applicable = select_offers(self.offers, inference.reason, days_lapsed)

        return LapseAnalysis(
            patient_id=history.patient_id,
            days_lapsed=days_lapsed,
            lifetime_value=history.lifetime_value,
            likely_reason=inference.reason,
            confidence=inference.confidence,
            factors=inference.factors,
            reactivation_score=reactivation_score(history, inference.reason, now, self.cfg),
            suggested_approach=select_approach(inference.reason, history.lifetime_value, self.cfg),
            suggested_offer=applicable[0] if applicable else None,
            applicable_offers=applicable,
            optimal_timing=optimal_send_time(
                now, emails_opened=history.outreach_opened, cfg=self.timing,
            ),
        )
