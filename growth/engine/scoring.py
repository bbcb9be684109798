"""
Lead scoring primitives — quality, urgency, conversion probability, intent.

Every function here is pure: identical signals and config give identical
results, and numeric outputs are clamped to their valid range. Unknown
sources fall back to the lowest tier instead of raising.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple


@dataclass(frozen=True)
class ScoringConfig:
    # Quality sub-scores: (threshold, points), highest threshold first
    visit_tiers: Tuple = ((5, 20), (3, 15), (2, 10), (1, 5))
    page_view_tiers: Tuple = ((10, 15), (5, 10), (3, 5))
    time_on_site_tiers: Tuple = ((300, 15), (120, 10), (60, 5))
    form_abandoned_points: int = 10
    # (min opens, min clicks, points)
    email_tiers: Tuple = ((3, 2, 15), (2, 1, 10), (1, 0, 5))
    source_quality: Dict[str, int] = field(default_factory=lambda: {
        'referral': 20,
        'provider_referral': 20,
        'walk_in': 18,
        'google_search': 15,
        'phone_call': 15,
        'google_ads': 12,
        'website': 10,
        'facebook_ads': 10,
        'insurance_directory': 8,
        'social_media': 5,
        'other': 5,
    })
    default_source_quality: int = 5

    # Urgency: (min visits, max age days, points)
    recent_activity_tiers: Tuple = ((3, 3, 30), (2, 7, 20))
    urgency_page_views: int = 5
    urgency_page_view_points: int = 20
    urgency_time_tiers: Tuple = ((300, 20), (120, 10))
    urgency_form_abandoned_points: int = 15
    # (age days exceeded, penalty)
    age_penalties: Tuple = ((14, 20), (7, 10))

    # Conversion probability
    quality_weight: float = 0.5
    urgency_weight: float = 0.2
    source_multipliers: Dict[str, float] = field(default_factory=lambda: {
        'provider_referral': 1.6,
        'referral': 1.5,
        'walk_in': 1.4,
        'phone_call': 1.3,
        'google_search': 1.2,
        'google_ads': 1.1,
        'website': 1.0,
        'facebook_ads': 0.9,
        'insurance_directory': 0.85,
        'social_media': 0.8,
        'other': 0.7,
    })
    default_source_multiplier: float = 0.7
    # (age days exceeded, factor)
    time_decay: Tuple = ((30, 0.5), (14, 0.7), (7, 0.85))
    min_probability: float = 0.01
    max_probability: float = 0.95

    # Intent signal thresholds
    intent_visits: int = 3
    intent_page_views: int = 5
    intent_time_on_site: int = 300
    intent_email_opens: int = 2
    intent_link_clicks: int = 1
    page_intents: Tuple = (
        (('pricing', 'cost'), 'Viewed pricing page - evaluating costs'),
        (('insurance', 'coverage'), 'Viewed insurance page - checking coverage'),
        (('appointment', 'schedule', 'book'), 'Viewed scheduling page - ready to book'),
        (('service', 'treatment'), 'Viewed services page - evaluating treatment options'),
        (('testimonial', 'review'), 'Viewed reviews - seeking social proof'),
    )

    # Recommendation table
    recommend_hot_quality: int = 70
    recommend_hot_urgency: int = 60
    recommend_warm_quality: int = 40
    recommend_warm_probability: float = 0.3
    recommend_aging_days: int = 14

    # Cache + history
    cache_ttl_hours: int = 24
    score_history_limit: int = 30

    # Conversion prediction
    lifetime_value_per_conversion: float = 2500.0
    time_to_convert_tiers: Tuple = (
        (0.7, '1-3 days'),
        (0.5, '1-2 weeks'),
        (0.3, '2-4 weeks'),
    )
    time_to_convert_fallback: str = '4+ weeks or unlikely'


@dataclass(frozen=True)
class LeadSignals:
    """Observable behavior for one lead at one instant."""
    website_visits: int = 0
    page_views: int = 0
    time_on_site: int = 0
    form_abandoned: bool = False
    emails_opened: int = 0
    links_clicked: int = 0
    last_page_viewed: Optional[str] = None
    source: str = 'other'
    age_days: int = 0


@dataclass
class ScoreResult:
    quality: int
    urgency: int
    conversion_probability: float
    factors: Dict[str, int]
    signals: List[str]
    recommendation: str
    suggested_action: str


@dataclass
class ConversionPrediction:
    probability: float
    estimated_time_to_convert: str
    estimated_lifetime_value: float
    confidence: float


DEFAULT_SCORING = ScoringConfig()


def _tier(value, tiers):
    for threshold, points in tiers:
        if value >= threshold:
            return points
    return 0


def _clamp(value, low, high):
    return max(low, min(high, value))


def score_factors(signals: LeadSignals, cfg: ScoringConfig = DEFAULT_SCORING) -> Dict[str, int]:
    """Per-factor quality breakdown. Each factor is independently capped."""
    email = 0
    for min_opens, min_clicks, points in cfg.email_tiers:
        if signals.emails_opened >= min_opens and signals.links_clicked >= min_clicks:
            email = points
            break

    return {
        'website_visits': _tier(signals.website_visits, cfg.visit_tiers),
        'page_views': _tier(signals.page_views, cfg.page_view_tiers),
        'time_on_site': _tier(signals.time_on_site, cfg.time_on_site_tiers),
        'form_interaction': cfg.form_abandoned_points if signals.form_abandoned else 0,
        'email_engagement': email,
        'source_quality': cfg.source_quality.get(signals.source, cfg.default_source_quality),
    }


def quality_score(signals: LeadSignals, cfg: ScoringConfig = DEFAULT_SCORING) -> int:
    return int(_clamp(sum(score_factors(signals, cfg).values()), 0, 100))


def urgency_score(signals: LeadSignals, cfg: ScoringConfig = DEFAULT_SCORING) -> int:
    score = 0

    for min_visits, max_age, points in cfg.recent_activity_tiers:
        if signals.website_visits >= min_visits and signals.age_days <= max_age:
            score += points
            break

    if signals.page_views >= cfg.urgency_page_views:
        score += cfg.urgency_page_view_points

    score += _tier(signals.time_on_site, cfg.urgency_time_tiers)

    if signals.form_abandoned:
        score += cfg.urgency_form_abandoned_points

    for age, penalty in cfg.age_penalties:
        if signals.age_days > age:
            score -= penalty
            break

    return int(_clamp(score, 0, 100))


def conversion_probability(quality: int, urgency: int, source: str, age_days: int,
                           cfg: ScoringConfig = DEFAULT_SCORING) -> float:
    base = (quality / 100) * cfg.quality_weight + (urgency / 100) * cfg.urgency_weight
    probability = base * cfg.source_multipliers.get(source, cfg.default_source_multiplier)

    for age, factor in cfg.time_decay:
        if age_days > age:
            probability *= factor
            break

    return round(_clamp(probability, cfg.min_probability, cfg.max_probability), 4)


def detect_intent_signals(signals: LeadSignals, cfg: ScoringConfig = DEFAULT_SCORING) -> List[str]:
    """Human-readable intent signals, in a fixed order."""
    found = []

    if signals.website_visits >= cfg.intent_visits:
        found.append('Multiple site visits indicate active interest')
    if signals.page_views >= cfg.intent_page_views:
        found.append('Extensive page browsing shows research behavior')
    if signals.time_on_site >= cfg.intent_time_on_site:
        found.append('Long session time indicates serious consideration')
    if signals.form_abandoned:
        found.append('Form started but not completed - high intent with friction')
    if (signals.emails_opened >= cfg.intent_email_opens
            and signals.links_clicked >= cfg.intent_link_clicks):
        found.append('Email engagement shows ongoing interest')

    page = (signals.last_page_viewed or '').lower()
    if page:
        for keywords, message in cfg.page_intents:
            if any(k in page for k in keywords):
                found.append(message)

    return found


def generate_recommendation(quality: int, urgency: int, probability: float, age_days: int,
                            cfg: ScoringConfig = DEFAULT_SCORING) -> Tuple[str, str]:
    """Return (recommendation, suggested action) for a scored lead."""
    hot_q = quality >= cfg.recommend_hot_quality
    hot_u = urgency >= cfg.recommend_hot_urgency

    if hot_q and hot_u:
        return ('HOT LEAD - Immediate personal outreach recommended',
                'Call immediately within 5 minutes')
    if hot_q:
        return ('High-value lead - Personalized follow-up recommended',
                'Send personalized email and schedule call')
    if hot_u:
        return ('Active lead showing urgency - Quick response needed',
                'Respond within 1 hour with appointment offer')
    if quality >= cfg.recommend_warm_quality or probability >= cfg.recommend_warm_probability:
        return ('Warm lead - Continue nurturing',
                'Add to automated nurture sequence')
    if age_days > cfg.recommend_aging_days:
        return ('Aging lead - Consider re-engagement campaign',
                'Send re-engagement email with special offer')
    return ('New lead - Monitor engagement and nurture',
            'Add to awareness nurture sequence')


def score_signals(signals: LeadSignals, cfg: ScoringConfig = DEFAULT_SCORING) -> ScoreResult:
    """Run every primitive over one set of signals."""
    factors = score_factors(signals, cfg)
    quality = int(_clamp(sum(factors.values()), 0, 100))
    urgency = urgency_score(signals, cfg)
    probability = conversion_probability(quality, urgency, signals.source, signals.age_days, cfg)
    recommendation, action = generate_recommendation(
        quality, urgency, probability, signals.age_days, cfg,
    )
    return ScoreResult(
        quality=quality,
        urgency=urgency,
        conversion_probability=probability,
        factors=factors,
        signals=detect_intent_signals(signals, cfg),
        recommendation=recommendation,
        suggested_action=action,
    )


def predict_conversion(probability: float, cfg: ScoringConfig = DEFAULT_SCORING) -> ConversionPrediction:
    estimate = cfg.time_to_convert_fallback
    for threshold, label in cfg.time_to_convert_tiers:
        if probability >= threshold:
            estimate = label
            break

    return ConversionPrediction(
        probability=probability,
        estimated_time_to_convert=estimate,
        estimated_lifetime_value=round(probability * cfg.lifetime_value_per_conversion, 2),
        confidence=0.8 if probability >= 0.5 else 0.6,
    )
