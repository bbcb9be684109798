"""
Response & engagement analyzer.

Keyword-based sentiment/urgency classification of inbound replies, the
nurture engagement score, and the decision table that maps a reply or an
engagement event onto a lifecycle event plus escalation.
"""
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from growth.engine.lifecycle import LeadEvent


@dataclass(frozen=True)
class ResponseConfig:
    positive_keywords: Tuple = (
        'yes', 'interested', 'ready', 'book', 'schedule', 'appointment',
        'great', 'thanks', 'perfect', 'love',
    )
    negative_keywords: Tuple = (
        'not interested', 'no', 'unsubscribe', 'stop', 'remove', 'cancel', 'spam',
    )
    urgent_keywords: Tuple = (
        'pain', 'hurt', 'urgent', 'asap', 'soon', 'today', 'tomorrow', 'emergency',
    )

    # Engagement score: points per event and per-kind caps
    open_points: int = 10
    open_cap: int = 30
    click_points: int = 15
    click_cap: int = 40
    reply_points: int = 20
    reply_cap: int = 30
    early_bonus: int = 10
    early_steps: int = 2
    early_threshold: int = 30

    # Urgency bumps applied to the lead after an event
    high_urgency_bump: int = 30
    reply_urgency_bump: int = 25
    click_urgency_bump: int = 15
    # Clicks already recorded before a new click escalates
    click_escalation_threshold: int = 2

    escalation_urgency: Dict[str, int] = field(default_factory=lambda: {
        'high': 100,
        'medium': 75,
        'low': 50,
    })


@dataclass
class ResponseAnalysis:
    sentiment: str
    urgency: str
    positive_matches: List[str] = field(default_factory=list)
    negative_matches: List[str] = field(default_factory=list)
    urgent_matches: List[str] = field(default_factory=list)


@dataclass
class ResponseDecision:
    analysis: ResponseAnalysis
    event: Optional[LeadEvent]
    escalate: bool
    requires_human_follow_up: bool
    suggested_action: str
    urgency_bump: int = 0


@dataclass
class EngagementEffect:
    event: Optional[LeadEvent]
    escalate: bool
    urgency_bump: int = 0


DEFAULT_RESPONSES = ResponseConfig()


def engagement_score(opens, clicks, replies, current_step=None,
                     cfg: ResponseConfig = DEFAULT_RESPONSES) -> int:
    score = (min(cfg.open_cap, opens * cfg.open_points)
             + min(cfg.click_cap, clicks * cfg.click_points)
             + min(cfg.reply_cap, replies * cfg.reply_points))

    if current_step is not None and current_step <= cfg.early_steps and score >= cfg.early_threshold:
        score += cfg.early_bonus

    return min(100, score)


def _pattern(keyword):
    # Whole words, tolerating simple inflections ("booked", "schedules")
    return re.compile(r'\b' + re.escape(keyword) + r'(?:s|d|ed|ing)?\b')


def _match(text, keywords):
    hits = []
    for keyword in keywords:
        pattern = _pattern(keyword)
        if pattern.search(text):
            hits.append(keyword)
            text = pattern.sub(' ', text)
    return hits, text


def analyze_response(text: Optional[str], cfg: ResponseConfig = DEFAULT_RESPONSES) -> ResponseAnalysis:
    if not text or not text.strip():
        return ResponseAnalysis(sentiment='neutral', urgency='medium')

    lowered = text.lower()
    # Negative phrases are consumed first so "not interested" is not also positive
    negative, remaining = _match(lowered, cfg.negative_keywords)
    positive, _ = _match(remaining, cfg.positive_keywords)
    urgent, _ = _match(lowered, cfg.urgent_keywords)

    if len(positive) > len(negative):
        sentiment = 'positive'
    elif len(negative) > len(positive):
        sentiment = 'negative'
    else:
        sentiment = 'neutral'

    if len(urgent) >= 2 or (len(positive) >= 2 and len(urgent) >= 1):
        urgency = 'high'
    elif positive or urgent:
        urgency = 'medium'
    else:
        urgency = 'low'

    return ResponseAnalysis(
        sentiment=sentiment,
        urgency=urgency,
        positive_matches=positive,
        negative_matches=negative,
        urgent_matches=urgent,
    )


def decide_response(response_type: str, content: Optional[str] = None,
                    cfg: ResponseConfig = DEFAULT_RESPONSES) -> ResponseDecision:
    """Decision table for an inbound response. Unsubscribes terminate."""
    if response_type == 'unsubscribe':
        return ResponseDecision(
            analysis=ResponseAnalysis(sentiment='negative', urgency='low'),
            event=LeadEvent.UNSUBSCRIBE,
            escalate=False,
            requires_human_follow_up=False,
            suggested_action='Lead has opted out. Respect their preference.',
        )

    analysis = analyze_response(content, cfg)
    positive = analysis.sentiment == 'positive'
    high = analysis.urgency == 'high'

    if response_type == 'booking_attempt':
        action = 'Lead attempted to book - call immediately to complete booking'
    elif response_type == 'call_request':
        action = 'Lead requested a call - respond within 1 hour'
    elif positive and high:
        action = 'Hot lead with urgent need - call immediately'
    elif positive:
        action = 'Positive response - schedule follow-up call within 24 hours'
    elif analysis.sentiment == 'negative':
        action = 'Address concerns - personalized response needed'
    else:
        action = 'Continue nurture sequence with personalized touch'

    if response_type == 'booking_attempt':
        event = LeadEvent.READY_SIGNAL
    elif response_type == 'call_request':
        event = LeadEvent.ESCALATED
    elif high:
        event = LeadEvent.URGENT_REPLY
    elif positive:
        event = LeadEvent.POSITIVE_REPLY
    else:
        event = None

    return ResponseDecision(
        analysis=analysis,
        event=event,
        escalate=True,
        requires_human_follow_up=(
            high or positive or response_type in ('call_request', 'booking_attempt')
        ),
        suggested_action=action,
        urgency_bump=cfg.high_urgency_bump if high else 0,
    )


def engagement_effect(engagement_type: str, previous_clicks=0,
                      cfg: ResponseConfig = DEFAULT_RESPONSES) -> EngagementEffect:
    if engagement_type == 'email_opened':
        return EngagementEffect(event=None, escalate=False)
    if engagement_type == 'link_clicked':
        if previous_clicks >= cfg.click_escalation_threshold:
            return EngagementEffect(event=LeadEvent.ESCALATED, escalate=True,
                                    urgency_bump=cfg.click_urgency_bump)
        return EngagementEffect(event=None, escalate=False)
    if engagement_type == 'reply':
        return EngagementEffect(event=LeadEvent.POSITIVE_REPLY, escalate=True,
                                urgency_bump=cfg.reply_urgency_bump)
    if engagement_type == 'opt_out':
        return EngagementEffect(event=LeadEvent.UNSUBSCRIBE, escalate=False)
    raise ValueError(f"Unknown engagement type: {engagement_type}")
