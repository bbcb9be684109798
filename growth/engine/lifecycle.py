"""
Lead lifecycle state machine.

Score-driven transitions apply only to NEW and SCORING leads. External
events force a status regardless of the current one, except that nothing
ever leaves CONVERTED or LOST.
"""
from dataclasses import dataclass
from enum import Enum


class LeadStatus(str, Enum):
    NEW = 'NEW'
    SCORING = 'SCORING'
    HOT = 'HOT'
    WARM = 'WARM'
    COLD = 'COLD'
    NURTURING = 'NURTURING'
    READY = 'READY'
    CONVERTED = 'CONVERTED'
    LOST = 'LOST'


class LeadEvent(str, Enum):
    POSITIVE_REPLY = 'positive_reply'
    URGENT_REPLY = 'urgent_reply'
    UNSUBSCRIBE = 'unsubscribe'
    CONVERSION = 'conversion'
    READY_SIGNAL = 'ready_signal'
    ESCALATED = 'escalated'
    NURTURE_STARTED = 'nurture_started'
    NURTURE_PAUSED = 'nurture_paused'
    NURTURE_RESUMED = 'nurture_resumed'
    NURTURE_COMPLETED = 'nurture_completed'


TERMINAL_STATUSES = {LeadStatus.CONVERTED, LeadStatus.LOST}

SCORE_DRIVEN_STATUSES = {LeadStatus.NEW, LeadStatus.SCORING}

# Events whose target does not depend on scores
_FORCED_TARGETS = {
    LeadEvent.POSITIVE_REPLY: LeadStatus.HOT,
    LeadEvent.URGENT_REPLY: LeadStatus.HOT,
    LeadEvent.ESCALATED: LeadStatus.HOT,
    LeadEvent.UNSUBSCRIBE: LeadStatus.LOST,
    LeadEvent.CONVERSION: LeadStatus.CONVERTED,
    LeadEvent.READY_SIGNAL: LeadStatus.READY,
    LeadEvent.NURTURE_STARTED: LeadStatus.NURTURING,
    LeadEvent.NURTURE_RESUMED: LeadStatus.NURTURING,
    LeadEvent.NURTURE_PAUSED: LeadStatus.WARM,
}


@dataclass(frozen=True)
class LifecycleConfig:
    hot_quality: int = 70
    hot_urgency: int = 60
    warm_quality: int = 50
    warm_probability: float = 0.4
    cold_quality: int = 30
    cold_age_days: int = 14
    # Leaving a finished nurture sequence
    completed_hot_quality: int = 70


DEFAULT_LIFECYCLE = LifecycleConfig()


def is_terminal(status) -> bool:
    return LeadStatus(status) in TERMINAL_STATUSES


def evaluate_status(status, quality, urgency, probability, age_days,
                    cfg: LifecycleConfig = DEFAULT_LIFECYCLE) -> LeadStatus:
    """Status implied by a fresh score. Leads outside NEW/SCORING keep theirs."""
    current = LeadStatus(status)
    if current not in SCORE_DRIVEN_STATUSES:
        return current

    if quality >= cfg.hot_quality and urgency >= cfg.hot_urgency:
        return LeadStatus.HOT
    if quality >= cfg.warm_quality or probability >= cfg.warm_probability:
        return LeadStatus.WARM
    if quality < cfg.cold_quality and age_days > cfg.cold_age_days:
        return LeadStatus.COLD
    return current


def apply_event(status, event, quality=0, cfg: LifecycleConfig = DEFAULT_LIFECYCLE) -> LeadStatus:
    """Status after an external event. Terminal statuses absorb every event."""
    current = LeadStatus(status)
    event = LeadEvent(event)
    if current in TERMINAL_STATUSES:
        return current

    if event is LeadEvent.NURTURE_COMPLETED:
        return LeadStatus.HOT if quality >= cfg.completed_hot_quality else LeadStatus.WARM
    return _FORCED_TARGETS[event]


def can_set_manually(status, target) -> bool:
    """Manual overrides may move a lead anywhere except out of a terminal status."""
    current = LeadStatus(status)
    target = LeadStatus(target)
    return current not in TERMINAL_STATUSES or current is target
