"""
Lead service — scoring, capture, status changes, routing, and lead analytics.

Each public method runs in one repository transaction. Scoring is cached on
the lead for cache_ttl_hours; a cache hit still re-evaluates the lifecycle
status from the cached scores.
"""
import logging
from datetime import datetime, timedelta

from sqlalchemy import and_, or_

from growth.config import LEAD_SOURCES, URGENCY_LEVELS
from growth.engine.assignment import best_match, rank_staff
from growth.engine.config import load_growth_config
from growth.engine.lifecycle import (
    LeadEvent, LeadStatus, TERMINAL_STATUSES,
    apply_event, can_set_manually, evaluate_status, is_terminal,
)
from growth.engine.scoring import (
    LeadSignals, generate_recommendation, predict_conversion, score_signals,
)
from growth.errors import BadRequestError, ConflictError, NotFoundError
from growth.models.lead import Lead, LeadActivity

logger = logging.getLogger('services.leads')

_TERMINAL = [s.value for s in TERMINAL_STATUSES]

CONTACT_FIELDS = ('first_name', 'last_name', 'email', 'phone', 'notes')
COUNTER_FIELDS = ('website_visits', 'page_views', 'time_on_site')


def _clean_email(value):
    value = (value or '').strip().lower()
    return value or None


def _clean_phone(value):
    value = (value or '').strip()
    return value or None


def _non_negative_int(name, value):
    try:
        number = int(value or 0)
    except (TypeError, ValueError):
        raise BadRequestError(f"{name} must be an integer")
    if number < 0:
        raise BadRequestError(f"{name} must not be negative")
    return number


class LeadService:

    def __init__(self, repo, audit, staff_directory, config=None, clock=datetime.now):
        self.repo = repo
        self.audit = audit
        self.staff = staff_directory
        self.config = config or load_growth_config()
        self.clock = clock

    # ── Helpers ──────────────────────────────────────────────────────────────

    def get_lead(self, lead_id) -> Lead:
        lead = self.repo.find(Lead, lead_id)
        if lead is None:
            raise NotFoundError(f"Lead {lead_id} not found")
        return lead

    @staticmethod
    def age_days(lead, now):
        if not lead.created_at:
            return 0
        return max(0, (now - lead.created_at).days)

    def signals_for(self, lead, now) -> LeadSignals:
        return LeadSignals(
            website_visits=lead.website_visits or 0,
            page_views=lead.page_views or 0,
            time_on_site=lead.time_on_site or 0,
            form_abandoned=bool(lead.form_abandoned),
            emails_opened=lead.emails_opened or 0,
            links_clicked=lead.links_clicked or 0,
            last_page_viewed=lead.last_page_viewed,
            source=lead.source,
            age_days=self.age_days(lead, now),
        )

    def log_activity(self, lead, activity_type, description='', **details):
        self.repo.add(LeadActivity(
            lead_id=lead.id,
            activity_type=activity_type,
            description=description,
            details=details,
        ))

    def set_status(self, lead, status, reason):
        status = LeadStatus(status)
        previous = lead.status
        if previous == status.value:
            return False
        lead.status = status.value
        self.log_activity(lead, 'status_change', f'{previous} -> {status.value}',
                          previous=previous, status=status.value, reason=reason)
        self.audit.record('lead.status_changed', 'lead', {
            'lead_id': lead.id, 'from': previous, 'to': status.value, 'reason': reason,
        })
        logger.info("Lead %s status %s -> %s (%s)", lead.id, previous, status.value, reason)
        return True

    def apply(self, lead, event, reason):
        """Apply a forced lifecycle event; terminal leads stay put."""
        target = apply_event(lead.status, event, lead.quality_score or 0, self.config.lifecycle)
        return self.set_status(lead, target, reason)

    def priority_rank(self, lead) -> int:
        quality = lead.quality_score or 0
        probability = lead.conversion_probability or 0.0
        ahead = self.repo.count(
            Lead,
            Lead.id != lead.id,
            Lead.status.notin_(_TERMINAL),
            or_(
                Lead.quality_score > quality,
                and_(Lead.quality_score == quality, Lead.conversion_probability > probability),
            ),
        )
        return ahead + 1

    def route_to_staff(self, lead, reason):
        """Assign the best-matching staff member if nobody owns the lead yet."""
        if lead.assigned_staff_id is not None:
            return None
        match = best_match(self.staff.list_candidates(), lead.quality_score or 0,
                           self.config.assignment)
        if match is None:
            logger.warning("No active staff to route lead %s to", lead.id)
            return None
        lead.assigned_staff_id = match.staff_id
        self.log_activity(lead, 'assigned', f'Assigned to {match.name}',
                          staff_id=match.staff_id, match_score=match.match_score, reason=reason)
        self.audit.record('lead.assigned', 'lead', {
            'lead_id': lead.id, 'staff_id': match.staff_id, 'reason': reason,
        })
        return match

    # ── Scoring ──────────────────────────────────────────────────────────────

    def _is_cached(self, lead, now):
        if lead.last_analyzed_at is None or not lead.quality_score:
            return False
        ttl = timedelta(hours=self.config.scoring.cache_ttl_hours)
        return now - lead.last_analyzed_at < ttl

    def score(self, lead, now, force=False) -> dict:
        """Score one lead in the current transaction."""
        cfg = self.config.scoring
        age = self.age_days(lead, now)
        cached = not force and self._is_cached(lead, now)

        if cached:
            quality = lead.quality_score
            urgency = lead.urgency_score or 0
            probability = lead.conversion_probability or 0.0
            recommendation, action = generate_recommendation(quality, urgency, probability, age, cfg)
        else:
            result = score_signals(self.signals_for(lead, now), cfg)
            quality = result.quality
            urgency = result.urgency
            probability = result.conversion_probability
            recommendation, action = result.recommendation, result.suggested_action

            history = list(lead.score_history or [])
            history.append({
                'date': now.isoformat(),
                'quality_score': quality,
                'urgency_score': urgency,
                'conversion_probability': probability,
            })
            lead.quality_score = quality
            lead.urgency_score = urgency
            lead.conversion_probability = probability
            lead.score_factors = result.factors
            lead.intent_signals = result.signals
            lead.score_history = history[-cfg.score_history_limit:]
            lead.last_analyzed_at = now
            if not is_terminal(lead.status):
                lead.next_action = action
                lead.next_action_date = now

        status = evaluate_status(lead.status, quality, urgency, probability, age, self.config.lifecycle)
        self.set_status(lead, status, 'score')
        lead.priority_rank = self.priority_rank(lead)

        if not cached:
            self.log_activity(lead, 'scored', recommendation,
                              quality_score=quality, urgency_score=urgency,
                              conversion_probability=probability)
            self.audit.record('lead.scored', 'lead', {
                'lead_id': lead.id, 'quality_score': quality, 'urgency_score': urgency,
                'conversion_probability': probability, 'status': lead.status,
            })

        return {
            'lead_id': lead.id,
            'quality_score': quality,
            'urgency_score': urgency,
            'conversion_probability': probability,
            'factors': lead.score_factors or {},
            'signals': lead.intent_signals or [],
            'status': lead.status,
            'priority_rank': lead.priority_rank,
            'recommendation': recommendation,
            'next_action': lead.next_action,
            'cached': cached,
        }

    def score_lead(self, lead_id, force=False) -> dict:
        now = self.clock()
        with self.repo.transaction():
            return self.score(self.get_lead(lead_id), now, force=force)

    def bulk_score_leads(self, lead_ids=None, force=False) -> dict:
        now = self.clock()
        criteria = [Lead.status.notin_(_TERMINAL)]
        if lead_ids:
            criteria.append(Lead.id.in_(lead_ids))

        with self.repo.transaction():
            leads = self.repo.query(Lead, *criteria, order_by=Lead.id)
            results = [self.score(lead, now, force=force) for lead in leads]

        logger.info("Bulk scored %d leads (force=%s)", len(results), force)
        return {'scored': len(results), 'results': results}

    # ── Capture ──────────────────────────────────────────────────────────────

    def _find_duplicate(self, email, phone):
        matches = []
        if email:
            matches.append(Lead.email == email)
        if phone:
            matches.append(Lead.phone == phone)
        if not matches:
            return None
        return self.repo.find_one(Lead, Lead.status.notin_(_TERMINAL), or_(*matches))

    def capture_lead(self, source, contact=None, behavior=None) -> dict:
        if source not in LEAD_SOURCES:
            raise BadRequestError(f"Unknown lead source: {source}")
        contact = dict(contact or {})
        behavior = dict(behavior or {})
        email = _clean_email(contact.get('email'))
        phone = _clean_phone(contact.get('phone'))
        counters = {f: _non_negative_int(f, behavior.get(f)) for f in COUNTER_FIELDS}
        abandoned = bool(behavior.get('form_abandoned'))
        page = behavior.get('last_page_viewed') or None

        now = self.clock()
        with self.repo.transaction():
            existing = self._find_duplicate(email, phone)
            if existing is not None:
                return self._merge(existing, contact, counters, abandoned, page)

            lead = self.repo.add(Lead(
                source=source,
                first_name=contact.get('first_name'),
                last_name=contact.get('last_name'),
                email=email,
                phone=phone,
                notes=contact.get('notes'),
                form_abandoned=abandoned,
                last_page_viewed=page,
                emails_opened=0,
                links_clicked=0,
                replies_received=0,
                quality_score=0,
                urgency_score=0,
                conversion_probability=0.0,
                score_history=[],
                status=LeadStatus.NEW.value,
                created_at=now,
                **counters,
            ))
            self.log_activity(lead, 'captured', f'Captured from {source}', source=source)
            score = self.score(lead, now, force=True)

        logger.info("Captured lead %s from %s (status=%s)", lead.id, source, lead.status)
        return {'lead': lead.to_dict(), 'is_new': True, 'merged': False, 'score': score}

    def _merge(self, lead, contact, counters, abandoned, page):
        for name, amount in counters.items():
            if amount:
                self.repo.increment(lead, name, amount)
        for name in CONTACT_FIELDS:
            if not getattr(lead, name) and contact.get(name):
                value = contact[name]
                if name == 'email':
                    value = _clean_email(value)
                setattr(lead, name, value)
        lead.form_abandoned = bool(lead.form_abandoned) or abandoned
        lead.last_page_viewed = page or lead.last_page_viewed
        # New behavior invalidates the cached score
        lead.last_analyzed_at = None

        self.log_activity(lead, 'merged', 'Duplicate capture merged', **counters)
        self.audit.record('lead.merged', 'lead', {'lead_id': lead.id, **counters})
        logger.info("Merged duplicate capture into lead %s", lead.id)
        return {'lead': lead.to_dict(), 'is_new': False, 'merged': True}

    # ── Status ───────────────────────────────────────────────────────────────

    def update_lead_status(self, lead_id, status, note=None) -> dict:
        try:
            target = LeadStatus(status)
        except ValueError:
            raise BadRequestError(f"Unknown lead status: {status}")

        now = self.clock()
        with self.repo.transaction():
            lead = self.get_lead(lead_id)
            if not can_set_manually(lead.status, target):
                raise BadRequestError(f"Lead {lead_id} is {lead.status} and cannot change status")
            if target is LeadStatus.CONVERTED and lead.converted_at is None:
                lead.converted_at = now
            self.set_status(lead, target, note or 'manual')
            return lead.to_dict()

    def track_conversion(self, lead_id, patient_id=None) -> dict:
        now = self.clock()
        with self.repo.transaction():
            lead = self.get_lead(lead_id)
            if lead.status == LeadStatus.CONVERTED.value:
                raise ConflictError(f"Lead {lead_id} is already converted")
            if lead.status == LeadStatus.LOST.value:
                raise BadRequestError(f"Lead {lead_id} is lost and cannot convert")

            self.apply(lead, LeadEvent.CONVERSION, 'conversion')
            lead.converted_at = now
            lead.converted_patient_id = patient_id
            lead.next_action = None
            lead.next_action_date = None
            return lead.to_dict()

    # ── Routing ──────────────────────────────────────────────────────────────

    def assign_lead(self, lead_id, staff_id=None) -> dict:
        with self.repo.transaction():
            lead = self.get_lead(lead_id)
            if is_terminal(lead.status):
                raise BadRequestError(f"Lead {lead_id} is {lead.status} and cannot be assigned")

            candidates = self.staff.list_candidates()
            ranked = rank_staff(candidates, lead.quality_score or 0, self.config.assignment)

            if staff_id is not None:
                chosen = self.staff.get(staff_id)
                if chosen is None:
                    raise NotFoundError(f"Staff member {staff_id} not found")
                if lead.assigned_staff_id == staff_id:
                    raise ConflictError(f"Lead {lead_id} is already assigned to staff {staff_id}")
                match = rank_staff([chosen], lead.quality_score or 0, self.config.assignment)[0]
            else:
                if lead.assigned_staff_id is not None:
                    raise ConflictError(
                        f"Lead {lead_id} is already assigned to staff {lead.assigned_staff_id}"
                    )
                if not ranked:
                    raise NotFoundError("No active staff members available")
                match = ranked[0]

            lead.assigned_staff_id = match.staff_id
            self.log_activity(lead, 'assigned', f'Assigned to {match.name}',
                              staff_id=match.staff_id, match_score=match.match_score)
            self.audit.record('lead.assigned', 'lead', {
                'lead_id': lead.id, 'staff_id': match.staff_id,
            })
            return {
                'lead_id': lead.id,
                'assigned_staff': match.to_dict(),
                'candidates': [m.to_dict() for m in ranked],
            }

    def escalate(self, lead, now, urgency_level, reason):
        if urgency_level not in URGENCY_LEVELS:
            raise BadRequestError(f"Unknown urgency level: {urgency_level}")
        if is_terminal(lead.status):
            raise BadRequestError(f"Lead {lead.id} is {lead.status} and cannot be escalated")

        self.apply(lead, LeadEvent.ESCALATED, reason)
        lead.urgency_score = self.config.responses.escalation_urgency[urgency_level]
        lead.next_action = 'Immediate personal follow-up'
        lead.next_action_date = now
        match = self.route_to_staff(lead, reason)
        self.audit.record('lead.escalated', 'lead', {
            'lead_id': lead.id, 'urgency_level': urgency_level, 'reason': reason,
        })
        return match

    def escalate_hot_lead(self, lead_id, urgency_level='high', reason='manual') -> dict:
        now = self.clock()
        with self.repo.transaction():
            lead = self.get_lead(lead_id)
            self.escalate(lead, now, urgency_level, reason)
            return lead.to_dict()

    # ── Read models ──────────────────────────────────────────────────────────

    def get_priority_rankings(self, limit=20) -> list:
        leads = self.repo.query(
            Lead, Lead.status.notin_(_TERMINAL),
            order_by=(Lead.quality_score.desc(), Lead.conversion_probability.desc(), Lead.id),
            limit=limit,
        )
        return [
            {
                'rank': i,
                'lead_id': lead.id,
                'name': ' '.join(p for p in (lead.first_name, lead.last_name) if p),
                'status': lead.status,
                'quality_score': lead.quality_score,
                'urgency_score': lead.urgency_score,
                'conversion_probability': lead.conversion_probability,
                'next_action': lead.next_action,
            }
            for i, lead in enumerate(leads, start=1)
        ]

    def get_conversion_prediction(self, lead_id) -> dict:
        now = self.clock()
        with self.repo.transaction():
            lead = self.get_lead(lead_id)
            score = self.score(lead, now)

        prediction = predict_conversion(score['conversion_probability'], self.config.scoring)
        return {
            'lead_id': lead.id,
            'conversion_probability': prediction.probability,
            'estimated_time_to_convert': prediction.estimated_time_to_convert,
            'estimated_lifetime_value': prediction.estimated_lifetime_value,
            'confidence': prediction.confidence,
            'key_factors': score['signals'],
            'recommendation': score['recommendation'],
        }

    def get_source_analytics(self) -> dict:
        """Per-source funnel stats, known sources first in catalog order."""
        totals = {}
        for lead in self.repo.query(Lead, order_by=Lead.id):
            bucket = totals.setdefault(lead.source, {'total': 0, 'converted': 0, 'quality_sum': 0})
            bucket['total'] += 1
            bucket['quality_sum'] += lead.quality_score or 0
            if lead.status == LeadStatus.CONVERTED.value:
                bucket['converted'] += 1

        ordered = [s for s in LEAD_SOURCES if s in totals]
        ordered += sorted(s for s in totals if s not in LEAD_SOURCES)
        return {
            source: {
                'total': totals[source]['total'],
                'converted': totals[source]['converted'],
                'conversion_rate': round(totals[source]['converted'] / totals[source]['total'], 4),
                'average_quality': round(totals[source]['quality_sum'] / totals[source]['total'], 1),
            }
            for source in ordered
        }

    def get_lead_activity(self, lead_id, limit=50) -> list:
        lead = self.get_lead(lead_id)
        rows = self.repo.query(
            LeadActivity, LeadActivity.lead_id == lead.id,
            order_by=(LeadActivity.created_at.desc(), LeadActivity.id.desc()),
            limit=limit,
        )
        return [r.to_dict() for r in rows]
