"""
Reactivation service — lapse analysis, candidate search, outreach and
outcome tracking for lapsed patients.
"""
import logging
from datetime import datetime

from growth.engine.config import load_growth_config
from growth.engine.reactivation import CLOSED_STATUSES, ReactivationStatus, can_transition
from growth.errors import BadRequestError, NotFoundError
from growth.models.patient_history import PatientHistoryRecord
from growth.models.reactivation_opportunity import ReactivationOpportunity
from growth.services.criteria import ReactivationCriteria

logger = logging.getLogger('services.reactivation')


class ReactivationService:

    def __init__(self, repo, audit, sender, engine, config=None, clock=datetime.now):
        self.repo = repo
        self.audit = audit
        self.sender = sender
        self.engine = engine
        self.config = config or load_growth_config()
        self.clock = clock

    def _record(self, patient_id):
        record = self.repo.find_one(PatientHistoryRecord, PatientHistoryRecord.patient_id == patient_id)
        if record is None:
            raise NotFoundError(f"Patient {patient_id} not found")
        return record

    def _opportunity(self, patient_id):
        return self.repo.find_one(
            ReactivationOpportunity, ReactivationOpportunity.patient_id == patient_id,
        )

    def _analyze(self, record, now):
        analysis = self.engine.analyze(record.to_history(), now)
        opportunity = self._opportunity(record.patient_id)
        if opportunity is None:
            opportunity = self.repo.add(ReactivationOpportunity(
                patient_id=record.patient_id,
                status=ReactivationStatus.IDENTIFIED.value,
                outreach_attempts=0,
            ))

        opportunity.last_visit_at = record.last_visit_at
        opportunity.days_lapsed = analysis.days_lapsed
        opportunity.lifetime_value = analysis.lifetime_value
        opportunity.likely_reason = analysis.likely_reason
        opportunity.reason_confidence = analysis.confidence
        opportunity.reason_factors = analysis.factors
        opportunity.reactivation_score = analysis.reactivation_score
        opportunity.suggested_approach = analysis.suggested_approach['approach']
        opportunity.suggested_channel = analysis.suggested_approach['channel']
        opportunity.suggested_offer_id = analysis.suggested_offer.id if analysis.suggested_offer else None
        opportunity.analyzed_at = now
        return analysis, opportunity

    def analyze_lapse(self, patient_id) -> dict:
        now = self.clock()
        with self.repo.transaction():
            analysis, opportunity = self._analyze(self._record(patient_id), now)
            self.audit.record('reactivation.analyzed', 'reactivation_opportunity', {
                'patient_id': patient_id, 'likely_reason': analysis.likely_reason,
                'confidence': analysis.confidence, 'score': analysis.reactivation_score,
            })
            return {**analysis.to_dict(), 'status': opportunity.status}

    def identify_reactivation_candidates(self, criteria=None) -> list:
        if not isinstance(criteria, ReactivationCriteria):
            criteria = ReactivationCriteria.from_dict(criteria)
        cfg = self.config.reactivation
        min_days = criteria.min_days_lapsed if criteria.min_days_lapsed is not None else cfg.min_days_lapsed
        max_days = criteria.max_days_lapsed if criteria.max_days_lapsed is not None else cfg.max_days_lapsed

        now = self.clock()
        candidates = []
        with self.repo.transaction():
            records = self.repo.query(
                PatientHistoryRecord, PatientHistoryRecord.last_visit_at.isnot(None),
                order_by=PatientHistoryRecord.id,
            )
            for record in records:
                days = (now - record.last_visit_at).days
                if days < min_days or days > max_days:
                    continue
                analysis, opportunity = self._analyze(record, now)
                if ReactivationStatus(opportunity.status) in CLOSED_STATUSES:
                    continue
                if analysis.reactivation_score < criteria.min_score:
                    continue
                if criteria.reasons and analysis.likely_reason not in criteria.reasons:
                    continue
                candidates.append({
                    **analysis.to_dict(),
                    'first_name': record.first_name,
                    'status': opportunity.status,
                    'outreach_attempts': opportunity.outreach_attempts,
                })

        candidates.sort(key=lambda c: c['reactivation_score'], reverse=True)
        logger.info("Identified %d reactivation candidates (%d-%d days lapsed)",
                    len(candidates), min_days, max_days)
        return candidates[:criteria.limit]

    def record_reactivation_outreach(self, patient_id, offer_id=None, channel=None) -> dict:
        now = self.clock()
        with self.repo.transaction():
            record = self._record(patient_id)
            analysis, opportunity = self._analyze(record, now)
            status = ReactivationStatus(opportunity.status)
            if status in CLOSED_STATUSES:
                raise BadRequestError(f"Reactivation for patient {patient_id} is already {status.value}")

            offer = None
            if offer_id is not None:
                offer = self.engine.get_offer(offer_id)
                if offer is None:
                    raise BadRequestError(f"Unknown offer: {offer_id}")
                if not offer.applies_to(analysis.likely_reason, analysis.days_lapsed):
                    raise BadRequestError(
                        f"Offer {offer_id} does not apply to a {analysis.likely_reason} lapse "
                        f"of {analysis.days_lapsed} days"
                    )

            channel = channel or analysis.suggested_approach['channel']
            recipient = record.email if channel == 'EMAIL' else record.phone
            queued = None
            if recipient and channel != 'PHONE':
                content = analysis.suggested_approach['message']
                if offer is not None:
                    content = f"{content}\n\n{offer.name}: {offer.description}"
                queued = self.sender.send(
                    channel, recipient, content, analysis.optimal_timing.send_at,
                    patient_id=patient_id,
                )

            self.repo.increment(opportunity, 'outreach_attempts')
            opportunity.last_outreach_at = now
            if offer is not None:
                opportunity.suggested_offer_id = offer.id
            if status is ReactivationStatus.IDENTIFIED:
                opportunity.status = ReactivationStatus.CONTACTED.value

            self.audit.record('reactivation.outreach_recorded', 'reactivation_opportunity', {
                'patient_id': patient_id, 'channel': channel,
                'offer_id': offer.id if offer else None,
                'attempts': opportunity.outreach_attempts,
            })
            return {**opportunity.to_dict(), 'message_queued': queued is not None}

    def update_reactivation_status(self, patient_id, status) -> dict:
        try:
            target = ReactivationStatus(status)
        except ValueError:
            raise BadRequestError(f"Unknown reactivation status: {status}")

        now = self.clock()
        with self.repo.transaction():
            opportunity = self._opportunity(patient_id)
            if opportunity is None:
                raise NotFoundError(f"No reactivation opportunity for patient {patient_id}")
            if not can_transition(opportunity.status, target):
                raise BadRequestError(
                    f"Cannot move reactivation from {opportunity.status} to {target.value}"
                )

            previous = opportunity.status
            opportunity.status = target.value
            if target in CLOSED_STATUSES:
                opportunity.outcome_at = now
            self.audit.record('reactivation.status_changed', 'reactivation_opportunity', {
                'patient_id': patient_id, 'from': previous, 'to': target.value,
            })
            logger.info("Reactivation for patient %s %s -> %s", patient_id, previous, target.value)
            return opportunity.to_dict()
