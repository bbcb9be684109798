"""
Referral service — keeps one ReferralOpportunity per patient current and
picks the patients most likely to refer.
"""
import logging
from datetime import datetime, timedelta

from growth.engine.config import load_growth_config
from growth.engine.referral import analyze_referral, optimal_outreach_date
from growth.errors import ConflictError, NotFoundError
from growth.models.patient_history import PatientHistoryRecord
from growth.models.referral_opportunity import ReferralOpportunity
from growth.services.criteria import ReferralCriteria

logger = logging.getLogger('services.referrals')


class ReferralService:

    def __init__(self, repo, audit, config=None, clock=datetime.now):
        self.repo = repo
        self.audit = audit
        self.config = config or load_growth_config()
        self.clock = clock

    def _record(self, patient_id):
        record = self.repo.find_one(PatientHistoryRecord, PatientHistoryRecord.patient_id == patient_id)
        if record is None:
            raise NotFoundError(f"Patient {patient_id} not found")
        return record

    def _opportunity(self, patient_id):
        return self.repo.find_one(ReferralOpportunity, ReferralOpportunity.patient_id == patient_id)

    def _analyze(self, record, now):
        """Recompute the analysis and update the patient's opportunity row in place."""
        opportunity = self._opportunity(record.patient_id)
        last_outreach = opportunity.last_outreach_at if opportunity else None
        analysis = analyze_referral(record.to_history(last_outreach), now, self.config.referral)

        if opportunity is None:
            opportunity = self.repo.add(ReferralOpportunity(
                patient_id=record.patient_id, outreach_count=0, is_active=True,
            ))
        opportunity.nps_score = analysis.nps_score
        opportunity.nps_category = analysis.nps_category
        opportunity.referral_score = analysis.referral_score
        opportunity.score_factors = analysis.factors
        opportunity.visit_count = record.visit_count or 0
        opportunity.consecutive_visits = record.consecutive_visits or 0
        opportunity.referrals_made = record.referrals_made or 0
        opportunity.last_visit_at = record.last_visit_at
        opportunity.optimal_outreach_date = analysis.optimal_outreach_date
        opportunity.analyzed_at = now
        return analysis, opportunity

    def analyze_referral(self, patient_id) -> dict:
        now = self.clock()
        with self.repo.transaction():
            analysis, opportunity = self._analyze(self._record(patient_id), now)
            self.audit.record('referral.analyzed', 'referral_opportunity', {
                'patient_id': patient_id, 'nps_score': analysis.nps_score,
                'referral_score': analysis.referral_score,
            })
            return {**analysis.to_dict(), 'outreach_count': opportunity.outreach_count}

    def _in_cooldown(self, opportunity, now):
        if opportunity.last_outreach_at is None:
            return False
        cooldown = timedelta(days=self.config.referral.outreach_cooldown_days)
        return now - opportunity.last_outreach_at < cooldown

    def identify_referrers(self, criteria=None) -> list:
        if not isinstance(criteria, ReferralCriteria):
            criteria = ReferralCriteria.from_dict(criteria)

        now = self.clock()
        candidates = []
        with self.repo.transaction():
            records = self.repo.query(PatientHistoryRecord, order_by=PatientHistoryRecord.id)
            for record in records:
                analysis, opportunity = self._analyze(record, now)
                if analysis.nps_score < criteria.min_nps:
                    continue
                if analysis.referral_score < criteria.min_referral_score:
                    continue
                if not criteria.include_recent_outreach and self._in_cooldown(opportunity, now):
                    continue
                candidates.append({
                    **analysis.to_dict(),
                    'first_name': record.first_name,
                    'email': record.email,
                    'phone': record.phone,
                    'outreach_count': opportunity.outreach_count,
                })

        candidates.sort(key=lambda c: (c['referral_score'], c['nps_score']), reverse=True)
        logger.info("Identified %d referral candidates from %d patients", len(candidates), len(records))
        return candidates[:criteria.limit]

    def record_referral_outreach(self, patient_id) -> dict:
        now = self.clock()
        with self.repo.transaction():
            record = self._record(patient_id)
            opportunity = self._opportunity(patient_id)
            if opportunity is None:
                _, opportunity = self._analyze(record, now)
            if self._in_cooldown(opportunity, now):
                raise ConflictError(
                    f"Referral outreach to patient {patient_id} already sent on "
                    f"{opportunity.last_outreach_at.date().isoformat()}"
                )

            opportunity.last_outreach_at = now
            self.repo.increment(opportunity, 'outreach_count')
            opportunity.optimal_outreach_date = optimal_outreach_date(
                now, record.last_visit_at, now, self.config.referral,
            )
            self.audit.record('referral.outreach_recorded', 'referral_opportunity', {
                'patient_id': patient_id, 'outreach_count': opportunity.outreach_count,
            })
            return opportunity.to_dict()
