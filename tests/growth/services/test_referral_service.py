"""Tests for growth.services.referrals — analysis persistence, candidates, cooldown."""
from datetime import timedelta

import pytest

from growth.errors import BadRequestError, ConflictError, NotFoundError
from growth.models.referral_opportunity import ReferralOpportunity
from growth.services.criteria import ReferralCriteria


@pytest.fixture
def referrals(services):
    return services.referrals


@pytest.fixture
def loyal(make_patient):
    """Frequent visitor with glowing reviews and two referrals already."""
    return make_patient(
        'p-loyal', first_name='Lee', visit_count=60, consecutive_visits=12,
        review_count=2, average_review_rating=4.8, referrals_made=2,
        appointments_scheduled=20, appointments_completed=19,
        treatment_completed=True, positive_outcome=True,
    )


@pytest.fixture
def surveyed(make_patient):
    return make_patient(
        'p-survey', survey_nps=9, review_count=1, average_review_rating=4.2,
        treatment_completed=True, positive_outcome=True,
    )


class TestAnalyzeReferral:

    def test_loyal_patient(self, referrals, loyal, clock):
        result = referrals.analyze_referral('p-loyal')
        assert result['nps_score'] == 10.0
        assert result['nps_category'] == 'promoter'
        assert result['referral_score'] == 95
        assert result['factors'] == {
            'visit_frequency': 25, 'positive_reviews': 30, 'tenure': 15,
            'treatment_success': 15, 'referral_engagement': 10,
        }
        assert result['outreach_count'] == 0
        assert result['optimal_outreach_date'] == clock.now.isoformat()

    def test_average_patient_is_detractor(self, referrals, make_patient):
        result = referrals.analyze_referral(make_patient().patient_id)
        assert result['nps_score'] == 5.0
        assert result['nps_category'] == 'detractor'
        assert result['referral_score'] == 21

    def test_outreach_waits_for_day_after_visit(self, referrals, make_patient, clock):
        make_patient('p-today', last_visit_at=clock.now - timedelta(hours=2))
        result = referrals.analyze_referral('p-today')
        assert result['optimal_outreach_date'] == (clock.now + timedelta(hours=22)).isoformat()

    def test_reanalysis_updates_one_row(self, referrals, loyal, db_session, clock):
        referrals.analyze_referral('p-loyal')
        clock.advance(days=1)
        referrals.analyze_referral('p-loyal')
        [row] = db_session.query(ReferralOpportunity).all()
        assert row.analyzed_at == clock.now
        assert row.visit_count == 60

    def test_unknown_patient(self, referrals):
        with pytest.raises(NotFoundError):
            referrals.analyze_referral('nobody')

    def test_other_organization_is_invisible(self, referrals, make_patient):
        make_patient('p-foreign', organization_id='other-practice')
        with pytest.raises(NotFoundError):
            referrals.analyze_referral('p-foreign')


class TestIdentifyReferrers:

    def test_default_criteria(self, referrals, loyal, surveyed, make_patient):
        make_patient('p-plain')
        candidates = referrals.identify_referrers()
        assert [c['patient_id'] for c in candidates] == ['p-loyal', 'p-survey']
        assert candidates[1]['referral_score'] == 58
        assert candidates[0]['first_name'] == 'Lee'
        assert candidates[0]['email'] == 'p-loyal@example.com'

    def test_criteria_from_dict(self, referrals, loyal, surveyed):
        candidates = referrals.identify_referrers({'min_referral_score': 60})
        assert [c['patient_id'] for c in candidates] == ['p-loyal']

    def test_limit(self, referrals, loyal, surveyed):
        assert len(referrals.identify_referrers(ReferralCriteria(limit=1))) == 1

    def test_lower_nps_bar(self, referrals, make_patient):
        make_patient('p-plain')
        candidates = referrals.identify_referrers(ReferralCriteria(min_nps=5, min_referral_score=0))
        assert [c['patient_id'] for c in candidates] == ['p-plain']

    def test_unknown_criteria(self, referrals):
        with pytest.raises(BadRequestError):
            referrals.identify_referrers({'min_visits': 3})

    def test_recent_outreach_is_excluded(self, referrals, loyal, surveyed, clock):
        referrals.record_referral_outreach('p-loyal')
        assert [c['patient_id'] for c in referrals.identify_referrers()] == ['p-survey']

        included = referrals.identify_referrers({'include_recent_outreach': True})
        assert included[0]['patient_id'] == 'p-loyal'
        assert included[0]['outreach_count'] == 1

        clock.advance(days=15)
        assert len(referrals.identify_referrers()) == 2


class TestRecordReferralOutreach:

    def test_first_outreach(self, referrals, loyal, clock):
        result = referrals.record_referral_outreach('p-loyal')
        assert result['outreach_count'] == 1
        assert result['last_outreach_at'] == clock.now.isoformat()
        assert result['optimal_outreach_date'] == (clock.now + timedelta(days=14)).isoformat()

    def test_repeat_inside_cooldown_conflicts(self, referrals, loyal, clock):
        referrals.record_referral_outreach('p-loyal')
        clock.advance(days=13)
        with pytest.raises(ConflictError):
            referrals.record_referral_outreach('p-loyal')

    def test_repeat_after_cooldown(self, referrals, loyal, clock):
        referrals.record_referral_outreach('p-loyal')
        clock.advance(days=14)
        assert referrals.record_referral_outreach('p-loyal')['outreach_count'] == 2

    def test_analysis_is_persisted_with_outreach(self, referrals, loyal, db_session):
        referrals.record_referral_outreach('p-loyal')
        row = db_session.query(ReferralOpportunity).filter_by(patient_id='p-loyal').one()
        assert row.nps_category == 'promoter'

    def test_unknown_patient(self, referrals):
        with pytest.raises(NotFoundError):
            referrals.record_referral_outreach('nobody')
