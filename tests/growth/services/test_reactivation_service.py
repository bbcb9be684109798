"""Tests for growth.services.reactivation — lapse analysis, candidates, outreach, status."""
from datetime import timedelta

import pytest

from growth.errors import BadRequestError, NotFoundError
from growth.models.scheduled_message import ScheduledMessage
from growth.services.criteria import ReactivationCriteria


@pytest.fixture
def reactivation(services):
    return services.reactivation


@pytest.fixture
def lapsed(make_patient, clock):
    """No lapse signals at all, 120 days since the last visit."""
    return make_patient('p-lapsed', last_visit_at=clock.now - timedelta(days=120))


@pytest.fixture
def cost_conscious(make_patient, clock):
    return make_patient('p-cost', last_visit_at=clock.now - timedelta(days=200),
                        financial_cancellations=2)


@pytest.fixture
def moved(make_patient, clock):
    return make_patient('p-moved', last_visit_at=clock.now - timedelta(days=150),
                        address_changed=True, visit_count=3)


@pytest.fixture
def unhappy(make_patient, clock):
    return make_patient('p-unhappy', last_visit_at=clock.now - timedelta(days=100),
                        review_count=1, average_review_rating=1.0)


class TestAnalyzeLapse:

    def test_unknown_reason(self, reactivation, lapsed):
        result = reactivation.analyze_lapse('p-lapsed')
        assert result['days_lapsed'] == 120
        assert result['likely_reason'] == 'unknown'
        assert result['confidence'] == 0.1
        assert result['reactivation_score'] == 66
        assert result['suggested_approach']['approach'] == 'general_reactivation'
        assert result['suggested_offer']['id'] == 'win_back_discount'
        assert [o['id'] for o in result['applicable_offers']] == ['win_back_discount', 'welcome_back_exam']
        assert result['optimal_timing']['send_at'] == '2026-03-10T10:00:00'
        assert result['status'] == 'IDENTIFIED'

    def test_financial_reason(self, reactivation, cost_conscious):
        result = reactivation.analyze_lapse('p-cost')
        assert result['likely_reason'] == 'financial'
        assert result['confidence'] == 0.89
        assert result['reactivation_score'] == 58
        assert result['suggested_offer']['id'] == 'payment_plan'

    def test_unknown_patient(self, reactivation):
        with pytest.raises(NotFoundError):
            reactivation.analyze_lapse('nobody')


class TestIdentifyCandidates:

    def test_default_window_sorted_by_score(self, reactivation, lapsed, cost_conscious, moved,
                                            make_patient, clock):
        make_patient('p-recent')
        make_patient('p-ancient', last_visit_at=clock.now - timedelta(days=800))
        candidates = reactivation.identify_reactivation_candidates()
        assert [c['patient_id'] for c in candidates] == ['p-lapsed', 'p-cost', 'p-moved']
        assert [c['reactivation_score'] for c in candidates] == [66, 58, 48]

    def test_reason_filter(self, reactivation, lapsed, cost_conscious):
        candidates = reactivation.identify_reactivation_candidates({'reasons': 'financial'})
        assert [c['patient_id'] for c in candidates] == ['p-cost']

    def test_min_score(self, reactivation, lapsed, cost_conscious):
        candidates = reactivation.identify_reactivation_candidates(ReactivationCriteria(min_score=60))
        assert [c['patient_id'] for c in candidates] == ['p-lapsed']

    def test_custom_window(self, reactivation, lapsed, make_patient):
        make_patient('p-recent')
        candidates = reactivation.identify_reactivation_candidates(
            {'min_days_lapsed': 0, 'max_days_lapsed': 100},
        )
        assert [c['patient_id'] for c in candidates] == ['p-recent']

    def test_closed_opportunities_are_skipped(self, reactivation, lapsed, cost_conscious):
        reactivation.analyze_lapse('p-cost')
        reactivation.update_reactivation_status('p-cost', 'DECLINED')
        candidates = reactivation.identify_reactivation_candidates()
        assert [c['patient_id'] for c in candidates] == ['p-lapsed']

    def test_unknown_reason_in_filter(self, reactivation):
        with pytest.raises(BadRequestError):
            reactivation.identify_reactivation_candidates({'reasons': ['bored']})


class TestRecordOutreach:

    def test_email_outreach_queues_message(self, reactivation, lapsed, db_session):
        result = reactivation.record_reactivation_outreach('p-lapsed')
        assert result['status'] == 'CONTACTED'
        assert result['outreach_attempts'] == 1
        assert result['message_queued'] is True

        [message] = db_session.query(ScheduledMessage).all()
        assert message.patient_id == 'p-lapsed'
        assert message.channel == 'EMAIL'
        assert message.recipient == 'p-lapsed@example.com'
        assert message.scheduled_at.isoformat() == '2026-03-10T10:00:00'

    def test_offer_is_appended(self, reactivation, lapsed, db_session):
        result = reactivation.record_reactivation_outreach('p-lapsed', offer_id='welcome_back_exam')
        assert result['suggested_offer_id'] == 'welcome_back_exam'
        message = db_session.query(ScheduledMessage).one()
        assert message.content.endswith(
            'Complimentary re-evaluation: Free re-examination to review progress since the last visit'
        )

    def test_channel_override(self, reactivation, lapsed, db_session):
        reactivation.record_reactivation_outreach('p-lapsed', channel='SMS')
        assert db_session.query(ScheduledMessage).one().recipient == '555-0199'

    def test_phone_outreach_queues_nothing(self, reactivation, unhappy, db_session):
        result = reactivation.record_reactivation_outreach('p-unhappy')
        assert result['likely_reason'] == 'dissatisfied'
        assert result['suggested_channel'] == 'PHONE'
        assert result['message_queued'] is False
        assert result['status'] == 'CONTACTED'
        assert db_session.query(ScheduledMessage).count() == 0

    def test_second_attempt(self, reactivation, lapsed):
        reactivation.record_reactivation_outreach('p-lapsed')
        result = reactivation.record_reactivation_outreach('p-lapsed')
        assert result['outreach_attempts'] == 2
        assert result['status'] == 'CONTACTED'

    def test_unknown_offer(self, reactivation, lapsed):
        with pytest.raises(BadRequestError):
            reactivation.record_reactivation_outreach('p-lapsed', offer_id='free_cruise')

    def test_offer_for_other_reason(self, reactivation, lapsed):
        with pytest.raises(BadRequestError):
            reactivation.record_reactivation_outreach('p-lapsed', offer_id='service_recovery')

    def test_closed_opportunity(self, reactivation, lapsed):
        reactivation.analyze_lapse('p-lapsed')
        reactivation.update_reactivation_status('p-lapsed', 'REACTIVATED')
        with pytest.raises(BadRequestError):
            reactivation.record_reactivation_outreach('p-lapsed')


class TestUpdateStatus:

    def test_engaged_after_contact(self, reactivation, lapsed):
        reactivation.record_reactivation_outreach('p-lapsed')
        assert reactivation.update_reactivation_status('p-lapsed', 'ENGAGED')['status'] == 'ENGAGED'

    def test_closing_stamps_outcome(self, reactivation, lapsed, db_session, clock):
        from growth.models.reactivation_opportunity import ReactivationOpportunity
        reactivation.analyze_lapse('p-lapsed')
        reactivation.update_reactivation_status('p-lapsed', 'REACTIVATED')
        row = db_session.query(ReactivationOpportunity).one()
        assert row.outcome_at == clock.now

    def test_skipping_contact_is_rejected(self, reactivation, lapsed):
        reactivation.analyze_lapse('p-lapsed')
        with pytest.raises(BadRequestError):
            reactivation.update_reactivation_status('p-lapsed', 'ENGAGED')

    def test_closed_is_final(self, reactivation, lapsed):
        reactivation.analyze_lapse('p-lapsed')
        reactivation.update_reactivation_status('p-lapsed', 'LOST')
        with pytest.raises(BadRequestError):
            reactivation.update_reactivation_status('p-lapsed', 'CONTACTED')

    def test_unknown_status(self, reactivation, lapsed):
        reactivation.analyze_lapse('p-lapsed')
        with pytest.raises(BadRequestError):
            reactivation.update_reactivation_status('p-lapsed', 'MAYBE')

    def test_no_opportunity(self, reactivation, lapsed):
        with pytest.raises(NotFoundError):
            reactivation.update_reactivation_status('p-lapsed', 'CONTACTED')
