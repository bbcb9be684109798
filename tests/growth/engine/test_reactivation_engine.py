"""Tests for growth.engine.reactivation — lapse inference, scoring, offers."""
from dataclasses import replace
from datetime import datetime, timedelta

import pytest

from growth.engine.patient import PatientHistory
from growth.engine.reactivation import (
    ReactivationEngine,
    can_transition,
    infer_lapse_reason,
    load_offers,
    reactivation_score,
    select_approach,
    select_offers,
)

NOW = datetime(2026, 3, 10, 9, 0)


def _history(days_lapsed=120, **overrides):
    defaults = dict(
        patient_id='p-1',
        first_visit_at=NOW - timedelta(days=900),
        last_visit_at=NOW - timedelta(days=days_lapsed),
        visit_count=10,
        lifetime_value=800.0,
    )
    defaults.update(overrides)
    return PatientHistory(**defaults)


@pytest.fixture(scope='module')
def offers():
    return load_offers()


class TestInferLapseReason:

    def test_address_change_dominates(self):
        inference = infer_lapse_reason(_history(200, address_changed=True), NOW)
        assert inference.reason == 'moved_away'
        assert inference.confidence == 0.92
        assert inference.weights == {'moved_away': 6.0, 'forgot': 0.5}

    def test_cancellations_are_capped(self):
        inference = infer_lapse_reason(
            _history(financial_cancellations=5, insurance_lapsed=True), NOW,
        )
        assert inference.reason == 'financial'
        assert inference.weights == {'financial': 7.0, 'insurance_change': 4.0}
        assert inference.confidence == 0.64

    def test_no_signals_is_unknown(self):
        inference = infer_lapse_reason(_history(100), NOW)
        assert inference.reason == 'unknown'
        assert inference.confidence == 0.1
        assert inference.factors == []

    def test_notes_keywords(self):
        inference = infer_lapse_reason(_history(notes='She moved to a new city'), NOW)
        assert inference.reason == 'moved_away'
        assert inference.confidence == 1.0
        assert "Notes mention 'moved'" in inference.factors

    def test_ties_follow_catalog_order(self):
        inference = infer_lapse_reason(
            _history(financial_cancellations=1, scheduling_cancellations=1), NOW,
        )
        assert inference.reason == 'financial'
        assert inference.confidence == 0.5

    def test_low_review_points_to_dissatisfaction(self):
        inference = infer_lapse_reason(_history(review_count=1, average_review_rating=1.0), NOW)
        assert inference.reason == 'dissatisfied'


class TestReactivationScore:

    def test_moved_away(self):
        assert reactivation_score(_history(200, address_changed=True), 'moved_away', NOW) == 53

    def test_unknown_reason(self):
        assert reactivation_score(_history(100), 'unknown', NOW) == 66

    def test_engagement_capped(self):
        history = _history(100, outreach_opened=10, outreach_responses=3)
        assert reactivation_score(history, 'unknown', NOW) == 76

    def test_unmapped_reason_raises(self):
        with pytest.raises(KeyError):
            reactivation_score(_history(), 'abducted', NOW)


class TestApproachAndOffers:

    def test_approach_by_reason(self):
        assert select_approach('scheduling_conflict', 100)['channel'] == 'SMS'

    def test_high_value_patient_gets_a_call(self):
        approach = select_approach('forgot', 3000)
        assert approach == {
            'approach': 'personal_call',
            'channel': 'PHONE',
            'message': 'High-value patient: personal call from their provider',
        }

    def test_reason_specific_offers_first(self, offers):
        ids = [o.id for o in select_offers(offers, 'financial', 120)]
        assert ids == ['payment_plan', 'welcome_back_exam']

    def test_unknown_reason_offers(self, offers):
        ids = [o.id for o in select_offers(offers, 'unknown', 100)]
        assert ids == ['win_back_discount', 'welcome_back_exam']

    def test_offer_window(self, offers):
        assert select_offers(offers, 'moved_away', 30) == []

    def test_catalog_rejects_unknown_reason(self, tmp_path):
        path = tmp_path / 'offers.yaml'
        path.write_text('- id: x\n  name: X\n  description: d\n  reasons: [abducted]\n'
                        '  min_days: 0\n  max_days: 10\n')
        with pytest.raises(ValueError):
            load_offers(str(path))


class TestStatusTransitions:

    def test_forward_moves(self):
        assert can_transition('IDENTIFIED', 'CONTACTED')
        assert can_transition('CONTACTED', 'ENGAGED')
        assert can_transition('ENGAGED', 'REACTIVATED')

    def test_no_backward_or_out_of_closed(self):
        assert not can_transition('CONTACTED', 'IDENTIFIED')
        assert not can_transition('REACTIVATED', 'CONTACTED')
        assert not can_transition('LOST', 'LOST')


class TestReactivationEngine:

    def test_analyze(self, offers):
        engine = ReactivationEngine(offers)
        analysis = engine.analyze(_history(200, address_changed=True), NOW)
        assert analysis.days_lapsed == 200
        assert analysis.likely_reason == 'moved_away'
        assert analysis.reactivation_score == 53
        assert analysis.suggested_approach['approach'] == 'farewell_referral'
        assert analysis.suggested_offer.id == 'welcome_back_exam'
        assert analysis.optimal_timing.send_at == datetime(2026, 3, 10, 10, 0)

    def test_get_offer(self, offers):
        engine = ReactivationEngine(offers)
        assert engine.get_offer('payment_plan').name == 'Flexible payment plan'
        assert engine.get_offer('nope') is None

    def test_to_dict(self, offers):
        data = ReactivationEngine(offers).analyze(replace(_history(100), notes=''), NOW).to_dict()
        assert data['suggested_offer']['id'] == 'win_back_discount'
        assert [o['id'] for o in data['applicable_offers']] == ['win_back_discount', 'welcome_back_exam']
        assert data['optimal_timing']['day_of_week'] == 'Tuesday'
