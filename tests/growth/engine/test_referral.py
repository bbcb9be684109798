"""Tests for growth.engine.referral — NPS inference and referral propensity."""
from datetime import datetime, timedelta

import pytest

from growth.engine.patient import PatientHistory
from growth.engine.referral import (
    analyze_referral,
    infer_nps,
    nps_category,
    optimal_outreach_date,
    referral_score,
)

NOW = datetime(2026, 3, 10, 9, 0)


@pytest.fixture
def loyal_patient():
    return PatientHistory(
        patient_id='p-1',
        first_visit_at=NOW - timedelta(days=400),
        last_visit_at=NOW - timedelta(days=2),
        visit_count=20,
        consecutive_visits=6,
        appointments_scheduled=20,
        appointments_completed=19,
        review_count=2,
        average_review_rating=4.8,
        referrals_made=1,
        treatment_completed=True,
        positive_outcome=True,
    )


class TestInferNps:

    def test_loyal_patient_is_clamped_to_ten(self, loyal_patient):
        assert infer_nps(loyal_patient, NOW) == 10.0

    def test_survey_answer_wins(self, loyal_patient):
        from dataclasses import replace
        assert infer_nps(replace(loyal_patient, survey_nps=6), NOW) == 6.0

    def test_new_patient_starts_at_base(self):
        assert infer_nps(PatientHistory(patient_id='p-2'), NOW) == 5.0

    def test_bad_review_and_poor_attendance(self):
        history = PatientHistory(
            patient_id='p-3',
            first_visit_at=NOW - timedelta(days=300),
            visit_count=2,
            review_count=1,
            average_review_rating=1.5,
            appointments_scheduled=10,
            appointments_completed=5,
            positive_outcome=False,
        )
        # 5 - 1 (rare visits) - 3 (bad review) - 1.5 (completion) - 1 (outcome)
        assert infer_nps(history, NOW) == 0.0

    @pytest.mark.parametrize('nps, category', [
        (9.0, 'promoter'), (8.9, 'passive'), (7.0, 'passive'), (6.9, 'detractor'),
    ])
    def test_categories(self, nps, category):
        assert nps_category(nps) == category


class TestReferralScore:

    def test_factor_breakdown(self, loyal_patient):
        total, factors = referral_score(loyal_patient, NOW)
        assert factors == {
            'visit_frequency': 12,
            'positive_reviews': 30,
            'tenure': 15,
            'treatment_success': 15,
            'referral_engagement': 5,
        }
        assert total == 77

    def test_referral_points_capped(self, loyal_patient):
        from dataclasses import replace
        _, factors = referral_score(replace(loyal_patient, referrals_made=6), NOW)
        assert factors['referral_engagement'] == 10

    def test_empty_history_scores_zero(self):
        assert referral_score(PatientHistory(patient_id='p-2'), NOW) == (0, {
            'visit_frequency': 0,
            'positive_reviews': 0,
            'tenure': 0,
            'treatment_success': 0,
            'referral_engagement': 0,
        })


class TestOutreachDate:

    def test_inside_window_sends_now(self):
        assert optimal_outreach_date(NOW, NOW - timedelta(days=2)) == NOW

    def test_visit_today_waits_a_day(self):
        assert optimal_outreach_date(NOW, NOW) == NOW + timedelta(days=1)

    def test_window_passed_sends_now(self):
        assert optimal_outreach_date(NOW, NOW - timedelta(days=10)) == NOW

    def test_cooldown_pushes_date(self):
        last = NOW - timedelta(days=5)
        assert optimal_outreach_date(NOW, NOW - timedelta(days=2), last) == NOW + timedelta(days=9)


class TestAnalyzeReferral:

    def test_analysis(self, loyal_patient):
        analysis = analyze_referral(loyal_patient, NOW)
        assert analysis.nps_category == 'promoter'
        assert analysis.referral_score == 77
        data = analysis.to_dict()
        assert data['patient_id'] == 'p-1'
        assert data['optimal_outreach_date'] == NOW.isoformat()
