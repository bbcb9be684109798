"""Tests for growth.services.reputation — snapshot validation and the aggregate score."""
from datetime import timedelta

import pytest

from growth.errors import BadRequestError


@pytest.fixture
def reputation(services):
    return services.reputation


class TestRecordSnapshot:

    def test_records_and_normalizes_platform(self, reputation, clock):
        result = reputation.record_snapshot(' Google ', 4.5, 99, response_rate=0.5, sentiment=0.5,
                                            rating_breakdown={5: 80, 4: 19})
        assert result['platform'] == 'google'
        assert result['rating'] == 4.5
        assert result['review_count'] == 99
        assert result['rating_breakdown'] == {'5': 80, '4': 19}
        assert result['sentiment'] == 0.5
        assert result['captured_at'] == clock.now.isoformat()

    def test_explicit_capture_time(self, reputation, clock):
        earlier = clock.now - timedelta(days=3)
        assert reputation.record_snapshot('yelp', 4, 10, captured_at=earlier)['captured_at'] == earlier.isoformat()

    @pytest.mark.parametrize('kwargs', [
        {'platform': '', 'rating': 4, 'review_count': 1},
        {'platform': 'google', 'rating': 5.5, 'review_count': 1},
        {'platform': 'google', 'rating': 'great', 'review_count': 1},
        {'platform': 'google', 'rating': 4, 'review_count': -1},
        {'platform': 'google', 'rating': 4, 'review_count': 1, 'response_rate': 1.5},
        {'platform': 'google', 'rating': 4, 'review_count': 1, 'sentiment': -2},
        {'platform': 'google', 'rating': 4, 'review_count': 1, 'rating_breakdown': [5, 4]},
        {'platform': 'google', 'rating': 4, 'review_count': 1, 'rating_breakdown': {'5': -3}},
        {'platform': 'google', 'rating': 4, 'review_count': float('inf')},
        {'platform': 'google', 'rating': 4, 'review_count': 'Infinity'},
        {'platform': 'google', 'rating': float('nan'), 'review_count': 1},
        {'platform': 'google', 'rating': 4, 'review_count': 1, 'rating_breakdown': {'5': float('inf')}},
    ])
    def test_rejects_invalid_values(self, reputation, kwargs):
        with pytest.raises(BadRequestError):
            reputation.record_snapshot(**kwargs)

    def test_negative_count_message(self, reputation):
        with pytest.raises(BadRequestError, match='review_count must not be negative'):
            reputation.record_snapshot('google', 4, -5)

    def test_infinite_count_message(self, reputation):
        with pytest.raises(BadRequestError, match='review_count must be a finite number'):
            reputation.record_snapshot('google', 4, float('inf'))


class TestListSnapshots:

    def test_newest_first_and_filtered(self, reputation, clock):
        reputation.record_snapshot('google', 4.0, 10, captured_at=clock.now - timedelta(days=2))
        reputation.record_snapshot('google', 4.2, 12)
        reputation.record_snapshot('yelp', 3.9, 5)

        google = reputation.list_snapshots('Google')
        assert [s['rating'] for s in google] == [4.2, 4.0]
        assert len(reputation.list_snapshots()) == 3
        assert len(reputation.list_snapshots(limit=1)) == 1


class TestReputationScore:

    def test_no_data(self, reputation):
        score = reputation.get_reputation_score()
        assert score['overall_score'] == 0.0
        assert score['risk_level'] == 'unknown'
        assert score['trend'] == {'direction': 'insufficient_data', 'change': None}

    def test_weighted_score_and_alerts(self, reputation):
        reputation.record_snapshot('google', 4.5, 99, response_rate=0.5, sentiment=0.5)
        reputation.record_snapshot('yelp', 3.0, 9)
        score = reputation.get_reputation_score()

        assert score['platform_scores'] == {'google': 86.5, 'yelp': 51.0}
        assert score['overall_score'] == 72.8
        assert score['risk_level'] == 'low'
        assert score['alerts'] == ['yelp rating 3 is below 3.5']

    def test_trend_uses_week_old_baseline(self, reputation, clock):
        reputation.record_snapshot('google', 4.0, 99, response_rate=0.5, sentiment=0.5,
                                   captured_at=clock.now - timedelta(days=10))
        reputation.record_snapshot('google', 4.5, 99, response_rate=0.5, sentiment=0.5)
        assert reputation.get_reputation_score()['trend'] == {'direction': 'improving', 'change': 6.0}

    def test_negative_review_alert(self, reputation):
        reputation.record_snapshot('facebook', 4.8, 40, has_negative_review=True)
        assert reputation.get_reputation_score()['alerts'] == ['New negative review on facebook']
