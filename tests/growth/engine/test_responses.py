"""Tests for growth.engine.responses — reply classification and engagement."""
import pytest

from growth.engine.lifecycle import LeadEvent
from growth.engine.responses import (
    analyze_response,
    decide_response,
    engagement_effect,
    engagement_score,
)


class TestAnalyzeResponse:

    def test_positive_and_urgent(self):
        analysis = analyze_response("Yes, I'm interested and ready to book today, my back pain is bad")
        assert analysis.sentiment == 'positive'
        assert analysis.urgency == 'high'
        assert analysis.positive_matches == ['yes', 'interested', 'ready', 'book']
        assert analysis.urgent_matches == ['pain', 'today']

    def test_negative_phrase_is_not_also_positive(self):
        analysis = analyze_response('Not interested, please stop')
        assert analysis.sentiment == 'negative'
        assert analysis.positive_matches == []
        assert analysis.negative_matches == ['not interested', 'stop']
        assert analysis.urgency == 'low'

    def test_keywords_match_whole_words_only(self):
        analysis = analyze_response('I know nothing about it')
        assert analysis.negative_matches == []
        assert analysis.sentiment == 'neutral'

    def test_inflections_match(self):
        analysis = analyze_response('Booked it')
        assert analysis.positive_matches == ['book']
        assert analysis.urgency == 'medium'

    @pytest.mark.parametrize('text', [None, '', '   '])
    def test_empty_text(self, text):
        analysis = analyze_response(text)
        assert (analysis.sentiment, analysis.urgency) == ('neutral', 'medium')

    def test_two_positives_and_one_urgent_is_high(self):
        assert analyze_response('Great, thanks, tomorrow works').urgency == 'high'


class TestDecideResponse:

    def test_unsubscribe_terminates_without_escalation(self):
        decision = decide_response('unsubscribe', 'yes please book me')
        assert decision.event is LeadEvent.UNSUBSCRIBE
        assert decision.escalate is False
        assert decision.requires_human_follow_up is False

    def test_booking_attempt_is_ready(self):
        decision = decide_response('booking_attempt')
        assert decision.event is LeadEvent.READY_SIGNAL
        assert decision.escalate is True
        assert decision.requires_human_follow_up is True

    def test_call_request_escalates(self):
        decision = decide_response('call_request', 'call me')
        assert decision.event is LeadEvent.ESCALATED
        assert decision.suggested_action == 'Lead requested a call - respond within 1 hour'

    def test_positive_reply(self):
        decision = decide_response('email_reply', 'Thanks, sounds great')
        assert decision.event is LeadEvent.POSITIVE_REPLY
        assert decision.urgency_bump == 0

    def test_urgent_reply_bumps_urgency(self):
        decision = decide_response('sms_reply', 'the pain is bad, need help asap')
        assert decision.event is LeadEvent.URGENT_REPLY
        assert decision.urgency_bump == 30
        assert decision.requires_human_follow_up is True

    def test_neutral_reply_still_routes(self):
        decision = decide_response('sms_reply', 'ok')
        assert decision.event is None
        assert decision.escalate is True
        assert decision.requires_human_follow_up is False
        assert decision.suggested_action == 'Continue nurture sequence with personalized touch'


class TestEngagement:

    def test_score_caps_per_kind(self):
        assert engagement_score(3, 2, 1) == 80
        assert engagement_score(10, 0, 0) == 30

    def test_early_step_bonus(self):
        assert engagement_score(3, 2, 1, current_step=1) == 90
        assert engagement_score(3, 2, 1, current_step=3) == 80
        assert engagement_score(1, 0, 0, current_step=1) == 10

    def test_early_step_bonus_applies_before_first_step(self):
        assert engagement_score(3, 0, 0, current_step=0) == 40
        assert engagement_score(3, 0, 0, current_step=None) == 30

    def test_score_capped_at_100(self):
        assert engagement_score(5, 5, 5, current_step=1) == 100

    def test_third_click_escalates(self):
        effect = engagement_effect('link_clicked', previous_clicks=2)
        assert effect.event is LeadEvent.ESCALATED
        assert effect.escalate is True
        assert effect.urgency_bump == 15

    def test_early_click_does_not_escalate(self):
        effect = engagement_effect('link_clicked', previous_clicks=1)
        assert effect.event is None
        assert effect.escalate is False

    def test_reply_and_opt_out(self):
        assert engagement_effect('reply').event is LeadEvent.POSITIVE_REPLY
        assert engagement_effect('opt_out').event is LeadEvent.UNSUBSCRIBE

    def test_unknown_type_raises(self):
        with pytest.raises(ValueError):
            engagement_effect('carrier_pigeon')
