"""Tests for growth.engine.lifecycle — score-driven and event-driven transitions."""
import pytest

from growth.engine.lifecycle import (
    LeadEvent,
    LeadStatus,
    LifecycleConfig,
    apply_event,
    can_set_manually,
    evaluate_status,
    is_terminal,
)


class TestEvaluateStatus:

    def test_hot_needs_quality_and_urgency(self):
        assert evaluate_status('NEW', 70, 60, 0.1, 0) is LeadStatus.HOT
        assert evaluate_status('NEW', 70, 59, 0.1, 0) is LeadStatus.WARM

    def test_warm_by_probability(self):
        assert evaluate_status('SCORING', 10, 0, 0.4, 0) is LeadStatus.WARM

    def test_cold_needs_low_quality_and_age(self):
        assert evaluate_status('NEW', 29, 0, 0.1, 15) is LeadStatus.COLD
        assert evaluate_status('NEW', 29, 0, 0.1, 14) is LeadStatus.NEW

    def test_other_statuses_are_untouched(self):
        for status in ('HOT', 'WARM', 'COLD', 'NURTURING', 'READY', 'CONVERTED', 'LOST'):
            assert evaluate_status(status, 90, 90, 0.9, 0) is LeadStatus(status)

    def test_thresholds_come_from_config(self):
        cfg = LifecycleConfig(hot_quality=90)
        assert evaluate_status('NEW', 80, 80, 0.1, 0, cfg) is LeadStatus.WARM


class TestApplyEvent:

    @pytest.mark.parametrize('event, expected', [
        (LeadEvent.POSITIVE_REPLY, LeadStatus.HOT),
        (LeadEvent.URGENT_REPLY, LeadStatus.HOT),
        (LeadEvent.ESCALATED, LeadStatus.HOT),
        (LeadEvent.UNSUBSCRIBE, LeadStatus.LOST),
        (LeadEvent.CONVERSION, LeadStatus.CONVERTED),
        (LeadEvent.READY_SIGNAL, LeadStatus.READY),
        (LeadEvent.NURTURE_STARTED, LeadStatus.NURTURING),
        (LeadEvent.NURTURE_RESUMED, LeadStatus.NURTURING),
        (LeadEvent.NURTURE_PAUSED, LeadStatus.WARM),
    ])
    def test_forced_targets(self, event, expected):
        assert apply_event('COLD', event) is expected

    def test_nurture_completion_depends_on_quality(self):
        assert apply_event('NURTURING', LeadEvent.NURTURE_COMPLETED, quality=70) is LeadStatus.HOT
        assert apply_event('NURTURING', LeadEvent.NURTURE_COMPLETED, quality=69) is LeadStatus.WARM

    @pytest.mark.parametrize('terminal', ['CONVERTED', 'LOST'])
    def test_terminal_statuses_absorb_events(self, terminal):
        for event in LeadEvent:
            assert apply_event(terminal, event, quality=100) is LeadStatus(terminal)

    def test_unknown_event_raises(self):
        with pytest.raises(ValueError):
            apply_event('NEW', 'teleported')


class TestManualOverride:

    def test_active_lead_can_go_anywhere(self):
        assert can_set_manually('WARM', 'LOST')
        assert can_set_manually('COLD', 'HOT')

    def test_terminal_lead_cannot_leave(self):
        assert not can_set_manually('LOST', 'HOT')
        assert not can_set_manually('CONVERTED', 'NURTURING')
        assert can_set_manually('LOST', 'LOST')

    def test_is_terminal(self):
        assert is_terminal('CONVERTED')
        assert not is_terminal(LeadStatus.READY)
