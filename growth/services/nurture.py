"""
Nurture service — drives a lead through a message sequence and reacts to
what the lead does in response.

Position rules live in NurtureEngine; this module persists them, queues the
messages and applies the resulting lifecycle events.
"""
import logging
from datetime import datetime

from growth.config import ENGAGEMENT_TYPES, PRACTICE_NAME, PRACTICE_PHONE, PRACTICE_SUBDOMAIN, RESPONSE_TYPES
from growth.engine.lifecycle import LeadEvent, LeadStatus, is_terminal
from growth.engine.nurture import SEQUENCE_IDS
from growth.engine.responses import decide_response, engagement_effect, engagement_score
from growth.engine.timing import optimal_send_time
from growth.errors import BadRequestError
from growth.models.lead import Lead, LeadActivity
from growth.models.scheduled_message import ScheduledMessage

logger = logging.getLogger('services.nurture')

COMPLETED_ACTION = 'Nurture sequence completed - manual follow-up recommended'


def default_practice():
    return {
        'practiceName': PRACTICE_NAME,
        'practicePhone': PRACTICE_PHONE,
        'bookingLink': f'https://booking.{PRACTICE_SUBDOMAIN or "practice"}.com',
    }


class NurtureService:

    def __init__(self, repo, audit, sender, leads, engine, practice=None, clock=datetime.now):
        self.repo = repo
        self.audit = audit
        self.sender = sender
        self.leads = leads
        self.engine = engine
        self.practice = practice or default_practice()
        self.clock = clock

    @property
    def config(self):
        return self.leads.config

    # ── Helpers ──────────────────────────────────────────────────────────────

    def _engagement(self, lead):
        return engagement_score(
            lead.emails_opened or 0, lead.links_clicked or 0, lead.replies_received or 0,
            lead.nurture_step, self.config.responses,
        )

    def _queue(self, lead, step, scheduled_at):
        recipient = lead.email if step.channel == 'EMAIL' else lead.phone
        if not recipient:
            logger.warning("Lead %s has no %s recipient; step %s not queued",
                           lead.id, step.channel, step.step_number)
            return None

        context = dict(self.practice)
        context['firstName'] = lead.first_name or ''
        context['lastName'] = lead.last_name or ''
        rendered = self.engine.render(step, context)
        return self.sender.send(
            step.channel, recipient, rendered['content'], scheduled_at,
            subject=rendered['subject'], lead_id=lead.id,
        )

    def _cancel_pending(self, lead, now):
        pending = self.repo.query(
            ScheduledMessage,
            ScheduledMessage.lead_id == lead.id,
            ScheduledMessage.status == 'scheduled',
            ScheduledMessage.scheduled_at > now,
        )
        for message in pending:
            self.repo.update(message, status='cancelled')
        return len(pending)

    def _park(self, lead, now, reason):
        """Stop the automated sequence of a lead that staff now own.

        Queued steps are cancelled and the position is kept, so
        resume_nurture can pick the sequence back up later.
        """
        cancelled = self._cancel_pending(lead, now)
        lead.nurture_paused_at = now
        self.leads.log_activity(lead, 'nurture_paused', reason,
                                sequence_id=lead.nurture_sequence_id, step=lead.nurture_step)
        self.audit.record('lead.nurture_paused', 'lead', {
            'lead_id': lead.id, 'sequence_id': lead.nurture_sequence_id,
            'step': lead.nurture_step, 'cancelled_messages': cancelled, 'reason': reason,
        })
        logger.info("Lead %s left nurture %s (%s); %s message(s) cancelled",
                    lead.id, lead.nurture_sequence_id, reason, cancelled)
        return cancelled

    def _schedule_step(self, lead, sequence, position, scheduled_at):
        step = sequence.step(position)
        message = self._queue(lead, step, scheduled_at)
        lead.nurture_sequence_id = sequence.id
        lead.nurture_step = position
        lead.nurture_paused_at = None
        lead.next_action = f'Send {sequence.name} step {position}'
        lead.next_action_date = scheduled_at
        return {
            'lead_id': lead.id,
            'sequence': {'id': sequence.id, 'name': sequence.name},
            'current_step': position,
            'total_steps': sequence.step_count,
            'channel': step.channel,
            'scheduled_at': scheduled_at.isoformat(),
            'message_queued': message is not None,
            'completed': False,
            'status': lead.status,
        }

    def _require_active(self, lead):
        if lead.status != LeadStatus.NURTURING.value:
            raise BadRequestError(f"Lead {lead.id} is not in an active nurture sequence")
        if not lead.nurture_sequence_id:
            raise BadRequestError(f"Lead {lead.id} has no nurture sequence")

    # ── Sequence lifecycle ───────────────────────────────────────────────────

    def nurture_lead(self, lead_id, sequence_type=None, immediate=True) -> dict:
        if sequence_type is not None and sequence_type not in SEQUENCE_IDS:
            raise BadRequestError(f"Unknown nurture sequence: {sequence_type}")

        now = self.clock()
        with self.repo.transaction():
            lead = self.leads.get_lead(lead_id)
            if is_terminal(lead.status):
                raise BadRequestError(f"Lead {lead_id} is {lead.status} and cannot be nurtured")

            if sequence_type:
                sequence = self.engine.get(sequence_type)
            else:
                score = self.leads.score(lead, now)
                sequence = self.engine.select(
                    score['quality_score'], score['urgency_score'],
                    score['conversion_probability'], self.leads.age_days(lead, now),
                    self._engagement(lead),
                )

            position = self.engine.start_position(sequence, lead.nurture_sequence_id, lead.nurture_step)
            if position is None:
                return {
                    'lead_id': lead.id,
                    'sequence': {'id': sequence.id, 'name': sequence.name},
                    'current_step': lead.nurture_step,
                    'total_steps': sequence.step_count,
                    'scheduled_at': None,
                    'completed': True,
                    'status': lead.status,
                }

            if lead.nurture_sequence_id != sequence.id or not lead.nurture_started_at:
                lead.nurture_started_at = now
            # The new position supersedes anything still queued for this lead
            superseded = self._cancel_pending(lead, now)
            scheduled_at = self.engine.send_time(
                sequence.step(position), lead.nurture_started_at, now, immediate,
            )
            self.leads.apply(lead, LeadEvent.NURTURE_STARTED, 'nurture_started')
            result = self._schedule_step(lead, sequence, position, scheduled_at)

            self.leads.log_activity(lead, 'nurture_step', lead.next_action,
                                    sequence_id=sequence.id, step=position)
            self.audit.record('lead.nurture_started', 'lead', {
                'lead_id': lead.id, 'sequence_id': sequence.id, 'step': position,
                'cancelled_messages': superseded,
            })

        logger.info("Lead %s nurture %s step %s scheduled for %s",
                    lead_id, sequence.id, position, result['scheduled_at'])
        return result

    def advance_nurture_step(self, lead_id, skip_to=None, mark_engaged=False) -> dict:
        if skip_to is not None and skip_to < 1:
            raise BadRequestError("skip_to must be 1 or greater")

        now = self.clock()
        with self.repo.transaction():
            lead = self.leads.get_lead(lead_id)
            self._require_active(lead)
            sequence = self.engine.get(lead.nurture_sequence_id)

            if mark_engaged:
                self.repo.increment(lead, 'emails_opened')

            position = self.engine.next_position(sequence, lead.nurture_step, skip_to)
            if position is None:
                return self._complete(lead, sequence)

            scheduled_at = self.engine.send_time(
                sequence.step(position), lead.nurture_started_at or now, now, immediate=False,
            )
            result = self._schedule_step(lead, sequence, position, scheduled_at)
            self.leads.log_activity(lead, 'nurture_step', lead.next_action,
                                    sequence_id=sequence.id, step=position)
            self.audit.record('lead.nurture_advanced', 'lead', {
                'lead_id': lead.id, 'sequence_id': sequence.id, 'step': position,
            })
            return result

    def _complete(self, lead, sequence):
        finished_step = lead.nurture_step
        self.leads.apply(lead, LeadEvent.NURTURE_COMPLETED, 'nurture_completed')
        lead.nurture_sequence_id = None
        lead.nurture_step = None
        lead.nurture_started_at = None
        lead.nurture_paused_at = None
        lead.next_action = COMPLETED_ACTION
        lead.next_action_date = self.clock()

        self.leads.log_activity(lead, 'nurture_completed', COMPLETED_ACTION,
                                sequence_id=sequence.id, last_step=finished_step)
        self.audit.record('lead.nurture_completed', 'lead', {
            'lead_id': lead.id, 'sequence_id': sequence.id,
        })
        logger.info("Lead %s completed nurture %s (status=%s)", lead.id, sequence.id, lead.status)
        return {
            'lead_id': lead.id,
            'sequence': {'id': sequence.id, 'name': sequence.name},
            'current_step': None,
            'total_steps': sequence.step_count,
            'scheduled_at': None,
            'completed': True,
            'status': lead.status,
            'next_action': COMPLETED_ACTION,
        }

    def pause_nurture(self, lead_id, reason=None) -> dict:
        now = self.clock()
        with self.repo.transaction():
            lead = self.leads.get_lead(lead_id)
            self._require_active(lead)

            self.leads.apply(lead, LeadEvent.NURTURE_PAUSED, reason or 'nurture_paused')
            lead.nurture_paused_at = now
            lead.next_action = 'Nurture paused'
            cancelled = self._cancel_pending(lead, now)

            self.leads.log_activity(lead, 'nurture_paused', reason or '',
                                    sequence_id=lead.nurture_sequence_id, step=lead.nurture_step)
            self.audit.record('lead.nurture_paused', 'lead', {
                'lead_id': lead.id, 'sequence_id': lead.nurture_sequence_id,
                'step': lead.nurture_step, 'cancelled_messages': cancelled,
            })
            return {
                'lead_id': lead.id,
                'status': lead.status,
                'sequence_id': lead.nurture_sequence_id,
                'current_step': lead.nurture_step,
                'cancelled_messages': cancelled,
            }

    def resume_nurture(self, lead_id, restart=False) -> dict:
        now = self.clock()
        with self.repo.transaction():
            lead = self.leads.get_lead(lead_id)
            if is_terminal(lead.status):
                raise BadRequestError(f"Lead {lead_id} is {lead.status} and cannot be nurtured")
            if not lead.nurture_sequence_id:
                raise BadRequestError(f"Lead {lead_id} has no nurture sequence to resume")
            if (lead.status == LeadStatus.NURTURING.value and lead.nurture_paused_at is None
                    and not restart):
                raise BadRequestError(f"Lead {lead_id} nurture sequence is already active")

            sequence = self.engine.get(lead.nurture_sequence_id)
            position = self.engine.resume_position(sequence, lead.nurture_step, restart)
            if restart or not lead.nurture_started_at:
                lead.nurture_started_at = now
            self._cancel_pending(lead, now)

            scheduled_at = self.engine.send_time(
                sequence.step(position), lead.nurture_started_at, now, immediate=restart,
            )
            self.leads.apply(lead, LeadEvent.NURTURE_RESUMED, 'nurture_resumed')
            result = self._schedule_step(lead, sequence, position, scheduled_at)

            self.leads.log_activity(lead, 'nurture_resumed', lead.next_action,
                                    sequence_id=sequence.id, step=position, restart=restart)
            self.audit.record('lead.nurture_resumed', 'lead', {
                'lead_id': lead.id, 'sequence_id': sequence.id, 'step': position,
                'restart': restart,
            })
            return result

    # ── Inbound ──────────────────────────────────────────────────────────────

    def handle_response(self, lead_id, response_type, content=None) -> dict:
        if response_type not in RESPONSE_TYPES:
            raise BadRequestError(f"Unknown response type: {response_type}")

        now = self.clock()
        decision = decide_response(response_type, content, self.config.responses)
        with self.repo.transaction():
            lead = self.leads.get_lead(lead_id)

            if response_type in ('email_reply', 'sms_reply'):
                self.repo.increment(lead, 'replies_received')

            terminal = is_terminal(lead.status)
            was_nurturing = lead.status == LeadStatus.NURTURING.value
            if not terminal and decision.urgency_bump:
                lead.urgency_score = min(100, (lead.urgency_score or 0) + decision.urgency_bump)
            if decision.event is not None:
                self.leads.apply(lead, decision.event, f'response:{response_type}')

            cancelled = 0
            if decision.event is LeadEvent.UNSUBSCRIBE:
                cancelled = self._cancel_pending(lead, now)
                lead.next_action = None
                lead.next_action_date = None
            else:
                if (was_nurturing and lead.nurture_sequence_id
                        and lead.status != LeadStatus.NURTURING.value):
                    cancelled = self._park(lead, now, f'response:{response_type}')
                if decision.escalate and not terminal:
                    self.leads.route_to_staff(lead, f'response:{response_type}')
                    lead.next_action = decision.suggested_action
                    lead.next_action_date = now

            # Replies bypass the scoring cache
            lead.last_analyzed_at = None

            self.leads.log_activity(
                lead, 'response', decision.suggested_action,
                response_type=response_type,
                sentiment=decision.analysis.sentiment,
                urgency=decision.analysis.urgency,
            )
            self.audit.record('lead.response', 'lead', {
                'lead_id': lead.id, 'response_type': response_type,
                'sentiment': decision.analysis.sentiment, 'urgency': decision.analysis.urgency,
            })

            return {
                'lead_id': lead.id,
                'sentiment': decision.analysis.sentiment,
                'urgency': decision.analysis.urgency,
                'escalate': decision.escalate and not terminal,
                'requires_human_follow_up': decision.requires_human_follow_up,
                'suggested_action': decision.suggested_action,
                'status': lead.status,
                'assigned_staff_id': lead.assigned_staff_id,
                'cancelled_messages': cancelled,
            }

    def record_engagement(self, lead_id, engagement_type) -> dict:
        if engagement_type not in ENGAGEMENT_TYPES:
            raise BadRequestError(f"Unknown engagement type: {engagement_type}")

        now = self.clock()
        with self.repo.transaction():
            lead = self.leads.get_lead(lead_id)
            effect = engagement_effect(engagement_type, lead.links_clicked or 0, self.config.responses)

            counter = {
                'email_opened': 'emails_opened',
                'link_clicked': 'links_clicked',
                'reply': 'replies_received',
            }.get(engagement_type)
            if counter:
                self.repo.increment(lead, counter)

            terminal = is_terminal(lead.status)
            was_nurturing = lead.status == LeadStatus.NURTURING.value
            if not terminal and effect.urgency_bump:
                lead.urgency_score = min(100, (lead.urgency_score or 0) + effect.urgency_bump)
            if effect.event is not None:
                self.leads.apply(lead, effect.event, f'engagement:{engagement_type}')
            if engagement_type == 'opt_out':
                self._cancel_pending(lead, now)
                lead.next_action = None
            else:
                if (was_nurturing and lead.nurture_sequence_id
                        and lead.status != LeadStatus.NURTURING.value):
                    self._park(lead, now, f'engagement:{engagement_type}')
                if effect.escalate and not terminal:
                    self.leads.route_to_staff(lead, f'engagement:{engagement_type}')

            lead.last_analyzed_at = None
            score = self._engagement(lead)
            self.leads.log_activity(lead, 'engagement', engagement_type,
                                    engagement_type=engagement_type, engagement_score=score)
            return {
                'lead_id': lead.id,
                'engagement_type': engagement_type,
                'engagement_score': score,
                'escalated': effect.escalate and not terminal,
                'status': lead.status,
            }

    # ── Read models ──────────────────────────────────────────────────────────

    def get_sequences(self) -> list:
        return [self.engine.get(seq_id).to_dict() for seq_id in SEQUENCE_IDS]

    def get_optimal_timing(self, lead_id) -> dict:
        lead = self.leads.get_lead(lead_id)
        timing = optimal_send_time(
            self.clock(), lead.time_on_site or 0, lead.emails_opened or 0,
            lead.links_clicked or 0, self.config.timing,
        )
        return {'lead_id': lead.id, **timing.to_dict()}

    def get_nurture_analytics(self) -> dict:
        """Per-sequence counts plus where active leads currently sit."""
        stats = {
            seq_id: {
                'name': self.engine.get(seq_id).name,
                'active': 0,
                'paused': 0,
                'completed': 0,
                'converted': 0,
                'leads_by_step': {},
            }
            for seq_id in SEQUENCE_IDS
        }

        for lead in self.repo.query(Lead, Lead.nurture_sequence_id.isnot(None), order_by=Lead.id):
            bucket = stats.get(lead.nurture_sequence_id)
            if bucket is None:
                continue
            if lead.status == LeadStatus.CONVERTED.value:
                bucket['converted'] += 1
            elif lead.nurture_paused_at is not None:
                bucket['paused'] += 1
            elif lead.status == LeadStatus.NURTURING.value:
                bucket['active'] += 1
                step = lead.nurture_step or 0
                bucket['leads_by_step'][step] = bucket['leads_by_step'].get(step, 0) + 1

        completions = self.repo.query(LeadActivity, LeadActivity.activity_type == 'nurture_completed')
        for activity in completions:
            seq_id = (activity.details or {}).get('sequence_id')
            if seq_id in stats:
                stats[seq_id]['completed'] += 1

        for bucket in stats.values():
            bucket['leads_by_step'] = dict(sorted(bucket['leads_by_step'].items()))
        return stats
