"""
Nurture sequencing — template selection, step position, content rendering.

Sequence templates are loaded once from nurture_sequences.yaml into frozen
dataclasses and handed to a NurtureEngine. The engine never mutates them;
it only answers "which sequence", "which step next" and "what does the
message say".
"""
import logging
import os
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Mapping, Optional, Tuple

import yaml

logger = logging.getLogger('engine.nurture')

SEQUENCES_PATH = os.path.join(os.path.dirname(__file__), 'nurture_sequences.yaml')

SEQUENCE_IDS = ('awareness', 'consideration', 'decision', 're_engagement')

_PLACEHOLDER = re.compile(r'\{\{(\w+)\}\}')


@dataclass(frozen=True)
class NurtureStep:
    step_number: int
    delay_days: int
    channel: str
    content_type: str
    content: str
    subject: Optional[str] = None

    def to_dict(self):
        return {
            'step_number': self.step_number,
            'delay_days': self.delay_days,
            'channel': self.channel,
            'content_type': self.content_type,
            'subject': self.subject,
        }


@dataclass(frozen=True)
class NurtureSequence:
    id: str
    name: str
    description: str
    target_audience: str
    average_conversion_rate: float
    steps: Tuple[NurtureStep, ...]

    @property
    def step_count(self) -> int:
        return len(self.steps)

    def step(self, number: int) -> NurtureStep:
        return self.steps[number - 1]

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'target_audience': self.target_audience,
            'average_conversion_rate': self.average_conversion_rate,
            'step_count': self.step_count,
            'steps': [s.to_dict() for s in self.steps],
        }


@dataclass(frozen=True)
class NurtureConfig:
    reengage_age_days: int = 21
    reengage_engagement: int = 20
    decision_quality: int = 70
    decision_urgency: int = 50
    consideration_quality: int = 40
    consideration_probability: float = 0.3
    default_first_name: str = 'there'


DEFAULT_NURTURE = NurtureConfig()


def load_sequences(path: str = SEQUENCES_PATH) -> Dict[str, NurtureSequence]:
    """Parse the sequence templates file. Missing sequences are a hard error."""
    with open(path) as f:
        raw = yaml.safe_load(f)

    sequences = {}
    for seq_id in SEQUENCE_IDS:
        data = raw[seq_id]
        steps = tuple(
            NurtureStep(
                step_number=i,
                delay_days=int(s['delay_days']),
                channel=s['channel'],
                content_type=s['content_type'],
                content=s['content'].strip(),
                subject=s.get('subject'),
            )
            for i, s in enumerate(data['steps'], start=1)
        )
        sequences[seq_id] = NurtureSequence(
            id=seq_id,
            name=data['name'],
            description=data['description'],
            target_audience=data['target_audience'],
            average_conversion_rate=float(data['average_conversion_rate']),
            steps=steps,
        )

    logger.info("Loaded %d nurture sequences from %s", len(sequences), path)
    return sequences


def render_content(template: str, context: Mapping[str, str]) -> str:
    """Literal {{name}} substitution. Unknown placeholders are left as-is."""
    def _sub(match):
        value = context.get(match.group(1))
        return match.group(0) if value is None else str(value)

    return _PLACEHOLDER.sub(_sub, template)


class NurtureEngine:

    def __init__(self, sequences: Mapping[str, NurtureSequence],
                 cfg: NurtureConfig = DEFAULT_NURTURE):
        self.sequences = dict(sequences)
        self.cfg = cfg

    def get(self, sequence_id: str) -> NurtureSequence:
        return self.sequences[sequence_id]

    def select(self, quality, urgency, probability, age_days, engagement_score=0) -> NurtureSequence:
        cfg = self.cfg
        if age_days > cfg.reengage_age_days and engagement_score < cfg.reengage_engagement:
            return self.sequences['re_engagement']
        if quality >= cfg.decision_quality and urgency >= cfg.decision_urgency:
            return self.sequences['decision']
        if quality >= cfg.consideration_quality or probability >= cfg.consideration_probability:
            return self.sequences['consideration']
        return self.sequences['awareness']

    @staticmethod
    def start_position(sequence: NurtureSequence, current_sequence_id=None,
                       current_step=None) -> Optional[int]:
        """Step to send when (re)entering a sequence; None once it is exhausted."""
        if current_sequence_id == sequence.id and current_step:
            following = current_step + 1
            return following if following <= sequence.step_count else None
        return 1

    @staticmethod
    def next_position(sequence: NurtureSequence, current_step, skip_to=None) -> Optional[int]:
        """Step after current_step (or skip_to); None means the sequence is complete."""
        target = skip_to if skip_to is not None else (current_step or 0) + 1
        return target if target <= sequence.step_count else None

    @staticmethod
    def resume_position(sequence: NurtureSequence, current_step, restart=False) -> int:
        if restart or not current_step:
            return 1
        return min(current_step, sequence.step_count)

    @staticmethod
    def send_time(step: NurtureStep, started_at: datetime, now: datetime, immediate=True) -> datetime:
        """delay_days counts from the sequence start; never schedule in the past."""
        if immediate and step.step_number == 1:
            return now
        return max(now, started_at + timedelta(days=step.delay_days))

    def render(self, step: NurtureStep, context: Mapping[str, str]) -> Dict[str, Optional[str]]:
        context = dict(context)
        if not context.get('firstName'):
            context['firstName'] = self.cfg.default_first_name
        return {
            'subject': render_content(step.subject, context) if step.subject else None,
            'content': render_content(step.content, context),
        }
