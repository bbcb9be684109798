"""
Send-time heuristic shared by nurture and reactivation outreach.

Picks the next Tuesday–Thursday and a morning or afternoon slot. If the
resulting instant is not in the future it moves forward one week.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Tuple

_DAY_NAMES = ['Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday', 'Sunday']


@dataclass(frozen=True)
class TimingConfig:
    # datetime.weekday() -> days to add to reach Tue/Wed/Thu
    day_offsets: Dict[int, int] = field(default_factory=lambda: {
        0: 1, 1: 0, 2: 0, 3: 0, 4: 4, 5: 3, 6: 2,
    })
    morning_slot: Tuple = (10, 0)
    afternoon_slot: Tuple = (14, 0)
    engaged_time_on_site: int = 300
    click_threshold: int = 2
    timezone: str = 'America/Los_Angeles'


@dataclass
class OptimalTiming:
    send_at: datetime
    day_of_week: str
    time_of_day: str
    timezone: str
    reason: str

    def to_dict(self):
        return {
            'send_at': self.send_at.isoformat(),
            'day_of_week': self.day_of_week,
            'time_of_day': self.time_of_day,
            'timezone': self.timezone,
            'reason': self.reason,
        }


DEFAULT_TIMING = TimingConfig()


def _label(slot):
    hour, minute = slot
    suffix = 'AM' if hour < 12 else 'PM'
    display = hour % 12 or 12
    return f'{display}:{minute:02d} {suffix}'


def optimal_send_time(now: datetime, time_on_site=0, emails_opened=0, links_clicked=0,
                      cfg: TimingConfig = DEFAULT_TIMING) -> OptimalTiming:
    day = (now + timedelta(days=cfg.day_offsets[now.weekday()])).date()

    slot = cfg.morning_slot
    reason = 'Default mid-morning time for professional communications'
    if time_on_site > cfg.engaged_time_on_site and emails_opened > 0:
        slot = cfg.afternoon_slot
        reason = 'Lead shows strong engagement; optimal afternoon timing for follow-up'
    # Heavy clickers respond best to an early touch
    if links_clicked > cfg.click_threshold:
        slot = cfg.morning_slot
        reason = 'High-engagement lead; morning timing for immediate action'

    send_at = datetime(day.year, day.month, day.day, slot[0], slot[1], tzinfo=now.tzinfo)
    if send_at <= now:
        send_at += timedelta(days=7)

    return OptimalTiming(
        send_at=send_at,
        day_of_week=_DAY_NAMES[send_at.weekday()],
        time_of_day=_label(slot),
        timezone=cfg.timezone,
        reason=reason,
    )
