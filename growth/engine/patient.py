"""
PatientHistory — the visit/review/behavior summary the referral and
reactivation engines read. Built from a PatientHistoryRecord row or by hand
in tests.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class PatientHistory:
    patient_id: str
    first_visit_at: Optional[datetime] = None
    last_visit_at: Optional[datetime] = None
    visit_count: int = 0
    consecutive_visits: int = 0
    appointments_scheduled: int = 0
    appointments_completed: int = 0
    review_count: int = 0
    average_review_rating: Optional[float] = None
    referrals_made: int = 0
    treatment_completed: bool = False
    positive_outcome: Optional[bool] = None
    survey_nps: Optional[float] = None
    lifetime_value: float = 0.0
    address_changed: bool = False
    insurance_lapsed: bool = False
    financial_cancellations: int = 0
    scheduling_cancellations: int = 0
    no_show_count: int = 0
    notes: str = ''
    outreach_opened: int = 0
    outreach_responses: int = 0
    last_referral_outreach_at: Optional[datetime] = None

    def tenure_days(self, now: datetime) -> int:
        if not self.first_visit_at:
            return 0
        return max(0, (now - self.first_visit_at).days)

    def days_since_last_visit(self, now: datetime) -> int:
        if not self.last_visit_at:
            return 0
        return max(0, (now - self.last_visit_at).days)

    def monthly_visit_rate(self, now: datetime) -> float:
        months = max(1.0, self.tenure_days(now) / 30)
        return self.visit_count / months

    def completion_rate(self) -> Optional[float]:
        if not self.appointments_scheduled:
            return None
        return self.appointments_completed / self.appointments_scheduled
