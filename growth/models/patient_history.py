"""
PatientHistoryRecord — per-patient visit/review/behavior summary fed by the
practice-management side. Read-only input for referral and reactivation.
"""
from sqlalchemy import Column, Integer, Float, Text, Boolean, DateTime, UniqueConstraint
from sqlalchemy.sql import func

from growth.database import Base
from growth.engine.patient import PatientHistory


class PatientHistoryRecord(Base):
    __tablename__ = 'patient_histories'
    __table_args__ = (
        UniqueConstraint('organization_id', 'patient_id', name='uq_patient_history_org_patient'),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    organization_id = Column(Text, nullable=False)
    patient_id = Column(Text, nullable=False)
    first_name = Column(Text, nullable=True)
    email = Column(Text, nullable=True)
    phone = Column(Text, nullable=True)
    first_visit_at = Column(DateTime, nullable=True)
    last_visit_at = Column(DateTime, nullable=True)
    visit_count = Column(Integer, default=0)
    consecutive_visits = Column(Integer, default=0)
    appointments_scheduled = Column(Integer, default=0)
    appointments_completed = Column(Integer, default=0)
    review_count = Column(Integer, default=0)
    average_review_rating = Column(Float, nullable=True)
    referrals_made = Column(Integer, default=0)
    treatment_completed = Column(Boolean, default=False)
    positive_outcome = Column(Boolean, nullable=True)
    survey_nps = Column(Float, nullable=True)
    lifetime_value = Column(Float, default=0.0)
    address_changed = Column(Boolean, default=False)
    insurance_lapsed = Column(Boolean, default=False)
    financial_cancellations = Column(Integer, default=0)
    scheduling_cancellations = Column(Integer, default=0)
    no_show_count = Column(Integer, default=0)
    notes = Column(Text, default='')
    outreach_opened = Column(Integer, default=0)
    outreach_responses = Column(Integer, default=0)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    def to_history(self, last_referral_outreach_at=None) -> PatientHistory:
        return PatientHistory(
            patient_id=self.patient_id,
            first_visit_at=self.first_visit_at,
            last_visit_at=self.last_visit_at,
            visit_count=self.visit_count or 0,
            consecutive_visits=self.consecutive_visits or 0,
            appointments_scheduled=self.appointments_scheduled or 0,
            appointments_completed=self.appointments_completed or 0,
            review_count=self.review_count or 0,
            average_review_rating=self.average_review_rating,
            referrals_made=self.referrals_made or 0,
            treatment_completed=bool(self.treatment_completed),
            positive_outcome=self.positive_outcome,
            survey_nps=self.survey_nps,
            lifetime_value=self.lifetime_value or 0.0,
            address_changed=bool(self.address_changed),
            insurance_lapsed=bool(self.insurance_lapsed),
            financial_cancellations=self.financial_cancellations or 0,
            scheduling_cancellations=self.scheduling_cancellations or 0,
            no_show_count=self.no_show_count or 0,
            notes=self.notes or '',
            outreach_opened=self.outreach_opened or 0,
            outreach_responses=self.outreach_responses or 0,
            last_referral_outreach_at=last_referral_outreach_at,
        )
