"""
ReactivationOpportunity — lapse analysis and outreach outcome per patient.

status: IDENTIFIED → CONTACTED → ENGAGED → REACTIVATED | DECLINED | LOST
"""
from sqlalchemy import Column, Integer, Float, Text, DateTime, JSON, UniqueConstraint
from sqlalchemy.sql import func

from growth.database import Base


class ReactivationOpportunity(Base):
    __tablename__ = 'reactivation_opportunities'
    __table_args__ = (
        UniqueConstraint('organization_id', 'patient_id', name='uq_reactivation_opportunity_org_patient'),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    organization_id = Column(Text, nullable=False)
    patient_id = Column(Text, nullable=False)
    last_visit_at = Column(DateTime, nullable=True)
    days_lapsed = Column(Integer, default=0)
    lifetime_value = Column(Float, default=0.0)
    likely_reason = Column(Text, default='unknown')
    reason_confidence = Column(Float, default=0.0)
    reason_factors = Column(JSON, default=list)
    reactivation_score = Column(Integer, default=0)
    suggested_approach = Column(Text, nullable=True)
    suggested_channel = Column(Text, nullable=True)
    suggested_offer_id = Column(Text, nullable=True)
    outreach_attempts = Column(Integer, default=0)
    last_outreach_at = Column(DateTime, nullable=True)
    status = Column(Text, nullable=False, default='IDENTIFIED')
    outcome_at = Column(DateTime, nullable=True)
    analyzed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    def to_dict(self):
        return {
            'patient_id': self.patient_id,
            'days_lapsed': self.days_lapsed,
            'lifetime_value': self.lifetime_value,
            'likely_reason': self.likely_reason,
            'confidence': self.reason_confidence,
            'factors': self.reason_factors or [],
            'reactivation_score': self.reactivation_score,
            'suggested_approach': self.suggested_approach,
            'suggested_channel': self.suggested_channel,
            'suggested_offer_id': self.suggested_offer_id,
            'outreach_attempts': self.outreach_attempts,
            'status': self.status,
        }
