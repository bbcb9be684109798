"""
ReferralOpportunity — cached referral analysis, one row per patient.

Re-analysis updates the row in place.
"""
from sqlalchemy import Column, Integer, Float, Text, Boolean, DateTime, JSON, UniqueConstraint
from sqlalchemy.sql import func

from growth.database import Base


class ReferralOpportunity(Base):
    __tablename__ = 'referral_opportunities'
    __table_args__ = (
        UniqueConstraint('organization_id', 'patient_id', name='uq_referral_opportunity_org_patient'),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    organization_id = Column(Text, nullable=False)
    patient_id = Column(Text, nullable=False)
    nps_score = Column(Float, default=0.0)
    nps_category = Column(Text, default='detractor')
    referral_score = Column(Integer, default=0)
    score_factors = Column(JSON, default=dict)
    visit_count = Column(Integer, default=0)
    consecutive_visits = Column(Integer, default=0)
    referrals_made = Column(Integer, default=0)
    last_visit_at = Column(DateTime, nullable=True)
    last_outreach_at = Column(DateTime, nullable=True)
    outreach_count = Column(Integer, default=0)
    optimal_outreach_date = Column(DateTime, nullable=True)
    is_active = Column(Boolean, default=True)
    analyzed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    def to_dict(self):
        return {
            'patient_id': self.patient_id,
            'nps_score': self.nps_score,
            'nps_category': self.nps_category,
            'referral_score': self.referral_score,
            'factors': self.score_factors or {},
            'visit_count': self.visit_count,
            'consecutive_visits': self.consecutive_visits,
            'referrals_made': self.referrals_made,
            'last_outreach_at': self.last_outreach_at.isoformat() if self.last_outreach_at else None,
            'outreach_count': self.outreach_count,
            'optimal_outreach_date': (
                self.optimal_outreach_date.isoformat() if self.optimal_outreach_date else None
            ),
        }
