"""
Lead model — one row per prospective patient, plus its activity trail.

Leads are never deleted; CONVERTED and LOST are the end of the line.
"""
from sqlalchemy import Column, Integer, Float, Text, Boolean, DateTime, JSON, ForeignKey, Index
from sqlalchemy.sql import func

from growth.database import Base


def _iso(value):
    return value.isoformat() if value else None


class Lead(Base):
    __tablename__ = 'growth_leads'
    __table_args__ = (
        Index('ix_growth_leads_org_status', 'organization_id', 'status'),
        Index('ix_growth_leads_org_email', 'organization_id', 'email'),
        Index('ix_growth_leads_org_phone', 'organization_id', 'phone'),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    organization_id = Column(Text, nullable=False)
    first_name = Column(Text, nullable=True)
    last_name = Column(Text, nullable=True)
    email = Column(Text, nullable=True)
    phone = Column(Text, nullable=True)
    source = Column(Text, nullable=False, default='other')
    notes = Column(Text, nullable=True)

    # Behavioral counters
    website_visits = Column(Integer, default=0)
    page_views = Column(Integer, default=0)
    time_on_site = Column(Integer, default=0)          # seconds
    form_abandoned = Column(Boolean, default=False)
    emails_opened = Column(Integer, default=0)
    links_clicked = Column(Integer, default=0)
    replies_received = Column(Integer, default=0)
    last_page_viewed = Column(Text, nullable=True)

    # Derived by scoring
    quality_score = Column(Integer, default=0)
    urgency_score = Column(Integer, default=0)
    conversion_probability = Column(Float, default=0.0)
    score_factors = Column(JSON, default=dict)
    intent_signals = Column(JSON, default=list)
    score_history = Column(JSON, default=list)       # newest last, bounded
    last_analyzed_at = Column(DateTime, nullable=True)

    status = Column(Text, nullable=False, default='NEW')

    # Nurture position
    nurture_sequence_id = Column(Text, nullable=True)
    nurture_step = Column(Integer, nullable=True)
    nurture_started_at = Column(DateTime, nullable=True)
    nurture_paused_at = Column(DateTime, nullable=True)

    # Routing
    assigned_staff_id = Column(Integer, ForeignKey('staff_members.id'), nullable=True)
    priority_rank = Column(Integer, nullable=True)
    next_action = Column(Text, nullable=True)
    next_action_date = Column(DateTime, nullable=True)

    converted_at = Column(DateTime, nullable=True)
    converted_patient_id = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    def to_dict(self):
        return {
            'id': self.id,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'email': self.email,
            'phone': self.phone,
            'source': self.source,
            'status': self.status,
            'website_visits': self.website_visits,
            'page_views': self.page_views,
            'time_on_site': self.time_on_site,
            'form_abandoned': self.form_abandoned,
            'emails_opened': self.emails_opened,
            'links_clicked': self.links_clicked,
            'replies_received': self.replies_received,
            'last_page_viewed': self.last_page_viewed,
            'quality_score': self.quality_score,
            'urgency_score': self.urgency_score,
            'conversion_probability': self.conversion_probability,
            'score_factors': self.score_factors or {},
            'intent_signals': self.intent_signals or [],
            'nurture_sequence_id': self.nurture_sequence_id,
            'nurture_step': self.nurture_step,
            'nurture_started_at': _iso(self.nurture_started_at),
            'assigned_staff_id': self.assigned_staff_id,
            'priority_rank': self.priority_rank,
            'next_action': self.next_action,
            'next_action_date': _iso(self.next_action_date),
            'last_analyzed_at': _iso(self.last_analyzed_at),
            'created_at': _iso(self.created_at),
        }


class LeadActivity(Base):
    __tablename__ = 'growth_lead_activities'

    id = Column(Integer, primary_key=True, autoincrement=True)
    organization_id = Column(Text, nullable=False)
    lead_id = Column(Integer, ForeignKey('growth_leads.id'), nullable=False, index=True)
    activity_type = Column(Text, nullable=False)   # scored/captured/status_change/nurture_*/response/...
    description = Column(Text, default='')
    details = Column(JSON, default=dict)
    created_at = Column(DateTime, server_default=func.now())

    def to_dict(self):
        return {
            'id': self.id,
            'lead_id': self.lead_id,
            'activity_type': self.activity_type,
            'description': self.description,
            'details': self.details or {},
            'created_at': _iso(self.created_at),
        }
