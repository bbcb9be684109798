"""
ScheduledMessage — outbox row for a nurture or outreach message.

Delivery happens elsewhere; this table is what gets handed over.
"""
from sqlalchemy import Column, Integer, Text, DateTime, ForeignKey
from sqlalchemy.sql import func

from growth.database import Base


class ScheduledMessage(Base):
    __tablename__ = 'scheduled_messages'

    id = Column(Integer, primary_key=True, autoincrement=True)
    organization_id = Column(Text, nullable=False)
    lead_id = Column(Integer, ForeignKey('growth_leads.id'), nullable=True, index=True)
    patient_id = Column(Text, nullable=True)
    channel = Column(Text, nullable=False)        # EMAIL / SMS / PHONE
    recipient = Column(Text, nullable=False)
    subject = Column(Text, nullable=True)
    content = Column(Text, nullable=False)
    scheduled_at = Column(DateTime, nullable=False)
    status = Column(Text, nullable=False, default='scheduled')
    created_at = Column(DateTime, server_default=func.now())
