"""
StaffMember model — people leads can be routed to.
"""
from sqlalchemy import Column, Integer, Text, Boolean, DateTime
from sqlalchemy.sql import func

from growth.database import Base


class StaffMember(Base):
    __tablename__ = 'staff_members'

    id = Column(Integer, primary_key=True, autoincrement=True)
    organization_id = Column(Text, nullable=False)
    name = Column(Text, nullable=False)
    email = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, server_default=func.now())
