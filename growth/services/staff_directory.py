"""
Staff directory — current load and historical conversion rate per staff member.
"""
from abc import ABC, abstractmethod
from typing import List, Optional

from sqlalchemy import case, func, select

from growth.engine.assignment import StaffCandidate
from growth.engine.lifecycle import LeadStatus, TERMINAL_STATUSES
from growth.models.lead import Lead
from growth.models.staff_member import StaffMember


class StaffDirectory(ABC):

    @abstractmethod
    def list_candidates(self) -> List[StaffCandidate]:
        ...

    @abstractmethod
    def get(self, staff_id) -> Optional[StaffCandidate]:
        ...


class SqlStaffDirectory(StaffDirectory):

    def __init__(self, session, organization_id):
        self.session = session
        self.organization_id = organization_id

    def _stats(self):
        """{staff_id: (open, converted, total)} over assigned leads."""
        terminal = [s.value for s in TERMINAL_STATUSES]
        stmt = (
            select(
                Lead.assigned_staff_id,
                func.sum(case((Lead.status.notin_(terminal), 1), else_=0)).label('open'),
                func.sum(case((Lead.status == LeadStatus.CONVERTED.value, 1), else_=0)).label('converted'),
                func.count(Lead.id).label('total'),
            )
            .where(
                Lead.organization_id == self.organization_id,
                Lead.assigned_staff_id.isnot(None),
            )
            .group_by(Lead.assigned_staff_id)
        )
        return {
            row.assigned_staff_id: (int(row.open or 0), int(row.converted or 0), int(row.total or 0))
            for row in self.session.execute(stmt)
        }

    @staticmethod
    def _candidate(member, stats):
        open_count, converted, total = stats.get(member.id, (0, 0, 0))
        return StaffCandidate(
            staff_id=member.id,
            name=member.name,
            open_lead_count=open_count,
            conversion_rate=round(converted / total, 4) if total else 0.0,
        )

    def list_candidates(self) -> List[StaffCandidate]:
        members = self.session.scalars(
            select(StaffMember)
            .where(StaffMember.organization_id == self.organization_id,
                   StaffMember.is_active.is_(True))
            .order_by(StaffMember.id)
        ).all()
        stats = self._stats()
        return [self._candidate(m, stats) for m in members]

    def get(self, staff_id) -> Optional[StaffCandidate]:
        member = self.session.scalars(
            select(StaffMember)
            .where(StaffMember.organization_id == self.organization_id,
                   StaffMember.id == staff_id,
                   StaffMember.is_active.is_(True))
        ).first()
        if member is None:
            return None
        return self._candidate(member, self._stats())
