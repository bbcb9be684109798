"""Tests for growth.services.staff_directory — load and conversion stats."""
from growth.config import DEFAULT_ORGANIZATION_ID as ORG
from growth.services.staff_directory import SqlStaffDirectory


class TestSqlStaffDirectory:

    def test_candidates_with_stats(self, db_session, make_staff, make_lead):
        alex = make_staff('Alex')
        blair = make_staff('Blair')
        make_lead(email='1@example.com', assigned_staff_id=alex.id, status='HOT')
        make_lead(email='2@example.com', assigned_staff_id=alex.id, status='CONVERTED')
        make_lead(email='3@example.com', assigned_staff_id=alex.id, status='LOST')
        make_lead(email='4@example.com', assigned_staff_id=alex.id, status='CONVERTED')

        candidates = SqlStaffDirectory(db_session, ORG).list_candidates()
        assert [c.name for c in candidates] == ['Alex', 'Blair']
        assert candidates[0].open_lead_count == 1
        assert candidates[0].conversion_rate == 0.5
        assert candidates[1].open_lead_count == 0
        assert candidates[1].conversion_rate == 0.0
        assert candidates[1].staff_id == blair.id

    def test_inactive_and_foreign_staff_excluded(self, db_session, make_staff):
        make_staff('Gone', is_active=False)
        make_staff('Elsewhere', organization_id='other-practice')
        directory = SqlStaffDirectory(db_session, ORG)
        assert directory.list_candidates() == []

    def test_get(self, db_session, make_staff):
        alex = make_staff('Alex')
        directory = SqlStaffDirectory(db_session, ORG)
        assert directory.get(alex.id).name == 'Alex'
        assert directory.get(alex.id + 100) is None
