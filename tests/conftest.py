"""Shared test fixtures."""
from datetime import datetime, timedelta
from functools import partial
from unittest.mock import patch

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from growth.config import DEFAULT_ORGANIZATION_ID
from growth.database import init_db

# A Tuesday morning; every service test runs against this instant
FIXED_NOW = datetime(2026, 3, 10, 9, 0)

ORG = DEFAULT_ORGANIZATION_ID


class FixedClock:
    """Callable clock that tests can move forward explicitly."""

    def __init__(self, now=FIXED_NOW):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture(autouse=True)
def reset_engine_caches():
    """Reset module-level caches between tests so each test starts clean."""
    import growth.engine.config as config_mod
    import growth.services.registry as registry_mod
    config_mod._growth_config = None
    registry_mod._nurture_engine = None
    registry_mod._reactivation_engine = None
    yield
    config_mod._growth_config = None
    registry_mod._nurture_engine = None
    registry_mod._reactivation_engine = None


@pytest.fixture
def db_engine():
    """In-memory SQLite engine with schema created."""
    engine = create_engine('sqlite:///:memory:')
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    """SQLAlchemy session bound to in-memory SQLite. Rolls back after each test."""
    Session = sessionmaker(bind=db_engine)
    session = Session()
    yield session
    session.rollback()
    session.close()


@pytest.fixture(autouse=True)
def patch_get_session(db_session):
    """Route all get_session() calls to the test session.

    We disable close() so that route handlers closing their session
    don't invalidate the shared test session.
    """
    _real_close = db_session.close
    db_session.close = lambda: None
    with patch('growth.database.get_session', return_value=db_session):
        yield db_session
    db_session.close = _real_close


@pytest.fixture
def app():
    """Flask test app."""
    from growth import create_app
    app = create_app()
    app.config['TESTING'] = True
    yield app


@pytest.fixture
def client(app, clock):
    """Flask test client. Request services run on the test clock."""
    from growth.services.registry import build_services
    pinned = partial(build_services, clock=clock)
    with patch('growth.routes.common.build_services', pinned):
        with app.test_client() as c:
            yield c


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def services(db_session, clock):
    """All operation services for the default organization on the test session."""
    from growth.services.registry import build_services
    return build_services(db_session, ORG, clock=clock)


@pytest.fixture
def make_lead(db_session, clock):
    """Factory fixture — inserts a Lead row directly, bypassing capture."""
    from growth.models.lead import Lead

    def _make(**overrides):
        defaults = dict(
            organization_id=ORG,
            first_name='Jordan',
            last_name='Rivera',
            email='jordan@example.com',
            phone='555-0100',
            source='website',
            website_visits=0,
            page_views=0,
            time_on_site=0,
            form_abandoned=False,
            emails_opened=0,
            links_clicked=0,
            replies_received=0,
            quality_score=0,
            urgency_score=0,
            conversion_probability=0.0,
            score_history=[],
            status='NEW',
            created_at=clock.now,
        )
        defaults.update(overrides)
        lead = Lead(**defaults)
        db_session.add(lead)
        db_session.commit()
        return lead
    return _make


@pytest.fixture
def make_patient(db_session, clock):
    """Factory fixture — inserts a PatientHistoryRecord."""
    from growth.models.patient_history import PatientHistoryRecord

    def _make(patient_id='p-1', **overrides):
        defaults = dict(
            organization_id=ORG,
            patient_id=patient_id,
            first_name='Sam',
            email=f'{patient_id}@example.com',
            phone='555-0199',
            first_visit_at=clock.now - timedelta(days=400),
            last_visit_at=clock.now - timedelta(days=2),
            visit_count=10,
            consecutive_visits=3,
            lifetime_value=800.0,
            notes='',
        )
        defaults.update(overrides)
        record = PatientHistoryRecord(**defaults)
        db_session.add(record)
        db_session.commit()
        return record
    return _make


@pytest.fixture
def make_staff(db_session):
    """Factory fixture — inserts an active StaffMember."""
    from growth.models.staff_member import StaffMember

    def _make(name='Alex Morgan', **overrides):
        defaults = dict(organization_id=ORG, name=name, is_active=True)
        defaults.update(overrides)
        member = StaffMember(**defaults)
        db_session.add(member)
        db_session.commit()
        return member
    return _make
