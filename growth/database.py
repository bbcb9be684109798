"""
Database engine + session factory.

Always initializes — defaults to SQLite for local dev, Postgres in production.
get_session() always returns a real session.
"""
import importlib

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from growth.config import DATABASE_URL


class Base(DeclarativeBase):
    pass


# Hosted Postgres URLs use postgres:// but SQLAlchemy 2.x requires postgresql://
url = DATABASE_URL.replace('postgres://', 'postgresql://', 1)

# SQLite needs different engine kwargs than Postgres
if url.startswith('sqlite'):
    engine = create_engine(url, connect_args={'check_same_thread': False})
else:
    engine = create_engine(url, pool_pre_ping=True, pool_size=5, max_overflow=10)

SessionLocal = sessionmaker(bind=engine)

MODEL_MODULES = [
    'growth.models.lead',
    'growth.models.patient_history',
    'growth.models.referral_opportunity',
    'growth.models.reactivation_opportunity',
    'growth.models.reputation_metric',
    'growth.models.staff_member',
    'growth.models.scheduled_message',
]


def import_models():
    """Import every model module so Base.metadata knows all tables."""
    for name in MODEL_MODULES:
        importlib.import_module(name)


def init_db(bind=None):
    """Create any missing tables."""
    import_models()
    Base.metadata.create_all(bind or engine)


def get_session():
    """Return a new DB session."""
    return SessionLocal()
