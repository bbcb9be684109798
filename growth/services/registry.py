"""
Service wiring — builds the operation services for one organization on one
session.

Sequence templates and the offer catalog are loaded once per process and
shared by every request.
"""
from dataclasses import dataclass
from datetime import datetime

from growth.config import DEFAULT_ORGANIZATION_ID
from growth.engine.config import load_growth_config
from growth.engine.nurture import NurtureEngine, load_sequences
from growth.engine.reactivation import ReactivationEngine, load_offers
from growth.services.audit import LoggingAuditSink
from growth.services.leads import LeadService
from growth.services.messaging import OutboxMessageSender
from growth.services.nurture import NurtureService
from growth.services.reactivation import ReactivationService
from growth.services.referrals import ReferralService
from growth.services.reputation import ReputationService
from growth.services.repository import SqlAlchemyRepository
from growth.services.staff_directory import SqlStaffDirectory

_nurture_engine = None
_reactivation_engine = None


def get_nurture_engine() -> NurtureEngine:
    global _nurture_engine
    if _nurture_engine is None:
        _nurture_engine = NurtureEngine(load_sequences(), load_growth_config().nurture)
    return _nurture_engine


def get_reactivation_engine() -> ReactivationEngine:
    global _reactivation_engine
    if _reactivation_engine is None:
        config = load_growth_config()
        _reactivation_engine = ReactivationEngine(load_offers(), config.reactivation, config.timing)
    return _reactivation_engine


@dataclass
class Services:
    repo: SqlAlchemyRepository
    leads: LeadService
    nurture: NurtureService
    referrals: ReferralService
    reactivation: ReactivationService
    reputation: ReputationService


def build_services(session, organization_id=DEFAULT_ORGANIZATION_ID, config=None,
                   clock=datetime.now) -> Services:
    config = config or load_growth_config()
    repo = SqlAlchemyRepository(session, organization_id)
    audit = LoggingAuditSink(organization_id)
    sender = OutboxMessageSender(repo)

    leads = LeadService(repo, audit, SqlStaffDirectory(session, organization_id),
                        config=config, clock=clock)
    return Services(
        repo=repo,
        leads=leads,
        nurture=NurtureService(repo, audit, sender, leads, get_nurture_engine(), clock=clock),
        referrals=ReferralService(repo, audit, config=config, clock=clock),
        reactivation=ReactivationService(repo, audit, sender, get_reactivation_engine(),
                                         config=config, clock=clock),
        reputation=ReputationService(repo, audit, config=config, clock=clock),
    )
