"""
Audit sink — receives (action, entity_type, payload) for every state change.
"""
import logging
from abc import ABC, abstractmethod

logger = logging.getLogger('services.audit')


class AuditSink(ABC):

    @abstractmethod
    def record(self, action, entity_type, payload):
        ...


class LoggingAuditSink(AuditSink):
    """Writes audit events to the services.audit logger as structured extras."""

    def __init__(self, organization_id):
        self.organization_id = organization_id

    def record(self, action, entity_type, payload):
        logger.info(
            "%s %s", action, entity_type,
            extra={'audit': {
                'organization_id': self.organization_id,
                'action': action,
                'entity_type': entity_type,
                'payload': payload,
            }},
        )
