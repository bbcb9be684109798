"""
Message sender — hands outbound messages to the delivery side.

OutboxMessageSender stores each message as a ScheduledMessage row; whatever
delivers email/SMS reads the outbox.
"""
import logging
from abc import ABC, abstractmethod

from growth.models.scheduled_message import ScheduledMessage

logger = logging.getLogger('services.messaging')


class MessageSender(ABC):

    @abstractmethod
    def send(self, channel, recipient, content, scheduled_at, subject=None,
             lead_id=None, patient_id=None):
        ...


class OutboxMessageSender(MessageSender):

    def __init__(self, repo):
        self.repo = repo

    def send(self, channel, recipient, content, scheduled_at, subject=None,
             lead_id=None, patient_id=None):
        message = self.repo.add(ScheduledMessage(
            lead_id=lead_id,
            patient_id=patient_id,
            channel=channel,
            recipient=recipient,
            subject=subject,
            content=content,
            scheduled_at=scheduled_at,
            status='scheduled',
        ))
        logger.info("Queued %s message %s for %s at %s",
                    channel, message.id, recipient, scheduled_at.isoformat())
        return message
