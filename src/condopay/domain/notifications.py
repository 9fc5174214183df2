"""Notification sink used to tell residents and administrators about reviews."""

import logging
from typing import Protocol

from condopay.database.base import Database

logger = logging.getLogger(__name__)

EVIDENCE_SUBMITTED = "evidence_submitted"
PAYMENT_APPROVED = "payment_approved"
PAYMENT_REJECTED = "payment_rejected"
OBLIGATION_ASSIGNED = "obligation_assigned"


class NotificationSink(Protocol):
    def notify(self, resident_id: int, kind: str, message: str) -> None:
        ...


class DatabaseNotificationSink:
    """Stores notifications in the residents' inbox table."""

    def __init__(self, db: Database):
        self.db = db

    def notify(self, resident_id: int, kind: str, message: str) -> None:
        self.db.add_notification(resident_id=resident_id, kind=kind, message=message)


def notify_safely(sink: NotificationSink | None, resident_id: int, kind: str, message: str) -> bool:
    """Deliver a notification, logging instead of raising on failure.

    Returns:
        True if the sink accepted the notification
    """
    if sink is None:
        return False
    try:
        sink.notify(resident_id, kind, message)
    except Exception:
        logger.warning("Notification %s to resident %s failed", kind, resident_id, exc_info=True)
        return False
    return True
