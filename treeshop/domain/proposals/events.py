"""Append-only proposal event log"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ...models import ProposalEvent

logger = logging.getLogger(__name__)


class EventType:
    CREATED = "CREATED"
    SENT = "SENT"
    VIEWED = "VIEWED"
    ACCEPTED = "ACCEPTED"
    CHECKOUT_CREATED = "CHECKOUT_CREATED"
    PAID = "PAID"
    EXPIRED = "EXPIRED"
    EMAIL_FAILED = "EMAIL_FAILED"
    PDF_FAILED = "PDF_FAILED"
    PAYMENT_SESSION_FAILED = "PAYMENT_SESSION_FAILED"
    PAYMENT_EXPIRED = "PAYMENT_EXPIRED"
    PAYMENT_FAILED = "PAYMENT_FAILED"
    PAYMENT_REFUNDED = "PAYMENT_REFUNDED"


def event_to_dict(event: ProposalEvent) -> dict:
    return {
        "id": event.id,
        "proposalId": event.proposal_id,
        "type": event.type,
        "timestamp": event.timestamp,
        "metadata": event.event_metadata or {},
    }


class EventLog:
    @staticmethod
    def append(
        db: Session, proposal_id: str, event_type: str, metadata: Optional[dict] = None
    ) -> ProposalEvent:
        """
        Add an event to the caller's transaction.

        Flushes so constraint errors surface here, but never commits: the
        caller commits the event together with the state change it records.
        """
        event = ProposalEvent(
            proposal_id=proposal_id,
            type=event_type,
            event_metadata=dict(metadata or {}),
        )
        db.add(event)
        db.flush()
        logger.debug(f"📝 Event {event_type} queued for proposal {proposal_id}")
        return event

    @staticmethod
    def list_for(db: Session, proposal_id: str) -> list[ProposalEvent]:
        return (
            db.query(ProposalEvent)
            .filter(ProposalEvent.proposal_id == proposal_id)
            .order_by(ProposalEvent.id.asc())
            .all()
        )
