"""Proposal repository - Database operations for proposals"""

from typing import Iterable, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from ...models import Proposal, utcnow


class ProposalRepository:
    """Repository for proposal database operations. Nothing here commits."""

    @staticmethod
    def get(db: Session, proposal_id: str, fresh: bool = False) -> Optional[Proposal]:
        """Get a proposal by ID; fresh=True bypasses the session's cached copy"""
        if fresh:
            return db.get(Proposal, proposal_id, populate_existing=True)
        return db.get(Proposal, proposal_id)

    @staticmethod
    def get_proposals(db: Session, status: Optional[str] = None, limit: int = 100) -> list[Proposal]:
        query = db.query(Proposal)
        if status:
            query = query.filter(Proposal.status == status)
        return query.order_by(Proposal.created_at.desc()).limit(limit).all()

    @staticmethod
    def get_by_payment_intent(db: Session, payment_intent_id: str) -> Optional[Proposal]:
        return (
            db.query(Proposal)
            .filter(Proposal.stripe_payment_intent_id == payment_intent_id)
            .first()
        )

    @staticmethod
    def list_expirable(db: Session, now) -> list[Proposal]:
        """Sent or viewed proposals whose approval token has lapsed"""
        return (
            db.query(Proposal)
            .filter(
                Proposal.status.in_(("sent", "viewed")),
                Proposal.token_expires_at.isnot(None),
                Proposal.token_expires_at < now,
            )
            .all()
        )

    @staticmethod
    def create(db: Session, **proposal_data) -> Proposal:
        proposal = Proposal(**proposal_data)
        db.add(proposal)
        db.flush()
        return proposal

    @staticmethod
    def transition(
        db: Session,
        proposal_id: str,
        from_statuses: Iterable[str],
        to_status: str,
        *,
        require_unused_token: bool = False,
        token_hash: Optional[str] = None,
        **values,
    ) -> bool:
        """
        Conditional status change in a single UPDATE statement.

        Returns True only if this call moved the row. Two concurrent callers
        can both read "sent", but only one UPDATE matches the guard.
        """
        conditions = [Proposal.id == proposal_id, Proposal.status.in_(tuple(from_statuses))]
        if require_unused_token:
            conditions.append(Proposal.token_is_used.is_(False))
        if token_hash is not None:
            conditions.append(Proposal.approve_token_hash == token_hash)

        result = db.execute(
            update(Proposal)
            .where(*conditions)
            .values(status=to_status, updated_at=utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    def update_fields(db: Session, proposal: Proposal, **updates) -> Proposal:
        """Set non-status fields (checkout session id, signed URL)"""
        for key, value in updates.items():
            if value is not None and hasattr(proposal, key):
                setattr(proposal, key, value)
        db.flush()
        return proposal
