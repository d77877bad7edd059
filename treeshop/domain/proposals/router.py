"""Proposal routers - admin, customer-facing and payment webhook endpoints"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from ...auth import AdminIdentity, get_current_admin
from ...config import (
    ACCEPT_RATE_LIMIT,
    CHECKOUT_RATE_LIMIT,
    PUBLIC_RATE_LIMIT_WINDOW,
    STRIPE_WEBHOOK_SECRET,
)
from ...database import get_db
from ...rate_limiter import client_ip_from_request, create_rate_limiter
from ...webhook_security import verify_stripe_webhook
from .errors import ProposalNotFoundError, ProposalStateConflict
from .events import event_to_dict
from .schemas import (
    AcceptProposalRequest,
    AcceptProposalResponse,
    CheckoutRequest,
    CheckoutResponse,
    GenerateProposalRequest,
    GenerateProposalResponse,
    ProposalEventResponse,
    ProposalResponse,
    PublicProposalResponse,
    SendProposalRequest,
    SendProposalResponse,
)
from .service import ProposalService, build_proposal_clients, proposal_to_response

logger = logging.getLogger(__name__)

admin_router = APIRouter(prefix="/admin/proposals", tags=["Proposals"])
router = APIRouter(prefix="/proposals", tags=["Public Proposals"])
webhooks_router = APIRouter(prefix="/stripe", tags=["Webhooks"])

accept_rate_limit = create_rate_limiter(
    limit=ACCEPT_RATE_LIMIT, window_seconds=PUBLIC_RATE_LIMIT_WINDOW, key_prefix="proposal_accept"
)
checkout_rate_limit = create_rate_limiter(
    limit=CHECKOUT_RATE_LIMIT,
    window_seconds=PUBLIC_RATE_LIMIT_WINDOW,
    key_prefix="proposal_checkout",
)


def get_proposal_service(request: Request, db: Session = Depends(get_db)) -> ProposalService:
    """Dependency injection for ProposalService"""
    clients = getattr(request.app.state, "proposal_clients", None)
    if clients is None:
        clients = build_proposal_clients()
        request.app.state.proposal_clients = clients
    return ProposalService.from_clients(db, clients)


# ============================================================================
# ADMIN OPERATIONS
# ============================================================================


@admin_router.post("/generate", response_model=GenerateProposalResponse)
async def generate_proposal(
    data: GenerateProposalRequest,
    admin: AdminIdentity = Depends(get_current_admin),
    service: ProposalService = Depends(get_proposal_service),
):
    """Price the job from a fresh catalog snapshot and store the draft + PDF"""
    return service.generate(data, admin)


@admin_router.post("/send", response_model=SendProposalResponse)
async def send_proposal(
    data: SendProposalRequest,
    admin: AdminIdentity = Depends(get_current_admin),
    service: ProposalService = Depends(get_proposal_service),
):
    """E-mail the approval link for a draft proposal"""
    return service.send(data.proposalId, admin)


@admin_router.get("", response_model=list[ProposalResponse])
async def list_proposals(
    status: Optional[str] = Query(None, description="Filter by proposal status"),
    _admin: AdminIdentity = Depends(get_current_admin),
    service: ProposalService = Depends(get_proposal_service),
):
    return [proposal_to_response(p) for p in service.list_proposals(status)]


@admin_router.get("/{proposal_id}", response_model=ProposalResponse)
async def get_proposal(
    proposal_id: str,
    _admin: AdminIdentity = Depends(get_current_admin),
    service: ProposalService = Depends(get_proposal_service),
):
    return proposal_to_response(service.get(proposal_id))


@admin_router.get("/{proposal_id}/events", response_model=list[ProposalEventResponse])
async def get_proposal_events(
    proposal_id: str,
    _admin: AdminIdentity = Depends(get_current_admin),
    service: ProposalService = Depends(get_proposal_service),
):
    """Audit trail, oldest first"""
    return [event_to_dict(e) for e in service.events(proposal_id)]


# ============================================================================
# CUSTOMER OPERATIONS (token-authorized)
# ============================================================================


@router.get("/{proposal_id}", response_model=PublicProposalResponse)
async def view_proposal(
    proposal_id: str,
    request: Request,
    t: Optional[str] = Query(None, description="Approval token from the e-mail link"),
    service: ProposalService = Depends(get_proposal_service),
):
    return service.view(
        proposal_id,
        t,
        ip=client_ip_from_request(request),
        user_agent=request.headers.get("user-agent"),
    )


@router.post("/accept", response_model=AcceptProposalResponse)
async def accept_proposal(
    data: AcceptProposalRequest,
    request: Request,
    _: None = Depends(accept_rate_limit),
    service: ProposalService = Depends(get_proposal_service),
):
    return service.accept(
        data.proposalId,
        data.token,
        data.fullName,
        data.consent,
        signature=data.signature,
        ip=client_ip_from_request(request),
        user_agent=request.headers.get("user-agent"),
    )


@router.post("/checkout", response_model=CheckoutResponse)
async def create_checkout(
    data: CheckoutRequest,
    _: None = Depends(checkout_rate_limit),
    service: ProposalService = Depends(get_proposal_service),
):
    return service.checkout(data.proposalId, data.token)


# ============================================================================
# STRIPE WEBHOOK
# ============================================================================


@webhooks_router.post("/webhook")
async def stripe_webhook(
    request: Request,
    service: ProposalService = Depends(get_proposal_service),
):
    """
    checkout.session.completed → deposit paid
    checkout.session.expired → logged, proposal stays accepted
    payment_intent.payment_failed → logged, customer may retry
    charge.refunded → logged, status unchanged
    """
    event = await verify_stripe_webhook(request, STRIPE_WEBHOOK_SECRET)
    event_type = event["type"]
    obj = event["data"]["object"]

    metadata = obj.get("metadata") or {}
    proposal_id = metadata.get("proposal_id") or obj.get("client_reference_id")
    if not proposal_id and event_type == "charge.refunded":
        # Charges do not inherit Checkout metadata; match on the stored PaymentIntent
        proposal_id = service.proposal_id_for_payment_intent(obj.get("payment_intent"))
    if not proposal_id:
        logger.info(f"ℹ️ Stripe event {event_type} has no proposal reference - ignoring")
        return {"status": "ignored"}

    try:
        if event_type == "checkout.session.completed":
            if obj.get("payment_status") != "paid":
                logger.info(f"ℹ️ Checkout for proposal {proposal_id} completed but not yet paid")
                return {"status": "pending"}
            service.mark_paid(
                proposal_id,
                session_id=obj.get("id"),
                payment_intent_id=obj.get("payment_intent"),
                amount_cents=obj.get("amount_total"),
            )
        elif event_type == "checkout.session.expired":
            service.record_payment_expired(proposal_id, session_id=obj.get("id"))
        elif event_type == "payment_intent.payment_failed":
            last_error = obj.get("last_payment_error") or {}
            service.record_payment_failed(
                proposal_id,
                payment_intent_id=obj.get("id"),
                amount_cents=obj.get("amount"),
                reason=last_error.get("message"),
                failure_code=last_error.get("decline_code") or last_error.get("code"),
            )
        elif event_type == "charge.refunded":
            service.record_refund(
                proposal_id,
                charge_id=obj.get("id"),
                payment_intent_id=obj.get("payment_intent"),
                amount_refunded_cents=obj.get("amount_refunded"),
                fully_refunded=bool(obj.get("refunded")),
            )
        else:
            logger.debug(f"Unhandled Stripe event: {event_type}")
            return {"status": "ignored"}
    except (ProposalNotFoundError, ProposalStateConflict) as e:
        # Acknowledge so Stripe stops retrying an event we can never apply
        logger.warning(f"⚠️ Stripe event {event_type} for proposal {proposal_id} not applied: {e}")
        return {"status": "ignored"}

    return {"status": "ok"}
