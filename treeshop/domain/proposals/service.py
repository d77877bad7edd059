"""
Proposal service - lifecycle orchestration

Every state change runs as one conditional UPDATE plus one event row in a
single transaction. Concurrent callers are arbitrated by the UPDATE's
rowcount, never by an earlier read.
"""

import logging
import math
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...auth import AdminIdentity
from ...config import (
    PRESIGNED_URL_EXPIRATION,
    PROPOSAL_TOKEN_SECRET,
    PROPOSAL_TOKEN_TTL_DAYS,
    PUBLIC_BASE_URL,
)
from ...email_service import (
    EmailAttachment,
    EmailDeliveryError,
    ResendEmailClient,
    build_proposal_review_email,
)
from ...models import Proposal, ProposalEvent, generate_public_id, utcnow
from ...storage import R2AssetStorage, StorageError
from ...utils.sanitization import clean_display_name
from ...webhook_security import constant_time_compare
from .errors import (
    DependencyFailureError,
    ProposalNotFoundError,
    ProposalStateConflict,
    ProposalValidationError,
    TokenAlreadyUsedError,
    TokenInvalidError,
)
from .events import EventLog, EventType
from .payments import PaymentGatewayError, StripePaymentGateway
from .pdf_service import ProposalDocument, ProposalPDFRenderer
from .repository import ProposalRepository
from .schemas import (
    AcceptProposalResponse,
    CheckoutResponse,
    ComputedTotals,
    GenerateProposalRequest,
    GenerateProposalResponse,
    ProposalCustomer,
    ProposalInputs,
    ProposalResponse,
    PublicProposalResponse,
    SendProposalResponse,
    SnapshotRef,
)
from .snapshots import SnapshotStore
from .tokens import ProposalTokenManager
from .totals import DEFAULT_POLICY, PricingPolicy, compute_totals, dollars_to_cents

logger = logging.getLogger(__name__)

OPEN_STATUSES = ("sent", "viewed")
ACCEPTED_STATUSES = ("accepted", "paid")


@dataclass
class ProposalClients:
    """External collaborators, built once per process"""

    token_manager: ProposalTokenManager
    email_client: ResendEmailClient
    pdf_renderer: ProposalPDFRenderer
    asset_storage: R2AssetStorage
    payment_gateway: StripePaymentGateway


def build_proposal_clients() -> ProposalClients:
    return ProposalClients(
        token_manager=ProposalTokenManager(
            PROPOSAL_TOKEN_SECRET, timedelta(days=PROPOSAL_TOKEN_TTL_DAYS)
        ),
        email_client=ResendEmailClient(),
        pdf_renderer=ProposalPDFRenderer(),
        asset_storage=R2AssetStorage(),
        payment_gateway=StripePaymentGateway(),
    )


def _naive_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=None) if value.tzinfo else value


def proposal_to_response(proposal: Proposal) -> ProposalResponse:
    return ProposalResponse(
        id=proposal.id,
        status=proposal.status,
        customer=ProposalCustomer(
            name=proposal.customer_name,
            email=proposal.customer_email,
            phone=proposal.customer_phone or "",
        ),
        inputs=ProposalInputs(**proposal.inputs),
        computed=ComputedTotals(**proposal.computed),
        snapshot=SnapshotRef(templateId=proposal.template_id, version=proposal.template_version),
        pdfPath=proposal.pdf_path,
        pdfVersion=proposal.pdf_version,
        webUrl=proposal.web_url,
        signedPdfUrl=proposal.signed_pdf_url,
        tokenExpiresAt=proposal.token_expires_at,
        tokenIsUsed=bool(proposal.token_is_used),
        sentAt=proposal.sent_at,
        sentBy=proposal.sent_by,
        viewedAt=proposal.viewed_at,
        acceptedAt=proposal.accepted_at,
        acceptedByName=proposal.accepted_by_name,
        paidAt=proposal.paid_at,
        leadRef=proposal.lead_ref,
        createdBy=proposal.created_by,
        createdAt=proposal.created_at,
    )


class ProposalService:
    """Business logic for the proposal lifecycle"""

    def __init__(
        self,
        db: Session,
        token_manager: ProposalTokenManager,
        email_client,
        pdf_renderer,
        asset_storage,
        payment_gateway,
        base_url: str = PUBLIC_BASE_URL,
        policy: PricingPolicy = DEFAULT_POLICY,
    ):
        self.db = db
        self.token_manager = token_manager
        self.email_client = email_client
        self.pdf_renderer = pdf_renderer
        self.asset_storage = asset_storage
        self.payment_gateway = payment_gateway
        self.base_url = base_url.rstrip("/")
        self.policy = policy
        self.repository = ProposalRepository()

    @classmethod
    def from_clients(cls, db: Session, clients: ProposalClients, **kwargs) -> "ProposalService":
        return cls(
            db,
            clients.token_manager,
            clients.email_client,
            clients.pdf_renderer,
            clients.asset_storage,
            clients.payment_gateway,
            **kwargs,
        )

    # ------------------------------------------------------------------
    # Transaction helpers
    # ------------------------------------------------------------------

    @contextmanager
    def _transaction(self, action: str):
        """Commit on success; roll back on any error"""
        try:
            yield
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Datastore failure during {action}: {e}")
            raise DependencyFailureError(f"Could not save {action}") from e
        except Exception:
            self.db.rollback()
            raise

    def _record_failure(self, proposal_id: str, event_type: str, metadata: dict) -> None:
        """Persist a failure event on its own; the original error is raised by the caller"""
        try:
            EventLog.append(self.db, proposal_id, event_type, metadata)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Could not record {event_type} for proposal {proposal_id}: {e}")

    def _get_or_404(self, proposal_id: str) -> Proposal:
        proposal = self.repository.get(self.db, proposal_id)
        if not proposal:
            raise ProposalNotFoundError(f"Proposal {proposal_id} not found")
        return proposal

    def _authorize(self, proposal_id: str, token: Optional[str]) -> tuple[Proposal, str]:
        """
        Check an approval token against a proposal.

        The token must verify, name this proposal, carry the current document
        version and match the stored hash. A used token still authorizes reads.
        """
        claims = self.token_manager.verify_for(token, proposal_id)
        if claims is None:
            raise TokenInvalidError()

        proposal = self._get_or_404(proposal_id)
        token_hash = self.token_manager.hash_unique_id(claims.jti)

        if claims.v != proposal.pdf_version:
            logger.warning(f"🚫 Token for proposal {proposal_id} is bound to a stale version")
            raise TokenInvalidError()
        if not constant_time_compare(token_hash, proposal.approve_token_hash):
            logger.warning(f"🚫 Token for proposal {proposal_id} does not match the issued token")
            raise TokenInvalidError()

        return proposal, token_hash

    def _approve_url(self, proposal_id: str, token: str) -> str:
        return f"{self.base_url}/p/{proposal_id}?t={token}"

    # ------------------------------------------------------------------
    # Admin operations
    # ------------------------------------------------------------------

    def generate(
        self, request: GenerateProposalRequest, admin: AdminIdentity
    ) -> GenerateProposalResponse:
        """
        Snapshot the catalog, price the job, render and store the PDF, then
        persist the draft with its CREATED event. A rendering or storage
        failure leaves nothing behind.
        """
        inputs = request.inputs
        if not math.isfinite(inputs.acreage) or inputs.acreage <= 0:
            raise ProposalValidationError("Acreage must be greater than zero", field="inputs.acreage")
        if not inputs.address.strip():
            raise ProposalValidationError("Address is required", field="inputs.address")

        try:
            snapshot = SnapshotStore(self.db).create_snapshot(request.templateId)

            if inputs.packageId not in snapshot.packages:
                raise ProposalValidationError(
                    f"Unknown package: {inputs.packageId}", field="inputs.packageId"
                )
            unknown = [
                service_id
                for service_id in inputs.selectedServiceIds
                if service_id not in snapshot.services
            ]
            if unknown:
                raise ProposalValidationError(
                    f"Unknown services: {', '.join(unknown)}", field="inputs.selectedServiceIds"
                )

            computed = compute_totals(inputs, snapshot.packages, snapshot.services, self.policy)
            proposal_id = generate_public_id()
            version = 1
            pdf_key = f"proposals/{proposal_id}/v{version}.pdf"

            document = ProposalDocument(
                proposal_id=proposal_id,
                version=version,
                customer=request.customer,
                inputs=inputs,
                computed=computed,
                snapshot=snapshot,
                issued_at=utcnow(),
            )
            try:
                pdf_bytes = self.pdf_renderer.render(document)
                self.asset_storage.upload(pdf_bytes, pdf_key, "application/pdf")
                signed_url = self.asset_storage.signed_url(pdf_key, PRESIGNED_URL_EXPIRATION)
            except StorageError as e:
                logger.error(f"❌ PDF storage failed for proposal {proposal_id}: {e}")
                raise DependencyFailureError("Proposal PDF could not be stored") from e
            except Exception as e:
                logger.error(f"❌ PDF rendering failed for proposal {proposal_id}: {e}")
                raise DependencyFailureError("Proposal PDF could not be generated") from e

            with self._transaction("proposal"):
                self.repository.create(
                    self.db,
                    id=proposal_id,
                    customer_name=request.customer.name,
                    customer_email=request.customer.email,
                    customer_phone=request.customer.phone or None,
                    inputs=inputs.model_dump(),
                    computed=computed.model_dump(),
                    snapshot_id=snapshot.id,
                    template_id=snapshot.templateId,
                    template_version=snapshot.version,
                    status="draft",
                    pdf_path=pdf_key,
                    pdf_version=version,
                    pdf_hash=ProposalPDFRenderer.calculate_hash(pdf_bytes),
                    web_url=f"{self.base_url}/p/{proposal_id}",
                    signed_pdf_url=signed_url,
                    lead_ref=request.leadId,
                    created_by=admin.uid,
                )
                EventLog.append(
                    self.db,
                    proposal_id,
                    EventType.CREATED,
                    {
                        "createdBy": admin.uid,
                        "snapshotId": snapshot.id,
                        "total": computed.total,
                        "packageFallback": computed.packageFallback,
                    },
                )
        except Exception:
            # Discard the flushed snapshot when nothing else was committed
            self.db.rollback()
            raise

        logger.info(
            f"✅ Proposal {proposal_id} generated by {admin.uid}: total ${computed.total:,.2f}"
        )
        return GenerateProposalResponse(
            proposalId=proposal_id,
            version=version,
            pdfSignedUrl=signed_url,
            snapshot=SnapshotRef(templateId=snapshot.templateId, version=snapshot.version),
        )

    def _pdf_attachments(self, proposal: Proposal) -> list[EmailAttachment]:
        """The stored PDF rides along with the e-mail; without it the link still works"""
        if not proposal.pdf_path:
            return []
        try:
            pdf_bytes = self.asset_storage.download(proposal.pdf_path)
        except StorageError as e:
            logger.warning(f"⚠️ Sending proposal {proposal.id} without its PDF attached: {e}")
            self._record_failure(
                proposal.id, EventType.PDF_FAILED, {"error": str(e)[:500], "stage": "attach"}
            )
            return []
        return [EmailAttachment(filename=f"proposal-{proposal.id[:8]}.pdf", content=pdf_bytes)]

    def send(self, proposal_id: str, admin: AdminIdentity) -> SendProposalResponse:
        """Issue the approval token and e-mail it. Only drafts can be sent."""
        proposal = self._get_or_404(proposal_id)
        if proposal.status != "draft":
            raise ProposalStateConflict(
                f"Proposal is already {proposal.status}", code="already_sent"
            )

        issued = self.token_manager.issue(proposal.id, proposal.pdf_version)
        approve_url = self._approve_url(proposal.id, issued.token)
        computed = ComputedTotals(**proposal.computed)
        attachments = self._pdf_attachments(proposal)

        try:
            message = build_proposal_review_email(
                customer_name=proposal.customer_name,
                total=computed.total,
                deposit_amount=computed.depositAmount,
                approve_url=approve_url,
                expires_at=issued.expires_at,
            )
            email_id = self.email_client.send(
                to=proposal.customer_email,
                subject=message.subject,
                html=message.html,
                text=message.text,
                attachments=attachments,
            )
        except EmailDeliveryError as e:
            logger.error(f"❌ Proposal e-mail failed for {proposal_id}: {e}")
            self._record_failure(
                proposal_id, EventType.EMAIL_FAILED, {"error": str(e)[:500], "sentBy": admin.uid}
            )
            raise DependencyFailureError("Proposal e-mail could not be delivered") from e

        sent_at = utcnow()
        with self._transaction("send"):
            moved = self.repository.transition(
                self.db,
                proposal_id,
                ("draft",),
                "sent",
                approve_token_hash=self.token_manager.hash_unique_id(issued.unique_id),
                token_expires_at=_naive_utc(issued.expires_at),
                token_is_used=False,
                sent_at=sent_at,
                sent_by=admin.uid,
            )
            if not moved:
                raise ProposalStateConflict("Proposal was sent concurrently", code="already_sent")
            EventLog.append(
                self.db,
                proposal_id,
                EventType.SENT,
                {
                    "sentBy": admin.uid,
                    "emailId": email_id,
                    "expiresAt": _naive_utc(issued.expires_at).isoformat(),
                },
            )

        logger.info(f"📧 Proposal {proposal_id} sent by {admin.uid} (email {email_id})")
        return SendProposalResponse(emailId=email_id, approveUrl=approve_url)

    def get(self, proposal_id: str) -> Proposal:
        return self._get_or_404(proposal_id)

    def list_proposals(self, status: Optional[str] = None) -> list[Proposal]:
        return self.repository.get_proposals(self.db, status=status)

    def events(self, proposal_id: str) -> list[ProposalEvent]:
        self._get_or_404(proposal_id)
        return EventLog.list_for(self.db, proposal_id)

    # ------------------------------------------------------------------
    # Customer operations
    # ------------------------------------------------------------------

    def view(
        self,
        proposal_id: str,
        token: Optional[str],
        ip: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> PublicProposalResponse:
        """First view moves sent → viewed; later views change nothing"""
        proposal, _ = self._authorize(proposal_id, token)

        if proposal.status == "sent":
            with self._transaction("view"):
                moved = self.repository.transition(
                    self.db, proposal_id, ("sent",), "viewed", viewed_at=utcnow()
                )
                if moved:
                    EventLog.append(
                        self.db,
                        proposal_id,
                        EventType.VIEWED,
                        {"ip": ip, "userAgent": (user_agent or "")[:500]},
                    )
            if moved:
                logger.info(f"👀 Proposal {proposal_id} viewed")
            proposal = self.repository.get(self.db, proposal_id, fresh=True)

        signed_url = proposal.signed_pdf_url
        if proposal.pdf_path:
            try:
                signed_url = self.asset_storage.signed_url(proposal.pdf_path, PRESIGNED_URL_EXPIRATION)
            except StorageError as e:
                logger.warning(f"⚠️ Could not refresh PDF link for proposal {proposal_id}: {e}")
                self._record_failure(
                    proposal_id, EventType.PDF_FAILED, {"error": str(e)[:500], "stage": "sign"}
                )

        return PublicProposalResponse(
            id=proposal.id,
            status=proposal.status,
            customerName=proposal.customer_name,
            inputs=ProposalInputs(**proposal.inputs),
            computed=ComputedTotals(**proposal.computed),
            signedPdfUrl=signed_url,
            expiresAt=proposal.token_expires_at,
            acceptedAt=proposal.accepted_at,
            acceptedByName=proposal.accepted_by_name,
        )

    def _raise_for_lost_race(self, proposal_id: str, token_hash: str) -> None:
        """The guarded UPDATE matched nothing: explain why from the current row"""
        current = self.repository.get(self.db, proposal_id, fresh=True)
        if current is None:
            raise ProposalNotFoundError(f"Proposal {proposal_id} not found")
        if current.token_is_used:
            raise TokenAlreadyUsedError()
        if current.approve_token_hash != token_hash:
            raise TokenInvalidError()
        if current.status in ACCEPTED_STATUSES:
            raise ProposalStateConflict("Proposal has already been accepted", code="already_accepted")
        raise ProposalStateConflict(
            f"Proposal is {current.status} and cannot be accepted", code="not_available"
        )

    def accept(
        self,
        proposal_id: str,
        token: Optional[str],
        full_name: Optional[str],
        consent: bool,
        signature: Optional[str] = None,
        ip: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> AcceptProposalResponse:
        """
        Accept a proposal with its single-use token.

        Exactly one of any number of concurrent calls with the same token
        succeeds; the rest see TokenAlreadyUsedError.
        """
        name = clean_display_name(full_name)
        if not name:
            raise ProposalValidationError("Full name is required", field="fullName")
        if consent is not True:
            raise ProposalValidationError("Consent is required to accept", field="consent")

        proposal, token_hash = self._authorize(proposal_id, token)

        if proposal.token_is_used:
            logger.warning(f"🚫 Reused approval token for proposal {proposal_id}")
            raise TokenAlreadyUsedError()
        if proposal.status in ACCEPTED_STATUSES:
            raise ProposalStateConflict("Proposal has already been accepted", code="already_accepted")
        if proposal.status not in OPEN_STATUSES:
            raise ProposalStateConflict(
                f"Proposal is {proposal.status} and cannot be accepted", code="not_available"
            )

        with self._transaction("acceptance"):
            moved = self.repository.transition(
                self.db,
                proposal_id,
                OPEN_STATUSES,
                "accepted",
                require_unused_token=True,
                token_hash=token_hash,
                token_is_used=True,
                accepted_at=utcnow(),
                accepted_by_name=name,
                accepted_ip=ip,
                accepted_user_agent=(user_agent or "")[:500] or None,
            )
            if not moved:
                self._raise_for_lost_race(proposal_id, token_hash)
            EventLog.append(
                self.db,
                proposal_id,
                EventType.ACCEPTED,
                {
                    "fullName": name,
                    "consent": True,
                    "signed": bool(signature),
                    "ip": ip,
                    "userAgent": (user_agent or "")[:500],
                },
            )

        computed = ComputedTotals(**self.repository.get(self.db, proposal_id).computed)
        deposit_required = computed.depositAmount > 0
        logger.info(f"✅ Proposal {proposal_id} accepted by {name}")

        return AcceptProposalResponse(
            status="accepted",
            depositRequired=deposit_required,
            depositAmount=computed.depositAmount if deposit_required else None,
            paymentUrl=f"{self.base_url}/p/{proposal_id}/payment?t={token}" if deposit_required else None,
        )

    def checkout(self, proposal_id: str, token: Optional[str]) -> CheckoutResponse:
        """Create a Stripe Checkout session for the deposit of an accepted proposal"""
        proposal, _ = self._authorize(proposal_id, token)

        if proposal.status == "paid":
            raise ProposalStateConflict("Deposit has already been paid", code="already_paid")
        if proposal.status != "accepted":
            raise ProposalStateConflict(
                "Proposal must be accepted before payment", code="not_accepted"
            )

        computed = ComputedTotals(**proposal.computed)
        amount_cents = dollars_to_cents(computed.depositAmount)
        if amount_cents <= 0:
            raise ProposalStateConflict(
                "No deposit is required for this proposal", code="no_deposit_required"
            )

        customer = ProposalCustomer(
            name=proposal.customer_name,
            email=proposal.customer_email,
            phone=proposal.customer_phone or "",
        )
        try:
            session = self.payment_gateway.create_checkout_session(
                amount_cents=amount_cents,
                proposal_id=proposal_id,
                customer=customer,
                description=f"Deposit - proposal {proposal_id[:8]}",
                success_url=(
                    f"{self.base_url}/p/{proposal_id}/payment-success"
                    "?session_id={CHECKOUT_SESSION_ID}"
                ),
                cancel_url=f"{self.base_url}/p/{proposal_id}?t={token}&payment=cancelled",
            )
        except PaymentGatewayError as e:
            self._record_failure(
                proposal_id,
                EventType.PAYMENT_SESSION_FAILED,
                {"error": str(e)[:500], "amountCents": amount_cents},
            )
            raise DependencyFailureError("Payment session could not be created") from e

        with self._transaction("checkout"):
            self.repository.update_fields(
                self.db,
                self.repository.get(self.db, proposal_id),
                stripe_session_id=session.session_id,
            )
            EventLog.append(
                self.db,
                proposal_id,
                EventType.CHECKOUT_CREATED,
                {"sessionId": session.session_id, "amountCents": amount_cents},
            )

        logger.info(f"💳 Checkout created for proposal {proposal_id}: {amount_cents} cents")
        return CheckoutResponse(sessionId=session.session_id, url=session.url)

    # ------------------------------------------------------------------
    # Payment provider callbacks and maintenance
    # ------------------------------------------------------------------

    def mark_paid(
        self,
        proposal_id: str,
        session_id: Optional[str] = None,
        payment_intent_id: Optional[str] = None,
        amount_cents: Optional[int] = None,
    ) -> Proposal:
        """accepted → paid. Repeated deliveries of the same payment are no-ops."""
        proposal = self._get_or_404(proposal_id)
        if proposal.status == "paid":
            logger.info(f"ℹ️ Proposal {proposal_id} already paid - ignoring duplicate")
            return proposal
        if proposal.status != "accepted":
            raise ProposalStateConflict(
                f"Proposal is {proposal.status} and cannot be paid", code="not_accepted"
            )

        values = {
            "paid_at": utcnow(),
            "stripe_session_id": session_id,
            "stripe_payment_intent_id": payment_intent_id,
            "payment_amount_cents": amount_cents,
        }
        values = {key: value for key, value in values.items() if value is not None}

        with self._transaction("payment"):
            moved = self.repository.transition(
                self.db, proposal_id, ("accepted",), "paid", **values
            )
            if moved:
                EventLog.append(
                    self.db,
                    proposal_id,
                    EventType.PAID,
                    {
                        "sessionId": session_id,
                        "paymentIntentId": payment_intent_id,
                        "amountCents": amount_cents,
                    },
                )

        proposal = self.repository.get(self.db, proposal_id, fresh=True)
        if moved:
            logger.info(f"💰 Proposal {proposal_id} deposit paid")
        elif proposal.status != "paid":
            raise ProposalStateConflict(
                f"Proposal is {proposal.status} and cannot be paid", code="not_accepted"
            )
        return proposal

    def record_payment_expired(self, proposal_id: str, session_id: Optional[str] = None) -> None:
        """An abandoned Checkout session is logged; the proposal stays accepted"""
        self._get_or_404(proposal_id)
        with self._transaction("payment expiry"):
            EventLog.append(
                self.db, proposal_id, EventType.PAYMENT_EXPIRED, {"sessionId": session_id}
            )
        logger.info(f"⌛ Checkout session expired for proposal {proposal_id}")

    def record_payment_failed(
        self,
        proposal_id: str,
        payment_intent_id: Optional[str] = None,
        amount_cents: Optional[int] = None,
        reason: Optional[str] = None,
        failure_code: Optional[str] = None,
    ) -> None:
        """A declined deposit attempt; the customer can retry from the same session"""
        self._get_or_404(proposal_id)
        with self._transaction("payment failure"):
            EventLog.append(
                self.db,
                proposal_id,
                EventType.PAYMENT_FAILED,
                {
                    "paymentIntentId": payment_intent_id,
                    "amountCents": amount_cents,
                    "reason": (reason or "")[:500] or None,
                    "code": failure_code,
                },
            )
        logger.warning(f"⚠️ Deposit payment failed for proposal {proposal_id}: {failure_code or reason}")

    def record_refund(
        self,
        proposal_id: str,
        charge_id: Optional[str] = None,
        payment_intent_id: Optional[str] = None,
        amount_refunded_cents: Optional[int] = None,
        fully_refunded: bool = False,
    ) -> None:
        """Refunds are issued from the Stripe dashboard; they are logged, the status is left alone"""
        self._get_or_404(proposal_id)
        with self._transaction("refund"):
            EventLog.append(
                self.db,
                proposal_id,
                EventType.PAYMENT_REFUNDED,
                {
                    "chargeId": charge_id,
                    "paymentIntentId": payment_intent_id,
                    "amountRefundedCents": amount_refunded_cents,
                    "fullyRefunded": fully_refunded,
                },
            )
        logger.info(
            f"↩️ Deposit {'fully' if fully_refunded else 'partially'} refunded for proposal {proposal_id}"
        )

    def proposal_id_for_payment_intent(self, payment_intent_id: Optional[str]) -> Optional[str]:
        if not payment_intent_id:
            return None
        proposal = self.repository.get_by_payment_intent(self.db, payment_intent_id)
        return proposal.id if proposal else None

    def expire_stale(self, now: Optional[datetime] = None) -> int:
        """Move sent/viewed proposals with lapsed tokens to expired"""
        now = now or utcnow()
        stale_ids = [p.id for p in self.repository.list_expirable(self.db, now)]

        expired = 0
        for proposal_id in stale_ids:
            with self._transaction("expiry"):
                if self.repository.transition(self.db, proposal_id, OPEN_STATUSES, "expired"):
                    EventLog.append(
                        self.db, proposal_id, EventType.EXPIRED, {"expiredAt": now.isoformat()}
                    )
                    expired += 1

        if expired:
            logger.info(f"⌛ Expired {expired} stale proposal(s)")
        return expired
