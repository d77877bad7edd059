import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    event,
)
from sqlalchemy.orm import relationship

from .database import Base


def generate_public_id():
    """Generate a unique public ID for secure public access"""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Naive UTC timestamp (all DateTime columns store UTC)"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class ImmutableRecordError(Exception):
    """Raised when code tries to update or delete a write-once row"""

    pass


class PricingPackage(Base):
    """DBH pricing tier, e.g. 6" DBH Medium at $2500/acre"""

    __tablename__ = "pricing_packages"

    id = Column(String(50), primary_key=True)  # small, medium, large, xlarge
    label = Column(String(255), nullable=False)
    dbh = Column(String(50), nullable=False)  # diameter at breast height description
    price_per_acre = Column(Float, nullable=False)
    description = Column(String(2000), nullable=True)
    is_default = Column(Boolean, default=False)
    is_active = Column(Boolean, default=True)
    inclusions = Column(JSON, default=list)
    exclusions = Column(JSON, default=list)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class Service(Base):
    __tablename__ = "services"

    id = Column(String(50), primary_key=True)
    name = Column(String(255), nullable=False)
    description = Column(String(2000), nullable=True)
    default_rate = Column(Float, nullable=False, default=0)
    # per_acre, per_hour, flat_rate, per_tree, per_stump
    unit = Column(String(50), nullable=False, default="flat_rate")
    # clearing, mulching, removal, grinding, grading, other
    category = Column(String(50), nullable=False, default="other")
    inclusions = Column(JSON, default=list)
    exclusions = Column(JSON, default=list)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class LegalTerms(Base):
    __tablename__ = "legal_terms"

    id = Column(String(50), primary_key=True)
    title = Column(String(255), nullable=False)
    body_rich = Column(Text, nullable=False)  # HTML content
    short_disclosure = Column(String(2000), nullable=True)
    disclaimers = Column(JSON, default=list)
    version = Column(Integer, default=1)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class ProposalTemplate(Base):
    __tablename__ = "proposal_templates"

    id = Column(String(50), primary_key=True)
    name = Column(String(255), nullable=False)
    description = Column(String(2000), nullable=True)
    status = Column(String(20), default="active")  # draft, active, archived
    version = Column(Integer, default=1)
    blocks = Column(JSON, default=dict)  # header/about/services/pricing/terms/signature blocks
    created_by = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class ProposalSnapshot(Base):
    """Write-once copy of template + catalog taken when a proposal is generated"""

    __tablename__ = "proposal_snapshots"

    id = Column(String(36), primary_key=True, default=generate_public_id)
    template_id = Column(String(50), nullable=False, index=True)
    template_version = Column(Integer, nullable=False)
    template = Column(JSON, nullable=False)
    packages = Column(JSON, nullable=False)  # {package_id: package}
    services = Column(JSON, nullable=False)  # {service_id: service}
    legal_terms = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=utcnow)


class Proposal(Base):
    __tablename__ = "proposals"

    id = Column(String(36), primary_key=True, default=generate_public_id)

    # Customer
    customer_name = Column(String(255), nullable=False)
    customer_email = Column(String(255), nullable=False)
    customer_phone = Column(String(50), nullable=True)

    # Inputs and computed totals are frozen at generation time
    inputs = Column(JSON, nullable=False)
    computed = Column(JSON, nullable=False)

    # Snapshot reference (template id + version, plus the snapshot row)
    snapshot_id = Column(String(36), ForeignKey("proposal_snapshots.id"), nullable=False)
    template_id = Column(String(50), nullable=False)
    template_version = Column(Integer, nullable=False)

    # Status workflow: draft → sent → viewed → accepted → paid, or expired
    status = Column(String(20), nullable=False, default="draft", index=True)

    # Approval token - only the SHA-256 of the token's jti is ever stored
    approve_token_hash = Column(String(64), nullable=True)
    token_expires_at = Column(DateTime, nullable=True)
    token_is_used = Column(Boolean, nullable=False, default=False)

    # Assets
    pdf_path = Column(String(500), nullable=True)  # R2 key for the proposal PDF
    pdf_version = Column(Integer, nullable=False, default=1)
    pdf_hash = Column(String(64), nullable=True)  # SHA-256 hash of the PDF for integrity
    web_url = Column(String(500), nullable=True)
    signed_pdf_url = Column(Text, nullable=True)

    # Audit trail
    sent_at = Column(DateTime, nullable=True)
    sent_by = Column(String(255), nullable=True)
    viewed_at = Column(DateTime, nullable=True)
    accepted_at = Column(DateTime, nullable=True)
    accepted_by_name = Column(String(255), nullable=True)
    accepted_ip = Column(String(45), nullable=True)  # IPv4 or IPv6
    accepted_user_agent = Column(String(500), nullable=True)
    paid_at = Column(DateTime, nullable=True)
    stripe_session_id = Column(String(255), nullable=True)
    stripe_payment_intent_id = Column(String(255), nullable=True)
    payment_amount_cents = Column(Integer, nullable=True)

    lead_ref = Column(String(255), nullable=True)
    created_by = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    snapshot = relationship("ProposalSnapshot")
    events = relationship(
        "ProposalEvent", back_populates="proposal", order_by="ProposalEvent.id"
    )


class ProposalEvent(Base):
    """Append-only lifecycle log"""

    __tablename__ = "proposal_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    proposal_id = Column(String(36), ForeignKey("proposals.id"), nullable=False, index=True)
    type = Column(String(50), nullable=False)
    timestamp = Column(DateTime, nullable=False, default=utcnow)
    event_metadata = Column("metadata", JSON, default=dict)

    proposal = relationship("Proposal", back_populates="events")


def _reject_mutation(mapper, connection, target):
    raise ImmutableRecordError(f"{target.__tablename__} rows are write-once")


for _model in (ProposalSnapshot, ProposalEvent):
    event.listen(_model, "before_update", _reject_mutation)
    event.listen(_model, "before_delete", _reject_mutation)
