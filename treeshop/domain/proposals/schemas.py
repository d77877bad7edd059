"""Proposal domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


# Upper bounds on estimator-entered numbers; NaN and infinity are rejected outright
MAX_ACREAGE = 100_000
MAX_DISTANCE_MILES = 5_000
MAX_LINE_QUANTITY = 1_000_000
MAX_LINE_RATE = 10_000_000


class CustomServiceLine(BaseModel):
    """Ad-hoc priced line added by the estimator"""

    name: str
    description: str = ""
    quantity: float = Field(default=1, allow_inf_nan=False, le=MAX_LINE_QUANTITY)
    rate: float = Field(default=0, allow_inf_nan=False, le=MAX_LINE_RATE)


class ProposalInputs(BaseModel):
    """Job inputs captured at generation time (never edited afterwards)"""

    model_config = ConfigDict(frozen=True)

    acreage: float = Field(allow_inf_nan=False, le=MAX_ACREAGE)
    packageId: str
    selectedServiceIds: list[str] = Field(default_factory=list)
    obstacles: list[str] = Field(default_factory=list)
    address: str
    zipCode: Optional[str] = None
    distanceMiles: Optional[float] = Field(default=None, allow_inf_nan=False, le=MAX_DISTANCE_MILES)
    customServices: list[CustomServiceLine] = Field(default_factory=list)
    notes: Optional[str] = None


class LineItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    serviceId: str
    serviceName: str
    description: str
    quantity: float
    rate: float
    total: float


class ComputedTotals(BaseModel):
    """Deterministic pricing result stored on the proposal"""

    model_config = ConfigDict(frozen=True)

    subtotal: float
    obstacleAdjustment: float
    travelSurcharge: float
    surcharges: float
    tax: float
    total: float
    depositAmount: float
    balance: float
    pricePerAcre: float
    packageId: Optional[str]
    packageDbh: str
    packageFallback: bool
    breakdown: list[LineItem]


class ProposalCustomer(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    phone: str = ""


class SnapshotRef(BaseModel):
    templateId: str
    version: int


class ProposalSnapshotView(BaseModel):
    """Read-only view of a stored snapshot; dicts are private copies"""

    model_config = ConfigDict(frozen=True)

    id: str
    templateId: str
    version: int
    template: dict[str, Any]
    packages: dict[str, dict[str, Any]]
    services: dict[str, dict[str, Any]]
    legalTerms: Optional[dict[str, Any]] = None
    createdAt: datetime


class ApproveTokenClaims(BaseModel):
    """Claims carried by an approval token"""

    model_config = ConfigDict(frozen=True)

    pid: str  # proposal ID
    v: int  # document version
    exp: int  # unix seconds
    jti: str  # unique ID for single-use


class IssuedToken(BaseModel):
    model_config = ConfigDict(frozen=True)

    token: str
    unique_id: str
    expires_at: datetime


# ============================================================================
# API REQUESTS / RESPONSES
# ============================================================================


class GenerateProposalRequest(BaseModel):
    templateId: str
    customer: ProposalCustomer
    inputs: ProposalInputs
    leadId: Optional[str] = None


class GenerateProposalResponse(BaseModel):
    proposalId: str
    version: int
    pdfSignedUrl: str
    snapshot: SnapshotRef


class SendProposalRequest(BaseModel):
    proposalId: str


class SendProposalResponse(BaseModel):
    emailId: str
    approveUrl: str


class AcceptProposalRequest(BaseModel):
    proposalId: str
    token: str
    fullName: str
    consent: bool = False
    signature: Optional[str] = None


class AcceptProposalResponse(BaseModel):
    status: str
    depositRequired: bool
    depositAmount: Optional[float] = None
    paymentUrl: Optional[str] = None


class CheckoutRequest(BaseModel):
    proposalId: str
    token: str


class CheckoutResponse(BaseModel):
    sessionId: str
    url: str


class ProposalEventResponse(BaseModel):
    id: int
    proposalId: str
    type: str
    timestamp: datetime
    metadata: dict[str, Any]


class ProposalResponse(BaseModel):
    """Admin view of a proposal record"""

    id: str
    status: str
    customer: ProposalCustomer
    inputs: ProposalInputs
    computed: ComputedTotals
    snapshot: SnapshotRef
    pdfPath: Optional[str] = None
    pdfVersion: int
    webUrl: Optional[str] = None
    signedPdfUrl: Optional[str] = None
    tokenExpiresAt: Optional[datetime] = None
    tokenIsUsed: bool
    sentAt: Optional[datetime] = None
    sentBy: Optional[str] = None
    viewedAt: Optional[datetime] = None
    acceptedAt: Optional[datetime] = None
    acceptedByName: Optional[str] = None
    paidAt: Optional[datetime] = None
    leadRef: Optional[str] = None
    createdBy: str
    createdAt: Optional[datetime] = None


class PublicProposalResponse(BaseModel):
    """What the customer sees on the approval page"""

    id: str
    status: str
    customerName: str
    inputs: ProposalInputs
    computed: ComputedTotals
    signedPdfUrl: Optional[str] = None
    expiresAt: Optional[datetime] = None
    acceptedAt: Optional[datetime] = None
    acceptedByName: Optional[str] = None
