import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("PROPOSAL_TOKEN_SECRET", "test-proposal-secret")
os.environ.setdefault("ADMIN_JWT_SECRET", "test-admin-secret")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from treeshop.auth import AdminIdentity, create_admin_token
from treeshop.database import Base
from treeshop.domain.catalog.seed import DEFAULT_TEMPLATE_ID, seed_default_catalog
from treeshop.domain.proposals.payments import PaymentGatewayError, PaymentSession
from treeshop.domain.proposals.schemas import (
    GenerateProposalRequest,
    ProposalCustomer,
    ProposalInputs,
)
from treeshop.domain.proposals.service import ProposalClients, ProposalService
from treeshop.domain.proposals.tokens import ProposalTokenManager
from treeshop.email_service import EmailDeliveryError
from treeshop.storage import StorageError

BASE_URL = "https://treeai.test"
TOKEN_SECRET = "test-proposal-secret"


class FakeEmailClient:
    def __init__(self):
        self.sent = []
        self.fail = False

    def send(self, to, subject, html, text=None, attachments=None):
        if self.fail:
            raise EmailDeliveryError("provider unavailable")
        self.sent.append(
            {"to": to, "subject": subject, "html": html, "text": text, "attachments": attachments or []}
        )
        return f"email-{len(self.sent)}"


class FakePDFRenderer:
    def __init__(self):
        self.rendered = []
        self.fail = False

    def render(self, document):
        if self.fail:
            raise RuntimeError("layout error")
        self.rendered.append(document)
        return b"%PDF-1.4 " + document.proposal_id.encode()


class FakeAssetStorage:
    def __init__(self):
        self.objects = {}
        self.fail_upload = False
        self.fail_sign = False
        self.fail_download = False

    def upload(self, data, key, content_type="application/pdf"):
        if self.fail_upload:
            raise StorageError(f"Upload failed for {key}")
        self.objects[key] = data
        return key

    def download(self, key):
        if self.fail_download or key not in self.objects:
            raise StorageError(f"Download failed for {key}")
        return self.objects[key]

    def signed_url(self, key, expires_in=3600):
        if self.fail_sign:
            raise StorageError(f"Could not sign URL for {key}")
        return f"https://r2.test/{key}?expires={expires_in}"


class FakePaymentGateway:
    def __init__(self):
        self.sessions = []
        self.fail = False

    def create_checkout_session(
        self, amount_cents, proposal_id, customer, description, success_url, cancel_url
    ):
        if self.fail:
            raise PaymentGatewayError("Billing service unavailable")
        session_id = f"cs_test_{len(self.sessions) + 1}"
        self.sessions.append(
            {
                "session_id": session_id,
                "amount_cents": amount_cents,
                "proposal_id": proposal_id,
                "customer": customer,
                "success_url": success_url,
                "cancel_url": cancel_url,
            }
        )
        return PaymentSession(session_id=session_id, url=f"https://checkout.stripe.test/{session_id}")


def make_generate_request(**input_overrides) -> GenerateProposalRequest:
    inputs = {
        "acreage": 2.5,
        "packageId": "medium",
        "obstacles": ["power lines"],
        "address": "1200 County Rd 44, Eustis, FL",
    }
    inputs.update(input_overrides)
    return GenerateProposalRequest(
        templateId=DEFAULT_TEMPLATE_ID,
        customer=ProposalCustomer(name="Dana Whitfield", email="dana@example.com", phone="352-555-0100"),
        inputs=ProposalInputs(**inputs),
        leadId="lead-42",
    )


def token_from_url(approve_url: str) -> str:
    return approve_url.split("?t=", 1)[1]


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False)()
    seed_default_catalog(session)
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def token_manager():
    return ProposalTokenManager(TOKEN_SECRET)


@pytest.fixture
def clients(token_manager):
    return ProposalClients(
        token_manager=token_manager,
        email_client=FakeEmailClient(),
        pdf_renderer=FakePDFRenderer(),
        asset_storage=FakeAssetStorage(),
        payment_gateway=FakePaymentGateway(),
    )


@pytest.fixture
def service(db, clients):
    return ProposalService.from_clients(db, clients, base_url=BASE_URL)


@pytest.fixture
def admin():
    return AdminIdentity(uid="admin-1", email="admin@treeai.us")


@pytest.fixture
def draft_proposal_id(service, admin):
    return service.generate(make_generate_request(), admin).proposalId


@pytest.fixture
def sent_proposal(service, admin, draft_proposal_id):
    """(proposal_id, approval token) for a proposal that has been e-mailed"""
    response = service.send(draft_proposal_id, admin)
    return draft_proposal_id, token_from_url(response.approveUrl)


@pytest.fixture
def admin_headers():
    token = create_admin_token("admin-1", "admin@treeai.us", secret="test-admin-secret")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(db, clients):
    from treeshop.database import get_db
    from treeshop.domain.proposals.router import (
        accept_rate_limit,
        checkout_rate_limit,
        get_proposal_service,
    )
    from treeshop.main import app

    def override_get_db():
        yield db

    def override_proposal_service():
        return ProposalService.from_clients(db, clients, base_url=BASE_URL)

    async def no_rate_limit():
        return None

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_proposal_service] = override_proposal_service
    app.dependency_overrides[accept_rate_limit] = no_rate_limit
    app.dependency_overrides[checkout_rate_limit] = no_rate_limit
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
