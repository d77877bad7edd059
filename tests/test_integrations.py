"""Real client wrappers with their network calls stubbed out"""

import io
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
import stripe
from botocore.exceptions import ClientError

from treeshop.domain.catalog.seed import DEFAULT_TEMPLATE_ID
from treeshop.domain.proposals.payments import PaymentGatewayError, StripePaymentGateway
from treeshop.domain.proposals.pdf_service import ProposalDocument, ProposalPDFRenderer
from treeshop.domain.proposals.schemas import ProposalCustomer
from treeshop.domain.proposals.snapshots import SnapshotStore
from treeshop.domain.proposals.totals import compute_totals
from treeshop.email_service import (
    EmailAttachment,
    EmailDeliveryError,
    ResendEmailClient,
    build_proposal_review_email,
)
from treeshop.storage import R2AssetStorage, StorageError
from treeshop.utils.sanitization import clean_display_name, strip_html

from .conftest import make_generate_request

CUSTOMER = ProposalCustomer(name="Dana Whitfield", email="dana@example.com", phone="352-555-0100")


# ============================================================================
# PDF
# ============================================================================


def test_renders_a_pdf_from_the_snapshot(db):
    snapshot = SnapshotStore(db).create_snapshot(DEFAULT_TEMPLATE_ID)
    request = make_generate_request(selectedServiceIds=["stump-grinding"], notes="Gate code 4411")
    computed = compute_totals(request.inputs, snapshot.packages, snapshot.services)

    pdf_bytes = ProposalPDFRenderer(business_name="TreeAI Test Co").render(
        ProposalDocument(
            proposal_id="a1b2c3d4-0000-0000-0000-000000000000",
            version=1,
            customer=request.customer,
            inputs=request.inputs,
            computed=computed,
            snapshot=snapshot,
            issued_at=datetime(2026, 3, 2, 15, 0),
        )
    )

    assert pdf_bytes.startswith(b"%PDF")
    assert len(pdf_bytes) > 1000
    assert len(ProposalPDFRenderer.calculate_hash(pdf_bytes)) == 64


# ============================================================================
# E-MAIL
# ============================================================================


def test_review_email_contains_link_and_amounts():
    approve_url = "https://treeai.test/p/abc?t=tok.en.value"

    message = build_proposal_review_email(
        customer_name="Dana Whitfield",
        total=6562.5,
        deposit_amount=1312.5,
        approve_url=approve_url,
        expires_at=datetime.now(timezone.utc) + timedelta(days=14),
    )

    assert "<html" in message.html.lower()
    assert approve_url in message.html
    assert approve_url in message.text
    assert "$6,562.50" in message.text
    assert "$1,312.50" in message.text


def test_resend_client_returns_delivery_id(monkeypatch):
    captured = {}

    def fake_send(params):
        captured.update(params)
        return {"id": "re_123"}

    monkeypatch.setattr("resend.Emails.send", fake_send)
    client = ResendEmailClient(api_key="re_test", from_address="TreeAI <proposals@treeai.us>")

    email_id = client.send(
        "dana@example.com",
        "Subject",
        "<p>hi</p>",
        text="hi",
        attachments=[EmailAttachment(filename="proposal.pdf", content=b"%PDF")],
    )

    assert email_id == "re_123"
    assert captured["to"] == ["dana@example.com"]
    assert captured["attachments"][0]["filename"] == "proposal.pdf"


def test_resend_failures_become_delivery_errors(monkeypatch):
    def broken_send(params):
        raise RuntimeError("503 from provider")

    monkeypatch.setattr("resend.Emails.send", broken_send)

    with pytest.raises(EmailDeliveryError):
        ResendEmailClient(api_key="re_test").send("dana@example.com", "Subject", "<p>hi</p>")

    with pytest.raises(EmailDeliveryError):
        ResendEmailClient(api_key=None).send("dana@example.com", "Subject", "<p>hi</p>")


# ============================================================================
# STORAGE
# ============================================================================


@pytest.fixture
def storage():
    return R2AssetStorage(
        account_id="acct123",
        access_key_id="AKIATEST",
        secret_access_key="secret",
        bucket_name="proposals-test",
    )


def test_signed_url_points_at_private_object(storage):
    url = storage.signed_url("proposals/abc/v1.pdf", expires_in=600)

    assert "acct123.r2.cloudflarestorage.com" in url
    assert "proposals-test" in url
    assert "proposals/abc/v1.pdf" in url
    assert "Expires=600" in url or "X-Amz-Expires=600" in url


def test_upload_errors_become_storage_errors(storage, monkeypatch):
    def denied(**kwargs):
        raise ClientError({"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject")

    monkeypatch.setattr(storage._client, "put_object", denied)

    with pytest.raises(StorageError):
        storage.upload(b"%PDF", "proposals/abc/v1.pdf")


def test_download_reads_the_object_body(storage, monkeypatch):
    requested = {}

    def fake_get_object(**kwargs):
        requested.update(kwargs)
        return {"Body": io.BytesIO(b"%PDF-1.4 body")}

    monkeypatch.setattr(storage._client, "get_object", fake_get_object)

    assert storage.download("proposals/abc/v1.pdf") == b"%PDF-1.4 body"
    assert requested == {"Bucket": "proposals-test", "Key": "proposals/abc/v1.pdf"}


def test_missing_object_becomes_storage_error(storage, monkeypatch):
    def missing(**kwargs):
        raise ClientError({"Error": {"Code": "NoSuchKey", "Message": "missing"}}, "GetObject")

    monkeypatch.setattr(storage._client, "get_object", missing)

    with pytest.raises(StorageError):
        storage.download("proposals/abc/v1.pdf")


# ============================================================================
# PAYMENTS
# ============================================================================


def test_checkout_session_carries_proposal_reference(monkeypatch):
    captured = {}

    def fake_create(**params):
        captured.update(params)
        return SimpleNamespace(id="cs_live_1", url="https://checkout.stripe.com/c/pay/cs_live_1")

    monkeypatch.setattr(stripe.checkout.Session, "create", fake_create)
    gateway = StripePaymentGateway(api_key="sk_test_123", currency="usd")

    session = gateway.create_checkout_session(
        amount_cents=131250,
        proposal_id="p-1",
        customer=CUSTOMER,
        description="Deposit",
        success_url="https://treeai.test/ok",
        cancel_url="https://treeai.test/cancel",
    )

    assert session.session_id == "cs_live_1"
    assert captured["api_key"] == "sk_test_123"
    assert captured["client_reference_id"] == "p-1"
    assert captured["metadata"] == {"proposal_id": "p-1", "kind": "deposit"}
    assert captured["payment_intent_data"]["metadata"]["proposal_id"] == "p-1"
    assert captured["line_items"][0]["price_data"]["unit_amount"] == 131250


def test_stripe_errors_become_gateway_errors(monkeypatch):
    def broken_create(**params):
        raise stripe.APIConnectionError("network down")

    monkeypatch.setattr(stripe.checkout.Session, "create", broken_create)

    with pytest.raises(PaymentGatewayError):
        StripePaymentGateway(api_key="sk_test_123").create_checkout_session(
            131250, "p-1", CUSTOMER, "Deposit", "https://ok", "https://cancel"
        )

    with pytest.raises(PaymentGatewayError):
        StripePaymentGateway(api_key=None).create_checkout_session(
            131250, "p-1", CUSTOMER, "Deposit", "https://ok", "https://cancel"
        )


# ============================================================================
# TEXT HELPERS
# ============================================================================


def test_display_names_are_normalized():
    assert clean_display_name("  Dana \t Whitfield\x00 ") == "Dana Whitfield"
    assert clean_display_name("   ") == ""
    assert clean_display_name(None) == ""


def test_rich_terms_become_plain_text():
    assert strip_html("<p>Payment due &amp; owing</p><p>Net 30</p>") == "Payment due & owing\nNet 30"


def test_markup_in_terms_is_dropped_not_rendered():
    assert strip_html('<b>Net</b> <a href="https://x.test" onclick="steal()">30</a>') == "Net 30"
    assert strip_html("<!-- internal -->Deposit<br/>non-refundable") == "Deposit\nnon-refundable"
    assert strip_html("5 < 6 &amp; 7 > 3") == "5 < 6 & 7 > 3"
