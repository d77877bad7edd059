import importlib
import json
import time
from types import ModuleType

import pytest

from treeshop.domain.proposals.events import EventLog
from treeshop.models import Proposal
from treeshop.webhook_security import create_stripe_signature_header

WEBHOOK_SECRET = "whsec_test_secret"


def proposals_router_module():
    return importlib.import_module("treeshop.domain.proposals.router")


@pytest.fixture(autouse=True)
def webhook_secret(monkeypatch):
    monkeypatch.setattr(proposals_router_module(), "STRIPE_WEBHOOK_SECRET", WEBHOOK_SECRET)


@pytest.fixture
def accepted_proposal(service, sent_proposal):
    proposal_id, token = sent_proposal
    service.accept(proposal_id, token, full_name="Dana Whitfield", consent=True)
    service.checkout(proposal_id, token)
    return proposal_id


def stripe_event(event_type, proposal_id, payment_status="paid"):
    return {
        "id": f"evt_{int(time.time() * 1000)}",
        "object": "event",
        "type": event_type,
        "data": {
            "object": {
                "id": "cs_test_1",
                "object": "checkout.session",
                "payment_status": payment_status,
                "payment_intent": "pi_test_1",
                "amount_total": 131250,
                "client_reference_id": proposal_id,
                "metadata": {"proposal_id": proposal_id, "kind": "deposit"},
            }
        },
    }


def post_event(client, event, secret=WEBHOOK_SECRET, timestamp=None):
    payload = json.dumps(event).encode("utf-8")
    return client.post(
        "/stripe/webhook",
        content=payload,
        headers={
            "Content-Type": "application/json",
            "Stripe-Signature": create_stripe_signature_header(secret, payload, timestamp),
        },
    )


def event_types(db, proposal_id):
    return [e.type for e in EventLog.list_for(db, proposal_id)]


def test_completed_checkout_marks_proposal_paid(client, db, accepted_proposal):
    response = post_event(client, stripe_event("checkout.session.completed", accepted_proposal))

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    proposal = db.get(Proposal, accepted_proposal)
    db.refresh(proposal)
    assert proposal.status == "paid"
    assert proposal.stripe_payment_intent_id == "pi_test_1"
    assert proposal.payment_amount_cents == 131250
    assert event_types(db, accepted_proposal)[-1] == "PAID"


def test_redelivered_event_is_idempotent(client, db, accepted_proposal):
    event = stripe_event("checkout.session.completed", accepted_proposal)

    assert post_event(client, event).status_code == 200
    assert post_event(client, event).status_code == 200

    assert event_types(db, accepted_proposal).count("PAID") == 1


def test_unpaid_completion_is_pending(client, db, accepted_proposal):
    event = stripe_event("checkout.session.completed", accepted_proposal, payment_status="unpaid")

    response = post_event(client, event)

    assert response.json() == {"status": "pending"}
    assert "PAID" not in event_types(db, accepted_proposal)


def test_expired_session_is_logged(client, db, accepted_proposal):
    response = post_event(client, stripe_event("checkout.session.expired", accepted_proposal))

    assert response.status_code == 200
    proposal = db.get(Proposal, accepted_proposal)
    db.refresh(proposal)
    assert proposal.status == "accepted"
    assert event_types(db, accepted_proposal)[-1] == "PAYMENT_EXPIRED"


def test_payment_for_unaccepted_proposal_is_acknowledged_and_ignored(client, db, sent_proposal):
    proposal_id, _ = sent_proposal

    response = post_event(client, stripe_event("checkout.session.completed", proposal_id))

    assert response.json() == {"status": "ignored"}
    assert "PAID" not in event_types(db, proposal_id)


def test_unknown_proposal_and_unhandled_types_are_ignored(client):
    unknown = post_event(client, stripe_event("checkout.session.completed", "no-such-proposal"))
    unhandled = post_event(client, stripe_event("invoice.paid", "no-such-proposal"))

    assert unknown.json() == {"status": "ignored"}
    assert unhandled.json() == {"status": "ignored"}


def test_bad_signature_is_rejected(client, db, accepted_proposal):
    response = post_event(
        client, stripe_event("checkout.session.completed", accepted_proposal), secret="whsec_wrong"
    )

    assert response.status_code == 401
    proposal = db.get(Proposal, accepted_proposal)
    db.refresh(proposal)
    assert proposal.status == "accepted"


def test_stale_signature_is_rejected(client, accepted_proposal):
    event = stripe_event("checkout.session.completed", accepted_proposal)

    response = post_event(client, event, timestamp=int(time.time()) - 3600)

    assert response.status_code == 401


def test_missing_signature_header(client):
    response = client.post("/stripe/webhook", content=b"{}")

    assert response.status_code == 401


def test_unconfigured_secret_refuses_webhooks(client, monkeypatch, accepted_proposal):
    monkeypatch.setattr(proposals_router_module(), "STRIPE_WEBHOOK_SECRET", None)

    response = post_event(client, stripe_event("checkout.session.completed", accepted_proposal))

    assert response.status_code == 503


def test_router_submodule_is_not_shadowed_by_the_package_exports():
    import treeshop.domain.proposals as proposals

    assert isinstance(proposals.router, ModuleType)
    assert proposals.router is proposals_router_module()
    assert hasattr(proposals.router, "STRIPE_WEBHOOK_SECRET")


def payment_failed_event(proposal_id):
    return {
        "id": f"evt_{int(time.time() * 1000)}",
        "object": "event",
        "type": "payment_intent.payment_failed",
        "data": {
            "object": {
                "id": "pi_test_declined",
                "object": "payment_intent",
                "amount": 131250,
                "metadata": {"proposal_id": proposal_id, "kind": "deposit"},
                "last_payment_error": {
                    "code": "card_declined",
                    "decline_code": "insufficient_funds",
                    "message": "Your card has insufficient funds.",
                },
            }
        },
    }


def charge_refunded_event(payment_intent_id, amount_refunded=131250, refunded=True):
    return {
        "id": f"evt_{int(time.time() * 1000)}",
        "object": "event",
        "type": "charge.refunded",
        "data": {
            "object": {
                "id": "ch_test_1",
                "object": "charge",
                "payment_intent": payment_intent_id,
                "amount_refunded": amount_refunded,
                "refunded": refunded,
                "metadata": {},
            }
        },
    }


def test_failed_payment_is_logged_and_proposal_stays_accepted(client, db, accepted_proposal):
    response = post_event(client, payment_failed_event(accepted_proposal))

    assert response.json() == {"status": "ok"}
    proposal = db.get(Proposal, accepted_proposal)
    db.refresh(proposal)
    assert proposal.status == "accepted"
    [failed] = [e for e in EventLog.list_for(db, accepted_proposal) if e.type == "PAYMENT_FAILED"]
    assert failed.event_metadata["paymentIntentId"] == "pi_test_declined"
    assert failed.event_metadata["code"] == "insufficient_funds"
    assert failed.event_metadata["amountCents"] == 131250


def test_refund_is_matched_by_payment_intent(client, db, accepted_proposal):
    post_event(client, stripe_event("checkout.session.completed", accepted_proposal))

    response = post_event(client, charge_refunded_event("pi_test_1", amount_refunded=50000, refunded=False))

    assert response.json() == {"status": "ok"}
    proposal = db.get(Proposal, accepted_proposal)
    db.refresh(proposal)
    assert proposal.status == "paid"
    [refund] = [e for e in EventLog.list_for(db, accepted_proposal) if e.type == "PAYMENT_REFUNDED"]
    assert refund.event_metadata["chargeId"] == "ch_test_1"
    assert refund.event_metadata["amountRefundedCents"] == 50000
    assert refund.event_metadata["fullyRefunded"] is False


def test_refund_for_unknown_payment_is_ignored(client, db, accepted_proposal):
    response = post_event(client, charge_refunded_event("pi_never_seen"))

    assert response.json() == {"status": "ignored"}
    assert "PAYMENT_REFUNDED" not in event_types(db, accepted_proposal)
