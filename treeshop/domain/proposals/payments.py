"""Stripe Checkout for proposal deposits"""

import logging
from dataclasses import dataclass
from typing import Optional

import stripe

from ...config import STRIPE_CURRENCY, STRIPE_SECRET_KEY
from .schemas import ProposalCustomer

logger = logging.getLogger(__name__)


class PaymentGatewayError(Exception):
    pass


@dataclass(frozen=True)
class PaymentSession:
    session_id: str
    url: str


class StripePaymentGateway:
    """One-off Checkout sessions; the API key is passed per call, never set globally"""

    def __init__(self, api_key: Optional[str] = STRIPE_SECRET_KEY, currency: str = STRIPE_CURRENCY):
        self.api_key = api_key
        self.currency = currency

    def create_checkout_session(
        self,
        amount_cents: int,
        proposal_id: str,
        customer: ProposalCustomer,
        description: str,
        success_url: str,
        cancel_url: str,
    ) -> PaymentSession:
        if not self.api_key:
            raise PaymentGatewayError("Billing not configured")
        if amount_cents <= 0:
            raise PaymentGatewayError("Checkout amount must be positive")

        try:
            session = stripe.checkout.Session.create(
                api_key=self.api_key,
                mode="payment",
                payment_method_types=["card"],
                customer_email=customer.email,
                client_reference_id=proposal_id,
                metadata={"proposal_id": proposal_id, "kind": "deposit"},
                payment_intent_data={"metadata": {"proposal_id": proposal_id, "kind": "deposit"}},
                line_items=[
                    {
                        "price_data": {
                            "currency": self.currency,
                            "unit_amount": amount_cents,
                            "product_data": {"name": description},
                        },
                        "quantity": 1,
                    }
                ],
                success_url=success_url,
                cancel_url=cancel_url,
            )
        except stripe.StripeError as e:
            logger.error(f"❌ Stripe checkout failed for proposal {proposal_id}: {e}")
            raise PaymentGatewayError("Billing service unavailable") from e

        logger.info(f"💳 Checkout session {session.id} created for proposal {proposal_id}")
        return PaymentSession(session_id=session.id, url=session.url)
