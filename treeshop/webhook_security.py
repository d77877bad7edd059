"""
Webhook Security Module

Signature verification for the Stripe webhook endpoint plus the
constant-time comparison helper used wherever secrets or hashes are compared.
"""

import hashlib
import hmac
import logging
import time
from typing import Optional

import stripe
from fastapi import HTTPException, Request

logger = logging.getLogger(__name__)

# Maximum age of webhook in seconds (5 minutes)
MAX_WEBHOOK_AGE_SECONDS = 300


def constant_time_compare(a: Optional[str], b: Optional[str]) -> bool:
    """
    Compare two strings in constant time to prevent timing attacks.
    Uses hmac.compare_digest which is designed for this purpose.
    """
    if not a or not b:
        return False
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


def compute_hmac_sha256(secret: str, payload: bytes) -> str:
    """Compute HMAC-SHA256 signature of payload"""
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


async def verify_stripe_webhook(request: Request, secret: Optional[str]) -> stripe.Event:
    """
    Verify the Stripe-Signature header and return the parsed event.

    Stripe signs "<timestamp>.<raw body>"; construct_event checks the HMAC and
    rejects timestamps older than MAX_WEBHOOK_AGE_SECONDS.
    """
    if not secret:
        logger.error("❌ STRIPE_WEBHOOK_SECRET not configured")
        raise HTTPException(status_code=503, detail="Webhook not configured")

    raw_body = await request.body()
    signature_header = request.headers.get("Stripe-Signature", "")

    logger.debug("📥 Stripe webhook received")

    if not signature_header:
        logger.warning("🚫 Stripe webhook missing signature header")
        raise HTTPException(status_code=401, detail="Missing webhook signature")

    try:
        event = stripe.Webhook.construct_event(
            raw_body, signature_header, secret, tolerance=MAX_WEBHOOK_AGE_SECONDS
        )
    except ValueError:
        logger.warning("🚫 Stripe webhook payload is not valid JSON")
        raise HTTPException(status_code=400, detail="Invalid payload")
    except stripe.SignatureVerificationError:
        logger.warning("🚫 Stripe webhook signature mismatch")
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    logger.debug("✅ Stripe webhook signature verified")
    return event


def create_stripe_signature_header(secret: str, payload: bytes, timestamp: Optional[int] = None) -> str:
    """Build a Stripe-Signature header for a payload (used for testing)"""
    timestamp = timestamp or int(time.time())
    signed_payload = f"{timestamp}.".encode("utf-8") + payload
    return f"t={timestamp},v1={compute_hmac_sha256(secret, signed_payload)}"
