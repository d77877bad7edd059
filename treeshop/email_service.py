"""
Email Service using Resend
Proposal e-mails are written as MJML templates and compiled to HTML
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union

import resend
from mjml import mjml_to_html

from .config import PROPOSAL_FROM_EMAIL, RESEND_API_KEY
from .email_templates import proposal_review_template, proposal_review_text

logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    pass


@dataclass(frozen=True)
class EmailAttachment:
    filename: str
    content: bytes


@dataclass(frozen=True)
class EmailMessage:
    subject: str
    html: str
    text: str


def compile_mjml_to_html(mjml_content: str) -> str:
    """Compile MJML template to production-ready HTML"""
    try:
        result = mjml_to_html(mjml_content)
    except Exception as e:
        logger.error(f"MJML compilation error: {e}")
        raise EmailDeliveryError(f"Failed to compile MJML template: {e}") from e

    # mjml_to_html returns a dict-like result with 'html' and 'errors'
    if isinstance(result, dict):
        if result.get("errors"):
            logger.warning(f"MJML compilation warnings: {result['errors']}")
        return result.get("html", "")
    return getattr(result, "html", str(result))


def build_proposal_review_email(
    customer_name: str,
    total: float,
    deposit_amount: float,
    approve_url: str,
    expires_at: datetime,
) -> EmailMessage:
    mjml_content = proposal_review_template(
        customer_name=customer_name,
        total=total,
        deposit_amount=deposit_amount,
        approve_url=approve_url,
        expires_at=expires_at,
    )
    return EmailMessage(
        subject="Your proposal is ready for review",
        html=compile_mjml_to_html(mjml_content),
        text=proposal_review_text(customer_name, total, deposit_amount, approve_url, expires_at),
    )


class ResendEmailClient:
    """Thin wrapper over Resend that returns the delivery id"""

    def __init__(self, api_key: Optional[str] = RESEND_API_KEY, from_address: str = PROPOSAL_FROM_EMAIL):
        self.api_key = api_key
        self.from_address = from_address

    def send(
        self,
        to: Union[str, list[str]],
        subject: str,
        html: str,
        text: Optional[str] = None,
        attachments: Optional[list[EmailAttachment]] = None,
    ) -> str:
        if not self.api_key:
            logger.error("❌ No email service configured - RESEND_API_KEY missing")
            raise EmailDeliveryError("Email service not configured")

        recipients = [to] if isinstance(to, str) else to
        email_data = {
            "from": self.from_address,
            "to": recipients,
            "subject": subject,
            "html": html,
        }
        if text:
            email_data["text"] = text
        if attachments:
            email_data["attachments"] = [
                {"filename": attachment.filename, "content": list(attachment.content)}
                for attachment in attachments
            ]

        resend.api_key = self.api_key
        try:
            logger.info(f"📧 Sending email via Resend to {len(recipients)} recipient(s)")
            response = resend.Emails.send(email_data)
        except Exception as e:
            logger.error(f"❌ Email send error: {e}")
            raise EmailDeliveryError(f"Failed to send email: {e}") from e

        email_id = response.get("id") if isinstance(response, dict) else getattr(response, "id", None)
        if not email_id:
            raise EmailDeliveryError("Email provider returned no delivery id")

        logger.info(f"✅ Email sent successfully via Resend: {email_id}")
        return email_id
