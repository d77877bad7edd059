"""
MJML Email Templates
Customer-facing proposal e-mails using MJML for responsive, cross-client compatibility
"""

from datetime import datetime
from typing import Optional

from .config import BUSINESS_NAME, BUSINESS_PHONE, PUBLIC_BASE_URL
from .utils.sanitization import sanitize_string

# Brand colors - Forest green/Slate color scheme
THEME = {
    "primary": "#15803d",
    "primary_dark": "#166534",
    "primary_light": "#dcfce7",
    "background": "#f8fafc",
    "card_bg": "#ffffff",
    "text_primary": "#0f172a",
    "text_secondary": "#334155",
    "text_muted": "#64748b",
    "border": "#e2e8f0",
}


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    cta_url: Optional[str] = None,
    cta_label: Optional[str] = None,
) -> str:
    """Base MJML template wrapper for all emails"""

    cta_section = ""
    if cta_url and cta_label:
        cta_section = f"""
        <mj-section padding="20px 0">
          <mj-column>
            <mj-button
              href="{cta_url}"
              background-color="{THEME['primary']}"
              color="#ffffff"
              font-weight="600"
              border-radius="8px"
              padding="18px 40px"
              font-size="16px">
              {cta_label}
            </mj-button>
          </mj-column>
        </mj-section>
        """

    return f"""
    <mjml>
      <mj-head>
        <mj-title>{title}</mj-title>
        <mj-preview>{preview_text}</mj-preview>
        <mj-attributes>
          <mj-all font-family="-apple-system, BlinkMacSystemFont, 'Segoe UI', 'Helvetica Neue', Arial, sans-serif" />
          <mj-text font-size="16px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}">
        <mj-section background-color="#ffffff" padding="32px 40px 0 40px">
          <mj-column>
            <mj-text font-size="20px" font-weight="700" color="{THEME['primary']}" padding="0">
              {sanitize_string(BUSINESS_NAME)}
            </mj-text>
            <mj-divider border-color="{THEME['border']}" border-width="1px" padding="24px 0 32px 0" />
          </mj-column>
        </mj-section>

        <!-- Main Content -->
        <mj-section background-color="#ffffff" padding="0 40px 48px 40px">
          <mj-column>
            <mj-text font-size="24px" font-weight="600" color="{THEME['text_primary']}" line-height="1.3" padding="0 0 16px 0">
              {title}
            </mj-text>

            {content_sections}
          </mj-column>
        </mj-section>

        {cta_section}

        <!-- Footer -->
        <mj-section padding="32px 20px">
          <mj-column>
            <mj-text align="center" font-size="13px" color="#94a3b8" padding="0">
              {sanitize_string(BUSINESS_NAME)} · {sanitize_string(BUSINESS_PHONE)} ·
              <a href="{PUBLIC_BASE_URL}" style="color: #64748b; text-decoration: none;">{PUBLIC_BASE_URL}</a>
            </mj-text>
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def proposal_review_template(
    customer_name: str,
    total: float,
    deposit_amount: float,
    approve_url: str,
    expires_at: datetime,
) -> str:
    """Proposal ready for review MJML template"""
    customer_name = sanitize_string(customer_name)

    deposit_section = ""
    if deposit_amount > 0:
        deposit_section = f"""
        <mj-text color="{THEME['text_muted']}" font-size="14px" padding="0 0 8px 0" align="center">
          A ${deposit_amount:,.2f} deposit reserves your spot on the schedule.
        </mj-text>
        """

    content = f"""
    <mj-text>
      Hi {customer_name},
    </mj-text>

    <mj-text>
      Thank you for the opportunity to quote your land clearing project. Your proposal is attached
      and ready for review online.
    </mj-text>

    <mj-text align="center" font-size="36px" font-weight="700" color="{THEME['text_primary']}" padding="20px 0">
      ${total:,.2f}
    </mj-text>

    {deposit_section}

    <mj-text padding="24px 0 0 0">
      Use the secure link below to review the details and accept. The link is personal to you
      and expires on {expires_at.strftime("%B %d, %Y")}.
    </mj-text>
    """

    return get_base_template(
        title="Your Proposal Is Ready",
        preview_text=f"Your proposal from {sanitize_string(BUSINESS_NAME)} is ready",
        content_sections=content,
        cta_url=approve_url,
        cta_label="Review & Accept Proposal",
    )


def proposal_review_text(
    customer_name: str, total: float, deposit_amount: float, approve_url: str, expires_at: datetime
) -> str:
    """Plain-text alternative for clients that do not render HTML"""
    lines = [
        f"Hi {customer_name},",
        "",
        f"Your proposal from {BUSINESS_NAME} is ready: ${total:,.2f}.",
    ]
    if deposit_amount > 0:
        lines.append(f"A ${deposit_amount:,.2f} deposit reserves your spot on the schedule.")
    lines += [
        "",
        f"Review and accept: {approve_url}",
        f"This link expires on {expires_at.strftime('%B %d, %Y')}.",
        "",
        f"Questions? Call {BUSINESS_PHONE}.",
    ]
    return "\n".join(lines)
