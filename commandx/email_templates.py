"""
MJML Email Templates
Templates for onboarding links, reminders and document delivery
"""

from typing import Optional

from .utils.sanitization import sanitize_string

THEME = {
    "primary": "#1d4ed8",
    "background": "#f8fafc",
    "text_primary": "#0f172a",
    "text_secondary": "#334155",
    "text_muted": "#64748b",
    "border": "#e2e8f0",
    "warning": "#f59e0b",
}


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    company_name: str,
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
            <mj-text align="center" font-size="12px" color="{THEME['text_muted']}">
              Or paste this link into your browser: {cta_url}
            </mj-text>
          </mj-column>
        </mj-section>
        """

    return f"""
    <mjml>
      <mj-head>
        <mj-title>{title}</mj-title>
        <mj-preview>{preview_text}</mj-preview>
        <mj-attributes>
          <mj-all font-family="-apple-system, BlinkMacSystemFont, 'Segoe UI', Arial, sans-serif" />
          <mj-text font-size="16px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}">
        <mj-section background-color="#ffffff" padding="32px 40px 48px 40px">
          <mj-column>
            <mj-text font-size="24px" font-weight="600" color="{THEME['text_primary']}" padding="0 0 16px 0">
              {title}
            </mj-text>
            {content_sections}
          </mj-column>
        </mj-section>

        {cta_section}

        <mj-section padding="32px 20px">
          <mj-column>
            <mj-text align="center" font-size="13px" color="#94a3b8" padding="0">
              {company_name}
            </mj-text>
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def personnel_registration_invite_template(
    first_name: Optional[str], company_name: str, registration_url: str, expires_on: str
) -> str:
    greeting = f"Hi {sanitize_string(first_name)}," if first_name else "Hello,"
    company = sanitize_string(company_name)
    content = f"""
    <mj-text>{greeting}</mj-text>
    <mj-text>
      {company} has invited you to register as a team member. Use the button
      below to fill in your contact details, work authorization and emergency
      contacts.
    </mj-text>
    <mj-text color="{THEME['text_muted']}" font-size="14px">
      This link is personal to you and expires on {expires_on}.
    </mj-text>
    """
    return get_base_template(
        title="Complete Your Personnel Registration",
        preview_text=f"{company} invited you to register",
        content_sections=content,
        company_name=company,
        cta_url=registration_url,
        cta_label="Start Registration",
    )


def personnel_onboarding_link_template(
    first_name: str, company_name: str, onboarding_url: str
) -> str:
    company = sanitize_string(company_name)
    content = f"""
    <mj-text>Hi {sanitize_string(first_name)},</mj-text>
    <mj-text>
      Here is your link to finish onboarding with {company}. It can only be
      used once.
    </mj-text>
    <mj-text color="{THEME['text_muted']}" font-size="14px">
      If you did not ask for this email you can ignore it.
    </mj-text>
    """
    return get_base_template(
        title="Complete Your Onboarding",
        preview_text="Your onboarding link",
        content_sections=content,
        company_name=company,
        cta_url=onboarding_url,
        cta_label="Complete Onboarding",
    )


def vendor_onboarding_invite_template(
    vendor_name: str, company_name: str, onboarding_url: str, expires_on: str
) -> str:
    company = sanitize_string(company_name)
    content = f"""
    <mj-text>Hello {sanitize_string(vendor_name)},</mj-text>
    <mj-text>
      {company} would like to set you up as a vendor. Please provide your
      business details, tax information, insurance and banking information
      using the secure link below.
    </mj-text>
    <mj-text color="{THEME['text_muted']}" font-size="14px">
      The link expires on {expires_on}.
    </mj-text>
    """
    return get_base_template(
        title="Vendor Onboarding",
        preview_text=f"{company} invited you to onboard as a vendor",
        content_sections=content,
        company_name=company,
        cta_url=onboarding_url,
        cta_label="Start Vendor Onboarding",
    )


def invites_expiring_template(inviter_name: str, company_name: str, invites: list[dict]) -> str:
    """Reminder to the person who sent registration invites that are about to lapse"""
    rows = "".join(
        f"• {sanitize_string(i['name'] or i['email'])} ({sanitize_string(i['email'])}) "
        f"- expires {i['expires_at']}<br/>"
        for i in invites
    )
    content = f"""
    <mj-text>Hi {sanitize_string(inviter_name)},</mj-text>
    <mj-text>
      {len(invites)} personnel registration invite(s) you sent will expire in the
      next 24 hours without being completed:
    </mj-text>
    <mj-text padding="0 0 0 20px">{rows}</mj-text>
    <mj-text>You can resend them from the personnel page.</mj-text>
    """
    return get_base_template(
        title="Registration Invites Expiring Soon",
        preview_text=f"{len(invites)} invite(s) expire within 24 hours",
        content_sections=content,
        company_name=sanitize_string(company_name),
    )


def document_ready_template(
    recipient_name: str,
    company_name: str,
    document_label: str,
    document_number: str,
    total: float,
    document_url: str,
    message: Optional[str] = None,
) -> str:
    company = sanitize_string(company_name)
    note = f"<mj-text>{sanitize_string(message)}</mj-text>" if message else ""
    content = f"""
    <mj-text>Hello {sanitize_string(recipient_name)},</mj-text>
    <mj-text>
      {company} has sent you {document_label.lower()} {sanitize_string(document_number)}
      for <strong>${total:,.2f}</strong>.
    </mj-text>
    {note}
    """
    return get_base_template(
        title=f"{document_label} {sanitize_string(document_number)}",
        preview_text=f"{document_label} {document_number} from {company}",
        content_sections=content,
        company_name=company,
        cta_url=document_url,
        cta_label=f"View {document_label}",
    )
