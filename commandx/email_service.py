"""
Email Service using Resend
Templates are written in MJML and compiled to HTML before sending
"""

import base64
import logging
from typing import Optional, Union

import resend
from mjml import mjml_to_html

from .config import EMAIL_FROM_ADDRESS, RESEND_API_KEY
from .email_templates import (
    document_ready_template,
    invites_expiring_template,
    personnel_onboarding_link_template,
    personnel_registration_invite_template,
    vendor_onboarding_invite_template,
)

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY


class EmailDeliveryError(Exception):
    """Email could not be compiled or handed to the provider"""


def compile_mjml_to_html(mjml_content: str) -> str:
    """Compile MJML template to production-ready HTML"""
    try:
        result = mjml_to_html(mjml_content)
    except Exception as e:
        logger.error(f"MJML compilation error: {e}")
        raise EmailDeliveryError(f"Failed to compile MJML template: {str(e)}") from e

    if isinstance(result, dict):
        if result.get("errors"):
            logger.warning(f"MJML compilation warnings: {result['errors']}")
        return result.get("html", "")
    html = getattr(result, "html", None)
    if html is not None:
        if getattr(result, "errors", None):
            logger.warning(f"MJML compilation warnings: {result.errors}")
        return html
    return str(result)


async def send_email(
    to: Union[str, list[str]],
    subject: str,
    mjml_content: str,
    from_address: Optional[str] = None,
    attachments: Optional[list[dict]] = None,
) -> dict:
    """
    Send an email through Resend

    Args:
        to: Recipient email(s)
        subject: Email subject line
        mjml_content: MJML template content (will be compiled to HTML)
        attachments: Optional list of {"filename", "content": bytes}

    Returns:
        Resend response dict
    """
    if not RESEND_API_KEY:
        logger.error("❌ No email service configured - RESEND_API_KEY missing")
        raise EmailDeliveryError("Email service not configured")

    html_content = compile_mjml_to_html(mjml_content)
    recipients = [to] if isinstance(to, str) else to

    email_data = {
        "from": from_address or EMAIL_FROM_ADDRESS,
        "to": recipients,
        "subject": subject,
        "html": html_content,
    }
    if attachments:
        email_data["attachments"] = [
            {
                "filename": a["filename"],
                "content": base64.b64encode(a["content"]).decode("ascii"),
            }
            for a in attachments
        ]

    try:
        logger.info(f"📧 Sending email via Resend to: {recipients}")
        response = resend.Emails.send(email_data)
        logger.info(f"✅ Email sent successfully via Resend: {response}")
        return response
    except Exception as e:
        logger.error(f"❌ Email send error to {recipients}: {e}")
        raise EmailDeliveryError(f"Failed to send email: {str(e)}") from e


# ============================================
# Pre-built emails
# ============================================


async def send_personnel_registration_invite(
    to: str, first_name: Optional[str], company_name: str, registration_url: str, expires_on: str
) -> dict:
    return await send_email(
        to=to,
        subject=f"Complete Your Personnel Registration - {company_name}",
        mjml_content=personnel_registration_invite_template(
            first_name, company_name, registration_url, expires_on
        ),
    )


async def send_personnel_onboarding_link(
    to: str, first_name: str, company_name: str, onboarding_url: str
) -> dict:
    return await send_email(
        to=to,
        subject=f"Complete Your Onboarding - {company_name}",
        mjml_content=personnel_onboarding_link_template(first_name, company_name, onboarding_url),
    )


async def send_vendor_onboarding_invite(
    to: str, vendor_name: str, company_name: str, onboarding_url: str, expires_on: str
) -> dict:
    return await send_email(
        to=to,
        subject=f"Vendor Onboarding - {company_name}",
        mjml_content=vendor_onboarding_invite_template(
            vendor_name, company_name, onboarding_url, expires_on
        ),
    )


async def send_invites_expiring_reminder(
    to: str, inviter_name: str, company_name: str, invites: list[dict]
) -> dict:
    return await send_email(
        to=to,
        subject=f"{len(invites)} registration invite(s) expiring soon",
        mjml_content=invites_expiring_template(inviter_name, company_name, invites),
    )


async def send_document_email(
    to: str,
    recipient_name: str,
    company_name: str,
    document_label: str,
    document_number: str,
    total: float,
    document_url: str,
    pdf_bytes: Optional[bytes] = None,
    message: Optional[str] = None,
) -> dict:
    """Send an estimate, invoice or purchase order, with the PDF attached when given"""
    attachments = None
    if pdf_bytes:
        attachments = [{"filename": f"{document_number}.pdf", "content": pdf_bytes}]
    return await send_email(
        to=to,
        subject=f"{document_label} {document_number} from {company_name}",
        mjml_content=document_ready_template(
            recipient_name,
            company_name,
            document_label,
            document_number,
            total,
            document_url,
            message,
        ),
        attachments=attachments,
    )
