"""
Twilio SMS Service
Sends SMS through the Twilio REST API and keeps a row per message in `messages`
"""

import logging
from datetime import datetime
from typing import Optional

import httpx
from sqlalchemy.orm import Session

from ..config import TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN, TWILIO_PHONE_NUMBER
from ..models_messaging import Message
from ..shared.validators import normalize_phone

logger = logging.getLogger(__name__)

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"


class TwilioError(Exception):
    """Twilio rejected the message or could not be reached"""


def twilio_configured() -> bool:
    return bool(TWILIO_ACCOUNT_SID and TWILIO_AUTH_TOKEN and TWILIO_PHONE_NUMBER)


async def post_to_twilio(to_phone: str, body: str) -> str:
    """Send one message, returning the Twilio message SID"""
    logger.info(f"🚀 Sending SMS to Twilio API for {to_phone}")
    try:
        async with httpx.AsyncClient() as client:
            response = await client.post(
                f"{TWILIO_API_BASE}/Accounts/{TWILIO_ACCOUNT_SID}/Messages.json",
                auth=(TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN),
                data={"To": to_phone, "From": TWILIO_PHONE_NUMBER, "Body": body},
                timeout=10.0,
            )
    except httpx.HTTPError as e:
        raise TwilioError(str(e)) from e

    if response.status_code in (200, 201):
        return response.json().get("sid")

    try:
        error_data = response.json()
    except ValueError:
        error_data = {}
    error_message = error_data.get("message") or f"HTTP {response.status_code}"
    error_code = error_data.get("code")
    raise TwilioError(f"[{error_code}] {error_message}" if error_code else error_message)


async def send_sms(
    db: Session,
    to_phone: str,
    body: str,
    recipient_type: Optional[str] = None,
    recipient_id: Optional[int] = None,
    recipient_name: Optional[str] = None,
    sent_by: Optional[int] = None,
    batch_id: Optional[str] = None,
    project_id: Optional[int] = None,
    message_context: Optional[str] = None,
) -> Message:
    """
    Send an SMS and record it.

    The `messages` row is written as `pending` before the API call and then
    updated to `sent` (with the Twilio SID) or `failed` (with the error), so a
    crash mid-send still leaves a trace. Without Twilio credentials the
    message is logged and marked `sent` so local setups keep working.
    """
    phone = normalize_phone(to_phone)
    message = Message(
        recipient_type=recipient_type,
        recipient_id=recipient_id,
        recipient_name=recipient_name,
        recipient_phone=phone,
        content=body,
        message_type="sms",
        status="pending",
        sent_by=sent_by,
        batch_id=batch_id,
        project_id=project_id,
        message_context=message_context,
    )
    db.add(message)
    db.commit()
    db.refresh(message)

    if not twilio_configured():
        logger.info(f"📱 [DEV MODE] SMS to {phone}: {body}")
        message.status = "sent"
        message.sent_at = datetime.utcnow()
        db.commit()
        return message

    try:
        sid = await post_to_twilio(phone, body)
        message.status = "sent"
        message.external_id = sid
        message.sent_at = datetime.utcnow()
        logger.info(f"✅ SMS sent to {phone} (SID: {sid})")
    except TwilioError as e:
        message.status = "failed"
        message.error_message = str(e)
        logger.error(f"❌ SMS to {phone} failed: {e}")
    db.commit()
    return message
