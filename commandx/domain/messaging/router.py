"""Messaging router - SMS sending, Twilio inbound webhook and conversations"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response
from sqlalchemy.orm import Session

from ... import config
from ...auth import require_staff
from ...database import get_db
from ...models import User
from ...webhook_security import verify_twilio_signature
from .schemas import (
    BulkSmsRequest,
    BulkSmsResponse,
    ConversationMessageResponse,
    ConversationReply,
    ConversationResponse,
    MessageResponse,
    SendSmsRequest,
)
from .service import MessagingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/messaging", tags=["Messaging"])

EMPTY_TWIML = '<?xml version="1.0" encoding="UTF-8"?><Response></Response>'


def get_messaging_service(db: Session = Depends(get_db)) -> MessagingService:
    return MessagingService(db)


@router.post("/sms/bulk", response_model=BulkSmsResponse)
async def send_bulk_sms(
    data: BulkSmsRequest,
    current_user: User = Depends(require_staff),
    service: MessagingService = Depends(get_messaging_service),
):
    """Send the same text to a list of personnel; those without a phone are skipped"""
    return await service.send_bulk_sms(data, current_user)


@router.post("/sms", response_model=MessageResponse)
async def send_sms(
    data: SendSmsRequest,
    current_user: User = Depends(require_staff),
    service: MessagingService = Depends(get_messaging_service),
):
    return await service.send_single_sms(data, current_user)


@router.post("/webhooks/twilio/inbound")
async def twilio_inbound(request: Request, db: Session = Depends(get_db)):
    """
    Twilio inbound SMS webhook.

    The signature is checked whenever an auth token is configured. Twilio
    gets an empty TwiML document back so no auto-reply is sent.
    """
    form = await request.form()
    params = {key: str(value) for key, value in form.items()}

    if config.TWILIO_AUTH_TOKEN:
        verify_twilio_signature(
            request, params, config.TWILIO_AUTH_TOKEN, webhook_url=config.TWILIO_WEBHOOK_URL
        )

    from_phone = params.get("From")
    body = params.get("Body", "")
    if from_phone:
        # Twilio retries on errors; the message is logged rather than redelivered
        try:
            MessagingService(db).receive_inbound(from_phone, body, params.get("MessageSid"))
        except Exception:
            db.rollback()
            logger.exception(f"❌ Failed to store inbound SMS from {from_phone}")
    else:
        logger.warning("⚠️ Inbound SMS webhook without From number")

    return Response(content=EMPTY_TWIML, media_type="application/xml")


@router.get("/conversations", response_model=list[ConversationResponse])
async def list_conversations(
    current_user: User = Depends(require_staff),
    service: MessagingService = Depends(get_messaging_service),
):
    return service.list_conversations()


@router.get(
    "/conversations/{conversation_id}/messages",
    response_model=list[ConversationMessageResponse],
)
async def list_conversation_messages(
    conversation_id: int,
    current_user: User = Depends(require_staff),
    service: MessagingService = Depends(get_messaging_service),
):
    return service.list_conversation_messages(conversation_id)


@router.post("/conversations/{conversation_id}/read")
async def mark_conversation_read(
    conversation_id: int,
    current_user: User = Depends(require_staff),
    service: MessagingService = Depends(get_messaging_service),
):
    return service.mark_conversation_read(conversation_id)


@router.post(
    "/conversations/{conversation_id}/reply", response_model=ConversationMessageResponse
)
async def reply_to_conversation(
    conversation_id: int,
    data: ConversationReply,
    current_user: User = Depends(require_staff),
    service: MessagingService = Depends(get_messaging_service),
):
    return await service.reply(conversation_id, data.content, current_user)
