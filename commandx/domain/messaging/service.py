"""
Messaging service

Outbound SMS (single and bulk) and the inbound side of two-way conversations.
Inbound senders are matched on the last 10 digits of their number, personnel
first and then customers, since stored numbers come in many formats.
"""

import logging
import uuid
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Customer, Personnel, User, Vendor
from ...models_messaging import Conversation, ConversationMessage
from ...services import twilio_service
from ...services.notification_service import create_admin_notification
from ...shared.validators import normalize_phone, phone_match_key
from .schemas import BulkSmsRequest, SendSmsRequest

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 100

RECIPIENT_MODELS = {"personnel": Personnel, "customer": Customer, "vendor": Vendor}


def recipient_name(record) -> Optional[str]:
    if isinstance(record, Personnel):
        return record.full_name
    return getattr(record, "name", None)


class MessagingService:
    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    async def send_bulk_sms(self, data: BulkSmsRequest, user: User) -> dict:
        batch_id = str(uuid.uuid4())
        logger.info(f"📨 Bulk SMS batch {batch_id} to {len(data.recipient_ids)} personnel")

        personnel_by_id = {
            p.id: p
            for p in self.db.query(Personnel).filter(Personnel.id.in_(data.recipient_ids)).all()
        }

        results = []
        for personnel_id in data.recipient_ids:
            personnel = personnel_by_id.get(personnel_id)
            if not personnel:
                results.append(
                    {"personnel_id": personnel_id, "status": "skipped", "error": "Personnel not found"}
                )
                continue
            if not personnel.phone:
                results.append(
                    {
                        "personnel_id": personnel_id,
                        "name": personnel.full_name,
                        "status": "skipped",
                        "error": "No phone number",
                    }
                )
                continue

            message = await twilio_service.send_sms(
                self.db,
                personnel.phone,
                data.content,
                recipient_type="personnel",
                recipient_id=personnel.id,
                recipient_name=personnel.full_name,
                sent_by=user.id,
                batch_id=batch_id,
                project_id=data.project_id,
                message_context=data.message_context,
            )
            results.append(
                {
                    "personnel_id": personnel_id,
                    "name": personnel.full_name,
                    "phone": message.recipient_phone,
                    "status": "sent" if message.status == "sent" else "failed",
                    "error": message.error_message,
                    "message_id": message.id,
                }
            )

        totals = {
            status: sum(1 for r in results if r["status"] == status)
            for status in ("sent", "failed", "skipped")
        }
        logger.info(
            f"✅ Batch {batch_id}: {totals['sent']} sent, {totals['failed']} failed, "
            f"{totals['skipped']} skipped"
        )
        return {
            "success": totals["sent"] > 0,
            "batchId": batch_id,
            "totalSent": totals["sent"],
            "totalFailed": totals["failed"],
            "totalSkipped": totals["skipped"],
            "results": results,
        }

    async def send_single_sms(self, data: SendSmsRequest, user: User):
        to_phone = data.to_phone
        name = None

        if data.recipient_type and data.recipient_id:
            model = RECIPIENT_MODELS[data.recipient_type]
            record = self.db.query(model).filter(model.id == data.recipient_id).first()
            if not record:
                raise HTTPException(status_code=404, detail="Recipient not found")
            name = recipient_name(record)
            to_phone = to_phone or record.phone

        if not to_phone or len(phone_match_key(to_phone)) < 10:
            raise HTTPException(status_code=400, detail="A valid phone number is required")

        return await twilio_service.send_sms(
            self.db,
            to_phone,
            data.content,
            recipient_type=data.recipient_type,
            recipient_id=data.recipient_id,
            recipient_name=name,
            sent_by=user.id,
            project_id=data.project_id,
            message_context=data.message_context,
        )

    # ------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------

    def match_sender(self, phone: str) -> tuple[str, Optional[int], Optional[str]]:
        """(participant_type, participant_id, name) for an inbound number"""
        key = phone_match_key(phone)
        if len(key) < 10:
            return "external", None, None

        # Narrow in SQL on the trailing digits, then compare the full key
        suffix = f"%{key[-4:]}"
        for model, participant_type in ((Personnel, "personnel"), (Customer, "customer")):
            candidates = (
                self.db.query(model)
                .filter(model.phone.like(suffix), model.merged_into_id.is_(None))
                .order_by(model.id)
                .all()
            )
            for record in candidates:
                if phone_match_key(record.phone) == key:
                    return participant_type, record.id, recipient_name(record)

        return "external", None, None

    def find_or_create_conversation(
        self, phone: str, participant_type: str, participant_id: Optional[int]
    ) -> Conversation:
        key = phone_match_key(phone)
        conversations = (
            self.db.query(Conversation)
            .filter(Conversation.participant_phone.like(f"%{key[-4:]}"))
            .order_by(Conversation.last_message_at.desc(), Conversation.id.desc())
            .all()
        )
        for conversation in conversations:
            if phone_match_key(conversation.participant_phone) == key:
                return conversation

        conversation = Conversation(
            participant_type=participant_type,
            participant_id=participant_id,
            participant_phone=normalize_phone(phone),
            unread_count=0,
        )
        self.db.add(conversation)
        self.db.flush()
        logger.info(f"💬 New conversation {conversation.id} with {participant_type}")
        return conversation

    def receive_inbound(
        self, from_phone: str, body: str, external_id: Optional[str] = None
    ) -> ConversationMessage:
        participant_type, participant_id, name = self.match_sender(from_phone)
        conversation = self.find_or_create_conversation(
            from_phone, participant_type, participant_id
        )
        now = datetime.utcnow()

        message = ConversationMessage(
            conversation_id=conversation.id,
            direction="inbound",
            sender_type=participant_type,
            sender_id=participant_id,
            content=body,
            external_id=external_id,
        )
        self.db.add(message)

        conversation.last_message_at = now
        conversation.last_message_preview = body[:PREVIEW_LENGTH]
        conversation.unread_count = (conversation.unread_count or 0) + 1

        sender = name or normalize_phone(from_phone)
        create_admin_notification(
            self.db,
            "sms_reply",
            f"New SMS from {sender}",
            message=body[:PREVIEW_LENGTH],
            link=f"/messages?conversation={conversation.id}",
            entity_type=participant_type,
            entity_id=participant_id,
            extra_data={"conversation_id": conversation.id, "phone": from_phone},
        )
        self.db.commit()
        logger.info(f"📥 Inbound SMS stored in conversation {conversation.id}")
        return message

    def list_conversations(self) -> list[Conversation]:
        return (
            self.db.query(Conversation)
            .order_by(Conversation.last_message_at.desc(), Conversation.id.desc())
            .all()
        )

    def get_conversation(self, conversation_id: int) -> Conversation:
        conversation = (
            self.db.query(Conversation).filter(Conversation.id == conversation_id).first()
        )
        if not conversation:
            raise HTTPException(status_code=404, detail="Conversation not found")
        return conversation

    def list_conversation_messages(self, conversation_id: int) -> list[ConversationMessage]:
        self.get_conversation(conversation_id)
        return (
            self.db.query(ConversationMessage)
            .filter(ConversationMessage.conversation_id == conversation_id)
            .order_by(ConversationMessage.created_at, ConversationMessage.id)
            .all()
        )

    def mark_conversation_read(self, conversation_id: int) -> dict:
        conversation = self.get_conversation(conversation_id)
        now = datetime.utcnow()
        (
            self.db.query(ConversationMessage)
            .filter(
                ConversationMessage.conversation_id == conversation_id,
                ConversationMessage.direction == "inbound",
                ConversationMessage.read_at.is_(None),
            )
            .update({ConversationMessage.read_at: now}, synchronize_session=False)
        )
        conversation.unread_count = 0
        self.db.commit()
        return {"success": True}

    async def reply(self, conversation_id: int, content: str, user: User) -> ConversationMessage:
        conversation = self.get_conversation(conversation_id)
        sms = await twilio_service.send_sms(
            self.db,
            conversation.participant_phone,
            content,
            recipient_type=conversation.participant_type,
            recipient_id=conversation.participant_id,
            sent_by=user.id,
            message_context="conversation_reply",
        )
        if sms.status == "failed":
            raise HTTPException(status_code=502, detail=f"SMS failed: {sms.error_message}")

        message = ConversationMessage(
            conversation_id=conversation.id,
            direction="outbound",
            sender_type="user",
            sender_id=user.id,
            content=content,
            external_id=sms.external_id,
        )
        self.db.add(message)
        conversation.last_message_at = datetime.utcnow()
        conversation.last_message_preview = content[:PREVIEW_LENGTH]
        self.db.commit()
        self.db.refresh(message)
        return message
