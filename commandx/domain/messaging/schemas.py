"""Messaging schemas"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator


class BulkSmsRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=1600)
    recipient_ids: list[int] = Field(..., min_length=1)
    project_id: Optional[int] = None
    message_context: Optional[str] = Field(None, max_length=50)

    @field_validator("content")
    @classmethod
    def strip_content(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Message content cannot be empty")
        return v


class BulkSmsRecipientResult(BaseModel):
    personnel_id: int
    name: Optional[str] = None
    phone: Optional[str] = None
    status: Literal["sent", "failed", "skipped"]
    error: Optional[str] = None
    message_id: Optional[int] = None


class BulkSmsResponse(BaseModel):
    success: bool
    batchId: str
    totalSent: int
    totalFailed: int
    totalSkipped: int
    results: list[BulkSmsRecipientResult]


class SendSmsRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=1600)
    to_phone: Optional[str] = None
    recipient_type: Optional[Literal["personnel", "customer", "vendor"]] = None
    recipient_id: Optional[int] = None
    project_id: Optional[int] = None
    message_context: Optional[str] = Field(None, max_length=50)


class MessageResponse(BaseModel):
    id: int
    recipient_type: Optional[str] = None
    recipient_id: Optional[int] = None
    recipient_name: Optional[str] = None
    recipient_phone: str
    content: str
    status: str
    external_id: Optional[str] = None
    error_message: Optional[str] = None
    sent_at: Optional[datetime] = None
    batch_id: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ConversationReply(BaseModel):
    content: str = Field(..., min_length=1, max_length=1600)


class ConversationResponse(BaseModel):
    id: int
    participant_type: str
    participant_id: Optional[int] = None
    participant_phone: str
    last_message_at: Optional[datetime] = None
    last_message_preview: Optional[str] = None
    unread_count: int

    class Config:
        from_attributes = True


class ConversationMessageResponse(BaseModel):
    id: int
    direction: str
    sender_type: str
    sender_id: Optional[int] = None
    content: str
    read_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
