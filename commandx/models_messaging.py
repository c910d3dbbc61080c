"""
Messaging Models
Outbound SMS log, inbound conversations and in-app admin notifications
"""

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class Message(Base):
    """Track SMS messages sent via Twilio"""

    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, index=True)
    recipient_type = Column(String(50), nullable=True)  # personnel, customer, vendor
    recipient_id = Column(Integer, nullable=True)
    recipient_name = Column(String(255), nullable=True)
    recipient_phone = Column(String(30), nullable=False)
    content = Column(Text, nullable=False)
    message_type = Column(String(20), default="sms", nullable=False)
    status = Column(String(20), default="pending", nullable=False)  # pending, sent, failed
    external_id = Column(String(255), nullable=True)  # Twilio message SID
    error_message = Column(Text, nullable=True)
    sent_at = Column(DateTime, nullable=True)
    sent_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    batch_id = Column(String(64), nullable=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=True)
    message_context = Column(String(50), nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class Conversation(Base):
    """Two-way SMS thread with an outside party"""

    __tablename__ = "conversations"

    id = Column(Integer, primary_key=True, index=True)
    participant_type = Column(String(50), nullable=False)  # personnel, customer, external
    participant_id = Column(Integer, nullable=True)
    participant_phone = Column(String(30), nullable=False, index=True)
    last_message_at = Column(DateTime, nullable=True)
    last_message_preview = Column(String(100), nullable=True)
    unread_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    messages = relationship(
        "ConversationMessage", back_populates="conversation", cascade="all, delete-orphan"
    )


class ConversationMessage(Base):
    __tablename__ = "conversation_messages"

    id = Column(Integer, primary_key=True, index=True)
    conversation_id = Column(Integer, ForeignKey("conversations.id"), nullable=False, index=True)
    direction = Column(String(10), nullable=False)  # inbound, outbound
    sender_type = Column(String(50), nullable=False)
    sender_id = Column(Integer, nullable=True)
    content = Column(Text, nullable=False)
    external_id = Column(String(255), nullable=True)
    read_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    conversation = relationship("Conversation", back_populates="messages")


class AdminNotification(Base):
    """In-app notification for office staff"""

    __tablename__ = "admin_notifications"

    id = Column(Integer, primary_key=True, index=True)
    notification_type = Column(String(50), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=True)
    link = Column(String(500), nullable=True)
    entity_type = Column(String(50), nullable=True)
    entity_id = Column(Integer, nullable=True)
    extra_data = Column(JSON, nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)
    read_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
