"""
Onboarding Models
Single-use, time-limited tokens that back the emailed registration and onboarding links
"""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.sql import func

from .database import Base
from .models import generate_token


class PersonnelRegistrationInvite(Base):
    """Invite for someone who is not in the system yet"""

    __tablename__ = "personnel_registration_invites"

    id = Column(Integer, primary_key=True, index=True)
    token = Column(String(64), unique=True, index=True, nullable=False, default=generate_token)
    email = Column(String(255), nullable=False, index=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    status = Column(String(20), default="pending", nullable=False)  # pending, used, revoked
    expires_at = Column(DateTime, nullable=False)
    used_at = Column(DateTime, nullable=True)
    personnel_id = Column(Integer, ForeignKey("personnel.id"), nullable=True)
    invited_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    reminder_sent_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class PersonnelOnboardingToken(Base):
    """Link that lets an existing personnel record fill in its own details"""

    __tablename__ = "personnel_onboarding_tokens"

    id = Column(Integer, primary_key=True, index=True)
    token = Column(String(64), unique=True, index=True, nullable=False, default=generate_token)
    personnel_id = Column(Integer, ForeignKey("personnel.id"), nullable=False, index=True)
    email = Column(String(255), nullable=True)
    expires_at = Column(DateTime, nullable=False)
    used_at = Column(DateTime, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())


class VendorOnboardingToken(Base):
    __tablename__ = "vendor_onboarding_tokens"

    id = Column(Integer, primary_key=True, index=True)
    token = Column(String(64), unique=True, index=True, nullable=False, default=generate_token)
    vendor_id = Column(Integer, ForeignKey("vendors.id"), nullable=False, index=True)
    email = Column(String(255), nullable=True)
    expires_at = Column(DateTime, nullable=False)
    used_at = Column(DateTime, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
