"""
QuickBooks Integration Models
Company-wide QuickBooks connection (encrypted OAuth tokens) and sync history
"""

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class QuickBooksIntegration(Base):
    """One row per connected QuickBooks company"""

    __tablename__ = "quickbooks_integrations"

    id = Column(Integer, primary_key=True, index=True)
    connected_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    # OAuth tokens (encrypted)
    access_token = Column(Text, nullable=False)
    refresh_token = Column(Text, nullable=False)
    token_expires_at = Column(DateTime, nullable=False)

    realm_id = Column(String(255), nullable=False)  # QuickBooks company ID
    company_name = Column(String(255), nullable=True)

    sync_customers = Column(Boolean, default=True)
    sync_vendors = Column(Boolean, default=True)
    last_customer_sync = Column(DateTime, nullable=True)
    last_vendor_sync = Column(DateTime, nullable=True)

    environment = Column(String(50), default="production")
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class QuickBooksSyncLog(Base):
    """Track QuickBooks sync operations"""

    __tablename__ = "quickbooks_sync_logs"

    id = Column(Integer, primary_key=True, index=True)
    integration_id = Column(Integer, ForeignKey("quickbooks_integrations.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    entity_type = Column(String(50), nullable=False)  # customer, vendor
    entity_id = Column(Integer, nullable=False)
    action = Column(String(20), nullable=False)  # create, update
    quickbooks_id = Column(String(255), nullable=True)

    status = Column(String(50), nullable=False)  # success, failed
    error_message = Column(Text, nullable=True)
    sync_data = Column(JSON, nullable=True)

    created_at = Column(DateTime, server_default=func.now())

    integration = relationship("QuickBooksIntegration")
