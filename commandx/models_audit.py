"""
Audit Models
Merge audit trail (with snapshots for reversal) and the general activity log
"""

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.sql import func

from .database import Base


class EntityMergeAudit(Base):
    __tablename__ = "entity_merge_audit"

    id = Column(Integer, primary_key=True, index=True)
    entity_type = Column(String(20), nullable=False, index=True)  # customer, vendor, personnel
    source_entity_id = Column(Integer, nullable=False, index=True)
    target_entity_id = Column(Integer, nullable=False, index=True)

    # Snapshots taken before the merge, plus the data written to the target
    source_entity_snapshot = Column(JSON, nullable=False)
    target_entity_snapshot = Column(JSON, nullable=False)
    merged_entity_snapshot = Column(JSON, nullable=False)

    field_overrides = Column(JSON, nullable=True)
    related_records_updated = Column(JSON, nullable=True)  # {table: count}
    moved_record_ids = Column(JSON, nullable=True)  # {table: [ids]}
    quickbooks_resolution = Column(JSON, nullable=True)

    merged_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    merged_by_email = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)

    is_reversed = Column(Boolean, default=False, nullable=False)
    reversed_at = Column(DateTime, nullable=True)
    reversed_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    created_at = Column(DateTime, server_default=func.now())


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    user_email = Column(String(255), nullable=True)
    action = Column(String(50), nullable=False, index=True)
    entity_type = Column(String(50), nullable=False, index=True)
    entity_id = Column(Integer, nullable=True)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), index=True)
