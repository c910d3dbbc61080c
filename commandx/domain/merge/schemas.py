"""Entity merge schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

EntityType = Literal["customer", "vendor", "personnel"]


class QuickBooksResolution(BaseModel):
    keep_source_qb: bool = False


class MergeRequest(BaseModel):
    entity_type: EntityType
    source_id: int
    target_id: int
    field_resolutions: dict[str, Literal["source", "target"]] = Field(default_factory=dict)
    quickbooks_resolution: Optional[QuickBooksResolution] = None
    merge_reason: Optional[str] = None


class MergeResult(BaseModel):
    success: bool
    audit_id: int
    records_updated: dict[str, int]


class DuplicateMatch(BaseModel):
    duplicate_id: int
    duplicate_name: str
    duplicate_email: Optional[str] = None
    duplicate_phone: Optional[str] = None
    duplicate_company: Optional[str] = None
    duplicate_tax_id: Optional[str] = None
    duplicate_ssn_last_four: Optional[str] = None
    match_type: str
    match_label: str
    match_score: int


class MergePreview(BaseModel):
    entity_type: EntityType
    source: dict
    target: dict
    differing_fields: list[str]
    source_impact: dict[str, float]
    target_impact: dict[str, float]


class MergeAuditResponse(BaseModel):
    id: int
    entity_type: str
    source_entity_id: int
    target_entity_id: int
    source_entity_snapshot: dict
    target_entity_snapshot: dict
    merged_entity_snapshot: dict
    field_overrides: Optional[dict] = None
    related_records_updated: Optional[dict] = None
    quickbooks_resolution: Optional[dict] = None
    merged_by_email: Optional[str] = None
    notes: Optional[str] = None
    is_reversed: bool
    reversed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ReverseMergeResult(BaseModel):
    success: bool
    audit_id: int
    records_restored: dict[str, int]
