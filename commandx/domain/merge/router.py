"""Entity merge router - duplicate detection, merge preview, merge and reversal"""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import require_admin, require_staff
from ...database import get_db
from ...models import User
from .schemas import (
    DuplicateMatch,
    EntityType,
    MergeAuditResponse,
    MergePreview,
    MergeRequest,
    MergeResult,
    ReverseMergeResult,
)
from .service import MergeService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/merge", tags=["Entity Merge"])


def get_merge_service(db: Session = Depends(get_db)) -> MergeService:
    return MergeService(db)


@router.get("/{entity_type}/{entity_id}/duplicates", response_model=list[DuplicateMatch])
async def find_duplicates(
    entity_type: EntityType,
    entity_id: int,
    current_user: User = Depends(require_staff),
    service: MergeService = Depends(get_merge_service),
):
    """Other records that look like the same customer, vendor or person"""
    return service.find_duplicates(entity_type, entity_id)


@router.get("/{entity_type}/preview", response_model=MergePreview)
async def merge_preview(
    entity_type: EntityType,
    source_id: int = Query(...),
    target_id: int = Query(...),
    current_user: User = Depends(require_admin),
    service: MergeService = Depends(get_merge_service),
):
    return service.preview(entity_type, source_id, target_id)


@router.post("", response_model=MergeResult)
async def merge_entities(
    data: MergeRequest,
    current_user: User = Depends(require_admin),
    service: MergeService = Depends(get_merge_service),
):
    """
    Merge the source record into the target.

    The target keeps its id; fields listed as "source" in field_resolutions are
    copied over, every related record is repointed, and the source is marked
    as merged.
    """
    return service.merge(data, current_user)


@router.get("/{entity_type}/{entity_id}/history", response_model=list[MergeAuditResponse])
async def merge_history(
    entity_type: EntityType,
    entity_id: int,
    current_user: User = Depends(require_staff),
    service: MergeService = Depends(get_merge_service),
):
    return service.history(entity_type, entity_id)


@router.post("/audits/{audit_id}/reverse", response_model=ReverseMergeResult)
async def reverse_merge(
    audit_id: int,
    current_user: User = Depends(require_admin),
    service: MergeService = Depends(get_merge_service),
):
    return service.reverse(audit_id, current_user)
