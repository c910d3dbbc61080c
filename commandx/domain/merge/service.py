"""Entity merge service - consolidates duplicate customers, vendors and personnel"""

import logging
from datetime import datetime

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import User
from ...models_audit import EntityMergeAudit
from ...services.audit_service import record_audit
from . import duplicates
from .repository import (
    ENTITY_MODELS,
    MERGE_COLUMNS,
    QUICKBOOKS_FIELD,
    SYSTEM_FIELDS,
    MergeRepository,
    column_names,
    display_name,
    restore_from_snapshot,
    snapshot,
)
from .schemas import MergeRequest

logger = logging.getLogger(__name__)


class MergeService:
    """Service layer for merge business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = MergeRepository()

    def _check_type(self, entity_type: str):
        if entity_type not in ENTITY_MODELS:
            raise HTTPException(status_code=400, detail=f"Unsupported entity type: {entity_type}")

    def _load(self, entity_type: str, entity_id: int, role: str):
        entity = self.repo.get_entity(self.db, entity_type, entity_id)
        if not entity:
            raise HTTPException(status_code=404, detail=f"{role} {entity_type} not found")
        return entity

    def _load_pair(self, entity_type: str, source_id: int, target_id: int):
        self._check_type(entity_type)
        if source_id == target_id:
            raise HTTPException(status_code=400, detail="Cannot merge a record with itself")
        source = self._load(entity_type, source_id, "Source")
        target = self._load(entity_type, target_id, "Target")
        for role, entity in (("Source", source), ("Target", target)):
            if entity.merged_into_id is not None:
                raise HTTPException(
                    status_code=409,
                    detail=f"{role} {entity_type} was already merged into #{entity.merged_into_id}",
                )
        return source, target

    def find_duplicates(self, entity_type: str, entity_id: int) -> list[dict]:
        self._check_type(entity_type)
        entity = self._load(entity_type, entity_id, entity_type.capitalize())
        candidates = self.repo.get_active_entities(self.db, entity_type, entity_id)
        return duplicates.find_duplicates(entity_type, entity, candidates)

    def preview(self, entity_type: str, source_id: int, target_id: int) -> dict:
        source, target = self._load_pair(entity_type, source_id, target_id)
        source_data = snapshot(source)
        target_data = snapshot(target)
        ignored = SYSTEM_FIELDS[entity_type]
        differing = [
            name
            for name in column_names(type(source))
            if name not in ignored and source_data.get(name) != target_data.get(name)
        ]
        return {
            "entity_type": entity_type,
            "source": source_data,
            "target": target_data,
            "differing_fields": differing,
            "source_impact": self.repo.impact(self.db, entity_type, source_id),
            "target_impact": self.repo.impact(self.db, entity_type, target_id),
        }

    def merge(self, request: MergeRequest, user: User) -> dict:
        entity_type = request.entity_type
        source, target = self._load_pair(entity_type, request.source_id, request.target_id)
        logger.info(
            f"🔀 Merging {entity_type} #{source.id} into #{target.id} (by {user.email})"
        )

        source_snapshot = snapshot(source)
        target_snapshot = snapshot(target)
        system_fields = SYSTEM_FIELDS[entity_type]
        columns = set(column_names(type(source)))

        overrides = {
            field: choice
            for field, choice in request.field_resolutions.items()
            if field in columns and field not in system_fields
        }

        try:
            for field, choice in overrides.items():
                if choice == "source":
                    setattr(target, field, getattr(source, field))

            qb_field = QUICKBOOKS_FIELD[entity_type]
            qb_resolution = request.quickbooks_resolution
            if qb_resolution and qb_resolution.keep_source_qb and getattr(source, qb_field):
                setattr(target, qb_field, getattr(source, qb_field))
                setattr(source, qb_field, None)

            now = datetime.utcnow()
            target.updated_at = now
            self.db.flush()

            merged_name = display_name(entity_type, target)
            counts, moved = self.repo.repoint_related(
                self.db, entity_type, source.id, target.id, merged_name
            )

            source.merged_into_id = target.id
            source.merged_at = now
            source.merged_by = user.id
            source.merge_reason = request.merge_reason
            if entity_type == "vendor":
                source.is_active = False
            elif entity_type == "personnel":
                source.status = "inactive"
            self.db.flush()

            audit = EntityMergeAudit(
                entity_type=entity_type,
                source_entity_id=source.id,
                target_entity_id=target.id,
                source_entity_snapshot=source_snapshot,
                target_entity_snapshot=target_snapshot,
                merged_entity_snapshot=snapshot(target),
                field_overrides=overrides,
                related_records_updated=counts,
                moved_record_ids=moved,
                quickbooks_resolution=qb_resolution.model_dump() if qb_resolution else None,
                merged_by=user.id,
                merged_by_email=user.email,
                notes=request.merge_reason,
            )
            self.db.add(audit)
            self.db.flush()

            record_audit(
                self.db,
                user,
                "merge",
                entity_type,
                target.id,
                {"source_id": source.id, "audit_id": audit.id, "records_updated": counts},
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.exception(f"❌ Merge of {entity_type} #{request.source_id} failed")
            raise

        logger.info(f"✅ Merge complete (audit #{audit.id}): {counts}")
        return {"success": True, "audit_id": audit.id, "records_updated": counts}

    def history(self, entity_type: str, entity_id: int) -> list[EntityMergeAudit]:
        self._check_type(entity_type)
        return self.repo.get_history(self.db, entity_type, entity_id)

    def reverse(self, audit_id: int, user: User) -> dict:
        audit = self.repo.get_audit(self.db, audit_id)
        if not audit:
            raise HTTPException(status_code=404, detail="Merge audit not found")
        if audit.is_reversed:
            raise HTTPException(status_code=409, detail="Merge has already been reversed")

        entity_type = audit.entity_type
        source = self._load(entity_type, audit.source_entity_id, "Source")
        target = self._load(entity_type, audit.target_entity_id, "Target")
        if source.merged_into_id != target.id:
            raise HTTPException(
                status_code=409, detail="Source record is no longer merged into the target"
            )

        logger.info(f"↩️ Reversing merge audit #{audit.id} ({entity_type})")
        try:
            system_fields = SYSTEM_FIELDS[entity_type]
            restore_from_snapshot(target, audit.target_entity_snapshot, system_fields)

            # The source gets back everything it had, including is_active/status
            restore_from_snapshot(
                source, audit.source_entity_snapshot, {"id", "created_at", "updated_at"}
            )
            for column in MERGE_COLUMNS:
                setattr(source, column, None)
            self.db.flush()

            restored = self.repo.move_back(
                self.db,
                entity_type,
                audit.moved_record_ids,
                source.id,
                display_name(entity_type, source),
            )

            audit.is_reversed = True
            audit.reversed_at = datetime.utcnow()
            audit.reversed_by = user.id

            record_audit(
                self.db,
                user,
                "reverse_merge",
                entity_type,
                source.id,
                {"target_id": target.id, "audit_id": audit.id, "records_restored": restored},
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.exception(f"❌ Reversing merge audit #{audit_id} failed")
            raise

        return {"success": True, "audit_id": audit.id, "records_restored": restored}
