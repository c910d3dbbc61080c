"""Personnel service - Business logic for personnel records and CSV import"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from ...models import Personnel, User
from ...services.audit_service import record_audit
from ...utils.sanitization import sanitize_string
from .csv_import import error_report_csv, sample_csv, validate_personnel_csv
from .repository import PersonnelRepository
from .schemas import PersonnelCreate, PersonnelUpdate

logger = logging.getLogger(__name__)

MAX_IMPORT_BYTES = 2 * 1024 * 1024


class PersonnelService:
    """Service layer for personnel business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = PersonnelRepository()

    def list_personnel(
        self, status: Optional[str] = None, search: Optional[str] = None
    ) -> list[Personnel]:
        return self.repo.list(self.db, status, search)

    def get_personnel(self, personnel_id: int) -> Personnel:
        personnel = self.repo.get(self.db, personnel_id)
        if not personnel:
            raise HTTPException(status_code=404, detail="Personnel not found")
        return personnel

    def create_personnel(self, data: PersonnelCreate, user: User) -> Personnel:
        logger.info(f"📥 Creating personnel {data.first_name} {data.last_name}")
        values = data.model_dump()
        values["first_name"] = sanitize_string(values["first_name"])
        values["last_name"] = sanitize_string(values["last_name"])
        personnel = self.repo.create(self.db, **values)
        record_audit(self.db, user, "create", "personnel", personnel.id)
        self.db.commit()
        return personnel

    def update_personnel(self, personnel_id: int, data: PersonnelUpdate, user: User) -> Personnel:
        personnel = self.get_personnel(personnel_id)
        if personnel.merged_into_id:
            raise HTTPException(status_code=409, detail="Personnel has been merged")

        updates = data.model_dump(exclude_unset=True)
        for field in ("first_name", "last_name"):
            if updates.get(field):
                updates[field] = sanitize_string(updates[field])

        personnel = self.repo.update(self.db, personnel, **updates)
        record_audit(
            self.db, user, "update", "personnel", personnel.id, {"fields": sorted(updates)}
        )
        self.db.commit()
        return personnel

    # ------------------------------------------------------------------
    # CSV import
    # ------------------------------------------------------------------

    @staticmethod
    def decode_upload(content: bytes) -> str:
        if len(content) > MAX_IMPORT_BYTES:
            raise HTTPException(status_code=413, detail="CSV file is too large (max 2MB)")
        try:
            return content.decode("utf-8-sig")
        except UnicodeDecodeError:
            raise HTTPException(status_code=400, detail="CSV file must be UTF-8 encoded")

    def validate_import(self, text: str) -> dict:
        result = validate_personnel_csv(text, self.repo.existing_emails(self.db))
        if not result["total_rows"]:
            raise HTTPException(status_code=400, detail="CSV file has no data rows")
        logger.info(
            f"📊 Personnel CSV validated: {len(result['valid'])} valid, "
            f"{len(result['invalid'])} invalid of {result['total_rows']}"
        )
        return result

    def import_personnel(self, text: str, user: User) -> dict:
        """Insert the valid rows only; invalid rows are reported back"""
        result = self.validate_import(text)
        created: list[Personnel] = []

        try:
            for row in result["valid"]:
                values = {
                    key: value
                    for key, value in row.items()
                    if key not in ("row_number", "errors") and value is not None
                }
                values.setdefault("status", "active")
                values["first_name"] = sanitize_string(values["first_name"])
                values["last_name"] = sanitize_string(values["last_name"])
                personnel = Personnel(**values)
                self.db.add(personnel)
                self.db.flush()
                self.repo.assign_personnel_number(personnel)
                created.append(personnel)

            record_audit(
                self.db,
                user,
                "bulk_import",
                "personnel",
                details={"imported": len(created), "skipped": len(result["invalid"])},
            )
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Personnel import failed: {e}")
            raise HTTPException(status_code=500, detail="Failed to import personnel")

        logger.info(f"✅ Imported {len(created)} personnel records")
        return {
            "imported": len(created),
            "personnel_ids": [p.id for p in created],
            "invalid": result["invalid"],
            "total_rows": result["total_rows"],
        }

    @staticmethod
    def template_download() -> StreamingResponse:
        return StreamingResponse(
            iter([sample_csv()]),
            media_type="text/csv",
            headers={"Content-Disposition": "attachment; filename=personnel_import_template.csv"},
        )

    def error_report(self, text: str) -> StreamingResponse:
        result = validate_personnel_csv(text, self.repo.existing_emails(self.db))
        filename = f"personnel_import_errors_{datetime.utcnow().strftime('%Y%m%d_%H%M%S')}.csv"
        return StreamingResponse(
            iter([error_report_csv(result["invalid"])]),
            media_type="text/csv",
            headers={"Content-Disposition": f"attachment; filename={filename}"},
        )
