"""Personnel router - FastAPI endpoints for personnel records"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile
from sqlalchemy.orm import Session

from ...auth import require_staff
from ...database import get_db
from ...models import User
from .schemas import (
    ImportResult,
    ImportValidationResult,
    PersonnelCreate,
    PersonnelResponse,
    PersonnelUpdate,
)
from .service import PersonnelService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/personnel", tags=["Personnel"])


def get_personnel_service(db: Session = Depends(get_db)) -> PersonnelService:
    """Dependency injection for PersonnelService"""
    return PersonnelService(db)


# ============================================================================
# CSV IMPORT
# ============================================================================


@router.get("/import/template")
async def download_import_template(current_user: User = Depends(require_staff)):
    """Sample CSV with the supported columns"""
    return PersonnelService.template_download()


@router.post("/import/validate", response_model=ImportValidationResult)
async def validate_import(
    file: UploadFile = File(...),
    current_user: User = Depends(require_staff),
    service: PersonnelService = Depends(get_personnel_service),
):
    text = service.decode_upload(await file.read())
    return service.validate_import(text)


@router.post("/import/errors")
async def download_import_errors(
    file: UploadFile = File(...),
    current_user: User = Depends(require_staff),
    service: PersonnelService = Depends(get_personnel_service),
):
    text = service.decode_upload(await file.read())
    return service.error_report(text)


@router.post("/import", response_model=ImportResult)
async def import_personnel(
    file: UploadFile = File(...),
    current_user: User = Depends(require_staff),
    service: PersonnelService = Depends(get_personnel_service),
):
    """Create personnel from the valid rows of an uploaded CSV"""
    text = service.decode_upload(await file.read())
    return service.import_personnel(text, current_user)


# ============================================================================
# CORE CRUD OPERATIONS
# ============================================================================


@router.get("", response_model=list[PersonnelResponse])
async def list_personnel(
    status: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    current_user: User = Depends(require_staff),
    service: PersonnelService = Depends(get_personnel_service),
):
    return service.list_personnel(status, search)


@router.get("/{personnel_id}", response_model=PersonnelResponse)
async def get_personnel(
    personnel_id: int,
    current_user: User = Depends(require_staff),
    service: PersonnelService = Depends(get_personnel_service),
):
    return service.get_personnel(personnel_id)


@router.post("", response_model=PersonnelResponse)
async def create_personnel(
    data: PersonnelCreate,
    current_user: User = Depends(require_staff),
    service: PersonnelService = Depends(get_personnel_service),
):
    return service.create_personnel(data, current_user)


@router.patch("/{personnel_id}", response_model=PersonnelResponse)
async def update_personnel(
    personnel_id: int,
    data: PersonnelUpdate,
    current_user: User = Depends(require_staff),
    service: PersonnelService = Depends(get_personnel_service),
):
    return service.update_personnel(personnel_id, data, current_user)
