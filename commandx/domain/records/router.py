"""Customer, vendor and project endpoints"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import require_staff
from ...database import get_db
from ...models import User
from .schemas import (
    CustomerCreate,
    CustomerResponse,
    CustomerUpdate,
    ProjectCreate,
    ProjectResponse,
    ProjectUpdate,
    VendorCreate,
    VendorResponse,
    VendorUpdate,
)
from .service import RecordsService

router = APIRouter(tags=["Records"])


def get_records_service(db: Session = Depends(get_db)) -> RecordsService:
    return RecordsService(db)


# ============================================================================
# CUSTOMERS
# ============================================================================


@router.get("/customers", response_model=list[CustomerResponse])
async def list_customers(
    search: Optional[str] = Query(None),
    current_user: User = Depends(require_staff),
    service: RecordsService = Depends(get_records_service),
):
    return service.list_customers(search)


@router.get("/customers/{customer_id}", response_model=CustomerResponse)
async def get_customer(
    customer_id: int,
    current_user: User = Depends(require_staff),
    service: RecordsService = Depends(get_records_service),
):
    return service.get_customer(customer_id)


@router.post("/customers", response_model=CustomerResponse)
async def create_customer(
    data: CustomerCreate,
    current_user: User = Depends(require_staff),
    service: RecordsService = Depends(get_records_service),
):
    return service.create_customer(data, current_user)


@router.patch("/customers/{customer_id}", response_model=CustomerResponse)
async def update_customer(
    customer_id: int,
    data: CustomerUpdate,
    current_user: User = Depends(require_staff),
    service: RecordsService = Depends(get_records_service),
):
    return service.update_customer(customer_id, data, current_user)


# ============================================================================
# VENDORS
# ============================================================================


@router.get("/vendors", response_model=list[VendorResponse])
async def list_vendors(
    search: Optional[str] = Query(None),
    active_only: bool = Query(False),
    current_user: User = Depends(require_staff),
    service: RecordsService = Depends(get_records_service),
):
    return service.list_vendors(search, active_only)


@router.get("/vendors/{vendor_id}", response_model=VendorResponse)
async def get_vendor(
    vendor_id: int,
    current_user: User = Depends(require_staff),
    service: RecordsService = Depends(get_records_service),
):
    return service.get_vendor(vendor_id)


@router.post("/vendors", response_model=VendorResponse)
async def create_vendor(
    data: VendorCreate,
    current_user: User = Depends(require_staff),
    service: RecordsService = Depends(get_records_service),
):
    return service.create_vendor(data, current_user)


@router.patch("/vendors/{vendor_id}", response_model=VendorResponse)
async def update_vendor(
    vendor_id: int,
    data: VendorUpdate,
    current_user: User = Depends(require_staff),
    service: RecordsService = Depends(get_records_service),
):
    return service.update_vendor(vendor_id, data, current_user)


# ============================================================================
# PROJECTS
# ============================================================================


@router.get("/projects", response_model=list[ProjectResponse])
async def list_projects(
    customer_id: Optional[int] = Query(None),
    current_user: User = Depends(require_staff),
    service: RecordsService = Depends(get_records_service),
):
    return service.list_projects(customer_id)


@router.get("/projects/{project_id}", response_model=ProjectResponse)
async def get_project(
    project_id: int,
    current_user: User = Depends(require_staff),
    service: RecordsService = Depends(get_records_service),
):
    return service.get_project(project_id)


@router.post("/projects", response_model=ProjectResponse)
async def create_project(
    data: ProjectCreate,
    current_user: User = Depends(require_staff),
    service: RecordsService = Depends(get_records_service),
):
    return service.create_project(data, current_user)


@router.patch("/projects/{project_id}", response_model=ProjectResponse)
async def update_project(
    project_id: int,
    data: ProjectUpdate,
    current_user: User = Depends(require_staff),
    service: RecordsService = Depends(get_records_service),
):
    """Geofence settings live here: site coordinates, radius and enforcement"""
    return service.update_project(project_id, data, current_user)
