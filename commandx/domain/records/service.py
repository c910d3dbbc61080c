"""Records service - Business logic for customers, vendors and projects"""

import logging
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Customer, Project, User, Vendor
from ...services.audit_service import record_audit
from ...utils.sanitization import sanitize_string
from .repository import RecordsRepository
from .schemas import (
    CustomerCreate,
    CustomerUpdate,
    ProjectCreate,
    ProjectUpdate,
    VendorCreate,
    VendorUpdate,
)

logger = logging.getLogger(__name__)


class RecordsService:
    """Service layer for customer, vendor and project records"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = RecordsRepository()

    def _get_or_404(self, model, record_id: int, label: str):
        record = self.repo.get(self.db, model, record_id)
        if not record:
            raise HTTPException(status_code=404, detail=f"{label} not found")
        return record

    def _audited_update(self, record, updates: dict, entity_type: str, user: User):
        if getattr(record, "merged_into_id", None):
            raise HTTPException(
                status_code=409, detail=f"{entity_type.capitalize()} has been merged"
            )
        if updates.get("name"):
            updates["name"] = sanitize_string(updates["name"])
        record = self.repo.update(self.db, record, **updates)
        record_audit(self.db, user, "update", entity_type, record.id, {"fields": sorted(updates)})
        self.db.commit()
        return record

    # Customers

    def list_customers(self, search: Optional[str] = None) -> list[Customer]:
        return self.repo.list_customers(self.db, search)

    def get_customer(self, customer_id: int) -> Customer:
        return self._get_or_404(Customer, customer_id, "Customer")

    def create_customer(self, data: CustomerCreate, user: User) -> Customer:
        values = data.model_dump()
        values["name"] = sanitize_string(values["name"])
        customer = self.repo.create(self.db, Customer, **values)
        record_audit(self.db, user, "create", "customer", customer.id)
        self.db.commit()
        logger.info(f"✅ Customer created: {customer.id}")
        return customer

    def update_customer(self, customer_id: int, data: CustomerUpdate, user: User) -> Customer:
        customer = self.get_customer(customer_id)
        return self._audited_update(customer, data.model_dump(exclude_unset=True), "customer", user)

    # Vendors

    def list_vendors(self, search: Optional[str] = None, active_only: bool = False) -> list[Vendor]:
        return self.repo.list_vendors(self.db, search, active_only)

    def get_vendor(self, vendor_id: int) -> Vendor:
        return self._get_or_404(Vendor, vendor_id, "Vendor")

    def create_vendor(self, data: VendorCreate, user: User) -> Vendor:
        values = data.model_dump()
        values["name"] = sanitize_string(values["name"])
        vendor = self.repo.create(self.db, Vendor, **values)
        record_audit(self.db, user, "create", "vendor", vendor.id)
        self.db.commit()
        logger.info(f"✅ Vendor created: {vendor.id}")
        return vendor

    def update_vendor(self, vendor_id: int, data: VendorUpdate, user: User) -> Vendor:
        vendor = self.get_vendor(vendor_id)
        return self._audited_update(vendor, data.model_dump(exclude_unset=True), "vendor", user)

    # Projects

    def list_projects(self, customer_id: Optional[int] = None) -> list[Project]:
        return self.repo.list_projects(self.db, customer_id)

    def get_project(self, project_id: int) -> Project:
        return self._get_or_404(Project, project_id, "Project")

    def _check_geofence(self, values: dict, project: Optional[Project] = None):
        """A location-required project needs site coordinates"""
        require = values.get("require_clock_location")
        if require is None and project is not None:
            require = project.require_clock_location
        if not require:
            return
        lat = values.get("site_lat", project.site_lat if project else None)
        lng = values.get("site_lng", project.site_lng if project else None)
        if lat is None or lng is None:
            raise HTTPException(
                status_code=400,
                detail="Site coordinates are required when clock location is enforced",
            )

    def create_project(self, data: ProjectCreate, user: User) -> Project:
        values = data.model_dump()
        self._check_geofence(values)
        if values.get("customer_id"):
            self.get_customer(values["customer_id"])
        values["name"] = sanitize_string(values["name"])
        project = self.repo.create(self.db, Project, **values)
        record_audit(self.db, user, "create", "project", project.id)
        self.db.commit()
        return project

    def update_project(self, project_id: int, data: ProjectUpdate, user: User) -> Project:
        project = self.get_project(project_id)
        updates = data.model_dump(exclude_unset=True)
        self._check_geofence(updates, project)
        return self._audited_update(project, updates, "project", user)
