"""Entity merge repository - snapshots and foreign key repointing"""

from datetime import date, datetime
from typing import NamedTuple, Optional

from sqlalchemy import func, inspect
from sqlalchemy.orm import Session

from ...models import (
    Activity,
    Appointment,
    ChangeOrder,
    Customer,
    EmergencyContact,
    Estimate,
    InsuranceClaim,
    Invoice,
    JobOrder,
    Personnel,
    PersonnelCapability,
    PersonnelCertification,
    PersonnelLanguage,
    PersonnelProjectAssignment,
    Project,
    ProjectLaborExpense,
    PurchaseOrder,
    Vendor,
    VendorBill,
)
from ...models_audit import EntityMergeAudit
from ...models_payroll import PersonnelPayment, Reimbursement
from ...models_timeclock import ClockAlert, PersonnelSchedule, TimeEntry

ENTITY_MODELS = {
    "customer": Customer,
    "vendor": Vendor,
    "personnel": Personnel,
}

# Never copied between records, never restored on reversal
MERGE_COLUMNS = ("merged_into_id", "merged_at", "merged_by", "merge_reason")
BASE_SYSTEM_FIELDS = ("id", "created_at", "updated_at") + MERGE_COLUMNS
SYSTEM_FIELDS = {
    "customer": set(BASE_SYSTEM_FIELDS),
    "vendor": set(BASE_SYSTEM_FIELDS) | {"is_active"},
    "personnel": set(BASE_SYSTEM_FIELDS) | {"personnel_number"},
}

QUICKBOOKS_FIELD = {
    "customer": "quickbooks_customer_id",
    "vendor": "quickbooks_vendor_id",
    "personnel": "quickbooks_vendor_id",
}


class RelatedTable(NamedTuple):
    key: str
    model: type
    fk: str
    name_column: Optional[str] = None


RELATED_TABLES = {
    "customer": [
        RelatedTable("projects", Project, "customer_id"),
        RelatedTable("estimates", Estimate, "customer_id", "customer_name"),
        RelatedTable("invoices", Invoice, "customer_id", "customer_name"),
        RelatedTable("job_orders", JobOrder, "customer_id", "customer_name"),
        RelatedTable("change_orders", ChangeOrder, "customer_id", "customer_name"),
        RelatedTable("activities", Activity, "customer_id"),
        RelatedTable("appointments", Appointment, "customer_id"),
        RelatedTable("insurance_claims", InsuranceClaim, "customer_id"),
    ],
    "vendor": [
        RelatedTable("purchase_orders", PurchaseOrder, "vendor_id", "vendor_name"),
        RelatedTable("vendor_bills", VendorBill, "vendor_id", "vendor_name"),
        RelatedTable("change_orders", ChangeOrder, "vendor_id", "vendor_name"),
        RelatedTable("personnel", Personnel, "linked_vendor_id"),
    ],
    "personnel": [
        RelatedTable("time_entries", TimeEntry, "personnel_id"),
        RelatedTable("personnel_payments", PersonnelPayment, "personnel_id"),
        RelatedTable("personnel_certifications", PersonnelCertification, "personnel_id"),
        RelatedTable("personnel_languages", PersonnelLanguage, "personnel_id"),
        RelatedTable("personnel_capabilities", PersonnelCapability, "personnel_id"),
        RelatedTable("emergency_contacts", EmergencyContact, "personnel_id"),
        RelatedTable("personnel_project_assignments", PersonnelProjectAssignment, "personnel_id"),
        RelatedTable("project_labor_expenses", ProjectLaborExpense, "personnel_id"),
        RelatedTable("reimbursements", Reimbursement, "personnel_id"),
        RelatedTable("clock_alerts", ClockAlert, "personnel_id"),
        RelatedTable("personnel_schedules", PersonnelSchedule, "personnel_id"),
    ],
}


def display_name(entity_type: str, entity) -> str:
    if entity_type == "personnel":
        return f"{entity.first_name} {entity.last_name}".strip()
    return entity.name


def column_names(model) -> list[str]:
    return [c.key for c in inspect(model).mapper.column_attrs]


def _to_json(value):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def snapshot(entity) -> dict:
    """JSON-safe copy of every column on the row"""
    return {name: _to_json(getattr(entity, name)) for name in column_names(type(entity))}


def _from_json(column, value):
    if value is None:
        return None
    try:
        python_type = column.type.python_type
    except NotImplementedError:
        return value
    if python_type is datetime and isinstance(value, str):
        return datetime.fromisoformat(value)
    if python_type is date and isinstance(value, str):
        return date.fromisoformat(value)
    return value


def restore_from_snapshot(entity, data: dict, exclude: set[str]) -> None:
    columns = inspect(type(entity)).mapper.columns
    for name, value in data.items():
        if name in exclude or name not in columns:
            continue
        setattr(entity, name, _from_json(columns[name], value))


class MergeRepository:
    """Repository for merge database operations"""

    @staticmethod
    def get_entity(db: Session, entity_type: str, entity_id: int):
        model = ENTITY_MODELS[entity_type]
        return db.query(model).filter(model.id == entity_id).first()

    @staticmethod
    def get_active_entities(db: Session, entity_type: str, exclude_id: int) -> list:
        model = ENTITY_MODELS[entity_type]
        return (
            db.query(model)
            .filter(model.id != exclude_id, model.merged_into_id.is_(None))
            .all()
        )

    @staticmethod
    def repoint_related(
        db: Session, entity_type: str, source_id: int, target_id: int, merged_name: str
    ) -> tuple[dict[str, int], dict[str, list[int]]]:
        """
        Move every row that references the source to the target.

        Returns (counts per table, moved row ids per table).
        """
        counts: dict[str, int] = {}
        moved: dict[str, list[int]] = {}
        for table in RELATED_TABLES[entity_type]:
            fk = getattr(table.model, table.fk)
            ids = [row_id for (row_id,) in db.query(table.model.id).filter(fk == source_id).all()]
            counts[table.key] = len(ids)
            if not ids:
                continue
            values = {table.fk: target_id}
            if table.name_column:
                values[table.name_column] = merged_name
            db.query(table.model).filter(table.model.id.in_(ids)).update(
                values, synchronize_session=False
            )
            moved[table.key] = ids
        return counts, moved

    @staticmethod
    def move_back(
        db: Session,
        entity_type: str,
        moved: dict[str, list[int]],
        source_id: int,
        source_name: str,
    ) -> dict[str, int]:
        counts: dict[str, int] = {}
        tables = {t.key: t for t in RELATED_TABLES[entity_type]}
        for key, ids in (moved or {}).items():
            table = tables.get(key)
            if not table or not ids:
                continue
            values = {table.fk: source_id}
            if table.name_column:
                values[table.name_column] = source_name
            counts[key] = (
                db.query(table.model)
                .filter(table.model.id.in_(ids))
                .update(values, synchronize_session=False)
            )
        return counts

    @staticmethod
    def impact(db: Session, entity_type: str, entity_id: int) -> dict[str, float]:
        """Summary of what hangs off a record, shown before merging"""
        if entity_type == "customer":
            invoice_count, invoice_total = (
                db.query(func.count(Invoice.id), func.coalesce(func.sum(Invoice.total), 0))
                .filter(Invoice.customer_id == entity_id)
                .one()
            )
            project_count = db.query(Project).filter(Project.customer_id == entity_id).count()
            return {
                "invoice_count": invoice_count,
                "invoice_total": float(invoice_total),
                "project_count": project_count,
            }
        if entity_type == "vendor":
            bill_count, bill_total = (
                db.query(func.count(VendorBill.id), func.coalesce(func.sum(VendorBill.total), 0))
                .filter(VendorBill.vendor_id == entity_id)
                .one()
            )
            po_count = (
                db.query(PurchaseOrder).filter(PurchaseOrder.vendor_id == entity_id).count()
            )
            return {
                "bill_count": bill_count,
                "bill_total": float(bill_total),
                "po_count": po_count,
            }
        time_entry_count = db.query(TimeEntry).filter(TimeEntry.personnel_id == entity_id).count()
        payment_count, payment_total = (
            db.query(
                func.count(PersonnelPayment.id),
                func.coalesce(func.sum(PersonnelPayment.gross_amount), 0),
            )
            .filter(PersonnelPayment.personnel_id == entity_id)
            .one()
        )
        return {
            "time_entry_count": time_entry_count,
            "payment_count": payment_count,
            "payment_total": float(payment_total),
        }

    @staticmethod
    def get_audit(db: Session, audit_id: int) -> Optional[EntityMergeAudit]:
        return db.query(EntityMergeAudit).filter(EntityMergeAudit.id == audit_id).first()

    @staticmethod
    def get_history(db: Session, entity_type: str, entity_id: int) -> list[EntityMergeAudit]:
        return (
            db.query(EntityMergeAudit)
            .filter(
                EntityMergeAudit.entity_type == entity_type,
                (EntityMergeAudit.source_entity_id == entity_id)
                | (EntityMergeAudit.target_entity_id == entity_id),
            )
            .order_by(EntityMergeAudit.created_at.desc(), EntityMergeAudit.id.desc())
            .all()
        )
