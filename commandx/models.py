"""
Core business records: users and roles, customers, vendors, personnel,
projects and the documents that hang off them.
"""

import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def generate_token():
    """Generate an unguessable token for emailed links"""
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    auth_uid = Column(String(255), unique=True, index=True, nullable=False)  # JWT "sub"
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=True)
    # Notification preferences
    notify_auto_clock_out = Column(Boolean, default=True, nullable=False)
    notify_missed_clock_in = Column(Boolean, default=True, nullable=False)
    notify_onboarding = Column(Boolean, default=True, nullable=False)
    notify_sms_replies = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    roles = relationship("UserRole", back_populates="user", cascade="all, delete-orphan")

    @property
    def role_names(self) -> set[str]:
        return {r.role for r in self.roles}


class UserRole(Base):
    __tablename__ = "user_roles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    role = Column(String(50), nullable=False)  # admin, manager, personnel, vendor

    user = relationship("User", back_populates="roles")


class CompanySettings(Base):
    __tablename__ = "company_settings"

    id = Column(Integer, primary_key=True, index=True)
    company_name = Column(String(255), nullable=True)
    company_email = Column(String(255), nullable=True)
    company_phone = Column(String(50), nullable=True)
    company_address = Column(Text, nullable=True)
    overtime_multiplier = Column(Float, default=1.5)
    weekly_overtime_threshold = Column(Float, default=40)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    company = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True, index=True)
    phone = Column(String(50), nullable=True)
    address = Column(String(500), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(50), nullable=True)
    zip = Column(String(20), nullable=True)
    customer_type = Column(String(50), nullable=True)  # residential, commercial, government
    notes = Column(Text, nullable=True)
    quickbooks_customer_id = Column(String(64), nullable=True)

    # Merge tracking
    merged_into_id = Column(Integer, ForeignKey("customers.id"), nullable=True)
    merged_at = Column(DateTime, nullable=True)
    merged_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    merge_reason = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class Vendor(Base):
    __tablename__ = "vendors"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    company = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True, index=True)
    phone = Column(String(50), nullable=True)
    address = Column(String(500), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(50), nullable=True)
    zip = Column(String(20), nullable=True)
    vendor_type = Column(String(50), nullable=True)  # subcontractor, supplier, personnel
    tax_id = Column(String(20), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    # not_invited, invited, submitted, approved
    onboarding_status = Column(String(50), default="not_invited", nullable=False)
    insurance_expiry = Column(Date, nullable=True)
    license_number = Column(String(100), nullable=True)
    bank_name = Column(String(255), nullable=True)
    bank_account_last_four = Column(String(4), nullable=True)
    w9_on_file = Column(Boolean, default=False, nullable=False)
    agreement_signed_at = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)
    quickbooks_vendor_id = Column(String(64), nullable=True)

    # Merge tracking
    merged_into_id = Column(Integer, ForeignKey("vendors.id"), nullable=True)
    merged_at = Column(DateTime, nullable=True)
    merged_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    merge_reason = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class Personnel(Base):
    __tablename__ = "personnel"

    id = Column(Integer, primary_key=True, index=True)
    personnel_number = Column(String(20), unique=True, nullable=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=True, index=True)
    phone = Column(String(50), nullable=True)
    address = Column(String(500), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(50), nullable=True)
    zip = Column(String(20), nullable=True)
    date_of_birth = Column(Date, nullable=True)
    hourly_rate = Column(Float, nullable=True)  # Bill rate
    pay_rate = Column(Float, nullable=True)  # Internal rate used for payroll
    status = Column(String(50), default="active", nullable=False)  # active, inactive, do_not_hire
    ssn_last_four = Column(String(4), nullable=True)
    work_authorization_type = Column(String(50), nullable=True)
    work_auth_expiry = Column(Date, nullable=True)
    everify_status = Column(String(50), nullable=True)
    everify_case_number = Column(String(100), nullable=True)
    # not_started, invited, pending_review, completed
    onboarding_status = Column(String(50), default="not_started", nullable=False)
    linked_vendor_id = Column(Integer, ForeignKey("vendors.id"), nullable=True)
    notes = Column(Text, nullable=True)
    quickbooks_vendor_id = Column(String(64), nullable=True)

    # Merge tracking
    merged_into_id = Column(Integer, ForeignKey("personnel.id"), nullable=True)
    merged_at = Column(DateTime, nullable=True)
    merged_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    merge_reason = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Project(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True, index=True)
    status = Column(String(50), default="active")
    address = Column(String(500), nullable=True)

    # Time clock / geofence
    site_lat = Column(Float, nullable=True)
    site_lng = Column(Float, nullable=True)
    geofence_radius_miles = Column(Float, nullable=True)
    require_clock_location = Column(Boolean, default=False, nullable=False)
    time_clock_enabled = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class Estimate(Base):
    __tablename__ = "estimates"

    id = Column(Integer, primary_key=True, index=True)
    number = Column(String(50), nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True, index=True)
    customer_name = Column(String(255), nullable=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=True)
    status = Column(String(50), default="draft")  # draft, sent, approved, declined
    line_items = Column(JSON, default=list)
    subtotal = Column(Float, default=0)
    tax_amount = Column(Float, default=0)
    total = Column(Float, default=0)
    notes = Column(Text, nullable=True)
    valid_until = Column(Date, nullable=True)
    sent_at = Column(DateTime, nullable=True)
    quickbooks_estimate_id = Column(String(64), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True)
    number = Column(String(50), nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True, index=True)
    customer_name = Column(String(255), nullable=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=True)
    status = Column(String(50), default="draft")  # draft, sent, partially_paid, paid, void
    line_items = Column(JSON, default=list)
    subtotal = Column(Float, default=0)
    tax_amount = Column(Float, default=0)
    total = Column(Float, default=0)
    amount_paid = Column(Float, default=0)
    due_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    sent_at = Column(DateTime, nullable=True)
    quickbooks_invoice_id = Column(String(64), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class JobOrder(Base):
    __tablename__ = "job_orders"

    id = Column(Integer, primary_key=True, index=True)
    number = Column(String(50), nullable=False)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True, index=True)
    customer_name = Column(String(255), nullable=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=True)
    status = Column(String(50), default="active")
    total = Column(Float, default=0)
    created_at = Column(DateTime, server_default=func.now())


class ChangeOrder(Base):
    __tablename__ = "change_orders"

    id = Column(Integer, primary_key=True, index=True)
    number = Column(String(50), nullable=False)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True, index=True)
    customer_name = Column(String(255), nullable=True)
    vendor_id = Column(Integer, ForeignKey("vendors.id"), nullable=True, index=True)
    vendor_name = Column(String(255), nullable=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=True)
    status = Column(String(50), default="draft")
    amount = Column(Float, default=0)
    reason = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class PurchaseOrder(Base):
    __tablename__ = "purchase_orders"

    id = Column(Integer, primary_key=True, index=True)
    number = Column(String(50), nullable=False, index=True)
    vendor_id = Column(Integer, ForeignKey("vendors.id"), nullable=True, index=True)
    vendor_name = Column(String(255), nullable=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=True)
    status = Column(String(50), default="draft")  # draft, sent, acknowledged, closed
    line_items = Column(JSON, default=list)
    subtotal = Column(Float, default=0)
    tax_amount = Column(Float, default=0)
    total = Column(Float, default=0)
    notes = Column(Text, nullable=True)
    sent_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class VendorBill(Base):
    __tablename__ = "vendor_bills"

    id = Column(Integer, primary_key=True, index=True)
    number = Column(String(50), nullable=False)
    vendor_id = Column(Integer, ForeignKey("vendors.id"), nullable=True, index=True)
    vendor_name = Column(String(255), nullable=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=True)
    status = Column(String(50), default="open")  # open, partially_paid, paid, void
    total = Column(Float, default=0)
    due_date = Column(Date, nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class Activity(Base):
    __tablename__ = "activities"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True, index=True)
    activity_type = Column(String(50), nullable=False)  # call, email, meeting, note
    subject = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True, index=True)
    title = Column(String(255), nullable=False)
    start_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class InsuranceClaim(Base):
    __tablename__ = "insurance_claims"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True, index=True)
    claim_number = Column(String(100), nullable=True)
    carrier = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now())


# Personnel detail records


class PersonnelCertification(Base):
    __tablename__ = "personnel_certifications"

    id = Column(Integer, primary_key=True, index=True)
    personnel_id = Column(Integer, ForeignKey("personnel.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    expiry_date = Column(Date, nullable=True)


class PersonnelLanguage(Base):
    __tablename__ = "personnel_languages"

    id = Column(Integer, primary_key=True, index=True)
    personnel_id = Column(Integer, ForeignKey("personnel.id"), nullable=False, index=True)
    language = Column(String(100), nullable=False)


class PersonnelCapability(Base):
    __tablename__ = "personnel_capabilities"

    id = Column(Integer, primary_key=True, index=True)
    personnel_id = Column(Integer, ForeignKey("personnel.id"), nullable=False, index=True)
    capability = Column(String(255), nullable=False)


class EmergencyContact(Base):
    __tablename__ = "emergency_contacts"

    id = Column(Integer, primary_key=True, index=True)
    personnel_id = Column(Integer, ForeignKey("personnel.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)
    relationship = Column(String(100), nullable=True)


class PersonnelProjectAssignment(Base):
    __tablename__ = "personnel_project_assignments"

    id = Column(Integer, primary_key=True, index=True)
    personnel_id = Column(Integer, ForeignKey("personnel.id"), nullable=False, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False, index=True)
    status = Column(String(50), default="active")
    assigned_at = Column(DateTime, server_default=func.now())


class ProjectLaborExpense(Base):
    __tablename__ = "project_labor_expenses"

    id = Column(Integer, primary_key=True, index=True)
    personnel_id = Column(Integer, ForeignKey("personnel.id"), nullable=False, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=True)
    hours = Column(Float, default=0)
    amount = Column(Float, default=0)
    expense_date = Column(Date, nullable=True)
