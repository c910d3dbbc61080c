"""
Payroll Models
Personnel payments, their per-project allocations and reimbursements
"""

from sqlalchemy import Column, Date, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class ExpenseCategory(Base):
    __tablename__ = "expense_categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, unique=True)
    category_type = Column(String(50), default="expense")
    created_at = Column(DateTime, server_default=func.now())


class PersonnelPayment(Base):
    """A single paycheck for one person covering one pay period"""

    __tablename__ = "personnel_payments"

    id = Column(Integer, primary_key=True, index=True)
    number = Column(String(50), nullable=True, index=True)
    personnel_id = Column(Integer, ForeignKey("personnel.id"), nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("expense_categories.id"), nullable=True)
    payment_date = Column(Date, nullable=False)
    pay_period_start = Column(Date, nullable=False, index=True)
    pay_period_end = Column(Date, nullable=False, index=True)
    regular_hours = Column(Float, default=0)
    overtime_hours = Column(Float, default=0)
    hourly_rate = Column(Float, default=0)
    gross_amount = Column(Float, default=0)
    payment_type = Column(String(50), default="regular")
    payment_method = Column(String(50), nullable=True)
    notes = Column(Text, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    allocations = relationship(
        "PersonnelPaymentAllocation", back_populates="payment", cascade="all, delete-orphan"
    )


class PersonnelPaymentAllocation(Base):
    __tablename__ = "personnel_payment_allocations"

    id = Column(Integer, primary_key=True, index=True)
    payment_id = Column(Integer, ForeignKey("personnel_payments.id"), nullable=False, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=True)
    amount = Column(Float, default=0)
    hours = Column(Float, nullable=True)
    notes = Column(Text, nullable=True)

    payment = relationship("PersonnelPayment", back_populates="allocations")


class Reimbursement(Base):
    __tablename__ = "reimbursements"

    id = Column(Integer, primary_key=True, index=True)
    personnel_id = Column(Integer, ForeignKey("personnel.id"), nullable=False, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=True)
    amount = Column(Float, nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(20), default="pending")  # pending, approved, rejected
    payment_id = Column(Integer, ForeignKey("personnel_payments.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
