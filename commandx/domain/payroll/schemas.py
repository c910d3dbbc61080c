from datetime import date
from typing import Optional

from pydantic import BaseModel


class GeneratePayrollRequest(BaseModel):
    pay_period_end: Optional[date] = None


class AllocationResponse(BaseModel):
    id: int
    project_id: Optional[int] = None
    amount: float
    hours: Optional[float] = None
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class PaymentResponse(BaseModel):
    id: int
    number: Optional[str] = None
    personnel_id: int
    category_id: Optional[int] = None
    payment_date: date
    pay_period_start: date
    pay_period_end: date
    regular_hours: float
    overtime_hours: float
    hourly_rate: float
    gross_amount: float
    payment_type: Optional[str] = None
    notes: Optional[str] = None
    allocations: list[AllocationResponse] = []

    class Config:
        from_attributes = True
