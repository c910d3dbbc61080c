"""Payroll router"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import require_admin, require_staff
from ...database import get_db
from ...models import User
from .schemas import GeneratePayrollRequest, PaymentResponse
from .service import PayrollService

router = APIRouter(prefix="/payroll", tags=["Payroll"])


def get_payroll_service(db: Session = Depends(get_db)) -> PayrollService:
    return PayrollService(db)


@router.post("/generate-weekly")
async def generate_weekly_payroll(
    data: GeneratePayrollRequest,
    current_user: User = Depends(require_admin),
    service: PayrollService = Depends(get_payroll_service),
):
    """
    Generate payments for a Mon-Sun pay period.

    Defaults to the week ending last Sunday. A period that already has
    payments is reported back with success=false rather than an error.
    """
    return service.generate_weekly_payroll(data.pay_period_end, current_user)


@router.get("/payments", response_model=list[PaymentResponse])
async def list_payments(
    pay_period_end: Optional[date] = Query(None),
    personnel_id: Optional[int] = Query(None),
    current_user: User = Depends(require_staff),
    service: PayrollService = Depends(get_payroll_service),
):
    return service.list_payments(pay_period_end, personnel_id)


@router.get("/payments/{payment_id}", response_model=PaymentResponse)
async def get_payment(
    payment_id: int,
    current_user: User = Depends(require_staff),
    service: PayrollService = Depends(get_payroll_service),
):
    return service.get_payment(payment_id)
