"""
Weekly payroll generation

Turns a week of time entries (Mon-Sun) into one personnel payment per person,
allocated across the projects the hours were worked on. Approved
reimbursements that have not been paid yet ride along on the same payment.
"""

import logging
from collections import OrderedDict
from datetime import date, datetime, timedelta
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Personnel, Project, User
from ...models_payroll import (
    ExpenseCategory,
    PersonnelPayment,
    PersonnelPaymentAllocation,
    Reimbursement,
)
from ...models_timeclock import TimeEntry
from ...services.audit_service import record_audit
from ...services.company_settings import DEFAULT_OVERTIME_MULTIPLIER, get_company_settings

logger = logging.getLogger(__name__)

DIRECT_LABOR_CATEGORY = "Direct Labor"


def last_sunday(today: date) -> date:
    """Most recent Sunday strictly before today (a Sunday goes back a full week)"""
    return today - timedelta(days=today.isoweekday())


def next_friday(today: date) -> date:
    """Next Friday strictly after today"""
    return today + timedelta(days=(4 - today.weekday()) % 7 or 7)


def pay_period(pay_period_end: Optional[date], today: date) -> tuple[date, date]:
    end = pay_period_end or last_sunday(today)
    return end - timedelta(days=6), end


class PayrollService:
    def __init__(self, db: Session):
        self.db = db

    def _labor_category(self) -> ExpenseCategory:
        category = (
            self.db.query(ExpenseCategory)
            .filter(ExpenseCategory.name == DIRECT_LABOR_CATEGORY)
            .first()
        )
        if category is None:
            category = ExpenseCategory(name=DIRECT_LABOR_CATEGORY, category_type="labor")
            self.db.add(category)
            self.db.flush()
        return category

    def _hours_by_personnel(self, start: date, end: date) -> "OrderedDict[int, dict]":
        """personnel_id -> {personnel, projects: {project_id: {project, regular, overtime}}}"""
        entries = (
            self.db.query(TimeEntry)
            .filter(
                TimeEntry.entry_date >= start,
                TimeEntry.entry_date <= end,
                TimeEntry.status != "rejected",
            )
            .order_by(TimeEntry.personnel_id, TimeEntry.entry_date, TimeEntry.id)
            .all()
        )

        grouped: "OrderedDict[int, dict]" = OrderedDict()
        for entry in entries:
            personnel = entry.personnel
            project = entry.project
            if personnel is None or project is None:
                continue
            person = grouped.setdefault(personnel.id, {"personnel": personnel, "projects": OrderedDict()})
            bucket = person["projects"].setdefault(
                project.id, {"project": project, "regular": 0.0, "overtime": 0.0}
            )
            bucket["regular"] += entry.regular_hours or 0
            bucket["overtime"] += entry.overtime_hours or 0
        return grouped

    def _attach_reimbursements(self, payment: PersonnelPayment) -> float:
        reimbursements = (
            self.db.query(Reimbursement)
            .filter(
                Reimbursement.personnel_id == payment.personnel_id,
                Reimbursement.status == "approved",
                Reimbursement.payment_id.is_(None),
            )
            .all()
        )
        total = 0.0
        for reimbursement in reimbursements:
            total += reimbursement.amount
            reimbursement.payment_id = payment.id
            if reimbursement.project_id:
                self.db.add(
                    PersonnelPaymentAllocation(
                        payment_id=payment.id,
                        project_id=reimbursement.project_id,
                        amount=round(reimbursement.amount, 2),
                        notes=f"Reimbursement: {reimbursement.description or ''}".strip(),
                    )
                )
        return total

    def generate_weekly_payroll(
        self,
        pay_period_end: Optional[date] = None,
        user: Optional[User] = None,
        today: Optional[date] = None,
    ) -> dict:
        today = today or datetime.utcnow().date()
        start, end = pay_period(pay_period_end, today)
        logger.info(f"💰 Generating payroll for period: {start} to {end}")

        existing = (
            self.db.query(PersonnelPayment.id)
            .filter(PersonnelPayment.pay_period_start == start, PersonnelPayment.pay_period_end == end)
            .first()
        )
        if existing:
            return {
                "success": False,
                "message": f"Payroll already generated for period {start} to {end}",
                "paymentsCreated": 0,
            }

        grouped = self._hours_by_personnel(start, end)
        if not grouped:
            return {
                "success": True,
                "message": "No time entries found for this pay period",
                "paymentsCreated": 0,
                "payPeriod": {"start": start.isoformat(), "end": end.isoformat()},
            }

        settings = get_company_settings(self.db)
        multiplier = settings.overtime_multiplier or DEFAULT_OVERTIME_MULTIPLIER
        payment_date = next_friday(today)
        payment_ids = []

        try:
            category = self._labor_category()

            for personnel_id, person in grouped.items():
                personnel: Personnel = person["personnel"]
                rate = personnel.pay_rate or personnel.hourly_rate or 0

                allocations = []
                total_regular = total_overtime = 0.0
                for bucket in person["projects"].values():
                    project: Project = bucket["project"]
                    amount = bucket["regular"] * rate + bucket["overtime"] * rate * multiplier
                    total_regular += bucket["regular"]
                    total_overtime += bucket["overtime"]
                    allocations.append(
                        PersonnelPaymentAllocation(
                            project_id=project.id,
                            amount=round(amount, 2),
                            hours=round(bucket["regular"] + bucket["overtime"], 4),
                            notes=(
                                f"{bucket['regular']:g}h regular + {bucket['overtime']:g}h OT "
                                f"on {project.name}"
                            ),
                        )
                    )

                gross = round(sum(a.amount for a in allocations), 2)
                if gross <= 0:
                    logger.info(f"⏭️ Skipping {personnel.full_name}: no payable amount")
                    continue

                payment = PersonnelPayment(
                    personnel_id=personnel_id,
                    category_id=category.id,
                    payment_date=payment_date,
                    pay_period_start=start,
                    pay_period_end=end,
                    regular_hours=round(total_regular, 4),
                    overtime_hours=round(total_overtime, 4),
                    hourly_rate=rate,
                    gross_amount=gross,
                    payment_type="regular",
                    notes=f"Payroll for {start} to {end}",
                    created_by=user.id if user else None,
                    allocations=allocations,
                )
                self.db.add(payment)
                self.db.flush()
                payment.number = f"PAY-{payment.id:05d}"

                reimbursed = self._attach_reimbursements(payment)
                if reimbursed:
                    payment.gross_amount = round(gross + reimbursed, 2)
                    payment.notes = (
                        f"Payroll for {start} to {end} (includes ${reimbursed:.2f} reimbursements)"
                    )

                payment_ids.append(payment.id)
                logger.info(f"✅ Created payment {payment.number} for {personnel.full_name}")

            record_audit(
                self.db,
                user,
                "generate_payroll",
                "personnel_payment",
                details={
                    "pay_period_start": start.isoformat(),
                    "pay_period_end": end.isoformat(),
                    "payment_ids": payment_ids,
                },
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.exception("❌ Payroll generation failed")
            raise

        logger.info(f"💰 Payroll generation complete. Created {len(payment_ids)} payments.")
        return {
            "success": True,
            "message": f"Payroll generated for {start} to {end}",
            "paymentsCreated": len(payment_ids),
            "paymentIds": payment_ids,
            "payPeriod": {"start": start.isoformat(), "end": end.isoformat()},
            "paymentDate": payment_date.isoformat(),
        }

    def list_payments(
        self, pay_period_end: Optional[date] = None, personnel_id: Optional[int] = None
    ) -> list[PersonnelPayment]:
        query = self.db.query(PersonnelPayment)
        if pay_period_end:
            query = query.filter(PersonnelPayment.pay_period_end == pay_period_end)
        if personnel_id:
            query = query.filter(PersonnelPayment.personnel_id == personnel_id)
        return query.order_by(PersonnelPayment.pay_period_end.desc(), PersonnelPayment.id).all()

    def get_payment(self, payment_id: int) -> PersonnelPayment:
        payment = self.db.query(PersonnelPayment).filter(PersonnelPayment.id == payment_id).first()
        if not payment:
            raise HTTPException(status_code=404, detail="Payment not found")
        return payment
