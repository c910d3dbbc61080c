from datetime import date

import pytest

from commandx.domain.payroll.service import PayrollService, last_sunday, next_friday, pay_period
from commandx.models import Personnel, Project
from commandx.models_audit import AuditLog
from commandx.models_payroll import (
    ExpenseCategory,
    PersonnelPayment,
    PersonnelPaymentAllocation,
    Reimbursement,
)
from commandx.models_timeclock import TimeEntry

WEDNESDAY = date(2026, 3, 11)


def test_last_sunday():
    assert last_sunday(WEDNESDAY) == date(2026, 3, 8)
    # On a Sunday the previous full week is used
    assert last_sunday(date(2026, 3, 8)) == date(2026, 3, 1)


def test_next_friday():
    assert next_friday(WEDNESDAY) == date(2026, 3, 13)
    assert next_friday(date(2026, 3, 13)) == date(2026, 3, 20)


def test_pay_period_is_monday_to_sunday():
    assert pay_period(None, WEDNESDAY) == (date(2026, 3, 2), date(2026, 3, 8))
    assert pay_period(date(2026, 2, 22), WEDNESDAY) == (date(2026, 2, 16), date(2026, 2, 22))


@pytest.fixture
def second_project(db, customer):
    project = Project(name="Oak Ave Deck", customer_id=customer.id)
    db.add(project)
    db.commit()
    return project


def add_entry(db, personnel, project, day, regular, overtime=0.0, status="approved"):
    db.add(
        TimeEntry(
            personnel_id=personnel.id,
            project_id=project.id,
            entry_date=day,
            hours=regular + overtime,
            regular_hours=regular,
            overtime_hours=overtime,
            status=status,
        )
    )


def test_generate_weekly_payroll(db, admin_user, worker, project, second_project):
    add_entry(db, worker, project, date(2026, 3, 2), 40, 5)
    add_entry(db, worker, second_project, date(2026, 3, 4), 3)
    add_entry(db, worker, project, date(2026, 3, 5), 8, status="rejected")
    add_entry(db, worker, project, date(2026, 3, 9), 8)  # next week
    db.add(
        Reimbursement(
            personnel_id=worker.id,
            project_id=project.id,
            amount=50,
            description="Drill bits",
            status="approved",
        )
    )
    db.add(Reimbursement(personnel_id=worker.id, amount=20, status="pending"))
    db.commit()

    result = PayrollService(db).generate_weekly_payroll(user=admin_user, today=WEDNESDAY)

    assert result["success"] is True
    assert result["paymentsCreated"] == 1
    assert result["payPeriod"] == {"start": "2026-03-02", "end": "2026-03-08"}
    assert result["paymentDate"] == "2026-03-13"

    payment = db.query(PersonnelPayment).one()
    assert payment.number == f"PAY-{payment.id:05d}"
    assert payment.regular_hours == 43
    assert payment.overtime_hours == 5
    assert payment.hourly_rate == 25
    # 40*25 + 5*25*1.5 + 3*25 + 50 reimbursed
    assert payment.gross_amount == pytest.approx(1312.5)
    assert payment.notes == "Payroll for 2026-03-02 to 2026-03-08 (includes $50.00 reimbursements)"
    assert db.query(ExpenseCategory).one().name == "Direct Labor"

    notes = sorted(a.notes for a in db.query(PersonnelPaymentAllocation).all())
    assert notes == [
        "3h regular + 0h OT on Oak Ave Deck",
        "40h regular + 5h OT on Main Street Renovation",
        "Reimbursement: Drill bits",
    ]

    reimbursements = {r.amount: r.payment_id for r in db.query(Reimbursement).all()}
    assert reimbursements == {50: payment.id, 20: None}
    assert db.query(AuditLog).filter_by(action="generate_payroll").count() == 1


def test_payroll_is_not_generated_twice(db, worker, project):
    add_entry(db, worker, project, date(2026, 3, 3), 8)
    db.commit()
    service = PayrollService(db)

    assert service.generate_weekly_payroll(today=WEDNESDAY)["paymentsCreated"] == 1
    again = service.generate_weekly_payroll(today=WEDNESDAY)
    assert again["success"] is False
    assert again["message"] == "Payroll already generated for period 2026-03-02 to 2026-03-08"
    assert db.query(PersonnelPayment).count() == 1


def test_empty_week(db):
    result = PayrollService(db).generate_weekly_payroll(today=WEDNESDAY)
    assert result["success"] is True
    assert result["message"] == "No time entries found for this pay period"
    assert result["paymentsCreated"] == 0


def test_personnel_without_rate_is_skipped(db, worker, project):
    volunteer = Personnel(first_name="Val", last_name="Unteer")
    db.add(volunteer)
    db.commit()
    add_entry(db, worker, project, date(2026, 3, 3), 8)
    add_entry(db, volunteer, project, date(2026, 3, 3), 8)
    db.commit()

    result = PayrollService(db).generate_weekly_payroll(today=WEDNESDAY)
    assert result["paymentsCreated"] == 1
    assert db.query(PersonnelPayment).one().personnel_id == worker.id


def test_overtime_multiplier_from_company_settings(db, worker, project):
    from commandx.services.company_settings import get_company_settings

    get_company_settings(db).overtime_multiplier = 2.0
    add_entry(db, worker, project, date(2026, 3, 3), 0, 2)
    db.commit()

    PayrollService(db).generate_weekly_payroll(today=WEDNESDAY)
    assert db.query(PersonnelPayment).one().gross_amount == 100


def test_generate_api_is_admin_only(client, manager_headers, admin_headers):
    body = {"pay_period_end": "2026-03-08"}
    assert client.post("/payroll/generate-weekly", json=body, headers=manager_headers).status_code == 403

    response = client.post("/payroll/generate-weekly", json=body, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["payPeriod"] == {"start": "2026-03-02", "end": "2026-03-08"}


def test_payment_not_found(client, admin_headers):
    assert client.get("/payroll/payments/42", headers=admin_headers).status_code == 404
