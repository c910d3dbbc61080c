import pytest
from fastapi import HTTPException

from commandx.domain.personnel.csv_import import (
    error_report_csv,
    parse_csv,
    sample_csv,
    validate_personnel_csv,
)
from commandx.domain.personnel.service import MAX_IMPORT_BYTES, PersonnelService
from commandx.models import Personnel
from commandx.models_audit import AuditLog

HEADER = "First_Name,Last_Name,Email,Hourly_Rate,Status,Date_Of_Birth\n"


def upload(text: str, name: str = "people.csv"):
    return {"file": (name, text.encode("utf-8"), "text/csv")}


def test_template_validates_cleanly():
    result = validate_personnel_csv(sample_csv())
    assert result["total_rows"] == 2
    assert result["invalid"] == []
    assert result["valid"][0]["hourly_rate"] == 25.0


def test_parse_csv_drops_blank_lines_and_bom():
    rows = parse_csv("\ufeffa,b\n\n , \n1,2\n")
    assert rows == [["a", "b"], ["1", "2"]]


def test_row_level_errors_are_collected():
    text = HEADER + (
        "Ann,Lee,ann@example.com,20,active,1990-01-01\n"
        ",Stone,bad-email,-5,retired,01/02/1990\n"
        "Ann,Other,ANN@example.com,18,active,\n"
        "Bob,Ray,bob@example.com,abc,active,\n"
    )
    result = validate_personnel_csv(text, existing_emails=["Bob@Example.com"])
    assert result["total_rows"] == 4
    assert [row["row_number"] for row in result["valid"]] == [2]

    errors = {row["row_number"]: row["errors"] for row in result["invalid"]}
    assert "first_name: First name is required" in errors[3]
    assert "email: Invalid email format" in errors[3]
    assert "Invalid hourly_rate (must be a positive number)" in errors[3]
    assert any(e.startswith("status:") for e in errors[3])
    assert "Invalid date_of_birth format (use YYYY-MM-DD)" in errors[3]
    assert errors[4] == ["Duplicate email in file: ann@example.com"]
    assert "Email already exists in database: bob@example.com" in errors[5]
    assert "Invalid hourly_rate (must be a positive number)" in errors[5]


@pytest.mark.parametrize("rate", ["nan", "inf", "-Infinity"])
def test_non_finite_hourly_rate_is_rejected(rate):
    result = validate_personnel_csv(HEADER + f"Ann,Lee,ann@example.com,{rate},active,\n")
    assert result["valid"] == []
    assert result["invalid"][0]["errors"] == ["Invalid hourly_rate (must be a positive number)"]


def test_error_report_lists_invalid_rows():
    report = error_report_csv(
        [{"row_number": 3, "errors": ["a", "b"], "email": "x@example.com", "first_name": "X"}]
    )
    assert report.splitlines() == ["Row,Errors,Email,Name", "3,a; b,x@example.com,X"]


def test_decode_upload_limits():
    with pytest.raises(HTTPException) as exc:
        PersonnelService.decode_upload(b"x" * (MAX_IMPORT_BYTES + 1))
    assert exc.value.status_code == 413

    with pytest.raises(HTTPException) as exc:
        PersonnelService.decode_upload("name\nJosé".encode("latin-1"))
    assert exc.value.status_code == 400

    assert PersonnelService.decode_upload("\ufeffa,b".encode("utf-8")) == "a,b"


def test_import_inserts_valid_rows_only(client, db, admin_headers, worker):
    text = HEADER + (
        "Ann,Lee,ann@example.com,20,,\n"
        "Dup,Worker,worker@example.com,20,active,\n"
        "Cy,Park,cy@example.com,21.5,inactive,1992-06-30\n"
    )
    response = client.post("/personnel/import", files=upload(text), headers=admin_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["imported"] == 2
    assert body["total_rows"] == 3
    assert body["invalid"][0]["row_number"] == 3

    created = db.query(Personnel).filter(Personnel.id.in_(body["personnel_ids"])).order_by(Personnel.id).all()
    assert [p.email for p in created] == ["ann@example.com", "cy@example.com"]
    assert created[0].status == "active"
    assert created[1].status == "inactive"
    assert created[1].personnel_number == f"P-{created[1].id:05d}"

    audit = db.query(AuditLog).filter_by(action="bulk_import").one()
    assert audit.details == {"imported": 2, "skipped": 1}


def test_validate_endpoint_does_not_insert(client, db, admin_headers):
    text = HEADER + "Ann,Lee,ann@example.com,20,active,\n"
    response = client.post("/personnel/import/validate", files=upload(text), headers=admin_headers)
    assert response.status_code == 200
    assert len(response.json()["valid"]) == 1
    assert db.query(Personnel).count() == 0


def test_header_only_file_is_rejected(client, admin_headers):
    response = client.post("/personnel/import", files=upload(HEADER), headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["detail"] == "CSV file has no data rows"


def test_template_download(client, admin_headers):
    response = client.get("/personnel/import/template", headers=admin_headers)
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "personnel_import_template.csv" in response.headers["content-disposition"]
    assert response.text.splitlines()[0].startswith("first_name,last_name,email")


def test_error_report_endpoint(client, admin_headers):
    text = HEADER + "Ann,,ann@example.com,20,active,\n"
    response = client.post("/personnel/import/errors", files=upload(text), headers=admin_headers)
    assert response.status_code == 200
    assert "last_name: Last name is required" in response.text


def test_import_requires_staff(client, worker_headers):
    response = client.post("/personnel/import", files=upload(HEADER), headers=worker_headers)
    assert response.status_code == 403


def test_create_and_update_personnel(client, db, admin_headers):
    response = client.post(
        "/personnel",
        json={"first_name": "Lu", "last_name": "Chen", "email": "LU@example.com", "phone": "555 010 2030"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    body = response.json()
    assert body["email"] == "lu@example.com"
    assert body["phone"] == "+15550102030"
    assert body["personnel_number"] == f"P-{body['id']:05d}"

    response = client.patch(
        f"/personnel/{body['id']}", json={"status": "do_not_hire"}, headers=admin_headers
    )
    assert response.json()["status"] == "do_not_hire"

    listed = client.get("/personnel", params={"status": "do_not_hire"}, headers=admin_headers).json()
    assert [p["id"] for p in listed] == [body["id"]]
