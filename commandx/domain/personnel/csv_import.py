"""
Bulk personnel import from CSV.

The first row is the header (matched case-insensitively); data rows are
numbered the way a spreadsheet shows them, so the first data row is row 2.
"""

import csv
import math
from io import StringIO
from typing import Iterable, Optional

from ...shared.validators import is_valid_email, parse_iso_date

STATUS_VALUES = ("active", "inactive", "do_not_hire")
WORK_AUTHORIZATION_VALUES = ("citizen", "permanent_resident", "work_visa", "ead", "other")
EVERIFY_VALUES = ("pending", "verified", "rejected", "expired", "not_required")

CSV_COLUMNS = [
    "first_name",
    "last_name",
    "email",
    "phone",
    "address",
    "city",
    "state",
    "zip",
    "date_of_birth",
    "hourly_rate",
    "status",
    "ssn_last_four",
    "work_authorization_type",
    "work_auth_expiry",
    "everify_status",
    "everify_case_number",
    "notes",
]

SAMPLE_ROWS = [
    [
        "John", "Smith", "john.smith@example.com", "555-123-4567", "123 Main St", "Austin",
        "TX", "78701", "1985-03-15", "25.00", "active", "1234", "citizen", "", "verified",
        "EV-2024-001", "Forklift certified",
    ],
    [
        "Jane", "Doe", "jane.doe@example.com", "555-987-6543", "456 Oak Ave", "Houston",
        "TX", "77001", "1990-07-22", "22.50", "active", "5678", "permanent_resident",
        "2025-12-31", "pending", "", "Bilingual",
    ],
]


def parse_csv(text: str) -> list[list[str]]:
    """Rows of stripped cells, blank lines dropped"""
    rows = []
    for row in csv.reader(StringIO(text.lstrip("\ufeff"))):
        cells = [cell.strip() for cell in row]
        if any(cells):
            rows.append(cells)
    return rows


def _check_enum(row: dict, field: str, allowed: Iterable[str], errors: list[str]):
    value = row.get(field)
    if value and value not in allowed:
        errors.append(f"{field}: must be one of {', '.join(allowed)}")


def validate_row(row: dict, seen_emails: set[str], existing_emails: set[str]) -> tuple[dict, list[str]]:
    """Returns (cleaned values, errors)"""
    errors: list[str] = []

    if not row.get("first_name"):
        errors.append("first_name: First name is required")
    if not row.get("last_name"):
        errors.append("last_name: Last name is required")

    email = (row.get("email") or "").lower()
    if not is_valid_email(email):
        errors.append("email: Invalid email format")
    else:
        if email in seen_emails:
            errors.append(f"Duplicate email in file: {email}")
        if email in existing_emails:
            errors.append(f"Email already exists in database: {email}")
        seen_emails.add(email)

    _check_enum(row, "status", STATUS_VALUES, errors)
    _check_enum(row, "work_authorization_type", WORK_AUTHORIZATION_VALUES, errors)
    _check_enum(row, "everify_status", EVERIFY_VALUES, errors)

    if len(row.get("ssn_last_four") or "") > 4:
        errors.append("ssn_last_four: SSN last 4 must be 4 digits")

    cleaned = {field: row.get(field) or None for field in CSV_COLUMNS}
    cleaned["email"] = email or None

    for field in ("date_of_birth", "work_auth_expiry"):
        try:
            cleaned[field] = parse_iso_date(row.get(field))
        except ValueError:
            errors.append(f"Invalid {field} format (use YYYY-MM-DD)")

    rate = row.get("hourly_rate")
    if rate:
        try:
            cleaned["hourly_rate"] = float(rate)
            if not math.isfinite(cleaned["hourly_rate"]) or cleaned["hourly_rate"] < 0:
                raise ValueError(rate)
        except ValueError:
            errors.append("Invalid hourly_rate (must be a positive number)")

    return cleaned, errors


def validate_personnel_csv(text: str, existing_emails: Optional[Iterable[str]] = None) -> dict:
    rows = parse_csv(text)
    if not rows:
        return {"valid": [], "invalid": [], "total_rows": 0}

    headers = [h.lower() for h in rows[0]]
    existing = {e.lower() for e in (existing_emails or []) if e}
    seen: set[str] = set()
    valid, invalid = [], []

    for index, cells in enumerate(rows[1:]):
        raw = {
            header: cells[i]
            for i, header in enumerate(headers)
            if i < len(cells) and cells[i]
        }
        cleaned, errors = validate_row(raw, seen, existing)
        parsed = {"row_number": index + 2, **cleaned, "errors": errors}
        (invalid if errors else valid).append(parsed)

    return {"valid": valid, "invalid": invalid, "total_rows": len(rows) - 1}


def sample_csv() -> str:
    output = StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_ALL, lineterminator="\n")
    output.write(",".join(CSV_COLUMNS) + "\n")
    writer.writerows(SAMPLE_ROWS)
    return output.getvalue()


def error_report_csv(invalid_rows: list[dict]) -> str:
    output = StringIO()
    writer = csv.writer(output, lineterminator="\n")
    writer.writerow(["Row", "Errors", "Email", "Name"])
    for row in invalid_rows:
        writer.writerow(
            [
                row["row_number"],
                "; ".join(row["errors"]),
                row.get("email") or "",
                " ".join(filter(None, [row.get("first_name"), row.get("last_name")])),
            ]
        )
    return output.getvalue()
