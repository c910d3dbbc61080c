"""Shared validation utilities"""

import re
from datetime import date, datetime
from typing import Optional

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


def digits_only(value: Optional[str]) -> str:
    return re.sub(r"\D", "", value or "")


def normalize_phone(phone: Optional[str]) -> Optional[str]:
    """
    Normalize a phone number for SMS delivery.

    10 digits are treated as a US number (+1XXXXXXXXXX); anything else is
    assumed to already carry its country code and just gets a leading "+".
    """
    if not phone:
        return phone
    digits = digits_only(phone)
    if len(digits) == 10:
        return f"+1{digits}"
    return f"+{digits}"


def phone_match_key(phone: Optional[str]) -> str:
    """Last 10 digits, used to match numbers written in different formats"""
    return digits_only(phone)[-10:]


def validate_us_phone(phone: Optional[str]) -> Optional[str]:
    """
    Validate and normalize US phone number to E.164 format.

    Raises:
        ValueError: If phone number is invalid
    """
    if not phone:
        return phone

    digits = digits_only(phone)
    if digits.startswith("1") and len(digits) == 11:
        digits = digits[1:]
    if len(digits) != 10:
        raise ValueError("Phone number must be 10 digits for US numbers")
    return f"+1{digits}"


def is_valid_email(email: Optional[str]) -> bool:
    return bool(email) and bool(EMAIL_PATTERN.match(email.strip()))


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Returns:
        Lowercase email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()
    if not EMAIL_PATTERN.match(email):
        raise ValueError("Invalid email format")
    return email


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """Parse YYYY-MM-DD, raising ValueError for anything else"""
    if not value:
        return None
    if not re.match(r"^\d{4}-\d{2}-\d{2}$", value.strip()):
        raise ValueError("Date must be in YYYY-MM-DD format")
    return datetime.strptime(value.strip(), "%Y-%m-%d").date()


def validate_ssn_last_four(value: Optional[str]) -> Optional[str]:
    if not value:
        return value
    value = value.strip()
    if len(value) > 4:
        raise ValueError("SSN last four must be at most 4 characters")
    return value
