"""
Duplicate detection for customers, vendors and personnel.

Every other unmerged record of the same type is compared with the one being
checked; each candidate reports only its strongest match.
"""

import re
from difflib import SequenceMatcher
from typing import Optional

from ...shared.validators import digits_only, phone_match_key
from .repository import display_name

FUZZY_THRESHOLD = 0.85

MATCH_SCORES = {
    "tax_id": 100,
    "ssn": 95,
    "email": 90,
    "phone": 80,
    "name_company": 75,
    "name": 70,
}

MATCH_TYPE_LABELS = {
    "tax_id": "Same Tax ID",
    "ssn": "Same SSN (last 4) and last name",
    "email": "Same email",
    "phone": "Same phone",
    "name_company": "Same name and company",
    "name": "Same name",
    "fuzzy": "Similar name",
}


def normalize_name(value: Optional[str]) -> str:
    value = re.sub(r"[^\w\s]", "", (value or "").lower())
    return " ".join(value.split())


def fuzzy_score(ratio: float) -> int:
    """Map a similarity ratio in [0.85, 1.0] onto scores 50-69"""
    span = 1.0 - FUZZY_THRESHOLD
    return 50 + min(19, int(round((ratio - FUZZY_THRESHOLD) / span * 19)))


def best_match(entity_type: str, entity, candidate) -> Optional[tuple[str, int]]:
    """Strongest (match_type, score) between two records, or None"""
    if entity_type == "vendor":
        tax_id = digits_only(entity.tax_id)
        if tax_id and tax_id == digits_only(candidate.tax_id):
            return "tax_id", MATCH_SCORES["tax_id"]

    if entity_type == "personnel":
        if (
            entity.ssn_last_four
            and entity.ssn_last_four == candidate.ssn_last_four
            and normalize_name(entity.last_name) == normalize_name(candidate.last_name)
        ):
            return "ssn", MATCH_SCORES["ssn"]

    email = (entity.email or "").strip().lower()
    if email and email == (candidate.email or "").strip().lower():
        return "email", MATCH_SCORES["email"]

    phone = phone_match_key(entity.phone)
    if len(phone) == 10 and phone == phone_match_key(candidate.phone):
        return "phone", MATCH_SCORES["phone"]

    name = normalize_name(display_name(entity_type, entity))
    candidate_name = normalize_name(display_name(entity_type, candidate))

    if entity_type == "vendor":
        company = normalize_name(entity.company)
        if company and name == candidate_name and company == normalize_name(candidate.company):
            return "name_company", MATCH_SCORES["name_company"]

    if name and name == candidate_name:
        return "name", MATCH_SCORES["name"]

    if name and candidate_name:
        ratio = SequenceMatcher(None, name, candidate_name).ratio()
        if ratio >= FUZZY_THRESHOLD:
            return "fuzzy", fuzzy_score(ratio)

    return None


def find_duplicates(entity_type: str, entity, candidates: list) -> list[dict]:
    matches = []
    for candidate in candidates:
        found = best_match(entity_type, entity, candidate)
        if not found:
            continue
        match_type, score = found
        matches.append(
            {
                "duplicate_id": candidate.id,
                "duplicate_name": display_name(entity_type, candidate),
                "duplicate_email": candidate.email,
                "duplicate_phone": candidate.phone,
                "duplicate_company": getattr(candidate, "company", None),
                "duplicate_tax_id": getattr(candidate, "tax_id", None),
                "duplicate_ssn_last_four": getattr(candidate, "ssn_last_four", None),
                "match_type": match_type,
                "match_label": MATCH_TYPE_LABELS[match_type],
                "match_score": score,
            }
        )
    matches.sort(key=lambda m: (-m["match_score"], m["duplicate_id"]))
    return matches
