"""Personnel schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from ...shared.validators import validate_email, validate_ssn_last_four, validate_us_phone

PersonnelStatus = Literal["active", "inactive", "do_not_hire"]
WorkAuthorizationType = Literal["citizen", "permanent_resident", "work_visa", "ead", "other"]
EverifyStatus = Literal["pending", "verified", "rejected", "expired", "not_required"]


class PersonnelBase(BaseModel):
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    date_of_birth: Optional[date] = None
    hourly_rate: Optional[float] = Field(None, ge=0)
    pay_rate: Optional[float] = Field(None, ge=0)
    ssn_last_four: Optional[str] = None
    work_authorization_type: Optional[WorkAuthorizationType] = None
    work_auth_expiry: Optional[date] = None
    everify_status: Optional[EverifyStatus] = None
    everify_case_number: Optional[str] = None
    linked_vendor_id: Optional[int] = None
    user_id: Optional[int] = None
    notes: Optional[str] = None

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        return validate_email(v)

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v):
        if v:
            return validate_us_phone(v)
        return v

    @field_validator("ssn_last_four")
    @classmethod
    def check_ssn(cls, v):
        return validate_ssn_last_four(v)


class PersonnelCreate(PersonnelBase):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    status: PersonnelStatus = "active"


class PersonnelUpdate(PersonnelBase):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    status: Optional[PersonnelStatus] = None


class PersonnelResponse(BaseModel):
    id: int
    personnel_number: Optional[str] = None
    first_name: str
    last_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    date_of_birth: Optional[date] = None
    hourly_rate: Optional[float] = None
    pay_rate: Optional[float] = None
    status: str
    ssn_last_four: Optional[str] = None
    work_authorization_type: Optional[str] = None
    work_auth_expiry: Optional[date] = None
    everify_status: Optional[str] = None
    everify_case_number: Optional[str] = None
    onboarding_status: str
    linked_vendor_id: Optional[int] = None
    user_id: Optional[int] = None
    notes: Optional[str] = None
    merged_into_id: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ImportRow(BaseModel):
    row_number: int
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    errors: list[str] = Field(default_factory=list)

    class Config:
        extra = "allow"


class ImportValidationResult(BaseModel):
    valid: list[ImportRow]
    invalid: list[ImportRow]
    total_rows: int


class ImportResult(BaseModel):
    imported: int
    personnel_ids: list[int]
    invalid: list[ImportRow]
    total_rows: int
