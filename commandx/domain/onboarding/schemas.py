"""Onboarding schemas - invites, public token forms and reviews"""

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from ...shared.validators import validate_email, validate_ssn_last_four, validate_us_phone

WorkAuthorizationType = Literal["citizen", "permanent_resident", "work_visa", "ead", "other"]


class EmergencyContactIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    relationship: Optional[str] = None
    phone: Optional[str] = None

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v):
        if v:
            return validate_us_phone(v)
        return v


class CertificationIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    expiry_date: Optional[date] = None


class RegistrationInviteCreate(BaseModel):
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        return validate_email(v)


class RegistrationInviteResponse(BaseModel):
    id: int
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    status: str
    expires_at: datetime
    used_at: Optional[datetime] = None
    personnel_id: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PersonalDetails(BaseModel):
    """Fields a worker fills in about themselves"""

    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    date_of_birth: Optional[date] = None
    ssn_last_four: Optional[str] = None
    work_authorization_type: Optional[WorkAuthorizationType] = None
    work_auth_expiry: Optional[date] = None
    emergency_contacts: list[EmergencyContactIn] = Field(default_factory=list)
    certifications: list[CertificationIn] = Field(default_factory=list)
    languages: list[str] = Field(default_factory=list)
    capabilities: list[str] = Field(default_factory=list)

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


class RegistrationSubmission(PersonalDetails):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)


class OnboardingSubmission(PersonalDetails):
    pass


class RegistrationReview(BaseModel):
    action: Literal["approve", "reject"]
    reason: Optional[str] = None


class ResendLinkRequest(BaseModel):
    email: str


class VendorOnboardingSubmission(BaseModel):
    name: Optional[str] = None
    company: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    tax_id: Optional[str] = None
    license_number: Optional[str] = None
    insurance_expiry: Optional[date] = None
    bank_name: Optional[str] = None
    bank_account_last_four: Optional[str] = Field(None, max_length=4)
    w9_on_file: Optional[bool] = None
    agree_to_terms: bool = False

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v):
        if v:
            return validate_us_phone(v)
        return v


class OnboardingLinkResponse(BaseModel):
    success: bool
    link: str
    expires_at: datetime
    email_sent: bool
