"""Customer, vendor and project schemas"""

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from ...shared.validators import validate_email, validate_us_phone


class ContactFields(BaseModel):
    company: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
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


class CustomerCreate(ContactFields):
    name: str = Field(..., min_length=1, max_length=255)
    customer_type: Optional[Literal["residential", "commercial", "government"]] = None


class CustomerUpdate(ContactFields):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    customer_type: Optional[Literal["residential", "commercial", "government"]] = None


class CustomerResponse(BaseModel):
    id: int
    name: str
    company: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    customer_type: Optional[str] = None
    notes: Optional[str] = None
    quickbooks_customer_id: Optional[str] = None
    merged_into_id: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class VendorCreate(ContactFields):
    name: str = Field(..., min_length=1, max_length=255)
    vendor_type: Optional[Literal["subcontractor", "supplier", "personnel"]] = None
    tax_id: Optional[str] = Field(None, max_length=20)
    insurance_expiry: Optional[date] = None
    license_number: Optional[str] = None


class VendorUpdate(ContactFields):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    vendor_type: Optional[Literal["subcontractor", "supplier", "personnel"]] = None
    tax_id: Optional[str] = Field(None, max_length=20)
    insurance_expiry: Optional[date] = None
    license_number: Optional[str] = None
    is_active: Optional[bool] = None


class VendorResponse(BaseModel):
    id: int
    name: str
    company: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    vendor_type: Optional[str] = None
    tax_id: Optional[str] = None
    is_active: bool
    onboarding_status: str
    insurance_expiry: Optional[date] = None
    license_number: Optional[str] = None
    w9_on_file: bool = False
    notes: Optional[str] = None
    quickbooks_vendor_id: Optional[str] = None
    merged_into_id: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProjectCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    customer_id: Optional[int] = None
    status: Optional[str] = "active"
    address: Optional[str] = None
    site_lat: Optional[float] = Field(None, ge=-90, le=90)
    site_lng: Optional[float] = Field(None, ge=-180, le=180)
    geofence_radius_miles: Optional[float] = Field(None, gt=0, le=50)
    require_clock_location: bool = False
    time_clock_enabled: bool = False


class ProjectUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    customer_id: Optional[int] = None
    status: Optional[str] = None
    address: Optional[str] = None
    site_lat: Optional[float] = Field(None, ge=-90, le=90)
    site_lng: Optional[float] = Field(None, ge=-180, le=180)
    geofence_radius_miles: Optional[float] = Field(None, gt=0, le=50)
    require_clock_location: Optional[bool] = None
    time_clock_enabled: Optional[bool] = None


class ProjectResponse(BaseModel):
    id: int
    name: str
    customer_id: Optional[int] = None
    status: Optional[str] = None
    address: Optional[str] = None
    site_lat: Optional[float] = None
    site_lng: Optional[float] = None
    geofence_radius_miles: Optional[float] = None
    require_clock_location: bool
    time_clock_enabled: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
