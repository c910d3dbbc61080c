"""Time clock schemas"""

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field


class ClockInRequest(BaseModel):
    project_id: int
    personnel_id: Optional[int] = None  # Staff clocking someone in; otherwise the caller
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    accuracy: Optional[float] = None
    skip_schedule_check: bool = False


class LocationUpdate(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    accuracy: Optional[float] = None


class ClockOutRequest(BaseModel):
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    accuracy: Optional[float] = None


class TimeEntryStatusUpdate(BaseModel):
    status: Literal["pending", "approved", "rejected"]


class TimeEntryResponse(BaseModel):
    id: int
    personnel_id: int
    project_id: int
    entry_date: date
    entry_source: str
    status: str
    hours: float
    regular_hours: float
    overtime_hours: float
    clock_in_at: Optional[datetime] = None
    clock_out_at: Optional[datetime] = None
    is_on_lunch: bool
    lunch_duration_minutes: int
    last_location_check_at: Optional[datetime] = None
    auto_clocked_out: bool
    auto_clock_out_reason: Optional[str] = None
    clock_blocked_until: Optional[datetime] = None

    class Config:
        from_attributes = True


class LocationUpdateResult(BaseModel):
    success: bool
    auto_clocked_out: bool = False
    message: Optional[str] = None
    distance_miles: Optional[float] = None
    radius_miles: Optional[float] = None


class ClockAlertResponse(BaseModel):
    id: int
    personnel_id: int
    project_id: Optional[int] = None
    time_entry_id: Optional[int] = None
    alert_type: str
    alert_date: date
    details: Optional[dict] = None
    is_resolved: bool
    resolved_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
