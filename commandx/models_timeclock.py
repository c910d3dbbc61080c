"""
Time Clock Models
Clock entries, geofence alerts and personnel schedules
"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    Time,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class TimeEntry(Base):
    """A worked shift, either punched on the clock or entered manually"""

    __tablename__ = "time_entries"

    id = Column(Integer, primary_key=True, index=True)
    personnel_id = Column(Integer, ForeignKey("personnel.id"), nullable=False, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False, index=True)
    entry_date = Column(Date, nullable=False, index=True)
    entry_source = Column(String(20), default="manual", nullable=False)  # clock, manual
    status = Column(String(20), default="pending", nullable=False)  # pending, approved, rejected

    hours = Column(Float, default=0, nullable=False)
    regular_hours = Column(Float, default=0, nullable=False)
    overtime_hours = Column(Float, default=0, nullable=False)
    hourly_rate = Column(Float, nullable=True)
    description = Column(Text, nullable=True)

    # Clock punches
    clock_in_at = Column(DateTime, nullable=True)
    clock_out_at = Column(DateTime, nullable=True)
    clock_in_lat = Column(Float, nullable=True)
    clock_in_lng = Column(Float, nullable=True)
    clock_in_accuracy = Column(Float, nullable=True)
    clock_out_lat = Column(Float, nullable=True)
    clock_out_lng = Column(Float, nullable=True)
    clock_out_accuracy = Column(Float, nullable=True)

    # Lunch
    is_on_lunch = Column(Boolean, default=False, nullable=False)
    lunch_start_at = Column(DateTime, nullable=True)
    lunch_end_at = Column(DateTime, nullable=True)
    lunch_duration_minutes = Column(Integer, default=0, nullable=False)

    # Location tracking
    last_location_lat = Column(Float, nullable=True)
    last_location_lng = Column(Float, nullable=True)
    last_location_accuracy = Column(Float, nullable=True)
    last_location_check_at = Column(DateTime, nullable=True)

    # Geofence enforcement
    auto_clocked_out = Column(Boolean, default=False, nullable=False)
    auto_clock_out_reason = Column(Text, nullable=True)
    clock_blocked_until = Column(DateTime, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    personnel = relationship("Personnel")
    project = relationship("Project")


class ClockAlert(Base):
    """Something an administrator needs to look at on the time clock"""

    __tablename__ = "clock_alerts"

    id = Column(Integer, primary_key=True, index=True)
    personnel_id = Column(Integer, ForeignKey("personnel.id"), nullable=False, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=True)
    time_entry_id = Column(Integer, ForeignKey("time_entries.id"), nullable=True)
    alert_type = Column(String(50), nullable=False)  # auto_clock_out, missed_clock_in, late_clock_in
    alert_date = Column(Date, nullable=False, index=True)
    details = Column(JSON, nullable=True)
    is_resolved = Column(Boolean, default=False, nullable=False)
    resolved_at = Column(DateTime, nullable=True)
    resolved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class PersonnelSchedule(Base):
    """When someone is expected on a project"""

    __tablename__ = "personnel_schedules"

    id = Column(Integer, primary_key=True, index=True)
    personnel_id = Column(Integer, ForeignKey("personnel.id"), nullable=False, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False, index=True)
    scheduled_date = Column(Date, nullable=False, index=True)
    scheduled_start_time = Column(Time, nullable=False)
    scheduled_end_time = Column(Time, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
