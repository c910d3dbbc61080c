"""Time clock router"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_staff
from ...database import get_db
from ...models import User
from .schemas import (
    ClockAlertResponse,
    ClockInRequest,
    ClockOutRequest,
    LocationUpdate,
    LocationUpdateResult,
    TimeEntryResponse,
    TimeEntryStatusUpdate,
)
from .service import TimeClockService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/time-clock", tags=["Time Clock"])


def get_timeclock_service(db: Session = Depends(get_db)) -> TimeClockService:
    return TimeClockService(db)


@router.post("/clock-in", response_model=TimeEntryResponse)
async def clock_in(
    data: ClockInRequest,
    current_user: User = Depends(get_current_user),
    service: TimeClockService = Depends(get_timeclock_service),
):
    return service.clock_in(data, current_user)


@router.post("/entries/{entry_id}/clock-out", response_model=TimeEntryResponse)
async def clock_out(
    entry_id: int,
    data: ClockOutRequest,
    current_user: User = Depends(get_current_user),
    service: TimeClockService = Depends(get_timeclock_service),
):
    return service.clock_out(entry_id, data, current_user)


@router.post("/entries/{entry_id}/lunch/start", response_model=TimeEntryResponse)
async def start_lunch(
    entry_id: int,
    current_user: User = Depends(get_current_user),
    service: TimeClockService = Depends(get_timeclock_service),
):
    return service.start_lunch(entry_id, current_user)


@router.post("/entries/{entry_id}/lunch/end", response_model=TimeEntryResponse)
async def end_lunch(
    entry_id: int,
    current_user: User = Depends(get_current_user),
    service: TimeClockService = Depends(get_timeclock_service),
):
    return service.end_lunch(entry_id, current_user)


@router.post("/entries/{entry_id}/location", response_model=LocationUpdateResult)
async def update_location(
    entry_id: int,
    data: LocationUpdate,
    current_user: User = Depends(get_current_user),
    service: TimeClockService = Depends(get_timeclock_service),
):
    """Periodic location ping from the worker's device while on the clock"""
    return service.update_location(entry_id, data, current_user)


@router.get("/entries", response_model=list[TimeEntryResponse])
async def list_entries(
    personnel_id: Optional[int] = Query(None),
    project_id: Optional[int] = Query(None),
    open_only: bool = Query(False),
    current_user: User = Depends(get_current_user),
    service: TimeClockService = Depends(get_timeclock_service),
):
    return service.list_entries(current_user, personnel_id, project_id, open_only)


@router.patch("/entries/{entry_id}/status", response_model=TimeEntryResponse)
async def set_entry_status(
    entry_id: int,
    data: TimeEntryStatusUpdate,
    current_user: User = Depends(require_staff),
    service: TimeClockService = Depends(get_timeclock_service),
):
    return service.set_entry_status(entry_id, data.status, current_user)


@router.post("/personnel/{personnel_id}/clear-block")
async def clear_clock_block(
    personnel_id: int,
    current_user: User = Depends(require_staff),
    service: TimeClockService = Depends(get_timeclock_service),
):
    """Let someone clock in again before the automatic block runs out"""
    return service.clear_clock_block(personnel_id, current_user)


@router.get("/alerts", response_model=list[ClockAlertResponse])
async def list_clock_alerts(
    resolved: Optional[bool] = Query(None),
    current_user: User = Depends(require_staff),
    service: TimeClockService = Depends(get_timeclock_service),
):
    return service.list_alerts(resolved)


@router.post("/alerts/{alert_id}/resolve", response_model=ClockAlertResponse)
async def resolve_clock_alert(
    alert_id: int,
    current_user: User = Depends(require_staff),
    service: TimeClockService = Depends(get_timeclock_service),
):
    return service.resolve_alert(alert_id, current_user)


@router.post("/sweeps/stale-clocks")
async def run_stale_clock_sweep(
    current_user: User = Depends(require_staff),
    service: TimeClockService = Depends(get_timeclock_service),
):
    """Run the stale-location sweep now instead of waiting for the worker"""
    return service.check_stale_clocks()


@router.post("/sweeps/missed-clock-ins")
async def run_missed_clock_in_sweep(
    current_user: User = Depends(require_staff),
    service: TimeClockService = Depends(get_timeclock_service),
):
    return service.check_missed_clock_ins()
