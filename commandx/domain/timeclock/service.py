"""
Time clock service

Punch in/out, lunch breaks and geofence enforcement. A worker who leaves the
job site (or stops reporting location) while on the clock is clocked out
automatically, blocked from clocking back in for a few hours, and the entry
is flagged for an administrator.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from ...auth import is_staff
from ...config import (
    CLOCK_BLOCK_HOURS,
    GEOFENCE_DEFAULT_RADIUS_MILES,
    MISSED_CLOCK_IN_GRACE_MINUTES,
    STALE_LOCATION_MINUTES,
)
from ...models import Personnel, Project, User
from ...models_timeclock import ClockAlert, PersonnelSchedule, TimeEntry
from ...services.audit_service import record_audit
from ...services.notification_service import create_admin_notification
from .geofence import haversine_miles, lunch_minutes, worked_hours
from .schemas import ClockInRequest, ClockOutRequest, LocationUpdate

logger = logging.getLogger(__name__)

STALE_REASON = f"No location update for {STALE_LOCATION_MINUTES}+ minutes"


def geofence_radius(project: Project) -> float:
    return project.geofence_radius_miles or GEOFENCE_DEFAULT_RADIUS_MILES


def enforces_geofence(project: Project) -> bool:
    return bool(
        project.require_clock_location
        and project.site_lat is not None
        and project.site_lng is not None
    )


class TimeClockService:
    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _personnel_for(self, user: User, personnel_id: Optional[int]) -> Personnel:
        """Staff may act for anyone; everyone else only for their own record"""
        if personnel_id is not None and is_staff(user):
            personnel = self.db.query(Personnel).filter(Personnel.id == personnel_id).first()
        else:
            personnel = self.db.query(Personnel).filter(Personnel.user_id == user.id).first()
            if personnel and personnel_id is not None and personnel.id != personnel_id:
                raise HTTPException(status_code=403, detail="You can only clock yourself in")
        if not personnel:
            raise HTTPException(status_code=404, detail="Personnel not found")
        return personnel

    def _entry_for(self, entry_id: int, user: Optional[User]) -> TimeEntry:
        entry = self.db.query(TimeEntry).filter(TimeEntry.id == entry_id).first()
        if not entry:
            raise HTTPException(status_code=404, detail="Time entry not found")
        if user is not None and not is_staff(user):
            own = self.db.query(Personnel.id).filter(Personnel.user_id == user.id).scalar()
            if own != entry.personnel_id:
                raise HTTPException(status_code=403, detail="Not your time entry")
        return entry

    def _blocked_until(self, personnel_id: int, now: datetime) -> Optional[datetime]:
        return (
            self.db.query(func.max(TimeEntry.clock_blocked_until))
            .filter(
                TimeEntry.personnel_id == personnel_id,
                TimeEntry.clock_blocked_until > now,
            )
            .scalar()
        )

    # ------------------------------------------------------------------
    # Punches
    # ------------------------------------------------------------------

    def clock_in(self, data: ClockInRequest, user: User, now: Optional[datetime] = None) -> TimeEntry:
        now = now or datetime.utcnow()
        personnel = self._personnel_for(user, data.personnel_id)

        if personnel.status == "do_not_hire":
            raise HTTPException(status_code=403, detail="Personnel is not eligible to clock in")

        project = self.db.query(Project).filter(Project.id == data.project_id).first()
        if not project:
            raise HTTPException(status_code=404, detail="Project not found")
        if not project.time_clock_enabled:
            raise HTTPException(
                status_code=400, detail="Time clock is not enabled for this project"
            )

        blocked_until = self._blocked_until(personnel.id, now)
        if blocked_until:
            raise HTTPException(
                status_code=423,
                detail={
                    "code": "CLOCK_BLOCKED",
                    "message": "Clock-in is blocked after an automatic clock-out. "
                    "Contact your supervisor.",
                    "blocked_until": blocked_until.isoformat(),
                },
            )

        open_entry = (
            self.db.query(TimeEntry)
            .filter(
                TimeEntry.personnel_id == personnel.id,
                TimeEntry.project_id == project.id,
                TimeEntry.clock_in_at.isnot(None),
                TimeEntry.clock_out_at.is_(None),
            )
            .first()
        )
        if open_entry:
            raise HTTPException(
                status_code=409,
                detail={
                    "code": "ALREADY_CLOCKED_IN",
                    "message": "Already clocked in to this project",
                    "time_entry_id": open_entry.id,
                },
            )

        if data.skip_schedule_check and not is_staff(user):
            raise HTTPException(
                status_code=403, detail="Only administrators can skip the schedule check"
            )
        if not data.skip_schedule_check:
            self._enforce_schedule(personnel, project, now)

        if enforces_geofence(project):
            if data.latitude is None or data.longitude is None:
                raise HTTPException(
                    status_code=400, detail="Location is required to clock in to this project"
                )
            distance = haversine_miles(data.latitude, data.longitude, project.site_lat, project.site_lng)
            radius = geofence_radius(project)
            if distance > radius:
                raise HTTPException(
                    status_code=403,
                    detail={
                        "code": "OUTSIDE_GEOFENCE",
                        "message": f"You are {distance:.2f} miles from the job site "
                        f"(limit: {radius:g} miles)",
                        "distance_miles": round(distance, 4),
                        "radius_miles": radius,
                    },
                )

        entry = TimeEntry(
            personnel_id=personnel.id,
            project_id=project.id,
            entry_date=now.date(),
            entry_source="clock",
            status="pending",
            hours=0,
            regular_hours=0,
            overtime_hours=0,
            hourly_rate=personnel.hourly_rate,
            clock_in_at=now,
            clock_in_lat=data.latitude,
            clock_in_lng=data.longitude,
            clock_in_accuracy=data.accuracy,
            last_location_lat=data.latitude,
            last_location_lng=data.longitude,
            last_location_accuracy=data.accuracy,
            last_location_check_at=now if data.latitude is not None else None,
        )
        self.db.add(entry)
        self.db.commit()
        self.db.refresh(entry)
        logger.info(f"⏱️ {personnel.full_name} clocked in to project #{project.id}")
        return entry

    def _enforce_schedule(self, personnel: Personnel, project: Project, now: datetime):
        schedule = (
            self.db.query(PersonnelSchedule)
            .filter(
                PersonnelSchedule.personnel_id == personnel.id,
                PersonnelSchedule.project_id == project.id,
                PersonnelSchedule.scheduled_date == now.date(),
            )
            .order_by(PersonnelSchedule.scheduled_start_time)
            .first()
        )
        if not schedule:
            return

        scheduled_start = datetime.combine(now.date(), schedule.scheduled_start_time)
        cutoff = scheduled_start + timedelta(minutes=MISSED_CLOCK_IN_GRACE_MINUTES)
        if now <= cutoff:
            return

        minutes_late = int((now - scheduled_start).total_seconds() // 60)
        self.db.add(
            ClockAlert(
                personnel_id=personnel.id,
                project_id=project.id,
                alert_type="late_clock_in",
                alert_date=now.date(),
                details={
                    "scheduled_start": scheduled_start.isoformat(),
                    "attempted_at": now.isoformat(),
                    "minutes_late": minutes_late,
                },
            )
        )
        create_admin_notification(
            self.db,
            "late_clock_in",
            f"Late clock-in blocked: {personnel.full_name}",
            f"{personnel.full_name} tried to clock in to {project.name} {minutes_late} minutes "
            f"after the scheduled start.",
            link=f"/personnel/{personnel.id}",
            entity_type="personnel",
            entity_id=personnel.id,
        )
        self.db.commit()
        logger.warning(f"⚠️ Late clock-in blocked for {personnel.full_name} ({minutes_late} min)")
        raise HTTPException(
            status_code=409,
            detail={
                "code": "LATE_CLOCK_IN_BLOCKED",
                "message": "You are more than "
                f"{MISSED_CLOCK_IN_GRACE_MINUTES} minutes late. Contact your supervisor.",
                "minutes_late": minutes_late,
            },
        )

    def clock_out(
        self, entry_id: int, data: ClockOutRequest, user: User, now: Optional[datetime] = None
    ) -> TimeEntry:
        now = now or datetime.utcnow()
        entry = self._entry_for(entry_id, user)
        if entry.clock_in_at is None or entry.clock_out_at is not None:
            raise HTTPException(status_code=409, detail="Time entry is not clocked in")

        if entry.is_on_lunch:
            self._finish_lunch(entry, now)

        hours = worked_hours(entry.clock_in_at, now, entry.lunch_duration_minutes)
        entry.clock_out_at = now
        entry.clock_out_lat = data.latitude
        entry.clock_out_lng = data.longitude
        entry.clock_out_accuracy = data.accuracy
        entry.hours = hours
        # Overtime is worked out per week at payroll time
        entry.regular_hours = hours
        entry.overtime_hours = 0
        self.db.commit()
        self.db.refresh(entry)
        logger.info(f"⏱️ Time entry #{entry.id} clocked out: {hours}h")
        return entry

    def start_lunch(self, entry_id: int, user: User, now: Optional[datetime] = None) -> TimeEntry:
        now = now or datetime.utcnow()
        entry = self._entry_for(entry_id, user)
        if entry.clock_in_at is None or entry.clock_out_at is not None:
            raise HTTPException(status_code=409, detail="Time entry is not clocked in")
        if entry.is_on_lunch:
            raise HTTPException(status_code=409, detail="Already on lunch")
        entry.is_on_lunch = True
        entry.lunch_start_at = now
        entry.lunch_end_at = None
        self.db.commit()
        self.db.refresh(entry)
        return entry

    def end_lunch(self, entry_id: int, user: User, now: Optional[datetime] = None) -> TimeEntry:
        now = now or datetime.utcnow()
        entry = self._entry_for(entry_id, user)
        if not entry.is_on_lunch or entry.lunch_start_at is None:
            raise HTTPException(status_code=409, detail="Not on lunch")
        self._finish_lunch(entry, now)
        self.db.commit()
        self.db.refresh(entry)
        return entry

    @staticmethod
    def _finish_lunch(entry: TimeEntry, now: datetime):
        entry.lunch_duration_minutes = (entry.lunch_duration_minutes or 0) + lunch_minutes(
            entry.lunch_start_at, now
        )
        entry.lunch_end_at = now
        entry.is_on_lunch = False

    # ------------------------------------------------------------------
    # Geofence
    # ------------------------------------------------------------------

    def update_location(
        self,
        entry_id: int,
        data: LocationUpdate,
        user: Optional[User] = None,
        now: Optional[datetime] = None,
    ) -> dict:
        now = now or datetime.utcnow()
        entry = self._entry_for(entry_id, user)

        if entry.clock_out_at is not None:
            return {"success": True, "message": "Already clocked out"}

        entry.last_location_lat = data.latitude
        entry.last_location_lng = data.longitude
        entry.last_location_accuracy = data.accuracy
        entry.last_location_check_at = now

        if entry.is_on_lunch:
            # Workers may leave the site on lunch
            self.db.commit()
            return {"success": True, "message": "On lunch - location recorded"}

        project = self.db.query(Project).filter(Project.id == entry.project_id).first()
        if not project:
            raise HTTPException(status_code=404, detail="Project not found")

        if not enforces_geofence(project):
            self.db.commit()
            return {"success": True, "message": "Location updated"}

        radius = geofence_radius(project)
        distance = haversine_miles(data.latitude, data.longitude, project.site_lat, project.site_lng)
        if distance <= radius:
            self.db.commit()
            return {
                "success": True,
                "message": "Within job site",
                "distance_miles": round(distance, 4),
                "radius_miles": radius,
            }

        reason = f"Left job site - {distance:.2f} miles from site (limit: {radius:g} miles)"
        try:
            self._auto_clock_out(
                entry,
                project,
                now,
                reason,
                latitude=data.latitude,
                longitude=data.longitude,
                accuracy=data.accuracy,
                details={
                    "distance_miles": round(distance, 4),
                    "radius_miles": radius,
                    "location": {"lat": data.latitude, "lng": data.longitude},
                },
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        return {
            "success": True,
            "auto_clocked_out": True,
            "message": reason,
            "distance_miles": round(distance, 4),
            "radius_miles": radius,
        }

    def _auto_clock_out(
        self,
        entry: TimeEntry,
        project: Project,
        now: datetime,
        reason: str,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
        accuracy: Optional[float] = None,
        details: Optional[dict] = None,
    ):
        if entry.is_on_lunch:
            self._finish_lunch(entry, now)

        hours = worked_hours(entry.clock_in_at, now, entry.lunch_duration_minutes)
        entry.clock_out_at = now
        entry.clock_out_lat = latitude
        entry.clock_out_lng = longitude
        entry.clock_out_accuracy = accuracy
        entry.hours = hours
        entry.regular_hours = hours
        entry.overtime_hours = 0
        entry.auto_clocked_out = True
        entry.auto_clock_out_reason = reason
        entry.clock_blocked_until = now + timedelta(hours=CLOCK_BLOCK_HOURS)

        personnel = self.db.query(Personnel).filter(Personnel.id == entry.personnel_id).first()
        name = personnel.full_name if personnel else f"Personnel #{entry.personnel_id}"

        self.db.add(
            ClockAlert(
                personnel_id=entry.personnel_id,
                project_id=project.id,
                time_entry_id=entry.id,
                alert_type="auto_clock_out",
                alert_date=now.date(),
                details={"reason": reason, "hours": hours, **(details or {})},
            )
        )
        create_admin_notification(
            self.db,
            "auto_clock_out",
            f"Auto clock-out: {name}",
            f"{name} was automatically clocked out of {project.name}. {reason}",
            link=f"/time-tracking?entry={entry.id}",
            entity_type="time_entry",
            entity_id=entry.id,
        )
        logger.warning(f"📍 Auto clock-out for {name} on project #{project.id}: {reason}")

    # ------------------------------------------------------------------
    # Scheduled sweeps
    # ------------------------------------------------------------------

    def check_stale_clocks(self, now: Optional[datetime] = None) -> dict:
        """Clock out anyone on a location-required project who stopped reporting location"""
        now = now or datetime.utcnow()
        threshold = now - timedelta(minutes=STALE_LOCATION_MINUTES)

        entries = (
            self.db.query(TimeEntry)
            .join(Project, Project.id == TimeEntry.project_id)
            .filter(
                Project.require_clock_location.is_(True),
                TimeEntry.clock_in_at.isnot(None),
                TimeEntry.clock_out_at.is_(None),
                TimeEntry.is_on_lunch.is_(False),
                TimeEntry.auto_clocked_out.is_(False),
                func.coalesce(TimeEntry.last_location_check_at, TimeEntry.clock_in_at) < threshold,
            )
            .all()
        )

        results = []
        errors = []
        for entry in entries:
            try:
                self._auto_clock_out(
                    entry,
                    entry.project,
                    now,
                    STALE_REASON,
                    latitude=entry.last_location_lat,
                    longitude=entry.last_location_lng,
                    details={
                        "last_location_check_at": (
                            entry.last_location_check_at.isoformat()
                            if entry.last_location_check_at
                            else None
                        )
                    },
                )
                self.db.commit()
                results.append({"time_entry_id": entry.id, "hours": entry.hours})
            except Exception as e:
                self.db.rollback()
                logger.error(f"❌ Stale clock check failed for entry #{entry.id}: {e}")
                errors.append({"time_entry_id": entry.id, "error": str(e)})

        if entries:
            logger.info(f"🕒 Stale clock sweep: {len(results)} clocked out, {len(errors)} errors")
        return {
            "checked": len(entries),
            "auto_clocked_out": len(results),
            "results": results,
            "errors": errors,
        }

    def check_missed_clock_ins(self, now: Optional[datetime] = None) -> dict:
        """Alert admins about scheduled shifts nobody clocked in for"""
        now = now or datetime.utcnow()
        today = now.date()

        schedules = (
            self.db.query(PersonnelSchedule)
            .join(Project, Project.id == PersonnelSchedule.project_id)
            .filter(
                PersonnelSchedule.scheduled_date == today,
                Project.time_clock_enabled.is_(True),
            )
            .all()
        )

        alerts_created = 0
        for schedule in schedules:
            scheduled_start = datetime.combine(today, schedule.scheduled_start_time)
            if now < scheduled_start + timedelta(minutes=MISSED_CLOCK_IN_GRACE_MINUTES):
                continue

            existing_alert = (
                self.db.query(ClockAlert.id)
                .filter(
                    ClockAlert.personnel_id == schedule.personnel_id,
                    ClockAlert.project_id == schedule.project_id,
                    ClockAlert.alert_type == "missed_clock_in",
                    ClockAlert.alert_date == today,
                )
                .first()
            )
            if existing_alert:
                continue

            clocked_in = (
                self.db.query(TimeEntry.id)
                .filter(
                    TimeEntry.personnel_id == schedule.personnel_id,
                    TimeEntry.project_id == schedule.project_id,
                    TimeEntry.entry_date == today,
                    TimeEntry.entry_source == "clock",
                )
                .first()
            )
            if clocked_in:
                continue

            personnel = self.db.query(Personnel).filter(Personnel.id == schedule.personnel_id).first()
            project = self.db.query(Project).filter(Project.id == schedule.project_id).first()
            name = personnel.full_name if personnel else f"Personnel #{schedule.personnel_id}"

            self.db.add(
                ClockAlert(
                    personnel_id=schedule.personnel_id,
                    project_id=schedule.project_id,
                    alert_type="missed_clock_in",
                    alert_date=today,
                    details={"scheduled_start": scheduled_start.isoformat()},
                )
            )
            create_admin_notification(
                self.db,
                "missed_clock_in",
                f"Missed clock-in: {name}",
                f"{name} was scheduled on {project.name} at "
                f"{schedule.scheduled_start_time.strftime('%H:%M')} and has not clocked in.",
                link=f"/personnel/{schedule.personnel_id}",
                entity_type="personnel",
                entity_id=schedule.personnel_id,
            )
            self.db.commit()
            alerts_created += 1

        if alerts_created:
            logger.info(f"🔔 Missed clock-in sweep created {alerts_created} alert(s)")
        return {"checked": len(schedules), "alerts_created": alerts_created}

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def clear_clock_block(self, personnel_id: int, user: User) -> dict:
        personnel = self.db.query(Personnel).filter(Personnel.id == personnel_id).first()
        if not personnel:
            raise HTTPException(status_code=404, detail="Personnel not found")

        now = datetime.utcnow()
        entries_cleared = (
            self.db.query(TimeEntry)
            .filter(
                TimeEntry.personnel_id == personnel_id,
                TimeEntry.clock_blocked_until.isnot(None),
            )
            .update({TimeEntry.clock_blocked_until: None}, synchronize_session=False)
        )
        alerts_resolved = (
            self.db.query(ClockAlert)
            .filter(ClockAlert.personnel_id == personnel_id, ClockAlert.is_resolved.is_(False))
            .update(
                {
                    ClockAlert.is_resolved: True,
                    ClockAlert.resolved_at: now,
                    ClockAlert.resolved_by: user.id,
                },
                synchronize_session=False,
            )
        )
        record_audit(
            self.db,
            user,
            "clear_clock_block",
            "personnel",
            personnel_id,
            {"entries_cleared": entries_cleared, "alerts_resolved": alerts_resolved},
        )
        self.db.commit()
        logger.info(f"🔓 Clock block cleared for {personnel.full_name} by {user.email}")
        return {
            "success": True,
            "entries_cleared": entries_cleared,
            "alerts_resolved": alerts_resolved,
        }

    def list_alerts(self, resolved: Optional[bool] = None) -> list[ClockAlert]:
        query = self.db.query(ClockAlert)
        if resolved is not None:
            query = query.filter(ClockAlert.is_resolved.is_(resolved))
        return query.order_by(ClockAlert.created_at.desc(), ClockAlert.id.desc()).all()

    def resolve_alert(self, alert_id: int, user: User) -> ClockAlert:
        alert = self.db.query(ClockAlert).filter(ClockAlert.id == alert_id).first()
        if not alert:
            raise HTTPException(status_code=404, detail="Alert not found")
        alert.is_resolved = True
        alert.resolved_at = datetime.utcnow()
        alert.resolved_by = user.id
        self.db.commit()
        self.db.refresh(alert)
        return alert

    def list_entries(
        self,
        user: User,
        personnel_id: Optional[int] = None,
        project_id: Optional[int] = None,
        open_only: bool = False,
    ) -> list[TimeEntry]:
        query = self.db.query(TimeEntry)
        if not is_staff(user):
            own = self.db.query(Personnel.id).filter(Personnel.user_id == user.id).scalar()
            query = query.filter(TimeEntry.personnel_id == own)
        elif personnel_id is not None:
            query = query.filter(TimeEntry.personnel_id == personnel_id)
        if project_id is not None:
            query = query.filter(TimeEntry.project_id == project_id)
        if open_only:
            query = query.filter(TimeEntry.clock_in_at.isnot(None), TimeEntry.clock_out_at.is_(None))
        return query.order_by(TimeEntry.entry_date.desc(), TimeEntry.id.desc()).all()

    def set_entry_status(self, entry_id: int, status: str, user: User) -> TimeEntry:
        entry = self._entry_for(entry_id, None)
        entry.status = status
        record_audit(self.db, user, f"time_entry_{status}", "time_entry", entry.id)
        self.db.commit()
        self.db.refresh(entry)
        return entry
