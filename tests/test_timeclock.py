from datetime import datetime, time, timedelta

import pytest
from fastapi import HTTPException

from commandx.domain.timeclock.schemas import ClockInRequest, ClockOutRequest, LocationUpdate
from commandx.domain.timeclock.service import TimeClockService
from commandx.models_messaging import AdminNotification
from commandx.models_timeclock import ClockAlert, PersonnelSchedule, TimeEntry

MORNING = datetime(2026, 3, 2, 8, 0)
ON_SITE = {"latitude": 40.001, "longitude": -75.0}
OFF_SITE = {"latitude": 40.01, "longitude": -75.0}


@pytest.fixture
def service(db):
    return TimeClockService(db)


def clock_in(service, project, user, now=MORNING, **kwargs):
    data = ClockInRequest(project_id=project.id, **{**ON_SITE, **kwargs})
    return service.clock_in(data, user, now=now)


def test_clock_in_creates_pending_clock_entry(service, worker, worker_user, project):
    entry = clock_in(service, project, worker_user)

    assert entry.personnel_id == worker.id
    assert entry.entry_source == "clock"
    assert entry.status == "pending"
    assert entry.clock_in_at == MORNING
    assert entry.last_location_check_at == MORNING


def test_clock_in_twice_is_conflict(service, worker, worker_user, project):
    clock_in(service, project, worker_user)
    with pytest.raises(HTTPException) as exc:
        clock_in(service, project, worker_user, now=MORNING + timedelta(minutes=5))
    assert exc.value.status_code == 409
    assert exc.value.detail["code"] == "ALREADY_CLOCKED_IN"


def test_clock_in_outside_geofence_is_refused(service, worker, worker_user, project):
    with pytest.raises(HTTPException) as exc:
        clock_in(service, project, worker_user, **OFF_SITE)
    assert exc.value.status_code == 403
    assert exc.value.detail["code"] == "OUTSIDE_GEOFENCE"


def test_clock_in_requires_location_on_enforced_project(service, worker, worker_user, project):
    with pytest.raises(HTTPException) as exc:
        service.clock_in(ClockInRequest(project_id=project.id), worker_user, now=MORNING)
    assert exc.value.status_code == 400


def test_clock_in_disabled_project(service, db, worker, worker_user, project):
    project.time_clock_enabled = False
    db.commit()
    with pytest.raises(HTTPException) as exc:
        clock_in(service, project, worker_user)
    assert exc.value.status_code == 400


def test_do_not_hire_cannot_clock_in(service, db, worker, worker_user, project):
    worker.status = "do_not_hire"
    db.commit()
    with pytest.raises(HTTPException) as exc:
        clock_in(service, project, worker_user)
    assert exc.value.status_code == 403


def test_worker_cannot_skip_schedule_check(service, worker, worker_user, project):
    with pytest.raises(HTTPException) as exc:
        clock_in(service, project, worker_user, skip_schedule_check=True)
    assert exc.value.status_code == 403


def test_late_clock_in_is_blocked_and_alerted(service, db, worker, worker_user, project):
    db.add(
        PersonnelSchedule(
            personnel_id=worker.id,
            project_id=project.id,
            scheduled_date=MORNING.date(),
            scheduled_start_time=time(7, 0),
        )
    )
    db.commit()

    with pytest.raises(HTTPException) as exc:
        clock_in(service, project, worker_user)
    assert exc.value.status_code == 409
    assert exc.value.detail["code"] == "LATE_CLOCK_IN_BLOCKED"
    assert exc.value.detail["minutes_late"] == 60

    alert = db.query(ClockAlert).one()
    assert alert.alert_type == "late_clock_in"
    assert db.query(AdminNotification).filter_by(notification_type="late_clock_in").count() == 1
    assert db.query(TimeEntry).count() == 0


def test_staff_can_skip_schedule_check(service, db, worker, admin_user, project):
    db.add(
        PersonnelSchedule(
            personnel_id=worker.id,
            project_id=project.id,
            scheduled_date=MORNING.date(),
            scheduled_start_time=time(7, 0),
        )
    )
    db.commit()

    entry = clock_in(service, project, admin_user, personnel_id=worker.id, skip_schedule_check=True)
    assert entry.personnel_id == worker.id


def test_clock_in_within_grace_period(service, db, worker, worker_user, project):
    db.add(
        PersonnelSchedule(
            personnel_id=worker.id,
            project_id=project.id,
            scheduled_date=MORNING.date(),
            scheduled_start_time=time(7, 55),
        )
    )
    db.commit()

    assert clock_in(service, project, worker_user).id is not None


def test_clock_out_subtracts_lunch(service, worker, worker_user, project):
    entry = clock_in(service, project, worker_user)
    service.start_lunch(entry.id, worker_user, now=MORNING + timedelta(hours=4))
    service.end_lunch(entry.id, worker_user, now=MORNING + timedelta(hours=4, minutes=30))
    entry = service.clock_out(
        entry.id, ClockOutRequest(**ON_SITE), worker_user, now=MORNING + timedelta(hours=8, minutes=30)
    )

    assert entry.lunch_duration_minutes == 30
    assert entry.hours == 8.0
    assert entry.regular_hours == 8.0


def test_lunch_minutes_accumulate_across_breaks(service, worker, worker_user, project):
    entry = clock_in(service, project, worker_user)
    service.start_lunch(entry.id, worker_user, now=MORNING + timedelta(hours=2))
    service.end_lunch(entry.id, worker_user, now=MORNING + timedelta(hours=2, minutes=15))
    service.start_lunch(entry.id, worker_user, now=MORNING + timedelta(hours=5))
    entry = service.end_lunch(entry.id, worker_user, now=MORNING + timedelta(hours=5, minutes=20))
    assert entry.lunch_duration_minutes == 35


def test_lunch_state_conflicts(service, worker, worker_user, project):
    entry = clock_in(service, project, worker_user)
    with pytest.raises(HTTPException) as exc:
        service.end_lunch(entry.id, worker_user, now=MORNING + timedelta(hours=1))
    assert exc.value.detail == "Not on lunch"

    service.start_lunch(entry.id, worker_user, now=MORNING + timedelta(hours=1))
    with pytest.raises(HTTPException) as exc:
        service.start_lunch(entry.id, worker_user, now=MORNING + timedelta(hours=2))
    assert exc.value.detail == "Already on lunch"


def test_clock_out_twice_is_conflict(service, worker, worker_user, project):
    entry = clock_in(service, project, worker_user)
    service.clock_out(entry.id, ClockOutRequest(), worker_user, now=MORNING + timedelta(hours=1))
    with pytest.raises(HTTPException) as exc:
        service.clock_out(entry.id, ClockOutRequest(), worker_user, now=MORNING + timedelta(hours=2))
    assert exc.value.status_code == 409


def test_location_inside_geofence(service, worker, worker_user, project):
    entry = clock_in(service, project, worker_user)
    result = service.update_location(
        entry.id, LocationUpdate(**ON_SITE), worker_user, now=MORNING + timedelta(minutes=10)
    )
    assert result["message"] == "Within job site"
    assert "auto_clocked_out" not in result


def test_leaving_site_auto_clocks_out_and_blocks(service, db, worker, worker_user, project):
    entry = clock_in(service, project, worker_user)
    left_at = MORNING + timedelta(hours=2)
    result = service.update_location(entry.id, LocationUpdate(**OFF_SITE), worker_user, now=left_at)

    assert result["auto_clocked_out"] is True
    assert result["message"].startswith("Left job site - 0.69 miles from site")
    assert result["message"].endswith("(limit: 0.25 miles)")

    db.expire_all()
    entry = db.query(TimeEntry).filter(TimeEntry.id == entry.id).one()
    assert entry.clock_out_at == left_at
    assert entry.hours == 2.0
    assert entry.auto_clocked_out is True
    assert entry.clock_blocked_until == left_at + timedelta(hours=8)

    alert = db.query(ClockAlert).one()
    assert alert.alert_type == "auto_clock_out"
    assert alert.time_entry_id == entry.id
    assert db.query(AdminNotification).filter_by(notification_type="auto_clock_out").count() == 1

    with pytest.raises(HTTPException) as exc:
        clock_in(service, project, worker_user, now=left_at + timedelta(hours=1))
    assert exc.value.status_code == 423
    assert exc.value.detail["code"] == "CLOCK_BLOCKED"


def test_location_on_lunch_is_recorded_without_geofence_check(service, db, worker, worker_user, project):
    entry = clock_in(service, project, worker_user)
    service.start_lunch(entry.id, worker_user, now=MORNING + timedelta(hours=4))
    result = service.update_location(
        entry.id, LocationUpdate(**OFF_SITE), worker_user, now=MORNING + timedelta(hours=4, minutes=5)
    )
    assert result["message"] == "On lunch - location recorded"

    db.expire_all()
    assert db.query(TimeEntry).filter(TimeEntry.id == entry.id).one().clock_out_at is None


def test_location_after_clock_out(service, worker, worker_user, project):
    entry = clock_in(service, project, worker_user)
    service.clock_out(entry.id, ClockOutRequest(), worker_user, now=MORNING + timedelta(hours=1))
    result = service.update_location(entry.id, LocationUpdate(**OFF_SITE), worker_user)
    assert result == {"success": True, "message": "Already clocked out"}


def test_clear_block_lets_worker_back_in(service, db, worker, worker_user, admin_user, project):
    entry = clock_in(service, project, worker_user)
    left_at = MORNING + timedelta(hours=2)
    service.update_location(entry.id, LocationUpdate(**OFF_SITE), worker_user, now=left_at)

    result = service.clear_clock_block(worker.id, admin_user)
    assert result["entries_cleared"] == 1
    assert result["alerts_resolved"] == 1

    again = clock_in(service, project, worker_user, now=left_at + timedelta(minutes=30))
    assert again.id != entry.id


def test_stale_sweep_clocks_out_silent_entries(service, db, worker, worker_user, project):
    entry = clock_in(service, project, worker_user)

    assert service.check_stale_clocks(now=MORNING + timedelta(minutes=20))["checked"] == 0

    summary = service.check_stale_clocks(now=MORNING + timedelta(minutes=31))
    assert summary["checked"] == 1
    assert summary["auto_clocked_out"] == 1
    assert summary["errors"] == []

    db.expire_all()
    entry = db.query(TimeEntry).filter(TimeEntry.id == entry.id).one()
    assert entry.auto_clock_out_reason == "No location update for 30+ minutes"
    assert entry.clock_blocked_until is not None


def test_stale_sweep_skips_workers_on_lunch(service, worker, worker_user, project):
    entry = clock_in(service, project, worker_user)
    service.start_lunch(entry.id, worker_user, now=MORNING + timedelta(minutes=5))
    assert service.check_stale_clocks(now=MORNING + timedelta(hours=1))["checked"] == 0


def test_lunch_pings_keep_entry_fresh_for_stale_sweep(service, db, worker, worker_user, project):
    entry = clock_in(service, project, worker_user)
    service.start_lunch(entry.id, worker_user, now=MORNING + timedelta(minutes=1))
    for minutes in range(5, 60, 5):
        service.update_location(
            entry.id, LocationUpdate(**ON_SITE), worker_user, now=MORNING + timedelta(minutes=minutes)
        )
    service.end_lunch(entry.id, worker_user, now=MORNING + timedelta(hours=1))

    summary = service.check_stale_clocks(now=MORNING + timedelta(hours=1, minutes=1))
    assert summary["auto_clocked_out"] == 0

    db.expire_all()
    entry = db.query(TimeEntry).filter(TimeEntry.id == entry.id).one()
    assert entry.clock_out_at is None
    assert entry.last_location_check_at == MORNING + timedelta(minutes=55)


def test_missed_clock_in_alert_created_once(service, db, worker, project):
    db.add(
        PersonnelSchedule(
            personnel_id=worker.id,
            project_id=project.id,
            scheduled_date=MORNING.date(),
            scheduled_start_time=time(7, 0),
        )
    )
    db.commit()

    assert service.check_missed_clock_ins(now=MORNING.replace(hour=7, minute=5))["alerts_created"] == 0
    assert service.check_missed_clock_ins(now=MORNING)["alerts_created"] == 1
    assert service.check_missed_clock_ins(now=MORNING + timedelta(minutes=5))["alerts_created"] == 0
    assert db.query(ClockAlert).filter_by(alert_type="missed_clock_in").count() == 1


def test_clock_in_api_for_worker(client, worker, worker_headers, project):
    response = client.post(
        "/time-clock/clock-in", json={"project_id": project.id, **ON_SITE}, headers=worker_headers
    )
    assert response.status_code == 200
    entry_id = response.json()["id"]

    response = client.post(
        f"/time-clock/entries/{entry_id}/location", json=ON_SITE, headers=worker_headers
    )
    assert response.status_code == 200
    assert response.json()["success"] is True

    entries = client.get("/time-clock/entries", headers=worker_headers).json()
    assert [e["id"] for e in entries] == [entry_id]


def test_worker_cannot_touch_someone_elses_entry(client, db, worker, project):
    from conftest import auth_headers, create_user

    from commandx.models import Personnel

    other_user = create_user(db, "other@example.com", "personnel")
    other = Personnel(first_name="Otto", last_name="Other", user_id=other_user.id)
    db.add(other)
    db.commit()
    entry = TimeEntry(
        personnel_id=worker.id,
        project_id=project.id,
        entry_date=MORNING.date(),
        entry_source="clock",
        clock_in_at=MORNING,
    )
    db.add(entry)
    db.commit()

    response = client.post(
        f"/time-clock/entries/{entry.id}/lunch/start", headers=auth_headers(other_user)
    )
    assert response.status_code == 403


def test_status_update_requires_staff(client, db, worker, worker_headers, manager_headers, project):
    entry = TimeEntry(
        personnel_id=worker.id, project_id=project.id, entry_date=MORNING.date(), hours=8
    )
    db.add(entry)
    db.commit()

    url = f"/time-clock/entries/{entry.id}/status"
    assert client.patch(url, json={"status": "approved"}, headers=worker_headers).status_code == 403
    response = client.patch(url, json={"status": "approved"}, headers=manager_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "approved"
