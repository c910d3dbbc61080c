import asyncio

import pytest

from commandx import worker


@pytest.fixture
def worker_db(monkeypatch, session_factory):
    monkeypatch.setattr(worker, "SessionLocal", session_factory)


def test_cron_schedule():
    jobs = {job.name: job for job in worker.WorkerSettings.cron_jobs}
    assert len(jobs) == 4
    payroll = next(job for job in jobs.values() if job.coroutine is worker.weekly_payroll_task)
    assert payroll.hour == 6


def test_redis_settings_from_url(monkeypatch):
    monkeypatch.setenv("REDIS_URL", "rediss://default:pw@cache.example:6380")
    settings = worker.get_redis_settings()
    assert (settings.host, settings.port, settings.password, settings.ssl) == (
        "cache.example",
        6380,
        "pw",
        True,
    )


def test_sweeps_run_against_empty_database(worker_db):
    assert asyncio.run(worker.stale_clock_sweep_task({})) == {"checked": 0, "auto_clocked_out": 0}
    assert asyncio.run(worker.missed_clock_in_task({}))["alerts_created"] == 0


def test_weekly_payroll_task(worker_db):
    result = asyncio.run(worker.weekly_payroll_task({}))
    assert result["success"] is True
    assert result["paymentsCreated"] == 0


def test_invite_reminder_task(worker_db):
    assert asyncio.run(worker.invite_reminder_task({})) == {"invites_expiring": 0, "reminders_sent": 0}
