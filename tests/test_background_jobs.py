import datetime

import pytest
from apscheduler.schedulers.background import BackgroundScheduler

from careplan.core import jobs as jobs_module
from careplan.core.jobs import (
    MATERIALIZATION_JOB_ID,
    SYNC_JOB_ID,
    BackgroundJobScheduler,
    build_sync_reconciler,
    materialize_today_job,
)
from careplan.services.record_store import DailyRecordStore
from careplan.services.reminder_service import ReminderPayload, alarm_key
from careplan.services.template_store import TemplateStore


@pytest.fixture()
def no_owner(monkeypatch):
    monkeypatch.delenv("CAREPLAN_OWNER_ID", raising=False)
    monkeypatch.setattr("careplan.core.config.CAREPLAN_OWNER_ID", None)


def test_start_registers_materialization_and_sync_jobs(monkeypatch, session_factory):
    monkeypatch.setenv("CAREPLAN_OWNER_ID", "owner-123")
    monkeypatch.setenv("CAREPLAN_SYNC_INTERVAL_MINUTES", "5")
    job_scheduler = BackgroundJobScheduler(BackgroundScheduler(), session_factory)

    job_scheduler.start()
    try:
        jobs = {job.id: job for job in job_scheduler.scheduler.get_jobs()}
        assert set(jobs) == {MATERIALIZATION_JOB_ID, SYNC_JOB_ID}
        assert jobs[SYNC_JOB_ID].trigger.interval == datetime.timedelta(minutes=5)
        assert job_scheduler.running is True
    finally:
        job_scheduler.stop()
    assert job_scheduler.running is False


def test_sync_job_is_skipped_without_owner(no_owner, session_factory):
    job_scheduler = BackgroundJobScheduler(BackgroundScheduler(), session_factory)

    job_scheduler.start()
    try:
        assert [job.id for job in job_scheduler.scheduler.get_jobs()] == [MATERIALIZATION_JOB_ID]
    finally:
        job_scheduler.stop()


def test_build_sync_reconciler_requires_owner(no_owner):
    assert build_sync_reconciler() is None


def test_build_sync_reconciler_survives_client_errors(monkeypatch):
    monkeypatch.setenv("CAREPLAN_OWNER_ID", "owner-123")

    def _no_credentials():
        raise RuntimeError("no credentials")

    monkeypatch.setattr(jobs_module, "get_firestore_client", _no_credentials)

    assert build_sync_reconciler() is None


def test_materialize_today_job_creates_records(db, session_factory):
    TemplateStore(db).create(title="Take Metformin", time="8:00 AM")

    materialize_today_job(session_factory)

    assert DailyRecordStore(db).count_by_date(datetime.date.today()) == 1


def _fire(job_scheduler, template):
    job_scheduler._fire_reminder(ReminderPayload.from_template(template).to_dict())


def test_fired_reminder_is_rearmed(monkeypatch, db, paused_scheduler, session_factory):
    monkeypatch.setenv("EXACT_ALARM_PERMISSION", "granted")
    template = TemplateStore(db).create(title="Evening walk", time="6:00 PM", category="EXERCISE")
    job_scheduler = BackgroundJobScheduler(paused_scheduler, session_factory)
    delivered = []
    job_scheduler.reminders.delivery = delivered.append

    _fire(job_scheduler, template)

    assert [payload.template_id for payload in delivered] == [template.id]
    assert paused_scheduler.get_job(alarm_key(template.id)) is not None


def test_fired_reminder_for_deactivated_template_is_not_rearmed(monkeypatch, db, paused_scheduler, session_factory):
    monkeypatch.setenv("EXACT_ALARM_PERMISSION", "granted")
    store = TemplateStore(db)
    template = store.create(title="Evening walk", time="6:00 PM")
    job_scheduler = BackgroundJobScheduler(paused_scheduler, session_factory)
    delivered = []

    # 日本語: 配信中に無効化された状況 / English: Deactivated while the reminder was being delivered
    def _deliver_then_deactivate(payload):
        delivered.append(payload)
        store.deactivate(template.id)

    job_scheduler.reminders.delivery = _deliver_then_deactivate
    _fire(job_scheduler, template)

    assert [payload.template_id for payload in delivered] == [template.id]
    assert paused_scheduler.get_job(alarm_key(template.id)) is None


def test_fired_reminder_for_deleted_template_is_not_rearmed(monkeypatch, db, paused_scheduler, session_factory):
    monkeypatch.setenv("EXACT_ALARM_PERMISSION", "granted")
    store = TemplateStore(db)
    template = store.create(title="Take Metformin", time="8:00 AM")
    payload = ReminderPayload.from_template(template).to_dict()
    store.delete(template.id)
    job_scheduler = BackgroundJobScheduler(paused_scheduler, session_factory)
    job_scheduler.reminders.delivery = lambda _payload: None

    job_scheduler._fire_reminder(payload)

    assert paused_scheduler.get_job(alarm_key(payload["template_id"])) is None


def test_reminder_dependency_is_disabled_while_stopped():
    assert jobs_module.job_scheduler.running is False
    assert jobs_module.get_reminder_scheduler() is None
