import datetime
from types import SimpleNamespace

import pytest

from careplan.services.reminder_service import (
    APSchedulerAlarmBackend,
    ExactAlarmCapability,
    ReminderPayload,
    ReminderScheduler,
    alarm_key,
    compute_next_trigger,
)

NOW = datetime.datetime(2024, 10, 6, 9, 30, 45)


def _template(template_id=1, time="8:00 AM", title="Take Metformin before breakfast"):
    return SimpleNamespace(
        id=template_id,
        title=title,
        description="With a glass of water",
        category="MEDICATION",
        priority="HIGH",
        time=time,
    )


def _naive(value):
    return value.replace(tzinfo=None)


class _RecordingBackend:
    def __init__(self, capability=ExactAlarmCapability.GRANTED, idle_tolerant=True, failing_keys=()):
        self.capability = capability
        self.supports_idle_tolerant = idle_tolerant
        self.failing_keys = set(failing_keys)
        self.calls = []
        self.alarms = {}

    def exact_alarm_capability(self):
        return self.capability

    def _set(self, kind, key, trigger_at, payload):
        if key in self.failing_keys:
            raise RuntimeError("alarm service unavailable")
        self.calls.append((kind, key, trigger_at))
        self.alarms[key] = (trigger_at, payload)

    def set_exact_and_allow_while_idle(self, key, trigger_at, payload):
        self._set("idle", key, trigger_at, payload)

    def set_exact(self, key, trigger_at, payload):
        self._set("exact", key, trigger_at, payload)

    def cancel(self, key):
        return self.alarms.pop(key, None) is not None

    def next_trigger(self, key):
        alarm = self.alarms.get(key)
        return alarm[0] if alarm else None


@pytest.fixture()
def reminders(paused_scheduler):
    fired = []
    holder = {}
    backend = APSchedulerAlarmBackend(
        paused_scheduler,
        on_fire=lambda payload: holder["scheduler"].handle_alarm_fired(payload),
        permission="granted",
    )
    scheduler = ReminderScheduler(backend, delivery=fired.append, clock=lambda: NOW)
    holder["scheduler"] = scheduler
    scheduler.fired = fired
    return scheduler


def test_later_time_today_fires_same_day():
    assert compute_next_trigger("11:15 AM", NOW) == datetime.datetime(2024, 10, 6, 11, 15, 0)


def test_earlier_time_fires_next_day():
    assert compute_next_trigger("8:00 AM", NOW) == datetime.datetime(2024, 10, 7, 8, 0, 0)


def test_current_minute_counts_as_passed():
    now = datetime.datetime(2024, 10, 6, 9, 30, 0)
    assert compute_next_trigger("9:30 AM", now) == datetime.datetime(2024, 10, 7, 9, 30, 0)


def test_unparseable_time_falls_back_to_one_hour():
    assert compute_next_trigger("after lunch", NOW) == NOW + datetime.timedelta(hours=1)


@pytest.mark.parametrize(
    ("setting", "expected"),
    [
        ("granted", ExactAlarmCapability.GRANTED),
        ("DENIED", ExactAlarmCapability.DENIED),
        ("unsupported", ExactAlarmCapability.UNSUPPORTED),
        ("maybe", ExactAlarmCapability.UNSUPPORTED),
    ],
)
def test_capability_from_setting(setting, expected):
    assert ExactAlarmCapability.from_setting(setting) is expected


def test_schedule_registers_idle_tolerant_job(reminders, paused_scheduler):
    assert reminders.schedule(_template()) is True

    job = paused_scheduler.get_job(alarm_key(1))
    assert job is not None
    assert _naive(job.next_run_time) == datetime.datetime(2024, 10, 7, 8, 0)
    assert job.misfire_grace_time is None
    assert job.coalesce is True
    assert job.kwargs["payload"] == {
        "template_id": 1,
        "title": "Take Metformin before breakfast",
        "description": "With a glass of water",
        "category": "MEDICATION",
        "priority": "HIGH",
        "time": "8:00 AM",
    }


def test_scheduling_twice_keeps_one_alarm(reminders, paused_scheduler):
    reminders.schedule(_template(time="8:00 AM"))
    reminders.schedule(_template(time="10:00 AM"))

    jobs = paused_scheduler.get_jobs()
    assert [job.id for job in jobs] == [alarm_key(1)]
    assert _naive(jobs[0].next_run_time) == datetime.datetime(2024, 10, 6, 10, 0)
    assert _naive(reminders.next_trigger(1)) == datetime.datetime(2024, 10, 6, 10, 0)


def test_denied_permission_skips_scheduling(paused_scheduler):
    backend = APSchedulerAlarmBackend(paused_scheduler, on_fire=lambda payload: None, permission="denied")
    scheduler = ReminderScheduler(backend, clock=lambda: NOW)

    assert scheduler.schedule(_template()) is False
    assert paused_scheduler.get_jobs() == []


def test_unsupported_platform_still_schedules():
    backend = _RecordingBackend(capability=ExactAlarmCapability.UNSUPPORTED)

    assert ReminderScheduler(backend, clock=lambda: NOW).schedule(_template()) is True
    assert backend.calls[0][0] == "idle"


def test_plain_exact_alarm_used_without_idle_support():
    backend = _RecordingBackend(idle_tolerant=False)

    ReminderScheduler(backend, clock=lambda: NOW).schedule(_template(time="10:00 PM"))

    assert backend.calls == [("exact", alarm_key(1), datetime.datetime(2024, 10, 6, 22, 0))]


def test_plain_exact_job_has_bounded_grace(paused_scheduler):
    backend = APSchedulerAlarmBackend(
        paused_scheduler, on_fire=lambda payload: None, permission="granted", exact_grace_seconds=30
    )
    backend.set_exact(alarm_key(5), datetime.datetime(2024, 10, 6, 22, 0), {"title": "Sleep"})

    assert paused_scheduler.get_job(alarm_key(5)).misfire_grace_time == 30


def test_cancel_missing_alarm_is_a_no_op(reminders, paused_scheduler):
    reminders.cancel(42)
    reminders.schedule(_template())
    reminders.cancel(1)
    reminders.cancel(1)

    assert paused_scheduler.get_jobs() == []


def test_cancel_all_removes_each_alarm(reminders, paused_scheduler):
    reminders.schedule_all([_template(1), _template(2), _template(3)])
    reminders.cancel_all([1, 3, 99])

    assert [job.id for job in paused_scheduler.get_jobs()] == [alarm_key(2)]


def test_schedule_all_continues_after_a_failure():
    backend = _RecordingBackend(failing_keys={alarm_key(2)})
    scheduler = ReminderScheduler(backend, clock=lambda: NOW)

    scheduled = scheduler.schedule_all([_template(1), _template(2), _template(3)])

    assert scheduled == 2
    assert set(backend.alarms) == {alarm_key(1), alarm_key(3)}


def test_unsaved_template_is_not_scheduled():
    backend = _RecordingBackend()
    assert ReminderScheduler(backend, clock=lambda: NOW).schedule(_template(template_id=None)) is False
    assert backend.calls == []


def test_fired_alarm_is_delivered_and_rearmed(reminders, paused_scheduler):
    reminders.schedule(_template(time="11:00 AM"))
    payload = paused_scheduler.get_job(alarm_key(1)).kwargs["payload"]

    reminders.clock = lambda: datetime.datetime(2024, 10, 6, 11, 0, 2)
    paused_scheduler.get_job(alarm_key(1)).func(payload=payload)

    assert reminders.fired == [ReminderPayload(**payload)]
    assert _naive(reminders.next_trigger(1)) == datetime.datetime(2024, 10, 7, 11, 0)


def test_delivery_failure_still_rearms():
    backend = _RecordingBackend()

    def _broken_delivery(_payload):
        raise RuntimeError("speaker unavailable")

    scheduler = ReminderScheduler(backend, delivery=_broken_delivery, clock=lambda: NOW)
    scheduler.handle_alarm_fired(ReminderPayload.from_template(_template(time="9:00 PM")).to_dict())

    assert backend.next_trigger(alarm_key(1)) == datetime.datetime(2024, 10, 6, 21, 0)


def test_inactive_template_is_not_rearmed_after_delivery():
    backend = _RecordingBackend()
    delivered = []
    scheduler = ReminderScheduler(backend, delivery=delivered.append, clock=lambda: NOW, is_active=lambda template_id: False)

    scheduler.handle_alarm_fired(ReminderPayload.from_template(_template(time="9:00 PM")).to_dict())

    assert [payload.template_id for payload in delivered] == [1]
    assert backend.next_trigger(alarm_key(1)) is None
