"""Wall-clock reminder scheduling, one alarm per task template."""

from __future__ import annotations

import datetime
import enum
import logging
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Iterable

from apscheduler.jobstores.base import JobLookupError
from apscheduler.triggers.date import DateTrigger

from careplan.core.config import get_exact_alarm_grace_seconds, get_exact_alarm_permission
from careplan.services.notification_content_service import build_display_content, build_spoken_message
from careplan.services.time_parser_service import parse_time_of_day

logger = logging.getLogger(__name__)

ALARM_KEY_PREFIX = "reminder:"


class ExactAlarmCapability(str, enum.Enum):
    GRANTED = "granted"
    DENIED = "denied"
    # 日本語: 権限の概念がないプラットフォーム / English: Platform has no exact-alarm permission concept
    UNSUPPORTED = "unsupported"

    @classmethod
    def from_setting(cls, value: str | None) -> "ExactAlarmCapability":
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            logger.warning("Unknown exact alarm permission %r; treating platform as unsupported", value)
            return cls.UNSUPPORTED


@dataclass(frozen=True)
class ReminderPayload:
    """Data handed to the delivery side when an alarm fires."""

    template_id: int
    title: str
    description: str
    category: str
    priority: str
    time: str

    @classmethod
    def from_template(cls, template: Any) -> "ReminderPayload":
        return cls(
            template_id=int(template.id),
            title=template.title,
            description=template.description or "",
            category=str(template.category),
            priority=str(template.priority),
            time=template.time,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def alarm_key(template_id: int) -> str:
    return f"{ALARM_KEY_PREFIX}{template_id}"


def compute_next_trigger(time_text: str, now: datetime.datetime | None = None) -> datetime.datetime:
    """Next occurrence of ``time_text`` ("h:mm a") strictly after ``now``.

    Unparseable input falls back to one hour from ``now``.
    """
    now = now or datetime.datetime.now()
    parsed = parse_time_of_day(time_text)
    if parsed is None:
        logger.warning("Could not parse reminder time %r; using one hour from now", time_text)
        return now + datetime.timedelta(hours=1)

    hour, minute = parsed
    trigger_at = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if trigger_at <= now:
        trigger_at += datetime.timedelta(days=1)
    return trigger_at


class APSchedulerAlarmBackend:
    """Alarm table backed by an APScheduler scheduler; one job per stable key."""

    supports_idle_tolerant = True

    def __init__(
        self,
        scheduler,
        on_fire: Callable[[Dict[str, Any]], None],
        *,
        permission: str | None = None,
        exact_grace_seconds: int | None = None,
    ):
        self.scheduler = scheduler
        self.on_fire = on_fire
        self._permission = permission
        self._exact_grace_seconds = exact_grace_seconds

    def exact_alarm_capability(self) -> ExactAlarmCapability:
        return ExactAlarmCapability.from_setting(self._permission or get_exact_alarm_permission())

    def _add(self, key: str, trigger_at: datetime.datetime, payload: Dict[str, Any], misfire_grace_time) -> None:
        # 日本語: 同じ id で登録すると既存ジョブが置き換わる / English: Same id replaces the existing job
        self.scheduler.add_job(
            self.on_fire,
            trigger=DateTrigger(run_date=trigger_at),
            id=key,
            name=f"Reminder {payload.get('title', '')}",
            kwargs={"payload": payload},
            replace_existing=True,
            misfire_grace_time=misfire_grace_time,
            coalesce=True,
        )

    def set_exact_and_allow_while_idle(self, key: str, trigger_at: datetime.datetime, payload: Dict[str, Any]) -> None:
        # 日本語: スリープ復帰後でも遅れて必ず発火 / English: Fires late rather than never after the host sleeps
        self._add(key, trigger_at, payload, misfire_grace_time=None)

    def set_exact(self, key: str, trigger_at: datetime.datetime, payload: Dict[str, Any]) -> None:
        grace = self._exact_grace_seconds or get_exact_alarm_grace_seconds()
        self._add(key, trigger_at, payload, misfire_grace_time=grace)

    def cancel(self, key: str) -> bool:
        try:
            self.scheduler.remove_job(key)
        except JobLookupError:
            return False
        return True

    def next_trigger(self, key: str) -> datetime.datetime | None:
        job = self.scheduler.get_job(key)
        if job is None:
            return None
        return getattr(job, "next_run_time", None) or job.trigger.run_date

    def payload(self, key: str) -> Dict[str, Any] | None:
        job = self.scheduler.get_job(key)
        if job is None:
            return None
        return dict(job.kwargs.get("payload") or {})


def log_reminder_delivery(payload: ReminderPayload) -> None:
    """Default delivery: render the content and log it."""
    content = build_display_content(payload.title, payload.description)
    spoken = build_spoken_message(payload.title)
    logger.info(
        "Reminder for template %s: %s %s | %s | spoken=%r",
        payload.template_id,
        content.emoji,
        content.heading,
        content.body,
        spoken,
    )


class ReminderScheduler:
    """Registers, replaces and cancels the single alarm each template owns."""

    def __init__(
        self,
        backend,
        *,
        delivery: Callable[[ReminderPayload], None] | None = None,
        clock: Callable[[], datetime.datetime] = datetime.datetime.now,
        is_active: Callable[[int], bool] | None = None,
    ):
        self.backend = backend
        self.delivery = delivery or log_reminder_delivery
        self.clock = clock
        self.is_active = is_active

    def schedule(self, template: Any) -> bool:
        """Register the next occurrence for ``template``. Returns False if skipped."""
        if getattr(template, "id", None) is None:
            logger.warning("Cannot schedule a reminder for an unsaved template: %r", getattr(template, "title", None))
            return False
        return self._schedule_payload(ReminderPayload.from_template(template))

    def _schedule_payload(self, payload: ReminderPayload) -> bool:
        logger.debug("Scheduling reminder for template %s - %r at %s", payload.template_id, payload.title, payload.time)

        capability = self.backend.exact_alarm_capability()
        if capability is ExactAlarmCapability.DENIED:
            # 日本語: 不正確なアラームへ黙って落とさない / English: Never silently degrade to an inexact alarm
            logger.error("Cannot schedule exact alarm for template %s: permission not granted", payload.template_id)
            return False

        trigger_at = compute_next_trigger(payload.time, self.clock())
        key = alarm_key(payload.template_id)
        if self.backend.supports_idle_tolerant:
            self.backend.set_exact_and_allow_while_idle(key, trigger_at, payload.to_dict())
        else:
            self.backend.set_exact(key, trigger_at, payload.to_dict())
        logger.info("Scheduled reminder for template %s at %s", payload.template_id, trigger_at)
        return True

    def schedule_all(self, templates: Iterable[Any]) -> int:
        scheduled = 0
        for template in templates:
            try:
                if self.schedule(template):
                    scheduled += 1
            except Exception:
                logger.exception("Failed to schedule reminder for template %s", getattr(template, "id", None))
        logger.debug("Scheduled %s task reminders", scheduled)
        return scheduled

    def cancel(self, template_id: int) -> None:
        if self.backend.cancel(alarm_key(template_id)):
            logger.debug("Canceled reminder for template %s", template_id)

    def cancel_all(self, template_ids: Iterable[int]) -> None:
        for template_id in template_ids:
            try:
                self.cancel(template_id)
            except Exception:
                logger.exception("Failed to cancel reminder for template %s", template_id)

    def next_trigger(self, template_id: int) -> datetime.datetime | None:
        return self.backend.next_trigger(alarm_key(template_id))

    def handle_alarm_fired(self, payload: Dict[str, Any]) -> None:
        """Alarm callback: hand the payload to delivery, then arm the next day's alarm."""
        reminder = ReminderPayload(**payload)
        try:
            self.delivery(reminder)
        except Exception:
            logger.exception("Reminder delivery failed for template %s", reminder.template_id)
        # 日本語: 配信中に無効化・削除されたテンプレートは再登録しない / English: Templates deactivated or deleted meanwhile stay unarmed
        if self.is_active is not None and not self.is_active(reminder.template_id):
            logger.info("Template %s is no longer active; reminder not re-armed", reminder.template_id)
            return
        self._schedule_payload(reminder)


__all__ = [
    "ALARM_KEY_PREFIX",
    "APSchedulerAlarmBackend",
    "ExactAlarmCapability",
    "ReminderPayload",
    "ReminderScheduler",
    "alarm_key",
    "compute_next_trigger",
    "log_reminder_delivery",
]
