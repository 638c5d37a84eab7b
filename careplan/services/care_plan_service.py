"""Care plan use cases that tie storage, reminders and remote sync together."""

from __future__ import annotations

import datetime
import logging
from typing import Any, Callable, Dict, List

from sqlmodel import Session

from careplan.models import DailyTaskRecord, TaskTemplate
from careplan.services.completion_service import set_completion
from careplan.services.materialization_service import ensure_records_for_date, ensure_today_records_exist
from careplan.services.record_store import DailyRecordStore
from careplan.services.reminder_service import ReminderScheduler
from careplan.services.sync_service import SyncReconciler, SyncReport
from careplan.services.template_store import TemplateStore
from careplan.services.time_parser_service import parse_record_date
from careplan.services.timeline_service import get_counts_for_date, get_tasks_for_date, reset_for_date

logger = logging.getLogger(__name__)


class CarePlanService:
    """Local writes happen immediately; remote pushes are queued as follow-ups.

    Callers run ``drain_followups()`` after the response (each follow-up opens
    its own session), so remote latency never blocks a local write.
    """

    def __init__(
        self,
        db: Session,
        *,
        reminders: ReminderScheduler | None = None,
        sync: SyncReconciler | None = None,
        session_factory: Callable[[], Session] | None = None,
        clock: Callable[[], datetime.date] = datetime.date.today,
    ):
        self.db = db
        self.templates = TemplateStore(db)
        self.records = DailyRecordStore(db)
        self.reminders = reminders
        self.sync = sync
        self.session_factory = session_factory
        self.clock = clock
        self._followups: List[Callable[[], Any]] = []

    # 日本語: リモート送信の後処理 / English: Deferred remote work

    def drain_followups(self) -> List[Callable[[], Any]]:
        followups, self._followups = self._followups, []
        return followups

    def _can_sync(self) -> bool:
        return self.sync is not None and self.session_factory is not None

    def _queue_template_push(self, template_id: int) -> None:
        if not self._can_sync():
            return
        sync, session_factory = self.sync, self.session_factory

        def push_template() -> None:
            with session_factory() as db:
                template = TemplateStore(db).get(template_id)
                if template is not None:
                    sync.push_template(db, template)

        self._followups.append(push_template)

    def _queue_record_push(self, record_id: int) -> None:
        if not self._can_sync():
            return
        sync, session_factory = self.sync, self.session_factory

        def push_record() -> None:
            with session_factory() as db:
                record = DailyRecordStore(db).get_by_id(record_id)
                if record is not None:
                    sync.push_record(db, record)

        self._followups.append(push_record)

    def _queue_remote_delete(self, snapshot: TaskTemplate) -> None:
        if self.sync is None or not snapshot.remote_id:
            return
        sync = self.sync
        self._followups.append(lambda: sync.delete_template_remote(snapshot))

    def _arm(self, template: TaskTemplate) -> None:
        if self.reminders is None:
            return
        if template.is_active:
            self.reminders.schedule(template)
        else:
            self.reminders.cancel(template.id)

    # 日本語: テンプレート操作 / English: Template operations

    def list_templates(self, *, include_inactive: bool = False) -> List[TaskTemplate]:
        return self.templates.list_all() if include_inactive else self.templates.list_active()

    def get_template(self, template_id: int) -> TaskTemplate | None:
        return self.templates.get(template_id)

    def add_template(self, **fields: Any) -> TaskTemplate:
        template = self.templates.create(**fields)
        logger.info("Added task template %s - %s", template.id, template.title)
        if template.is_active:
            ensure_today_records_exist(self.db, self.clock())
        self._arm(template)
        self._queue_template_push(template.id)
        return template

    def update_template(self, template_id: int, **changes: Any) -> TaskTemplate | None:
        template = self.templates.get(template_id)
        if template is None:
            return None
        template = self.templates.update(template, **changes)
        if template.is_active:
            ensure_today_records_exist(self.db, self.clock())
        self._arm(template)
        self._queue_template_push(template.id)
        return template

    def set_template_active(self, template_id: int, is_active: bool) -> TaskTemplate | None:
        template = self.templates.set_active(template_id, is_active)
        if template is None:
            return None
        if is_active:
            ensure_today_records_exist(self.db, self.clock())
        self._arm(template)
        self._queue_template_push(template.id)
        return template

    def delete_template(self, template_id: int) -> bool:
        if self.reminders is not None:
            self.reminders.cancel(template_id)
        snapshot = self.templates.delete(template_id)
        if snapshot is None:
            return False
        logger.info("Deleted task template %s - %s", snapshot.id, snapshot.title)
        self._queue_remote_delete(snapshot)
        return True

    # 日本語: 日次レコード操作 / English: Daily record operations

    def day_view(self, date_value: Any, **filters: Any) -> Dict[str, Any]:
        date_obj = parse_record_date(date_value)
        if date_obj == self.clock():
            ensure_records_for_date(self.db, date_obj)
        tasks = get_tasks_for_date(self.db, date_obj, **filters)
        counts = get_counts_for_date(self.db, date_obj)
        return {
            "date": date_obj.isoformat(),
            "tasks": [task.to_dict() for task in tasks],
            "total": counts.total,
            "completed": counts.completed,
            "pending": counts.pending,
            "completion_rate": counts.completion_rate,
        }

    def set_completion(self, template_id: int, date_value: Any, completed: bool) -> DailyTaskRecord | None:
        if self.templates.get(template_id) is None:
            raise LookupError(f"Task template {template_id} not found")
        record = set_completion(self.db, template_id, date_value, completed)
        if record is not None:
            self._queue_record_push(record.id)
        return record

    def reset_day(self, date_value: Any) -> int:
        return reset_for_date(self.db, date_value)

    def sync_now(self, today: datetime.date | None = None) -> SyncReport | None:
        if self.sync is None:
            return None
        report = self.sync.run_sync_pass(self.db, today or self.clock())
        if report.imported_templates:
            ensure_today_records_exist(self.db, self.clock())
            if self.reminders is not None:
                self.reminders.schedule_all(self.templates.list_active())
        return report


__all__ = ["CarePlanService"]
