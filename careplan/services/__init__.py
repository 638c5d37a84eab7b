"""Service-layer exports."""

from .boot_recovery_service import BootRecoveryHandler
from .care_plan_service import CarePlanService
from .completion_service import complete_task, set_completion, uncomplete_task
from .materialization_service import ensure_records_for_date, ensure_today_records_exist
from .notification_content_service import (
    NotificationContent,
    ReminderCategory,
    build_daily_summary,
    build_display_content,
    build_spoken_message,
    classify,
)
from .record_store import DailyRecordStore
from .reminder_service import (
    APSchedulerAlarmBackend,
    ExactAlarmCapability,
    ReminderPayload,
    ReminderScheduler,
    compute_next_trigger,
)
from .sync_service import RemoteDailyRecord, SyncReconciler, SyncReport
from .template_store import TemplateStore
from .timeline_service import (
    build_analytics_overview,
    get_analytics_for_template,
    get_counts_for_date,
    get_tasks_for_date,
    reset_for_date,
)

__all__ = [
    "BootRecoveryHandler",
    "CarePlanService",
    "complete_task",
    "set_completion",
    "uncomplete_task",
    "ensure_records_for_date",
    "ensure_today_records_exist",
    "NotificationContent",
    "ReminderCategory",
    "build_daily_summary",
    "build_display_content",
    "build_spoken_message",
    "classify",
    "DailyRecordStore",
    "APSchedulerAlarmBackend",
    "ExactAlarmCapability",
    "ReminderPayload",
    "ReminderScheduler",
    "compute_next_trigger",
    "RemoteDailyRecord",
    "SyncReconciler",
    "SyncReport",
    "TemplateStore",
    "build_analytics_overview",
    "get_analytics_for_template",
    "get_counts_for_date",
    "get_tasks_for_date",
    "reset_for_date",
]
