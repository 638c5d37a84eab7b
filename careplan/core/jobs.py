"""
Background job scheduler for periodic care plan work.
Uses APScheduler for the daily materialization, the remote sync pass and the
per-template reminder alarms.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from google.cloud import firestore
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from careplan.core.config import FIRESTORE_PROJECT, get_owner_id, get_sync_interval_minutes
from careplan.core.db import create_session
from careplan.services.boot_recovery_service import BootRecoveryHandler
from careplan.services.care_plan_service import CarePlanService
from careplan.services.materialization_service import ensure_today_records_exist
from careplan.services.reminder_service import APSchedulerAlarmBackend, ReminderScheduler
from careplan.services.sync_service import SyncReconciler
from careplan.services.template_store import TemplateStore

logger = logging.getLogger(__name__)

MATERIALIZATION_JOB_ID = "daily_materialization"
SYNC_JOB_ID = "remote_sync"

_firestore_client = None
_firestore_client_lock = threading.Lock()


def get_firestore_client():
    """Process-wide Firestore client, created on first use."""
    global _firestore_client
    if _firestore_client is not None:
        return _firestore_client
    with _firestore_client_lock:
        if _firestore_client is None:
            _firestore_client = firestore.Client(project=FIRESTORE_PROJECT)
    return _firestore_client


def build_sync_reconciler() -> SyncReconciler | None:
    """Reconciler for the configured owner, or None when remote sync is off."""
    owner_id = get_owner_id()
    if not owner_id:
        return None
    try:
        client = get_firestore_client()
    except Exception:
        # 日本語: 認証情報がなくてもローカル機能は止めない / English: Missing credentials must not break local features
        logger.exception("Failed to create Firestore client; remote sync disabled")
        return None
    return SyncReconciler(client, owner_id)


def materialize_today_job(session_factory: Callable[[], Session] = create_session) -> None:
    logger.info("Starting daily materialization job...")
    with session_factory() as db:
        if not ensure_today_records_exist(db):
            logger.warning("Daily materialization finished with failures")


def sync_pass_job(
    reminders: ReminderScheduler | None,
    session_factory: Callable[[], Session] = create_session,
) -> None:
    sync = build_sync_reconciler()
    if sync is None:
        logger.warning("Remote sync is not configured; skipping sync pass")
        return
    logger.info("Starting remote sync job...")
    with session_factory() as db:
        CarePlanService(db, reminders=reminders, sync=sync, session_factory=session_factory).sync_now()


class BackgroundJobScheduler:
    """Manages background jobs and reminder alarms for the application."""

    def __init__(self, scheduler=None, session_factory: Callable[[], Session] = create_session):
        self.scheduler = scheduler if scheduler is not None else BackgroundScheduler()
        self.session_factory = session_factory
        backend = APSchedulerAlarmBackend(self.scheduler, on_fire=self._fire_reminder)
        self.reminders = ReminderScheduler(backend, is_active=self._template_is_active)

    @property
    def running(self) -> bool:
        return bool(self.scheduler.running)

    def _fire_reminder(self, payload: Dict[str, Any]) -> None:
        self.reminders.handle_alarm_fired(payload)

    def _template_is_active(self, template_id: int) -> bool:
        try:
            with self.session_factory() as db:
                template = TemplateStore(db).get(template_id)
                return template is not None and bool(template.is_active)
        except SQLAlchemyError:
            # 日本語: 参照できない場合は通知を止めない / English: Keep the reminder armed when the store cannot be read
            logger.exception("Failed to load template %s before re-arming its reminder", template_id)
            return True

    def start(self) -> None:
        """Start the background job scheduler."""
        if self.scheduler.running:
            return
        self.scheduler.add_job(
            func=materialize_today_job,
            trigger=CronTrigger(hour=0, minute=1),
            kwargs={"session_factory": self.session_factory},
            id=MATERIALIZATION_JOB_ID,
            name="Create today's daily task records",
            replace_existing=True,
        )
        logger.info("Daily materialization job scheduled for 00:01")

        if get_owner_id():
            interval = get_sync_interval_minutes()
            self.scheduler.add_job(
                func=sync_pass_job,
                trigger=IntervalTrigger(minutes=interval),
                kwargs={"reminders": self.reminders, "session_factory": self.session_factory},
                id=SYNC_JOB_ID,
                name="Sync care plan with remote store",
                replace_existing=True,
                coalesce=True,
                max_instances=1,
            )
            logger.info("Remote sync job scheduled to run every %s minutes", interval)

        self.scheduler.start()
        logger.info("Background job scheduler started")

    def stop(self) -> None:
        """Stop the background job scheduler."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Background job scheduler stopped")

    def recover_after_restart(self) -> None:
        BootRecoveryHandler(self.scheduler, self.reminders, self.session_factory).on_system_restart()

    def run_materialization_now(self) -> None:
        """Manually trigger the materialization job."""
        materialize_today_job(self.session_factory)


# 日本語: プロセス共通のスケジューラ / English: Global scheduler instance
job_scheduler = BackgroundJobScheduler()


def get_reminder_scheduler() -> ReminderScheduler | None:
    # 日本語: スケジューラ停止中はアラームを登録しない / English: No alarms while the scheduler is not running
    return job_scheduler.reminders if job_scheduler.running else None


def get_sync_reconciler() -> SyncReconciler | None:
    return build_sync_reconciler()


__all__ = [
    "BackgroundJobScheduler",
    "MATERIALIZATION_JOB_ID",
    "SYNC_JOB_ID",
    "build_sync_reconciler",
    "get_firestore_client",
    "get_reminder_scheduler",
    "get_sync_reconciler",
    "job_scheduler",
    "materialize_today_job",
    "sync_pass_job",
]
