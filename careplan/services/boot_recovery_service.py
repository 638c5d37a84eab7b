"""Re-register every active template's reminder after a process restart."""

from __future__ import annotations

import logging
from typing import Callable

from sqlmodel import Session

from careplan.services.reminder_service import ReminderScheduler
from careplan.services.template_store import TemplateStore

logger = logging.getLogger(__name__)

BOOT_RECOVERY_JOB_ID = "boot_recovery"


class BootRecoveryHandler:
    """Alarms do not survive a restart, so they are rebuilt from the stored templates."""

    def __init__(self, scheduler, reminders: ReminderScheduler, session_factory: Callable[[], Session]):
        self.scheduler = scheduler
        self.reminders = reminders
        self.session_factory = session_factory

    def on_system_restart(self) -> None:
        """Queue the recovery on the background pool and return immediately."""
        logger.debug("System restart detected, queueing task reminder recovery")
        self.scheduler.add_job(
            self.recover,
            id=BOOT_RECOVERY_JOB_ID,
            name="Reschedule task reminders after restart",
            replace_existing=True,
        )

    def recover(self) -> int:
        with self.session_factory() as db:
            templates = TemplateStore(db).list_active()
        if not templates:
            return 0
        scheduled = self.reminders.schedule_all(templates)
        logger.info("Rescheduled %s of %s task reminders after restart", scheduled, len(templates))
        return scheduled


__all__ = ["BOOT_RECOVERY_JOB_ID", "BootRecoveryHandler"]
