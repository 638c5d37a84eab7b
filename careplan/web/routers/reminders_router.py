"""Reminder preview routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlmodel import Session

from careplan.core.db import get_db
from careplan.core.jobs import get_reminder_scheduler
from careplan.web import handlers as web_handlers

router = APIRouter()


@router.get("/api/reminders/{template_id}/preview", name="api_reminder_preview")
def api_reminder_preview(
    template_id: int,
    db: Session = Depends(get_db),
    reminders=Depends(get_reminder_scheduler),
):
    return web_handlers.api_reminder_preview(template_id, db, reminders=reminders)
