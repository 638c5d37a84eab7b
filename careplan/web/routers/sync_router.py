"""Remote sync routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlmodel import Session

from careplan.core.db import get_db, get_session_factory
from careplan.core.jobs import get_reminder_scheduler, get_sync_reconciler
from careplan.web import handlers as web_handlers

router = APIRouter()


@router.post("/api/sync", name="api_sync")
def api_sync(
    db: Session = Depends(get_db),
    reminders=Depends(get_reminder_scheduler),
    sync=Depends(get_sync_reconciler),
    session_factory=Depends(get_session_factory),
):
    return web_handlers.api_sync(db, reminders=reminders, sync=sync, session_factory=session_factory)
