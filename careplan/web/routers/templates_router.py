"""Task template CRUD routes."""

from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from sqlmodel import Session

from careplan.core.db import get_db, get_session_factory
from careplan.core.jobs import get_reminder_scheduler, get_sync_reconciler
from careplan.web import handlers as web_handlers

router = APIRouter()


@router.get("/api/templates", name="api_list_templates")
def api_list_templates(request: Request, db: Session = Depends(get_db)):
    return web_handlers.api_list_templates(request, db)


@router.post("/api/templates", name="api_create_template")
async def api_create_template(
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    reminders=Depends(get_reminder_scheduler),
    sync=Depends(get_sync_reconciler),
    session_factory=Depends(get_session_factory),
):
    return await web_handlers.api_create_template(
        request,
        db,
        background_tasks,
        reminders=reminders,
        sync=sync,
        session_factory=session_factory,
    )


@router.put("/api/templates/{id}", name="api_update_template")
async def api_update_template(
    request: Request,
    id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    reminders=Depends(get_reminder_scheduler),
    sync=Depends(get_sync_reconciler),
    session_factory=Depends(get_session_factory),
):
    return await web_handlers.api_update_template(
        request,
        id,
        db,
        background_tasks,
        reminders=reminders,
        sync=sync,
        session_factory=session_factory,
    )


@router.delete("/api/templates/{id}", name="api_delete_template")
def api_delete_template(
    id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    reminders=Depends(get_reminder_scheduler),
    sync=Depends(get_sync_reconciler),
    session_factory=Depends(get_session_factory),
):
    return web_handlers.api_delete_template(
        id, db, background_tasks, reminders=reminders, sync=sync, session_factory=session_factory
    )


@router.post("/api/templates/{id}/deactivate", name="api_deactivate_template")
def api_deactivate_template(
    id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    reminders=Depends(get_reminder_scheduler),
    sync=Depends(get_sync_reconciler),
    session_factory=Depends(get_session_factory),
):
    return web_handlers.api_set_template_active(
        id, False, db, background_tasks, reminders=reminders, sync=sync, session_factory=session_factory
    )


@router.post("/api/templates/{id}/activate", name="api_activate_template")
def api_activate_template(
    id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    reminders=Depends(get_reminder_scheduler),
    sync=Depends(get_sync_reconciler),
    session_factory=Depends(get_session_factory),
):
    return web_handlers.api_set_template_active(
        id, True, db, background_tasks, reminders=reminders, sync=sync, session_factory=session_factory
    )
