"""Day timeline and completion routes."""

from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from sqlmodel import Session

from careplan.core.db import get_db, get_session_factory
from careplan.core.jobs import get_sync_reconciler
from careplan.web import handlers as web_handlers

router = APIRouter()


@router.get("/api/day/{date_str}", name="api_day_view")
def api_day_view(request: Request, date_str: str, db: Session = Depends(get_db)):
    return web_handlers.api_day_view(request, date_str, db)


@router.post("/api/day/{date_str}/tasks/{template_id}/completion", name="api_set_completion")
async def api_set_completion(
    request: Request,
    date_str: str,
    template_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    sync=Depends(get_sync_reconciler),
    session_factory=Depends(get_session_factory),
):
    return await web_handlers.api_set_completion(
        request,
        date_str,
        template_id,
        db,
        background_tasks,
        sync=sync,
        session_factory=session_factory,
    )


@router.post("/api/day/{date_str}/reset", name="api_reset_day")
def api_reset_day(date_str: str, db: Session = Depends(get_db)):
    return web_handlers.api_reset_day(date_str, db)
