"""Completion analytics routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlmodel import Session

from careplan.core.db import get_db
from careplan.web import handlers as web_handlers

router = APIRouter()


@router.get("/api/analytics", name="api_analytics")
def api_analytics(db: Session = Depends(get_db)):
    return web_handlers.api_analytics(db)


@router.get("/api/analytics/templates/{id}", name="api_template_analytics")
def api_template_analytics(id: int, db: Session = Depends(get_db)):
    return web_handlers.api_template_analytics(id, db)
