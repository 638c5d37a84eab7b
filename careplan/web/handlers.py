"""HTTP handler implementations used by the routers."""

from __future__ import annotations

import datetime
import logging
from typing import Any, Callable, Dict

from fastapi import BackgroundTasks, HTTPException, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from careplan.models import DailyTaskRecord, TaskTemplate
from careplan.services.care_plan_service import CarePlanService
from careplan.services.notification_content_service import build_display_content, build_spoken_message
from careplan.services.reminder_service import ReminderScheduler, compute_next_trigger
from careplan.services.sync_service import SyncReconciler
from careplan.services.time_parser_service import parse_record_date
from careplan.services.timeline_service import build_analytics_overview, get_analytics_for_template

logger = logging.getLogger(__name__)

_TEMPLATE_FIELDS = ("title", "description", "time", "time_block", "category", "priority", "is_active")


def serialize_template(template: TaskTemplate) -> Dict[str, Any]:
    return {
        "id": template.id,
        "title": template.title,
        "description": template.description,
        "time_block": template.time_block,
        "time": template.time,
        "category": template.category,
        "priority": template.priority,
        "is_active": template.is_active,
        "created_at": template.created_at.isoformat() if template.created_at else None,
        "remote_id": template.remote_id,
        "sync_state": template.sync_state,
    }


def serialize_record(record: DailyTaskRecord) -> Dict[str, Any]:
    return {
        "id": record.id,
        "template_id": record.template_id,
        "date": record.date.isoformat(),
        "is_completed": record.is_completed,
        "completed_at": record.completed_at.isoformat() if record.completed_at else None,
        "remote_id": record.remote_id,
        "sync_state": record.sync_state,
    }


def _build_service(
    db: Session,
    reminders: ReminderScheduler | None,
    sync: SyncReconciler | None,
    session_factory: Callable[[], Session] | None,
) -> CarePlanService:
    return CarePlanService(db, reminders=reminders, sync=sync, session_factory=session_factory)


def _schedule_followups(service: CarePlanService, background_tasks: BackgroundTasks) -> None:
    # 日本語: リモート送信はレスポンス後に実行 / English: Remote pushes run after the response is sent
    for followup in service.drain_followups():
        background_tasks.add_task(followup)


def _parse_date_or_400(date_str: str) -> datetime.date:
    try:
        return parse_record_date(date_str)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid date format")


async def _read_json_object(request: Request) -> Dict[str, Any]:
    try:
        payload = await request.json()
    except Exception:
        raise HTTPException(status_code=400, detail="Request body must be JSON")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Request body must be an object")
    return payload


def _parse_bool(value: Any, field: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in {"true", "1", "yes"}:
        return True
    if isinstance(value, str) and value.strip().lower() in {"false", "0", "no"}:
        return False
    raise HTTPException(status_code=400, detail=f"{field} must be a boolean")


def api_list_templates(request: Request, db: Session, *, session_factory=None):
    include_inactive = request.query_params.get("include_inactive", "false").lower() in {"1", "true", "yes"}
    service = _build_service(db, None, None, session_factory)
    return {"templates": [serialize_template(t) for t in service.list_templates(include_inactive=include_inactive)]}


async def api_create_template(
    request: Request,
    db: Session,
    background_tasks: BackgroundTasks,
    *,
    reminders: ReminderScheduler | None,
    sync: SyncReconciler | None,
    session_factory=None,
):
    payload = await _read_json_object(request)
    fields = {key: payload[key] for key in _TEMPLATE_FIELDS if key in payload}
    if "is_active" in fields:
        fields["is_active"] = _parse_bool(fields["is_active"], "is_active")

    service = _build_service(db, reminders, sync, session_factory)
    try:
        template = service.add_template(**fields)
    except (TypeError, ValueError) as exc:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(exc))
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to add task template")
        raise HTTPException(status_code=500, detail=str(exc))

    _schedule_followups(service, background_tasks)
    return {"status": "created", "template": serialize_template(template)}


async def api_update_template(
    request: Request,
    template_id: int,
    db: Session,
    background_tasks: BackgroundTasks,
    *,
    reminders: ReminderScheduler | None,
    sync: SyncReconciler | None,
    session_factory=None,
):
    payload = await _read_json_object(request)
    changes = {key: payload[key] for key in _TEMPLATE_FIELDS if key in payload}
    if "is_active" in changes and changes["is_active"] is not None:
        changes["is_active"] = _parse_bool(changes["is_active"], "is_active")

    service = _build_service(db, reminders, sync, session_factory)
    try:
        template = service.update_template(template_id, **changes)
    except ValueError as exc:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(exc))
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to update task template %s", template_id)
        raise HTTPException(status_code=500, detail=str(exc))
    if template is None:
        raise HTTPException(status_code=404, detail="Template not found")

    _schedule_followups(service, background_tasks)
    return {"status": "updated", "template": serialize_template(template)}


def api_delete_template(
    template_id: int,
    db: Session,
    background_tasks: BackgroundTasks,
    *,
    reminders: ReminderScheduler | None,
    sync: SyncReconciler | None,
    session_factory=None,
):
    service = _build_service(db, reminders, sync, session_factory)
    try:
        deleted = service.delete_template(template_id)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to delete task template %s", template_id)
        raise HTTPException(status_code=500, detail=str(exc))
    if not deleted:
        raise HTTPException(status_code=404, detail="Template not found")

    _schedule_followups(service, background_tasks)
    return {"status": "deleted", "id": template_id}


def api_set_template_active(
    template_id: int,
    is_active: bool,
    db: Session,
    background_tasks: BackgroundTasks,
    *,
    reminders: ReminderScheduler | None,
    sync: SyncReconciler | None,
    session_factory=None,
):
    service = _build_service(db, reminders, sync, session_factory)
    try:
        template = service.set_template_active(template_id, is_active)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to change active state of task template %s", template_id)
        raise HTTPException(status_code=500, detail=str(exc))
    if template is None:
        raise HTTPException(status_code=404, detail="Template not found")

    _schedule_followups(service, background_tasks)
    return {"status": "activated" if is_active else "deactivated", "template": serialize_template(template)}


def api_day_view(request: Request, date_str: str, db: Session):
    date_obj = _parse_date_or_400(date_str)
    params = request.query_params
    filters: Dict[str, Any] = {}
    for key in ("category", "time_block", "priority"):
        if params.get(key):
            filters[key] = params[key]
    if params.get("is_completed"):
        filters["is_completed"] = _parse_bool(params["is_completed"], "is_completed")

    service = _build_service(db, None, None, None)
    try:
        return service.day_view(date_obj, **filters)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


async def api_set_completion(
    request: Request,
    date_str: str,
    template_id: int,
    db: Session,
    background_tasks: BackgroundTasks,
    *,
    sync: SyncReconciler | None,
    session_factory=None,
):
    date_obj = _parse_date_or_400(date_str)
    payload = await _read_json_object(request)
    if "completed" not in payload:
        raise HTTPException(status_code=400, detail="completed is required")
    completed = _parse_bool(payload["completed"], "completed")

    service = _build_service(db, None, sync, session_factory)
    try:
        record = service.set_completion(template_id, date_obj, completed)
    except LookupError:
        raise HTTPException(status_code=404, detail="Template not found")
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to update completion for template %s on %s", template_id, date_obj)
        raise HTTPException(status_code=500, detail=str(exc))

    _schedule_followups(service, background_tasks)
    return {
        "status": "ok",
        "date": date_obj.isoformat(),
        "template_id": template_id,
        "is_completed": bool(record.is_completed) if record is not None else False,
        "record": serialize_record(record) if record is not None else None,
    }


def api_reset_day(date_str: str, db: Session):
    date_obj = _parse_date_or_400(date_str)
    service = _build_service(db, None, None, None)
    try:
        reset = service.reset_day(date_obj)
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(status_code=500, detail=str(exc))
    return {"status": "ok", "date": date_obj.isoformat(), "reset": reset}


def api_analytics(db: Session, *, today: datetime.date | None = None):
    return build_analytics_overview(db, today)


def api_template_analytics(template_id: int, db: Session):
    records = get_analytics_for_template(db, template_id)
    if records is None:
        raise HTTPException(status_code=404, detail="Template not found")
    completed = sum(1 for record in records if record.is_completed)
    return {
        "template_id": template_id,
        "total": len(records),
        "completed": completed,
        "records": [serialize_record(record) for record in records],
    }


def api_sync(
    db: Session,
    *,
    reminders: ReminderScheduler | None,
    sync: SyncReconciler | None,
    session_factory=None,
):
    if sync is None:
        raise HTTPException(status_code=503, detail="Remote sync is not configured")
    service = _build_service(db, reminders, sync, session_factory)
    try:
        report = service.sync_now()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Sync pass failed")
        raise HTTPException(status_code=500, detail=str(exc))
    return {"status": "ok", "report": report.to_dict() if report else None}


def api_reminder_preview(
    template_id: int,
    db: Session,
    *,
    reminders: ReminderScheduler | None,
    now: datetime.datetime | None = None,
):
    service = _build_service(db, reminders, None, None)
    template = service.get_template(template_id)
    if template is None:
        raise HTTPException(status_code=404, detail="Template not found")

    scheduled_at = reminders.next_trigger(template_id) if reminders is not None else None
    return {
        "template_id": template_id,
        "display": build_display_content(template.title, template.description).to_dict(),
        "spoken": build_spoken_message(template.title),
        "next_trigger": compute_next_trigger(template.time, now).isoformat(),
        "scheduled_at": scheduled_at.isoformat() if scheduled_at else None,
    }
