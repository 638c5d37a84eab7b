"""Materialize one daily record per active template for a date."""

from __future__ import annotations

import datetime
import logging
from typing import Any

from sqlalchemy import Boolean, Date, String, literal, select as sa_select
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from careplan.models import DailyTaskRecord, SyncState, TaskTemplate
from careplan.services.record_store import RECORD_UNIQUE_KEY, DailyRecordStore, dialect_insert
from careplan.services.template_store import TemplateStore
from careplan.services.time_parser_service import parse_record_date

logger = logging.getLogger(__name__)


def _insert_missing_records_bulk(db: Session, date_obj: datetime.date) -> int:
    already_recorded = sa_select(DailyTaskRecord.template_id).where(DailyTaskRecord.date == date_obj)
    missing_templates = sa_select(
        TaskTemplate.id,
        literal(date_obj, Date),
        literal(False, Boolean),
        literal(SyncState.LOCAL_ONLY.value, String),
    ).where(
        TaskTemplate.is_active == True,  # noqa: E712
        TaskTemplate.id.not_in(already_recorded),
    )
    insert = dialect_insert(db)
    statement = (
        insert(DailyTaskRecord)
        .from_select(["template_id", "date", "is_completed", "sync_state"], missing_templates)
        .on_conflict_do_nothing(index_elements=RECORD_UNIQUE_KEY)
    )
    result = db.exec(statement)
    db.commit()
    return int(result.rowcount or 0)


def _insert_missing_records_one_by_one(db: Session, date_obj: datetime.date) -> bool:
    records = DailyRecordStore(db)
    all_ok = True
    for template in TemplateStore(db).list_active():
        template_id = template.id
        try:
            if records.get(template_id, date_obj) is not None:
                continue
            records.insert_ignoring_conflict(template_id, date_obj)
        except SQLAlchemyError:
            db.rollback()
            all_ok = False
            logger.exception("Failed to create record for template %s on %s", template_id, date_obj)
    return all_ok


def ensure_records_for_date(db: Session, date_value: Any) -> bool:
    """Create a pending record for every active template lacking one on ``date_value``.

    Safe to call repeatedly and concurrently. Returns False only when the
    per-template fallback could not create every missing record.
    """
    date_obj = parse_record_date(date_value)
    try:
        created = _insert_missing_records_bulk(db, date_obj)
        logger.debug("Created %s daily records for %s", created, date_obj)
        return True
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to create daily records for %s; falling back to per-template inserts", date_obj)

    try:
        return _insert_missing_records_one_by_one(db, date_obj)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to list active templates for %s", date_obj)
        return False


def ensure_today_records_exist(db: Session, today: datetime.date | None = None) -> bool:
    return ensure_records_for_date(db, today or datetime.date.today())


__all__ = ["ensure_records_for_date", "ensure_today_records_exist"]
