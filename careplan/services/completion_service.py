"""Completion toggling for daily task records."""

from __future__ import annotations

import datetime
import logging
from typing import Any

from sqlmodel import Session

from careplan.models import DailyTaskRecord
from careplan.services.record_store import DailyRecordStore
from careplan.services.time_parser_service import parse_record_date

logger = logging.getLogger(__name__)


def set_completion(
    db: Session,
    template_id: int,
    date_value: Any,
    completed: bool,
    *,
    now: datetime.datetime | None = None,
) -> DailyTaskRecord | None:
    """Set a template's completion for a date.

    A missing record is created directly in the completed state; uncompleting a
    missing record does nothing and returns None. Storage errors propagate.
    """
    date_obj = parse_record_date(date_value)
    records = DailyRecordStore(db)
    completed_at = (now or datetime.datetime.now()) if completed else None
    logger.debug("Setting completion for template %s on %s: %s", template_id, date_obj, completed)

    existing = records.get(template_id, date_obj)
    if existing is not None:
        records.update_completion(template_id, date_obj, completed, completed_at)
        return records.get(template_id, date_obj)

    if not completed:
        return None

    # 日本語: 一括生成より先に完了された場合はその場で作る / English: Completed before materialization ran, so create it now
    return records.upsert_completion(template_id, date_obj, True, completed_at)


def complete_task(db: Session, template_id: int, date_value: Any) -> DailyTaskRecord | None:
    return set_completion(db, template_id, date_value, True)


def uncomplete_task(db: Session, template_id: int, date_value: Any) -> DailyTaskRecord | None:
    return set_completion(db, template_id, date_value, False)


__all__ = ["set_completion", "complete_task", "uncomplete_task"]
