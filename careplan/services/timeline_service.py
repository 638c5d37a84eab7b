"""Day timeline views and completion analytics."""

from __future__ import annotations

import datetime
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Dict, List

from sqlmodel import Session, select

from careplan.models import DailyTaskRecord, TaskTemplate, TimeBlock
from careplan.services.record_store import DailyRecordStore
from careplan.services.template_store import TemplateStore
from careplan.services.time_parser_service import parse_record_date, time_sort_key

logger = logging.getLogger(__name__)

_TIME_BLOCK_ORDER = {block.value: index for index, block in enumerate(TimeBlock)}


@dataclass
class DayTask:
    template: TaskTemplate
    record: DailyTaskRecord | None

    @property
    def is_completed(self) -> bool:
        return bool(self.record is not None and self.record.is_completed)

    def to_dict(self) -> Dict[str, Any]:
        template = self.template
        return {
            "template_id": template.id,
            "title": template.title,
            "description": template.description,
            "time_block": template.time_block,
            "time": template.time,
            "category": template.category,
            "priority": template.priority,
            "record_id": self.record.id if self.record is not None else None,
            "is_completed": self.is_completed,
            "completed_at": (
                self.record.completed_at.isoformat()
                if self.record is not None and self.record.completed_at
                else None
            ),
        }


@dataclass
class DayCounts:
    total: int
    completed: int

    @property
    def pending(self) -> int:
        return self.total - self.completed

    @property
    def completion_rate(self) -> int:
        return completion_rate(self.completed, self.total)


def completion_rate(completed: int, total: int) -> int:
    return (completed * 100) // total if total > 0 else 0


def _day_sort_key(task: DayTask):
    template = task.template
    return (_TIME_BLOCK_ORDER.get(template.time_block, len(_TIME_BLOCK_ORDER)), time_sort_key(template.time), template.id or 0)


def get_tasks_for_date(
    db: Session,
    date_value: Any,
    *,
    category: str | None = None,
    time_block: str | None = None,
    priority: str | None = None,
    is_completed: bool | None = None,
) -> List[DayTask]:
    """Active templates paired with their record for the date, in timeline order."""
    date_obj = parse_record_date(date_value)
    templates = TemplateStore(db).list_active_by(category=category, time_block=time_block, priority=priority)
    records = {record.template_id: record for record in DailyRecordStore(db).list_by_date(date_obj)}

    tasks = [DayTask(template=template, record=records.get(template.id)) for template in templates]
    if is_completed is not None:
        tasks = [task for task in tasks if task.is_completed == is_completed]
    return sorted(tasks, key=_day_sort_key)


def get_counts_for_date(db: Session, date_value: Any) -> DayCounts:
    records = DailyRecordStore(db)
    return DayCounts(
        total=records.count_by_date(date_value),
        completed=records.count_by_date(date_value, is_completed=True),
    )


def reset_for_date(db: Session, date_value: Any) -> int:
    reset = DailyRecordStore(db).reset_for_date(date_value)
    logger.debug("Reset %s records for %s", reset, date_value)
    return reset


def get_analytics_for_template(db: Session, template_id: int) -> List[DailyTaskRecord] | None:
    """Records of a template dated on or after its creation date, newest first."""
    template = TemplateStore(db).get(template_id)
    if template is None:
        return None
    statement = (
        select(DailyTaskRecord)
        .where(
            DailyTaskRecord.template_id == template_id,
            DailyTaskRecord.date >= template.created_at.date(),
        )
        .order_by(DailyTaskRecord.date.desc())
    )
    return list(db.exec(statement).all())


def calculate_current_streak(records: List[DailyTaskRecord], today: datetime.date) -> int:
    """Consecutive most recent days on which every record was completed.

    An unfinished ``today`` does not break the streak.
    """
    by_date: Dict[datetime.date, List[DailyTaskRecord]] = defaultdict(list)
    for record in records:
        by_date[record.date].append(record)

    streak = 0
    for day in sorted(by_date, reverse=True):
        if day > today:
            continue
        if all(record.is_completed for record in by_date[day]):
            streak += 1
        elif day != today:
            break
    return streak


def build_analytics_overview(db: Session, today: datetime.date | None = None) -> Dict[str, Any]:
    today = today or datetime.date.today()
    total = 0
    completed = 0
    category_stats: Dict[str, Dict[str, int]] = {}
    per_template: List[Dict[str, Any]] = []
    all_records: List[DailyTaskRecord] = []

    for template in TemplateStore(db).list_active():
        records = get_analytics_for_template(db, template.id) or []
        template_completed = sum(1 for record in records if record.is_completed)
        total += len(records)
        completed += template_completed
        all_records.extend(records)

        stats = category_stats.setdefault(template.category, {"completed": 0, "total": 0})
        stats["completed"] += template_completed
        stats["total"] += len(records)
        per_template.append(
            {
                "template_id": template.id,
                "title": template.title,
                "completed": template_completed,
                "total": len(records),
                "completion_rate": completion_rate(template_completed, len(records)),
            }
        )

    streak = calculate_current_streak(all_records, today)
    logger.debug("Analytics overview: %s/%s completed, streak %s days", completed, total, streak)
    return {
        "total_tasks": total,
        "completed_tasks": completed,
        "overall_completion_rate": completion_rate(completed, total),
        "current_streak": streak,
        "category_stats": category_stats,
        "templates": per_template,
    }


__all__ = [
    "DayCounts",
    "DayTask",
    "build_analytics_overview",
    "calculate_current_streak",
    "completion_rate",
    "get_analytics_for_template",
    "get_counts_for_date",
    "get_tasks_for_date",
    "reset_for_date",
]
