"""Persistent CRUD for per-day task records."""

from __future__ import annotations

import datetime
import logging
from typing import Any, List

from sqlalchemy import case, func, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlmodel import Session, select

from careplan.models import DailyTaskRecord, SyncState
from careplan.services.time_parser_service import parse_record_date

logger = logging.getLogger(__name__)

RECORD_UNIQUE_KEY = ["template_id", "date"]


def dialect_insert(db: Session):
    """``insert`` construct supporting ``ON CONFLICT`` for the bound dialect."""
    dialect_name = db.get_bind().dialect.name
    if dialect_name == "postgresql":
        return postgresql.insert
    if dialect_name == "sqlite":
        return sqlite.insert
    raise RuntimeError(f"Unsupported database dialect: {dialect_name}")


def _state_after_local_write_sql():
    # 日本語: 既存行の remote_id を見て local_only / stale を決める / English: Pick local_only or stale from the existing row's remote_id
    table = DailyTaskRecord.__table__
    return case(
        (table.c.remote_id.is_(None), SyncState.LOCAL_ONLY.value),
        else_=SyncState.STALE.value,
    )


class DailyRecordStore:
    """Daily record table access; ``(template_id, date)`` uniqueness is enforced by the index."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, template_id: int, date_value: Any) -> DailyTaskRecord | None:
        date_obj = parse_record_date(date_value)
        statement = select(DailyTaskRecord).where(
            DailyTaskRecord.template_id == template_id,
            DailyTaskRecord.date == date_obj,
        )
        return self.db.exec(statement).first()

    def get_by_id(self, record_id: int) -> DailyTaskRecord | None:
        return self.db.get(DailyTaskRecord, record_id)

    def find_by_remote_id(self, remote_id: str) -> DailyTaskRecord | None:
        return self.db.exec(select(DailyTaskRecord).where(DailyTaskRecord.remote_id == remote_id)).first()

    def list_by_date(self, date_value: Any) -> List[DailyTaskRecord]:
        date_obj = parse_record_date(date_value)
        statement = select(DailyTaskRecord).where(DailyTaskRecord.date == date_obj).order_by(DailyTaskRecord.template_id)
        return list(self.db.exec(statement).all())

    def list_by_date_and_status(self, date_value: Any, is_completed: bool) -> List[DailyTaskRecord]:
        date_obj = parse_record_date(date_value)
        statement = select(DailyTaskRecord).where(
            DailyTaskRecord.date == date_obj,
            DailyTaskRecord.is_completed == is_completed,
        )
        return list(self.db.exec(statement.order_by(DailyTaskRecord.template_id)).all())

    def list_by_template(self, template_id: int) -> List[DailyTaskRecord]:
        statement = (
            select(DailyTaskRecord)
            .where(DailyTaskRecord.template_id == template_id)
            .order_by(DailyTaskRecord.date.desc())
        )
        return list(self.db.exec(statement).all())

    def list_by_template_in_range(self, template_id: int, start_date: Any, end_date: Any) -> List[DailyTaskRecord]:
        statement = (
            select(DailyTaskRecord)
            .where(
                DailyTaskRecord.template_id == template_id,
                DailyTaskRecord.date >= parse_record_date(start_date),
                DailyTaskRecord.date <= parse_record_date(end_date),
            )
            .order_by(DailyTaskRecord.date)
        )
        return list(self.db.exec(statement).all())

    def list_unsynced_in_range(self, start_date: Any, end_date: Any) -> List[DailyTaskRecord]:
        statement = (
            select(DailyTaskRecord)
            .where(
                DailyTaskRecord.sync_state != SyncState.SYNCED.value,
                DailyTaskRecord.date >= parse_record_date(start_date),
                DailyTaskRecord.date <= parse_record_date(end_date),
            )
            .order_by(DailyTaskRecord.date, DailyTaskRecord.template_id)
        )
        return list(self.db.exec(statement).all())

    def insert_ignoring_conflict(
        self,
        template_id: int,
        date_value: Any,
        *,
        is_completed: bool = False,
        completed_at: datetime.datetime | None = None,
        remote_id: str | None = None,
        sync_state: str | None = None,
    ) -> bool:
        """Insert a record unless ``(template_id, date)`` already exists. Returns True if a row was added."""
        insert = dialect_insert(self.db)
        statement = (
            insert(DailyTaskRecord)
            .values(
                template_id=template_id,
                date=parse_record_date(date_value),
                is_completed=is_completed,
                completed_at=completed_at,
                remote_id=remote_id,
                sync_state=sync_state or (SyncState.SYNCED.value if remote_id else SyncState.LOCAL_ONLY.value),
            )
            .on_conflict_do_nothing(index_elements=RECORD_UNIQUE_KEY)
        )
        result = self.db.exec(statement)
        self.db.commit()
        return bool(result.rowcount)

    def upsert_completion(
        self,
        template_id: int,
        date_value: Any,
        is_completed: bool,
        completed_at: datetime.datetime | None,
    ) -> DailyTaskRecord | None:
        """Insert the record in the given state; on a unique conflict, replace its completion fields."""
        insert = dialect_insert(self.db)
        date_obj = parse_record_date(date_value)
        statement = insert(DailyTaskRecord).values(
            template_id=template_id,
            date=date_obj,
            is_completed=is_completed,
            completed_at=completed_at,
            sync_state=SyncState.LOCAL_ONLY.value,
        )
        statement = statement.on_conflict_do_update(
            index_elements=RECORD_UNIQUE_KEY,
            set_={
                "is_completed": statement.excluded.is_completed,
                "completed_at": statement.excluded.completed_at,
                "sync_state": _state_after_local_write_sql(),
            },
        )
        self.db.exec(statement)
        self.db.commit()
        return self.get(template_id, date_obj)

    def update_completion(
        self,
        template_id: int,
        date_value: Any,
        is_completed: bool,
        completed_at: datetime.datetime | None,
    ) -> int:
        statement = (
            update(DailyTaskRecord)
            .where(
                DailyTaskRecord.template_id == template_id,
                DailyTaskRecord.date == parse_record_date(date_value),
            )
            .values(
                is_completed=is_completed,
                completed_at=completed_at,
                sync_state=_state_after_local_write_sql(),
            )
        )
        result = self.db.exec(statement)
        self.db.commit()
        return int(result.rowcount or 0)

    def reset_for_date(self, date_value: Any) -> int:
        """Zero completion for every record of a date; rows are kept."""
        statement = (
            update(DailyTaskRecord)
            .where(DailyTaskRecord.date == parse_record_date(date_value))
            .values(is_completed=False, completed_at=None, sync_state=_state_after_local_write_sql())
        )
        result = self.db.exec(statement)
        self.db.commit()
        return int(result.rowcount or 0)

    def count_by_date(self, date_value: Any, is_completed: bool | None = None) -> int:
        statement = (
            select(func.count())
            .select_from(DailyTaskRecord)
            .where(DailyTaskRecord.date == parse_record_date(date_value))
        )
        if is_completed is not None:
            statement = statement.where(DailyTaskRecord.is_completed == is_completed)
        return int(self.db.exec(statement).one())

    def mark_synced(self, record: DailyTaskRecord, remote_id: str) -> DailyTaskRecord:
        if remote_id:
            record.remote_id = remote_id
        record.sync_state = SyncState.SYNCED.value
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)
        return record
