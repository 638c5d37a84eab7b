"""Care plan task SQLModel models."""

from __future__ import annotations

import datetime
import enum

from sqlalchemy import Column, ForeignKey, Index, Integer, Text
from sqlmodel import Field, SQLModel


class TimeBlock(str, enum.Enum):
    MORNING = "MORNING"
    AFTERNOON = "AFTERNOON"
    EVENING = "EVENING"
    NIGHT = "NIGHT"


class TaskCategory(str, enum.Enum):
    MEDICATION = "MEDICATION"
    EXERCISE = "EXERCISE"
    DIET = "DIET"
    MONITORING = "MONITORING"
    LIFESTYLE = "LIFESTYLE"
    GENERAL = "GENERAL"


class Priority(str, enum.Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class SyncState(str, enum.Enum):
    """Per-entity replication state against the remote document store."""

    LOCAL_ONLY = "local_only"
    SYNCED = "synced"
    STALE = "stale"


def state_after_local_write(remote_id: str | None) -> str:
    # 日本語: 一度も push されていなければ local_only、それ以外は stale / English: Never pushed -> local_only, otherwise stale
    return SyncState.STALE.value if remote_id else SyncState.LOCAL_ONLY.value


# 日本語: 毎日繰り返すケアタスクの定義 / English: Recurring care task definition
class TaskTemplate(SQLModel, table=True):
    __tablename__ = "task_templates"

    id: int | None = Field(default=None, primary_key=True)
    title: str = Field(max_length=200)
    description: str = Field(default="", sa_column=Column(Text, nullable=False, default=""))
    # 日本語: 表示用のグループ。スケジュールには使わない / English: Display grouping only, never used for scheduling
    time_block: str = Field(default=TimeBlock.MORNING.value, max_length=20)
    # 日本語: 12時間表記 "8:00 AM" / English: 12-hour wall-clock time "8:00 AM"
    time: str = Field(max_length=20)
    category: str = Field(default=TaskCategory.GENERAL.value, max_length=20)
    priority: str = Field(default=Priority.MEDIUM.value, max_length=10)
    is_active: bool = Field(default=True)
    created_at: datetime.datetime = Field(default_factory=datetime.datetime.now)
    remote_id: str | None = Field(default=None, max_length=128)
    sync_state: str = Field(default=SyncState.LOCAL_ONLY.value, max_length=20)


# 日本語: テンプレート1件の1日分の完了状態 / English: One calendar day's completion state for one template
class DailyTaskRecord(SQLModel, table=True):
    __tablename__ = "daily_task_records"
    __table_args__ = (
        Index("ix_daily_task_records_template_id_date", "template_id", "date", unique=True),
    )

    id: int | None = Field(default=None, primary_key=True)
    template_id: int = Field(
        sa_column=Column(
            Integer,
            ForeignKey("task_templates.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )
    )
    date: datetime.date = Field(index=True)
    is_completed: bool = Field(default=False)
    completed_at: datetime.datetime | None = Field(default=None)
    remote_id: str | None = Field(default=None, max_length=128)
    sync_state: str = Field(default=SyncState.LOCAL_ONLY.value, max_length=20)


# 日本語: 旧バージョンの単一テーブル (既存インストールの移行用) / English: Legacy single-table schema kept for existing installs
class LegacyTask(SQLModel, table=True):
    __tablename__ = "tasks"

    id: int | None = Field(default=None, primary_key=True)
    title: str = Field(max_length=200)
    description: str = Field(default="", sa_column=Column(Text, nullable=False, default=""))
    time_block: str = Field(max_length=20)
    time: str = Field(max_length=20)
    category: str = Field(max_length=20)
    is_completed: bool = Field(default=False)
    priority: str = Field(default=Priority.MEDIUM.value, max_length=10)
