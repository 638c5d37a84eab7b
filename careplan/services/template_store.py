"""Persistent CRUD for task templates."""

from __future__ import annotations

import logging
from typing import Any, List

from sqlalchemy import func
from sqlmodel import Session, select

from careplan.models import (
    Priority,
    SyncState,
    TaskCategory,
    TaskTemplate,
    TimeBlock,
    state_after_local_write,
)
from careplan.services.time_parser_service import derive_time_block, parse_time_of_day

logger = logging.getLogger(__name__)


def coerce_enum(enum_cls, value: Any, default) -> str:
    if value is None or value == "":
        return default.value
    if isinstance(value, enum_cls):
        return value.value
    try:
        return enum_cls(str(value).strip().upper()).value
    except ValueError as exc:
        raise ValueError(f"Invalid {enum_cls.__name__}: {value!r}") from exc


def _require_clock_time(value: Any) -> None:
    # 日本語: 保存するのは 12 時間表記のみ / English: Only 12-hour "h:mm AM/PM" strings are stored
    if parse_time_of_day(str(value)) is None:
        raise ValueError("time must be h:mm AM/PM")


class TemplateStore:
    """Task template table access. Each write is committed immediately."""

    def __init__(self, db: Session):
        self.db = db

    def list_active(self) -> List[TaskTemplate]:
        statement = select(TaskTemplate).where(TaskTemplate.is_active == True).order_by(TaskTemplate.id.desc())  # noqa: E712
        return list(self.db.exec(statement).all())

    def list_all(self) -> List[TaskTemplate]:
        return list(self.db.exec(select(TaskTemplate).order_by(TaskTemplate.id.desc())).all())

    def list_active_by(
        self,
        *,
        category: TaskCategory | str | None = None,
        time_block: TimeBlock | str | None = None,
        priority: Priority | str | None = None,
    ) -> List[TaskTemplate]:
        statement = select(TaskTemplate).where(TaskTemplate.is_active == True)  # noqa: E712
        if category is not None:
            statement = statement.where(TaskTemplate.category == coerce_enum(TaskCategory, category, TaskCategory.GENERAL))
        if time_block is not None:
            statement = statement.where(TaskTemplate.time_block == coerce_enum(TimeBlock, time_block, TimeBlock.MORNING))
        if priority is not None:
            statement = statement.where(TaskTemplate.priority == coerce_enum(Priority, priority, Priority.MEDIUM))
        return list(self.db.exec(statement.order_by(TaskTemplate.id.desc())).all())

    def get(self, template_id: int) -> TaskTemplate | None:
        return self.db.get(TaskTemplate, template_id)

    def find_by_remote_id(self, remote_id: str) -> TaskTemplate | None:
        return self.db.exec(select(TaskTemplate).where(TaskTemplate.remote_id == remote_id)).first()

    def count_active(self) -> int:
        statement = select(func.count()).select_from(TaskTemplate).where(TaskTemplate.is_active == True)  # noqa: E712
        return int(self.db.exec(statement).one())

    def create(
        self,
        *,
        title: str,
        time: str,
        description: str = "",
        category: TaskCategory | str | None = None,
        priority: Priority | str | None = None,
        time_block: TimeBlock | str | None = None,
        is_active: bool = True,
    ) -> TaskTemplate:
        if not isinstance(title, str) or not title.strip():
            raise ValueError("title is required")
        if not isinstance(time, str) or not time.strip():
            raise ValueError("time is required")
        _require_clock_time(time)

        block = coerce_enum(TimeBlock, time_block, derive_time_block(time))
        template = TaskTemplate(
            title=title.strip(),
            description=(description or "").strip(),
            time=time.strip(),
            time_block=block,
            category=coerce_enum(TaskCategory, category, TaskCategory.GENERAL),
            priority=coerce_enum(Priority, priority, Priority.MEDIUM),
            is_active=bool(is_active),
        )
        return self.insert(template)

    def insert(self, template: TaskTemplate) -> TaskTemplate:
        logger.debug("Inserting task template: %s", template.title)
        self.db.add(template)
        self.db.commit()
        self.db.refresh(template)
        return template

    def update(self, template: TaskTemplate, **changes: Any) -> TaskTemplate:
        if "time" in changes and changes["time"]:
            _require_clock_time(changes["time"])
        if "title" in changes and changes["title"] is not None:
            title = str(changes["title"]).strip()
            if not title:
                raise ValueError("title is required")
            template.title = title
        if "description" in changes and changes["description"] is not None:
            template.description = str(changes["description"]).strip()
        if "time" in changes and changes["time"]:
            template.time = str(changes["time"]).strip()
            if not changes.get("time_block"):
                template.time_block = derive_time_block(template.time).value
        if changes.get("time_block"):
            template.time_block = coerce_enum(TimeBlock, changes["time_block"], TimeBlock.MORNING)
        if changes.get("category"):
            template.category = coerce_enum(TaskCategory, changes["category"], TaskCategory.GENERAL)
        if changes.get("priority"):
            template.priority = coerce_enum(Priority, changes["priority"], Priority.MEDIUM)
        if "is_active" in changes and changes["is_active"] is not None:
            template.is_active = bool(changes["is_active"])

        template.sync_state = state_after_local_write(template.remote_id)
        logger.debug("Updating task template: %s - %s", template.id, template.title)
        self.db.add(template)
        self.db.commit()
        self.db.refresh(template)
        return template

    def set_active(self, template_id: int, is_active: bool) -> TaskTemplate | None:
        template = self.get(template_id)
        if template is None:
            return None
        logger.debug("%s task template: %s", "Activating" if is_active else "Deactivating", template_id)
        return self.update(template, is_active=is_active)

    def deactivate(self, template_id: int) -> TaskTemplate | None:
        return self.set_active(template_id, False)

    def activate(self, template_id: int) -> TaskTemplate | None:
        return self.set_active(template_id, True)

    def delete(self, template_id: int) -> TaskTemplate | None:
        """Delete a template; its daily records go with it via ON DELETE CASCADE."""
        template = self.get(template_id)
        if template is None:
            return None
        # 日本語: 別セッションで更新された remote_id を読み直す / English: Reload remote_id possibly written by another session
        self.db.refresh(template)
        logger.debug("Deleting task template: %s - %s", template.id, template.title)
        # 日本語: リモート削除に使うため削除前の値を退避 / English: Keep a detached copy for the remote delete
        snapshot = TaskTemplate(**template.model_dump())
        self.db.delete(template)
        self.db.commit()
        # 日本語: セッション内に残った子レコードの古いキャッシュを捨てる / English: Drop stale child rows cached in the session
        self.db.expire_all()
        return snapshot

    def mark_synced(self, template: TaskTemplate, remote_id: str) -> TaskTemplate:
        # 日本語: remote_id は一度設定したら消さない / English: remote_id is never cleared once set
        if remote_id:
            template.remote_id = remote_id
        template.sync_state = SyncState.SYNCED.value
        self.db.add(template)
        self.db.commit()
        self.db.refresh(template)
        return template

    def list_unsynced(self) -> List[TaskTemplate]:
        statement = select(TaskTemplate).where(TaskTemplate.sync_state != SyncState.SYNCED.value)
        return list(self.db.exec(statement.order_by(TaskTemplate.id)).all())
