"""Best-effort reconciliation between the local store and Firestore."""

from __future__ import annotations

import datetime
import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List

from dateutil import parser as date_parser
from google.cloud import firestore
from google.cloud.firestore import FieldFilter
from sqlmodel import Session

from careplan.core.config import (
    REMOTE_RECORDS_COLLECTION,
    REMOTE_ROOT_COLLECTION,
    REMOTE_TEMPLATES_COLLECTION,
    get_sync_lookback_days,
)
from careplan.models import DailyTaskRecord, Priority, SyncState, TaskCategory, TaskTemplate, TimeBlock
from careplan.services.record_store import DailyRecordStore
from careplan.services.template_store import TemplateStore, coerce_enum
from careplan.services.time_parser_service import parse_record_date

logger = logging.getLogger(__name__)


@dataclass
class RemoteDailyRecord:
    """A daily record as pulled from the remote store, still keyed by remote ids."""

    remote_id: str
    template_remote_id: str
    date: datetime.date
    is_completed: bool = False
    completed_at: datetime.datetime | None = None
    local_template_id: int | None = None


@dataclass
class SyncReport:
    pushed_templates: int = 0
    pushed_records: int = 0
    skipped_records: int = 0
    failed: int = 0
    imported_templates: int = 0
    imported_records: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


def _as_local_datetime(value: Any) -> datetime.datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime.datetime):
        if value.tzinfo is not None:
            return value.astimezone().replace(tzinfo=None)
        return value
    return date_parser.parse(str(value))


def template_to_document(template: TaskTemplate, remote_id: str) -> Dict[str, Any]:
    return {
        "id": remote_id,
        "local_template_id": template.id,
        "title": template.title,
        "description": template.description or "",
        "time_block": template.time_block,
        "time": template.time,
        "category": template.category,
        "priority": template.priority,
        "is_active": bool(template.is_active),
        "created_at": template.created_at,
        "updated_at": firestore.SERVER_TIMESTAMP,
    }


def record_to_document(record: DailyTaskRecord, remote_id: str, template_remote_id: str) -> Dict[str, Any]:
    return {
        "id": remote_id,
        "local_record_id": record.id,
        "template_remote_id": template_remote_id,
        "local_template_id": record.template_id,
        "date": record.date.isoformat(),
        "is_completed": bool(record.is_completed),
        "completed_at": record.completed_at,
        "synced_at": firestore.SERVER_TIMESTAMP,
    }


def template_from_document(doc_id: str, data: Dict[str, Any]) -> TaskTemplate:
    """Build a detached template from a remote document. Raises on malformed data."""
    title = str(data["title"]).strip()
    time_text = str(data["time"]).strip()
    if not title or not time_text:
        raise ValueError("title and time are required")
    return TaskTemplate(
        title=title,
        description=str(data.get("description") or ""),
        time_block=coerce_enum(TimeBlock, data.get("time_block"), TimeBlock.MORNING),
        time=time_text,
        category=coerce_enum(TaskCategory, data.get("category"), TaskCategory.GENERAL),
        priority=coerce_enum(Priority, data.get("priority"), Priority.MEDIUM),
        is_active=bool(data.get("is_active", True)),
        created_at=_as_local_datetime(data.get("created_at")) or datetime.datetime.now(),
        remote_id=doc_id,
        sync_state=SyncState.SYNCED.value,
    )


def record_from_document(doc_id: str, data: Dict[str, Any]) -> RemoteDailyRecord:
    template_remote_id = data["template_remote_id"]
    if not template_remote_id:
        raise ValueError("template_remote_id is required")
    local_template_id = data.get("local_template_id")
    return RemoteDailyRecord(
        remote_id=doc_id,
        template_remote_id=str(template_remote_id),
        date=parse_record_date(data["date"]),
        is_completed=bool(data.get("is_completed", False)),
        completed_at=_as_local_datetime(data.get("completed_at")),
        local_template_id=int(local_template_id) if local_template_id is not None else None,
    )


class SyncReconciler:
    """Pushes local entities to and pulls them from ``careplans/{owner}/...``.

    Remote failures are logged and reported through return values; the local
    store stays authoritative and is never rolled back because of them.
    """

    def __init__(self, client, owner_id: str | None):
        self.client = client
        self.owner_id = owner_id

    def _owner_collection(self, name: str):
        return self.client.collection(REMOTE_ROOT_COLLECTION).document(self.owner_id).collection(name)

    def _templates(self):
        return self._owner_collection(REMOTE_TEMPLATES_COLLECTION)

    def _records(self):
        return self._owner_collection(REMOTE_RECORDS_COLLECTION)

    def _has_owner(self, operation: str) -> bool:
        if self.owner_id:
            return True
        logger.warning("No owner configured; skipping %s", operation)
        return False

    def push_template(self, db: Session, template: TaskTemplate) -> str | None:
        """Create or fully replace the template's document. Returns its remote id."""
        if not self._has_owner("template push"):
            return None
        try:
            collection = self._templates()
            # 日本語: 未送信なら自動 ID で新規作成 / English: Never pushed, so let the store assign an id
            doc_ref = collection.document(template.remote_id) if template.remote_id else collection.document()
            doc_ref.set(template_to_document(template, doc_ref.id))
        except Exception:
            logger.exception("Failed to sync template %s to remote", template.id)
            return None

        TemplateStore(db).mark_synced(template, doc_ref.id)
        logger.debug("Template %s synced to remote: %s", template.id, doc_ref.id)
        return doc_ref.id

    def push_record(self, db: Session, record: DailyTaskRecord) -> str | None:
        """Create or replace the record's document; skipped while its template has no remote id."""
        if not self._has_owner("record push"):
            return None
        template = TemplateStore(db).get(record.template_id)
        template_remote_id = template.remote_id if template is not None else None
        if not template_remote_id:
            # 日本語: 親テンプレート送信後の次回パスで再試行 / English: Retried on the pass after the parent is pushed
            logger.warning("Cannot sync record %s: template %s has no remote id", record.id, record.template_id)
            return None
        try:
            collection = self._records()
            doc_ref = collection.document(record.remote_id) if record.remote_id else collection.document()
            doc_ref.set(record_to_document(record, doc_ref.id, template_remote_id))
        except Exception:
            logger.exception("Failed to sync record %s to remote", record.id)
            return None

        DailyRecordStore(db).mark_synced(record, doc_ref.id)
        logger.debug("Record %s synced to remote: %s", record.id, doc_ref.id)
        return doc_ref.id

    def pull_templates(self) -> List[TaskTemplate]:
        """Active template documents in the owner's namespace."""
        if not self._has_owner("template pull"):
            return []
        try:
            documents = list(self._templates().where(filter=FieldFilter("is_active", "==", True)).stream())
        except Exception:
            logger.exception("Failed to fetch templates from remote")
            return []

        templates: List[TaskTemplate] = []
        for document in documents:
            try:
                templates.append(template_from_document(document.id, document.to_dict() or {}))
            except (KeyError, TypeError, ValueError):
                logger.warning("Skipping malformed template document %s", document.id, exc_info=True)
        logger.debug("Fetched %s templates from remote", len(templates))
        return templates

    def pull_records(self, start_date: Any, end_date: Any) -> List[RemoteDailyRecord]:
        """Record documents with ``start_date <= date <= end_date`` (ISO strings compare by date)."""
        if not self._has_owner("record pull"):
            return []
        start = parse_record_date(start_date).isoformat()
        end = parse_record_date(end_date).isoformat()
        try:
            query = (
                self._records()
                .where(filter=FieldFilter("date", ">=", start))
                .where(filter=FieldFilter("date", "<=", end))
            )
            documents = list(query.stream())
        except Exception:
            logger.exception("Failed to fetch records from remote")
            return []

        records: List[RemoteDailyRecord] = []
        for document in documents:
            try:
                records.append(record_from_document(document.id, document.to_dict() or {}))
            except (KeyError, TypeError, ValueError):
                logger.warning("Skipping malformed record document %s", document.id, exc_info=True)
        logger.debug("Fetched %s records from remote", len(records))
        return records

    def delete_template_remote(self, template: TaskTemplate) -> bool:
        """Delete the template document and every record document referencing it."""
        if not self._has_owner("remote delete"):
            return False
        remote_id = template.remote_id
        if not remote_id:
            # 日本語: 一度も送信していないので消すものがない / English: Never pushed, nothing to delete
            return True
        try:
            self._templates().document(remote_id).delete()
            related = self._records().where(filter=FieldFilter("template_remote_id", "==", remote_id)).stream()
            deleted = 0
            for document in related:
                document.reference.delete()
                deleted += 1
        except Exception:
            logger.exception("Failed to delete template %s from remote", remote_id)
            return False
        logger.debug("Deleted template %s and %s records from remote", remote_id, deleted)
        return True

    def import_remote_templates(self, db: Session, templates: Iterable[TaskTemplate]) -> int:
        """Insert templates whose remote id is unknown locally. Known ones are left as they are."""
        store = TemplateStore(db)
        imported = 0
        for template in templates:
            if not template.remote_id or store.find_by_remote_id(template.remote_id) is not None:
                continue
            template.id = None
            template.sync_state = SyncState.SYNCED.value
            store.insert(template)
            imported += 1
        return imported

    def import_remote_records(self, db: Session, records: Iterable[RemoteDailyRecord]) -> int:
        """Insert pulled records that resolve to a local template and are not yet stored."""
        templates = TemplateStore(db)
        store = DailyRecordStore(db)
        imported = 0
        for remote in records:
            if store.find_by_remote_id(remote.remote_id) is not None:
                continue
            template = templates.find_by_remote_id(remote.template_remote_id)
            if template is None:
                logger.debug("Skipping record %s: template %s unknown locally", remote.remote_id, remote.template_remote_id)
                continue
            added = store.insert_ignoring_conflict(
                template.id,
                remote.date,
                is_completed=remote.is_completed,
                completed_at=remote.completed_at,
                remote_id=remote.remote_id,
                sync_state=SyncState.SYNCED.value,
            )
            if added:
                imported += 1
        return imported

    def run_sync_pass(self, db: Session, today: datetime.date | None = None) -> SyncReport:
        """Push everything not yet synced, then pull and import what is missing locally."""
        report = SyncReport()
        if not self._has_owner("sync pass"):
            return report

        today = today or datetime.date.today()
        start = today - datetime.timedelta(days=get_sync_lookback_days() - 1)
        templates = TemplateStore(db)

        for template in templates.list_unsynced():
            if self.push_template(db, template) is None:
                report.failed += 1
            else:
                report.pushed_templates += 1

        for record in DailyRecordStore(db).list_unsynced_in_range(start, today):
            parent = templates.get(record.template_id)
            if parent is None or not parent.remote_id:
                report.skipped_records += 1
                continue
            if self.push_record(db, record) is None:
                report.failed += 1
            else:
                report.pushed_records += 1

        report.imported_templates = self.import_remote_templates(db, self.pull_templates())
        report.imported_records = self.import_remote_records(db, self.pull_records(start, today))
        logger.info("Sync pass finished: %s", report.to_dict())
        return report


__all__ = [
    "RemoteDailyRecord",
    "SyncReconciler",
    "SyncReport",
    "record_from_document",
    "record_to_document",
    "template_from_document",
    "template_to_document",
]
