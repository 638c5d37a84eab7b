import datetime

from sqlalchemy.exc import SQLAlchemyError

from careplan.services import materialization_service
from careplan.services.materialization_service import ensure_records_for_date, ensure_today_records_exist
from careplan.services.record_store import DailyRecordStore
from careplan.services.template_store import TemplateStore

DAY = datetime.date(2024, 10, 6)


def _seed_templates(db):
    store = TemplateStore(db)
    first = store.create(title="Take Metformin", time="8:00 AM", category="MEDICATION")
    second = store.create(title="Evening walk", time="6:30 PM", category="EXERCISE")
    inactive = store.create(title="Old habit", time="9:00 PM", is_active=False)
    return first, second, inactive


def test_materialization_creates_one_pending_record_per_active_template(db):
    first, second, inactive = _seed_templates(db)

    assert ensure_records_for_date(db, DAY) is True

    records = DailyRecordStore(db).list_by_date(DAY)
    assert sorted(r.template_id for r in records) == sorted([first.id, second.id])
    assert all(r.is_completed is False and r.completed_at is None for r in records)
    assert inactive.id not in {r.template_id for r in records}


def test_materialization_is_idempotent(db):
    _seed_templates(db)

    assert ensure_records_for_date(db, DAY) is True
    assert ensure_records_for_date(db, "2024-10-06") is True

    assert DailyRecordStore(db).count_by_date(DAY) == 2


def test_materialization_keeps_existing_completion(db):
    first, _, _ = _seed_templates(db)
    records = DailyRecordStore(db)
    records.upsert_completion(first.id, DAY, True, datetime.datetime(2024, 10, 6, 8, 5))

    ensure_records_for_date(db, DAY)

    assert records.get(first.id, DAY).is_completed is True
    assert records.count_by_date(DAY) == 2


def test_materialization_without_active_templates_is_trivial_success(db):
    assert ensure_records_for_date(db, DAY) is True
    assert DailyRecordStore(db).count_by_date(DAY) == 0


def test_materialization_falls_back_to_per_template_inserts(db, monkeypatch):
    first, second, _ = _seed_templates(db)

    def _broken_bulk(_db, _date):
        raise SQLAlchemyError("bulk insert failed")

    monkeypatch.setattr(materialization_service, "_insert_missing_records_bulk", _broken_bulk)

    assert ensure_records_for_date(db, DAY) is True
    assert {r.template_id for r in DailyRecordStore(db).list_by_date(DAY)} == {first.id, second.id}


def test_partial_fallback_failure_is_logged_and_recovered_on_retry(db, monkeypatch):
    first, second, _ = _seed_templates(db)
    original_insert = DailyRecordStore.insert_ignoring_conflict

    def _broken_bulk(_db, _date):
        raise SQLAlchemyError("bulk insert failed")

    def _flaky_insert(self, template_id, date_value, **kwargs):
        if template_id == first.id:
            raise SQLAlchemyError("row insert failed")
        return original_insert(self, template_id, date_value, **kwargs)

    monkeypatch.setattr(materialization_service, "_insert_missing_records_bulk", _broken_bulk)
    monkeypatch.setattr(DailyRecordStore, "insert_ignoring_conflict", _flaky_insert)

    assert ensure_records_for_date(db, DAY) is False
    assert [r.template_id for r in DailyRecordStore(db).list_by_date(DAY)] == [second.id]

    monkeypatch.undo()

    assert ensure_records_for_date(db, DAY) is True
    assert {r.template_id for r in DailyRecordStore(db).list_by_date(DAY)} == {first.id, second.id}


def test_deactivated_template_is_skipped_but_history_is_kept(db):
    first, second, _ = _seed_templates(db)
    ensure_records_for_date(db, DAY)

    TemplateStore(db).deactivate(second.id)
    next_day = DAY + datetime.timedelta(days=1)
    ensure_records_for_date(db, next_day)

    records = DailyRecordStore(db)
    assert [r.template_id for r in records.list_by_date(next_day)] == [first.id]
    assert records.get(second.id, DAY) is not None


def test_ensure_today_records_exist_uses_given_day(db):
    _seed_templates(db)

    assert ensure_today_records_exist(db, today=DAY) is True
    assert DailyRecordStore(db).count_by_date(DAY) == 2
