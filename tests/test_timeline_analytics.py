import datetime
from types import SimpleNamespace

from careplan.services.completion_service import complete_task
from careplan.services.materialization_service import ensure_records_for_date
from careplan.services.record_store import DailyRecordStore
from careplan.services.template_store import TemplateStore
from careplan.services.timeline_service import (
    build_analytics_overview,
    calculate_current_streak,
    get_analytics_for_template,
    get_counts_for_date,
    get_tasks_for_date,
)

DAY = datetime.date(2024, 10, 6)


def _seed(db):
    store = TemplateStore(db)
    night = store.create(title="Sleep by 10", time="10:00 PM", category="LIFESTYLE")
    late_morning = store.create(title="Drink water", time="11:00 AM", category="DIET")
    early_morning = store.create(title="Take Metformin", time="7:30 AM", category="MEDICATION", priority="HIGH")
    return night, late_morning, early_morning


def test_tasks_for_date_are_ordered_by_time_block_then_time(db):
    night, late_morning, early_morning = _seed(db)
    ensure_records_for_date(db, DAY)

    tasks = get_tasks_for_date(db, DAY)

    assert [task.template.id for task in tasks] == [early_morning.id, late_morning.id, night.id]
    assert all(task.record is not None for task in tasks)


def test_tasks_for_date_filters(db):
    night, late_morning, early_morning = _seed(db)
    complete_task(db, early_morning.id, DAY)

    completed = get_tasks_for_date(db, DAY, is_completed=True)
    pending = get_tasks_for_date(db, DAY, is_completed=False)
    high = get_tasks_for_date(db, DAY, priority="HIGH")

    assert [task.template.id for task in completed] == [early_morning.id]
    assert {task.template.id for task in pending} == {night.id, late_morning.id}
    assert [task.template.id for task in high] == [early_morning.id]
    assert completed[0].to_dict()["is_completed"] is True


def test_counts_for_date(db):
    _, late_morning, early_morning = _seed(db)
    ensure_records_for_date(db, DAY)
    complete_task(db, early_morning.id, DAY)

    counts = get_counts_for_date(db, DAY)

    assert (counts.total, counts.completed, counts.pending) == (3, 1, 2)
    assert counts.completion_rate == 33


def test_analytics_never_returns_records_before_creation(db):
    template = TemplateStore(db).create(title="Take Metformin", time="8:00 AM")
    created = template.created_at.date()
    records = DailyRecordStore(db)
    records.insert_ignoring_conflict(template.id, created - datetime.timedelta(days=3), is_completed=True)
    records.insert_ignoring_conflict(template.id, created)
    records.insert_ignoring_conflict(template.id, created + datetime.timedelta(days=1), is_completed=True)

    history = get_analytics_for_template(db, template.id)

    assert [record.date for record in history] == [created + datetime.timedelta(days=1), created]
    assert get_analytics_for_template(db, 999) is None


def test_streak_ignores_unfinished_today():
    today = DAY
    records = [
        SimpleNamespace(date=today, is_completed=False),
        SimpleNamespace(date=today - datetime.timedelta(days=1), is_completed=True),
        SimpleNamespace(date=today - datetime.timedelta(days=2), is_completed=True),
        SimpleNamespace(date=today - datetime.timedelta(days=2), is_completed=True),
        SimpleNamespace(date=today - datetime.timedelta(days=3), is_completed=False),
        SimpleNamespace(date=today - datetime.timedelta(days=4), is_completed=True),
        SimpleNamespace(date=today + datetime.timedelta(days=1), is_completed=True),
    ]

    assert calculate_current_streak(records, today) == 2
    assert calculate_current_streak([], today) == 0


def test_analytics_overview(db):
    store = TemplateStore(db)
    pills = store.create(title="Take Metformin", time="8:00 AM", category="MEDICATION")
    walk = store.create(title="Evening walk", time="6:00 PM", category="EXERCISE")
    today = pills.created_at.date()
    complete_task(db, pills.id, today)
    complete_task(db, walk.id, today)
    ensure_records_for_date(db, today + datetime.timedelta(days=1))

    overview = build_analytics_overview(db, today=today + datetime.timedelta(days=1))

    assert overview["total_tasks"] == 4
    assert overview["completed_tasks"] == 2
    assert overview["overall_completion_rate"] == 50
    assert overview["current_streak"] == 1
    assert overview["category_stats"] == {
        "MEDICATION": {"completed": 1, "total": 2},
        "EXERCISE": {"completed": 1, "total": 2},
    }
