import datetime

from sqlalchemy import inspect, text
from sqlmodel import Session

from careplan.core.db import build_engine
from careplan.core.migrations import upgrade_to, upgrade_to_head
from careplan.services.materialization_service import ensure_records_for_date


def test_split_migration_copies_legacy_tasks(tmp_path):
    database_url = f"sqlite:///{tmp_path / 'legacy.db'}"
    upgrade_to(database_url, "20241001_000001")

    engine = build_engine(database_url)
    with engine.begin() as connection:
        connection.execute(
            text(
                "INSERT INTO tasks (title, description, time_block, time, category, is_completed, priority) "
                "VALUES ('Take Metformin', 'After food', 'MORNING', '8:00 AM', 'MEDICATION', 1, 'HIGH')"
            )
        )

    upgrade_to_head(database_url)

    tables = set(inspect(engine).get_table_names())
    assert {"tasks", "task_templates", "daily_task_records"}.issubset(tables)
    with engine.connect() as connection:
        row = connection.execute(
            text("SELECT title, description, time, category, priority, is_active, sync_state FROM task_templates")
        ).one()
        legacy_count = connection.execute(text("SELECT COUNT(*) FROM tasks")).scalar_one()

    assert tuple(row) == ("Take Metformin", "After food", "8:00 AM", "MEDICATION", "HIGH", 1, "local_only")
    assert legacy_count == 1

    with Session(engine) as db:
        assert ensure_records_for_date(db, datetime.date(2024, 10, 6)) is True
        assert ensure_records_for_date(db, datetime.date(2024, 10, 6)) is True
    with engine.connect() as connection:
        assert connection.execute(text("SELECT COUNT(*) FROM daily_task_records")).scalar_one() == 1
    engine.dispose()


def test_fresh_database_upgrades_to_head(tmp_path):
    database_url = f"sqlite:///{tmp_path / 'fresh.db'}"
    upgrade_to_head(database_url)

    engine = build_engine(database_url)
    indexes = {index["name"]: index for index in inspect(engine).get_indexes("daily_task_records")}
    assert indexes["ix_daily_task_records_template_id_date"]["unique"]
    engine.dispose()
