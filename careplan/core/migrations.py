"""Alembic migration helpers."""

from __future__ import annotations

from alembic import command
from alembic.config import Config

from careplan.core.config import BASE_DIR


def build_alembic_config(database_url: str) -> Config:
    config = Config(str(BASE_DIR / "alembic.ini"))
    config.set_main_option("script_location", str(BASE_DIR / "migrations"))
    config.set_main_option("sqlalchemy.url", database_url)
    return config


def upgrade_to_head(database_url: str) -> None:
    """Apply migrations to the latest revision."""
    upgrade_to(database_url, "head")


def upgrade_to(database_url: str, revision: str) -> None:
    command.upgrade(build_alembic_config(database_url), revision)
