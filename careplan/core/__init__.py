"""Core package exports."""

from .config import (
    BASE_DIR,
    DATABASE_URL,
    background_jobs_enabled,
    get_exact_alarm_grace_seconds,
    get_exact_alarm_permission,
    get_owner_id,
    get_sync_interval_minutes,
    get_sync_lookback_days,
)
from .db import Session, build_engine, create_session, engine, get_db, get_session_factory, init_db

__all__ = [
    "BASE_DIR",
    "DATABASE_URL",
    "background_jobs_enabled",
    "get_exact_alarm_grace_seconds",
    "get_exact_alarm_permission",
    "get_owner_id",
    "get_sync_interval_minutes",
    "get_sync_lookback_days",
    "engine",
    "Session",
    "build_engine",
    "create_session",
    "get_db",
    "get_session_factory",
    "init_db",
]
