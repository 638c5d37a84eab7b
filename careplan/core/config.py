"""Core configuration for the care plan engine."""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# 日本語: ルート直下の secrets.env を起動時に読み込む / English: Load root-level secrets.env on startup
load_dotenv("secrets.env")

# 日本語: プロジェクトルート基準パス / English: Project root directory
BASE_DIR = Path(__file__).resolve().parents[2]

# 日本語: ローカルストアの既定は SQLite / English: Local store defaults to SQLite
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///careplan.db")

# 日本語: リモート同期の所有者 (未設定なら同期無効) / English: Remote sync owner (unset disables sync)
CAREPLAN_OWNER_ID = os.getenv("CAREPLAN_OWNER_ID") or None
# 日本語: Firestore プロジェクト ID / English: Firestore project id
FIRESTORE_PROJECT = os.getenv("FIRESTORE_PROJECT") or None

# 日本語: 正確なアラームの権限状態 / English: Exact-alarm authorization state
EXACT_ALARM_PERMISSION = os.getenv("EXACT_ALARM_PERMISSION", "granted")

# 日本語: リモートのコレクション名 / English: Remote collection names
REMOTE_ROOT_COLLECTION = "careplans"
REMOTE_TEMPLATES_COLLECTION = "task_templates"
REMOTE_RECORDS_COLLECTION = "daily_records"


def _clamped_int_from_env(name: str, default: int, lower: int, upper: int) -> int:
    raw_value = os.getenv(name, str(default))
    try:
        parsed = int(raw_value)
    except (TypeError, ValueError):
        parsed = default
    return max(lower, min(parsed, upper))


def get_owner_id() -> str | None:
    """Owner namespace for remote documents, preferring runtime overrides."""
    return os.getenv("CAREPLAN_OWNER_ID") or CAREPLAN_OWNER_ID


def get_exact_alarm_permission() -> str:
    return (os.getenv("EXACT_ALARM_PERMISSION") or EXACT_ALARM_PERMISSION).strip().lower()


def get_sync_interval_minutes() -> int:
    """Minutes between background sync passes."""
    return _clamped_int_from_env("CAREPLAN_SYNC_INTERVAL_MINUTES", 15, 1, 1440)


def get_sync_lookback_days() -> int:
    """How many past days of records a sync pass pushes and pulls."""
    # 日本語: 既定は直近30日 / English: Defaults to the last 30 days
    return _clamped_int_from_env("CAREPLAN_SYNC_LOOKBACK_DAYS", 30, 1, 365)


def get_exact_alarm_grace_seconds() -> int:
    """Misfire grace for plain exact alarms."""
    return _clamped_int_from_env("CAREPLAN_EXACT_ALARM_GRACE_SECONDS", 60, 1, 3600)


def background_jobs_enabled() -> bool:
    return os.getenv("CAREPLAN_BACKGROUND_JOBS", "true").strip().lower() in {"1", "true", "yes", "on"}
