"""Database engine and session helpers."""

from __future__ import annotations

import os
import threading
from typing import Callable, Iterator

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import Session, create_engine

from careplan.core.config import DATABASE_URL
from careplan.core.migrations import upgrade_to_head

DEFAULT_DATABASE_URL = "sqlite:///careplan.db"
SUPPORTED_DIALECTS = ("sqlite", "postgresql")


def _normalize_database_url(database_url: str) -> str:
    # 日本語: 旧 postgres:// を SQLAlchemy 推奨形式へ正規化 / English: Normalize legacy postgres:// URL to SQLAlchemy-friendly form
    normalized_url = database_url or DEFAULT_DATABASE_URL
    if normalized_url.startswith("postgres://"):
        normalized_url = normalized_url.replace("postgres://", "postgresql+psycopg2://", 1)
    if not normalized_url.startswith(SUPPORTED_DIALECTS):
        raise ValueError("DATABASE_URL must be SQLite (sqlite:///...) or PostgreSQL (postgresql+psycopg2://...).")
    return normalized_url


def _enable_sqlite_foreign_keys(engine: Engine) -> None:
    # 日本語: SQLite は接続ごとに外部キー制約を有効化する必要がある / English: SQLite needs foreign keys enabled per connection for cascades
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, _connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def build_engine(database_url: str, **engine_kwargs) -> Engine:
    """Build an engine after URL validation."""
    normalized_url = _normalize_database_url(database_url)
    if normalized_url.startswith("sqlite"):
        connect_args = dict(engine_kwargs.pop("connect_args", {}))
        # 日本語: バックグラウンドスレッドからも同じエンジンを使う / English: Engine is shared with background threads
        connect_args.setdefault("check_same_thread", False)
        engine = create_engine(normalized_url, connect_args=connect_args, **engine_kwargs)
        _enable_sqlite_foreign_keys(engine)
        return engine
    return create_engine(normalized_url, **engine_kwargs)


def _database_url_from_env() -> str:
    # 日本語: 実行時環境変数を優先 / English: Prefer runtime environment override
    return os.getenv("DATABASE_URL", DATABASE_URL or DEFAULT_DATABASE_URL)


# 日本語: モジュール初期化時点の接続情報とエンジン / English: Module-level current URL and engine
_current_database_url = _normalize_database_url(_database_url_from_env())
engine = build_engine(_current_database_url)
_db_initialized = False
_db_init_lock = threading.Lock()


def refresh_engine_from_env() -> None:
    """Refresh engine if DATABASE_URL changed after initial module import."""
    global engine, _db_initialized, _current_database_url

    latest_database_url = _normalize_database_url(_database_url_from_env())
    if latest_database_url == _current_database_url:
        return

    engine = build_engine(latest_database_url)
    _current_database_url = latest_database_url
    _db_initialized = False


def _ensure_db_initialized() -> None:
    global _db_initialized
    if _db_initialized:
        return
    # 日本語: マイグレーションはプロセス内で一度だけ実行 / English: Run migrations once per process with lock protection
    with _db_init_lock:
        if _db_initialized:
            return
        upgrade_to_head(_current_database_url)
        _db_initialized = True


def init_db() -> None:
    _ensure_db_initialized()


def create_session() -> Session:
    # 日本語: 明示的セッション生成（バックグラウンドジョブ等で利用） / English: Explicit session factory (used by background jobs)
    _ensure_db_initialized()
    return Session(engine)


def get_db() -> Iterator[Session]:
    # 日本語: FastAPI Depends 用のセッション供給器 / English: Dependency provider for FastAPI routes
    _ensure_db_initialized()
    with Session(engine) as db:
        yield db


def get_session_factory() -> Callable[[], Session]:
    # 日本語: レスポンス後の処理は独自セッションを開く / English: Post-response work opens its own sessions
    return create_session
