"""FastAPI application assembly."""

from __future__ import annotations

from fastapi import FastAPI

from careplan.core.config import background_jobs_enabled
from careplan.core.db import init_db
from careplan.core.jobs import job_scheduler
from careplan.web.routers import (
    analytics_router,
    day_router,
    reminders_router,
    sync_router,
    templates_router,
)


def create_app() -> FastAPI:
    # 日本語: FastAPI アプリ本体を作成 / English: Create root FastAPI application
    app = FastAPI(title="Care Plan Task Engine")

    # 日本語: 機能別ルーターを順次登録 / English: Register feature routers
    app.include_router(templates_router)
    app.include_router(day_router)
    app.include_router(analytics_router)
    app.include_router(sync_router)
    app.include_router(reminders_router)

    @app.on_event("startup")
    def _startup() -> None:
        # 日本語: 起動時にマイグレーション適用を保証 / English: Ensure migrations are applied on startup
        init_db()
        if background_jobs_enabled():
            job_scheduler.start()
            # 日本語: 再起動でアラームが消えるため登録し直す / English: Alarms are lost on restart, so register them again
            job_scheduler.recover_after_restart()

    @app.on_event("shutdown")
    def _shutdown() -> None:
        job_scheduler.stop()

    return app


# 日本語: import 時点で既定アプリを構築 / English: Build default app instance at import time
app = create_app()
