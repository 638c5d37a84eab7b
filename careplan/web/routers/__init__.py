"""Router exports."""

# 日本語: 各機能ルーターを集約して application.py から一括 import 可能にする / English: Re-export feature routers for centralized app wiring
from .analytics_router import router as analytics_router
from .day_router import router as day_router
from .reminders_router import router as reminders_router
from .sync_router import router as sync_router
from .templates_router import router as templates_router

__all__ = [
    "templates_router",
    "day_router",
    "analytics_router",
    "sync_router",
    "reminders_router",
]
