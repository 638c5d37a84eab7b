"""ASGI entrypoint: ``uvicorn careplan.asgi:app``."""

import logging

from .application import app, create_app

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("careplan_asgi")

__all__ = ["app", "create_app"]
