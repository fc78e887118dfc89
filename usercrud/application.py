"""Application factory that wires settings, storage and the user API."""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI

from .config import Settings, load_settings
from .database import Database
from .service import create_app
from .users import UserService

logger = logging.getLogger("usercrud.application")


def create_application(
    *,
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
) -> FastAPI:
    """Create the ASGI application from ``settings``.

    Usable as a uvicorn factory: ``uvicorn usercrud.application:create_application --factory``.
    """

    settings = settings or load_settings()
    if database is None:
        database = Database(settings.database_path)
    database.initialize()

    app = create_app(
        users=UserService(database),
        api_tokens=settings.api_tokens,
        strict_not_found=settings.strict_not_found,
    )
    app.state.database = database
    app.state.settings = settings

    logger.info("User API configured with database %s", database.path)
    return app


__all__ = ["create_application"]
