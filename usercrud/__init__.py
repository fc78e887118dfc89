"""Core package for the user CRUD service."""

from __future__ import annotations

from typing import Any

from .database import Database, resolve_database_path
from .models import User


def create_app(*args: Any, **kwargs: Any):
    """Factory function that returns the user API application."""

    from .service import create_app as _create_app

    return _create_app(*args, **kwargs)


def create_application(*args: Any, **kwargs: Any):
    """Factory function that builds the application from settings."""

    from .application import create_application as _create_application

    return _create_application(*args, **kwargs)


__all__ = [
    "Database",
    "User",
    "resolve_database_path",
    "create_app",
    "create_application",
]
