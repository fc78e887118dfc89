"""SQLite-backed persistence for user records."""
from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional
from uuid import UUID

from .models import User

logger = logging.getLogger("usercrud.database")


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def resolve_database_path(env_value: Optional[str]) -> Path:
    """Resolve the on-disk path for the application database."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    base_dir = Path(__file__).resolve().parent.parent / "data"
    return (base_dir / "users.sqlite3").resolve(strict=False)


def _serialize_datetime(value: datetime) -> str:
    return value.isoformat()


def _parse_datetime(value: str) -> datetime:
    return datetime.fromisoformat(value)


class Database:
    """Simple wrapper around SQLite for persisting users."""

    def __init__(self, path: Path) -> None:
        _ensure_directory(path)
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def initialize(self) -> None:
        """Create the required tables if they do not already exist."""

        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    username TEXT NOT NULL,
                    email TEXT NOT NULL,
                    password_hash TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT
                );

                CREATE INDEX IF NOT EXISTS idx_users_created_at ON users(created_at);
                """
            )
        logger.debug("Schema ready at %s", self._path)

    # ------------------------------------------------------------------
    # User records
    # ------------------------------------------------------------------
    def save(self, user: User) -> User:
        """Insert ``user`` or replace the stored record with the same id."""

        row = self._user_to_row(user)
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO users (id, username, email, password_hash, created_at, updated_at)
                VALUES (:id, :username, :email, :password_hash, :created_at, :updated_at)
                ON CONFLICT(id) DO UPDATE SET
                    username = excluded.username,
                    email = excluded.email,
                    password_hash = excluded.password_hash,
                    created_at = excluded.created_at,
                    updated_at = excluded.updated_at
                """,
                row,
            )
        return user

    def find_by_id(self, user_id: UUID) -> Optional[User]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (str(user_id),)).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def find_all(self) -> List[User]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM users ORDER BY created_at, id").fetchall()
        return [self._row_to_user(row) for row in rows]

    def exists_by_id(self, user_id: UUID) -> bool:
        with self._connect() as conn:
            row = conn.execute("SELECT 1 FROM users WHERE id = ?", (str(user_id),)).fetchone()
        return row is not None

    def delete_by_id(self, user_id: UUID) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM users WHERE id = ?", (str(user_id),))

    def count(self) -> int:
        with self._connect() as conn:
            row = conn.execute("SELECT COUNT(*) AS total FROM users").fetchone()
        return int(row["total"])

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _user_to_row(user: User) -> Dict[str, Any]:
        return {
            "id": str(user.id),
            "username": user.username,
            "email": user.email,
            "password_hash": user.password_hash,
            "created_at": _serialize_datetime(user.created_at),
            "updated_at": _serialize_datetime(user.updated_at) if user.updated_at else None,
        }

    @staticmethod
    def _row_to_user(row: sqlite3.Row) -> User:
        updated_at = row["updated_at"]
        return User(
            id=UUID(str(row["id"])),
            username=str(row["username"]),
            email=str(row["email"]),
            password_hash=str(row["password_hash"]),
            created_at=_parse_datetime(str(row["created_at"])),
            updated_at=_parse_datetime(str(updated_at)) if updated_at else None,
        )


__all__ = ["Database", "resolve_database_path"]
