"""Domain models for the user service."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import UUID


@dataclass(frozen=True)
class User:
    """Represents a user account stored in the user database."""

    id: UUID
    username: str
    email: str
    password_hash: str
    created_at: datetime
    updated_at: Optional[datetime] = None


__all__ = ["User"]
