"""Use cases for creating, reading, updating and deleting users."""
from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import List, Optional, Protocol
from uuid import UUID

from .models import User
from .security import hash_password

logger = logging.getLogger("usercrud.users")


class InvalidUserIdError(ValueError):
    """Raised when a user identifier is not a valid UUID."""


class UserStore(Protocol):
    def save(self, user: User) -> User: ...

    def find_by_id(self, user_id: UUID) -> Optional[User]: ...

    def find_all(self) -> List[User]: ...

    def exists_by_id(self, user_id: UUID) -> bool: ...

    def delete_by_id(self, user_id: UUID) -> None: ...


def parse_user_id(value: str) -> UUID:
    """Parse the canonical textual form of a user identifier.

    Only the dashed 8-4-4-4-12 hex form is accepted (either case); braces,
    ``urn:uuid:`` prefixes, undashed hex and surrounding whitespace are
    rejected.
    """

    if not isinstance(value, str):
        raise InvalidUserIdError(f"Invalid user id: {value!r}")
    try:
        parsed = UUID(value)
    except ValueError as exc:
        raise InvalidUserIdError(f"Invalid user id: {value!r}") from exc
    if str(parsed) != value.lower():
        raise InvalidUserIdError(f"Invalid user id: {value!r}")
    return parsed


def _current_timestamp() -> datetime:
    return datetime.now(timezone.utc)


class UserService:
    """Coordinates user use cases on top of a record store.

    Update and delete check for the record first and then write; the two
    steps are not atomic. A missing record makes both a no-op that reports
    ``False`` instead of raising.
    """

    def __init__(self, store: UserStore) -> None:
        self._store = store

    def create_user(self, username: str, email: str, password: str) -> UUID:
        user = User(
            id=uuid.uuid4(),
            username=username,
            email=email,
            password_hash=hash_password(password),
            created_at=_current_timestamp(),
            updated_at=None,
        )
        saved = self._store.save(user)
        logger.info("Created user %s (%s)", saved.id, saved.username)
        return saved.id

    def list_users(self) -> List[User]:
        return self._store.find_all()

    def get_user_by_id(self, user_id: str) -> Optional[User]:
        return self._store.find_by_id(parse_user_id(user_id))

    def update_user_by_id(
        self,
        user_id: str,
        *,
        username: Optional[str] = None,
        password: Optional[str] = None,
    ) -> bool:
        """Overwrite the supplied fields of an existing user.

        Returns ``False`` without writing anything when no user has the
        given identifier.
        """

        identifier = parse_user_id(user_id)
        user = self._store.find_by_id(identifier)
        if user is None:
            logger.debug("Skipping update of unknown user %s", identifier)
            return False

        changes = {}
        if username is not None:
            changes["username"] = username
        if password is not None:
            changes["password_hash"] = hash_password(password)
        changed_fields = sorted(changes)
        if changes:
            user = replace(user, updated_at=_current_timestamp(), **changes)

        self._store.save(user)
        logger.info("Updated user %s (fields: %s)", identifier, ", ".join(changed_fields) or "none")
        return True

    def delete_by_id(self, user_id: str) -> bool:
        identifier = parse_user_id(user_id)
        if not self._store.exists_by_id(identifier):
            logger.debug("Skipping delete of unknown user %s", identifier)
            return False

        self._store.delete_by_id(identifier)
        logger.info("Deleted user %s", identifier)
        return True


__all__ = ["InvalidUserIdError", "UserService", "UserStore", "parse_user_id"]
