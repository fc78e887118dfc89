"""Security helpers for the user API."""
from __future__ import annotations

import secrets
from typing import Iterable, List, Optional

from fastapi import HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext

_pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    return _pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    """Return ``True`` if ``password`` matches the stored ``hashed`` value."""

    if not hashed:
        return False
    try:
        return _pwd_context.verify(password, hashed)
    except ValueError:
        return False


class TokenAuth:
    """Bearer token authentication using constant-time comparisons."""

    def __init__(self, tokens: Iterable[str]):
        token_list: List[str] = [token.strip() for token in tokens if token.strip()]
        if not token_list:
            raise ValueError("At least one API token must be provided")
        self._tokens = token_list
        self._bearer = HTTPBearer(auto_error=False)

    async def __call__(self, request: Request) -> None:
        credentials: HTTPAuthorizationCredentials | None = await self._bearer(request)  # type: ignore[assignment]
        if credentials is None or credentials.scheme.lower() != "bearer":
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")

        provided = credentials.credentials
        for token in self._tokens:
            if secrets.compare_digest(provided, token):
                return None

        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid API token")


def parse_tokens(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [token.strip() for token in raw.split(",") if token.strip()]


__all__ = ["TokenAuth", "hash_password", "parse_tokens", "verify_password"]
