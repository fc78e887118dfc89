"""HTTP API for managing user records."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Response, status
from pydantic import BaseModel, Field, field_validator

from .database import Database, resolve_database_path
from .models import User
from .security import TokenAuth
from .users import InvalidUserIdError, UserService

logger = logging.getLogger("usercrud.service")


class CreateUserRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=64)
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1, max_length=255)

    @field_validator("username", "email", mode="before")
    @classmethod
    def _strip_whitespace(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip()
        return value


class UpdateUserRequest(BaseModel):
    username: Optional[str] = Field(default=None, min_length=1, max_length=64)
    password: Optional[str] = Field(default=None, min_length=1, max_length=255)

    @field_validator("username", mode="before")
    @classmethod
    def _strip_username(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip()
        return value


class UserResponse(BaseModel):
    id: str
    username: str
    email: str
    created_at: datetime
    updated_at: Optional[datetime] = None


def _user_to_response(user: User) -> UserResponse:
    return UserResponse(
        id=str(user.id),
        username=user.username,
        email=user.email,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


def _invalid_id(exc: InvalidUserIdError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


def _initialise_database(database: Database) -> Database:
    database.initialize()
    return database


def register_user_routes(
    router: APIRouter,
    users: UserService,
    *,
    strict_not_found: bool = False,
) -> None:
    """Attach the user CRUD endpoints to ``router``."""

    @router.post("/users", status_code=status.HTTP_201_CREATED, response_class=Response)
    async def create_user(payload: CreateUserRequest) -> Response:
        user_id = users.create_user(payload.username, payload.email, payload.password)
        return Response(
            status_code=status.HTTP_201_CREATED,
            headers={"Location": f"/users/{user_id}"},
        )

    @router.get("/users", response_model=List[UserResponse])
    async def list_users() -> List[UserResponse]:
        return [_user_to_response(user) for user in users.list_users()]

    @router.get("/users/{user_id}", response_model=UserResponse)
    async def get_user(user_id: str) -> UserResponse:
        try:
            user = users.get_user_by_id(user_id)
        except InvalidUserIdError as exc:
            raise _invalid_id(exc) from exc
        if user is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
        return _user_to_response(user)

    @router.put("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
    async def update_user(user_id: str, payload: UpdateUserRequest) -> Response:
        try:
            updated = users.update_user_by_id(
                user_id,
                username=payload.username,
                password=payload.password,
            )
        except InvalidUserIdError as exc:
            raise _invalid_id(exc) from exc
        if not updated and strict_not_found:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
    async def delete_user(user_id: str) -> Response:
        try:
            deleted = users.delete_by_id(user_id)
        except InvalidUserIdError as exc:
            raise _invalid_id(exc) from exc
        if not deleted and strict_not_found:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
        return Response(status_code=status.HTTP_204_NO_CONTENT)


def create_app(
    *,
    database: Database | None = None,
    users: UserService | None = None,
    api_tokens: Sequence[str] = (),
    strict_not_found: bool = False,
    title: str = "User CRUD Service",
) -> FastAPI:
    """Return the user API application.

    ``users`` takes precedence over ``database``; when neither is given a
    database at the default location is created and initialised.
    """

    if users is None:
        db = database or Database(resolve_database_path(None))
        users = UserService(_initialise_database(db))

    dependencies: List[Callable] = []
    if api_tokens:
        dependencies.append(TokenAuth(api_tokens))

    app = FastAPI(title=title)
    app.state.users = users

    @app.get("/healthz")
    async def healthcheck() -> Dict[str, str]:
        return {"status": "ok"}

    router = APIRouter(tags=["users"], dependencies=[Depends(dep) for dep in dependencies])
    register_user_routes(router, users, strict_not_found=strict_not_found)
    app.include_router(router)

    logger.debug(
        "User API ready (auth=%s, strict_not_found=%s)",
        "token" if dependencies else "open",
        strict_not_found,
    )
    return app


__all__ = [
    "CreateUserRequest",
    "UpdateUserRequest",
    "UserResponse",
    "create_app",
    "register_user_routes",
]
