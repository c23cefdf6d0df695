"""Pydantic schemas for User CRUD."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, field_validator

from facility_ops.models.user import User
from facility_ops.schemas.common import CAMEL_CONFIG, normalise_email, required_text


class UserCreate(BaseModel):
    username: str
    email: str
    password: str
    role: str = "employee"
    name: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    department: str | None = None
    site: str | None = None
    phone: str | None = None
    join_date: datetime | None = None

    model_config = CAMEL_CONFIG

    @field_validator("username")
    @classmethod
    def _username(cls, v: str) -> str:
        return required_text(v, "Username", max_len=150)

    @field_validator("email")
    @classmethod
    def _normalise_email(cls, v: str) -> str:
        return normalise_email(v)

    @field_validator("password")
    @classmethod
    def _password(cls, v: str) -> str:
        if not v:
            raise ValueError("Password must not be empty")
        return v


class UserUpdate(BaseModel):
    """Direct field patch.

    ``password``, ``role``, ``id`` and timestamps are not patchable here and
    are rejected as unknown fields; they have dedicated endpoints.
    """

    username: str | None = None
    email: str | None = None
    name: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    department: str | None = None
    site: str | None = None
    phone: str | None = None
    reports_to: str | None = None
    is_active: bool | None = None
    join_date: datetime | None = None

    model_config = {**CAMEL_CONFIG, "extra": "forbid"}

    @field_validator("username", "email", "name", "is_active")
    @classmethod
    def _not_null(cls, v: object) -> object:
        if v is None:
            raise ValueError("Field may not be null")
        return v

    @field_validator("email")
    @classmethod
    def _normalise_email(cls, v: str) -> str:
        return normalise_email(v)

    @field_validator("username")
    @classmethod
    def _username(cls, v: str) -> str:
        return required_text(v, "Username", max_len=150)


class RoleUpdate(BaseModel):
    role: str


class PasswordChange(BaseModel):
    password: str

    @field_validator("password")
    @classmethod
    def _password(cls, v: str) -> str:
        if not v:
            raise ValueError("Password must not be empty")
        return v


class UserRead(BaseModel):
    id: str
    username: str
    email: str
    name: str
    first_name: str | None
    last_name: str | None
    role: str
    department: str | None
    site: str | None
    phone: str | None
    reports_to: str | None
    is_active: bool
    status: str
    join_date: datetime | None
    created_at: datetime | None
    updated_at: datetime | None

    model_config = CAMEL_CONFIG


def to_user_read(user: User) -> UserRead:
    """Map a stored User onto its public view. The password never leaves here."""
    return UserRead(
        id=user.id,
        username=user.username,
        email=user.email,
        name=user.name,
        first_name=user.first_name,
        last_name=user.last_name,
        role=user.role,
        department=user.department,
        site=user.site,
        phone=user.phone,
        reports_to=user.reports_to,
        is_active=user.is_active,
        status="active" if user.is_active else "inactive",
        join_date=user.join_date,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


# ── Envelopes ───────────────────────────────────────────────────────
class UserResponse(BaseModel):
    success: bool = True
    message: str | None = None
    user: UserRead


class UserListResponse(BaseModel):
    success: bool = True
    all_users: list[UserRead]
    grouped_by_role: dict[str, list[UserRead]]
    total: int
    active: int
    inactive: int

    model_config = CAMEL_CONFIG


class RoleCount(BaseModel):
    role: str
    count: int


class UserStatsResponse(BaseModel):
    success: bool = True
    data: list[RoleCount]


class CurrentUserRead(BaseModel):
    user_id: str
    name: str
    email: str
    role: str

    model_config = CAMEL_CONFIG


class CurrentUserResponse(BaseModel):
    success: bool = True
    data: CurrentUserRead
