"""
User model — login credentials & role-based identity.

Two mapper hooks run before every INSERT / UPDATE:

* ``name`` is always populated (first + last name, then username, then the
  email local-part);
* a changed ``password`` attribute is replaced with its bcrypt hash, so the
  stored value is never the plaintext.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import NewType

from sqlalchemy import Boolean, Column, DateTime, String, event, inspect

from facility_ops.core.security import get_password_hash
from facility_ops.db.base import Base

UserId = NewType("UserId", str)

VALID_ROLES = ("superadmin", "admin", "manager", "supervisor", "employee")


def _now() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id: UserId = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))  # type: ignore[assignment]
    email: str = Column(String(320), unique=True, nullable=False, index=True)  # type: ignore[assignment]
    username: str = Column(String(150), unique=True, nullable=False, index=True)  # type: ignore[assignment]
    password: str = Column(String(128), nullable=False)  # type: ignore[assignment]
    name: str = Column(String(200), nullable=False)  # type: ignore[assignment]
    first_name: str | None = Column(String(100), nullable=True)  # type: ignore[assignment]
    last_name: str | None = Column(String(100), nullable=True)  # type: ignore[assignment]
    role: str = Column(  # type: ignore[assignment]
        String(20),
        nullable=False,
        default="employee",
        server_default="employee",
    )  # superadmin | admin | manager | supervisor | employee
    department: str | None = Column(String(100), nullable=True)  # type: ignore[assignment]
    site: str | None = Column(String(200), nullable=True, default="Mumbai Office")  # type: ignore[assignment]
    phone: str | None = Column(String(30), nullable=True)  # type: ignore[assignment]
    reports_to: str | None = Column(String(200), nullable=True)  # type: ignore[assignment]
    is_active: bool = Column(Boolean, nullable=False, default=True, server_default="true")  # type: ignore[assignment]
    join_date: datetime = Column(DateTime(timezone=True), default=_now)  # type: ignore[assignment]
    created_at: datetime = Column(DateTime(timezone=True), default=_now)  # type: ignore[assignment]
    updated_at: datetime = Column(DateTime(timezone=True), default=_now, onupdate=_now)  # type: ignore[assignment]


def derive_display_name(
    first_name: str | None,
    last_name: str | None,
    username: str | None,
    email: str | None,
) -> str:
    full = f"{first_name or ''} {last_name or ''}".strip()
    if full:
        return full
    if username:
        return username
    return (email or "").split("@")[0]


def split_name(name: str) -> tuple[str, str]:
    """``"Jane van Doe"`` -> ``("Jane", "van Doe")``."""
    first, _, rest = name.strip().partition(" ")
    return first, rest.strip()


def _ensure_name(target: User) -> None:
    if not (target.name or "").strip():
        target.name = derive_display_name(
            target.first_name, target.last_name, target.username, target.email
        )


@event.listens_for(User, "before_insert")
def _user_before_insert(_mapper, _connection, target: User) -> None:
    _ensure_name(target)
    target.password = get_password_hash(target.password)


@event.listens_for(User, "before_update")
def _user_before_update(_mapper, _connection, target: User) -> None:
    _ensure_name(target)
    if inspect(target).attrs.password.history.has_changes():
        target.password = get_password_hash(target.password)
