"""
Supervisor model — the primary directory for supervisor-only attributes.

There is no foreign key to ``users``; the companion User is
located by ``(email, role="supervisor")``.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import NewType

from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, String

from facility_ops.db.base import Base

SupervisorId = NewType("SupervisorId", str)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Supervisor(Base):
    __tablename__ = "supervisors"

    id: SupervisorId = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))  # type: ignore[assignment]
    name: str = Column(String(200), nullable=False)  # type: ignore[assignment]
    email: str = Column(String(320), unique=True, nullable=False, index=True)  # type: ignore[assignment]
    phone: str = Column(String(30), nullable=False)  # type: ignore[assignment]
    department: str = Column(String(100), nullable=False, default="Operations")  # type: ignore[assignment]
    site: str | None = Column(String(200), nullable=True)  # type: ignore[assignment]
    # Free-text manager reference, not validated against any directory
    reports_to: str | None = Column(String(200), nullable=True)  # type: ignore[assignment]
    employees: int = Column(Integer, nullable=False, default=0)  # type: ignore[assignment]
    tasks: int = Column(Integer, nullable=False, default=0)  # type: ignore[assignment]
    assigned_projects: list[str] = Column(JSON, nullable=False, default=list)  # type: ignore[assignment]
    is_active: bool = Column(Boolean, nullable=False, default=True, server_default="true")  # type: ignore[assignment]
    join_date: datetime = Column(DateTime(timezone=True), default=_now)  # type: ignore[assignment]
    created_at: datetime = Column(DateTime(timezone=True), default=_now)  # type: ignore[assignment]
    updated_at: datetime = Column(DateTime(timezone=True), default=_now, onupdate=_now)  # type: ignore[assignment]
