"""Pydantic schemas for the Supervisor directory."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ValidationInfo, field_validator

from facility_ops.models.supervisor import Supervisor
from facility_ops.schemas.common import CAMEL_CONFIG, normalise_email, required_text

_NOT_NULL = ("name", "email", "phone", "department", "employees", "tasks",
             "assigned_projects", "is_active")


class SupervisorCreate(BaseModel):
    name: str
    email: str
    phone: str
    password: str
    department: str | None = None
    site: str | None = None
    reports_to: str | None = None

    model_config = CAMEL_CONFIG

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        return required_text(v, "Name")

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return normalise_email(v)

    @field_validator("phone")
    @classmethod
    def _phone(cls, v: str) -> str:
        return required_text(v, "Phone", max_len=30)

    @field_validator("password")
    @classmethod
    def _password(cls, v: str) -> str:
        if not v:
            raise ValueError("Password must not be empty")
        return v


class SupervisorUpdate(BaseModel):
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    department: str | None = None
    site: str | None = None
    reports_to: str | None = None
    employees: int | None = None
    tasks: int | None = None
    assigned_projects: list[str] | None = None
    is_active: bool | None = None

    model_config = CAMEL_CONFIG

    @field_validator(*_NOT_NULL)
    @classmethod
    def _not_null(cls, v: object, info: ValidationInfo) -> object:
        # Only runs for values actually sent; null is rejected for required columns
        if v is None:
            raise ValueError(f"{info.field_name} may not be null")
        if info.field_name == "email":
            return normalise_email(v)  # type: ignore[arg-type]
        if info.field_name in ("name", "phone"):
            return required_text(v, info.field_name)  # type: ignore[arg-type]
        if info.field_name in ("employees", "tasks") and v < 0:  # type: ignore[operator]
            raise ValueError(f"{info.field_name} must not be negative")
        return v


class SupervisorRead(BaseModel):
    id: str
    name: str
    email: str
    phone: str
    department: str
    site: str | None
    reports_to: str | None
    employees: int
    tasks: int
    assigned_projects: list[str]
    is_active: bool
    status: str
    join_date: datetime | None
    created_at: datetime | None
    updated_at: datetime | None

    model_config = CAMEL_CONFIG


def to_supervisor_read(supervisor: Supervisor) -> SupervisorRead:
    """Map a stored Supervisor onto its public view."""
    return SupervisorRead(
        id=supervisor.id,
        name=supervisor.name,
        email=supervisor.email,
        phone=supervisor.phone,
        department=supervisor.department,
        site=supervisor.site,
        reports_to=supervisor.reports_to,
        employees=supervisor.employees,
        tasks=supervisor.tasks,
        assigned_projects=list(supervisor.assigned_projects or []),
        is_active=supervisor.is_active,
        status="active" if supervisor.is_active else "inactive",
        join_date=supervisor.join_date,
        created_at=supervisor.created_at,
        updated_at=supervisor.updated_at,
    )


# ── Envelopes ───────────────────────────────────────────────────────
class SupervisorResponse(BaseModel):
    success: bool = True
    message: str | None = None
    supervisor: SupervisorRead


class SupervisorListResponse(BaseModel):
    success: bool = True
    count: int
    supervisors: list[SupervisorRead]


class SupervisorStats(BaseModel):
    total: int
    active: int
    inactive: int


class SupervisorStatsResponse(BaseModel):
    success: bool = True
    stats: SupervisorStats
