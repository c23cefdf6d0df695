"""Pydantic schemas shared across resources."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

# camelCase on the wire, snake_case in Python; both accepted on input
CAMEL_CONFIG = {
    "alias_generator": to_camel,
    "populate_by_name": True,
}


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class HealthResponse(BaseModel):
    status: str
    db: bool
    timestamp: datetime


def normalise_email(v: str) -> str:
    v = v.strip().lower()
    if "@" not in v or v.startswith("@"):
        raise ValueError("Invalid email address")
    return v


def required_text(v: str, field: str, max_len: int = 200) -> str:
    v = v.strip()
    if not v:
        raise ValueError(f"{field} must not be empty")
    if len(v) > max_len:
        raise ValueError(f"{field} must not exceed {max_len} characters")
    return v
