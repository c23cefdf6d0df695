"""
Directory error taxonomy and global exception handlers.

Handlers prevent stack-trace leakage to clients; every error body carries
``success: false`` plus a human readable ``message``.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

logger = logging.getLogger(__name__)


# ── Domain errors ───────────────────────────────────────────────────
class DirectoryError(Exception):
    """Base for errors raised by the Supervisor and User directories."""

    status_code: int = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFound(DirectoryError):
    status_code = 404


class DuplicateIdentity(DirectoryError):
    """Unique email / username collision."""


class DuplicateEmail(DuplicateIdentity):
    pass


class InvalidRole(DirectoryError):
    pass


class InvalidQuery(DirectoryError):
    pass


class ProtectedAccount(DirectoryError):
    """Operation would break the superadmin guarantees."""

    status_code = 403


class SyncFailure(Exception):
    """A companion-record propagation failed.

    Only ever logged by the sync shim; never handed to an HTTP client.
    """

    def __init__(self, operation: str, supervisor_id: str, email: str, cause: Exception) -> None:
        super().__init__(
            f"Companion sync '{operation}' failed for supervisor {supervisor_id} "
            f"<{email}>: {cause!r}"
        )
        self.operation = operation
        self.supervisor_id = supervisor_id
        self.email = email
        self.cause = cause


def is_unique_violation(exc: IntegrityError, *columns: str) -> bool:
    """True when *exc* is a unique-constraint clash on one of *columns*.

    Matches the driver message (SQLite names ``table.column``, PostgreSQL the
    ``ix_<table>_<column>`` index), so other integrity errors fall through.
    """
    text = str(exc.orig).lower()
    if "unique" not in text and "duplicate" not in text:
        return False
    return any(column in text for column in columns)


# ── Handlers ────────────────────────────────────────────────────────
def _error_body(message: object) -> dict:
    return {"success": False, "message": message, "detail": message}


async def _directory_error_handler(_request: Request, exc: DirectoryError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.message))


async def _validation_error_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    parts = []
    for error in errors:
        field = ".".join(str(p) for p in error["loc"] if p != "body")
        parts.append(f"{field}: {error['msg']}" if field else error["msg"])
    body = _error_body("; ".join(parts) or "Invalid request")
    body["errors"] = jsonable_encoder(errors)
    return JSONResponse(status_code=422, content=body)


async def _http_exception_handler(_request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.detail),
        headers=getattr(exc, "headers", None),
    )


async def _integrity_error_handler(_request: Request, exc: IntegrityError) -> JSONResponse:
    logger.error("Database integrity error: %s", exc, exc_info=True)
    return JSONResponse(status_code=409, content=_error_body("Database constraint violation"))


async def _sqlalchemy_error_handler(_request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("Database error: %s", exc, exc_info=True)
    return JSONResponse(status_code=500, content=_error_body("Internal database error"))


async def _generic_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception: %s", exc)
    return JSONResponse(status_code=500, content=_error_body("Internal server error"))


def register_exception_handlers(app: FastAPI) -> None:
    """Attach all exception handlers to the FastAPI app."""
    app.add_exception_handler(DirectoryError, _directory_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(HTTPException, _http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(IntegrityError, _integrity_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(SQLAlchemyError, _sqlalchemy_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _generic_exception_handler)
