"""
Engine exception types and global exception handlers.

Handlers prevent stack-trace leakage to clients; batch code catches the
domain errors per employee and reports them instead of aborting.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

logger = logging.getLogger(__name__)


class AttendanceEngineError(Exception):
    """Base class for every error raised by the engine."""


class InvalidStatusCombination(AttendanceEngineError, ValueError):
    """A primary/secondary status pair that cannot occur on one shift."""


class EmployeeNotFound(AttendanceEngineError):
    def __init__(self, employee_id: int) -> None:
        super().__init__(f"Employee {employee_id} not found")
        self.employee_id = employee_id


class InvalidDateRange(AttendanceEngineError, ValueError):
    pass


# ── Handlers ────────────────────────────────────────────────────────
async def _http_exception_handler(_request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "success": False},
    )


async def _not_found_handler(_request: Request, exc: EmployeeNotFound) -> JSONResponse:
    return JSONResponse(
        status_code=404,
        content={"detail": str(exc), "success": False},
    )


async def _validation_handler(_request: Request, exc: AttendanceEngineError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={"detail": str(exc), "success": False},
    )


async def _integrity_error_handler(_request: Request, exc: IntegrityError) -> JSONResponse:
    logger.error("Database integrity error: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=409,
        content={"detail": "Database constraint violation", "success": False},
    )


async def _sqlalchemy_error_handler(_request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("Database error: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal database error", "success": False},
    )


async def _generic_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception: %s", exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "success": False},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach all exception handlers to the FastAPI app."""
    app.add_exception_handler(HTTPException, _http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(EmployeeNotFound, _not_found_handler)  # type: ignore[arg-type]
    app.add_exception_handler(InvalidDateRange, _validation_handler)  # type: ignore[arg-type]
    app.add_exception_handler(InvalidStatusCombination, _validation_handler)  # type: ignore[arg-type]
    app.add_exception_handler(IntegrityError, _integrity_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(SQLAlchemyError, _sqlalchemy_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _generic_exception_handler)
