"""Global exception handlers for FastAPI."""

import logging

import pydantic
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.responses import JSONResponse

from api.base import error_response, ErrorCodes
from core.exceptions import (
    BusinessRuleViolation,
    InvalidTransitionError,
    LedgerError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Most specific class first.
_STATUS_BY_ERROR: list[tuple[type[LedgerError], int]] = [
    (NotFoundError, 404),
    (InvalidTransitionError, 409),
    (BusinessRuleViolation, 409),
    (ValidationError, 422),
]


def status_for(exc: LedgerError) -> int:
    """HTTP status for a ledger error."""
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 400


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the app."""

    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError):
        return JSONResponse(
            status_code=status_for(exc),
            content=error_response(exc.code, str(exc), _request_id(request)).model_dump(mode="json"),
        )

    @app.exception_handler(pydantic.ValidationError)
    async def model_validation_error_handler(request: Request, exc: pydantic.ValidationError):
        return JSONResponse(
            status_code=422,
            content=error_response(
                ErrorCodes.VALIDATION_ERROR,
                str(exc),
                _request_id(request),
            ).model_dump(mode="json"),
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return JSONResponse(
            status_code=400,
            content=error_response(
                ErrorCodes.INVALID_REQUEST,
                str(exc),
                _request_id(request),
            ).model_dump(mode="json"),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content=error_response(
                ErrorCodes.VALIDATION_ERROR,
                str(exc.errors()),
                _request_id(request),
            ).model_dump(mode="json"),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception")
        return JSONResponse(
            status_code=500,
            content=error_response(
                ErrorCodes.INTERNAL_ERROR,
                "An internal error occurred",
                _request_id(request),
            ).model_dump(mode="json"),
        )
